"""
Resource and action catalog.

The catalog lists the resources and actions offered to administrators and
used for seeding. Permission checks never validate against it.
"""
from django.conf import settings

DEFAULT_RESOURCES = {
    'user': 'User',
    'role': 'Role',
    'permission': 'Permission',
}

DEFAULT_ACTIONS = {
    'view': 'View',
    'create': 'Create',
    'update': 'Update',
    'delete': 'Delete',
    'restore': 'Restore',
    'force_delete': 'Force Delete',
    'manage': 'Manage',
}


def get_resources():
    """Return the configured ``{resource_key: display_name}`` mapping."""
    return dict(getattr(settings, 'RBAC_RESOURCES', DEFAULT_RESOURCES))


def get_actions():
    """Return the configured ``{action_key: display_name}`` mapping."""
    return dict(getattr(settings, 'RBAC_ACTIONS', DEFAULT_ACTIONS))


def catalog_permissions():
    """
    Yield ``(resource, action, description)`` for every catalog pair.

    Example:
        ('user', 'view', 'View User')
    """
    actions = get_actions()
    for resource, resource_label in get_resources().items():
        for action, action_label in actions.items():
            yield resource, action, f"{action_label} {resource_label}"
