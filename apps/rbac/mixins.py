"""
Authorization surface for the host's tenant-scoped user model.

The host model mixes in AuthorizableMixin; every method delegates to the
RBAC services, so the RBAC app never owns the user model itself.
"""


class AuthorizableMixin:
    """
    Adds role and permission helpers to a model with a ``tenant`` foreign key.
    """

    def get_roles(self):
        """Roles assigned to this user in its tenant."""
        from apps.rbac.services import MembershipResolver
        return MembershipResolver.roles_of(self)

    def is_superadmin(self):
        from apps.rbac.services import AuthorizationService
        return AuthorizationService.is_superadmin(self)

    def has_role(self, role):
        from apps.rbac.services import AuthorizationService
        return AuthorizationService.has_role(self, role)

    def has_permission(self, permission):
        from apps.rbac.services import AuthorizationService
        return AuthorizationService.has_permission(self, permission)

    def has_any_permission(self, permissions):
        from apps.rbac.services import AuthorizationService
        return AuthorizationService.has_any_permission(self, permissions)

    def has_all_permissions(self, permissions):
        from apps.rbac.services import AuthorizationService
        return AuthorizationService.has_all_permissions(self, permissions)

    def assign_role(self, role, assigned_by=None):
        from apps.rbac.services import GrantService
        return GrantService.assign_role(self, role, assigned_by=assigned_by)

    def remove_role(self, role, removed_by=None):
        from apps.rbac.services import GrantService
        return GrantService.remove_role(self, role, removed_by=removed_by)

    def sync_roles(self, roles, assigned_by=None):
        from apps.rbac.services import GrantService
        return GrantService.sync_roles(self, roles, assigned_by=assigned_by)
