"""
RBAC signals.

- Seeds the catalog permissions when a tenant is created
- Makes the first user of a tenant a superadmin
- Keeps cached permission sets in step with role/permission changes
"""
import logging
from django.conf import settings
from django.db import transaction
from django.db.models.signals import post_save, pre_delete
from django.dispatch import receiver

from apps.core.logging import SecurityLogger
from apps.rbac.models import AuditLog, Permission, Role

logger = logging.getLogger(__name__)

SUPERADMIN_DESCRIPTION = 'Super Administrator with all permissions'


@receiver(post_save, sender='tenants.Tenant')
def seed_permissions_on_tenant_creation(sender, instance, created, **kwargs):
    """Seed the resource/action catalog as permissions of a new tenant."""
    if not created or not getattr(settings, 'RBAC_AUTO_SEED_PERMISSIONS', True):
        return

    from apps.rbac.management.commands.seed_permissions import seed_tenant_permissions

    created_count = seed_tenant_permissions(instance)
    logger.info(
        f"Seeded {created_count} catalog permissions",
        extra={'tenant_id': instance.id}
    )


@receiver(post_save, sender='tenants.TenantUser')
def provision_first_tenant_user(sender, instance, created, **kwargs):
    """
    Make the first user created in a tenant a superadmin.

    Failures are logged and reported; they never fail the user creation.
    Two users created concurrently may both see themselves as first and
    both become superadmin; the role row itself stays unique.
    """
    if not created or not getattr(settings, 'RBAC_PROVISION_FIRST_USER', True):
        return

    from apps.rbac.services import EntityStore, GrantService

    try:
        with transaction.atomic():
            if sender.objects.filter(tenant_id=instance.tenant_id).count() != 1:
                return

            role_name = getattr(settings, 'RBAC_SUPERADMIN_ROLE_NAME', 'superadmin')
            role, _ = EntityStore.get_or_create_role(
                instance.tenant,
                role_name,
                description=SUPERADMIN_DESCRIPTION,
                is_superadmin=True,
            )
            if not role.is_superadmin:
                logger.warning(
                    f"Existing role '{role.name}' promoted to superadmin",
                    extra={'tenant_id': instance.tenant_id, 'role_id': str(role.id)}
                )
                role.is_superadmin = True
                role.save(update_fields=['is_superadmin', 'updated_at'])
            GrantService.assign_role(instance, role)

            AuditLog.log_action(
                action='superadmin_provisioned',
                tenant=instance.tenant,
                target_type='TenantUser',
                target_id=instance.id,
                metadata={'role_name': role.name, 'trigger': 'first_tenant_user'},
            )
    except Exception as e:
        logger.exception(
            "Failed to provision superadmin for first tenant user",
            extra={'tenant_id': instance.tenant_id}
        )
        SecurityLogger.log_provisioning_failure(instance, e)


@receiver(post_save, sender=Role)
def invalidate_on_role_change(sender, instance, created, **kwargs):
    """A changed superadmin flag changes every holder's permission set."""
    if created:
        return
    from apps.rbac.services import MembershipResolver
    MembershipResolver.invalidate_for_role(instance)


@receiver(pre_delete, sender=Role)
def invalidate_on_role_delete(sender, instance, **kwargs):
    """Holders are collected before the cascade removes their rows; keys are cleared again on commit."""
    from apps.rbac.services import MembershipResolver
    MembershipResolver.invalidate_for_role(instance)


@receiver(pre_delete, sender=Permission)
def invalidate_on_permission_delete(sender, instance, **kwargs):
    from apps.rbac.services import MembershipResolver
    MembershipResolver.invalidate_for_permission(instance)


@receiver(pre_delete, sender='tenants.TenantUser')
def invalidate_on_tenant_user_delete(sender, instance, **kwargs):
    from apps.rbac.services import MembershipResolver
    MembershipResolver.invalidate([instance.id])
