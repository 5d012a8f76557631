"""
RBAC models for multi-tenant access control.

Implements:
- Permission (per-tenant, named "{action}.{resource}")
- Role (per-tenant, optionally superadmin)
- RolePermission (maps permissions to roles)
- TenantUserRole (maps roles to tenant users)
- AuditLog (audit trail of RBAC mutations)

Every row carries its tenant. Membership and grant rows cascade with
either endpoint.
"""
import logging
from django.core.exceptions import ValidationError
from django.db import models, transaction
from apps.core.models import BaseModel

logger = logging.getLogger(__name__)


class PermissionManager(models.Manager):
    """Manager for Permission queries with tenant scoping."""

    def for_tenant(self, tenant):
        """Get all permissions for a specific tenant."""
        return self.filter(tenant=tenant)

    def by_name(self, tenant, name):
        """Find permission by tenant and name."""
        return self.filter(tenant=tenant, name=name).first()

    def for_resource(self, tenant, resource):
        """Get all permissions governing a resource."""
        return self.filter(tenant=tenant, resource=resource)

    def for_action(self, tenant, action):
        """Get all permissions for an action."""
        return self.filter(tenant=tenant, action=action)


class Permission(BaseModel):
    """
    Per-tenant permission on a (resource, action) pair.

    Resource and action are free-form strings; the configured catalog is
    only a list of suggestions for UIs and seeding.
    """

    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.CASCADE,
        related_name='permissions',
        db_index=True,
        help_text="Tenant this permission belongs to"
    )
    name = models.CharField(
        max_length=255,
        help_text="Canonical name, '{action}.{resource}' (e.g., 'view.user')"
    )
    description = models.TextField(
        blank=True,
        help_text="What this permission grants"
    )
    resource = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Resource key (e.g., 'user')"
    )
    action = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Action key (e.g., 'delete')"
    )

    # Custom manager
    objects = PermissionManager()

    class Meta:
        db_table = 'rbac_permissions'
        unique_together = [('tenant', 'name')]
        ordering = ['resource', 'action']
        indexes = [
            models.Index(fields=['tenant', 'resource'], name='rbac_permis_tenant__3c1e2a_idx'),
            models.Index(fields=['tenant', 'action'], name='rbac_permis_tenant__8d4b7f_idx'),
        ]

    def __str__(self):
        return self.name

    @staticmethod
    def make_name(resource, action):
        """Build the canonical permission name for a resource/action pair."""
        return f"{action}.{resource}"


class RoleManager(models.Manager):
    """Manager for Role queries with tenant scoping."""

    def for_tenant(self, tenant):
        """Get all roles for a specific tenant."""
        return self.filter(tenant=tenant)

    def superadmin_roles(self, tenant):
        """Get roles flagged as superadmin for a tenant."""
        return self.filter(tenant=tenant, is_superadmin=True)

    def by_name(self, tenant, name):
        """Find role by tenant and name."""
        return self.filter(tenant=tenant, name=name).first()


class Role(BaseModel):
    """
    Per-tenant role definitions.

    A role with is_superadmin=True holds every permission implicitly,
    whatever its explicit grants are.
    """

    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.CASCADE,
        related_name='roles',
        db_index=True,
        help_text="Tenant this role belongs to"
    )
    name = models.CharField(
        max_length=100,
        help_text="Role name (e.g., 'editor')"
    )
    description = models.TextField(
        blank=True,
        help_text="Role description"
    )
    is_superadmin = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether this role bypasses all permission checks"
    )

    # Custom manager
    objects = RoleManager()

    class Meta:
        db_table = 'rbac_roles'
        unique_together = [('tenant', 'name')]
        ordering = ['tenant', 'name']
        indexes = [
            models.Index(fields=['tenant', 'is_superadmin'], name='rbac_roles_tenant__5a9c2e_idx'),
        ]

    def __str__(self):
        return f"{self.tenant.name} - {self.name}"

    def get_permissions(self):
        """Get all permissions explicitly granted to this role."""
        return Permission.objects.filter(
            role_permissions__role=self
        ).distinct()

    def has_permission(self, permission):
        """
        Check if role has a permission (name or Permission instance).

        Superadmin roles have every permission.
        """
        if self.is_superadmin:
            return True
        if isinstance(permission, Permission):
            return self.role_permissions.filter(permission=permission).exists()
        return self.role_permissions.filter(permission__name=permission).exists()


def _validate_same_tenant(row, *endpoints):
    for endpoint in endpoints:
        if endpoint.tenant_id != row.tenant_id:
            raise ValidationError(
                f"{endpoint.__class__.__name__} must belong to the same tenant"
            )


class RolePermission(BaseModel):
    """
    Maps permissions to roles.
    """

    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.CASCADE,
        related_name='role_permissions',
        help_text="Tenant shared by role and permission"
    )
    role = models.ForeignKey(
        Role,
        on_delete=models.CASCADE,
        related_name='role_permissions',
        db_index=True,
        help_text="Role that grants this permission"
    )
    permission = models.ForeignKey(
        Permission,
        on_delete=models.CASCADE,
        related_name='role_permissions',
        db_index=True,
        help_text="Permission being granted"
    )

    class Meta:
        db_table = 'rbac_role_permission'
        unique_together = [('tenant', 'role', 'permission')]
        ordering = ['role', 'permission']

    def __str__(self):
        return f"{self.role.name} -> {self.permission.name}"

    def clean(self):
        """Validate that role and permission belong to the row's tenant."""
        super().clean()
        _validate_same_tenant(self, self.role, self.permission)

    def save(self, *args, **kwargs):
        self.clean()
        super().save(*args, **kwargs)


class TenantUserRole(BaseModel):
    """
    Maps roles to tenant users.

    A tenant user can have multiple roles, and permissions are aggregated.
    """

    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.CASCADE,
        related_name='user_roles',
        help_text="Tenant shared by user and role"
    )
    tenant_user = models.ForeignKey(
        'tenants.TenantUser',
        on_delete=models.CASCADE,
        related_name='user_roles',
        db_index=True,
        help_text="Tenant user who has this role"
    )
    role = models.ForeignKey(
        Role,
        on_delete=models.CASCADE,
        related_name='user_roles',
        db_index=True,
        help_text="Role assigned to the user"
    )

    # Audit fields
    assigned_by = models.ForeignKey(
        'tenants.TenantUser',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='role_assignments_made',
        help_text="Tenant user who assigned this role"
    )

    class Meta:
        db_table = 'rbac_user_role'
        unique_together = [('tenant', 'tenant_user', 'role')]
        ordering = ['tenant_user', 'role']

    def __str__(self):
        return f"{self.tenant_user} -> {self.role.name}"

    def clean(self):
        """Validate that tenant_user and role belong to the row's tenant."""
        super().clean()
        _validate_same_tenant(self, self.tenant_user, self.role)

    def save(self, *args, **kwargs):
        self.clean()
        super().save(*args, **kwargs)


class AuditLogManager(models.Manager):
    """Manager for AuditLog queries with tenant scoping."""

    def for_tenant(self, tenant):
        """Get audit logs for a specific tenant."""
        return self.filter(tenant=tenant)

    def by_action(self, action):
        """Get audit logs for a specific action."""
        return self.filter(action=action)


class AuditLog(BaseModel):
    """
    Audit trail for RBAC mutations (role assignment, grants, provisioning).
    """

    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.CASCADE,
        related_name='audit_logs',
        db_index=True,
        help_text="Tenant this action belongs to"
    )
    actor = models.ForeignKey(
        'tenants.TenantUser',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='audit_logs',
        help_text="Tenant user who performed the action (null for system actions)"
    )
    action = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Action performed (e.g., 'role_assigned')"
    )
    target_type = models.CharField(
        max_length=50,
        help_text="Type of target entity (e.g., 'TenantUser', 'Role')"
    )
    target_id = models.UUIDField(
        null=True,
        blank=True,
        help_text="ID of target entity"
    )
    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Additional context metadata"
    )

    # Custom manager
    objects = AuditLogManager()

    class Meta:
        db_table = 'rbac_audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['tenant', 'action', 'created_at'], name='rbac_audit__tenant__e7f3d1_idx'),
        ]

    def __str__(self):
        return f"{self.tenant.name} - {self.action}"

    @classmethod
    def log_action(cls, action, tenant, target_type, target_id=None,
                   actor=None, metadata=None):
        """
        Convenience method to create audit log entry.

        Returns:
            AuditLog instance, or None if the row could not be written
        """
        try:
            with transaction.atomic():
                return cls.objects.create(
                    action=action,
                    tenant=tenant,
                    target_type=target_type,
                    target_id=target_id,
                    actor=actor,
                    metadata=metadata or {},
                )
        except Exception as e:
            # Audit logging must not break the main operation
            logger.error(
                f"Failed to create audit log: {str(e)}",
                extra={'action': action, 'tenant_id': tenant.id if tenant else None},
                exc_info=True
            )
            return None
