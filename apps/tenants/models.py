"""
Tenant models for multi-tenant isolation.

Tenant is the isolation boundary for every role, permission and grant.
TenantUser is the host application's tenant-scoped user; it owns its own
lifecycle and picks up the authorization surface from AuthorizableMixin.
"""
import uuid

from django.conf import settings
from django.db import models
from apps.core.models import BaseModel
from apps.rbac.mixins import AuthorizableMixin


class TenantManager(models.Manager):
    """Manager for tenant-scoped queries."""

    def active(self):
        """Return only active tenants."""
        return self.filter(status='active')

    def by_slug(self, slug):
        """Find tenant by slug."""
        return self.filter(slug=slug).first()

    def resolve(self, identifier):
        """Find tenant by UUID or slug. Returns None if neither matches."""
        try:
            tenant_uuid = uuid.UUID(str(identifier))
        except ValueError:
            return self.by_slug(identifier)
        return self.filter(id=tenant_uuid).first()

    def get_by_identifier(self, identifier):
        """
        Find tenant by UUID or slug.

        Raises:
            TenantNotFound: If no tenant matches
        """
        from apps.core.exceptions import TenantNotFound

        tenant = self.resolve(identifier)
        if tenant is None:
            raise TenantNotFound(
                f"Tenant not found: {identifier}",
                details={'tenant': str(identifier)},
            )
        return tenant


class Tenant(BaseModel):
    """
    Tenant model representing an isolated customer organization.

    Every Role, Permission, and membership/grant row carries a tenant and
    is never visible from another tenant.
    """

    STATUS_CHOICES = [
        ('active', 'Active'),
        ('suspended', 'Suspended'),
    ]

    name = models.CharField(
        max_length=255,
        help_text="Organization name"
    )
    slug = models.SlugField(
        unique=True,
        max_length=100,
        help_text="URL-friendly identifier"
    )
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default='active',
        db_index=True,
        help_text="Current tenant status"
    )

    # Custom manager
    objects = TenantManager()

    class Meta:
        db_table = 'tenants'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.name} ({self.slug})"

    @property
    def is_active(self):
        return self.status == 'active'


class TenantUserManager(models.Manager):
    """Manager for TenantUser queries."""

    def for_tenant(self, tenant):
        """Get all tenant users for a specific tenant."""
        return self.filter(tenant=tenant, is_active=True)

    def get_membership(self, tenant, user):
        """Get specific tenant-user membership."""
        return self.filter(tenant=tenant, user=user, is_active=True).first()


class TenantUser(AuthorizableMixin, BaseModel):
    """
    A user's account inside a specific tenant.

    A global auth user can have one TenantUser per tenant. Roles are
    assigned to TenantUser rows, never to the global user.
    """

    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        related_name='tenant_users',
        db_index=True,
        help_text="Tenant this user belongs to"
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='tenant_memberships',
        db_index=True,
        help_text="Global user identity"
    )
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether membership is active"
    )

    # Custom manager
    objects = TenantUserManager()

    class Meta:
        db_table = 'tenant_users'
        unique_together = [('tenant', 'user')]
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['tenant', 'user', 'is_active'], name='tenant_user_tenant__b6f0a1_idx'),
        ]

    def __str__(self):
        return f"{self.user} @ {self.tenant.name}"
