"""
Tests for tenant models and the authorization surface of TenantUser.
"""
import pytest
from django.db import IntegrityError, transaction
from apps.core.exceptions import NotFoundError, TenantNotFound
from apps.rbac.services import EntityStore, GrantService
from apps.tenants.models import Tenant, TenantUser


@pytest.mark.django_db
class TestTenantModel:
    """Test Tenant model and manager."""

    def test_is_active(self, tenant):
        assert tenant.is_active is True

        tenant.status = 'suspended'
        assert tenant.is_active is False

    def test_active_manager(self, tenant, other_tenant):
        other_tenant.status = 'suspended'
        other_tenant.save()

        assert list(Tenant.objects.active()) == [tenant]

    def test_resolve_by_id_or_slug(self, tenant):
        assert Tenant.objects.resolve(tenant.id) == tenant
        assert Tenant.objects.resolve(str(tenant.id)) == tenant
        assert Tenant.objects.resolve('test-tenant') == tenant
        assert Tenant.objects.resolve('missing') is None

    def test_get_by_identifier_raises(self, tenant):
        assert Tenant.objects.get_by_identifier('test-tenant') == tenant

        with pytest.raises(TenantNotFound) as exc_info:
            Tenant.objects.get_by_identifier('missing')

        assert isinstance(exc_info.value, NotFoundError)
        assert exc_info.value.code == 'TENANT_NOT_FOUND'


@pytest.mark.django_db
class TestTenantUserModel:
    """Test TenantUser model and manager."""

    def test_one_membership_per_user_and_tenant(self, tenant, owner):
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                TenantUser.objects.create(tenant=tenant, user=owner.user)

    def test_get_membership_ignores_inactive(self, tenant, tenant_user):
        assert TenantUser.objects.get_membership(tenant, tenant_user.user) == tenant_user

        tenant_user.is_active = False
        tenant_user.save()

        assert TenantUser.objects.get_membership(tenant, tenant_user.user) is None
        assert tenant_user not in TenantUser.objects.for_tenant(tenant)


@pytest.mark.django_db
class TestAuthorizableTenantUser:
    """The mixin delegates to the RBAC services."""

    def test_role_helpers(self, tenant, tenant_user):
        EntityStore.create_role(tenant, 'editor')
        EntityStore.create_role(tenant, 'viewer')

        assert tenant_user.assign_role('editor') is tenant_user
        assert tenant_user.has_role('editor') is True
        assert {role.name for role in tenant_user.get_roles()} == {'editor'}

        tenant_user.sync_roles(['viewer'])
        assert {role.name for role in tenant_user.get_roles()} == {'viewer'}

        tenant_user.remove_role('viewer')
        assert tenant_user.get_roles() == set()

    def test_permission_helpers(self, tenant, tenant_user):
        EntityStore.create_permission(tenant, 'user', 'view')
        EntityStore.create_permission(tenant, 'user', 'delete')
        role = EntityStore.create_role(tenant, 'viewer')
        GrantService.grant_permission(role, 'view.user')
        tenant_user.assign_role(role)

        assert tenant_user.has_permission('view.user') is True
        assert tenant_user.has_any_permission(['delete.user', 'view.user']) is True
        assert tenant_user.has_all_permissions(['delete.user', 'view.user']) is False
        assert tenant_user.is_superadmin() is False

    def test_owner_is_superadmin(self, owner):
        assert owner.is_superadmin() is True
        assert owner.has_all_permissions(['delete.user', 'anything.else']) is True
