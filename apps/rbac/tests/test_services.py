"""
Unit tests for RBAC services.

Tests the entity store, membership resolution and authorization
decisions, including superadmin short-circuit and tenant isolation.
"""
import pytest
from django.core.cache import cache
from apps.core.exceptions import ConflictError, NotFoundError
from apps.rbac.models import Permission, Role
from apps.rbac.services import (
    ALL_PERMISSIONS, AuthorizationService, EntityStore, GrantService, MembershipResolver
)


@pytest.mark.django_db
class TestEntityStore:
    """Test tenant-scoped role and permission storage."""

    def test_create_role(self, tenant):
        role = EntityStore.create_role(tenant, 'editor', description='Edits things')

        assert role.tenant == tenant
        assert role.name == 'editor'
        assert role.is_superadmin is False

    def test_create_role_conflict(self, tenant):
        EntityStore.create_role(tenant, 'editor')

        with pytest.raises(ConflictError):
            EntityStore.create_role(tenant, 'editor')

        assert Role.objects.filter(tenant=tenant, name='editor').count() == 1

    def test_create_permission_derives_name(self, tenant):
        perm = EntityStore.create_permission(tenant, 'roles', 'manage')

        assert perm.name == 'manage.roles'
        assert perm.resource == 'roles'
        assert perm.action == 'manage'

    def test_create_permission_conflict(self, tenant):
        EntityStore.create_permission(tenant, 'user', 'view')

        with pytest.raises(ConflictError):
            EntityStore.create_permission(tenant, 'user', 'view')

    def test_resource_and_action_are_not_validated_against_catalog(self, tenant):
        perm = EntityStore.create_permission(tenant, 'spaceship', 'launch')

        assert perm.name == 'launch.spaceship'

    def test_find_by_name(self, tenant):
        role = EntityStore.create_role(tenant, 'editor')
        perm = EntityStore.create_permission(tenant, 'user', 'view')

        assert EntityStore.find_role_by_name(tenant, 'editor') == role
        assert EntityStore.find_permission_by_name(tenant, 'view.user') == perm

    def test_find_missing_raises(self, tenant):
        with pytest.raises(NotFoundError):
            EntityStore.find_role_by_name(tenant, 'ghost')
        with pytest.raises(NotFoundError):
            EntityStore.find_permission_by_name(tenant, 'haunt.house')

    def test_role_names_isolated_per_tenant(self, tenant, other_tenant):
        EntityStore.create_role(tenant, 'editor')

        with pytest.raises(NotFoundError):
            EntityStore.find_role_by_name(other_tenant, 'editor')

        # The colliding name is free in the other tenant
        assert EntityStore.create_role(other_tenant, 'editor').tenant == other_tenant

    def test_resolve_rejects_instance_of_other_tenant(self, tenant, other_tenant):
        foreign_role = EntityStore.create_role(other_tenant, 'editor')
        foreign_perm = EntityStore.create_permission(other_tenant, 'user', 'view')

        with pytest.raises(NotFoundError):
            EntityStore.resolve_role(tenant, foreign_role)
        with pytest.raises(NotFoundError):
            EntityStore.resolve_permission(tenant, foreign_perm)

    def test_get_or_create_role(self, tenant):
        role, created = EntityStore.get_or_create_role(tenant, 'ops', is_superadmin=True)
        again, created_again = EntityStore.get_or_create_role(tenant, 'ops')

        assert created is True
        assert created_again is False
        assert again == role
        assert again.is_superadmin is True

    def test_list_roles_and_permissions(self, tenant, other_tenant):
        EntityStore.create_role(tenant, 'editor')
        EntityStore.create_role(other_tenant, 'viewer')
        EntityStore.create_permission(tenant, 'user', 'view')
        EntityStore.create_permission(tenant, 'user', 'delete')
        EntityStore.create_permission(tenant, 'role', 'view')

        assert [r.name for r in EntityStore.list_roles(tenant)] == ['editor']
        assert EntityStore.list_permissions(tenant).count() == 3
        assert EntityStore.list_permissions(tenant, resource='user').count() == 2
        assert EntityStore.list_permissions(tenant, action='view').count() == 2
        assert [p.name for p in EntityStore.list_permissions(tenant, resource='user', action='delete')] == ['delete.user']

    def test_delete_role_cascades(self, tenant, tenant_user):
        role = EntityStore.create_role(tenant, 'editor')
        perm = EntityStore.create_permission(tenant, 'user', 'view')
        GrantService.grant_permission(role, perm)
        GrantService.assign_role(tenant_user, role)

        EntityStore.delete_role(tenant, 'editor')

        assert not Role.objects.filter(id=role.id).exists()
        assert tenant_user.user_roles.count() == 0
        assert perm.role_permissions.count() == 0

    def test_delete_permission_cascades(self, tenant):
        role = EntityStore.create_role(tenant, 'editor')
        perm = EntityStore.create_permission(tenant, 'user', 'view')
        GrantService.grant_permission(role, perm)

        EntityStore.delete_permission(tenant, 'view.user')

        assert not Permission.objects.filter(id=perm.id).exists()
        assert role.role_permissions.count() == 0

    def test_delete_unknown_raises(self, tenant):
        with pytest.raises(NotFoundError):
            EntityStore.delete_role(tenant, 'ghost')


@pytest.mark.django_db
class TestMembershipResolver:
    """Test role and permission resolution."""

    def test_roles_of(self, tenant, tenant_user):
        editor = EntityStore.create_role(tenant, 'editor')
        viewer = EntityStore.create_role(tenant, 'viewer')
        EntityStore.create_role(tenant, 'unused')
        GrantService.assign_role(tenant_user, editor)
        GrantService.assign_role(tenant_user, viewer)

        assert MembershipResolver.roles_of(tenant_user) == {editor, viewer}

    def test_permissions_union_over_roles(self, tenant, tenant_user):
        editor = EntityStore.create_role(tenant, 'editor')
        viewer = EntityStore.create_role(tenant, 'viewer')
        EntityStore.create_permission(tenant, 'user', 'view')
        EntityStore.create_permission(tenant, 'user', 'update')
        GrantService.grant_permission(editor, 'update.user')
        GrantService.grant_permission(editor, 'view.user')
        GrantService.grant_permission(viewer, 'view.user')
        GrantService.assign_role(tenant_user, editor)
        GrantService.assign_role(tenant_user, viewer)

        assert MembershipResolver.permissions_of(tenant_user) == {'view.user', 'update.user'}
        assert MembershipResolver.is_superadmin(tenant_user) is False

    def test_superadmin_gets_universal_set(self, owner):
        permissions = MembershipResolver.permissions_of(owner)

        assert permissions is ALL_PERMISSIONS
        assert 'anything.at_all' in permissions

    def test_user_without_roles(self, tenant_user):
        assert MembershipResolver.roles_of(tenant_user) == set()
        assert MembershipResolver.permissions_of(tenant_user) == set()
        assert MembershipResolver.is_superadmin(tenant_user) is False

    def test_access_is_cached(self, tenant, tenant_user):
        MembershipResolver.permissions_of(tenant_user)

        assert cache.get(MembershipResolver.CACHE_KEY.format(tenant_user.id)) == {
            'superadmin': False,
            'permissions': [],
        }

    def test_cache_disabled_with_zero_ttl(self, settings, tenant_user):
        settings.RBAC_CACHE_TTL = 0

        MembershipResolver.permissions_of(tenant_user)

        assert cache.get(MembershipResolver.CACHE_KEY.format(tenant_user.id)) is None


@pytest.mark.django_db
class TestAuthorizationService:
    """Test the public decision surface."""

    def test_superadmin_has_any_permission_existing_or_not(self, tenant, owner):
        EntityStore.create_permission(tenant, 'user', 'view')

        assert AuthorizationService.has_permission(owner, 'view.user') is True
        assert AuthorizationService.has_permission(owner, 'does.not_exist') is True
        assert AuthorizationService.has_any_permission(owner, []) is True
        assert AuthorizationService.has_all_permissions(owner, ['a', 'b']) is True

    def test_user_without_roles_holds_nothing(self, tenant, tenant_user):
        EntityStore.create_role(tenant, 'editor')
        EntityStore.create_permission(tenant, 'user', 'view')

        assert AuthorizationService.has_permission(tenant_user, 'view.user') is False
        assert AuthorizationService.has_role(tenant_user, 'editor') is False
        assert AuthorizationService.has_role(tenant_user, 'superadmin') is False
        assert AuthorizationService.is_superadmin(tenant_user) is False

    def test_ops_role_scenario(self, tenant, tenant_user):
        EntityStore.create_permission(tenant, 'roles', 'manage')
        ops = EntityStore.create_role(tenant, 'ops')
        GrantService.grant_permission(ops, 'manage.roles')
        GrantService.assign_role(tenant_user, 'ops')

        assert AuthorizationService.has_permission(tenant_user, 'manage.roles') is True
        assert AuthorizationService.has_permission(tenant_user, 'manage.users') is False
        assert AuthorizationService.has_role(tenant_user, 'ops') is True
        assert AuthorizationService.has_role(tenant_user, ops) is True

    def test_any_and_all(self, tenant, tenant_user):
        EntityStore.create_permission(tenant, 'x', 'a')
        EntityStore.create_permission(tenant, 'x', 'b')
        role = EntityStore.create_role(tenant, 'b-only')
        GrantService.grant_permission(role, 'b.x')
        GrantService.assign_role(tenant_user, role)

        assert AuthorizationService.has_any_permission(tenant_user, ['a.x', 'b.x']) is True
        assert AuthorizationService.has_all_permissions(tenant_user, ['a.x', 'b.x']) is False
        assert AuthorizationService.has_all_permissions(tenant_user, ['b.x']) is True

    def test_empty_lists(self, tenant_user):
        assert AuthorizationService.has_any_permission(tenant_user, []) is False
        assert AuthorizationService.has_all_permissions(tenant_user, []) is True

    def test_permission_instance_accepted(self, tenant, tenant_user):
        perm = EntityStore.create_permission(tenant, 'user', 'view')
        role = EntityStore.create_role(tenant, 'viewer')
        GrantService.grant_permission(role, perm)
        GrantService.assign_role(tenant_user, role)

        assert AuthorizationService.has_permission(tenant_user, perm) is True

    def test_entities_of_other_tenant_are_not_held(self, tenant, other_tenant, tenant_user):
        EntityStore.create_permission(tenant, 'user', 'view')
        role = EntityStore.create_role(tenant, 'viewer')
        GrantService.grant_permission(role, 'view.user')
        GrantService.assign_role(tenant_user, role)

        foreign_perm = EntityStore.create_permission(other_tenant, 'user', 'view')
        foreign_role = EntityStore.create_role(other_tenant, 'viewer')

        assert AuthorizationService.has_permission(tenant_user, foreign_perm) is False
        assert AuthorizationService.has_role(tenant_user, foreign_role) is False

    def test_superadmin_in_one_tenant_only(self, owner, other_tenant_user):
        assert AuthorizationService.is_superadmin(owner) is True
        assert AuthorizationService.is_superadmin(other_tenant_user) is False
        assert AuthorizationService.has_permission(other_tenant_user, 'view.user') is False
