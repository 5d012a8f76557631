"""
RBAC services.

Implements:
- EntityStore: tenant-scoped create/find/delete for roles and permissions
- MembershipResolver: roles, superadmin flag and permission set of a tenant user
- AuthorizationService: read-only decisions (has_role, has_permission, ...)
- GrantService: role membership and permission grant mutations

Every operation takes its tenant explicitly, either as an argument or from
the TenantUser/Role it operates on, and reads it once at the start.
Role and permission arguments accept either a name or a model instance.
"""
import logging
import threading
from typing import Iterable, Optional, Set, Union

from django.conf import settings
from django.core.cache import cache
from django.db import IntegrityError, connection, transaction

from apps.core.exceptions import ConflictError, NotFoundError
from apps.rbac.models import AuditLog, Permission, Role, RolePermission, TenantUserRole

logger = logging.getLogger(__name__)

RoleRef = Union[str, Role]
PermissionRef = Union[str, Permission]


class _AllPermissions:
    """Universal permission set held by superadmins."""

    def __contains__(self, item):
        return True

    def __repr__(self):
        return 'ALL_PERMISSIONS'


ALL_PERMISSIONS = _AllPermissions()


class EntityStore:
    """
    Tenant-partitioned storage operations for Role and Permission.
    """

    @classmethod
    def resolve_role(cls, tenant, role: RoleRef) -> Role:
        """
        Resolve a role name or instance to a Role of ``tenant``.

        Raises:
            NotFoundError: If the name is unknown or the instance belongs
                to another tenant
        """
        if isinstance(role, Role):
            if role.tenant_id != tenant.id:
                raise NotFoundError(
                    f"Role '{role.name}' does not exist in this tenant",
                    details={'role': role.name},
                )
            return role
        return cls.find_role_by_name(tenant, role)

    @classmethod
    def resolve_permission(cls, tenant, permission: PermissionRef) -> Permission:
        """
        Resolve a permission name or instance to a Permission of ``tenant``.

        Raises:
            NotFoundError: If the name is unknown or the instance belongs
                to another tenant
        """
        if isinstance(permission, Permission):
            if permission.tenant_id != tenant.id:
                raise NotFoundError(
                    f"Permission '{permission.name}' does not exist in this tenant",
                    details={'permission': permission.name},
                )
            return permission
        return cls.find_permission_by_name(tenant, permission)

    @classmethod
    def find_role_by_name(cls, tenant, name: str) -> Role:
        role = Role.objects.by_name(tenant, name)
        if role is None:
            raise NotFoundError(
                f"Role '{name}' does not exist",
                details={'role': name},
            )
        return role

    @classmethod
    def find_permission_by_name(cls, tenant, name: str) -> Permission:
        permission = Permission.objects.by_name(tenant, name)
        if permission is None:
            raise NotFoundError(
                f"Permission '{name}' does not exist",
                details={'permission': name},
            )
        return permission

    @classmethod
    def create_role(cls, tenant, name: str, description: str = '',
                    is_superadmin: bool = False) -> Role:
        """
        Create a role in ``tenant``.

        Raises:
            ConflictError: If a role with this name already exists in the tenant
        """
        try:
            with transaction.atomic():
                role = Role.objects.create(
                    tenant=tenant,
                    name=name,
                    description=description,
                    is_superadmin=is_superadmin,
                )
        except IntegrityError:
            raise ConflictError(
                f"Role '{name}' already exists",
                details={'role': name},
            )

        logger.info(
            f"Role created: {name}",
            extra={'tenant_id': tenant.id, 'role_id': str(role.id), 'is_superadmin': is_superadmin}
        )
        return role

    @classmethod
    def get_or_create_role(cls, tenant, name: str, description: str = '',
                           is_superadmin: bool = False):
        """
        Get or create role by unique (tenant, name).

        Safe under concurrent callers: a losing insert falls back to the
        existing row.

        Returns:
            Tuple of (Role, created)
        """
        return Role.objects.get_or_create(
            tenant=tenant,
            name=name,
            defaults={
                'description': description,
                'is_superadmin': is_superadmin,
            }
        )

    @classmethod
    def create_permission(cls, tenant, resource: str, action: str,
                          description: str = '') -> Permission:
        """
        Create a permission named ``"{action}.{resource}"`` in ``tenant``.

        Raises:
            ConflictError: If the permission name already exists in the tenant
        """
        name = Permission.make_name(resource, action)
        try:
            with transaction.atomic():
                permission = Permission.objects.create(
                    tenant=tenant,
                    name=name,
                    resource=resource,
                    action=action,
                    description=description,
                )
        except IntegrityError:
            raise ConflictError(
                f"Permission '{name}' already exists",
                details={'permission': name},
            )

        logger.info(
            f"Permission created: {name}",
            extra={'tenant_id': tenant.id, 'permission_id': str(permission.id)}
        )
        return permission

    @classmethod
    def list_roles(cls, tenant):
        return Role.objects.for_tenant(tenant)

    @classmethod
    def list_permissions(cls, tenant, resource: Optional[str] = None,
                         action: Optional[str] = None):
        """List permissions of a tenant, optionally filtered by resource and/or action."""
        queryset = Permission.objects.for_tenant(tenant)
        if resource:
            queryset = queryset.filter(resource=resource)
        if action:
            queryset = queryset.filter(action=action)
        return queryset

    @classmethod
    def delete_role(cls, tenant, role: RoleRef) -> None:
        """Delete a role and, by cascade, its memberships and grants."""
        role = cls.resolve_role(tenant, role)
        name = role.name
        role.delete()
        logger.info(
            f"Role deleted: {name}",
            extra={'tenant_id': tenant.id}
        )

    @classmethod
    def delete_permission(cls, tenant, permission: PermissionRef) -> None:
        """Delete a permission and, by cascade, its grants."""
        permission = cls.resolve_permission(tenant, permission)
        name = permission.name
        permission.delete()
        logger.info(
            f"Permission deleted: {name}",
            extra={'tenant_id': tenant.id}
        )


class MembershipResolver:
    """
    Computes roles, superadmin status and permission sets for tenant users.

    The superadmin flag and permission names are cached per tenant user for
    RBAC_CACHE_TTL seconds. Grant mutations and role/permission deletions
    invalidate the affected entries.

    Inside a transaction, invalidated tenant users bypass the cache until
    commit, and their keys are deleted again once the transaction commits.
    A rollback therefore never leaves an uncommitted access set cached.
    """

    CACHE_KEY = 'rbac:tenant_user:{}:access'

    _local = threading.local()

    @classmethod
    def _cache_ttl(cls) -> int:
        return getattr(settings, 'RBAC_CACHE_TTL', 300)

    @classmethod
    def _pending(cls) -> Set[str]:
        """Tenant user ids invalidated inside the current thread's open transaction."""
        if not hasattr(cls._local, 'ids'):
            cls._local.ids = set()
        if not connection.in_atomic_block:
            cls._local.ids.clear()
        return cls._local.ids

    @classmethod
    def _load_access(cls, tenant_user) -> dict:
        ttl = cls._cache_ttl()
        use_cache = bool(ttl) and str(tenant_user.id) not in cls._pending()
        cache_key = cls.CACHE_KEY.format(tenant_user.id)
        if use_cache:
            cached = cache.get(cache_key)
            if cached is not None:
                return cached

        tenant_id = tenant_user.tenant_id
        memberships = TenantUserRole.objects.filter(
            tenant_id=tenant_id,
            tenant_user=tenant_user,
        )
        superadmin = memberships.filter(role__is_superadmin=True).exists()
        names = []
        if not superadmin:
            names = list(
                RolePermission.objects.filter(
                    tenant_id=tenant_id,
                    role__user_roles__in=memberships,
                ).values_list('permission__name', flat=True).distinct()
            )
        access = {'superadmin': superadmin, 'permissions': names}

        if use_cache:
            cache.set(cache_key, access, ttl)
        return access

    @classmethod
    def roles_of(cls, tenant_user) -> Set[Role]:
        """All roles directly assigned to the tenant user in its tenant."""
        return set(
            Role.objects.filter(
                tenant_id=tenant_user.tenant_id,
                user_roles__tenant_user=tenant_user,
            ).distinct()
        )

    @classmethod
    def is_superadmin(cls, tenant_user) -> bool:
        return cls._load_access(tenant_user)['superadmin']

    @classmethod
    def permissions_of(cls, tenant_user):
        """
        Permission names held by the tenant user.

        Returns ALL_PERMISSIONS for superadmins, otherwise the union of the
        permissions granted to each assigned role.
        """
        access = cls._load_access(tenant_user)
        if access['superadmin']:
            return ALL_PERMISSIONS
        return set(access['permissions'])

    @classmethod
    def invalidate(cls, tenant_user_ids: Iterable) -> None:
        ids = {str(pk) for pk in tenant_user_ids}
        if not ids:
            return
        keys = [cls.CACHE_KEY.format(pk) for pk in ids]
        cache.delete_many(keys)

        if connection.in_atomic_block:
            pending = cls._pending()
            pending.update(ids)

            def _after_commit():
                pending.difference_update(ids)
                cache.delete_many(keys)

            transaction.on_commit(_after_commit)

    @classmethod
    def invalidate_for_role(cls, role) -> None:
        """Invalidate every tenant user holding ``role``."""
        cls.invalidate(
            TenantUserRole.objects.filter(role=role).values_list('tenant_user_id', flat=True)
        )

    @classmethod
    def invalidate_for_permission(cls, permission) -> None:
        """Invalidate every tenant user holding a role granted ``permission``."""
        cls.invalidate(
            TenantUserRole.objects.filter(
                role__role_permissions__permission=permission
            ).values_list('tenant_user_id', flat=True).distinct()
        )


class AuthorizationService:
    """
    Read-only authorization decisions.

    Names that do not resolve, and instances from another tenant, are
    reported as not held rather than raising.
    """

    @classmethod
    def has_role(cls, tenant_user, role: RoleRef) -> bool:
        memberships = TenantUserRole.objects.filter(
            tenant_id=tenant_user.tenant_id,
            tenant_user=tenant_user,
        )
        if isinstance(role, Role):
            return memberships.filter(role=role).exists()
        return memberships.filter(role__name=role).exists()

    @classmethod
    def is_superadmin(cls, tenant_user) -> bool:
        return MembershipResolver.is_superadmin(tenant_user)

    @classmethod
    def has_permission(cls, tenant_user, permission: PermissionRef) -> bool:
        """Superadmins hold every permission, existing or not."""
        if MembershipResolver.is_superadmin(tenant_user):
            return True
        return cls._held(tenant_user, MembershipResolver.permissions_of(tenant_user), permission)

    @classmethod
    def has_any_permission(cls, tenant_user, permissions: Iterable[PermissionRef]) -> bool:
        if MembershipResolver.is_superadmin(tenant_user):
            return True
        held = MembershipResolver.permissions_of(tenant_user)
        return any(cls._held(tenant_user, held, permission) for permission in permissions)

    @classmethod
    def has_all_permissions(cls, tenant_user, permissions: Iterable[PermissionRef]) -> bool:
        if MembershipResolver.is_superadmin(tenant_user):
            return True
        held = MembershipResolver.permissions_of(tenant_user)
        return all(cls._held(tenant_user, held, permission) for permission in permissions)

    @staticmethod
    def _held(tenant_user, held, permission: PermissionRef) -> bool:
        if isinstance(permission, Permission):
            if permission.tenant_id != tenant_user.tenant_id:
                return False
            permission = permission.name
        return permission in held


class GrantService:
    """
    Mutations of role membership and permission grants.

    Inserts go through get_or_create on the unique relation rows, so
    repeated or concurrent identical calls leave a single row.
    """

    @classmethod
    def assign_role(cls, tenant_user, role: RoleRef, assigned_by=None):
        """
        Assign a role to a tenant user (idempotent).

        Returns:
            The tenant user, for chaining

        Raises:
            NotFoundError: If the role cannot be resolved in the user's tenant
        """
        tenant = tenant_user.tenant
        role = EntityStore.resolve_role(tenant, role)

        with transaction.atomic():
            user_role, created = TenantUserRole.objects.get_or_create(
                tenant=tenant,
                tenant_user=tenant_user,
                role=role,
                defaults={'assigned_by': assigned_by},
            )

        if created:
            MembershipResolver.invalidate([tenant_user.id])
            AuditLog.log_action(
                action='role_assigned',
                tenant=tenant,
                target_type='TenantUser',
                target_id=tenant_user.id,
                actor=assigned_by,
                metadata={'role_name': role.name},
            )
            logger.info(
                f"Role '{role.name}' assigned",
                extra={'tenant_id': tenant.id, 'tenant_user_id': str(tenant_user.id)}
            )

        return tenant_user

    @classmethod
    def remove_role(cls, tenant_user, role: RoleRef, removed_by=None):
        """
        Remove a role from a tenant user. Not holding the role is a no-op.

        Raises:
            NotFoundError: If the role cannot be resolved in the user's tenant
        """
        tenant = tenant_user.tenant
        role = EntityStore.resolve_role(tenant, role)

        deleted_count, _ = TenantUserRole.objects.filter(
            tenant=tenant,
            tenant_user=tenant_user,
            role=role,
        ).delete()

        if deleted_count:
            MembershipResolver.invalidate([tenant_user.id])
            AuditLog.log_action(
                action='role_removed',
                tenant=tenant,
                target_type='TenantUser',
                target_id=tenant_user.id,
                actor=removed_by,
                metadata={'role_name': role.name},
            )
            logger.info(
                f"Role '{role.name}' removed",
                extra={'tenant_id': tenant.id, 'tenant_user_id': str(tenant_user.id)}
            )

        return tenant_user

    @classmethod
    def sync_roles(cls, tenant_user, roles: Iterable[RoleRef], assigned_by=None):
        """
        Replace the tenant user's roles with exactly ``roles``.

        All roles are resolved before any row is touched, so an unknown
        name leaves the membership unchanged.

        Raises:
            NotFoundError: If any role cannot be resolved
        """
        tenant = tenant_user.tenant
        target = {role.id: role for role in (EntityStore.resolve_role(tenant, r) for r in roles)}

        with transaction.atomic():
            memberships = TenantUserRole.objects.filter(tenant=tenant, tenant_user=tenant_user)
            current_ids = set(memberships.values_list('role_id', flat=True))

            to_remove = current_ids - set(target)
            if to_remove:
                memberships.filter(role_id__in=to_remove).delete()

            to_add = [target[role_id] for role_id in target if role_id not in current_ids]
            for role in to_add:
                TenantUserRole.objects.get_or_create(
                    tenant=tenant,
                    tenant_user=tenant_user,
                    role=role,
                    defaults={'assigned_by': assigned_by},
                )

        if to_remove or to_add:
            MembershipResolver.invalidate([tenant_user.id])
            AuditLog.log_action(
                action='roles_synced',
                tenant=tenant,
                target_type='TenantUser',
                target_id=tenant_user.id,
                actor=assigned_by,
                metadata={
                    'added': sorted(role.name for role in to_add),
                    'removed_count': len(to_remove),
                },
            )
            logger.info(
                "Roles synced",
                extra={'tenant_id': tenant.id, 'tenant_user_id': str(tenant_user.id)}
            )

        return tenant_user

    @classmethod
    def grant_permission(cls, role: Role, permission: PermissionRef, granted_by=None) -> Role:
        """
        Grant a permission to a role.

        No-op if the role already has it, which is always the case for
        superadmin roles.

        Raises:
            NotFoundError: If the permission cannot be resolved in the role's tenant
        """
        tenant = role.tenant
        permission = EntityStore.resolve_permission(tenant, permission)

        if role.has_permission(permission):
            return role

        with transaction.atomic():
            _, created = RolePermission.objects.get_or_create(
                tenant=tenant,
                role=role,
                permission=permission,
            )

        if created:
            MembershipResolver.invalidate_for_role(role)
            AuditLog.log_action(
                action='permission_granted',
                tenant=tenant,
                target_type='Role',
                target_id=role.id,
                actor=granted_by,
                metadata={'permission': permission.name},
            )

        return role

    @classmethod
    def revoke_permission(cls, role: Role, permission: PermissionRef, revoked_by=None) -> Role:
        """
        Revoke a permission from a role. Not holding it is a no-op.

        Raises:
            NotFoundError: If the permission cannot be resolved in the role's tenant
        """
        tenant = role.tenant
        permission = EntityStore.resolve_permission(tenant, permission)

        deleted_count, _ = RolePermission.objects.filter(
            tenant=tenant,
            role=role,
            permission=permission,
        ).delete()

        if deleted_count:
            MembershipResolver.invalidate_for_role(role)
            AuditLog.log_action(
                action='permission_revoked',
                tenant=tenant,
                target_type='Role',
                target_id=role.id,
                actor=revoked_by,
                metadata={'permission': permission.name},
            )

        return role

    @classmethod
    def revoke_all_permissions(cls, role: Role, revoked_by=None) -> Role:
        deleted_count, _ = RolePermission.objects.filter(
            tenant_id=role.tenant_id,
            role=role,
        ).delete()

        if deleted_count:
            MembershipResolver.invalidate_for_role(role)
            AuditLog.log_action(
                action='permissions_revoked_all',
                tenant=role.tenant,
                target_type='Role',
                target_id=role.id,
                actor=revoked_by,
                metadata={'count': deleted_count},
            )

        return role

    @classmethod
    def sync_permissions(cls, role: Role, permissions: Iterable[PermissionRef], synced_by=None) -> Role:
        """
        Replace the role's explicit grants with exactly ``permissions``.

        Raises:
            NotFoundError: If any permission cannot be resolved; nothing is changed
        """
        tenant = role.tenant
        target = {
            permission.id: permission
            for permission in (EntityStore.resolve_permission(tenant, p) for p in permissions)
        }

        with transaction.atomic():
            grants = RolePermission.objects.filter(tenant=tenant, role=role)
            current_ids = set(grants.values_list('permission_id', flat=True))

            to_remove = current_ids - set(target)
            if to_remove:
                grants.filter(permission_id__in=to_remove).delete()

            to_add = [target[permission_id] for permission_id in target if permission_id not in current_ids]
            for permission in to_add:
                RolePermission.objects.get_or_create(
                    tenant=tenant,
                    role=role,
                    permission=permission,
                )

        if to_remove or to_add:
            MembershipResolver.invalidate_for_role(role)
            AuditLog.log_action(
                action='permissions_synced',
                tenant=tenant,
                target_type='Role',
                target_id=role.id,
                actor=synced_by,
                metadata={
                    'added': sorted(permission.name for permission in to_add),
                    'removed_count': len(to_remove),
                },
            )
            logger.info(
                f"Permissions synced for role '{role.name}'",
                extra={'tenant_id': tenant.id, 'role_id': str(role.id)}
            )

        return role
