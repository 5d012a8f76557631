"""
Resource policies and the DRF permission class that applies them.

A policy answers view/create/update/delete/restore/force_delete for one
resource type. Superadmins pass every check; everyone else needs the
"{action}.{resource}" permission.

Usage:
    class RolePolicy(BasePolicy):
        resource_name = 'role'

    class RoleListView(APIView):
        permission_classes = [HasResourcePermission]
        policy_class = RolePolicy
"""
import logging
from rest_framework.permissions import BasePermission

from apps.core.logging import SecurityLogger
from apps.rbac.models import Permission
from apps.rbac.services import AuthorizationService

logger = logging.getLogger(__name__)


class BasePolicy:
    """
    Default CRUD checks for a resource. Subclasses set ``resource_name``.
    """

    ABILITIES = ('view', 'create', 'update', 'delete', 'restore', 'force_delete')

    resource_name = None

    def get_resource_name(self):
        if not self.resource_name:
            raise NotImplementedError(
                f"{self.__class__.__name__} must define resource_name"
            )
        return self.resource_name

    def before(self, tenant_user, ability):
        """Return True to allow outright, or None to fall through to the ability check."""
        if tenant_user is not None and AuthorizationService.is_superadmin(tenant_user):
            return True
        return None

    def _check(self, tenant_user, action):
        if tenant_user is None:
            return False
        return AuthorizationService.has_permission(
            tenant_user,
            Permission.make_name(self.get_resource_name(), action),
        )

    def view(self, tenant_user, obj=None):
        return self._check(tenant_user, 'view')

    def create(self, tenant_user, obj=None):
        return self._check(tenant_user, 'create')

    def update(self, tenant_user, obj=None):
        return self._check(tenant_user, 'update')

    def delete(self, tenant_user, obj=None):
        return self._check(tenant_user, 'delete')

    def restore(self, tenant_user, obj=None):
        return self._check(tenant_user, 'restore')

    def force_delete(self, tenant_user, obj=None):
        return self._check(tenant_user, 'force_delete')

    def authorize(self, tenant_user, ability, obj=None):
        """
        Decide ``ability`` for ``tenant_user``.

        Raises:
            ValueError: If ability is not one of ABILITIES
        """
        if ability not in self.ABILITIES:
            raise ValueError(f"Unknown policy ability: {ability}")
        if tenant_user is None:
            return False
        verdict = self.before(tenant_user, ability)
        if verdict is not None:
            return verdict
        return getattr(self, ability)(tenant_user, obj)


class HasResourcePermission(BasePermission):
    """
    DRF permission class that applies ``view.policy_class``.

    The ability comes from ``view.policy_ability`` when set, otherwise from
    the HTTP method. The acting tenant user is ``request.membership``, set by
    TenantContextMiddleware.
    """

    METHOD_ABILITIES = {
        'GET': 'view',
        'HEAD': 'view',
        'OPTIONS': 'view',
        'POST': 'create',
        'PUT': 'update',
        'PATCH': 'update',
        'DELETE': 'delete',
    }

    def _decide(self, request, view, obj=None):
        policy_class = getattr(view, 'policy_class', None)
        if policy_class is None:
            return True

        policy = policy_class()
        ability = getattr(view, 'policy_ability', None) or self.METHOD_ABILITIES.get(request.method)
        if ability is None:
            return False

        tenant_user = getattr(request, 'membership', None)
        allowed = policy.authorize(tenant_user, ability, obj)
        if not allowed:
            SecurityLogger.log_permission_denied(
                tenant_user,
                getattr(request, 'tenant', None),
                ability=ability,
                resource=policy.resource_name,
                request_id=getattr(request, 'request_id', None),
            )
        return allowed

    def has_permission(self, request, view):
        return self._decide(request, view)

    def has_object_permission(self, request, view, obj):
        """Deny objects of another tenant, then apply the policy to the object."""
        request_tenant = getattr(request, 'tenant', None)
        object_tenant_id = getattr(obj, 'tenant_id', None)

        if request_tenant is None or (object_tenant_id is not None and object_tenant_id != request_tenant.id):
            logger.warning(
                "Object permission denied: Object belongs to different tenant",
                extra={
                    'request_tenant_id': str(request_tenant.id) if request_tenant else None,
                    'object_tenant_id': str(object_tenant_id) if object_tenant_id else None,
                    'object_type': obj.__class__.__name__,
                    'view': view.__class__.__name__,
                    'request_id': getattr(request, 'request_id', None),
                }
            )
            return False

        return self._decide(request, view, obj)
