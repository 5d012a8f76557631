"""
Tenant context middleware for multi-tenant isolation.

Resolves the active tenant from request headers once per request, so every
RBAC call made while handling the request sees the same tenant.
"""
import logging
import uuid
from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin
from .models import Tenant, TenantUser

logger = logging.getLogger(__name__)


class TenantContextMiddleware(MiddlewareMixin):
    """
    Extract tenant context from request headers.

    This middleware:
    1. Generates or propagates a request ID (X-Request-ID)
    2. Resolves X-TENANT-ID (UUID or slug) to an active Tenant
    3. Attaches request.tenant and request.membership, the TenantUser of
       the authenticated user in that tenant (None when absent)

    Public paths bypass tenant resolution.
    """

    PUBLIC_PATHS = [
        '/admin/',
        '/health',
    ]

    def process_request(self, request):
        request_id = request.headers.get('X-Request-ID', str(uuid.uuid4()))
        request.request_id = request_id
        request.tenant = None
        request.membership = None

        if self._is_public_path(request.path):
            return None

        tenant_id = request.headers.get('X-TENANT-ID')
        if not tenant_id:
            return self._error_response(
                'MISSING_TENANT',
                'X-TENANT-ID header is required',
                status=400
            )

        tenant = Tenant.objects.resolve(tenant_id)
        if tenant is None:
            logger.warning(
                f"Invalid tenant ID: {tenant_id}",
                extra={'request_id': request_id}
            )
            return self._error_response(
                'TENANT_NOT_FOUND',
                'Tenant not found',
                status=404
            )

        if not tenant.is_active:
            logger.info(
                f"Inactive tenant attempted access: {tenant.slug}",
                extra={'request_id': request_id, 'tenant_id': str(tenant.id)}
            )
            return self._error_response(
                'TENANT_INACTIVE',
                'This tenant is not active',
                status=403,
                details={'status': tenant.status}
            )

        request.tenant = tenant

        user = getattr(request, 'user', None)
        if user is not None and user.is_authenticated:
            request.membership = TenantUser.objects.get_membership(tenant, user)

        logger.debug(
            f"Tenant context set: {tenant.slug} ({tenant.id})",
            extra={'request_id': request_id, 'tenant_id': str(tenant.id)}
        )
        return None

    def _is_public_path(self, path):
        """Check if path is public and doesn't require a tenant."""
        return any(path.startswith(public_path) for public_path in self.PUBLIC_PATHS)

    def _error_response(self, code, message, status=400, details=None):
        """Generate standardized error response."""
        error_data = {
            'error': {
                'code': code,
                'message': message,
            }
        }

        if details:
            error_data['error']['details'] = details

        return JsonResponse(error_data, status=status)
