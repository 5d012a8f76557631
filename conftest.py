"""
Pytest configuration and fixtures.
"""
import pytest
from django.conf import settings
import django


def pytest_configure(config):
    """Configure Django settings for tests."""
    settings.DATABASES['default'] = {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
        'ATOMIC_REQUESTS': False,
    }
    settings.CACHES = {
        'default': {
            'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
            'LOCATION': 'rbac-tests',
        }
    }
    # Tests create the permissions they need; seeding has its own tests.
    settings.RBAC_AUTO_SEED_PERMISSIONS = False
    django.setup()


@pytest.fixture(autouse=True)
def clear_cache():
    """Start every test with an empty permission cache."""
    from django.core.cache import cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def api_client():
    """Return DRF API client."""
    from rest_framework.test import APIClient
    return APIClient()


@pytest.fixture
def tenant(db):
    """Create a test tenant."""
    from apps.tenants.models import Tenant
    return Tenant.objects.create(
        name='Test Tenant',
        slug='test-tenant',
        status='active'
    )


@pytest.fixture
def other_tenant(db):
    """Create another test tenant for isolation tests."""
    from apps.tenants.models import Tenant
    return Tenant.objects.create(
        name='Other Tenant',
        slug='other-tenant',
        status='active'
    )


@pytest.fixture
def make_user(db):
    """Factory for global auth users."""
    from django.contrib.auth import get_user_model

    User = get_user_model()
    counter = {'n': 0}

    def _make_user(username=None):
        counter['n'] += 1
        return User.objects.create_user(
            username=username or f'user{counter["n"]}',
            password='testpass123'
        )

    return _make_user


@pytest.fixture
def make_tenant_user(make_user):
    """Factory for tenant users. The first one created in a tenant is provisioned as superadmin."""
    from apps.tenants.models import TenantUser

    def _make_tenant_user(tenant, user=None):
        return TenantUser.objects.create(
            tenant=tenant,
            user=user or make_user(),
            is_active=True
        )

    return _make_tenant_user


@pytest.fixture
def owner(tenant, make_tenant_user):
    """First tenant user of ``tenant`` (superadmin)."""
    return make_tenant_user(tenant)


@pytest.fixture
def tenant_user(owner, tenant, make_tenant_user):
    """A regular tenant user with no roles."""
    return make_tenant_user(tenant)


@pytest.fixture
def other_owner(other_tenant, make_tenant_user):
    """First tenant user of ``other_tenant`` (superadmin)."""
    return make_tenant_user(other_tenant)


@pytest.fixture
def other_tenant_user(other_owner, other_tenant, make_tenant_user):
    """A regular tenant user of ``other_tenant`` with no roles."""
    return make_tenant_user(other_tenant)
