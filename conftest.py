"""
Pytest configuration and fixtures.
"""
import uuid

import pytest
from django.conf import settings
import django
from django.core.management import call_command


def pytest_configure(config):
    """Configure Django settings for tests."""
    settings.DATABASES['default'] = {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
        'ATOMIC_REQUESTS': False,
    }
    settings.SECURE_SSL_REDIRECT = False
    settings.SENTRY_DSN = None
    django.setup()


@pytest.fixture(scope='session')
def django_db_setup(django_db_setup, django_db_blocker):
    """Set up test database; apps without migrations are synced."""
    with django_db_blocker.unblock():
        call_command('migrate', '--run-syncdb', verbosity=0)


def clear_access_caches():
    """Drop the cached AccessConfig and PermissionGate built from settings."""
    from apps.core.access_config import get_access_config
    from apps.rbac.gate import get_permission_gate
    get_access_config.cache_clear()
    get_permission_gate.cache_clear()


@pytest.fixture(autouse=True)
def fresh_access_config():
    """Every test sees AccessConfig rebuilt from its own settings."""
    clear_access_caches()
    yield
    clear_access_caches()


@pytest.fixture
def access_settings(settings):
    """
    Override the recognized permissions, flags and roles for one test.

    Usage:
        def test_x(access_settings):
            access_settings(permissions=['post.write', 'post.delete'])
    """
    def apply(permissions=None, feature_flags=None, roles=None, defaults=None):
        if permissions is not None:
            settings.WARDEN_PERMISSIONS = list(permissions)
        if feature_flags is not None:
            settings.WARDEN_FEATURE_FLAGS = list(feature_flags)
        if roles is not None:
            settings.WARDEN_ROLES = list(roles)
        if defaults is not None:
            settings.WARDEN_DEFAULT_ROLE_PERMISSIONS = dict(defaults)
        clear_access_caches()
        return settings
    return apply


@pytest.fixture
def api_client():
    """Return DRF API client."""
    from rest_framework.test import APIClient
    return APIClient()


@pytest.fixture
def tenant_id():
    return f"tenant-{uuid.uuid4().hex[:8]}"


@pytest.fixture
def other_tenant_id():
    return f"tenant-{uuid.uuid4().hex[:8]}"


@pytest.fixture
def make_principal(tenant_id):
    """Factory for principals in the default test tenant."""
    from apps.core.authentication import Principal

    def make(role='admin', tenant=None, principal_id=None):
        return Principal(
            id=principal_id or f"user-{uuid.uuid4().hex[:8]}",
            tenant_id=tenant or tenant_id,
            role=role,
        )
    return make


@pytest.fixture
def authenticated_client(api_client):
    """
    Return a function that authenticates the API client as a principal.

    Usage:
        client = authenticated_client(principal)
        client.get('/v1/roles/')
    """
    from apps.core.authentication import generate_token

    def authenticate(principal):
        api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {generate_token(principal)}")
        return api_client
    return authenticate


@pytest.fixture
def global_roles(db):
    """Seed the default global roles from WARDEN_DEFAULT_ROLE_PERMISSIONS."""
    from apps.rbac.services import RoleService
    RoleService.seed_global_roles()
    from apps.rbac.models import Role
    return {role.name: role for role in Role.objects.active().global_roles()}


@pytest.fixture
def superadmin(make_principal, global_roles):
    return make_principal(role='superadmin')


@pytest.fixture
def admin(make_principal, global_roles):
    return make_principal(role='admin')
