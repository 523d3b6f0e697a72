"""
API tests for role endpoints.
"""
import pytest

from apps.rbac.models import Role
from apps.rbac.services import RoleService


@pytest.mark.django_db
class TestRoleListAPI:

    def test_requires_authentication(self, api_client):
        response = api_client.get('/v1/roles/')

        assert response.status_code == 401

    def test_list_includes_global_roles(self, authenticated_client, superadmin):
        response = authenticated_client(superadmin).get('/v1/roles/')

        assert response.status_code == 200
        names = {role['name'] for role in response.data['roles']}
        assert {'superadmin', 'school_admin', 'admin'} <= names

    def test_create(self, authenticated_client, superadmin):
        response = authenticated_client(superadmin).post(
            '/v1/roles/', {'name': 'editor', 'permissions': ['roles:read']}, format='json'
        )

        assert response.status_code == 201
        assert response.data['name'] == 'editor'
        assert response.data['tenant_id'] == superadmin.tenant_id
        assert response.data['is_global'] is False

    def test_create_without_permission_is_denied(self, authenticated_client, admin):
        response = authenticated_client(admin).post(
            '/v1/roles/', {'name': 'editor', 'permissions': []}, format='json'
        )

        assert response.status_code == 403
        assert response.data['detail'] == 'Permission denied'
        assert not Role.objects.filter(name='editor').exists()

    def test_unknown_role_in_token_is_denied(self, authenticated_client, make_principal, global_roles):
        response = authenticated_client(make_principal(role='ghost')).get('/v1/roles/')

        assert response.status_code == 403
        assert response.data['detail'] == 'Permission denied'

    def test_tenant_comes_from_token(self, authenticated_client, superadmin, other_tenant_id):
        response = authenticated_client(superadmin).post(
            f'/v1/roles/?tenant_id={other_tenant_id}',
            {'name': 'editor', 'permissions': [], 'tenant_id': other_tenant_id},
            format='json',
        )

        assert response.status_code == 201
        assert not Role.objects.for_tenant(other_tenant_id).exists()

    def test_bulk_create(self, authenticated_client, superadmin):
        response = authenticated_client(superadmin).post(
            '/v1/roles/bulk/',
            {'roles': [{'name': 'editor', 'permissions': []}, {'name': 'viewer', 'permissions': ['roles:read']}]},
            format='json',
        )

        assert response.status_code == 201
        assert len(response.data) == 2


@pytest.mark.django_db
class TestRoleDetailAPI:

    @pytest.fixture
    def editor(self, superadmin):
        return RoleService.create_role(superadmin.tenant_id, 'editor', ['roles:read'], created_by=superadmin.id)

    def test_get(self, authenticated_client, superadmin, editor):
        response = authenticated_client(superadmin).get(f'/v1/roles/{editor.id}/')

        assert response.status_code == 200
        assert response.data['permissions'] == ['roles:read']

    def test_other_tenant_gets_not_found(self, authenticated_client, make_principal, editor, other_tenant_id):
        outsider = make_principal(role='superadmin', tenant=other_tenant_id)

        response = authenticated_client(outsider).get(f'/v1/roles/{editor.id}/')

        assert response.status_code == 404

    def test_other_tenant_cannot_change_role(self, authenticated_client, make_principal, editor, other_tenant_id):
        client = authenticated_client(make_principal(role='superadmin', tenant=other_tenant_id))

        patched = client.patch(f'/v1/roles/{editor.id}/', {'permissions': []}, format='json')
        deleted = client.delete(f'/v1/roles/{editor.id}/')

        assert patched.status_code == 404
        assert deleted.status_code == 404
        editor.refresh_from_db()
        assert editor.permissions == ['roles:read']
        assert editor.is_deleted is False

    def test_patch(self,authenticated_client, superadmin, editor):
        response = authenticated_client(superadmin).patch(
            f'/v1/roles/{editor.id}/', {'permissions': ['roles:read', 'roles:write']}, format='json'
        )

        assert response.status_code == 200
        assert response.data['permissions'] == ['roles:read', 'roles:write']

    def test_patch_unknown_permission(self, authenticated_client, superadmin, editor):
        response = authenticated_client(superadmin).patch(
            f'/v1/roles/{editor.id}/', {'permissions': ['rockets:launch']}, format='json'
        )

        assert response.status_code == 400
        assert response.data['code'] == 'VALIDATION_ERROR'

    def test_delete_then_role_denies(self, authenticated_client, superadmin, editor, make_principal):
        client = authenticated_client(superadmin)

        assert client.delete(f'/v1/roles/{editor.id}/').status_code == 204
        assert client.get(f'/v1/roles/{editor.id}/').status_code == 404

        editor_client = authenticated_client(make_principal(role='editor'))
        assert editor_client.get('/v1/roles/').status_code == 403

    def test_permissions(self, authenticated_client, superadmin, editor):
        response = authenticated_client(superadmin).get(f'/v1/roles/{editor.id}/permissions/')

        assert response.status_code == 200
        assert response.data == {'role_id': str(editor.id), 'permissions': ['roles:read']}
