"""
API tests for system settings endpoints.
"""
from unittest.mock import patch

import pytest

from apps.audit.models import AuditLog, SettingsHistory
from apps.rbac.services import RoleService


@pytest.mark.django_db
class TestCoreSystemConfigAPI:

    def test_create_get_patch(self, authenticated_client, superadmin):
        client = authenticated_client(superadmin)

        created = client.post('/v1/system-settings/core/', {'sync_interval_minutes': 15}, format='json')
        patched = client.patch('/v1/system-settings/core/', {'time_zone': 'Europe/Berlin'}, format='json')
        fetched = client.get('/v1/system-settings/core/')

        assert created.status_code == 201
        assert patched.status_code == 200
        assert fetched.data['sync_interval_minutes'] == 15
        assert fetched.data['time_zone'] == 'Europe/Berlin'

    def test_get_missing(self, authenticated_client, superadmin):
        response = authenticated_client(superadmin).get('/v1/system-settings/core/')

        assert response.status_code == 404
        assert response.data['code'] == 'NOT_FOUND'

    def test_invalid_interval(self, authenticated_client, superadmin):
        response = authenticated_client(superadmin).post(
            '/v1/system-settings/core/', {'sync_interval_minutes': 0}, format='json'
        )

        assert response.status_code == 400

    def test_admin_cannot_read_settings(self, authenticated_client, admin):
        response = authenticated_client(admin).get('/v1/system-settings/core/')

        assert response.status_code == 403


@pytest.mark.django_db
class TestRollbackAPI:

    def test_rollback(self, authenticated_client, superadmin):
        tenant = superadmin.tenant_id
        role = RoleService.create_role(tenant, 'editor', ['roles:read'], created_by=superadmin.id)
        RoleService.update_role(tenant, role.id, updated_by=superadmin.id, permissions=[])
        entry = SettingsHistory.objects.for_module(tenant, 'role').get(action='update')

        response = authenticated_client(superadmin).post(
            '/v1/system-settings/rollback/', {'history_id': str(entry.id)}, format='json'
        )

        assert response.status_code == 200
        assert response.data['restored']['permissions'] == ['roles:read']

    def test_other_tenant_entry(self, authenticated_client, superadmin, other_tenant_id):
        entry = SettingsHistory.objects.create(
            tenant_id=other_tenant_id, module='role', action='update',
            previous_value={'id': 'x'}, new_value={'id': 'x'}, changed_by='u1',
        )

        response = authenticated_client(superadmin).post(
            '/v1/system-settings/rollback/', {'history_id': str(entry.id)}, format='json'
        )

        assert response.status_code == 404

    def test_admin_cannot_rollback(self, authenticated_client, admin):
        response = authenticated_client(admin).post(
            '/v1/system-settings/rollback/', {'history_id': '00000000-0000-0000-0000-000000000000'}, format='json'
        )

        assert response.status_code == 403


@pytest.mark.django_db
class TestNTPSyncAPI:

    def test_superadmin_can_sync(self, authenticated_client, superadmin):
        result = {'time': '2024-05-01 09:30:00', 'server': 'pool.ntp.org', 'offset': 0.01}

        with patch('apps.system_settings.views.sync_with_ntp_server', return_value=result):
            response = authenticated_client(superadmin).post('/v1/system-settings/ntp-sync/')

        assert response.status_code == 200
        assert response.data == result
        entry = AuditLog.objects.for_tenant(superadmin.tenant_id).by_action('MANUAL_SYNC_NTP').get()
        assert entry.user_id == superadmin.id

    def test_other_role_is_refused(self, authenticated_client, admin):
        response = authenticated_client(admin).post('/v1/system-settings/ntp-sync/')

        assert response.status_code == 403
        assert response.data['detail'] == 'Insufficient permissions'

    def test_unknown_role_is_refused(self, authenticated_client, make_principal, global_roles):
        response = authenticated_client(make_principal(role='ghost')).post('/v1/system-settings/ntp-sync/')

        assert response.status_code == 403
        assert response.data['detail'] == 'Invalid user role'

    def test_all_servers_failing(self, authenticated_client, superadmin):
        from apps.core.exceptions import JobEffectError

        with patch('apps.system_settings.views.sync_with_ntp_server',
                   side_effect=JobEffectError("NTP synchronization failed with all servers")):
            response = authenticated_client(superadmin).post('/v1/system-settings/ntp-sync/')

        assert response.status_code == 500
        assert response.data['code'] == 'JOB_EFFECT_ERROR'
        assert not AuditLog.objects.by_action('MANUAL_SYNC_NTP').exists()
