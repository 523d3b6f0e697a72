"""
API tests for the audit trail and settings history endpoints.
"""
import pytest

from apps.audit.services import AuditService, SettingsHistoryService


@pytest.mark.django_db
class TestAuditLogAPI:

    def test_list_is_tenant_scoped(self, authenticated_client, superadmin, other_tenant_id):
        AuditService.record(action='CREATE_ROLE', principal_id='u1', module='Roles',
                            tenant_id=superadmin.tenant_id)
        AuditService.record(action='CREATE_ROLE', principal_id='u2', module='Roles',
                            tenant_id=other_tenant_id)

        response = authenticated_client(superadmin).get('/v1/audit/logs/')

        assert response.status_code == 200
        assert response.data['count'] == 1
        assert response.data['results'][0]['user_id'] == 'u1'

    def test_filter_by_action(self, authenticated_client, superadmin):
        AuditService.record(action='CREATE_ROLE', principal_id='u1', module='Roles',
                            tenant_id=superadmin.tenant_id)
        AuditService.record(action='DELETE_ROLE', principal_id='u1', module='Roles',
                            tenant_id=superadmin.tenant_id)

        response = authenticated_client(superadmin).get('/v1/audit/logs/?action=DELETE_ROLE')

        assert [entry['action'] for entry in response.data['results']] == ['DELETE_ROLE']

    def test_requires_audit_read(self, authenticated_client, admin):
        response = authenticated_client(admin).get('/v1/audit/logs/')

        assert response.status_code == 403
        assert response.data['detail'] == 'Permission denied'

    def test_page_size(self, authenticated_client, superadmin):
        for index in range(3):
            AuditService.record(action=f'ACTION_{index}', principal_id='u1', module='M',
                                tenant_id=superadmin.tenant_id)

        response = authenticated_client(superadmin).get('/v1/audit/logs/?page_size=2')

        assert response.data['count'] == 3
        assert len(response.data['results']) == 2
        assert response.data['next'] is not None


@pytest.mark.django_db
class TestSettingsHistoryAPI:

    def _record(self, tenant_id, **overrides):
        values = dict(tenant_id=tenant_id, module='role', action='update',
                      previous_value={'v': 1}, new_value={'v': 2}, changed_by='u1')
        values.update(overrides)
        return SettingsHistoryService.record_change(**values)

    def test_history_is_tenant_scoped(self, authenticated_client, superadmin, other_tenant_id):
        own = self._record(superadmin.tenant_id)
        self._record(other_tenant_id)

        response = authenticated_client(superadmin).get('/v1/audit/history/')

        assert response.status_code == 200
        assert [entry['id'] for entry in response.data['results']] == [str(own.id)]
        assert response.data['results'][0]['previous_value'] == {'v': 1}

    def test_history_filters(self, authenticated_client, superadmin):
        self._record(superadmin.tenant_id)
        self._record(superadmin.tenant_id, module='featureFlag', action='create', previous_value=None)

        response = authenticated_client(superadmin).get('/v1/audit/history/?module=featureFlag')

        assert response.data['count'] == 1
        assert response.data['results'][0]['action'] == 'create'

    def test_invalid_range(self, authenticated_client, superadmin):
        response = authenticated_client(superadmin).get(
            '/v1/audit/history/?start=2024-05-02T00:00:00Z&end=2024-05-01T00:00:00Z'
        )

        assert response.status_code == 400

    def test_stats(self, authenticated_client, superadmin):
        self._record(superadmin.tenant_id, changed_by='u1')
        self._record(superadmin.tenant_id, changed_by='u2')

        response = authenticated_client(superadmin).get('/v1/audit/history/stats/')

        assert response.status_code == 200
        assert response.data['stats'] == [{'module': 'role', 'action': 'update', 'count': 2, 'changers': 2}]
