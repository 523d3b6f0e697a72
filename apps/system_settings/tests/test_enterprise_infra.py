"""
Tests for enterprise infrastructure settings.
"""
import pytest

from apps.audit.models import AuditLog, SettingsHistory
from apps.core.exceptions import NotFound, ValidationError
from apps.system_settings.models import EnterpriseInfraConfig
from apps.system_settings.modules import EnterpriseInfraService
from apps.system_settings.rollback import rollback_settings


@pytest.mark.django_db
class TestEnterpriseInfraService:

    def test_create_with_defaults(self, tenant_id):
        config = EnterpriseInfraService.create(tenant_id, {'data_center_regions': ['Frankfurt']}, created_by='u1')

        assert config.cloud_providers == ['AWS']
        assert config.data_center_regions == ['Frankfurt']
        assert AuditLog.objects.for_tenant(tenant_id).by_action('CREATE_ENTERPRISE_INFRA').exists()
        assert SettingsHistory.objects.for_module(tenant_id, 'enterpriseInfra').get().action == 'create'

    @pytest.mark.parametrize('data', [
        {'cloud_providers': ['Mainframe']},
        {'cloud_providers': 'AWS'},
        {'high_availability_cluster': {'node_count': 101}},
        {'high_availability_cluster': {'failover_strategy': 'Prayer'}},
        {'distributed_database': {'engine': 'Spreadsheet'}},
        {'automated_backup': {'storage_types': ['Floppy']}},
        {'disaster_recovery': {'rpo': -1}},
        {'security_settings': {'waf_rules': 'block-all'}},
        {'quantum': True},
    ])
    def test_invalid_data(self, tenant_id, data):
        with pytest.raises(ValidationError):
            EnterpriseInfraService.create(tenant_id, data, created_by='u1')

        assert not EnterpriseInfraConfig.objects.for_tenant(tenant_id).exists()

    def test_update_and_rollback(self, tenant_id):
        EnterpriseInfraService.create(tenant_id, {}, created_by='u1')
        EnterpriseInfraService.update(tenant_id, {'cloud_providers': ['Azure', 'Hybrid']}, updated_by='u2')
        entry = SettingsHistory.objects.for_module(tenant_id, 'enterpriseInfra').get(action='update')

        result = rollback_settings(tenant_id, entry.id, changed_by='u3')

        assert EnterpriseInfraService.get(tenant_id).cloud_providers == ['AWS']
        assert result['replaced']['cloud_providers'] == ['Azure', 'Hybrid']
        assert SettingsHistory.objects.for_module(tenant_id, 'enterpriseInfra').filter(action='rollback').count() == 1

    def test_delete_then_missing(self, tenant_id):
        EnterpriseInfraService.create(tenant_id, {}, created_by='u1')

        EnterpriseInfraService.delete(tenant_id, deleted_by='u1')

        with pytest.raises(NotFound):
            EnterpriseInfraService.status(tenant_id)

    def test_validate_reports_issues(self):
        result = EnterpriseInfraService.validate({
            'high_availability_cluster': {'enabled': True, 'node_count': 1},
            'automated_backup': {'offsite': True},
        })

        assert result['valid'] is False
        assert len(result['issues']) == 2

    def test_validate_stores_nothing(self, tenant_id):
        assert EnterpriseInfraService.validate({'cloud_providers': ['AWS']}) == {'valid': True, 'issues': []}
        assert not EnterpriseInfraConfig.objects.exists()

    def test_status(self, tenant_id):
        EnterpriseInfraService.create(tenant_id, {'cloud_providers': ['Google Cloud']}, created_by='u1')

        status = EnterpriseInfraService.status(tenant_id)

        assert status['cloud_providers'] == ['Google Cloud']
        assert status['regions'] == ['Mumbai']
        assert status['status'] == 'Operational'


@pytest.mark.django_db
class TestEnterpriseInfraAPI:

    def test_create_and_status(self, authenticated_client, superadmin):
        client = authenticated_client(superadmin)

        created = client.post('/v1/system-settings/infra/', {'cloud_providers': ['Azure']}, format='json')
        status = client.get('/v1/system-settings/infra/status/')

        assert created.status_code == 201
        assert status.data['cloud_providers'] == ['Azure']

    def test_validate_endpoint(self, authenticated_client, superadmin):
        response = authenticated_client(superadmin).post(
            '/v1/system-settings/infra/validate/', {'cloud_providers': ['Mainframe']}, format='json'
        )

        assert response.status_code == 400

    def test_admin_cannot_write(self, authenticated_client, admin):
        response = authenticated_client(admin).post('/v1/system-settings/infra/', {}, format='json')

        assert response.status_code == 403
        assert not EnterpriseInfraConfig.objects.exists()
