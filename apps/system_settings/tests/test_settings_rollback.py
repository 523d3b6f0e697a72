"""
Tests for settings rollback.

A rollback re-applies the previous value of a history entry and appends a
new 'rollback' entry; nothing already in the history changes.
"""
import pytest

from apps.audit.models import AuditLog, SettingsHistory
from apps.core.exceptions import NotFound, ValidationError
from apps.rbac.models import Role
from apps.rbac.services import RoleService
from apps.system_settings.rollback import rollback_settings
from apps.system_settings.services import CoreSystemConfigService
from apps.tenants.services import FeatureFlagService, FeatureFlagStore


@pytest.mark.django_db
class TestRoleRollback:

    def test_restores_permissions(self, tenant_id):
        role = RoleService.create_role(tenant_id, 'editor', ['roles:read'], created_by='u1')
        RoleService.update_role(tenant_id, role.id, updated_by='u1', permissions=['roles:read', 'roles:write'])
        update_entry = SettingsHistory.objects.for_module(tenant_id, 'role').get(action='update')

        result = rollback_settings(tenant_id, update_entry.id, changed_by='u2')

        role.refresh_from_db()
        assert role.permissions == ['roles:read']
        assert result['module'] == 'role'
        assert result['replaced']['permissions'] == ['roles:read', 'roles:write']

        rollback_entry = SettingsHistory.objects.get(id=result['history_id'])
        assert rollback_entry.action == 'rollback'
        assert rollback_entry.previous_value == update_entry.new_value
        assert rollback_entry.new_value == update_entry.previous_value
        assert rollback_entry.changed_by == 'u2'
        assert AuditLog.objects.for_tenant(tenant_id).by_action('ROLLBACK_SETTINGS').exists()

    def test_prior_entries_are_kept(self, tenant_id):
        role = RoleService.create_role(tenant_id, 'editor', ['roles:read'], created_by='u1')
        RoleService.update_role(tenant_id, role.id, updated_by='u1', permissions=[])
        history = SettingsHistory.objects.for_module(tenant_id, 'role')
        before = {entry.id: (entry.previous_value, entry.new_value) for entry in history}

        rollback_settings(tenant_id, history.get(action='update').id, changed_by='u1')

        after = SettingsHistory.objects.for_module(tenant_id, 'role')
        assert after.count() == 3
        for entry in after.exclude(action='rollback'):
            assert before[entry.id] == (entry.previous_value, entry.new_value)

    def test_rolling_back_delete_revives_role(self, tenant_id):
        role = RoleService.create_role(tenant_id, 'editor', ['roles:read'], created_by='u1')
        RoleService.delete_role(tenant_id, role.id, deleted_by='u1')
        delete_entry = SettingsHistory.objects.for_module(tenant_id, 'role').get(action='update')

        rollback_settings(tenant_id, delete_entry.id, changed_by='u1')

        assert Role.objects.active().get(id=role.id).name == 'editor'

    def test_create_entry_cannot_be_rolled_back(self, tenant_id):
        RoleService.create_role(tenant_id, 'editor', [], created_by='u1')
        create_entry = SettingsHistory.objects.for_module(tenant_id, 'role').get()

        with pytest.raises(ValidationError):
            rollback_settings(tenant_id, create_entry.id, changed_by='u1')

    def test_other_tenant_entry_is_not_found(self, tenant_id, other_tenant_id):
        role = RoleService.create_role(tenant_id, 'editor', [], created_by='u1')
        RoleService.update_role(tenant_id, role.id, updated_by='u1', permissions=['roles:read'])
        update_entry = SettingsHistory.objects.for_module(tenant_id, 'role').get(action='update')

        with pytest.raises(NotFound):
            rollback_settings(other_tenant_id, update_entry.id, changed_by='intruder')

        role.refresh_from_db()
        assert role.permissions == ['roles:read']


@pytest.mark.django_db
class TestFeatureFlagRollback:

    def test_restores_previous_state(self, tenant_id):
        FeatureFlagService.set_flag(tenant_id, 'data_masking', True, changed_by='u1')
        FeatureFlagService.set_flag(tenant_id, 'data_masking', False, changed_by='u1')
        update_entry = SettingsHistory.objects.for_module(tenant_id, 'featureFlag').get(action='update')

        result = rollback_settings(tenant_id, update_entry.id, changed_by='u1')

        assert FeatureFlagStore().is_enabled(tenant_id, 'data_masking') is True
        assert result['replaced'] == {'name': 'data_masking', 'enabled': False, 'is_deleted': False}
        assert result['restored'] == {'name': 'data_masking', 'enabled': True, 'is_deleted': False}

    def test_rolling_back_delete(self, tenant_id):
        FeatureFlagService.set_flag(tenant_id, 'data_masking', True, changed_by='u1')
        FeatureFlagService.delete_flag(tenant_id, 'data_masking', changed_by='u1')
        delete_entry = SettingsHistory.objects.for_module(tenant_id, 'featureFlag').get(action='update')

        result = rollback_settings(tenant_id, delete_entry.id, changed_by='u1')

        assert result['replaced'] is None
        assert FeatureFlagStore().is_enabled(tenant_id, 'data_masking') is True


@pytest.mark.django_db
class TestCoreConfigRollback:

    def test_restores_previous_config(self, tenant_id):
        CoreSystemConfigService.create(tenant_id, {'sync_interval_minutes': 15}, created_by='u1')
        CoreSystemConfigService.update(tenant_id, {'sync_interval_minutes': 90}, updated_by='u1')
        update_entry = SettingsHistory.objects.for_module(tenant_id, 'coreSystemConfig').get(action='update')

        rollback_settings(tenant_id, update_entry.id, changed_by='u1')

        assert CoreSystemConfigService.get(tenant_id).sync_interval_minutes == 15
        rollback_entry = SettingsHistory.objects.for_module(tenant_id, 'coreSystemConfig').get(action='rollback')
        assert rollback_entry.previous_value['sync_interval_minutes'] == 90


@pytest.mark.django_db
def test_unsupported_module(tenant_id):
    entry = SettingsHistory.objects.create(
        tenant_id=tenant_id, module='billing', action='update',
        previous_value={'plan': 'basic'}, new_value={'plan': 'pro'}, changed_by='u1',
    )

    with pytest.raises(ValidationError):
        rollback_settings(tenant_id, entry.id, changed_by='u1')
