"""
Tests for the soft delete and append-only model bases.
"""
import pytest

from apps.audit.models import AuditLog, SettingsHistory
from apps.core.exceptions import AppendOnlyViolation
from apps.rbac.models import Role


@pytest.mark.django_db
class TestSoftDelete:

    def test_delete_keeps_row(self):
        role = Role.objects.create(tenant_id='acme', name='editor', permissions=['roles:read'])

        role.delete()

        role.refresh_from_db()
        assert role.is_deleted is True
        assert Role.objects.filter(id=role.id).exists()

    def test_active_and_deleted_are_explicit(self):
        live = Role.objects.create(tenant_id='acme', name='live')
        gone = Role.objects.create(tenant_id='acme', name='gone')
        gone.soft_delete()

        assert list(Role.objects.active().for_tenant('acme')) == [live]
        assert list(Role.objects.deleted().for_tenant('acme')) == [gone]
        assert Role.objects.for_tenant('acme').count() == 2

    def test_restore(self):
        role = Role.objects.create(tenant_id='acme', name='editor')
        role.soft_delete()

        role.restore()

        assert Role.objects.active().filter(id=role.id).exists()

    def test_deleted_name_can_be_reused(self):
        Role.objects.create(tenant_id='acme', name='editor').soft_delete()

        Role.objects.create(tenant_id='acme', name='editor')

        assert Role.objects.for_tenant('acme').by_name('editor').count() == 2


@pytest.mark.django_db
class TestAppendOnly:

    def test_audit_entry_cannot_be_updated(self):
        entry = AuditLog.objects.create(action='CREATE_ROLE', module='Roles')
        entry.action = 'DELETE_ROLE'

        with pytest.raises(AppendOnlyViolation):
            entry.save()

    def test_audit_entry_cannot_be_deleted(self):
        entry = AuditLog.objects.create(action='CREATE_ROLE', module='Roles')

        with pytest.raises(AppendOnlyViolation):
            entry.delete()

        assert AuditLog.objects.filter(id=entry.id).exists()

    def test_queryset_mutation_is_refused(self):
        SettingsHistory.objects.create(
            tenant_id='acme', module='role', action='create',
            new_value={'name': 'editor'}, changed_by='u1',
        )

        with pytest.raises(AppendOnlyViolation):
            SettingsHistory.objects.filter(tenant_id='acme').update(changed_by='u2')

        with pytest.raises(AppendOnlyViolation):
            SettingsHistory.objects.filter(tenant_id='acme').delete()

        assert SettingsHistory.objects.filter(tenant_id='acme', changed_by='u1').count() == 1
