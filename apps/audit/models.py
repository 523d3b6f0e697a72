"""
Audit trail models.

Both models are append-only: an entry is written once and never updated or
deleted, at the instance level and through querysets.
"""
from django.db import models

from apps.core.models import AppendOnlyModel, AppendOnlyQuerySet


class AuditLogQuerySet(AppendOnlyQuerySet):
    """QuerySet helpers for audit log lookups."""

    def for_tenant(self, tenant_id):
        return self.filter(tenant_id=tenant_id)

    def by_action(self, action):
        return self.filter(action=action)

    def for_user(self, user_id):
        return self.filter(user_id=user_id)


class AuditLog(AppendOnlyModel):
    """
    Immutable record of a state-changing action.

    ``tenant_id`` is null for system-level actions such as periodic jobs.
    """

    tenant_id = models.CharField(
        max_length=100,
        null=True,
        blank=True,
        db_index=True,
        help_text="Tenant this action belongs to (null for system-level)"
    )
    user_id = models.CharField(
        max_length=100,
        null=True,
        blank=True,
        db_index=True,
        help_text="Principal who performed the action ('system' for jobs)"
    )
    action = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Action tag (e.g., 'UPDATE_ROLE', 'SYNC_NTP')"
    )
    module = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Functional area (e.g., 'Roles', 'SystemSettings')"
    )
    details = models.JSONField(
        default=dict,
        blank=True,
        help_text="Action payload with sensitive fields redacted"
    )
    ip_address = models.GenericIPAddressField(
        null=True,
        blank=True,
        help_text="IP address of the request"
    )

    objects = AuditLogQuerySet.as_manager()

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['tenant_id', 'created_at']),
            models.Index(fields=['action', 'created_at']),
            models.Index(fields=['tenant_id', 'action', 'created_at']),
        ]

    def __str__(self):
        return f"{self.tenant_id or 'System'} - {self.user_id or 'unknown'} - {self.action}"


class SettingsHistoryQuerySet(AppendOnlyQuerySet):

    def for_module(self, tenant_id, module):
        return self.filter(tenant_id=tenant_id, module=module)


class SettingsHistory(AppendOnlyModel):
    """
    Versioned record of a configuration change, with enough information to
    restore the prior value.
    """

    ACTION_CREATE = 'create'
    ACTION_UPDATE = 'update'
    ACTION_ROLLBACK = 'rollback'

    ACTION_CHOICES = [
        (ACTION_CREATE, 'Create'),
        (ACTION_UPDATE, 'Update'),
        (ACTION_ROLLBACK, 'Rollback'),
    ]

    tenant_id = models.CharField(
        max_length=100,
        null=True,
        blank=True,
        db_index=True,
        help_text="Tenant whose configuration changed (null for system-wide)"
    )
    module = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Configuration area (e.g., 'role', 'featureFlag', 'coreSystemConfig')"
    )
    action = models.CharField(
        max_length=20,
        choices=ACTION_CHOICES,
        db_index=True
    )
    previous_value = models.JSONField(
        null=True,
        blank=True,
        help_text="Value before the change (null for create)"
    )
    new_value = models.JSONField(
        help_text="Value after the change"
    )
    changed_by = models.CharField(
        max_length=100,
        help_text="Principal who made the change"
    )
    ip_address = models.GenericIPAddressField(
        null=True,
        blank=True
    )

    objects = SettingsHistoryQuerySet.as_manager()

    class Meta:
        db_table = 'settings_history'
        ordering = ['-created_at']
        verbose_name_plural = 'settings history'
        indexes = [
            models.Index(fields=['tenant_id', 'module', 'created_at']),
            models.Index(fields=['tenant_id', 'changed_by']),
        ]

    def __str__(self):
        return f"{self.tenant_id} - {self.module} - {self.action}"
