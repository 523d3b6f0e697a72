"""
System settings models, one configuration document per tenant and module.
"""
import copy
import uuid

import pytz
from django.core.validators import MinValueValidator
from django.db import models

from apps.core.models import BaseModel, SoftDeleteQuerySet


def default_fallback_ntp_servers():
    return ['time.google.com', 'time.windows.com']


class TenantSettingsQuerySet(SoftDeleteQuerySet):

    def for_tenant(self, tenant_id):
        return self.filter(tenant_id=tenant_id)


class CoreSystemConfig(BaseModel):
    """
    Time synchronization and display settings.

    ``tenant_id`` null is the system-wide configuration used by jobs that
    do not run for a specific tenant.
    """

    TIME_ZONE_CHOICES = [(tz, tz) for tz in pytz.common_timezones]

    # Fields an update may change
    EDITABLE_FIELDS = (
        'ntp_server',
        'fallback_ntp_servers',
        'sync_interval_minutes',
        'time_zone',
        'date_time_format',
    )

    tenant_id = models.CharField(
        max_length=100,
        null=True,
        blank=True,
        db_index=True,
        help_text="Tenant this configuration belongs to (null for system-wide)"
    )
    ntp_server = models.CharField(
        max_length=255,
        default='pool.ntp.org',
        help_text="Primary NTP server"
    )
    fallback_ntp_servers = models.JSONField(
        default=default_fallback_ntp_servers,
        blank=True,
        help_text="NTP servers tried in order when the primary fails"
    )
    sync_interval_minutes = models.PositiveIntegerField(
        default=60,
        validators=[MinValueValidator(1)],
        help_text="Minimum minutes between time synchronizations"
    )
    time_zone = models.CharField(
        max_length=64,
        default='UTC',
        choices=TIME_ZONE_CHOICES,
        help_text="IANA time zone used when formatting synchronized time"
    )
    date_time_format = models.CharField(
        max_length=64,
        default='YYYY-MM-DD HH:mm:ss',
        help_text="Display format (YYYY-MM-DD HH:mm:ss tokens or strftime)"
    )

    objects = TenantSettingsQuerySet.as_manager()

    class Meta:
        db_table = 'core_system_config'
        verbose_name = 'Core System Config'
        verbose_name_plural = 'Core System Config'
        indexes = [
            models.Index(fields=['tenant_id', 'is_deleted']),
        ]

    def __str__(self):
        return f"Core config for {self.tenant_id or 'system'}"

    def to_snapshot(self):
        """Serializable editable state used for audit and settings history."""
        snapshot = {field: getattr(self, field) for field in self.EDITABLE_FIELDS}
        snapshot['fallback_ntp_servers'] = list(snapshot['fallback_ntp_servers'] or [])
        snapshot['is_deleted'] = self.is_deleted
        return snapshot


def default_authentication_stack():
    return {
        'methods': [],
        'email': {'enabled': False},
        'sms': {'enabled': False},
        'app_based': {'enabled': False},
    }


def default_encryption():
    return {'standard': 'AES-256', 'key_rotation_frequency': 90, 'current_key_id': str(uuid.uuid4())}


def default_ip_geofencing():
    return {'enabled': False, 'whitelist': [], 'blacklist': [], 'geo_ip_database': None}


def default_session_governance():
    return {'idle_timeout': 30, 'concurrent_limit': 3}


def default_compliance_suite():
    return {
        'standards': [],
        'audit_logs': {'enabled': True, 'retention_period': 365},
        'report_generation': {'enabled': True, 'format': 'PDF'},
    }


def default_data_masking():
    return {'enabled': True, 'fields': [], 'policy': 'Partial'}


def default_token_blacklist():
    return {'enabled': True, 'max_tokens': 1000}


class SecurityFrameworkConfig(BaseModel):
    """
    Authentication, encryption, geofencing, compliance and masking settings.

    Every section is a JSON object; updates replace whole sections.
    """

    EDITABLE_FIELDS = (
        'authentication_stack',
        'encryption',
        'ip_geofencing',
        'session_governance',
        'compliance_suite',
        'data_masking',
        'token_blacklist',
    )

    tenant_id = models.CharField(max_length=100, null=True, blank=True, db_index=True)
    authentication_stack = models.JSONField(default=default_authentication_stack)
    encryption = models.JSONField(default=default_encryption)
    ip_geofencing = models.JSONField(default=default_ip_geofencing)
    session_governance = models.JSONField(default=default_session_governance)
    compliance_suite = models.JSONField(default=default_compliance_suite)
    data_masking = models.JSONField(default=default_data_masking)
    token_blacklist = models.JSONField(default=default_token_blacklist)

    objects = TenantSettingsQuerySet.as_manager()

    class Meta:
        db_table = 'security_framework_config'
        verbose_name = 'Security Framework Config'
        verbose_name_plural = 'Security Framework Config'
        indexes = [
            models.Index(fields=['tenant_id', 'is_deleted']),
        ]

    def __str__(self):
        return f"Security framework for {self.tenant_id or 'system'}"

    def to_snapshot(self):
        snapshot = {field: copy.deepcopy(getattr(self, field)) for field in self.EDITABLE_FIELDS}
        snapshot['is_deleted'] = self.is_deleted
        return snapshot


def default_cloud_providers():
    return ['AWS']


def default_data_center_regions():
    return ['Mumbai']


def default_high_availability_cluster():
    return {'enabled': False, 'node_count': 1, 'failover_strategy': 'Manual'}


def default_automated_backup():
    return {'mode': 'Incremental', 'storage_types': ['Cloud'], 'dr_site': None, 'offsite': False}


def default_ai_driven_load_balancing():
    return {'enabled': False, 'predictive_scaling': {'threshold': 0, 'scale_factor': 0}}


def default_infra_security_settings():
    return {'encryption_at_rest': False, 'firewall_enabled': True, 'waf_rules': []}


class EnterpriseInfraConfig(BaseModel):
    """
    Hosting, replication, backup and recovery settings.
    """

    EDITABLE_FIELDS = (
        'cloud_providers',
        'data_center_regions',
        'high_availability_cluster',
        'distributed_database',
        'automated_backup',
        'disaster_recovery',
        'ai_driven_load_balancing',
        'security_settings',
    )

    tenant_id = models.CharField(max_length=100, null=True, blank=True, db_index=True)
    cloud_providers = models.JSONField(default=default_cloud_providers)
    data_center_regions = models.JSONField(default=default_data_center_regions)
    high_availability_cluster = models.JSONField(default=default_high_availability_cluster)
    distributed_database = models.JSONField(default=dict, blank=True)
    automated_backup = models.JSONField(default=default_automated_backup)
    disaster_recovery = models.JSONField(default=dict, blank=True)
    ai_driven_load_balancing = models.JSONField(default=default_ai_driven_load_balancing)
    security_settings = models.JSONField(default=default_infra_security_settings)

    objects = TenantSettingsQuerySet.as_manager()

    class Meta:
        db_table = 'enterprise_infra_config'
        verbose_name = 'Enterprise Infra Config'
        verbose_name_plural = 'Enterprise Infra Config'
        indexes = [
            models.Index(fields=['tenant_id', 'is_deleted']),
        ]

    def __str__(self):
        return f"Enterprise infrastructure for {self.tenant_id or 'system'}"

    def to_snapshot(self):
        snapshot = {field: copy.deepcopy(getattr(self, field)) for field in self.EDITABLE_FIELDS}
        snapshot['is_deleted'] = self.is_deleted
        return snapshot
