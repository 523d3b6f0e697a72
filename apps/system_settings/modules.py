"""
Security framework and enterprise infrastructure settings.

Both modules keep one configuration document per tenant (or a system-wide
one for tenant None) and record every change to the audit log and the
settings history, so a change can be rolled back.
"""
import ipaddress
import logging
import uuid
from datetime import datetime
from typing import Optional, Dict, Any

import pytz
from django.db import DatabaseError, IntegrityError, transaction

from apps.audit.models import SettingsHistory
from apps.audit.services import AuditService, SettingsHistoryService
from apps.core.exceptions import NotFound, StorageError, ValidationError
from apps.system_settings.models import EnterpriseInfraConfig, SecurityFrameworkConfig
from apps.tenants.services import FeatureFlagStore

logger = logging.getLogger(__name__)

AUTH_METHODS = ('Email OTP', 'SMS OTP', 'App-based')
SMS_PROVIDERS = ('Twilio', 'Nexmo', 'AWS SNS')
ENCRYPTION_STANDARDS = ('AES-256', 'RSA-2048')
GEOIP_DATABASES = ('GeoLite2', 'MaxMind')
COMPLIANCE_STANDARDS = ('ISO 27001', 'CBSE', 'GDPR', 'HIPAA')
REPORT_FORMATS = ('PDF', 'CSV')
MASKABLE_FIELDS = ('Aadhaar', 'Phone', 'Email', 'Name')
MASKING_POLICIES = ('Partial', 'Full')

CLOUD_PROVIDERS = ('AWS', 'Azure', 'Google Cloud', 'Hybrid')
DATA_CENTER_REGIONS = ('Mumbai', 'Singapore', 'Frankfurt', 'US-East-1', 'Sydney', 'Tokyo', 'London', 'Sao Paulo')
FAILOVER_STRATEGIES = ('Manual', 'Automatic', 'Custom')
IN_MEMORY_ENGINES = ('SAP HANA', 'Redis Enterprise')
DATABASE_ENGINES = ('Cassandra', 'PostgreSQL', 'MongoDB')
DATABASE_CONFIGURATIONS = ('Sharded', 'Replicated')
BACKUP_MODES = ('Real-time', 'Incremental')
STORAGE_TYPES = ('Local', 'Cloud', 'Tape')
DR_SITES = ('AWS US-East-1', 'AWS Mumbai', 'Azure Singapore', 'Google Cloud Tokyo')

MASK = '****'


def _section(data, field) -> Dict[str, Any]:
    value = data[field]
    if not isinstance(value, dict):
        raise ValidationError(f"{field} must be an object")
    return value


def _check_bool(section, key, field):
    if key in section and not isinstance(section[key], bool):
        raise ValidationError(f"{field}.{key} must be a boolean")


def _check_number(section, key, field, minimum=0, maximum=None):
    if key not in section:
        return
    value = section[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{field}.{key} must be a number")
    if value < minimum or (maximum is not None and value > maximum):
        raise ValidationError(f"{field}.{key} is out of range")


def _check_choice(section, key, field, choices):
    if section.get(key) is not None and section[key] not in choices:
        raise ValidationError(
            f"Invalid {field}.{key} '{section[key]}'",
            details={'valid_values': list(choices)}
        )


def _check_choices(values, field, choices):
    if not isinstance(values, list):
        raise ValidationError(f"{field} must be a list")
    invalid = sorted(set(values) - set(choices), key=str)
    if invalid:
        raise ValidationError(
            f"Invalid {field} values",
            details={'invalid_values': invalid, 'valid_values': list(choices)}
        )


def _check_addresses(values, field):
    if not isinstance(values, list):
        raise ValidationError(f"{field} must be a list")
    for value in values:
        try:
            ipaddress.ip_address(value)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid IP address '{value}' in {field}")


class SettingsModuleService:
    """
    Create, read, update and delete for a per-tenant settings document.

    Subclasses set ``model``, the audit and history module names and
    ``action_suffix``, and validate sections in ``_validate_sections``.
    """

    model = None
    audit_module = None
    history_module = None
    action_suffix = None
    label = None

    @classmethod
    def _validate(cls, data: Dict[str, Any]):
        unknown = sorted(set(data) - set(cls.model.EDITABLE_FIELDS))
        if unknown:
            raise ValidationError("Unknown configuration fields", details={'unknown_fields': unknown})
        cls._validate_sections(data)

    @classmethod
    def _validate_sections(cls, data: Dict[str, Any]):
        raise NotImplementedError

    @classmethod
    def _complete(cls, data: Dict[str, Any], current=None) -> Dict[str, Any]:
        return data

    @classmethod
    def _record(cls, tenant_id, verb, history_action, previous, new, changed_by, ip_address):
        AuditService.record_safely(
            action=f'{verb}_{cls.action_suffix}',
            principal_id=changed_by,
            module=cls.audit_module,
            details={'previous': previous, 'new': new},
            ip_address=ip_address,
            tenant_id=tenant_id,
        )
        SettingsHistoryService.record_change_safely(
            tenant_id=tenant_id,
            module=cls.history_module,
            action=history_action,
            previous_value=previous,
            new_value=new,
            changed_by=changed_by,
            ip_address=ip_address,
        )

    @classmethod
    def _latest(cls, tenant_id):
        return cls.model.objects.for_tenant(tenant_id).order_by('is_deleted', '-created_at').first()

    @classmethod
    def get(cls, tenant_id: Optional[str] = None):
        """
        Raises:
            NotFound: No active configuration
            StorageError: Storage could not be read
        """
        try:
            config = cls.model.objects.active().for_tenant(tenant_id).order_by('-created_at').first()
        except DatabaseError as e:
            raise StorageError(f"{cls.label} unavailable") from e

        if config is None:
            raise NotFound(f"{cls.label} not found")
        return config

    @classmethod
    def create(cls, tenant_id: Optional[str], data: Dict[str, Any], created_by: str,
               ip_address: Optional[str] = None):
        """
        Raises:
            ValidationError: Invalid data or configuration already exists
        """
        cls._validate(data)

        if cls.model.objects.active().for_tenant(tenant_id).exists():
            raise ValidationError(f"{cls.label} already exists")

        try:
            with transaction.atomic():
                config = cls.model.objects.create(tenant_id=tenant_id, **cls._complete(data))
        except IntegrityError:
            raise ValidationError(f"{cls.label} already exists")

        cls._record(tenant_id, 'CREATE', SettingsHistory.ACTION_CREATE,
                    None, config.to_snapshot(), created_by, ip_address)

        logger.info(f"{cls.label} created", extra={'tenant_id': tenant_id})
        return config

    @classmethod
    def update(cls, tenant_id: Optional[str], data: Dict[str, Any], updated_by: str,
               ip_address: Optional[str] = None):
        """
        Replace the given sections.

        Raises:
            NotFound: No active configuration
            ValidationError: Invalid or unknown fields
        """
        cls._validate(data)
        if not data:
            raise ValidationError("No configuration fields provided")

        config = cls.get(tenant_id)
        previous = config.to_snapshot()

        for field, value in cls._complete(data, config).items():
            setattr(config, field, value)
        config.save()

        cls._record(tenant_id, 'UPDATE', SettingsHistory.ACTION_UPDATE,
                    previous, config.to_snapshot(), updated_by, ip_address)

        logger.info(f"{cls.label} updated", extra={'tenant_id': tenant_id, 'fields': sorted(data)})
        return config

    @classmethod
    def delete(cls, tenant_id: Optional[str], deleted_by: str, ip_address: Optional[str] = None):
        config = cls.get(tenant_id)
        previous = config.to_snapshot()
        config.soft_delete()

        cls._record(tenant_id, 'DELETE', SettingsHistory.ACTION_UPDATE,
                    previous, config.to_snapshot(), deleted_by, ip_address)

        logger.info(f"{cls.label} deleted", extra={'tenant_id': tenant_id})
        return config

    @classmethod
    def current_snapshot(cls, tenant_id: Optional[str], snapshot=None) -> Optional[Dict[str, Any]]:
        """Current state, including a soft-deleted document (None if absent)."""
        config = cls._latest(tenant_id)
        return config.to_snapshot() if config else None

    @classmethod
    def restore_snapshot(cls, tenant_id: Optional[str], snapshot: Dict[str, Any]) -> Dict[str, Any]:
        """Overwrite the document with a settings history snapshot."""
        values = {field: snapshot[field] for field in cls.model.EDITABLE_FIELDS if field in snapshot}
        cls._validate(values)

        config = cls._latest(tenant_id)
        if config is None:
            config = cls.model(tenant_id=tenant_id)

        for field, value in values.items():
            setattr(config, field, value)
        config.is_deleted = bool(snapshot.get('is_deleted', False))
        config.save()
        return config.to_snapshot()


class SecurityFrameworkService(SettingsModuleService):
    """
    Security framework settings and the checks that read them.
    """

    model = SecurityFrameworkConfig
    audit_module = 'SecurityFramework'
    history_module = 'securityFramework'
    action_suffix = 'SECURITY_FRAMEWORK'
    label = 'Security framework'

    @classmethod
    def _validate_sections(cls, data):
        if 'authentication_stack' in data:
            stack = _section(data, 'authentication_stack')
            if 'methods' in stack:
                _check_choices(stack['methods'], 'authentication_stack.methods', AUTH_METHODS)
            for channel in ('email', 'sms', 'app_based'):
                if channel in stack:
                    _check_bool(_section(stack, channel), 'enabled', f'authentication_stack.{channel}')
            if 'email' in stack:
                email = stack['email']
                if email.get('enabled') and not email.get('smtp_server'):
                    raise ValidationError("authentication_stack.email.smtp_server is required when enabled")
                _check_number(email, 'smtp_port', 'authentication_stack.email', minimum=1, maximum=65535)
            if 'sms' in stack:
                _check_choice(stack['sms'], 'provider', 'authentication_stack.sms', SMS_PROVIDERS)
            if 'app_based' in stack:
                _check_number(stack['app_based'], 'secret_length', 'authentication_stack.app_based', minimum=16)

        if 'encryption' in data:
            encryption = _section(data, 'encryption')
            _check_choice(encryption, 'standard', 'encryption', ENCRYPTION_STANDARDS)
            _check_number(encryption, 'key_rotation_frequency', 'encryption', minimum=1)

        if 'ip_geofencing' in data:
            geofencing = _section(data, 'ip_geofencing')
            _check_bool(geofencing, 'enabled', 'ip_geofencing')
            for key in ('whitelist', 'blacklist'):
                if key in geofencing:
                    _check_addresses(geofencing[key], f'ip_geofencing.{key}')
            _check_choice(geofencing, 'geo_ip_database', 'ip_geofencing', GEOIP_DATABASES)

        if 'session_governance' in data:
            session = _section(data, 'session_governance')
            _check_number(session, 'idle_timeout', 'session_governance', minimum=1)
            _check_number(session, 'concurrent_limit', 'session_governance', minimum=1)

        if 'compliance_suite' in data:
            suite = _section(data, 'compliance_suite')
            if 'standards' in suite:
                _check_choices(suite['standards'], 'compliance_suite.standards', COMPLIANCE_STANDARDS)
            if 'audit_logs' in suite:
                audit_logs = _section(suite, 'audit_logs')
                _check_bool(audit_logs, 'enabled', 'compliance_suite.audit_logs')
                _check_number(audit_logs, 'retention_period', 'compliance_suite.audit_logs', minimum=1)
            if 'report_generation' in suite:
                reports = _section(suite, 'report_generation')
                _check_bool(reports, 'enabled', 'compliance_suite.report_generation')
                _check_choice(reports, 'format', 'compliance_suite.report_generation', REPORT_FORMATS)

        if 'data_masking' in data:
            masking = _section(data, 'data_masking')
            _check_bool(masking, 'enabled', 'data_masking')
            if 'fields' in masking:
                _check_choices(masking['fields'], 'data_masking.fields', MASKABLE_FIELDS)
            _check_choice(masking, 'policy', 'data_masking', MASKING_POLICIES)

        if 'token_blacklist' in data:
            blacklist = _section(data, 'token_blacklist')
            _check_bool(blacklist, 'enabled', 'token_blacklist')
            _check_number(blacklist, 'max_tokens', 'token_blacklist', minimum=1)

    @classmethod
    def _complete(cls, data, current=None):
        # Keep the stored key id unless one is given
        if 'encryption' in data and 'current_key_id' not in data['encryption']:
            key_id = current.encryption.get('current_key_id') if current else None
            data = dict(data, encryption=dict(data['encryption'], current_key_id=key_id or str(uuid.uuid4())))
        return data

    @classmethod
    def check_ip(cls, tenant_id: Optional[str], ip: str) -> Dict[str, Any]:
        """
        Decide whether ``ip`` may connect under the tenant's geofencing rules.

        The whitelist wins over the blacklist. An address on neither list is
        allowed only when a geo-IP database is configured.

        Raises:
            ValidationError: ``ip`` is not an IP address
            NotFound: No security framework configured
        """
        try:
            ipaddress.ip_address(ip)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid IP address '{ip}'")

        geofencing = cls.get(tenant_id).ip_geofencing
        if not geofencing.get('enabled'):
            return {'allowed': True, 'reason': 'Geofencing disabled'}
        if ip in geofencing.get('whitelist', []):
            return {'allowed': True, 'reason': 'IP is whitelisted'}
        if ip in geofencing.get('blacklist', []):
            logger.warning("Blacklisted IP refused", extra={'tenant_id': tenant_id, 'ip': ip})
            return {'allowed': False, 'reason': 'IP is blacklisted'}
        if not geofencing.get('geo_ip_database'):
            return {'allowed': False, 'reason': 'No geo-IP database configured'}
        return {'allowed': True, 'reason': 'IP allowed by geo-IP check'}

    @classmethod
    def mask(cls, tenant_id: str, field: str, value: str) -> str:
        """
        Mask a personal data value according to the tenant's masking policy.

        Values of fields the policy does not cover are returned unchanged.

        Raises:
            ValidationError: Data masking flag is off or ``field`` is not maskable
            NotFound: No security framework configured
        """
        if field not in MASKABLE_FIELDS:
            raise ValidationError(f"Field '{field}' cannot be masked", details={'valid_values': list(MASKABLE_FIELDS)})
        if not value:
            return ''
        if not FeatureFlagStore().is_enabled(tenant_id, 'data_masking'):
            raise ValidationError("Data masking is disabled")

        masking = cls.get(tenant_id).data_masking
        if not masking.get('enabled') or field not in masking.get('fields', []):
            return value
        if masking.get('policy') == 'Full':
            return MASK

        if field == 'Aadhaar':
            return f'XXXX-XXXX-{value[-4:]}' if len(value) >= 4 else MASK
        if field == 'Phone':
            return f'XXXX-XXX-{value[-4:]}' if len(value) >= 4 else MASK
        if field == 'Email':
            local, _, domain = value.partition('@')
            return f'{local[:2]}{MASK}@{domain}' if local and domain else MASK
        return f'{value[0]}{MASK}{value[-1]}' if len(value) >= 2 else MASK

    @classmethod
    def compliance_report(cls, tenant_id: str) -> Dict[str, Any]:
        """
        Raises:
            ValidationError: Compliance reports flag is off or report generation is disabled
            NotFound: No security framework configured
        """
        if not FeatureFlagStore().is_enabled(tenant_id, 'compliance_reports'):
            raise ValidationError("Compliance reports are disabled")

        config = cls.get(tenant_id)
        suite = config.compliance_suite
        if not suite.get('report_generation', {}).get('enabled'):
            raise ValidationError("Compliance report generation is not enabled")

        audit_logs = suite.get('audit_logs', {})
        if audit_logs.get('enabled'):
            retention = f"Logs retained for {audit_logs.get('retention_period')} days"
        else:
            retention = 'Logs disabled'

        logger.info("Compliance report generated", extra={'tenant_id': tenant_id})
        return {
            'tenant_id': tenant_id,
            'standards': suite.get('standards', []),
            'audit_logs': retention,
            'encryption': config.encryption.get('standard'),
            'format': suite.get('report_generation', {}).get('format'),
            'generated_at': datetime.now(pytz.utc).isoformat(),
        }

    @classmethod
    def status(cls, tenant_id: Optional[str]) -> Dict[str, Any]:
        config = cls.get(tenant_id)
        return {
            'authentication': 'Configured' if config.authentication_stack.get('methods') else 'Not Configured',
            'encryption': 'Active' if config.encryption.get('standard') else 'Not Configured',
            'ip_geofencing': 'Enabled' if config.ip_geofencing.get('enabled') else 'Disabled',
            'compliance': 'Compliant' if config.compliance_suite.get('standards') else 'Non-Compliant',
            'data_masking': 'Enabled' if config.data_masking.get('enabled') else 'Disabled',
            'last_updated': config.updated_at,
        }

    @classmethod
    def rotate_encryption_key(cls, tenant_id: Optional[str], rotated_by: str,
                              ip_address: Optional[str] = None):
        """
        Replace the current encryption key id with a new one.

        Raises:
            NotFound: No security framework configured
        """
        config = cls.get(tenant_id)
        previous = config.to_snapshot()

        config.encryption = dict(config.encryption, current_key_id=str(uuid.uuid4()))
        config.save()

        cls._record(tenant_id, 'ROTATE_KEY', SettingsHistory.ACTION_UPDATE,
                    previous, config.to_snapshot(), rotated_by, ip_address)

        logger.info("Encryption key rotated", extra={'tenant_id': tenant_id})
        return config


class EnterpriseInfraService(SettingsModuleService):
    """
    Enterprise infrastructure settings.
    """

    model = EnterpriseInfraConfig
    audit_module = 'EnterpriseInfra'
    history_module = 'enterpriseInfra'
    action_suffix = 'ENTERPRISE_INFRA'
    label = 'Enterprise infrastructure'

    @classmethod
    def _validate_sections(cls, data):
        if 'cloud_providers' in data:
            _check_choices(data['cloud_providers'], 'cloud_providers', CLOUD_PROVIDERS)
        if 'data_center_regions' in data:
            _check_choices(data['data_center_regions'], 'data_center_regions', DATA_CENTER_REGIONS)

        if 'high_availability_cluster' in data:
            cluster = _section(data, 'high_availability_cluster')
            _check_bool(cluster, 'enabled', 'high_availability_cluster')
            _check_number(cluster, 'node_count', 'high_availability_cluster', minimum=1, maximum=100)
            _check_choice(cluster, 'failover_strategy', 'high_availability_cluster', FAILOVER_STRATEGIES)

        if 'distributed_database' in data:
            database = _section(data, 'distributed_database')
            _check_choice(database, 'in_memory_engine', 'distributed_database', IN_MEMORY_ENGINES)
            _check_choice(database, 'engine', 'distributed_database', DATABASE_ENGINES)
            _check_choice(database, 'configuration', 'distributed_database', DATABASE_CONFIGURATIONS)

        if 'automated_backup' in data:
            backup = _section(data, 'automated_backup')
            _check_choice(backup, 'mode', 'automated_backup', BACKUP_MODES)
            if 'storage_types' in backup:
                _check_choices(backup['storage_types'], 'automated_backup.storage_types', STORAGE_TYPES)
            _check_choice(backup, 'dr_site', 'automated_backup', DR_SITES)
            _check_bool(backup, 'offsite', 'automated_backup')

        if 'disaster_recovery' in data:
            recovery = _section(data, 'disaster_recovery')
            _check_number(recovery, 'rpo', 'disaster_recovery')
            _check_number(recovery, 'rto', 'disaster_recovery')
            _check_choice(recovery, 'dr_site', 'disaster_recovery', DR_SITES)

        if 'ai_driven_load_balancing' in data:
            balancing = _section(data, 'ai_driven_load_balancing')
            _check_bool(balancing, 'enabled', 'ai_driven_load_balancing')
            if 'predictive_scaling' in balancing:
                scaling = _section(balancing, 'predictive_scaling')
                _check_number(scaling, 'threshold', 'ai_driven_load_balancing.predictive_scaling')
                _check_number(scaling, 'scale_factor', 'ai_driven_load_balancing.predictive_scaling')

        if 'security_settings' in data:
            security = _section(data, 'security_settings')
            _check_bool(security, 'encryption_at_rest', 'security_settings')
            _check_bool(security, 'firewall_enabled', 'security_settings')
            if 'waf_rules' in security and not isinstance(security['waf_rules'], list):
                raise ValidationError("security_settings.waf_rules must be a list")

    @classmethod
    def validate(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Check a proposed configuration without storing it.

        Raises:
            ValidationError: Invalid or unknown fields
        """
        cls._validate(data)
        issues = []
        cluster = data.get('high_availability_cluster', {})
        if cluster.get('enabled') and cluster.get('node_count', 1) < 2:
            issues.append('High availability needs at least two nodes')
        if data.get('automated_backup', {}).get('offsite') and not data['automated_backup'].get('dr_site'):
            issues.append('Offsite backup has no DR site')
        return {'valid': not issues, 'issues': issues}

    @classmethod
    def status(cls, tenant_id: Optional[str]) -> Dict[str, Any]:
        config = cls.get(tenant_id)
        return {
            'cloud_providers': config.cloud_providers,
            'regions': config.data_center_regions,
            'status': 'Operational',
            'last_checked': datetime.now(pytz.utc).isoformat(),
        }
