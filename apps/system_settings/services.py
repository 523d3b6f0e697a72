"""
Core system configuration and time synchronization services.
"""
import logging
import re
from datetime import datetime
from typing import Optional, Dict, Any

import ntplib
import pytz
from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction

from apps.audit.models import SettingsHistory
from apps.audit.services import AuditService, SettingsHistoryService
from apps.core.exceptions import NotFound, StorageError, ValidationError, JobEffectError
from apps.system_settings.models import CoreSystemConfig

logger = logging.getLogger(__name__)

AUDIT_MODULE = 'SystemSettings'
HISTORY_MODULE = 'coreSystemConfig'

_FORMAT_TOKENS = {
    'YYYY': '%Y',
    'YY': '%y',
    'MM': '%m',
    'DD': '%d',
    'HH': '%H',
    'hh': '%I',
    'mm': '%M',
    'ss': '%S',
    'A': '%p',
    'Z': '%z',
}
_FORMAT_PATTERN = re.compile('|'.join(sorted(_FORMAT_TOKENS, key=len, reverse=True)))


def to_strftime(date_time_format: str) -> str:
    """
    Translate a ``YYYY-MM-DD HH:mm:ss`` style format into strftime.

    Formats that already contain ``%`` directives are returned unchanged.
    """
    if '%' in date_time_format:
        return date_time_format
    return _FORMAT_PATTERN.sub(lambda match: _FORMAT_TOKENS[match.group(0)], date_time_format)


def format_datetime(value: datetime, date_time_format: str, time_zone: str) -> str:
    return value.astimezone(pytz.timezone(time_zone)).strftime(to_strftime(date_time_format))


class CoreSystemConfigService:
    """
    Service for core system configuration, per tenant or system-wide.
    """

    @classmethod
    def _validate(cls, data: Dict[str, Any]):
        unknown = sorted(set(data) - set(CoreSystemConfig.EDITABLE_FIELDS))
        if unknown:
            raise ValidationError("Unknown configuration fields", details={'unknown_fields': unknown})

        if 'ntp_server' in data and (not isinstance(data['ntp_server'], str) or not data['ntp_server'].strip()):
            raise ValidationError("ntp_server must be a non-empty string")

        if 'fallback_ntp_servers' in data:
            servers = data['fallback_ntp_servers']
            if not isinstance(servers, list) or not all(isinstance(s, str) and s.strip() for s in servers):
                raise ValidationError("fallback_ntp_servers must be a list of host names")

        if 'sync_interval_minutes' in data:
            interval = data['sync_interval_minutes']
            if isinstance(interval, bool) or not isinstance(interval, int) or interval < 1:
                raise ValidationError("sync_interval_minutes must be a positive integer")

        if 'time_zone' in data and data['time_zone'] not in pytz.all_timezones_set:
            raise ValidationError(f"Unknown time zone '{data['time_zone']}'")

        if 'date_time_format' in data:
            fmt = data['date_time_format']
            if not isinstance(fmt, str) or not fmt.strip():
                raise ValidationError("date_time_format must be a non-empty string")
            try:
                datetime.now(pytz.utc).strftime(to_strftime(fmt))
            except ValueError:
                raise ValidationError("Invalid date-time format")

    @classmethod
    def _record(cls, tenant_id, audit_action, history_action, previous, new, changed_by, ip_address):
        AuditService.record_safely(
            action=audit_action,
            principal_id=changed_by,
            module=AUDIT_MODULE,
            details={'previous': previous, 'new': new},
            ip_address=ip_address,
            tenant_id=tenant_id,
        )
        SettingsHistoryService.record_change_safely(
            tenant_id=tenant_id,
            module=HISTORY_MODULE,
            action=history_action,
            previous_value=previous,
            new_value=new,
            changed_by=changed_by,
            ip_address=ip_address,
        )

    @classmethod
    def get(cls, tenant_id: Optional[str] = None) -> CoreSystemConfig:
        """
        Active configuration for a tenant (or the system-wide one for None).

        Raises:
            NotFound: No active configuration
            StorageError: Storage could not be read
        """
        try:
            config = CoreSystemConfig.objects.active().for_tenant(tenant_id).order_by('-created_at').first()
        except DatabaseError as e:
            raise StorageError("Core system config unavailable") from e

        if config is None:
            raise NotFound("Core system config not found")
        return config

    @classmethod
    def effective(cls, tenant_id: Optional[str] = None) -> CoreSystemConfig:
        """
        Tenant configuration, else the system-wide one, else unsaved defaults.

        Raises:
            StorageError: Storage could not be read
        """
        try:
            return cls.get(tenant_id)
        except NotFound:
            pass

        if tenant_id is not None:
            try:
                return cls.get(None)
            except NotFound:
                pass

        return CoreSystemConfig(
            tenant_id=tenant_id,
            sync_interval_minutes=settings.WARDEN_DEFAULT_SYNC_INTERVAL_MINUTES,
        )

    @classmethod
    def create(cls, tenant_id: Optional[str], data: Dict[str, Any], created_by: str,
               ip_address: Optional[str] = None) -> CoreSystemConfig:
        """
        Raises:
            ValidationError: Invalid data or configuration already exists
        """
        cls._validate(data)

        if CoreSystemConfig.objects.active().for_tenant(tenant_id).exists():
            raise ValidationError("Core system config already exists")

        try:
            with transaction.atomic():
                config = CoreSystemConfig.objects.create(tenant_id=tenant_id, **data)
        except IntegrityError:
            raise ValidationError("Core system config already exists")

        cls._record(tenant_id, 'CREATE_CORE_CONFIG', SettingsHistory.ACTION_CREATE,
                    None, config.to_snapshot(), created_by, ip_address)

        logger.info("Core system config created", extra={'tenant_id': tenant_id})
        return config

    @classmethod
    def update(cls, tenant_id: Optional[str], data: Dict[str, Any], updated_by: str,
               ip_address: Optional[str] = None) -> CoreSystemConfig:
        """
        Raises:
            NotFound: No active configuration
            ValidationError: Invalid or unknown fields
        """
        cls._validate(data)
        if not data:
            raise ValidationError("No configuration fields provided")

        config = cls.get(tenant_id)
        previous = config.to_snapshot()

        for field, value in data.items():
            setattr(config, field, value)
        config.save()

        cls._record(tenant_id, 'UPDATE_CORE_CONFIG', SettingsHistory.ACTION_UPDATE,
                    previous, config.to_snapshot(), updated_by, ip_address)

        logger.info(
            "Core system config updated",
            extra={'tenant_id': tenant_id, 'fields': sorted(data)}
        )
        return config

    @classmethod
    def delete(cls, tenant_id: Optional[str], deleted_by: str,
               ip_address: Optional[str] = None) -> CoreSystemConfig:
        config = cls.get(tenant_id)
        previous = config.to_snapshot()
        config.soft_delete()

        cls._record(tenant_id, 'DELETE_CORE_CONFIG', SettingsHistory.ACTION_UPDATE,
                    previous, config.to_snapshot(), deleted_by, ip_address)
        return config

    @classmethod
    def current_snapshot(cls, tenant_id: Optional[str], snapshot=None) -> Optional[Dict[str, Any]]:
        """Current configuration state, including a soft-deleted one (None if absent)."""
        config = CoreSystemConfig.objects.for_tenant(tenant_id).order_by('is_deleted', '-created_at').first()
        return config.to_snapshot() if config else None

    @classmethod
    def restore_snapshot(cls, tenant_id: Optional[str], snapshot: Dict[str, Any]) -> Dict[str, Any]:
        """
        Overwrite the configuration with a snapshot from settings history.

        Used by settings rollback; the caller records history and audit.
        """
        values = {field: snapshot[field] for field in CoreSystemConfig.EDITABLE_FIELDS if field in snapshot}
        cls._validate(values)

        config = CoreSystemConfig.objects.for_tenant(tenant_id).order_by('is_deleted', '-created_at').first()
        if config is None:
            config = CoreSystemConfig(tenant_id=tenant_id)

        for field, value in values.items():
            setattr(config, field, value)
        config.is_deleted = bool(snapshot.get('is_deleted', False))
        config.save()
        return config.to_snapshot()


def sync_interval_minutes(tenant_id: Optional[str] = None) -> int:
    """
    Interval between NTP synchronizations for a tenant.

    Falls back to WARDEN_DEFAULT_SYNC_INTERVAL_MINUTES when no configuration
    is stored.

    Raises:
        StorageError: Storage could not be read
    """
    return CoreSystemConfigService.effective(tenant_id).sync_interval_minutes


def sync_with_ntp_server(tenant_id: Optional[str] = None, client=None) -> Dict[str, Any]:
    """
    Query the configured NTP server, then each fallback, until one answers.

    Returns:
        dict: {'time': formatted time, 'server': answering server, 'offset': seconds}

    Raises:
        JobEffectError: Every server failed
    """
    config = CoreSystemConfigService.effective(tenant_id)
    client = client or ntplib.NTPClient()
    timeout = getattr(settings, 'WARDEN_NTP_TIMEOUT_SECONDS', 5)

    servers = [config.ntp_server] + list(config.fallback_ntp_servers or [])

    for server in servers:
        try:
            response = client.request(server, version=3, timeout=timeout)
        except (ntplib.NTPException, OSError) as e:
            logger.warning(
                f"NTP sync failed with {server}: {e}",
                extra={'tenant_id': tenant_id, 'server': server}
            )
            continue

        ntp_time = datetime.fromtimestamp(response.tx_time, tz=pytz.utc)
        formatted = format_datetime(ntp_time, config.date_time_format, config.time_zone)

        logger.info(
            f"NTP sync successful with {server}. Time: {formatted}",
            extra={'tenant_id': tenant_id, 'server': server, 'offset': response.offset}
        )
        return {'time': formatted, 'server': server, 'offset': response.offset}

    raise JobEffectError(
        "NTP synchronization failed with all servers",
        details={'servers': servers}
    )
