"""
Audit log and settings history services.

Business services call these after their own change has been saved. A
failed audit write never undoes the business change: the ``*_safely``
variants log the failure, report it to Sentry and return None.
"""
import logging
from typing import Optional, Any, Dict, List

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError
from django.db.models import Count, QuerySet

from apps.audit.models import AuditLog, SettingsHistory
from apps.core.exceptions import StorageError, ValidationError, NotFound
from apps.core.log_sanitizer import redact_sensitive
from apps.core.logging import SecurityLogger
from apps.core.sentry_utils import capture_exception

logger = logging.getLogger(__name__)

# Sentinel for "do not filter by tenant"; None means system-level entries.
ANY_TENANT = object()


class AuditService:
    """
    Service for writing and reading the append-only audit trail.
    """

    @classmethod
    def record(cls, action: str, principal_id: Optional[str], module: str,
               details: Optional[Dict[str, Any]] = None, ip_address: Optional[str] = None,
               tenant_id: Optional[str] = None, timestamp=None) -> AuditLog:
        """
        Append an audit entry.

        Args:
            action: Action tag (e.g., 'UPDATE_ROLE')
            principal_id: Who performed the action ('system' for jobs)
            module: Functional area
            details: Payload; sensitive keys are redacted before storage
            ip_address: Caller IP
            tenant_id: Tenant scope (None for system-level)
            timestamp: Explicit creation time (defaults to now)

        Returns:
            AuditLog instance

        Raises:
            StorageError: If the entry could not be written
        """
        entry = AuditLog(
            action=action,
            user_id=principal_id,
            module=module,
            details=redact_sensitive(details or {}),
            ip_address=ip_address,
            tenant_id=tenant_id,
        )
        if timestamp is not None:
            entry.created_at = timestamp

        try:
            entry.save(force_insert=True)
        except DatabaseError as e:
            logger.error(
                f"Failed to write audit entry {action}",
                extra={'action': action, 'audit_module': module, 'tenant_id': tenant_id},
                exc_info=True
            )
            raise StorageError(f"Audit entry {action} could not be written") from e

        logger.debug(
            f"Audit entry recorded: {action}",
            extra={'action': action, 'audit_module': module, 'tenant_id': tenant_id}
        )
        return entry

    @classmethod
    def record_safely(cls, *args, **kwargs) -> Optional[AuditLog]:
        """
        Same as ``record`` but never raises; returns None if the write failed.
        """
        try:
            return cls.record(*args, **kwargs)
        except StorageError as e:
            action = kwargs.get('action', args[0] if args else None)
            module = kwargs.get('module', args[2] if len(args) > 2 else None)
            tenant_id = kwargs.get('tenant_id')
            SecurityLogger.log_audit_write_failed(
                action=action, module=module, tenant_id=tenant_id, error=str(e)
            )
            capture_exception(e, audit={'action': action, 'module': module, 'tenant_id': tenant_id})
            return None

    @classmethod
    def last_occurrence(cls, action_tag: str, tenant_id=ANY_TENANT) -> Optional[AuditLog]:
        """
        Most recent entry with ``action_tag``, across all tenants unless
        ``tenant_id`` is given.

        Raises:
            StorageError: If the trail could not be read
        """
        qs = AuditLog.objects.by_action(action_tag)
        if tenant_id is not ANY_TENANT:
            qs = qs.filter(tenant_id=tenant_id)

        try:
            return qs.order_by('-created_at').first()
        except DatabaseError as e:
            raise StorageError(f"Audit trail could not be read for {action_tag}") from e

    @classmethod
    def entries(cls, tenant_id: Optional[str], action: Optional[str] = None,
                module: Optional[str] = None, user_id: Optional[str] = None) -> QuerySet:
        """Entries for one tenant, newest first, optionally filtered."""
        qs = AuditLog.objects.for_tenant(tenant_id)
        if action:
            qs = qs.by_action(action)
        if module:
            qs = qs.filter(module=module)
        if user_id:
            qs = qs.for_user(user_id)
        return qs.order_by('-created_at')


class SettingsHistoryService:
    """
    Service for the versioned history of configuration changes.
    """

    VALID_ACTIONS = {
        SettingsHistory.ACTION_CREATE,
        SettingsHistory.ACTION_UPDATE,
        SettingsHistory.ACTION_ROLLBACK,
    }

    @classmethod
    def record_change(cls, tenant_id: str, module: str, action: str,
                      previous_value: Any, new_value: Any, changed_by: str,
                      ip_address: Optional[str] = None) -> SettingsHistory:
        """
        Append a history entry exactly as given.

        Raises:
            ValidationError: Unknown action, or a create with a previous value
            StorageError: If the entry could not be written
        """
        if action not in cls.VALID_ACTIONS:
            raise ValidationError(
                f"Invalid history action '{action}'",
                details={'valid_actions': sorted(cls.VALID_ACTIONS)}
            )

        if action == SettingsHistory.ACTION_CREATE and previous_value is not None:
            raise ValidationError("A create entry cannot have a previous value")

        try:
            entry = SettingsHistory.objects.create(
                tenant_id=tenant_id,
                module=module,
                action=action,
                previous_value=previous_value,
                new_value=new_value,
                changed_by=changed_by,
                ip_address=ip_address,
            )
        except DatabaseError as e:
            logger.error(
                f"Failed to write settings history for {module}",
                extra={'audit_module': module, 'action': action, 'tenant_id': tenant_id},
                exc_info=True
            )
            raise StorageError(f"Settings history for {module} could not be written") from e

        logger.info(
            f"Settings history recorded: {module} {action}",
            extra={'audit_module': module, 'action': action, 'tenant_id': tenant_id, 'history_id': str(entry.id)}
        )
        return entry

    @classmethod
    def record_change_safely(cls, **kwargs) -> Optional[SettingsHistory]:
        """Same as ``record_change`` but returns None on storage failure."""
        try:
            return cls.record_change(**kwargs)
        except StorageError as e:
            SecurityLogger.log_audit_write_failed(
                action=kwargs.get('action'),
                module=kwargs.get('module'),
                tenant_id=kwargs.get('tenant_id'),
                error=str(e),
            )
            capture_exception(e, settings_history={
                'module': kwargs.get('module'),
                'tenant_id': kwargs.get('tenant_id'),
            })
            return None

    @classmethod
    def history(cls, tenant_id: str, module: str) -> QuerySet:
        """Entries for one module of one tenant, newest first."""
        return SettingsHistory.objects.for_module(tenant_id, module).order_by('-created_at')

    @classmethod
    def get_entry(cls, tenant_id: str, entry_id) -> SettingsHistory:
        """
        Load one entry, pinned to the tenant.

        Raises:
            NotFound: If no entry with that id belongs to the tenant
        """
        try:
            return SettingsHistory.objects.get(id=entry_id, tenant_id=tenant_id)
        except (SettingsHistory.DoesNotExist, ValueError, TypeError, DjangoValidationError):
            raise NotFound("Settings history entry not found")

    @classmethod
    def search(cls, tenant_id: str, module: Optional[str] = None, action: Optional[str] = None,
               changed_by: Optional[str] = None, start=None, end=None) -> QuerySet:
        qs = SettingsHistory.objects.filter(tenant_id=tenant_id)
        if module:
            qs = qs.filter(module=module)
        if action:
            qs = qs.filter(action=action)
        if changed_by:
            qs = qs.filter(changed_by=changed_by)
        if start:
            qs = qs.filter(created_at__gte=start)
        if end:
            qs = qs.filter(created_at__lte=end)
        return qs.order_by('-created_at')

    @classmethod
    def stats(cls, tenant_id: str, start=None, end=None) -> List[Dict[str, Any]]:
        """
        Change counts per (module, action) with the number of distinct changers.
        """
        qs = cls.search(tenant_id, start=start, end=end)
        rows = (
            qs.order_by()
            .values('module', 'action')
            .annotate(count=Count('id'), changers=Count('changed_by', distinct=True))
            .order_by('module', 'action')
        )
        return [
            {
                'module': row['module'],
                'action': row['action'],
                'count': row['count'],
                'changers': row['changers'],
            }
            for row in rows
        ]
