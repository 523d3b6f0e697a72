"""
Feature flag storage and administration.

FeatureFlagStore is the low-level read/write path used by authorization
checks. FeatureFlagService wraps it for administrative changes and records
audit and settings history entries.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Dict, Any, List

from django.db import DatabaseError, transaction

from apps.audit.models import SettingsHistory
from apps.audit.services import AuditService, SettingsHistoryService
from apps.core.access_config import AccessConfig, get_access_config
from apps.core.exceptions import InvalidFlag, NotFound, StorageError, ValidationError
from apps.tenants.models import TenantFeatureFlags

logger = logging.getLogger(__name__)

AUDIT_MODULE = 'FeatureFlags'
HISTORY_MODULE = 'featureFlag'


def flag_snapshot(entry: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """History representation of a flag entry."""
    if entry is None:
        return None
    return {
        'name': entry['name'],
        'enabled': bool(entry.get('enabled', False)),
        'is_deleted': bool(entry.get('is_deleted', False)),
    }


@dataclass(frozen=True)
class FlagChange:
    previous: Optional[Dict[str, Any]]
    current: Dict[str, Any]

    @property
    def created(self):
        return self.previous is None


class FeatureFlagStore:
    """
    Per-tenant feature flags, one document per tenant.
    """

    def __init__(self, config: Optional[AccessConfig] = None):
        self.config = config or get_access_config()

    def _check_name(self, flag_name: str):
        if not self.config.is_known_flag(flag_name):
            raise InvalidFlag(
                f"Unknown feature flag '{flag_name}'",
                details={'valid_flags': sorted(self.config.feature_flags)}
            )

    def is_enabled(self, tenant_id: str, flag_name: str) -> bool:
        """
        True only if the tenant has an active, enabled entry for a recognized
        flag. Never raises; storage failures read as disabled.
        """
        if not self.config.is_known_flag(flag_name):
            return False

        try:
            document = TenantFeatureFlags.objects.active().for_tenant(tenant_id).first()
        except DatabaseError:
            logger.error(
                f"Feature flag lookup failed for {flag_name}",
                extra={'tenant_id': tenant_id, 'flag': flag_name},
                exc_info=True
            )
            return False

        return bool(document and document.is_feature_enabled(flag_name))

    def set_flag(self, tenant_id: str, flag_name: str, enabled: bool) -> FlagChange:
        """
        Create or update a flag, creating the tenant document if needed.

        Raises:
            InvalidFlag: Unrecognized flag name
            StorageError: Storage could not be written
        """
        self._check_name(flag_name)

        try:
            with transaction.atomic():
                document = self._locked_document(tenant_id, create=True)
                previous, current = document.upsert_entry(flag_name, enabled)
                document.save()
        except DatabaseError as e:
            logger.error(
                f"Feature flag write failed for {flag_name}",
                extra={'tenant_id': tenant_id, 'flag': flag_name},
                exc_info=True
            )
            raise StorageError("Feature flag storage unavailable") from e

        return FlagChange(previous=previous, current=current)

    def delete_flag(self, tenant_id: str, flag_name: str) -> FlagChange:
        """
        Soft delete a flag entry.

        Raises:
            InvalidFlag: Unrecognized flag name
            NotFound: No active entry
            StorageError: Storage could not be written
        """
        self._check_name(flag_name)

        try:
            with transaction.atomic():
                document = self._locked_document(tenant_id, create=False)
                result = document.delete_entry(flag_name) if document else None
                if result is None:
                    raise NotFound(f"Feature flag '{flag_name}' not found")
                document.save()
        except DatabaseError as e:
            raise StorageError("Feature flag storage unavailable") from e

        previous, current = result
        return FlagChange(previous=previous, current=current)

    def get_flag(self, tenant_id: str, flag_name: str) -> Dict[str, Any]:
        """
        Raises:
            InvalidFlag: Unrecognized flag name
            NotFound: No active entry
        """
        self._check_name(flag_name)
        document = self._document(tenant_id)
        entry = document.active_entry(flag_name) if document else None
        if entry is None:
            raise NotFound(f"Feature flag '{flag_name}' not found")
        return dict(entry)

    def list_flags(self, tenant_id: str) -> List[Dict[str, Any]]:
        """Active entries for the tenant, in insertion order."""
        document = self._document(tenant_id)
        return [dict(entry) for entry in document.active_entries()] if document else []

    def _document(self, tenant_id):
        try:
            return TenantFeatureFlags.objects.active().for_tenant(tenant_id).first()
        except DatabaseError as e:
            raise StorageError("Feature flag storage unavailable") from e

    def _locked_document(self, tenant_id, create):
        document = (
            TenantFeatureFlags.objects.select_for_update()
            .for_tenant(tenant_id)
            .first()
        )
        if document is None and create:
            document, _ = TenantFeatureFlags.objects.get_or_create(tenant_id=tenant_id)
        if document is not None and document.is_deleted:
            if not create:
                return None
            document.is_deleted = False
        return document


class FeatureFlagService:
    """
    Administrative feature flag changes with audit and settings history.
    """

    @classmethod
    def _store(cls):
        return FeatureFlagStore(get_access_config())

    @classmethod
    def _record(cls, tenant_id, audit_action, change: FlagChange, changed_by, ip_address):
        previous = flag_snapshot(change.previous)
        new = flag_snapshot(change.current)

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
            action=SettingsHistory.ACTION_CREATE if previous is None else SettingsHistory.ACTION_UPDATE,
            previous_value=previous,
            new_value=new,
            changed_by=changed_by,
            ip_address=ip_address,
        )

    @classmethod
    def set_flag(cls, tenant_id: str, flag_name: str, enabled: bool, changed_by: str,
                 ip_address: Optional[str] = None) -> FlagChange:
        if not isinstance(enabled, bool):
            raise ValidationError("'enabled' must be a boolean")

        change = cls._store().set_flag(tenant_id, flag_name, enabled)
        action = 'CREATE_FEATURE_FLAG' if change.created else 'UPDATE_FEATURE_FLAG'
        cls._record(tenant_id, action, change, changed_by, ip_address)

        logger.info(
            f"Feature flag {flag_name} set to {enabled}",
            extra={'tenant_id': tenant_id, 'flag': flag_name}
        )
        return change

    @classmethod
    def bulk_create_flags(cls, tenant_id: str, flags: List[Dict[str, Any]], changed_by: str,
                          ip_address: Optional[str] = None) -> List[FlagChange]:
        """
        Create several flags, skipping names that are already active.

        Raises:
            ValidationError: Every flag already exists
        """
        store = cls._store()
        for data in flags:
            store._check_name(data.get('name'))

        existing = {entry['name'] for entry in store.list_flags(tenant_id)}
        new_flags = [data for data in flags if data['name'] not in existing]
        if not new_flags:
            raise ValidationError("All provided flags already exist")

        changes = [store.set_flag(tenant_id, data['name'], bool(data.get('enabled', False))) for data in new_flags]

        AuditService.record_safely(
            action='BULK_CREATE_FEATURE_FLAGS',
            principal_id=changed_by,
            module=AUDIT_MODULE,
            details={'flags': [flag_snapshot(change.current) for change in changes]},
            ip_address=ip_address,
            tenant_id=tenant_id,
        )
        for change in changes:
            SettingsHistoryService.record_change_safely(
                tenant_id=tenant_id,
                module=HISTORY_MODULE,
                action=SettingsHistory.ACTION_CREATE,
                previous_value=None,
                new_value=flag_snapshot(change.current),
                changed_by=changed_by,
                ip_address=ip_address,
            )
        return changes

    @classmethod
    def toggle_flag(cls, tenant_id: str, flag_name: str, changed_by: str,
                    ip_address: Optional[str] = None) -> FlagChange:
        """
        Invert an existing flag.

        Raises:
            NotFound: No active entry
        """
        store = cls._store()
        current = store.get_flag(tenant_id, flag_name)
        change = store.set_flag(tenant_id, flag_name, not current.get('enabled', False))
        cls._record(tenant_id, 'TOGGLE_FEATURE_FLAG', change, changed_by, ip_address)
        return change

    @classmethod
    def delete_flag(cls, tenant_id: str, flag_name: str, changed_by: str,
                    ip_address: Optional[str] = None) -> FlagChange:
        change = cls._store().delete_flag(tenant_id, flag_name)
        cls._record(tenant_id, 'DELETE_FEATURE_FLAG', change, changed_by, ip_address)

        logger.info(
            f"Feature flag {flag_name} deleted",
            extra={'tenant_id': tenant_id, 'flag': flag_name}
        )
        return change

    @classmethod
    def list_flags(cls, tenant_id: str) -> List[Dict[str, Any]]:
        return cls._store().list_flags(tenant_id)

    @classmethod
    def current_snapshot(cls, tenant_id: str, snapshot: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Current state of the flag a history snapshot refers to (None if absent)."""
        store = cls._store()
        try:
            return flag_snapshot(store.get_flag(tenant_id, snapshot['name']))
        except NotFound:
            return None

    @classmethod
    def restore_snapshot(cls, tenant_id: str, snapshot: Dict[str, Any]) -> Dict[str, Any]:
        """
        Bring a flag back to a snapshot taken from settings history.

        Used by settings rollback; the caller records history and audit.
        """
        store = cls._store()
        name = snapshot.get('name')
        if snapshot.get('is_deleted'):
            try:
                store.delete_flag(tenant_id, name)
            except NotFound:
                # already absent
                pass
        else:
            store.set_flag(tenant_id, name, bool(snapshot.get('enabled', False)))
        return flag_snapshot({'name': name, 'enabled': snapshot.get('enabled', False),
                              'is_deleted': snapshot.get('is_deleted', False)})
