"""
Settings rollback.

Restores a configuration module to the value it had before a recorded
change. Rollback adds a new history entry; earlier entries are never
altered or removed.
"""
import logging
from collections import namedtuple
from typing import Optional, Dict, Any

from apps.audit.models import SettingsHistory
from apps.audit.services import AuditService, SettingsHistoryService
from apps.core.exceptions import ValidationError
from apps.rbac.services import RoleService
from apps.system_settings.modules import EnterpriseInfraService, SecurityFrameworkService
from apps.system_settings.services import CoreSystemConfigService
from apps.tenants.services import FeatureFlagService

logger = logging.getLogger(__name__)

RollbackHandler = namedtuple('RollbackHandler', ['current', 'restore'])

ROLLBACK_HANDLERS = {
    'role': RollbackHandler(RoleService.current_snapshot, RoleService.restore_snapshot),
    'featureFlag': RollbackHandler(FeatureFlagService.current_snapshot, FeatureFlagService.restore_snapshot),
    'coreSystemConfig': RollbackHandler(CoreSystemConfigService.current_snapshot, CoreSystemConfigService.restore_snapshot),
    'securityFramework': RollbackHandler(SecurityFrameworkService.current_snapshot, SecurityFrameworkService.restore_snapshot),
    'enterpriseInfra': RollbackHandler(EnterpriseInfraService.current_snapshot, EnterpriseInfraService.restore_snapshot),
}


def rollback_settings(tenant_id: Optional[str], history_id, changed_by: str,
                      ip_address: Optional[str] = None) -> Dict[str, Any]:
    """
    Re-apply the ``previous_value`` of a history entry.

    Args:
        tenant_id: Tenant the entry must belong to
        history_id: SettingsHistory id to roll back
        changed_by: Principal performing the rollback
        ip_address: Caller IP

    Returns:
        dict: {'module', 'restored', 'replaced', 'history_id'}; ``history_id``
        is None if the rollback entry could not be written

    Raises:
        NotFound: Entry missing or owned by another tenant
        ValidationError: Entry has no previous value or its module cannot be rolled back
    """
    entry = SettingsHistoryService.get_entry(tenant_id, history_id)

    if entry.previous_value is None:
        raise ValidationError("History entry has no previous value to restore")

    handler = ROLLBACK_HANDLERS.get(entry.module)
    if handler is None:
        raise ValidationError(f"Module '{entry.module}' does not support rollback")

    replaced = handler.current(tenant_id, entry.previous_value)
    handler.restore(tenant_id, entry.previous_value)

    rollback_entry = SettingsHistoryService.record_change_safely(
        tenant_id=tenant_id,
        module=entry.module,
        action=SettingsHistory.ACTION_ROLLBACK,
        previous_value=replaced,
        new_value=entry.previous_value,
        changed_by=changed_by,
        ip_address=ip_address,
    )

    AuditService.record_safely(
        action='ROLLBACK_SETTINGS',
        principal_id=changed_by,
        module=entry.module,
        details={'history_id': str(entry.id), 'restored': entry.previous_value},
        ip_address=ip_address,
        tenant_id=tenant_id,
    )

    logger.info(
        f"Settings rolled back for {entry.module}",
        extra={'tenant_id': tenant_id, 'history_id': str(entry.id)}
    )

    return {
        'module': entry.module,
        'restored': entry.previous_value,
        'replaced': replaced,
        'history_id': str(rollback_entry.id) if rollback_entry else None,
    }
