"""
Public entry points for authorization, auditing and periodic jobs.

Callers outside this project use these functions rather than the stores and
services directly.
"""
from typing import Optional, Any

from apps.audit.services import AuditService, SettingsHistoryService
from apps.core.periodic import register_periodic_task
from apps.rbac.gate import get_permission_gate
from apps.tenants.services import FeatureFlagStore

__all__ = [
    'authorize',
    'authorize_role',
    'audit',
    'record_settings_change',
    'is_feature_enabled',
    'register_periodic_task',
]


def authorize(principal, permission: str, ip_address: Optional[str] = None):
    """Permission-based decision for ``principal``."""
    return get_permission_gate().authorize(principal, permission, ip_address=ip_address)


def authorize_role(principal, role: str, ip_address: Optional[str] = None):
    """Exact-role decision for ``principal``."""
    return get_permission_gate().authorize_role(principal, role, ip_address=ip_address)


def audit(action: str, principal, module: str, details=None, ip_address: Optional[str] = None):
    """
    Append an audit entry attributed to ``principal``.

    The entry's tenant is the principal's own tenant.
    """
    return AuditService.record(
        action=action,
        principal_id=principal.id,
        module=module,
        details=details,
        ip_address=ip_address,
        tenant_id=principal.tenant_id,
    )


def record_settings_change(tenant_id: str, module: str, action: str, previous_value: Any,
                           new_value: Any, changed_by: str, ip_address: Optional[str] = None):
    return SettingsHistoryService.record_change(
        tenant_id=tenant_id,
        module=module,
        action=action,
        previous_value=previous_value,
        new_value=new_value,
        changed_by=changed_by,
        ip_address=ip_address,
    )


def is_feature_enabled(tenant_id: str, flag_name: str) -> bool:
    return FeatureFlagStore().is_enabled(tenant_id, flag_name)
