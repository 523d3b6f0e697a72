"""
Permission gates.

Two independent checks, selected per operation:
- ``authorize``: the principal's stored role must grant a permission
- ``authorize_role``: the principal's role name must equal a required role

Both fail closed. The tenant a decision is scoped to always comes from the
principal, never from request input.
"""
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from apps.core.access_config import AccessConfig, get_access_config
from apps.core.exceptions import NotFound, StorageError, PermissionDenied
from apps.core.logging import SecurityLogger
from apps.rbac.services import RoleStore

logger = logging.getLogger(__name__)

PERMISSION_DENIED = 'Permission denied'
INVALID_ROLE = 'Invalid user role'
INSUFFICIENT_PERMISSIONS = 'Insufficient permissions'


@dataclass(frozen=True)
class AuthorizationDecision:
    allowed: bool
    message: Optional[str] = None

    @classmethod
    def allow(cls):
        return cls(allowed=True)

    @classmethod
    def deny(cls, message):
        return cls(allowed=False, message=message)

    def __bool__(self):
        return self.allowed


class PermissionGate:
    """
    Decides whether a principal may perform an action.

    Denials carry one message per gate regardless of cause; the cause is
    only written to the security log.
    """

    def __init__(self, config: Optional[AccessConfig] = None, role_store: Optional[RoleStore] = None):
        self.config = config or get_access_config()
        self.role_store = role_store or RoleStore(self.config)

    def _deny(self, principal, required, cause, message, ip_address):
        SecurityLogger.log_permission_denied(principal, required=required, cause=cause, ip_address=ip_address)
        return AuthorizationDecision.deny(message)

    def authorize(self, principal, required_permission: str, ip_address: Optional[str] = None) -> AuthorizationDecision:
        """
        Allow only if the principal's resolved role grants ``required_permission``.
        """
        if principal is None:
            return self._deny(None, required_permission, 'unauthenticated', PERMISSION_DENIED, ip_address)

        try:
            role = self.role_store.resolve_role(principal.tenant_id, principal.role)
        except NotFound as e:
            return self._deny(principal, required_permission, e.__class__.__name__, PERMISSION_DENIED, ip_address)
        except StorageError:
            return self._deny(principal, required_permission, 'storage_unavailable', PERMISSION_DENIED, ip_address)

        if not self.role_store.has_permission(role, required_permission):
            return self._deny(principal, required_permission, 'permission_absent', PERMISSION_DENIED, ip_address)

        logger.debug(
            f"Permission granted: {required_permission}",
            extra={'tenant_id': principal.tenant_id, 'role': principal.role}
        )
        return AuthorizationDecision.allow()

    def authorize_role(self, principal, required_role: str, ip_address: Optional[str] = None) -> AuthorizationDecision:
        """
        Allow only if the principal's role is recognized and equals ``required_role``.

        Stored role permissions are not consulted.
        """
        role_name = getattr(principal, 'role', None)

        if not role_name or not self.config.is_known_role(role_name):
            return self._deny(principal, required_role, 'unrecognized_role', INVALID_ROLE, ip_address)

        if role_name != required_role:
            return self._deny(principal, required_role, 'role_mismatch', INSUFFICIENT_PERMISSIONS, ip_address)

        return AuthorizationDecision.allow()

    def require(self, principal, required_permission: str, ip_address: Optional[str] = None):
        """
        Raises:
            PermissionDenied: If ``authorize`` denies
        """
        decision = self.authorize(principal, required_permission, ip_address=ip_address)
        if not decision.allowed:
            raise PermissionDenied(decision.message)

    def require_role(self, principal, required_role: str, ip_address: Optional[str] = None):
        """
        Raises:
            PermissionDenied: If ``authorize_role`` denies
        """
        decision = self.authorize_role(principal, required_role, ip_address=ip_address)
        if not decision.allowed:
            raise PermissionDenied(decision.message)


@lru_cache(maxsize=1)
def get_permission_gate() -> PermissionGate:
    return PermissionGate(get_access_config())
