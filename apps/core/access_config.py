"""
Immutable access-control enumerations.

The recognized permissions, feature flags and roles are read from Django
settings once and frozen. Stores and gates take an ``AccessConfig`` in
their constructor instead of reading module globals.
"""
from dataclasses import dataclass
from functools import lru_cache
from typing import FrozenSet, Dict, Tuple

from django.conf import settings


@dataclass(frozen=True)
class AccessConfig:
    permissions: FrozenSet[str]
    feature_flags: FrozenSet[str]
    roles: FrozenSet[str]
    default_role_permissions: Tuple[Tuple[str, Tuple[str, ...]], ...] = ()

    @classmethod
    def from_settings(cls):
        defaults = getattr(settings, 'WARDEN_DEFAULT_ROLE_PERMISSIONS', {})
        return cls(
            permissions=frozenset(settings.WARDEN_PERMISSIONS),
            feature_flags=frozenset(settings.WARDEN_FEATURE_FLAGS),
            roles=frozenset(settings.WARDEN_ROLES),
            default_role_permissions=tuple(
                (name, tuple(perms)) for name, perms in defaults.items()
            ),
        )

    def is_known_permission(self, permission: str) -> bool:
        return permission in self.permissions

    def is_known_flag(self, flag_name: str) -> bool:
        return flag_name in self.feature_flags

    def is_known_role(self, role_name: str) -> bool:
        return role_name in self.roles

    def defaults(self) -> Dict[str, Tuple[str, ...]]:
        """Default permission sets for the seeded global roles."""
        return dict(self.default_role_permissions)


@lru_cache(maxsize=1)
def get_access_config() -> AccessConfig:
    """Process-wide AccessConfig built from settings on first use."""
    return AccessConfig.from_settings()
