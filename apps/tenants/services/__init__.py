"""
Services for tenant configuration.
"""
from .feature_flag_service import FeatureFlagStore, FeatureFlagService, FlagChange, flag_snapshot

__all__ = [
    'FeatureFlagStore',
    'FeatureFlagService',
    'FlagChange',
    'flag_snapshot',
]
