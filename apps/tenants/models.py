"""
Tenant models.

A tenant is an opaque external identifier; this app stores per-tenant
configuration keyed by it.
"""
from django.db import models
from django.utils import timezone

from apps.core.models import BaseModel, SoftDeleteQuerySet


class TenantFeatureFlagsQuerySet(SoftDeleteQuerySet):

    def for_tenant(self, tenant_id):
        return self.filter(tenant_id=tenant_id)


class TenantFeatureFlags(BaseModel):
    """
    One document per tenant holding its feature flag entries.

    ``flags`` is an ordered list of entries::

        {"name": "data_masking", "enabled": true,
         "created_at": "...", "updated_at": "...", "is_deleted": false}

    A name appears at most once among non-deleted entries. Deleted entries
    are kept for history.
    """

    tenant_id = models.CharField(
        max_length=100,
        unique=True,
        help_text="Tenant owning these flags"
    )
    flags = models.JSONField(
        default=list,
        blank=True,
        help_text="Ordered flag entries"
    )

    objects = TenantFeatureFlagsQuerySet.as_manager()

    class Meta:
        db_table = 'tenant_feature_flags'
        verbose_name = 'Tenant Feature Flags'
        verbose_name_plural = 'Tenant Feature Flags'

    def __str__(self):
        return f"Feature flags for {self.tenant_id}"

    def active_entry(self, flag_name):
        """The non-deleted entry for ``flag_name``, or None."""
        for entry in self.flags or []:
            if entry.get('name') == flag_name and not entry.get('is_deleted', False):
                return entry
        return None

    def active_entries(self):
        return [entry for entry in self.flags or [] if not entry.get('is_deleted', False)]

    def is_feature_enabled(self, flag_name: str) -> bool:
        """
        Check if feature flag is enabled.

        Returns:
            bool: True only for an active, enabled entry on a live document
        """
        if self.is_deleted:
            return False
        entry = self.active_entry(flag_name)
        return bool(entry and entry.get('enabled', False))

    def upsert_entry(self, flag_name, enabled):
        """
        Update the active entry or append a new one.

        Returns:
            tuple: (previous entry copy or None, current entry copy)
        """
        now = timezone.now().isoformat()
        entry = self.active_entry(flag_name)
        previous = dict(entry) if entry else None

        if entry is None:
            entry = {
                'name': flag_name,
                'enabled': bool(enabled),
                'created_at': now,
                'updated_at': now,
                'is_deleted': False,
            }
            self.flags = list(self.flags or []) + [entry]
        else:
            entry['enabled'] = bool(enabled)
            entry['updated_at'] = now

        return previous, dict(entry)

    def delete_entry(self, flag_name):
        """
        Soft delete the active entry.

        Returns:
            tuple: (previous entry copy, current entry copy) or None if absent
        """
        entry = self.active_entry(flag_name)
        if entry is None:
            return None

        previous = dict(entry)
        entry['is_deleted'] = True
        entry['updated_at'] = timezone.now().isoformat()
        return previous, dict(entry)
