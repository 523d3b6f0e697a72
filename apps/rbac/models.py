"""
RBAC models for multi-tenant access control.

Implements:
- Role: a named set of permission strings, scoped to a tenant or global
"""
import logging
from django.db import models
from django.db.models import Q

from apps.core.models import BaseModel, SoftDeleteQuerySet

logger = logging.getLogger(__name__)


class RoleQuerySet(SoftDeleteQuerySet):
    """QuerySet for Role lookups. Soft-deleted rows are filtered explicitly."""

    def for_tenant(self, tenant_id):
        """Roles defined for a specific tenant."""
        return self.filter(tenant_id=tenant_id)

    def global_roles(self):
        """Roles that apply to every tenant."""
        return self.filter(tenant_id__isnull=True)

    def by_name(self, name):
        return self.filter(name=name)


class Role(BaseModel):
    """
    Role definition.

    ``tenant_id`` null marks a global role that any tenant falls back to
    when it has no role of its own with the same name.
    """

    tenant_id = models.CharField(
        max_length=100,
        null=True,
        blank=True,
        db_index=True,
        help_text="Tenant this role belongs to (null for global roles)"
    )
    name = models.CharField(
        max_length=100,
        help_text="Role name (e.g., 'superadmin', 'admin')"
    )
    permissions = models.JSONField(
        default=list,
        blank=True,
        help_text="Permission strings granted by this role"
    )

    objects = RoleQuerySet.as_manager()

    class Meta:
        db_table = 'roles'
        ordering = ['tenant_id', 'name']
        constraints = [
            models.UniqueConstraint(
                fields=['tenant_id', 'name'],
                condition=Q(is_deleted=False, tenant_id__isnull=False),
                name='unique_active_tenant_role_name',
            ),
            models.UniqueConstraint(
                fields=['name'],
                condition=Q(is_deleted=False, tenant_id__isnull=True),
                name='unique_active_global_role_name',
            ),
        ]
        indexes = [
            models.Index(fields=['tenant_id', 'name']),
        ]

    def __str__(self):
        return f"{self.tenant_id or 'global'} - {self.name}"

    @property
    def is_global(self):
        return self.tenant_id is None

    def has_permission(self, permission):
        """Check if role grants a specific permission."""
        return permission in (self.permissions or [])

    def to_snapshot(self):
        """Serializable state used for audit and settings history."""
        return {
            'id': str(self.id),
            'tenant_id': self.tenant_id,
            'name': self.name,
            'permissions': list(self.permissions or []),
            'is_deleted': self.is_deleted,
        }
