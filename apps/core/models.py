"""
Core models for Tenant Warden.
Provides abstract bases with UUID primary keys, timestamps, explicit soft
delete and append-only persistence.
"""
import uuid
from django.db import models
from django.utils import timezone

from apps.core.exceptions import AppendOnlyViolation


class TimestampedModel(models.Model):
    """
    Abstract base with a UUID primary key and creation timestamp.
    """
    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier"
    )

    created_at = models.DateTimeField(
        default=timezone.now,
        db_index=True,
        help_text="Timestamp when the record was created"
    )

    class Meta:
        abstract = True
        ordering = ['-created_at']


class SoftDeleteQuerySet(models.QuerySet):
    """QuerySet with explicit soft delete filtering."""

    def active(self):
        """Rows that have not been soft deleted."""
        return self.filter(is_deleted=False)

    def deleted(self):
        """Rows that have been soft deleted."""
        return self.filter(is_deleted=True)

    def soft_delete(self):
        """Soft delete all objects in queryset."""
        return self.update(is_deleted=True, updated_at=timezone.now())


class BaseModel(TimestampedModel):
    """
    Abstract base model with UUID primary key, soft delete flag, and timestamps.

    The default manager returns every row. Read paths must call
    ``.active()`` themselves; nothing is hidden implicitly.
    """
    updated_at = models.DateTimeField(
        auto_now=True,
        db_index=True,
        help_text="Timestamp when the record was last updated"
    )

    is_deleted = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether the record has been soft deleted"
    )

    objects = SoftDeleteQuerySet.as_manager()

    class Meta:
        abstract = True
        ordering = ['-created_at']

    def soft_delete(self):
        """Mark the object as deleted without removing it."""
        self.is_deleted = True
        self.save(update_fields=['is_deleted', 'updated_at'])

    def restore(self):
        """Restore a soft-deleted object."""
        self.is_deleted = False
        self.save(update_fields=['is_deleted', 'updated_at'])

    def delete(self, using=None, keep_parents=False):
        """Soft delete the object."""
        self.soft_delete()


class AppendOnlyQuerySet(models.QuerySet):
    """QuerySet that refuses bulk mutation of existing rows."""

    def update(self, **kwargs):
        raise AppendOnlyViolation(
            f"{self.model.__name__} entries cannot be updated"
        )

    def delete(self):
        raise AppendOnlyViolation(
            f"{self.model.__name__} entries cannot be deleted"
        )


class AppendOnlyModel(TimestampedModel):
    """
    Abstract base for records that are written once and never changed.
    """

    objects = AppendOnlyQuerySet.as_manager()

    class Meta:
        abstract = True
        ordering = ['-created_at']

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise AppendOnlyViolation(
                f"{self.__class__.__name__} entries cannot be updated"
            )
        super().save(*args, **kwargs)

    def delete(self, using=None, keep_parents=False):
        raise AppendOnlyViolation(
            f"{self.__class__.__name__} entries cannot be deleted"
        )
