"""
Sentry utilities for adding context and breadcrumbs.
"""
import sentry_sdk
from django.conf import settings


def set_tenant_context(tenant_id):
    """
    Tag the current Sentry scope with the tenant being worked on.

    Args:
        tenant_id: Tenant identifier (None for system-level work)
    """
    if not settings.SENTRY_DSN or not tenant_id:
        return

    sentry_sdk.set_tag("tenant_id", str(tenant_id))


def set_principal_context(principal):
    """
    Set principal context in Sentry for error tracking.

    Args:
        principal: Authenticated Principal
    """
    if not settings.SENTRY_DSN:
        return

    sentry_sdk.set_user({
        "id": str(principal.id),
        "tenant_id": str(principal.tenant_id),
        "role": principal.role,
    })
    set_tenant_context(principal.tenant_id)


def add_breadcrumb(category, message, level="info", data=None):
    """
    Add a breadcrumb to Sentry for debugging.

    Args:
        category: Category of the breadcrumb (e.g., "gate", "periodic", "audit")
        message: Human-readable message
        level: Severity level (debug, info, warning, error)
        data: Optional dictionary of additional data
    """
    if not settings.SENTRY_DSN:
        return

    sentry_sdk.add_breadcrumb(
        category=category,
        message=message,
        level=level,
        data=data or {}
    )


def capture_exception(exception, **kwargs):
    """
    Capture an exception in Sentry with optional context.

    Args:
        exception: The exception to capture
        **kwargs: Additional context to attach
    """
    if not settings.SENTRY_DSN:
        return

    with sentry_sdk.push_scope() as scope:
        for key, value in kwargs.items():
            scope.set_context(key, value)
        sentry_sdk.capture_exception(exception)


def start_transaction(name, op):
    """
    Start a Sentry transaction for performance monitoring.

    Args:
        name: Transaction name (e.g., "task.apps.core.tasks.run_periodic_task")
        op: Operation type (e.g., "celery.task")

    Returns:
        Transaction object or None if Sentry is not configured
    """
    if not settings.SENTRY_DSN:
        return None

    return sentry_sdk.start_transaction(name=name, op=op)
