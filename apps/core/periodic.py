"""
Debounced periodic task runner.

A periodic task is triggered on a fixed schedule (Celery beat) but performs
its effect at most once per configured interval. The newest audit entry
carrying the task's action tag is the coordination signal, so the debounce
survives process restarts without a lock service.

This is a best-effort single-writer guard: two workers ticking at the same
instant may both run the effect.
"""
import logging
from datetime import timedelta
from enum import Enum
from importlib import import_module
from typing import Callable, Dict, Optional, Tuple

from django.conf import settings
from django.db import DatabaseError
from django.utils import timezone

from apps.core.exceptions import StorageError, NotFound
from apps.core.logging import SecurityLogger
from apps.core.sentry_utils import add_breadcrumb, capture_exception

logger = logging.getLogger(__name__)

SYSTEM_PRINCIPAL = 'system'
SYSTEM_IP_ADDRESS = '127.0.0.1'


class TickOutcome(str, Enum):
    SKIPPED = 'skipped'
    EXECUTED = 'executed'
    FAILED = 'failed'
    UNAVAILABLE = 'unavailable'
    RECORD_FAILED = 'record_failed'


class DebouncedPeriodicTask:
    """
    Runs ``effect`` when at least ``interval_provider(tenant_id)`` minutes
    have passed since the last audit entry tagged ``action_tag``.

    Args:
        action_tag: Audit action recorded after each successful run
        module: Audit module label
        interval_provider: Callable returning the interval in minutes
        effect: Zero-argument callable; its return value becomes the audit details
        schedule: Trigger period in seconds
        tenant_id: Tenant the task runs for (None for system-wide tasks)
        audit: Object exposing ``last_occurrence`` and ``record``
        clock: Callable returning the current aware datetime
    """

    def __init__(self, action_tag: str, module: str,
                 interval_provider: Callable[[Optional[str]], float],
                 effect: Callable[[], Optional[dict]],
                 schedule: float = 60.0, tenant_id: Optional[str] = None,
                 audit=None, clock: Callable = timezone.now):
        self.action_tag = action_tag
        self.module = module
        self.interval_provider = interval_provider
        self.effect = effect
        self.schedule = schedule
        self.tenant_id = tenant_id
        self._audit = audit
        self.clock = clock

    @property
    def audit(self):
        # audit models need a ready app registry; registration may happen earlier
        if self._audit is None:
            from apps.audit.services import AuditService
            self._audit = AuditService
        return self._audit

    def __repr__(self):
        return f"<DebouncedPeriodicTask {self.action_tag} every {self.schedule}s>"

    def is_due(self, now, interval_minutes, last_entry) -> bool:
        if last_entry is None:
            return True
        return now - last_entry.created_at >= timedelta(minutes=interval_minutes)

    def tick(self) -> TickOutcome:
        """
        Run one trigger of the task and report what happened.

        Never raises for storage or effect failures; the next trigger
        simply tries again.
        """
        log_extra = {'action_tag': self.action_tag, 'tenant_id': self.tenant_id}

        try:
            interval_minutes = self.interval_provider(self.tenant_id)
            last_entry = self.audit.last_occurrence(self.action_tag, tenant_id=self.tenant_id)
        except (StorageError, DatabaseError) as e:
            logger.warning(
                f"Periodic task {self.action_tag} skipped: storage unavailable",
                extra={**log_extra, 'error': str(e)}
            )
            return TickOutcome.UNAVAILABLE

        now = self.clock()
        if not self.is_due(now, interval_minutes, last_entry):
            logger.debug(
                f"Periodic task {self.action_tag} not due",
                extra={
                    **log_extra,
                    'interval_minutes': interval_minutes,
                    'last_run_at': last_entry.created_at.isoformat(),
                }
            )
            return TickOutcome.SKIPPED

        add_breadcrumb(
            category="periodic",
            message=f"Running periodic task {self.action_tag}",
            data=log_extra,
        )

        try:
            details = self.effect()
        except Exception as e:
            logger.error(
                f"Periodic task {self.action_tag} effect failed",
                extra={**log_extra, 'error': str(e)},
                exc_info=True
            )
            capture_exception(e, periodic_task=log_extra)
            return TickOutcome.FAILED

        try:
            self.audit.record(
                action=self.action_tag,
                principal_id=SYSTEM_PRINCIPAL,
                module=self.module,
                details=details or {},
                ip_address=SYSTEM_IP_ADDRESS,
                tenant_id=self.tenant_id,
                timestamp=now,
            )
        except StorageError as e:
            logger.error(
                f"Periodic task {self.action_tag} ran but its audit entry was not written",
                extra={**log_extra, 'error': str(e)}
            )
            SecurityLogger.log_audit_write_failed(
                action=self.action_tag,
                module=self.module,
                tenant_id=self.tenant_id,
                error=str(e),
            )
            return TickOutcome.RECORD_FAILED

        logger.info(
            f"Periodic task {self.action_tag} executed",
            extra=log_extra
        )
        return TickOutcome.EXECUTED


_registry: Dict[Tuple[str, Optional[str]], DebouncedPeriodicTask] = {}


def register_periodic_task(action_tag: str, schedule: float,
                           interval_provider: Callable[[Optional[str]], float],
                           effect: Callable[[], Optional[dict]],
                           module: str = 'System', tenant_id: Optional[str] = None,
                           **kwargs) -> DebouncedPeriodicTask:
    """
    Register a debounced task under ``(action_tag, tenant_id)``.

    Registering the same tag for the same tenant again replaces the earlier
    task; other tenants' registrations are kept.
    """
    task = DebouncedPeriodicTask(
        action_tag=action_tag,
        module=module,
        interval_provider=interval_provider,
        effect=effect,
        schedule=schedule,
        tenant_id=tenant_id,
        **kwargs
    )
    _registry[(action_tag, tenant_id)] = task
    logger.debug(
        f"Registered periodic task {action_tag}",
        extra={'schedule': schedule, 'tenant_id': tenant_id}
    )
    return task


def unregister_periodic_task(action_tag: str, tenant_id: Optional[str] = None):
    _registry.pop((action_tag, tenant_id), None)


def get_periodic_task(action_tag: str, tenant_id: Optional[str] = None) -> DebouncedPeriodicTask:
    try:
        return _registry[(action_tag, tenant_id)]
    except KeyError:
        raise NotFound(f"No periodic task registered for {action_tag} (tenant {tenant_id or 'system'})")


def registered_tasks():
    return list(_registry.values())


def autodiscover_periodic_tasks():
    """
    Import every module listed in WARDEN_PERIODIC_TASK_MODULES and call its
    ``register_periodic_tasks()`` hook.
    """
    for module_path in getattr(settings, 'WARDEN_PERIODIC_TASK_MODULES', []):
        module = import_module(module_path)
        hook = getattr(module, 'register_periodic_tasks', None)
        if hook is not None:
            hook()
    return registered_tasks()
