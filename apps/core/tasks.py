"""
Base Celery task classes with enhanced logging and error handling, and the
task that drives registered periodic jobs.
"""
import logging
from celery import Task, shared_task
from apps.core.sentry_utils import add_breadcrumb, capture_exception, start_transaction

logger = logging.getLogger(__name__)


class LoggedTask(Task):
    """
    Base task class with enhanced logging and Sentry integration.

    This task class automatically:
    - Logs task start with parameters
    - Logs task completion with result summary
    - Logs task failures with error details
    - Sends failures to Sentry with context
    """

    def __call__(self, *args, **kwargs):
        task_id = self.request.id
        task_name = self.name

        transaction = start_transaction(
            name=f"task.{task_name}",
            op="celery.task"
        )

        try:
            logger.info(
                f"Task started: {task_name}",
                extra={
                    'task_id': task_id,
                    'task_name': task_name,
                    'task_args': self._sanitize_args(args),
                    'kwargs': self._sanitize_kwargs(kwargs),
                }
            )

            add_breadcrumb(
                category="task",
                message=f"Task started: {task_name}",
                level="info",
                data={'task_id': task_id, 'task_name': task_name}
            )

            result = super().__call__(*args, **kwargs)

            logger.info(
                f"Task completed: {task_name}",
                extra={
                    'task_id': task_id,
                    'task_name': task_name,
                    'result': self._sanitize_result(result),
                }
            )

            if transaction:
                transaction.set_status("ok")
                transaction.finish()

            return result

        except Exception as exc:
            logger.error(
                f"Task failed: {task_name}",
                extra={
                    'task_id': task_id,
                    'task_name': task_name,
                    'exception': str(exc),
                    'task_args': self._sanitize_args(args),
                    'kwargs': self._sanitize_kwargs(kwargs),
                },
                exc_info=True
            )

            capture_exception(
                exc,
                task={
                    'task_id': task_id,
                    'task_name': task_name,
                    'task_args': self._sanitize_args(args),
                }
            )

            if transaction:
                transaction.set_status("internal_error")
                transaction.finish()

            raise

    def _sanitize_args(self, args):
        if not args:
            return []

        sanitized = list(args)
        if len(sanitized) > 10:
            sanitized = sanitized[:10] + ['... (truncated)']

        return sanitized

    def _sanitize_kwargs(self, kwargs):
        if not kwargs:
            return {}

        sensitive_keys = {'password', 'token', 'secret', 'api_key'}

        return {
            key: '********' if any(s in key.lower() for s in sensitive_keys) else value
            for key, value in kwargs.items()
        }

    def _sanitize_result(self, result):
        if result is None:
            return None

        result_str = str(result)
        if len(result_str) > 200:
            return result_str[:200] + '... (truncated)'

        return result_str


@shared_task(base=LoggedTask, name='apps.core.tasks.run_periodic_task')
def run_periodic_task(action_tag, tenant_id=None):
    """
    Tick the periodic task registered under ``action_tag`` for ``tenant_id``
    (None for system-wide tasks).

    Beat fires this on the task's schedule; the task itself decides whether
    its interval has elapsed.

    Returns:
        str: TickOutcome value
    """
    from apps.core.periodic import get_periodic_task

    task = get_periodic_task(action_tag, tenant_id=tenant_id)
    outcome = task.tick()
    return outcome.value
