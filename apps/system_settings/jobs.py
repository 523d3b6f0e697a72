"""
Periodic jobs for system settings.

Listed in WARDEN_PERIODIC_TASK_MODULES; ``register_periodic_tasks`` is
called at startup and by the Celery beat setup.
"""
from django.conf import settings

from apps.core.periodic import register_periodic_task

SYNC_NTP = 'SYNC_NTP'
SYNC_NTP_MODULE = 'SystemSettings'


def _interval(tenant_id):
    from apps.system_settings.services import sync_interval_minutes
    return sync_interval_minutes(tenant_id)


def _sync_ntp():
    from apps.system_settings.services import sync_with_ntp_server
    result = sync_with_ntp_server()
    return {'time': result['time'], 'server': result['server']}


def register_periodic_tasks():
    register_periodic_task(
        SYNC_NTP,
        schedule=getattr(settings, 'WARDEN_NTP_SYNC_SCHEDULE_SECONDS', 60.0),
        interval_provider=_interval,
        effect=_sync_ntp,
        module=SYNC_NTP_MODULE,
    )
