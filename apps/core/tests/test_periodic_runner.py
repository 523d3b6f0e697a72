"""
Tests for the debounced periodic task runner.

The newest audit entry with the task's action tag anchors the interval:
a tick inside the interval does nothing, a tick after it runs the effect
and writes a new entry. Failed effects write nothing so the next tick
retries.
"""
from datetime import datetime, timedelta
from unittest.mock import Mock

import pytest
import pytz
from django.db import DatabaseError

from apps.audit.models import AuditLog
from apps.core.exceptions import JobEffectError, NotFound, StorageError
from apps.core.periodic import (
    DebouncedPeriodicTask,
    TickOutcome,
    get_periodic_task,
    register_periodic_task,
    registered_tasks,
    unregister_periodic_task,
)

T0 = datetime(2024, 3, 1, 12, 0, 0, tzinfo=pytz.utc)


class FakeClock:
    """Settable clock for driving ticks at chosen instants."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


def make_task(effect=None, interval=5, clock=None, audit=None, tenant_id=None):
    return DebouncedPeriodicTask(
        action_tag='TEST_SYNC',
        module='Testing',
        interval_provider=lambda tenant: interval,
        effect=effect or (lambda: {'ran': True}),
        tenant_id=tenant_id,
        audit=audit,
        clock=clock or FakeClock(T0),
    )


@pytest.mark.django_db
class TestDebounce:
    """Interval of 5 minutes: ticks 2 minutes apart run once, 6 minutes apart run twice."""

    def test_first_tick_runs_when_no_prior_entry(self):
        effect = Mock(return_value={'server': 'pool.ntp.org'})
        task = make_task(effect=effect)

        assert task.tick() == TickOutcome.EXECUTED
        effect.assert_called_once()

        entries = AuditLog.objects.by_action('TEST_SYNC')
        assert entries.count() == 1
        entry = entries.get()
        assert entry.user_id == 'system'
        assert entry.module == 'Testing'
        assert entry.ip_address == '127.0.0.1'
        assert entry.details == {'server': 'pool.ntp.org'}
        assert entry.created_at == T0

    def test_ticks_two_minutes_apart_run_once(self):
        clock = FakeClock(T0)
        effect = Mock(return_value=None)
        task = make_task(effect=effect, clock=clock)

        assert task.tick() == TickOutcome.EXECUTED
        clock.advance(minutes=2)
        assert task.tick() == TickOutcome.SKIPPED

        assert effect.call_count == 1
        assert AuditLog.objects.by_action('TEST_SYNC').count() == 1

    def test_ticks_six_minutes_apart_run_twice(self):
        clock = FakeClock(T0)
        effect = Mock(return_value=None)
        task = make_task(effect=effect, clock=clock)

        assert task.tick() == TickOutcome.EXECUTED
        clock.advance(minutes=6)
        assert task.tick() == TickOutcome.EXECUTED

        assert effect.call_count == 2
        assert AuditLog.objects.by_action('TEST_SYNC').count() == 2

    def test_exact_interval_boundary_runs(self):
        clock = FakeClock(T0)
        task = make_task(clock=clock)

        task.tick()
        clock.advance(minutes=5)

        assert task.tick() == TickOutcome.EXECUTED

    def test_interval_is_read_on_every_tick(self):
        clock = FakeClock(T0)
        intervals = iter([5, 1])
        task = DebouncedPeriodicTask(
            action_tag='TEST_SYNC',
            module='Testing',
            interval_provider=lambda tenant: next(intervals),
            effect=lambda: None,
            clock=clock,
        )

        task.tick()
        clock.advance(minutes=2)

        assert task.tick() == TickOutcome.EXECUTED

    def test_entries_of_other_tenants_do_not_debounce(self):
        clock = FakeClock(T0)
        make_task(clock=clock, tenant_id='tenant-a').tick()

        task_b = make_task(clock=clock, tenant_id='tenant-b')

        assert task_b.tick() == TickOutcome.EXECUTED


@pytest.mark.django_db
class TestFailures:

    def test_failed_effect_writes_no_entry_and_retries_next_tick(self):
        clock = FakeClock(T0)
        effect = Mock(side_effect=[JobEffectError("all servers down"), {'ok': True}])
        task = make_task(effect=effect, clock=clock)

        assert task.tick() == TickOutcome.FAILED
        assert AuditLog.objects.by_action('TEST_SYNC').count() == 0

        clock.advance(seconds=30)
        assert task.tick() == TickOutcome.EXECUTED
        assert AuditLog.objects.by_action('TEST_SYNC').count() == 1

    def test_unexpected_effect_error_is_contained(self):
        task = make_task(effect=Mock(side_effect=RuntimeError("boom")))

        assert task.tick() == TickOutcome.FAILED

    def test_unreadable_trail_skips_tick(self):
        audit = Mock()
        audit.last_occurrence.side_effect = StorageError("down")
        effect = Mock()
        task = make_task(effect=effect, audit=audit)

        assert task.tick() == TickOutcome.UNAVAILABLE
        effect.assert_not_called()
        audit.record.assert_not_called()

    def test_interval_lookup_database_error_skips_tick(self):
        effect = Mock()
        task = DebouncedPeriodicTask(
            action_tag='TEST_SYNC',
            module='Testing',
            interval_provider=Mock(side_effect=DatabaseError("down")),
            effect=effect,
            audit=Mock(),
        )

        assert task.tick() == TickOutcome.UNAVAILABLE
        effect.assert_not_called()

    def test_record_failure_is_reported(self):
        audit = Mock()
        audit.last_occurrence.return_value = None
        audit.record.side_effect = StorageError("disk full")
        task = make_task(audit=audit)

        assert task.tick() == TickOutcome.RECORD_FAILED
        audit.record.assert_called_once()
        assert audit.record.call_args.kwargs['timestamp'] == T0


class TestRegistry:

    def teardown_method(self):
        for tenant_id in (None, 'tenant-a', 'tenant-b'):
            unregister_periodic_task('TEST_REGISTERED', tenant_id=tenant_id)

    def test_register_and_lookup(self):
        task = register_periodic_task(
            'TEST_REGISTERED',
            schedule=30.0,
            interval_provider=lambda tenant: 1,
            effect=lambda: None,
        )

        assert get_periodic_task('TEST_REGISTERED') is task
        assert task in registered_tasks()
        assert task.schedule == 30.0
        assert task.module == 'System'

    def test_registering_again_replaces(self):
        first = register_periodic_task('TEST_REGISTERED', 30.0, lambda t: 1, lambda: None)
        second = register_periodic_task('TEST_REGISTERED', 60.0, lambda t: 1, lambda: None)

        assert get_periodic_task('TEST_REGISTERED') is second
        assert first not in registered_tasks()

    def test_same_tag_for_two_tenants_is_kept_apart(self):
        acme = register_periodic_task('TEST_REGISTERED', 60.0, lambda t: 1, lambda: None, tenant_id='tenant-a')
        globex = register_periodic_task('TEST_REGISTERED', 60.0, lambda t: 1, lambda: None, tenant_id='tenant-b')

        assert acme in registered_tasks()
        assert globex in registered_tasks()
        assert get_periodic_task('TEST_REGISTERED', tenant_id='tenant-a') is acme
        assert get_periodic_task('TEST_REGISTERED', tenant_id='tenant-b') is globex
        with pytest.raises(NotFound):
            get_periodic_task('TEST_REGISTERED')

        unregister_periodic_task('TEST_REGISTERED', tenant_id='tenant-a')
        assert acme not in registered_tasks()
        assert globex in registered_tasks()

    def test_unknown_tag_raises(self):
        with pytest.raises(NotFound):
            get_periodic_task('NOT_REGISTERED')

    def test_startup_registers_ntp_sync(self):
        assert get_periodic_task('SYNC_NTP').module == 'SystemSettings'
