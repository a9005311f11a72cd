"""Tests for scheduler.py: one-shot triggers, cancellation, teardown."""

import threading
import time
from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest
from apscheduler.schedulers.background import BackgroundScheduler

from echomind.config import TZ
from echomind.scheduling.scheduler import (
    PendingReminder,
    ReminderScheduler,
    SchedulingError,
)


class Recorder:
    """on_fire callback that records reminders and signals each firing."""

    def __init__(self):
        self.fired: list[PendingReminder] = []
        self.event = threading.Event()

    def __call__(self, reminder):
        self.fired.append(reminder)
        self.event.set()


@pytest.fixture()
def recorder():
    return Recorder()


@pytest.fixture()
def scheduler(recorder):
    rs = ReminderScheduler(recorder)
    rs.start()
    yield rs
    rs.shutdown()


def _soon(seconds: float = 0.3) -> datetime:
    return datetime.now(TZ) + timedelta(seconds=seconds)


def test_schedule_returns_id_and_lists_pending(scheduler):
    when = datetime.now(TZ) + timedelta(hours=1)

    rid = scheduler.schedule("call mom", when)

    assert isinstance(rid, str) and rid
    assert scheduler.list_pending() == [
        PendingReminder(id=rid, task="call mom", scheduled_time=when)
    ]


def test_ids_are_unique(scheduler):
    when = datetime.now(TZ) + timedelta(hours=1)

    ids = {scheduler.schedule(f"task {i}", when) for i in range(50)}

    assert len(ids) == 50


def test_list_pending_sorted_and_hides_job(scheduler):
    now = datetime.now(TZ)
    late = scheduler.schedule("late", now + timedelta(hours=3))
    early = scheduler.schedule("early", now + timedelta(hours=1))

    pending = scheduler.list_pending()

    assert [p.id for p in pending] == [early, late]
    assert not hasattr(pending[0], "job")


def test_fires_once_then_dequeues(scheduler, recorder):
    rid = scheduler.schedule("stretch", _soon())

    assert recorder.event.wait(5)
    time.sleep(0.2)

    assert [r.id for r in recorder.fired] == [rid]
    assert recorder.fired[0].task == "stretch"
    assert scheduler.list_pending() == []


def test_fires_close_to_target_time(scheduler, recorder):
    target = _soon(0.5)
    scheduler.schedule("on time", target)

    assert recorder.event.wait(5)

    assert abs((datetime.now(TZ) - target).total_seconds()) < 1


def test_past_time_fires_promptly(scheduler, recorder):
    scheduler.schedule("overdue", datetime.now(TZ) - timedelta(minutes=10))

    assert recorder.event.wait(2)
    assert recorder.fired[0].task == "overdue"


def test_naive_time_is_taken_in_configured_tz(scheduler):
    naive = datetime.now() + timedelta(hours=2)

    scheduler.schedule("naive", naive)

    assert scheduler.list_pending()[0].scheduled_time.tzinfo == TZ


def test_cancel_prevents_firing(scheduler, recorder):
    rid = scheduler.schedule("never", _soon(0.3))

    assert scheduler.cancel(rid) is True
    assert scheduler.list_pending() == []
    assert not recorder.event.wait(1)
    assert recorder.fired == []


def test_cancel_unknown_returns_false(scheduler):
    assert scheduler.cancel("nope") is False


def test_cancel_twice_returns_false(scheduler):
    rid = scheduler.schedule("once", datetime.now(TZ) + timedelta(hours=1))

    assert scheduler.cancel(rid) is True
    assert scheduler.cancel(rid) is False


def test_cancel_after_fire_returns_false(scheduler, recorder):
    rid = scheduler.schedule("done", _soon(0.1))
    assert recorder.event.wait(5)
    time.sleep(0.1)

    assert scheduler.cancel(rid) is False


def test_schedule_rejects_non_datetime(scheduler):
    with pytest.raises(SchedulingError):
        scheduler.schedule("bad", "tomorrow")  # type: ignore[arg-type]

    assert scheduler.list_pending() == []


def test_schedule_reports_backend_failure():
    backend = MagicMock()
    backend.add_job.side_effect = ValueError("bad trigger fields")
    rs = ReminderScheduler(scheduler=backend)

    with pytest.raises(SchedulingError):
        rs.schedule("broken", datetime.now(TZ) + timedelta(hours=1))

    assert rs.list_pending() == []


def test_failing_action_is_not_rescheduled(recorder):
    def boom(reminder):
        recorder(reminder)
        raise RuntimeError("notification service down")

    rs = ReminderScheduler(boom)
    rs.start()
    try:
        rs.schedule("fragile", _soon(0.1))
        assert recorder.event.wait(5)
        time.sleep(0.2)
        assert rs.list_pending() == []
        assert len(recorder.fired) == 1
    finally:
        rs.shutdown()


def test_shutdown_cancels_everything(recorder):
    rs = ReminderScheduler(recorder)
    rs.start()
    rs.schedule("a", _soon(0.5))
    rs.schedule("b", datetime.now(TZ) + timedelta(hours=1))

    rs.shutdown()

    assert rs.list_pending() == []
    assert not recorder.event.wait(1)


def test_shutdown_is_idempotent(recorder):
    rs = ReminderScheduler(recorder)
    rs.start()

    rs.shutdown()
    rs.shutdown()


def test_pending_before_start_fire_after_start(recorder):
    rs = ReminderScheduler(recorder)
    rid = rs.schedule("queued", _soon(0.1))
    assert [p.id for p in rs.list_pending()] == [rid]

    rs.start()
    try:
        assert recorder.event.wait(5)
    finally:
        rs.shutdown()


def test_cancel_before_start(recorder):
    rs = ReminderScheduler(recorder)
    rid = rs.schedule("queued", _soon(0.1))

    assert rs.cancel(rid) is True
    rs.start()
    try:
        assert not recorder.event.wait(1)
    finally:
        rs.shutdown()


def test_injected_backend_is_left_running(recorder):
    backend = BackgroundScheduler(timezone=TZ)
    backend.start()
    try:
        rs = ReminderScheduler(recorder, scheduler=backend)
        rs.start()
        rs.schedule("shared", _soon(0.1))
        assert recorder.event.wait(5)

        rs.shutdown()

        assert backend.running
    finally:
        backend.shutdown(wait=False)


def test_context_manager_starts_and_tears_down(recorder):
    with ReminderScheduler(recorder) as rs:
        rs.schedule("later", datetime.now(TZ) + timedelta(hours=1))
        assert rs.apscheduler.running

    assert rs.list_pending() == []
    assert not rs.apscheduler.running
