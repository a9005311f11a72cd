"""One-shot reminder triggers on top of APScheduler.

Each pending reminder owns a single DateTrigger job. A reminder is Pending
until its job fires (Fired) or it is cancelled (Cancelled); both are terminal
and remove it from the pending map. The map is process-local: a restart loses
every trigger, and durable records are re-registered by the service sync.
"""

from __future__ import annotations

import contextlib
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from uuid import uuid4

from apscheduler.jobstores.base import JobLookupError
from apscheduler.job import Job
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.date import DateTrigger

from echomind.config import TZ

log = logging.getLogger(__name__)


class SchedulingError(RuntimeError):
    """A reminder trigger could not be built or registered."""


@dataclass(frozen=True, slots=True)
class PendingReminder:
    id: str
    task: str
    scheduled_time: datetime


@dataclass(slots=True)
class ScheduledReminder:
    id: str
    task: str
    scheduled_time: datetime
    job: Job | None = None

    def snapshot(self) -> PendingReminder:
        return PendingReminder(
            id=self.id, task=self.task, scheduled_time=self.scheduled_time
        )


def log_reminder(reminder: PendingReminder) -> None:
    log.info("Reminder: %s", reminder.task)


class ReminderScheduler:
    """Owns the pending reminders and their triggers.

    `on_fire` runs exactly once per reminder, on an APScheduler worker thread.
    Pass `scheduler` to share an existing APScheduler instance; it is then
    started and shut down by its owner, not here.
    """

    def __init__(
        self,
        on_fire: Callable[[PendingReminder], None] | None = None,
        *,
        scheduler: BaseScheduler | None = None,
    ) -> None:
        self._on_fire = on_fire or log_reminder
        self._owns_scheduler = scheduler is None
        self._scheduler = scheduler or BackgroundScheduler(timezone=TZ)
        self._pending: dict[str, ScheduledReminder] = {}
        self._lock = threading.Lock()

    @property
    def apscheduler(self) -> BaseScheduler:
        return self._scheduler

    def start(self) -> None:
        if self._owns_scheduler and not self._scheduler.running:
            self._scheduler.start()

    def shutdown(self) -> None:
        """Cancel everything still pending and stop an owned backend."""
        for reminder in self.list_pending():
            self.cancel(reminder.id)
        if self._owns_scheduler and self._scheduler.running:
            self._scheduler.shutdown(wait=False)

    def __enter__(self) -> ReminderScheduler:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()

    def schedule(self, task: str, time: datetime) -> str:
        """Register a one-shot reminder. Past times fire on the next tick."""
        if not isinstance(time, datetime):
            raise SchedulingError(f"Invalid scheduled time: {time!r}")
        if time.tzinfo is None:
            time = time.replace(tzinfo=TZ)

        run_at = max(time, datetime.now(TZ))

        with self._lock:
            rid = uuid4().hex[:8]
            while rid in self._pending:
                rid = uuid4().hex[:8]
            reminder = ScheduledReminder(id=rid, task=task, scheduled_time=time)
            self._pending[rid] = reminder
            try:
                reminder.job = self._scheduler.add_job(
                    self._fire,
                    DateTrigger(run_date=run_at, timezone=TZ),
                    args=[rid],
                    id=f"rem_{rid}",
                    misfire_grace_time=None,
                )
            except Exception as exc:
                del self._pending[rid]
                log.exception("Error scheduling reminder: %s", task)
                raise SchedulingError("Failed to schedule reminder") from exc

        log.info("Scheduled reminder %s: %s at %s", rid, task, time.isoformat())
        return rid

    def cancel(self, reminder_id: str) -> bool:
        with self._lock:
            reminder = self._pending.pop(reminder_id, None)
            if reminder is None:
                return False
            # Already handed to an executor: _fire finds it gone and does nothing
            if reminder.job is not None:
                with contextlib.suppress(JobLookupError):
                    reminder.job.remove()
        log.info("Cancelled reminder %s: %s", reminder_id, reminder.task)
        return True

    def list_pending(self) -> list[PendingReminder]:
        with self._lock:
            snapshot = [r.snapshot() for r in self._pending.values()]
        return sorted(snapshot, key=lambda r: r.scheduled_time)

    def _fire(self, reminder_id: str) -> None:
        with self._lock:
            reminder = self._pending.pop(reminder_id, None)
        if reminder is None:
            return
        try:
            self._on_fire(reminder.snapshot())
        except Exception:
            log.exception("Reminder %s failed", reminder_id)
            raise
