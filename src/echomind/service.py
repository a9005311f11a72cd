"""Reminder service: extract, persist, schedule, and close out reminders.

Records in the store are the source of truth; the scheduler only holds
triggers for records that are still open. `sync()` reconciles the two so
reminders added from the CLI (or surviving a restart) get their trigger.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import datetime

from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.interval import IntervalTrigger

from echomind.scheduling.extractor import extract_reminder_info
from echomind.scheduling.reminders import (
    ReminderRecord,
    append_reminder,
    get_reminder,
    list_reminders,
    remove_reminder,
    to_iso,
    update_reminder,
)
from echomind.scheduling.scheduler import (
    PendingReminder,
    ReminderScheduler,
    SchedulingError,
)

log = logging.getLogger(__name__)

SYNC_INTERVAL_SECONDS = 10
VOICE_DESCRIPTION = "Reminder created from voice command"


def log_notification(record: ReminderRecord) -> None:
    log.info("Reminder for %s: %s", record.user_id, record.task)


class ReminderService:
    """Reminders for one user, backed by the record store and a ReminderScheduler.

    `notify` is called with the completed record when a reminder fires.
    `backend` is an optional shared APScheduler instance.
    """

    def __init__(
        self,
        *,
        user_id: str,
        notify: Callable[[ReminderRecord], None] | None = None,
        backend: BaseScheduler | None = None,
    ) -> None:
        self.scheduler = ReminderScheduler(self.handle_fired, scheduler=backend)
        self.user_id = user_id
        self._notify = notify or log_notification
        # record id -> scheduler id
        self._triggers: dict[str, str] = {}
        self._lock = threading.Lock()
        self._sync_job = None

    # --- lifecycle ---

    def start(self) -> None:
        """Start the scheduler and the periodic store -> scheduler sync."""
        self.sync()
        self.scheduler.start()
        if self._sync_job is None:
            self._sync_job = self.scheduler.apscheduler.add_job(
                self.sync,
                IntervalTrigger(seconds=SYNC_INTERVAL_SECONDS),
                id="sync_reminders",
                max_instances=1,
                coalesce=True,
            )

    def shutdown(self) -> None:
        if self._sync_job is not None:
            self._sync_job.remove()
            self._sync_job = None
        self.scheduler.shutdown()
        with self._lock:
            self._triggers.clear()

    # --- operations ---

    def create(
        self, task: str, when: datetime, *, description: str = ""
    ) -> ReminderRecord:
        """Persist a record, then arm its trigger. Scheduling failures roll back."""
        record = ReminderRecord.new(
            task, when, user_id=self.user_id, description=description
        )
        append_reminder(record)
        try:
            self._register(record)
        except SchedulingError:
            remove_reminder(record.id)
            raise
        return record

    def create_from_text(self, text: str) -> ReminderRecord | None:
        parsed = extract_reminder_info(text)
        if parsed is None:
            return None
        return self.create(parsed.task, parsed.time, description=VOICE_DESCRIPTION)

    def records(self) -> list[ReminderRecord]:
        return list_reminders(self.user_id)

    def get(self, record_id: str) -> ReminderRecord | None:
        record = get_reminder(record_id)
        if record is None or record.user_id != self.user_id:
            return None
        return record

    def cancel(self, record_id: str) -> bool:
        if self.get(record_id) is None:
            return False
        self._disarm(record_id)
        return remove_reminder(record_id)

    def update(
        self,
        record_id: str,
        *,
        task: str | None = None,
        scheduled_at: datetime | None = None,
        completed: bool | None = None,
    ) -> ReminderRecord | None:
        """Change a record and keep its trigger in step. None if the record is missing."""
        if self.get(record_id) is None:
            return None
        changes: dict[str, object] = {}
        if task is not None:
            changes["task"] = task.strip()
        if scheduled_at is not None:
            changes["scheduled_at"] = to_iso(scheduled_at)
        if completed is not None:
            changes["completed"] = completed
        record = update_reminder(record_id, **changes)
        if record is None:
            return None

        self._disarm(record_id)
        if not record.completed:
            self._register(record)
        return record

    def sync(self) -> None:
        """Arm triggers for open records; drop triggers whose record is gone."""
        records = [r for r in self.records() if not r.completed]
        current = {r.id for r in records}
        for record in records:
            try:
                self._register(record)
            except SchedulingError:
                log.exception("Could not schedule stored reminder %s", record.id)
        with self._lock:
            stale = [
                rid
                for rid in self._triggers
                if rid not in current and not self._is_open(rid)
            ]
        for record_id in stale:
            self._disarm(record_id)

    def pending(self) -> list[PendingReminder]:
        return self.scheduler.list_pending()

    # --- internals ---

    def _is_open(self, record_id: str) -> bool:
        record = get_reminder(record_id)
        return record is not None and not record.completed

    def _register(self, record: ReminderRecord) -> None:
        with self._lock:
            # Tracked means armed or mid-fire; handle_fired and _disarm untrack
            if record.id in self._triggers:
                return
            # The caller's copy may predate a fire that already completed it
            current = get_reminder(record.id)
            if current is None or current.completed:
                return
            self._triggers[record.id] = self.scheduler.schedule(
                current.task, current.when
            )

    def _disarm(self, record_id: str) -> None:
        with self._lock:
            trigger_id = self._triggers.pop(record_id, None)
        if trigger_id is not None:
            self.scheduler.cancel(trigger_id)

    def handle_fired(self, reminder: PendingReminder) -> None:
        """Scheduler callback: close out the record and notify."""
        with self._lock:
            record_id = next(
                (rid for rid, tid in self._triggers.items() if tid == reminder.id),
                None,
            )
            if record_id is None:
                log.info("Reminder: %s", reminder.task)
                return
            record = update_reminder(record_id, completed=True)
            del self._triggers[record_id]
        if record is not None:
            self._notify(record)
