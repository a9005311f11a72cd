"""Reminder records and markdown persistence.

A record is the durable side of a reminder: what to do, when, and for whom.
The in-memory trigger that actually fires lives in the scheduler; records
survive restarts and are re-registered by the service sync.
"""

import dataclasses
from dataclasses import dataclass
from datetime import datetime
from uuid import uuid4

from echomind.storage import DATA_DIR, TZ, read_md_dir, remove_md, write_md

REMINDERS_DIR = DATA_DIR / "reminders"


def to_iso(when: datetime) -> str:
    """ISO string with offset; naive datetimes are taken in the configured timezone."""
    if when.tzinfo is None:
        when = when.replace(tzinfo=TZ)
    return when.isoformat()


def parse_timestamp(value: str) -> datetime:
    """ISO 8601, including the trailing "Z" browsers send."""
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


@dataclass(frozen=True, slots=True)
class ReminderRecord:
    id: str
    task: str
    scheduled_at: str  # ISO datetime
    user_id: str
    description: str = ""
    completed: bool = False

    def __post_init__(self) -> None:
        if not self.task.strip():
            raise ValueError("Reminder task must not be empty")
        datetime.fromisoformat(self.scheduled_at)

    @property
    def when(self) -> datetime:
        """Scheduled time as an aware datetime in the configured timezone."""
        dt = datetime.fromisoformat(self.scheduled_at)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=TZ)
        return dt.astimezone(TZ)

    @staticmethod
    def new(
        task: str,
        scheduled_at: datetime,
        *,
        user_id: str,
        description: str = "",
    ) -> "ReminderRecord":
        return ReminderRecord(
            id=uuid4().hex[:8],
            task=task.strip(),
            scheduled_at=to_iso(scheduled_at),
            user_id=user_id,
            description=description,
        )


def append_reminder(record: ReminderRecord) -> None:
    write_md(REMINDERS_DIR, record)


def list_reminders(user_id: str | None = None) -> list[ReminderRecord]:
    """All records, optionally for one user, soonest first."""
    records = read_md_dir(REMINDERS_DIR, ReminderRecord)
    if user_id is not None:
        records = [r for r in records if r.user_id == user_id]
    return sorted(records, key=lambda r: r.when)


def get_reminder(reminder_id: str) -> ReminderRecord | None:
    for record in read_md_dir(REMINDERS_DIR, ReminderRecord):
        if record.id == reminder_id:
            return record
    return None


def update_reminder(reminder_id: str, **changes: object) -> ReminderRecord | None:
    """Replace fields on a stored record. Returns the new record, or None if missing."""
    current = get_reminder(reminder_id)
    if current is None:
        return None
    updated = dataclasses.replace(current, **changes)
    # The filename derives from the task; a renamed record leaves its old file
    path = write_md(REMINDERS_DIR, updated)
    remove_md(REMINDERS_DIR, reminder_id, keep=path)
    return updated


def remove_reminder(reminder_id: str) -> bool:
    return remove_md(REMINDERS_DIR, reminder_id)
