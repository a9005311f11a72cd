"""Scheduling: reminder parsing, records, and the APScheduler integration."""

from echomind.scheduling.extractor import ParsedReminder, extract_reminder_info
from echomind.scheduling.reminders import (
    ReminderRecord,
    append_reminder,
    get_reminder,
    list_reminders,
    remove_reminder,
    update_reminder,
)
from echomind.scheduling.scheduler import (
    PendingReminder,
    ReminderScheduler,
    SchedulingError,
)

__all__ = [
    "ParsedReminder",
    "PendingReminder",
    "ReminderRecord",
    "ReminderScheduler",
    "SchedulingError",
    "append_reminder",
    "extract_reminder_info",
    "get_reminder",
    "list_reminders",
    "remove_reminder",
    "update_reminder",
]
