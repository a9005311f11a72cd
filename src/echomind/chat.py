"""Reminder branch of the chat handler.

Messages that ask to be reminded of something are answered here; anything
else returns None so the caller can hand it to the general assistant.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from echomind.service import ReminderService

FALLBACK_REPLY = (
    "I'd be happy to set a reminder for you. Could you please specify what "
    "you'd like to be reminded about and when?"
)


def format_time(when: datetime) -> str:
    return when.strftime("%b %-d, %Y %-I:%M %p")


def is_reminder_request(message: str) -> bool:
    return "remind me" in message.lower()


def handle_chat_message(service: ReminderService, message: str) -> str | None:
    if not is_reminder_request(message):
        return None
    record = service.create_from_text(message)
    if record is None:
        return FALLBACK_REPLY
    return f"I've set a reminder for you to {record.task} at {format_time(record.when)}."
