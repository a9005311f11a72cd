"""Free-text reminder parsing: "remind me to X at 7pm" -> (task, time).

Two ordered cascades, first match wins in each:

- phrase matchers isolate the task and the timespec from the message
- timespec resolvers turn the timespec into an absolute, future datetime

Either cascade coming up empty means "not a reminder we understand" and the
caller gets None. New phrasings are added by appending to the lists.

Bare clock hours below 12 are read as PM ("at 7" is 19:00). That bias is
deliberate; morning times need an explicit "am".
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from echomind.config import TZ

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ParsedReminder:
    task: str
    time: datetime


PhraseMatcher = Callable[[str], tuple[str, str] | None]
TimespecResolver = Callable[[str, datetime], datetime | None]


def _phrase(pattern: str) -> PhraseMatcher:
    regex = re.compile(pattern, re.IGNORECASE)

    def match(text: str) -> tuple[str, str] | None:
        m = regex.search(text)
        if m is None:
            return None
        return m.group(1), m.group(2)

    return match


PHRASE_MATCHERS: list[PhraseMatcher] = [
    _phrase(r"remind me to (.+?) (?:at|in) (.+)"),
    _phrase(r"set (?:a )?reminder (?:to )?(.+?) (?:at|for|in) (.+)"),
    _phrase(r"reminder (.+?) (?:at|in) (.+)"),
]

_FIRST_INT = re.compile(r"(\d+)")
_CLOCK = re.compile(r"(\d{1,2})(?::(\d{2}))?\s*(am|pm)?")


def _first_int(timespec: str, default: int) -> int:
    m = _FIRST_INT.search(timespec)
    return int(m.group(1)) if m else default


def _after(now: datetime, delta: timedelta) -> datetime:
    # Elapsed-time arithmetic, so DST shifts don't stretch "in 2 hours"
    return (now.astimezone(timezone.utc) + delta).astimezone(now.tzinfo)


def _relative_minutes(timespec: str, now: datetime) -> datetime | None:
    if "minute" not in timespec:
        return None
    return _after(now, timedelta(minutes=_first_int(timespec, 5)))


def _relative_hours(timespec: str, now: datetime) -> datetime | None:
    if "hour" not in timespec:
        return None
    return _after(now, timedelta(hours=_first_int(timespec, 1)))


def _clock_time(timespec: str, now: datetime) -> datetime | None:
    m = _CLOCK.search(timespec)
    if m is None:
        return None
    hour = int(m.group(1))
    minute = int(m.group(2) or 0)
    suffix = m.group(3)

    if suffix == "pm" and hour != 12:
        hour += 12
    elif suffix == "am" and hour == 12:
        hour = 0
    elif suffix is None and hour < 12:
        hour += 12

    if hour > 23 or minute > 59:
        return None

    candidate = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


TIMESPEC_RESOLVERS: list[TimespecResolver] = [
    _relative_minutes,
    _relative_hours,
    _clock_time,
]


def resolve_timespec(timespec: str, now: datetime) -> datetime | None:
    """Run the resolver cascade on a lower-cased timespec."""
    for resolver in TIMESPEC_RESOLVERS:
        resolved = resolver(timespec, now)
        if resolved is not None:
            return resolved
    return None


def extract_reminder_info(
    text: str,
    *,
    now: datetime | None = None,
    tz: ZoneInfo | None = None,
) -> ParsedReminder | None:
    """Parse a reminder request. Returns None when the text isn't one we understand.

    `now` defaults to the current time in `tz` (the configured timezone);
    a naive `now` is taken to be in `tz`.
    """
    tz = tz or TZ
    if now is None:
        now = datetime.now(tz)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=tz)
    else:
        now = now.astimezone(tz)

    for matcher in PHRASE_MATCHERS:
        found = matcher(text)
        if found is not None:
            break
    else:
        return None

    task = found[0].strip()
    timespec = found[1].strip().lower()
    if not task:
        return None
    log.debug("Parsing reminder: %r at %r", task, timespec)

    when = resolve_timespec(timespec, now)
    if when is None or when <= now:
        log.debug("Could not parse time: %r", timespec)
        return None
    return ParsedReminder(task=task, time=when)
