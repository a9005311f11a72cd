"""Entry point for echomind."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

from echomind.config import LOG_LEVEL, TZ, USER_ID

HELP = """\
echomind -- voice-assistant reminders from plain language

commands:
  echomind serve             Run the reminder scheduler (and HTTP API if configured)
  echomind parse TEXT        Show how a reminder request is understood
  echomind reminder add      Store a reminder for the running server
  echomind reminder list     Show pending reminders
  echomind reminder cancel   Delete a reminder by ID
  echomind help              Show this help message

examples:
  echomind parse "remind me to call mom at 7pm"
  echomind reminder add "remind me to stretch in 20 minutes"
  echomind reminder add --task "pay rent" --at 2026-11-01T09:00
"""

log = logging.getLogger(__name__)


def _dispatch_subcommand() -> bool:
    """Route CLI subcommands. Returns True if handled."""
    if len(sys.argv) < 2:
        return False
    cmd = sys.argv[1]
    rest = sys.argv[2:]
    if cmd in ("help", "--help", "-h"):
        print(HELP)
        return True
    routes: dict[str, tuple[str, str]] = {
        "parse": ("echomind.scheduling.reminder_cmd", "run_parse_command"),
        "reminder": ("echomind.scheduling.reminder_cmd", "run_reminder_command"),
    }
    if cmd in routes:
        from importlib import import_module

        mod_path, func_name = routes[cmd]
        getattr(import_module(mod_path), func_name)(rest)
        return True
    return False


async def _serve() -> None:
    """Run the service until SIGINT/SIGTERM, then tear everything down."""
    from apscheduler.schedulers.asyncio import AsyncIOScheduler

    from echomind import api
    from echomind.service import ReminderService

    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, stop_event.set)

    # Jobs are plain functions, so the asyncio executor runs them in its thread pool
    backend = AsyncIOScheduler(timezone=TZ)
    backend.start()
    service = ReminderService(user_id=USER_ID, backend=backend)
    service.start()
    log.info("echomind running for user %s", USER_ID)
    try:
        await api.start(service)
        await stop_event.wait()
    finally:
        await api.stop()
        service.shutdown()
        backend.shutdown(wait=False)
        log.info("echomind stopped")


def main() -> None:
    if _dispatch_subcommand():
        return
    if len(sys.argv) >= 2 and sys.argv[1] != "serve":
        print(f"unknown command: {sys.argv[1]}\n")
        print(HELP)
        raise SystemExit(1)

    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(_serve())


if __name__ == "__main__":
    main()
