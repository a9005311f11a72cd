"""CLI handlers for `echomind parse` and `echomind reminder`."""

import argparse
import sys

from echomind.chat import format_time
from echomind.config import USER_ID
from echomind.scheduling.extractor import extract_reminder_info
from echomind.scheduling.reminders import (
    ReminderRecord,
    append_reminder,
    get_reminder,
    list_reminders,
    parse_timestamp,
    remove_reminder,
)


def _summary(r: ReminderRecord) -> str:
    return r.task if not r.description else f"{r.task}  ({r.description})"


def _fmt_schedule(r: ReminderRecord) -> str:
    sched = f"at {format_time(r.when)}"
    if r.completed:
        sched = f"[done] {sched}"
    return sched


def run_parse_command(argv: list[str]) -> None:
    parser = argparse.ArgumentParser(prog="echomind parse")
    parser.add_argument("text", nargs="+", help="Free-text reminder request")
    args = parser.parse_args(argv)

    parsed = extract_reminder_info(" ".join(args.text))
    if parsed is None:
        print("not a recognized reminder")
        sys.exit(1)
    print(f"task: {parsed.task}")
    print(f"time: {parsed.time.isoformat()}")


def run_reminder_command(argv: list[str]) -> None:
    parser = argparse.ArgumentParser(prog="echomind reminder")
    sub = parser.add_subparsers(dest="action")

    add_p = sub.add_parser("add", help="Store a reminder for the running server")
    add_p.add_argument(
        "text", nargs="*", help='Request, e.g. "remind me to stretch in 20 minutes"'
    )
    add_p.add_argument("--task", "-t", default=None, help="Task (with --at)")
    add_p.add_argument("--at", default=None, help="ISO 8601 time (with --task)")
    add_p.add_argument("--description", "-d", default="", help="Short note for list")
    add_p.add_argument("--user", default=USER_ID, help="Owner user id")

    list_p = sub.add_parser("list", help="Show stored reminders")
    list_p.add_argument("--user", default=USER_ID, help="Owner user id")
    list_p.add_argument("--all", action="store_true", help="Include completed")

    cancel_p = sub.add_parser("cancel", help="Delete a reminder by ID")
    cancel_p.add_argument("id", help="Reminder ID")
    cancel_p.add_argument("--user", default=USER_ID, help="Owner user id")

    args = parser.parse_args(argv)

    if args.action == "add":
        _handle_add(parser, args)
    elif args.action == "list":
        _handle_list(args.user, include_done=args.all)
    elif args.action == "cancel":
        _handle_cancel(args.id, args.user)
    else:
        parser.print_help()
        sys.exit(1)


def _handle_add(parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    if args.task is not None or args.at is not None:
        if args.task is None or args.at is None or args.text:
            parser.error("--task and --at go together and replace the free-text form")
        try:
            when = parse_timestamp(args.at)
        except ValueError:
            parser.error(f"invalid --at time: {args.at}")
        task = args.task
    else:
        parsed = extract_reminder_info(" ".join(args.text))
        if parsed is None:
            print("could not understand that reminder")
            sys.exit(1)
        task, when = parsed.task, parsed.time

    record = ReminderRecord.new(
        task, when, user_id=args.user, description=args.description
    )
    append_reminder(record)
    print(f"scheduled {record.id}: {_fmt_schedule(record)} -- {_summary(record)}")


def _handle_list(user_id: str, *, include_done: bool) -> None:
    records = [
        r for r in list_reminders(user_id) if include_done or not r.completed
    ]
    if not records:
        print("no pending reminders")
        return
    for r in records:
        print(f"  {r.id}  {_fmt_schedule(r):28s}  {_summary(r)}")


def _handle_cancel(reminder_id: str, user_id: str) -> None:
    record = get_reminder(reminder_id)
    if record is None or record.user_id != user_id:
        print(f"reminder {reminder_id} not found")
        sys.exit(1)
    remove_reminder(reminder_id)
    print(f"cancelled {reminder_id}")
