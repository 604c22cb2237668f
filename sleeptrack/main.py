"""Command-line entry point for sleeptrack"""
import argparse
import asyncio
import logging
import sys
from datetime import datetime
from typing import Optional, Sequence

from sleeptrack import config
from sleeptrack.config import validate_config, LOG_LEVEL
from sleeptrack.db.connection import Database
from sleeptrack.db.schema import create_schema
from sleeptrack.exceptions import SleepTrackError
from sleeptrack.models.user import UserIdentity
from sleeptrack.services.container import SleepSession, build_kv_store, open_local_session, open_remote_session
from sleeptrack.services.weekly_stats import sleep_quality_label
from sleeptrack.storage.kv_store import RedisKeyValueStore
from sleeptrack.utils.time_utils import (
    format_date,
    format_duration,
    format_reminder_time,
    format_time,
)

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sleeptrack", description="Log sleep and view weekly statistics")
    parser.add_argument("--user", help="User id (remote mode only)")
    sub = parser.add_subparsers(dest="command", required=True)

    add = sub.add_parser("add", help="Log a night of sleep")
    add.add_argument("bedtime", type=datetime.fromisoformat, help="ISO bedtime, e.g. 2024-01-15T22:30")
    add.add_argument("wake_time", type=datetime.fromisoformat, help="ISO wake time")
    add.add_argument("--note")
    add.add_argument("--quality", type=int, choices=range(1, 6))

    sub.add_parser("list", help="Show all entries, newest first")
    sub.add_parser("stats", help="Show the last 7 days")

    delete = sub.add_parser("delete", help="Delete one entry")
    delete.add_argument("entry_id")

    sub.add_parser("clear", help="Delete every entry")

    settings = sub.add_parser("settings", help="Show or change settings")
    settings.add_argument("--target-hours", type=float)
    settings.add_argument("--reminder", choices=["on", "off"])
    settings.add_argument("--reminder-time")

    sub.add_parser("init-db", help="Create remote tables")
    return parser


def format_entry_line(entry, tz: str) -> str:
    line = (
        f"{entry.id}  {format_date(entry.bedtime, tz)}  "
        f"{format_time(entry.bedtime, tz)} -> {format_time(entry.wake_time, tz)}  "
        f"{format_duration(entry.duration)}"
    )
    if entry.quality:
        line += f"  {'*' * entry.quality}"
    if entry.note:
        line += f"  {entry.note}"
    return line


async def run_command(args: argparse.Namespace, session: SleepSession) -> int:
    """Execute one parsed command against an open session"""
    tz = session.timezone
    await session.load()
    entries = session.entries

    if args.command == "add":
        entry = await entries.add(args.bedtime, args.wake_time, note=args.note, quality=args.quality)
        print(f"Saved {format_duration(entry.duration)} ({entry.id})")
    elif args.command == "list":
        if not entries.entries:
            print("No sleep entries yet.")
        for entry in entries.entries:
            print(format_entry_line(entry, tz))
    elif args.command == "stats":
        stats = entries.weekly_stats()
        for label, day, hours in zip(stats.day_labels, stats.days, stats.daily_durations):
            print(f"{label} {day.isoformat()}  {format_duration(hours)}")
        print(f"Average: {format_duration(stats.average_duration)} ({sleep_quality_label(stats.average_duration)})")
        print(f"Total entries: {stats.total_entries}")
    elif args.command == "delete":
        await entries.delete(args.entry_id)
        print(f"Deleted {args.entry_id}")
    elif args.command == "clear":
        await entries.clear_all()
        print("All sleep data cleared.")
    elif args.command == "settings":
        if session.settings.settings is None:
            print("Sign in (--user) to view or change settings.", file=sys.stderr)
            return 1
        changes = {}
        if args.target_hours is not None:
            changes["target_hours"] = args.target_hours
        if args.reminder is not None:
            changes["reminder_enabled"] = args.reminder == "on"
        if args.reminder_time is not None:
            changes["reminder_time"] = args.reminder_time
        if changes:
            result = await session.settings.update(**changes)
            if result.warning:
                print(f"Warning: {result.warning}")
        current = session.settings.settings
        reminder = format_reminder_time(current.reminder_time) if current.reminder_enabled else "off"
        print(f"Target: {format_duration(current.target_hours)}  Reminder: {reminder}")
    return 0


async def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main application entry point"""
    args = build_parser().parse_args(argv)
    validate_config()

    database: Optional[Database] = None
    store = None
    session: Optional[SleepSession] = None
    try:
        if config.STORAGE_MODE == "remote":
            database = Database(config.DATABASE_URL, config.DB_POOL_MIN_SIZE, config.DB_POOL_MAX_SIZE)
            await database.init_pool()
            if args.command == "init-db":
                await create_schema(database)
                print("Tables ready.")
                return 0
            identity = UserIdentity.signed_in(args.user) if args.user else UserIdentity.anonymous()
            session = open_remote_session(database, identity)
        else:
            if args.command == "init-db":
                print("init-db only applies to remote mode.")
                return 1
            store = build_kv_store()
            if isinstance(store, RedisKeyValueStore):
                await store.connect()
            session = open_local_session(store)

        return await run_command(args, session)

    except SleepTrackError as e:
        print(e.user_message, file=sys.stderr)
        return 1
    finally:
        if session:
            session.close()
        if isinstance(store, RedisKeyValueStore):
            await store.close()
        if database:
            await database.close_pool()


def run() -> None:
    # Configure logging
    logging.basicConfig(
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO)
    )
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
