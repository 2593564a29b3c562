"""
CLI for the digest scheduler.

Usage:
    # Run the scheduler loop (polls every POLL_INTERVAL_SECONDS)
    uv run python main.py

    # Run every due schedule once and exit
    uv run python main.py --once

    # Run one schedule immediately, regardless of its next_run
    uv run python main.py --run-now weekly-gdpr

    # Show the next five run times of a schedule
    uv run python main.py --preview weekly-gdpr

    # Load schedules from a JSON file and print instead of sending
    uv run python main.py --seed schedules.json --dry-run --once
"""

import argparse
import sys
import threading
from concurrent.futures import wait
from zoneinfo import ZoneInfo

from config.settings import load_settings
from engine import DispatchEngine, build_engine, load_seed
from models.schedule import ExecutionStatus
from scheduling.recurrence import upcoming_runs
from shared.db import get_supabase_client
from shared.errors import EngineError
from shared.repository import SupabaseRepository
from shared.utils import print_summary, utcnow


def _build(args: argparse.Namespace) -> DispatchEngine:
    overrides = {}
    if args.interval is not None:
        overrides["poll_interval_seconds"] = args.interval
    settings = load_settings(**overrides)

    repository = None
    if settings.supabase_url and settings.supabase_key and not args.seed:
        client = get_supabase_client(settings.supabase_url, settings.supabase_key)
        repository = SupabaseRepository(client, error_log_dir=settings.error_log_dir)

    engine = build_engine(settings, repository=repository, dry_run=args.dry_run)
    if args.seed:
        counts = load_seed(engine, args.seed)
        print(
            f"✓ Seeded {counts['groups']} group(s), {counts['schedules']} schedule(s), "
            f"{counts['rules']} rule(s)"
        )
    return engine


def run_once(engine: DispatchEngine) -> dict[str, int]:
    """Run every schedule that is due now and wait for the results."""
    stats = {status.value: 0 for status in ExecutionStatus}
    stats["skipped"] = 0
    futures = engine.scheduler.tick()
    wait(futures)
    for future in futures:
        execution = future.result()
        if execution is None:
            stats["skipped"] += 1
        else:
            stats[execution.status.value] += 1
    print_summary("Scheduled Digest Run Complete", stats)
    return stats


def preview(engine: DispatchEngine, schedule_id: str, count: int = 5) -> None:
    """Print upcoming run times in the schedule's own timezone."""
    schedule = engine.store.get_schedule(schedule_id)
    tz = ZoneInfo(schedule.recurrence.timezone)
    state = "enabled" if schedule.enabled else "disabled"
    print(f"{schedule.name} ({schedule.recurrence.frequency.value}, {state})")
    for run in upcoming_runs(schedule.recurrence, utcnow(), count):
        print(f"  → {run.astimezone(tz).strftime('%a %Y-%m-%d %H:%M %Z')}")


def main() -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Run scheduled regulatory digests")
    parser.add_argument("--once", action="store_true", help="Run due schedules once and exit")
    parser.add_argument("--run-now", metavar="SCHEDULE_ID", help="Run one schedule immediately")
    parser.add_argument(
        "--preview", metavar="SCHEDULE_ID", help="Print the next five run times of a schedule"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Dry run mode (don't actually send emails)",
    )
    parser.add_argument(
        "--interval", type=float, help="Poll interval in seconds (overrides POLL_INTERVAL_SECONDS)"
    )
    parser.add_argument(
        "--seed", metavar="FILE", help="JSON file of groups, schedules and rules to load"
    )
    args = parser.parse_args()

    try:
        engine = _build(args)
    except (EngineError, ValueError) as e:
        print(f"✗ Could not start: {e}")
        return 1

    try:
        if args.preview:
            preview(engine, args.preview)
            return 0

        if args.run_now:
            execution = engine.scheduler.run_now(args.run_now)
            if execution is None:
                print("⚠️  Schedule is already running")
                return 1
            return 0 if execution.status == ExecutionStatus.SUCCESS else 1

        if args.once:
            stats = run_once(engine)
            return 0 if stats["failed"] == 0 else 1

        stop_event = threading.Event()
        try:
            engine.scheduler.run_forever(stop_event)
        except KeyboardInterrupt:
            stop_event.set()
        return 0
    except EngineError as e:
        print(f"✗ {e}")
        return 1
    finally:
        engine.shutdown()


if __name__ == "__main__":
    sys.exit(main())
