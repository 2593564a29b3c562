"""
CLI script for feeding a platform event through the notification rules.

Usage:
    # Announce new resources synced from Coursera
    uv run python -m notifications.process_event --kind new_resources --platform coursera \
        --resources-added 2 --resource "GDPR Basics:course" --resource "DPIA Walkthrough:video"

    # Report a failed sync
    uv run python -m notifications.process_event --kind sync_failure --platform linkedin \
        --error "OAuth token expired"

    # Use rules from a JSON file and print instead of sending
    uv run python -m notifications.process_event --kind new_resources --seed rules.json --dry-run
"""

import argparse
import sys

from pydantic import ValidationError

from config.settings import load_settings
from engine import build_engine, load_seed
from models.event import Event, EventKind, Resource
from models.notification import NotificationStatus
from shared.db import get_supabase_client
from shared.errors import EngineError
from shared.repository import SupabaseRepository
from shared.utils import parse_timestamp, print_summary


def parse_resource(value: str) -> Resource:
    """Parse "Title:type" (type optional) into a Resource."""
    title, _, kind = value.rpartition(":")
    if not title:
        return Resource(title=value)
    return Resource(title=title, type=kind or "resource")


def process_event(event: Event, dry_run: bool = False, seed: str | None = None) -> dict[str, int]:
    """
    Dispatch one event to every matching rule.

    Args:
        event: Event to process
        dry_run: If True, print notifications instead of sending them
        seed: Optional JSON file with rules to load instead of Supabase

    Returns:
        Dictionary with stats: matched, sent, failed
    """
    settings = load_settings()
    repository = None
    if settings.supabase_url and settings.supabase_key and not seed:
        client = get_supabase_client(settings.supabase_url, settings.supabase_key)
        repository = SupabaseRepository(client, error_log_dir=settings.error_log_dir)

    engine = build_engine(settings, repository=repository, dry_run=dry_run)
    try:
        if seed:
            load_seed(engine, seed)

        print(f"Processing {event.kind.value} event from {event.platform or 'unknown platform'}")
        entries = engine.notifications.process_event(event)
    finally:
        engine.shutdown()

    if not entries:
        print("No matching notification rules.")

    stats = {
        "matched": len(entries),
        "sent": sum(1 for entry in entries if entry.status == NotificationStatus.SENT),
        "failed": sum(1 for entry in entries if entry.status == NotificationStatus.FAILED),
    }
    print_summary("Event Processing Complete", stats)
    return stats


def main() -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Send notifications for a platform event")
    parser.add_argument(
        "--kind",
        required=True,
        choices=[kind.value for kind in EventKind],
        help="Event kind",
    )
    parser.add_argument("--platform", help="Platform identifier (e.g. coursera)")
    parser.add_argument(
        "--resources-added", type=int, default=0, help="Number of resources added by the sync"
    )
    parser.add_argument(
        "--resource",
        action="append",
        default=[],
        metavar="TITLE:TYPE",
        help="Resource included in the event (repeatable)",
    )
    parser.add_argument("--error", help="Error message for sync_failure events")
    parser.add_argument(
        "--occurred-at", metavar="TIMESTAMP", help="When the event happened (defaults to now)"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Dry run mode (don't actually send emails)",
    )
    parser.add_argument("--seed", metavar="FILE", help="JSON file of rules to load")
    args = parser.parse_args()

    extra = {}
    if args.occurred_at:
        occurred_at = parse_timestamp(args.occurred_at)
        if occurred_at is None:
            parser.error(f"Unrecognized timestamp: {args.occurred_at}")
        extra["occurred_at"] = occurred_at

    try:
        event = Event(
            kind=EventKind(args.kind),
            platform=args.platform,
            resources_added=args.resources_added,
            resources=[parse_resource(value) for value in args.resource],
            error_message=args.error,
            **extra,
        )
    except ValidationError as e:
        parser.error(str(e))

    try:
        stats = process_event(event, dry_run=args.dry_run, seed=args.seed)
    except (EngineError, ValueError) as e:
        print(f"✗ {e}")
        return 1
    return 0 if stats["failed"] == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
