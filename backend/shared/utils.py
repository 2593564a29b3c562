import re
import uuid
from datetime import datetime, timezone
from typing import Iterable

from dateutil import parser as date_parser


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: str) -> datetime | None:
    """Parse various timestamp formats into an aware UTC datetime."""
    if not value:
        return None
    try:
        return ensure_utc(date_parser.parse(value))
    except (ValueError, OverflowError, TypeError):
        return None


def new_id() -> str:
    """Generate a record identifier."""
    return uuid.uuid4().hex


def normalize_recipients(recipients: Iterable[str]) -> list[str]:
    """Trim, lowercase and de-duplicate addresses, keeping first-seen order."""
    seen: dict[str, None] = {}
    for address in recipients:
        if not address:
            continue
        cleaned = address.strip().lower()
        if cleaned:
            seen.setdefault(cleaned, None)
    return list(seen)


def chunked(items: list[str], size: int) -> list[list[str]]:
    """Split a list into consecutive chunks of at most ``size`` items."""
    if size <= 0:
        return [items] if items else []
    return [items[i : i + size] for i in range(0, len(items), size)]


def print_summary(title: str, stats: dict[str, int]) -> None:
    """Print processing summary."""
    print(f"\n{'=' * 60}")
    print(f"[{datetime.now()}] {title}")
    print(f"{'=' * 60}")
    for key, value in stats.items():
        print(f"{key.capitalize() + ':':<10}{value}")
    print(f"{'=' * 60}\n")


# {NAME} placeholders used by subject/body templates
PLACEHOLDER_RE = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")


def extract_variables(*texts: str) -> list[str]:
    """Return placeholder names in first-appearance order, without duplicates."""
    names: dict[str, None] = {}
    for text in texts:
        for match in PLACEHOLDER_RE.finditer(text or ""):
            names.setdefault(match.group(1), None)
    return list(names)
