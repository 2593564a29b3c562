"""Validation helpers for schedule and recipient group payloads."""

from datetime import date, datetime
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import ValidationError

from models.schedule import Frequency, RecipientGroup, RecurrenceSpec, Schedule
from shared.errors import ConfigError

# Days past the 28th only exist in some months
MAX_CONFIGURABLE_DAY_OF_MONTH = 28


def validate_timezone(timezone_name: str) -> None:
    """Validate that the timezone name resolves to a ZoneInfo entry."""
    if not timezone_name or not timezone_name.strip():
        raise ConfigError("timezone is required.", {"field": "timezone"})
    try:
        ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigError(
            f"Invalid timezone: {timezone_name}.",
            {"field": "timezone", "timezone": timezone_name},
        ) from exc


def validate_recurrence(spec: RecurrenceSpec) -> None:
    """
    Validate recurrence fields required by the chosen frequency.

    Raises:
        ConfigError: If a field required for the frequency is missing or out of range
    """
    validate_timezone(spec.timezone)

    if spec.frequency in (Frequency.WEEKLY, Frequency.BIWEEKLY):
        if spec.day_of_week is None:
            raise ConfigError(
                f"day_of_week is required for {spec.frequency.value} schedules.",
                {"field": "day_of_week", "frequency": spec.frequency.value},
            )
    if spec.frequency == Frequency.BIWEEKLY and spec.anchor_date is None:
        raise ConfigError(
            "anchor_date is required for biweekly schedules.",
            {"field": "anchor_date"},
        )
    if spec.frequency == Frequency.MONTHLY:
        if spec.day_of_month is None:
            raise ConfigError(
                "day_of_month is required for monthly schedules.",
                {"field": "day_of_month"},
            )
        if spec.day_of_month > MAX_CONFIGURABLE_DAY_OF_MONTH:
            raise ConfigError(
                f"day_of_month must be between 1 and {MAX_CONFIGURABLE_DAY_OF_MONTH}.",
                {"field": "day_of_month", "day_of_month": spec.day_of_month},
            )


def with_anchor(spec: RecurrenceSpec, created_at: datetime) -> RecurrenceSpec:
    """Fill a missing biweekly anchor with the creation date in the schedule's timezone."""
    if spec.frequency != Frequency.BIWEEKLY or spec.anchor_date is not None:
        return spec
    validate_timezone(spec.timezone)
    anchor: date = created_at.astimezone(ZoneInfo(spec.timezone)).date()
    return spec.model_copy(update={"anchor_date": anchor})


def _wrap_validation_error(kind: str, exc: ValidationError) -> ConfigError:
    fields = [".".join(str(part) for part in err["loc"]) for err in exc.errors()]
    return ConfigError(f"Invalid {kind}: {exc}", {"fields": fields})


def build_schedule(payload: dict[str, Any]) -> Schedule:
    """
    Parse a management-surface payload into a Schedule.

    Raises:
        ConfigError: On any field or recurrence validation failure
    """
    try:
        schedule = Schedule.model_validate(payload)
    except ValidationError as e:
        raise _wrap_validation_error("schedule", e) from e
    if schedule.recurrence.frequency != Frequency.BIWEEKLY or schedule.recurrence.anchor_date:
        validate_recurrence(schedule.recurrence)
    return schedule


def build_recurrence(payload: dict[str, Any]) -> RecurrenceSpec:
    """Parse a recurrence payload, raising ConfigError instead of ValidationError."""
    try:
        return RecurrenceSpec.model_validate(payload)
    except ValidationError as e:
        raise _wrap_validation_error("recurrence", e) from e


def build_group(payload: dict[str, Any]) -> RecipientGroup:
    """Parse a recipient group payload, raising ConfigError instead of ValidationError."""
    try:
        return RecipientGroup.model_validate(payload)
    except ValidationError as e:
        raise _wrap_validation_error("recipient group", e) from e
