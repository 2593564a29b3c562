"""Pydantic models for digest schedules, recipient groups and executions."""

import re
from datetime import date, datetime
from enum import Enum

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from models.types import ExecutionID, GroupID, ScheduleID, TemplateID
from shared.utils import normalize_recipients

_TIME_OF_DAY_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


class ExecutionStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    PARTIAL = "partial"


class TimeOfDay(BaseModel):
    """Wall-clock time at which a schedule fires."""

    model_config = ConfigDict(frozen=True)

    hour: int = Field(..., ge=0, le=23)
    minute: int = Field(0, ge=0, le=59)

    @model_validator(mode="before")
    @classmethod
    def _parse_string(cls, value):
        # Accept "HH:MM" wherever a TimeOfDay is expected
        if isinstance(value, str):
            match = _TIME_OF_DAY_RE.match(value.strip())
            if not match:
                raise ValueError(f"time_of_day must be HH:MM (24-hour), got {value!r}")
            return {"hour": int(match.group(1)), "minute": int(match.group(2))}
        return value

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


class RecurrenceSpec(BaseModel):
    """Frequency plus day/time/timezone fields describing when a schedule fires.

    day_of_week uses 0 = Sunday. day_of_month accepts 1-31 here so the
    calculator is total under its clamping policy; creation-time validation
    narrows it to 1-28.
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    frequency: Frequency
    time_of_day: TimeOfDay
    timezone: str = "UTC"
    day_of_week: int | None = Field(None, ge=0, le=6)
    day_of_month: int | None = Field(None, ge=1, le=31)
    anchor_date: date | None = None


class RecipientFilter(BaseModel):
    """Which regulatory updates a recipient group wants. Empty lists accept all."""

    severity_levels: list[str] = Field(default_factory=list)
    regulatory_authorities: list[str] = Field(default_factory=list)
    update_types: list[str] = Field(default_factory=list)

    def accepts(self, severity: str, authority: str, update_type: str) -> bool:
        if self.severity_levels and severity not in self.severity_levels:
            return False
        if self.regulatory_authorities and authority not in self.regulatory_authorities:
            return False
        if self.update_types and update_type not in self.update_types:
            return False
        return True


class RecipientGroup(BaseModel):
    """A named, filtered set of digest addressees."""

    model_config = ConfigDict(str_strip_whitespace=True)

    id: GroupID
    name: str = Field(..., min_length=1)
    description: str = ""
    recipients: list[str] = Field(default_factory=list)
    filters: RecipientFilter = Field(default_factory=RecipientFilter)
    enabled: bool = True
    created_at: datetime | None = None

    @field_validator("recipients")
    @classmethod
    def _dedupe_recipients(cls, value: list[str]) -> list[str]:
        return normalize_recipients(value)


class Schedule(BaseModel):
    """A recurring digest job."""

    model_config = ConfigDict(str_strip_whitespace=True)

    id: ScheduleID
    name: str = Field(..., min_length=1)
    description: str = ""
    recurrence: RecurrenceSpec
    enabled: bool = True
    template_id: TemplateID | None = None
    recipient_group_ids: list[GroupID] = Field(default_factory=list)
    last_run: datetime | None = None
    next_run: datetime | None = None
    total_runs: int = Field(0, ge=0)
    successful_runs: int = Field(0, ge=0)
    created_at: datetime | None = None
    created_by: str | None = None

    @field_validator("recipient_group_ids")
    @classmethod
    def _dedupe_groups(cls, value: list[GroupID]) -> list[GroupID]:
        return list(dict.fromkeys(value))

    @model_validator(mode="after")
    def _check_counters(self) -> "Schedule":
        if self.successful_runs > self.total_runs:
            raise ValueError("successful_runs cannot exceed total_runs")
        return self


class Execution(BaseModel):
    """One concrete run of a schedule. Never mutated after creation."""

    model_config = ConfigDict(frozen=True)

    id: ExecutionID
    schedule_id: ScheduleID
    executed_at: datetime
    status: ExecutionStatus
    recipient_count: int = Field(0, ge=0)
    items_included: int = Field(0, ge=0)
    critical_items: int = Field(0, ge=0)
    duration_ms: int = Field(0, ge=0)
    error_message: str | None = None

    @model_validator(mode="after")
    def _error_matches_status(self) -> "Execution":
        if self.status == ExecutionStatus.SUCCESS and self.error_message:
            raise ValueError("successful executions carry no error_message")
        if self.status != ExecutionStatus.SUCCESS and not self.error_message:
            raise ValueError("failed or partial executions require error_message")
        return self
