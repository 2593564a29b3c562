"""Pydantic models exchanged with the digest content generator."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from models.schedule import RecipientGroup, Schedule


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RegulatoryUpdate(BaseModel):
    """A regulatory change that may be included in a digest."""

    model_config = ConfigDict(str_strip_whitespace=True)

    id: str
    title: str = Field(..., min_length=1)
    severity: Severity = Severity.MEDIUM
    authority: str = ""
    update_type: str = "guidance"
    summary: str = ""
    published_at: datetime | None = None


class DigestContext(BaseModel):
    """Everything a content generator needs to write one digest."""

    schedule: Schedule
    groups: list[RecipientGroup] = Field(default_factory=list)
    since: datetime | None = None
    generated_at: datetime


class DigestContent(BaseModel):
    """Generated digest prose plus the counts recorded on the Execution."""

    body: str
    items_included: int = Field(0, ge=0)
    critical_items: int = Field(0, ge=0)
