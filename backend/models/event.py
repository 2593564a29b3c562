"""Pydantic models for inbound events that can trigger notification rules."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from models.types import PlatformID
from shared.utils import utcnow


class EventKind(str, Enum):
    SYNC_SUCCESS = "sync_success"
    SYNC_FAILURE = "sync_failure"
    NEW_RESOURCES = "new_resources"
    UPDATED_RESOURCES = "updated_resources"
    CERTIFICATION_AVAILABLE = "certification_available"
    DEADLINE_REMINDER = "deadline_reminder"


class Resource(BaseModel):
    """A learning resource referenced by an event."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    title: str = Field(..., min_length=1)
    type: str = "resource"


class Event(BaseModel):
    """An inbound event. Immutable once received."""

    model_config = ConfigDict(frozen=True)

    kind: EventKind
    platform: PlatformID | None = None
    resources_added: int = Field(0, ge=0)
    resources: list[Resource] = Field(default_factory=list)
    error_message: str | None = None
    occurred_at: datetime = Field(default_factory=utcnow)
