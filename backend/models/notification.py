"""Pydantic models for notification rules, templates and the notification log."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from models.event import EventKind
from models.types import PlatformID, RuleID, TemplateID
from shared.utils import extract_variables, normalize_recipients


class NotificationStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"
    PENDING = "pending"


class MessageTemplate(BaseModel):
    """Subject and body patterns carried by a rule."""

    subject: str = ""
    body: str = ""


class NotificationRule(BaseModel):
    """A standing rule that fires a notification when a matching event occurs."""

    model_config = ConfigDict(str_strip_whitespace=True)

    id: RuleID
    name: str = Field(..., min_length=1)
    description: str = ""
    active: bool = True
    triggers: dict[EventKind, bool] = Field(default_factory=dict)
    platforms: list[PlatformID] = Field(default_factory=list)
    recipients: list[str] = Field(default_factory=list)
    template: MessageTemplate = Field(default_factory=MessageTemplate)
    min_resources: int | None = Field(None, ge=0)
    last_triggered: datetime | None = None
    total_sent: int = Field(0, ge=0)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def listens_for(self, kind: EventKind) -> bool:
        return self.triggers.get(kind, False)


class EmailTemplate(BaseModel):
    """Reusable subject/body pattern. Default templates cannot be deleted."""

    model_config = ConfigDict(str_strip_whitespace=True)

    id: TemplateID
    name: str = Field(..., min_length=1)
    subject: str
    body: str
    category: str = Field("resources", pattern="^(sync|resources|reminders|alerts|digest)$")
    variables: list[str] = Field(default_factory=list)
    is_default: bool = False

    @model_validator(mode="after")
    def _derive_variables(self) -> "EmailTemplate":
        # Variables are always derived from the patterns, never trusted from input
        self.variables = extract_variables(self.subject, self.body)
        return self


class NotificationLogEntry(BaseModel):
    """Record of one dispatch attempt. Never mutated after creation."""

    model_config = ConfigDict(frozen=True)

    id: str
    rule_id: RuleID
    rule_name: str
    trigger_type: str
    platform: PlatformID | None = None
    recipients: list[str] = Field(default_factory=list)
    subject: str
    status: NotificationStatus
    sent_at: datetime
    resources_count: int | None = None
    error_message: str | None = None

    @field_validator("recipients")
    @classmethod
    def _normalize(cls, value: list[str]) -> list[str]:
        return normalize_recipients(value)
