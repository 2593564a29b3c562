"""Pydantic models for data validation and type checking."""

from models.digest import DigestContent, DigestContext, RegulatoryUpdate, Severity
from models.event import Event, EventKind, Resource
from models.notification import (
    EmailTemplate,
    MessageTemplate,
    NotificationLogEntry,
    NotificationRule,
    NotificationStatus,
)
from models.schedule import (
    Execution,
    ExecutionStatus,
    Frequency,
    RecipientFilter,
    RecipientGroup,
    RecurrenceSpec,
    Schedule,
    TimeOfDay,
)

__all__ = [
    "DigestContent",
    "DigestContext",
    "RegulatoryUpdate",
    "Severity",
    "Event",
    "EventKind",
    "Resource",
    "EmailTemplate",
    "MessageTemplate",
    "NotificationLogEntry",
    "NotificationRule",
    "NotificationStatus",
    "Execution",
    "ExecutionStatus",
    "Frequency",
    "RecipientFilter",
    "RecipientGroup",
    "RecurrenceSpec",
    "Schedule",
    "TimeOfDay",
]
