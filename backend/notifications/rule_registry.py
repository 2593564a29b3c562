"""
Registry of notification rules.

Rules are kept in registration order. Event evaluation works on snapshot(),
an immutable tuple of copies, so evaluation never holds the registry lock
and never sees a half-applied edit.
"""

import threading
from datetime import datetime
from typing import Any, Iterable, Protocol

from models.notification import NotificationRule
from models.types import RuleID
from shared.errors import ConfigError, NotFoundError
from shared.utils import ensure_utc, normalize_recipients, utcnow

_IMMUTABLE_RULE_FIELDS = {"id", "created_at"}
_DISPATCH_FIELDS = {"last_triggered", "total_sent"}


class RuleRepository(Protocol):
    def load_rules(self) -> list[NotificationRule]: ...

    def save_rule(self, rule: NotificationRule) -> None: ...

    def delete_rule(self, rule_id: str) -> None: ...


class RuleRegistry:
    """Holds NotificationRule entities behind a single lock."""

    def __init__(
        self,
        rules: Iterable[NotificationRule] | None = None,
        repository: RuleRepository | None = None,
    ):
        self._rules: dict[RuleID, NotificationRule] = {}
        self._lock = threading.RLock()
        self._repository = repository
        for rule in rules or []:
            self._rules[rule.id] = self._prepare(rule)

    def hydrate(self) -> int:
        """Load persisted rules in their stored order. Returns number loaded."""
        if self._repository is None:
            return 0
        rules = self._repository.load_rules()
        with self._lock:
            self._rules = {rule.id: rule for rule in rules}
        return len(rules)

    def add(self, rule: NotificationRule) -> NotificationRule:
        with self._lock:
            if rule.id in self._rules:
                raise ConfigError(f"Rule {rule.id} already exists.", {"rule_id": rule.id})
            stored = self._prepare(rule)
            self._rules[stored.id] = stored
        self._persist(stored)
        return stored.model_copy(deep=True)

    def update(self, rule_id: RuleID, changes: dict[str, Any]) -> NotificationRule:
        """
        Replace mutable fields of a rule. Dispatch counters are not editable.

        Raises:
            NotFoundError: Unknown rule
            ConfigError: Attempt to edit identity or counters, or invalid values
        """
        forbidden = (_IMMUTABLE_RULE_FIELDS | _DISPATCH_FIELDS) & set(changes)
        if forbidden:
            raise ConfigError(
                f"Cannot edit fields: {', '.join(sorted(forbidden))}.",
                {"rule_id": rule_id, "fields": sorted(forbidden)},
            )
        with self._lock:
            current = self._require(rule_id)
            merged = current.model_dump()
            merged.update(changes)
            merged["updated_at"] = utcnow()
            try:
                updated = self._prepare(NotificationRule.model_validate(merged))
            except ValueError as e:
                raise ConfigError(f"Invalid rule update: {e}", {"rule_id": rule_id}) from e
            self._rules[rule_id] = updated
        self._persist(updated)
        return updated.model_copy(deep=True)

    def set_active(self, rule_id: RuleID, active: bool) -> NotificationRule:
        return self.update(rule_id, {"active": active})

    def delete(self, rule_id: RuleID) -> None:
        with self._lock:
            self._require(rule_id)
            del self._rules[rule_id]
        if self._repository is not None:
            self._repository.delete_rule(rule_id)

    def get(self, rule_id: RuleID) -> NotificationRule:
        with self._lock:
            return self._require(rule_id).model_copy(deep=True)

    def snapshot(self) -> tuple[NotificationRule, ...]:
        """Immutable copy of all rules in registration order."""
        with self._lock:
            return tuple(rule.model_copy(deep=True) for rule in self._rules.values())

    def record_sent(self, rule_id: RuleID, sent_at: datetime, recipient_count: int) -> NotificationRule:
        """Bookkeeping after a successful dispatch."""
        with self._lock:
            current = self._require(rule_id)
            updated = current.model_copy(
                update={
                    "last_triggered": ensure_utc(sent_at),
                    "total_sent": current.total_sent + recipient_count,
                }
            )
            self._rules[rule_id] = updated
        self._persist(updated)
        return updated.model_copy(deep=True)

    def _prepare(self, rule: NotificationRule) -> NotificationRule:
        now = utcnow()
        return rule.model_copy(
            update={
                "recipients": normalize_recipients(rule.recipients),
                "created_at": rule.created_at or now,
                "updated_at": rule.updated_at or now,
            },
            deep=True,
        )

    def _require(self, rule_id: RuleID) -> NotificationRule:
        rule = self._rules.get(rule_id)
        if rule is None:
            raise NotFoundError(f"Rule {rule_id} not found.", {"rule_id": rule_id})
        return rule

    def _persist(self, rule: NotificationRule) -> None:
        if self._repository is not None:
            self._repository.save_rule(rule)
