"""
Event ingestion for notification rules.

Events may arrive concurrently from several sources. Each event is matched
against an immutable snapshot of the rule set, template variables are built
by the handler registered for the event kind, and one dispatch per matching
rule is submitted to a bounded worker pool so outbound sends stay capped.
"""

from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable

from config.default_templates import platform_display_name
from models.event import Event, EventKind
from models.notification import NotificationLogEntry
from notifications.dispatcher import NotificationDispatcher
from notifications.rule_registry import RuleRegistry
from notifications.trigger_evaluator import matches

VariableBuilder = Callable[[Event], dict[str, Any]]


def _common_variables(event: Event) -> dict[str, Any]:
    return {
        "PLATFORM_NAME": platform_display_name(event.platform),
        "RESOURCE_COUNT": event.resources_added or len(event.resources),
        "SYNC_TIME": event.occurred_at.strftime("%Y-%m-%d %H:%M UTC"),
        "EVENT_TYPE": event.kind.value,
    }


def _resource_variables(event: Event) -> dict[str, Any]:
    variables = _common_variables(event)
    variables["RESOURCE_LIST"] = list(event.resources)
    return variables


def _sync_success_variables(event: Event) -> dict[str, Any]:
    variables = _resource_variables(event)
    variables["ERROR_MESSAGE"] = "N/A"
    return variables


def _sync_failure_variables(event: Event) -> dict[str, Any]:
    variables = _common_variables(event)
    variables["ERROR_MESSAGE"] = event.error_message or "Unknown error"
    return variables


def _certification_variables(event: Event) -> dict[str, Any]:
    variables = _resource_variables(event)
    variables["CERTIFICATION_LIST"] = list(event.resources)
    return variables


def _deadline_variables(event: Event) -> dict[str, Any]:
    variables = _common_variables(event)
    variables["DEADLINE_LIST"] = list(event.resources)
    return variables


VARIABLE_BUILDERS: dict[EventKind, VariableBuilder] = {
    EventKind.SYNC_SUCCESS: _sync_success_variables,
    EventKind.SYNC_FAILURE: _sync_failure_variables,
    EventKind.NEW_RESOURCES: _resource_variables,
    EventKind.UPDATED_RESOURCES: _resource_variables,
    EventKind.CERTIFICATION_AVAILABLE: _certification_variables,
    EventKind.DEADLINE_REMINDER: _deadline_variables,
}


def build_variables(event: Event) -> dict[str, Any]:
    """Template variables for an event, via the handler registered for its kind."""
    return VARIABLE_BUILDERS[event.kind](event)


class NotificationService:
    """Routes events to matching rules and fans dispatches out over a worker pool."""

    def __init__(
        self,
        rules: RuleRegistry,
        dispatcher: NotificationDispatcher,
        max_workers: int = 4,
    ):
        self.rules = rules
        self.dispatcher = dispatcher
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="dispatch")

    def handle_event(self, event: Event) -> list[Future]:
        """
        Match an event and submit one dispatch per matching rule.

        Returns:
            Futures resolving to NotificationLogEntry, in rule registration order
        """
        matched = matches(event, self.rules.snapshot())
        if not matched:
            return []

        print(f"→ {event.kind.value} from {event.platform or 'unknown'} matched {len(matched)} rule(s)")
        variables = build_variables(event)
        resources_count = event.resources_added or len(event.resources)
        return [
            self._pool.submit(
                self.dispatcher.dispatch,
                rule,
                variables,
                trigger_type=event.kind.value,
                platform=event.platform,
                resources_count=resources_count,
            )
            for rule in matched
        ]

    def process_event(self, event: Event) -> list[NotificationLogEntry]:
        """Handle an event and wait for all of its dispatches."""
        return [future.result() for future in self.handle_event(event)]

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)
