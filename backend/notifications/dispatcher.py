"""
Notification dispatch for matched rules.

dispatch() renders a rule's template, sends it through the transport and
always appends exactly one NotificationLogEntry, whether the send succeeded,
failed, timed out or was blocked by unresolved template variables. Failed
sends are not retried.
"""

from datetime import datetime
from typing import Any, Mapping

from models.notification import NotificationLogEntry, NotificationRule, NotificationStatus
from notifications.email_sender import Transport
from notifications.error_logger import log_notification_error
from notifications.rule_registry import RuleRegistry
from notifications.template_renderer import DEFAULT_LIST_LIMIT, render
from shared.bounded_log import BoundedLog
from shared.errors import EngineError, NotFoundError
from shared.timeouts import call_with_timeout
from shared.utils import ensure_utc, new_id, normalize_recipients, utcnow

MANUAL_TEST_TRIGGER = "manual_test"

# Sample values used when sending a test notification
TEST_VARIABLES: dict[str, Any] = {
    "PLATFORM_NAME": "Test Platform",
    "RESOURCE_COUNT": 3,
    "RESOURCE_LIST": [
        {"title": "Sample Course", "type": "course"},
        {"title": "Sample Video", "type": "video"},
        {"title": "Sample Article", "type": "article"},
    ],
    "ERROR_MESSAGE": "N/A",
}


class NotificationDispatcher:
    """Renders and sends notifications for matched rules."""

    def __init__(
        self,
        transport: Transport,
        rules: RuleRegistry,
        log: BoundedLog[NotificationLogEntry],
        send_timeout_seconds: float = 30.0,
        list_limit: int = DEFAULT_LIST_LIMIT,
        block_on_unresolved: bool = False,
        error_log_dir: str | None = None,
    ):
        self.transport = transport
        self.rules = rules
        self.log = log
        self.send_timeout_seconds = send_timeout_seconds
        self.list_limit = list_limit
        self.block_on_unresolved = block_on_unresolved
        self.error_log_dir = error_log_dir

    def dispatch(
        self,
        rule: NotificationRule,
        variables: Mapping[str, Any],
        trigger_type: str = "manual",
        platform: str | None = None,
        resources_count: int | None = None,
        now: datetime | None = None,
    ) -> NotificationLogEntry:
        """
        Render and send one notification for a rule.

        Args:
            rule: Rule that matched (a snapshot; counters are updated in the registry)
            variables: Template variables
            trigger_type: Event kind or other trigger label recorded in the log
            platform: Event platform, if any
            resources_count: Resource count recorded in the log
            now: Dispatch time (defaults to current UTC time)

        Returns:
            The NotificationLogEntry appended to the log
        """
        sent_at = ensure_utc(now or utcnow())
        recipients = normalize_recipients(rule.recipients)
        rendered = render(rule.template, variables, self.list_limit)

        error = self._preflight(recipients, rendered.unresolved)
        if error is None:
            error = self._send(recipients, rendered.subject, rendered.body)

        entry = NotificationLogEntry(
            id=new_id(),
            rule_id=rule.id,
            rule_name=rule.name,
            trigger_type=trigger_type,
            platform=platform,
            recipients=recipients,
            subject=rendered.subject,
            status=NotificationStatus.FAILED if error else NotificationStatus.SENT,
            sent_at=sent_at,
            resources_count=resources_count,
            error_message=error,
        )
        self.log.append(entry)

        if error:
            error_file = log_notification_error(
                error_type="dispatch",
                error_message=error,
                context={
                    "rule_id": rule.id,
                    "rule_name": rule.name,
                    "trigger_type": trigger_type,
                    "platform": platform,
                    "recipient_count": len(recipients),
                },
                log_dir=self.error_log_dir,
            )
            print(f"  ✗ Failed to send '{rule.name}': {error}")
            print(f"    Error details logged to: {error_file}")
        else:
            print(f"  ✓ Sent '{rule.name}' to {len(recipients)} recipient(s)")
            if trigger_type != MANUAL_TEST_TRIGGER:
                self._record_sent(rule, sent_at, len(recipients))

        return entry

    def send_test(self, rule: NotificationRule, address: str) -> NotificationLogEntry:
        """Send a sample rendering of a rule to a single address. Rule counters are untouched."""
        test_rule = rule.model_copy(
            update={"name": f"{rule.name} (Test)", "recipients": [address]}
        )
        return self.dispatch(
            test_rule,
            TEST_VARIABLES,
            trigger_type=MANUAL_TEST_TRIGGER,
            resources_count=len(TEST_VARIABLES["RESOURCE_LIST"]),
        )

    def _record_sent(self, rule: NotificationRule, sent_at: datetime, count: int) -> None:
        try:
            self.rules.record_sent(rule.id, sent_at, count)
        except NotFoundError:
            # Rule deleted while its notification was in flight
            print(f"  ⚠️  Rule {rule.id} no longer registered, counters not updated")

    def _preflight(self, recipients: list[str], unresolved: list[str]) -> str | None:
        if not recipients:
            return "No recipients configured"
        if unresolved and self.block_on_unresolved:
            return f"Unresolved template variables: {', '.join(unresolved)}"
        return None

    def _send(self, recipients: list[str], subject: str, body: str) -> str | None:
        """Send through the transport. Returns an error message, or None on success."""
        try:
            result = call_with_timeout(
                self.transport.send,
                self.send_timeout_seconds,
                recipients,
                subject,
                body,
                operation="notification_send",
            )
        except EngineError as e:
            return str(e)
        except Exception as e:
            return f"Transport error: {e}"

        if not result.get("success"):
            return result.get("error") or "Unknown error"
        return None
