"""
Unit tests for notifications/dispatcher.py

Tests that every dispatch is logged exactly once, that rule counters only
move on success, and how transport failures and timeouts are recorded.
"""

import threading
import unittest
from datetime import datetime, timezone
from unittest.mock import Mock, patch

from models.notification import NotificationStatus
from notifications.dispatcher import MANUAL_TEST_TRIGGER, NotificationDispatcher
from notifications.rule_registry import RuleRegistry
from shared.bounded_log import BoundedLog
from tests.fixtures.mock_helpers import RecordingTransport
from tests.fixtures.notification_factory import create_test_rule

NOW = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)
VARIABLES = {"PLATFORM_NAME": "Coursera", "RESOURCE_COUNT": 2, "RESOURCE_LIST": ["A", "B"]}


class DispatcherTestCase(unittest.TestCase):
    def setUp(self):
        patcher = patch("notifications.dispatcher.log_notification_error", return_value="report.txt")
        self.mock_error_log = patcher.start()
        self.addCleanup(patcher.stop)
        print_patcher = patch("builtins.print")
        print_patcher.start()
        self.addCleanup(print_patcher.stop)

        self.rules = RuleRegistry()
        self.rule = self.rules.add(
            create_test_rule(rule_id="r1", recipients=["Team@Example.com", "team@example.com", "x@example.com"])
        )
        self.log = BoundedLog(capacity=100)
        self.transport = RecordingTransport()

    def make_dispatcher(self, **kwargs):
        return NotificationDispatcher(self.transport, self.rules, self.log, **kwargs)


class TestDispatchSuccess(DispatcherTestCase):
    def test_sent_entry_and_counters(self):
        entry = self.make_dispatcher().dispatch(
            self.rule, VARIABLES, trigger_type="new_resources", platform="coursera",
            resources_count=2, now=NOW,
        )

        self.assertEqual(entry.status, NotificationStatus.SENT)
        self.assertEqual(entry.subject, "New resources from Coursera")
        self.assertEqual(entry.recipients, ["team@example.com", "x@example.com"])
        self.assertIsNone(entry.error_message)
        self.assertEqual(self.log.entries(), [entry])

        rule = self.rules.get("r1")
        self.assertEqual(rule.total_sent, 2)
        self.assertEqual(rule.last_triggered, NOW)
        self.mock_error_log.assert_not_called()

    def test_transport_receives_rendered_message(self):
        self.make_dispatcher().dispatch(self.rule, VARIABLES, now=NOW)
        call = self.transport.calls[0]
        self.assertEqual(call["recipients"], ["team@example.com", "x@example.com"])
        self.assertIn("1. A\n2. B", call["body"])

    def test_unresolved_allowed_by_default(self):
        entry = self.make_dispatcher().dispatch(self.rule, {"PLATFORM_NAME": "Coursera"}, now=NOW)
        self.assertEqual(entry.status, NotificationStatus.SENT)
        self.assertIn("{RESOURCE_COUNT}", self.transport.calls[0]["body"])


class TestDispatchFailure(DispatcherTestCase):
    def test_transport_failure_logged_and_counters_untouched(self):
        self.transport.results = [{"success": False, "error": "Mailbox full"}]

        entry = self.make_dispatcher().dispatch(self.rule, VARIABLES, now=NOW)

        self.assertEqual(entry.status, NotificationStatus.FAILED)
        self.assertEqual(entry.error_message, "Mailbox full")
        self.assertEqual(len(self.log), 1)
        rule = self.rules.get("r1")
        self.assertEqual(rule.total_sent, 0)
        self.assertIsNone(rule.last_triggered)
        self.mock_error_log.assert_called_once()
        self.assertEqual(self.mock_error_log.call_args.kwargs["error_type"], "dispatch")

    def test_transport_exception(self):
        transport = Mock()
        transport.send.side_effect = ConnectionError("refused")
        dispatcher = NotificationDispatcher(transport, self.rules, self.log)

        entry = dispatcher.dispatch(self.rule, VARIABLES, now=NOW)

        self.assertEqual(entry.status, NotificationStatus.FAILED)
        self.assertIn("refused", entry.error_message)

    def test_timeout(self):
        release = threading.Event()
        transport = Mock()
        transport.send.side_effect = lambda *args: release.wait(5) and {"success": True}
        dispatcher = NotificationDispatcher(
            transport, self.rules, self.log, send_timeout_seconds=0.05
        )
        try:
            entry = dispatcher.dispatch(self.rule, VARIABLES, now=NOW)
        finally:
            release.set()

        self.assertEqual(entry.status, NotificationStatus.FAILED)
        self.assertIn("timed out", entry.error_message)
        self.assertEqual(self.rules.get("r1").total_sent, 0)

    def test_no_recipients(self):
        rule = self.rules.add(create_test_rule(rule_id="r2", recipients=[]))
        entry = self.make_dispatcher().dispatch(rule, VARIABLES, now=NOW)
        self.assertEqual(entry.status, NotificationStatus.FAILED)
        self.assertEqual(self.transport.calls, [])

    def test_block_on_unresolved(self):
        entry = self.make_dispatcher(block_on_unresolved=True).dispatch(
            self.rule, {"PLATFORM_NAME": "Coursera"}, now=NOW
        )
        self.assertEqual(entry.status, NotificationStatus.FAILED)
        self.assertIn("RESOURCE_COUNT", entry.error_message)
        self.assertEqual(self.transport.calls, [])

    def test_rule_deleted_mid_flight(self):
        self.rules.delete("r1")
        entry = self.make_dispatcher().dispatch(self.rule, VARIABLES, now=NOW)
        self.assertEqual(entry.status, NotificationStatus.SENT)


class TestSendTest(DispatcherTestCase):
    def test_single_address_and_counters_unchanged(self):
        entry = self.make_dispatcher().send_test(self.rule, "me@example.com")

        self.assertEqual(entry.trigger_type, MANUAL_TEST_TRIGGER)
        self.assertEqual(entry.recipients, ["me@example.com"])
        self.assertEqual(entry.rule_name, "New Coursera Resources (Test)")
        self.assertEqual(self.rules.get("r1").total_sent, 0)
        self.assertIn("Test Platform", self.transport.calls[0]["subject"])


if __name__ == "__main__":
    unittest.main()
