"""Unit tests for notifications/rule_registry.py"""

import unittest
from datetime import datetime, timezone
from unittest.mock import Mock

from notifications.rule_registry import RuleRegistry
from shared.errors import ConfigError, NotFoundError
from tests.fixtures.notification_factory import create_test_rule


class TestRuleRegistry(unittest.TestCase):
    def setUp(self):
        self.registry = RuleRegistry()

    def test_add_normalizes_recipients(self):
        rule = self.registry.add(
            create_test_rule(rule_id="r1", recipients=[" Ops@Example.com", "ops@example.com"])
        )
        self.assertEqual(rule.recipients, ["ops@example.com"])
        self.assertIsNotNone(rule.created_at)

    def test_duplicate_rejected(self):
        self.registry.add(create_test_rule(rule_id="r1"))
        with self.assertRaises(ConfigError):
            self.registry.add(create_test_rule(rule_id="r1"))

    def test_snapshot_in_registration_order(self):
        for rule_id in ("b", "a", "c"):
            self.registry.add(create_test_rule(rule_id=rule_id))
        self.assertEqual([rule.id for rule in self.registry.snapshot()], ["b", "a", "c"])

    def test_snapshot_isolated_from_edits(self):
        self.registry.add(create_test_rule(rule_id="r1"))
        snapshot = self.registry.snapshot()
        self.registry.set_active("r1", False)
        self.assertTrue(snapshot[0].active)
        self.assertFalse(self.registry.get("r1").active)

    def test_counters_not_editable(self):
        self.registry.add(create_test_rule(rule_id="r1"))
        for field in ("id", "total_sent", "last_triggered", "created_at"):
            with self.assertRaises(ConfigError):
                self.registry.update("r1", {field: None})

    def test_update_sets_updated_at(self):
        self.registry.add(create_test_rule(rule_id="r1"))
        before = self.registry.get("r1").updated_at
        updated = self.registry.update("r1", {"name": "Renamed"})
        self.assertEqual(updated.name, "Renamed")
        self.assertGreaterEqual(updated.updated_at, before)

    def test_record_sent(self):
        self.registry.add(create_test_rule(rule_id="r1"))
        sent_at = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)
        self.registry.record_sent("r1", sent_at, 3)
        rule = self.registry.record_sent("r1", sent_at, 2)
        self.assertEqual(rule.total_sent, 5)
        self.assertEqual(rule.last_triggered, sent_at)

    def test_unknown_rule(self):
        with self.assertRaises(NotFoundError):
            self.registry.get("missing")
        with self.assertRaises(NotFoundError):
            self.registry.delete("missing")
        with self.assertRaises(NotFoundError):
            self.registry.record_sent("missing", datetime.now(timezone.utc), 1)

    def test_persistence(self):
        repository = Mock()
        repository.load_rules.return_value = [create_test_rule(rule_id="r1")]
        registry = RuleRegistry(repository=repository)

        self.assertEqual(registry.hydrate(), 1)
        registry.set_active("r1", False)
        registry.delete("r1")

        repository.save_rule.assert_called_once()
        repository.delete_rule.assert_called_once_with("r1")


if __name__ == "__main__":
    unittest.main()
