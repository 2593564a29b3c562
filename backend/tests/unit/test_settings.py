"""Unit tests for config/settings.py"""

import os
import unittest
from unittest.mock import patch

from config.settings import EngineSettings, load_settings
from shared.errors import ConfigError


class TestLoadSettings(unittest.TestCase):
    @patch.dict(os.environ, {}, clear=True)
    def test_defaults(self):
        settings = load_settings()
        self.assertEqual(settings.log_capacity, 100)
        self.assertEqual(settings.list_render_limit, 5)
        self.assertFalse(settings.block_on_unresolved)

    @patch.dict(
        os.environ,
        {
            "NOTIFICATION_LOG_CAPACITY": "250",
            "SEND_TIMEOUT_SECONDS": "7.5",
            "TEMPLATE_BLOCK_ON_UNRESOLVED": "true",
            "NOTIFICATION_WEBHOOK_URL": "https://hooks.example.com/notify",
        },
        clear=True,
    )
    def test_environment(self):
        settings = load_settings()
        self.assertEqual(settings.log_capacity, 250)
        self.assertEqual(settings.send_timeout_seconds, 7.5)
        self.assertTrue(settings.block_on_unresolved)
        self.assertEqual(settings.webhook_url, "https://hooks.example.com/notify")

    @patch.dict(os.environ, {"DISPATCH_WORKERS": "8"}, clear=True)
    def test_overrides_win(self):
        self.assertEqual(load_settings(dispatch_workers=2).dispatch_workers, 2)

    @patch.dict(os.environ, {"NOTIFICATION_LOG_CAPACITY": "zero"}, clear=True)
    def test_invalid_value(self):
        with self.assertRaises(ConfigError):
            load_settings()

    def test_positive_limits(self):
        with self.assertRaises(ValueError):
            EngineSettings(dispatch_workers=0)


if __name__ == "__main__":
    unittest.main()
