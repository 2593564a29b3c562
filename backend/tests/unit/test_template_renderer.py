"""
Unit tests for notifications/template_renderer.py

Tests single-pass substitution, list formatting, unresolved-token reporting
and the template library's protection of default templates.
"""

import unittest
from unittest.mock import patch

from models.event import Resource
from models.notification import EmailTemplate, MessageTemplate
from notifications.template_renderer import (
    TemplateLibrary,
    format_list,
    render,
    render_text,
)
from shared.errors import ConfigError, NotFoundError
from shared.utils import extract_variables


class TestFormatList(unittest.TestCase):
    def test_numbered_with_types(self):
        items = [Resource(title="GDPR Basics", type="course"), {"title": "DPIA 101", "type": "video"}]
        self.assertEqual(format_list(items), "1. GDPR Basics (course)\n2. DPIA 101 (video)")

    def test_truncates_with_more_suffix(self):
        items = [f"Item {i}" for i in range(8)]
        result = format_list(items, limit=5)
        lines = result.split("\n")
        self.assertEqual(len(lines), 6)
        self.assertEqual(lines[4], "5. Item 4")
        self.assertEqual(lines[5], "+3 more")

    def test_exact_limit_has_no_suffix(self):
        self.assertNotIn("more", format_list(["a", "b"], limit=2))

    def test_empty(self):
        self.assertEqual(format_list([]), "")


class TestRenderText(unittest.TestCase):
    def test_substitutes_every_occurrence(self):
        text, unresolved = render_text("{A} and {A} and {B}", {"A": "x", "B": 2})
        self.assertEqual(text, "x and x and 2")
        self.assertEqual(unresolved, [])

    def test_single_pass(self):
        """A value containing a token is not expanded again"""
        text, _ = render_text("{A}", {"A": "{B}", "B": "nope"})
        self.assertEqual(text, "{B}")

    def test_unresolved_kept_literally(self):
        text, unresolved = render_text("Hi {NAME}, see {LINK}", {"NAME": "Ana"})
        self.assertEqual(text, "Hi Ana, see {LINK}")
        self.assertEqual(unresolved, ["LINK"])

    def test_none_value_is_unresolved(self):
        text, unresolved = render_text("{A}", {"A": None})
        self.assertEqual(text, "{A}")
        self.assertEqual(unresolved, ["A"])

    def test_non_identifier_braces_ignored(self):
        text, unresolved = render_text('{"json": 1} {1X}', {})
        self.assertEqual(text, '{"json": 1} {1X}')
        self.assertEqual(unresolved, [])

    def test_list_limit_applied(self):
        text, _ = render_text("{L}", {"L": ["a", "b", "c"]}, list_limit=1)
        self.assertEqual(text, "1. a\n+2 more")


class TestRender(unittest.TestCase):
    @patch("builtins.print")
    def test_reports_unresolved_across_subject_and_body(self, mock_print):
        template = MessageTemplate(subject="{X} {Y}", body="{Y} {Z}")
        rendered = render(template, {"Y": "y"})

        self.assertEqual(rendered.subject, "{X} y")
        self.assertEqual(rendered.unresolved, ["X", "Z"])
        self.assertFalse(rendered.is_complete)
        mock_print.assert_called_once()

    def test_complete(self):
        rendered = render(MessageTemplate(subject="{A}", body="b"), {"A": 1})
        self.assertTrue(rendered.is_complete)
        self.assertEqual(rendered.subject, "1")


class TestExtractVariables(unittest.TestCase):
    def test_first_appearance_order(self):
        self.assertEqual(
            extract_variables("{B} {A}", "{A} {C} {B}"),
            ["B", "A", "C"],
        )

    def test_email_template_derives_variables(self):
        template = EmailTemplate(
            id="t1", name="T", subject="{X}", body="{Y} {X}", category="alerts"
        )
        self.assertEqual(template.variables, ["X", "Y"])


class TestTemplateLibrary(unittest.TestCase):
    def setUp(self):
        self.library = TemplateLibrary()

    def test_seeded_with_defaults(self):
        ids = {template.id for template in self.library.list_templates()}
        self.assertTrue(
            {
                "new-resources",
                "resource-sync-success",
                "sync-failure",
                "certification-available",
                "deadline-reminder",
                "scheduled-digest",
            }
            <= ids
        )
        for template in self.library.list_templates():
            self.assertTrue(template.is_default)

    def test_event_list_variables_used_by_defaults(self):
        self.assertIn(
            "CERTIFICATION_LIST", self.library.get("certification-available").variables
        )
        self.assertIn("DEADLINE_LIST", self.library.get("deadline-reminder").variables)
        self.assertIn("RESOURCE_LIST", self.library.get("resource-sync-success").variables)

    def test_default_cannot_be_deleted(self):
        with self.assertRaises(ConfigError):
            self.library.delete("new-resources")
        self.assertEqual(self.library.get("new-resources").id, "new-resources")

    def test_default_stays_default_after_edit(self):
        template = self.library.get("new-resources")
        edited = template.model_copy(update={"subject": "Fresh: {PLATFORM_NAME}", "is_default": False})
        saved = self.library.save(edited)
        self.assertTrue(saved.is_default)
        self.assertEqual(saved.subject, "Fresh: {PLATFORM_NAME}")

    def test_custom_template_lifecycle(self):
        custom = EmailTemplate(
            id="custom", name="Custom", subject="{A}", body="{B}", category="alerts"
        )
        saved = self.library.save(custom)
        self.assertEqual(saved.variables, ["A", "B"])

        self.library.delete("custom")
        with self.assertRaises(NotFoundError):
            self.library.get("custom")

    def test_save_rederives_variables(self):
        custom = EmailTemplate(
            id="custom", name="Custom", subject="{A}", body="", category="alerts"
        )
        stale = custom.model_copy(update={"subject": "{NEW}"})
        self.assertEqual(self.library.save(stale).variables, ["NEW"])

    def test_apply_to(self):
        template = self.library.apply_to("sync-failure")
        self.assertIsInstance(template, MessageTemplate)
        self.assertIn("{ERROR_MESSAGE}", template.body)

    def test_unknown_template(self):
        with self.assertRaises(NotFoundError):
            self.library.apply_to("missing")


if __name__ == "__main__":
    unittest.main()
