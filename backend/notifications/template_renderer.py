"""
Template rendering for notification and digest emails.

Placeholders are written as {NAME}. Rendering is a single pass, so text
coming from a substituted value is never scanned for further placeholders.
Placeholders without a supplied value are left verbatim and reported back
to the caller, which decides whether to send anyway.
"""

import threading
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from config.default_templates import DEFAULT_TEMPLATES
from models.notification import EmailTemplate, MessageTemplate
from models.types import TemplateID
from shared.errors import ConfigError, NotFoundError
from shared.utils import PLACEHOLDER_RE, extract_variables

DEFAULT_LIST_LIMIT = 5


@dataclass(frozen=True)
class RenderedMessage:
    """Result of rendering a subject/body pair."""

    subject: str
    body: str
    unresolved: list[str] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return not self.unresolved


def _item_label(item: Any) -> str:
    # Resources arrive as models, dicts or plain strings
    if isinstance(item, str):
        return item
    if isinstance(item, Mapping):
        title, kind = item.get("title"), item.get("type")
    else:
        title, kind = getattr(item, "title", None), getattr(item, "type", None)
    if title is None:
        return str(item)
    return f"{title} ({kind})" if kind else str(title)


def format_list(items: Iterable[Any], limit: int = DEFAULT_LIST_LIMIT) -> str:
    """
    Render items as an enumerated list truncated to ``limit`` entries.

    Example:
        1. GDPR Basics (course)
        2. ISO 27001 Primer (video)
        +3 more
    """
    items = list(items)
    lines = [f"{index}. {_item_label(item)}" for index, item in enumerate(items[:limit], 1)]
    remaining = len(items) - limit
    if remaining > 0:
        lines.append(f"+{remaining} more")
    return "\n".join(lines)


def _format_value(value: Any, list_limit: int) -> str:
    if isinstance(value, (list, tuple)):
        return format_list(value, list_limit)
    return str(value)


def render_text(
    text: str, variables: Mapping[str, Any], list_limit: int = DEFAULT_LIST_LIMIT
) -> tuple[str, list[str]]:
    """Substitute placeholders in one string. Returns (text, unresolved names)."""
    unresolved: dict[str, None] = {}

    def substitute(match) -> str:
        name = match.group(1)
        if name in variables and variables[name] is not None:
            return _format_value(variables[name], list_limit)
        unresolved.setdefault(name, None)
        return match.group(0)

    return PLACEHOLDER_RE.sub(substitute, text or ""), list(unresolved)


def render(
    template: MessageTemplate | EmailTemplate,
    variables: Mapping[str, Any],
    list_limit: int = DEFAULT_LIST_LIMIT,
) -> RenderedMessage:
    """
    Render a template's subject and body.

    Args:
        template: Any object with subject and body patterns
        variables: Values keyed by placeholder name; list values become enumerated lists
        list_limit: Maximum list items before a "+K more" suffix

    Returns:
        RenderedMessage with unresolved placeholder names (empty when complete)
    """
    subject, missing_subject = render_text(template.subject, variables, list_limit)
    body, missing_body = render_text(template.body, variables, list_limit)
    unresolved = list(dict.fromkeys(missing_subject + missing_body))
    if unresolved:
        print(f"  ⚠️  Unresolved template variables: {', '.join(unresolved)}")
    return RenderedMessage(subject=subject, body=body, unresolved=unresolved)


class TemplateLibrary:
    """Named email templates. Default templates can be edited but never deleted."""

    def __init__(self, templates: Iterable[EmailTemplate] | None = None):
        seed = DEFAULT_TEMPLATES if templates is None else templates
        self._templates: dict[TemplateID, EmailTemplate] = {
            template.id: template.model_copy(deep=True) for template in seed
        }
        self._lock = threading.Lock()

    def get(self, template_id: TemplateID) -> EmailTemplate:
        with self._lock:
            template = self._templates.get(template_id)
            if template is None:
                raise NotFoundError(f"Template {template_id} not found.", {"template_id": template_id})
            return template.model_copy(deep=True)

    def list_templates(self) -> list[EmailTemplate]:
        with self._lock:
            return [template.model_copy(deep=True) for template in self._templates.values()]

    def save(self, template: EmailTemplate) -> EmailTemplate:
        """Create or replace a template; variables are re-derived from its patterns."""
        stored = EmailTemplate.model_validate(template.model_dump(exclude={"variables"}))
        with self._lock:
            existing = self._templates.get(stored.id)
            if existing is not None and existing.is_default and not stored.is_default:
                stored = stored.model_copy(update={"is_default": True})
            self._templates[stored.id] = stored
        return stored.model_copy(deep=True)

    def delete(self, template_id: TemplateID) -> None:
        """
        Raises:
            NotFoundError: Unknown template
            ConfigError: Template is a default template
        """
        with self._lock:
            template = self._templates.get(template_id)
            if template is None:
                raise NotFoundError(f"Template {template_id} not found.", {"template_id": template_id})
            if template.is_default:
                raise ConfigError(
                    "Cannot delete default templates.", {"template_id": template_id}
                )
            del self._templates[template_id]

    def apply_to(self, template_id: TemplateID) -> MessageTemplate:
        """Copy a library template's patterns into a rule template."""
        template = self.get(template_id)
        return MessageTemplate(subject=template.subject, body=template.body)


__all__ = [
    "RenderedMessage",
    "TemplateLibrary",
    "extract_variables",
    "format_list",
    "render",
    "render_text",
]
