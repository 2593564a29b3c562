"""
Wiring for the dispatch engine.

build_engine() assembles every component from EngineSettings and returns a
DispatchEngine holding them. Nothing here is a module-level singleton, so tests
and CLIs can build as many independent engines as they need.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from config.settings import EngineSettings, load_settings
from models.digest import DigestContext, RegulatoryUpdate
from models.notification import NotificationLogEntry, NotificationRule
from models.schedule import Execution
from notifications.dispatcher import NotificationDispatcher
from notifications.email_sender import DryRunTransport, ResendTransport, Transport
from notifications.event_router import NotificationService
from notifications.rule_registry import RuleRegistry
from notifications.template_renderer import TemplateLibrary
from notifications.webhook_sender import WebhookTransport
from processing.digest_generator import ContentGenerator, OllamaDigestGenerator
from scheduling.execution_runner import ExecutionRunner
from scheduling.rate_limiter import ExecutionRateLimiter, RateLimitConfig
from scheduling.schedule_store import ScheduleStore
from scheduling.scheduler_loop import SchedulerLoop
from scheduling.validation import build_group, build_schedule
from shared.bounded_log import BoundedLog
from shared.errors import ConfigError
from shared.repository import SupabaseRepository


@dataclass
class DispatchEngine:
    """All engine components, built once and passed explicitly."""

    settings: EngineSettings
    store: ScheduleStore
    rules: RuleRegistry
    templates: TemplateLibrary
    execution_log: BoundedLog[Execution]
    notification_log: BoundedLog[NotificationLogEntry]
    runner: ExecutionRunner
    scheduler: SchedulerLoop
    dispatcher: NotificationDispatcher
    notifications: NotificationService
    repository: SupabaseRepository | None = None

    def shutdown(self) -> None:
        self.scheduler.shutdown()
        self.notifications.shutdown()


def default_transport(settings: EngineSettings, dry_run: bool = False) -> Transport:
    """Dry-run, webhook (when a URL is configured) or Resend, in that order."""
    if dry_run:
        return DryRunTransport()
    if settings.webhook_url:
        return WebhookTransport(settings.webhook_url, timeout=settings.send_timeout_seconds)
    return ResendTransport(
        api_key=settings.resend_api_key,
        from_email=settings.from_email,
        from_name=settings.from_name,
    )


def build_engine(
    settings: EngineSettings | None = None,
    transport: Transport | None = None,
    generator: ContentGenerator | None = None,
    repository: SupabaseRepository | None = None,
    dry_run: bool = False,
) -> DispatchEngine:
    """
    Assemble an engine.

    Args:
        settings: Engine settings (loaded from the environment when omitted)
        transport: Send collaborator (derived from settings when omitted)
        generator: Digest content generator (Ollama when omitted)
        repository: Persistence; when given, state is hydrated from it and mirrored back
        dry_run: Use DryRunTransport when no transport is given

    Returns:
        A ready DispatchEngine; call shutdown() when done
    """
    settings = settings or load_settings()
    transport = transport or default_transport(settings, dry_run)

    if generator is None:

        def updates_source(context: DigestContext) -> list[RegulatoryUpdate]:
            if repository is None:
                return []
            return repository.load_updates(context.since)

        generator = OllamaDigestGenerator(
            updates_source,
            model=settings.ollama_model,
            host=settings.ollama_host,
            timeout=settings.ollama_timeout_seconds,
        )

    store = ScheduleStore(repository=repository)
    rules = RuleRegistry(repository=repository)
    if repository is not None:
        schedule_count = store.hydrate()
        rule_count = rules.hydrate()
        print(f"✓ Loaded {schedule_count} schedule(s) and {rule_count} rule(s)")

    execution_log: BoundedLog[Execution] = BoundedLog(
        settings.log_capacity,
        on_append=repository.record_execution if repository else None,
    )
    notification_log: BoundedLog[NotificationLogEntry] = BoundedLog(
        settings.log_capacity,
        on_append=repository.record_notification if repository else None,
    )
    templates = TemplateLibrary()

    runner = ExecutionRunner(
        store,
        generator,
        transport,
        execution_log,
        ExecutionRateLimiter(
            RateLimitConfig(
                max_executions_per_window=settings.max_executions_per_hour,
                max_recipients_per_run=settings.max_recipients_per_schedule,
            )
        ),
        templates=templates,
        content_timeout_seconds=settings.content_timeout_seconds,
        send_timeout_seconds=settings.send_timeout_seconds,
        batch_size=settings.send_batch_size,
        list_limit=settings.list_render_limit,
        error_log_dir=settings.error_log_dir,
    )
    dispatcher = NotificationDispatcher(
        transport,
        rules,
        notification_log,
        send_timeout_seconds=settings.send_timeout_seconds,
        list_limit=settings.list_render_limit,
        block_on_unresolved=settings.block_on_unresolved,
        error_log_dir=settings.error_log_dir,
    )

    return DispatchEngine(
        settings=settings,
        store=store,
        rules=rules,
        templates=templates,
        execution_log=execution_log,
        notification_log=notification_log,
        runner=runner,
        scheduler=SchedulerLoop(
            store,
            runner,
            workers=settings.scheduler_workers,
            poll_interval_seconds=settings.poll_interval_seconds,
        ),
        dispatcher=dispatcher,
        notifications=NotificationService(rules, dispatcher, settings.dispatch_workers),
        repository=repository,
    )


def load_seed(engine: DispatchEngine, path: str | Path) -> dict[str, int]:
    """
    Load recipient groups, schedules and rules from a JSON file.

    The file holds up to three lists: "groups", "schedules" and "rules". Rules may
    name a library template with "template_id" instead of an inline template.

    Raises:
        ConfigError: Unreadable file or invalid entry
    """
    try:
        data: dict[str, Any] = json.loads(Path(path).read_text())
    except (OSError, ValueError) as e:
        raise ConfigError(f"Could not read seed file {path}: {e}", {"path": str(path)}) from e

    counts = {"groups": 0, "schedules": 0, "rules": 0}
    for payload in data.get("groups", []):
        engine.store.create_group(build_group(payload))
        counts["groups"] += 1
    for payload in data.get("schedules", []):
        engine.store.create_schedule(build_schedule(payload))
        counts["schedules"] += 1
    for payload in data.get("rules", []):
        payload = dict(payload)
        template_id = payload.pop("template_id", None)
        if template_id:
            payload["template"] = engine.templates.apply_to(template_id).model_dump()
        try:
            rule = NotificationRule.model_validate(payload)
        except ValidationError as e:
            raise ConfigError(f"Invalid rule: {e}", {"rule_id": payload.get("id")}) from e
        engine.rules.add(rule)
        counts["rules"] += 1
    return counts
