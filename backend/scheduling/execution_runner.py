"""
Scheduled digest runs.

ExecutionRunner.run() performs one run of a schedule: resolve recipients,
check rate limits, generate content, render, send in batches, then record
exactly one Execution and advance the schedule. A run already in progress
for the same schedule makes a second call return None without side effects.
"""

import threading
import time
import weakref
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

from models.digest import DigestContent, DigestContext
from models.schedule import Execution, ExecutionStatus, Schedule
from models.types import ScheduleID, TemplateID
from notifications.email_sender import Transport
from notifications.error_logger import log_notification_error
from notifications.template_renderer import DEFAULT_LIST_LIMIT, TemplateLibrary, render
from processing.digest_generator import ContentGenerator
from scheduling.rate_limiter import ExecutionRateLimiter
from scheduling.schedule_store import ScheduleStore
from shared.bounded_log import BoundedLog
from shared.errors import EngineError, NotFoundError
from shared.timeouts import call_with_timeout
from shared.utils import chunked, ensure_utc, new_id, utcnow

DEFAULT_DIGEST_TEMPLATE = TemplateID("scheduled-digest")


class _RunFailed(Exception):
    """Internal signal: the run stops here and is recorded as failed."""

    def __init__(self, message: str, content: DigestContent | None = None):
        super().__init__(message)
        self.message = message
        self.content = content


class ExecutionRunner:
    """Runs schedules one at a time per schedule id, concurrently across ids."""

    def __init__(
        self,
        store: ScheduleStore,
        generator: ContentGenerator,
        transport: Transport,
        execution_log: BoundedLog[Execution],
        rate_limiter: ExecutionRateLimiter,
        templates: TemplateLibrary | None = None,
        content_timeout_seconds: float = 120.0,
        send_timeout_seconds: float = 30.0,
        batch_size: int = 50,
        list_limit: int = DEFAULT_LIST_LIMIT,
        error_log_dir: str | None = None,
    ):
        self.store = store
        self.generator = generator
        self.transport = transport
        self.execution_log = execution_log
        self.rate_limiter = rate_limiter
        self.templates = templates or TemplateLibrary()
        self.content_timeout_seconds = content_timeout_seconds
        self.send_timeout_seconds = send_timeout_seconds
        self.batch_size = batch_size
        self.list_limit = list_limit
        self.error_log_dir = error_log_dir
        # Entries vanish once no run holds the lock
        self._run_locks: weakref.WeakValueDictionary[ScheduleID, threading.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._registry_lock = threading.Lock()

    def run(self, schedule_id: ScheduleID, now: datetime | None = None) -> Execution | None:
        """
        Execute one run of a schedule.

        Args:
            schedule_id: Schedule to run
            now: Execution time (defaults to current UTC time)

        Returns:
            The recorded Execution, or None if a run of this schedule was already in progress

        Raises:
            NotFoundError: Unknown schedule
        """
        schedule = self.store.get_schedule(schedule_id)
        lock = self._lock_for(schedule_id)
        if not lock.acquire(blocking=False):
            print(f"  → Skipping '{schedule.name}': a run is already in progress")
            return None

        try:
            return self._execute(schedule, ensure_utc(now or utcnow()))
        finally:
            lock.release()

    def is_running(self, schedule_id: ScheduleID) -> bool:
        return self._lock_for(schedule_id).locked()

    def _lock_for(self, schedule_id: ScheduleID) -> threading.Lock:
        with self._registry_lock:
            lock = self._run_locks.get(schedule_id)
            if lock is None:
                lock = threading.Lock()
                self._run_locks[schedule_id] = lock
            return lock

    def _execute(self, schedule: Schedule, executed_at: datetime) -> Execution:
        started = time.monotonic()
        print(f"\n→ Running schedule '{schedule.name}' ({schedule.id})")

        recipients = self.store.resolve_recipients(schedule.recipient_group_ids)
        content: DigestContent | None = None
        status = ExecutionStatus.FAILED
        error: str | None = None

        if not recipients:
            # Unknown, disabled and empty groups contribute nobody; the run is a no-op
            print("  → No recipients resolved, nothing to send")
            status = ExecutionStatus.SUCCESS
        else:
            try:
                self._check_limits(schedule, recipients, executed_at)
                content = self._generate(schedule, executed_at)
                subject, body = self._render(schedule, content, executed_at)
                status, error = self._send_batches(recipients, subject, body)
            except _RunFailed as e:
                error = e.message
                content = e.content or content

        execution = Execution(
            id=new_id(),
            schedule_id=schedule.id,
            executed_at=executed_at,
            status=status,
            recipient_count=len(recipients),
            items_included=content.items_included if content else 0,
            critical_items=content.critical_items if content else 0,
            duration_ms=int((time.monotonic() - started) * 1000),
            error_message=error,
        )

        try:
            self.store.record_run(schedule.id, executed_at, status == ExecutionStatus.SUCCESS)
        except NotFoundError:
            # Deleted while running; history is still kept
            print(f"  ⚠️  Schedule {schedule.id} was deleted during its run")
        self.execution_log.append(execution)
        self._report(schedule, execution)
        return execution

    def _check_limits(self, schedule: Schedule, recipients: list[str], now: datetime) -> None:
        try:
            self.rate_limiter.check(schedule.id, len(recipients), now)
        except EngineError as e:
            raise _RunFailed(str(e)) from e
        self.rate_limiter.record(schedule.id, now)

    def _generate(self, schedule: Schedule, now: datetime) -> DigestContent:
        context = DigestContext(
            schedule=schedule,
            groups=self.store.groups_for(schedule.recipient_group_ids),
            since=schedule.last_run,
            generated_at=now,
        )
        try:
            return call_with_timeout(
                self.generator.generate,
                self.content_timeout_seconds,
                context,
                operation="content_generation",
            )
        except Exception as e:
            # Timeouts, LLM errors and generator bugs all fail the run the same way
            raise _RunFailed(f"Content generation failed: {e}") from e

    def _render(self, schedule: Schedule, content: DigestContent, now: datetime) -> tuple[str, str]:
        try:
            template = self.templates.get(schedule.template_id or DEFAULT_DIGEST_TEMPLATE)
        except NotFoundError as e:
            raise _RunFailed(str(e), content) from e

        local_date = now.astimezone(ZoneInfo(schedule.recurrence.timezone)).strftime("%Y-%m-%d")
        variables: dict[str, Any] = {
            "SCHEDULE_NAME": schedule.name,
            "ITEM_COUNT": content.items_included,
            "CRITICAL_COUNT": content.critical_items,
            "DIGEST_BODY": content.body,
            "RUN_DATE": local_date,
        }
        rendered = render(template, variables, self.list_limit)
        return rendered.subject, rendered.body

    def _send_batches(
        self, recipients: list[str], subject: str, body: str
    ) -> tuple[ExecutionStatus, str | None]:
        """Send to every batch. Returns the run status and a combined error message."""
        batches = chunked(recipients, self.batch_size)
        errors: list[str] = []
        for index, batch in enumerate(batches, 1):
            try:
                result = call_with_timeout(
                    self.transport.send,
                    self.send_timeout_seconds,
                    batch,
                    subject,
                    body,
                    operation="digest_send",
                )
                if not result.get("success"):
                    errors.append(f"batch {index}: {result.get('error') or 'Unknown error'}")
                else:
                    print(f"  ✓ Batch {index}/{len(batches)} sent to {len(batch)} recipient(s)")
            except Exception as e:
                errors.append(f"batch {index}: {e}")

        if not errors:
            return ExecutionStatus.SUCCESS, None
        message = f"{len(errors)} of {len(batches)} batch(es) failed: " + "; ".join(errors)
        if len(errors) == len(batches):
            return ExecutionStatus.FAILED, message
        return ExecutionStatus.PARTIAL, message

    def _report(self, schedule: Schedule, execution: Execution) -> None:
        if execution.status == ExecutionStatus.SUCCESS:
            print(
                f"  ✓ '{schedule.name}' sent to {execution.recipient_count} recipient(s) "
                f"({execution.items_included} items, {execution.critical_items} critical) "
                f"in {execution.duration_ms}ms"
            )
            return

        error_file = log_notification_error(
            error_type="schedule",
            error_message=execution.error_message or "",
            context={
                "schedule_id": schedule.id,
                "schedule_name": schedule.name,
                "status": execution.status.value,
                "recipient_count": execution.recipient_count,
                "executed_at": execution.executed_at.isoformat(),
            },
            log_dir=self.error_log_dir,
        )
        glyph = "⚠️ " if execution.status == ExecutionStatus.PARTIAL else "✗"
        print(f"  {glyph} '{schedule.name}' {execution.status.value}: {execution.error_message}")
        print(f"    Error details logged to: {error_file}")
