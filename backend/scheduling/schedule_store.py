"""
In-process store for digest schedules and recipient groups.

The store owns the Schedule state machine: enabling computes next_run,
disabling clears it, and every recorded run advances it from the original
recurrence and the actual execution time. Callers always receive copies;
the only way to change stored state is through the store's methods.
"""

import threading
from datetime import datetime
from typing import Any, Iterable, Protocol

from models.schedule import RecipientGroup, RecurrenceSpec, Schedule
from models.types import GroupID, ScheduleID
from scheduling.recurrence import next_run
from scheduling.validation import validate_recurrence, with_anchor
from shared.errors import ConfigError, NotFoundError
from shared.utils import ensure_utc, normalize_recipients, utcnow

# Fields that identify a schedule or are owned by the run bookkeeping
_IMMUTABLE_SCHEDULE_FIELDS = {"id", "created_at", "created_by"}
_RUN_FIELDS = {"last_run", "next_run", "total_runs", "successful_runs"}


class ScheduleRepository(Protocol):
    """Persistence hooks used by the store (see shared.repository)."""

    def load_schedules(self) -> list[Schedule]: ...

    def load_groups(self) -> list[RecipientGroup]: ...

    def save_schedule(self, schedule: Schedule) -> None: ...

    def delete_schedule(self, schedule_id: str) -> None: ...

    def save_group(self, group: RecipientGroup) -> None: ...

    def delete_group(self, group_id: str) -> None: ...


class ScheduleStore:
    """Holds Schedule and RecipientGroup entities behind a single lock."""

    def __init__(self, repository: ScheduleRepository | None = None):
        self._schedules: dict[ScheduleID, Schedule] = {}
        self._groups: dict[GroupID, RecipientGroup] = {}
        self._lock = threading.RLock()
        self._repository = repository

    def hydrate(self, now: datetime | None = None) -> int:
        """
        Load persisted schedules and groups. Returns number of schedules loaded.

        Stored rows are reconciled on the way in: an enabled schedule missing
        next_run gets one computed from ``now``, a disabled one has it cleared.
        """
        if self._repository is None:
            return 0
        now = ensure_utc(now or utcnow())
        groups = self._repository.load_groups()
        schedules = [
            self._reconcile(schedule, now) for schedule in self._repository.load_schedules()
        ]
        with self._lock:
            self._groups = {group.id: group for group in groups}
            self._schedules = {schedule.id: schedule for schedule in schedules}
        return len(schedules)

    # Schedules

    def create_schedule(self, schedule: Schedule, now: datetime | None = None) -> Schedule:
        """
        Validate and store a new schedule.

        Biweekly schedules without an anchor are anchored to their creation
        date. Enabled schedules get next_run computed from ``now``.

        Raises:
            ConfigError: Recurrence invalid for its frequency, or id already exists
        """
        now = ensure_utc(now or utcnow())
        created_at = ensure_utc(schedule.created_at) if schedule.created_at else now
        recurrence = with_anchor(schedule.recurrence, created_at)
        validate_recurrence(recurrence)

        stored = schedule.model_copy(
            update={
                "recurrence": recurrence,
                "created_at": created_at,
                "next_run": next_run(recurrence, now) if schedule.enabled else None,
            },
            deep=True,
        )
        with self._lock:
            if stored.id in self._schedules:
                raise ConfigError(
                    f"Schedule {stored.id} already exists.", {"schedule_id": stored.id}
                )
            self._schedules[stored.id] = stored
        self._persist_schedule(stored)
        return stored.model_copy(deep=True)

    def update_schedule(
        self, schedule_id: ScheduleID, changes: dict[str, Any], now: datetime | None = None
    ) -> Schedule:
        """
        Replace mutable fields of a schedule.

        Identity and run bookkeeping cannot be edited. A recurrence change on
        an enabled schedule recomputes next_run from ``now``; the enabled flag
        goes through set_enabled().

        Raises:
            NotFoundError: Unknown schedule
            ConfigError: Attempt to edit an immutable field, or invalid recurrence
        """
        forbidden = (_IMMUTABLE_SCHEDULE_FIELDS | _RUN_FIELDS | {"enabled"}) & set(changes)
        if forbidden:
            raise ConfigError(
                f"Cannot edit fields: {', '.join(sorted(forbidden))}.",
                {"schedule_id": schedule_id, "fields": sorted(forbidden)},
            )
        now = ensure_utc(now or utcnow())

        with self._lock:
            current = self._require_schedule(schedule_id)
            merged = current.model_dump()
            merged.update(changes)
            try:
                updated = Schedule.model_validate(merged)
            except ValueError as e:
                raise ConfigError(f"Invalid schedule update: {e}", {"schedule_id": schedule_id}) from e

            recurrence = updated.recurrence
            if recurrence != current.recurrence:
                recurrence = with_anchor(recurrence, updated.created_at or now)
                validate_recurrence(recurrence)
                updated = updated.model_copy(
                    update={
                        "recurrence": recurrence,
                        "next_run": next_run(recurrence, now) if updated.enabled else None,
                    }
                )
            self._schedules[schedule_id] = updated
        self._persist_schedule(updated)
        return updated.model_copy(deep=True)

    def delete_schedule(self, schedule_id: ScheduleID) -> None:
        with self._lock:
            self._require_schedule(schedule_id)
            del self._schedules[schedule_id]
        if self._repository is not None:
            self._repository.delete_schedule(schedule_id)

    def get_schedule(self, schedule_id: ScheduleID) -> Schedule:
        with self._lock:
            return self._require_schedule(schedule_id).model_copy(deep=True)

    def list_schedules(self) -> list[Schedule]:
        with self._lock:
            return [schedule.model_copy(deep=True) for schedule in self._schedules.values()]

    def set_enabled(
        self, schedule_id: ScheduleID, enabled: bool, now: datetime | None = None
    ) -> Schedule:
        """Enable (computing next_run) or disable (clearing next_run) a schedule."""
        now = ensure_utc(now or utcnow())
        with self._lock:
            current = self._require_schedule(schedule_id)
            updated = current.model_copy(
                update={
                    "enabled": enabled,
                    "next_run": next_run(current.recurrence, now) if enabled else None,
                }
            )
            self._schedules[schedule_id] = updated
        self._persist_schedule(updated)
        return updated.model_copy(deep=True)

    def due_schedules(self, now: datetime | None = None) -> list[Schedule]:
        """Enabled schedules with next_run <= now, ordered by next_run then id."""
        now = ensure_utc(now or utcnow())
        with self._lock:
            due = [
                schedule.model_copy(deep=True)
                for schedule in self._schedules.values()
                if schedule.enabled and schedule.next_run is not None and schedule.next_run <= now
            ]
        return sorted(due, key=lambda s: (s.next_run, s.id))

    def record_run(
        self, schedule_id: ScheduleID, executed_at: datetime, success: bool
    ) -> Schedule:
        """
        Apply the bookkeeping for one Execution.

        next_run is recomputed from the schedule's recurrence and the actual
        execution time, so a failed run waits for the next natural slot.
        """
        executed_at = ensure_utc(executed_at)
        with self._lock:
            current = self._require_schedule(schedule_id)
            updated = current.model_copy(
                update={
                    "last_run": executed_at,
                    "total_runs": current.total_runs + 1,
                    "successful_runs": current.successful_runs + (1 if success else 0),
                    "next_run": (
                        next_run(current.recurrence, executed_at) if current.enabled else None
                    ),
                }
            )
            self._schedules[schedule_id] = updated
        self._persist_schedule(updated)
        return updated.model_copy(deep=True)

    def preview_next_run(self, recurrence: RecurrenceSpec, now: datetime | None = None) -> datetime:
        """Validate a recurrence and return when it would fire next."""
        validate_recurrence(recurrence)
        return next_run(recurrence, ensure_utc(now or utcnow()))

    # Recipient groups

    def create_group(self, group: RecipientGroup) -> RecipientGroup:
        with self._lock:
            if group.id in self._groups:
                raise ConfigError(f"Recipient group {group.id} already exists.", {"group_id": group.id})
            stored = group.model_copy(
                update={"created_at": group.created_at or utcnow()}, deep=True
            )
            self._groups[stored.id] = stored
        self._persist_group(stored)
        return stored.model_copy(deep=True)

    def update_group(self, group_id: GroupID, changes: dict[str, Any]) -> RecipientGroup:
        if "id" in changes:
            raise ConfigError("Cannot edit fields: id.", {"group_id": group_id})
        with self._lock:
            current = self._require_group(group_id)
            merged = current.model_dump()
            merged.update(changes)
            try:
                updated = RecipientGroup.model_validate(merged)
            except ValueError as e:
                raise ConfigError(f"Invalid recipient group update: {e}", {"group_id": group_id}) from e
            self._groups[group_id] = updated
        self._persist_group(updated)
        return updated.model_copy(deep=True)

    def delete_group(self, group_id: GroupID) -> None:
        with self._lock:
            self._require_group(group_id)
            del self._groups[group_id]
        if self._repository is not None:
            self._repository.delete_group(group_id)

    def get_group(self, group_id: GroupID) -> RecipientGroup:
        with self._lock:
            return self._require_group(group_id).model_copy(deep=True)

    def list_groups(self) -> list[RecipientGroup]:
        with self._lock:
            return [group.model_copy(deep=True) for group in self._groups.values()]

    def groups_for(self, group_ids: Iterable[GroupID]) -> list[RecipientGroup]:
        """Known, enabled groups among group_ids. Unknown ids are skipped."""
        with self._lock:
            return [
                self._groups[group_id].model_copy(deep=True)
                for group_id in group_ids
                if group_id in self._groups and self._groups[group_id].enabled
            ]

    def resolve_recipients(self, group_ids: Iterable[GroupID]) -> list[str]:
        """Distinct addresses across the given groups, in group order."""
        addresses: list[str] = []
        for group in self.groups_for(group_ids):
            addresses.extend(group.recipients)
        return normalize_recipients(addresses)

    # Internals

    @staticmethod
    def _reconcile(schedule: Schedule, now: datetime) -> Schedule:
        if not schedule.enabled:
            if schedule.next_run is None:
                return schedule
            return schedule.model_copy(update={"next_run": None})
        if schedule.next_run is not None:
            return schedule
        recurrence = with_anchor(schedule.recurrence, ensure_utc(schedule.created_at or now))
        return schedule.model_copy(
            update={"recurrence": recurrence, "next_run": next_run(recurrence, now)}
        )

    def _require_schedule(self, schedule_id: ScheduleID) -> Schedule:
        schedule = self._schedules.get(schedule_id)
        if schedule is None:
            raise NotFoundError(f"Schedule {schedule_id} not found.", {"schedule_id": schedule_id})
        return schedule

    def _require_group(self, group_id: GroupID) -> RecipientGroup:
        group = self._groups.get(group_id)
        if group is None:
            raise NotFoundError(f"Recipient group {group_id} not found.", {"group_id": group_id})
        return group

    def _persist_schedule(self, schedule: Schedule) -> None:
        if self._repository is not None:
            self._repository.save_schedule(schedule)

    def _persist_group(self, group: RecipientGroup) -> None:
        if self._repository is not None:
            self._repository.save_group(group)
