"""
Supabase-backed persistence for engine state.

The in-memory stores stay authoritative while the process runs; this
repository mirrors every change so state survives a restart. Write failures
are reported and swallowed so a storage outage never stops a digest from
going out.
"""

from datetime import datetime
from typing import Any

from models.digest import RegulatoryUpdate
from models.notification import NotificationLogEntry, NotificationRule
from models.schedule import Execution, RecipientGroup, Schedule
from notifications.error_logger import log_notification_error

SCHEDULES_TABLE = "digest_schedules"
GROUPS_TABLE = "recipient_groups"
RULES_TABLE = "notification_rules"
EXECUTIONS_TABLE = "schedule_executions"
NOTIFICATION_LOG_TABLE = "notification_log"
UPDATES_TABLE = "regulatory_updates"


class SupabaseRepository:
    """Mirrors schedules, groups, rules and history into Supabase tables."""

    def __init__(self, client: Any, error_log_dir: str | None = None):
        self._client = client
        self._error_log_dir = error_log_dir

    # Loading

    def load_schedules(self) -> list[Schedule]:
        return [Schedule.model_validate(row) for row in self._select_all(SCHEDULES_TABLE)]

    def load_groups(self) -> list[RecipientGroup]:
        return [RecipientGroup.model_validate(row) for row in self._select_all(GROUPS_TABLE)]

    def load_rules(self) -> list[NotificationRule]:
        rows = self._select_all(RULES_TABLE, order_by="created_at")
        return [NotificationRule.model_validate(row) for row in rows]

    def load_updates(self, since: datetime | None = None) -> list[RegulatoryUpdate]:
        """Regulatory updates published after ``since`` (all of them when None), oldest first."""
        query = self._client.table(UPDATES_TABLE).select("*")
        if since is not None:
            query = query.gt("published_at", since.isoformat())
        response = query.order("published_at", desc=False).execute()
        return [RegulatoryUpdate.model_validate(row) for row in response.data or []]

    def _select_all(self, table: str, order_by: str | None = None) -> list[dict[str, Any]]:
        query = self._client.table(table).select("*")
        if order_by:
            query = query.order(order_by, desc=False)
        response = query.execute()
        return response.data or []

    # Writes

    def save_schedule(self, schedule: Schedule) -> None:
        self._upsert(SCHEDULES_TABLE, schedule.model_dump(mode="json"))

    def delete_schedule(self, schedule_id: str) -> None:
        self._delete(SCHEDULES_TABLE, schedule_id)

    def save_group(self, group: RecipientGroup) -> None:
        self._upsert(GROUPS_TABLE, group.model_dump(mode="json"))

    def delete_group(self, group_id: str) -> None:
        self._delete(GROUPS_TABLE, group_id)

    def save_rule(self, rule: NotificationRule) -> None:
        self._upsert(RULES_TABLE, rule.model_dump(mode="json"))

    def delete_rule(self, rule_id: str) -> None:
        self._delete(RULES_TABLE, rule_id)

    def record_execution(self, execution: Execution) -> None:
        self._insert(EXECUTIONS_TABLE, execution.model_dump(mode="json"))

    def record_notification(self, entry: NotificationLogEntry) -> None:
        self._insert(NOTIFICATION_LOG_TABLE, entry.model_dump(mode="json"))

    def _upsert(self, table: str, row: dict[str, Any]) -> None:
        try:
            self._client.table(table).upsert(row).execute()
        except Exception as e:
            self._report(table, "upsert", row.get("id"), e)

    def _insert(self, table: str, row: dict[str, Any]) -> None:
        try:
            self._client.table(table).insert(row).execute()
        except Exception as e:
            self._report(table, "insert", row.get("id"), e)

    def _delete(self, table: str, record_id: str) -> None:
        try:
            self._client.table(table).delete().eq("id", record_id).execute()
        except Exception as e:
            self._report(table, "delete", record_id, e)

    def _report(self, table: str, operation: str, record_id: Any, error: Exception) -> None:
        error_file = log_notification_error(
            error_type="persistence",
            error_message=str(error),
            context={"table": table, "operation": operation, "record_id": record_id},
            log_dir=self._error_log_dir,
        )
        print(f"  ⚠️  Could not {operation} {table} record {record_id}. Details logged to: {error_file}")
