"""
Repository classes for the HSSEGuard audit store.

Repositories translate between rows and plain dictionaries. They expose
inserts and reads only for the history tables; the dispatch claim table is
the one place where rows change state.
"""

import json
from datetime import datetime
from typing import Any

from hsseguard.storage.database import Database


class BaseRepository:
    """
    Base class for all repositories.

    Provides common serialization helpers.
    """

    def __init__(self, db: Database) -> None:
        """
        Initialize the repository.

        Args:
            db: The Database instance to use for operations.
        """
        self.db = db

    def _serialize_json(self, value: Any) -> str | None:
        """Serialize a value to JSON string."""
        if value is None:
            return None
        return json.dumps(value)

    def _deserialize_json(self, value: str | None) -> Any:
        """Deserialize a JSON string to a Python object."""
        if value is None:
            return None
        return json.loads(value)

    def _format_datetime(self, dt: datetime | None) -> str | None:
        """Format a datetime to ISO string."""
        if dt is None:
            return None
        return dt.isoformat()

    def _parse_datetime(self, value: str | None) -> datetime | None:
        """Parse an ISO datetime string."""
        if value is None:
            return None
        return datetime.fromisoformat(value)


class EscalationHistoryRepository(BaseRepository):
    """
    Append-only access to escalation_history.

    Rows are returned in insertion order, which is the order the engine
    dispatched them in.
    """

    def append(
        self,
        entry_id: str,
        incident_id: str,
        rule_id: str | None,
        rule_name: str,
        action_index: int,
        action_type: str,
        action_target: str,
        success: bool,
        executed_at: datetime,
        executed_by: str,
        attempt: int = 1,
        error_message: str | None = None,
        trigger_event: str | None = None,
        dedup_key: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> int:
        """
        Append one dispatch attempt.

        Returns:
            The sequence number of the new row.
        """
        return self.db.execute_insert(
            """
            INSERT INTO escalation_history
                (entry_id, incident_id, rule_id, rule_name, action_index,
                 action_type, action_target, trigger_event, dedup_key, attempt,
                 success, error_message, executed_at, executed_by, metadata)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry_id,
                incident_id,
                rule_id,
                rule_name,
                action_index,
                action_type,
                action_target,
                trigger_event,
                dedup_key,
                attempt,
                1 if success else 0,
                error_message,
                self._format_datetime(executed_at),
                executed_by,
                self._serialize_json(metadata),
            ),
        )

    def list_for_incident(self, incident_id: str) -> list[dict[str, Any]]:
        """List every attempt recorded for an incident, oldest first."""
        rows = self.db.execute(
            "SELECT * FROM escalation_history WHERE incident_id = ? ORDER BY id",
            (incident_id,),
        )
        return [self._deserialize_entry(row) for row in rows]

    def list_for_dedup_key(self, dedup_key: str) -> list[dict[str, Any]]:
        """List every attempt made under one dedup key, oldest first."""
        rows = self.db.execute(
            "SELECT * FROM escalation_history WHERE dedup_key = ? ORDER BY id",
            (dedup_key,),
        )
        return [self._deserialize_entry(row) for row in rows]

    def _deserialize_entry(self, row: dict[str, Any]) -> dict[str, Any]:
        row["success"] = bool(row["success"])
        row["executed_at"] = self._parse_datetime(row["executed_at"])
        row["metadata"] = self._deserialize_json(row.get("metadata")) or {}
        return row


class NotificationHistoryRepository(BaseRepository):
    """
    Access to notification_history and its status log.

    A notification row is written once. Each status transition appends a
    row to notification_status_log; the latest one is the current status.
    """

    def create(
        self,
        notification_id: str,
        incident_id: str,
        recipient_id: str,
        recipient_type: str,
        channel: str,
        priority: str,
        status: str,
        created_at: datetime,
        subject: str = "",
        content: str = "",
        template_id: str | None = None,
        rule_id: str | None = None,
        dedup_key: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Insert a notification together with its initial status."""
        with self.db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO notification_history
                    (notification_id, incident_id, rule_id, dedup_key,
                     recipient_id, recipient_type, template_id, channel,
                     priority, subject, content, created_at, metadata)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    notification_id,
                    incident_id,
                    rule_id,
                    dedup_key,
                    recipient_id,
                    recipient_type,
                    template_id,
                    channel,
                    priority,
                    subject,
                    content,
                    self._format_datetime(created_at),
                    self._serialize_json(metadata),
                ),
            )
            conn.execute(
                """
                INSERT INTO notification_status_log
                    (notification_id, status, error_message, changed_at)
                VALUES (?, ?, NULL, ?)
                """,
                (notification_id, status, self._format_datetime(created_at)),
            )

    def append_status(
        self,
        notification_id: str,
        status: str,
        changed_at: datetime,
        error_message: str | None = None,
    ) -> int:
        """Append a status transition."""
        return self.db.execute_insert(
            """
            INSERT INTO notification_status_log
                (notification_id, status, error_message, changed_at)
            VALUES (?, ?, ?, ?)
            """,
            (
                notification_id,
                status,
                error_message,
                self._format_datetime(changed_at),
            ),
        )

    def get(self, notification_id: str) -> dict[str, Any] | None:
        """Get a notification with its status transitions."""
        row = self.db.execute_one(
            "SELECT * FROM notification_history WHERE notification_id = ?",
            (notification_id,),
        )
        if row is None:
            return None
        return self._deserialize_notification(row)

    def list_for_incident(self, incident_id: str) -> list[dict[str, Any]]:
        """List notifications for an incident, oldest first."""
        rows = self.db.execute(
            "SELECT * FROM notification_history WHERE incident_id = ? ORDER BY id",
            (incident_id,),
        )
        return [self._deserialize_notification(row) for row in rows]

    def get_transitions(self, notification_id: str) -> list[dict[str, Any]]:
        """List the status transitions of a notification, oldest first."""
        rows = self.db.execute(
            """
            SELECT status, error_message, changed_at
            FROM notification_status_log
            WHERE notification_id = ?
            ORDER BY id
            """,
            (notification_id,),
        )
        for row in rows:
            row["changed_at"] = self._parse_datetime(row["changed_at"])
        return rows

    def _deserialize_notification(self, row: dict[str, Any]) -> dict[str, Any]:
        row["created_at"] = self._parse_datetime(row["created_at"])
        row["metadata"] = self._deserialize_json(row.get("metadata")) or {}
        row["transitions"] = self.get_transitions(row["notification_id"])
        return row


class DispatchClaimRepository(BaseRepository):
    """
    Dedup claims for escalation actions.

    A claim is taken with a single INSERT OR IGNORE against the primary
    key, so two concurrent evaluations of the same state can never both
    win it.
    """

    def claim(
        self,
        dedup_key: str,
        incident_id: str,
        rule_id: str | None,
        action_index: int,
        status: str,
        claimed_at: datetime,
    ) -> bool:
        """
        Try to claim a dedup key.

        Returns:
            True if this call created the claim, False if it already existed.
        """
        stamp = self._format_datetime(claimed_at)
        inserted = self.db.execute_write(
            """
            INSERT OR IGNORE INTO dispatch_claims
                (dedup_key, incident_id, rule_id, action_index, status,
                 attempts, last_error, claimed_at, updated_at)
            VALUES (?, ?, ?, ?, ?, 0, NULL, ?, ?)
            """,
            (dedup_key, incident_id, rule_id, action_index, status, stamp, stamp),
        )
        return inserted == 1

    def finish(
        self,
        dedup_key: str,
        status: str,
        attempts: int,
        updated_at: datetime,
        last_error: str | None = None,
    ) -> bool:
        """Record the final state of a claim."""
        return self.db.execute_write(
            """
            UPDATE dispatch_claims
            SET status = ?, attempts = ?, last_error = ?, updated_at = ?
            WHERE dedup_key = ?
            """,
            (status, attempts, last_error, self._format_datetime(updated_at), dedup_key),
        ) > 0

    def release(self, dedup_key: str, status: str) -> bool:
        """
        Delete a claim if it is in the given state.

        Returns:
            True if a claim was deleted.
        """
        return self.db.execute_write(
            "DELETE FROM dispatch_claims WHERE dedup_key = ? AND status = ?",
            (dedup_key, status),
        ) > 0

    def get(self, dedup_key: str) -> dict[str, Any] | None:
        """Get a claim by key."""
        row = self.db.execute_one(
            "SELECT * FROM dispatch_claims WHERE dedup_key = ?",
            (dedup_key,),
        )
        return self._deserialize_claim(row) if row else None

    def list_by_status(self, status: str) -> list[dict[str, Any]]:
        """List claims in a state, oldest update first."""
        rows = self.db.execute(
            "SELECT * FROM dispatch_claims WHERE status = ? ORDER BY updated_at, dedup_key",
            (status,),
        )
        return [self._deserialize_claim(row) for row in rows]

    def _deserialize_claim(self, row: dict[str, Any]) -> dict[str, Any]:
        row["claimed_at"] = self._parse_datetime(row["claimed_at"])
        row["updated_at"] = self._parse_datetime(row["updated_at"])
        return row
