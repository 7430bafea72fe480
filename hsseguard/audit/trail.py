"""
Append-only audit trail for HSSEGuard escalations.

The AuditTrail is the only writer of escalation and notification history.
It also owns the dedup claims: the engine claims a key here before it
dispatches, and records the final state of the claim afterwards.
"""

import logging
import threading
from datetime import datetime

from hsseguard.audit.models import (
    ClaimStatus,
    DispatchClaim,
    EscalationHistoryEntry,
    NotificationDeliveryStatus,
    NotificationHistoryEntry,
)
from hsseguard.exceptions import InvalidTransitionError, ValidationError
from hsseguard.models.base import ensure_utc, utc_now
from hsseguard.storage.database import Database
from hsseguard.storage.repositories import (
    DispatchClaimRepository,
    EscalationHistoryRepository,
    NotificationHistoryRepository,
)

logger = logging.getLogger("hsseguard.audit.trail")


class AuditTrail:
    """
    Escalation and notification history backed by SQLite.

    History is append-only; there is no API to edit or remove an entry.
    All methods are safe to call from multiple threads.

    Example:
        Recording and querying::

            trail = AuditTrail(db)
            trail.record_escalation(entry)
            for e in trail.escalations_for(incident_id):
                print(e.rule_name, e.success)
    """

    def __init__(self, db: Database) -> None:
        """
        Initialize the audit trail.

        Args:
            db: Database holding the audit schema. It is initialized here
                if that has not happened yet.
        """
        if not db.initialized:
            db.initialize()
        self.db = db
        self._escalations = EscalationHistoryRepository(db)
        self._notifications = NotificationHistoryRepository(db)
        self._claims = DispatchClaimRepository(db)
        self._status_lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Escalation history
    # -------------------------------------------------------------------------

    def record_escalation(self, entry: EscalationHistoryEntry) -> EscalationHistoryEntry:
        """
        Append a dispatch attempt.

        Returns:
            The entry with its sequence number set.
        """
        entry.sequence = self._escalations.append(
            entry_id=entry.entry_id,
            incident_id=entry.incident_id,
            rule_id=entry.rule_id,
            rule_name=entry.rule_name,
            action_index=entry.action_index,
            action_type=entry.action_type,
            action_target=entry.action_target,
            success=entry.success,
            executed_at=ensure_utc(entry.executed_at),
            executed_by=entry.executed_by,
            attempt=entry.attempt,
            error_message=entry.error_message,
            trigger_event=entry.trigger_event,
            dedup_key=entry.dedup_key,
            metadata=entry.metadata,
        )
        return entry

    def escalations_for(self, incident_id: str) -> list[EscalationHistoryEntry]:
        """List escalation history for an incident in dispatch order."""
        return [
            EscalationHistoryEntry.from_row(row)
            for row in self._escalations.list_for_incident(incident_id)
        ]

    def attempts_for_key(self, dedup_key: str) -> list[EscalationHistoryEntry]:
        """List every attempt made under a dedup key."""
        return [
            EscalationHistoryEntry.from_row(row)
            for row in self._escalations.list_for_dedup_key(dedup_key)
        ]

    # -------------------------------------------------------------------------
    # Notification history
    # -------------------------------------------------------------------------

    def open_notification(
        self,
        entry: NotificationHistoryEntry,
    ) -> NotificationHistoryEntry:
        """
        Record a new notification in PENDING status.

        Returns:
            The stored entry.
        """
        created = ensure_utc(entry.created_at)
        self._notifications.create(
            notification_id=entry.notification_id,
            incident_id=entry.incident_id,
            recipient_id=entry.recipient_id,
            recipient_type=entry.recipient_type,
            channel=entry.channel,
            priority=entry.priority,
            status=NotificationDeliveryStatus.PENDING.value,
            created_at=created,
            subject=entry.subject,
            content=entry.content,
            template_id=entry.template_id,
            rule_id=entry.rule_id,
            dedup_key=entry.dedup_key,
            metadata=entry.metadata,
        )
        return self._require_notification(entry.notification_id)

    def transition_notification(
        self,
        notification_id: str,
        status: NotificationDeliveryStatus,
        error_message: str | None = None,
        at: datetime | None = None,
    ) -> NotificationHistoryEntry:
        """
        Append a status transition to a notification.

        Args:
            notification_id: ID of the notification.
            status: New status.
            error_message: Error for FAILED transitions.
            at: Transition time, defaults to now.

        Returns:
            The updated entry.

        Raises:
            ValidationError: If the notification does not exist.
            InvalidTransitionError: If the transition is not allowed.
        """
        with self._status_lock:
            current = self._require_notification(notification_id)
            if not current.status.can_transition_to(status):
                raise InvalidTransitionError(
                    f"Cannot move notification from {current.status.value} to {status.value}",
                    {"notification_id": notification_id},
                )
            self._notifications.append_status(
                notification_id,
                status.value,
                ensure_utc(at) if at else utc_now(),
                error_message,
            )
        logger.debug(
            "Notification %s: %s -> %s",
            notification_id,
            current.status.value,
            status.value,
        )
        return self._require_notification(notification_id)

    def get_notification(self, notification_id: str) -> NotificationHistoryEntry | None:
        """Get a notification by ID."""
        row = self._notifications.get(notification_id)
        return NotificationHistoryEntry.from_row(row) if row else None

    def notifications_for(self, incident_id: str) -> list[NotificationHistoryEntry]:
        """List notifications for an incident, oldest first."""
        return [
            NotificationHistoryEntry.from_row(row)
            for row in self._notifications.list_for_incident(incident_id)
        ]

    def _require_notification(self, notification_id: str) -> NotificationHistoryEntry:
        entry = self.get_notification(notification_id)
        if entry is None:
            raise ValidationError(
                f"Unknown notification: {notification_id}",
                {"notification_id": notification_id},
            )
        return entry

    # -------------------------------------------------------------------------
    # Dedup claims
    # -------------------------------------------------------------------------

    def claim(
        self,
        dedup_key: str,
        incident_id: str,
        rule_id: str | None,
        action_index: int,
        at: datetime | None = None,
    ) -> bool:
        """
        Atomically claim a dedup key for dispatch.

        Returns:
            True if the caller now owns the key, False if it was already
            claimed (in flight, dispatched or failed).
        """
        return self._claims.claim(
            dedup_key,
            incident_id,
            rule_id,
            action_index,
            ClaimStatus.IN_FLIGHT.value,
            ensure_utc(at) if at else utc_now(),
        )

    def finish_claim(
        self,
        dedup_key: str,
        succeeded: bool,
        attempts: int,
        last_error: str | None = None,
        at: datetime | None = None,
    ) -> None:
        """Record whether a claimed dispatch finally succeeded."""
        status = ClaimStatus.SUCCEEDED if succeeded else ClaimStatus.FAILED
        self._claims.finish(
            dedup_key,
            status.value,
            attempts,
            ensure_utc(at) if at else utc_now(),
            last_error,
        )

    def get_claim(self, dedup_key: str) -> DispatchClaim | None:
        """Get a dedup claim by key."""
        row = self._claims.get(dedup_key)
        return DispatchClaim.from_row(row) if row else None

    def failed_dispatches(self) -> list[DispatchClaim]:
        """List claims whose retries were exhausted, for manual follow-up."""
        return [
            DispatchClaim.from_row(row)
            for row in self._claims.list_by_status(ClaimStatus.FAILED.value)
        ]

    def rearm(self, dedup_key: str) -> bool:
        """
        Release a FAILED claim so the next matching evaluation may retry it.

        The attempts already recorded in the history stay untouched.

        Returns:
            True if a failed claim was released.
        """
        released = self._claims.release(dedup_key, ClaimStatus.FAILED.value)
        if released:
            logger.info("Re-armed failed dispatch %s", dedup_key)
        return released
