"""
Audit trail models for HSSEGuard.

These dataclasses describe what the escalation engine records: one
escalation history entry per dispatch attempt, one notification history
entry per notify-type action, and the dedup claims that keep repeated
evaluations from dispatching twice.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from hsseguard.models.base import generate_uuid, model_to_dict, utc_now


class NotificationDeliveryStatus(Enum):
    """
    Delivery status of a notification.

    Normal flow is PENDING -> SENT -> DELIVERED -> READ. FAILED can be
    entered from PENDING or SENT, and a FAILED notification can still be
    SENT by a later retry.
    """

    PENDING = "PENDING"
    SENT = "SENT"
    DELIVERED = "DELIVERED"
    READ = "READ"
    FAILED = "FAILED"

    def can_transition_to(self, target: "NotificationDeliveryStatus") -> bool:
        """Check if a transition to target is allowed."""
        return target in NOTIFICATION_TRANSITIONS[self]


NOTIFICATION_TRANSITIONS: dict[NotificationDeliveryStatus, frozenset[NotificationDeliveryStatus]] = {
    NotificationDeliveryStatus.PENDING: frozenset(
        {NotificationDeliveryStatus.SENT, NotificationDeliveryStatus.FAILED}
    ),
    NotificationDeliveryStatus.FAILED: frozenset(
        {NotificationDeliveryStatus.SENT, NotificationDeliveryStatus.FAILED}
    ),
    NotificationDeliveryStatus.SENT: frozenset(
        {
            NotificationDeliveryStatus.DELIVERED,
            NotificationDeliveryStatus.READ,
            NotificationDeliveryStatus.FAILED,
        }
    ),
    NotificationDeliveryStatus.DELIVERED: frozenset({NotificationDeliveryStatus.READ}),
    NotificationDeliveryStatus.READ: frozenset(),
}


class ClaimStatus(Enum):
    """State of a dedup claim."""

    IN_FLIGHT = "IN_FLIGHT"
    """Claimed by an evaluation pass, dispatch not finished yet."""

    SUCCEEDED = "SUCCEEDED"
    """Dispatched successfully. Never dispatched again for this key."""

    FAILED = "FAILED"
    """Retries exhausted. Needs manual follow-up before it can fire again."""


@dataclass
class EscalationHistoryEntry:
    """
    One dispatch attempt of one escalation action.

    Attributes:
        incident_id: ID of the incident.
        rule_id: ID of the rule, kept as a plain back-reference.
        rule_name: Rule name at execution time.
        action_type: Type of the dispatched action.
        action_target: Target of the dispatched action.
        success: Whether the attempt succeeded.
        executed_by: Who or what executed the action.
        executed_at: When the attempt finished.
        action_index: Position of the action in the rule.
        attempt: 1-based attempt number.
        error_message: Gateway error for failed attempts.
        trigger_event: Event type that triggered the evaluation.
        dedup_key: Dedup key the action was claimed under.
        entry_id: Unique identifier of the entry.
        sequence: Insertion order in the audit store, set once stored.
        metadata: Additional context.
    """

    incident_id: str
    rule_id: str | None
    rule_name: str
    action_type: str
    action_target: str
    success: bool
    executed_by: str = "system"
    executed_at: datetime = field(default_factory=utc_now)
    action_index: int = 0
    attempt: int = 1
    error_message: str | None = None
    trigger_event: str | None = None
    dedup_key: str | None = None
    entry_id: str = field(default_factory=generate_uuid)
    sequence: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "EscalationHistoryEntry":
        """Build an entry from a repository row."""
        return cls(
            incident_id=row["incident_id"],
            rule_id=row["rule_id"],
            rule_name=row["rule_name"],
            action_type=row["action_type"],
            action_target=row["action_target"],
            success=row["success"],
            executed_by=row["executed_by"],
            executed_at=row["executed_at"],
            action_index=row["action_index"],
            attempt=row["attempt"],
            error_message=row["error_message"],
            trigger_event=row["trigger_event"],
            dedup_key=row["dedup_key"],
            entry_id=row["entry_id"],
            sequence=row["id"],
            metadata=row["metadata"],
        )

    def to_dict(self, exclude_none: bool = False) -> dict[str, Any]:
        """Convert the entry to a dictionary."""
        return model_to_dict(self, exclude_none)


@dataclass(frozen=True)
class NotificationStatusChange:
    """A single status transition of a notification."""

    status: NotificationDeliveryStatus
    changed_at: datetime
    error_message: str | None = None

    def to_dict(self, exclude_none: bool = False) -> dict[str, Any]:
        """Convert the change to a dictionary."""
        return model_to_dict(self, exclude_none)


@dataclass
class NotificationHistoryEntry:
    """
    A notification produced by a notify-type escalation action.

    The current status is the last recorded transition.

    Attributes:
        incident_id: ID of the incident.
        recipient_id: Resolved recipient (user, role, department, address).
        recipient_type: Kind of recipient.
        channel: Delivery channel.
        priority: Notification priority.
        subject: Rendered subject.
        content: Rendered body.
        template_id: Template used to render the message.
        rule_id: ID of the rule that produced the notification.
        dedup_key: Dedup key of the producing action.
        notification_id: Unique identifier of the notification.
        created_at: When the notification was recorded.
        transitions: Status transitions, oldest first.
        metadata: Additional context.
    """

    incident_id: str
    recipient_id: str
    recipient_type: str
    channel: str
    priority: str
    subject: str = ""
    content: str = ""
    template_id: str | None = None
    rule_id: str | None = None
    dedup_key: str | None = None
    notification_id: str = field(default_factory=generate_uuid)
    created_at: datetime = field(default_factory=utc_now)
    transitions: list[NotificationStatusChange] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def status(self) -> NotificationDeliveryStatus:
        """Current delivery status."""
        if not self.transitions:
            return NotificationDeliveryStatus.PENDING
        return self.transitions[-1].status

    @property
    def status_history(self) -> list[NotificationDeliveryStatus]:
        """Every status the notification has been in, oldest first."""
        return [t.status for t in self.transitions]

    @property
    def error_message(self) -> str | None:
        """Error of the latest transition, if it failed."""
        if self.transitions and self.transitions[-1].error_message:
            return self.transitions[-1].error_message
        return None

    def reached_at(self, status: NotificationDeliveryStatus) -> datetime | None:
        """When the notification last entered a status."""
        for change in reversed(self.transitions):
            if change.status == status:
                return change.changed_at
        return None

    @property
    def sent_at(self) -> datetime | None:
        return self.reached_at(NotificationDeliveryStatus.SENT)

    @property
    def delivered_at(self) -> datetime | None:
        return self.reached_at(NotificationDeliveryStatus.DELIVERED)

    @property
    def read_at(self) -> datetime | None:
        return self.reached_at(NotificationDeliveryStatus.READ)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "NotificationHistoryEntry":
        """Build an entry from a repository row."""
        return cls(
            incident_id=row["incident_id"],
            recipient_id=row["recipient_id"],
            recipient_type=row["recipient_type"],
            channel=row["channel"],
            priority=row["priority"],
            subject=row["subject"] or "",
            content=row["content"] or "",
            template_id=row["template_id"],
            rule_id=row["rule_id"],
            dedup_key=row["dedup_key"],
            notification_id=row["notification_id"],
            created_at=row["created_at"],
            transitions=[
                NotificationStatusChange(
                    status=NotificationDeliveryStatus(t["status"]),
                    changed_at=t["changed_at"],
                    error_message=t["error_message"],
                )
                for t in row["transitions"]
            ],
            metadata=row["metadata"],
        )

    def to_dict(self, exclude_none: bool = False) -> dict[str, Any]:
        """Convert the entry to a dictionary, including the current status."""
        result = model_to_dict(self, exclude_none)
        result["status"] = self.status.value
        return result


@dataclass
class DispatchClaim:
    """A dedup key claimed for one escalation action."""

    dedup_key: str
    incident_id: str
    rule_id: str | None
    action_index: int
    status: ClaimStatus
    attempts: int = 0
    last_error: str | None = None
    claimed_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "DispatchClaim":
        """Build a claim from a repository row."""
        return cls(
            dedup_key=row["dedup_key"],
            incident_id=row["incident_id"],
            rule_id=row["rule_id"],
            action_index=row["action_index"],
            status=ClaimStatus(row["status"]),
            attempts=row["attempts"],
            last_error=row["last_error"],
            claimed_at=row["claimed_at"],
            updated_at=row["updated_at"],
        )

    def to_dict(self, exclude_none: bool = False) -> dict[str, Any]:
        """Convert the claim to a dictionary."""
        return model_to_dict(self, exclude_none)
