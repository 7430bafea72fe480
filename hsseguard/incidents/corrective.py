"""
Corrective action tracking for HSSEGuard.

A corrective action is a remediation item owned by exactly one incident.
Its status gates incident closure: an incident can only be closed once
every corrective action is COMPLETED.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from hsseguard.exceptions import InvalidTransitionError, ValidationError
from hsseguard.incidents.models import CorrectiveActionStatus
from hsseguard.models.base import ensure_utc, generate_uuid, utc_now


@dataclass
class CorrectiveAction:
    """
    A remediation item raised against an incident.

    Status machine: PENDING -> IN_PROGRESS -> COMPLETED, with OVERDUE
    entered whenever the due date has passed while the action is not
    COMPLETED. COMPLETED is terminal.

    Attributes:
        action_id: Unique identifier for the action.
        incident_id: ID of the owning incident.
        description: What has to be done.
        assignee_id: Who is responsible for the action.
        assignee_department: Department responsible for the action.
        due_at: Deadline for completing the action.
        status: Current status.
        created_at: When the action was raised.
        started_at: When work on the action started.
        completed_at: When the action was completed.
        completion_notes: Notes recorded on completion.
        metadata: Additional action metadata.
    """

    incident_id: str
    description: str
    assignee_id: str
    due_at: datetime
    action_id: str = field(default_factory=generate_uuid)
    assignee_department: str = ""
    status: CorrectiveActionStatus = CorrectiveActionStatus.PENDING
    created_at: datetime = field(default_factory=utc_now)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    completion_notes: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        incident_id: str,
        description: str,
        assignee_id: str,
        due_at: datetime,
        assignee_department: str = "",
        metadata: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> "CorrectiveAction":
        """
        Raise a new corrective action in PENDING status.

        Args:
            incident_id: ID of the owning incident.
            description: What has to be done.
            assignee_id: Who is responsible.
            due_at: Deadline for completion.
            assignee_department: Responsible department.
            metadata: Additional metadata.
            now: Creation time, defaults to the current UTC time.

        Returns:
            The new CorrectiveAction.

        Raises:
            ValidationError: If a required field is blank.
        """
        errors = []
        if not incident_id:
            errors.append("incident_id is required")
        if not description or not description.strip():
            errors.append("description is required")
        if not assignee_id or not assignee_id.strip():
            errors.append("assignee_id is required")
        if errors:
            raise ValidationError(
                f"Invalid corrective action: {'; '.join(errors)}",
                {"errors": errors, "incident_id": incident_id},
            )

        return cls(
            incident_id=incident_id,
            description=description.strip(),
            assignee_id=assignee_id.strip(),
            due_at=ensure_utc(due_at),
            assignee_department=assignee_department,
            created_at=ensure_utc(now) if now else utc_now(),
            metadata=dict(metadata or {}),
        )

    def start(self, now: datetime | None = None) -> bool:
        """
        Start work on the action.

        Returns:
            True if the status changed.

        Raises:
            InvalidTransitionError: If the action is already completed.
        """
        if self.status == CorrectiveActionStatus.COMPLETED:
            raise InvalidTransitionError(
                "Cannot start a completed corrective action",
                {"action_id": self.action_id},
            )
        if self.status == CorrectiveActionStatus.IN_PROGRESS:
            return False
        self.started_at = ensure_utc(now) if now else utc_now()
        self.status = CorrectiveActionStatus.IN_PROGRESS
        return True

    def complete(self, notes: str = "", now: datetime | None = None) -> bool:
        """
        Complete the action.

        Completing an already completed action is a no-op.

        Returns:
            True if the status changed.
        """
        if self.status == CorrectiveActionStatus.COMPLETED:
            return False
        self.completed_at = ensure_utc(now) if now else utc_now()
        self.completion_notes = notes
        self.status = CorrectiveActionStatus.COMPLETED
        return True

    def update_due_date(self, due_at: datetime, now: datetime | None = None) -> bool:
        """
        Move the due date.

        A due date in the past flips an open action to OVERDUE. Moving the
        due date of an OVERDUE action into the future puts it back to
        IN_PROGRESS if work had started, PENDING otherwise.

        Returns:
            True if the status changed.

        Raises:
            InvalidTransitionError: If the action is already completed.
        """
        if self.status == CorrectiveActionStatus.COMPLETED:
            raise InvalidTransitionError(
                "Cannot change the due date of a completed corrective action",
                {"action_id": self.action_id},
            )
        self.due_at = ensure_utc(due_at)
        current = ensure_utc(now) if now else utc_now()

        if self.due_at < current:
            return self._set_status(CorrectiveActionStatus.OVERDUE)
        if self.status == CorrectiveActionStatus.OVERDUE:
            reopened = (
                CorrectiveActionStatus.IN_PROGRESS
                if self.started_at
                else CorrectiveActionStatus.PENDING
            )
            return self._set_status(reopened)
        return False

    def refresh_overdue(self, now: datetime | None = None) -> bool:
        """
        Flip the action to OVERDUE if its due date has silently passed.

        This is what a periodic sweep calls; nothing changes on its own.

        Returns:
            True if the status changed.
        """
        if self.is_overdue(now) and self.status != CorrectiveActionStatus.OVERDUE:
            return self._set_status(CorrectiveActionStatus.OVERDUE)
        return False

    def is_overdue(self, now: datetime | None = None) -> bool:
        """Check if the due date has passed without completion."""
        if self.status == CorrectiveActionStatus.COMPLETED:
            return False
        current = ensure_utc(now) if now else utc_now()
        return self.due_at < current

    def is_completed(self) -> bool:
        """Check if the action is completed."""
        return self.status == CorrectiveActionStatus.COMPLETED

    def _set_status(self, status: CorrectiveActionStatus) -> bool:
        if self.status == status:
            return False
        self.status = status
        return True

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "action_id": self.action_id,
            "incident_id": self.incident_id,
            "description": self.description,
            "assignee_id": self.assignee_id,
            "assignee_department": self.assignee_department,
            "due_at": self.due_at.isoformat(),
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "completion_notes": self.completion_notes,
            "metadata": self.metadata,
        }
