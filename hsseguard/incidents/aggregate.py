"""
The incident aggregate for HSSEGuard.

This module provides the Incident class, which owns an incident's identity,
status, severity and corrective actions, and enforces the closure
invariant. Every state-changing operation returns the lifecycle events it
produced; nothing is published implicitly.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from hsseguard.exceptions import (
    InvalidTransitionError,
    PendingActionsError,
    ValidationError,
)
from hsseguard.incidents.corrective import CorrectiveAction
from hsseguard.incidents.events import IncidentEvent, IncidentEventType
from hsseguard.incidents.models import (
    GeoLocation,
    IncidentSeverity,
    IncidentStatus,
    InjuryDetails,
)
from hsseguard.models.base import ensure_utc, generate_uuid, model_to_dict, utc_now

# Severity at or above which a new incident is also reported as serious.
DEFAULT_SERIOUS_THRESHOLD = IncidentSeverity.MAJOR


@dataclass(frozen=True)
class IncidentSnapshot:
    """
    Immutable view of an incident at a point in time.

    The escalation engine matches and dispatches against snapshots so that
    a slow dispatch never observes a half-updated aggregate.
    """

    incident_id: str
    title: str
    description: str
    severity: IncidentSeverity
    status: IncidentStatus
    occurred_at: datetime
    created_at: datetime
    status_changed_at: datetime
    state_version: int = 0
    location: str = ""
    department: str = ""
    reporter_id: str = ""
    reporter_name: str = ""
    investigator_id: str | None = None
    last_response_at: datetime | None = None
    geo_location: GeoLocation | None = None
    injury: InjuryDetails | None = None
    open_corrective_actions: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_open(self) -> bool:
        """Check if the incident has not been closed."""
        return self.status != IncidentStatus.CLOSED

    def to_dict(self, exclude_none: bool = False) -> dict[str, Any]:
        """Convert the snapshot to a dictionary."""
        return model_to_dict(self, exclude_none)


@dataclass
class Incident:
    """
    A workplace health and safety incident.

    Incidents are created by a reporting workflow with status REPORTED and
    mutated only through the methods below. They are never deleted; CLOSED
    is the logical end of the lifecycle.

    Invariant:
        The status can only become CLOSED when every corrective action is
        COMPLETED. Violations raise PendingActionsError and leave the
        incident untouched.

    Attributes:
        title: Short, descriptive title.
        description: What happened.
        reporter_id: Who reported the incident.
        incident_id: Unique identifier for the incident.
        severity: Severity level.
        status: Current lifecycle status.
        occurred_at: When the incident happened.
        location: Where the incident happened.
        geo_location: Optional coordinate of the location.
        reporter_name: Display name of the reporter.
        department: Department of the reporter.
        investigator_id: Assigned investigator, if any.
        injury: Injury metadata, if anyone was hurt.
        last_response_at: Last time someone responded to the incident.
        created_at: When the incident was recorded.
        updated_at: When the incident was last modified.
        status_changed_at: When the status last changed.
        state_version: Incremented on every status or severity change.
        closed_at: When the incident was closed.
        closure_notes: Notes recorded on closure.
        corrective_actions: Owned corrective actions.
        metadata: Additional key-value metadata.
    """

    title: str
    description: str
    reporter_id: str
    incident_id: str = field(default_factory=generate_uuid)
    severity: IncidentSeverity = IncidentSeverity.MINOR
    status: IncidentStatus = IncidentStatus.REPORTED
    occurred_at: datetime = field(default_factory=utc_now)
    location: str = ""
    geo_location: GeoLocation | None = None
    reporter_name: str = ""
    department: str = ""
    investigator_id: str | None = None
    injury: InjuryDetails | None = None
    last_response_at: datetime | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    status_changed_at: datetime = field(default_factory=utc_now)
    state_version: int = 0
    closed_at: datetime | None = None
    closure_notes: str = ""
    corrective_actions: list[CorrectiveAction] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    @classmethod
    def create(
        cls,
        title: str,
        description: str,
        reporter_id: str,
        severity: IncidentSeverity = IncidentSeverity.MINOR,
        occurred_at: datetime | None = None,
        location: str = "",
        department: str = "",
        reporter_name: str = "",
        geo_location: GeoLocation | None = None,
        injury: InjuryDetails | None = None,
        metadata: dict[str, Any] | None = None,
        serious_threshold: IncidentSeverity = DEFAULT_SERIOUS_THRESHOLD,
        actor: str | None = None,
        now: datetime | None = None,
    ) -> tuple["Incident", list[IncidentEvent]]:
        """
        Record a newly reported incident.

        Args:
            title: Short, descriptive title.
            description: What happened.
            reporter_id: Who reported the incident.
            severity: Severity level.
            occurred_at: When it happened, defaults to now.
            location: Where it happened.
            department: Department of the reporter.
            reporter_name: Display name of the reporter.
            geo_location: Optional coordinate.
            injury: Injury metadata.
            metadata: Additional metadata.
            serious_threshold: Severity at which SERIOUS_INCIDENT_REPORTED is
                raised as well.
            actor: Who recorded the incident, defaults to the reporter.
            now: Creation time, defaults to the current UTC time.

        Returns:
            Tuple of the new incident and its events: INCIDENT_CREATED, plus
            SERIOUS_INCIDENT_REPORTED when severity >= serious_threshold.

        Raises:
            ValidationError: If required fields are missing or occurred_at
                is in the future.
        """
        current = ensure_utc(now) if now else utc_now()
        happened = ensure_utc(occurred_at) if occurred_at else current

        errors = []
        if not title or not title.strip():
            errors.append("title is required")
        if not reporter_id or not reporter_id.strip():
            errors.append("reporter_id is required")
        if happened > current:
            errors.append("occurred_at cannot be in the future")
        if errors:
            raise ValidationError(
                f"Invalid incident: {'; '.join(errors)}",
                {"errors": errors},
            )

        incident = cls(
            title=title.strip(),
            description=description,
            reporter_id=reporter_id.strip(),
            severity=severity,
            status=IncidentStatus.REPORTED,
            occurred_at=happened,
            location=location,
            geo_location=geo_location,
            reporter_name=reporter_name,
            department=department,
            injury=injury,
            created_at=current,
            updated_at=current,
            status_changed_at=current,
            metadata=dict(metadata or {}),
        )

        who = actor or incident.reporter_id
        events = [
            incident._event(
                IncidentEventType.INCIDENT_CREATED,
                current,
                actor=who,
                new_value=IncidentStatus.REPORTED.value,
                metadata={"severity": severity.value},
            )
        ]
        if severity >= serious_threshold:
            events.append(
                incident._event(
                    IncidentEventType.SERIOUS_INCIDENT_REPORTED,
                    current,
                    actor=who,
                    new_value=severity.value,
                )
            )
        return incident, events

    # -------------------------------------------------------------------------
    # Details
    # -------------------------------------------------------------------------

    def update(
        self,
        title: str,
        description: str,
        actor: str | None = None,
        now: datetime | None = None,
    ) -> list[IncidentEvent]:
        """
        Update the title and description.

        Returns:
            [INCIDENT_UPDATED], or an empty list if nothing changed.
        """
        self._require_open("update")
        if not title or not title.strip():
            raise ValidationError("Invalid incident: title is required", {"errors": ["title is required"]})

        title = title.strip()
        if title == self.title and description == self.description:
            return []

        current = self._now(now)
        old_title = self.title
        self.title = title
        self.description = description
        self.updated_at = current
        return [
            self._event(
                IncidentEventType.INCIDENT_UPDATED,
                current,
                actor=actor,
                old_value=old_title,
                new_value=title,
            )
        ]

    def record_response(
        self,
        actor: str | None = None,
        now: datetime | None = None,
    ) -> list[IncidentEvent]:
        """
        Record that someone responded to the incident.

        Response-based duration rules measure from this timestamp.
        """
        self._require_open("record a response on")
        current = self._now(now)
        previous = self.last_response_at
        self.last_response_at = current
        self.updated_at = current
        return [
            self._event(
                IncidentEventType.RESPONSE_RECORDED,
                current,
                actor=actor,
                old_value=previous.isoformat() if previous else None,
                new_value=current.isoformat(),
            )
        ]

    # -------------------------------------------------------------------------
    # Status, severity and assignment
    # -------------------------------------------------------------------------

    def assign_investigator(
        self,
        investigator_id: str,
        actor: str | None = None,
        now: datetime | None = None,
    ) -> list[IncidentEvent]:
        """
        Assign an investigator and move the incident to UNDER_INVESTIGATION.

        Returns:
            [INVESTIGATOR_ASSIGNED].

        Raises:
            ValidationError: If investigator_id is blank.
            InvalidTransitionError: If the incident is closed.
        """
        self._require_open("assign an investigator to")
        if not investigator_id or not investigator_id.strip():
            raise ValidationError(
                "Invalid assignment: investigator_id is required",
                {"incident_id": self.incident_id},
            )

        current = self._now(now)
        old_investigator = self.investigator_id
        old_status = self.status
        self.investigator_id = investigator_id.strip()
        self._apply_status(IncidentStatus.UNDER_INVESTIGATION, current)
        return [
            self._event(
                IncidentEventType.INVESTIGATOR_ASSIGNED,
                current,
                actor=actor,
                old_value=old_investigator,
                new_value=self.investigator_id,
                metadata={
                    "old_status": old_status.value,
                    "new_status": self.status.value,
                },
            )
        ]

    def update_status(
        self,
        status: IncidentStatus,
        actor: str | None = None,
        now: datetime | None = None,
    ) -> list[IncidentEvent]:
        """
        Change the status.

        Setting CLOSED goes through close() and its invariant.

        Returns:
            [STATUS_CHANGED], [INCIDENT_CLOSED] when closing, or an empty
            list if the status is unchanged.

        Raises:
            InvalidTransitionError: If the incident is already closed.
            PendingActionsError: If closing with open corrective actions.
        """
        if status == IncidentStatus.CLOSED:
            return self.close(actor=actor, now=now)
        self._require_open("change the status of")
        if status == self.status:
            return []

        current = self._now(now)
        old_status = self.status
        self._apply_status(status, current)
        return [
            self._event(
                IncidentEventType.STATUS_CHANGED,
                current,
                actor=actor,
                old_value=old_status.value,
                new_value=status.value,
            )
        ]

    def update_severity(
        self,
        severity: IncidentSeverity,
        actor: str | None = None,
        now: datetime | None = None,
    ) -> list[IncidentEvent]:
        """
        Change the severity.

        Returns:
            [SEVERITY_CHANGED], or an empty list if unchanged.
        """
        self._require_open("change the severity of")
        if severity == self.severity:
            return []

        current = self._now(now)
        old_severity = self.severity
        self.severity = severity
        self.state_version += 1
        self.updated_at = current
        return [
            self._event(
                IncidentEventType.SEVERITY_CHANGED,
                current,
                actor=actor,
                old_value=old_severity.value,
                new_value=severity.value,
            )
        ]

    def close(
        self,
        notes: str = "",
        actor: str | None = None,
        now: datetime | None = None,
    ) -> list[IncidentEvent]:
        """
        Close the incident.

        Returns:
            [INCIDENT_CLOSED].

        Raises:
            InvalidTransitionError: If the incident is already closed.
            PendingActionsError: If any corrective action is not COMPLETED.
                The incident is left unchanged.
        """
        self._require_open("close")
        pending = self.pending_corrective_actions()
        if pending:
            raise PendingActionsError(
                f"Cannot close incident {self.incident_id}: "
                f"{len(pending)} corrective action(s) not completed",
                [a.action_id for a in pending],
                {"incident_id": self.incident_id},
            )

        current = self._now(now)
        old_status = self.status
        self._apply_status(IncidentStatus.CLOSED, current)
        self.closed_at = current
        self.closure_notes = notes
        return [
            self._event(
                IncidentEventType.INCIDENT_CLOSED,
                current,
                actor=actor,
                old_value=old_status.value,
                new_value=IncidentStatus.CLOSED.value,
                metadata={"notes": notes} if notes else {},
            )
        ]

    # -------------------------------------------------------------------------
    # Corrective actions
    # -------------------------------------------------------------------------

    def add_corrective_action(
        self,
        action: CorrectiveAction,
        actor: str | None = None,
        now: datetime | None = None,
    ) -> list[IncidentEvent]:
        """
        Attach a corrective action to the incident.

        Returns:
            [CORRECTIVE_ACTION_ADDED].

        Raises:
            ValidationError: If the action belongs to another incident or
                is already attached.
            InvalidTransitionError: If the incident is closed.
        """
        self._require_open("add a corrective action to")
        if action.incident_id != self.incident_id:
            raise ValidationError(
                "Corrective action belongs to a different incident",
                {"incident_id": self.incident_id, "action_incident_id": action.incident_id},
            )
        if any(a.action_id == action.action_id for a in self.corrective_actions):
            raise ValidationError(
                f"Corrective action already attached: {action.action_id}",
                {"incident_id": self.incident_id, "action_id": action.action_id},
            )

        current = self._now(now)
        self.corrective_actions.append(action)
        self.updated_at = current
        return [
            self._event(
                IncidentEventType.CORRECTIVE_ACTION_ADDED,
                current,
                actor=actor,
                new_value=action.action_id,
                metadata={
                    "action_id": action.action_id,
                    "assignee_id": action.assignee_id,
                    "due_at": action.due_at.isoformat(),
                },
            )
        ]

    def start_corrective_action(
        self,
        action_id: str,
        actor: str | None = None,
        now: datetime | None = None,
    ) -> list[IncidentEvent]:
        """Start work on a corrective action."""
        action = self.get_corrective_action(action_id)
        old_status = action.status
        changed = action.start(now)
        return self._action_changed(action, old_status, changed, actor, now)

    def complete_corrective_action(
        self,
        action_id: str,
        notes: str = "",
        actor: str | None = None,
        now: datetime | None = None,
    ) -> list[IncidentEvent]:
        """
        Complete a corrective action.

        Completion never closes the incident; it only makes closure possible.
        """
        action = self.get_corrective_action(action_id)
        old_status = action.status
        changed = action.complete(notes, now)
        return self._action_changed(action, old_status, changed, actor, now)

    def update_corrective_action_due_date(
        self,
        action_id: str,
        due_at: datetime,
        actor: str | None = None,
        now: datetime | None = None,
    ) -> list[IncidentEvent]:
        """Move the due date of a corrective action."""
        action = self.get_corrective_action(action_id)
        old_status = action.status
        changed = action.update_due_date(due_at, now)
        return self._action_changed(action, old_status, changed, actor, now)

    def refresh_overdue_actions(
        self,
        now: datetime | None = None,
    ) -> list[IncidentEvent]:
        """Flip every corrective action whose due date has passed to OVERDUE."""
        events: list[IncidentEvent] = []
        for action in self.corrective_actions:
            old_status = action.status
            changed = action.refresh_overdue(now)
            events.extend(self._action_changed(action, old_status, changed, "system", now))
        return events

    def get_corrective_action(self, action_id: str) -> CorrectiveAction:
        """
        Look up an owned corrective action.

        Raises:
            ValidationError: If the action is not owned by this incident.
        """
        for action in self.corrective_actions:
            if action.action_id == action_id:
                return action
        raise ValidationError(
            f"Unknown corrective action: {action_id}",
            {"incident_id": self.incident_id, "action_id": action_id},
        )

    def pending_corrective_actions(self) -> list[CorrectiveAction]:
        """Corrective actions that are not COMPLETED."""
        return [a for a in self.corrective_actions if not a.is_completed()]

    def can_close(self) -> bool:
        """Check if the closure invariant currently holds."""
        return self.is_open() and not self.pending_corrective_actions()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def is_open(self) -> bool:
        """Check if the incident has not been closed."""
        return self.status != IncidentStatus.CLOSED

    def snapshot(self) -> IncidentSnapshot:
        """Take an immutable snapshot of the incident."""
        return IncidentSnapshot(
            incident_id=self.incident_id,
            title=self.title,
            description=self.description,
            severity=self.severity,
            status=self.status,
            occurred_at=self.occurred_at,
            created_at=self.created_at,
            status_changed_at=self.status_changed_at,
            state_version=self.state_version,
            location=self.location,
            department=self.department,
            reporter_id=self.reporter_id,
            reporter_name=self.reporter_name,
            investigator_id=self.investigator_id,
            last_response_at=self.last_response_at,
            geo_location=self.geo_location,
            injury=self.injury,
            open_corrective_actions=len(self.pending_corrective_actions()),
            metadata=dict(self.metadata),
        )

    def to_dict(self, exclude_none: bool = False) -> dict[str, Any]:
        """Convert the incident to a dictionary."""
        return model_to_dict(self, exclude_none)

    def __repr__(self) -> str:
        return (
            f"Incident(id={self.incident_id!r}, title={self.title!r}, "
            f"severity={self.severity.value}, status={self.status.value})"
        )

    # -------------------------------------------------------------------------
    # Private Methods
    # -------------------------------------------------------------------------

    def _require_open(self, operation: str) -> None:
        if self.status == IncidentStatus.CLOSED:
            raise InvalidTransitionError(
                f"Cannot {operation} closed incident {self.incident_id}",
                {"incident_id": self.incident_id, "status": self.status.value},
            )

    def _apply_status(self, status: IncidentStatus, at: datetime) -> None:
        if status != self.status:
            self.status = status
            self.status_changed_at = at
            self.state_version += 1
        self.updated_at = at

    def _action_changed(
        self,
        action: CorrectiveAction,
        old_status: Any,
        changed: bool,
        actor: str | None,
        now: datetime | None,
    ) -> list[IncidentEvent]:
        if not changed:
            return []
        current = self._now(now)
        self.updated_at = current
        return [
            self._event(
                IncidentEventType.CORRECTIVE_ACTION_STATUS_CHANGED,
                current,
                actor=actor,
                old_value=old_status.value,
                new_value=action.status.value,
                metadata={
                    "action_id": action.action_id,
                    "closable": self.can_close(),
                },
            )
        ]

    def _event(
        self,
        event_type: IncidentEventType,
        at: datetime,
        actor: str | None = None,
        old_value: str | None = None,
        new_value: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> IncidentEvent:
        return IncidentEvent(
            event_type=event_type,
            incident_id=self.incident_id,
            occurred_at=at,
            actor=actor,
            old_value=old_value,
            new_value=new_value,
            metadata=metadata or {},
        )

    @staticmethod
    def _now(now: datetime | None) -> datetime:
        return ensure_utc(now) if now else utc_now()
