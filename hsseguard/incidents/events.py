"""
Incident lifecycle events for HSSEGuard.

State-changing operations on the incident aggregate return these events
instead of publishing them. The caller decides what to do with them,
typically handing them to the escalation engine.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from hsseguard.models.base import generate_uuid, model_to_dict, utc_now


class IncidentEventType(Enum):
    """Types of events raised by the incident aggregate."""

    INCIDENT_CREATED = "INCIDENT_CREATED"
    SERIOUS_INCIDENT_REPORTED = "SERIOUS_INCIDENT_REPORTED"
    INCIDENT_UPDATED = "INCIDENT_UPDATED"
    INVESTIGATOR_ASSIGNED = "INVESTIGATOR_ASSIGNED"
    STATUS_CHANGED = "STATUS_CHANGED"
    SEVERITY_CHANGED = "SEVERITY_CHANGED"
    CORRECTIVE_ACTION_ADDED = "CORRECTIVE_ACTION_ADDED"
    CORRECTIVE_ACTION_STATUS_CHANGED = "CORRECTIVE_ACTION_STATUS_CHANGED"
    RESPONSE_RECORDED = "RESPONSE_RECORDED"
    INCIDENT_CLOSED = "INCIDENT_CLOSED"

    DURATION_CHECK = "DURATION_CHECK"
    """Synthetic tick raised by the scheduled sweep."""

    MANUAL_ESCALATION = "MANUAL_ESCALATION"
    """Synthetic event raised when a user escalates an incident by hand."""


# Events the escalation engine evaluates rules for.
TRIGGER_EVENT_TYPES = frozenset(
    {
        IncidentEventType.INCIDENT_CREATED,
        IncidentEventType.SERIOUS_INCIDENT_REPORTED,
        IncidentEventType.INVESTIGATOR_ASSIGNED,
        IncidentEventType.STATUS_CHANGED,
        IncidentEventType.SEVERITY_CHANGED,
        IncidentEventType.CORRECTIVE_ACTION_ADDED,
        IncidentEventType.CORRECTIVE_ACTION_STATUS_CHANGED,
        IncidentEventType.INCIDENT_CLOSED,
        IncidentEventType.DURATION_CHECK,
        IncidentEventType.MANUAL_ESCALATION,
    }
)

# A serious report is the same reporting occurrence as the creation.
_TRIGGER_ALIASES = {
    IncidentEventType.SERIOUS_INCIDENT_REPORTED: IncidentEventType.INCIDENT_CREATED,
}


@dataclass(frozen=True)
class IncidentEvent:
    """
    Event emitted when an incident changes.

    Attributes:
        event_type: Type of event that occurred.
        incident_id: ID of the incident.
        event_id: Unique identifier of this event.
        occurred_at: When the event occurred.
        actor: Who triggered the event.
        old_value: Previous value (for changes).
        new_value: New value (for changes).
        metadata: Additional event context.
    """

    event_type: IncidentEventType
    incident_id: str
    event_id: str = field(default_factory=generate_uuid)
    occurred_at: datetime = field(default_factory=utc_now)
    actor: str | None = None
    old_value: str | None = None
    new_value: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_trigger(self) -> bool:
        """Whether the escalation engine evaluates rules for this event."""
        return self.event_type in TRIGGER_EVENT_TYPES

    @property
    def trigger_identity(self) -> str:
        """
        Identity of the triggering event used in dedup keys.

        Repeated events of the same kind against the same incident state
        share an identity. Manual escalations are always distinct.
        """
        if self.event_type == IncidentEventType.MANUAL_ESCALATION:
            return f"{self.event_type.value}:{self.event_id}"
        return _TRIGGER_ALIASES.get(self.event_type, self.event_type).value

    def to_dict(self, exclude_none: bool = False) -> dict[str, Any]:
        """Convert the event to a dictionary."""
        return model_to_dict(self, exclude_none)

    def __repr__(self) -> str:
        return (
            f"IncidentEvent(type={self.event_type.value}, incident={self.incident_id!r}, "
            f"old={self.old_value!r}, new={self.new_value!r})"
        )
