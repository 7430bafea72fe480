"""
Incident value types for HSSEGuard.

This module defines the enumerations and small value objects shared by the
incident aggregate, the corrective action tracker and the escalation
engine.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from hsseguard.models.base import model_to_dict


class _OrderedEnum(Enum):
    """Enum whose members compare by declaration order."""

    @property
    def rank(self) -> int:
        """Position of the member in declaration order."""
        return list(type(self)).index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, type(self)):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, type(self)):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, type(self)):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, type(self)):
            return NotImplemented
        return self.rank >= other.rank


class IncidentSeverity(_OrderedEnum):
    """
    Severity levels for workplace incidents.

    Severity determines the urgency of response and escalation paths.
    Members are ordered: MINOR < MODERATE < MAJOR < SERIOUS < CRITICAL < EMERGENCY.
    """

    MINOR = "MINOR"
    """First-aid case or near miss with no lasting harm."""

    MODERATE = "MODERATE"
    """Medical treatment beyond first aid, no lost time."""

    MAJOR = "MAJOR"
    """Lost-time injury or significant property damage."""

    SERIOUS = "SERIOUS"
    """Serious injury requiring hospitalisation."""

    CRITICAL = "CRITICAL"
    """Life-threatening injury or major environmental release."""

    EMERGENCY = "EMERGENCY"
    """Fatality or an event requiring site emergency response."""


class IncidentStatus(_OrderedEnum):
    """
    Status values for the incident lifecycle.

    Members are ordered along the reporting workflow. CLOSED is terminal.
    """

    OPEN = "OPEN"
    REPORTED = "REPORTED"
    IN_PROGRESS = "IN_PROGRESS"
    UNDER_INVESTIGATION = "UNDER_INVESTIGATION"
    AWAITING_ACTION = "AWAITING_ACTION"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"


class CorrectiveActionStatus(Enum):
    """Status of a corrective action."""

    PENDING = "PENDING"
    """Action has been raised but not started."""

    IN_PROGRESS = "IN_PROGRESS"
    """Assignee is working on the action."""

    COMPLETED = "COMPLETED"
    """Action is done. Terminal."""

    OVERDUE = "OVERDUE"
    """Due date passed before the action was completed."""


@dataclass(frozen=True)
class GeoLocation:
    """
    A WGS84 coordinate for where an incident happened.

    Attributes:
        latitude: Latitude in decimal degrees (-90 to 90).
        longitude: Longitude in decimal degrees (-180 to 180).
    """

    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        """Validate coordinate ranges."""
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError("latitude must be between -90 and 90")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError("longitude must be between -180 and 180")

    def to_dict(self, exclude_none: bool = False) -> dict[str, Any]:
        """Convert the coordinate to a dictionary."""
        return model_to_dict(self, exclude_none)


@dataclass(frozen=True)
class InjuryDetails:
    """
    Injury metadata recorded with an incident.

    Attributes:
        injury_type: Kind of injury (laceration, fracture, burn, ...).
        body_part: Affected body part.
        description: Free-text description of the injury.
        medical_treatment_required: Whether treatment beyond first aid was needed.
        lost_time_days: Working days lost because of the injury.
    """

    injury_type: str = ""
    body_part: str = ""
    description: str = ""
    medical_treatment_required: bool = False
    lost_time_days: int = 0

    def to_dict(self, exclude_none: bool = False) -> dict[str, Any]:
        """Convert the injury details to a dictionary."""
        return model_to_dict(self, exclude_none)
