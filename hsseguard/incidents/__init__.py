"""
Incident lifecycle for HSSEGuard.

This package provides the incident aggregate, its corrective actions and
the lifecycle events that drive escalation.
"""

from hsseguard.incidents.aggregate import (
    DEFAULT_SERIOUS_THRESHOLD,
    Incident,
    IncidentSnapshot,
)
from hsseguard.incidents.corrective import CorrectiveAction
from hsseguard.incidents.events import (
    TRIGGER_EVENT_TYPES,
    IncidentEvent,
    IncidentEventType,
)
from hsseguard.incidents.models import (
    CorrectiveActionStatus,
    GeoLocation,
    IncidentSeverity,
    IncidentStatus,
    InjuryDetails,
)

__all__ = [
    "DEFAULT_SERIOUS_THRESHOLD",
    "TRIGGER_EVENT_TYPES",
    "CorrectiveAction",
    "CorrectiveActionStatus",
    "GeoLocation",
    "Incident",
    "IncidentEvent",
    "IncidentEventType",
    "IncidentSeverity",
    "IncidentSnapshot",
    "IncidentStatus",
    "InjuryDetails",
]
