"""
HSSEGuard: incident lifecycle and escalation engine for HSSE management.

HSSEGuard keeps Health, Safety, Security and Environment incidents in a
strict lifecycle and escalates them according to configurable rules.

Key Features:
    - Incident aggregate: status and severity changes, investigator
      assignment and closure gated on completed corrective actions
    - Escalation rules: severity, status, department, location and
      duration conditions with ordered, optionally delayed actions
    - Exactly-once dispatch per incident state, with bounded retries
    - Append-only escalation and notification audit trail

Example:
    Escalating a new incident::

        from hsseguard import AuditTrail, Database, EscalationEngine, Incident
        from hsseguard import IncidentSeverity, RuleStore
        from hsseguard.escalation import NotificationGateway, RecipientDirectory
        from hsseguard.escalation import default_rules

        store = RuleStore(rules=default_rules())
        audit = AuditTrail(Database("hsseguard.db"))
        engine = EscalationEngine(store, NotificationGateway(directory), audit)

        incident, events = Incident.create(
            "Gas leak in compressor room", "Detector alarm", "u-17",
            severity=IncidentSeverity.CRITICAL,
        )
        outcomes = engine.process_events(incident, events)
"""

from hsseguard.audit.trail import AuditTrail
from hsseguard.escalation.engine import EscalationEngine
from hsseguard.escalation.store import RuleStore
from hsseguard.exceptions import (
    ConfigurationError,
    DispatchError,
    DuplicateDispatchError,
    HSSEGuardError,
    InvalidTransitionError,
    PendingActionsError,
    RuleError,
    StorageError,
    ValidationError,
)
from hsseguard.incidents import (
    CorrectiveAction,
    CorrectiveActionStatus,
    Incident,
    IncidentEvent,
    IncidentEventType,
    IncidentSeverity,
    IncidentStatus,
)
from hsseguard.storage.database import Database
from hsseguard.version import __version__

__all__ = [
    # Version
    "__version__",
    # Exceptions
    "HSSEGuardError",
    "ConfigurationError",
    "ValidationError",
    "InvalidTransitionError",
    "PendingActionsError",
    "RuleError",
    "DispatchError",
    "DuplicateDispatchError",
    "StorageError",
    # Incidents
    "Incident",
    "IncidentEvent",
    "IncidentEventType",
    "IncidentSeverity",
    "IncidentStatus",
    "CorrectiveAction",
    "CorrectiveActionStatus",
    # Escalation
    "EscalationEngine",
    "RuleStore",
    "AuditTrail",
    "Database",
]
