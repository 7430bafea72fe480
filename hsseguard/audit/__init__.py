"""
Audit trail for HSSEGuard.

This package records every escalation attempt and every notification the
escalation engine produces.
"""

from hsseguard.audit.models import (
    NOTIFICATION_TRANSITIONS,
    ClaimStatus,
    DispatchClaim,
    EscalationHistoryEntry,
    NotificationDeliveryStatus,
    NotificationHistoryEntry,
    NotificationStatusChange,
)
from hsseguard.audit.trail import AuditTrail

__all__ = [
    "NOTIFICATION_TRANSITIONS",
    "AuditTrail",
    "ClaimStatus",
    "DispatchClaim",
    "EscalationHistoryEntry",
    "NotificationDeliveryStatus",
    "NotificationHistoryEntry",
    "NotificationStatusChange",
]
