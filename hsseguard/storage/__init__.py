"""
Storage layer for HSSEGuard.

This module provides the SQLite connection pool, the audit schema and the
repositories behind the audit trail.
"""

from hsseguard.storage.database import Database
from hsseguard.storage.repositories import (
    DispatchClaimRepository,
    EscalationHistoryRepository,
    NotificationHistoryRepository,
)

__all__ = [
    "Database",
    "DispatchClaimRepository",
    "EscalationHistoryRepository",
    "NotificationHistoryRepository",
]
