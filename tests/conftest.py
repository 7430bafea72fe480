"""
Pytest configuration and shared fixtures for HSSEGuard tests.

This module provides:
- Database and audit trail fixtures
- Rule store and gateway fixtures
- An escalation engine wired to a fixed clock and a no-op sleep
"""

from pathlib import Path
from typing import Generator

import pytest

from hsseguard.audit.trail import AuditTrail
from hsseguard.config.defaults import get_test_config
from hsseguard.config.schema import HSSEGuardConfig
from hsseguard.escalation.engine import EscalationEngine, RetryPolicy
from hsseguard.escalation.store import RuleStore
from hsseguard.storage.database import Database
from tests.helpers import FixedClock, RecordingGateway


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def db(tmp_path: Path) -> Generator[Database, None, None]:
    """Create a temporary file-backed audit database.

    Yields:
        Initialized Database instance.
    """
    database = Database(tmp_path / "audit.db")
    database.initialize()
    yield database
    database.close()


@pytest.fixture
def audit(db: Database) -> AuditTrail:
    """Create an audit trail on the temporary database."""
    return AuditTrail(db)


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def test_config() -> HSSEGuardConfig:
    """Create the test configuration profile."""
    return get_test_config()


# =============================================================================
# Escalation Fixtures
# =============================================================================


@pytest.fixture
def clock() -> FixedClock:
    """Create a clock fixed at the test epoch."""
    return FixedClock()


@pytest.fixture
def store() -> RuleStore:
    """Create an empty rule store."""
    return RuleStore()


@pytest.fixture
def gateway() -> RecordingGateway:
    """Create a gateway that records every request."""
    return RecordingGateway()


@pytest.fixture
def sleeps() -> list[float]:
    """Collect the backoff waits requested by the engine."""
    return []


@pytest.fixture
def engine(
    store: RuleStore,
    gateway: RecordingGateway,
    audit: AuditTrail,
    clock: FixedClock,
    sleeps: list[float],
) -> EscalationEngine:
    """Create an escalation engine that never really sleeps.

    Returns:
        EscalationEngine using the store, gateway, audit trail and clock
        fixtures.
    """
    return EscalationEngine(
        store,
        gateway,
        audit,
        retry_policy=RetryPolicy(max_attempts=3, initial_backoff_seconds=1.0),
        clock=clock,
        sleep=sleeps.append,
    )
