"""
Test utilities and helpers for HSSEGuard tests.

This module provides:
- A clock that only moves when a test moves it
- Dispatch gateways that record, fail or raise on demand
- Factory functions for incidents and escalation rules
"""

import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Any

from hsseguard.escalation.gateway import DispatchGateway, DispatchRequest, DispatchResult
from hsseguard.escalation.rules import (
    DurationReference,
    EscalationAction,
    EscalationActionType,
    EscalationRule,
    TriggerCondition,
)
from hsseguard.exceptions import DispatchError
from hsseguard.incidents import Incident, IncidentEvent, IncidentSeverity, IncidentStatus

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class FixedClock:
    """Clock for the escalation engine that only moves when advanced."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        """Move the clock forward by a timedelta given as keyword arguments."""
        self.now += timedelta(**kwargs)
        return self.now


class RecordingGateway(DispatchGateway):
    """Gateway that records every request and always succeeds."""

    def __init__(self, delay: float = 0.0) -> None:
        self.requests: list[DispatchRequest] = []
        self.delay = delay
        self._lock = threading.Lock()

    def dispatch(self, request: DispatchRequest) -> DispatchResult:
        if self.delay:
            time.sleep(self.delay)
        with self._lock:
            self.requests.append(request)
        return DispatchResult.ok([request.action.target])

    @property
    def targets(self) -> list[str]:
        """Targets of the recorded requests, in dispatch order."""
        return [r.action.target for r in self.requests]


class FlakyGateway(RecordingGateway):
    """
    Gateway that fails a number of calls before it starts succeeding.

    Failures are returned as failed results, or raised as DispatchError
    when raise_error is set.
    """

    def __init__(self, failures: int, raise_error: bool = False) -> None:
        super().__init__()
        self.failures = failures
        self.raise_error = raise_error
        self.calls = 0

    def dispatch(self, request: DispatchRequest) -> DispatchResult:
        with self._lock:
            self.calls += 1
            failing = self.calls <= self.failures
        if failing:
            if self.raise_error:
                raise DispatchError("SMTP server unavailable")
            return DispatchResult.failed("SMTP server unavailable")
        return super().dispatch(request)


def make_action(
    target: str = "hse_manager",
    action_type: EscalationActionType = EscalationActionType.NOTIFY_ROLE,
    **kwargs: Any,
) -> EscalationAction:
    """Create an escalation action for tests."""
    return EscalationAction(action_type=action_type, target=target, **kwargs)


def make_rule(
    name: str = "Test rule",
    priority: int = 100,
    severities: tuple[IncidentSeverity, ...] = (),
    statuses: tuple[IncidentStatus, ...] = (),
    departments: tuple[str, ...] = (),
    locations: tuple[str, ...] = (),
    min_duration: timedelta | None = None,
    duration_reference: DurationReference = DurationReference.CREATED,
    actions: tuple[EscalationAction, ...] | None = None,
    rule_id: str | None = None,
    created_at: datetime = NOW,
    **kwargs: Any,
) -> EscalationRule:
    """Create an escalation rule for tests."""
    return EscalationRule(
        name=name,
        rule_id=rule_id or name.lower().replace(" ", "-"),
        priority=priority,
        trigger=TriggerCondition(
            severities=frozenset(severities),
            statuses=frozenset(statuses),
            departments=frozenset(departments),
            locations=frozenset(locations),
            min_duration=min_duration,
            duration_reference=duration_reference,
        ),
        actions=actions if actions is not None else (make_action(),),
        created_at=created_at,
        updated_at=created_at,
        **kwargs,
    )


def make_incident(
    severity: IncidentSeverity = IncidentSeverity.MINOR,
    now: datetime = NOW,
    **kwargs: Any,
) -> tuple[Incident, list[IncidentEvent]]:
    """Create a reported incident and its creation events."""
    values: dict[str, Any] = {
        "title": "Forklift collision",
        "description": "Forklift struck racking in aisle 4",
        "reporter_id": "u-100",
        "occurred_at": now - timedelta(minutes=10),
        "location": "Warehouse B, Bay 3",
        "department": "Logistics",
        "reporter_name": "Dana Reyes",
    }
    values.update(kwargs)
    return Incident.create(severity=severity, now=now, **values)
