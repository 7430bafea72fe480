"""
Escalation rule models for HSSEGuard.

This module defines the configuration objects the escalation engine
evaluates: rules with a trigger condition and an ordered list of actions.
Rules are immutable; editing a rule means saving a new version of it to
the rule store, so an evaluation pass always works on a consistent view.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from hsseguard.incidents.models import IncidentSeverity, IncidentStatus
from hsseguard.models.base import generate_uuid, model_to_dict, model_to_json, utc_now

# Priority given to rules that do not set one.
DEFAULT_RULE_PRIORITY = 100


class EscalationActionType(Enum):
    """Kinds of actions an escalation rule can dispatch."""

    NOTIFY_USER = "NOTIFY_USER"
    """Notify a single user."""

    NOTIFY_ROLE = "NOTIFY_ROLE"
    """Notify every holder of a role."""

    NOTIFY_DEPARTMENT = "NOTIFY_DEPARTMENT"
    """Notify every member of a department."""

    NOTIFY_EXTERNAL = "NOTIFY_EXTERNAL"
    """Notify an external party by address."""

    ESCALATE_TO_MANAGER = "ESCALATE_TO_MANAGER"
    """Notify the management chain of the incident."""

    SEND_EMERGENCY_ALERT = "SEND_EMERGENCY_ALERT"
    """Alert the emergency response contacts on every urgent channel."""

    SEND_REGULATORY = "SEND_REGULATORY"
    """Notify the team that files regulatory reports."""

    CHANGE_STATUS = "CHANGE_STATUS"
    """Ask the host workflow to change the incident status."""

    ASSIGN_INVESTIGATOR = "ASSIGN_INVESTIGATOR"
    """Ask the host workflow to assign an investigator."""

    CREATE_TASK = "CREATE_TASK"
    """Ask the host workflow to create a follow-up task."""

    @property
    def is_notification(self) -> bool:
        """Whether the action produces a notification history entry."""
        return self in NOTIFICATION_ACTION_TYPES

    @property
    def recipient_type(self) -> str:
        """Kind of recipient recorded in notification history."""
        return _RECIPIENT_TYPES.get(self, "WORKFLOW")


NOTIFICATION_ACTION_TYPES = frozenset(
    {
        EscalationActionType.NOTIFY_USER,
        EscalationActionType.NOTIFY_ROLE,
        EscalationActionType.NOTIFY_DEPARTMENT,
        EscalationActionType.NOTIFY_EXTERNAL,
        EscalationActionType.ESCALATE_TO_MANAGER,
        EscalationActionType.SEND_EMERGENCY_ALERT,
        EscalationActionType.SEND_REGULATORY,
    }
)

WORKFLOW_ACTION_TYPES = frozenset(EscalationActionType) - NOTIFICATION_ACTION_TYPES

_RECIPIENT_TYPES = {
    EscalationActionType.NOTIFY_USER: "USER",
    EscalationActionType.NOTIFY_ROLE: "ROLE",
    EscalationActionType.NOTIFY_DEPARTMENT: "DEPARTMENT",
    EscalationActionType.NOTIFY_EXTERNAL: "EXTERNAL",
    EscalationActionType.ESCALATE_TO_MANAGER: "MANAGER",
    EscalationActionType.SEND_EMERGENCY_ALERT: "EMERGENCY_TEAM",
    EscalationActionType.SEND_REGULATORY: "REGULATOR",
}


class NotificationChannel(Enum):
    """Channels a notification can be delivered on."""

    EMAIL = "EMAIL"
    SMS = "SMS"
    WHATSAPP = "WHATSAPP"
    PUSH = "PUSH"
    WEBHOOK = "WEBHOOK"
    LOG = "LOG"


class NotificationPriority(Enum):
    """Priority levels for notifications."""

    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"


class DurationReference(Enum):
    """Timestamp a duration condition measures elapsed time from."""

    CREATED = "CREATED"
    """Incident creation: age-based rules."""

    STATUS_CHANGED = "STATUS_CHANGED"
    """Last status change: stuck-in-state rules."""

    LAST_RESPONSE = "LAST_RESPONSE"
    """Last recorded response, falling back to creation."""


@dataclass(frozen=True)
class TriggerCondition:
    """
    Predicate an incident must satisfy for a rule to fire.

    Every dimension that is empty matches anything. All non-empty
    dimensions must match.

    Attributes:
        severities: Qualifying severities.
        statuses: Qualifying statuses.
        departments: Qualifying departments, compared case-insensitively.
        locations: Qualifying locations, matched as case-insensitive
            substrings of the incident location.
        min_duration: Elapsed time that must be exceeded, if any.
        duration_reference: Timestamp the elapsed time is measured from.
    """

    severities: frozenset[IncidentSeverity] = frozenset()
    statuses: frozenset[IncidentStatus] = frozenset()
    departments: frozenset[str] = frozenset()
    locations: frozenset[str] = frozenset()
    min_duration: timedelta | None = None
    duration_reference: DurationReference = DurationReference.CREATED

    @property
    def is_time_based(self) -> bool:
        """Whether the condition has a duration component."""
        return self.min_duration is not None

    def to_dict(self, exclude_none: bool = False) -> dict[str, Any]:
        """Convert the condition to a dictionary."""
        return model_to_dict(self, exclude_none)


@dataclass(frozen=True)
class EscalationAction:
    """
    One step of an escalation rule.

    Attributes:
        action_type: What kind of action to dispatch.
        target: User, role, department, address or workflow value the
            action is aimed at.
        template_id: Notification template, if not the type's default.
        parameters: Free-form parameters passed to templates and the
            host workflow.
        delay: How long after the evaluation the action may be dispatched.
        channels: Channels to notify on. Empty means the type's default.
    """

    action_type: EscalationActionType
    target: str
    template_id: str | None = None
    parameters: dict[str, Any] = field(default_factory=dict)
    delay: timedelta | None = None
    channels: tuple[NotificationChannel, ...] = ()

    @property
    def is_delayed(self) -> bool:
        """Whether the action has a positive dispatch delay."""
        return self.delay is not None and self.delay > timedelta(0)

    def to_dict(self, exclude_none: bool = False) -> dict[str, Any]:
        """Convert the action to a dictionary."""
        return model_to_dict(self, exclude_none)


@dataclass(frozen=True)
class EscalationRule:
    """
    A configured escalation rule.

    Rules with a lower priority value are evaluated first. Ties are broken
    by creation time, then by rule id, so audit ordering is deterministic.

    Attributes:
        name: Human-readable rule name, snapshotted into history.
        trigger: Condition the incident must satisfy.
        actions: Ordered actions to dispatch when the rule matches.
        rule_id: Unique identifier of the rule.
        description: What the rule is for.
        active: Inactive rules are never evaluated.
        priority: Evaluation order, lower first.
        created_at: When the rule was created.
        updated_at: When the rule was last saved.
        metadata: Additional key-value metadata.
    """

    name: str
    trigger: TriggerCondition = field(default_factory=TriggerCondition)
    actions: tuple[EscalationAction, ...] = ()
    rule_id: str = field(default_factory=generate_uuid)
    description: str = ""
    active: bool = True
    priority: int = DEFAULT_RULE_PRIORITY
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def sort_key(self) -> tuple[int, datetime, str]:
        """Key giving the stable evaluation order."""
        return (self.priority, self.created_at, self.rule_id)

    def with_active(self, active: bool) -> "EscalationRule":
        """Return a copy of the rule with the active flag changed."""
        return replace(self, active=active, updated_at=utc_now())

    def to_dict(self, exclude_none: bool = False) -> dict[str, Any]:
        """Convert the rule to a dictionary."""
        return model_to_dict(self, exclude_none)

    def to_json(self, indent: int | None = None, exclude_none: bool = False) -> str:
        """Convert the rule to a JSON string."""
        return model_to_json(self, indent, exclude_none)

    def __hash__(self) -> int:
        return hash(self.rule_id)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EscalationRule):
            return NotImplemented
        return self.rule_id == other.rule_id and self.updated_at == other.updated_at

    def __repr__(self) -> str:
        return (
            f"EscalationRule(id={self.rule_id!r}, name={self.name!r}, "
            f"priority={self.priority}, active={self.active})"
        )


def default_channels(action_type: EscalationActionType) -> tuple[NotificationChannel, ...]:
    """
    Channels used when an action does not list any.

    Returns:
        The fixed channels for emergency and regulatory actions, or an
        empty tuple meaning the configured default channel.
    """
    if action_type == EscalationActionType.SEND_EMERGENCY_ALERT:
        return (NotificationChannel.EMAIL, NotificationChannel.SMS, NotificationChannel.PUSH)
    if action_type == EscalationActionType.SEND_REGULATORY:
        return (NotificationChannel.EMAIL,)
    return ()
