"""
Escalation for HSSEGuard.

This package provides the escalation rule model, rule files and
validation, the rule store, the matcher, notification templates, dispatch
gateways and the escalation engine.
"""

from hsseguard.escalation.engine import (
    DispatchOutcome,
    EscalationEngine,
    OutcomeStatus,
    RetryPolicy,
    dedup_key,
    notification_priority,
)
from hsseguard.escalation.gateway import (
    DispatchGateway,
    DispatchRequest,
    DispatchResult,
    NotificationGateway,
    Recipient,
    RecipientDirectory,
    SMTPSettings,
    build_gateway,
)
from hsseguard.escalation.matcher import RuleMatcher
from hsseguard.escalation.parser import ParseError, ParseResult, RuleParser, parse_duration
from hsseguard.escalation.rules import (
    DurationReference,
    EscalationAction,
    EscalationActionType,
    EscalationRule,
    NotificationChannel,
    NotificationPriority,
    TriggerCondition,
)
from hsseguard.escalation.scheduler import ActionScheduler, PeriodicSweeper, ScheduledAction
from hsseguard.escalation.store import RuleStore, default_rules
from hsseguard.escalation.templates import NotificationTemplate, TemplateRegistry
from hsseguard.escalation.validator import RuleValidator, ValidationResult

__all__ = [
    "ActionScheduler",
    "DispatchGateway",
    "DispatchOutcome",
    "DispatchRequest",
    "DispatchResult",
    "DurationReference",
    "EscalationAction",
    "EscalationActionType",
    "EscalationEngine",
    "EscalationRule",
    "NotificationChannel",
    "NotificationGateway",
    "NotificationPriority",
    "NotificationTemplate",
    "OutcomeStatus",
    "ParseError",
    "ParseResult",
    "PeriodicSweeper",
    "Recipient",
    "RecipientDirectory",
    "RetryPolicy",
    "RuleMatcher",
    "RuleParser",
    "RuleStore",
    "RuleValidator",
    "SMTPSettings",
    "ScheduledAction",
    "TemplateRegistry",
    "TriggerCondition",
    "ValidationResult",
    "build_gateway",
    "dedup_key",
    "default_rules",
    "notification_priority",
    "parse_duration",
]
