"""
Escalation rule store for HSSEGuard.

The RuleStore holds the rule configuration the engine reads. Rules are
validated when they are saved, never at evaluation time. Reads return the
immutable rule objects current at the time of the call, so an evaluation
pass keeps a consistent view even if a rule is edited or deactivated
while it runs.
"""

import logging
import threading
from dataclasses import replace
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from hsseguard.escalation.parser import RuleParser
from hsseguard.escalation.rules import (
    DurationReference,
    EscalationAction,
    EscalationActionType,
    EscalationRule,
    NotificationChannel,
    TriggerCondition,
)
from hsseguard.escalation.templates import (
    EMERGENCY_ALERT,
    ESCALATION_OVERDUE,
    INCIDENT_CRITICAL,
    INCIDENT_REGULATORY,
)
from hsseguard.escalation.validator import RuleValidator, ValidationResult
from hsseguard.exceptions import RuleError
from hsseguard.incidents.models import IncidentSeverity, IncidentStatus
from hsseguard.models.base import utc_now

logger = logging.getLogger("hsseguard.escalation.store")


class RuleStore:
    """
    Thread-safe in-memory store of escalation rules.

    Example:
        Loading and reading rules::

            store = RuleStore()
            store.load_file("rules/escalation.yaml")
            for rule in store.get_active_rules():
                print(rule.name)
    """

    def __init__(
        self,
        validator: RuleValidator | None = None,
        rules: list[EscalationRule] | None = None,
    ) -> None:
        """
        Initialize the store.

        Args:
            validator: Validator applied on every save.
            rules: Initial rules, validated like any other save.
        """
        self.validator = validator or RuleValidator()
        self._rules: dict[str, EscalationRule] = {}
        self._lock = threading.RLock()
        for rule in rules or []:
            self.save(rule)

    def save(self, rule: EscalationRule) -> EscalationRule:
        """
        Validate and store a rule, replacing any rule with the same id.

        A replaced rule keeps its original creation time so its position
        among equal-priority rules does not change.

        Returns:
            The stored rule.

        Raises:
            ValidationError: If the rule is invalid.
        """
        result = self.validator.validate(rule)
        result.raise_if_invalid()
        for warning in result.warnings:
            logger.warning("%s", warning)

        with self._lock:
            existing = self._rules.get(rule.rule_id)
            if existing is not None:
                rule = replace(rule, created_at=existing.created_at, updated_at=utc_now())
            self._rules[rule.rule_id] = rule

        logger.info(
            "%s escalation rule '%s' (%s)",
            "Updated" if existing is not None else "Saved",
            rule.name,
            rule.rule_id,
        )
        return rule

    def get(self, rule_id: str) -> EscalationRule | None:
        """Get a rule by id."""
        with self._lock:
            return self._rules.get(rule_id)

    def require(self, rule_id: str) -> EscalationRule:
        """
        Get a rule by id.

        Raises:
            RuleError: If the rule does not exist.
        """
        rule = self.get(rule_id)
        if rule is None:
            raise RuleError(f"Unknown escalation rule: {rule_id}", {"rule_id": rule_id})
        return rule

    def list_rules(self) -> list[EscalationRule]:
        """List every rule in evaluation order."""
        with self._lock:
            rules = list(self._rules.values())
        return sorted(rules, key=lambda r: r.sort_key)

    def get_active_rules(self) -> list[EscalationRule]:
        """List active rules in evaluation order."""
        return [rule for rule in self.list_rules() if rule.active]

    def activate(self, rule_id: str) -> EscalationRule:
        """Activate a rule. It takes part in every evaluation from now on."""
        return self._set_active(rule_id, True)

    def deactivate(self, rule_id: str) -> EscalationRule:
        """
        Deactivate a rule.

        Evaluations that already selected the rule finish; every later
        evaluation excludes it.
        """
        return self._set_active(rule_id, False)

    def delete(self, rule_id: str) -> bool:
        """
        Remove a rule.

        History that references the rule keeps its id and name snapshot.

        Returns:
            True if a rule was removed.
        """
        with self._lock:
            removed = self._rules.pop(rule_id, None)
        if removed is not None:
            logger.info("Deleted escalation rule '%s' (%s)", removed.name, rule_id)
        return removed is not None

    def load_file(
        self,
        path: str | Path,
        variables: dict[str, Any] | None = None,
    ) -> list[EscalationRule]:
        """
        Parse a YAML rule file and save every rule in it.

        Nothing is saved unless the whole file parses and validates.

        Returns:
            The stored rules.

        Raises:
            RuleError: If the file cannot be parsed.
            ValidationError: If a rule is invalid.
        """
        parsed = RuleParser().parse_file(path, variables)
        if not parsed.success:
            raise RuleError(
                f"Failed to parse rule file {path}: {parsed.errors[0]}",
                {"errors": [str(e) for e in parsed.errors]},
            )
        self.validate_all(parsed.rules).raise_if_invalid()
        return [self.save(rule) for rule in parsed.rules]

    def validate_all(self, rules: list[EscalationRule]) -> ValidationResult:
        """Validate rules together, without saving them."""
        return self.validator.validate_all(rules)

    def __len__(self) -> int:
        with self._lock:
            return len(self._rules)

    def _set_active(self, rule_id: str, active: bool) -> EscalationRule:
        with self._lock:
            rule = self.require(rule_id)
            if rule.active == active:
                return rule
            updated = rule.with_active(active)
            self._rules[rule_id] = updated
        logger.info(
            "%s escalation rule '%s' (%s)",
            "Activated" if active else "Deactivated",
            rule.name,
            rule_id,
        )
        return updated


def default_rules(now: datetime | None = None) -> list[EscalationRule]:
    """
    The standard escalation rules.

    - Critical and emergency incidents notify the HSE manager and alert
      the emergency team immediately.
    - Critical and emergency incidents nobody has picked up two hours
      after creation go to the HSE manager.
    - Incidents without a response for 24 hours go to the department
      manager.
    - Major and worse incidents go to the regulatory team after two hours
      of initial assessment.
    """
    created = now or utc_now()
    open_statuses = frozenset(
        {
            IncidentStatus.OPEN,
            IncidentStatus.REPORTED,
            IncidentStatus.IN_PROGRESS,
            IncidentStatus.UNDER_INVESTIGATION,
            IncidentStatus.AWAITING_ACTION,
        }
    )
    return [
        EscalationRule(
            rule_id="critical-immediate-escalation",
            name="Critical Incident Immediate Escalation",
            description="Immediately escalate critical and emergency incidents",
            priority=1,
            trigger=TriggerCondition(
                severities=frozenset({IncidentSeverity.CRITICAL, IncidentSeverity.EMERGENCY}),
            ),
            actions=(
                EscalationAction(
                    action_type=EscalationActionType.NOTIFY_ROLE,
                    target="hse_manager",
                    template_id=INCIDENT_CRITICAL,
                    channels=(
                        NotificationChannel.EMAIL,
                        NotificationChannel.SMS,
                        NotificationChannel.WHATSAPP,
                    ),
                ),
                EscalationAction(
                    action_type=EscalationActionType.SEND_EMERGENCY_ALERT,
                    target="emergency_team",
                    template_id=EMERGENCY_ALERT,
                    channels=(
                        NotificationChannel.EMAIL,
                        NotificationChannel.SMS,
                        NotificationChannel.PUSH,
                    ),
                ),
            ),
            created_at=created,
            updated_at=created,
        ),
        EscalationRule(
            rule_id="critical-unattended-escalation",
            name="Critical Incident Unattended Escalation",
            description="Escalate critical incidents still not picked up after 2 hours",
            priority=25,
            trigger=TriggerCondition(
                severities=frozenset({IncidentSeverity.CRITICAL, IncidentSeverity.EMERGENCY}),
                statuses=frozenset({IncidentStatus.OPEN, IncidentStatus.REPORTED}),
                min_duration=timedelta(hours=2),
                duration_reference=DurationReference.CREATED,
            ),
            actions=(
                EscalationAction(
                    action_type=EscalationActionType.ESCALATE_TO_MANAGER,
                    target="hse_manager",
                    template_id=ESCALATION_OVERDUE,
                    parameters={
                        "escalation_reason": "Critical incident requires immediate attention"
                    },
                    channels=(NotificationChannel.EMAIL, NotificationChannel.PUSH),
                ),
            ),
            created_at=created,
            updated_at=created,
        ),
        EscalationRule(
            rule_id="24-hour-response-escalation",
            name="24-Hour Response Escalation",
            description="Escalate incidents without response within 24 hours",
            priority=50,
            trigger=TriggerCondition(
                statuses=open_statuses,
                min_duration=timedelta(hours=24),
                duration_reference=DurationReference.LAST_RESPONSE,
            ),
            actions=(
                EscalationAction(
                    action_type=EscalationActionType.ESCALATE_TO_MANAGER,
                    target="department_manager",
                    template_id=ESCALATION_OVERDUE,
                    parameters={"escalation_reason": "No response within 24 hours"},
                    channels=(NotificationChannel.EMAIL, NotificationChannel.PUSH),
                ),
            ),
            created_at=created,
            updated_at=created,
        ),
        EscalationRule(
            rule_id="regulatory-reporting",
            name="Regulatory Reporting",
            description="Trigger regulatory reporting for major incidents",
            priority=75,
            trigger=TriggerCondition(
                severities=frozenset(
                    {
                        IncidentSeverity.MAJOR,
                        IncidentSeverity.SERIOUS,
                        IncidentSeverity.CRITICAL,
                        IncidentSeverity.EMERGENCY,
                    }
                ),
            ),
            actions=(
                EscalationAction(
                    action_type=EscalationActionType.SEND_REGULATORY,
                    target="regulatory_team",
                    template_id=INCIDENT_REGULATORY,
                    channels=(NotificationChannel.EMAIL,),
                    delay=timedelta(hours=2),
                ),
            ),
            created_at=created,
            updated_at=created,
        ),
    ]
