"""
Save-time validation of escalation rules.

The engine assumes validated configuration, so everything that can be
wrong with a rule (missing actions, unknown targets, unknown templates,
nonsensical delays) is caught here before the rule reaches the store.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterable

from hsseguard.escalation.rules import (
    EscalationAction,
    EscalationActionType,
    EscalationRule,
    WORKFLOW_ACTION_TYPES,
)
from hsseguard.exceptions import ValidationError
from hsseguard.incidents.models import IncidentStatus

if TYPE_CHECKING:
    from hsseguard.escalation.gateway import RecipientDirectory
    from hsseguard.escalation.templates import TemplateRegistry


class MessageLevel(Enum):
    """Severity level for validation messages."""

    ERROR = "error"
    WARNING = "warning"


@dataclass
class ValidationMessage:
    """
    A validation message with its location in the rule.

    Attributes:
        level: Severity level of the message.
        message: Human-readable description of the issue.
        rule_name: Name of the rule the message relates to.
        field_name: Field the message relates to, e.g. "actions[1].target".
    """

    level: MessageLevel
    message: str
    rule_name: str = ""
    field_name: str = ""

    def __str__(self) -> str:
        prefix = f"[{self.level.value.upper()}]"
        if self.rule_name:
            prefix += f" Rule '{self.rule_name}'"
        if self.field_name:
            prefix += f" field '{self.field_name}'"
        return f"{prefix}: {self.message}"


@dataclass
class ValidationResult:
    """
    Result of validating one or more rules.

    Attributes:
        errors: Problems that prevent the rule from being saved.
        warnings: Suspicious but acceptable configuration.
    """

    errors: list[ValidationMessage] = field(default_factory=list)
    warnings: list[ValidationMessage] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        """Whether no errors were found."""
        return not self.errors

    def add_error(self, message: str, rule_name: str = "", field_name: str = "") -> None:
        """Add an error message."""
        self.errors.append(ValidationMessage(MessageLevel.ERROR, message, rule_name, field_name))

    def add_warning(self, message: str, rule_name: str = "", field_name: str = "") -> None:
        """Add a warning message."""
        self.warnings.append(ValidationMessage(MessageLevel.WARNING, message, rule_name, field_name))

    def merge(self, other: "ValidationResult") -> None:
        """Merge the messages of another result into this one."""
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)

    def raise_if_invalid(self) -> None:
        """
        Raise if any error was found.

        Raises:
            ValidationError: With every error message in its details.
        """
        if self.errors:
            raise ValidationError(
                f"Invalid escalation rule: {self.errors[0]}",
                {"errors": [str(e) for e in self.errors]},
            )


class RuleValidator:
    """
    Validates escalation rules before they are saved.

    Checks:
    - The rule has a name, a non-negative priority and at least one action
    - Every action has a target and a non-negative delay
    - Duration conditions are positive
    - Department and location conditions are not blank
    - CHANGE_STATUS targets are incident statuses
    - Template ids exist, when a template registry is given
    - Notification targets resolve, when a recipient directory is given

    Example:
        Validating before saving::

            validator = RuleValidator(templates=TemplateRegistry())
            result = validator.validate(rule)
            result.raise_if_invalid()
    """

    def __init__(
        self,
        templates: "TemplateRegistry | None" = None,
        directory: "RecipientDirectory | None" = None,
    ) -> None:
        """
        Initialize the validator.

        Args:
            templates: Registry used to check template ids.
            directory: Directory used to check that targets resolve.
        """
        self.templates = templates
        self.directory = directory

    def validate(self, rule: EscalationRule) -> ValidationResult:
        """
        Validate a single rule.

        Args:
            rule: The rule to validate.

        Returns:
            ValidationResult with any errors and warnings.
        """
        result = ValidationResult()
        name = rule.name or rule.rule_id

        if not rule.name or not rule.name.strip():
            result.add_error("Rule has no name", name, "name")
        if not rule.rule_id:
            result.add_error("Rule has no id", name, "rule_id")
        if rule.priority < 0:
            result.add_error("Priority cannot be negative", name, "priority")

        self._validate_trigger(rule, name, result)

        if not rule.actions:
            result.add_error("Rule has no actions", name, "actions")
        for index, action in enumerate(rule.actions):
            self._validate_action(action, index, name, result)

        return result

    def validate_all(self, rules: Iterable[EscalationRule]) -> ValidationResult:
        """
        Validate a collection of rules, including cross-rule checks.

        Duplicate ids are errors; duplicate names are warnings because the
        name is only a display value.
        """
        result = ValidationResult()
        seen_ids: set[str] = set()
        seen_names: set[str] = set()

        for rule in rules:
            result.merge(self.validate(rule))
            if rule.rule_id in seen_ids:
                result.add_error(f"Duplicate rule id: {rule.rule_id}", rule.name, "rule_id")
            seen_ids.add(rule.rule_id)

            key = rule.name.strip().lower()
            if key in seen_names:
                result.add_warning(f"Duplicate rule name: {rule.name}", rule.name, "name")
            seen_names.add(key)

        return result

    def _validate_trigger(
        self,
        rule: EscalationRule,
        name: str,
        result: ValidationResult,
    ) -> None:
        trigger = rule.trigger

        if trigger.min_duration is not None and trigger.min_duration <= timedelta(0):
            result.add_error(
                "Minimum duration must be positive",
                name,
                "trigger.min_duration",
            )
        for department in trigger.departments:
            if not department.strip():
                result.add_error("Blank department condition", name, "trigger.departments")
        for location in trigger.locations:
            if not location.strip():
                result.add_error("Blank location condition", name, "trigger.locations")

        if not any(
            (
                trigger.severities,
                trigger.statuses,
                trigger.departments,
                trigger.locations,
                trigger.min_duration,
            )
        ):
            result.add_warning(
                "Rule has no conditions and matches every incident on every event",
                name,
                "trigger",
            )

    def _validate_action(
        self,
        action: EscalationAction,
        index: int,
        name: str,
        result: ValidationResult,
    ) -> None:
        where = f"actions[{index}]"

        if not action.target or not action.target.strip():
            result.add_error("Action has no target", name, f"{where}.target")
            return

        if action.delay is not None and action.delay < timedelta(0):
            result.add_error("Delay cannot be negative", name, f"{where}.delay")

        if action.action_type == EscalationActionType.CHANGE_STATUS:
            self._validate_status_target(action, name, where, result)

        if action.action_type in WORKFLOW_ACTION_TYPES:
            if action.channels:
                result.add_warning(
                    "Channels are ignored for workflow actions",
                    name,
                    f"{where}.channels",
                )
            return

        if (
            self.templates is not None
            and action.template_id
            and not self.templates.has(action.template_id)
        ):
            result.add_error(
                f"Unknown template: {action.template_id}",
                name,
                f"{where}.template_id",
            )

        if self.directory is not None and not self.directory.knows(
            action.action_type, action.target
        ):
            result.add_error(
                f"Unknown action target: {action.target}",
                name,
                f"{where}.target",
            )

    def _validate_status_target(
        self,
        action: EscalationAction,
        name: str,
        where: str,
        result: ValidationResult,
    ) -> None:
        try:
            status = IncidentStatus(action.target.strip().upper())
        except ValueError:
            result.add_error(
                f"Unknown incident status: {action.target}",
                name,
                f"{where}.target",
            )
            return
        if status == IncidentStatus.CLOSED:
            result.add_warning(
                "Closing from a rule fails while corrective actions are open",
                name,
                f"{where}.target",
            )


def describe_messages(messages: Iterable[ValidationMessage]) -> list[dict[str, Any]]:
    """Convert messages to dictionaries for output formatting."""
    return [
        {
            "level": m.level.value,
            "rule": m.rule_name,
            "field": m.field_name,
            "message": m.message,
        }
        for m in messages
    ]
