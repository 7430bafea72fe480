"""
Escalation rule file parser for HSSEGuard.

This module provides the RuleParser class for reading escalation rules
from YAML files, with ${var} substitution and error messages that point
at the offending rule.
"""

import re
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from pathlib import Path
from typing import Any, TypeVar

import yaml

from hsseguard.escalation.rules import (
    DEFAULT_RULE_PRIORITY,
    DurationReference,
    EscalationAction,
    EscalationActionType,
    EscalationRule,
    NotificationChannel,
    TriggerCondition,
)
from hsseguard.incidents.models import IncidentSeverity, IncidentStatus
from hsseguard.models.base import generate_uuid, utc_now

E = TypeVar("E", bound=Enum)

_DURATION_PATTERN = re.compile(
    r"^\s*(?:(?P<days>\d+)\s*d)?\s*(?:(?P<hours>\d+)\s*h)?\s*"
    r"(?:(?P<minutes>\d+)\s*m)?\s*(?:(?P<seconds>\d+)\s*s)?\s*$",
    re.IGNORECASE,
)
_CLOCK_PATTERN = re.compile(r"^\s*(\d+):([0-5]\d)(?::([0-5]\d))?\s*$")


def parse_duration(value: Any) -> timedelta:
    """
    Parse a duration.

    Accepts a number of seconds, "HH:MM[:SS]", or a compact form such as
    "24h", "90m", "1d12h" or "2h30m".

    Raises:
        ValueError: If the value is not a duration.
    """
    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return timedelta(seconds=value)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Invalid duration: {value!r}")

    clock = _CLOCK_PATTERN.match(value)
    if clock:
        hours, minutes, seconds = clock.groups()
        return timedelta(hours=int(hours), minutes=int(minutes), seconds=int(seconds or 0))

    match = _DURATION_PATTERN.match(value)
    if not match or not any(match.groupdict().values()):
        raise ValueError(f"Invalid duration: {value!r}")
    parts = {k: int(v) for k, v in match.groupdict().items() if v}
    return timedelta(**parts)


def format_duration(value: timedelta | None) -> str:
    """Format a duration in the compact form parse_duration accepts."""
    if value is None:
        return ""
    total = int(value.total_seconds())
    days, rest = divmod(total, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)
    parts = [
        f"{n}{unit}"
        for n, unit in ((days, "d"), (hours, "h"), (minutes, "m"), (seconds, "s"))
        if n
    ]
    return "".join(parts) or "0s"


def parse_enum(enum_type: type[E], value: Any) -> E:
    """
    Parse an enum member by value, case-insensitively.

    "Under Investigation", "under-investigation" and "UNDER_INVESTIGATION"
    all name the same member.

    Raises:
        ValueError: If no member matches.
    """
    if isinstance(value, enum_type):
        return value
    key = re.sub(r"[\s\-]+", "_", str(value).strip()).upper()
    try:
        return enum_type(key)
    except ValueError:
        valid = ", ".join(m.value for m in enum_type)
        raise ValueError(f"Unknown {enum_type.__name__} {value!r} (expected one of: {valid})") from None


@dataclass
class ParseError:
    """
    A parsing problem with its location.

    Attributes:
        message: Human-readable error description.
        file: File the error occurred in.
        line: Line number, 1-indexed, or 0 if unknown.
        rule: Name or index of the rule the error relates to.
    """

    message: str
    file: str = ""
    line: int = 0
    rule: str = ""

    def __str__(self) -> str:
        location = ""
        if self.file:
            location = self.file
            if self.line > 0:
                location += f":{self.line}"
            location += ": "
        if self.rule:
            location += f"rule {self.rule}: "
        return f"{location}{self.message}"


@dataclass
class ParseResult:
    """
    Result of parsing a rule file.

    Attributes:
        rules: Rules parsed without errors.
        errors: Errors encountered during parsing.
        warnings: Warnings encountered during parsing.
    """

    rules: list[EscalationRule] = field(default_factory=list)
    errors: list[ParseError] = field(default_factory=list)
    warnings: list[ParseError] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """Check if parsing succeeded without errors."""
        return not self.errors


class RuleParser:
    """
    Parses YAML escalation rule files.

    Example:
        Parsing a rule file::

            parser = RuleParser()
            result = parser.parse_file("rules/escalation.yaml")
            if not result.success:
                for error in result.errors:
                    print(error)

    File Format:
        Basic structure::

            variables:
              manager_role: hse_manager

            rules:
              - id: critical-immediate
                name: Critical Incident Immediate Escalation
                priority: 1
                trigger:
                  severities: [CRITICAL, EMERGENCY]
                actions:
                  - type: NOTIFY_ROLE
                    target: ${manager_role}
                    template: incident_critical
                    channels: [EMAIL, SMS]
                  - type: SEND_REGULATORY
                    target: regulatory_team
                    delay: 2h
    """

    VAR_PATTERN = re.compile(r"\$\{([a-zA-Z_][a-zA-Z0-9_]*)\}")

    def __init__(self, base_path: str | Path | None = None) -> None:
        """
        Initialize the parser.

        Args:
            base_path: Base path for relative file names, defaults to the
                current working directory.
        """
        self.base_path = Path(base_path) if base_path else Path.cwd()

    def parse_file(
        self,
        path: str | Path,
        variables: dict[str, Any] | None = None,
    ) -> ParseResult:
        """
        Parse a rule file.

        Args:
            path: Path to the YAML file.
            variables: Variables for ${var} substitution; they take
                precedence over the file's own variables.

        Returns:
            ParseResult with the parsed rules or errors.
        """
        path = Path(path)
        if not path.is_absolute():
            path = self.base_path / path

        result = ParseResult()
        if not path.exists():
            result.errors.append(ParseError(f"Rule file not found: {path}", file=str(path)))
            return result

        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            result.errors.append(ParseError(f"Failed to read file: {e}", file=str(path)))
            return result
        return self._parse_content(content, str(path), variables or {}, result)

    def parse_string(
        self,
        content: str,
        source: str = "<string>",
        variables: dict[str, Any] | None = None,
    ) -> ParseResult:
        """Parse rules from a YAML string."""
        return self._parse_content(content, source, variables or {}, ParseResult())

    def parse_data(
        self,
        data: Any,
        source: str = "<data>",
        variables: dict[str, Any] | None = None,
    ) -> ParseResult:
        """Parse rules from already loaded data."""
        result = ParseResult()
        self._parse_document(data, source, dict(variables or {}), result)
        return result

    def _parse_content(
        self,
        content: str,
        source: str,
        variables: dict[str, Any],
        result: ParseResult,
    ) -> ParseResult:
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            line = 0
            mark = getattr(e, "problem_mark", None)
            if mark is not None:
                line = mark.line + 1
            result.errors.append(ParseError(f"YAML syntax error: {e}", file=source, line=line))
            return result

        self._parse_document(data, source, dict(variables), result)
        return result

    def _parse_document(
        self,
        data: Any,
        source: str,
        variables: dict[str, Any],
        result: ParseResult,
    ) -> None:
        if data is None:
            result.errors.append(ParseError("Empty rule file", file=source))
            return
        if isinstance(data, list):
            data = {"rules": data}
        if not isinstance(data, dict):
            result.errors.append(ParseError("Rule file must be a YAML mapping", file=source))
            return

        file_vars = data.get("variables", {})
        if isinstance(file_vars, dict):
            variables = {**file_vars, **variables}
        else:
            result.warnings.append(ParseError("'variables' must be a mapping", file=source))

        rules_data = self._substitute(data.get("rules", []), source, variables, result)
        if not isinstance(rules_data, list):
            result.errors.append(ParseError("'rules' must be a list", file=source))
            return
        if not rules_data:
            result.warnings.append(ParseError("Rule file has no rules", file=source))

        for index, rule_data in enumerate(rules_data, start=1):
            label = str(index)
            if not isinstance(rule_data, dict):
                result.errors.append(ParseError("Rule must be a mapping", file=source, rule=label))
                continue
            label = str(rule_data.get("name") or index)
            try:
                result.rules.append(self._parse_rule(rule_data, label, source, result))
            except (ValueError, TypeError) as e:
                result.errors.append(ParseError(str(e), file=source, rule=label))

    def _substitute(
        self,
        data: Any,
        source: str,
        variables: dict[str, Any],
        result: ParseResult,
    ) -> Any:
        if isinstance(data, dict):
            return {k: self._substitute(v, source, variables, result) for k, v in data.items()}
        if isinstance(data, list):
            return [self._substitute(item, source, variables, result) for item in data]
        if not isinstance(data, str):
            return data

        whole = self.VAR_PATTERN.fullmatch(data)
        if whole and whole.group(1) in variables:
            return variables[whole.group(1)]

        def replace_var(match: re.Match[str]) -> str:
            name = match.group(1)
            if name in variables:
                return str(variables[name])
            result.warnings.append(ParseError(f"Undefined variable: {name}", file=source))
            return match.group(0)

        return self.VAR_PATTERN.sub(replace_var, data)

    def _parse_rule(
        self,
        data: dict[str, Any],
        label: str,
        source: str,
        result: ParseResult,
    ) -> EscalationRule:
        name = str(data.get("name", "")).strip()
        if not name:
            raise ValueError("Rule has no name")

        trigger_data = data.get("trigger", {}) or {}
        if not isinstance(trigger_data, dict):
            raise ValueError("'trigger' must be a mapping")

        actions_data = data.get("actions", []) or []
        if not isinstance(actions_data, list):
            raise ValueError("'actions' must be a list")

        unknown = set(data) - {
            "id", "name", "description", "active", "priority", "trigger", "actions", "metadata",
        }
        for key in sorted(unknown):
            result.warnings.append(ParseError(f"Unknown key '{key}'", file=source, rule=label))

        metadata = data.get("metadata", {}) or {}
        now = utc_now()
        return EscalationRule(
            rule_id=str(data.get("id") or generate_uuid()),
            name=name,
            description=str(data.get("description", "") or ""),
            active=bool(data.get("active", True)),
            priority=int(data.get("priority", DEFAULT_RULE_PRIORITY)),
            trigger=self._parse_trigger(trigger_data),
            actions=tuple(
                self._parse_action(item, position)
                for position, item in enumerate(actions_data, start=1)
            ),
            created_at=now,
            updated_at=now,
            metadata=dict(metadata) if isinstance(metadata, dict) else {},
        )

    def _parse_trigger(self, data: dict[str, Any]) -> TriggerCondition:
        min_duration = data.get("min_duration", data.get("after"))
        return TriggerCondition(
            severities=frozenset(
                parse_enum(IncidentSeverity, s) for s in self._as_list(data, "severities")
            ),
            statuses=frozenset(
                parse_enum(IncidentStatus, s) for s in self._as_list(data, "statuses")
            ),
            departments=frozenset(str(d) for d in self._as_list(data, "departments")),
            locations=frozenset(str(loc) for loc in self._as_list(data, "locations")),
            min_duration=parse_duration(min_duration) if min_duration is not None else None,
            duration_reference=parse_enum(
                DurationReference, data.get("duration_reference", DurationReference.CREATED.value)
            ),
        )

    def _parse_action(self, data: Any, position: int) -> EscalationAction:
        if not isinstance(data, dict):
            raise ValueError(f"Action {position} must be a mapping")
        if "type" not in data:
            raise ValueError(f"Action {position} has no type")

        parameters = data.get("parameters", {}) or {}
        if not isinstance(parameters, dict):
            raise ValueError(f"Action {position}: 'parameters' must be a mapping")

        delay = data.get("delay")
        template = data.get("template", data.get("template_id"))
        return EscalationAction(
            action_type=parse_enum(EscalationActionType, data["type"]),
            target=str(data.get("target", "") or ""),
            template_id=str(template) if template else None,
            parameters=dict(parameters),
            delay=parse_duration(delay) if delay is not None else None,
            channels=tuple(
                parse_enum(NotificationChannel, c) for c in self._as_list(data, "channels")
            ),
        )

    @staticmethod
    def _as_list(data: dict[str, Any], key: str) -> list[Any]:
        value = data.get(key)
        if value is None:
            return []
        if isinstance(value, (list, tuple, set)):
            return list(value)
        return [value]


def rule_to_data(rule: EscalationRule) -> dict[str, Any]:
    """
    Convert a rule to the mapping format RuleParser reads.

    Used to export rules, e.g. the defaults, as a YAML file.
    """
    trigger: dict[str, Any] = {}
    if rule.trigger.severities:
        trigger["severities"] = sorted((s.value for s in rule.trigger.severities))
    if rule.trigger.statuses:
        trigger["statuses"] = sorted((s.value for s in rule.trigger.statuses))
    if rule.trigger.departments:
        trigger["departments"] = sorted(rule.trigger.departments)
    if rule.trigger.locations:
        trigger["locations"] = sorted(rule.trigger.locations)
    if rule.trigger.min_duration is not None:
        trigger["min_duration"] = format_duration(rule.trigger.min_duration)
        trigger["duration_reference"] = rule.trigger.duration_reference.value

    actions = []
    for action in rule.actions:
        item: dict[str, Any] = {"type": action.action_type.value, "target": action.target}
        if action.template_id:
            item["template"] = action.template_id
        if action.channels:
            item["channels"] = [c.value for c in action.channels]
        if action.delay is not None:
            item["delay"] = format_duration(action.delay)
        if action.parameters:
            item["parameters"] = dict(action.parameters)
        actions.append(item)

    return {
        "id": rule.rule_id,
        "name": rule.name,
        "description": rule.description,
        "active": rule.active,
        "priority": rule.priority,
        "trigger": trigger,
        "actions": actions,
    }
