"""
Escalation rule commands for HSSEGuard CLI.

Usage:
    hsseguard rules validate FILE [--directory FILE]
    hsseguard rules list [FILE] [--active-only]
"""

import argparse
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

if TYPE_CHECKING:
    from hsseguard.cli.main import CLIContext
    from hsseguard.escalation.rules import EscalationRule


def register(subparsers: argparse._SubParsersAction) -> None:  # type: ignore[type-arg]
    """Register the rules command with the parser."""
    parser = subparsers.add_parser(
        "rules",
        help="Escalation rule files",
        description="Validate and inspect escalation rule files.",
    )

    rules_subparsers = parser.add_subparsers(
        title="rules commands",
        dest="rules_command",
        metavar="<subcommand>",
    )

    validate_parser = rules_subparsers.add_parser(
        "validate",
        help="Validate a rule file",
        description=(
            "Parse a rule file and run the checks applied when rules are saved. "
            "With --directory, targets are checked against a recipient directory."
        ),
    )
    validate_parser.add_argument("file", metavar="FILE", help="YAML rule file")
    validate_parser.add_argument(
        "--directory",
        metavar="FILE",
        help="YAML recipient directory (recipients, roles, departments, managers)",
    )
    validate_parser.set_defaults(func=run_rules_validate)

    list_parser = rules_subparsers.add_parser(
        "list",
        help="List rules in evaluation order",
        description=(
            "List the rules of a file in evaluation order. Without FILE, the "
            "configured rules file or the default rules are listed."
        ),
    )
    list_parser.add_argument("file", nargs="?", metavar="FILE", help="YAML rule file")
    list_parser.add_argument(
        "--active-only",
        action="store_true",
        help="Only list active rules",
    )
    list_parser.set_defaults(func=run_rules_list)

    parser.set_defaults(func=lambda args, ctx: _print_help(parser))


def _print_help(parser: argparse.ArgumentParser) -> int:
    parser.print_help()
    return 0


def run_rules_validate(args: argparse.Namespace, ctx: "CLIContext") -> int:
    """Execute the rules validate command."""
    from hsseguard.cli.formatters import format_output
    from hsseguard.cli.main import EXIT_ERROR, EXIT_SUCCESS, EXIT_VALIDATION_ERROR
    from hsseguard.escalation.gateway import RecipientDirectory
    from hsseguard.escalation.parser import RuleParser
    from hsseguard.escalation.templates import TemplateRegistry
    from hsseguard.escalation.validator import RuleValidator, describe_messages

    parsed = RuleParser().parse_file(args.file)
    if not parsed.success:
        ctx.print_error(f"Failed to parse {args.file}:")
        for error in parsed.errors:
            ctx.print_error(f"  - {error}")
        return EXIT_VALIDATION_ERROR

    directory = None
    if args.directory:
        try:
            with open(args.directory, "r", encoding="utf-8") as f:
                directory = RecipientDirectory.from_dict(yaml.safe_load(f) or {})
        except (OSError, yaml.YAMLError, KeyError, AttributeError) as e:
            ctx.print_error(f"Cannot read recipient directory {args.directory}: {e}")
            return EXIT_ERROR

    validator = RuleValidator(templates=TemplateRegistry(), directory=directory)
    result = validator.validate_all(parsed.rules)

    messages = describe_messages(result.errors + result.warnings)
    messages.extend(
        {"level": "warning", "rule": w.rule, "field": "", "message": w.message}
        for w in parsed.warnings
    )

    if ctx.output_format != "table":
        report = {
            "file": args.file,
            "valid": result.valid,
            "rules": len(parsed.rules),
            "messages": messages,
        }
        ctx.print(format_output(report, ctx.output_format))
    else:
        for message in result.errors + result.warnings:
            ctx.print(str(message), error=message in result.errors)
        for warning in parsed.warnings:
            ctx.print(f"[WARNING] {warning}")
        if result.valid:
            ctx.print(f"{args.file}: {len(parsed.rules)} rule(s) valid.")

    if not result.valid:
        ctx.print_error(f"{len(result.errors)} error(s) in {args.file}")
        return EXIT_VALIDATION_ERROR
    return EXIT_SUCCESS


def run_rules_list(args: argparse.Namespace, ctx: "CLIContext") -> int:
    """Execute the rules list command."""
    from hsseguard.cli.formatters import TableFormatter, format_output
    from hsseguard.cli.main import EXIT_SUCCESS
    from hsseguard.escalation.store import RuleStore, default_rules

    source = args.file or ctx.config.escalation.rules_path
    store = RuleStore()
    if source:
        store.load_file(Path(source))
    else:
        for rule in default_rules():
            store.save(rule)

    rules = store.get_active_rules() if args.active_only else store.list_rules()

    if ctx.output_format != "table":
        ctx.print(format_output([_rule_summary(r) for r in rules], ctx.output_format))
        return EXIT_SUCCESS

    if not rules:
        ctx.print("No rules.")
        return EXIT_SUCCESS

    rows = [
        [
            rule.priority,
            rule.rule_id,
            rule.name,
            rule.active,
            _describe_trigger(rule),
            ", ".join(a.action_type.value for a in rule.actions),
        ]
        for rule in rules
    ]
    ctx.print(
        TableFormatter.format_table(
            ["Priority", "ID", "Name", "Active", "Trigger", "Actions"],
            rows,
        )
    )
    return EXIT_SUCCESS


def _rule_summary(rule: "EscalationRule") -> dict[str, Any]:
    from hsseguard.escalation.parser import rule_to_data

    return rule_to_data(rule)


def _describe_trigger(rule: "EscalationRule") -> str:
    from hsseguard.escalation.parser import format_duration

    trigger = rule.trigger
    parts = []
    if trigger.severities:
        parts.append("severity=" + "|".join(sorted(s.value for s in trigger.severities)))
    if trigger.statuses:
        parts.append("status=" + "|".join(sorted(s.value for s in trigger.statuses)))
    if trigger.departments:
        parts.append("dept=" + "|".join(sorted(trigger.departments)))
    if trigger.locations:
        parts.append("location=" + "|".join(sorted(trigger.locations)))
    if trigger.min_duration is not None:
        parts.append(f"after {format_duration(trigger.min_duration)}")
    return ", ".join(parts) or "any"
