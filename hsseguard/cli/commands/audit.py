"""
Audit commands for HSSEGuard CLI.

This module implements the 'hsseguard audit' commands for reading the
escalation and notification history, and for following up on dispatches
that exhausted their retries.

Usage:
    hsseguard audit escalations INCIDENT_ID
    hsseguard audit notifications INCIDENT_ID
    hsseguard audit failures
    hsseguard audit rearm DEDUP_KEY
"""

import argparse
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from hsseguard.cli.main import CLIContext


def register(subparsers: argparse._SubParsersAction) -> None:  # type: ignore[type-arg]
    """Register the audit command with the parser."""
    parser = subparsers.add_parser(
        "audit",
        help="Query the escalation audit trail",
        description=(
            "Read escalation and notification history for compliance reporting "
            "and follow up on failed dispatches."
        ),
    )

    audit_subparsers = parser.add_subparsers(
        dest="audit_command",
        help="Audit command to execute",
    )

    escalations_parser = audit_subparsers.add_parser(
        "escalations",
        help="Show escalation history of an incident",
        description="List every dispatch attempt for an incident in dispatch order.",
    )
    escalations_parser.add_argument("incident_id", metavar="INCIDENT_ID")
    escalations_parser.set_defaults(func=run_audit_escalations)

    notifications_parser = audit_subparsers.add_parser(
        "notifications",
        help="Show notification history of an incident",
        description="List notifications for an incident with their status history.",
    )
    notifications_parser.add_argument("incident_id", metavar="INCIDENT_ID")
    notifications_parser.set_defaults(func=run_audit_notifications)

    failures_parser = audit_subparsers.add_parser(
        "failures",
        help="List dispatches that exhausted their retries",
        description="List failed dispatches that need manual follow-up.",
    )
    failures_parser.set_defaults(func=run_audit_failures)

    rearm_parser = audit_subparsers.add_parser(
        "rearm",
        help="Allow a failed dispatch to fire again",
        description=(
            "Release a failed dispatch so that the next matching evaluation "
            "retries it. Recorded attempts stay in the history."
        ),
    )
    rearm_parser.add_argument("dedup_key", metavar="DEDUP_KEY")
    rearm_parser.set_defaults(func=run_audit_rearm)

    parser.set_defaults(func=run_audit)


def run_audit(args: argparse.Namespace, ctx: "CLIContext") -> int:
    """Execute audit command without a subcommand."""
    from hsseguard.cli.main import EXIT_ERROR

    ctx.print_error("No audit command specified. Use --help for usage.")
    return EXIT_ERROR


def _require_database(ctx: "CLIContext") -> bool:
    path = ctx.database.path
    if isinstance(path, Path) and not path.exists():
        ctx.print_error(f"Audit database not found: {path}")
        ctx.print_error("Run 'hsseguard init' first or pass --database.")
        return False
    return True


def run_audit_escalations(args: argparse.Namespace, ctx: "CLIContext") -> int:
    """Execute the audit escalations command."""
    from hsseguard.cli.formatters import TableFormatter, format_output
    from hsseguard.cli.main import EXIT_ERROR, EXIT_SUCCESS

    if not _require_database(ctx):
        return EXIT_ERROR

    entries = ctx.audit.escalations_for(args.incident_id)

    if ctx.output_format != "table":
        ctx.print(format_output([e.to_dict() for e in entries], ctx.output_format))
        return EXIT_SUCCESS

    if not entries:
        ctx.print(f"No escalation history for incident {args.incident_id}.")
        return EXIT_SUCCESS

    rows = [
        [
            e.sequence,
            e.executed_at,
            e.rule_name,
            f"{e.action_type}({e.action_target})",
            e.attempt,
            "OK" if e.success else "FAILED",
            e.error_message or "",
        ]
        for e in entries
    ]
    ctx.print(
        TableFormatter.format_table(
            ["#", "Executed", "Rule", "Action", "Attempt", "Result", "Error"],
            rows,
        )
    )
    ctx.print("")
    ctx.print(f"Total: {len(entries)} attempt(s)")
    return EXIT_SUCCESS


def run_audit_notifications(args: argparse.Namespace, ctx: "CLIContext") -> int:
    """Execute the audit notifications command."""
    from hsseguard.cli.formatters import format_output
    from hsseguard.cli.main import EXIT_ERROR, EXIT_SUCCESS

    if not _require_database(ctx):
        return EXIT_ERROR

    notifications = ctx.audit.notifications_for(args.incident_id)

    if ctx.output_format != "table":
        ctx.print(format_output([n.to_dict() for n in notifications], ctx.output_format))
        return EXIT_SUCCESS

    if not notifications:
        ctx.print(f"No notifications for incident {args.incident_id}.")
        return EXIT_SUCCESS

    for n in notifications:
        ctx.print(f"[{n.status.value}] {n.notification_id}")
        ctx.print(f"    To: {n.recipient_id} ({n.recipient_type}) via {n.channel}")
        ctx.print(f"    Priority: {n.priority}")
        ctx.print(f"    Subject: {n.subject}")
        ctx.print(f"    History: {' -> '.join(s.value for s in n.status_history)}")
        if n.error_message:
            ctx.print(f"    Error: {n.error_message}")
        ctx.print("")
    ctx.print(f"Total: {len(notifications)} notification(s)")
    return EXIT_SUCCESS


def run_audit_failures(args: argparse.Namespace, ctx: "CLIContext") -> int:
    """Execute the audit failures command."""
    from hsseguard.cli.formatters import TableFormatter, format_output
    from hsseguard.cli.main import EXIT_ERROR, EXIT_SUCCESS

    if not _require_database(ctx):
        return EXIT_ERROR

    claims = ctx.audit.failed_dispatches()

    if ctx.output_format != "table":
        ctx.print(format_output([c.to_dict() for c in claims], ctx.output_format))
        return EXIT_SUCCESS

    if not claims:
        ctx.print("No failed dispatches.")
        return EXIT_SUCCESS

    rows = [
        [
            c.updated_at,
            c.incident_id,
            c.rule_id or "",
            c.action_index,
            c.attempts,
            c.last_error or "",
            c.dedup_key,
        ]
        for c in claims
    ]
    ctx.print(
        TableFormatter.format_table(
            ["Failed", "Incident", "Rule", "Action", "Attempts", "Error", "Key"],
            rows,
            max_col_width=64,
        )
    )
    return EXIT_SUCCESS


def run_audit_rearm(args: argparse.Namespace, ctx: "CLIContext") -> int:
    """Execute the audit rearm command."""
    from hsseguard.cli.main import EXIT_ERROR, EXIT_SUCCESS

    if not _require_database(ctx):
        return EXIT_ERROR

    if not ctx.audit.rearm(args.dedup_key):
        ctx.print_error(f"No failed dispatch with key {args.dedup_key}")
        return EXIT_ERROR

    ctx.print(f"Re-armed {args.dedup_key}")
    return EXIT_SUCCESS
