"""
Initialize command for HSSEGuard CLI.

This module implements the 'hsseguard init' command which sets up a
configuration file, the default escalation rules and the audit database.

Usage:
    hsseguard init [--path PATH] [--force] [--no-rules]
"""

import argparse
from pathlib import Path
from typing import TYPE_CHECKING

import yaml

if TYPE_CHECKING:
    from hsseguard.cli.main import CLIContext


CONFIG_TEMPLATE = """# HSSEGuard Configuration
# =======================

environment: development

database:
  path: {db_file}
  pool_size: 5
  timeout_seconds: 30.0

escalation:
  serious_severity_threshold: MAJOR
  max_dispatch_attempts: 3
  initial_backoff_seconds: 1.0
  backoff_multiplier: 2.0
  max_backoff_seconds: 30.0
  sweep_interval_seconds: 300
  sweep_workers: 4
  executed_by: system
  rules_path: {rules_file}

notifications:
  default_channel: LOG
  smtp_host: localhost
  smtp_port: 25
  from_address: hsse@example.com
  from_name: HSSEGuard
  portal_url: ""

logging:
  level: INFO

metadata:
  organization: "My Organization"
"""


def register(subparsers: argparse._SubParsersAction) -> None:  # type: ignore[type-arg]
    """Register the init command with the parser."""
    parser = subparsers.add_parser(
        "init",
        help="Initialize configuration, rules and audit database",
        description=(
            "Initialize a directory with an HSSEGuard configuration file, "
            "the default escalation rules and an empty audit database."
        ),
    )
    parser.add_argument(
        "--path",
        "-p",
        metavar="PATH",
        default=".",
        help="Directory to initialize (default: current directory)",
    )
    parser.add_argument(
        "--force",
        "-F",
        action="store_true",
        help="Overwrite existing files",
    )
    parser.add_argument(
        "--no-rules",
        action="store_true",
        help="Skip writing the default escalation rules",
    )
    parser.set_defaults(func=run_init)


def run_init(args: argparse.Namespace, ctx: "CLIContext") -> int:
    """
    Execute the init command.

    Args:
        args: Parsed command-line arguments.
        ctx: CLI context.

    Returns:
        Exit code.
    """
    from hsseguard.cli.main import EXIT_ERROR, EXIT_SUCCESS

    target_path = Path(args.path).resolve()
    ctx.print(f"Initializing HSSEGuard in: {target_path}")

    if not target_path.exists():
        target_path.mkdir(parents=True)
        ctx.print(f"  Created directory: {target_path}")

    config_file = target_path / "hsseguard.yaml"
    db_file = Path(ctx.database_path) if ctx.database_path else target_path / "hsseguard.db"
    rules_dir = target_path / "rules"
    rules_file = rules_dir / "escalation.yaml"

    existing = [p for p in (config_file, db_file) if p.exists()]
    if not args.no_rules and rules_file.exists():
        existing.append(rules_file)
    if existing and not args.force:
        ctx.print_error("The following files already exist:")
        for path in existing:
            ctx.print_error(f"  - {path}")
        ctx.print_error("Use --force to overwrite, or choose a different path.")
        return EXIT_ERROR

    config_file.write_text(
        CONFIG_TEMPLATE.format(
            db_file=db_file.name if db_file.parent == target_path else db_file,
            rules_file="rules/escalation.yaml" if not args.no_rules else '""',
        ),
        encoding="utf-8",
    )
    ctx.print(f"  Created configuration: {config_file}")

    if not args.no_rules:
        rules_dir.mkdir(exist_ok=True)
        _write_default_rules(rules_file)
        ctx.print(f"  Created default rules: {rules_file}")

    _init_database(db_file, ctx)

    ctx.print("")
    ctx.print("HSSEGuard initialized successfully.")
    ctx.print("")
    ctx.print("Next steps:")
    ctx.print("  1. Edit hsseguard.yaml to configure notifications")
    ctx.print("  2. Adjust the escalation rules in rules/escalation.yaml")
    ctx.print("  3. Run 'hsseguard rules validate rules/escalation.yaml'")

    return EXIT_SUCCESS


def _write_default_rules(rules_file: Path) -> None:
    from hsseguard.escalation.parser import rule_to_data
    from hsseguard.escalation.store import default_rules

    document = {"rules": [rule_to_data(rule) for rule in default_rules()]}
    header = "# HSSEGuard escalation rules\n# Rules are evaluated in ascending priority order.\n\n"
    rules_file.write_text(
        header + yaml.safe_dump(document, sort_keys=False, allow_unicode=True),
        encoding="utf-8",
    )


def _init_database(db_file: Path, ctx: "CLIContext") -> None:
    from hsseguard.storage.database import Database

    if db_file.exists():
        db_file.unlink()

    db = Database(path=str(db_file))
    try:
        db.initialize()
        ctx.print(f"  Initialized audit database: {db_file}")
    finally:
        db.close()
