"""
Configuration commands for HSSEGuard CLI.

Usage:
    hsseguard config show [--section SECTION] [--show-secrets]
    hsseguard config validate [PATH]
"""

import argparse
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from hsseguard.cli.main import CLIContext


def register(subparsers: argparse._SubParsersAction) -> None:  # type: ignore[type-arg]
    """Register the config command with the parser."""
    parser = subparsers.add_parser(
        "config",
        help="Configuration management",
        description="View and validate HSSEGuard configuration.",
    )

    config_subparsers = parser.add_subparsers(
        title="config commands",
        dest="config_command",
        metavar="<subcommand>",
    )

    show_parser = config_subparsers.add_parser(
        "show",
        help="Display current configuration",
        description="Display the active configuration after file and environment overrides.",
    )
    show_parser.add_argument(
        "--section",
        "-s",
        metavar="SECTION",
        help="Show only one section (database, escalation, notifications, logging)",
    )
    show_parser.add_argument(
        "--show-secrets",
        action="store_true",
        help="Do not redact the SMTP password",
    )
    show_parser.set_defaults(func=run_config_show)

    validate_parser = config_subparsers.add_parser(
        "validate",
        help="Validate configuration file",
        description="Validate a configuration file for errors.",
    )
    validate_parser.add_argument(
        "path",
        nargs="?",
        metavar="PATH",
        help="Path to configuration file (uses --config if not specified)",
    )
    validate_parser.set_defaults(func=run_config_validate)

    parser.set_defaults(func=lambda args, ctx: run_config_help(parser, args, ctx))


def run_config_help(
    parser: argparse.ArgumentParser,
    args: argparse.Namespace,
    ctx: "CLIContext",
) -> int:
    """Show help when no subcommand is specified."""
    parser.print_help()
    return 0


def run_config_show(args: argparse.Namespace, ctx: "CLIContext") -> int:
    """Execute the config show command."""
    from hsseguard.cli.formatters import format_output
    from hsseguard.cli.main import EXIT_ERROR, EXIT_SUCCESS

    config_dict = ctx.config.to_dict(redact_secrets=not args.show_secrets)

    if args.section:
        section = args.section.lower()
        if section not in config_dict:
            ctx.print_error(f"Unknown section: {section}")
            ctx.print_error(f"Available sections: {', '.join(config_dict.keys())}")
            return EXIT_ERROR
        config_dict = {section: config_dict[section]}

    ctx.print(format_output(config_dict, ctx.output_format, title="Configuration"))
    return EXIT_SUCCESS


def run_config_validate(args: argparse.Namespace, ctx: "CLIContext") -> int:
    """Execute the config validate command."""
    from hsseguard.cli.main import EXIT_SUCCESS, EXIT_VALIDATION_ERROR
    from hsseguard.config.loader import ConfigLoader
    from hsseguard.exceptions import ConfigurationError

    config_path = args.path or ctx.config_path

    if config_path is None:
        ctx.print_error("No configuration file specified.")
        ctx.print_error("Use 'hsseguard config validate PATH' or '--config PATH'")
        return EXIT_VALIDATION_ERROR

    config_path = Path(config_path)
    if not config_path.exists():
        ctx.print_error(f"Configuration file not found: {config_path}")
        return EXIT_VALIDATION_ERROR

    ctx.print(f"Validating: {config_path}")

    try:
        config = ConfigLoader().load(str(config_path))
    except ConfigurationError as e:
        ctx.print_error(f"Configuration validation failed: {e}")
        for error in e.details.get("errors", []):
            ctx.print_error(f"  - {error}")
        return EXIT_VALIDATION_ERROR

    ctx.print("")
    ctx.print("Configuration is valid.")
    ctx.print("")
    ctx.print(f"  Environment: {config.environment}")
    ctx.print(f"  Database: {config.database.path}")
    ctx.print(f"  Rules: {config.escalation.rules_path or '(default rules)'}")
    ctx.print(f"  Default channel: {config.notifications.default_channel}")
    return EXIT_SUCCESS
