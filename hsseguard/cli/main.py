"""
Main entry point for the HSSEGuard CLI.

This module provides the main command-line interface for HSSEGuard
using argparse for argument parsing. It supports global options,
subcommands, and proper exit codes.

Exit Codes:
    0: Success
    1: General error
    2: Validation error
    3: Configuration error
"""

import argparse
import logging
import sys
from typing import Any

from hsseguard import __version__
from hsseguard.exceptions import (
    ConfigurationError,
    HSSEGuardError,
    RuleError,
    ValidationError,
)

# Exit codes
EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_VALIDATION_ERROR = 2
EXIT_CONFIG_ERROR = 3

LOG_FORMAT = "%(levelname)s: %(name)s: %(message)s"


class CLIContext:
    """
    Context object that holds CLI state and configuration.

    Attributes:
        config_path: Path to the configuration file.
        database_path: Path to the audit database file.
        verbose: Enable verbose output.
        quiet: Suppress non-essential output.
        output_format: Output format (table, json, yaml).
    """

    def __init__(
        self,
        config_path: str | None = None,
        database_path: str | None = None,
        verbose: bool = False,
        quiet: bool = False,
        output_format: str = "table",
    ) -> None:
        self.config_path = config_path
        self.database_path = database_path
        self.verbose = verbose
        self.quiet = quiet
        self.output_format = output_format
        self._config: Any = None
        self._database: Any = None
        self._audit: Any = None

    @property
    def config(self) -> Any:
        """
        Load and return configuration.

        Without -v or -q, the configured logging level applies from here on.

        Raises:
            ConfigurationError: If configuration cannot be loaded.
        """
        if self._config is None:
            from hsseguard.config.loader import ConfigLoader

            loader = ConfigLoader()
            self._config = loader.load(self.config_path)

            if self.database_path:
                self._config.database.path = self.database_path

            if not self.verbose and not self.quiet:
                logging.getLogger("hsseguard").setLevel(self._config.logging.level.upper())

        return self._config

    @property
    def database(self) -> Any:
        """
        Get the audit database.

        Raises:
            StorageError: If the database cannot be opened.
        """
        if self._database is None:
            from hsseguard.storage.database import Database

            db_path = self.database_path or self.config.database.path
            self._database = Database(
                path=db_path,
                pool_size=self.config.database.pool_size,
                timeout=self.config.database.timeout_seconds,
            )
        return self._database

    @property
    def audit(self) -> Any:
        """Get the audit trail on the configured database."""
        if self._audit is None:
            from hsseguard.audit.trail import AuditTrail

            self._audit = AuditTrail(self.database)
        return self._audit

    def print(self, message: str, error: bool = False) -> None:
        """
        Print a message to stdout or stderr.

        Args:
            message: The message to print.
            error: If True, print to stderr.
        """
        if self.quiet and not error:
            return
        output = sys.stderr if error else sys.stdout
        print(message, file=output)

    def print_error(self, message: str) -> None:
        """Print an error message to stderr."""
        print(f"Error: {message}", file=sys.stderr)

    def cleanup(self) -> None:
        """Clean up resources."""
        if self._database is not None:
            self._database.close()


def configure_logging(verbose: bool = False, quiet: bool = False) -> None:
    """
    Attach a stderr handler to the hsseguard logger.

    -v selects DEBUG and -q selects ERROR. Otherwise WARNING applies until
    the configuration is loaded.
    """
    logger = logging.getLogger("hsseguard")
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.WARNING
    logger.setLevel(level)

    if not any(getattr(h, "_hsseguard_cli", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._hsseguard_cli = True  # type: ignore[attr-defined]
        logger.addHandler(handler)


def create_parser() -> argparse.ArgumentParser:
    """
    Create the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance.
    """
    parser = argparse.ArgumentParser(
        prog="hsseguard",
        description="HSSEGuard: incident lifecycle and escalation engine",
        epilog="Use 'hsseguard <command> --help' for more information on a command.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"hsseguard {__version__}",
    )
    parser.add_argument(
        "-c",
        "--config",
        metavar="PATH",
        help="Path to configuration file",
    )
    parser.add_argument(
        "-d",
        "--database",
        metavar="PATH",
        help="Path to audit database file (overrides config)",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    verbosity.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Suppress non-essential output",
    )
    parser.add_argument(
        "-f",
        "--format",
        choices=["table", "json", "yaml"],
        default="table",
        help="Output format (default: table)",
    )

    subparsers = parser.add_subparsers(
        title="commands",
        dest="command",
        metavar="<command>",
    )

    _register_commands(subparsers)

    return parser


def _register_commands(subparsers: argparse._SubParsersAction) -> None:  # type: ignore[type-arg]
    """Register all command modules with the parser."""
    from hsseguard.cli.commands import audit as audit_cmd
    from hsseguard.cli.commands import config as config_cmd
    from hsseguard.cli.commands import init as init_cmd
    from hsseguard.cli.commands import rules as rules_cmd

    init_cmd.register(subparsers)
    config_cmd.register(subparsers)
    rules_cmd.register(subparsers)
    audit_cmd.register(subparsers)


def run_command(
    args: argparse.Namespace,
    ctx: CLIContext,
) -> int:
    """
    Execute the selected command.

    Args:
        args: Parsed command-line arguments.
        ctx: CLI context object.

    Returns:
        Exit code.
    """
    if not hasattr(args, "func"):
        return EXIT_ERROR

    try:
        return args.func(args, ctx)
    except ConfigurationError as e:
        ctx.print_error(str(e))
        if ctx.verbose and e.details:
            ctx.print_error(f"Details: {e.details}")
        return EXIT_CONFIG_ERROR
    except (RuleError, ValidationError) as e:
        ctx.print_error(str(e))
        if ctx.verbose and e.details:
            ctx.print_error(f"Details: {e.details}")
        return EXIT_VALIDATION_ERROR
    except HSSEGuardError as e:
        ctx.print_error(str(e))
        if ctx.verbose and e.details:
            ctx.print_error(f"Details: {e.details}")
        return EXIT_ERROR
    except KeyboardInterrupt:
        ctx.print("\nOperation cancelled.", error=True)
        return EXIT_ERROR
    except Exception as e:
        ctx.print_error(f"Unexpected error: {e}")
        if ctx.verbose:
            import traceback

            traceback.print_exc()
        return EXIT_ERROR


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:]).

    Returns:
        Exit code.
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return EXIT_SUCCESS

    configure_logging(verbose=args.verbose, quiet=args.quiet)

    ctx = CLIContext(
        config_path=args.config,
        database_path=args.database,
        verbose=args.verbose,
        quiet=args.quiet,
        output_format=args.format,
    )

    try:
        return run_command(args, ctx)
    finally:
        ctx.cleanup()


if __name__ == "__main__":
    sys.exit(main())
