"""
CLI command modules for HSSEGuard.

Modules:
    init: Project initialization
    config: Configuration management
    rules: Escalation rule files
    audit: Audit trail queries
"""

from hsseguard.cli.commands import audit, config, init, rules

__all__ = ["init", "config", "rules", "audit"]
