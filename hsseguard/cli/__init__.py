"""
HSSEGuard Command Line Interface.

Commands:
    init: Create a configuration file, default rules and the audit database
    config: Configuration management
    rules: Escalation rule file validation and listing
    audit: Escalation and notification history queries

Usage:
    hsseguard --help
    hsseguard init --path ./site
    hsseguard rules validate rules/escalation.yaml
"""

from hsseguard.cli.main import main

__all__ = ["main"]
