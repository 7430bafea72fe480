"""
Configuration system for HSSEGuard.

This module provides configuration loading, validation, and management
for HSSEGuard. Configuration can be loaded from YAML files with
environment variable overrides.
"""

from hsseguard.config.loader import ConfigLoader, load_config
from hsseguard.config.schema import (
    DatabaseConfig,
    EscalationConfig,
    HSSEGuardConfig,
    LoggingConfig,
    NotificationConfig,
)

__all__ = [
    "ConfigLoader",
    "load_config",
    "HSSEGuardConfig",
    "DatabaseConfig",
    "EscalationConfig",
    "NotificationConfig",
    "LoggingConfig",
]
