"""
Configuration schema definitions for HSSEGuard.

This module defines the configuration structure using dataclasses.
All configuration options are strongly typed with validation support.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

VALID_ENVIRONMENTS = ["development", "staging", "production", "test"]
VALID_SEVERITIES = ["MINOR", "MODERATE", "MAJOR", "SERIOUS", "CRITICAL", "EMERGENCY"]
VALID_CHANNELS = ["EMAIL", "SMS", "WHATSAPP", "PUSH", "WEBHOOK", "LOG"]


class LogLevel(Enum):
    """Logging level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class DatabaseConfig:
    """
    Audit database configuration options.

    Attributes:
        path: Path to the SQLite database file holding escalation and
            notification history. ":memory:" only works with pool_size 1.
        pool_size: Maximum number of idle connections in the pool.
        timeout_seconds: Busy timeout for locked database operations.
    """

    path: str = "hsseguard.db"
    pool_size: int = 5
    timeout_seconds: float = 30.0

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.pool_size < 1:
            raise ValueError("pool_size must be at least 1")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")


@dataclass
class EscalationConfig:
    """
    Escalation engine configuration options.

    Attributes:
        serious_severity_threshold: Lowest severity that raises a
            SERIOUS_INCIDENT_REPORTED event on incident creation.
        max_dispatch_attempts: Gateway attempts per action before the
            action is marked failed for manual follow-up.
        initial_backoff_seconds: Wait after the first failed attempt.
        backoff_multiplier: Factor applied to the wait after each failure.
        max_backoff_seconds: Upper bound for a single wait.
        sweep_interval_seconds: Seconds between scheduled sweeps for
            duration-based rules and delayed actions.
        sweep_workers: Threads used to sweep incidents in parallel.
        executed_by: Name recorded in the history for automatic actions.
        rules_path: YAML file of escalation rules. Empty means the
            built-in default rules.
    """

    serious_severity_threshold: str = "MAJOR"
    max_dispatch_attempts: int = 3
    initial_backoff_seconds: float = 1.0
    backoff_multiplier: float = 2.0
    max_backoff_seconds: float = 30.0
    sweep_interval_seconds: float = 300.0
    sweep_workers: int = 4
    executed_by: str = "system"
    rules_path: str = ""

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.serious_severity_threshold.upper() not in VALID_SEVERITIES:
            raise ValueError(f"serious_severity_threshold must be one of: {VALID_SEVERITIES}")
        if self.max_dispatch_attempts < 1:
            raise ValueError("max_dispatch_attempts must be at least 1")
        if self.initial_backoff_seconds < 0:
            raise ValueError("initial_backoff_seconds must be non-negative")
        if self.backoff_multiplier < 1:
            raise ValueError("backoff_multiplier must be at least 1")
        if self.max_backoff_seconds < self.initial_backoff_seconds:
            raise ValueError("max_backoff_seconds must be >= initial_backoff_seconds")
        if self.sweep_interval_seconds <= 0:
            raise ValueError("sweep_interval_seconds must be positive")
        if self.sweep_workers < 1:
            raise ValueError("sweep_workers must be at least 1")
        if not self.executed_by.strip():
            raise ValueError("executed_by must not be empty")


@dataclass
class NotificationConfig:
    """
    Notification delivery configuration options.

    Attributes:
        default_channel: Channel used by actions that list none.
        smtp_host: SMTP server host for the EMAIL channel.
        smtp_port: SMTP server port.
        smtp_username: SMTP login, empty for no authentication.
        smtp_password: SMTP password. Prefer the HSSEGUARD_NOTIFICATIONS_
            SMTP_PASSWORD environment variable over the config file.
        smtp_use_tls: Whether to upgrade the connection with STARTTLS.
        smtp_use_ssl: Whether to connect over SSL.
        from_address: Sender address.
        from_name: Sender display name.
        webhook_url: Endpoint for the WEBHOOK channel.
        webhook_timeout_seconds: Webhook request timeout.
        portal_url: Base URL of the incident portal, used in messages.
    """

    default_channel: str = "LOG"
    smtp_host: str = "localhost"
    smtp_port: int = 25
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = False
    smtp_use_ssl: bool = False
    from_address: str = "hsse@example.com"
    from_name: str = "HSSEGuard"
    webhook_url: str = ""
    webhook_timeout_seconds: float = 30.0
    portal_url: str = ""

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.default_channel.upper() not in VALID_CHANNELS:
            raise ValueError(f"default_channel must be one of: {VALID_CHANNELS}")
        if self.smtp_port < 1 or self.smtp_port > 65535:
            raise ValueError("smtp_port must be between 1 and 65535")
        if self.smtp_use_tls and self.smtp_use_ssl:
            raise ValueError("smtp_use_tls and smtp_use_ssl are mutually exclusive")
        if self.webhook_timeout_seconds <= 0:
            raise ValueError("webhook_timeout_seconds must be positive")


@dataclass
class LoggingConfig:
    """
    Logging configuration options.

    Attributes:
        level: Minimum log level to output. One of: DEBUG, INFO,
            WARNING, ERROR, CRITICAL.
        format: Log message format string. Supports standard Python
            logging format specifiers.
    """

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    def __post_init__(self) -> None:
        """Validate configuration values."""
        valid_levels = [level.value for level in LogLevel]
        if self.level.upper() not in valid_levels:
            raise ValueError(f"level must be one of: {valid_levels}")


@dataclass
class HSSEGuardConfig:
    """
    Root configuration object for HSSEGuard.

    Attributes:
        environment: The environment profile name (development, staging,
            production, test).
        database: Audit database configuration options.
        escalation: Escalation engine configuration options.
        notifications: Notification delivery configuration options.
        logging: Logging configuration options.
        metadata: Additional custom configuration as key-value pairs.
    """

    environment: str = "development"
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    escalation: EscalationConfig = field(default_factory=EscalationConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.environment.lower() not in VALID_ENVIRONMENTS:
            raise ValueError(f"environment must be one of: {VALID_ENVIRONMENTS}")

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment.lower() == "development"

    def to_dict(self, redact_secrets: bool = True) -> dict[str, Any]:
        """
        Convert configuration to a dictionary.

        Args:
            redact_secrets: Replace the SMTP password with asterisks.
        """
        password = self.notifications.smtp_password
        if redact_secrets and password:
            password = "********"
        return {
            "environment": self.environment,
            "database": {
                "path": self.database.path,
                "pool_size": self.database.pool_size,
                "timeout_seconds": self.database.timeout_seconds,
            },
            "escalation": {
                "serious_severity_threshold": self.escalation.serious_severity_threshold,
                "max_dispatch_attempts": self.escalation.max_dispatch_attempts,
                "initial_backoff_seconds": self.escalation.initial_backoff_seconds,
                "backoff_multiplier": self.escalation.backoff_multiplier,
                "max_backoff_seconds": self.escalation.max_backoff_seconds,
                "sweep_interval_seconds": self.escalation.sweep_interval_seconds,
                "sweep_workers": self.escalation.sweep_workers,
                "executed_by": self.escalation.executed_by,
                "rules_path": self.escalation.rules_path,
            },
            "notifications": {
                "default_channel": self.notifications.default_channel,
                "smtp_host": self.notifications.smtp_host,
                "smtp_port": self.notifications.smtp_port,
                "smtp_username": self.notifications.smtp_username,
                "smtp_password": password,
                "smtp_use_tls": self.notifications.smtp_use_tls,
                "smtp_use_ssl": self.notifications.smtp_use_ssl,
                "from_address": self.notifications.from_address,
                "from_name": self.notifications.from_name,
                "webhook_url": self.notifications.webhook_url,
                "webhook_timeout_seconds": self.notifications.webhook_timeout_seconds,
                "portal_url": self.notifications.portal_url,
            },
            "logging": {
                "level": self.logging.level,
                "format": self.logging.format,
            },
            "metadata": self.metadata,
        }
