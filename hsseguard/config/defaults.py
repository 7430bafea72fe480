"""
Default configuration values for HSSEGuard.

These defaults can be overridden by YAML configuration files and/or
environment variables.
"""

from hsseguard.config.schema import (
    DatabaseConfig,
    EscalationConfig,
    HSSEGuardConfig,
    LoggingConfig,
    NotificationConfig,
)


def get_default_config() -> HSSEGuardConfig:
    """
    Get the default configuration.

    Notifications go to the log channel until SMTP or a webhook is
    configured, so a fresh install never sends mail by accident.

    Returns:
        HSSEGuardConfig with default values.
    """
    return HSSEGuardConfig(
        environment="development",
        database=DatabaseConfig(),
        escalation=EscalationConfig(),
        notifications=NotificationConfig(),
        logging=LoggingConfig(),
        metadata={},
    )


def get_production_config() -> HSSEGuardConfig:
    """
    Get a production-ready configuration.

    Returns:
        HSSEGuardConfig with production settings.
    """
    config = get_default_config()
    config.environment = "production"
    config.logging.level = "WARNING"
    config.notifications.default_channel = "EMAIL"
    return config


def get_development_config() -> HSSEGuardConfig:
    """
    Get a development configuration with verbose logging.

    Returns:
        HSSEGuardConfig with development settings.
    """
    config = get_default_config()
    config.environment = "development"
    config.logging.level = "DEBUG"
    config.database.path = "hsseguard_dev.db"
    return config


def get_test_config() -> HSSEGuardConfig:
    """
    Get a test configuration.

    Uses a single-connection in-memory database, no retry waits and a
    short sweep interval.

    Returns:
        HSSEGuardConfig with test settings.
    """
    config = get_default_config()
    config.environment = "test"
    config.database.path = ":memory:"
    config.database.pool_size = 1
    config.logging.level = "DEBUG"
    config.escalation.initial_backoff_seconds = 0.0
    config.escalation.max_backoff_seconds = 0.0
    config.escalation.sweep_interval_seconds = 1.0
    return config
