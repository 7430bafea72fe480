"""
Configuration loader for HSSEGuard.

This module provides the ConfigLoader class for loading configuration
from YAML files with environment variable overrides.
"""

import os
from pathlib import Path
from typing import Any

import yaml

from hsseguard.config.defaults import (
    get_default_config,
    get_development_config,
    get_production_config,
    get_test_config,
)
from hsseguard.config.schema import (
    DatabaseConfig,
    EscalationConfig,
    HSSEGuardConfig,
    LoggingConfig,
    NotificationConfig,
)
from hsseguard.exceptions import ConfigurationError


class ConfigLoader:
    """
    Loads and validates HSSEGuard configuration.

    The ConfigLoader supports loading configuration from:
    1. Default values for the environment profile
    2. YAML configuration files
    3. Environment variables (HSSEGUARD_ prefix)

    Configuration sources are applied in order, with later sources
    overriding earlier ones.

    Example:
        Loading configuration::

            loader = ConfigLoader()
            config = loader.load("config/hsseguard.yaml", environment="production")
    """

    ENV_PREFIX = "HSSEGUARD_"

    def __init__(self) -> None:
        """Initialize the configuration loader."""
        self._config: HSSEGuardConfig | None = None

    def load(
        self,
        config_path: str | Path | None = None,
        environment: str | None = None,
    ) -> HSSEGuardConfig:
        """
        Load configuration from file and environment.

        Args:
            config_path: Path to a YAML configuration file. If None,
                only defaults and environment variables are used.
            environment: Environment profile to use. Overrides any
                environment setting in the config file.

        Returns:
            A validated HSSEGuardConfig object.

        Raises:
            ConfigurationError: If configuration is invalid or file not found.
        """
        if environment:
            config = self._get_environment_defaults(environment)
        else:
            config = get_default_config()

        try:
            if config_path:
                file_config = self._load_yaml(config_path)
                config = self._merge_config(config, file_config)
        except (ValueError, TypeError) as e:
            raise ConfigurationError(
                f"Invalid configuration in {config_path}: {e}",
                details={"path": str(config_path)},
            ) from e

        config = self._apply_env_overrides(config)

        if environment:
            config.environment = environment

        self._validate(config)

        self._config = config
        return config

    def _get_environment_defaults(self, environment: str) -> HSSEGuardConfig:
        """Get default configuration for an environment."""
        env_lower = environment.lower()
        if env_lower == "production":
            return get_production_config()
        elif env_lower == "development":
            return get_development_config()
        elif env_lower == "test":
            return get_test_config()
        else:
            config = get_default_config()
            config.environment = environment
            return config

    def _load_yaml(self, path: str | Path) -> dict[str, Any]:
        """
        Load configuration from a YAML file.

        Raises:
            ConfigurationError: If file not found or invalid YAML.
        """
        path = Path(path)

        if not path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {path}",
                details={"path": str(path)},
            )

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid YAML in configuration file: {e}",
                details={"path": str(path)},
            ) from e
        except OSError as e:
            raise ConfigurationError(
                f"Failed to read configuration file: {e}",
                details={"path": str(path)},
            ) from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(
                "Configuration file must contain a mapping",
                details={"path": str(path)},
            )
        return data

    def _merge_config(
        self,
        base: HSSEGuardConfig,
        override: dict[str, Any],
    ) -> HSSEGuardConfig:
        """Merge file configuration into base configuration."""
        if not override:
            return base

        if "environment" in override:
            base.environment = str(override["environment"])

        if "metadata" in override and isinstance(override["metadata"], dict):
            base.metadata.update(override["metadata"])

        if "database" in override:
            base.database = self._merge_database(base.database, override["database"] or {})

        if "escalation" in override:
            base.escalation = self._merge_escalation(
                base.escalation, override["escalation"] or {}
            )

        if "notifications" in override:
            base.notifications = self._merge_notifications(
                base.notifications, override["notifications"] or {}
            )

        if "logging" in override:
            base.logging = self._merge_logging(base.logging, override["logging"] or {})

        return base

    def _merge_database(
        self,
        base: DatabaseConfig,
        override: dict[str, Any],
    ) -> DatabaseConfig:
        """Merge database configuration."""
        return DatabaseConfig(
            path=str(override.get("path", base.path)),
            pool_size=override.get("pool_size", base.pool_size),
            timeout_seconds=override.get("timeout_seconds", base.timeout_seconds),
        )

    def _merge_escalation(
        self,
        base: EscalationConfig,
        override: dict[str, Any],
    ) -> EscalationConfig:
        """Merge escalation configuration."""
        return EscalationConfig(
            serious_severity_threshold=str(
                override.get("serious_severity_threshold", base.serious_severity_threshold)
            ),
            max_dispatch_attempts=override.get(
                "max_dispatch_attempts", base.max_dispatch_attempts
            ),
            initial_backoff_seconds=override.get(
                "initial_backoff_seconds", base.initial_backoff_seconds
            ),
            backoff_multiplier=override.get("backoff_multiplier", base.backoff_multiplier),
            max_backoff_seconds=override.get("max_backoff_seconds", base.max_backoff_seconds),
            sweep_interval_seconds=override.get(
                "sweep_interval_seconds", base.sweep_interval_seconds
            ),
            sweep_workers=override.get("sweep_workers", base.sweep_workers),
            executed_by=str(override.get("executed_by", base.executed_by)),
            rules_path=str(override.get("rules_path", base.rules_path) or ""),
        )

    def _merge_notifications(
        self,
        base: NotificationConfig,
        override: dict[str, Any],
    ) -> NotificationConfig:
        """Merge notification configuration."""
        return NotificationConfig(
            default_channel=str(override.get("default_channel", base.default_channel)),
            smtp_host=override.get("smtp_host", base.smtp_host),
            smtp_port=override.get("smtp_port", base.smtp_port),
            smtp_username=override.get("smtp_username", base.smtp_username),
            smtp_password=override.get("smtp_password", base.smtp_password),
            smtp_use_tls=override.get("smtp_use_tls", base.smtp_use_tls),
            smtp_use_ssl=override.get("smtp_use_ssl", base.smtp_use_ssl),
            from_address=override.get("from_address", base.from_address),
            from_name=override.get("from_name", base.from_name),
            webhook_url=override.get("webhook_url", base.webhook_url) or "",
            webhook_timeout_seconds=override.get(
                "webhook_timeout_seconds", base.webhook_timeout_seconds
            ),
            portal_url=override.get("portal_url", base.portal_url) or "",
        )

    def _merge_logging(
        self,
        base: LoggingConfig,
        override: dict[str, Any],
    ) -> LoggingConfig:
        """Merge logging configuration."""
        return LoggingConfig(
            level=override.get("level", base.level),
            format=override.get("format", base.format),
        )

    def _apply_env_overrides(self, config: HSSEGuardConfig) -> HSSEGuardConfig:
        """
        Apply environment variable overrides to configuration.

        Environment variables use the format HSSEGUARD_SECTION_OPTION=value,
        for example:
        - HSSEGUARD_DATABASE_PATH=/var/lib/hsseguard/audit.db
        - HSSEGUARD_ESCALATION_MAX_DISPATCH_ATTEMPTS=5
        - HSSEGUARD_NOTIFICATIONS_SMTP_PASSWORD=secret
        - HSSEGUARD_LOGGING_LEVEL=DEBUG
        """
        env_mapping = {
            # Top-level
            "HSSEGUARD_ENVIRONMENT": ("environment", str),
            # Database
            "HSSEGUARD_DATABASE_PATH": ("database.path", str),
            "HSSEGUARD_DATABASE_POOL_SIZE": ("database.pool_size", int),
            "HSSEGUARD_DATABASE_TIMEOUT_SECONDS": ("database.timeout_seconds", float),
            # Escalation
            "HSSEGUARD_ESCALATION_SERIOUS_SEVERITY_THRESHOLD": (
                "escalation.serious_severity_threshold",
                str,
            ),
            "HSSEGUARD_ESCALATION_MAX_DISPATCH_ATTEMPTS": (
                "escalation.max_dispatch_attempts",
                int,
            ),
            "HSSEGUARD_ESCALATION_INITIAL_BACKOFF_SECONDS": (
                "escalation.initial_backoff_seconds",
                float,
            ),
            "HSSEGUARD_ESCALATION_BACKOFF_MULTIPLIER": ("escalation.backoff_multiplier", float),
            "HSSEGUARD_ESCALATION_MAX_BACKOFF_SECONDS": (
                "escalation.max_backoff_seconds",
                float,
            ),
            "HSSEGUARD_ESCALATION_SWEEP_INTERVAL_SECONDS": (
                "escalation.sweep_interval_seconds",
                float,
            ),
            "HSSEGUARD_ESCALATION_SWEEP_WORKERS": ("escalation.sweep_workers", int),
            "HSSEGUARD_ESCALATION_EXECUTED_BY": ("escalation.executed_by", str),
            "HSSEGUARD_ESCALATION_RULES_PATH": ("escalation.rules_path", str),
            # Notifications
            "HSSEGUARD_NOTIFICATIONS_DEFAULT_CHANNEL": ("notifications.default_channel", str),
            "HSSEGUARD_NOTIFICATIONS_SMTP_HOST": ("notifications.smtp_host", str),
            "HSSEGUARD_NOTIFICATIONS_SMTP_PORT": ("notifications.smtp_port", int),
            "HSSEGUARD_NOTIFICATIONS_SMTP_USERNAME": ("notifications.smtp_username", str),
            "HSSEGUARD_NOTIFICATIONS_SMTP_PASSWORD": ("notifications.smtp_password", str),
            "HSSEGUARD_NOTIFICATIONS_SMTP_USE_TLS": (
                "notifications.smtp_use_tls",
                self._parse_bool,
            ),
            "HSSEGUARD_NOTIFICATIONS_SMTP_USE_SSL": (
                "notifications.smtp_use_ssl",
                self._parse_bool,
            ),
            "HSSEGUARD_NOTIFICATIONS_FROM_ADDRESS": ("notifications.from_address", str),
            "HSSEGUARD_NOTIFICATIONS_WEBHOOK_URL": ("notifications.webhook_url", str),
            "HSSEGUARD_NOTIFICATIONS_PORTAL_URL": ("notifications.portal_url", str),
            # Logging
            "HSSEGUARD_LOGGING_LEVEL": ("logging.level", str),
        }

        for env_var, (path, converter) in env_mapping.items():
            value = os.environ.get(env_var)
            if value is not None:
                try:
                    converted = converter(value)
                    self._set_nested_attr(config, path, converted)
                except (ValueError, TypeError) as e:
                    raise ConfigurationError(
                        f"Invalid value for {env_var}: {e}",
                        details={"env_var": env_var, "value": value},
                    ) from e

        return config

    def _set_nested_attr(self, obj: Any, path: str, value: Any) -> None:
        """Set a nested attribute using dot notation."""
        parts = path.split(".")
        for part in parts[:-1]:
            obj = getattr(obj, part)
        setattr(obj, parts[-1], value)

    def _parse_bool(self, value: str) -> bool:
        """Parse a string to boolean."""
        if value.lower() in ("true", "1", "yes", "on"):
            return True
        elif value.lower() in ("false", "0", "no", "off"):
            return False
        else:
            raise ValueError(f"Cannot parse '{value}' as boolean")

    def _validate(self, config: HSSEGuardConfig) -> None:
        """
        Validate the complete configuration.

        Sections are rebuilt so that values set after construction, e.g.
        by environment overrides, go through __post_init__ as well.

        Raises:
            ConfigurationError: If configuration is invalid.
        """
        errors: list[str] = []
        sections = [
            ("database", DatabaseConfig, config.database),
            ("escalation", EscalationConfig, config.escalation),
            ("notifications", NotificationConfig, config.notifications),
            ("logging", LoggingConfig, config.logging),
        ]
        for name, section_type, section in sections:
            try:
                section_type(**vars(section))
            except (ValueError, TypeError, AttributeError) as e:
                errors.append(f"{name}: {e}")

        try:
            HSSEGuardConfig(environment=config.environment)
        except (ValueError, AttributeError) as e:
            errors.append(f"environment: {e}")

        if errors:
            raise ConfigurationError(
                f"Configuration validation failed: {'; '.join(errors)}",
                details={"errors": errors},
            )

    @property
    def config(self) -> HSSEGuardConfig:
        """Get the currently loaded configuration."""
        if self._config is None:
            raise ConfigurationError("Configuration not loaded. Call load() first.")
        return self._config


def load_config(
    config_path: str | Path | None = None,
    environment: str | None = None,
) -> HSSEGuardConfig:
    """
    Convenience function to load configuration.

    Args:
        config_path: Path to a YAML configuration file.
        environment: Environment profile to use.

    Returns:
        A validated HSSEGuardConfig object.
    """
    loader = ConfigLoader()
    return loader.load(config_path, environment)
