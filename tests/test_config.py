"""
Tests for HSSEGuard configuration.

This module tests the configuration schema, environment profiles and the
loader's YAML and environment variable handling.
"""

import os
from pathlib import Path

import pytest

from hsseguard.config import ConfigLoader, load_config
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


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove HSSEGUARD_ variables leaking in from the shell."""
    for name in list(os.environ):
        if name.startswith("HSSEGUARD_"):
            monkeypatch.delenv(name)


# =============================================================================
# Schema
# =============================================================================


class TestSchema:
    """Tests for configuration dataclasses."""

    def test_defaults(self) -> None:
        """Test default values."""
        config = HSSEGuardConfig()

        assert config.environment == "development"
        assert config.database.path == "hsseguard.db"
        assert config.escalation.max_dispatch_attempts == 3
        assert config.escalation.serious_severity_threshold == "MAJOR"
        assert config.notifications.default_channel == "LOG"
        assert config.is_development()
        assert not config.is_production()

    @pytest.mark.parametrize(
        "factory",
        [
            lambda: DatabaseConfig(pool_size=0),
            lambda: EscalationConfig(serious_severity_threshold="SEVERE"),
            lambda: EscalationConfig(max_dispatch_attempts=0),
            lambda: EscalationConfig(backoff_multiplier=0.5),
            lambda: EscalationConfig(initial_backoff_seconds=10, max_backoff_seconds=5),
            lambda: EscalationConfig(sweep_workers=0),
            lambda: EscalationConfig(executed_by=" "),
            lambda: NotificationConfig(default_channel="PIGEON"),
            lambda: NotificationConfig(smtp_port=70000),
            lambda: NotificationConfig(smtp_use_tls=True, smtp_use_ssl=True),
            lambda: LoggingConfig(level="CHATTY"),
            lambda: HSSEGuardConfig(environment="qa"),
        ],
    )
    def test_invalid_values(self, factory) -> None:
        """Test that out-of-range values are rejected."""
        with pytest.raises(ValueError):
            factory()

    def test_to_dict_redacts_password(self) -> None:
        """Test that the SMTP password is redacted by default."""
        config = HSSEGuardConfig(notifications=NotificationConfig(smtp_password="hunter2"))

        assert config.to_dict()["notifications"]["smtp_password"] == "********"
        assert config.to_dict(redact_secrets=False)["notifications"]["smtp_password"] == "hunter2"

    def test_to_dict_without_password(self) -> None:
        """Test that an empty password stays empty."""
        assert HSSEGuardConfig().to_dict()["notifications"]["smtp_password"] == ""


class TestProfiles:
    """Tests for environment profiles."""

    def test_profiles(self) -> None:
        """Test the settings each profile changes."""
        assert get_default_config().environment == "development"
        assert get_production_config().notifications.default_channel == "EMAIL"
        assert get_production_config().logging.level == "WARNING"
        assert get_development_config().logging.level == "DEBUG"

    def test_test_profile(self) -> None:
        """Test that the test profile never waits."""
        config = get_test_config()

        assert config.database.path == ":memory:"
        assert config.database.pool_size == 1
        assert config.escalation.initial_backoff_seconds == 0.0
        assert config.escalation.max_backoff_seconds == 0.0


# =============================================================================
# Loader
# =============================================================================


class TestConfigLoader:
    """Tests for ConfigLoader."""

    def test_load_without_file(self) -> None:
        """Test loading defaults only."""
        config = ConfigLoader().load()
        assert config.environment == "development"

    def test_load_yaml(self, tmp_path: Path) -> None:
        """Test loading values from a YAML file."""
        path = tmp_path / "hsseguard.yaml"
        path.write_text(
            """
environment: staging
database:
  path: /var/lib/hsseguard/audit.db
escalation:
  max_dispatch_attempts: 5
  serious_severity_threshold: SERIOUS
notifications:
  default_channel: EMAIL
  smtp_host: smtp.example.com
metadata:
  site: Rotterdam
"""
        )

        config = load_config(path)

        assert config.environment == "staging"
        assert config.database.path == "/var/lib/hsseguard/audit.db"
        assert config.escalation.max_dispatch_attempts == 5
        assert config.escalation.serious_severity_threshold == "SERIOUS"
        assert config.escalation.initial_backoff_seconds == 1.0
        assert config.notifications.smtp_host == "smtp.example.com"
        assert config.metadata == {"site": "Rotterdam"}

    def test_environment_argument_wins(self, tmp_path: Path) -> None:
        """Test that the environment argument overrides the file."""
        path = tmp_path / "hsseguard.yaml"
        path.write_text("environment: staging\n")

        config = load_config(path, environment="production")

        assert config.environment == "production"
        assert config.notifications.default_channel == "EMAIL"

    def test_empty_file(self, tmp_path: Path) -> None:
        """Test that an empty file means defaults."""
        path = tmp_path / "hsseguard.yaml"
        path.write_text("")
        assert load_config(path).database.path == "hsseguard.db"

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test loading a file that does not exist."""
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(tmp_path / "missing.yaml")
        assert "not found" in exc_info.value.message

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        """Test loading malformed YAML."""
        path = tmp_path / "hsseguard.yaml"
        path.write_text("escalation: [unclosed\n")

        with pytest.raises(ConfigurationError) as exc_info:
            load_config(path)
        assert "Invalid YAML" in exc_info.value.message

    def test_non_mapping(self, tmp_path: Path) -> None:
        """Test that the top level must be a mapping."""
        path = tmp_path / "hsseguard.yaml"
        path.write_text("- one\n- two\n")

        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_invalid_value_in_file(self, tmp_path: Path) -> None:
        """Test that schema errors in the file become configuration errors."""
        path = tmp_path / "hsseguard.yaml"
        path.write_text("notifications:\n  smtp_use_tls: true\n  smtp_use_ssl: true\n")

        with pytest.raises(ConfigurationError) as exc_info:
            load_config(path)
        assert "mutually exclusive" in exc_info.value.message

    def test_env_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test environment variable overrides."""
        monkeypatch.setenv("HSSEGUARD_DATABASE_PATH", "/tmp/audit.db")
        monkeypatch.setenv("HSSEGUARD_ESCALATION_MAX_DISPATCH_ATTEMPTS", "7")
        monkeypatch.setenv("HSSEGUARD_NOTIFICATIONS_SMTP_USE_TLS", "yes")
        monkeypatch.setenv("HSSEGUARD_NOTIFICATIONS_SMTP_PASSWORD", "from-env")
        monkeypatch.setenv("HSSEGUARD_LOGGING_LEVEL", "ERROR")

        config = load_config()

        assert config.database.path == "/tmp/audit.db"
        assert config.escalation.max_dispatch_attempts == 7
        assert config.notifications.smtp_use_tls is True
        assert config.notifications.smtp_password == "from-env"
        assert config.logging.level == "ERROR"

    def test_env_override_beats_file(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that environment variables are applied after the file."""
        path = tmp_path / "hsseguard.yaml"
        path.write_text("escalation:\n  sweep_workers: 2\n")
        monkeypatch.setenv("HSSEGUARD_ESCALATION_SWEEP_WORKERS", "8")

        assert load_config(path).escalation.sweep_workers == 8

    @pytest.mark.parametrize(
        "name,value",
        [
            ("HSSEGUARD_DATABASE_POOL_SIZE", "many"),
            ("HSSEGUARD_NOTIFICATIONS_SMTP_USE_SSL", "maybe"),
        ],
    )
    def test_unparseable_env_value(
        self, monkeypatch: pytest.MonkeyPatch, name: str, value: str
    ) -> None:
        """Test that env values that cannot be converted are rejected."""
        monkeypatch.setenv(name, value)

        with pytest.raises(ConfigurationError) as exc_info:
            load_config()
        assert exc_info.value.details["env_var"] == name

    def test_env_value_validated(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that env overrides go through schema validation."""
        monkeypatch.setenv("HSSEGUARD_ESCALATION_SWEEP_WORKERS", "0")

        with pytest.raises(ConfigurationError) as exc_info:
            load_config()
        assert exc_info.value.details["errors"] == [
            "escalation: sweep_workers must be at least 1"
        ]

    def test_config_property(self) -> None:
        """Test the loaded config accessor."""
        loader = ConfigLoader()
        with pytest.raises(ConfigurationError):
            _ = loader.config

        config = loader.load(environment="test")
        assert loader.config is config
