"""
Tests for notification templates.
"""

import pytest

from hsseguard.escalation.rules import EscalationActionType
from hsseguard.escalation.templates import (
    ESCALATION_OVERDUE,
    INCIDENT_CREATED,
    INCIDENT_CRITICAL,
    INCIDENT_REGULATORY,
    NotificationTemplate,
    TemplateRegistry,
    build_context,
)
from hsseguard.exceptions import ValidationError
from hsseguard.incidents import IncidentSeverity
from tests.helpers import make_incident


class TestBuildContext:
    """Tests for build_context."""

    def test_incident_fields(self) -> None:
        """Test that the context carries the incident values."""
        incident, _ = make_incident(severity=IncidentSeverity.MAJOR)

        context = build_context(incident.snapshot(), portal_url="https://hsse.example.com/")

        assert context["incident_title"] == "Forklift collision"
        assert context["incident_severity"] == "MAJOR"
        assert context["reporter_name"] == "Dana Reyes"
        assert context["url"] == f"https://hsse.example.com/incidents/{incident.incident_id}"

    def test_missing_location_and_parameters(self) -> None:
        """Test fallbacks and that action parameters win."""
        incident, _ = make_incident(location="", reporter_name="")

        context = build_context(
            incident.snapshot(), {"escalation_reason": "Stuck", "incident_title": "Override"}
        )

        assert context["incident_location"] == "Unknown"
        assert context["reporter_name"] == "u-100"
        assert context["escalation_reason"] == "Stuck"
        assert context["incident_title"] == "Override"
        assert context["url"] == incident.incident_id


class TestTemplateRegistry:
    """Tests for TemplateRegistry."""

    def test_render_default(self) -> None:
        """Test rendering a default template."""
        incident, _ = make_incident()
        registry = TemplateRegistry()

        message = registry.render(INCIDENT_CREATED, build_context(incident.snapshot()))

        assert message.subject == "[HSSE] New MINOR incident: Forklift collision"
        assert "Location: Warehouse B, Bay 3" in message.body

    def test_missing_placeholder_kept(self) -> None:
        """Test that unknown placeholders stay literal instead of failing."""
        registry = TemplateRegistry(
            [NotificationTemplate("custom", "{incident_title} / {shift}", "Body")]
        )
        incident, _ = make_incident()

        message = registry.render("custom", build_context(incident.snapshot()))

        assert message.subject == "Forklift collision / {shift}"

    def test_unknown_template(self) -> None:
        """Test rendering a template that does not exist."""
        with pytest.raises(ValidationError):
            TemplateRegistry().get("missing")

    def test_register_replaces_default(self) -> None:
        """Test that custom templates replace defaults with the same id."""
        registry = TemplateRegistry()
        registry.register(NotificationTemplate(INCIDENT_CREATED, "Reported: {incident_title}", ""))

        assert registry.get(INCIDENT_CREATED).subject_template == "Reported: {incident_title}"
        assert INCIDENT_CREATED in registry.list_ids()

    def test_default_for(self) -> None:
        """Test default templates per action type and severity."""
        registry = TemplateRegistry()
        minor, _ = make_incident()
        critical, _ = make_incident(severity=IncidentSeverity.CRITICAL)

        assert registry.default_for(EscalationActionType.NOTIFY_ROLE, minor.snapshot()) == (
            INCIDENT_CREATED
        )
        assert registry.default_for(EscalationActionType.NOTIFY_ROLE, critical.snapshot()) == (
            INCIDENT_CRITICAL
        )
        assert registry.default_for(EscalationActionType.ESCALATE_TO_MANAGER) == (
            ESCALATION_OVERDUE
        )
        assert registry.default_for(EscalationActionType.SEND_REGULATORY) == INCIDENT_REGULATORY

    def test_register_rejects_unbalanced_braces(self) -> None:
        """Test that a template with a stray brace is refused."""
        registry = TemplateRegistry()
        with pytest.raises(ValidationError, match="Invalid template stray"):
            registry.register(NotificationTemplate("stray", "Alert", "Incident {incident_id} }"))
        assert not registry.has("stray")

    def test_render_bad_field_raises_validation_error(self) -> None:
        """Test that attribute lookups on plain values fail as validation errors."""
        registry = TemplateRegistry(
            [NotificationTemplate("dotted", "{incident_title.missing}", "Body")]
        )
        incident, _ = make_incident()

        with pytest.raises(ValidationError, match="Cannot render template dotted"):
            registry.render("dotted", build_context(incident.snapshot()))
