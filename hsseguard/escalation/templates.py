"""
Notification templates for HSSEGuard escalations.

Templates use format-style placeholders filled from an incident snapshot
and the escalation action's parameters.
"""

import string
import threading
from dataclasses import dataclass, field
from typing import Any

from hsseguard.escalation.rules import EscalationActionType
from hsseguard.exceptions import ValidationError
from hsseguard.incidents.aggregate import IncidentSnapshot
from hsseguard.incidents.models import IncidentSeverity

INCIDENT_CREATED = "incident_created"
INCIDENT_CRITICAL = "incident_critical"
ESCALATION_OVERDUE = "escalation_overdue"
EMERGENCY_ALERT = "emergency_alert"
INCIDENT_REGULATORY = "incident_regulatory"
INVESTIGATOR_ASSIGNED = "investigator_assigned"
ACTION_REQUIRED = "action_required"
INCIDENT_CLOSED = "incident_closed"


@dataclass
class NotificationTemplate:
    """
    A template for generating notification content.

    Attributes:
        template_id: Unique identifier for the template.
        subject_template: Template for the notification subject.
        body_template: Template for the notification body.
        description: What the template is used for.
    """

    template_id: str
    subject_template: str
    body_template: str
    description: str = ""

    def render_subject(self, context: dict[str, Any]) -> str:
        """Render the subject with the given context."""
        return self._render(self.subject_template, context)

    def render_body(self, context: dict[str, Any]) -> str:
        """Render the body with the given context."""
        return self._render(self.body_template, context)

    def _render(self, template: str, context: dict[str, Any]) -> str:
        try:
            return template.format(**context)
        except (KeyError, IndexError):
            # Missing keys stay as literal placeholders
            result = template
            for key, value in context.items():
                result = result.replace(f"{{{key}}}", str(value))
            return result
        except (ValueError, AttributeError, TypeError) as e:
            raise ValidationError(
                f"Cannot render template {self.template_id}: {e}",
                {"template_id": self.template_id},
            ) from e

    def check_syntax(self) -> None:
        """
        Check that the subject and body are well-formed format strings.

        Raises:
            ValidationError: On unbalanced braces or a bad conversion.
        """
        for part in (self.subject_template, self.body_template):
            try:
                list(string.Formatter().parse(part))
            except ValueError as e:
                raise ValidationError(
                    f"Invalid template {self.template_id}: {e}",
                    {"template_id": self.template_id},
                ) from e


@dataclass(frozen=True)
class RenderedMessage:
    """Subject and body produced from a template."""

    template_id: str
    subject: str
    body: str
    context: dict[str, Any] = field(default_factory=dict)


DEFAULT_TEMPLATES = [
    NotificationTemplate(
        template_id=INCIDENT_CREATED,
        subject_template="[HSSE] New {incident_severity} incident: {incident_title}",
        body_template=(
            "A new incident has been reported.\n\n"
            "Incident: {incident_title}\n"
            "Severity: {incident_severity}\n"
            "Location: {incident_location}\n"
            "Reported by: {reporter_name}\n"
            "Reported at: {incident_created_at}\n\n"
            "{incident_description}\n\n"
            "Details: {url}"
        ),
        description="Sent when an incident is reported.",
    ),
    NotificationTemplate(
        template_id=INCIDENT_CRITICAL,
        subject_template="[HSSE CRITICAL] {incident_title} at {incident_location}",
        body_template=(
            "A {incident_severity} incident requires immediate attention.\n\n"
            "Incident: {incident_title}\n"
            "Location: {incident_location}\n"
            "Department: {incident_department}\n"
            "Status: {incident_status}\n\n"
            "{incident_description}\n\n"
            "Details: {url}"
        ),
        description="Sent for critical and emergency incidents.",
    ),
    NotificationTemplate(
        template_id=ESCALATION_OVERDUE,
        subject_template="[HSSE] Escalation: {incident_title}",
        body_template=(
            "Incident {incident_title} has been escalated to you.\n\n"
            "Severity: {incident_severity}\n"
            "Status: {incident_status}\n"
            "Reported at: {incident_created_at}\n"
            "Reason: {escalation_reason}\n\n"
            "Details: {url}"
        ),
        description="Sent when an incident has gone without a response.",
    ),
    NotificationTemplate(
        template_id=EMERGENCY_ALERT,
        subject_template="[EMERGENCY] {incident_title} at {incident_location}",
        body_template=(
            "EMERGENCY ALERT\n\n"
            "Incident: {incident_title}\n"
            "Severity: {incident_severity}\n"
            "Location: {incident_location}\n\n"
            "{incident_description}\n\n"
            "Follow the site emergency response procedure. Details: {url}"
        ),
        description="Sent to emergency response contacts.",
    ),
    NotificationTemplate(
        template_id=INCIDENT_REGULATORY,
        subject_template="[HSSE] Regulatory report required: {incident_title}",
        body_template=(
            "Incident {incident_title} meets the threshold for regulatory reporting.\n\n"
            "Severity: {incident_severity}\n"
            "Occurred at: {incident_occurred_at}\n"
            "Location: {incident_location}\n\n"
            "Prepare and file the report with the relevant authority. Details: {url}"
        ),
        description="Sent to the team that files regulatory reports.",
    ),
    NotificationTemplate(
        template_id=INVESTIGATOR_ASSIGNED,
        subject_template="[HSSE] You are investigating: {incident_title}",
        body_template=(
            "You have been assigned to investigate an incident.\n\n"
            "Incident: {incident_title}\n"
            "Severity: {incident_severity}\n"
            "Location: {incident_location}\n\n"
            "Details: {url}"
        ),
        description="Sent to a newly assigned investigator.",
    ),
    NotificationTemplate(
        template_id=ACTION_REQUIRED,
        subject_template="[HSSE] Action required: {incident_title}",
        body_template=(
            "Incident {incident_title} has {open_corrective_actions} open corrective action(s).\n\n"
            "Status: {incident_status}\n\n"
            "Details: {url}"
        ),
        description="Sent when corrective actions need attention.",
    ),
    NotificationTemplate(
        template_id=INCIDENT_CLOSED,
        subject_template="[HSSE] Incident closed: {incident_title}",
        body_template=(
            "Incident {incident_title} has been closed.\n\n"
            "Severity: {incident_severity}\n"
            "Location: {incident_location}\n\n"
            "Details: {url}"
        ),
        description="Sent when an incident is closed.",
    ),
]

_DEFAULT_FOR_ACTION = {
    EscalationActionType.ESCALATE_TO_MANAGER: ESCALATION_OVERDUE,
    EscalationActionType.SEND_EMERGENCY_ALERT: EMERGENCY_ALERT,
    EscalationActionType.SEND_REGULATORY: INCIDENT_REGULATORY,
}


def build_context(
    snapshot: IncidentSnapshot,
    parameters: dict[str, Any] | None = None,
    portal_url: str = "",
) -> dict[str, Any]:
    """
    Build the template context for an incident.

    Action parameters are merged last, so they can add keys such as
    escalation_reason or override the incident values.

    Args:
        snapshot: Incident the notification is about.
        parameters: Action parameters.
        portal_url: Base URL of the incident portal.

    Returns:
        Dictionary of placeholder values.
    """
    base = portal_url.rstrip("/")
    context: dict[str, Any] = {
        "incident_id": snapshot.incident_id,
        "incident_title": snapshot.title,
        "incident_description": snapshot.description,
        "incident_severity": snapshot.severity.value,
        "incident_status": snapshot.status.value,
        "incident_location": snapshot.location or "Unknown",
        "incident_department": snapshot.department or "Unknown",
        "incident_created_at": snapshot.created_at.isoformat(),
        "incident_occurred_at": snapshot.occurred_at.isoformat(),
        "reporter_name": snapshot.reporter_name or snapshot.reporter_id,
        "investigator_id": snapshot.investigator_id or "",
        "open_corrective_actions": snapshot.open_corrective_actions,
        "escalation_reason": "",
        "url": f"{base}/incidents/{snapshot.incident_id}" if base else snapshot.incident_id,
    }
    for key, value in (parameters or {}).items():
        context[str(key)] = value
    return context


class TemplateRegistry:
    """
    Registry of notification templates.

    Starts with the default incident templates. Custom templates replace
    defaults with the same id.

    Example:
        Rendering a template::

            registry = TemplateRegistry()
            message = registry.render("incident_created", build_context(snapshot))
    """

    def __init__(self, templates: list[NotificationTemplate] | None = None) -> None:
        """
        Initialize the registry.

        Args:
            templates: Extra templates registered after the defaults.
        """
        self._lock = threading.RLock()
        self._templates: dict[str, NotificationTemplate] = {
            t.template_id: t for t in DEFAULT_TEMPLATES
        }
        for template in templates or []:
            self.register(template)

    def register(self, template: NotificationTemplate) -> None:
        """
        Register or replace a template.

        Raises:
            ValidationError: If the template has no id or bad syntax.
        """
        if not template.template_id:
            raise ValidationError("Template has no id")
        template.check_syntax()
        with self._lock:
            self._templates[template.template_id] = template

    def has(self, template_id: str) -> bool:
        """Check if a template is registered."""
        with self._lock:
            return template_id in self._templates

    def get(self, template_id: str) -> NotificationTemplate:
        """
        Get a template by id.

        Raises:
            ValidationError: If the template is not registered.
        """
        with self._lock:
            template = self._templates.get(template_id)
        if template is None:
            raise ValidationError(
                f"Unknown template: {template_id}",
                {"template_id": template_id},
            )
        return template

    def list_ids(self) -> list[str]:
        """List registered template ids."""
        with self._lock:
            return sorted(self._templates)

    def default_for(
        self,
        action_type: EscalationActionType,
        snapshot: IncidentSnapshot | None = None,
    ) -> str:
        """
        Template used when an action does not name one.

        Plain notify actions use the critical template for critical and
        emergency incidents.
        """
        if action_type in _DEFAULT_FOR_ACTION:
            return _DEFAULT_FOR_ACTION[action_type]
        if snapshot is not None and snapshot.severity >= IncidentSeverity.CRITICAL:
            return INCIDENT_CRITICAL
        return INCIDENT_CREATED

    def render(self, template_id: str, context: dict[str, Any]) -> RenderedMessage:
        """Render a template into a subject and body."""
        template = self.get(template_id)
        return RenderedMessage(
            template_id=template_id,
            subject=template.render_subject(context),
            body=template.render_body(context),
            context=context,
        )
