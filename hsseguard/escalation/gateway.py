"""
Dispatch gateways for HSSEGuard escalations.

The escalation engine hands every action to a DispatchGateway and treats
it as a fallible, possibly slow black box. NotificationGateway is the
bundled implementation: it resolves recipients, delivers notifications by
email, webhook or log, and delegates workflow actions to the host
application.
"""

import json
import logging
import smtplib
import threading
import urllib.request
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable

from hsseguard.escalation.rules import (
    EscalationAction,
    EscalationActionType,
    NotificationChannel,
    NotificationPriority,
    WORKFLOW_ACTION_TYPES,
)
from hsseguard.exceptions import DispatchError
from hsseguard.incidents.aggregate import IncidentSnapshot
from hsseguard.models.base import utc_now

logger = logging.getLogger("hsseguard.escalation.gateway")


@dataclass(frozen=True)
class DispatchRequest:
    """
    Everything a gateway needs to perform one escalation action.

    Attributes:
        action: The action to perform.
        incident: Snapshot of the incident taken when the rule matched.
        rule_id: ID of the rule the action belongs to.
        rule_name: Name of the rule.
        channels: Channels to notify on, already defaulted.
        priority: Notification priority.
        subject: Rendered subject for notify-type actions.
        body: Rendered body for notify-type actions.
        notification_id: Notification history id for notify-type actions.
        attempt: 1-based attempt number.
    """

    action: EscalationAction
    incident: IncidentSnapshot
    rule_id: str | None
    rule_name: str
    channels: tuple[NotificationChannel, ...] = ()
    priority: NotificationPriority = NotificationPriority.NORMAL
    subject: str = ""
    body: str = ""
    notification_id: str | None = None
    attempt: int = 1


@dataclass
class DispatchResult:
    """
    Outcome of one gateway call.

    Attributes:
        success: Whether the action was performed.
        error: Error description when it was not.
        recipients: Recipients the action reached.
        details: Transport-specific details.
    """

    success: bool
    error: str | None = None
    recipients: list[str] = field(default_factory=list)
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, recipients: list[str] | None = None, **details: Any) -> "DispatchResult":
        """Build a successful result."""
        return cls(success=True, recipients=list(recipients or []), details=details)

    @classmethod
    def failed(cls, error: str, **details: Any) -> "DispatchResult":
        """Build a failed result."""
        return cls(success=False, error=error, details=details)


class DispatchGateway(ABC):
    """
    Performs the side effect of an escalation action.

    Implementations may either return a failed DispatchResult or raise;
    the engine records both as a failed attempt and retries per policy.
    """

    @abstractmethod
    def dispatch(self, request: DispatchRequest) -> DispatchResult:
        """Perform the action described by the request."""


@dataclass(frozen=True)
class Recipient:
    """
    A person or mailbox that can receive notifications.

    Attributes:
        recipient_id: Identifier used in rules and history.
        name: Display name.
        email: Email address.
        phone: Phone number for SMS and WhatsApp.
        metadata: Additional contact data, e.g. a push token.
    """

    recipient_id: str
    name: str = ""
    email: str = ""
    phone: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)


class RecipientDirectory:
    """
    Resolves escalation targets to recipients.

    Roles cover named groups such as "emergency_team" or
    "regulatory_team". Managers are keyed by department; an
    ESCALATE_TO_MANAGER action uses the incident's department first and
    falls back to the role named by its target.
    """

    def __init__(
        self,
        recipients: list[Recipient] | None = None,
        roles: dict[str, list[str]] | None = None,
        departments: dict[str, list[str]] | None = None,
        managers: dict[str, list[str]] | None = None,
    ) -> None:
        self._recipients = {r.recipient_id: r for r in recipients or []}
        self._roles = {k.lower(): list(v) for k, v in (roles or {}).items()}
        self._departments = {k.lower(): list(v) for k, v in (departments or {}).items()}
        self._managers = {k.lower(): list(v) for k, v in (managers or {}).items()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RecipientDirectory":
        """
        Build a directory from a mapping such as a parsed YAML file.

        Expected keys: recipients (list of mappings with an "id"), roles,
        departments and managers (mappings of name to recipient ids).
        """
        recipients = [
            Recipient(
                recipient_id=str(item["id"]),
                name=item.get("name", ""),
                email=item.get("email", ""),
                phone=item.get("phone", ""),
                metadata=item.get("metadata", {}) or {},
            )
            for item in data.get("recipients", []) or []
        ]
        return cls(
            recipients=recipients,
            roles=data.get("roles"),
            departments=data.get("departments"),
            managers=data.get("managers"),
        )

    def get(self, recipient_id: str) -> Recipient:
        """Get a recipient, or a bare one if the id is not registered."""
        return self._recipients.get(recipient_id, Recipient(recipient_id=recipient_id))

    def knows(self, action_type: EscalationActionType, target: str) -> bool:
        """Check if a target can be resolved for an action type."""
        key = target.lower()
        if action_type == EscalationActionType.NOTIFY_USER:
            return target in self._recipients
        if action_type == EscalationActionType.NOTIFY_DEPARTMENT:
            return key in self._departments
        if action_type == EscalationActionType.ESCALATE_TO_MANAGER:
            return key in self._roles or bool(self._managers)
        if action_type in (
            EscalationActionType.NOTIFY_ROLE,
            EscalationActionType.SEND_EMERGENCY_ALERT,
            EscalationActionType.SEND_REGULATORY,
        ):
            return key in self._roles
        return True

    def resolve(self, action: EscalationAction, incident: IncidentSnapshot) -> list[Recipient]:
        """
        Resolve the recipients of a notify-type action.

        Raises:
            DispatchError: If nobody can be resolved.
        """
        action_type = action.action_type
        key = action.target.lower()

        if action_type == EscalationActionType.NOTIFY_USER:
            ids = [action.target]
        elif action_type == EscalationActionType.NOTIFY_EXTERNAL:
            return [Recipient(recipient_id=action.target, email=action.target)]
        elif action_type == EscalationActionType.NOTIFY_DEPARTMENT:
            ids = self._departments.get(key, [])
        elif action_type == EscalationActionType.ESCALATE_TO_MANAGER:
            ids = self._managers.get(incident.department.lower(), []) or self._roles.get(key, [])
        else:
            ids = self._roles.get(key, [])

        if not ids:
            raise DispatchError(
                f"No recipients for {action_type.value} {action.target}",
                {"target": action.target, "incident_id": incident.incident_id},
            )
        return [self.get(recipient_id) for recipient_id in ids]


@dataclass
class SMTPSettings:
    """SMTP settings for email delivery."""

    host: str = "localhost"
    port: int = 25
    username: str = ""
    password: str = ""
    use_tls: bool = False
    use_ssl: bool = False
    from_address: str = "hsse@example.com"
    from_name: str = "HSSEGuard"


# Delivers one notification to one recipient on one channel; raises on failure
ChannelSender = Callable[[Recipient, DispatchRequest], None]

# Performs a workflow action in the host application; raises on failure
WorkflowHandler = Callable[[DispatchRequest], None]


class NotificationGateway(DispatchGateway):
    """
    Gateway that delivers notifications and delegates workflow actions.

    Email goes out over SMTP, webhooks are POSTed as JSON and the LOG
    channel writes to the hsseguard.escalation.gateway logger. SMS,
    WhatsApp and push need a sender registered with register_channel().

    A notification counts as sent when at least one delivery succeeded.
    Individual delivery failures are reported in the result details.

    Example:
        Logging gateway with a workflow handler::

            gateway = NotificationGateway(
                directory,
                workflow_handler=lambda request: apply_to_incident(request),
            )
    """

    def __init__(
        self,
        directory: RecipientDirectory,
        smtp: SMTPSettings | None = None,
        webhook_url: str = "",
        webhook_timeout: float = 30.0,
        workflow_handler: WorkflowHandler | None = None,
    ) -> None:
        """
        Initialize the gateway.

        Args:
            directory: Directory used to resolve targets.
            smtp: SMTP settings for the EMAIL channel.
            webhook_url: Endpoint for the WEBHOOK channel.
            webhook_timeout: Webhook timeout in seconds.
            workflow_handler: Callable performing CHANGE_STATUS,
                ASSIGN_INVESTIGATOR and CREATE_TASK actions.
        """
        self.directory = directory
        self._smtp = smtp or SMTPSettings()
        self._webhook_url = webhook_url
        self._webhook_timeout = webhook_timeout
        self._workflow_handler = workflow_handler
        self._senders: dict[NotificationChannel, ChannelSender] = {
            NotificationChannel.EMAIL: self._send_email,
            NotificationChannel.WEBHOOK: self._send_webhook,
            NotificationChannel.LOG: self._send_log,
        }
        self._lock = threading.Lock()

    def register_channel(self, channel: NotificationChannel, sender: ChannelSender) -> None:
        """Register or replace the sender for a channel."""
        with self._lock:
            self._senders[channel] = sender

    def dispatch(self, request: DispatchRequest) -> DispatchResult:
        """
        Perform an escalation action.

        Raises:
            DispatchError: If the action cannot be performed at all.
        """
        if request.action.action_type in WORKFLOW_ACTION_TYPES:
            return self._dispatch_workflow(request)
        return self._dispatch_notification(request)

    def _dispatch_workflow(self, request: DispatchRequest) -> DispatchResult:
        if self._workflow_handler is None:
            raise DispatchError(
                f"No workflow handler for {request.action.action_type.value}",
                {"incident_id": request.incident.incident_id},
            )
        self._workflow_handler(request)
        logger.info(
            "Workflow action %s(%s) performed for incident %s",
            request.action.action_type.value,
            request.action.target,
            request.incident.incident_id,
        )
        return DispatchResult.ok(workflow=request.action.action_type.value)

    def _dispatch_notification(self, request: DispatchRequest) -> DispatchResult:
        recipients = self.directory.resolve(request.action, request.incident)
        channels = request.channels or (NotificationChannel.LOG,)

        delivered: list[str] = []
        failures: list[str] = []
        for recipient in recipients:
            for channel in channels:
                with self._lock:
                    sender = self._senders.get(channel)
                if sender is None:
                    failures.append(f"{recipient.recipient_id}/{channel.value}: no transport")
                    continue
                try:
                    sender(recipient, request)
                except (DispatchError, smtplib.SMTPException, OSError) as e:
                    failures.append(f"{recipient.recipient_id}/{channel.value}: {e}")
                    continue
                delivered.append(f"{recipient.recipient_id}/{channel.value}")

        if not delivered:
            return DispatchResult.failed("; ".join(failures) or "No deliveries", failures=failures)
        if failures:
            logger.warning(
                "Notification %s partially delivered: %s",
                request.notification_id,
                "; ".join(failures),
            )
        return DispatchResult.ok(
            sorted({d.split("/", 1)[0] for d in delivered}),
            deliveries=delivered,
            failures=failures,
        )

    def _send_email(self, recipient: Recipient, request: DispatchRequest) -> None:
        if not recipient.email:
            raise DispatchError(f"No email address for {recipient.recipient_id}")

        headers = [
            f"From: {self._smtp.from_name} <{self._smtp.from_address}>",
            f"To: {recipient.email}",
            f"Subject: {request.subject}",
            "Content-Type: text/plain; charset=utf-8",
        ]
        if request.priority in (NotificationPriority.HIGH, NotificationPriority.URGENT):
            headers.append("X-Priority: 1")
        message = "\r\n".join(headers) + "\r\n\r\n" + request.body

        if self._smtp.use_ssl:
            server = smtplib.SMTP_SSL(self._smtp.host, self._smtp.port)
        else:
            server = smtplib.SMTP(self._smtp.host, self._smtp.port)
        try:
            if self._smtp.use_tls:
                server.starttls()
            if self._smtp.username and self._smtp.password:
                server.login(self._smtp.username, self._smtp.password)
            server.sendmail(self._smtp.from_address, [recipient.email], message.encode("utf-8"))
        finally:
            server.quit()

    def _send_webhook(self, recipient: Recipient, request: DispatchRequest) -> None:
        if not self._webhook_url:
            raise DispatchError("No webhook URL configured")

        payload = {
            "notification_id": request.notification_id,
            "incident_id": request.incident.incident_id,
            "rule": request.rule_name,
            "action": request.action.action_type.value,
            "recipient": recipient.recipient_id,
            "priority": request.priority.value,
            "subject": request.subject,
            "body": request.body,
            "timestamp": utc_now().isoformat(),
        }
        http_request = urllib.request.Request(
            self._webhook_url,
            data=json.dumps(payload).encode("utf-8"),
            headers={
                "Content-Type": "application/json",
                "User-Agent": "HSSEGuard/1.0",
            },
            method="POST",
        )
        with urllib.request.urlopen(http_request, timeout=self._webhook_timeout) as response:
            if response.status >= 400:
                raise DispatchError(f"Webhook returned status {response.status}")

    def _send_log(self, recipient: Recipient, request: DispatchRequest) -> None:
        logger.info(
            "[%s] to %s: %s",
            request.priority.value,
            recipient.recipient_id,
            request.subject,
        )


def build_gateway(
    directory: RecipientDirectory,
    config: Any,
    workflow_handler: WorkflowHandler | None = None,
) -> NotificationGateway:
    """
    Build a NotificationGateway from a NotificationConfig.

    Args:
        directory: Directory used to resolve targets.
        config: The notifications section of the configuration.
        workflow_handler: Host callable for workflow actions.
    """
    smtp = SMTPSettings(
        host=config.smtp_host,
        port=config.smtp_port,
        username=config.smtp_username,
        password=config.smtp_password,
        use_tls=config.smtp_use_tls,
        use_ssl=config.smtp_use_ssl,
        from_address=config.from_address,
        from_name=config.from_name,
    )
    return NotificationGateway(
        directory,
        smtp=smtp,
        webhook_url=config.webhook_url,
        webhook_timeout=config.webhook_timeout_seconds,
        workflow_handler=workflow_handler,
    )


