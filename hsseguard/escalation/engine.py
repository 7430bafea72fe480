"""
Escalation engine for HSSEGuard.

The EscalationEngine turns incident events into escalation actions. For
each triggering event it matches the active rules against a snapshot of
the incident, claims a dedup key for every action, and dispatches the
actions through the gateway in rule priority order, retrying failures
with backoff. Every attempt lands in the audit trail.

Evaluation of one incident is serialized by a per-incident lock; the lock
only covers matching and claiming, never the gateway call.
"""

import hashlib
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Iterable

from hsseguard.audit.models import (
    EscalationHistoryEntry,
    NotificationDeliveryStatus,
    NotificationHistoryEntry,
)
from hsseguard.audit.trail import AuditTrail
from hsseguard.escalation.gateway import DispatchGateway, DispatchRequest, DispatchResult
from hsseguard.escalation.matcher import RuleMatcher, reference_time
from hsseguard.escalation.parser import parse_enum
from hsseguard.escalation.rules import (
    EscalationAction,
    EscalationActionType,
    EscalationRule,
    NotificationChannel,
    NotificationPriority,
    default_channels,
)
from hsseguard.escalation.scheduler import ActionScheduler, ScheduledAction
from hsseguard.escalation.store import RuleStore
from hsseguard.escalation.templates import TemplateRegistry, build_context
from hsseguard.exceptions import (
    DuplicateDispatchError,
    HSSEGuardError,
    ValidationError,
)
from hsseguard.incidents.aggregate import Incident, IncidentSnapshot
from hsseguard.incidents.events import IncidentEvent, IncidentEventType
from hsseguard.incidents.models import IncidentSeverity
from hsseguard.models.base import generate_uuid, utc_now

logger = logging.getLogger("hsseguard.escalation.engine")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry with exponential backoff for gateway calls.

    Attributes:
        max_attempts: Attempts per action, including the first one.
        initial_backoff_seconds: Wait after the first failed attempt.
        backoff_multiplier: Factor applied to the wait after each failure.
        max_backoff_seconds: Upper bound for a single wait.
    """

    max_attempts: int = 3
    initial_backoff_seconds: float = 1.0
    backoff_multiplier: float = 2.0
    max_backoff_seconds: float = 30.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValidationError("max_attempts must be at least 1")
        if self.initial_backoff_seconds < 0 or self.max_backoff_seconds < 0:
            raise ValidationError("Backoff must not be negative")
        if self.backoff_multiplier < 1:
            raise ValidationError("backoff_multiplier must be at least 1")

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given failed attempt (1-based)."""
        delay = self.initial_backoff_seconds * (self.backoff_multiplier ** (attempt - 1))
        return min(delay, self.max_backoff_seconds)


class OutcomeStatus(Enum):
    """What happened to one escalation action in an evaluation."""

    DISPATCHED = "DISPATCHED"
    """The gateway performed the action."""

    FAILED = "FAILED"
    """Every attempt failed. The claim is left FAILED for manual follow-up."""

    SCHEDULED = "SCHEDULED"
    """The action was queued until its delay elapses."""

    SKIPPED_DUPLICATE = "SKIPPED_DUPLICATE"
    """The dedup key was already claimed by an earlier evaluation."""


@dataclass(frozen=True)
class DispatchOutcome:
    """
    Result of one escalation action in an evaluation pass.

    Attributes:
        rule_id: ID of the rule.
        rule_name: Name of the rule.
        action_index: Position of the action in the rule.
        action_type: Type of the action.
        target: Target of the action.
        status: What happened to the action.
        dedup_key: Dedup key the action was claimed under.
        attempts: Number of gateway calls made.
        error: Last error for failed actions.
        notification_id: Notification history id for notify-type actions.
        scheduled_for: Due time for scheduled actions.
    """

    rule_id: str
    rule_name: str
    action_index: int
    action_type: EscalationActionType
    target: str
    status: OutcomeStatus
    dedup_key: str
    attempts: int = 0
    error: str | None = None
    notification_id: str | None = None
    scheduled_for: datetime | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == OutcomeStatus.DISPATCHED


@dataclass(frozen=True)
class _PlannedAction:
    """An action selected and claimed under the incident lock."""

    rule: EscalationRule
    action_index: int
    action: EscalationAction
    incident: IncidentSnapshot
    event: IncidentEvent
    dedup_key: str
    context: dict[str, Any] = field(default_factory=dict)

    def outcome(self, status: OutcomeStatus, **kwargs: Any) -> DispatchOutcome:
        return DispatchOutcome(
            rule_id=self.rule.rule_id,
            rule_name=self.rule.name,
            action_index=self.action_index,
            action_type=self.action.action_type,
            target=self.action.target,
            status=status,
            dedup_key=self.dedup_key,
            **kwargs,
        )


def dedup_key(
    rule: EscalationRule,
    action_index: int,
    incident: IncidentSnapshot,
    event: IncidentEvent,
) -> str:
    """
    Compute the dedup key of one action for one incident state.

    The key includes the incident's state version, so every status or
    severity change (including a return to an earlier state) can trigger
    the same rule again. Duration rules fire once per state and reference
    timestamp, whichever event first notices the elapsed time.
    """
    identity = event.trigger_identity
    if (
        rule.trigger.is_time_based
        and event.event_type != IncidentEventType.MANUAL_ESCALATION
    ):
        reference = reference_time(incident, rule.trigger.duration_reference)
        identity = f"{IncidentEventType.DURATION_CHECK.value}:{reference.isoformat()}"
    raw = "|".join(
        [
            rule.rule_id,
            str(action_index),
            incident.incident_id,
            identity,
            incident.status.value,
            incident.severity.value,
            str(incident.state_version),
        ]
    )
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def notification_priority(
    action: EscalationAction,
    incident: IncidentSnapshot,
) -> NotificationPriority:
    """Priority of a notification, from the action and the incident severity."""
    override = action.parameters.get("priority")
    if override:
        return parse_enum(NotificationPriority, override)
    if (
        action.action_type == EscalationActionType.SEND_EMERGENCY_ALERT
        or incident.severity >= IncidentSeverity.CRITICAL
    ):
        return NotificationPriority.URGENT
    if incident.severity >= IncidentSeverity.MAJOR:
        return NotificationPriority.HIGH
    return NotificationPriority.NORMAL


Clock = Callable[[], datetime]
Sleep = Callable[[float], None]


class EscalationEngine:
    """
    Matches escalation rules to incident events and dispatches their actions.

    The engine is safe to share between threads. Evaluations of different
    incidents run in parallel; evaluations of one incident are serialized.
    Repeated evaluation of the same incident state never dispatches an
    action twice.

    Example:
        Evaluating the events of an incident operation::

            engine = EscalationEngine(store, gateway, AuditTrail(db))
            incident, events = Incident.create("Gas leak", "...", "u-1",
                                               severity=IncidentSeverity.CRITICAL)
            for outcome in engine.process_events(incident, events):
                print(outcome.rule_name, outcome.status.value)
    """

    def __init__(
        self,
        rule_store: RuleStore,
        gateway: DispatchGateway,
        audit: AuditTrail,
        templates: TemplateRegistry | None = None,
        matcher: RuleMatcher | None = None,
        retry_policy: RetryPolicy | None = None,
        scheduler: ActionScheduler | None = None,
        executed_by: str = "system",
        default_channel: NotificationChannel = NotificationChannel.LOG,
        portal_url: str = "",
        sweep_workers: int = 4,
        clock: Clock | None = None,
        sleep: Sleep | None = None,
    ) -> None:
        """
        Initialize the engine.

        Args:
            rule_store: Source of escalation rules.
            gateway: Gateway performing the actions.
            audit: Audit trail receiving history and dedup claims.
            templates: Templates for notification messages.
            matcher: Rule matcher.
            retry_policy: Retry policy for gateway calls.
            scheduler: Queue for delayed actions.
            executed_by: Name recorded as executor of automatic actions.
            default_channel: Channel for actions that list none.
            portal_url: Base URL used for links in messages.
            sweep_workers: Threads used by sweep().
            clock: Returns the current time.
            sleep: Waits between retries.
        """
        self.rule_store = rule_store
        self.gateway = gateway
        self.audit = audit
        self.templates = templates or TemplateRegistry()
        self.matcher = matcher or RuleMatcher()
        self.retry_policy = retry_policy or RetryPolicy()
        self.scheduler = scheduler or ActionScheduler()
        self.executed_by = executed_by
        self.default_channel = default_channel
        self.portal_url = portal_url
        self.sweep_workers = max(1, sweep_workers)
        self._clock = clock or utc_now
        self._sleep = sleep or time.sleep
        self._incident_locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @classmethod
    def from_config(
        cls,
        config: Any,
        rule_store: RuleStore,
        gateway: DispatchGateway,
        audit: AuditTrail,
        **kwargs: Any,
    ) -> "EscalationEngine":
        """Build an engine from an HSSEGuardConfig."""
        escalation = config.escalation
        retry = RetryPolicy(
            max_attempts=escalation.max_dispatch_attempts,
            initial_backoff_seconds=escalation.initial_backoff_seconds,
            backoff_multiplier=escalation.backoff_multiplier,
            max_backoff_seconds=escalation.max_backoff_seconds,
        )
        return cls(
            rule_store,
            gateway,
            audit,
            retry_policy=retry,
            executed_by=escalation.executed_by,
            default_channel=parse_enum(
                NotificationChannel, config.notifications.default_channel
            ),
            portal_url=config.notifications.portal_url,
            sweep_workers=escalation.sweep_workers,
            **kwargs,
        )

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    def match(
        self,
        incident: Incident | IncidentSnapshot,
        now: datetime | None = None,
    ) -> list[EscalationRule]:
        """List the active rules matching an incident, without side effects."""
        snapshot = self._snapshot(incident)
        return self.matcher.match(
            self.rule_store.get_active_rules(),
            snapshot,
            now or self._clock(),
        )

    def evaluate(
        self,
        incident: Incident | IncidentSnapshot,
        event: IncidentEvent,
    ) -> list[DispatchOutcome]:
        """
        Evaluate the escalation rules for one incident event.

        Args:
            incident: Incident the event belongs to, in its current state.
            event: Event that triggered the evaluation.

        Returns:
            One outcome per matched action, in rule priority order, then
            action order. Empty for events that do not trigger escalation.

        Raises:
            ValidationError: If the event belongs to another incident.
        """
        incident_id = incident.incident_id
        if event.incident_id != incident_id:
            raise ValidationError(
                f"Event {event.event_id} belongs to incident {event.incident_id}, "
                f"not {incident_id}",
                {"event_id": event.event_id},
            )
        if not event.is_trigger:
            logger.debug(
                "Event %s on incident %s does not trigger escalation",
                event.event_type.value,
                incident_id,
            )
            return []

        now = self._clock()
        with self._lock_for(incident_id):
            snapshot = self._snapshot(incident)
            plan = self._plan(snapshot, event, now)

        outcomes = [
            self._dispatch(item) if isinstance(item, _PlannedAction) else item
            for item in plan
        ]
        self._log_summary(incident_id, event, outcomes)
        return outcomes

    def process_events(
        self,
        incident: Incident | IncidentSnapshot,
        events: Iterable[IncidentEvent],
    ) -> list[DispatchOutcome]:
        """Evaluate every event returned by an incident operation, in order."""
        outcomes: list[DispatchOutcome] = []
        for event in events:
            outcomes.extend(self.evaluate(incident, event))
        return outcomes

    def escalate_manually(
        self,
        incident: Incident | IncidentSnapshot,
        reason: str,
        escalated_by: str,
    ) -> list[DispatchOutcome]:
        """
        Escalate an incident by hand.

        Matching rules fire even if they already fired for the current
        state. The reason is available to templates as escalation_reason.

        Raises:
            ValidationError: If the reason or the escalating user is blank.
        """
        if not reason or not reason.strip():
            raise ValidationError("Escalation reason is required")
        if not escalated_by or not escalated_by.strip():
            raise ValidationError("Escalating user is required")
        event = IncidentEvent(
            event_type=IncidentEventType.MANUAL_ESCALATION,
            incident_id=incident.incident_id,
            occurred_at=self._clock(),
            actor=escalated_by,
            metadata={"reason": reason.strip()},
        )
        logger.info(
            "Incident %s manually escalated by %s: %s",
            incident.incident_id,
            escalated_by,
            reason.strip(),
        )
        return self.evaluate(incident, event)

    def sweep(self, incidents: Iterable[Incident]) -> list[DispatchOutcome]:
        """
        Run the time-based checks for open incidents.

        Flags overdue corrective actions, evaluates the duration rules of
        every open incident and then dispatches scheduled actions that
        have become due. A failure on one incident is logged and does not
        stop the others.

        Returns:
            Outcomes of all evaluations, in the order incidents were given,
            followed by the outcomes of due scheduled actions.
        """
        now = self._clock()
        candidates = [i for i in incidents if i.is_open()]

        outcomes: list[DispatchOutcome] = []
        if candidates:
            with ThreadPoolExecutor(
                max_workers=min(self.sweep_workers, len(candidates)),
                thread_name_prefix="hsseguard-sweep",
            ) as pool:
                results = list(pool.map(lambda i: self._sweep_incident(i, now), candidates))
            for result in results:
                outcomes.extend(result)

        outcomes.extend(self.run_due_actions(now))
        logger.info(
            "Sweep at %s: %d open incident(s), %d outcome(s)",
            now.isoformat(),
            len(candidates),
            len(outcomes),
        )
        return outcomes

    def run_due_actions(self, now: datetime | None = None) -> list[DispatchOutcome]:
        """Dispatch every scheduled action whose delay has elapsed."""
        due = self.scheduler.pop_due(now or self._clock())
        return [self._dispatch(entry.payload) for entry in due]

    def record_delivery(
        self,
        notification_id: str,
        status: NotificationDeliveryStatus,
        error_message: str | None = None,
    ) -> NotificationHistoryEntry:
        """
        Record a delivery report from the gateway.

        Raises:
            ValidationError: If the status is not a delivery report.
            InvalidTransitionError: If the notification cannot move there.
        """
        if status not in (
            NotificationDeliveryStatus.DELIVERED,
            NotificationDeliveryStatus.READ,
            NotificationDeliveryStatus.FAILED,
        ):
            raise ValidationError(
                f"Not a delivery report status: {status.value}",
                {"notification_id": notification_id},
            )
        return self.audit.transition_notification(
            notification_id,
            status,
            error_message=error_message,
            at=self._clock(),
        )

    def pending_actions(self, incident_id: str | None = None) -> list[ScheduledAction]:
        """List scheduled actions that are not due yet."""
        return self.scheduler.pending(incident_id)

    # -------------------------------------------------------------------------
    # Planning
    # -------------------------------------------------------------------------

    def _plan(
        self,
        snapshot: IncidentSnapshot,
        event: IncidentEvent,
        now: datetime,
    ) -> list[_PlannedAction | DispatchOutcome]:
        rules = self.matcher.match(self.rule_store.get_active_rules(), snapshot, now)
        if event.event_type == IncidentEventType.DURATION_CHECK:
            rules = [rule for rule in rules if rule.trigger.is_time_based]
        context = self._event_context(event)
        plan: list[_PlannedAction | DispatchOutcome] = []

        for rule in rules:
            offset = timedelta(0)
            deferred = False
            for index, action in enumerate(rule.actions):
                planned = _PlannedAction(
                    rule=rule,
                    action_index=index,
                    action=action,
                    incident=snapshot,
                    event=event,
                    dedup_key=dedup_key(rule, index, snapshot, event),
                    context=context,
                )
                if action.is_delayed:
                    offset += action.delay
                    deferred = True

                try:
                    self._claim(planned, now)
                except DuplicateDispatchError:
                    logger.debug(
                        "Skipping duplicate %s action %d for incident %s",
                        rule.name,
                        index,
                        snapshot.incident_id,
                    )
                    plan.append(planned.outcome(OutcomeStatus.SKIPPED_DUPLICATE))
                    continue

                if deferred:
                    entry = self.scheduler.schedule(
                        now + offset,
                        snapshot.incident_id,
                        planned.dedup_key,
                        planned,
                    )
                    plan.append(
                        planned.outcome(OutcomeStatus.SCHEDULED, scheduled_for=entry.due_at)
                    )
                else:
                    plan.append(planned)
        return plan

    def _claim(self, planned: _PlannedAction, now: datetime) -> None:
        claimed = self.audit.claim(
            planned.dedup_key,
            planned.incident.incident_id,
            planned.rule.rule_id,
            planned.action_index,
            at=now,
        )
        if not claimed:
            raise DuplicateDispatchError(
                "Action already claimed",
                {"dedup_key": planned.dedup_key},
            )

    def _event_context(self, event: IncidentEvent) -> dict[str, Any]:
        context: dict[str, Any] = {"trigger_event": event.event_type.value}
        if event.event_type == IncidentEventType.MANUAL_ESCALATION:
            context["escalation_reason"] = event.metadata.get("reason", "")
            context["escalated_by"] = event.actor or ""
        return context

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    def _dispatch(self, planned: _PlannedAction) -> DispatchOutcome:
        action = planned.action
        try:
            request = self._build_request(planned)
        except HSSEGuardError as e:
            return self._give_up(planned, None, 1, str(e))
        except Exception as e:
            logger.exception(
                "Building the request for %s(%s) failed", action.action_type.value, action.target
            )
            return self._give_up(planned, None, 1, f"{type(e).__name__}: {e}")

        notification_id = request.notification_id
        last_error: str | None = None
        max_attempts = self.retry_policy.max_attempts

        for attempt in range(1, max_attempts + 1):
            result = self._call_gateway(replace(request, attempt=attempt))
            self._record_attempt(planned, attempt, result)

            if result.success:
                if notification_id:
                    self.audit.transition_notification(
                        notification_id,
                        NotificationDeliveryStatus.SENT,
                        at=self._clock(),
                    )
                self.audit.finish_claim(planned.dedup_key, True, attempt, at=self._clock())
                logger.info(
                    "Dispatched %s(%s) for incident %s (rule '%s', attempt %d)",
                    action.action_type.value,
                    action.target,
                    planned.incident.incident_id,
                    planned.rule.name,
                    attempt,
                )
                return planned.outcome(
                    OutcomeStatus.DISPATCHED,
                    attempts=attempt,
                    notification_id=notification_id,
                )

            last_error = result.error or "Dispatch failed"
            if notification_id:
                self.audit.transition_notification(
                    notification_id,
                    NotificationDeliveryStatus.FAILED,
                    error_message=last_error,
                    at=self._clock(),
                )
            logger.warning(
                "Attempt %d/%d of %s(%s) for incident %s failed: %s",
                attempt,
                max_attempts,
                action.action_type.value,
                action.target,
                planned.incident.incident_id,
                last_error,
            )
            if attempt < max_attempts:
                self._sleep(self.retry_policy.delay_for(attempt))

        self.audit.finish_claim(
            planned.dedup_key, False, max_attempts, last_error, at=self._clock()
        )
        logger.warning(
            "Giving up on %s(%s) for incident %s after %d attempt(s)",
            action.action_type.value,
            action.target,
            planned.incident.incident_id,
            max_attempts,
        )
        return planned.outcome(
            OutcomeStatus.FAILED,
            attempts=max_attempts,
            error=last_error,
            notification_id=notification_id,
        )

    def _build_request(self, planned: _PlannedAction) -> DispatchRequest:
        action = planned.action
        snapshot = planned.incident
        channels = action.channels or default_channels(action.action_type) or (
            self.default_channel,
        )
        priority = notification_priority(action, snapshot)
        request = DispatchRequest(
            action=action,
            incident=snapshot,
            rule_id=planned.rule.rule_id,
            rule_name=planned.rule.name,
            channels=channels,
            priority=priority,
        )
        if not action.action_type.is_notification:
            return request

        template_id = action.template_id or self.templates.default_for(
            action.action_type, snapshot
        )
        parameters = {**action.parameters, **planned.context}
        if not planned.context.get("escalation_reason"):
            parameters.setdefault("escalation_reason", planned.rule.description or planned.rule.name)
        message = self.templates.render(
            template_id,
            build_context(snapshot, parameters, self.portal_url),
        )
        notification = self.audit.open_notification(
            NotificationHistoryEntry(
                incident_id=snapshot.incident_id,
                recipient_id=action.target,
                recipient_type=action.action_type.recipient_type,
                channel=",".join(c.value for c in channels),
                priority=priority.value,
                subject=message.subject,
                content=message.body,
                template_id=template_id,
                rule_id=planned.rule.rule_id,
                dedup_key=planned.dedup_key,
                created_at=self._clock(),
                metadata={
                    "rule_name": planned.rule.name,
                    "action_index": planned.action_index,
                    "trigger_event": planned.event.event_type.value,
                },
            )
        )
        return replace(
            request,
            subject=message.subject,
            body=message.body,
            notification_id=notification.notification_id,
        )

    def _call_gateway(self, request: DispatchRequest) -> DispatchResult:
        try:
            result = self.gateway.dispatch(request)
        except Exception as e:
            logger.debug("Gateway raised for incident %s", request.incident.incident_id, exc_info=True)
            return DispatchResult.failed(f"{type(e).__name__}: {e}")
        if result is None:
            return DispatchResult.failed("Gateway returned no result")
        return result

    def _record_attempt(
        self,
        planned: _PlannedAction,
        attempt: int,
        result: DispatchResult,
    ) -> None:
        metadata: dict[str, Any] = {}
        if result.recipients:
            metadata["recipients"] = list(result.recipients)
        if planned.event.event_type == IncidentEventType.MANUAL_ESCALATION:
            metadata["reason"] = planned.event.metadata.get("reason", "")
        self.audit.record_escalation(
            EscalationHistoryEntry(
                incident_id=planned.incident.incident_id,
                rule_id=planned.rule.rule_id,
                rule_name=planned.rule.name,
                action_type=planned.action.action_type.value,
                action_target=planned.action.target,
                success=result.success,
                executed_by=self._executor(planned.event),
                executed_at=self._clock(),
                action_index=planned.action_index,
                attempt=attempt,
                error_message=None if result.success else (result.error or "Dispatch failed"),
                trigger_event=planned.event.event_type.value,
                dedup_key=planned.dedup_key,
                entry_id=generate_uuid(),
                metadata=metadata,
            )
        )

    def _give_up(
        self,
        planned: _PlannedAction,
        notification_id: str | None,
        attempts: int,
        error: str,
    ) -> DispatchOutcome:
        self._record_attempt(planned, attempts, DispatchResult.failed(error))
        self.audit.finish_claim(planned.dedup_key, False, attempts, error, at=self._clock())
        logger.warning(
            "Cannot dispatch %s(%s) for incident %s: %s",
            planned.action.action_type.value,
            planned.action.target,
            planned.incident.incident_id,
            error,
        )
        return planned.outcome(
            OutcomeStatus.FAILED,
            attempts=attempts,
            error=error,
            notification_id=notification_id,
        )

    # -------------------------------------------------------------------------
    # Private Methods
    # -------------------------------------------------------------------------

    def _sweep_incident(self, incident: Incident, now: datetime) -> list[DispatchOutcome]:
        try:
            with self._lock_for(incident.incident_id):
                events = incident.refresh_overdue_actions(now)
            events.append(
                IncidentEvent(
                    event_type=IncidentEventType.DURATION_CHECK,
                    incident_id=incident.incident_id,
                    occurred_at=now,
                    actor=self.executed_by,
                )
            )
            return self.process_events(incident, events)
        except Exception:
            logger.exception("Sweep failed for incident %s", incident.incident_id)
            return []

    def _lock_for(self, incident_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._incident_locks.get(incident_id)
            if lock is None:
                lock = threading.Lock()
                self._incident_locks[incident_id] = lock
            return lock

    def _executor(self, event: IncidentEvent) -> str:
        if event.event_type == IncidentEventType.MANUAL_ESCALATION and event.actor:
            return event.actor
        return self.executed_by

    @staticmethod
    def _snapshot(incident: Incident | IncidentSnapshot) -> IncidentSnapshot:
        if isinstance(incident, IncidentSnapshot):
            return incident
        return incident.snapshot()

    def _log_summary(
        self,
        incident_id: str,
        event: IncidentEvent,
        outcomes: list[DispatchOutcome],
    ) -> None:
        counts = {status: 0 for status in OutcomeStatus}
        for outcome in outcomes:
            counts[outcome.status] += 1
        logger.info(
            "Incident %s %s: %d action(s), %d dispatched, %d failed, %d scheduled, "
            "%d duplicate",
            incident_id,
            event.event_type.value,
            len(outcomes),
            counts[OutcomeStatus.DISPATCHED],
            counts[OutcomeStatus.FAILED],
            counts[OutcomeStatus.SCHEDULED],
            counts[OutcomeStatus.SKIPPED_DUPLICATE],
        )
