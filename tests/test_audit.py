"""
Tests for the audit trail.

This module tests escalation history ordering, notification status
transitions and the dedup claims the engine relies on.
"""

from datetime import timedelta

import pytest

from hsseguard.audit.models import (
    ClaimStatus,
    EscalationHistoryEntry,
    NotificationDeliveryStatus,
    NotificationHistoryEntry,
)
from hsseguard.audit.trail import AuditTrail
from hsseguard.exceptions import InvalidTransitionError, ValidationError
from hsseguard.storage.database import Database
from tests.helpers import NOW


def _escalation(incident_id: str = "inc-1", **kwargs) -> EscalationHistoryEntry:
    values = {
        "rule_id": "critical",
        "rule_name": "Critical escalation",
        "action_type": "NOTIFY_ROLE",
        "action_target": "hse_manager",
        "success": True,
        "executed_at": NOW,
    }
    values.update(kwargs)
    return EscalationHistoryEntry(incident_id=incident_id, **values)


def _notification(incident_id: str = "inc-1") -> NotificationHistoryEntry:
    return NotificationHistoryEntry(
        incident_id=incident_id,
        recipient_id="hse_manager",
        recipient_type="ROLE",
        channel="EMAIL",
        priority="URGENT",
        subject="[HSSE CRITICAL] Gas leak",
        content="Gas leak at compressor house",
        created_at=NOW,
        metadata={"rule_name": "Critical escalation"},
    )


# =============================================================================
# Escalation history
# =============================================================================


class TestEscalationHistory:
    """Tests for the append-only escalation history."""

    def test_record_assigns_sequence(self, audit: AuditTrail) -> None:
        """Test that entries get increasing sequence numbers."""
        first = audit.record_escalation(_escalation())
        second = audit.record_escalation(_escalation(rule_name="Regulatory"))

        assert first.sequence is not None
        assert second.sequence > first.sequence

    def test_history_in_insertion_order(self, audit: AuditTrail) -> None:
        """Test that history is returned in dispatch order, per incident."""
        audit.record_escalation(_escalation(rule_name="First"))
        audit.record_escalation(_escalation("inc-2", rule_name="Other incident"))
        audit.record_escalation(
            _escalation(rule_name="Second", executed_at=NOW - timedelta(minutes=5))
        )

        history = audit.escalations_for("inc-1")

        assert [e.rule_name for e in history] == ["First", "Second"]
        assert history[1].executed_at == NOW - timedelta(minutes=5)

    def test_round_trip_fields(self, audit: AuditTrail) -> None:
        """Test that every stored field is read back."""
        audit.record_escalation(
            _escalation(
                success=False,
                attempt=2,
                action_index=1,
                error_message="SMTP server unavailable",
                trigger_event="INCIDENT_CREATED",
                dedup_key="key-1",
                executed_by="u-9",
                metadata={"reason": "Regulator inquiry"},
            )
        )

        entry = audit.escalations_for("inc-1")[0]

        assert entry.success is False
        assert entry.attempt == 2
        assert entry.action_index == 1
        assert entry.error_message == "SMTP server unavailable"
        assert entry.trigger_event == "INCIDENT_CREATED"
        assert entry.executed_by == "u-9"
        assert entry.metadata == {"reason": "Regulator inquiry"}

    def test_attempts_for_key(self, audit: AuditTrail) -> None:
        """Test listing attempts under one dedup key."""
        audit.record_escalation(_escalation(dedup_key="key-1", attempt=1, success=False))
        audit.record_escalation(_escalation(dedup_key="key-2"))
        audit.record_escalation(_escalation(dedup_key="key-1", attempt=2))

        attempts = audit.attempts_for_key("key-1")

        assert [(a.attempt, a.success) for a in attempts] == [(1, False), (2, True)]

    def test_history_survives_reopen(self, db: Database, audit: AuditTrail) -> None:
        """Test that history is persisted in the database file."""
        audit.record_escalation(_escalation())
        db.close()

        reopened = Database(db.path)
        try:
            assert len(AuditTrail(reopened).escalations_for("inc-1")) == 1
        finally:
            reopened.close()


# =============================================================================
# Notification history
# =============================================================================


class TestNotificationHistory:
    """Tests for notification status transitions."""

    def test_open_is_pending(self, audit: AuditTrail) -> None:
        """Test that a new notification starts PENDING."""
        entry = audit.open_notification(_notification())

        assert entry.status == NotificationDeliveryStatus.PENDING
        assert entry.status_history == [NotificationDeliveryStatus.PENDING]
        assert entry.subject == "[HSSE CRITICAL] Gas leak"
        assert entry.metadata == {"rule_name": "Critical escalation"}

    def test_full_delivery_flow(self, audit: AuditTrail) -> None:
        """Test PENDING -> SENT -> DELIVERED -> READ with timestamps."""
        entry = audit.open_notification(_notification())
        nid = entry.notification_id

        audit.transition_notification(nid, NotificationDeliveryStatus.SENT, at=NOW)
        audit.transition_notification(
            nid, NotificationDeliveryStatus.DELIVERED, at=NOW + timedelta(seconds=30)
        )
        final = audit.transition_notification(
            nid, NotificationDeliveryStatus.READ, at=NOW + timedelta(minutes=4)
        )

        assert final.status_history == [
            NotificationDeliveryStatus.PENDING,
            NotificationDeliveryStatus.SENT,
            NotificationDeliveryStatus.DELIVERED,
            NotificationDeliveryStatus.READ,
        ]
        assert final.sent_at == NOW
        assert final.delivered_at == NOW + timedelta(seconds=30)
        assert final.read_at == NOW + timedelta(minutes=4)

    def test_failed_then_sent_on_retry(self, audit: AuditTrail) -> None:
        """Test that a failed notification can still be sent by a retry."""
        nid = audit.open_notification(_notification()).notification_id

        failed = audit.transition_notification(
            nid, NotificationDeliveryStatus.FAILED, error_message="timeout"
        )
        assert failed.error_message == "timeout"

        sent = audit.transition_notification(nid, NotificationDeliveryStatus.SENT)
        assert sent.status == NotificationDeliveryStatus.SENT
        assert sent.error_message is None

    @pytest.mark.parametrize(
        "path",
        [
            [NotificationDeliveryStatus.DELIVERED],
            [NotificationDeliveryStatus.READ],
            [NotificationDeliveryStatus.SENT, NotificationDeliveryStatus.PENDING],
            [
                NotificationDeliveryStatus.SENT,
                NotificationDeliveryStatus.READ,
                NotificationDeliveryStatus.DELIVERED,
            ],
        ],
    )
    def test_invalid_transitions(
        self, audit: AuditTrail, path: list[NotificationDeliveryStatus]
    ) -> None:
        """Test that the last step of each path is rejected."""
        nid = audit.open_notification(_notification()).notification_id
        for status in path[:-1]:
            audit.transition_notification(nid, status)

        with pytest.raises(InvalidTransitionError):
            audit.transition_notification(nid, path[-1])

        assert audit.get_notification(nid).status_history[-1] != path[-1]

    def test_unknown_notification(self, audit: AuditTrail) -> None:
        """Test transitions of notifications that do not exist."""
        assert audit.get_notification("missing") is None
        with pytest.raises(ValidationError):
            audit.transition_notification("missing", NotificationDeliveryStatus.SENT)

    def test_notifications_for_incident(self, audit: AuditTrail) -> None:
        """Test listing notifications per incident."""
        audit.open_notification(_notification())
        audit.open_notification(_notification("inc-2"))
        audit.open_notification(_notification())

        assert len(audit.notifications_for("inc-1")) == 2
        assert len(audit.notifications_for("inc-2")) == 1


# =============================================================================
# Dedup claims
# =============================================================================


class TestDispatchClaims:
    """Tests for dedup claims."""

    def test_claim_once(self, audit: AuditTrail) -> None:
        """Test that a key can only be claimed once."""
        assert audit.claim("key-1", "inc-1", "rule-1", 0, at=NOW)
        assert not audit.claim("key-1", "inc-1", "rule-1", 0, at=NOW)

        claim = audit.get_claim("key-1")
        assert claim.status == ClaimStatus.IN_FLIGHT
        assert claim.claimed_at == NOW

    def test_finish_claim(self, audit: AuditTrail) -> None:
        """Test recording the final state of a claim."""
        audit.claim("key-1", "inc-1", "rule-1", 0, at=NOW)
        audit.finish_claim("key-1", True, 2, at=NOW + timedelta(seconds=3))

        claim = audit.get_claim("key-1")
        assert claim.status == ClaimStatus.SUCCEEDED
        assert claim.attempts == 2
        assert claim.updated_at == NOW + timedelta(seconds=3)

    def test_failed_dispatches_and_rearm(self, audit: AuditTrail) -> None:
        """Test that only FAILED claims are listed and can be re-armed."""
        audit.claim("failed", "inc-1", "rule-1", 0, at=NOW)
        audit.finish_claim("failed", False, 3, "SMTP server unavailable", at=NOW)
        audit.claim("done", "inc-1", "rule-1", 1, at=NOW)
        audit.finish_claim("done", True, 1, at=NOW)

        failed = audit.failed_dispatches()
        assert [c.dedup_key for c in failed] == ["failed"]
        assert failed[0].last_error == "SMTP server unavailable"

        assert not audit.rearm("done")
        assert not audit.rearm("missing")
        assert audit.rearm("failed")

        assert audit.get_claim("failed") is None
        assert audit.failed_dispatches() == []
        assert audit.claim("failed", "inc-1", "rule-1", 0)

    def test_unknown_claim(self, audit: AuditTrail) -> None:
        """Test looking up a claim that does not exist."""
        assert audit.get_claim("missing") is None
