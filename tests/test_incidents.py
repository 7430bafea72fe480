"""
Tests for the incident aggregate.

This module tests incident creation, the status and severity operations,
corrective action handling and the closure invariant.
"""

import dataclasses
from datetime import timedelta

import pytest

from hsseguard.exceptions import (
    InvalidTransitionError,
    PendingActionsError,
    ValidationError,
)
from hsseguard.incidents import (
    CorrectiveAction,
    CorrectiveActionStatus,
    IncidentEventType,
    IncidentSeverity,
    IncidentStatus,
)
from tests.helpers import NOW, make_incident


def _action(incident_id: str, due_in: timedelta = timedelta(days=7)) -> CorrectiveAction:
    return CorrectiveAction.create(
        incident_id=incident_id,
        description="Replace damaged racking upright",
        assignee_id="u-200",
        due_at=NOW + due_in,
        now=NOW,
    )


# =============================================================================
# Creation
# =============================================================================


class TestIncidentCreate:
    """Tests for Incident.create."""

    def test_create_reported_incident(self) -> None:
        """Test that a new incident starts REPORTED with one event."""
        incident, events = make_incident()

        assert incident.status == IncidentStatus.REPORTED
        assert incident.severity == IncidentSeverity.MINOR
        assert incident.created_at == NOW
        assert incident.status_changed_at == NOW
        assert incident.is_open()
        assert [e.event_type for e in events] == [IncidentEventType.INCIDENT_CREATED]
        assert events[0].incident_id == incident.incident_id
        assert events[0].actor == "u-100"
        assert events[0].metadata == {"severity": "MINOR"}

    def test_serious_incident_raises_second_event(self) -> None:
        """Test that severity at the threshold also reports a serious incident."""
        _, events = make_incident(severity=IncidentSeverity.MAJOR)

        assert [e.event_type for e in events] == [
            IncidentEventType.INCIDENT_CREATED,
            IncidentEventType.SERIOUS_INCIDENT_REPORTED,
        ]

    def test_custom_serious_threshold(self) -> None:
        """Test that the serious threshold is configurable."""
        _, events = make_incident(
            severity=IncidentSeverity.MAJOR,
            serious_threshold=IncidentSeverity.CRITICAL,
        )
        assert len(events) == 1

    def test_title_is_stripped(self) -> None:
        """Test that title and reporter are stripped."""
        incident, _ = make_incident(title="  Chemical spill  ", reporter_id=" u-5 ")
        assert incident.title == "Chemical spill"
        assert incident.reporter_id == "u-5"

    def test_missing_fields_rejected(self) -> None:
        """Test that a blank title and reporter are both reported."""
        with pytest.raises(ValidationError) as exc_info:
            make_incident(title=" ", reporter_id="")

        assert exc_info.value.details["errors"] == [
            "title is required",
            "reporter_id is required",
        ]

    def test_future_occurrence_rejected(self) -> None:
        """Test that an incident cannot have happened in the future."""
        with pytest.raises(ValidationError, match="future"):
            make_incident(occurred_at=NOW + timedelta(hours=1))

    def test_occurred_at_defaults_to_now(self) -> None:
        """Test that occurred_at defaults to the creation time."""
        incident, _ = make_incident(occurred_at=None)
        assert incident.occurred_at == NOW


# =============================================================================
# Status, severity and details
# =============================================================================


class TestIncidentUpdates:
    """Tests for the state-changing operations."""

    def test_update_status(self) -> None:
        """Test changing the status records the old and new value."""
        incident, _ = make_incident()
        later = NOW + timedelta(minutes=5)

        events = incident.update_status(IncidentStatus.IN_PROGRESS, actor="u-1", now=later)

        assert incident.status == IncidentStatus.IN_PROGRESS
        assert incident.status_changed_at == later
        assert len(events) == 1
        assert events[0].event_type == IncidentEventType.STATUS_CHANGED
        assert events[0].old_value == "REPORTED"
        assert events[0].new_value == "IN_PROGRESS"
        assert events[0].actor == "u-1"

    def test_update_to_same_status_is_noop(self) -> None:
        """Test that setting the current status emits nothing."""
        incident, _ = make_incident()
        assert incident.update_status(IncidentStatus.REPORTED, now=NOW) == []
        assert incident.status_changed_at == NOW

    def test_update_status_closed_goes_through_close(self) -> None:
        """Test that setting CLOSED is a closure."""
        incident, _ = make_incident()
        events = incident.update_status(IncidentStatus.CLOSED, now=NOW)

        assert incident.status == IncidentStatus.CLOSED
        assert incident.closed_at == NOW
        assert events[0].event_type == IncidentEventType.INCIDENT_CLOSED

    def test_update_severity(self) -> None:
        """Test changing the severity."""
        incident, _ = make_incident()
        events = incident.update_severity(IncidentSeverity.CRITICAL, now=NOW)

        assert incident.severity == IncidentSeverity.CRITICAL
        assert events[0].event_type == IncidentEventType.SEVERITY_CHANGED
        assert (events[0].old_value, events[0].new_value) == ("MINOR", "CRITICAL")
        assert incident.update_severity(IncidentSeverity.CRITICAL, now=NOW) == []

    def test_state_version_counts_status_and_severity_changes(self) -> None:
        """Test that the state version moves on real changes only."""
        incident, _ = make_incident()
        assert incident.state_version == 0

        incident.update_status(IncidentStatus.IN_PROGRESS, now=NOW)
        incident.update_status(IncidentStatus.IN_PROGRESS, now=NOW)
        incident.update_severity(IncidentSeverity.MAJOR, now=NOW)
        incident.update("Forklift collision", "Updated description", now=NOW)
        incident.record_response(now=NOW)

        assert incident.state_version == 2
        assert incident.snapshot().state_version == 2

    def test_assign_investigator(self) -> None:
        """Test that assignment moves the incident under investigation."""
        incident, _ = make_incident()
        events = incident.assign_investigator("u-300", now=NOW)

        assert incident.investigator_id == "u-300"
        assert incident.status == IncidentStatus.UNDER_INVESTIGATION
        assert events[0].event_type == IncidentEventType.INVESTIGATOR_ASSIGNED
        assert events[0].metadata == {
            "old_status": "REPORTED",
            "new_status": "UNDER_INVESTIGATION",
        }

    def test_assign_blank_investigator_rejected(self) -> None:
        """Test that a blank investigator is rejected."""
        incident, _ = make_incident()
        with pytest.raises(ValidationError):
            incident.assign_investigator("  ")
        assert incident.status == IncidentStatus.REPORTED

    def test_update_details(self) -> None:
        """Test editing title and description."""
        incident, _ = make_incident()
        events = incident.update("Forklift collision, aisle 4", "Updated", now=NOW)

        assert incident.title == "Forklift collision, aisle 4"
        assert events[0].event_type == IncidentEventType.INCIDENT_UPDATED
        assert not events[0].is_trigger
        assert incident.update("Forklift collision, aisle 4", "Updated", now=NOW) == []

    def test_record_response(self) -> None:
        """Test that a response sets last_response_at and does not trigger."""
        incident, _ = make_incident()
        later = NOW + timedelta(hours=2)
        events = incident.record_response(actor="u-1", now=later)

        assert incident.last_response_at == later
        assert events[0].event_type == IncidentEventType.RESPONSE_RECORDED
        assert not events[0].is_trigger

    def test_snapshot_is_immutable(self) -> None:
        """Test that snapshots cannot be modified and do not follow the incident."""
        incident, _ = make_incident()
        snapshot = incident.snapshot()

        with pytest.raises(dataclasses.FrozenInstanceError):
            snapshot.status = IncidentStatus.CLOSED  # type: ignore[misc]

        incident.update_status(IncidentStatus.IN_PROGRESS, now=NOW)
        assert snapshot.status == IncidentStatus.REPORTED
        assert snapshot.is_open


# =============================================================================
# Closure invariant
# =============================================================================


class TestIncidentClosure:
    """Tests for the rule that closure requires completed corrective actions."""

    def test_close_without_actions(self) -> None:
        """Test closing an incident without corrective actions."""
        incident, _ = make_incident()
        events = incident.close("Racking replaced", actor="u-1", now=NOW)

        assert incident.status == IncidentStatus.CLOSED
        assert incident.closure_notes == "Racking replaced"
        assert events[0].metadata == {"notes": "Racking replaced"}
        assert not incident.is_open()

    def test_close_with_pending_action_rejected(self) -> None:
        """Test that an open corrective action blocks closure and changes nothing."""
        incident, _ = make_incident()
        action = _action(incident.incident_id)
        incident.add_corrective_action(action, now=NOW)
        updated_at = incident.updated_at

        with pytest.raises(PendingActionsError) as exc_info:
            incident.close(now=NOW + timedelta(hours=1))

        assert isinstance(exc_info.value, InvalidTransitionError)
        assert exc_info.value.pending_action_ids == [action.action_id]
        assert incident.status == IncidentStatus.REPORTED
        assert incident.closed_at is None
        assert incident.updated_at == updated_at
        assert not incident.can_close()

    def test_close_after_completion(self) -> None:
        """Test that completing every action makes closure possible."""
        incident, _ = make_incident()
        first = _action(incident.incident_id)
        second = _action(incident.incident_id)
        incident.add_corrective_action(first, now=NOW)
        incident.add_corrective_action(second, now=NOW)

        incident.complete_corrective_action(first.action_id, now=NOW)
        assert not incident.can_close()
        events = incident.complete_corrective_action(second.action_id, "Done", now=NOW)

        assert events[0].metadata["closable"] is True
        assert incident.status == IncidentStatus.REPORTED
        incident.close(now=NOW)
        assert incident.status == IncidentStatus.CLOSED

    def test_overdue_action_blocks_closure(self) -> None:
        """Test that an OVERDUE action also blocks closure."""
        incident, _ = make_incident()
        action = _action(incident.incident_id, due_in=timedelta(days=1))
        incident.add_corrective_action(action, now=NOW)
        incident.refresh_overdue_actions(NOW + timedelta(days=2))

        assert action.status == CorrectiveActionStatus.OVERDUE
        with pytest.raises(PendingActionsError):
            incident.close(now=NOW + timedelta(days=2))

    def test_closed_incident_is_terminal(self) -> None:
        """Test that a closed incident rejects further changes."""
        incident, _ = make_incident()
        incident.close(now=NOW)

        with pytest.raises(InvalidTransitionError):
            incident.update_status(IncidentStatus.IN_PROGRESS)
        with pytest.raises(InvalidTransitionError):
            incident.update_severity(IncidentSeverity.MAJOR)
        with pytest.raises(InvalidTransitionError):
            incident.close()
        with pytest.raises(InvalidTransitionError):
            incident.add_corrective_action(_action(incident.incident_id))


# =============================================================================
# Corrective actions on the aggregate
# =============================================================================


class TestIncidentCorrectiveActions:
    """Tests for corrective actions owned by an incident."""

    def test_add_corrective_action(self) -> None:
        """Test that adding an action emits an event and counts as pending."""
        incident, _ = make_incident()
        action = _action(incident.incident_id)
        events = incident.add_corrective_action(action, actor="u-1", now=NOW)

        assert events[0].event_type == IncidentEventType.CORRECTIVE_ACTION_ADDED
        assert events[0].metadata["action_id"] == action.action_id
        assert incident.pending_corrective_actions() == [action]
        assert incident.snapshot().open_corrective_actions == 1

    def test_add_action_of_other_incident_rejected(self) -> None:
        """Test that an action must belong to the incident."""
        incident, _ = make_incident()
        with pytest.raises(ValidationError):
            incident.add_corrective_action(_action("another-incident"))

    def test_add_same_action_twice_rejected(self) -> None:
        """Test that an action cannot be attached twice."""
        incident, _ = make_incident()
        action = _action(incident.incident_id)
        incident.add_corrective_action(action, now=NOW)
        with pytest.raises(ValidationError, match="already attached"):
            incident.add_corrective_action(action, now=NOW)

    def test_unknown_action_rejected(self) -> None:
        """Test that operations on unknown actions fail."""
        incident, _ = make_incident()
        with pytest.raises(ValidationError, match="Unknown corrective action"):
            incident.start_corrective_action("missing")

    def test_start_and_repeat(self) -> None:
        """Test that starting twice only emits one event."""
        incident, _ = make_incident()
        action = _action(incident.incident_id)
        incident.add_corrective_action(action, now=NOW)

        events = incident.start_corrective_action(action.action_id, now=NOW)
        assert events[0].event_type == IncidentEventType.CORRECTIVE_ACTION_STATUS_CHANGED
        assert (events[0].old_value, events[0].new_value) == ("PENDING", "IN_PROGRESS")
        assert incident.start_corrective_action(action.action_id, now=NOW) == []

    def test_due_date_in_past_flags_overdue(self) -> None:
        """Test that moving the due date into the past emits an OVERDUE change."""
        incident, _ = make_incident()
        action = _action(incident.incident_id)
        incident.add_corrective_action(action, now=NOW)

        events = incident.update_corrective_action_due_date(
            action.action_id, NOW - timedelta(days=1), now=NOW
        )
        assert action.status == CorrectiveActionStatus.OVERDUE
        assert events[0].new_value == "OVERDUE"

    def test_refresh_overdue_actions(self) -> None:
        """Test the sweep-side overdue refresh."""
        incident, _ = make_incident()
        due_soon = _action(incident.incident_id, due_in=timedelta(hours=1))
        due_later = _action(incident.incident_id, due_in=timedelta(days=30))
        incident.add_corrective_action(due_soon, now=NOW)
        incident.add_corrective_action(due_later, now=NOW)

        events = incident.refresh_overdue_actions(NOW + timedelta(hours=2))

        assert [e.metadata["action_id"] for e in events] == [due_soon.action_id]
        assert events[0].actor == "system"
        assert due_later.status == CorrectiveActionStatus.PENDING
        assert incident.refresh_overdue_actions(NOW + timedelta(hours=3)) == []
