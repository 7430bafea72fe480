"""
Tests for corrective action tracking.
"""

from datetime import timedelta

import pytest

from hsseguard.exceptions import InvalidTransitionError, ValidationError
from hsseguard.incidents import CorrectiveAction, CorrectiveActionStatus
from tests.helpers import NOW


def _action(due_in: timedelta = timedelta(days=7)) -> CorrectiveAction:
    return CorrectiveAction.create(
        incident_id="inc-1",
        description="  Install guard rail  ",
        assignee_id="u-200",
        due_at=NOW + due_in,
        assignee_department="Facilities",
        now=NOW,
    )


class TestCorrectiveActionCreate:
    """Tests for CorrectiveAction.create."""

    def test_create_pending(self) -> None:
        """Test that a new action is PENDING with a normalized description."""
        action = _action()

        assert action.status == CorrectiveActionStatus.PENDING
        assert action.description == "Install guard rail"
        assert action.created_at == NOW
        assert action.completed_at is None
        assert not action.is_completed()

    def test_naive_due_date_is_utc(self) -> None:
        """Test that a naive due date is taken as UTC."""
        action = CorrectiveAction.create(
            "inc-1", "Inspect", "u-1", (NOW + timedelta(days=1)).replace(tzinfo=None)
        )
        assert action.due_at == NOW + timedelta(days=1)

    def test_required_fields(self) -> None:
        """Test that blank fields are rejected together."""
        with pytest.raises(ValidationError) as exc_info:
            CorrectiveAction.create("inc-1", " ", "", NOW)
        assert exc_info.value.details["errors"] == [
            "description is required",
            "assignee_id is required",
        ]


class TestCorrectiveActionStatus:
    """Tests for the corrective action status machine."""

    def test_start(self) -> None:
        """Test starting work on an action."""
        action = _action()
        later = NOW + timedelta(hours=1)

        assert action.start(later)
        assert action.status == CorrectiveActionStatus.IN_PROGRESS
        assert action.started_at == later
        assert not action.start(later)

    def test_complete_is_idempotent(self) -> None:
        """Test that completing twice keeps the first completion."""
        action = _action()
        first = NOW + timedelta(days=1)

        assert action.complete("Rail installed", first)
        assert not action.complete("Again", first + timedelta(days=1))
        assert action.status == CorrectiveActionStatus.COMPLETED
        assert action.completed_at == first
        assert action.completion_notes == "Rail installed"

    def test_start_completed_rejected(self) -> None:
        """Test that a completed action cannot be restarted."""
        action = _action()
        action.complete(now=NOW)
        with pytest.raises(InvalidTransitionError):
            action.start(NOW)

    def test_complete_overdue_action(self) -> None:
        """Test that an overdue action can still be completed."""
        action = _action(due_in=timedelta(hours=1))
        action.refresh_overdue(NOW + timedelta(hours=2))
        assert action.complete(now=NOW + timedelta(hours=3))
        assert action.status == CorrectiveActionStatus.COMPLETED


class TestCorrectiveActionDueDate:
    """Tests for due date changes and overdue detection."""

    def test_due_date_in_past_sets_overdue(self) -> None:
        """Test that a past due date flips the action to OVERDUE."""
        action = _action()
        assert action.update_due_date(NOW - timedelta(hours=1), NOW)
        assert action.status == CorrectiveActionStatus.OVERDUE

    def test_future_due_date_reopens_pending(self) -> None:
        """Test that an OVERDUE action that never started goes back to PENDING."""
        action = _action()
        action.update_due_date(NOW - timedelta(hours=1), NOW)

        assert action.update_due_date(NOW + timedelta(days=3), NOW)
        assert action.status == CorrectiveActionStatus.PENDING

    def test_future_due_date_reopens_in_progress(self) -> None:
        """Test that an OVERDUE action with work started goes back to IN_PROGRESS."""
        action = _action()
        action.start(NOW)
        action.update_due_date(NOW - timedelta(hours=1), NOW)

        action.update_due_date(NOW + timedelta(days=3), NOW)
        assert action.status == CorrectiveActionStatus.IN_PROGRESS

    def test_future_due_date_without_status_change(self) -> None:
        """Test that moving a due date of a current action changes no status."""
        action = _action()
        assert not action.update_due_date(NOW + timedelta(days=14), NOW)
        assert action.due_at == NOW + timedelta(days=14)

    def test_completed_due_date_rejected(self) -> None:
        """Test that the due date of a completed action is fixed."""
        action = _action()
        action.complete(now=NOW)
        with pytest.raises(InvalidTransitionError):
            action.update_due_date(NOW + timedelta(days=1), NOW)

    def test_refresh_overdue(self) -> None:
        """Test that overdue detection only fires once the due date passed."""
        action = _action(due_in=timedelta(days=1))

        assert not action.refresh_overdue(NOW)
        assert not action.is_overdue(NOW + timedelta(days=1))
        assert action.is_overdue(NOW + timedelta(days=1, seconds=1))
        assert action.refresh_overdue(NOW + timedelta(days=2))
        assert not action.refresh_overdue(NOW + timedelta(days=3))

    def test_completed_never_overdue(self) -> None:
        """Test that a completed action is never overdue."""
        action = _action(due_in=timedelta(hours=1))
        action.complete(now=NOW)
        assert not action.is_overdue(NOW + timedelta(days=10))
        assert not action.refresh_overdue(NOW + timedelta(days=10))

    def test_to_dict(self) -> None:
        """Test converting an action to a dictionary."""
        data = _action().to_dict()
        assert data["status"] == "PENDING"
        assert data["assignee_department"] == "Facilities"
        assert data["due_at"] == (NOW + timedelta(days=7)).isoformat()
        assert data["completed_at"] is None
