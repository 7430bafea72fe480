"""
Tests for rule matching.

This module tests the RuleMatcher's condition semantics and its ordering
of matched rules.
"""

from datetime import timedelta

import pytest

from hsseguard.escalation.matcher import RuleMatcher, reference_time
from hsseguard.escalation.rules import DurationReference
from hsseguard.incidents import IncidentSeverity, IncidentStatus
from tests.helpers import NOW, make_incident, make_rule


@pytest.fixture
def matcher() -> RuleMatcher:
    """Create a matcher."""
    return RuleMatcher()


class TestConditionDimensions:
    """Tests for the individual condition dimensions."""

    def test_empty_condition_matches_everything(self, matcher: RuleMatcher) -> None:
        """Test that empty dimensions are wildcards."""
        incident, _ = make_incident(location="", department="")
        assert matcher.matches(make_rule().trigger, incident.snapshot(), NOW)

    def test_severity(self, matcher: RuleMatcher) -> None:
        """Test severity membership."""
        rule = make_rule(severities=(IncidentSeverity.CRITICAL, IncidentSeverity.EMERGENCY))
        critical, _ = make_incident(severity=IncidentSeverity.CRITICAL)
        major, _ = make_incident(severity=IncidentSeverity.MAJOR)

        assert matcher.matches(rule.trigger, critical.snapshot(), NOW)
        assert matcher.mismatches(rule.trigger, major.snapshot(), NOW) == ["severity"]

    def test_status(self, matcher: RuleMatcher) -> None:
        """Test status membership."""
        rule = make_rule(statuses=(IncidentStatus.UNDER_INVESTIGATION,))
        incident, _ = make_incident()

        assert not matcher.matches(rule.trigger, incident.snapshot(), NOW)
        incident.assign_investigator("u-300", now=NOW)
        assert matcher.matches(rule.trigger, incident.snapshot(), NOW)

    def test_department_is_case_insensitive(self, matcher: RuleMatcher) -> None:
        """Test department equality ignoring case."""
        incident, _ = make_incident(department="Logistics")

        assert matcher.matches(make_rule(departments=("logistics",)).trigger, incident.snapshot())
        assert not matcher.matches(make_rule(departments=("Logi",)).trigger, incident.snapshot())

    def test_location_is_substring(self, matcher: RuleMatcher) -> None:
        """Test that a rule location matches part of the incident location."""
        incident, _ = make_incident(location="Warehouse B, Bay 3")

        assert matcher.matches(make_rule(locations=("warehouse",)).trigger, incident.snapshot())
        assert not matcher.matches(make_rule(locations=("Refinery",)).trigger, incident.snapshot())

    def test_blank_location_matches_nothing(self, matcher: RuleMatcher) -> None:
        """Test that a blank rule location is ignored rather than matching everywhere."""
        incident, _ = make_incident(location="Warehouse B, Bay 3")

        assert not matcher.matches(make_rule(locations=("  ",)).trigger, incident.snapshot())
        assert matcher.matches(
            make_rule(locations=("", "bay 3")).trigger, incident.snapshot()
        )

    def test_missing_department_or_location_fails(self, matcher: RuleMatcher) -> None:
        """Test that incidents without a department or location never match one."""
        incident, _ = make_incident(department="", location="")
        rule = make_rule(departments=("Logistics",), locations=("Warehouse",))

        assert matcher.mismatches(rule.trigger, incident.snapshot()) == ["department", "location"]

    def test_all_dimensions_must_match(self, matcher: RuleMatcher) -> None:
        """Test that dimensions are combined with AND."""
        incident, _ = make_incident(severity=IncidentSeverity.CRITICAL, department="Operations")
        rule = make_rule(
            severities=(IncidentSeverity.CRITICAL,),
            departments=("Logistics",),
        )
        assert matcher.mismatches(rule.trigger, incident.snapshot()) == ["department"]


class TestDurationConditions:
    """Tests for duration conditions and their reference timestamps."""

    def test_elapsed_must_exceed_minimum(self, matcher: RuleMatcher) -> None:
        """Test that elapsed time equal to the minimum does not match."""
        incident, _ = make_incident()
        rule = make_rule(min_duration=timedelta(hours=24))
        snapshot = incident.snapshot()

        assert not matcher.matches(rule.trigger, snapshot, NOW + timedelta(hours=23))
        assert not matcher.matches(rule.trigger, snapshot, NOW + timedelta(hours=24))
        assert matcher.matches(rule.trigger, snapshot, NOW + timedelta(hours=24, seconds=1))

    def test_status_changed_reference(self, matcher: RuleMatcher) -> None:
        """Test that stuck-state rules measure from the last status change."""
        incident, _ = make_incident()
        incident.update_status(IncidentStatus.IN_PROGRESS, now=NOW + timedelta(hours=10))
        rule = make_rule(
            min_duration=timedelta(hours=12),
            duration_reference=DurationReference.STATUS_CHANGED,
        )
        snapshot = incident.snapshot()

        assert not matcher.matches(rule.trigger, snapshot, NOW + timedelta(hours=20))
        assert matcher.matches(rule.trigger, snapshot, NOW + timedelta(hours=23))

    def test_last_response_reference(self) -> None:
        """Test that response rules fall back to creation without a response."""
        incident, _ = make_incident()
        assert reference_time(incident.snapshot(), DurationReference.LAST_RESPONSE) == NOW

        responded = NOW + timedelta(hours=5)
        incident.record_response(now=responded)
        snapshot = incident.snapshot()

        assert reference_time(snapshot, DurationReference.LAST_RESPONSE) == responded
        assert reference_time(snapshot, DurationReference.CREATED) == NOW


class TestMatchOrdering:
    """Tests for RuleMatcher.match."""

    def test_orders_by_priority_then_creation_then_id(self, matcher: RuleMatcher) -> None:
        """Test the stable evaluation order."""
        rules = [
            make_rule("Regulatory", priority=2),
            make_rule("Later", priority=1, created_at=NOW + timedelta(seconds=1)),
            make_rule("Zulu", priority=1),
            make_rule("Alpha", priority=1),
        ]
        incident, _ = make_incident()

        matched = matcher.match(rules, incident.snapshot(), NOW)

        assert [r.name for r in matched] == ["Alpha", "Zulu", "Later", "Regulatory"]

    def test_inactive_and_non_matching_rules_excluded(self, matcher: RuleMatcher) -> None:
        """Test that match filters inactive and non-matching rules."""
        rules = [
            make_rule("Active"),
            make_rule("Inactive", active=False),
            make_rule("Critical only", severities=(IncidentSeverity.CRITICAL,)),
        ]
        incident, _ = make_incident()

        assert [r.name for r in matcher.match(rules, incident.snapshot(), NOW)] == ["Active"]
