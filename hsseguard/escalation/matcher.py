"""
Rule matching for HSSEGuard escalations.

The matcher decides which rules apply to an incident snapshot and orders
them. It has no side effects and holds no state, so it can be shared by
every worker thread.
"""

import logging
from datetime import datetime, timedelta
from typing import Iterable

from hsseguard.escalation.rules import (
    DurationReference,
    EscalationRule,
    TriggerCondition,
)
from hsseguard.incidents.aggregate import IncidentSnapshot
from hsseguard.models.base import ensure_utc, utc_now

logger = logging.getLogger("hsseguard.escalation.matcher")


def reference_time(snapshot: IncidentSnapshot, reference: DurationReference) -> datetime:
    """Timestamp a duration condition measures from."""
    if reference == DurationReference.STATUS_CHANGED:
        return snapshot.status_changed_at
    if reference == DurationReference.LAST_RESPONSE:
        return snapshot.last_response_at or snapshot.created_at
    return snapshot.created_at


def elapsed_since(
    snapshot: IncidentSnapshot,
    reference: DurationReference,
    now: datetime,
) -> timedelta:
    """Time elapsed since the reference timestamp."""
    return ensure_utc(now) - ensure_utc(reference_time(snapshot, reference))


class RuleMatcher:
    """
    Evaluates rule trigger conditions against incident snapshots.

    Each dimension of a condition that is empty matches anything; all
    non-empty dimensions must match:

    - severities and statuses: membership
    - departments: case-insensitive equality
    - locations: case-insensitive substring of the incident location
    - duration: elapsed time strictly greater than the minimum

    An incident without a department or location never satisfies a
    non-empty department or location condition.

    Example:
        Finding the rules that apply::

            matcher = RuleMatcher()
            for rule in matcher.match(store.get_active_rules(), snapshot):
                print(rule.priority, rule.name)
    """

    def match(
        self,
        rules: Iterable[EscalationRule],
        snapshot: IncidentSnapshot,
        now: datetime | None = None,
    ) -> list[EscalationRule]:
        """
        Select the active rules that match a snapshot.

        Args:
            rules: Candidate rules.
            snapshot: Incident to match against.
            now: Evaluation time for duration conditions.

        Returns:
            Matching rules ordered by (priority, created_at, rule_id).
        """
        current = ensure_utc(now) if now else utc_now()
        matched = [
            rule
            for rule in rules
            if rule.active and self.matches(rule.trigger, snapshot, current)
        ]
        matched.sort(key=lambda r: r.sort_key)
        logger.debug(
            "Incident %s matched %d rule(s): %s",
            snapshot.incident_id,
            len(matched),
            ", ".join(r.name for r in matched),
        )
        return matched

    def matches(
        self,
        trigger: TriggerCondition,
        snapshot: IncidentSnapshot,
        now: datetime | None = None,
    ) -> bool:
        """Check if every non-empty dimension of a condition matches."""
        return not self.mismatches(trigger, snapshot, now)

    def mismatches(
        self,
        trigger: TriggerCondition,
        snapshot: IncidentSnapshot,
        now: datetime | None = None,
    ) -> list[str]:
        """
        List the condition dimensions a snapshot fails.

        Returns:
            Names of the failing dimensions, empty if the condition matches.
        """
        failed = []
        if trigger.severities and snapshot.severity not in trigger.severities:
            failed.append("severity")
        if trigger.statuses and snapshot.status not in trigger.statuses:
            failed.append("status")
        if trigger.departments and not self._department_matches(trigger, snapshot):
            failed.append("department")
        if trigger.locations and not self._location_matches(trigger, snapshot):
            failed.append("location")
        if trigger.min_duration is not None:
            current = ensure_utc(now) if now else utc_now()
            elapsed = elapsed_since(snapshot, trigger.duration_reference, current)
            if elapsed <= trigger.min_duration:
                failed.append("duration")
        return failed

    def _department_matches(self, trigger: TriggerCondition, snapshot: IncidentSnapshot) -> bool:
        department = snapshot.department.strip().lower()
        if not department:
            return False
        return any(d.strip().lower() == department for d in trigger.departments)

    def _location_matches(self, trigger: TriggerCondition, snapshot: IncidentSnapshot) -> bool:
        location = snapshot.location.strip().lower()
        if not location:
            return False
        return any(
            loc.strip().lower() in location for loc in trigger.locations if loc.strip()
        )
