"""
Scheduling for HSSEGuard escalations.

This module provides the ActionScheduler, which holds delayed escalation
actions until they are due, and the PeriodicSweeper, which runs the
engine's time-based sweep on a background thread.
"""

import heapq
import itertools
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Iterable

from hsseguard.exceptions import ValidationError
from hsseguard.models.base import ensure_utc

if TYPE_CHECKING:
    from hsseguard.escalation.engine import EscalationEngine
    from hsseguard.incidents.aggregate import Incident

logger = logging.getLogger("hsseguard.escalation.scheduler")


@dataclass(order=True, frozen=True)
class ScheduledAction:
    """
    An escalation action waiting for its dispatch time.

    Ordered by due time, then by the order it was scheduled in.

    Attributes:
        due_at: Earliest time the action may be dispatched.
        sequence: Scheduling order, breaks ties between equal due times.
        incident_id: ID of the incident.
        dedup_key: Dedup key the action was claimed under.
        payload: What the engine needs to dispatch the action.
    """

    due_at: datetime
    sequence: int
    incident_id: str = field(compare=False)
    dedup_key: str = field(compare=False)
    payload: Any = field(compare=False, repr=False)


class ActionScheduler:
    """
    Thread-safe queue of delayed escalation actions.

    The scheduler never dispatches anything itself. The engine polls it
    with pop_due(), so an action is never dispatched before its due time
    but may be dispatched later, depending on how often the sweep runs.
    """

    def __init__(self) -> None:
        self._heap: list[ScheduledAction] = []
        self._counter = itertools.count()
        self._lock = threading.Lock()

    def schedule(
        self,
        due_at: datetime,
        incident_id: str,
        dedup_key: str,
        payload: Any,
    ) -> ScheduledAction:
        """Queue an action until due_at."""
        with self._lock:
            entry = ScheduledAction(
                due_at=ensure_utc(due_at),
                sequence=next(self._counter),
                incident_id=incident_id,
                dedup_key=dedup_key,
                payload=payload,
            )
            heapq.heappush(self._heap, entry)
        logger.debug(
            "Scheduled action %s for incident %s at %s",
            dedup_key[:12],
            incident_id,
            entry.due_at.isoformat(),
        )
        return entry

    def pop_due(self, now: datetime) -> list[ScheduledAction]:
        """
        Remove and return every action due at or before now.

        Returns:
            Due actions in (due_at, sequence) order.
        """
        current = ensure_utc(now)
        due = []
        with self._lock:
            while self._heap and self._heap[0].due_at <= current:
                due.append(heapq.heappop(self._heap))
        return due

    def pending(self, incident_id: str | None = None) -> list[ScheduledAction]:
        """List queued actions in dispatch order, optionally for one incident."""
        with self._lock:
            entries = sorted(self._heap)
        if incident_id is None:
            return entries
        return [e for e in entries if e.incident_id == incident_id]

    def next_due_at(self) -> datetime | None:
        """Due time of the earliest queued action."""
        with self._lock:
            return self._heap[0].due_at if self._heap else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._heap)


IncidentSource = Callable[[], Iterable["Incident"]]


class PeriodicSweeper:
    """
    Runs EscalationEngine.sweep() at a fixed interval on a daemon thread.

    A failing sweep is logged and the loop carries on with the next
    interval.

    Example:
        Sweeping open incidents every five minutes::

            sweeper = PeriodicSweeper(engine, repository.open_incidents, 300)
            sweeper.start()
            ...
            sweeper.stop()
    """

    def __init__(
        self,
        engine: "EscalationEngine",
        incident_source: IncidentSource,
        interval_seconds: float = 300.0,
    ) -> None:
        """
        Initialize the sweeper.

        Args:
            engine: Engine to sweep with.
            incident_source: Callable returning the incidents to sweep.
            interval_seconds: Seconds between sweeps.

        Raises:
            ValidationError: If the interval is not positive.
        """
        if interval_seconds <= 0:
            raise ValidationError(
                "interval_seconds must be positive",
                {"interval_seconds": interval_seconds},
            )
        self.engine = engine
        self.incident_source = incident_source
        self.interval_seconds = interval_seconds
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self.sweep_count = 0

    def start(self) -> None:
        """Start sweeping in the background."""
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._run,
                daemon=True,
                name="HSSEGuard-sweeper",
            )
            self._thread.start()
        logger.info("Started escalation sweeper (every %.0fs)", self.interval_seconds)

    def stop(self, timeout: float | None = None) -> None:
        """Stop sweeping and wait for the current sweep to finish."""
        with self._lock:
            thread, self._thread = self._thread, None
            self._stop_event.set()
        if thread is not None:
            thread.join(timeout=timeout if timeout is not None else self.interval_seconds * 2)
            logger.info("Stopped escalation sweeper after %d sweep(s)", self.sweep_count)

    def is_running(self) -> bool:
        """Check if the sweeper thread is alive."""
        with self._lock:
            return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> int:
        """
        Run a single sweep now.

        Returns:
            Number of dispatch outcomes the sweep produced.
        """
        outcomes = self.engine.sweep(self.incident_source())
        self.sweep_count += 1
        return len(outcomes)

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.run_once()
            except Exception:
                logger.exception("Escalation sweep failed")
            self._stop_event.wait(self.interval_seconds)
