"""
Event Queue

Priority queue of timed actions processed at simulation step boundaries:
alternate-frequency settling, transmission end and interaction-line
timeouts. Events are ordered by time, then by scheduling order, so events
scheduled for the same time run first-in first-out.

Cancelled events stay in the heap and are skipped when popped.
"""

import heapq
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(order=True)
class Event:
    """
    A timed action.

    Attributes:
        time: Simulation time at which the action runs [s]
        sequence: Tie-breaker preserving scheduling order
        action: Callable invoked as action(time, *args)
        args: Extra positional arguments
        name: Label used in log output
        cancelled: Set by EventQueue.cancel()
    """

    time: float
    sequence: int
    action: Callable[..., Any] = field(compare=False)
    args: Tuple = field(default=(), compare=False)
    name: str = field(default="", compare=False)
    cancelled: bool = field(default=False, compare=False)


class EventQueue:
    """Heap of events keyed by (time, sequence)."""

    def __init__(self) -> None:
        self._heap: List[Event] = []
        self._sequence = itertools.count()
        self.now = 0.0

    def __len__(self) -> int:
        return sum(1 for event in self._heap if not event.cancelled)

    def schedule(self, time: float, action: Callable[..., Any], *args, name: str = "") -> Event:
        """Add an action to run at the given time; returns the event handle."""
        event = Event(float(time), next(self._sequence), action, args, name or getattr(action, "__name__", ""))
        heapq.heappush(self._heap, event)
        logger.debug("Scheduled %s at t=%.6f", event.name, event.time)
        return event

    @staticmethod
    def cancel(event: Event) -> None:
        event.cancelled = True

    def peek_time(self) -> Optional[float]:
        """Time of the next pending event, or None."""
        while self._heap and self._heap[0].cancelled:
            heapq.heappop(self._heap)
        return self._heap[0].time if self._heap else None

    def process(self, now: float) -> int:
        """
        Run every event due at or before ``now``.

        Events scheduled by an action for a time <= now run in the same
        call.

        Returns:
            Number of events executed
        """
        count = 0
        while self._heap and self._heap[0].time <= now:
            event = heapq.heappop(self._heap)
            if event.cancelled:
                continue
            self.now = event.time
            event.action(event.time, *event.args)
            count += 1
        self.now = max(self.now, now)
        return count

    def clear(self) -> None:
        self._heap.clear()


# =============================================================================
# INTERACTION LINES
# =============================================================================


class InteractionLineObserver:
    """
    Collects interaction start/end events for display.

    A start event opens a line keyed by (source, target, type, unique id).
    When a timeout is configured for the type, a matching end event is
    published automatically unless the interaction is ended (or restarted)
    first.

    Attributes:
        events: Every published event, in order
        timeouts: Per-type auto-end delay [s] ('sensor', 'jammer', 'comm',
            'passive'); types without an entry stay open until ended
        publish: Optional callable receiving each published event
    """

    def __init__(
        self,
        event_queue: Optional[EventQueue] = None,
        timeouts: Optional[Dict[str, float]] = None,
        publish: Optional[Callable[[Any], None]] = None,
    ) -> None:
        self.event_queue = event_queue
        self.timeouts: Dict[str, float] = dict(timeouts or {})
        self.publish = publish
        self.events: list = []
        self._open: Dict[Tuple, Optional[Event]] = {}

    @staticmethod
    def _key(event) -> Tuple:
        return (event.source_id, event.target_id, event.type_tag, event.unique_id)

    def on_interaction_event(self, event) -> None:
        """
        Record an event from an interaction.

        A repeated start on an open line only refreshes its timeout; an end
        for a line that is not open is ignored.
        """
        key = self._key(event)
        was_open = key in self._open
        pending = self._open.pop(key, None)
        if pending is not None:
            EventQueue.cancel(pending)
        if not event.is_start:
            if was_open:
                self._publish(event)
            return
        if not was_open:
            self._publish(event)
        timeout = self.timeouts.get(event.type_tag)
        handle = None
        if timeout is not None and self.event_queue is not None:
            handle = self.event_queue.schedule(event.sim_time + timeout, self._expire, event, name="interaction_timeout")
        self._open[key] = handle

    def open_lines(self) -> List[Tuple]:
        return list(self._open)

    def _expire(self, sim_time: float, start_event) -> None:
        key = self._key(start_event)
        if key not in self._open:
            return
        del self._open[key]
        end = type(start_event)(
            sim_time=sim_time,
            source_id=start_event.source_id,
            target_id=start_event.target_id,
            is_start=False,
            type_tag=start_event.type_tag,
            unique_id=start_event.unique_id,
            aux_text="timeout",
        )
        self._publish(end)

    def _publish(self, event) -> None:
        self.events.append(event)
        logger.debug(
            "Interaction %s %s: %s -> %s (%s)",
            event.type_tag,
            "start" if event.is_start else "end",
            event.source_id,
            event.target_id,
            event.unique_id,
        )
        if self.publish is not None:
            self.publish(event)
