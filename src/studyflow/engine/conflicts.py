"""Conflict detection between candidate study blocks and external events."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Iterable

from studyflow.models import ExternalEvent

if TYPE_CHECKING:
    from studyflow.repository import EventSource

logger = logging.getLogger(__name__)


def overlaps(start: datetime, end: datetime, event: ExternalEvent) -> bool:
    """Half-open interval overlap: [start, end) against [event.start, event.end)."""
    return start < event.end and end > event.start


def conflicting_events(
    start: datetime,
    duration_minutes: int,
    events: Iterable[ExternalEvent],
) -> list[ExternalEvent]:
    end = start + timedelta(minutes=duration_minutes)
    return [event for event in events if overlaps(start, end, event)]


def has_conflict(start: datetime, duration_minutes: int, events: Iterable[ExternalEvent]) -> bool:
    end = start + timedelta(minutes=duration_minutes)
    return any(overlaps(start, end, event) for event in events)


class ConflictChecker:
    """Check candidate blocks against events fetched once per generation run.

    A failing event source does not abort planning: the error is logged, no
    conflicts are reported and ``available`` turns False.
    """

    def __init__(
        self,
        event_source: EventSource | None,
        *,
        window_start: datetime,
        window_end: datetime,
    ) -> None:
        self._source = event_source
        self._window_start = window_start
        self._window_end = window_end
        self._events: list[ExternalEvent] | None = None
        self.available = True

    @classmethod
    def from_events(cls, events: Iterable[ExternalEvent]) -> "ConflictChecker":
        checker = cls(None, window_start=datetime.min, window_end=datetime.max)
        checker._events = list(events)
        return checker

    @property
    def events(self) -> list[ExternalEvent]:
        if self._events is None:
            self._events = self._fetch()
        return self._events

    def _fetch(self) -> list[ExternalEvent]:
        if self._source is None:
            return []
        try:
            events = list(self._source.fetch_events(self._window_start, self._window_end))
        except Exception as exc:  # noqa: BLE001
            logger.warning("Conflict data unavailable, planning without external events: %s", exc)
            self.available = False
            return []
        logger.debug("Loaded %d external events for conflict checks", len(events))
        return events

    def conflicts(self, start: datetime, duration_minutes: int) -> list[ExternalEvent]:
        return conflicting_events(start, duration_minutes, self.events)

    def has_conflict(self, start: datetime, duration_minutes: int) -> bool:
        return has_conflict(start, duration_minutes, self.events)
