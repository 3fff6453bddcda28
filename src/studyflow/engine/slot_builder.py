"""Build the deterministic weekly grid of candidate study slots."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Iterator

from studyflow.models import Slot


def week_start_for(now: datetime) -> date:
    """Return the Monday of the week to plan.

    On Sunday that is the following day, so the plan covers the coming week.
    """
    today = now.date()
    if today.weekday() == 6:
        return today + timedelta(days=1)
    return today - timedelta(days=today.weekday())


def _slot_times(first_hour: int, last_hour: int, step_minutes: int) -> list[time]:
    times: list[time] = []
    cursor = first_hour * 60
    while cursor <= last_hour * 60:
        times.append(time(hour=cursor // 60, minute=cursor % 60))
        cursor += step_minutes
    return times


@dataclass(frozen=True, slots=True)
class SlotSequence:
    """Lazy, finite and restartable sequence of slots.

    Every iteration starts over from the first day, so the same sequence can
    be walked once by the allocator and again by rescheduling.
    """

    start_day: date
    days: int
    first_hour: int
    last_hour: int
    step_minutes: int
    tz: tzinfo = timezone.utc

    def __iter__(self) -> Iterator[Slot]:
        times = _slot_times(self.first_hour, self.last_hour, self.step_minutes)
        for offset in range(self.days):
            day = self.start_day + timedelta(days=offset)
            for start_time in times:
                yield Slot(day=day, start_time=start_time, tz=self.tz)

    def __len__(self) -> int:
        return self.days * len(_slot_times(self.first_hour, self.last_hour, self.step_minutes))


def build_week_slots(
    *,
    week_start: date,
    days: int = 7,
    first_hour: int = 8,
    last_hour: int = 20,
    step_minutes: int = 120,
    tz: tzinfo = timezone.utc,
) -> SlotSequence:
    """Build slots for ``days`` days, one every ``step_minutes`` from
    ``first_hour`` through ``last_hour`` inclusive (49 slots by default)."""
    return SlotSequence(
        start_day=week_start,
        days=days,
        first_hour=first_hour,
        last_hour=last_hour,
        step_minutes=step_minutes,
        tz=tz,
    )
