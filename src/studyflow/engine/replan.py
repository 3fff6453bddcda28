"""Plan mutations applied after generation: completion and missed sessions."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING

from studyflow.models import Slot, StudySession, WeeklyPlan, parse_datetime
from studyflow.normalization.config_resolver import PlannerConfig

from .conflicts import ConflictChecker
from .slot_builder import build_week_slots

if TYPE_CHECKING:
    from studyflow.repository import EventSource

logger = logging.getLogger(__name__)


class UnknownSessionError(KeyError):
    """Raised when a mutation targets a session id that is not in the plan."""


def _require_session(plan: WeeklyPlan, session_id: str) -> StudySession:
    session = plan.find_session(session_id)
    if session is None:
        raise UnknownSessionError(session_id)
    return session


def _with_sessions(plan: WeeklyPlan, sessions: list[StudySession]) -> WeeklyPlan:
    return replace(plan, sessions=sessions)


def complete_session(plan: WeeklyPlan, session_id: str) -> WeeklyPlan:
    """Return a copy of ``plan`` with ``session_id`` marked completed."""
    _require_session(plan, session_id)
    return _with_sessions(
        plan,
        [replace(s, completed=True) if s.session_id == session_id else s for s in plan.sessions],
    )


def _move_session(session: StudySession, new_date: str, config: PlannerConfig) -> StudySession:
    if "T" not in new_date and " " not in new_date.strip():
        return replace(session, date=date.fromisoformat(new_date.strip()), completed=False)

    moved_at = parse_datetime(new_date, config.tz)
    return replace(
        session,
        date=moved_at.date(),
        start_time=moved_at.time().replace(second=0, microsecond=0),
        completed=False,
    )


def find_next_free_slot(
    session: StudySession,
    *,
    now: datetime,
    conflict_checker: ConflictChecker,
    config: PlannerConfig,
) -> Slot | None:
    """First slot of the grid starting at ``now``'s local day that lies after
    ``now`` and has no external event over the session's duration."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=config.tz)
    now = now.astimezone(config.tz)
    slots = build_week_slots(
        week_start=now.date(),
        days=config.days_per_week,
        first_hour=config.first_slot_hour,
        last_hour=config.last_slot_hour,
        step_minutes=config.slot_step_minutes,
        tz=config.tz,
    )
    for slot in slots:
        if slot.start <= now:
            continue
        if conflict_checker.has_conflict(slot.start, session.duration_minutes):
            continue
        return slot
    return None


def adjust_for_missed(
    plan: WeeklyPlan,
    session_id: str,
    new_date: str | None = None,
    *,
    now: datetime,
    event_source: EventSource | None = None,
    config: PlannerConfig | None = None,
) -> WeeklyPlan:
    """Handle a session that was not done.

    With ``new_date`` (ISO date or date-time) the session is moved there and
    marked not completed. Without it, a copy is appended at the next free
    slot and the original entry stays in the plan.
    """
    cfg = config or PlannerConfig()
    if now.tzinfo is None:
        now = now.replace(tzinfo=cfg.tz)
    now = now.astimezone(cfg.tz)
    missed = _require_session(plan, session_id)

    if new_date:
        moved = _move_session(missed, new_date, cfg)
        logger.info("Moved session %s to %s %s", session_id, moved.date, moved.start_time.strftime("%H:%M"))
        return _with_sessions(
            plan,
            [moved if s.session_id == session_id else s for s in plan.sessions],
        )

    sessions = [replace(s, completed=False) if s.session_id == session_id else s for s in plan.sessions]
    checker = ConflictChecker(
        event_source,
        window_start=now,
        window_end=now + timedelta(days=cfg.days_per_week + 1),
    )
    slot = find_next_free_slot(missed, now=now, conflict_checker=checker, config=cfg)
    if slot is None:
        logger.warning("No free slot found to reschedule session %s", session_id)
        return _with_sessions(plan, sessions)

    sessions.append(
        replace(
            missed,
            session_id=f"{missed.task_id}-rescheduled-{slot.slot_id}",
            date=slot.day,
            start_time=slot.start_time,
            completed=False,
        )
    )
    logger.info("Rescheduled missed session %s to slot %s", session_id, slot.slot_id)
    return _with_sessions(plan, sessions)
