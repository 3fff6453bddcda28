"""Single owner of the current weekly plan."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable

from studyflow.engine import adjust_for_missed, complete_session, run_planner
from studyflow.models import WeeklyPlan
from studyflow.normalization import PlannerConfig
from studyflow.repository import EventSource, InMemoryTaskRepository, TaskRepository

logger = logging.getLogger(__name__)

RescheduleCallback = Callable[[str, str | None], None]


class StudyPlanService:
    """Holds the plan shown to the user and applies mutations to it.

    Every operation replaces ``plan`` wholesale; the last call wins.
    """

    def __init__(
        self,
        tasks: TaskRepository | None = None,
        event_source: EventSource | None = None,
        config: PlannerConfig | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.tasks = tasks if tasks is not None else InMemoryTaskRepository()
        self.event_source = event_source
        self.config = config or PlannerConfig()
        self._clock = clock or (lambda: datetime.now(self.config.tz))
        self.plan: WeeklyPlan | None = None
        self.suggestions: list[dict[str, Any]] = []
        self.decision_trace: list[dict[str, Any]] = []

    def regenerate(self, now: datetime | None = None) -> WeeklyPlan:
        result = run_planner(
            [task for task in self.tasks.list_tasks() if not task.completed],
            now=now or self._clock(),
            event_source=self.event_source,
            config=self.config,
        )
        self.plan = result["plan"]
        self.suggestions = result["suggestions"]
        self.decision_trace = result["decision_trace"]
        return self.plan

    def _current_plan(self) -> WeeklyPlan:
        if self.plan is None:
            raise LookupError("No plan has been generated yet")
        return self.plan

    def complete_session(self, session_id: str) -> WeeklyPlan:
        self.plan = complete_session(self._current_plan(), session_id)
        logger.info("Session %s completed", session_id)
        return self.plan

    def adjust_for_missed(
        self,
        session_id: str,
        new_date: str | None = None,
        *,
        now: datetime | None = None,
    ) -> WeeklyPlan:
        self.plan = adjust_for_missed(
            self._current_plan(),
            session_id,
            new_date,
            now=now or self._clock(),
            event_source=self.event_source,
            config=self.config,
        )
        return self.plan

    def reschedule_callback(self) -> RescheduleCallback:
        """Callable handed to reminders; failures are logged, never raised."""

        def _callback(session_id: str, new_time: str | None = None) -> None:
            try:
                self.adjust_for_missed(session_id, new_time)
            except (LookupError, ValueError) as exc:
                logger.warning("Could not reschedule session %s: %s", session_id, exc)

        return _callback
