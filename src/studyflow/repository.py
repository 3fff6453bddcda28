"""Task store and imported-event store interfaces with local implementations.

The hosted table store and the calendar providers are external; the planner
only talks to them through these protocols.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone, tzinfo
from pathlib import Path
from typing import Any, Iterable, Protocol

from studyflow.calendar_csv import import_csv
from studyflow.io import read_json, read_text, write_json
from studyflow.models import ExternalEvent, Task
from studyflow.validation import TaskValidationError, ValidationReport, build_task

logger = logging.getLogger(__name__)


class TaskRepository(Protocol):
    def list_tasks(self) -> list[Task]: ...

    def add_task(self, payload: dict[str, Any]) -> Task: ...

    def update_task(self, task_id: str, updates: dict[str, Any]) -> Task: ...

    def delete_task(self, task_id: str) -> None: ...

    def toggle_task(self, task_id: str) -> Task: ...


class EventSource(Protocol):
    def fetch_events(self, window_start: datetime, window_end: datetime) -> list[ExternalEvent]: ...


class EventSourceError(RuntimeError):
    """Raised when imported events cannot be fetched."""


class InMemoryTaskRepository:
    """Task store kept in insertion order."""

    def __init__(self, tasks: Iterable[Task] = (), *, tz: tzinfo = timezone.utc) -> None:
        self._tasks: list[Task] = list(tasks)
        self._tz = tz

    def list_tasks(self) -> list[Task]:
        return list(self._tasks)

    def list_incomplete(self) -> list[Task]:
        return [task for task in self._tasks if not task.completed]

    def get_task(self, task_id: str) -> Task:
        for task in self._tasks:
            if task.task_id == task_id:
                return task
        raise KeyError(task_id)

    def add_task(self, payload: dict[str, Any]) -> Task:
        task = build_task(payload, tz=self._tz)
        if any(existing.task_id == task.task_id for existing in self._tasks):
            report = ValidationReport()
            report.add_error(
                code="DUPLICATE_TASK_ID",
                message=f"Duplicate task_id: {task.task_id}",
                field_path="$.task.task_id",
            )
            raise TaskValidationError(report)
        self._tasks.append(task)
        self._persist()
        return task

    def update_task(self, task_id: str, updates: dict[str, Any]) -> Task:
        current = self.get_task(task_id)
        payload = {**current.as_dict(), **updates, "task_id": task_id}
        updated = build_task(payload, tz=self._tz)
        self._tasks = [updated if task.task_id == task_id else task for task in self._tasks]
        self._persist()
        return updated

    def delete_task(self, task_id: str) -> None:
        self.get_task(task_id)
        self._tasks = [task for task in self._tasks if task.task_id != task_id]
        self._persist()

    def toggle_task(self, task_id: str) -> Task:
        current = self.get_task(task_id)
        return self.update_task(task_id, {"completed": not current.completed})

    def _persist(self) -> None:
        pass


class JsonTaskRepository(InMemoryTaskRepository):
    """Task store persisted to a ``{"tasks": [...]}`` JSON document."""

    def __init__(self, path: str | Path, *, tz: tzinfo = timezone.utc) -> None:
        self._path = Path(path)
        tasks: list[Task] = []
        if self._path.exists():
            payload = read_json(self._path)
            tasks = [Task.from_dict(item, tz=tz) for item in payload.get("tasks", []) if isinstance(item, dict)]
        super().__init__(tasks, tz=tz)

    def _persist(self) -> None:
        write_json(
            self._path,
            {"schema_version": "1.0", "tasks": [task.as_dict() for task in self._tasks]},
        )


def _in_window(event: ExternalEvent, window_start: datetime, window_end: datetime) -> bool:
    return event.start < window_end and event.end > window_start


class InMemoryEventSource:
    def __init__(self, events: Iterable[ExternalEvent] = ()) -> None:
        self._events = sorted(events, key=lambda event: (event.start, event.event_id))

    def fetch_events(self, window_start: datetime, window_end: datetime) -> list[ExternalEvent]:
        return [event for event in self._events if _in_window(event, window_start, window_end)]


class JsonEventSource:
    """Imported events read from a JSON (``{"events": [...]}``) or CSV file.

    The file is read on every fetch; read or parse failures surface as
    EventSourceError.
    """

    def __init__(self, path: str | Path, *, tz: tzinfo = timezone.utc) -> None:
        self._path = Path(path)
        self._tz = tz

    def fetch_events(self, window_start: datetime, window_end: datetime) -> list[ExternalEvent]:
        try:
            events = self._load()
        except (OSError, ValueError, KeyError, TypeError) as exc:
            raise EventSourceError(f"Cannot load events from {self._path}: {exc}") from exc
        logger.debug("Read %d events from %s", len(events), self._path)
        return InMemoryEventSource(events).fetch_events(window_start, window_end)

    def _load(self) -> list[ExternalEvent]:
        if self._path.suffix.lower() == ".csv":
            events, report = import_csv(read_text(self._path), tz=self._tz)
            if report.errors:
                raise ValueError(f"{len(report.errors)} invalid CSV rows")
            return events

        payload = read_json(self._path)
        return [
            ExternalEvent.from_dict(item, tz=self._tz)
            for item in payload.get("events", [])
            if isinstance(item, dict)
        ]
