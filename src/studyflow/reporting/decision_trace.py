"""Decision trace utilities for allocator runtime events."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any


@dataclass(slots=True)
class DecisionTraceCollector:
    """Collect per-slot allocation decisions while the allocator runs."""

    start_timestamp: datetime
    _sequence: int = 0
    _items: list[dict[str, Any]] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.start_timestamp.tzinfo is None:
            self.start_timestamp = self.start_timestamp.replace(tzinfo=timezone.utc)

    def record(
        self,
        *,
        slot_id: str,
        candidate_tasks: list[str],
        scores_by_task: dict[str, float],
        selected_task_id: str | None,
        applied_rules: list[str],
        blocked_by_events: list[str],
        minutes: int = 0,
        note: str = "",
    ) -> None:
        self._sequence += 1
        timestamp = self.start_timestamp + timedelta(seconds=self._sequence)
        self._items.append(
            {
                "decision_id": f"d-{self._sequence:06d}",
                "timestamp": timestamp.isoformat().replace("+00:00", "Z"),
                "slot_id": slot_id,
                "candidate_tasks": list(candidate_tasks),
                "scores_by_task": {tid: float(scores_by_task[tid]) for tid in sorted(scores_by_task)},
                "selected_task_id": selected_task_id,
                "applied_rules": applied_rules,
                "blocked_by_events": sorted(blocked_by_events),
                "minutes": int(minutes),
                "note": note,
            }
        )

    def __len__(self) -> int:
        return len(self._items)

    def as_list(self) -> list[dict[str, Any]]:
        """Return trace sorted in deterministic chronological order."""
        return sorted(self._items, key=lambda item: (str(item["timestamp"]), str(item["decision_id"])))
