"""Smart reminders driven by a single time-ordered queue.

One ``ReminderScheduler`` owns every pending reminder (task due, session
start, missed session, auto-reschedule). ``sync`` rebuilds the queue from
the current tasks and sessions, ``run_pending`` fires what is due and
``run`` loops over both with an injected clock and sleep.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Callable, Iterable

from studyflow.engine.budget import round_half_up
from studyflow.models import StudySession, Task
from studyflow.normalization.config_resolver import ReminderSettings

logger = logging.getLogger(__name__)

TASK_DUE = "task_due"
SESSION_START = "session_start"
SESSION_OVERDUE = "session_overdue"
AUTO_RESCHEDULE = "auto_reschedule"

SESSION_START_LEVEL = 2
SESSION_OVERDUE_LEVEL = 3


def reminder_urgency_level(task: Task, now: datetime) -> int:
    """Urgency 1 (low) to 5 (critical) from time to due, priority and difficulty."""
    if task.due_date is None:
        return 1

    hours = (task.due_date - now).total_seconds() / 3600
    if hours <= 0:
        level = 5
    elif hours <= 6:
        level = 4
    elif hours <= 24:
        level = 3
    elif hours <= 72:
        level = 2
    else:
        level = 1

    if task.priority == "high":
        level += 1
    elif task.priority == "low":
        level -= 1
    if task.difficulty is not None and task.difficulty >= 4:
        level += 1
    return max(1, min(5, level))


def reminder_interval(level: int, settings: ReminderSettings) -> int:
    """Minutes between reminders; level 1 waits the longest."""
    low = settings.min_reminder_interval
    high = settings.max_reminder_interval
    return max(low, round_half_up(high - (level - 1) / 4 * (high - low)))


def next_half_hour(moment: datetime) -> datetime:
    """Round up to the next :00 or :30 mark, dropping seconds."""
    minutes = math.ceil(moment.minute / 30) * 30
    return moment.replace(minute=0, second=0, microsecond=0) + timedelta(minutes=minutes)


@dataclass(slots=True, frozen=True)
class Reminder:
    reminder_id: str
    kind: str
    fire_at: datetime
    urgency_level: int
    task_id: str
    session_id: str | None = None
    retry_count: int = 0


@dataclass(slots=True, frozen=True)
class Notification:
    title: str
    body: str
    tag: str
    kind: str
    urgency_level: int
    require_interaction: bool
    silent: bool
    auto_close_seconds: int


def _auto_close_seconds(level: int) -> int:
    if level >= 4:
        return 15
    if level >= 3:
        return 10
    return 5


class ReminderQueue:
    """Min-heap of reminders by fire time, cancellable by id.

    Cancelled or replaced entries stay in the heap and are skipped on pop.
    """

    def __init__(self) -> None:
        self._heap: list[tuple[datetime, int, str]] = []
        self._live: dict[str, tuple[int, Reminder]] = {}
        self._counter = itertools.count()

    def push(self, reminder: Reminder) -> None:
        seq = next(self._counter)
        self._live[reminder.reminder_id] = (seq, reminder)
        heapq.heappush(self._heap, (reminder.fire_at, seq, reminder.reminder_id))

    def cancel(self, reminder_id: str) -> bool:
        return self._live.pop(reminder_id, None) is not None

    def get(self, reminder_id: str) -> Reminder | None:
        entry = self._live.get(reminder_id)
        return entry[1] if entry else None

    def _discard_stale(self) -> None:
        while self._heap:
            _, seq, reminder_id = self._heap[0]
            entry = self._live.get(reminder_id)
            if entry is not None and entry[0] == seq:
                return
            heapq.heappop(self._heap)

    def peek_time(self) -> datetime | None:
        self._discard_stale()
        return self._heap[0][0] if self._heap else None

    def pop_due(self, now: datetime) -> list[Reminder]:
        due: list[Reminder] = []
        while True:
            self._discard_stale()
            if not self._heap or self._heap[0][0] > now:
                return due
            _, _, reminder_id = heapq.heappop(self._heap)
            due.append(self._live.pop(reminder_id)[1])

    def pending(self) -> list[Reminder]:
        return sorted((entry[1] for entry in self._live.values()), key=lambda r: (r.fire_at, r.reminder_id))

    def clear(self) -> None:
        self._heap.clear()
        self._live.clear()

    def __len__(self) -> int:
        return len(self._live)

    def __contains__(self, reminder_id: object) -> bool:
        return reminder_id in self._live


Notifier = Callable[[Notification], None]
RescheduleHandler = Callable[[str, str | None], None]


class ReminderScheduler:
    def __init__(
        self,
        settings: ReminderSettings | None = None,
        notifier: Notifier | None = None,
        on_reschedule: RescheduleHandler | None = None,
        *,
        tz: tzinfo = timezone.utc,
    ) -> None:
        self.settings = settings or ReminderSettings()
        self.queue = ReminderQueue()
        self._notifier = notifier
        self._on_reschedule = on_reschedule
        self._tz = tz
        self._tasks: dict[str, Task] = {}
        self._sessions: dict[str, StudySession] = {}
        self._last_shown: dict[str, datetime] = {}
        self._overdue_notified: set[str] = set()
        self.history: list[Notification] = []

    def sync(self, tasks: Iterable[Task], sessions: Iterable[StudySession], now: datetime) -> None:
        """Rebuild pending reminders after tasks or sessions changed."""
        self._tasks = {task.task_id: task for task in tasks}
        self._sessions = {session.session_id: session for session in sessions}
        if not self.settings.enabled:
            self.queue.clear()
            return

        self._sync_task_reminders(now)
        self._sync_session_reminders(now)
        logger.debug("Reminder queue holds %d entries after sync", len(self.queue))

    def _queued(self, *kinds: str) -> list[Reminder]:
        return [reminder for reminder in self.queue.pending() if reminder.kind in kinds]

    def _sync_task_reminders(self, now: datetime) -> None:
        horizon = timedelta(hours=self.settings.task_horizon_hours)
        for reminder in self._queued(TASK_DUE):
            task = self._tasks.get(reminder.task_id)
            if task is None or task.completed or task.due_date is None:
                self.queue.cancel(reminder.reminder_id)

        for task in self._tasks.values():
            reminder_id = f"task-{task.task_id}"
            if task.completed or task.due_date is None or task.due_date - now > horizon:
                self.queue.cancel(reminder_id)
                continue

            level = reminder_urgency_level(task, now)
            interval = reminder_interval(level, self.settings)
            last_shown = self._last_shown.get(task.task_id)
            if last_shown is not None and now - last_shown < timedelta(minutes=interval):
                continue

            previous = self.queue.get(reminder_id)
            if previous is not None and previous.urgency_level == level:
                continue
            self.queue.push(
                Reminder(
                    reminder_id=reminder_id,
                    kind=TASK_DUE,
                    fire_at=now + timedelta(minutes=interval),
                    urgency_level=level,
                    task_id=task.task_id,
                    retry_count=previous.retry_count + 1 if previous else 0,
                )
            )

    def _sync_session_reminders(self, now: datetime) -> None:
        lead = self.settings.session_lead_minutes
        for reminder in self._queued(SESSION_START, AUTO_RESCHEDULE):
            session = self._sessions.get(reminder.session_id or "")
            if session is None or session.completed:
                self.queue.cancel(reminder.reminder_id)

        for session in self._sessions.values():
            if session.completed:
                continue
            minutes_until = (session.start(self._tz) - now).total_seconds() / 60

            if lead < minutes_until <= 24 * 60:
                self.queue.push(
                    Reminder(
                        reminder_id=f"session-start-{session.session_id}",
                        kind=SESSION_START,
                        fire_at=session.start(self._tz) - timedelta(minutes=lead),
                        urgency_level=SESSION_START_LEVEL,
                        task_id=session.task_id,
                        session_id=session.session_id,
                    )
                )

            if minutes_until < -self.settings.session_overdue_minutes:
                self._handle_overdue(session, now)

    def _handle_overdue(self, session: StudySession, now: datetime) -> None:
        if session.session_id in self._overdue_notified:
            return
        self._overdue_notified.add(session.session_id)
        self._notify(
            Reminder(
                reminder_id=f"session-overdue-{session.session_id}",
                kind=SESSION_OVERDUE,
                fire_at=now,
                urgency_level=SESSION_OVERDUE_LEVEL,
                task_id=session.task_id,
                session_id=session.session_id,
            )
        )
        if self.settings.auto_reschedule and self._on_reschedule is not None:
            self.queue.push(
                Reminder(
                    reminder_id=f"reschedule-{session.session_id}",
                    kind=AUTO_RESCHEDULE,
                    fire_at=now + timedelta(minutes=self.settings.reschedule_delay),
                    urgency_level=SESSION_OVERDUE_LEVEL,
                    task_id=session.task_id,
                    session_id=session.session_id,
                )
            )

    def run_pending(self, now: datetime) -> list[Notification]:
        """Fire every reminder due at ``now``; returns the notifications shown."""
        shown: list[Notification] = []
        if not self.settings.enabled:
            return shown

        for reminder in self.queue.pop_due(now):
            if reminder.kind == AUTO_RESCHEDULE:
                self._reschedule(reminder, now)
                continue
            if reminder.kind == TASK_DUE:
                task = self._tasks.get(reminder.task_id)
                if task is None or task.completed:
                    continue
            notification = self._notify(reminder)
            if notification is not None:
                shown.append(notification)
            if reminder.kind == TASK_DUE:
                self._last_shown[reminder.task_id] = now
                self._rearm(reminder, now)
        return shown

    def _rearm(self, reminder: Reminder, now: datetime) -> None:
        task = self._tasks[reminder.task_id]
        level = reminder_urgency_level(task, now)
        self.queue.push(
            replace(
                reminder,
                fire_at=now + timedelta(minutes=reminder_interval(level, self.settings)),
                urgency_level=level,
                retry_count=reminder.retry_count + 1,
            )
        )

    def _reschedule(self, reminder: Reminder, now: datetime) -> None:
        if reminder.session_id is None or self._on_reschedule is None:
            return
        new_time = next_half_hour(now + timedelta(minutes=self.settings.reschedule_delay))
        logger.info("Auto-rescheduling session %s to %s", reminder.session_id, new_time.isoformat())
        self._on_reschedule(reminder.session_id, new_time.isoformat())
        self._overdue_notified.discard(reminder.session_id)

    def dismiss(self, reminder_id: str) -> bool:
        return self.queue.cancel(reminder_id)

    def snooze(self, reminder_id: str, minutes: int = 15, *, now: datetime) -> bool:
        reminder = self.queue.get(reminder_id)
        if reminder is None:
            return False
        self.queue.push(replace(reminder, fire_at=now + timedelta(minutes=minutes)))
        return True

    def run(
        self,
        clock: Callable[[], datetime],
        sleep: Callable[[float], None],
        *,
        should_stop: Callable[[], bool] = lambda: False,
        idle_seconds: float = 60.0,
    ) -> None:
        """Process reminders until ``should_stop`` returns True."""
        while not should_stop():
            now = clock()
            self.run_pending(now)
            next_fire = self.queue.peek_time()
            wait = idle_seconds
            if next_fire is not None:
                wait = min(idle_seconds, max(0.0, (next_fire - now).total_seconds()))
            sleep(wait)

    def _render(self, reminder: Reminder) -> tuple[str, str]:
        task = self._tasks.get(reminder.task_id)
        session = self._sessions.get(reminder.session_id or "")
        title = session.title if session else (task.title if task else reminder.task_id)
        subject = session.subject if session else (task.subject_label if task else "")

        if reminder.kind == TASK_DUE:
            due = task.due_date.isoformat() if task and task.due_date else "no due date"
            return f"Task due: {title}", f"Subject: {subject}\nDue: {due}"
        if reminder.kind == SESSION_START:
            duration = session.duration_minutes if session else 60
            return f"Time to study: {title}", f"Subject: {subject}\nDuration: {duration} minutes"
        return f"Missed session: {title}", "The study session was not started. Reschedule automatically?"

    def _notify(self, reminder: Reminder) -> Notification | None:
        if not self.settings.enabled:
            return None
        title, body = self._render(reminder)
        notification = Notification(
            title=title,
            body=body,
            tag=reminder.reminder_id,
            kind=reminder.kind,
            urgency_level=reminder.urgency_level,
            require_interaction=reminder.urgency_level >= 3,
            silent=not self.settings.sound_enabled,
            auto_close_seconds=_auto_close_seconds(reminder.urgency_level),
        )
        self.history.append(notification)
        if self._notifier is not None:
            try:
                self._notifier(notification)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Notifier failed for reminder %s: %s", reminder.reminder_id, exc)
        return notification
