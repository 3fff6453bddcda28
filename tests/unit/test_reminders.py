from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone

from studyflow.models import StudySession, Task
from studyflow.normalization import ReminderSettings
from studyflow.reminders import (
    AUTO_RESCHEDULE,
    SESSION_OVERDUE,
    SESSION_START,
    TASK_DUE,
    Reminder,
    ReminderQueue,
    ReminderScheduler,
    next_half_hour,
    reminder_interval,
    reminder_urgency_level,
)

NOW = datetime(2026, 1, 6, 9, 0, tzinfo=timezone.utc)


def _task(task_id: str = "essay", *, hours: float | None = 48, **overrides: object) -> Task:
    payload = {
        "task_id": task_id,
        "title": task_id.title(),
        "estimated_minutes": 60,
        "subject": "History",
        "due_date": NOW + timedelta(hours=hours) if hours is not None else None,
    }
    payload.update(overrides)
    return Task(**payload)


def _session(session_id: str, start: datetime, **overrides: object) -> StudySession:
    payload = {
        "session_id": session_id,
        "task_id": "essay",
        "date": start.date(),
        "start_time": start.time(),
        "duration_minutes": 60,
        "subject": "History",
        "title": "Essay",
        "priority": "medium",
    }
    payload.update(overrides)
    return StudySession(**payload)


def test_urgency_level_from_time_priority_and_difficulty() -> None:
    assert reminder_urgency_level(_task(hours=None), NOW) == 1
    assert reminder_urgency_level(_task(hours=-1), NOW) == 5
    assert reminder_urgency_level(_task(hours=5), NOW) == 4
    assert reminder_urgency_level(_task(hours=20), NOW) == 3
    assert reminder_urgency_level(_task(hours=48), NOW) == 2
    assert reminder_urgency_level(_task(hours=100), NOW) == 1
    assert reminder_urgency_level(_task(hours=48, priority="high"), NOW) == 3
    assert reminder_urgency_level(_task(hours=100, priority="low"), NOW) == 1
    assert reminder_urgency_level(_task(hours=48, difficulty=4), NOW) == 3
    assert reminder_urgency_level(_task(hours=1, priority="high", difficulty=5), NOW) == 5


def test_reminder_interval_scales_between_bounds() -> None:
    settings = ReminderSettings()
    assert [reminder_interval(level, settings) for level in range(1, 6)] == [240, 184, 128, 71, 15]
    assert reminder_interval(5, ReminderSettings(min_reminder_interval=30, max_reminder_interval=30)) == 30


def test_next_half_hour_rounds_up() -> None:
    assert next_half_hour(datetime(2026, 1, 6, 10, 15, 42)) == datetime(2026, 1, 6, 10, 30)
    assert next_half_hour(datetime(2026, 1, 6, 10, 45)) == datetime(2026, 1, 6, 11, 0)
    assert next_half_hour(datetime(2026, 1, 6, 23, 40)) == datetime(2026, 1, 7, 0, 0)
    assert next_half_hour(datetime(2026, 1, 6, 10, 30, 5)) == datetime(2026, 1, 6, 10, 30)


def _reminder(reminder_id: str, minutes: int) -> Reminder:
    return Reminder(
        reminder_id=reminder_id,
        kind=TASK_DUE,
        fire_at=NOW + timedelta(minutes=minutes),
        urgency_level=1,
        task_id=reminder_id,
    )


def test_queue_orders_by_time_and_supports_cancel_and_replace() -> None:
    queue = ReminderQueue()
    queue.push(_reminder("late", 30))
    queue.push(_reminder("early", 10))
    queue.push(_reminder("cancelled", 5))
    queue.push(_reminder("moved", 1))
    queue.push(_reminder("moved", 20))

    assert queue.cancel("cancelled") is True
    assert queue.cancel("cancelled") is False
    assert len(queue) == 3
    assert "moved" in queue and "cancelled" not in queue
    assert queue.peek_time() == NOW + timedelta(minutes=10)

    assert [r.reminder_id for r in queue.pop_due(NOW + timedelta(minutes=25))] == ["early", "moved"]
    assert [r.reminder_id for r in queue.pending()] == ["late"]
    assert queue.pop_due(NOW) == []


def test_sync_schedules_task_and_session_reminders() -> None:
    scheduler = ReminderScheduler()
    tasks = [
        _task("essay", hours=48),
        _task("far", hours=200),
        _task("nodue", hours=None),
        _task("done", hours=5, completed=True),
    ]
    sessions = [
        _session("soon", NOW + timedelta(hours=2)),
        _session("tomorrow-late", NOW + timedelta(hours=30)),
        _session("imminent", NOW + timedelta(minutes=10)),
    ]

    scheduler.sync(tasks, sessions, NOW)

    pending = {r.reminder_id: r for r in scheduler.queue.pending()}
    assert set(pending) == {"task-essay", "session-start-soon"}
    assert pending["task-essay"].fire_at == NOW + timedelta(minutes=184)
    assert pending["session-start-soon"].kind == SESSION_START
    assert pending["session-start-soon"].fire_at == NOW + timedelta(minutes=105)
    assert scheduler.history == []


def test_run_pending_notifies_and_rearms_task_reminders() -> None:
    shown = []
    scheduler = ReminderScheduler(ReminderSettings(sound_enabled=False), notifier=shown.append)
    scheduler.sync([_task("essay", hours=5)], [], NOW)

    fire_at = NOW + timedelta(minutes=71)
    assert scheduler.run_pending(fire_at - timedelta(minutes=1)) == []
    fired = scheduler.run_pending(fire_at)

    assert len(fired) == 1 and shown == fired
    notification = fired[0]
    assert notification.title == "Task due: Essay"
    assert notification.kind == TASK_DUE
    assert notification.urgency_level == 4
    assert notification.require_interaction is True
    assert notification.silent is True
    assert notification.auto_close_seconds == 15

    rearmed = scheduler.queue.get("task-essay")
    assert rearmed is not None
    assert rearmed.retry_count == 1
    assert rearmed.fire_at > fire_at

    # Shown recently, so a resync keeps the re-armed reminder.
    scheduler.sync([_task("essay", hours=5)], [], fire_at + timedelta(minutes=1))
    assert scheduler.queue.get("task-essay") == rearmed


def test_completed_task_cancels_its_reminder() -> None:
    scheduler = ReminderScheduler()
    scheduler.sync([_task("essay")], [], NOW)
    scheduler.sync([_task("essay", completed=True)], [], NOW + timedelta(minutes=5))
    assert "task-essay" not in scheduler.queue


def test_overdue_session_notifies_once_and_auto_reschedules() -> None:
    calls: list[tuple[str, str | None]] = []
    scheduler = ReminderScheduler(on_reschedule=lambda sid, when: calls.append((sid, when)))
    missed = _session("missed", NOW - timedelta(minutes=45))

    scheduler.sync([], [missed], NOW)
    scheduler.sync([], [missed], NOW + timedelta(minutes=1))

    assert [n.kind for n in scheduler.history] == [SESSION_OVERDUE]
    assert scheduler.history[0].urgency_level == 3
    assert scheduler.history[0].auto_close_seconds == 10
    assert scheduler.queue.get("reschedule-missed").kind == AUTO_RESCHEDULE

    scheduler.run_pending(NOW + timedelta(minutes=30))

    assert calls == [("missed", "2026-01-06T10:00:00+00:00")]
    assert "reschedule-missed" not in scheduler.queue


def test_session_not_yet_overdue_is_left_alone() -> None:
    scheduler = ReminderScheduler(on_reschedule=lambda sid, when: None)
    scheduler.sync([], [_session("late", NOW - timedelta(minutes=20))], NOW)
    assert scheduler.history == []
    assert len(scheduler.queue) == 0


def test_disabled_settings_fire_nothing() -> None:
    scheduler = ReminderScheduler(ReminderSettings(enabled=False), on_reschedule=lambda sid, when: None)
    scheduler.sync([_task("essay", hours=1)], [_session("missed", NOW - timedelta(hours=2))], NOW)

    assert len(scheduler.queue) == 0
    assert scheduler.run_pending(NOW + timedelta(days=1)) == []
    assert scheduler.history == []


def test_dismiss_and_snooze() -> None:
    scheduler = ReminderScheduler()
    scheduler.sync([_task("essay"), _task("lab")], [], NOW)

    assert scheduler.dismiss("task-lab") is True
    assert scheduler.dismiss("task-lab") is False
    assert scheduler.snooze("task-essay", 15, now=NOW) is True
    assert scheduler.queue.get("task-essay").fire_at == NOW + timedelta(minutes=15)
    assert scheduler.snooze("task-unknown", now=NOW) is False


def test_failing_notifier_does_not_stop_processing() -> None:
    def _broken(notification: object) -> None:
        raise RuntimeError("display unavailable")

    scheduler = ReminderScheduler(notifier=_broken)
    scheduler.sync([_task("essay", hours=5)], [], NOW)

    assert len(scheduler.run_pending(NOW + timedelta(hours=2))) == 1


def test_run_loop_sleeps_until_next_reminder() -> None:
    scheduler = ReminderScheduler()
    scheduler.sync([_task("essay", hours=5)], [], NOW)
    clock = {"now": NOW}
    sleeps: list[float] = []

    def _sleep(seconds: float) -> None:
        sleeps.append(seconds)
        clock["now"] += timedelta(seconds=seconds)

    scheduler.run(lambda: clock["now"], _sleep, should_stop=lambda: len(sleeps) >= 80, idle_seconds=60)

    assert [n.title for n in scheduler.history] == ["Task due: Essay"]
    assert all(0 <= seconds <= 60 for seconds in sleeps)


def test_session_start_notification_text() -> None:
    scheduler = ReminderScheduler()
    start = datetime.combine(date(2026, 1, 6), time(12, 0), tzinfo=timezone.utc)
    scheduler.sync([], [_session("noon", start, duration_minutes=90)], NOW)

    fired = scheduler.run_pending(start - timedelta(minutes=15))

    assert fired[0].title == "Time to study: Essay"
    assert "Duration: 90 minutes" in fired[0].body
    assert fired[0].require_interaction is False
