from __future__ import annotations

from studyflow.normalization import TimerSettings
from studyflow.timer import BREAK, STUDY, PomodoroTimer


def _timer(**settings: int) -> tuple[PomodoroTimer, list[tuple[str, int]], list[tuple[str, int]]]:
    progress: list[tuple[str, int]] = []
    completed: list[tuple[str, int]] = []
    timer = PomodoroTimer(
        TimerSettings(**settings),
        on_progress=lambda phase, seconds: progress.append((phase, seconds)),
        on_complete=lambda phase, seconds: completed.append((phase, seconds)),
    )
    return timer, progress, completed


def test_initial_state() -> None:
    timer, _, _ = _timer()
    assert timer.phase == STUDY
    assert timer.running is False
    assert timer.display() == "25:00"
    assert timer.progress == 0


def test_ticks_only_count_while_running() -> None:
    timer, progress, _ = _timer()
    timer.tick(30)
    assert timer.remaining_seconds == 25 * 60

    timer.start()
    timer.tick(150)
    assert timer.display() == "22:30"
    assert progress == [(STUDY, 60), (STUDY, 60)]
    assert timer.progress == 10.0


def test_pause_flushes_unreported_study_time() -> None:
    timer, progress, _ = _timer()
    timer.toggle()
    timer.tick(90)
    timer.toggle()

    assert timer.running is False
    assert progress == [(STUDY, 60), (STUDY, 30)]

    timer.pause()
    assert progress == [(STUDY, 60), (STUDY, 30)]


def test_completion_flips_phase_and_stops() -> None:
    timer, progress, completed = _timer(work_minutes=2, break_minutes=1)
    timer.start()
    timer.tick(500)

    assert completed == [(STUDY, 120)]
    assert sum(seconds for _, seconds in progress) == 120
    assert timer.phase == BREAK
    assert timer.running is False
    assert timer.remaining_seconds == 60

    timer.start()
    timer.tick(60)
    assert completed == [(STUDY, 120), (BREAK, 60)]
    assert timer.phase == STUDY
    assert sum(seconds for _, seconds in progress) == 120


def test_reset_and_switch_report_progress() -> None:
    timer, progress, completed = _timer()
    timer.start()
    timer.tick(45)
    timer.reset()

    assert progress == [(STUDY, 45)]
    assert timer.phase == STUDY
    assert timer.remaining_seconds == 25 * 60

    timer.start()
    timer.tick(20)
    timer.switch_phase()

    assert progress == [(STUDY, 45), (STUDY, 20)]
    assert timer.phase == BREAK
    assert timer.display() == "05:00"
    assert completed == []


def test_break_time_is_never_reported_as_progress() -> None:
    timer, progress, _ = _timer()
    timer.switch_phase()
    timer.start()
    timer.tick(200)
    timer.pause()
    assert progress == []
