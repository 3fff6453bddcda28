"""Pomodoro study timer driven by explicit ticks."""

from __future__ import annotations

import logging
from typing import Callable

from studyflow.normalization.config_resolver import TimerSettings

logger = logging.getLogger(__name__)

STUDY = "study"
BREAK = "break"

PhaseCallback = Callable[[str, int], None]


class PomodoroTimer:
    """Alternating study and break phases.

    ``on_progress(phase, seconds)`` receives study seconds not reported yet:
    every ``progress_flush_seconds`` while running, and on pause, reset,
    switch and completion. ``on_complete(phase, seconds)`` receives the full
    phase length once it runs out; the timer then flips phase and stops.
    """

    def __init__(
        self,
        settings: TimerSettings | None = None,
        *,
        on_progress: PhaseCallback | None = None,
        on_complete: PhaseCallback | None = None,
    ) -> None:
        self.settings = settings or TimerSettings()
        self._on_progress = on_progress
        self._on_complete = on_complete
        self.phase = STUDY
        self.running = False
        self.total_seconds = self._phase_seconds(STUDY)
        self.remaining_seconds = self.total_seconds
        self._unflushed = 0
        self._since_flush = 0

    def _phase_seconds(self, phase: str) -> int:
        minutes = self.settings.work_minutes if phase == STUDY else self.settings.break_minutes
        return minutes * 60

    @property
    def elapsed_seconds(self) -> int:
        return self.total_seconds - self.remaining_seconds

    @property
    def progress(self) -> float:
        if self.total_seconds <= 0:
            return 100.0
        return self.elapsed_seconds / self.total_seconds * 100

    def display(self) -> str:
        minutes, seconds = divmod(self.remaining_seconds, 60)
        return f"{minutes:02d}:{seconds:02d}"

    def start(self) -> None:
        self.running = True

    def pause(self) -> None:
        if self.running:
            self._flush()
        self.running = False

    def toggle(self) -> None:
        if self.running:
            self.pause()
        else:
            self.start()

    def reset(self) -> None:
        self._flush()
        self.running = False
        self._load_phase(self.phase)

    def switch_phase(self) -> None:
        self._flush()
        self.running = False
        self._load_phase(BREAK if self.phase == STUDY else STUDY)

    def tick(self, seconds: int = 1) -> None:
        """Advance the running timer by ``seconds``."""
        for _ in range(max(0, seconds)):
            if not self.running:
                return
            self.remaining_seconds -= 1
            if self.phase == STUDY:
                self._unflushed += 1
                self._since_flush += 1
                if self._since_flush >= self.settings.progress_flush_seconds:
                    self._flush()
            if self.remaining_seconds <= 0:
                self._complete()

    def _complete(self) -> None:
        finished = self.phase
        self._flush()
        logger.info("%s phase finished after %d seconds", finished, self.total_seconds)
        if self._on_complete is not None:
            self._on_complete(finished, self.total_seconds)
        self.running = False
        self._load_phase(BREAK if finished == STUDY else STUDY)

    def _load_phase(self, phase: str) -> None:
        self.phase = phase
        self.total_seconds = self._phase_seconds(phase)
        self.remaining_seconds = self.total_seconds
        self._unflushed = 0
        self._since_flush = 0

    def _flush(self) -> None:
        self._since_flush = 0
        if self.phase != STUDY or self._unflushed <= 0:
            return
        seconds, self._unflushed = self._unflushed, 0
        if self._on_progress is not None:
            self._on_progress(STUDY, seconds)
