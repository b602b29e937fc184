"""Pomodoro timer state machine: pure logic, no I/O.

All time values are integer seconds. Nothing here reads a clock: the
runner (or a test) calls tick() once per second while the timer runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from .resolver import ConfigSource, DurationSelection, Durations, Layer, TimerConfig

logger = logging.getLogger("pomodoro_api.timer")


class Phase(str, Enum):
    WORK = "work"
    SHORT_BREAK = "shortBreak"
    LONG_BREAK = "longBreak"

    @property
    def label(self) -> str:
        return PHASE_LABELS[self]

    @property
    def is_break(self) -> bool:
        return self is not Phase.WORK


PHASE_LABELS = {
    Phase.WORK: "Work",
    Phase.SHORT_BREAK: "Short Break",
    Phase.LONG_BREAK: "Long Break",
}


class TimerEvent(Enum):
    STARTED = "started"
    PAUSED = "paused"
    STOPPED = "stopped"
    RESET = "reset"
    PHASE_COMPLETED = "phase_completed"
    PHASE_CHANGED = "phase_changed"
    SOUND_CUE = "sound_cue"
    AUTO_STARTED = "auto_started"


@dataclass
class TickResult:
    events: list[TimerEvent] = field(default_factory=list)
    old_phase: Phase | None = None
    new_phase: Phase | None = None


def format_time(seconds: int) -> str:
    """Format seconds as 'MM:SS'. Minutes are not wrapped at 60."""
    seconds = max(0, int(seconds))
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


def minutes_to_seconds(minutes: float) -> int:
    return int(round(minutes * 60))


class PomodoroTimer:
    """Work / short break / long break cycle crossed with running / paused.

    The effective configuration is re-resolved on every read, so a
    preference change mid-countdown changes the full duration (and the
    progress denominator) without rescaling the remaining time.
    """

    def __init__(
        self,
        preference: Layer = None,
        is_authenticated: bool = True,
        sound: Optional[Callable[[], None]] = None,
    ):
        self._phase: Phase = Phase.WORK
        self._running: bool = False
        self._time_left: int | None = None  # None until seeded
        self._completed_work_sessions: int = 0
        self._auto_start_pending: bool = False
        self._preference: Layer = preference
        self._is_authenticated: bool = is_authenticated
        self._selection = DurationSelection()
        self._sound = sound

    # ---- Read-only properties ----

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def completed_work_sessions(self) -> int:
        return self._completed_work_sessions

    @property
    def selection(self) -> DurationSelection:
        return self._selection

    @property
    def config(self) -> TimerConfig:
        return self._selection.resolve(self._preference, self._is_authenticated)

    @property
    def custom_mode(self) -> bool:
        return self.config.source == ConfigSource.CUSTOM

    @property
    def time_left(self) -> int:
        if self._time_left is None:
            return self.full_duration()
        return self._time_left

    def full_duration(self, phase: Phase | None = None) -> int:
        """Full length of ``phase`` in seconds, read from the current configuration."""
        config = self.config
        phase = phase or self._phase
        if phase is Phase.WORK:
            minutes = config.work_duration
        elif phase is Phase.SHORT_BREAK:
            minutes = config.short_break
        else:
            minutes = config.long_break
        return minutes_to_seconds(minutes)

    @property
    def progress(self) -> float:
        """Fraction of the current phase already elapsed, clamped to [0, 1]."""
        total = self.full_duration()
        if total <= 0:
            return 1.0
        return min(1.0, max(0.0, (total - self.time_left) / total))

    # ---- Configuration ----

    def set_preference(self, preference: Layer, is_authenticated: bool = True) -> None:
        self._preference = preference
        self._is_authenticated = is_authenticated

    def select_preset(self, preset: Layer) -> None:
        self._selection.select_preset(preset)

    def clear_preset(self) -> None:
        self._selection.clear_preset()

    def set_custom(self, durations: Optional[Durations]) -> None:
        self._selection.set_override(durations)

    def clear_custom(self) -> None:
        self._selection.clear_override()

    # ---- Controls ----

    def start(self) -> TickResult:
        if self._running:
            return TickResult()
        if self._time_left is None:
            self._time_left = self.full_duration()
        self._running = True
        return TickResult(events=[TimerEvent.STARTED])

    def pause(self) -> TickResult:
        if not self._running:
            return TickResult()
        self._running = False
        return TickResult(events=[TimerEvent.PAUSED])

    def stop(self) -> TickResult:
        """Pause and discard progress in the current phase only."""
        self._running = False
        self._time_left = None
        return TickResult(events=[TimerEvent.STOPPED])

    def reset(self) -> TickResult:
        old_phase = self._phase
        self._running = False
        self._phase = Phase.WORK
        self._completed_work_sessions = 0
        self._auto_start_pending = False
        self._selection.clear_override()
        self._time_left = None
        result = TickResult(events=[TimerEvent.RESET], old_phase=old_phase, new_phase=Phase.WORK)
        if old_phase is not Phase.WORK:
            result.events.append(TimerEvent.PHASE_CHANGED)
        return result

    def select_phase(self, phase: Phase) -> TickResult:
        """Manual phase choice. Always paused, never touches the session count."""
        old_phase = self._phase
        self._phase = Phase(phase)
        self._running = False
        self._time_left = None
        result = TickResult(old_phase=old_phase, new_phase=self._phase)
        if old_phase is not self._phase:
            result.events.append(TimerEvent.PHASE_CHANGED)
        return result

    def tick(self) -> TickResult:
        """Advance one second. Fires completion when the countdown reaches zero."""
        if not self._running:
            return TickResult()
        self._time_left = self.time_left - 1
        if self._time_left <= 0:
            return self._complete()
        return TickResult()

    # ---- Serialization ----

    def to_export_dict(self) -> dict:
        """CamelCase snapshot for display or JSON export."""
        config = self.config
        return {
            "phase": self._phase.value,
            "phaseLabel": self._phase.label,
            "isRunning": self._running,
            "timeLeft": self.time_left,
            "display": format_time(self.time_left),
            "progress": self.progress,
            "completedWorkSessions": self._completed_work_sessions,
            "configSource": config.source.value,
        }

    # ---- Internal ----

    def _complete(self) -> TickResult:
        self._running = False
        config = self.config
        old_phase = self._phase
        result = TickResult(events=[TimerEvent.PHASE_COMPLETED], old_phase=old_phase)

        if config.sound_enabled:
            result.events.append(TimerEvent.SOUND_CUE)
            self._play_sound()

        if old_phase is Phase.WORK:
            self._completed_work_sessions += 1
            interval = max(1, int(config.long_break_interval))
            if self._completed_work_sessions % interval == 0:
                self._phase = Phase.LONG_BREAK
            else:
                self._phase = Phase.SHORT_BREAK
            self._auto_start_pending = bool(config.auto_start_breaks)
        else:
            self._phase = Phase.WORK
            self._auto_start_pending = bool(config.auto_start_pomodoros)

        result.new_phase = self._phase
        result.events.append(TimerEvent.PHASE_CHANGED)
        self._time_left = self.full_duration()

        if self._auto_start_pending:
            self._running = True
            result.events.append(TimerEvent.AUTO_STARTED)
        self._auto_start_pending = False
        return result

    def _play_sound(self) -> None:
        if self._sound is None:
            return
        try:
            self._sound()
        except Exception as e:
            # The cue is fire-and-forget; phase advance never waits on it.
            logger.warning(f"Sound cue failed: {e}")
