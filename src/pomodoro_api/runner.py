"""Drives a PomodoroTimer from a one-second APScheduler interval job.

Only one tick job exists at a time. Every control call cancels the current
job before (optionally) scheduling a new one, and each job carries the
generation it was scheduled under so a tick that was already queued when
the timer was paused or stopped is dropped instead of applied.

The tick job is a coroutine, so with an AsyncIOScheduler every tick runs
on the event loop thread, never on an executor thread.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .timer import Phase, PomodoroTimer, TickResult, TimerEvent

logger = logging.getLogger("pomodoro_api.runner")

TICK_JOB_ID = "pomodoro-tick"
TICK_SECONDS = 1


class TimerRunner:
    def __init__(
        self,
        timer: PomodoroTimer,
        scheduler: BaseScheduler,
        on_update: Optional[Callable[[PomodoroTimer, TickResult], None]] = None,
        job_id: str = TICK_JOB_ID,
    ):
        self.timer = timer
        self.scheduler = scheduler
        self.on_update = on_update
        self.job_id = job_id
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_scheduled(self) -> bool:
        return self.scheduler.get_job(self.job_id) is not None

    # ── Controls ───────────────────────────────────────────────

    def start(self) -> TickResult:
        result = self.timer.start()
        if TimerEvent.STARTED in result.events or (self.timer.is_running and not self.is_scheduled):
            self._schedule()
        self._notify(result)
        return result

    def pause(self) -> TickResult:
        self._cancel()
        result = self.timer.pause()
        self._notify(result)
        return result

    def stop(self) -> TickResult:
        self._cancel()
        result = self.timer.stop()
        self._notify(result)
        return result

    def reset(self) -> TickResult:
        self._cancel()
        result = self.timer.reset()
        self._notify(result)
        return result

    def select_phase(self, phase: Phase) -> TickResult:
        self._cancel()
        result = self.timer.select_phase(phase)
        self._notify(result)
        return result

    def toggle(self) -> TickResult:
        return self.pause() if self.timer.is_running else self.start()

    # ── Scheduling ─────────────────────────────────────────────

    def _schedule(self) -> None:
        self._cancel()
        self.scheduler.add_job(
            self._on_tick,
            IntervalTrigger(seconds=TICK_SECONDS),
            id=self.job_id,
            args=[self._generation],
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

    def _cancel(self) -> None:
        self._generation += 1
        try:
            self.scheduler.remove_job(self.job_id)
        except JobLookupError:
            pass

    async def _on_tick(self, generation: int) -> None:
        if generation != self._generation:
            logger.debug(f"Dropping stale tick (generation {generation} != {self._generation})")
            return
        result = self.timer.tick()
        if TimerEvent.PHASE_COMPLETED in result.events:
            logger.info(
                f"Phase complete: {result.old_phase.value} -> {result.new_phase.value} "
                f"(sessions={self.timer.completed_work_sessions}, "
                f"auto_start={TimerEvent.AUTO_STARTED in result.events})"
            )
            if not self.timer.is_running:
                self._cancel()
        self._notify(result)

    def _notify(self, result: TickResult) -> None:
        if self.on_update is not None:
            self.on_update(self.timer, result)
