"""
Focus timer engine: the single authority over the current phase and the
time left in it.

One countdown task runs at a time. Every transition replaces it, and each
task carries the generation it was launched under so a superseded loop can
never publish. Intents and tick handling share one asyncio.Lock; the points
award runs as its own task so a slow store never holds the lock.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Optional

from .broadcast import EventBus, StateChannel, Subscription
from .clock import Clock, SystemClock
from .points import PointsSink, award_points
from .timer import (
    BREAK_SKIPPED_MESSAGE,
    POINTS_FALLBACK_MESSAGE,
    ActiveSession,
    BreakEnded,
    BreakStarted,
    FocusEvent,
    FocusPolicy,
    Notice,
    SessionCompleted,
    SessionPhase,
    TaskRef,
    TimerSnapshot,
)

logger = logging.getLogger("focus_timer.engine")


class FocusTimerEngine:
    """Pomodoro engine: focus phase, then a short or long break, then idle."""

    def __init__(
        self,
        sink: PointsSink,
        policy: Optional[FocusPolicy] = None,
        clock: Optional[Clock] = None,
    ):
        self.sink = sink
        self.policy = policy or FocusPolicy()
        self.clock = clock or SystemClock()

        self._lock = asyncio.Lock()
        self._cycle_count = 0
        self._session: Optional[ActiveSession] = None
        self._countdown: Optional[asyncio.Task] = None
        self._generation = 0
        self._awards: set[asyncio.Task] = set()
        self._award_lock = asyncio.Lock()
        self._phase_started_ms = 0
        self._closed = False

        self._state: StateChannel[TimerSnapshot] = StateChannel(
            TimerSnapshot.idle(self.policy, 0)
        )
        self._events: EventBus[FocusEvent] = EventBus()

    # ---- Read side ----

    @property
    def snapshot(self) -> TimerSnapshot:
        return self._state.value

    @property
    def current_session(self) -> Optional[ActiveSession]:
        return replace(self._session) if self._session else None

    @property
    def cycle_count(self) -> int:
        return self._cycle_count

    @property
    def is_running(self) -> bool:
        return self.snapshot.is_running

    @property
    def closed(self) -> bool:
        return self._closed

    def states(self) -> Subscription[TimerSnapshot]:
        """Subscribe to snapshots, starting with the current one."""
        return self._state.subscribe()

    def events(self) -> Subscription[FocusEvent]:
        """Subscribe to domain events published from now on."""
        return self._events.subscribe()

    # ---- Intents ----

    async def start_focus_session(self, task: Optional[TaskRef] = None) -> None:
        async with self._lock:
            if self._closed or self.snapshot.is_running:
                logger.debug("Start ignored: a session is already running")
                return

            self._session = ActiveSession(
                focus_minutes=self.policy.focus_minutes,
                break_minutes=self.policy.short_break_minutes,
                task=task,
            )
            self._state.publish(TimerSnapshot.phase_start(
                self.policy.focus_minutes, is_break=False, cycle_count=self._cycle_count,
            ))
            self._phase_started_ms = self.clock.monotonic_ms()
            stale = self._launch_countdown()
            label = task.title or task.id if task else "untethered"
            logger.info(f"Focus started ({self.policy.focus_minutes}m, {label})")
        await self._reap(stale)

    async def pause_timer(self) -> None:
        async with self._lock:
            snap = self.snapshot
            if self._closed or not snap.is_running or snap.is_paused:
                logger.debug("Pause ignored: nothing running or already paused")
                return
            self._state.publish(replace(snap, is_paused=True))
            if self._session:
                self._session.phase = SessionPhase.PAUSED
            logger.info(f"Paused at {snap.clock_text}")

    async def resume_timer(self) -> None:
        async with self._lock:
            snap = self.snapshot
            if self._closed or not snap.is_paused:
                logger.debug("Resume ignored: not paused")
                return
            self._state.publish(replace(snap, is_paused=False))
            if self._session:
                self._session.phase = SessionPhase.ON_BREAK if snap.is_break else SessionPhase.FOCUSING
            logger.info(f"Resumed at {snap.clock_text}")

    async def stop_timer(self) -> None:
        """Cancel whatever is running and return to idle. Emits no event."""
        async with self._lock:
            if self._closed:
                return
            stale = self._cancel_countdown()
            if self._session:
                self._session.phase = SessionPhase.CANCELLED
                logger.info(f"Session {self._session.id[:8]} cancelled")
            self._reset_locked()
        await self._reap(stale)

    async def skip_break(self) -> None:
        async with self._lock:
            snap = self.snapshot
            if self._closed or not (snap.is_running and snap.is_break):
                logger.debug("Skip ignored: not on a break")
                return
            stale = self._cancel_countdown()
            self._events.publish(Notice(BREAK_SKIPPED_MESSAGE))
            self._reset_locked()
            logger.info("Break skipped")
        await self._reap(stale)

    async def shutdown(self) -> None:
        """Cancel the countdown and close all streams.

        Pending awards get ``policy.award_grace_seconds`` to finish; whatever
        is still running after that is cancelled.
        """
        async with self._lock:
            if self._closed:
                return
            self._closed = True
            stale = self._cancel_countdown()
        await self._reap(stale)
        if self._awards:
            _, pending = await asyncio.wait(
                set(self._awards), timeout=self.policy.award_grace_seconds,
            )
            if pending:
                logger.warning(f"Cancelling {len(pending)} unfinished point award(s)")
                for task in pending:
                    task.cancel()
                await asyncio.wait(pending)
        self._state.close()
        self._events.close()
        logger.info("Focus engine shut down")

    async def __aenter__(self) -> FocusTimerEngine:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.shutdown()

    # ---- Countdown ----

    def _launch_countdown(self) -> Optional[asyncio.Task]:
        stale = self._cancel_countdown()
        generation = self._generation
        self._countdown = asyncio.create_task(
            self._run_countdown(generation), name=f"focus-countdown-{generation}",
        )
        return stale

    def _cancel_countdown(self) -> Optional[asyncio.Task]:
        """Retire the live countdown. Returns it if it still has to be reaped."""
        self._generation += 1
        task, self._countdown = self._countdown, None
        if task is None or task.done() or task is asyncio.current_task():
            return None
        task.cancel()
        return task

    @staticmethod
    async def _reap(task: Optional[asyncio.Task]) -> None:
        if task is not None:
            await asyncio.wait({task})

    async def _run_countdown(self, generation: int) -> None:
        while generation == self._generation:
            if self.snapshot.is_paused:
                await self.clock.sleep(self.policy.pause_poll_seconds)
                continue

            await self.clock.sleep(self.policy.tick_seconds)

            async with self._lock:
                if generation != self._generation:
                    return
                snap = self.snapshot
                if snap.is_paused:
                    continue
                snap = snap.tick()
                self._state.publish(snap)
                if snap.remaining_seconds == 0:
                    self._complete_phase_locked(snap)
                    return

    # ---- Phase completion ----

    def _complete_phase_locked(self, snap: TimerSnapshot) -> None:
        session = self._session

        if snap.is_break:
            self._events.publish(BreakEnded())
            if session:
                session.phase = SessionPhase.COMPLETED
            logger.info(f"Break finished after {self._phase_elapsed_s()}s")
            self._cancel_countdown()
            self._reset_locked()
            return

        self._cycle_count += 1
        task = session.task if session else None
        points = self.policy.points_for(task)
        self._start_award(points)
        self._events.publish(SessionCompleted(points, self._cycle_count))
        logger.info(
            f"Focus complete: cycle {self._cycle_count}, {points} points, "
            f"{self._phase_elapsed_s()}s elapsed"
        )

        minutes = self.policy.break_minutes_for(self._cycle_count)
        long_break = self.policy.is_long_break(self._cycle_count)
        if session:
            session.phase = SessionPhase.ON_BREAK
            session.break_minutes = minutes
            session.sessions_completed = self._cycle_count
            session.points_earned += points
        self._events.publish(BreakStarted(minutes, is_long_break=long_break))
        self._state.publish(TimerSnapshot.phase_start(
            minutes, is_break=True, cycle_count=self._cycle_count,
        ))
        self._phase_started_ms = self.clock.monotonic_ms()
        self._launch_countdown()
        logger.info(f"{'Long' if long_break else 'Short'} break started ({minutes}m)")

    def _phase_elapsed_s(self) -> int:
        """Clock time since the phase began, pauses included."""
        return (self.clock.monotonic_ms() - self._phase_started_ms) // 1000

    def _reset_locked(self) -> None:
        self._session = None
        idle = TimerSnapshot.idle(self.policy, self._cycle_count)
        if self.snapshot != idle:
            self._state.publish(idle)

    # ---- Points ----

    def _start_award(self, points: int) -> None:
        task = asyncio.create_task(self._award(points), name="focus-award")
        self._awards.add(task)
        task.add_done_callback(self._awards.discard)

    async def _award(self, points: int) -> None:
        # one read-modify-write against the sink at a time
        async with self._award_lock:
            saved = await award_points(self.sink, points)
        if not saved:
            self._events.publish(Notice(POINTS_FALLBACK_MESSAGE))
