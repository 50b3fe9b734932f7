"""Focus timer model: pure logic, no I/O.

Phases, snapshots, domain events and the break/points policy. The async
engine in engine.py is the only thing that mutates session state; everything
here is either immutable or a plain record the engine owns.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class SessionPhase(str, Enum):
    IDLE = "idle"
    FOCUSING = "focusing"
    ON_BREAK = "on_break"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class FocusEventKind(str, Enum):
    SESSION_COMPLETED = "session_completed"
    BREAK_STARTED = "break_started"
    BREAK_ENDED = "break_ended"
    NOTICE = "notice"


BREAK_ENDED_MESSAGE = "Break's over! Ready to focus again?"
BREAK_SKIPPED_MESSAGE = "Break skipped. Start when you're ready!"
POINTS_FALLBACK_MESSAGE = "Points saved locally"


def format_clock(seconds: int) -> str:
    """Format seconds as 'MM:SS'. Minutes are not wrapped into hours."""
    seconds = max(0, int(seconds))
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


# ---- Policy ----

class FocusPolicy(BaseModel):
    """Durations, cadence and scoring for a focus engine."""

    model_config = ConfigDict(frozen=True)

    focus_minutes: int = Field(default=25, ge=1)
    short_break_minutes: int = Field(default=5, ge=1)
    long_break_minutes: int = Field(default=15, ge=1)
    sessions_before_long_break: int = Field(default=4, ge=1)
    base_points: int = Field(default=25, ge=0)
    bonus_points: int = Field(default=10, ge=0)
    tick_seconds: float = Field(default=1.0, gt=0)
    pause_poll_seconds: float = Field(default=0.1, gt=0)
    # wall-clock seconds shutdown gives in-flight awards before cancelling them
    award_grace_seconds: float = Field(default=5.0, ge=0)

    @property
    def focus_seconds(self) -> int:
        return self.focus_minutes * 60

    def points_for(self, task: TaskRef | None) -> int:
        return self.base_points + (self.bonus_points if task is not None else 0)

    def is_long_break(self, cycle_count: int) -> bool:
        return cycle_count > 0 and cycle_count % self.sessions_before_long_break == 0

    def break_minutes_for(self, cycle_count: int) -> int:
        if self.is_long_break(cycle_count):
            return self.long_break_minutes
        return self.short_break_minutes


# ---- Session state ----

@dataclass(frozen=True)
class TaskRef:
    """Assignment a focus session is linked to."""
    id: str
    title: str | None = None


@dataclass(frozen=True)
class TimerSnapshot:
    total_seconds: int = 25 * 60
    remaining_seconds: int = 25 * 60
    is_running: bool = False
    is_paused: bool = False
    is_break: bool = False
    cycle_count: int = 0
    progress: float = 1.0

    @classmethod
    def idle(cls, policy: FocusPolicy, cycle_count: int) -> TimerSnapshot:
        total = policy.focus_seconds
        return cls(
            total_seconds=total,
            remaining_seconds=total,
            cycle_count=cycle_count,
        )

    @classmethod
    def phase_start(cls, minutes: int, is_break: bool, cycle_count: int) -> TimerSnapshot:
        total = minutes * 60
        return cls(
            total_seconds=total,
            remaining_seconds=total,
            is_running=True,
            is_break=is_break,
            cycle_count=cycle_count,
        )

    def tick(self) -> TimerSnapshot:
        """One second lower, progress recomputed. Never goes below zero."""
        remaining = max(0, self.remaining_seconds - 1)
        return replace(
            self,
            remaining_seconds=remaining,
            progress=remaining / self.total_seconds if self.total_seconds else 1.0,
        )

    @property
    def clock_text(self) -> str:
        return format_clock(self.remaining_seconds)


@dataclass
class ActiveSession:
    focus_minutes: int
    break_minutes: int
    task: TaskRef | None = None
    phase: SessionPhase = SessionPhase.FOCUSING
    sessions_completed: int = 0
    points_earned: int = 0
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    started_at: datetime = field(default_factory=datetime.now)

    @property
    def is_linked(self) -> bool:
        return self.task is not None


# ---- Events ----

@dataclass(frozen=True)
class FocusEvent:
    kind: FocusEventKind = field(init=False)

    def to_dict(self) -> dict:
        data = {k: v for k, v in self.__dict__.items() if k != "kind"}
        return {"kind": self.kind.value, **data}


@dataclass(frozen=True)
class SessionCompleted(FocusEvent):
    points_earned: int
    total_cycles_so_far: int
    kind: FocusEventKind = field(default=FocusEventKind.SESSION_COMPLETED, init=False)


@dataclass(frozen=True)
class BreakStarted(FocusEvent):
    break_minutes: int
    is_long_break: bool = False
    kind: FocusEventKind = field(default=FocusEventKind.BREAK_STARTED, init=False)


@dataclass(frozen=True)
class BreakEnded(FocusEvent):
    message: str = BREAK_ENDED_MESSAGE
    kind: FocusEventKind = field(default=FocusEventKind.BREAK_ENDED, init=False)


@dataclass(frozen=True)
class Notice(FocusEvent):
    message: str
    kind: FocusEventKind = field(default=FocusEventKind.NOTICE, init=False)
