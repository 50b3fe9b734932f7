"""Focus timer engine.

Pomodoro-style focus/break cycles with one-shot domain events and point
awards for completed focus phases.
"""

from .broadcast import EventBus, StateChannel, Subscription
from .clock import Clock, ManualClock, SystemClock
from .config import ConfigError, Settings, load_settings
from .engine import FocusTimerEngine
from .points import PointsSink, Profile, award_points
from .profile_store import SqliteProfileStore
from .timer import (
    ActiveSession,
    BreakEnded,
    BreakStarted,
    FocusEvent,
    FocusEventKind,
    FocusPolicy,
    Notice,
    SessionCompleted,
    SessionPhase,
    TaskRef,
    TimerSnapshot,
    format_clock,
)

__all__ = [
    "ActiveSession",
    "BreakEnded",
    "BreakStarted",
    "Clock",
    "ConfigError",
    "EventBus",
    "FocusEvent",
    "FocusEventKind",
    "FocusPolicy",
    "FocusTimerEngine",
    "ManualClock",
    "Notice",
    "PointsSink",
    "Profile",
    "SessionCompleted",
    "SessionPhase",
    "Settings",
    "SqliteProfileStore",
    "StateChannel",
    "Subscription",
    "SystemClock",
    "TaskRef",
    "TimerSnapshot",
    "award_points",
    "format_clock",
    "load_settings",
]
