"""
TimeSlice cooperative execution engine.

Long running transformations are split into bounded chunks run once per
clock tick so the host loop keeps responding. Concrete encoders plug in
through :class:`~timeslice.hooks.HookSet`.
"""

from __future__ import annotations

from .clock import AsyncioClock, Clock, ManualClock, monotonic_ms
from .config import EngineConfig, load_config, load_profiles
from .engine import Task, TaskState, TimeSlicedEngine
from .errors import HookFailure, InvalidStateError, TimeSliceError
from .events import Completion, EventKind, Failure, NotificationChannel, Progress
from .hooks import Hooks, HookSet, measure_units

__all__ = [
    "AsyncioClock",
    "Clock",
    "Completion",
    "EngineConfig",
    "EventKind",
    "Failure",
    "HookFailure",
    "HookSet",
    "Hooks",
    "InvalidStateError",
    "ManualClock",
    "NotificationChannel",
    "Progress",
    "Task",
    "TaskState",
    "TimeSliceError",
    "TimeSlicedEngine",
    "load_config",
    "load_profiles",
    "measure_units",
    "monotonic_ms",
]
