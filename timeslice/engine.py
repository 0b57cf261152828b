"""
Time-sliced execution engine.

A long transformation is split into small ``step`` calls. Every clock tick the
engine runs as many steps as fit inside the per-tick budget and then hands
control back to the host loop. The budget is only checked between steps, so
each ``step`` has to be small enough to fit comfortably inside it.
"""

from __future__ import annotations

import copy
import io
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional

from .clock import Clock, monotonic_ms
from .config import EngineConfig
from .errors import HookFailure, InvalidStateError
from .events import Completion, EventKind, Failure, NotificationChannel, Progress
from .hooks import HookSet, measure_units

LOG = logging.getLogger(__name__)


class TaskState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


def clamp_budget(value: float) -> float:
    return max(1.0, float(value))


def take_snapshot(data: Any) -> Any:
    """Copy ``data`` so the task never aliases caller owned memory."""

    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data)
    return copy.deepcopy(data)


@dataclass
class Task:
    """
    State of the transformation currently owned by an engine.

    Hooks read ``snapshot``, keep their position in ``cursor``, bump
    ``completed_units`` and write output into ``buffer``.
    """

    snapshot: Any
    total_units: int
    budget_ms: float
    state: TaskState = TaskState.IDLE
    cursor: Dict[str, Any] = field(default_factory=dict)
    completed_units: int = 0
    buffer: io.BytesIO = field(default_factory=io.BytesIO)
    completed: bool = False

    def advance(self, units: int = 1) -> int:
        self.completed_units = min(self.total_units, self.completed_units + max(0, int(units)))
        return self.completed_units

    @property
    def finished(self) -> bool:
        return self.completed_units >= self.total_units


class TimeSlicedEngine:
    """
    Drive a :class:`~timeslice.hooks.HookSet` from clock ticks.

    Parameters
    ----------
    hooks:
        Encoder supplying ``head``/``step``/``tail``.
    clock:
        Tick source; the engine subscribes while a task runs.
    budget_ms:
        Default per-tick budget in milliseconds. Falls back to
        ``config.budget_ms``.
    monotonic:
        Millisecond time source used for the budget.
    """

    def __init__(
        self,
        hooks: HookSet,
        clock: Clock,
        *,
        budget_ms: Optional[float] = None,
        monotonic: Optional[Callable[[], float]] = None,
        channel: Optional[NotificationChannel] = None,
        config: Optional[EngineConfig] = None,
        name: Optional[str] = None,
    ) -> None:
        self.hooks = hooks
        self.clock = clock
        self.config = config or EngineConfig()
        self.default_budget_ms = clamp_budget(
            budget_ms if budget_ms is not None else self.config.budget_ms
        )
        self.channel = channel or NotificationChannel()
        self._monotonic: Callable[[], float] = monotonic if monotonic is not None else monotonic_ms
        self.name = name or type(hooks).__name__
        self.logger = LOG.getChild(self.name)

        self._task: Optional[Task] = None
        self._subscription: Optional[int] = None
        self._active_hook: Optional[str] = None

        self.on_create()

    # ------------------------------------------------------------------ helpers

    def _guard_reentry(self, operation: str) -> None:
        if self._active_hook is not None:
            raise InvalidStateError(
                f"reentrant call: {operation}() invoked from hook '{self._active_hook}'"
            )

    def _call_hook(self, hook: str, *args: Any) -> Any:
        self._active_hook = hook
        try:
            return getattr(self.hooks, hook)(*args)
        except Exception as exc:
            raise HookFailure(hook, exc) from exc
        finally:
            self._active_hook = None

    def _measure(self, snapshot: Any) -> int:
        if callable(getattr(self.hooks, "measure", None)):
            total = self._call_hook("measure", snapshot)
        else:
            total = measure_units(snapshot)
        total = int(total)
        if total < 0:
            raise ValueError(f"input measures {total} units; expected >= 0")
        return total

    def _unsubscribe(self) -> None:
        if self._subscription is not None:
            self.clock.unsubscribe(self._subscription)
            self._subscription = None

    def _settle_units(self, task: Task, previous: int) -> None:
        if task.completed_units < previous:
            self.logger.warning(
                "step moved completed_units backwards (%s -> %s); keeping %s",
                previous,
                task.completed_units,
                previous,
            )
            task.completed_units = previous
        elif task.completed_units > task.total_units:
            task.completed_units = task.total_units

    def _abort(self, failure: HookFailure) -> None:
        self._unsubscribe()
        if self._task is not None:
            self._task.state = TaskState.IDLE
        self.logger.error(
            "Hook '%s' failed; task aborted.", failure.hook, exc_info=failure.original
        )
        self.channel.emit(
            EventKind.FAILURE, Failure(hook=str(failure.hook), error=repr(failure.original))
        )

    def _finish(self, task: Task) -> None:
        task.buffer.seek(0)
        task.completed = True
        self._unsubscribe()
        task.state = TaskState.IDLE
        self.logger.debug("Task complete: %s units", task.total_units)
        self.channel.emit(EventKind.COMPLETION, Completion())

    # ------------------------------------------------------------------ public API

    def on_create(self) -> None:
        """One-time setup, run from the constructor."""

        if callable(getattr(self.hooks, "create", None)):
            self._call_hook("create", self)

    def set_hooks(self, hooks: HookSet) -> None:
        """
        Swap the hook set between tasks.

        The incoming set gets its own ``create(engine)`` call. Not allowed
        while a task is running or from inside a hook.
        """

        self._guard_reentry("set_hooks")
        if self.is_running():
            raise InvalidStateError("cannot replace hooks while running")
        if hooks is self.hooks:
            return
        self.hooks = hooks
        self.on_create()

    def start(self, data: Any, budget_ms: Optional[float] = None) -> None:
        """
        Begin a new task over a private copy of ``data``.

        ``head`` runs before this returns. Raises :class:`InvalidStateError`
        while a task is running; the running task is left untouched.
        """

        self._guard_reentry("start")
        if self.is_running():
            raise InvalidStateError("engine is already running")

        budget = clamp_budget(self.default_budget_ms if budget_ms is None else budget_ms)
        snapshot = take_snapshot(data)
        try:
            total = self._measure(snapshot)
        except HookFailure as failure:
            self._abort(failure)
            raise

        task = Task(snapshot=snapshot, total_units=total, budget_ms=budget)
        self._task = task
        try:
            self._call_hook("head", task)
        except HookFailure as failure:
            self._abort(failure)
            raise

        self._subscription = self.clock.subscribe(self.on_tick)
        task.state = TaskState.RUNNING
        self.logger.debug("Task started: %s units, budget %sms", total, budget)

    def stop(self) -> None:
        """
        Abandon the running task.

        ``tail`` is skipped and no completion is announced, so :meth:`result`
        stays unavailable.
        """

        self._guard_reentry("stop")
        task = self._task
        if task is None or task.state is not TaskState.RUNNING:
            return
        self._unsubscribe()
        task.buffer.seek(0)
        task.state = TaskState.IDLE
        self.logger.debug(
            "Task stopped at %s/%s units", task.completed_units, task.total_units
        )

    def is_running(self) -> bool:
        return self._task is not None and self._task.state is TaskState.RUNNING

    def result(self) -> Optional[io.BytesIO]:
        """
        A fresh, rewound copy of the finalized output, or ``None`` when the
        last task did not run to completion.
        """

        task = self._task
        if task is None or task.state is TaskState.RUNNING or not task.completed:
            return None
        return io.BytesIO(task.buffer.getvalue())

    def progress(self) -> Optional[Progress]:
        task = self._task
        if task is None:
            return None
        return Progress(task.completed_units, task.total_units)

    def on_tick(self, *_: Any) -> None:
        task = self._task
        if task is None or task.state is not TaskState.RUNNING:
            return

        deadline = self._monotonic() + task.budget_ms
        steps = 0
        done = False
        try:
            while True:
                previous = task.completed_units
                done = bool(self._call_hook("step", task))
                steps += 1
                self._settle_units(task, previous)
                if done or self._monotonic() >= deadline:
                    break
            if done:
                self._call_hook("tail", task)
        except HookFailure as failure:
            self._abort(failure)
            return

        self.logger.debug("Tick ran %s step(s)", steps)
        if done:
            self._finish(task)
        else:
            self.channel.emit(
                EventKind.PROGRESS, Progress(task.completed_units, task.total_units)
            )
