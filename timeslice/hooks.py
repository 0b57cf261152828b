"""
Hook contract implemented by concrete encoders.

The engine owns the task state and hands it to the hooks explicitly; encoders
do not subclass the engine.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:  # pragma: no cover - typing aid
    from .engine import Task, TimeSlicedEngine


class HookSet(Protocol):
    """
    The three operations an encoder supplies.

    ``create(engine)`` and ``measure(snapshot)`` are optional; the engine only
    calls them when the hook set defines them.
    """

    def head(self, task: "Task") -> None:
        """Called once per task before the first ``step``."""

    def step(self, task: "Task") -> bool:
        """Process a small chunk of work; return ``True`` once everything is done."""

    def tail(self, task: "Task") -> None:
        """Called once after the final ``step``, before the buffer is finalized."""


class Hooks:
    """
    Convenience base with no-op ``create``/``head``/``tail``.

    Subclasses must implement ``step``.
    """

    def create(self, engine: "TimeSlicedEngine") -> None:
        pass

    def head(self, task: "Task") -> None:
        pass

    def step(self, task: "Task") -> bool:
        raise NotImplementedError

    def tail(self, task: "Task") -> None:
        pass


def measure_units(snapshot: Any) -> int:
    """
    Derive the number of work units from a snapshot's dimensions.

    Array-likes use the product of ``shape``, image-likes ``width * height``,
    anything else falls back to ``len()``.
    """

    shape = getattr(snapshot, "shape", None)
    if shape is not None:
        return int(math.prod(int(dim) for dim in shape))
    width = getattr(snapshot, "width", None)
    height = getattr(snapshot, "height", None)
    if width is not None and height is not None:
        return int(width) * int(height)
    return len(snapshot)
