"""
Exception hierarchy for the time-sliced engine.
"""

from __future__ import annotations

from typing import Optional


class TimeSliceError(RuntimeError):
    """Base class for engine related errors."""


class InvalidStateError(TimeSliceError):
    """Raised when an operation is not allowed in the engine's current state."""


class HookFailure(TimeSliceError):
    """
    Wrap an exception raised by a hook, keeping the hook name as context.
    """

    def __init__(
        self,
        hook: Optional[str] = None,
        original: Optional[BaseException] = None,
        message: Optional[str] = None,
    ) -> None:
        if message is None:
            message = f"hook '{hook}' failed: {original!r}"
        super().__init__(message)
        self.hook = hook
        self.original = original
