"""
Notification channel used by the engine to report progress and outcome.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List

LOG = logging.getLogger(__name__)


class EventKind(str, Enum):
    PROGRESS = "progress"
    COMPLETION = "completion"
    FAILURE = "failure"


@dataclass(frozen=True, slots=True)
class Progress:
    """
    Units processed so far.

    ``total_units`` may be zero; consumers computing a ratio must handle it.
    """

    completed_units: int
    total_units: int

    def to_dict(self) -> dict:
        return {
            "completedUnits": int(self.completed_units),
            "totalUnits": int(self.total_units),
        }


@dataclass(frozen=True, slots=True)
class Completion:
    def to_dict(self) -> dict:
        return {}


@dataclass(frozen=True, slots=True)
class Failure:
    hook: str
    error: str

    def to_dict(self) -> dict:
        return {"hook": self.hook, "error": self.error}


Listener = Callable[[Any], None]


class NotificationChannel:
    """
    Synchronous publish/subscribe keyed by :class:`EventKind`.

    Listeners run inside :meth:`emit`, in registration order. A failing
    listener is logged and skipped; the remaining listeners still run.
    """

    def __init__(self) -> None:
        self._listeners: Dict[EventKind, List[Listener]] = {kind: [] for kind in EventKind}

    def add_listener(self, kind: EventKind, callback: Listener) -> None:
        if not callable(callback):
            raise TypeError("callback must be callable")
        self._listeners[EventKind(kind)].append(callback)

    def remove_listener(self, kind: EventKind, callback: Listener) -> None:
        listeners = self._listeners[EventKind(kind)]
        if callback in listeners:
            listeners.remove(callback)

    def listener_count(self, kind: EventKind) -> int:
        return len(self._listeners[EventKind(kind)])

    def emit(self, kind: EventKind, event: Any) -> None:
        kind = EventKind(kind)
        for callback in list(self._listeners[kind]):
            try:
                callback(event)
            except Exception:
                LOG.exception("Listener %r for %s failed.", callback, kind.value)
