"""
Named hook set factories.

Jobs refer to encoders by name; :class:`~timeslice.jobs.queue.JobQueue`
resolves the name here right before the job starts.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from ..hooks import HookSet

HookFactory = Callable[..., HookSet]


class HookRegistry:
    def __init__(self) -> None:
        self._factories: Dict[str, HookFactory] = {}

    def register(self, name: str, factory: Optional[HookFactory] = None, *, replace: bool = False):
        """
        Register ``factory`` under ``name``.

        Without ``factory`` this returns a decorator. Re-registering a name
        raises ``ValueError`` unless ``replace`` is set.
        """

        def _add(target: HookFactory) -> HookFactory:
            if not callable(target):
                raise TypeError("factory must be callable")
            if name in self._factories and not replace:
                raise ValueError(f"Hook set '{name}' already registered")
            self._factories[name] = target
            return target

        if factory is None:
            return _add
        return _add(factory)

    def unregister(self, name: str) -> None:
        self._factories.pop(name, None)

    def create(self, name: str, **kwargs: Any) -> HookSet:
        factory = self._factories.get(name)
        if factory is None:
            known = ", ".join(self.names()) or "none"
            raise KeyError(f"Unknown hook set '{name}' (known: {known})")
        return factory(**kwargs)

    def names(self) -> List[str]:
        return sorted(self._factories)

    def __contains__(self, name: object) -> bool:
        return name in self._factories
