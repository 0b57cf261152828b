"""
Job queue feeding inputs through one engine, one task at a time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..engine import TimeSlicedEngine
from ..errors import TimeSliceError
from ..events import Completion, EventKind, Failure
from ..hooks import HookSet
from .registry import HookRegistry

LOG = logging.getLogger(__name__)


class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class EncodeJob:
    name: str
    data: Any
    budget_ms: Optional[float] = None
    hooks: Optional[str] = None
    hook_options: Dict[str, Any] = field(default_factory=dict)
    status: JobStatus = JobStatus.QUEUED
    result: Optional[bytes] = None
    error: Optional[str] = None


class JobQueue:
    """
    Run queued jobs back to back on ``engine``.

    When a job finishes, the next one starts on the following clock tick, so
    every completion listener still sees the finished result. A job naming a
    hook set gets it from ``registry`` and swaps it into the engine first.
    """

    def __init__(
        self, engine: TimeSlicedEngine, registry: Optional[HookRegistry] = None
    ) -> None:
        self.engine = engine
        self.registry = registry
        self.jobs: List[EncodeJob] = []
        self.active: Optional[EncodeJob] = None
        self._advancing = False
        self._deferred: Optional[int] = None
        engine.channel.add_listener(EventKind.COMPLETION, self._on_completion)
        engine.channel.add_listener(EventKind.FAILURE, self._on_failure)

    def enqueue(self, job: EncodeJob) -> None:
        self.jobs.append(job)
        self._advance()

    def list_jobs(self) -> List[EncodeJob]:
        return list(self.jobs)

    def pending(self) -> List[EncodeJob]:
        return [job for job in self.jobs if job.status is JobStatus.QUEUED]

    def cancel_active(self) -> Optional[EncodeJob]:
        job = self.active
        if job is None:
            return None
        self.engine.stop()
        self._settle(job, JobStatus.CANCELLED)
        self._advance()
        return job

    def close(self) -> None:
        self._cancel_deferred()
        self.engine.channel.remove_listener(EventKind.COMPLETION, self._on_completion)
        self.engine.channel.remove_listener(EventKind.FAILURE, self._on_failure)

    # ------------------------------------------------------------------ internals

    def _settle(self, job: EncodeJob, status: JobStatus, *, error: Optional[str] = None) -> None:
        job.status = status
        job.error = error
        if self.active is job:
            self.active = None
        LOG.debug("Job '%s' -> %s", job.name, status.value)

    def _advance(self) -> None:
        if self._advancing:
            return
        self._advancing = True
        try:
            while self.active is None and not self.engine.is_running():
                job = next((j for j in self.jobs if j.status is JobStatus.QUEUED), None)
                if job is None:
                    break
                self.active = job
                job.status = JobStatus.RUNNING
                try:
                    if job.hooks is not None:
                        self.engine.set_hooks(self._resolve_hooks(job))
                    self.engine.start(job.data, budget_ms=job.budget_ms)
                except (TimeSliceError, KeyError, TypeError, ValueError) as exc:
                    # A failing head hook has already been settled by _on_failure.
                    if job.status is JobStatus.RUNNING:
                        self._settle(job, JobStatus.FAILED, error=repr(exc))
        finally:
            self._advancing = False

    def _resolve_hooks(self, job: EncodeJob) -> HookSet:
        if self.registry is None:
            raise KeyError(f"Job '{job.name}' needs hook set '{job.hooks}' but no registry is set")
        return self.registry.create(job.hooks, **job.hook_options)

    def _schedule_advance(self) -> None:
        if self._deferred is None:
            self._deferred = self.engine.clock.subscribe(self._on_deferred_tick)

    def _cancel_deferred(self) -> None:
        handle, self._deferred = self._deferred, None
        if handle is not None:
            self.engine.clock.unsubscribe(handle)

    def _on_deferred_tick(self) -> None:
        self._cancel_deferred()
        self._advance()

    def _on_completion(self, event: Completion) -> None:
        job = self.active
        if job is None:
            return
        buffer = self.engine.result()
        job.result = buffer.getvalue() if buffer is not None else None
        self._settle(job, JobStatus.DONE)
        self._schedule_advance()

    def _on_failure(self, event: Failure) -> None:
        job = self.active
        if job is None:
            return
        self._settle(job, JobStatus.FAILED, error=f"{event.hook}: {event.error}")
        self._schedule_advance()
