"""Tests covering the sequential job queue and the hook registry."""

from __future__ import annotations

import pytest

from timeslice import EventKind, Hooks, ManualClock, TimeSlicedEngine
from timeslice.jobs import EncodeJob, HookRegistry, JobQueue, JobStatus


class UpperHooks(Hooks):
    """Upper-cases one byte per step."""

    def step(self, task) -> bool:
        if task.finished:
            return True
        index = task.completed_units
        task.buffer.write(task.snapshot[index : index + 1].upper())
        task.advance()
        return task.finished


class ReverseHooks(Hooks):
    """Writes the snapshot reversed in one step, then ``suffix``."""

    def __init__(self, suffix: bytes = b"") -> None:
        self.suffix = suffix
        self.created_with = None

    def create(self, engine) -> None:
        self.created_with = engine

    def step(self, task) -> bool:
        task.buffer.write(task.snapshot[::-1])
        task.advance(task.total_units)
        return True

    def tail(self, task) -> None:
        task.buffer.write(self.suffix)


class FailOn(UpperHooks):
    def __init__(self, marker: bytes) -> None:
        self.marker = marker

    def head(self, task) -> None:
        if task.snapshot == self.marker:
            raise RuntimeError("rejected input")


def make_queue(hooks=None, budget_ms: float = 1000, registry=None):
    clock = ManualClock()
    engine = TimeSlicedEngine(hooks or UpperHooks(), clock, budget_ms=budget_ms)
    return JobQueue(engine, registry), engine, clock


def test_jobs_run_in_order() -> None:
    queue, engine, clock = make_queue()
    first = EncodeJob(name="first", data=b"ab")
    second = EncodeJob(name="second", data=b"cd")

    queue.enqueue(first)
    queue.enqueue(second)

    assert first.status is JobStatus.RUNNING
    assert second.status is JobStatus.QUEUED
    assert queue.pending() == [second]

    clock.tick()
    assert first.status is JobStatus.DONE
    assert first.result == b"AB"
    # The next job waits for the following tick.
    assert second.status is JobStatus.QUEUED
    assert engine.is_running() is False

    clock.tick()
    assert second.status is JobStatus.RUNNING
    assert engine.is_running() is True

    clock.tick()
    assert second.result == b"CD"
    assert clock.subscriber_count == 0
    assert queue.active is None
    assert engine.is_running() is False
    assert [job.status for job in queue.list_jobs()] == [JobStatus.DONE, JobStatus.DONE]


def test_failed_head_marks_job_and_continues() -> None:
    queue, _, clock = make_queue(FailOn(b"bad"))
    bad = EncodeJob(name="bad", data=b"bad")
    good = EncodeJob(name="good", data=b"ok")

    queue.enqueue(bad)
    queue.enqueue(good)

    assert bad.status is JobStatus.FAILED
    assert "rejected input" in (bad.error or "")
    assert good.status is JobStatus.RUNNING

    clock.tick()
    assert good.result == b"OK"


def test_failed_step_marks_job() -> None:
    class Exploding(Hooks):
        def step(self, task) -> bool:
            raise ValueError("corrupt")

    queue, _, clock = make_queue(Exploding())
    job = EncodeJob(name="x", data=b"abc")

    queue.enqueue(job)
    clock.tick()

    assert job.status is JobStatus.FAILED
    assert job.error is not None and job.error.startswith("step:")
    assert job.result is None


def test_cancel_active_starts_next_job() -> None:
    queue, engine, clock = make_queue(budget_ms=1)
    slow = EncodeJob(name="slow", data=b"x" * 10_000)
    quick = EncodeJob(name="quick", data=b"q")

    queue.enqueue(slow)
    queue.enqueue(quick)
    cancelled = queue.cancel_active()

    assert cancelled is slow
    assert slow.status is JobStatus.CANCELLED
    assert slow.result is None
    assert quick.status is JobStatus.RUNNING

    clock.tick()
    assert quick.status is JobStatus.DONE
    assert queue.cancel_active() is None


def test_close_detaches_from_engine() -> None:
    queue, engine, clock = make_queue()
    queue.close()

    engine.start(b"zz")
    clock.tick()

    assert engine.result().read() == b"ZZ"
    assert queue.list_jobs() == []


def test_later_completion_listener_sees_finished_result() -> None:
    queue, engine, clock = make_queue()
    seen = []
    engine.channel.add_listener(EventKind.COMPLETION, lambda _event: seen.append(engine.result()))

    queue.enqueue(EncodeJob(name="first", data=b"ab"))
    queue.enqueue(EncodeJob(name="second", data=b"cd"))
    clock.tick()

    assert len(seen) == 1
    assert seen[0] is not None
    assert seen[0].read() == b"AB"

    clock.tick(2)
    assert [buffer.read() for buffer in seen[1:]] == [b"CD"]


def test_close_drops_deferred_start() -> None:
    queue, engine, clock = make_queue()
    waiting = EncodeJob(name="waiting", data=b"zz")

    queue.enqueue(EncodeJob(name="first", data=b"ab"))
    queue.enqueue(waiting)
    clock.tick()
    queue.close()
    clock.tick(3)

    assert waiting.status is JobStatus.QUEUED
    assert clock.subscriber_count == 0
    assert engine.is_running() is False


def test_jobs_resolve_named_hook_sets() -> None:
    registry = HookRegistry()
    registry.register("upper", UpperHooks)
    registry.register("reverse", ReverseHooks)
    queue, engine, clock = make_queue(registry=registry)
    upper = EncodeJob(name="u", data=b"ab", hooks="upper")
    reverse = EncodeJob(name="r", data=b"abc", hooks="reverse", hook_options={"suffix": b"!"})

    queue.enqueue(upper)
    queue.enqueue(reverse)
    clock.tick(3)

    assert upper.result == b"AB"
    assert reverse.result == b"cba!"
    assert isinstance(engine.hooks, ReverseHooks)
    assert engine.hooks.created_with is engine


def test_unknown_hook_name_fails_job() -> None:
    queue, _, clock = make_queue(registry=HookRegistry())
    missing = EncodeJob(name="m", data=b"ab", hooks="nope")
    following = EncodeJob(name="f", data=b"ok")

    queue.enqueue(missing)
    queue.enqueue(following)

    assert missing.status is JobStatus.FAILED
    assert "nope" in (missing.error or "")
    assert following.status is JobStatus.RUNNING
    clock.tick()
    assert following.result == b"OK"


def test_named_hooks_without_registry_fail_job() -> None:
    queue, _, _ = make_queue()
    job = EncodeJob(name="m", data=b"ab", hooks="upper")

    queue.enqueue(job)

    assert job.status is JobStatus.FAILED
    assert "no registry" in (job.error or "")


def test_registry_creates_hook_sets() -> None:
    registry = HookRegistry()
    registry.register("upper", UpperHooks)

    @registry.register("fail")
    def _make_fail(marker: bytes = b"x") -> FailOn:
        return FailOn(marker)

    assert registry.names() == ["fail", "upper"]
    assert "upper" in registry
    assert isinstance(registry.create("upper"), UpperHooks)
    assert registry.create("fail", marker=b"m").marker == b"m"

    with pytest.raises(ValueError):
        registry.register("upper", UpperHooks)
    registry.register("upper", ReverseHooks, replace=True)
    assert isinstance(registry.create("upper"), ReverseHooks)

    registry.unregister("fail")
    with pytest.raises(KeyError):
        registry.create("fail")
    with pytest.raises(TypeError):
        registry.register("broken", "not callable")  # type: ignore[arg-type]
