"""Quick demo of the time-sliced engine on an asyncio loop.

A toy run-length encoder processes a random byte string a few runs at a time
while a heartbeat coroutine keeps printing, showing that the host loop is
never blocked for longer than the per-tick budget.

Examples
--------
Encode one megabyte with the default profile::

    python scripts/demo_engine.py --size 1048576

Use a tighter budget and the ``background`` profile::

    python scripts/demo_engine.py --profile background --budget 2
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from typing import Iterable

from timeslice import AsyncioClock, EventKind, Hooks, Task, TimeSlicedEngine, load_config
from timeslice.utils import configure_logging

LOG = logging.getLogger("timeslice.demo")

MAX_RUN = 255


class RunLengthHooks(Hooks):
    """Encode ``(count, byte)`` pairs, one run per step."""

    def head(self, task: Task) -> None:
        task.cursor["pos"] = 0
        task.buffer.write(b"RLE1")
        task.buffer.write(task.total_units.to_bytes(4, "big"))

    def step(self, task: Task) -> bool:
        data = task.snapshot
        pos = task.cursor["pos"]
        if pos >= len(data):
            return True
        value = data[pos]
        end = pos + 1
        while end < len(data) and end - pos < MAX_RUN and data[end] == value:
            end += 1
        task.buffer.write(bytes((end - pos, value)))
        task.cursor["pos"] = end
        task.advance(end - pos)
        return end >= len(data)

    def tail(self, task: Task) -> None:
        task.buffer.write(b"END")


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="TimeSlice engine demo")
    parser.add_argument("--profile", default=None, help="engine profile to load")
    parser.add_argument("--size", type=int, default=1 << 18, help="input size in bytes")
    parser.add_argument("--budget", type=float, default=None, help="per-tick budget in ms")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    config = load_config(args.profile)
    configure_logging(config.log_level)

    clock = AsyncioClock(config.tick_interval)
    engine = TimeSlicedEngine(RunLengthHooks(), clock, config=config)
    done = asyncio.Event()

    def _on_progress(event) -> None:
        if event.total_units:
            LOG.info("progress %.1f%%", 100.0 * event.completed_units / event.total_units)

    engine.channel.add_listener(EventKind.PROGRESS, _on_progress)
    engine.channel.add_listener(EventKind.COMPLETION, lambda _event: done.set())
    engine.channel.add_listener(EventKind.FAILURE, lambda _event: done.set())

    data = bytes(b & 0x03 for b in os.urandom(max(0, args.size)))
    engine.start(data, budget_ms=args.budget)

    async def _heartbeat() -> None:
        while not done.is_set():
            LOG.debug("host loop alive")
            await asyncio.sleep(0.1)

    try:
        await asyncio.gather(done.wait(), _heartbeat())
    finally:
        await clock.close()

    result = engine.result()
    if result is None:
        LOG.error("Encoding failed")
        return 1
    LOG.info("Encoded %s bytes into %s bytes", len(data), len(result.getvalue()))
    return 0


def main(argv: Iterable[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        LOG.info("Demo interrupted by user.")
        return 130


if __name__ == "__main__":
    sys.exit(main())
