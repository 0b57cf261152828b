"""
Sequential job handling on top of a single engine.
"""

from __future__ import annotations

from .queue import EncodeJob, JobQueue, JobStatus
from .registry import HookRegistry

__all__ = ["EncodeJob", "JobQueue", "JobStatus", "HookRegistry"]
