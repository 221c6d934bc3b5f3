"""Concurrency strategy package.

Every strategy honours one contract: ``run(task, count)`` invokes ``task``
``count + 1`` times and only returns once every invocation has completed or
failed. Failures come back as a single ``AggregatedExecutionFailure``.
"""

from __future__ import annotations

from .base import Strategy, Task
from .errors import (
    AggregatedExecutionFailure,
    CapabilityUnavailable,
    ConcBenchError,
    TaskFailure,
    UnknownStrategy,
)
from .registry import StrategyRegistry, build_registry, get_registry

__all__ = [
    "AggregatedExecutionFailure",
    "CapabilityUnavailable",
    "ConcBenchError",
    "Strategy",
    "StrategyRegistry",
    "Task",
    "TaskFailure",
    "UnknownStrategy",
    "build_registry",
    "get_registry",
]
