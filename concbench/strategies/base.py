"""Strategy contract shared by every concurrency model.

Subclasses implement ``_execute`` and return the failures they collected;
``run`` owns argument validation, logging and raising the aggregate so the
blocking and failure semantics stay identical across models.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Any, Callable

from ..logging_utils import get_json_logger
from .errors import AggregatedExecutionFailure, TaskFailure

Task = Callable[[], Any]

logger = get_json_logger("strategies")


def invocation_count(count: int) -> int:
    """Number of task invocations for an iteration count (inclusive range 0..count)."""
    if isinstance(count, bool) or not isinstance(count, int):
        raise TypeError(f"count must be an int, got {type(count).__name__}")
    if count < 0:
        raise ValueError(f"count must be >= 0, got {count}")
    return count + 1


class Strategy(ABC):
    name: str = ""
    description: str = ""

    def run(self, task: Task, count: int) -> None:
        """Invoke `task` ``count + 1`` times and block until all are accounted for.

        Raises:
            AggregatedExecutionFailure: one or more invocations raised.
            TypeError / ValueError: `count` is not a non-negative int.
        """
        if not callable(task):
            raise TypeError("task must be callable")
        invocations = invocation_count(count)
        logger.debug("run_start", extra={"strategy": self.name, "invocations": invocations})

        started = time.perf_counter()
        failures = self._execute(task, invocations)
        elapsed = time.perf_counter() - started

        if failures:
            logger.info(
                "run_failed",
                extra={"strategy": self.name, "invocations": invocations, "failed": len(failures), "elapsed_sec": elapsed},
            )
            raise AggregatedExecutionFailure(self.name, failures, invocations)
        logger.debug("run_done", extra={"strategy": self.name, "invocations": invocations, "elapsed_sec": elapsed})

    @abstractmethod
    def _execute(self, task: Task, invocations: int) -> list[TaskFailure]:
        """Run all invocations; return the failures (empty when all succeeded)."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
