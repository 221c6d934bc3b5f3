from __future__ import annotations

from .base import Strategy, Task
from .errors import TaskFailure


class SequentialStrategy(Strategy):
    """Baseline: every invocation on the calling thread, in index order.

    Fail-fast: the first exception stops the loop, remaining invocations are
    not attempted.
    """

    name = "sequential"
    description = "tight loop on the calling thread (baseline)"

    def _execute(self, task: Task, invocations: int) -> list[TaskFailure]:
        for index in range(invocations):
            try:
                task()
            except Exception as exc:
                return [TaskFailure(index, exc)]
        return []
