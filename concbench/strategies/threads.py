from __future__ import annotations

import threading

from ..logging_utils import get_json_logger
from .base import Strategy, Task
from .errors import TaskFailure

logger = get_json_logger("strategies.threads")


class ThreadStrategy(Strategy):
    """One OS thread per invocation, joined before returning.

    Failures are collected under a lock while sibling threads keep running;
    the join-all barrier always completes before anything is raised.
    """

    name = "threads"
    description = "one OS thread per invocation, join-all barrier"

    def _execute(self, task: Task, invocations: int) -> list[TaskFailure]:
        failures: list[TaskFailure] = []
        lock = threading.Lock()

        def _worker(index: int) -> None:
            try:
                task()
            except Exception as exc:
                with lock:
                    failures.append(TaskFailure(index, exc))

        threads: list[threading.Thread] = []
        for index in range(invocations):
            t = threading.Thread(target=_worker, args=(index,), name=f"concbench-{index}", daemon=True)
            try:
                t.start()
            except RuntimeError as exc:
                # e.g. "can't start new thread": the slot never ran
                logger.warning("thread_start_failed", extra={"index": index, "error": str(exc)})
                with lock:
                    failures.append(TaskFailure(index, exc))
                continue
            threads.append(t)

        for t in threads:
            t.join()

        return failures
