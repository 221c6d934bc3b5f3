"""Cooperative fibers on top of greenlet.

All contexts share the calling thread; control only moves at an explicit
switch, so this model measures scheduling overhead, never parallel speed-up.
Importing this module requires the ``greenlet`` package; the registry only
does so after ``probe_fiber_support`` succeeded.
"""

from __future__ import annotations

from collections import deque
from functools import partial

from greenlet import getcurrent, greenlet

from .base import Strategy, Task
from .errors import TaskFailure


def cooperative_yield() -> None:
    """Suspend the current fiber and hand control back to the driver.

    Outside a fiber (the thread's root greenlet) this is a no-op.
    """
    current = getcurrent()
    if current.parent is not None:
        current.parent.switch()


class FiberStrategy(Strategy):
    """Round-robin driver over one greenlet per invocation.

    Contexts are resumed in creation order; a context that yields via
    `cooperative_yield` goes to the back of the queue. A failing context ends
    only itself.
    """

    name = "fibers"
    description = "greenlet per invocation, round-robin on one thread"

    def _execute(self, task: Task, invocations: int) -> list[TaskFailure]:
        failures: list[TaskFailure] = []

        def _body(index: int) -> None:
            try:
                task()
            except Exception as exc:
                failures.append(TaskFailure(index, exc))

        # parent of each context is the driver greenlet running this method
        pending = deque(greenlet(partial(_body, index)) for index in range(invocations))
        while pending:
            context = pending.popleft()
            context.switch()
            if not context.dead:
                pending.append(context)

        return failures
