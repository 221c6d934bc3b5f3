from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from ..logging_utils import get_json_logger
from .base import Strategy, Task
from .errors import TaskFailure

logger = get_json_logger("strategies.actors")

GO = "go"


class Actor:
    """A logical process with a private mailbox.

    The actor waits for `GO`, invokes its task once, then reports
    ``(index, failure_or_None)`` to the `reply_to` mailbox. Any other message
    is dropped.
    """

    def __init__(self, index: int, task: Task) -> None:
        self.index = index
        self.task = task
        self.mailbox: asyncio.Queue[Any] = asyncio.Queue()

    def send(self, message: Any) -> None:
        self.mailbox.put_nowait(message)

    async def receive(self, reply_to: asyncio.Queue[tuple[int, TaskFailure | None]]) -> None:
        while True:
            message = await self.mailbox.get()
            if message == GO:
                break
            logger.debug("message_dropped", extra={"index": self.index, "msg": repr(message)})

        failure: TaskFailure | None = None
        try:
            self.task()
        except Exception as exc:
            failure = TaskFailure(self.index, exc)
        await reply_to.put((self.index, failure))


class ActorStrategy(Strategy):
    """Spawn one actor per invocation, broadcast GO, wait for every reply.

    Runs on a private event loop. When called from a thread whose loop is
    already running, the actor system is driven on a helper thread so `run`
    still blocks the caller.
    """

    name = "actors"
    description = "asyncio actor per invocation, GO broadcast, completion mailbox"

    def _execute(self, task: Task, invocations: int) -> list[TaskFailure]:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(self._stage(task, invocations))

        logger.debug("running_loop_detected", extra={"invocations": invocations})
        with ThreadPoolExecutor(max_workers=1, thread_name_prefix="concbench-actors") as pool:
            return pool.submit(asyncio.run, self._stage(task, invocations)).result()

    async def _stage(self, task: Task, invocations: int) -> list[TaskFailure]:
        inbox: asyncio.Queue[tuple[int, TaskFailure | None]] = asyncio.Queue()
        actors = [Actor(index, task) for index in range(invocations)]
        processes = [asyncio.create_task(actor.receive(inbox)) for actor in actors]

        for actor in actors:
            actor.send(GO)

        failures: list[TaskFailure] = []
        for _ in range(invocations):
            _index, failure = await inbox.get()
            if failure is not None:
                failures.append(failure)

        # every actor has replied; this only reaps the finished tasks
        await asyncio.gather(*processes)
        return failures
