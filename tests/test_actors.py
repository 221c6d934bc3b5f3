from __future__ import annotations

import asyncio
import threading

import pytest

from concbench.strategies.actors import GO, Actor, ActorStrategy
from concbench.strategies.errors import AggregatedExecutionFailure, TaskFailure


def test_actor_ignores_messages_other_than_go() -> None:
    calls: list[int] = []

    async def scenario() -> tuple[int, TaskFailure | None]:
        inbox: asyncio.Queue = asyncio.Queue()
        actor = Actor(0, lambda: calls.append(1))
        process = asyncio.create_task(actor.receive(inbox))
        actor.send("ping")
        actor.send({"not": "go"})
        actor.send(GO)
        reply = await inbox.get()
        await process
        return reply

    index, failure = asyncio.run(scenario())

    assert calls == [1]
    assert index == 0
    assert failure is None


def test_actor_reports_task_failure() -> None:
    def boom() -> None:
        raise ValueError("actor boom")

    async def scenario() -> tuple[int, TaskFailure | None]:
        inbox: asyncio.Queue = asyncio.Queue()
        actor = Actor(7, boom)
        process = asyncio.create_task(actor.receive(inbox))
        actor.send(GO)
        reply = await inbox.get()
        await process
        return reply

    index, failure = asyncio.run(scenario())

    assert index == 7
    assert isinstance(failure, TaskFailure)
    assert failure.index == 7
    assert isinstance(failure.cause, ValueError)


def test_run_from_inside_a_running_event_loop(counter) -> None:
    """The strategy must still block and complete when the caller owns a loop."""

    async def caller() -> None:
        ActorStrategy().run(counter, 3)

    asyncio.run(caller())
    assert counter.value == 4


def test_actors_share_one_thread() -> None:
    idents: set[int] = set()
    lock = threading.Lock()

    def task() -> None:
        with lock:
            idents.add(threading.get_ident())

    ActorStrategy().run(task, 6)
    assert len(idents) == 1


def test_failed_actor_does_not_block_completion() -> None:
    seen: list[int] = []
    lock = threading.Lock()

    def task() -> None:
        with lock:
            seen.append(len(seen))
            n = seen[-1]
        if n == 0:
            raise RuntimeError("first actor failed")

    with pytest.raises(AggregatedExecutionFailure) as ei:
        ActorStrategy().run(task, 4)

    assert len(seen) == 5
    assert ei.value.count == 1
