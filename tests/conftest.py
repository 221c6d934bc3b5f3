from __future__ import annotations

import importlib.util
import threading
from typing import Callable

import pytest

from concbench.strategies.actors import ActorStrategy
from concbench.strategies.base import Strategy
from concbench.strategies.sequential import SequentialStrategy
from concbench.strategies.threads import ThreadStrategy

HAS_GREENLET = importlib.util.find_spec("greenlet") is not None

needs_greenlet = pytest.mark.skipif(not HAS_GREENLET, reason="greenlet not installed")


def _fiber_strategy() -> Strategy:
    from concbench.strategies.fibers import FiberStrategy

    return FiberStrategy()


FACTORIES: dict[str, Callable[[], Strategy]] = {
    "sequential": SequentialStrategy,
    "threads": ThreadStrategy,
    "fibers": _fiber_strategy,
    "actors": ActorStrategy,
}


def _params(names: list[str]) -> list:
    return [pytest.param(n, marks=needs_greenlet, id=n) if n == "fibers" else pytest.param(n, id=n) for n in names]


@pytest.fixture(params=_params(["sequential", "threads", "fibers", "actors"]))
def strategy(request: pytest.FixtureRequest) -> Strategy:
    return FACTORIES[request.param]()


@pytest.fixture(params=_params(["threads", "fibers", "actors"]))
def concurrent_strategy(request: pytest.FixtureRequest) -> Strategy:
    return FACTORIES[request.param]()


class Counter:
    """Thread-safe counter usable as a zero-argument task."""

    def __init__(self) -> None:
        self.value = 0
        self._lock = threading.Lock()

    def __call__(self) -> None:
        with self._lock:
            self.value += 1


@pytest.fixture
def counter() -> Counter:
    return Counter()


@pytest.fixture(autouse=True)
def _clear_concbench_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in [
        "CONCBENCH_REPLICATES",
        "CONCBENCH_ITERATIONS",
        "CONCBENCH_WORKLOADS",
        "CONCBENCH_STRATEGIES",
        "CONCBENCH_URL",
        "CONCBENCH_LOG_JSON_TO_FILE",
        "CORRELATION_ID",
    ]:
        monkeypatch.delenv(key, raising=False)
