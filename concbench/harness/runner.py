from __future__ import annotations

import os
import time
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterator

from ..logging_utils import get_context_logger
from ..strategies.base import Strategy, invocation_count
from ..strategies.errors import AggregatedExecutionFailure
from ..strategies.registry import StrategyRegistry, get_registry
from .config import BenchmarkConfig
from .workloads import Workload, build_workloads

UTC = timezone.utc


def utcnow_iso() -> str:
    return datetime.now(tz=UTC).isoformat()


@dataclass(frozen=True)
class Timing:
    user: float
    system: float
    real: float

    @property
    def total(self) -> float:
        return self.user + self.system


class BenchmarkTimer:
    """Context manager capturing wall-clock and process CPU time.

    Usage:
        with BenchmarkTimer() as timer:
            work()
        timer.timing.real
    """

    def __init__(self) -> None:
        self.timing: Timing | None = None
        self._t0 = 0.0
        self._cpu0: os.times_result | None = None

    def __enter__(self) -> BenchmarkTimer:
        self._cpu0 = os.times()
        self._t0 = time.perf_counter()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        real = time.perf_counter() - self._t0
        if self._cpu0 is None:
            raise RuntimeError("BenchmarkTimer exited without being entered")
        cpu1 = os.times()
        self.timing = Timing(
            user=(cpu1.user + cpu1.children_user) - (self._cpu0.user + self._cpu0.children_user),
            system=(cpu1.system + cpu1.children_system) - (self._cpu0.system + self._cpu0.children_system),
            real=real,
        )


@dataclass
class Measurement:
    workload: str
    label: str
    strategy: str
    iterations: int
    replicates: int
    user: float
    system: float
    real: float
    status: str = "ok"  # ok|failed
    error: str | None = None
    started_utc: str = field(default_factory=utcnow_iso)

    @property
    def invocations(self) -> int:
        """Task invocations per replicate."""
        return invocation_count(self.iterations)

    @property
    def total(self) -> float:
        return self.user + self.system

    @property
    def per_invocation(self) -> float:
        return self.real / (self.replicates * self.invocations)

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d.update(invocations=self.invocations, total=self.total, per_invocation=self.per_invocation)
        return d


@dataclass
class BenchmarkSession:
    session_id: str
    started_utc: str
    config: BenchmarkConfig
    measurements: list[Measurement] = field(default_factory=list)
    finished_utc: str | None = None
    skipped_strategies: dict[str, str] = field(default_factory=dict)

    @property
    def failed(self) -> list[Measurement]:
        return [m for m in self.measurements if not m.ok]

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "started_utc": self.started_utc,
            "finished_utc": self.finished_utc,
            "config": self.config.model_dump(mode="json"),
            "skipped_strategies": dict(self.skipped_strategies),
            "measurements": [m.to_dict() for m in self.measurements],
        }


def measure(strategy: Strategy, workload: Workload, iterations: int, replicates: int) -> Measurement:
    """Time `replicates` consecutive ``strategy.run(workload.task, iterations)`` calls.

    A failed run stops the batch; the measurement is marked failed and keeps
    the time spent up to the failure.
    """
    started = utcnow_iso()
    error: str | None = None
    timer = BenchmarkTimer()
    with timer:
        try:
            for _ in range(replicates):
                strategy.run(workload.task, iterations)
        except AggregatedExecutionFailure as e:
            error = str(e)
    timing = timer.timing
    if timing is None:
        raise RuntimeError("timer produced no timing")
    return Measurement(
        workload=workload.name,
        label=workload.label,
        strategy=strategy.name,
        iterations=iterations,
        replicates=replicates,
        user=timing.user,
        system=timing.system,
        real=timing.real,
        status="failed" if error else "ok",
        error=error,
        started_utc=started,
    )


GroupCallback = Callable[[Workload, int, list[Measurement]], None]


class BenchmarkRunner:
    """Run every (iterations, workload, strategy) combination of a config.

    Order: iteration count, then workload, then strategy in registry order.
    With `config.rehearsal` each group first runs an untimed pass over all
    strategies, so first-touch costs do not land on whichever strategy
    happens to go first.
    """

    def __init__(
        self,
        config: BenchmarkConfig,
        registry: StrategyRegistry | None = None,
        workloads: list[Workload] | None = None,
    ) -> None:
        self.config = config
        self.registry = registry if registry is not None else get_registry()
        self.workloads = workloads if workloads is not None else build_workloads(config)
        self.session_id = uuid.uuid4().hex
        self.logger = get_context_logger("runner", {"session_id": self.session_id})

    def strategies(self) -> list[Strategy]:
        """Selected strategies; raises UnknownStrategy / CapabilityUnavailable for bad names."""
        if self.config.strategies is None:
            return [s for _, s in self.registry.list_available_strategies()]
        return [self.registry.get(name) for name in self.config.strategies]

    def iter_groups(self) -> Iterator[tuple[Workload, int, list[Measurement]]]:
        strategies = self.strategies()
        for iterations in self.config.iterations:
            for workload in self.workloads:
                self.logger.info(
                    "group_start",
                    extra={"workload": workload.name, "iterations": iterations, "strategies": [s.name for s in strategies]},
                )
                if self.config.rehearsal:
                    for strategy in strategies:
                        rehearsal = measure(strategy, workload, iterations, self.config.replicates)
                        self.logger.debug(
                            "rehearsal_done",
                            extra={"workload": workload.name, "strategy": strategy.name, "real": rehearsal.real},
                        )
                group: list[Measurement] = []
                for strategy in strategies:
                    m = measure(strategy, workload, iterations, self.config.replicates)
                    if not m.ok:
                        self.logger.warning(
                            "measurement_failed",
                            extra={
                                "workload": workload.name,
                                "strategy": strategy.name,
                                "iterations": iterations,
                                "error": m.error,
                            },
                        )
                    group.append(m)
                yield workload, iterations, group

    def run(self, on_group: GroupCallback | None = None) -> BenchmarkSession:
        """Run everything and collect a session; `on_group` sees each group as it finishes."""
        session = BenchmarkSession(
            session_id=self.session_id,
            started_utc=utcnow_iso(),
            config=self.config,
            skipped_strategies=self.registry.skipped(),
        )
        for workload, iterations, group in self.iter_groups():
            session.measurements.extend(group)
            if on_group is not None:
                on_group(workload, iterations, group)
        session.finished_utc = utcnow_iso()
        self.logger.info(
            "session_done",
            extra={"measurements": len(session.measurements), "failed": len(session.failed)},
        )
        return session
