from __future__ import annotations

from typing import Iterable


class ConcBenchError(Exception):
    """Base class for all concbench errors."""


class TaskFailure(ConcBenchError):
    """A single task invocation that raised.

    `index` is the invocation slot assigned by the strategy (0..count), not
    the order in which the task happened to run.
    """

    def __init__(self, index: int, cause: BaseException) -> None:
        self.index = index
        self.cause = cause
        super().__init__(f"invocation {index} failed: {cause!r}")
        self.__cause__ = cause


class AggregatedExecutionFailure(ConcBenchError):
    """Raised by ``Strategy.run`` when one or more invocations failed."""

    def __init__(self, strategy: str, failures: Iterable[TaskFailure], invocations: int) -> None:
        self.strategy = strategy
        self.failures: list[TaskFailure] = sorted(failures, key=lambda f: f.index)
        self.invocations = invocations
        if not self.failures:
            raise ValueError("AggregatedExecutionFailure requires at least one TaskFailure")
        first = self.failures[0]
        super().__init__(
            f"{len(self.failures)} of {invocations} invocation(s) failed under "
            f"'{strategy}'; first: index {first.index}: {first.cause!r}"
        )
        self.__cause__ = first.cause

    @property
    def count(self) -> int:
        return len(self.failures)

    @property
    def first(self) -> TaskFailure:
        return self.failures[0]

    @property
    def indices(self) -> list[int]:
        return [f.index for f in self.failures]


class UnknownStrategy(ConcBenchError, LookupError):
    def __init__(self, name: str, available: Iterable[str] = ()) -> None:
        self.name = name
        self.available = list(available)
        known = ", ".join(self.available) or "none"
        super().__init__(f"unknown strategy '{name}' (available: {known})")


class CapabilityUnavailable(UnknownStrategy):
    """An optional strategy whose capability probe failed at startup."""

    def __init__(self, name: str, reason: str, available: Iterable[str] = ()) -> None:
        super().__init__(name, available)
        self.reason = reason
        self.args = (f"strategy '{name}' is not available on this host: {reason}",)
