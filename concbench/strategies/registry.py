"""Strategy registry - maps strategy names to strategy instances.

Mandatory strategies are registered unconditionally; optional ones only when
their capability probe succeeds. Probes run exactly once, during
``initialize``, and the outcome (registered or skipped with a reason) stays
inspectable for the rest of the process.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterator, Mapping

from ..logging_utils import get_json_logger
from . import capabilities
from .base import Strategy
from .errors import CapabilityUnavailable, UnknownStrategy
from .sequential import SequentialStrategy
from .threads import ThreadStrategy

Probe = Callable[[], bool]


class RegistryState(str, Enum):
    UNINITIALIZED = "uninitialized"
    PROBING = "probing"
    READY = "ready"


def _fiber_factory() -> Strategy:
    from .fibers import FiberStrategy

    return FiberStrategy()


def _actor_factory() -> Strategy:
    from .actors import ActorStrategy

    return ActorStrategy()


@dataclass(frozen=True)
class OptionalStrategy:
    name: str
    probe: Probe
    factory: Callable[[], Strategy]


MANDATORY: tuple[Callable[[], Strategy], ...] = (SequentialStrategy, ThreadStrategy)

# probes are looked up on the module at call time so tests can patch them
OPTIONAL: tuple[OptionalStrategy, ...] = (
    OptionalStrategy("fibers", lambda: capabilities.probe_fiber_support(), _fiber_factory),
    OptionalStrategy("actors", lambda: capabilities.probe_actor_support(), _actor_factory),
)


class StrategyRegistry:
    def __init__(self) -> None:
        self._strategies: dict[str, Strategy] = {}
        self._skipped: dict[str, str] = {}
        self.state = RegistryState.UNINITIALIZED

    def initialize(self, probes: Mapping[str, Probe] | None = None) -> StrategyRegistry:
        """Register mandatory strategies, then probe each optional one once.

        `probes` overrides the default probe per strategy name.
        """
        if self.state is not RegistryState.UNINITIALIZED:
            raise RuntimeError(f"registry already {self.state.value}")
        logger = get_json_logger("registry", static_fields={"op": "initialize"})
        self.state = RegistryState.PROBING

        for factory in MANDATORY:
            self._register(factory())

        overrides = dict(probes or {})
        for entry in OPTIONAL:
            probe = overrides.get(entry.name, entry.probe)
            strategy: Strategy | None = None
            reason = "capability probe returned false"
            try:
                if probe():
                    strategy = entry.factory()
            except Exception as exc:
                reason = f"capability check raised {exc!r}"
            if strategy is not None:
                self._register(strategy)
            else:
                self._skipped[entry.name] = reason
                logger.warning("capability_unavailable", extra={"strategy": entry.name, "reason": reason})

        self.state = RegistryState.READY
        logger.info("ready", extra={"strategies": self.names(), "skipped": sorted(self._skipped)})
        return self

    def _register(self, strategy: Strategy) -> None:
        if self.state is not RegistryState.PROBING:
            raise RuntimeError("registry is read-only once ready")
        if not strategy.name:
            raise ValueError(f"{strategy!r} has no name")
        if strategy.name in self._strategies:
            raise ValueError(f"duplicate strategy name '{strategy.name}'")
        self._strategies[strategy.name] = strategy

    def _require_ready(self) -> None:
        if self.state is not RegistryState.READY:
            raise RuntimeError(f"registry is {self.state.value}, call initialize() first")

    def list_available_strategies(self) -> list[tuple[str, Strategy]]:
        self._require_ready()
        return list(self._strategies.items())

    def get(self, name: str) -> Strategy:
        self._require_ready()
        try:
            return self._strategies[name]
        except KeyError:
            if name in self._skipped:
                raise CapabilityUnavailable(name, self._skipped[name], self._strategies) from None
            raise UnknownStrategy(name, self._strategies) from None

    def names(self) -> list[str]:
        return list(self._strategies)

    def skipped(self) -> dict[str, str]:
        return dict(self._skipped)

    def __contains__(self, name: object) -> bool:
        return name in self._strategies

    def __iter__(self) -> Iterator[str]:
        return iter(self._strategies)

    def __len__(self) -> int:
        return len(self._strategies)


def build_registry(probes: Mapping[str, Probe] | None = None) -> StrategyRegistry:
    return StrategyRegistry().initialize(probes)


_registry: StrategyRegistry | None = None
_registry_lock = threading.Lock()


def get_registry() -> StrategyRegistry:
    """Process-wide registry, probed on first use."""
    global _registry
    with _registry_lock:
        if _registry is None:
            _registry = build_registry()
        return _registry
