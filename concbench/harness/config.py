from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..logging_utils import get_json_logger
from ..strategies.errors import ConcBenchError

WORKLOAD_NAMES: tuple[str, ...] = ("empty", "fibonacci", "sumprimes", "readwrite", "readurl")

DEFAULT_ITERATIONS: tuple[int, ...] = (1, 2, 4, 8)


class ConfigError(ConcBenchError):
    """Invalid benchmark configuration (file, environment or overrides)."""


class BenchmarkConfig(BaseModel):
    """Every benchmark parameter in one immutable object.

    `iterations` are passed to ``Strategy.run`` as-is, so an entry of N
    performs N + 1 task invocations per replicate.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    replicates: int = Field(default=100, ge=1)
    iterations: tuple[int, ...] = DEFAULT_ITERATIONS
    workloads: tuple[str, ...] = WORKLOAD_NAMES
    strategies: tuple[str, ...] | None = None  # None: everything the registry offers
    rehearsal: bool = True

    fibonacci_n: int = Field(default=100, ge=0)
    sumprimes_limit: int = Field(default=100, ge=0)
    readwrite_source: Path | None = None  # None: bundled lorem.txt
    readwrite_sink: Path = Path(os.devnull)
    readwrite_lines: int = Field(default=3000, ge=0)
    url: str = "http://www.google.com/"
    url_timeout: float = Field(default=10.0, gt=0)
    seed: int | None = None

    @field_validator("iterations")
    @classmethod
    def _check_iterations(cls, v: tuple[int, ...]) -> tuple[int, ...]:
        if not v:
            raise ValueError("at least one iteration count is required")
        if any(n < 0 for n in v):
            raise ValueError("iteration counts must be >= 0")
        return v

    @field_validator("workloads")
    @classmethod
    def _check_workloads(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        if not v:
            raise ValueError("at least one workload is required")
        unknown = [w for w in v if w not in WORKLOAD_NAMES]
        if unknown:
            raise ValueError(f"unknown workload(s): {', '.join(unknown)}; known: {', '.join(WORKLOAD_NAMES)}")
        if len(set(v)) != len(v):
            raise ValueError("duplicate workload names")
        return v

    @field_validator("strategies")
    @classmethod
    def _check_strategies(cls, v: tuple[str, ...] | None) -> tuple[str, ...] | None:
        if v is None:
            return v
        if not v:
            raise ValueError("strategies must be omitted or non-empty")
        if len(set(v)) != len(v):
            raise ValueError("duplicate strategy names")
        return v


def _csv_list(raw: str) -> list[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


def _load_from_env() -> dict[str, Any]:
    logger = get_json_logger("config", static_fields={"op": "_load_from_env"})
    values: dict[str, Any] = {}

    raw_rep = os.getenv("CONCBENCH_REPLICATES")
    if raw_rep is not None:
        try:
            values["replicates"] = int(raw_rep)
        except ValueError:
            logger.warning("ignored_env_value", extra={"key": "CONCBENCH_REPLICATES", "value": raw_rep})

    raw_it = os.getenv("CONCBENCH_ITERATIONS")
    if raw_it is not None:
        try:
            values["iterations"] = [int(x) for x in _csv_list(raw_it)]
        except ValueError:
            logger.warning("ignored_env_value", extra={"key": "CONCBENCH_ITERATIONS", "value": raw_it})

    raw_wl = os.getenv("CONCBENCH_WORKLOADS")
    if raw_wl:
        values["workloads"] = _csv_list(raw_wl)

    raw_st = os.getenv("CONCBENCH_STRATEGIES")
    if raw_st:
        values["strategies"] = _csv_list(raw_st)

    raw_url = os.getenv("CONCBENCH_URL")
    if raw_url:
        values["url"] = raw_url.strip()

    logger.debug("loaded_env", extra={"keys": sorted(values)})
    return values


def load_config(path: Path | None = None, overrides: dict[str, Any] | None = None) -> BenchmarkConfig:
    """Build a BenchmarkConfig from a JSON file, the environment and overrides.

    Precedence (lowest first): defaults, JSON file, CONCBENCH_* env vars,
    explicit `overrides` (None values are ignored).

    Raises ConfigError on unreadable files or invalid values.
    """
    logger = get_json_logger("config", static_fields={"op": "load_config"})
    data: dict[str, Any] = {}

    if path is not None:
        try:
            loaded = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"cannot read config {path}: {e}") from e
        if not isinstance(loaded, dict):
            raise ConfigError(f"config {path} must contain a JSON object")
        data.update(loaded)
        logger.info("file_loaded", extra={"path": str(path), "keys": sorted(loaded)})

    data.update(_load_from_env())
    data.update({k: v for k, v in (overrides or {}).items() if v is not None})

    try:
        return BenchmarkConfig(**data)
    except ValidationError as e:
        raise ConfigError(str(e)) from e
