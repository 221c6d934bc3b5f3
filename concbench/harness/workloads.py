from __future__ import annotations

import math
import random
from dataclasses import dataclass
from functools import partial
from pathlib import Path

import requests

from ..strategies.base import Task
from .config import BenchmarkConfig

DEFAULT_SOURCE = Path(__file__).resolve().parent / "data" / "lorem.txt"


@dataclass(frozen=True)
class Workload:
    name: str
    label: str
    category: str  # cpu|io|network|none
    task: Task


def empty() -> None:
    return None


def fibonacci(n: int) -> tuple[int, int]:
    """Iterative Fibonacci; returns the pair (F(n), F(n + 1))."""
    a, b = 0, 1
    for _ in range(n):
        a, b = b, a + b
    return a, b


def is_prime(x: int) -> bool:
    if x < 2:
        return False
    if x == 2:
        return True
    # trial division up to ceil(sqrt(x)), inclusive
    for i in range(2, math.ceil(math.sqrt(x)) + 1):
        if x % i == 0:
            return False
    return True


def sum_primes(limit: int) -> int:
    """Sum of all primes in 1..limit."""
    return sum(x for x in range(1, limit + 1) if is_prime(x))


def read_write(source: Path, sink: Path, lines: int, rng: random.Random | None = None) -> int:
    """Copy `lines` lines read from random offsets of `source` into `sink`.

    Offsets are drawn from the source size in bytes, so a read may start
    mid-line. Returns the number of bytes written.
    """
    rng = rng or random.Random()
    size = source.stat().st_size
    if size == 0:
        raise ValueError(f"readwrite source is empty: {source}")
    written = 0
    with source.open("rb") as fin, sink.open("wb") as fout:
        for _ in range(lines):
            fin.seek(rng.randrange(size))
            written += fout.write(fin.readline())
    return written


def read_url(url: str, timeout: float) -> bytes:
    response = requests.get(url, timeout=timeout)
    response.raise_for_status()
    return response.content


def build_workloads(config: BenchmarkConfig) -> list[Workload]:
    """Workloads selected by `config`, in config order."""
    source = config.readwrite_source or DEFAULT_SOURCE
    # one generator per workload so seeded runs are reproducible; shared by
    # concurrent invocations, the same way the tasks share the sink path
    rng = random.Random(config.seed)

    catalog = {
        "empty": Workload("empty", "empty", "none", empty),
        "fibonacci": Workload(
            "fibonacci",
            f"fibonacci {config.fibonacci_n}",
            "cpu",
            partial(fibonacci, config.fibonacci_n),
        ),
        "sumprimes": Workload(
            "sumprimes",
            f"sumprimes {config.sumprimes_limit}",
            "cpu",
            partial(sum_primes, config.sumprimes_limit),
        ),
        "readwrite": Workload(
            "readwrite",
            "readwrite",
            "io",
            partial(read_write, source, config.readwrite_sink, config.readwrite_lines, rng),
        ),
        "readurl": Workload(
            "readurl",
            f"readurl {config.url}",
            "network",
            partial(read_url, config.url, config.url_timeout),
        ),
    }
    return [catalog[name] for name in config.workloads]
