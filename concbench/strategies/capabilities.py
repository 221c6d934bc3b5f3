"""Host capability probes for the optional strategies.

Each probe answers one yes/no question about the running interpreter and is
evaluated once, when the registry is initialised.
"""

from __future__ import annotations

import asyncio
import importlib

from ..logging_utils import get_json_logger

logger = get_json_logger("capabilities")


def probe_fiber_support() -> bool:
    """True when greenlet imports and a context switch round-trips."""
    try:
        module = importlib.import_module("greenlet")
    except ImportError as exc:
        logger.info("fiber_probe_failed", extra={"error": str(exc)})
        return False

    seen: list[bool] = []
    module.greenlet(lambda: seen.append(True)).switch()
    return seen == [True]


def probe_actor_support() -> bool:
    """True when a fresh asyncio event loop can be created on this host."""
    try:
        loop = asyncio.new_event_loop()
    except (OSError, RuntimeError, NotImplementedError) as exc:
        logger.info("actor_probe_failed", extra={"error": str(exc)})
        return False
    loop.close()
    return True
