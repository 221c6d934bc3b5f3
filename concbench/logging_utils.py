from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

_LOG_STD_KEYS = {
    'name','msg','args','levelname','levelno','pathname','filename','module','exc_info','exc_text',
    'stack_info','lineno','funcName','created','msecs','relativeCreated','thread','threadName',
    'processName','process','asctime','taskName'
}

DEFAULT_LOG_FILE = "user_data/logs/concbench.jsonl"


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.now(tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for k, v in record.__dict__.items():
            if k in _LOG_STD_KEYS or k.startswith('_'):
                continue
            if isinstance(v, (str, int, float, bool)) or v is None:
                payload[k] = v
            elif isinstance(v, (list, tuple, dict)):
                try:
                    json.dumps(v)
                except (TypeError, ValueError):
                    payload[k] = repr(v)
                else:
                    payload[k] = list(v) if isinstance(v, tuple) else v
            else:
                payload[k] = str(v)
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


class _MergingAdapter(logging.LoggerAdapter):
    """LoggerAdapter that keeps per-call `extra` alongside the static fields."""

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        kwargs["extra"] = {**(self.extra or {}), **(kwargs.get("extra") or {})}
        return msg, kwargs


def _level_from_env(default: int = logging.WARNING) -> int:
    raw = os.getenv("CONCBENCH_LOG_LEVEL", "").strip().upper()
    if not raw:
        return default
    level = logging.getLevelName(raw)
    return level if isinstance(level, int) else default


def get_json_logger(
    name: str,
    *,
    log_path: Path | None = None,
    level: int | None = None,
    static_fields: dict[str, Any] | None = None,
) -> logging.LoggerAdapter:
    """Create or fetch a JSON logger under the ``concbench`` namespace.

    Env overrides (used only when the argument is not given):
      - CONCBENCH_LOG_LEVEL: level name, default WARNING so benchmark
        tables stay readable on the console.
      - CONCBENCH_LOG_JSON_TO_FILE: when truthy ("1", "true", "yes"), log to a file.
      - CONCBENCH_LOG_FILE: path to JSONL log file (default: "user_data/logs/concbench.jsonl").
      - CORRELATION_ID: injected into every record unless set in `static_fields`.

    Returns a LoggerAdapter that injects `static_fields` into each record.
    """
    qualified = name if name.startswith("concbench") else f"concbench.{name}"
    logger = logging.getLogger(qualified)
    effective_level = level if level is not None else _level_from_env()
    logger.setLevel(effective_level)

    # Avoid duplicate handlers: add only if empty
    if not logger.handlers:
        effective_log_path = log_path
        if effective_log_path is None:
            _to_file = os.getenv("CONCBENCH_LOG_JSON_TO_FILE", "").strip().lower() in {"1", "true", "yes"}
            if _to_file:
                effective_log_path = Path(os.getenv("CONCBENCH_LOG_FILE", DEFAULT_LOG_FILE))

        if effective_log_path is not None:
            effective_log_path.parent.mkdir(parents=True, exist_ok=True)
            handler: logging.Handler = logging.FileHandler(effective_log_path, encoding='utf-8')
        else:
            handler = logging.StreamHandler()
        handler.setFormatter(JsonFormatter())
        logger.addHandler(handler)
        logger.propagate = False

    fields = dict(static_fields or {})
    _cid = os.getenv("CORRELATION_ID", "").strip()
    if _cid and "correlation_id" not in fields:
        fields["correlation_id"] = _cid
    return _MergingAdapter(logger, extra=fields)


def get_context_logger(
    name: str,
    context: dict[str, Any] | None = None,
    *,
    log_path: Path | None = None,
    level: int | None = None,
) -> logging.LoggerAdapter:
    """Convenience wrapper to obtain a JSON logger with contextual fields.

    Example:
        logger = get_context_logger("runner", {"session_id": sid, "workload": "empty"})
    """
    return get_json_logger(name, log_path=log_path, level=level, static_fields=context)
