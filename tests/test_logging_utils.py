from __future__ import annotations

import json
import logging
import uuid
from pathlib import Path

import pytest

from concbench.logging_utils import JsonFormatter, get_context_logger, get_json_logger


def _record(**extra: object) -> logging.LogRecord:
    record = logging.LogRecord("concbench.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
    for k, v in extra.items():
        setattr(record, k, v)
    return record


def _close(adapter: logging.LoggerAdapter) -> None:
    for handler in list(adapter.logger.handlers):
        handler.close()
        adapter.logger.removeHandler(handler)


def test_formatter_payload() -> None:
    payload = json.loads(JsonFormatter().format(_record(strategy="threads", ids=(1, 2), _hidden=1, obj=object())))
    assert payload["message"] == "hello world"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "concbench.test"
    assert payload["strategy"] == "threads"
    assert payload["ids"] == [1, 2]
    assert "_hidden" not in payload
    assert payload["obj"].startswith("<object")


def test_formatter_unserializable_container_falls_back_to_repr() -> None:
    payload = json.loads(JsonFormatter().format(_record(items=[object()])))
    assert isinstance(payload["items"], str)


def test_json_logger_writes_jsonl_with_fields(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CORRELATION_ID", "cid-42")
    path = tmp_path / "logs" / "bench.jsonl"
    logger = get_context_logger(f"test.{uuid.uuid4().hex}", {"session_id": "s1"}, log_path=path, level=logging.INFO)
    try:
        logger.info("group_start", extra={"workload": "empty"})
        logger.debug("hidden")
    finally:
        _close(logger)

    lines = path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    payload = json.loads(lines[0])
    assert payload["message"] == "group_start"
    assert payload["session_id"] == "s1"
    assert payload["workload"] == "empty"
    assert payload["correlation_id"] == "cid-42"
    assert payload["logger"].startswith("concbench.test.")


def test_level_from_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("CONCBENCH_LOG_LEVEL", "debug")
    logger = get_json_logger(f"test.{uuid.uuid4().hex}", log_path=tmp_path / "x.jsonl")
    try:
        assert logger.logger.level == logging.DEBUG
    finally:
        _close(logger)


def test_handler_added_once(tmp_path: Path) -> None:
    name = f"test.{uuid.uuid4().hex}"
    first = get_json_logger(name, log_path=tmp_path / "a.jsonl")
    second = get_json_logger(name, log_path=tmp_path / "b.jsonl")
    try:
        assert first.logger is second.logger
        assert len(first.logger.handlers) == 1
    finally:
        _close(first)
