from __future__ import annotations

import json
import math
import sqlite3
from pathlib import Path

import pytest
from freezegun import freeze_time

from concbench.harness.config import BenchmarkConfig
from concbench.harness.reporting import (
    export_sqlite,
    format_group_table,
    generate_markdown,
    generate_results_markdown_from_db,
    relative_matrix,
    to_frame,
    write_json,
)
from concbench.harness.runner import BenchmarkSession, Measurement


def _m(strategy: str, real: float, *, workload: str = "empty", iterations: int = 0, status: str = "ok") -> Measurement:
    return Measurement(
        workload=workload,
        label=workload,
        strategy=strategy,
        iterations=iterations,
        replicates=1,
        user=real / 2,
        system=0.0,
        real=real,
        status=status,
        error=None if status == "ok" else "1 of 1 invocation(s) failed under 'threads'",
        started_utc="2026-01-02T03:04:05+00:00",
    )


def _session(measurements: list[Measurement], session_id: str = "s1") -> BenchmarkSession:
    return BenchmarkSession(
        session_id=session_id,
        started_utc="2026-01-02T03:04:05+00:00",
        finished_utc="2026-01-02T03:04:09+00:00",
        config=BenchmarkConfig(replicates=1, iterations=(0,), rehearsal=False),
        measurements=measurements,
        skipped_strategies={"fibers": "capability probe returned false"},
    )


def test_relative_is_per_call_time_over_sequential() -> None:
    frame = to_frame([_m("sequential", 1.0), _m("threads", 2.0), _m("actors", 0.5)])
    assert frame["relative"].tolist() == [1.0, 2.0, 0.5]


def test_relative_is_grouped_by_workload_and_iterations() -> None:
    frame = to_frame(
        [
            _m("sequential", 1.0, iterations=0),
            _m("threads", 3.0, iterations=0),
            _m("sequential", 4.0, iterations=1),
            _m("threads", 2.0, iterations=1),
        ]
    )
    # iterations=1 means two invocations per replicate, same ratio either way
    assert frame["relative"].tolist() == [1.0, 3.0, 1.0, 0.5]


def test_relative_nan_for_failures_and_missing_baseline() -> None:
    frame = to_frame([_m("sequential", 1.0), _m("threads", 2.0, status="failed"), _m("threads", 1.0, workload="fibonacci")])
    values = frame["relative"].tolist()
    assert values[0] == 1.0
    assert math.isnan(values[1])
    assert math.isnan(values[2])


def test_empty_frame_has_relative_column() -> None:
    frame = to_frame([])
    assert frame.empty
    assert "relative" in frame.columns


def test_group_table_lists_strategies_and_failures() -> None:
    text = format_group_table([_m("sequential", 1.0), _m("threads", 2.0), _m("actors", 1.0, status="failed")])
    assert "sequential" in text
    assert "2.00x" in text
    assert "vs sequential" in text
    assert "actors: FAILED" in text


def test_relative_matrix_keeps_strategy_order() -> None:
    frame = to_frame([_m("sequential", 1.0), _m("threads", 2.0), _m("actors", 4.0)])
    matrix = relative_matrix(frame)
    assert list(matrix.columns) == ["sequential", "threads", "actors"]
    assert matrix.loc[("empty", 0), "actors"] == pytest.approx(4.0)


def test_generate_markdown_sections() -> None:
    md = generate_markdown(_session([_m("sequential", 1.0), _m("threads", 2.0, status="failed")]))
    assert md.startswith("# Concurrency benchmark – session s1")
    assert "Skipped strategies: fibers (capability probe returned false)" in md
    assert "## Results" in md
    assert "## Per-call time relative to sequential" in md
    assert "## Failures" in md
    assert "- empty / 0 / threads:" in md


def test_generate_markdown_without_measurements() -> None:
    md = generate_markdown(_session([]))
    assert "No measurements." in md
    assert "## Failures" not in md


def test_write_json(tmp_path: Path) -> None:
    out = tmp_path / "nested" / "session.json"
    write_json(_session([_m("sequential", 1.0)]), out)
    payload = json.loads(out.read_text(encoding="utf-8"))
    assert payload["session_id"] == "s1"
    assert payload["measurements"][0]["strategy"] == "sequential"


@freeze_time("2026-03-04 05:06:07")
def test_sqlite_export_and_results_report(tmp_path: Path) -> None:
    db = tmp_path / "results" / "bench.sqlite"
    assert export_sqlite(_session([_m("sequential", 1.0), _m("threads", 2.0)]), db) == 2

    md = generate_results_markdown_from_db(db)

    assert md.startswith("# Results – latest benchmark sessions")
    assert "Generated (UTC): 2026-03-04T05:06:07Z" in md
    assert "## Session s1" in md
    assert "| empty | 0 | threads | 2.000000 | 2.000000 | ok |" in md


def test_sqlite_export_is_idempotent(tmp_path: Path) -> None:
    db = tmp_path / "bench.sqlite"
    session = _session([_m("sequential", 1.0), _m("threads", 2.0)])
    export_sqlite(session, db)
    export_sqlite(session, db)

    con = sqlite3.connect(db)
    try:
        (sessions,) = con.execute("SELECT COUNT(*) FROM sessions").fetchone()
        (rows,) = con.execute("SELECT COUNT(*) FROM measurements").fetchone()
    finally:
        con.close()
    assert (sessions, rows) == (1, 2)


def test_results_report_latest_first_and_limited(tmp_path: Path) -> None:
    db = tmp_path / "bench.sqlite"
    older = _session([_m("sequential", 1.0)], session_id="old")
    newer = _session([_m("sequential", 1.0)], session_id="new")
    newer.started_utc = "2026-05-01T00:00:00+00:00"
    export_sqlite(older, db)
    export_sqlite(newer, db)

    md = generate_results_markdown_from_db(db, limit=1)

    assert "## Session new" in md
    assert "## Session old" not in md


def test_results_report_empty_db(tmp_path: Path) -> None:
    db = tmp_path / "empty.sqlite"
    export_sqlite(_session([], session_id="x"), db)
    con = sqlite3.connect(db)
    con.execute("DELETE FROM sessions")
    con.commit()
    con.close()

    assert "No sessions found." in generate_results_markdown_from_db(db)


def test_results_report_missing_db(tmp_path: Path) -> None:
    md = generate_results_markdown_from_db(tmp_path / "nope.sqlite")
    assert md.startswith("# Error: could not open database")


def test_results_report_foreign_db(tmp_path: Path) -> None:
    db = tmp_path / "other.sqlite"
    con = sqlite3.connect(db)
    con.execute("CREATE TABLE unrelated (x INTEGER)")
    con.commit()
    con.close()

    assert generate_results_markdown_from_db(db).startswith("# Error: not a concbench database")
