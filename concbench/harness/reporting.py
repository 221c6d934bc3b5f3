from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

import numpy as np
import pandas as pd

from ..logging_utils import get_json_logger
from .persistence.sqlite import connect, ensure_schema, insert_session
from .runner import BenchmarkSession, Measurement

BASELINE = "sequential"

COLUMNS = [
    "workload",
    "label",
    "strategy",
    "iterations",
    "replicates",
    "invocations",
    "user",
    "system",
    "total",
    "real",
    "per_invocation",
    "status",
    "error",
]


def _sec(v: Any) -> str:
    return "-" if v is None or pd.isna(v) else f"{v:.6f}"


def _ratio(v: Any) -> str:
    return "-" if v is None or pd.isna(v) else f"{v:.2f}x"


def _safe(v: Any, default: str = "-") -> str:
    return default if v in (None, "") else str(v)


def to_frame(measurements: Iterable[Measurement]) -> pd.DataFrame:
    """Measurements as a DataFrame with a `relative` column.

    `relative` is per-invocation time divided by the sequential per-invocation
    time of the same (workload, iterations) group; NaN when either side failed
    or the baseline was not run.
    """
    frame = pd.DataFrame([m.to_dict() for m in measurements], columns=COLUMNS)
    if frame.empty:
        frame["relative"] = pd.Series(dtype=float)
        return frame

    ok = (frame["status"] == "ok").to_numpy()
    base = frame["per_invocation"].where((frame["status"] == "ok") & (frame["strategy"] == BASELINE))
    baseline = base.groupby([frame["workload"], frame["iterations"]]).transform("max").to_numpy(dtype=float)
    values = frame["per_invocation"].to_numpy(dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        frame["relative"] = np.where(ok & (baseline > 0), values / baseline, np.nan)
    return frame


def format_group_table(measurements: list[Measurement]) -> str:
    """Console table for one (workload, iterations) group, Benchmark-style."""
    frame = to_frame(measurements)
    if frame.empty:
        return "(no strategies)\n"
    view = frame.set_index("strategy")[["user", "system", "total", "real", "per_invocation", "relative"]]
    view = view.rename(columns={"per_invocation": "per call", "relative": "vs sequential"})
    text = view.to_string(
        formatters={
            "user": _sec,
            "system": _sec,
            "total": _sec,
            "real": _sec,
            "per call": _sec,
            "vs sequential": _ratio,
        }
    )
    lines = [text]
    for m in measurements:
        if not m.ok:
            lines.append(f"  {m.strategy}: FAILED {m.error}")
    return "\n".join(lines) + "\n"


def relative_matrix(frame: pd.DataFrame) -> pd.DataFrame:
    """Pivot of `relative`: rows (label, iterations), one column per strategy."""
    if frame.empty:
        return pd.DataFrame()
    order = list(dict.fromkeys(frame["strategy"]))
    pivot = frame.pivot_table(
        index=["label", "iterations"], columns="strategy", values="relative", aggfunc="first", dropna=False, sort=False
    )
    return pivot.reindex(columns=order)


def generate_markdown(session: BenchmarkSession) -> str:
    """Build a Markdown report for one benchmark session."""
    logger = get_json_logger("reporting", static_fields={"session_id": session.session_id, "op": "generate_markdown"})
    logger.info("start", extra={"measurements": len(session.measurements)})
    cfg = session.config
    frame = to_frame(session.measurements)

    lines: list[str] = []
    lines.append(f"# Concurrency benchmark – session {session.session_id}")
    lines.append("")
    lines.append(f"Started (UTC): {session.started_utc}")
    lines.append(f"Finished (UTC): {_safe(session.finished_utc)}")
    lines.append(f"Replicates: {cfg.replicates} | Iterations: {', '.join(str(n) for n in cfg.iterations)} | Rehearsal: {'yes' if cfg.rehearsal else 'no'}")
    if session.skipped_strategies:
        skipped = "; ".join(f"{k} ({v})" for k, v in session.skipped_strategies.items())
        lines.append(f"Skipped strategies: {skipped}")
    lines.append("")

    lines.append("## Results")
    lines.append("")
    if frame.empty:
        lines.append("No measurements.")
        lines.append("")
    else:
        lines.append("| Workload | Iterations | Invocations | Strategy | user | system | total | real | per call | vs sequential | Status |")
        lines.append("|---|---:|---:|---|---:|---:|---:|---:|---:|---:|---|")
        for row in frame.itertuples(index=False):
            lines.append(
                "| "
                + " | ".join(
                    [
                        str(row.label),
                        str(row.iterations),
                        str(row.invocations),
                        str(row.strategy),
                        _sec(row.user),
                        _sec(row.system),
                        _sec(row.total),
                        _sec(row.real),
                        _sec(row.per_invocation),
                        _ratio(row.relative),
                        str(row.status),
                    ]
                )
                + " |"
            )
        lines.append("")

        matrix = relative_matrix(frame)
        lines.append("## Per-call time relative to sequential")
        lines.append("")
        lines.append("| Workload | Iterations | " + " | ".join(str(c) for c in matrix.columns) + " |")
        lines.append("|---|---:|" + "---:|" * len(matrix.columns))
        for (label, iterations), values in matrix.iterrows():
            lines.append(
                f"| {label} | {iterations} | " + " | ".join(_ratio(v) for v in values.tolist()) + " |"
            )
        lines.append("")

    failed = session.failed
    if failed:
        lines.append("## Failures")
        lines.append("")
        for m in failed:
            lines.append(f"- {m.label} / {m.iterations} / {m.strategy}: {m.error}")
        lines.append("")

    out = "\n".join(lines) + "\n"
    logger.info("done", extra={"lines_generated": len(lines), "output_bytes": len(out)})
    return out


def write_markdown(session: BenchmarkSession, out_path: Path) -> None:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(generate_markdown(session), encoding="utf-8")


def write_json(session: BenchmarkSession, out_path: Path) -> None:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(json.dumps(session.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8")


def export_sqlite(session: BenchmarkSession, db_path: Path) -> int:
    logger = get_json_logger("reporting", static_fields={"session_id": session.session_id, "op": "export_sqlite"})
    logger.info("start", extra={"db_path": str(db_path)})
    conn = connect(db_path)
    try:
        ensure_schema(conn)
        n = insert_session(conn, session)
        logger.info("done", extra={"measurements": n})
        return n
    finally:
        conn.close()


def generate_results_markdown_from_db(db_path: Path, limit: int = 10) -> str:
    """Markdown report of the latest `limit` sessions stored in SQLite."""
    logger = get_json_logger("reporting", static_fields={"op": "results_report"})
    logger.info("start", extra={"db_path": str(db_path), "limit": limit})

    try:
        con = sqlite3.connect(f"file:{db_path}?mode=ro", uri=True)
    except sqlite3.OperationalError as e:
        logger.error("db_connect_failed", extra={"db_path": str(db_path), "error": str(e)})
        return f"# Error: could not open database\n\nCould not open `{db_path}`. Check that the file exists and is readable.\n"

    try:
        cur = con.cursor()
        try:
            cur.execute(
                "SELECT id, started_utc, finished_utc, replicates FROM sessions ORDER BY started_utc DESC LIMIT ?",
                (limit,),
            )
        except sqlite3.OperationalError as e:
            logger.error("db_query_failed", extra={"db_path": str(db_path), "error": str(e)})
            return f"# Error: not a concbench database\n\nCould not read sessions from `{db_path}`: {e}\n"
        sessions: list[tuple[str, str, str, int]] = cur.fetchall()
        logger.info("sessions_fetched", extra={"count": len(sessions)})

        now_utc = datetime.now(tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        lines: list[str] = []
        lines.append("# Results – latest benchmark sessions")
        lines.append("")
        lines.append(f"Generated (UTC): {now_utc}")
        lines.append("")

        if not sessions:
            lines.append("No sessions found.")
            logger.info("done", extra={"sessions": 0})
            return "\n".join(lines) + "\n"

        for sid, started, finished, replicates in sessions:
            lines.append(f"## Session {sid}")
            lines.append("")
            lines.append(f"Started: {_safe(started)} | Finished: {_safe(finished)} | Replicates: {_safe(replicates)}")
            lines.append("")
            rows = pd.read_sql_query(
                "SELECT label, iterations, invocations, strategy, real_sec, replicates, status "
                "FROM measurements WHERE session_id = ? ORDER BY rowid",
                con,
                params=(sid,),
            )
            if rows.empty:
                lines.append("No measurements.")
                lines.append("")
                continue
            lines.append("| Workload | Iterations | Strategy | real | per call | Status |")
            lines.append("|---|---:|---|---:|---:|---|")
            per_call = rows["real_sec"] / (rows["replicates"] * rows["invocations"])
            for row, pc in zip(rows.itertuples(index=False), per_call.tolist()):
                lines.append(
                    f"| {row.label} | {row.iterations} | {row.strategy} | {_sec(row.real_sec)} | {_sec(pc)} | {row.status} |"
                )
            lines.append("")
    finally:
        con.close()

    out = "\n".join(lines) + "\n"
    logger.info("done", extra={"sessions": len(sessions), "output_bytes": len(out)})
    return out
