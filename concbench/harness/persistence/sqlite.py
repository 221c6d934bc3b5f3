from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..runner import BenchmarkSession


SCHEMA: dict[str, str] = {
    "sessions": (
        """
        CREATE TABLE IF NOT EXISTS sessions (
            id TEXT PRIMARY KEY,
            started_utc TEXT,
            finished_utc TEXT,
            replicates INTEGER,
            config_json TEXT,
            skipped_json TEXT
        )
        """
    ),
    "measurements": (
        """
        CREATE TABLE IF NOT EXISTS measurements (
            session_id TEXT NOT NULL,
            workload TEXT NOT NULL,
            label TEXT,
            strategy TEXT NOT NULL,
            iterations INTEGER NOT NULL,
            replicates INTEGER,
            invocations INTEGER,
            user_sec REAL,
            system_sec REAL,
            real_sec REAL,
            status TEXT,
            error TEXT,
            started_utc TEXT,
            PRIMARY KEY (session_id, workload, strategy, iterations)
        )
        """
    ),
}


def connect(db_path: Path) -> sqlite3.Connection:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return sqlite3.connect(db_path)


def ensure_schema(conn: sqlite3.Connection) -> None:
    cur = conn.cursor()
    for sql in SCHEMA.values():
        cur.execute(sql)
    conn.commit()


def insert_session(conn: sqlite3.Connection, session: BenchmarkSession) -> int:
    """Upsert a session and its measurements; returns the measurement count."""
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO sessions (
            id, started_utc, finished_utc, replicates, config_json, skipped_json
        ) VALUES (?, ?, ?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            started_utc=excluded.started_utc,
            finished_utc=excluded.finished_utc,
            replicates=excluded.replicates,
            config_json=excluded.config_json,
            skipped_json=excluded.skipped_json
        """,
        (
            session.session_id,
            session.started_utc,
            session.finished_utc,
            session.config.replicates,
            json.dumps(session.config.model_dump(mode="json"), ensure_ascii=False),
            json.dumps(session.skipped_strategies, ensure_ascii=False),
        ),
    )

    for m in session.measurements:
        cur.execute(
            """
            INSERT INTO measurements (
                session_id, workload, label, strategy, iterations, replicates, invocations,
                user_sec, system_sec, real_sec, status, error, started_utc
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(session_id, workload, strategy, iterations) DO UPDATE SET
                label=excluded.label,
                replicates=excluded.replicates,
                invocations=excluded.invocations,
                user_sec=excluded.user_sec,
                system_sec=excluded.system_sec,
                real_sec=excluded.real_sec,
                status=excluded.status,
                error=excluded.error,
                started_utc=excluded.started_utc
            """,
            (
                session.session_id,
                m.workload,
                m.label,
                m.strategy,
                m.iterations,
                m.replicates,
                m.invocations,
                m.user,
                m.system,
                m.real,
                m.status,
                m.error,
                m.started_utc,
            ),
        )

    conn.commit()
    return len(session.measurements)
