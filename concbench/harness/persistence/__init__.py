from __future__ import annotations

from .sqlite import connect, ensure_schema, insert_session

__all__ = [
    "connect",
    "ensure_schema",
    "insert_session",
]
