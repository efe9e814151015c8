"""SQLite-backed preference store.

Weighting strategies persist user edits here between sessions. Values are
grouped by namespace (one per strategy) and stored JSON-encoded.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any

_MEMORY = ":memory:"


def _now_iso() -> str:
    return datetime.now().isoformat()


class PreferenceStore:
    """Namespaced key/value store."""

    def __init__(self, path: Path | str = _MEMORY):
        if str(path) != _MEMORY:
            path = Path(path)
            path.parent.mkdir(parents=True, exist_ok=True)
        self.path = path
        self.conn = sqlite3.connect(str(path))
        self.conn.row_factory = sqlite3.Row
        self.init_schema()

    def init_schema(self) -> None:
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS preferences (
                namespace TEXT NOT NULL,
                key TEXT NOT NULL,
                value_json TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                PRIMARY KEY (namespace, key)
            )
            """
        )
        self.conn.commit()

    def get(self, namespace: str, key: str, default: Any = None) -> Any:
        row = self.conn.execute(
            "SELECT value_json FROM preferences WHERE namespace = ? AND key = ?",
            (namespace, key),
        ).fetchone()
        if row is None:
            return default
        return json.loads(row["value_json"])

    def put(self, namespace: str, key: str, value: Any) -> None:
        self.conn.execute(
            """
            INSERT INTO preferences (namespace, key, value_json, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(namespace, key) DO UPDATE SET
                value_json = excluded.value_json,
                updated_at = excluded.updated_at
            """,
            (namespace, key, json.dumps(value), _now_iso()),
        )
        self.conn.commit()

    def items(self, namespace: str) -> dict[str, Any]:
        rows = self.conn.execute(
            "SELECT key, value_json FROM preferences WHERE namespace = ? ORDER BY key",
            (namespace,),
        ).fetchall()
        return {row["key"]: json.loads(row["value_json"]) for row in rows}

    def keys(self, namespace: str) -> list[str]:
        return list(self.items(namespace))

    def clear(self, namespace: str) -> None:
        self.conn.execute("DELETE FROM preferences WHERE namespace = ?", (namespace,))
        self.conn.commit()

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> PreferenceStore:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def open_prefs(path: Path | str) -> PreferenceStore:
    """Open (and create if needed) a preference store."""
    return PreferenceStore(path)
