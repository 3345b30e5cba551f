"""Key/value stores for the progression blob, plus a SQLite history log."""
from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from pathlib import Path

INIT_SQL = """
CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    lesson TEXT NOT NULL,
    node_id TEXT,
    action TEXT NOT NULL,
    data TEXT,
    timestamp TEXT NOT NULL DEFAULT (datetime('now'))
);
"""


class StateStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    def __init__(self, initial: dict[str, str] | None = None):
        self.data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


class ProgressStore:
    def __init__(self, db_path: str | Path):
        self.db = sqlite3.connect(str(db_path))
        self.db.execute("PRAGMA journal_mode = WAL")
        self.db.executescript(INIT_SQL)

    def get(self, key: str) -> str | None:
        row = self.db.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        self.db.execute(
            """INSERT INTO kv (key, value) VALUES (?, ?)
               ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = datetime('now')""",
            (key, value),
        )
        self.db.commit()

    def delete(self, key: str) -> None:
        self.db.execute("DELETE FROM kv WHERE key = ?", (key,))
        self.db.commit()

    def add_history(self, lesson: str, node_id: str | None, action: str, data: str | None = None) -> None:
        self.db.execute(
            "INSERT INTO history (lesson, node_id, action, data) VALUES (?, ?, ?, ?)",
            (lesson, node_id, action, data),
        )
        self.db.commit()

    def get_history(self, limit: int = 20, lesson: str | None = None) -> list[dict]:
        if lesson is None:
            rows = self.db.execute(
                "SELECT id, lesson, node_id, action, data, timestamp "
                "FROM history ORDER BY id DESC LIMIT ?",
                (limit,),
            ).fetchall()
        else:
            rows = self.db.execute(
                "SELECT id, lesson, node_id, action, data, timestamp "
                "FROM history WHERE lesson = ? ORDER BY id DESC LIMIT ?",
                (lesson, limit),
            ).fetchall()
        return [
            {"id": r[0], "lesson": r[1], "node_id": r[2],
             "action": r[3], "data": r[4], "timestamp": r[5]}
            for r in rows
        ]

    def reset(self, lesson: str | None = None) -> None:
        if lesson is None:
            self.db.execute("DELETE FROM kv")
            self.db.execute("DELETE FROM history")
        else:
            self.db.execute(
                "DELETE FROM kv WHERE key IN (?, ?)", (f"progress:{lesson}", f"slide:{lesson}"),
            )
            self.db.execute("DELETE FROM history WHERE lesson = ?", (lesson,))
        self.db.commit()

    def close(self) -> None:
        self.db.close()
