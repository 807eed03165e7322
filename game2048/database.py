"""SQLite key-value store for settings and saved games."""
from __future__ import annotations
import logging
import sqlite3
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)

DB_PATH = Path(__file__).parent.parent / "data" / "game2048.db"


class KeyValueStore:
    """String values by string keys, one connection per operation.

    Safe to call from worker threads.
    """

    def __init__(self, db_path: Path | str = DB_PATH):
        self.db_path = Path(db_path)
        self.init_db()

    def get_connection(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self):
        """Initialize database schema."""
        conn = self.get_connection()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.commit()
        finally:
            conn.close()

    def get(self, key: str, default: str | None = None) -> str | None:
        conn = self.get_connection()
        try:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        finally:
            conn.close()
        return row["value"] if row else default

    def __getitem__(self, key: str) -> str:
        value = self.get(key)
        if value is None:
            raise KeyError(key)
        return value

    def __setitem__(self, key: str, value):
        conn = self.get_connection()
        try:
            conn.execute("""
                INSERT INTO kv (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at
            """, (key, str(value), datetime.now().isoformat()))
            conn.commit()
        finally:
            conn.close()

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def delete(self, *keys: str) -> int:
        """Remove keys, returns the number of rows deleted."""
        if not keys:
            return 0
        conn = self.get_connection()
        try:
            cursor = conn.execute(
                f"DELETE FROM kv WHERE key IN ({','.join('?' for _ in keys)})", keys
            )
            conn.commit()
            deleted = cursor.rowcount
        finally:
            conn.close()
        if deleted:
            logger.debug("Deleted %s", ", ".join(keys))
        return deleted

    def keys(self, prefix: str = "") -> list[str]:
        conn = self.get_connection()
        try:
            cursor = conn.execute(
                "SELECT key FROM kv WHERE key LIKE ? ORDER BY key", (prefix + "%",)
            )
            return [row["key"] for row in cursor]
        finally:
            conn.close()
