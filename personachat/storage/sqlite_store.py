"""
SQLite message store.
Single portable file, the default when no hosted store is configured.
Blocking sqlite3 calls run in a worker thread so the event loop never waits
on disk.
"""

import asyncio
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path

from personachat.errors import PersistenceError
from personachat.storage.base import MessageStore
from personachat.storage.models import StoredMessage

logger = logging.getLogger(__name__)

CREATE_TABLES = """
CREATE TABLE IF NOT EXISTS messages (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    user_id TEXT NOT NULL,
    role TEXT NOT NULL,
    content TEXT NOT NULL,
    mode TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_messages_user
    ON messages(user_id, created_at);
"""


class SQLiteStore(MessageStore):
    """Thread-safe SQLite message store."""

    name = "sqlite"

    def __init__(self, db_path: str):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self):
        with self._connect() as conn:
            conn.executescript(CREATE_TABLES)
        logger.info("SQLite store initialized at %s", self.db_path)

    @contextmanager
    def _connect(self):
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _insert(self, msg: StoredMessage):
        with self._connect() as conn:
            conn.execute(
                """INSERT INTO messages (id, user_id, role, content, mode, created_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (msg.id, msg.user_id, msg.role, msg.content, msg.mode, msg.created_at),
            )
        logger.debug("Stored message %s (role=%s, user=%s)", msg.id, msg.role, msg.user_id)

    def _select(self, user_id: str, mode: str | None) -> list[dict]:
        sql = "SELECT id, user_id, role, content, mode, created_at FROM messages WHERE user_id = ?"
        params: list = [user_id]
        if mode:
            sql += " AND mode = ?"
            params.append(mode)
        sql += " ORDER BY created_at, seq"
        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [dict(r) for r in rows]

    def _delete(self, user_id: str) -> int:
        with self._connect() as conn:
            cur = conn.execute("DELETE FROM messages WHERE user_id = ?", (user_id,))
            return cur.rowcount

    async def append_message(self, message: StoredMessage) -> None:
        try:
            await asyncio.to_thread(self._insert, message)
        except sqlite3.Error as e:
            raise PersistenceError(f"SQLite insert failed: {e}") from e

    async def get_messages(self, user_id: str, mode: str | None = None) -> list[dict]:
        try:
            return await asyncio.to_thread(self._select, user_id, mode)
        except sqlite3.Error as e:
            raise PersistenceError(f"SQLite select failed: {e}") from e

    async def delete_messages(self, user_id: str) -> int:
        try:
            return await asyncio.to_thread(self._delete, user_id)
        except sqlite3.Error as e:
            raise PersistenceError(f"SQLite delete failed: {e}") from e
