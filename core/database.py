# Copyright (C) 2026 grodz
#
# This file is part of Spindle.
#
# Spindle is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.

"""
SQLite Datastore

A single shared aiosqlite connection. aiosqlite runs every statement on one
worker thread, so calls are serialized without extra locking. Each run()
commits on its own; there are no multi-statement transactions.

Tables:
    video_info(video_id PK, info JSON, inserted_at)
    plays(video_id, username, played_at, PK(video_id, username, played_at))
"""

import logging
import sqlite3
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence

import aiosqlite

from core.errors import PersistenceError

logger = logging.getLogger(__name__)

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS video_info (
        video_id TEXT PRIMARY KEY,
        info TEXT NOT NULL,
        inserted_at DATETIME DEFAULT CURRENT_TIMESTAMP NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS plays (
        video_id TEXT NOT NULL,
        username TEXT NOT NULL,
        played_at TEXT NOT NULL,
        PRIMARY KEY (video_id, username, played_at)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_plays_played_at ON plays(played_at)",
)


class Database:
    """Thin async wrapper exposing run/get/all over one connection."""

    def __init__(self, db_path):
        self.db_path = str(db_path)
        self._conn: Optional[aiosqlite.Connection] = None

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    async def connect(self) -> None:
        """Open the connection and create tables if needed."""
        if self._conn is not None:
            return
        if self.db_path != ':memory:':
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self._conn = await aiosqlite.connect(self.db_path)
            self._conn.row_factory = sqlite3.Row
            for statement in SCHEMA:
                await self._conn.execute(statement)
            await self._conn.commit()
        except (sqlite3.Error, OSError) as e:
            raise PersistenceError(f"Could not open database {self.db_path}: {e}") from e
        logger.info(f"Database ready at {self.db_path}")

    async def close(self) -> None:
        if self._conn is None:
            return
        try:
            await self._conn.close()
        except sqlite3.Error as e:
            logger.debug(f"Database close failed (non-critical): {e}")
        finally:
            self._conn = None

    def _require(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise PersistenceError("Database is not connected")
        return self._conn

    async def run(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Execute a write and commit. Returns affected row count."""
        conn = self._require()
        try:
            cursor = await conn.execute(sql, params)
            await conn.commit()
            return cursor.rowcount
        except sqlite3.Error as e:
            raise PersistenceError(str(e)) from e

    async def run_many(self, sql: str, rows: Iterable[Sequence[Any]]) -> None:
        """executemany + commit (used for batch metadata inserts)."""
        conn = self._require()
        try:
            await conn.executemany(sql, rows)
            await conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(str(e)) from e

    async def get(self, sql: str, params: Sequence[Any] = ()) -> Optional[sqlite3.Row]:
        conn = self._require()
        try:
            async with conn.execute(sql, params) as cursor:
                return await cursor.fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(str(e)) from e

    async def all(self, sql: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        conn = self._require()
        try:
            async with conn.execute(sql, params) as cursor:
                return list(await cursor.fetchall())
        except sqlite3.Error as e:
            raise PersistenceError(str(e)) from e
