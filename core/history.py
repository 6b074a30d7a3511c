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
Play History Ledger

Append-only (video_id, username, played_at) rows. played_at is stored as a
UTC string with microseconds ("YYYY-MM-DD HH:MM:SS.ffffff") so rows sort and
compare as text and replays of the same track by the same user count
separately. An exact duplicate tuple is silently ignored.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from core.database import Database

logger = logging.getLogger(__name__)

_TIMESTAMP_FORMAT = '%Y-%m-%d %H:%M:%S.%f'


def to_db_timestamp(moment: datetime) -> str:
    """Convert a datetime to the ledger's UTC text format (naive = local time)."""
    if moment.tzinfo is None:
        moment = moment.astimezone()
    return moment.astimezone(timezone.utc).strftime(_TIMESTAMP_FORMAT)


@dataclass(frozen=True, slots=True)
class PlayerStat:
    """One row of a "most plays" report."""

    requester: str
    play_count: int


class PlayHistory:
    """plays table accessor."""

    def __init__(self, database: Database):
        self.database = database

    async def record_play(self, resource_id: str, requester: str, played_at: Optional[datetime] = None) -> None:
        """
        Append a play. Raises PersistenceError on failure; the player treats
        that as non-fatal.
        """
        moment = played_at or datetime.now(timezone.utc)
        await self.database.run(
            "INSERT OR IGNORE INTO plays (video_id, username, played_at) VALUES (?, ?, ?)",
            (resource_id, requester, to_db_timestamp(moment)),
        )
        logger.debug(f"Recorded play of {resource_id} for {requester}")

    async def count(self) -> int:
        row = await self.database.get("SELECT count(*) AS total FROM plays")
        return int(row['total']) if row else 0

    async def top_players(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = 5,
    ) -> List[PlayerStat]:
        """
        Requesters ranked by play count within optional [start, end] bounds.

        Ties keep a stable order (alphabetical by requester).
        """
        clauses = []
        params: list = []
        if start is not None:
            clauses.append("played_at >= ?")
            params.append(to_db_timestamp(start))
        if end is not None:
            clauses.append("played_at <= ?")
            params.append(to_db_timestamp(end))

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        params.append(limit)

        rows = await self.database.all(
            f"""
            SELECT username, count(*) AS play_count
            FROM plays
            {where}
            GROUP BY username
            ORDER BY play_count DESC, username ASC
            LIMIT ?
            """,
            params,
        )
        return [PlayerStat(requester=row['username'], play_count=int(row['play_count'])) for row in rows]
