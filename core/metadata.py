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
Track Metadata Store

Cache-aside storage for descriptive metadata (title, owner, duration, URL),
stored as a JSON blob in the video_info table. Records are written once and
never refreshed, even if the remote video changes later.
"""

import json
import logging
from dataclasses import asdict, dataclass
from typing import Iterable, Optional, Tuple

from core.database import Database

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TrackInfo:
    """Descriptive metadata for one resource."""

    title: str
    owner_name: str = ""
    duration_seconds: int = 0
    url: str = ""

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, raw: str) -> 'TrackInfo':
        data = json.loads(raw)
        return cls(
            title=data.get('title') or "Unknown",
            owner_name=data.get('owner_name') or "",
            duration_seconds=int(data.get('duration_seconds') or 0),
            url=data.get('url') or "",
        )

    @classmethod
    def placeholder(cls, resource_id: str) -> 'TrackInfo':
        """Stand-in for listings when a record can't be fetched."""
        return cls(title=f"Unavailable ({resource_id})", url=resource_id)


class MetadataStore:
    """video_info table accessor."""

    def __init__(self, database: Database):
        self.database = database

    async def get(self, resource_id: str) -> Optional[TrackInfo]:
        row = await self.database.get(
            "SELECT info FROM video_info WHERE video_id = ?",
            (resource_id,),
        )
        if row is None:
            return None
        try:
            return TrackInfo.from_json(row['info'])
        except (ValueError, TypeError) as e:
            logger.warning(f"Corrupt metadata for {resource_id}, ignoring: {e}")
            return None

    async def put(self, resource_id: str, info: TrackInfo) -> None:
        """Insert or replace (last write wins)."""
        await self.database.run(
            "INSERT OR REPLACE INTO video_info (video_id, info) VALUES (?, ?)",
            (resource_id, info.to_json()),
        )

    async def put_many(self, records: Iterable[Tuple[str, TrackInfo]]) -> None:
        rows = [(resource_id, info.to_json()) for resource_id, info in records]
        if not rows:
            return
        await self.database.run_many(
            "INSERT OR REPLACE INTO video_info (video_id, info) VALUES (?, ?)",
            rows,
        )
