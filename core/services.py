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
Service Wiring

Builds the long-lived, bot-wide collaborators once at startup and hands them
to the command layer. Per-guild MusicPlayers are created on demand and kept
in the registry.
"""

import logging
from dataclasses import dataclass

from config.settings import Settings
from core.cache import CacheStore
from core.database import Database
from core.fetch import FetchPipeline
from core.history import PlayHistory
from core.metadata import MetadataStore
from core.provider import YouTubeProvider
from core.registry import SessionRegistry
from core.stats import StatsReporter

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    database: Database
    cache: CacheStore
    metadata: MetadataStore
    history: PlayHistory
    provider: YouTubeProvider
    fetcher: FetchPipeline
    registry: SessionRegistry
    stats: StatsReporter

    @classmethod
    def build(cls, settings: Settings) -> 'Services':
        settings.ensure_directories()
        database = Database(settings.db_path)
        cache = CacheStore(settings.cache_dir, settings.staging_dir)
        metadata = MetadataStore(database)
        history = PlayHistory(database)
        provider = YouTubeProvider(cookie=settings.cookie)
        return cls(
            settings=settings,
            database=database,
            cache=cache,
            metadata=metadata,
            history=history,
            provider=provider,
            fetcher=FetchPipeline(cache, metadata, provider),
            registry=SessionRegistry(),
            stats=StatsReporter(history),
        )

    async def start(self) -> None:
        """Open the database (creates tables on first run)."""
        await self.database.connect()

    async def close(self) -> None:
        """Tear down every session, then release shared resources."""
        for player in self.registry.values():
            try:
                await player.teardown("shutdown")
            except Exception:
                logger.exception(f"Error tearing down session for guild {player.guild_id}")
        await self.fetcher.close()
        await self.provider.close()
        await self.database.close()
