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
Fetch Pipeline

Turns a resource id into a local playable file (and into metadata), hitting
the network only on a cache miss.

FILE FETCH:

    1. Cache hit -> return the final path, no network
    2. Miss -> wait for a download slot (bounded by MAX_CONCURRENT_DOWNLOADS)
    3. Stream bytes from the provider into a fresh staging file
    4. CacheStore.publish() moves it into place

    Two racing fetches of the same id may both download; publish() keeps the
    first and drops the second staging file. Any failure removes the staging
    file and raises FetchFailed, so a failed download never leaves a cache entry.

METADATA FETCH:

    Cache-aside against the MetadataStore: read, on miss resolve remotely and
    write back. A failed write-back is logged; the caller still gets the info.
"""

import asyncio
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from config.timing import MAX_CONCURRENT_DOWNLOADS
from core.cache import CacheStore, validate_resource_id
from core.errors import FetchFailed, PersistenceError, ProviderError
from core.metadata import MetadataStore, TrackInfo
from core.provider import PlaylistInfo

logger = logging.getLogger(__name__)


class FetchPipeline:
    """
    Cache-aware fetcher shared by every session.

    Args:
        cache: Audio file cache
        metadata: Metadata store (video_info table)
        provider: Object with async resolve(), resolve_playlist() and an
                  async-iterator stream_audio() (YouTubeProvider in production)
        max_concurrent_downloads: Download slots
    """

    def __init__(
        self,
        cache: CacheStore,
        metadata: MetadataStore,
        provider,
        max_concurrent_downloads: int = MAX_CONCURRENT_DOWNLOADS,
    ):
        self.cache = cache
        self.metadata = metadata
        self.provider = provider
        self._download_slots = asyncio.Semaphore(max(1, max_concurrent_downloads))
        self._prefetches: Dict[str, asyncio.Task] = {}

    # =========================================================================
    # Files
    # =========================================================================

    async def get_file(self, resource_id: str) -> Path:
        """
        Local path for a resource, downloading it on a cache miss.

        Raises:
            ValidationError: resource_id is not a safe identifier
            FetchFailed: Download or publish failed (no cache entry is created)
        """
        validate_resource_id(resource_id)
        if self.cache.has(resource_id):
            logger.debug(f"Cache hit: {resource_id}")
            return self.cache.final_path(resource_id)

        async with self._download_slots:
            # Another fetch may have finished while we waited for a slot
            if self.cache.has(resource_id):
                return self.cache.final_path(resource_id)
            return await self._download(resource_id)

    async def _download(self, resource_id: str) -> Path:
        logger.debug(f"Cache miss, downloading: {resource_id}")
        staging = self.cache.new_staging_path(resource_id)
        published = False
        try:
            written = 0
            with open(staging, 'wb') as fh:
                async for chunk in self.provider.stream_audio(resource_id):
                    # Disk writes run in a worker thread so voice and gateway keep flowing
                    await asyncio.to_thread(fh.write, chunk)
                    written += len(chunk)

            if written == 0:
                raise FetchFailed(resource_id, "provider returned an empty stream")

            path = self.cache.publish(resource_id, staging)
            published = True
            logger.info(f"Downloaded {resource_id} ({written // 1024} KiB)")
            return path
        except ProviderError as e:
            raise FetchFailed(resource_id, str(e)) from e
        except OSError as e:
            raise FetchFailed(resource_id, f"could not write cache file: {e}") from e
        finally:
            if not published:
                self.cache.discard(staging)

    def prefetch(self, resource_id: str) -> Optional[asyncio.Task]:
        """
        Warm the cache in the background.

        Failures are logged only; the blocking fetch at play time will retry.
        Returns the running task, or None on a cache hit.
        """
        if self.cache.has(resource_id):
            return None
        existing = self._prefetches.get(resource_id)
        if existing and not existing.done():
            return existing

        task = asyncio.create_task(self._run_prefetch(resource_id), name=f"prefetch:{resource_id}")
        self._prefetches[resource_id] = task
        task.add_done_callback(lambda t, rid=resource_id: self._prefetch_done(rid, t))
        return task

    async def _run_prefetch(self, resource_id: str) -> None:
        try:
            await self.get_file(resource_id)
            logger.debug(f"Pre-fetched {resource_id}")
        except FetchFailed as e:
            logger.warning(f"Pre-fetch failed (will retry at play time): {e}")
        except Exception:
            logger.exception(f"Unexpected pre-fetch error for {resource_id}")

    def _prefetch_done(self, resource_id: str, task: asyncio.Task) -> None:
        if self._prefetches.get(resource_id) is task:
            del self._prefetches[resource_id]

    # =========================================================================
    # Metadata
    # =========================================================================

    async def get_info(self, resource_id: str) -> TrackInfo:
        """
        Metadata for a resource (cache-aside).

        Raises:
            FetchFailed: Not cached and the provider couldn't resolve it
        """
        try:
            cached = await self.metadata.get(resource_id)
        except PersistenceError as e:
            logger.warning(f"Metadata read failed for {resource_id}, asking provider: {e}")
            cached = None
        if cached is not None:
            return cached

        try:
            info = await self.provider.resolve(resource_id)
        except ProviderError as e:
            raise FetchFailed(resource_id, str(e)) from e

        try:
            await self.metadata.put(resource_id, info)
        except PersistenceError as e:
            logger.warning(f"Could not cache metadata for {resource_id}: {e}")
        return info

    async def get_infos(self, resource_ids: Iterable[str], strict: bool = True) -> List[TrackInfo]:
        """
        Sequential batch of get_info(), preserving input order.

        Args:
            strict: When False, unresolvable ids become placeholders instead
                    of raising (used for queue listings)
        """
        infos = []
        for resource_id in resource_ids:
            try:
                infos.append(await self.get_info(resource_id))
            except FetchFailed as e:
                if strict:
                    raise
                logger.debug(f"Using placeholder for {resource_id}: {e}")
                infos.append(TrackInfo.placeholder(resource_id))
        return infos

    async def get_playlist(self, playlist_id: str) -> PlaylistInfo:
        """
        Resolve a playlist and store every entry's metadata in one batch.

        Raises:
            FetchFailed: Playlist is private, deleted, or the provider failed
        """
        try:
            playlist = await self.provider.resolve_playlist(playlist_id)
        except ProviderError as e:
            raise FetchFailed(playlist_id, str(e)) from e

        try:
            await self.metadata.put_many((entry.video_id, entry.info) for entry in playlist.entries)
        except PersistenceError as e:
            logger.warning(f"Could not cache playlist metadata for {playlist_id}: {e}")
        return playlist

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def close(self) -> None:
        """Cancel outstanding pre-fetches."""
        tasks = [task for task in self._prefetches.values() if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._prefetches.clear()
