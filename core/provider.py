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
YouTube Provider

Resolves video/playlist metadata with yt-dlp and streams audio bytes with
aiohttp. yt-dlp is blocking, so extraction runs in a worker thread via
asyncio.to_thread().

The optional cookie (for age-gated or members-only content) is sent as a
Cookie header to both yt-dlp and the audio stream request.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional
from urllib.parse import parse_qs, urlparse

import aiohttp
import yt_dlp

from config.timing import DOWNLOAD_CHUNK_SIZE, DOWNLOAD_READ_TIMEOUT
from core.errors import ProviderError, ValidationError
from core.metadata import TrackInfo

logger = logging.getLogger(__name__)

_VIDEO_ID = re.compile(r'^[A-Za-z0-9_-]{11}$')
_PLAYLIST_ID = re.compile(r'^(PL|OL|UU|LL|FL|RD|OLAK5uy_)[A-Za-z0-9_-]{10,}$')
_YOUTUBE_HOSTS = {
    'youtube.com', 'www.youtube.com', 'm.youtube.com', 'music.youtube.com',
    'youtube-nocookie.com', 'www.youtube-nocookie.com',
}
_SHORT_HOSTS = {'youtu.be', 'www.youtu.be'}


# =============================================================================
# URL PARSING
# =============================================================================

def parse_video_id(value: str) -> str:
    """
    Extract an 11-character video id from a URL or bare id.

    Accepts watch?v=, youtu.be/, /shorts/, /embed/, /live/ and music.youtube.com.

    Raises:
        ValidationError: Not a recognizable video URL
    """
    value = (value or "").strip()
    if _VIDEO_ID.match(value):
        return value

    parsed = urlparse(value if '://' in value else f"https://{value}")
    host = (parsed.hostname or "").lower()
    candidate = None

    if host in _SHORT_HOSTS:
        candidate = parsed.path.lstrip('/').split('/')[0]
    elif host in _YOUTUBE_HOSTS:
        if parsed.path == '/watch':
            candidate = parse_qs(parsed.query).get('v', [None])[0]
        else:
            parts = [p for p in parsed.path.split('/') if p]
            if len(parts) >= 2 and parts[0] in ('shorts', 'embed', 'live', 'v'):
                candidate = parts[1]

    if candidate and _VIDEO_ID.match(candidate):
        return candidate
    raise ValidationError(f"Not a valid video URL: {value}")


def parse_playlist_id(value: str) -> Optional[str]:
    """
    Extract a playlist id, or None when the value isn't a playlist link.

    A watch URL that also carries list= counts as a playlist request only
    when it points at /playlist; otherwise the video wins.
    """
    value = (value or "").strip()
    if _PLAYLIST_ID.match(value):
        return value

    parsed = urlparse(value if '://' in value else f"https://{value}")
    host = (parsed.hostname or "").lower()
    if host not in _YOUTUBE_HOSTS or parsed.path != '/playlist':
        return None

    playlist_id = parse_qs(parsed.query).get('list', [None])[0]
    if playlist_id and re.match(r'^[A-Za-z0-9_-]{10,}$', playlist_id):
        return playlist_id
    return None


def video_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"


def playlist_url(playlist_id: str) -> str:
    return f"https://www.youtube.com/playlist?list={playlist_id}"


# =============================================================================
# PROVIDER
# =============================================================================

@dataclass(frozen=True, slots=True)
class PlaylistEntry:
    video_id: str
    url: str
    info: TrackInfo


@dataclass(frozen=True, slots=True)
class PlaylistInfo:
    title: str
    entries: List[PlaylistEntry] = field(default_factory=list)


def _info_from_extract(data: Dict[str, Any], fallback_url: str) -> TrackInfo:
    return TrackInfo(
        title=data.get('title') or "Unknown",
        owner_name=data.get('channel') or data.get('uploader') or "",
        duration_seconds=int(data.get('duration') or 0),
        url=data.get('webpage_url') or fallback_url,
    )


class YouTubeProvider:
    """
    Remote metadata + audio provider.

    Args:
        cookie: Optional raw Cookie header value for gated content
        chunk_size: Bytes per chunk yielded by stream_audio()
    """

    def __init__(self, cookie: Optional[str] = None, chunk_size: int = DOWNLOAD_CHUNK_SIZE):
        self.cookie = cookie
        self.chunk_size = chunk_size
        self._session: Optional[aiohttp.ClientSession] = None

    # -------------------------------------------------------------------------
    # yt-dlp helpers
    # -------------------------------------------------------------------------

    def _ydl_options(self, **extra) -> Dict[str, Any]:
        options: Dict[str, Any] = {
            'quiet': True,
            'no_warnings': True,
            'skip_download': True,
            'noplaylist': True,
            'logger': logger,
        }
        if self.cookie:
            options['http_headers'] = {'Cookie': self.cookie}
        options.update(extra)
        return options

    def _extract_sync(self, url: str, options: Dict[str, Any]) -> Dict[str, Any]:
        with yt_dlp.YoutubeDL(options) as ydl:
            data = ydl.extract_info(url, download=False)
        if not data:
            raise ProviderError(f"No data returned for {url}")
        return ydl.sanitize_info(data)

    async def _extract(self, url: str, **extra) -> Dict[str, Any]:
        try:
            return await asyncio.to_thread(self._extract_sync, url, self._ydl_options(**extra))
        except yt_dlp.utils.YoutubeDLError as e:
            raise ProviderError(str(e)) from e

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def resolve(self, video_id: str) -> TrackInfo:
        """Fetch descriptive metadata for one video."""
        logger.debug(f"Resolving video info: {video_id}")
        data = await self._extract(video_url(video_id))
        return _info_from_extract(data, video_url(video_id))

    async def resolve_playlist(self, playlist_id: str) -> PlaylistInfo:
        """Fetch a playlist's title and entries (flat, no per-video requests)."""
        logger.debug(f"Resolving playlist: {playlist_id}")
        data = await self._extract(
            playlist_url(playlist_id),
            extract_flat='in_playlist',
            noplaylist=False,
        )

        entries = []
        for entry in data.get('entries') or []:
            video_id = entry.get('id') if entry else None
            if not video_id or not _VIDEO_ID.match(video_id):
                continue
            url = video_url(video_id)
            entries.append(PlaylistEntry(video_id=video_id, url=url, info=_info_from_extract(entry, url)))

        return PlaylistInfo(title=data.get('title') or playlist_id, entries=entries)

    async def stream_audio(self, video_id: str) -> AsyncIterator[bytes]:
        """
        Yield the best audio-only stream as byte chunks.

        Raises:
            ProviderError: Extraction failed, HTTP error, or connection dropped
        """
        data = await self._extract(video_url(video_id), format='bestaudio/best')
        stream_url = data.get('url')
        if not stream_url:
            raise ProviderError(f"No audio stream for {video_id}")

        headers = dict(data.get('http_headers') or {})
        if self.cookie:
            headers['Cookie'] = self.cookie

        session = await self._get_session()
        try:
            async with session.get(stream_url, headers=headers) as response:
                if response.status != 200:
                    raise ProviderError(f"Audio stream for {video_id} returned HTTP {response.status}")
                async for chunk in response.content.iter_chunked(self.chunk_size):
                    yield chunk
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ProviderError(f"Audio stream for {video_id} failed: {e}") from e

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=None, sock_connect=15, sock_read=DOWNLOAD_READ_TIMEOUT)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
