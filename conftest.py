"""
Pytest configuration for Spindle tests.

Provides:
- database / cache / metadata / history fixtures backed by tmp_path
- FakeProvider: scripted stand-in for YouTubeProvider (no network)
- make_item: QueueItem factory
"""

import asyncio

import pytest
import pytest_asyncio

from core.cache import CacheStore
from core.database import Database
from core.errors import ProviderError
from core.fetch import FetchPipeline
from core.history import PlayHistory
from core.metadata import MetadataStore, TrackInfo
from core.queue import QueueItem


class FakeProvider:
    """
    Provider double.

    payloads: id -> bytes served by stream_audio (two chunks)
    infos: id -> TrackInfo served by resolve
    failures: id -> number of stream_audio calls that fail before the first chunk
    fail_midway: ids whose stream breaks after the first chunk
    """

    def __init__(self, payloads=None, infos=None, failures=None, fail_midway=(), delay=0.0):
        self.payloads = dict(payloads or {})
        self.infos = dict(infos or {})
        self.failures = dict(failures or {})
        self.fail_midway = set(fail_midway)
        self.playlists = {}
        self.delay = delay
        self.stream_calls = []
        self.resolve_calls = []

    async def resolve(self, video_id):
        self.resolve_calls.append(video_id)
        await asyncio.sleep(0)
        if video_id not in self.infos:
            raise ProviderError(f"Video unavailable: {video_id}")
        return self.infos[video_id]

    async def resolve_playlist(self, playlist_id):
        await asyncio.sleep(0)
        if playlist_id not in self.playlists:
            raise ProviderError(f"Playlist unavailable: {playlist_id}")
        return self.playlists[playlist_id]

    async def stream_audio(self, video_id):
        self.stream_calls.append(video_id)
        if self.failures.get(video_id, 0) > 0:
            self.failures[video_id] -= 1
            raise ProviderError("connection reset")
        if video_id not in self.payloads:
            raise ProviderError(f"HTTP 403 for {video_id}")

        data = self.payloads[video_id]
        half = len(data) // 2
        for index, chunk in enumerate((data[:half], data[half:])):
            await asyncio.sleep(self.delay)
            if index == 1 and video_id in self.fail_midway:
                raise ProviderError("stream interrupted")
            if chunk:
                yield chunk

    async def close(self):
        pass


@pytest_asyncio.fixture
async def database(tmp_path):
    db = Database(tmp_path / 'db' / 'app.db')
    await db.connect()
    yield db
    await db.close()


@pytest.fixture
def cache(tmp_path):
    return CacheStore(tmp_path / 'cache')


@pytest.fixture
def metadata(database):
    return MetadataStore(database)


@pytest.fixture
def history(database):
    return PlayHistory(database)


@pytest.fixture
def provider():
    return FakeProvider(
        payloads={'dQw4w9WgXcQ': b'RIFF' * 256, 'kJQP7kiw5Fk': b'OggS' * 128},
        infos={
            'dQw4w9WgXcQ': TrackInfo(
                title="Never Gonna Give You Up",
                owner_name="Rick Astley",
                duration_seconds=213,
                url="https://www.youtube.com/watch?v=dQw4w9WgXcQ",
            ),
        },
    )


@pytest.fixture
def fetcher(cache, metadata, provider):
    return FetchPipeline(cache, metadata, provider)


@pytest.fixture
def make_item():
    def _make(resource_id, requester='alice', nickname=None):
        return QueueItem(
            resource_id=resource_id,
            source_url=f"https://www.youtube.com/watch?v={resource_id}",
            requested_by=requester,
            requested_by_nickname=nickname,
        )
    return _make
