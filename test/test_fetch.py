"""
Tests for the fetch pipeline (file cache and metadata cache-aside)
"""

import asyncio
import threading

import pytest

from core.errors import FetchFailed, PersistenceError, ValidationError
from core.fetch import FetchPipeline
from core.metadata import TrackInfo
from core.provider import PlaylistEntry, PlaylistInfo

VIDEO = 'dQw4w9WgXcQ'
OTHER = 'kJQP7kiw5Fk'


class TestGetFile:
    @pytest.mark.asyncio
    async def test_miss_downloads_and_publishes(self, fetcher, cache, provider):
        path = await fetcher.get_file(VIDEO)

        assert path == cache.final_path(VIDEO)
        assert path.read_bytes() == provider.payloads[VIDEO]
        assert provider.stream_calls == [VIDEO]
        assert list(cache.staging_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_chunks_are_written_off_the_event_loop(self, fetcher, provider, monkeypatch):
        writer_threads = []
        real_to_thread = asyncio.to_thread

        async def recording_to_thread(func, *args):
            def run():
                writer_threads.append(threading.get_ident())
                return func(*args)
            return await real_to_thread(run)

        monkeypatch.setattr('core.fetch.asyncio.to_thread', recording_to_thread)
        path = await fetcher.get_file(VIDEO)

        assert len(writer_threads) == 2
        assert threading.get_ident() not in writer_threads
        assert path.read_bytes() == provider.payloads[VIDEO]

    @pytest.mark.asyncio
    async def test_hit_skips_network(self, fetcher, provider):
        await fetcher.get_file(VIDEO)
        await fetcher.get_file(VIDEO)
        assert provider.stream_calls == [VIDEO]

    @pytest.mark.asyncio
    async def test_concurrent_fetches_share_one_cache_entry(self, fetcher, cache, provider):
        provider.delay = 0.01

        first, second = await asyncio.gather(fetcher.get_file(VIDEO), fetcher.get_file(VIDEO))

        assert first == second == cache.final_path(VIDEO)
        assert first.read_bytes() == provider.payloads[VIDEO]
        assert [p.name for p in cache.cache_dir.iterdir() if p.is_file()] == [VIDEO]
        assert list(cache.staging_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_different_ids_fetch_concurrently(self, fetcher, cache):
        a, b = await asyncio.gather(fetcher.get_file(VIDEO), fetcher.get_file(OTHER))
        assert a != b
        assert cache.has(VIDEO) and cache.has(OTHER)

    @pytest.mark.asyncio
    async def test_stream_error_creates_no_cache_entry(self, fetcher, cache, provider):
        provider.failures[VIDEO] = 1

        with pytest.raises(FetchFailed) as excinfo:
            await fetcher.get_file(VIDEO)

        assert excinfo.value.resource_id == VIDEO
        assert not cache.has(VIDEO)
        assert list(cache.staging_dir.iterdir()) == []

        # Retrying after the failure works
        assert (await fetcher.get_file(VIDEO)).exists()

    @pytest.mark.asyncio
    async def test_interrupted_stream_discards_partial_file(self, fetcher, cache, provider):
        provider.fail_midway.add(VIDEO)

        with pytest.raises(FetchFailed):
            await fetcher.get_file(VIDEO)

        assert not cache.has(VIDEO)
        assert list(cache.staging_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_empty_stream_fails(self, fetcher, cache, provider):
        provider.payloads[VIDEO] = b''
        with pytest.raises(FetchFailed):
            await fetcher.get_file(VIDEO)
        assert not cache.has(VIDEO)

    @pytest.mark.asyncio
    async def test_invalid_id_is_rejected_before_network(self, fetcher, provider):
        with pytest.raises(ValidationError):
            await fetcher.get_file('../../etc/passwd')
        assert provider.stream_calls == []


class TestPrefetch:
    @pytest.mark.asyncio
    async def test_prefetch_warms_cache(self, fetcher, cache):
        task = fetcher.prefetch(VIDEO)
        assert task is not None
        await task
        assert cache.has(VIDEO)
        assert fetcher.prefetch(VIDEO) is None

    @pytest.mark.asyncio
    async def test_duplicate_prefetch_reuses_task(self, fetcher, provider):
        provider.delay = 0.01
        first = fetcher.prefetch(VIDEO)
        second = fetcher.prefetch(VIDEO)
        assert first is second
        await first
        assert provider.stream_calls == [VIDEO]

    @pytest.mark.asyncio
    async def test_prefetch_failure_is_swallowed(self, fetcher, cache, provider):
        provider.failures[VIDEO] = 1
        await fetcher.prefetch(VIDEO)
        assert not cache.has(VIDEO)

    @pytest.mark.asyncio
    async def test_close_cancels_pending_prefetches(self, fetcher, provider):
        provider.delay = 10
        task = fetcher.prefetch(VIDEO)
        await asyncio.sleep(0)
        await fetcher.close()
        assert task.done()


class TestGetInfo:
    @pytest.mark.asyncio
    async def test_second_call_served_from_store(self, fetcher, provider, metadata):
        first = await fetcher.get_info(VIDEO)
        second = await fetcher.get_info(VIDEO)

        assert first == second == provider.infos[VIDEO]
        assert provider.resolve_calls == [VIDEO]
        assert await metadata.get(VIDEO) == first

    @pytest.mark.asyncio
    async def test_unresolvable_raises_fetch_failed(self, fetcher):
        with pytest.raises(FetchFailed):
            await fetcher.get_info(OTHER)

    @pytest.mark.asyncio
    async def test_failed_write_back_still_returns_info(self, cache, metadata, provider):
        async def broken_put(resource_id, info):
            raise PersistenceError("disk full")

        metadata.put = broken_put
        fetcher = FetchPipeline(cache, metadata, provider)

        info = await fetcher.get_info(VIDEO)
        assert info.title == "Never Gonna Give You Up"

    @pytest.mark.asyncio
    async def test_get_infos_preserves_order(self, fetcher, provider):
        provider.infos[OTHER] = TrackInfo(title="Despacito")
        infos = await fetcher.get_infos([OTHER, VIDEO, OTHER])
        assert [i.title for i in infos] == ["Despacito", "Never Gonna Give You Up", "Despacito"]

    @pytest.mark.asyncio
    async def test_get_infos_placeholders_when_not_strict(self, fetcher):
        with pytest.raises(FetchFailed):
            await fetcher.get_infos([VIDEO, OTHER])

        infos = await fetcher.get_infos([VIDEO, OTHER], strict=False)
        assert infos[0].title == "Never Gonna Give You Up"
        assert infos[1] == TrackInfo.placeholder(OTHER)


class TestGetPlaylist:
    @pytest.mark.asyncio
    async def test_playlist_metadata_stored_in_batch(self, fetcher, provider, metadata):
        provider.playlists['PLabcdefghijk'] = PlaylistInfo(
            title="Mix",
            entries=[
                PlaylistEntry(VIDEO, f"https://www.youtube.com/watch?v={VIDEO}", TrackInfo(title="One")),
                PlaylistEntry(OTHER, f"https://www.youtube.com/watch?v={OTHER}", TrackInfo(title="Two")),
            ],
        )

        playlist = await fetcher.get_playlist('PLabcdefghijk')

        assert playlist.title == "Mix"
        assert (await metadata.get(OTHER)).title == "Two"
        # Served from the store now, no resolve needed
        assert (await fetcher.get_info(OTHER)).title == "Two"
        assert provider.resolve_calls == []

    @pytest.mark.asyncio
    async def test_missing_playlist_raises(self, fetcher):
        with pytest.raises(FetchFailed):
            await fetcher.get_playlist('PLdoesnotexist')
