"""
Tests for the SQLite datastore, metadata store and play-history ledger
"""

from datetime import datetime, timedelta, timezone

import pytest

from core.database import Database
from core.errors import PersistenceError
from core.history import to_db_timestamp
from core.metadata import TrackInfo


class TestDatabase:
    @pytest.mark.asyncio
    async def test_creates_tables(self, database):
        rows = await database.all("SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name")
        assert [row['name'] for row in rows] == ['plays', 'video_info']

    @pytest.mark.asyncio
    async def test_connect_creates_parent_directory(self, tmp_path):
        db = Database(tmp_path / 'nested' / 'dir' / 'app.db')
        await db.connect()
        try:
            assert (tmp_path / 'nested' / 'dir' / 'app.db').exists()
        finally:
            await db.close()

    @pytest.mark.asyncio
    async def test_not_connected_raises(self, tmp_path):
        db = Database(tmp_path / 'app.db')
        with pytest.raises(PersistenceError):
            await db.get("SELECT 1")

    @pytest.mark.asyncio
    async def test_bad_sql_raises_persistence_error(self, database):
        with pytest.raises(PersistenceError):
            await database.run("INSERT INTO missing_table VALUES (1)")

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, tmp_path):
        db = Database(tmp_path / 'app.db')
        await db.connect()
        await db.close()
        await db.close()
        assert not db.is_connected


class TestMetadataStore:
    @pytest.mark.asyncio
    async def test_miss_returns_none(self, metadata):
        assert await metadata.get('dQw4w9WgXcQ') is None

    @pytest.mark.asyncio
    async def test_put_then_get(self, metadata):
        info = TrackInfo(title="Song", owner_name="Artist", duration_seconds=61, url="https://youtu.be/dQw4w9WgXcQ")
        await metadata.put('dQw4w9WgXcQ', info)
        assert await metadata.get('dQw4w9WgXcQ') == info

    @pytest.mark.asyncio
    async def test_insert_or_replace(self, metadata):
        await metadata.put('dQw4w9WgXcQ', TrackInfo(title="Old"))
        await metadata.put('dQw4w9WgXcQ', TrackInfo(title="New"))
        assert (await metadata.get('dQw4w9WgXcQ')).title == "New"

    @pytest.mark.asyncio
    async def test_put_many(self, metadata):
        await metadata.put_many([
            ('aaaaaaaaaaa', TrackInfo(title="A")),
            ('bbbbbbbbbbb', TrackInfo(title="B")),
        ])
        assert (await metadata.get('aaaaaaaaaaa')).title == "A"
        assert (await metadata.get('bbbbbbbbbbb')).title == "B"

    @pytest.mark.asyncio
    async def test_corrupt_record_is_treated_as_miss(self, database, metadata):
        await database.run("INSERT INTO video_info (video_id, info) VALUES (?, ?)", ('dQw4w9WgXcQ', '{not json'))
        assert await metadata.get('dQw4w9WgXcQ') is None


class TestPlayHistory:
    @pytest.mark.asyncio
    async def test_replays_count_separately(self, history):
        now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        await history.record_play('dQw4w9WgXcQ', 'alice', now)
        await history.record_play('dQw4w9WgXcQ', 'alice', now + timedelta(microseconds=1))
        assert await history.count() == 2

    @pytest.mark.asyncio
    async def test_exact_duplicate_is_ignored(self, history):
        now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        await history.record_play('dQw4w9WgXcQ', 'alice', now)
        await history.record_play('dQw4w9WgXcQ', 'alice', now)
        assert await history.count() == 1

    @pytest.mark.asyncio
    async def test_top_players_ranking_and_limit(self, history):
        base = datetime(2026, 3, 1, tzinfo=timezone.utc)
        plays = {'alice': 3, 'bob': 5, 'carol': 1, 'dave': 3}
        for requester, count in plays.items():
            for i in range(count):
                await history.record_play('dQw4w9WgXcQ', requester, base + timedelta(minutes=i))

        top = await history.top_players(limit=3)

        assert [(s.requester, s.play_count) for s in top] == [('bob', 5), ('alice', 3), ('dave', 3)]

    @pytest.mark.asyncio
    async def test_top_players_date_bounds(self, history):
        await history.record_play('dQw4w9WgXcQ', 'old', datetime(2025, 1, 1, tzinfo=timezone.utc))
        await history.record_play('dQw4w9WgXcQ', 'new', datetime(2026, 3, 2, tzinfo=timezone.utc))

        top = await history.top_players(
            start=datetime(2026, 3, 1, tzinfo=timezone.utc),
            end=datetime(2026, 3, 3, tzinfo=timezone.utc),
        )

        assert [s.requester for s in top] == ['new']

    @pytest.mark.asyncio
    async def test_empty_history(self, history):
        assert await history.top_players() == []


def test_timestamp_format_is_utc_with_microseconds():
    moment = datetime(2026, 3, 1, 14, 30, 5, 123456, tzinfo=timezone(timedelta(hours=2)))
    assert to_db_timestamp(moment) == '2026-03-01 12:30:05.123456'
