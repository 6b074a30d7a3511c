"""
Tests for service wiring and the log formatter
"""

import logging

import pytest

from bot import SpindleFormatter
from config.settings import Settings
from core.services import Services


@pytest.fixture
def settings(tmp_path):
    return Settings(
        app_id=1,
        guild_id=2,
        token='t',
        cache_dir=tmp_path / 'cache',
        db_dir=tmp_path / 'db',
        cookie='SID=abc',
    )


class TestServices:
    @pytest.mark.asyncio
    async def test_build_start_close(self, settings):
        services = Services.build(settings)

        assert settings.staging_dir.is_dir()
        assert services.provider.cookie == 'SID=abc'
        assert services.fetcher.cache is services.cache

        await services.start()
        assert services.database.is_connected
        assert settings.db_path.exists()

        await services.close()
        assert not services.database.is_connected

    @pytest.mark.asyncio
    async def test_close_tears_down_registered_players(self, settings):
        services = Services.build(settings)
        await services.start()
        torn_down = []

        class Player:
            guild_id = 9

            async def teardown(self, reason):
                torn_down.append(reason)
                services.registry.remove(self.guild_id, self)

        services.registry.add(9, Player())
        await services.close()

        assert torn_down == ['shutdown']
        assert len(services.registry) == 0


def test_formatter_uses_four_letter_levels():
    formatter = SpindleFormatter(fmt='[%(levelname)s] %(name)s: %(message)s')
    record = logging.LogRecord('spindle', logging.ERROR, __file__, 1, 'boom', None, None)

    assert formatter.format(record) == '[FAIL] spindle: boom'
    # Original level name is restored for other handlers
    assert record.levelname == 'ERROR'
