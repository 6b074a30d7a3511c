"""
Tests for stats ranges, ranking and the bar chart
"""

from datetime import date, datetime, time, timedelta, timezone

import pytest

from config.messages import MESSAGES
from core.errors import ValidationError
from core.history import PlayerStat
from core.stats import StatsReporter, months_back, range_bounds, rank_marker, render_chart


NOW = datetime(2026, 3, 15, 18, 45, tzinfo=timezone.utc)


class TestRangeBounds:
    def test_week(self):
        start, end = range_bounds('week', NOW)
        assert start == datetime(2026, 3, 8, 0, 0, tzinfo=timezone.utc)
        assert end == datetime.combine(NOW.date(), time.max, tzinfo=timezone.utc)

    def test_24hr_starts_yesterday(self):
        start, _ = range_bounds('24hr', NOW)
        assert start.date() == (NOW - timedelta(days=1)).date()
        assert start.time() == time.min

    def test_month_and_year_use_calendar_steps(self):
        assert range_bounds('month', NOW)[0] == datetime(2026, 2, 15, tzinfo=timezone.utc)
        assert range_bounds('year', NOW)[0] == datetime(2025, 3, 15, tzinfo=timezone.utc)

    @pytest.mark.parametrize('day,months,expected', [
        (date(2026, 3, 31), 1, date(2026, 2, 28)),
        (date(2024, 2, 29), 12, date(2023, 2, 28)),
        (date(2026, 1, 10), 1, date(2025, 12, 10)),
    ])
    def test_months_back_clamps_to_month_end(self, day, months, expected):
        assert months_back(day, months) == expected

    def test_all_is_unbounded(self):
        assert range_bounds('all', NOW) == (None, None)

    def test_unknown_range(self):
        with pytest.raises(ValidationError):
            range_bounds('decade', NOW)


def test_rank_markers():
    assert [rank_marker(i) for i in range(5)] == [
        ':first_place:', ':second_place:', ':third_place:', '4)', '5)',
    ]


class TestRenderChart:
    def test_scaled_to_width(self):
        chart = render_chart([PlayerStat('alice', 12), PlayerStat('bob', 3)], width=25)
        lines = chart.splitlines()

        assert lines[0] == '```' and lines[-1] == '```'
        assert lines[1] == 'alice ▏12 ' + '█' * 25
        assert lines[2] == '  bob ▏ 3 ' + '█' * 6

    def test_all_zero_counts_do_not_divide_by_zero(self):
        chart = render_chart([PlayerStat('alice', 0), PlayerStat('bob', 0)])
        assert 'alice ▏0 ▏' in chart
        assert '  bob ▏0 ▏' in chart

    def test_tiny_share_gets_thin_bar(self):
        chart = render_chart([PlayerStat('alice', 100), PlayerStat('bob', 1)], width=10)
        assert '  bob ▏  1 ▏' in chart

    def test_empty(self):
        assert render_chart([]) == ""


class TestStatsReporter:
    @pytest.mark.asyncio
    async def test_empty_history_returns_empty_list(self, history):
        reporter = StatsReporter(history)
        assert await reporter.top_players() == []

    @pytest.mark.asyncio
    async def test_empty_history_renders_message(self, history):
        text = await StatsReporter(history).render_range('all')
        assert text == MESSAGES['stats_header_all'] + "\n" + MESSAGES['stats_empty']

    @pytest.mark.asyncio
    async def test_render_range(self, history):
        for i in range(3):
            await history.record_play('dQw4w9WgXcQ', 'alice', NOW - timedelta(hours=i))
        await history.record_play('dQw4w9WgXcQ', 'bob', NOW - timedelta(hours=1))
        # Outside the week window
        await history.record_play('dQw4w9WgXcQ', 'carol', NOW - timedelta(days=30))

        text = await StatsReporter(history, bar_width=10).render_range('week', NOW)
        lines = text.splitlines()

        assert lines[0] == "Here are the top listeners from 03/08/2026 to 03/15/2026:"
        assert lines[1] == ":first_place: alice: 3"
        assert lines[2] == ":second_place: bob: 1"
        assert 'carol' not in text
        assert "alice ▏3 " + "█" * 10 in text
        assert "  bob ▏1 " + "█" * 3 in text

    @pytest.mark.asyncio
    async def test_limit(self, history):
        for index, name in enumerate(['a', 'b', 'c', 'd', 'e', 'f']):
            for i in range(index + 1):
                await history.record_play('dQw4w9WgXcQ', name, NOW - timedelta(minutes=i))

        top = await StatsReporter(history).top_players()
        assert [s.requester for s in top] == ['f', 'e', 'd', 'c', 'b']
