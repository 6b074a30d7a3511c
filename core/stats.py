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
Stats Reporter

Read-only "who requested the most" reports over the play history, rendered
as a ranked list followed by a horizontal bar chart:

    :first_place: alice: 12
    :second_place: bob: 3
    ```
    alice ▏12 █████████████████████████
      bob ▏ 3 ██████
    ```
"""

import logging
from calendar import monthrange
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional, Tuple

from config.messages import MESSAGES
from config.timing import STATS_BAR_WIDTH, STATS_LIMIT
from core.errors import ValidationError
from core.history import PlayerStat, PlayHistory
from utils.formatting import format_date, rjust

logger = logging.getLogger(__name__)

# Range id -> (days, months) back from today (None = unbounded)
STATS_RANGES: Dict[str, Optional[Tuple[int, int]]] = {
    '24hr': (1, 0),
    'week': (7, 0),
    'month': (0, 1),
    'year': (0, 12),
    'all': None,
}
DEFAULT_STATS_RANGE = 'week'

_RANK_MARKERS = (':first_place:', ':second_place:', ':third_place:')
_FULL_BLOCK = '█'
_EMPTY_BAR = '▏'


def months_back(day: date, months: int) -> date:
    """Same day `months` calendar months earlier, clamped to that month's last day."""
    year, month = divmod(day.year * 12 + day.month - 1 - months, 12)
    month += 1
    return day.replace(year=year, month=month, day=min(day.day, monthrange(year, month)[1]))


def range_bounds(range_id: str, now: Optional[datetime] = None) -> Tuple[Optional[datetime], Optional[datetime]]:
    """
    Resolve a range id to [start_of_day(now - period), end_of_day(now)].

    'month' and 'year' step back in calendar months (Mar 31 -> Feb 28).
    'all' resolves to (None, None).

    Raises:
        ValidationError: Unknown range id
    """
    if range_id not in STATS_RANGES:
        raise ValidationError(f"Unknown stats range: {range_id}")

    period = STATS_RANGES[range_id]
    if period is None:
        return None, None

    days, months = period
    now = now or datetime.now().astimezone()
    first_day = months_back((now - timedelta(days=days)).date(), months)
    start = datetime.combine(first_day, time.min, tzinfo=now.tzinfo)
    end = datetime.combine(now.date(), time.max, tzinfo=now.tzinfo)
    return start, end


def rank_marker(index: int) -> str:
    """Medal for the top three, then '4)', '5)', ..."""
    if index < len(_RANK_MARKERS):
        return _RANK_MARKERS[index]
    return f"{index + 1})"


def render_chart(stats: List[PlayerStat], width: int = STATS_BAR_WIDTH) -> str:
    """
    Bar chart scaled so the highest count spans `width` full blocks.

    Rows with no full block (including an all-zero set) render a thin
    one-eighth block instead, so the chart never divides by zero.
    """
    if not stats:
        return ""

    max_count = max(stat.play_count for stat in stats)
    label_width = max(len(stat.requester) for stat in stats)
    count_width = max(len(str(stat.play_count)) for stat in stats)

    lines = []
    for stat in stats:
        blocks = (stat.play_count * width) // max_count if max_count > 0 else 0
        bar = _FULL_BLOCK * blocks or _EMPTY_BAR
        lines.append(f"{rjust(stat.requester, label_width)} ▏{rjust(stat.play_count, count_width)} {bar}")

    return "```\n" + "\n".join(lines) + "\n```"


def render_header(start: Optional[datetime], end: Optional[datetime]) -> str:
    if start is None and end is None:
        return MESSAGES['stats_header_all']
    if end is None:
        end = datetime.now().astimezone()
    if start is None:
        return MESSAGES['stats_header_range'].format(start="the beginning", end=format_date(end))
    return MESSAGES['stats_header_range'].format(start=format_date(start), end=format_date(end))


class StatsReporter:
    """Ranks requesters by play count over the history ledger."""

    def __init__(self, history: PlayHistory, limit: int = STATS_LIMIT, bar_width: int = STATS_BAR_WIDTH):
        self.history = history
        self.limit = limit
        self.bar_width = bar_width

    async def top_players(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[PlayerStat]:
        return await self.history.top_players(start, end, limit or self.limit)

    async def render_text(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> str:
        stats = await self.top_players(start, end)
        lines = [render_header(start, end)]

        if not stats:
            lines.append(MESSAGES['stats_empty'])
            return "\n".join(lines)

        for index, stat in enumerate(stats):
            lines.append(f"{rank_marker(index)} {stat.requester}: {stat.play_count}")
        lines.append(render_chart(stats, self.bar_width))
        return "\n".join(lines)

    async def render_range(self, range_id: str, now: Optional[datetime] = None) -> str:
        """Text report for a named range ('24hr', 'week', 'month', 'year', 'all')."""
        start, end = range_bounds(range_id, now)
        logger.debug(f"Rendering stats for range {range_id}: {start} -> {end}")
        return await self.render_text(start, end)
