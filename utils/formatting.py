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

"""Text formatting helpers shared by embeds and the stats chart."""

from datetime import datetime


def to_hours_and_minutes(total_seconds: int) -> str:
    """
    Render a duration as H:MM:SS.

    Examples:
        >>> to_hours_and_minutes(59)
        '0:00:59'
        >>> to_hours_and_minutes(3725)
        '1:02:05'
    """
    total_seconds = max(0, int(total_seconds or 0))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours}:{minutes:02d}:{seconds:02d}"


def rjust(value, width: int) -> str:
    """Right-justify str(value) to width (never truncates)."""
    return str(value).rjust(width)


def format_date(moment: datetime) -> str:
    """MM/DD/YYYY, as used in stats headers."""
    return moment.strftime('%m/%d/%Y')
