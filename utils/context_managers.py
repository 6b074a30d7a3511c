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
Context Managers for Safe State Management

Guarantee flag cleanup even when the body raises.
"""

from contextlib import contextmanager
from typing import Any


@contextmanager
def suppress_callbacks(player: Any):
    """
    Temporarily suppress after-play callbacks during a manual transport stop.

    Usage:
        with suppress_callbacks(player):
            player.voice_client.stop()  # Won't dispatch TRACK_FINISHED

    Used when a new item replaces one that is still playing: the stop would
    otherwise look like a natural track end and advance the queue twice.
    The active play session is invalidated as well, so a callback that was
    already in flight on the audio thread is discarded when it lands.

    Args:
        player: MusicPlayer instance with _suppress_callback attribute
    """
    cancel_session = getattr(player, "cancel_active_session", None)
    if callable(cancel_session):
        cancel_session()

    # Preserve previous state to handle nested calls correctly
    prev = getattr(player, "_suppress_callback", False)
    player._suppress_callback = True
    try:
        yield
    finally:
        player._suppress_callback = prev
