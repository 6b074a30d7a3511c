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
Idle-Disconnect Timer

One-shot countdown backed by an asyncio task. Each arm() bumps a generation
number that is passed to the callback; the player compares it with the
current generation, so a countdown that was cancelled or superseded after it
already woke up does nothing.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

ExpiryCallback = Callable[[int], Awaitable[None]]


class IdleDisconnectTimer:
    """Cancellable countdown (at most one armed at a time)."""

    def __init__(self, name: str = "idle-timer"):
        self.name = name
        self.generation = 0
        self.delay: Optional[float] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def is_armed(self) -> bool:
        return self._task is not None and not self._task.done()

    def arm(self, delay: float, callback: ExpiryCallback) -> bool:
        """
        Start the countdown.

        Returns:
            False if a countdown is already running (it is left untouched)
        """
        if self.is_armed:
            return False

        self.generation += 1
        self.delay = delay
        self._task = asyncio.create_task(
            self._countdown(self.generation, delay, callback),
            name=f"{self.name}:{self.generation}",
        )
        logger.debug(f"{self.name}: armed for {delay}s (generation {self.generation})")
        return True

    def cancel(self) -> bool:
        """Stop the countdown. Returns True if one was running."""
        was_armed = self.is_armed
        if self._task is not None and not self._task.done() and self._task is not asyncio.current_task():
            self._task.cancel()
        self._task = None
        if was_armed:
            # Invalidate the generation in case the task already woke up
            self.generation += 1
            logger.debug(f"{self.name}: cancelled")
        return was_armed

    async def _countdown(self, generation: int, delay: float, callback: ExpiryCallback) -> None:
        await asyncio.sleep(delay)
        if generation != self.generation:
            return
        try:
            await callback(generation)
        except Exception:
            logger.exception(f"{self.name}: expiry callback failed")
