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
Session Registry

Guild id -> active MusicPlayer. Handed to every player at construction so a
player can deregister itself when it tears down; nothing imports a global.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


class SessionRegistry(Generic[T]):
    """Keyed store of live sessions (one per guild)."""

    def __init__(self):
        self._sessions: Dict[int, T] = {}
        self._lock = asyncio.Lock()

    def get(self, key: int) -> Optional[T]:
        return self._sessions.get(key)

    def has(self, key: int) -> bool:
        return key in self._sessions

    def add(self, key: int, session: T) -> None:
        if key in self._sessions and self._sessions[key] is not session:
            logger.warning(f"Replacing existing session for key {key}")
        self._sessions[key] = session

    def remove(self, key: int, session: Optional[T] = None) -> bool:
        """
        Remove a session.

        When `session` is given, only remove if it is still the registered
        one, so a stale player tearing down late can't evict its successor.
        """
        current = self._sessions.get(key)
        if current is None:
            return False
        if session is not None and current is not session:
            return False
        del self._sessions[key]
        return True

    def values(self) -> List[T]:
        return list(self._sessions.values())

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, key: int) -> bool:
        return key in self._sessions

    async def get_or_create(self, key: int, factory: Callable[[], Awaitable[T]]) -> T:
        """
        Get or create a session (concurrency-safe).

        Returns:
            Existing session, or the one produced by `factory`
        """
        # Fast path - no lock
        if key in self._sessions:
            return self._sessions[key]

        # Slow path - need lock for creation
        async with self._lock:
            # Double-check
            if key in self._sessions:
                return self._sessions[key]
            session = await factory()
            self._sessions[key] = session
            return session
