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
Playback Queue

Ordered list of requested tracks. Positions are plain list indexes (0-based
internally, 1-based in every public method that takes a position), so the
queue can never contain gaps.

Every mutation finishes by calling the change listener exactly once with a
snapshot of the whole queue. The player uses that to pre-fetch the new head.
"""

import logging
import random
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Union

from core.errors import QueueIndexError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class QueueItem:
    """One play request. Immutable once created."""

    resource_id: str
    source_url: str
    requested_by: str
    requested_by_nickname: Optional[str] = None

    @property
    def requester_display(self) -> str:
        """Requester as shown in chat: 'nickname (username)' or just 'username'."""
        if self.requested_by_nickname:
            return f"{self.requested_by_nickname} ({self.requested_by})"
        return self.requested_by


ChangeListener = Callable[[List[QueueItem]], None]


class Queue:
    """
    Mutable ordered sequence of QueueItem.

    Args:
        on_change: Called after every mutation with the resulting queue.
                   Exceptions raised by the listener are logged, never propagated,
                   so a failing pre-fetch can't corrupt a queue operation.
    """

    def __init__(self, on_change: Optional[ChangeListener] = None):
        self._items: List[QueueItem] = []
        self.on_change = on_change

    # =========================================================================
    # Read access
    # =========================================================================

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(list(self._items))

    def size(self) -> int:
        return len(self._items)

    def get(self, index: int) -> QueueItem:
        """Item at 0-based index."""
        return self._items[index]

    def peek(self) -> Optional[QueueItem]:
        """Head of the queue without removing it."""
        return self._items[0] if self._items else None

    def get_all(self) -> List[QueueItem]:
        return list(self._items)

    def slice(self, start: Optional[int] = None, end: Optional[int] = None) -> List[QueueItem]:
        return self._items[start:end]

    # =========================================================================
    # Mutations
    # =========================================================================

    def enqueue(self, items: Union[QueueItem, Iterable[QueueItem]]) -> int:
        """
        Append one item or a batch (e.g. an expanded playlist).

        A batch fires a single change notification.

        Returns:
            New queue size
        """
        if isinstance(items, QueueItem):
            self._items.append(items)
        else:
            self._items.extend(items)
        self._notify()
        return len(self._items)

    def pop(self) -> Optional[QueueItem]:
        """Remove and return the head, or None when empty (still notifies)."""
        item = self._items.pop(0) if self._items else None
        self._notify()
        return item

    def remove(self, position: int) -> QueueItem:
        """Remove the item at 1-based position."""
        self._check_position('remove', position=position)
        item = self._items.pop(position - 1)
        self._notify()
        return item

    def move(self, from_position: int, to_position: int = 1) -> QueueItem:
        """
        Move an item between 1-based positions.

        Raises:
            QueueIndexError: Either position is outside [1, size]. Queue is untouched.
        """
        size = len(self._items)
        if not (1 <= from_position <= size and 1 <= to_position <= size):
            raise QueueIndexError('move', size, **{'from': from_position, 'to': to_position})

        item = self._items.pop(from_position - 1)
        self._items.insert(to_position - 1, item)
        self._notify()
        return item

    def clear(self, start: Optional[int] = None, end: Optional[int] = None) -> int:
        """
        Clear the queue, or part of it (1-based, inclusive).

        - clear() empties everything
        - clear(start) drops start..end-of-queue
        - clear(start, end) drops the inclusive range [start, end]

        Returns:
            Number of removed items
        """
        size = len(self._items)
        if start is None:
            if end is not None:
                raise QueueIndexError('clear', size, to=end)
            removed = size
            self._items = []
        else:
            self._check_position('clear', **{'from': start})
            if end is None:
                end = size
            elif end < start or end > size:
                raise QueueIndexError('clear', size, **{'from': start, 'to': end})
            removed = end - start + 1
            del self._items[start - 1:end]

        self._notify()
        return removed

    def shuffle(self, rng: Optional[random.Random] = None) -> None:
        """Fisher-Yates shuffle in place (random.shuffle), one notification."""
        (rng or random).shuffle(self._items)
        self._notify()

    # =========================================================================
    # Internals
    # =========================================================================

    def _check_position(self, action: str, **positions: int) -> None:
        size = len(self._items)
        for value in positions.values():
            if value < 1 or value > size:
                raise QueueIndexError(action, size, **positions)

    def _notify(self) -> None:
        if not self.on_change:
            return
        try:
            self.on_change(list(self._items))
        except Exception:
            logger.exception("Queue change listener failed")
