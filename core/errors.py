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
Error Taxonomy

Every error the bot raises on purpose derives from SpindleError so command
handlers can tell "tell the user" failures apart from real bugs.

- ValidationError: bad URL/identifier or out-of-range queue position (never retried)
- FetchFailed: provider/network failure while fetching a file or metadata
- PersistenceError: datastore failure (logged and swallowed on the playback path)
- TransportError: voice connection gone or refusing to play (tears the session down)
- ConfigError: missing/invalid startup configuration (fatal)
"""

from typing import Optional


class SpindleError(Exception):
    """Base class for all expected bot errors."""


class ConfigError(SpindleError):
    """Startup configuration is missing or invalid."""


class ValidationError(SpindleError):
    """User supplied something we can't act on."""


class QueueIndexError(ValidationError):
    """Queue position outside [1, size]."""

    def __init__(self, action: str, size: int, **positions: int):
        self.action = action
        self.size = size
        self.positions = positions
        requested = ", ".join(f"{name}: {value}" for name, value in positions.items())
        super().__init__(f"Out of bounds {action} request. {requested}, queue size: {size}")


class ProviderError(SpindleError):
    """Remote audio/metadata provider failed."""


class FetchFailed(SpindleError):
    """A resource could not be turned into a local file or metadata record."""

    def __init__(self, resource_id: str, reason: Optional[str] = None):
        self.resource_id = resource_id
        self.reason = reason
        message = f"Couldn't fetch {resource_id}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class PersistenceError(SpindleError):
    """Datastore read/write failed."""


class TransportError(SpindleError):
    """Voice transport is unusable for this session."""
