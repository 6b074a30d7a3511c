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
Audio File Cache

One file per resource id directly under the cache directory, plus a
``staging/`` subdirectory for downloads in progress.

PUBLISH PROTOCOL:

    1. Downloads are written to a staging file (never to the final path)
    2. publish() moves the staging file into place with os.replace()
    3. If the final file already exists another fetch won the race:
       the staging copy is discarded and the existing path is returned

    A reader therefore never sees a half-written file at the final path.

There is no eviction. The cache grows until someone cleans it by hand.
"""

import logging
import os
import re
import tempfile
from pathlib import Path

from core.errors import FetchFailed, ValidationError

logger = logging.getLogger(__name__)

# Resource ids become file names, so only allow a safe character set
_RESOURCE_ID_PATTERN = re.compile(r'^[A-Za-z0-9_-]{1,64}$')


def validate_resource_id(resource_id: str) -> str:
    """Reject ids that could escape the cache directory."""
    if not isinstance(resource_id, str) or not _RESOURCE_ID_PATTERN.match(resource_id):
        raise ValidationError(f"Invalid resource id: {resource_id!r}")
    return resource_id


class CacheStore:
    """
    Resource id -> local file path, persisted as plain files on disk.

    Args:
        cache_dir: Final cache directory (created if missing)
        staging_dir: Staging directory (defaults to cache_dir/staging)
    """

    def __init__(self, cache_dir, staging_dir=None):
        self.cache_dir = Path(cache_dir).resolve()
        self.staging_dir = Path(staging_dir).resolve() if staging_dir else self.cache_dir / 'staging'
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.staging_dir.mkdir(parents=True, exist_ok=True)

    def final_path(self, resource_id: str) -> Path:
        return self.cache_dir / validate_resource_id(resource_id)

    def has(self, resource_id: str) -> bool:
        return self.final_path(resource_id).is_file()

    def new_staging_path(self, resource_id: str) -> Path:
        """
        Reserve a fresh staging file named after the resource.

        Each call gets its own file so two racing downloads of the same id
        never write into the same staging file.
        """
        validate_resource_id(resource_id)
        fd, path = tempfile.mkstemp(prefix=f"{resource_id}.", dir=self.staging_dir)
        os.close(fd)
        return Path(path)

    def publish(self, resource_id: str, staging_path) -> Path:
        """
        Promote a finished staging file to the final cache path.

        Returns:
            Final path (also when another download already published it)

        Raises:
            FetchFailed: Staging file is missing (download never finished)
        """
        final = self.final_path(resource_id)
        staging = Path(staging_path)

        if not staging.is_file():
            raise FetchFailed(resource_id, "staging file missing")

        if final.exists():
            logger.debug(f"Cache already has {resource_id}, discarding staging copy")
            self.discard(staging)
            return final

        os.replace(staging, final)
        logger.debug(f"Published {resource_id} to cache")
        return final

    def discard(self, staging_path) -> None:
        """Remove a staging file, ignoring it if it's already gone."""
        try:
            Path(staging_path).unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove staging file {staging_path}: {e}")
