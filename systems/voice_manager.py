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
Voice Management System

Safe probes of the voice client: is it connected, is it playing, and who is
listening. The player turns the answers into PRESENCE_CHANGED decisions.
"""

import logging
from typing import Optional, Tuple

import disnake

logger = logging.getLogger(__name__)


class VoiceManager:
    """
    Read-only view over one guild's voice client.

    Handles:
    - Voice state checking with error handling
    - Alone detection (no human listeners left in the channel)
    """

    def __init__(self, guild_id: int, voice_client=None):
        self.guild_id = guild_id
        self.voice_client = voice_client

    def set_voice_client(self, voice_client) -> None:
        self.voice_client = voice_client

    def is_connected(self) -> bool:
        try:
            return bool(self.voice_client and self.voice_client.is_connected())
        except (disnake.ClientException, RuntimeError) as e:
            logger.debug(f"Guild {self.guild_id}: connection probe failed: {e}")
            return False

    # =========================================================================
    # Voice State Utilities
    # =========================================================================

    @staticmethod
    def get_voice_state_safe(voice_client) -> Optional[Tuple[bool, bool]]:
        """
        Safely get voice state.

        Returns:
            Tuple of (is_playing, is_paused) or None if not connected or error
        """
        if not voice_client or not voice_client.is_connected():
            return None

        try:
            return (voice_client.is_playing(), voice_client.is_paused())
        except (disnake.ClientException, RuntimeError) as e:
            logger.debug(f"Voice state check failed: {e}")
            return None

    def is_busy(self) -> bool:
        """True while the transport is playing or paused on a source."""
        state = self.get_voice_state_safe(self.voice_client)
        return bool(state and (state[0] or state[1]))

    # =========================================================================
    # Alone Detection
    # =========================================================================

    def listener_count(self) -> int:
        """Human (non-bot) members in the bot's voice channel."""
        if not self.is_connected():
            return 0

        channel = self.voice_client.channel
        if not channel:
            return 0
        return sum(1 for m in channel.members if not m.bot)

    def is_alone_in_channel(self, log_result: bool = False) -> bool:
        """
        Check if bot is alone in voice channel (no human users).

        Returns:
            bool: True if bot is alone or not connected, False if users present
        """
        humans = self.listener_count()
        is_alone = humans == 0

        if log_result and self.voice_client and self.voice_client.channel:
            channel = self.voice_client.channel
            logger.info(
                f"Guild {self.guild_id}: Alone check - Channel: {channel.name}, "
                f"Total: {len(channel.members)}, Humans: {humans}, Alone: {is_alone}"
            )

        return is_alone
