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
Discord API Helper Functions

Safe wrappers around the Discord calls the player and command layer make.
All functions gracefully handle None values and Discord API errors.

- format_guild_log() / format_user_log(): Human-readable identities for logs
- safe_send(): Send content/embeds without raising or pinging anyone
- safe_disconnect(): Disconnect from voice, never raising
- can_connect_to_channel(): Permission check before joining voice
- make_audio_source(): FFmpeg audio source for a cached file
"""

import logging
from pathlib import Path
from typing import Optional

import disnake

from config.timing import FFMPEG_BEFORE_OPTIONS

logger = logging.getLogger(__name__)


# =============================================================================
# LOGGING FORMATTERS
# =============================================================================

def format_guild_log(guild_or_id, bot=None) -> str:
    """
    Format guild for logging with human-readable name.

    Shows guild name in normal mode, adds ID in DEBUG mode.

    Args:
        guild_or_id: Guild object, guild ID (int), or None (for DMs)
        bot: Bot instance (optional if guild object provided)

    Returns:
        - Normal mode: "ServerName" or "DM" or "Guild #123"
        - DEBUG mode: "ServerName (#123)" or "DM" or "Guild #123"
    """
    if guild_or_id is None:
        return "DM"

    if isinstance(guild_or_id, int):
        guild = bot.get_guild(guild_or_id) if bot else None
        guild_id = guild_or_id
    else:
        guild = guild_or_id
        guild_id = guild.id if guild else None

    if guild and hasattr(guild, 'name'):
        if logger.isEnabledFor(logging.DEBUG):
            return f"{guild.name} (#{guild_id})"
        return guild.name

    # Fallback for unknown guilds (bot kicked, etc.)
    return f"Guild #{guild_id}" if guild_id else "Unknown"


def format_user_log(user_or_id, bot=None) -> str:
    """
    Format user for logging with human-readable name.

    Returns:
        - Normal mode: "username" or "User #123"
        - DEBUG mode: "username (#123)" or "User #123"
    """
    if user_or_id is None:
        return "Unknown"

    if isinstance(user_or_id, int):
        user = bot.get_user(user_or_id) if bot else None
        user_id = user_or_id
    else:
        user = user_or_id
        user_id = user.id if user else None

    if user and hasattr(user, 'name'):
        if logger.isEnabledFor(logging.DEBUG):
            return f"{user.name} (#{user_id})"
        return user.name

    return f"User #{user_id}" if user_id else "Unknown"


# =============================================================================
# SAFE DISCORD CALLS
# =============================================================================

async def safe_disconnect(voice_client: Optional[disnake.VoiceClient], force: bool = True) -> bool:
    """
    Safely disconnect from voice channel with error handling.

    Returns:
        bool: True if disconnected successfully or None (idempotent no-op), False on error

    Note:
        Catches aiohttp transport errors that can occur during shutdown.
    """
    if not voice_client:
        return True  # No-op success for idempotency
    try:
        await voice_client.disconnect(force=force)
        return True
    except (disnake.ClientException, disnake.HTTPException) as e:
        logger.debug("Disconnect failed (non-critical): %s", e)
        return False
    except Exception as e:
        # aiohttp ClientConnectionResetError and friends during shutdown
        logger.debug("Disconnect failed with transport error (non-critical): %s", e)
        return False


async def safe_send(
    channel: Optional[disnake.abc.Messageable],
    content: Optional[str] = None,
    *,
    embed: Optional[disnake.Embed] = None,
    components=None,
) -> Optional[disnake.Message]:
    """
    Safely send message to channel with error handling and mention suppression.

    Args:
        channel: Text channel to send to (None is safe)
        content: Message content
        embed: Optional rich embed
        components: Optional buttons (e.g. queue pagination)

    Returns:
        Message object if sent successfully, None otherwise

    Note:
        - Disables all mentions to prevent abuse through video titles
        - Catches NotFound (channel deleted), Forbidden (lost permissions)
          and HTTPException (rate limits, other API errors)
    """
    if not channel:
        return None

    kwargs = {'allowed_mentions': disnake.AllowedMentions.none()}
    if embed is not None:
        kwargs['embed'] = embed
    if components is not None:
        kwargs['components'] = components

    try:
        msg = await channel.send(content, **kwargs)
    except (disnake.NotFound, disnake.Forbidden, disnake.HTTPException) as e:
        logger.debug("Could not send message: %s", e)
        return None
    else:
        return msg


def can_connect_to_channel(channel: Optional[disnake.VoiceChannel]) -> bool:
    """
    Check if bot has permission to connect to a voice channel.

    Requires connect+speak permissions. Falls back to False if guild.me is None.
    """
    if not channel:
        return False
    if not channel.guild.me:
        return False  # Rare startup race - guild not fully ready
    perms = channel.permissions_for(channel.guild.me)
    return bool(perms and perms.connect and perms.speak)


# =============================================================================
# AUDIO
# =============================================================================

def make_audio_source(path: str):
    """
    Create audio source for a cached file.

    Cache files carry no extension (the container is whatever the provider
    served, usually webm/opus or m4a), so FFmpeg probes the input and
    transcodes to 48kHz stereo PCM, which Discord encodes to opus. A file
    explicitly named .opus gets native passthrough instead.

    Audio sources are single-use; create a fresh one for every play.
    """
    file_path = Path(path)

    if file_path.suffix.lower() == '.opus':
        logger.debug(f"Creating opus passthrough source for: {file_path.name}")
        return disnake.FFmpegOpusAudio(
            path,
            before_options=FFMPEG_BEFORE_OPTIONS
        )

    logger.debug(f"Creating transcoded source for: {file_path.name}")
    return disnake.FFmpegPCMAudio(
        path,
        before_options=FFMPEG_BEFORE_OPTIONS,
        options='-vn -f s16le -ar 48000 -ac 2'
    )
