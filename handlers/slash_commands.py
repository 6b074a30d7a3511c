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
Slash Commands

/play, /queue, /playing, /move, /remove, /clear, /shuffle, /skip, /pause,
/repeat, /stats, /help, all registered to the configured guild.

Every command defers first (fetching metadata or joining voice can take a
few seconds) and then edits the deferred reply. Expected failures
(SpindleError: bad URL, queue position out of range, fetch failed) are shown
to the user as-is; anything else is logged with traceback and answered with
a generic error.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, List, Optional, Tuple

import disnake
from disnake.ext import commands

from config.embeds import create_help_embed, create_queue_embed, create_stats_buttons
from config.messages import COMMAND_DESCRIPTIONS, MESSAGES
from config.timing import PAUSED_DISCONNECT_DELAY, QUEUE_PAGE_SIZE, VOICE_CONNECT_TIMEOUT
from core.errors import FetchFailed, SpindleError, TransportError, ValidationError
from core.player import MusicPlayer, PlayerEvent, PlayerState
from core.provider import parse_playlist_id, parse_video_id, video_url
from core.queue import QueueItem
from core.stats import DEFAULT_STATS_RANGE
from utils.discord_helpers import can_connect_to_channel, format_guild_log, format_user_log

logger = logging.getLogger(__name__)
user_logger = logging.getLogger('spindle')


# =============================================================================
# HELPERS (shared with handlers/buttons.py)
# =============================================================================

async def reply(inter, content: Optional[str] = None, *, embed=None, components=None) -> None:
    """Edit the deferred response; never raises on Discord errors."""
    kwargs = {'content': content, 'allowed_mentions': disnake.AllowedMentions.none()}
    if embed is not None:
        kwargs['embed'] = embed
    if components is not None:
        kwargs['components'] = components
    try:
        await inter.edit_original_response(**kwargs)
    except (disnake.NotFound, disnake.HTTPException) as e:
        logger.debug(f"Could not edit interaction response: {e}")


@asynccontextmanager
async def command_errors(inter, command: str):
    """Turn SpindleError into a user reply; log anything unexpected."""
    try:
        yield
    except SpindleError as e:
        logger.info(f"{format_guild_log(inter.guild)}: /{command} rejected: {e}")
        await reply(inter, str(e))
    except Exception:
        logger.exception(f"{format_guild_log(inter.guild)}: /{command} failed")
        await reply(inter, MESSAGES['error_occurred'])


async def build_queue_message(player: MusicPlayer, fetcher, start: int = 0,
                              page_size: int = QUEUE_PAGE_SIZE) -> Tuple[disnake.Embed, List[disnake.ui.Button]]:
    """One page of the queue, starting at 0-based index `start`."""
    total = player.queue.size()
    if total and start >= total:
        start = ((total - 1) // page_size) * page_size
    start = max(0, start)

    page = player.queue.slice(start, start + page_size)
    infos = await fetcher.get_infos([item.resource_id for item in page], strict=False)
    return create_queue_embed(list(zip(infos, page)), start, total, page_size)


def active_player(services, guild_id: int) -> Optional[MusicPlayer]:
    player = services.registry.get(guild_id)
    if player is None or player.is_terminated:
        return None
    return player


async def enqueue_request(services, guild_id: int, items: List[QueueItem],
                          join: Callable[[], Awaitable[MusicPlayer]]) -> Tuple[MusicPlayer, int, bool]:
    """
    Queue items on the guild's live player, joining voice for a new one if needed.

    The lookup and the enqueue happen with no await in between, so items never
    land in a player that was torn down meanwhile.

    Returns:
        (player, queue size after adding, whether a new session was started)
    """
    player = active_player(services, guild_id)
    joined = player is None
    if joined:
        player = await join()
    return player, player.queue.enqueue(items), joined


# =============================================================================
# REGISTRATION
# =============================================================================

def setup(bot, services):
    """Register slash commands with the bot."""

    logger.info("Registering slash commands...")
    registry = services.registry
    fetcher = services.fetcher

    async def require_player(inter) -> Optional[MusicPlayer]:
        player = active_player(services, inter.guild.id)
        if player is None:
            await reply(inter, MESSAGES['no_session'])
        return player

    async def connect_player(inter, channel) -> MusicPlayer:
        """Join `channel` and register a fresh player for the guild."""
        stale = registry.get(inter.guild.id)
        if stale is not None and stale.is_terminated:
            registry.remove(inter.guild.id, stale)

        async def factory() -> MusicPlayer:
            try:
                vc = await channel.connect(timeout=VOICE_CONNECT_TIMEOUT, reconnect=True)
            except (asyncio.TimeoutError, disnake.ClientException) as e:
                raise TransportError(f"Couldn't join {channel.name}: {e}") from e
            user_logger.info(f"{format_guild_log(inter.guild)}: Joined voice channel {channel.name}")
            return MusicPlayer(
                inter.guild.id, vc, inter.channel, fetcher, services.history, registry, bot=bot,
            )

        return await registry.get_or_create(inter.guild.id, factory)

    # =========================================================================
    # SLASH COMMANDS
    # =========================================================================

    @bot.slash_command(name='play', description=COMMAND_DESCRIPTIONS['play'])
    async def play_slash(
        inter: disnake.ApplicationCommandInteraction,
        url: str = commands.Param(description="URL of a video or playlist"),
    ):
        """Play a song or add one (or a whole playlist) to the queue."""
        await inter.response.defer()

        async with command_errors(inter, 'play'):
            voice = inter.author.voice
            if not voice or not voice.channel:
                await reply(inter, MESSAGES['not_in_voice'])
                return
            channel = voice.channel

            url = (url or "").strip()
            playlist_id = parse_playlist_id(url)
            try:
                video_id = None if playlist_id else parse_video_id(url)
            except ValidationError:
                await reply(inter, MESSAGES['invalid_url'].format(url=url))
                return

            current = active_player(services, inter.guild.id)
            if current is not None and current.voice_channel and current.voice_channel.id != channel.id:
                await reply(inter, MESSAGES['other_voice_channel'])
                return

            username = inter.author.name
            nickname = getattr(inter.author, 'nick', None)

            # Resolve before joining so a bad link never leaves the bot idling in voice
            if playlist_id:
                try:
                    playlist = await fetcher.get_playlist(playlist_id)
                except FetchFailed as e:
                    logger.warning(f"{format_guild_log(inter.guild)}: Playlist lookup failed: {e}")
                    await reply(inter, MESSAGES['playlist_unavailable'].format(url=url))
                    return
                if not playlist.entries:
                    await reply(inter, MESSAGES['playlist_empty'].format(url=url))
                    return
                items = [QueueItem(entry.video_id, entry.url, username, nickname) for entry in playlist.entries]
                message = MESSAGES['playlist_added'].format(
                    title=playlist.title, count=len(items),
                )
            else:
                info = await fetcher.get_info(video_id)
                items = [QueueItem(video_id, url or video_url(video_id), username, nickname)]
                message = MESSAGES['song_added'].format(title=info.title)

            async def join() -> MusicPlayer:
                if not can_connect_to_channel(channel):
                    raise TransportError(MESSAGES['cannot_join_voice'].format(channel=channel.name))
                return await connect_player(inter, channel)

            # The session may have timed out while metadata was resolving
            player, size, joined = await enqueue_request(services, inter.guild.id, items, join)
            if len(items) == 1 and player.playing and size > 0:
                message += MESSAGES['queue_position'].format(position=size)
            if joined:
                message = f"{MESSAGES['greeting']}\n\n{message}"

            user_logger.info(
                f"{format_guild_log(inter.guild)}: {format_user_log(inter.author)} queued "
                f"{len(items)} item(s) from {url}"
            )
            await reply(inter, message)
            await player.dispatch(PlayerEvent.ENQUEUED)

    @bot.slash_command(name='queue', description=COMMAND_DESCRIPTIONS['queue'])
    async def queue_slash(inter: disnake.ApplicationCommandInteraction):
        """Display the queued songs."""
        await inter.response.defer()

        async with command_errors(inter, 'queue'):
            player = await require_player(inter)
            if player is None:
                return
            embed, buttons = await build_queue_message(player, fetcher)
            await reply(inter, embed=embed, components=buttons)

    @bot.slash_command(name='playing', description=COMMAND_DESCRIPTIONS['playing'])
    async def playing_slash(inter: disnake.ApplicationCommandInteraction):
        """Show the current song."""
        await inter.response.defer()

        async with command_errors(inter, 'playing'):
            player = await require_player(inter)
            if player is None:
                return
            embed = await player.now_playing_embed()
            if embed is None:
                await reply(inter, MESSAGES['nothing_playing'])
                return
            await reply(inter, embed=embed)

    @bot.slash_command(name='move', description=COMMAND_DESCRIPTIONS['move'])
    async def move_slash(
        inter: disnake.ApplicationCommandInteraction,
        from_position: int = commands.Param(name='from', description="from queue spot"),
        to_position: int = commands.Param(
            name='to', description="to queue spot (leave empty to move to the top of the queue)", default=1,
        ),
    ):
        """Move a song in the queue."""
        await inter.response.defer()

        async with command_errors(inter, 'move'):
            player = await require_player(inter)
            if player is None:
                return
            player.queue.move(from_position, to_position)
            embed, buttons = await build_queue_message(player, fetcher)
            await reply(
                inter,
                MESSAGES['moved'].format(from_position=from_position, to_position=to_position),
                embed=embed, components=buttons,
            )

    @bot.slash_command(name='remove', description=COMMAND_DESCRIPTIONS['remove'])
    async def remove_slash(
        inter: disnake.ApplicationCommandInteraction,
        position: int = commands.Param(description="Queue position of the song you'd like to remove"),
    ):
        """Remove a song from the queue."""
        await inter.response.defer()

        async with command_errors(inter, 'remove'):
            player = await require_player(inter)
            if player is None:
                return
            player.queue.remove(position)
            embed, buttons = await build_queue_message(player, fetcher)
            await reply(inter, MESSAGES['removed'].format(position=position), embed=embed, components=buttons)

    @bot.slash_command(name='clear', description=COMMAND_DESCRIPTIONS['clear'])
    async def clear_slash(
        inter: disnake.ApplicationCommandInteraction,
        start: Optional[int] = commands.Param(name='from', description="from queue spot", default=None),
        end: Optional[int] = commands.Param(
            name='to', description="to queue spot (leave empty to delete all the way to the end)", default=None,
        ),
    ):
        """Clear the whole queue or a range of it."""
        await inter.response.defer()

        async with command_errors(inter, 'clear'):
            player = await require_player(inter)
            if player is None:
                return
            player.queue.clear(start, end)
            if start is None:
                message = MESSAGES['cleared_all']
            elif end is None:
                message = MESSAGES['cleared_from'].format(start=start)
            else:
                message = MESSAGES['cleared_range'].format(start=start, end=end)
            await reply(inter, message)

    @bot.slash_command(name='shuffle', description=COMMAND_DESCRIPTIONS['shuffle'])
    async def shuffle_slash(inter: disnake.ApplicationCommandInteraction):
        """Shuffle the queue."""
        await inter.response.defer()

        async with command_errors(inter, 'shuffle'):
            player = await require_player(inter)
            if player is None:
                return
            player.queue.shuffle()
            embed, buttons = await build_queue_message(player, fetcher)
            await reply(inter, MESSAGES['shuffled'], embed=embed, components=buttons)

    @bot.slash_command(name='skip', description=COMMAND_DESCRIPTIONS['skip'])
    async def skip_slash(inter: disnake.ApplicationCommandInteraction):
        """Skip the current song."""
        await inter.response.defer()

        async with command_errors(inter, 'skip'):
            player = await require_player(inter)
            if player is None:
                return
            skipped = await player.skip()
            await reply(inter, MESSAGES['skipped'] if skipped else MESSAGES['nothing_playing'])

    @bot.slash_command(name='pause', description=COMMAND_DESCRIPTIONS['pause'])
    async def pause_slash(inter: disnake.ApplicationCommandInteraction):
        """Pause or resume."""
        await inter.response.defer()

        async with command_errors(inter, 'pause'):
            player = await require_player(inter)
            if player is None:
                return
            before = player.state
            after = await player.toggle_pause()
            if before is PlayerState.PLAYING and after is PlayerState.PAUSED:
                await reply(inter, MESSAGES['paused'].format(minutes=int(PAUSED_DISCONNECT_DELAY // 60)))
            elif before is PlayerState.PAUSED and after is PlayerState.PLAYING:
                await reply(inter, MESSAGES['resumed'])
            elif before is PlayerState.PAUSED:
                await reply(inter, MESSAGES['resume_alone'].format(seconds=int(player.alone_delay)))
            else:
                await reply(inter, MESSAGES['nothing_playing'])

    @bot.slash_command(name='repeat', description=COMMAND_DESCRIPTIONS['repeat'])
    async def repeat_slash(inter: disnake.ApplicationCommandInteraction):
        """Toggle repeating the current song."""
        await inter.response.defer()

        async with command_errors(inter, 'repeat'):
            player = await require_player(inter)
            if player is None:
                return
            enabled = player.toggle_repeat()
            await reply(inter, MESSAGES['repeat_toggled'].format(state="On" if enabled else "Off"))

    @bot.slash_command(name='stats', description=COMMAND_DESCRIPTIONS['stats'])
    async def stats_slash(inter: disnake.ApplicationCommandInteraction):
        """Top requesters for the past week, with range buttons."""
        await inter.response.defer()

        async with command_errors(inter, 'stats'):
            text = await services.stats.render_range(DEFAULT_STATS_RANGE)
            await reply(inter, text, components=create_stats_buttons(DEFAULT_STATS_RANGE))

    @bot.slash_command(name='help', description=COMMAND_DESCRIPTIONS['help'])
    async def help_slash(inter: disnake.ApplicationCommandInteraction):
        """List every command."""
        await inter.response.defer()
        await reply(inter, embed=create_help_embed())

    logger.info("Slash commands registered")


__all__ = ['setup', 'reply', 'command_errors', 'build_queue_message', 'active_player', 'enqueue_request']
