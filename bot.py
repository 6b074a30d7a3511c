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
Spindle Music Bot
========================================================
VERSION: 1.0.0
========================================================

A Discord music bot that plays YouTube audio in a single guild, built using
the disnake API.

Usage:
    python bot.py [--app-id ID] [--guild-id ID] [--token TOKEN]
                  [--cache-dir DIR] [--db-dir DIR] [--cookie COOKIE]
                  [--log-level LEVEL]

Every flag falls back to the matching variable in .env (see config/settings.py).
"""

import asyncio
import logging
import os
import signal
import sys

import disnake
from disnake.ext import commands
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from config.settings import Settings, load_settings
from core.errors import ConfigError
from core.services import Services
from handlers import buttons, slash_commands
from utils.discord_helpers import format_guild_log

# =============================================================================
# LOGGING SETUP
# =============================================================================

# Map string log level to logging constant
LOG_LEVEL_MAP = {
    'DEBUG': logging.DEBUG,
    'INFO': logging.INFO,
    'WARNING': logging.WARNING,
    'ERROR': logging.ERROR,
    'CRITICAL': logging.CRITICAL,
}


class SpindleFormatter(logging.Formatter):
    """
    Formatter with 4-character level names for aligned logs.

    - DEBUG    → [DBUG]
    - INFO     → [INFO]
    - WARNING  → [WARN]
    - ERROR    → [FAIL]
    - CRITICAL → [CRIT]
    """

    LEVEL_NAMES = {
        'DEBUG': 'DBUG',
        'INFO': 'INFO',
        'WARNING': 'WARN',
        'ERROR': 'FAIL',
        'CRITICAL': 'CRIT',
    }

    def format(self, record):
        # Restore levelname afterwards so other handlers see the original
        original_levelname = record.levelname
        record.levelname = self.LEVEL_NAMES.get(record.levelname, record.levelname)
        result = super().format(record)
        record.levelname = original_levelname
        return result


def configure_logging(level: str = 'INFO') -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(SpindleFormatter(
        fmt='[%(asctime)s] [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    logging.basicConfig(level=LOG_LEVEL_MAP.get(level, logging.INFO), handlers=[handler], force=True)

    # Reduce disnake noise unless explicitly asked for
    suppress = os.getenv('SUPPRESS_LIBRARY_LOGS', 'true').strip().lower() not in ('false', '0', 'no')
    library_level = logging.WARNING if suppress else LOG_LEVEL_MAP.get(level, logging.INFO)
    for name in ('disnake', 'disnake.player', 'disnake.voice_state', 'disnake.gateway'):
        logging.getLogger(name).setLevel(library_level)


logger = logging.getLogger('spindle')

# =============================================================================
# ASYNCIO EXCEPTION HANDLER
# =============================================================================

def custom_exception_handler(loop, context):
    """
    Suppress cosmetic aiohttp shutdown warnings.

    Only "Unclosed client session" and "Unclosed connector" are dropped.
    Everything else goes to the default handler.
    """
    message = context.get("message", "")
    if message in ["Unclosed client session", "Unclosed connector"]:
        return
    loop.default_exception_handler(context)

# =============================================================================
# VOICE STATE ROUTING
# =============================================================================

async def route_voice_state(services: Services, bot_user_id: int, member, before, after) -> None:
    """
    Route voice changes to the guild's player as DISCONNECTED or PRESENCE_CHANGED.

    - Bot kicked or otherwise dropped from voice: end the session
    - Bot dragged to another channel: the voice client follows, so re-check
      who is listening there
    - Anyone else joining or leaving the bot's channel: re-check presence
    """
    player = services.registry.get(member.guild.id)
    if player is None or player.is_terminated:
        return

    if member.id == bot_user_id:
        if before.channel and not after.channel:
            logger.info(f"{format_guild_log(member.guild)}: Bot left voice, ending session")
            await player.disconnect()
        elif after.channel and before.channel != after.channel:
            logger.info(f"{format_guild_log(member.guild)}: Bot moved to {after.channel.name}")
            await player.presence_changed()
        return

    bot_channel = player.voice_channel
    if bot_channel is None:
        return
    if before.channel == bot_channel or after.channel == bot_channel:
        await player.presence_changed()

# =============================================================================
# BOT SETUP
# =============================================================================

def create_bot(settings: Settings, services: Services) -> commands.InteractionBot:
    """Build the interaction bot, register commands and voice/guild listeners."""
    intents = disnake.Intents.default()
    intents.guilds = True
    intents.voice_states = True
    intents.members = True

    bot = commands.InteractionBot(
        intents=intents,
        test_guilds=[settings.guild_id],
        command_sync_flags=commands.CommandSyncFlags.default(),
    )

    slash_commands.setup(bot, services)
    buttons.setup(bot, services)
    logger.info("Slash commands loaded")

    @bot.event
    async def on_ready():
        logger.info('Spindle v1.0.0 - Copyright (C) 2026 grodz')
        logger.info('Licensed under GPL 3.0 - See LICENSE.md for details')
        logger.info(f'Bot connected as {bot.user}')
        invite = disnake.utils.oauth_url(
            settings.app_id,
            permissions=disnake.Permissions(
                view_channel=True,
                send_messages=True,
                embed_links=True,
                connect=True,
                speak=True,
            ),
            scopes=('bot', 'applications.commands'),
        )
        logger.info(f"Invite link: {invite}")
        logger.info("Press Ctrl+C or send SIGTERM to shutdown")

    @bot.event
    async def on_voice_state_update(member, before, after):
        await route_voice_state(services, bot.user.id, member, before, after)

    @bot.event
    async def on_guild_remove(guild):
        logger.info(f"Bot removed from {format_guild_log(guild)}")
        player = services.registry.get(guild.id)
        if player is not None:
            await player.disconnect()

    return bot

# =============================================================================
# GRACEFUL SHUTDOWN
# =============================================================================

_is_shutting_down = False


async def shutdown_bot(bot: commands.InteractionBot, services: Services) -> None:
    """Tear down every session, close shared resources, then the gateway."""
    global _is_shutting_down
    if _is_shutting_down:
        return
    _is_shutting_down = True

    logger.info("Initiating graceful shutdown...")
    logger.info(f"Shutting down {len(services.registry)} player(s)...")
    try:
        await services.close()
    except Exception as e:
        logger.error(f"Error during service shutdown: {e}", exc_info=True)

    logger.info("Closing bot connection...")
    await bot.close()
    logger.info("Shutdown complete")


def install_signal_handlers(bot: commands.InteractionBot, services: Services) -> None:
    """SIGINT (Ctrl+C) and SIGTERM (systemd stop) both trigger shutdown_bot()."""
    loop = asyncio.get_running_loop()

    def handle_shutdown_signal(signum, frame):
        logger.info(f"Received {signal.Signals(signum).name} signal, shutting down...")
        loop.call_soon_threadsafe(loop.create_task, shutdown_bot(bot, services))

    signal.signal(signal.SIGINT, handle_shutdown_signal)
    signal.signal(signal.SIGTERM, handle_shutdown_signal)

# =============================================================================
# MAIN
# =============================================================================

async def run(settings: Settings) -> None:
    asyncio.get_running_loop().set_exception_handler(custom_exception_handler)

    services = Services.build(settings)
    await services.start()
    bot = create_bot(settings, services)
    install_signal_handlers(bot, services)

    logger.info("Starting bot...")
    try:
        await bot.start(settings.token)
    finally:
        await shutdown_bot(bot, services)


def main(argv=None) -> int:
    try:
        settings = load_settings(argv)
    except ConfigError as e:
        configure_logging()
        logger.critical(f"{e} - bot cannot start!")
        return 1

    configure_logging(settings.log_level)
    try:
        asyncio.run(run(settings))
    except KeyboardInterrupt:
        logger.info("Bot stopped by user (Ctrl+C)")
    except Exception as e:
        logger.error(f"Bot crashed: {e}", exc_info=True)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
