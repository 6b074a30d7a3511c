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
Button Interaction Handler

Handles the two kinds of buttons the bot attaches to its replies:
- queue_page:<start>   Previous/Next on a /queue listing
- stats_range:<id>     24 Hours / Week / Month / Year / All Time on /stats

Buttons carry all the state they need in their custom id, so they keep
working after a restart. Both edit the message they're attached to.
"""

import logging

import disnake
from disnake.ext import commands

from config.embeds import QUEUE_PAGE_PREFIX, STATS_RANGE_PREFIX, create_stats_buttons
from config.messages import MESSAGES
from core.stats import STATS_RANGES
from handlers.slash_commands import active_player, build_queue_message
from utils.discord_helpers import format_guild_log

logger = logging.getLogger(__name__)


class ButtonHandler(commands.Cog):
    """Handles button interactions."""

    def __init__(self, bot, services):
        self.bot = bot
        self.services = services

    @commands.Cog.listener()
    async def on_button_click(self, inter: disnake.MessageInteraction):
        """Handle button clicks."""
        custom_id = inter.component.custom_id or ""
        if not custom_id.startswith((QUEUE_PAGE_PREFIX, STATS_RANGE_PREFIX)):
            return

        # Discord can send duplicate button events for the same interaction
        if inter.response.is_done():
            logger.debug(f"{format_guild_log(inter.guild)}: Duplicate button event ignored: {custom_id}")
            return

        try:
            await inter.response.defer()
        except (disnake.NotFound, disnake.HTTPException):
            logger.debug(f"{format_guild_log(inter.guild)}: Button interaction already handled/expired: {custom_id}")
            return

        try:
            if custom_id.startswith(QUEUE_PAGE_PREFIX):
                await self.handle_queue_page(inter, custom_id[len(QUEUE_PAGE_PREFIX):])
            else:
                await self.handle_stats_range(inter, custom_id[len(STATS_RANGE_PREFIX):])
        except Exception:
            logger.exception(f"Error handling button {custom_id}")
            await self._edit(inter, content=MESSAGES['error_occurred'], embed=None, components=[])

    async def handle_queue_page(self, inter: disnake.MessageInteraction, raw_start: str) -> None:
        try:
            start = max(0, int(raw_start))
        except ValueError:
            logger.debug(f"Malformed queue page id: {raw_start!r}")
            return

        player = active_player(self.services, inter.guild.id)
        if player is None:
            await self._edit(inter, content=MESSAGES['no_session'], embed=None, components=[])
            return

        embed, buttons = await build_queue_message(player, self.services.fetcher, start)
        await self._edit(inter, embed=embed, components=buttons)

    async def handle_stats_range(self, inter: disnake.MessageInteraction, range_id: str) -> None:
        if range_id not in STATS_RANGES:
            logger.debug(f"Unknown stats range: {range_id!r}")
            return

        try:
            text = await self.services.stats.render_range(range_id)
        except Exception:
            logger.exception(f"Generating stats for {range_id} failed")
            text = MESSAGES['stats_failed']
        await self._edit(inter, content=text, components=create_stats_buttons(range_id))

    @staticmethod
    async def _edit(inter: disnake.MessageInteraction, **kwargs) -> None:
        try:
            await inter.edit_original_response(allowed_mentions=disnake.AllowedMentions.none(), **kwargs)
        except (disnake.NotFound, disnake.HTTPException) as e:
            logger.debug(f"Could not edit button message: {e}")


def setup(bot, services):
    """Add cog to bot."""
    bot.add_cog(ButtonHandler(bot, services))
    logger.debug("Button handler registered")


__all__ = ['ButtonHandler', 'setup']
