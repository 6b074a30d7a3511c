"""
Embed Configuration

Embed and button builders that use configuration values, no hardcoded strings.
"""

import math
from typing import List, Optional, Sequence, Tuple

import disnake

from config.messages import BOT_COLORS, COMMAND_DESCRIPTIONS, MESSAGES, STATS_RANGE_LABELS
from config.timing import QUEUE_PAGE_SIZE

QUEUE_PAGE_PREFIX = 'queue_page:'
STATS_RANGE_PREFIX = 'stats_range:'


def create_now_playing_embed(info, item, queue_size: int, paused: bool = False) -> disnake.Embed:
    """Create embed for the item that just started (or is currently) playing."""
    from utils.formatting import to_hours_and_minutes

    description = MESSAGES['now_playing_body'].format(
        title=info.title,
        duration=to_hours_and_minutes(info.duration_seconds),
        requester=item.requester_display,
        queue_size=queue_size,
    )
    embed = disnake.Embed(
        title=MESSAGES['now_playing_title'],
        description=description,
        color=BOT_COLORS['warning'] if paused else BOT_COLORS['primary'],
    )
    if info.url:
        embed.url = info.url
    return embed


def create_queue_embed(
    rows: Sequence[Tuple[object, object]],
    start: int,
    total: int,
    page_size: int = QUEUE_PAGE_SIZE,
) -> Tuple[disnake.Embed, List[disnake.ui.Button]]:
    """
    Create one page of the queue listing.

    Args:
        rows: (TrackInfo, QueueItem) pairs for this page, in queue order
        start: 0-based queue index of the first row
        total: Full queue size

    Returns:
        (embed, buttons). Buttons are empty when everything fits on one page.
    """
    from utils.formatting import to_hours_and_minutes

    embed = disnake.Embed(title=MESSAGES['queue_title'], color=BOT_COLORS['primary'])
    if not rows:
        embed.description = MESSAGES['queue_empty']
        return embed, []

    lines = []
    total_seconds = 0
    for offset, (info, item) in enumerate(rows):
        lines.append(MESSAGES['queue_row'].format(
            position=start + offset + 1,
            title=info.title,
            requester=item.requester_display,
        ))
        total_seconds += info.duration_seconds
    embed.description = "\n".join(lines)

    end = start + len(rows)
    hidden = total - end
    buttons: List[disnake.ui.Button] = []

    if start > 0 or hidden > 0:
        page = start // page_size + 1
        pages = max(1, math.ceil(total / page_size))
        embed.set_footer(text=MESSAGES['queue_footer_paged'].format(
            page=page, pages=pages, duration=to_hours_and_minutes(total_seconds),
        ))
        buttons = [
            disnake.ui.Button(
                label="Previous",
                style=disnake.ButtonStyle.primary,
                custom_id=f"{QUEUE_PAGE_PREFIX}{max(0, start - page_size)}",
                disabled=start == 0,
            ),
            disnake.ui.Button(
                label="Next",
                style=disnake.ButtonStyle.primary,
                custom_id=f"{QUEUE_PAGE_PREFIX}{end}",
                disabled=hidden <= 0,
            ),
        ]
    else:
        embed.set_footer(text=MESSAGES['queue_footer_total'].format(duration=to_hours_and_minutes(total_seconds)))

    return embed, buttons


def create_stats_buttons(selected: Optional[str] = None) -> List[disnake.ui.Button]:
    """One button per stats range; the selected range is disabled."""
    return [
        disnake.ui.Button(
            label=label,
            style=disnake.ButtonStyle.primary,
            custom_id=f"{STATS_RANGE_PREFIX}{range_id}",
            disabled=range_id == selected,
        )
        for range_id, label in STATS_RANGE_LABELS.items()
    ]


def create_help_embed() -> disnake.Embed:
    """Create embed listing every slash command."""
    description = "\n".join(f"`/{name}`: {text}" for name, text in COMMAND_DESCRIPTIONS.items())
    return disnake.Embed(title=MESSAGES['help_title'], description=description, color=BOT_COLORS['primary'])


__all__ = [
    'QUEUE_PAGE_PREFIX',
    'STATS_RANGE_PREFIX',
    'create_now_playing_embed',
    'create_queue_embed',
    'create_stats_buttons',
    'create_help_embed',
]
