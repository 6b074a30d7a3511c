"""
Configuration Package

Structure:
  settings.py - Startup settings (CLI flags > .env > defaults), resolved by load_settings()
  timing.py   - Disconnect countdowns, retry policy, download and display sizes
  messages.py - Every user-facing string, command descriptions, embed colors
  embeds.py   - Embed and button builders

Load .env before calling load_settings() (bot.py does this at startup).
"""

from .timing import *
from .messages import MESSAGES, STATS_RANGE_LABELS, COMMAND_DESCRIPTIONS, BOT_COLORS
from .settings import Settings, load_settings

__all__ = [
    'MESSAGES',
    'STATS_RANGE_LABELS',
    'COMMAND_DESCRIPTIONS',
    'BOT_COLORS',
    'Settings',
    'load_settings',
]
