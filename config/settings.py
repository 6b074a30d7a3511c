# Part of Spindle - Licensed under GPL 3.0

r"""
========================================================================================================
SPINDLE - STARTUP SETTINGS
========================================================================================================

Everything the bot needs to know before it can log in: Discord identifiers,
where to keep the audio cache and database, and the optional provider cookie.

PRIORITY:
  Command-line flag > .env file / environment variable > built-in default

  Example:
    python bot.py --cache-dir /srv/spindle/cache
    SPINDLE_CACHE_DIR=/srv/spindle/cache python bot.py    ← same thing

REQUIRED:
  --app-id    / DISCORD_APP_ID      Application id (used for the invite link)
  --guild-id  / DISCORD_GUILD_ID    Guild the slash commands are registered to
  --token     / DISCORD_BOT_TOKEN   Bot token

  Missing or non-numeric values stop the bot at startup.

OPTIONAL:
  --cache-dir / SPINDLE_CACHE_DIR   Audio cache folder (default ./cache)
  --db-dir    / SPINDLE_DB_DIR      Database folder (default ./db)
  --cookie    / SPINDLE_COOKIE      Cookie header for age-gated/members-only videos
  --log-level / LOG_LEVEL           DEBUG, INFO, WARNING, ERROR (default INFO)

========================================================================================================
"""

import argparse
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from core.errors import ConfigError

# =========================================================================================================
# Internal helper functions
# =========================================================================================================

def _get_config(python_value, env_name, default, converter=None):
    """Get configuration value using priority system (flag > .env > default)."""
    if python_value is not None:
        return python_value
    env_value = os.getenv(env_name)
    if env_value is not None and env_value != "":
        return converter(env_value) if converter else env_value
    return default


def _require_int(value, name: str) -> int:
    if value is None or value == "":
        raise ConfigError(f"Missing required setting: {name}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a number, got {value!r}") from None


# =========================================================================================================
# SETTINGS
# =========================================================================================================

DB_FILENAME = 'app.db'
STAGING_DIRNAME = 'staging'


@dataclass(frozen=True)
class Settings:
    """Resolved startup configuration."""

    app_id: int
    guild_id: int
    token: str
    cache_dir: Path
    db_dir: Path
    cookie: Optional[str] = None
    log_level: str = 'INFO'

    @property
    def staging_dir(self) -> Path:
        return self.cache_dir / STAGING_DIRNAME

    @property
    def db_path(self) -> Path:
        return self.db_dir / DB_FILENAME

    def ensure_directories(self) -> None:
        """Create cache, staging and database folders if missing."""
        for directory in (self.cache_dir, self.staging_dir, self.db_dir):
            directory.mkdir(parents=True, exist_ok=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='spindle', description='Spindle Discord music bot')
    parser.add_argument('--app-id', dest='app_id', help='Discord application id')
    parser.add_argument('--guild-id', dest='guild_id', help='Guild to register slash commands in')
    parser.add_argument('--token', dest='token', help='Discord bot token')
    parser.add_argument('--cache-dir', dest='cache_dir', help='Audio cache directory (default ./cache)')
    parser.add_argument('--db-dir', dest='db_dir', help='Database directory (default ./db)')
    parser.add_argument('--cookie', dest='cookie', help='Cookie header sent to YouTube')
    parser.add_argument('--log-level', dest='log_level', help='Logging level (default INFO)')
    return parser


def load_settings(argv: Optional[Sequence[str]] = None) -> Settings:
    """
    Resolve settings from command-line flags and environment.

    Raises:
        ConfigError: A required identifier is missing or malformed
    """
    args = build_parser().parse_args(argv)

    app_id = _require_int(_get_config(args.app_id, 'DISCORD_APP_ID', None), 'app id (--app-id / DISCORD_APP_ID)')
    guild_id = _require_int(_get_config(args.guild_id, 'DISCORD_GUILD_ID', None), 'guild id (--guild-id / DISCORD_GUILD_ID)')

    token = _get_config(args.token, 'DISCORD_BOT_TOKEN', None)
    if not token:
        raise ConfigError("Missing required setting: token (--token / DISCORD_BOT_TOKEN)")

    log_level = str(_get_config(args.log_level, 'LOG_LEVEL', 'INFO')).upper()
    if log_level not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
        raise ConfigError(f"Invalid log level {log_level!r}")

    return Settings(
        app_id=app_id,
        guild_id=guild_id,
        token=token,
        cache_dir=Path(_get_config(args.cache_dir, 'SPINDLE_CACHE_DIR', './cache')).resolve(),
        db_dir=Path(_get_config(args.db_dir, 'SPINDLE_DB_DIR', './db')).resolve(),
        cookie=_get_config(args.cookie, 'SPINDLE_COOKIE', None) or None,
        log_level=log_level,
    )
