"""
Timing Settings - All timing, retry and sizing configurations

This file contains all timing-related settings organized by category.
These control how long the bot waits before giving up on a session, how hard
it tries to fetch a track, and how large the pages and charts it renders are.
"""

# =========================================================================================================
# AUTO-DISCONNECT TIMING
# =========================================================================================================

IDLE_DISCONNECT_DELAY = 60         # Seconds with an empty queue before leaving voice
                                   # LOWER = leaves faster, HIGHER = waits longer for new requests

PAUSED_DISCONNECT_DELAY = 600      # Seconds paused (by /pause) before leaving voice (10 min)
                                   # Longer grace period so a paused session survives a short break

ALONE_DISCONNECT_DELAY = 60        # Seconds with no listeners in the voice channel before leaving
                                   # Playback is paused immediately; this is the wait before disconnect

# =========================================================================================================
# FETCH RETRY
# =========================================================================================================

FETCH_RETRY_DELAY = 5              # Seconds between attempts to fetch the same track
                                   # LOWER = retries faster, HIGHER = gentler on the provider

FETCH_MAX_ATTEMPTS = 3             # Attempts per track before it's skipped
                                   # Must be >= 1. A track that always fails can never wedge the queue

# =========================================================================================================
# DOWNLOADS
# =========================================================================================================

MAX_CONCURRENT_DOWNLOADS = 4       # Max audio downloads running at once (bot-wide)
                                   # HIGHER = faster pre-fetching, LOWER = less bandwidth/disk pressure

DOWNLOAD_CHUNK_SIZE = 64 * 1024    # Bytes per chunk written to the staging file

DOWNLOAD_READ_TIMEOUT = 30         # Seconds without receiving any bytes before a download is abandoned

# =========================================================================================================
# DISPLAY
# =========================================================================================================

QUEUE_PAGE_SIZE = 10               # Tracks per /queue page
STATS_LIMIT = 5                    # Requesters listed by /stats
STATS_BAR_WIDTH = 25               # Characters spanned by the longest stats bar

# =========================================================================================================
# ADVANCED TIMING SETTINGS (Don't change unless you know what you're doing)
# =========================================================================================================

VOICE_CONNECT_TIMEOUT = 5.0              # Max wait for Discord voice handshake when joining

VOICE_STOP_MAX_WAIT = 0.5                # Max wait for the voice client to stop before replacing a track
VOICE_STOP_CHECK_INTERVAL = 0.05         # Check voice client stop every 50ms

# FFmpeg input options:
# -hide_banner / -loglevel error: quiet stderr
# -nostdin: never read from the terminal
# -re: read input at native rate (cached files would otherwise be consumed instantly)
# -fflags +nobuffer: lower startup latency
FFMPEG_BEFORE_OPTIONS = '-hide_banner -loglevel error -nostdin -re -fflags +nobuffer'
