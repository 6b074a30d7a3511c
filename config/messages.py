"""
Messages Configuration

Every user-facing string lives here. Strings with {placeholders} are filled
with str.format(); values are never re-parsed, so titles with braces are
passed through as-is.
"""

# Command responses
MESSAGES = {
    # Session lifecycle
    'greeting': ":mirror_ball: :fire: Spindle is in the house! :fire: :mirror_ball:",
    'disconnecting_soon': "No more songs in the queue. Spindle will disconnect in {seconds} seconds.",
    'alone_paused': "Everyone left, so playback is paused. Spindle will disconnect in {seconds} seconds.",
    'alone_resumed': "Welcome back! Resuming playback.",
    'disconnected': "Spindle left the voice channel.",

    # /play
    'not_in_voice': ":warning: You must be in a voice channel to use Spindle!",
    'cannot_join_voice': ":warning: I don't have permission to join or speak in {channel}.",
    'other_voice_channel': ":warning: Spindle is in a different voice channel. It can only be in one channel at a time.",
    'invalid_url': ":face_palm: Not a valid URL. Use either a video link or a playlist link: {url}",
    'playlist_unavailable': ":face_palm: Couldn't get playlist info. Is it private? {url}",
    'playlist_empty': ":face_palm: That playlist has no playable videos: {url}",
    'song_added': ":notes: Added **{title}** to the queue.",
    'queue_position': " Place in queue: {position}.",
    'playlist_added': ":notes: Added **{title}** playlist to the queue with {count} songs.",

    # Fetch failures during playback
    'fetch_retry': ":warning: Problem loading **{title}**. Trying again in {seconds} seconds...",
    'fetch_skipped': ":x: Couldn't play **{title}** after {attempts} attempts. Skipping it.",

    # Queue commands
    'no_session': "You don't have any songs playing. Add songs to the queue with /play command.",
    'moved': "Moved song in position {from_position} to {to_position}",
    'removed': "Removed song from queue position {position}",
    'cleared_all': "Queue cleared.",
    'cleared_from': "Queue cleared from {start} until end of queue.",
    'cleared_range': "Queue cleared from {start} to {end}.",
    'shuffled': "Shuffled the queue.",
    'skipped': "Skipped song.",
    'nothing_playing': "Nothing is playing right now.",
    'paused': "Paused. Spindle will disconnect if it stays paused for {minutes} minutes.",
    'resumed': "Resumed.",
    'resume_alone': "Nobody is listening, so playback stays paused. Spindle will disconnect in {seconds} seconds.",
    'repeat_toggled': "Repeat toggled to {state}",

    # Queue embed
    'queue_title': "Next up:",
    'queue_empty': "Queue is empty",
    'queue_row': "**{position}**: {title} - *{requester}*",
    'queue_footer_paged': "Page {page}/{pages}\nPage queue time: {duration}",
    'queue_footer_total': "Total queue time: {duration}",
    'queue_loading': "Loading next page...",

    # Now playing embed
    'now_playing_title': "Now Playing",
    'now_playing_body': (
        "**{title}**\n\n"
        "**Duration**: `{duration}`\n"
        "**Requester**: `{requester}`\n"
        "**Queue**: `{queue_size}`"
    ),

    # Stats
    'stats_header_range': "Here are the top listeners from {start} to {end}:",
    'stats_header_all': "Here are the top listeners of all time:",
    'stats_empty': "Nobody has played anything yet.",
    'stats_failed': "Problem generating stats.",

    # Help
    'help_title': "/help",

    # Generic
    'error_occurred': "❌ An error occurred while processing your request",
}

# Stats range button labels (keyed by range id)
STATS_RANGE_LABELS = {
    '24hr': '24 Hours',
    'week': 'Week',
    'month': 'Month',
    'year': 'Year',
    'all': 'All Time',
}

# Command descriptions
COMMAND_DESCRIPTIONS = {
    'play': 'Play a song or add one to the queue.',
    'queue': 'Display the queued songs.',
    'playing': 'Check what song is currently playing.',
    'remove': 'Remove a song from the queue',
    'clear': 'Clear the queue. Leave `from` and `to` empty to clear the entire queue',
    'move': 'Move a song in the queue. If `to` is not provided, it will move to the top of the queue.',
    'shuffle': 'Shuffle the queue.',
    'skip': 'Skip the currently playing song.',
    'pause': 'Pause or resume the current song.',
    'repeat': 'Turn on/off repeating the currently playing song.',
    'stats': 'Show who has been hogging the music bot.',
    'help': 'Music player help.',
}

# Embed color scheme
BOT_COLORS = {
    'primary': 0x33D7FF,    # Cyan
    'success': 0x00E676,    # Green
    'warning': 0xFFD600,    # Yellow
    'error': 0xFF5252,      # Red
}

__all__ = [
    'MESSAGES',
    'STATS_RANGE_LABELS',
    'COMMAND_DESCRIPTIONS',
    'BOT_COLORS',
]
