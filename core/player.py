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
Music Player - Per-Guild Playback State Machine

One MusicPlayer per voice session. It owns the Queue, the voice client and
the idle-disconnect timer, and every outside trigger reaches it as a named
PlayerEvent through dispatch():

    ENQUEUED          /play added items
    TRACK_FINISHED    voice client's after-callback (carries the play session token)
    SKIP              /skip
    PAUSE_TOGGLE      /pause
    PRESENCE_CHANGED  someone joined/left the bot's voice channel
    TIMER_EXPIRED     idle-disconnect countdown ran out (carries its generation)
    DISCONNECTED      bot was kicked out of voice, guild removed, shutdown

STATES:

    IDLE ──ENQUEUED──> PLAYING <──PAUSE_TOGGLE──> PAUSED
                          │
                TRACK_FINISHED, queue empty
                          v
                ARMED_FOR_DISCONNECT ──ENQUEUED──> PLAYING
                          │
            TIMER_EXPIRED / DISCONNECTED (from any state)
                          v
                      TERMINATED

CONCURRENCY:

    Non-terminal events are serialized by a per-session asyncio.Lock, so only
    one queue advance is ever in flight (no double pop when /skip races a
    natural track end). Terminal events skip the lock and tear down at once;
    a transition that is mid-fetch re-checks for TERMINATED after every await
    and bails out.

    The voice client's after-callback runs on the audio thread. It only
    schedules a TRACK_FINISHED dispatch on the event loop, tagged with the
    PlaybackSession that started the track. Once a newer play replaces that
    session, the stale callback is ignored.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from itertools import count
from time import monotonic as _now
from typing import Iterable, List, Optional, Set, Union

import disnake

from config.embeds import create_now_playing_embed
from config.messages import MESSAGES
from config.timing import (
    ALONE_DISCONNECT_DELAY,
    FETCH_MAX_ATTEMPTS,
    FETCH_RETRY_DELAY,
    IDLE_DISCONNECT_DELAY,
    PAUSED_DISCONNECT_DELAY,
    VOICE_STOP_CHECK_INTERVAL,
    VOICE_STOP_MAX_WAIT,
)
from core.errors import FetchFailed, PersistenceError, TransportError, ValidationError
from core.metadata import TrackInfo
from core.queue import Queue, QueueItem
from systems.idle_timer import IdleDisconnectTimer
from systems.voice_manager import VoiceManager
from utils.context_managers import suppress_callbacks
from utils.discord_helpers import format_guild_log, safe_disconnect, safe_send, make_audio_source

logger = logging.getLogger(__name__)  # For debug/error logs
user_logger = logging.getLogger('spindle')  # For user-facing messages


class PlayerState(Enum):
    """
    Current state of a voice session.

    IDLE: Connected, nothing has been played yet
    PLAYING: Voice client is rendering now_playing
    PAUSED: Track loaded but paused (by /pause or because everyone left)
    ARMED_FOR_DISCONNECT: Queue ran dry, disconnect countdown running
    TERMINATED: Torn down; a new /play creates a new player
    """
    IDLE = 0
    PLAYING = 1
    PAUSED = 2
    ARMED_FOR_DISCONNECT = 3
    TERMINATED = 4


class PlayerEvent(Enum):
    ENQUEUED = 'enqueued'
    TRACK_FINISHED = 'track_finished'
    SKIP = 'skip'
    PAUSE_TOGGLE = 'pause_toggle'
    PRESENCE_CHANGED = 'presence_changed'
    TIMER_EXPIRED = 'timer_expired'
    DISCONNECTED = 'disconnected'


_TERMINAL_EVENTS = (PlayerEvent.TIMER_EXPIRED, PlayerEvent.DISCONNECTED)

_SESSION_IDS = count(1)


@dataclass(slots=True)
class PlaybackSession:
    """Token that scopes an after-callback to one specific play attempt.

    Each play gets a unique ``id``. The ``cancelled`` flag is set when a newer
    play supersedes this one (or the session is torn down), so a callback
    that lands late exits without touching the queue.
    """

    track_id: Optional[str] = None
    id: int = field(default_factory=lambda: next(_SESSION_IDS))
    started_at: float = field(default_factory=_now)
    cancelled: bool = False

    def cancel(self) -> None:
        """Mark the session as cancelled so callbacks know to exit early."""
        self.cancelled = True


class MusicPlayer:
    """
    Per-guild playback controller.

    Args:
        guild_id: Discord guild ID (registry key)
        voice_client: Connected voice client (disnake.VoiceClient in production)
        text_channel: Where now-playing and status messages go
        fetcher: FetchPipeline (get_file, get_info, prefetch)
        history: PlayHistory ledger (record_play)
        registry: SessionRegistry this player removes itself from on teardown
        bot: Bot instance (for human-readable logging only)
        audio_source_factory: path -> audio source (FFmpeg in production)
        idle_delay / paused_delay / alone_delay: disconnect countdowns
        retry_delay / max_attempts: fetch retry policy per queue item
    """

    def __init__(
        self,
        guild_id: int,
        voice_client,
        text_channel,
        fetcher,
        history,
        registry,
        *,
        bot=None,
        audio_source_factory=make_audio_source,
        idle_delay: float = IDLE_DISCONNECT_DELAY,
        paused_delay: float = PAUSED_DISCONNECT_DELAY,
        alone_delay: float = ALONE_DISCONNECT_DELAY,
        retry_delay: float = FETCH_RETRY_DELAY,
        max_attempts: int = FETCH_MAX_ATTEMPTS,
    ):
        self.guild_id = guild_id
        self.bot = bot
        self.text_channel = text_channel
        self.fetcher = fetcher
        self.history = history
        self.registry = registry
        self.audio_source_factory = audio_source_factory

        self.idle_delay = idle_delay
        self.paused_delay = paused_delay
        self.alone_delay = alone_delay
        self.retry_delay = retry_delay
        self.max_attempts = max(1, max_attempts)

        # =====================================================================
        # SESSION STATE
        # =====================================================================
        self.queue = Queue(on_change=self._on_queue_change)
        self.state = PlayerState.IDLE
        self.now_playing: Optional[QueueItem] = None
        self.playing: bool = False
        self.repeat_flag: bool = False

        self.voice_manager = VoiceManager(guild_id, voice_client)
        self.timer = IdleDisconnectTimer(name=f"guild-{guild_id}-disconnect")

        # =====================================================================
        # RACE CONDITION GUARDS
        # =====================================================================
        self._lock = asyncio.Lock()
        self._closed = asyncio.Event()
        self._suppress_callback: bool = False
        self._playback_session: Optional[PlaybackSession] = None
        self._skip_requested: bool = False
        self._paused_for_presence: bool = False
        self._tasks: Set[asyncio.Task] = set()

    @property
    def voice_client(self):
        return self.voice_manager.voice_client

    @property
    def voice_channel(self):
        vc = self.voice_client
        return vc.channel if vc else None

    @property
    def is_terminated(self) -> bool:
        return self.state is PlayerState.TERMINATED

    def _log_prefix(self) -> str:
        return format_guild_log(self.guild_id, self.bot)

    # =========================================================================
    # Event entry point
    # =========================================================================

    async def dispatch(self, event: PlayerEvent, *, session: Optional[PlaybackSession] = None,
                       generation: Optional[int] = None):
        """
        Feed one event into the state machine.

        Returns whatever the transition reports (SKIP -> bool, PAUSE_TOGGLE ->
        resulting PlayerState), None otherwise. Events for a terminated
        session are ignored.
        """
        if self.is_terminated:
            logger.debug(f"{self._log_prefix()}: Ignoring {event.value} on terminated session")
            return None

        if event in _TERMINAL_EVENTS:
            if event is PlayerEvent.TIMER_EXPIRED:
                if generation != self.timer.generation:
                    logger.debug(f"{self._log_prefix()}: Ignoring stale timer (generation {generation})")
                    return None
                await self.teardown("idle timeout")
            else:
                await self.teardown("voice disconnected")
            return None

        async with self._lock:
            if self.is_terminated:
                return None
            return await self._transition(event, session)

    async def _transition(self, event: PlayerEvent, session: Optional[PlaybackSession]):
        if event is PlayerEvent.ENQUEUED:
            if self.state in (PlayerState.IDLE, PlayerState.ARMED_FOR_DISCONNECT):
                self.timer.cancel()
                await self.play_next_song()
            return None

        if event is PlayerEvent.TRACK_FINISHED:
            await self._on_track_finished(session)
            return None

        if event is PlayerEvent.SKIP:
            return self._skip()

        if event is PlayerEvent.PAUSE_TOGGLE:
            return self._toggle_pause()

        if event is PlayerEvent.PRESENCE_CHANGED:
            await self._on_presence_changed()
            return None

        raise ValueError(f"Unhandled player event: {event}")

    # =========================================================================
    # Convenience wrappers (used by the command layer)
    # =========================================================================

    async def enqueue(self, items: Union[QueueItem, Iterable[QueueItem]]) -> int:
        """Add items and start playback if nothing is playing. Returns the queue size after adding."""
        size = self.queue.enqueue(items)
        await self.dispatch(PlayerEvent.ENQUEUED)
        return size

    async def skip(self) -> bool:
        return bool(await self.dispatch(PlayerEvent.SKIP))

    async def toggle_pause(self) -> Optional[PlayerState]:
        return await self.dispatch(PlayerEvent.PAUSE_TOGGLE)

    async def presence_changed(self) -> None:
        await self.dispatch(PlayerEvent.PRESENCE_CHANGED)

    async def disconnect(self) -> None:
        await self.dispatch(PlayerEvent.DISCONNECTED)

    def toggle_repeat(self) -> bool:
        self.repeat_flag = not self.repeat_flag
        user_logger.info(f"{self._log_prefix()}: Repeat {'on' if self.repeat_flag else 'off'}")
        return self.repeat_flag

    # =========================================================================
    # Queue advance
    # =========================================================================

    async def play_next_song(self) -> None:
        """
        Pop the head and play it; arm the disconnect timer when the queue is empty.

        Items that can't be fetched after max_attempts are skipped and the
        next one is tried, so one broken video never wedges the session.
        """
        while not self.is_terminated:
            # playing must be set before pop so the change listener pre-fetches the new head
            self.playing = True
            item = self.queue.pop()

            if item is None:
                await self._arm_for_disconnect()
                return

            self.timer.cancel()
            self.now_playing = item
            if await self._play_item(item):
                return

    async def _play_item(self, item: QueueItem) -> bool:
        """
        Fetch and start one item, retrying fetch failures.

        Returns:
            True when playback started (or the session ended meanwhile),
            False when the item was given up on
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                path = await self.fetcher.get_file(item.resource_id)
            except ValidationError as e:
                logger.warning(f"{self._log_prefix()}: Unplayable item {item.resource_id}: {e}")
                await self._notify_skipped(item, attempt)
                return False
            except FetchFailed as e:
                if self.is_terminated:
                    return True
                logger.warning(
                    f"{self._log_prefix()}: Fetch attempt {attempt}/{self.max_attempts} "
                    f"failed for {item.resource_id}: {e}"
                )
                if attempt >= self.max_attempts:
                    await self._notify_skipped(item, attempt)
                    return False
                await safe_send(self.text_channel, MESSAGES['fetch_retry'].format(
                    title=await self._title_for(item),
                    seconds=int(self.retry_delay),
                ))
                if await self._wait_closed(self.retry_delay):
                    return True
                continue

            if self.is_terminated:
                return True

            try:
                await self._start_transport(item, path)
            except TransportError as e:
                logger.error(f"{self._log_prefix()}: Voice transport failed: {e}")
                await self.teardown("voice transport failed")
                return True

            self.state = PlayerState.PLAYING
            user_logger.info(f"{self._log_prefix()}: Now playing {item.resource_id} for {item.requested_by}")
            await self._announce_now_playing(item)
            await self._record_play(item)
            # A skip or repeat can start a track with nobody left to hear it
            if not self.is_terminated and self.voice_manager.is_alone_in_channel():
                await self._pause_for_presence()
            return True

        return False

    async def _on_track_finished(self, session: Optional[PlaybackSession]) -> None:
        if session is None or session.cancelled or session is not self._playback_session:
            logger.debug(f"{self._log_prefix()}: Ignoring callback from superseded playback session")
            return

        session.cancel()
        self._playback_session = None

        skipped = self._skip_requested
        self._skip_requested = False

        if self.repeat_flag and not skipped and self.now_playing is not None:
            logger.debug(f"{self._log_prefix()}: Repeating {self.now_playing.resource_id}")
            if await self._play_item(self.now_playing):
                return

        await self.play_next_song()

    async def _arm_for_disconnect(self) -> None:
        self.playing = False
        self.now_playing = None
        self.state = PlayerState.ARMED_FOR_DISCONNECT
        self.timer.arm(self.idle_delay, self._on_timer_expired)
        user_logger.info(f"{self._log_prefix()}: Queue finished, disconnecting in {self.idle_delay}s")
        await safe_send(self.text_channel, MESSAGES['disconnecting_soon'].format(seconds=int(self.idle_delay)))

    async def _on_timer_expired(self, generation: int) -> None:
        await self.dispatch(PlayerEvent.TIMER_EXPIRED, generation=generation)

    # =========================================================================
    # Skip / pause / presence
    # =========================================================================

    def _skip(self) -> bool:
        """Stop the transport; its after-callback advances the queue."""
        if self.state not in (PlayerState.PLAYING, PlayerState.PAUSED) or not self.voice_manager.is_busy():
            return False

        if self.state is PlayerState.PAUSED:
            self.timer.cancel()
            self._paused_for_presence = False
            self.state = PlayerState.PLAYING

        self._skip_requested = True
        try:
            self.voice_client.stop()
        except disnake.ClientException as e:
            logger.debug(f"{self._log_prefix()}: stop during skip failed: {e}")
            self._skip_requested = False
            return False
        user_logger.info(f"{self._log_prefix()}: Skipped {self.now_playing.resource_id if self.now_playing else 'track'}")
        return True

    def _toggle_pause(self) -> PlayerState:
        vc = self.voice_client
        if self.state is PlayerState.PLAYING:
            vc.pause()
            self.state = PlayerState.PAUSED
            self._paused_for_presence = False
            self.timer.cancel()
            self.timer.arm(self.paused_delay, self._on_timer_expired)
            user_logger.info(f"{self._log_prefix()}: Paused")
        elif self.state is PlayerState.PAUSED:
            if self.voice_manager.is_alone_in_channel():
                # Stay paused and fall back to the alone countdown
                self._paused_for_presence = True
                self.timer.cancel()
                self.timer.arm(self.alone_delay, self._on_timer_expired)
                user_logger.info(f"{self._log_prefix()}: Resume refused, nobody is listening")
                return self.state
            vc.resume()
            self.state = PlayerState.PLAYING
            self._paused_for_presence = False
            self.timer.cancel()
            user_logger.info(f"{self._log_prefix()}: Resumed")
        return self.state

    async def _on_presence_changed(self) -> None:
        alone = self.voice_manager.is_alone_in_channel()

        if alone:
            if self.state is PlayerState.PLAYING:
                await self._pause_for_presence()
            elif self.state is PlayerState.IDLE:
                self.timer.arm(self.alone_delay, self._on_timer_expired)
            return

        if self.state is PlayerState.PAUSED and self._paused_for_presence:
            self.voice_client.resume()
            self.state = PlayerState.PLAYING
            self._paused_for_presence = False
            self.timer.cancel()
            user_logger.info(f"{self._log_prefix()}: Listener returned, auto-resuming")
            await safe_send(self.text_channel, MESSAGES['alone_resumed'])
        elif self.state is PlayerState.IDLE:
            self.timer.cancel()

    async def _pause_for_presence(self) -> None:
        """Pause because nobody is listening and start the alone countdown."""
        self.voice_client.pause()
        self.state = PlayerState.PAUSED
        self._paused_for_presence = True
        self.timer.cancel()
        self.timer.arm(self.alone_delay, self._on_timer_expired)
        user_logger.info(f"{self._log_prefix()}: Everyone left, auto-pausing")
        await safe_send(self.text_channel, MESSAGES['alone_paused'].format(seconds=int(self.alone_delay)))

    # =========================================================================
    # Transport
    # =========================================================================

    def cancel_active_session(self) -> None:
        """Invalidate the current play session so its callback is discarded."""
        session = self._playback_session
        if session is not None:
            session.cancel()
        self._playback_session = None

    async def _start_transport(self, item: QueueItem, path) -> None:
        """
        Hand a cached file to the voice client.

        Raises:
            TransportError: Voice client gone or refusing to play
        """
        if not self.voice_manager.is_connected():
            raise TransportError("voice client is not connected")

        vc = self.voice_client
        if self.voice_manager.is_busy():
            # Replacing a track that is still playing (e.g. repeat after a manual stop)
            with suppress_callbacks(self):
                vc.stop()
                waited = 0.0
                while self.voice_manager.is_busy() and waited < VOICE_STOP_MAX_WAIT:
                    await asyncio.sleep(VOICE_STOP_CHECK_INTERVAL)
                    waited += VOICE_STOP_CHECK_INTERVAL

        session = PlaybackSession(track_id=item.resource_id)
        self._playback_session = session
        loop = asyncio.get_running_loop()

        def after_track(error):
            """
            Runs on the audio thread when the source ends or is stopped.

            Only schedules work on the event loop; never touches player state here.
            """
            if error:
                logger.error(f"{self._log_prefix()}: Playback error: {error}")
            if self._suppress_callback or session.cancelled:
                return
            try:
                loop.call_soon_threadsafe(self._spawn_dispatch, PlayerEvent.TRACK_FINISHED, session)
            except RuntimeError:
                # Loop already closed (process shutting down)
                logger.debug(f"{self._log_prefix()}: Dropping track-finished callback, loop closed")

        try:
            source = self.audio_source_factory(str(path))
            vc.play(source, after=after_track)
        except (disnake.ClientException, OSError) as e:
            session.cancel()
            self._playback_session = None
            raise TransportError(str(e)) from e

        logger.debug(f"{self._log_prefix()}: Transport playing {path}")

    def _spawn_dispatch(self, event: PlayerEvent, session: Optional[PlaybackSession] = None) -> None:
        task = asyncio.create_task(self.dispatch(event, session=session))
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"{self._log_prefix()}: Player event failed", exc_info=task.exception())

    # =========================================================================
    # Notifications / history
    # =========================================================================

    async def _info_for(self, item: QueueItem) -> TrackInfo:
        try:
            return await self.fetcher.get_info(item.resource_id)
        except FetchFailed as e:
            logger.debug(f"{self._log_prefix()}: No metadata for {item.resource_id}: {e}")
            return TrackInfo(title=item.source_url, url=item.source_url)

    async def _title_for(self, item: QueueItem) -> str:
        return (await self._info_for(item)).title

    async def now_playing_embed(self) -> Optional[disnake.Embed]:
        """Embed for the current item, or None when nothing is playing."""
        item = self.now_playing
        if item is None:
            return None
        info = await self._info_for(item)
        return create_now_playing_embed(info, item, self.queue.size(), paused=self.state is PlayerState.PAUSED)

    async def _announce_now_playing(self, item: QueueItem) -> None:
        info = await self._info_for(item)
        await safe_send(self.text_channel, embed=create_now_playing_embed(info, item, self.queue.size()))

    async def _notify_skipped(self, item: QueueItem, attempts: int) -> None:
        title = await self._title_for(item)
        user_logger.warning(f"{self._log_prefix()}: Giving up on {item.resource_id} after {attempts} attempt(s)")
        await safe_send(self.text_channel, MESSAGES['fetch_skipped'].format(
            title=title, attempts=attempts,
        ))

    async def _record_play(self, item: QueueItem) -> None:
        try:
            await self.history.record_play(item.resource_id, item.requested_by)
        except PersistenceError as e:
            logger.warning(f"{self._log_prefix()}: Could not record play of {item.resource_id} (ignored): {e}")

    def _on_queue_change(self, items: List[QueueItem]) -> None:
        """Pre-fetch the new head while a session is active (cache warm-up only)."""
        if self.playing and items and not self.is_terminated:
            self.fetcher.prefetch(items[0].resource_id)

    # =========================================================================
    # Teardown
    # =========================================================================

    async def _wait_closed(self, delay: float) -> bool:
        """Sleep up to delay seconds. Returns True if the session closed meanwhile."""
        try:
            await asyncio.wait_for(self._closed.wait(), timeout=delay)
            return True
        except asyncio.TimeoutError:
            return False

    async def teardown(self, reason: str = "disconnect") -> None:
        """
        Terminate the session. Idempotent.

        Order: stop transport, cancel timer, detach listeners, disconnect
        voice, then deregister (last, so lookups never see a half-dead player).
        """
        if self.is_terminated:
            return
        self.state = PlayerState.TERMINATED
        self._closed.set()
        self.playing = False
        user_logger.info(f"{self._log_prefix()}: Session ended ({reason})")

        vc = self.voice_client
        if self.voice_manager.is_busy():
            with suppress_callbacks(self):
                try:
                    vc.stop()
                except disnake.ClientException as e:
                    logger.debug(f"{self._log_prefix()}: stop during teardown failed: {e}")
        self.cancel_active_session()

        self.timer.cancel()

        self.queue.on_change = None

        await safe_disconnect(vc, force=True)
        self.voice_manager.set_voice_client(None)

        self.registry.remove(self.guild_id, self)
