"""
Guild Player - per-guild queue, loop mode and the playback loop
"""
import asyncio
import logging
from collections import deque
from enum import Enum
from typing import Awaitable, Callable, Sequence

import discord

from riff.models import Track

logger = logging.getLogger(__name__)

FFMPEG_OPTIONS = {
    "before_options": "-reconnect 1 -reconnect_streamed 1 -reconnect_delay_max 5 -nostdin",
    "options": "-vn",
}


class LoopMode(str, Enum):
    OFF = "off"
    REPEAT = "repeat"
    QUEUE = "queue"

    def next(self) -> "LoopMode":
        """off -> repeat -> queue -> off"""
        order = [LoopMode.OFF, LoopMode.REPEAT, LoopMode.QUEUE]
        return order[(order.index(self) + 1) % len(order)]


class TrackQueue:
    """Upcoming tracks, in play order."""

    def __init__(self, tracks: Sequence[Track] = ()):
        self._tracks: list[Track] = list(tracks)

    @property
    def tracks(self) -> list[Track]:
        """Snapshot of the upcoming tracks."""
        return list(self._tracks)

    def add(self, tracks: Track | Sequence[Track]) -> None:
        if isinstance(tracks, Track):
            self._tracks.append(tracks)
        else:
            self._tracks.extend(tracks)

    def add_next(self, track: Track) -> None:
        self._tracks.insert(0, track)

    def clear(self) -> None:
        self._tracks.clear()

    def remove(self, index: int) -> Track:
        return self._tracks.pop(index)

    def pop_next(self) -> Track | None:
        return self._tracks.pop(0) if self._tracks else None

    def __len__(self) -> int:
        return len(self._tracks)


TrackStartHook = Callable[["GuildPlayer", Track], Awaitable[None]]
QueueEndHook = Callable[["GuildPlayer", Track | None], Awaitable[None]]


class GuildPlayer:
    """Per-guild music player state and playback loop."""

    HISTORY_SIZE = 50
    PROBE_TIMEOUT = 10.0

    def __init__(
        self,
        guild_id: int,
        resolver,
        *,
        autoplay: bool = False,
        on_track_start: TrackStartHook | None = None,
        on_queue_end: QueueEndHook | None = None,
    ):
        self.guild_id = guild_id
        self.resolver = resolver  # anything with async get_stream_url(video_id)
        self.voice_client: discord.VoiceClient | None = None
        self.queue = TrackQueue()
        self.current: Track | None = None
        self.history: deque[Track] = deque(maxlen=self.HISTORY_SIZE)
        self.loop = LoopMode.OFF
        self.autoplay = autoplay
        self.text_channel_id: int | None = None
        self.now_playing_message: discord.Message | None = None

        self.on_track_start = on_track_start
        self.on_queue_end = on_queue_end

        self._task: asyncio.Task | None = None
        self._stopping = False
        self._skipped = False
        self._rewinding = False

    @property
    def connected(self) -> bool:
        return bool(self.voice_client and self.voice_client.is_connected())

    @property
    def playing(self) -> bool:
        """True while the playback loop is running."""
        return self._task is not None and not self._task.done()

    @property
    def paused(self) -> bool:
        return bool(self.voice_client and self.voice_client.is_paused())

    async def play(self) -> None:
        """Start the playback loop if it isn't already running."""
        if self.playing or not self.connected:
            return
        self._stopping = False
        self._task = asyncio.create_task(self._play_loop())

    def skip(self) -> None:
        if self.voice_client and (self.voice_client.is_playing() or self.voice_client.is_paused()):
            self._skipped = True
            self.voice_client.stop()

    def toggle_pause(self) -> bool:
        """Pause or resume. Returns True if now paused."""
        if not self.voice_client:
            return False
        if self.voice_client.is_paused():
            self.voice_client.resume()
            return False
        if self.voice_client.is_playing():
            self.voice_client.pause()
            return True
        return False

    def play_previous(self) -> bool:
        """Replay the last finished track, keeping the current one up next."""
        if not self.history:
            return False
        previous = self.history.pop()
        if self.current:
            self.queue.add_next(self.current)
        self.queue.add_next(previous)
        if self.voice_client and (self.voice_client.is_playing() or self.voice_client.is_paused()):
            self._rewinding = True
            self._skipped = True
            self.voice_client.stop()
        return True

    def stop(self) -> None:
        """Clear the queue and end playback without firing the queue-end hook."""
        self._stopping = True
        self.queue.clear()
        if self.voice_client and (self.voice_client.is_playing() or self.voice_client.is_paused()):
            self.voice_client.stop()

    async def disconnect(self) -> None:
        self.stop()
        if self.voice_client:
            try:
                await self.voice_client.disconnect(force=True)
            except Exception as e:
                logger.debug(f"Voice disconnect failed for guild {self.guild_id}: {e}")
        self.voice_client = None

    def _next_track(self) -> Track | None:
        return self.queue.pop_next()

    def _after_track(self, track: Track) -> None:
        manual = self._skipped
        rewinding = self._rewinding
        self._skipped = False
        self._rewinding = False

        if not rewinding:
            self.history.append(track)
        if self.loop is LoopMode.REPEAT and not manual:
            self.queue.add_next(track)
        elif self.loop is LoopMode.QUEUE and not rewinding:
            self.queue.add(track)

    async def _play_loop(self) -> None:
        """Main playback loop for a guild."""
        last: Track | None = None
        # Queue-end hook runs at most once per successfully played track
        hook_armed = True
        try:
            while self.connected and not self._stopping:
                track = self._next_track()
                if track is None:
                    if not hook_armed:
                        break
                    hook_armed = False
                    if self.on_queue_end:
                        try:
                            await self.on_queue_end(self, last)
                        except Exception as e:
                            logger.error(f"Queue end handler failed for guild {self.guild_id}: {e}")
                    track = self._next_track()
                    if track is None or self._stopping:
                        break

                if not await self._play_track(track):
                    continue

                last = track
                hook_armed = True
                if not self._stopping:
                    self._after_track(track)
        finally:
            self.current = None

    async def _play_track(self, track: Track) -> bool:
        """Play one track to completion. Returns False if it could not be started."""
        url = track.stream_url or (await self.resolver.get_stream_url(track.video_id) if track.video_id else None)
        if not url:
            logger.error(f"Failed to get stream URL for {track.title}")
            return False

        try:
            source = await asyncio.wait_for(
                discord.FFmpegOpusAudio.from_probe(url, **FFMPEG_OPTIONS),
                timeout=self.PROBE_TIMEOUT
            )
        except asyncio.TimeoutError:
            logger.error(f"Audio probe timed out for {track.title}")
            return False
        except Exception as e:
            logger.error(f"Audio probe failed for {track.title}: {e}")
            return False

        if not self.connected:
            return False

        loop = asyncio.get_running_loop()
        play_complete = asyncio.Event()

        def after_play(error):
            if error:
                logger.error(f"Playback error: {error}")
            loop.call_soon_threadsafe(play_complete.set)

        self.current = track
        self.voice_client.play(source, after=after_play)
        logger.info(f"Playing: {track.title} | {track.author} | guild {self.guild_id} | {track.source.value}")

        if self.on_track_start:
            try:
                await self.on_track_start(self, track)
            except Exception as e:
                logger.error(f"Track start handler failed for {track.title}: {e}")

        # Watchdog: song length plus a buffer, unbounded for streams
        timeout = None
        if track.duration_ms and not track.is_stream:
            timeout = track.duration_ms / 1000 + 20
        while True:
            try:
                await asyncio.wait_for(play_complete.wait(), timeout=timeout)
                break
            except asyncio.TimeoutError:
                if self.paused:
                    continue
                logger.warning(f"WATCHDOG: {track.title} did not finish after {timeout:.0f}s, stopping it")
                if self.voice_client and self.voice_client.is_playing():
                    self.voice_client.stop()
                break

        self.current = None
        return True
