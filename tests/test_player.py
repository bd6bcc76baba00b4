import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import discord
import pytest

from riff.player import GuildPlayer, LoopMode, TrackQueue


def titles(tracks):
    return [t.title for t in tracks]


@pytest.fixture
def player():
    return GuildPlayer(1000, resolver=MagicMock(get_stream_url=AsyncMock(return_value=None)))


@pytest.fixture
def voice_client():
    vc = MagicMock()
    vc.is_connected.return_value = True
    vc.is_playing.return_value = True
    vc.is_paused.return_value = False
    vc.disconnect = AsyncMock()
    return vc


# --- TrackQueue ---

def test_queue_add_single_and_many(make_track):
    queue = TrackQueue()
    queue.add(make_track("a"))
    queue.add([make_track("b"), make_track("c")])
    queue.add_next(make_track("z"))

    assert titles(queue.tracks) == ["z", "a", "b", "c"]
    assert len(queue) == 4


def test_queue_snapshot_is_a_copy(make_track):
    queue = TrackQueue([make_track("a")])
    snapshot = queue.tracks
    snapshot.clear()
    assert len(queue) == 1


def test_queue_pop_and_remove(make_track):
    queue = TrackQueue([make_track("a"), make_track("b"), make_track("c")])
    assert queue.pop_next().title == "a"
    assert queue.remove(1).title == "c"
    assert titles(queue.tracks) == ["b"]
    queue.clear()
    assert queue.pop_next() is None


def test_loop_mode_cycles():
    assert LoopMode.OFF.next() is LoopMode.REPEAT
    assert LoopMode.REPEAT.next() is LoopMode.QUEUE
    assert LoopMode.QUEUE.next() is LoopMode.OFF


# --- GuildPlayer ---

@pytest.mark.asyncio
async def test_play_without_voice_does_nothing(player, make_track):
    player.queue.add(make_track("a"))
    await player.play()
    assert not player.playing


def test_previous_without_history(player):
    assert player.play_previous() is False


def test_previous_requeues_current_behind_previous(player, voice_client, make_track):
    player.voice_client = voice_client
    player.history.append(make_track("old"))
    player.current = make_track("now")
    player.queue.add(make_track("next"))

    assert player.play_previous() is True

    assert titles(player.queue.tracks) == ["old", "now", "next"]
    voice_client.stop.assert_called_once()


def test_toggle_pause(player, voice_client):
    player.voice_client = voice_client
    assert player.toggle_pause() is True
    voice_client.pause.assert_called_once()

    voice_client.is_paused.return_value = True
    assert player.toggle_pause() is False
    voice_client.resume.assert_called_once()


def test_stop_clears_queue(player, voice_client, make_track):
    player.voice_client = voice_client
    player.queue.add([make_track("a"), make_track("b")])

    player.stop()

    assert len(player.queue) == 0
    voice_client.stop.assert_called_once()


def test_finished_track_goes_to_history(player, make_track):
    track = make_track("a")
    player._after_track(track)
    assert list(player.history) == [track]
    assert len(player.queue) == 0


def test_repeat_mode_replays_track_unless_skipped(player, voice_client, make_track):
    player.loop = LoopMode.REPEAT
    track = make_track("a")

    player._after_track(track)
    assert titles(player.queue.tracks) == ["a"]

    player.queue.clear()
    player.voice_client = voice_client
    player.skip()
    player._after_track(track)
    assert player.queue.tracks == []


def test_queue_mode_appends_finished_track(player, make_track):
    player.loop = LoopMode.QUEUE
    player.queue.add(make_track("b"))

    player._after_track(make_track("a"))

    assert titles(player.queue.tracks) == ["b", "a"]


@pytest.mark.asyncio
async def test_disconnect_drops_voice_client(player, voice_client):
    player.voice_client = voice_client
    await player.disconnect()
    voice_client.disconnect.assert_awaited_once_with(force=True)
    assert player.voice_client is None


# --- Playback loop ---

@pytest.fixture
def looping_player(voice_client):
    """A connected player whose tracks finish instantly; "dead" tracks have no stream."""
    resolver = MagicMock(get_stream_url=AsyncMock(
        side_effect=lambda video_id: None if video_id.startswith("dead") else f"https://stream/{video_id}"
    ))
    voice_client.is_playing.return_value = False
    voice_client.play.side_effect = lambda source, after: after(None)
    player = GuildPlayer(1000, resolver)
    player.voice_client = voice_client
    return player


async def run_until_idle(player):
    with patch.object(discord.FFmpegOpusAudio, "from_probe", new=AsyncMock(return_value=MagicMock())):
        await player.play()
        await asyncio.wait_for(player._task, timeout=2)


@pytest.mark.asyncio
async def test_loop_fires_hooks_in_order(looping_player, make_track):
    started = AsyncMock()
    ended = AsyncMock()
    looping_player.on_track_start = started
    looping_player.on_queue_end = ended
    a, b = make_track("a"), make_track("b")
    looping_player.queue.add([a, b])

    await run_until_idle(looping_player)

    assert [c.args[1] for c in started.await_args_list] == [a, b]
    ended.assert_awaited_once_with(looping_player, b)
    assert list(looping_player.history) == [a, b]
    assert looping_player.current is None


@pytest.mark.asyncio
async def test_queue_end_runs_once_when_follow_ups_cannot_start(looping_player, make_track):
    seed = make_track("seed")

    async def queue_unplayable(player, last):
        player.queue.add(make_track("dead-1"))

    ended = AsyncMock(side_effect=queue_unplayable)
    looping_player.on_queue_end = ended
    looping_player.queue.add(seed)

    await run_until_idle(looping_player)

    ended.assert_awaited_once_with(looping_player, seed)
    assert len(looping_player.queue) == 0


@pytest.mark.asyncio
async def test_queue_end_rearms_after_a_follow_up_plays(looping_player, make_track):
    seed, follow_up = make_track("seed"), make_track("follow-up")

    async def queue_once(player, last):
        if last is seed:
            player.queue.add(follow_up)

    ended = AsyncMock(side_effect=queue_once)
    looping_player.on_queue_end = ended
    looping_player.queue.add(seed)

    await run_until_idle(looping_player)

    assert [c.args[1] for c in ended.await_args_list] == [seed, follow_up]


@pytest.mark.asyncio
async def test_failing_queue_end_hook_is_logged(looping_player, make_track, caplog):
    looping_player.on_queue_end = AsyncMock(side_effect=RuntimeError("boom"))
    looping_player.queue.add(make_track("a"))

    with caplog.at_level(logging.ERROR, logger="riff.player"):
        await run_until_idle(looping_player)

    assert "Queue end handler failed" in caplog.text
    assert looping_player._task.exception() is None
