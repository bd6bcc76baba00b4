# test_music_cog.py

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from riff.cogs.music import MusicCog, NowPlayingView, now_playing_embed
from riff.models import Requester, SearchResult
from riff.player import GuildPlayer, LoopMode


# --- Fixtures ---

@pytest.fixture
def mock_bot():
    bot = MagicMock()
    bot.user = None
    return bot


@pytest.fixture
def dj():
    service = MagicMock()
    service.is_dj = AsyncMock(return_value=True)
    return service


@pytest.fixture
def youtube():
    yt = MagicMock()
    yt.parse_url.return_value = None
    yt.search = AsyncMock(return_value=SearchResult())
    yt.get_track = AsyncMock(return_value=None)
    return yt


@pytest.fixture
def autoplay():
    pipeline = MagicMock()
    pipeline.run = AsyncMock()
    return pipeline


@pytest.fixture
def music_cog(mock_bot, youtube, autoplay, dj):
    return MusicCog(mock_bot, youtube=youtube, autoplay=autoplay, dj=dj)


@pytest.fixture
def voice_client():
    vc = MagicMock()
    vc.is_connected.return_value = True
    vc.is_playing.return_value = True
    vc.is_paused.return_value = False
    vc.channel.id = 555
    return vc


# --- Commands ---

@pytest.mark.asyncio
async def test_play_requires_voice_channel(music_cog, mock_interaction):
    mock_interaction.user.voice = None

    await music_cog.play.callback(music_cog, mock_interaction, query="believer")

    mock_interaction.response.send_message.assert_awaited_once()
    assert mock_interaction.response.send_message.call_args.kwargs["ephemeral"] is True


@pytest.mark.asyncio
async def test_play_queues_first_search_result(music_cog, youtube, mock_interaction, voice_client, make_track):
    mock_interaction.user.voice.channel.connect = AsyncMock(return_value=voice_client)
    youtube.search.return_value = SearchResult(tracks=[make_track("Believer"), make_track("Other")])

    with patch.object(GuildPlayer, "play", new_callable=AsyncMock) as mock_play:
        await music_cog.play.callback(music_cog, mock_interaction, query="believer")

        mock_play.assert_awaited_once()

    player = music_cog.players[mock_interaction.guild_id]
    assert [t.title for t in player.queue.tracks] == ["Believer"]
    assert player.queue.tracks[0].requester == Requester(id="42")
    assert player.text_channel_id == mock_interaction.channel_id
    sent_embed = mock_interaction.followup.send.call_args.kwargs["embed"]
    assert "Added to Queue" in sent_embed.title


@pytest.mark.asyncio
async def test_play_reports_no_results(music_cog, mock_interaction, voice_client):
    mock_interaction.user.voice.channel.connect = AsyncMock(return_value=voice_client)

    await music_cog.play.callback(music_cog, mock_interaction, query="zzzz")

    assert "No results" in mock_interaction.followup.send.call_args.args[0]
    assert len(music_cog.players[mock_interaction.guild_id].queue) == 0


@pytest.mark.asyncio
async def test_fairplay_reorders_queue(music_cog, mock_interaction, make_track, alice, bob):
    player = music_cog.get_player(mock_interaction.guild_id)
    player.queue.add([
        make_track("a1", alice), make_track("a2", alice), make_track("a3", alice), make_track("b1", bob),
    ])

    await music_cog.fairplay.callback(music_cog, mock_interaction)

    assert [t.title for t in player.queue.tracks] == ["a1", "b1", "a2", "a3"]
    assert "4 tracks from 2 requesters" in mock_interaction.response.send_message.call_args.args[0]


@pytest.mark.asyncio
async def test_fairplay_empty_queue(music_cog, mock_interaction):
    await music_cog.fairplay.callback(music_cog, mock_interaction)
    assert mock_interaction.response.send_message.call_args.kwargs["ephemeral"] is True


@pytest.mark.asyncio
async def test_fairplay_requires_dj(music_cog, dj, mock_interaction, make_track, alice, bob):
    dj.is_dj.return_value = False
    player = music_cog.get_player(mock_interaction.guild_id)
    player.queue.add([make_track("a1", alice), make_track("a2", alice), make_track("b1", bob)])

    await music_cog.fairplay.callback(music_cog, mock_interaction)

    assert [t.title for t in player.queue.tracks] == ["a1", "a2", "b1"]
    assert "DJ role" in mock_interaction.response.send_message.call_args.args[0]


@pytest.mark.asyncio
async def test_queue_end_runs_autoplay(music_cog, autoplay, make_track):
    player = music_cog.get_player(1000)
    player.autoplay = True
    last = make_track("last")

    await music_cog._on_queue_end(player, last)

    autoplay.run.assert_awaited_once_with(player, last, True)


@pytest.mark.asyncio
async def test_autoplay_command_toggles_player(music_cog, mock_interaction):
    await music_cog.autoplay.callback(music_cog, mock_interaction, enabled=True)
    assert music_cog.get_player(mock_interaction.guild_id).autoplay is True


# --- Now Playing controls ---

def test_now_playing_embed_marks_streams(make_track, alice):
    embed = now_playing_embed(make_track("Radio", alice, is_stream=True, duration_ms=None))
    fields = {f.name: f.value for f in embed.fields}
    assert fields["Duration"] == "LIVE"
    assert embed.footer.text == "Requested by alice"


@pytest.mark.asyncio
async def test_view_initial_buttons(music_cog, voice_client, make_track):
    player = music_cog.get_player(1000)
    player.voice_client = voice_client

    view = NowPlayingView(music_cog, player, make_track("a"))

    assert view.previous_button.disabled is True
    assert view.resume_button.label == "Pause"


@pytest.mark.asyncio
async def test_view_rejects_users_outside_voice(music_cog, voice_client, mock_interaction, make_track):
    player = music_cog.get_player(1000)
    player.voice_client = voice_client
    mock_interaction.user.voice.channel.id = 999
    view = NowPlayingView(music_cog, player, make_track("a"))

    assert await view.interaction_check(mock_interaction) is False
    assert "<#555>" in mock_interaction.response.send_message.call_args.args[0]


@pytest.mark.asyncio
async def test_loop_button_cycles_and_updates_footer(music_cog, voice_client, mock_interaction, make_track):
    player = music_cog.get_player(1000)
    player.voice_client = voice_client
    view = NowPlayingView(music_cog, player, make_track("a"))

    await view.loop_button.callback(mock_interaction)

    assert player.loop is LoopMode.REPEAT
    embed = mock_interaction.response.edit_message.call_args.kwargs["embed"]
    assert embed.footer.text == "Looping by Alice"


@pytest.mark.asyncio
async def test_skip_button_with_empty_queue(music_cog, voice_client, mock_interaction, make_track):
    player = music_cog.get_player(1000)
    player.voice_client = voice_client
    view = NowPlayingView(music_cog, player, make_track("a"))

    await view.skip_button.callback(mock_interaction)

    voice_client.stop.assert_not_called()
    assert mock_interaction.response.send_message.call_args.kwargs["ephemeral"] is True


@pytest.mark.asyncio
async def test_buttons_require_dj(music_cog, dj, voice_client, mock_interaction, make_track):
    dj.is_dj.return_value = False
    player = music_cog.get_player(1000)
    player.voice_client = voice_client
    view = NowPlayingView(music_cog, player, make_track("a"))

    await view.stop_button.callback(mock_interaction)

    voice_client.stop.assert_not_called()
    assert "DJ role" in mock_interaction.response.send_message.call_args.args[0]


@pytest.mark.asyncio
async def test_stop_button_removes_controls(music_cog, voice_client, mock_interaction, make_track):
    player = music_cog.get_player(1000)
    player.voice_client = voice_client
    player.queue.add(make_track("b"))
    view = NowPlayingView(music_cog, player, make_track("a"))

    await view.stop_button.callback(mock_interaction)

    assert len(player.queue) == 0
    voice_client.stop.assert_called_once()
    assert mock_interaction.response.edit_message.call_args.kwargs["view"] is None
