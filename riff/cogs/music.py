"""
Music Cog - Playback commands, now-playing controls and autoplay
"""
import logging

import discord
from discord import app_commands
from discord.ext import commands

from riff.database.crud import GuildCRUD
from riff.models import Track, requester_from
from riff.player import GuildPlayer, LoopMode
from riff.services.autoplay import AutoplayPipeline
from riff.services.dj import DJService
from riff.services.fair_queue import apply_fair_play
from riff.services.youtube import SearchError, SearchSource, YouTubeService

logger = logging.getLogger(__name__)

EMBED_COLOR = discord.Color.from_rgb(124, 58, 237)

LOOP_FOOTERS = {
    LoopMode.REPEAT: "Looping",
    LoopMode.QUEUE: "Looping Queue",
    LoopMode.OFF: "Looping Off",
}


def now_playing_embed(track: Track, bot_user: discord.ClientUser | None = None) -> discord.Embed:
    """Build the Now Playing embed for a track."""
    embed = discord.Embed(
        description=f"**[{track.title}]({track.uri})**",
        color=EMBED_COLOR,
        timestamp=discord.utils.utcnow(),
    )
    embed.set_author(
        name="Now Playing",
        icon_url=bot_user.display_avatar.url if bot_user else None,
    )
    embed.add_field(name="Duration", value=track.duration_label, inline=True)
    embed.add_field(name="Author", value=track.author, inline=True)
    if track.from_autoplay:
        embed.add_field(name="Source", value="Autoplay", inline=True)
    if track.artwork_url:
        embed.set_thumbnail(url=track.artwork_url)
    if track.requester:
        embed.set_footer(text=f"Requested by {track.requester.username}", icon_url=track.requester.avatar_url)
    return embed


class NowPlayingView(discord.ui.View):
    """Buttons attached to the Now Playing message."""

    def __init__(self, cog: "MusicCog", player: GuildPlayer, track: Track):
        super().__init__(timeout=None)
        self.cog = cog
        self.player = player
        self.track = track
        self.embed = now_playing_embed(track, cog.bot.user)
        self.refresh()

    def refresh(self) -> None:
        """Sync button state with the player."""
        self.previous_button.disabled = not self.player.history
        if self.player.paused:
            self.resume_button.label = "Resume"
            self.resume_button.style = discord.ButtonStyle.success
        else:
            self.resume_button.label = "Pause"
            self.resume_button.style = discord.ButtonStyle.secondary

    async def interaction_check(self, interaction: discord.Interaction) -> bool:
        """Only members in the bot's voice channel may use the controls."""
        vc = self.player.voice_client
        user_voice = getattr(interaction.user, "voice", None)
        if vc and vc.channel and user_voice and user_voice.channel and user_voice.channel.id == vc.channel.id:
            return True
        channel_ref = f"<#{vc.channel.id}>" if vc and vc.channel else "None"
        await interaction.response.send_message(
            f"You are not connected to {channel_ref} to use these buttons.",
            ephemeral=True,
        )
        return False

    async def _authorized(self, interaction: discord.Interaction) -> bool:
        if await self.cog.dj.is_dj(interaction.user):
            return True
        await interaction.response.send_message("You need to have the DJ role to use this command.", ephemeral=True)
        return False

    async def _update(self, interaction: discord.Interaction, action: str, *, keep_buttons: bool = True) -> None:
        self.embed.set_footer(text=f"{action} by {interaction.user.display_name}", icon_url=interaction.user.display_avatar.url)
        if keep_buttons:
            self.refresh()
            await interaction.response.edit_message(embed=self.embed, view=self)
        else:
            self.stop()
            await interaction.response.edit_message(embed=self.embed, view=None)

    @discord.ui.button(label="Previous", style=discord.ButtonStyle.secondary)
    async def previous_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        if not await self._authorized(interaction):
            return
        if not self.player.play_previous():
            await interaction.response.send_message("There is no previous song.", ephemeral=True)
            return
        await self.player.play()
        await self._update(interaction, "Previous")

    @discord.ui.button(label="Pause", style=discord.ButtonStyle.secondary)
    async def resume_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        if not await self._authorized(interaction):
            return
        paused = self.player.toggle_pause()
        await self._update(interaction, "Paused" if paused else "Resumed")

    @discord.ui.button(label="Stop", style=discord.ButtonStyle.danger)
    async def stop_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        if not await self._authorized(interaction):
            return
        self.player.stop()
        await self._update(interaction, "Stopped", keep_buttons=False)

    @discord.ui.button(label="Skip", style=discord.ButtonStyle.secondary)
    async def skip_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        if not await self._authorized(interaction):
            return
        if not len(self.player.queue):
            await interaction.response.send_message("There is no more song in the queue.", ephemeral=True)
            return
        self.player.skip()
        await self._update(interaction, "Skipped")

    @discord.ui.button(label="Loop", style=discord.ButtonStyle.secondary)
    async def loop_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        if not await self._authorized(interaction):
            return
        self.player.loop = self.player.loop.next()
        await self._update(interaction, LOOP_FOOTERS[self.player.loop])


class MusicCog(commands.Cog):
    """Music playback commands and queue management."""

    QUEUE_PAGE_SIZE = 10

    def __init__(
        self,
        bot: commands.Bot,
        youtube: YouTubeService,
        autoplay: AutoplayPipeline,
        dj: DJService,
        guild_crud: GuildCRUD | None = None,
        autoplay_default: bool = False,
    ):
        self.bot = bot
        self.youtube = youtube
        self.autoplay_pipeline = autoplay
        self.dj = dj
        self.guild_crud = guild_crud
        self.autoplay_default = autoplay_default
        self.players: dict[int, GuildPlayer] = {}

    async def cog_unload(self):
        """Disconnect every player when the cog goes away."""
        for player in list(self.players.values()):
            await player.disconnect()
        logger.info("Music cog unloaded")

    def get_player(self, guild_id: int) -> GuildPlayer:
        """Get or create a player for a guild."""
        if guild_id not in self.players:
            self.players[guild_id] = GuildPlayer(
                guild_id,
                self.youtube,
                autoplay=self.autoplay_default,
                on_track_start=self._on_track_start,
                on_queue_end=self._on_queue_end,
            )
        return self.players[guild_id]

    async def _load_autoplay(self, player: GuildPlayer) -> None:
        if not self.guild_crud:
            return
        try:
            player.autoplay = bool(await self.guild_crud.get_setting(player.guild_id, "autoplay", self.autoplay_default))
        except Exception as e:
            logger.error(f"Failed to load autoplay setting for guild {player.guild_id}: {e}")

    async def _require_dj(self, interaction: discord.Interaction) -> bool:
        if await self.dj.is_dj(interaction.user):
            return True
        await interaction.response.send_message("You need to have the DJ role to use this command.", ephemeral=True)
        return False

    # ==================== PLAYER HOOKS ====================

    async def _on_track_start(self, player: GuildPlayer, track: Track) -> None:
        """Send the Now Playing message with controls."""
        if not player.text_channel_id:
            return
        channel = self.bot.get_channel(player.text_channel_id)
        if not channel:
            return

        if player.now_playing_message:
            try:
                await player.now_playing_message.edit(view=None)
            except discord.HTTPException as e:
                logger.debug(f"Failed to clear old Now Playing buttons: {e}")

        view = NowPlayingView(self, player, track)
        player.now_playing_message = await channel.send(embed=view.embed, view=view)

    async def _on_queue_end(self, player: GuildPlayer, last_track: Track | None) -> None:
        """Queue ran dry: let autoplay top it up."""
        await self.autoplay_pipeline.run(player, last_track, player.autoplay)

    # ==================== COMMANDS ====================

    @app_commands.command(name="play", description="Play a song or add it to the queue")
    @app_commands.describe(query="Song name or YouTube link")
    async def play(self, interaction: discord.Interaction, query: str):
        """Search for a song and add it to the queue."""
        voice = getattr(interaction.user, "voice", None)
        if not voice or not voice.channel:
            await interaction.response.send_message("❌ You need to be in a voice channel!", ephemeral=True)
            return

        await interaction.response.defer()

        player = self.get_player(interaction.guild_id)
        if not player.connected:
            try:
                player.voice_client = await voice.channel.connect(self_deaf=True, timeout=20.0)
                logger.info(f"Connected to {voice.channel.name} in {interaction.guild.name}")
            except Exception as e:
                logger.error(f"Voice connect failed in guild {interaction.guild_id}: {e}")
                await interaction.followup.send(f"❌ Failed to connect: {e}", ephemeral=True)
                return
            await self._load_autoplay(player)

        requester = requester_from(interaction.user)
        video_id = self.youtube.parse_url(query)
        track = None
        if video_id:
            track = await self.youtube.get_track(video_id, requester)
        else:
            try:
                result = await self.youtube.search(query, SearchSource.YOUTUBE_MUSIC, requester)
                track = result.tracks[0] if result.tracks else None
            except SearchError as e:
                logger.error(f"Search failed: {e}")

        if not track:
            await interaction.followup.send(f"❌ No results found for: `{query}`", ephemeral=True)
            return

        player.queue.add(track)
        player.text_channel_id = interaction.channel_id
        position = len(player.queue)
        await player.play()

        embed = discord.Embed(
            title="🎵 Added to Queue",
            description=f"**[{track.title}]({track.uri})**\nby {track.author}",
            color=discord.Color.green()
        )
        embed.add_field(name="Duration", value=track.duration_label, inline=True)
        embed.add_field(name="Position", value=str(position), inline=True)
        embed.set_footer(text=f"Requested by {interaction.user.display_name}")
        await interaction.followup.send(embed=embed)

    @app_commands.command(name="pause", description="Pause the current song")
    async def pause(self, interaction: discord.Interaction):
        player = self.get_player(interaction.guild_id)
        if player.voice_client and player.voice_client.is_playing():
            player.voice_client.pause()
            await interaction.response.send_message("⏸️ Paused")
        else:
            await interaction.response.send_message("❌ Nothing is playing", ephemeral=True)

    @app_commands.command(name="resume", description="Resume the paused song")
    async def resume(self, interaction: discord.Interaction):
        player = self.get_player(interaction.guild_id)
        if player.paused:
            player.voice_client.resume()
            await interaction.response.send_message("▶️ Resumed")
        else:
            await interaction.response.send_message("❌ Nothing is paused", ephemeral=True)

    @app_commands.command(name="skip", description="Skip the current song")
    async def skip(self, interaction: discord.Interaction):
        if not await self._require_dj(interaction):
            return
        player = self.get_player(interaction.guild_id)
        if not player.current:
            await interaction.response.send_message("❌ Nothing is playing", ephemeral=True)
            return
        player.skip()
        await interaction.response.send_message("⏭️ Skipped!")

    @app_commands.command(name="previous", description="Play the previous song")
    async def previous(self, interaction: discord.Interaction):
        if not await self._require_dj(interaction):
            return
        player = self.get_player(interaction.guild_id)
        if not player.play_previous():
            await interaction.response.send_message("❌ There is no previous song.", ephemeral=True)
            return
        await player.play()
        await interaction.response.send_message("⏮️ Playing the previous song")

    @app_commands.command(name="stop", description="Stop playback, clear the queue and leave")
    async def stop(self, interaction: discord.Interaction):
        if not await self._require_dj(interaction):
            return
        player = self.get_player(interaction.guild_id)
        if not player.voice_client:
            await interaction.response.send_message("❌ I'm not in a voice channel", ephemeral=True)
            return
        await player.disconnect()
        await interaction.response.send_message("⏹️ Stopped and cleared queue!")

    @app_commands.command(name="queue", description="Show the current queue")
    async def queue(self, interaction: discord.Interaction):
        player = self.get_player(interaction.guild_id)
        embed = discord.Embed(title="🎵 Queue", color=discord.Color.blue())

        if player.current:
            embed.add_field(
                name="Now Playing",
                value=f"**{player.current.title}**\nby {player.current.author}",
                inline=False
            )

        tracks = player.queue.tracks
        if not tracks:
            embed.add_field(name="Up Next", value="Queue is empty", inline=False)
        else:
            lines = []
            for i, track in enumerate(tracks[: self.QUEUE_PAGE_SIZE], 1):
                who = "autoplay" if track.from_autoplay else (track.requester.username if track.requester else "unknown")
                lines.append(f"{i}. **{track.title}** - {track.author} ({who})")
            if len(tracks) > self.QUEUE_PAGE_SIZE:
                lines.append(f"...and {len(tracks) - self.QUEUE_PAGE_SIZE} more")
            embed.add_field(name="Up Next", value="\n".join(lines), inline=False)

        embed.set_footer(text=f"Loop: {player.loop.value} | Autoplay: {'on' if player.autoplay else 'off'}")
        await interaction.response.send_message(embed=embed, ephemeral=True)

    @app_commands.command(name="nowplaying", description="Show the current song")
    async def nowplaying(self, interaction: discord.Interaction):
        player = self.get_player(interaction.guild_id)
        if not player.current:
            await interaction.response.send_message("❌ Nothing is playing", ephemeral=True)
            return
        await interaction.response.send_message(embed=now_playing_embed(player.current, self.bot.user), ephemeral=True)

    @app_commands.command(name="clear", description="Clear the queue (DJ only)")
    async def clear(self, interaction: discord.Interaction):
        if not await self._require_dj(interaction):
            return
        player = self.get_player(interaction.guild_id)
        player.queue.clear()
        await interaction.response.send_message("🗑️ Queue cleared!")

    @app_commands.command(name="loop", description="Cycle loop mode: off, track, queue")
    async def loop(self, interaction: discord.Interaction):
        if not await self._require_dj(interaction):
            return
        player = self.get_player(interaction.guild_id)
        player.loop = player.loop.next()
        await interaction.response.send_message(f"🔁 Loop mode: **{player.loop.value}**")

    @app_commands.command(name="autoplay", description="Toggle autoplay when the queue runs out")
    @app_commands.describe(enabled="Enable or disable autoplay")
    async def autoplay(self, interaction: discord.Interaction, enabled: bool):
        player = self.get_player(interaction.guild_id)
        player.autoplay = enabled
        if self.guild_crud:
            try:
                await self.guild_crud.set_setting(interaction.guild_id, "autoplay", enabled)
            except Exception as e:
                logger.error(f"Failed to save autoplay setting: {e}")
        msg = "✅ Autoplay enabled!" if enabled else "❌ Autoplay disabled!"
        await interaction.response.send_message(msg)

    @app_commands.command(name="fairplay", description="Interleave the queue so every requester gets a turn")
    async def fairplay(self, interaction: discord.Interaction):
        if not await self._require_dj(interaction):
            return
        player = self.get_player(interaction.guild_id)
        if not len(player.queue):
            await interaction.response.send_message("❌ The queue is empty", ephemeral=True)
            return
        fair = apply_fair_play(player.queue)
        requesters = {t.requester.id for t in fair if t.requester}
        await interaction.response.send_message(
            f"⚖️ Fair play applied: {len(fair)} tracks from {len(requesters)} requesters"
        )

    # ==================== EVENTS ====================

    @commands.Cog.listener()
    async def on_voice_state_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState
    ):
        """Leave when everyone else has left the channel."""
        if member.bot:
            return
        player = self.players.get(member.guild.id)
        if not player or not player.voice_client or not player.voice_client.channel:
            return
        members = [m for m in player.voice_client.channel.members if not m.bot]
        if not members:
            await player.disconnect()
            logger.info(f"Disconnected from {member.guild.name} - everyone left")


async def setup(bot: commands.Bot):
    """Load the music cog."""
    await bot.add_cog(MusicCog(
        bot,
        youtube=bot.youtube,
        autoplay=bot.autoplay,
        dj=bot.dj,
        guild_crud=bot.guild_crud,
        autoplay_default=bot.config.AUTOPLAY_DEFAULT,
    ))
