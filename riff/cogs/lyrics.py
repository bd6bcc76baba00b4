"""
Lyrics Cog - Genius lyrics with button pagination
"""
import asyncio
import logging
from enum import Enum

import discord
from discord import app_commands
from discord.ext import commands

from riff.services.genius import GeniusService, clean_lyrics, paginate_lyrics

logger = logging.getLogger(__name__)

EMBED_COLOR = discord.Color.from_rgb(124, 58, 237)
MIN_LYRICS_LENGTH = 10


class PagerState(Enum):
    AWAITING = "awaiting"
    HANDLING = "handling"
    EXPIRED = "expired"
    STOPPED = "stopped"


class LyricsPager:
    """Page position and lifecycle of one lyrics message."""

    ACTIONS = ("prev", "stop", "next")

    def __init__(self, pages: list[str]):
        self.pages = pages or [""]
        self.page = 0
        self.state = PagerState.AWAITING

    @property
    def active(self) -> bool:
        return self.state in (PagerState.AWAITING, PagerState.HANDLING)

    @property
    def first(self) -> bool:
        return self.page == 0

    @property
    def last(self) -> bool:
        return self.page == len(self.pages) - 1

    def handle(self, action: str) -> PagerState:
        """Apply a button press. Only valid while awaiting input."""
        if self.state is not PagerState.AWAITING:
            raise RuntimeError(f"cannot handle {action!r} while {self.state.value}")
        self.state = PagerState.HANDLING
        if action == "prev" and not self.first:
            self.page -= 1
        elif action == "next" and not self.last:
            self.page += 1
        elif action == "stop":
            self.state = PagerState.STOPPED
        return self.state

    def rearm(self) -> None:
        if self.state is PagerState.HANDLING:
            self.state = PagerState.AWAITING

    def expire(self) -> None:
        if self.active:
            self.state = PagerState.EXPIRED


class LyricsCog(commands.Cog):
    """Lyrics lookup."""

    INTERACTION_TIMEOUT = 60.0

    def __init__(self, bot: commands.Bot, genius: GeniusService):
        self.bot = bot
        self.genius = genius

    def _render(
        self,
        pager: LyricsPager,
        title: str,
        artist: str,
        url: str,
        artwork_url: str,
    ) -> discord.Embed:
        heading = f"**Lyrics for [{title}]({url})**" if url else f"**Lyrics for {title}**"
        body = f"{heading}\n"
        if artist:
            body += f"*{artist}*\n\n"
        body += pager.pages[pager.page]

        embed = discord.Embed(description=body, color=EMBED_COLOR)
        if artwork_url:
            embed.set_thumbnail(url=artwork_url)
        if pager.active:
            embed.set_footer(text=f"Page {pager.page + 1}/{len(pager.pages)}")
        else:
            embed.set_footer(text="Lyrics session expired")
        return embed

    def _controls(self, pager: LyricsPager, prefix: str) -> discord.ui.View:
        view = discord.ui.View(timeout=None)
        view.add_item(discord.ui.Button(
            custom_id=f"{prefix}:prev", emoji="⬅️", style=discord.ButtonStyle.secondary, disabled=pager.first,
        ))
        view.add_item(discord.ui.Button(
            custom_id=f"{prefix}:stop", emoji="⏹️", style=discord.ButtonStyle.danger,
        ))
        view.add_item(discord.ui.Button(
            custom_id=f"{prefix}:next", emoji="➡️", style=discord.ButtonStyle.secondary, disabled=pager.last,
        ))
        return view

    def _current_track(self, guild_id: int | None):
        music = self.bot.get_cog("MusicCog")
        if not music or guild_id is None:
            return None
        player = music.players.get(guild_id)
        return player.current if player else None

    @app_commands.command(name="lyrics", description="Show lyrics for the current song or a given one")
    @app_commands.describe(song="Song to look up (defaults to the current song)")
    async def lyrics(self, interaction: discord.Interaction, song: str | None = None):
        """Look up lyrics and page through them with buttons."""
        track = self._current_track(interaction.guild_id)
        if not song and not track:
            await interaction.response.send_message("❌ Nothing is playing right now.", ephemeral=True)
            return

        if not self.genius.enabled:
            await interaction.response.send_message("❌ Genius API token is not set in the environment!", ephemeral=True)
            return

        if track:
            title, artist = track.title or song, track.author or ""
            url, artwork_url = track.uri or "", track.artwork_url or ""
        else:
            title, artist, url, artwork_url = song, "", "", ""

        await interaction.response.defer(thinking=True)

        try:
            raw = await self.genius.fetch_lyrics(title, artist)
            if not raw or len(raw) < MIN_LYRICS_LENGTH:
                await interaction.followup.send(f"❌ No lyrics found for **{title}**.")
                return
            cleaned = clean_lyrics(raw)
            if not cleaned:
                await interaction.followup.send(f"❌ No lyrics found for **{title}**.")
                return

            pager = LyricsPager(paginate_lyrics(cleaned))
            prefix = f"lyrics:{interaction.id}"
            view = self._controls(pager, prefix)
            message = await interaction.followup.send(
                embed=self._render(pager, title, artist, url, artwork_url),
                view=view,
                wait=True,
            )
        except Exception as e:
            logger.error(f"Lyrics command failed for '{title}': {e}")
            await interaction.followup.send("❌ Something went wrong while fetching lyrics.")
            return

        await self._run_pager(interaction, message, view, pager, prefix, title, artist, url, artwork_url)

    async def _run_pager(self, interaction, message, view, pager, prefix, title, artist, url, artwork_url) -> None:
        """Wait for button presses until the user stops or the pager times out."""
        def check(i: discord.Interaction) -> bool:
            custom_id = (i.data or {}).get("custom_id", "")
            return (
                i.type == discord.InteractionType.component
                and custom_id.startswith(f"{prefix}:")
                and i.user.id == interaction.user.id
            )

        while pager.state is PagerState.AWAITING:
            try:
                press = await self.bot.wait_for("interaction", check=check, timeout=self.INTERACTION_TIMEOUT)
            except asyncio.TimeoutError:
                pager.expire()
                break

            action = press.data["custom_id"].rsplit(":", 1)[-1]
            state = pager.handle(action)
            view.stop()
            try:
                if state is PagerState.STOPPED:
                    await press.response.edit_message(
                        embed=self._render(pager, title, artist, url, artwork_url), view=None,
                    )
                    break
                view = self._controls(pager, prefix)
                await press.response.edit_message(
                    embed=self._render(pager, title, artist, url, artwork_url), view=view,
                )
            except discord.HTTPException as e:
                logger.debug(f"Failed to update lyrics page: {e}")
            pager.rearm()

        view.stop()
        if pager.state is PagerState.EXPIRED:
            try:
                await message.edit(embed=self._render(pager, title, artist, url, artwork_url), view=None)
            except discord.NotFound:
                pass
            except discord.HTTPException as e:
                logger.error(f"Failed to clear lyrics buttons: {e}")


async def setup(bot: commands.Bot):
    """Load the lyrics cog."""
    await bot.add_cog(LyricsCog(bot, bot.genius))
