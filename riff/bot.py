"""
Riff Discord Music Bot - Main Entry Point
"""
import asyncio
import logging
import os
from pathlib import Path

import discord
from discord.ext import commands

from riff.config import Config

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logging.getLogger("discord.gateway").setLevel(logging.WARNING)
logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
logger = logging.getLogger("bot")


class MusicBot(commands.Bot):
    """Discord music bot with autoplay, fair play and lyrics."""

    def __init__(self, config: Config):
        intents = discord.Intents.default()
        intents.voice_states = True
        intents.guilds = True

        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            help_command=None,
        )

        self.config = config

        # Initialized in setup_hook
        self.db = None
        self.guild_crud = None
        self.dj_crud = None
        self.dj = None
        self.youtube = None
        self.lastfm = None
        self.genius = None
        self.autoplay = None

    async def setup_hook(self) -> None:
        """Called when the bot is starting up."""
        logger.info("Setting up bot...")

        from riff.database.connection import DatabaseManager
        from riff.database.crud import DJCRUD, GuildCRUD

        self.db = await DatabaseManager.create(self.config.DATABASE_PATH)
        self.guild_crud = GuildCRUD(self.db)
        self.dj_crud = DJCRUD(self.db)
        logger.info(f"Database initialized at {self.config.DATABASE_PATH}")

        from riff.services.autoplay import AutoplayPipeline
        from riff.services.dj import DJService
        from riff.services.genius import GeniusService
        from riff.services.lastfm import LastFmService
        from riff.services.youtube import YouTubeService

        self.youtube = YouTubeService(self.config.YTDL_COOKIES_PATH, self.config.YTDL_PO_TOKEN)
        self.lastfm = LastFmService(self.config.LASTFM_API_KEY)
        self.genius = GeniusService(self.config.GENIUS_API_TOKEN)
        self.autoplay = AutoplayPipeline(self.youtube, self.lastfm)
        self.dj = DJService(self.guild_crud, self.dj_crud)
        logger.info("Services initialized")

        # Load all cogs from the cogs directory
        cogs_dir = Path(__file__).parent / "cogs"
        for cog_file in sorted(cogs_dir.glob("*.py")):
            if cog_file.name.startswith("_"):
                continue
            cog_name = f"riff.cogs.{cog_file.stem}"
            try:
                await self.load_extension(cog_name)
                logger.info(f"Loaded cog: {cog_name}")
            except Exception as e:
                logger.error(f"Failed to load cog {cog_name}: {e}")

        logger.info("Syncing slash commands...")
        await self.tree.sync()
        logger.info("Slash commands synced")

    async def on_ready(self) -> None:
        """Called when the bot is fully ready."""
        logger.info(f"Logged in as {self.user} (ID: {self.user.id})")
        logger.info(f"Connected to {len(self.guilds)} guild(s)")

        activity = discord.Activity(
            type=discord.ActivityType.listening,
            name="/play"
        )
        await self.change_presence(activity=activity)

    async def on_guild_join(self, guild: discord.Guild) -> None:
        logger.info(f"Joined guild: {guild.name} (ID: {guild.id})")

    async def on_guild_remove(self, guild: discord.Guild) -> None:
        logger.info(f"Left guild: {guild.name} (ID: {guild.id})")

    async def close(self) -> None:
        """Cleanup when the bot is shutting down."""
        logger.info("Shutting down...")

        # Unload music first so players stop FFmpeg before voice teardown
        try:
            await self.unload_extension("riff.cogs.music")
        except commands.ExtensionError as e:
            logger.debug(f"Music cog unload skipped: {e}")

        for vc in self.voice_clients:
            try:
                await vc.disconnect(force=True)
            except Exception as e:
                logger.debug(f"Voice disconnect failed: {e}")

        if self.youtube:
            await self.youtube.shutdown()

        if self.db:
            await self.db.close()

        await super().close()
        logger.info("Shutdown complete.")


async def main():
    """Main entry point."""
    config = Config.from_env()

    if not config.DISCORD_TOKEN:
        logger.critical("DISCORD_TOKEN is not set")
        return

    bot = MusicBot(config)
    async with bot:
        try:
            await bot.start(config.DISCORD_TOKEN)
        except KeyboardInterrupt:
            logger.info("Shutdown initiated by user...")
        finally:
            if not bot.is_closed():
                await bot.close()


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        os._exit(0)
    except Exception as e:
        logger.critical(f"Fatal error: {e}")
        os._exit(1)


if __name__ == "__main__":
    run()
