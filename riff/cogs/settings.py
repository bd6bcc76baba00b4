"""
Settings Cog - Server settings and DJ configuration
"""
import logging

import discord
from discord import app_commands
from discord.ext import commands

from riff.database.crud import DJCRUD, GuildCRUD
from riff.services.dj import DJService

logger = logging.getLogger(__name__)


class SettingsCog(commands.Cog):
    """Server settings commands."""

    def __init__(self, bot: commands.Bot, guild_crud: GuildCRUD, dj_crud: DJCRUD, dj: DJService):
        self.bot = bot
        self.guild_crud = guild_crud
        self.dj_crud = dj_crud
        self.dj = dj

    dj_group = app_commands.Group(
        name="dj",
        description="DJ role settings",
        default_permissions=discord.Permissions(manage_guild=True)
    )

    settings_group = app_commands.Group(
        name="settings",
        description="Server settings",
        default_permissions=discord.Permissions(manage_guild=True)
    )

    @dj_group.command(name="mode", description="Restrict playback controls to DJs")
    @app_commands.describe(enabled="Enable or disable DJ mode")
    async def dj_mode(self, interaction: discord.Interaction, enabled: bool):
        await self.dj.set_enabled(interaction.guild_id, enabled)
        logger.info(f"DJ mode {'enabled' if enabled else 'disabled'} in guild {interaction.guild_id}")
        status = "enabled" if enabled else "disabled"
        await interaction.response.send_message(f"🎧 DJ mode {status}", ephemeral=True)

    @dj_group.command(name="add", description="Add a DJ role")
    @app_commands.describe(role="The role that can use DJ commands")
    async def dj_add(self, interaction: discord.Interaction, role: discord.Role):
        added = await self.dj_crud.add_role(interaction.guild_id, role.id)
        if not added:
            await interaction.response.send_message(f"❌ {role.mention} is already a DJ role", ephemeral=True)
            return
        await interaction.response.send_message(f"🎧 Added {role.mention} as a DJ role", ephemeral=True)

    @dj_group.command(name="remove", description="Remove a DJ role")
    @app_commands.describe(role="The role to remove")
    async def dj_remove(self, interaction: discord.Interaction, role: discord.Role):
        removed = await self.dj_crud.remove_role(interaction.guild_id, role.id)
        if not removed:
            await interaction.response.send_message(f"❌ {role.mention} is not a DJ role", ephemeral=True)
            return
        await interaction.response.send_message(f"🎧 Removed {role.mention} from DJ roles", ephemeral=True)

    @dj_group.command(name="list", description="Show DJ mode and roles")
    async def dj_list(self, interaction: discord.Interaction):
        enabled = await self.dj.is_enabled(interaction.guild_id)
        roles = await self.dj_crud.get_roles(interaction.guild_id)
        embed = discord.Embed(title="🎧 DJ Settings", color=discord.Color.blue())
        embed.add_field(name="Mode", value="Enabled" if enabled else "Disabled", inline=True)
        embed.add_field(
            name="Roles",
            value=", ".join(f"<@&{role_id}>" for role_id in sorted(roles)) or "None",
            inline=False
        )
        await interaction.response.send_message(embed=embed, ephemeral=True)

    @settings_group.command(name="show", description="Show current server settings")
    async def show_settings(self, interaction: discord.Interaction):
        """Show current settings for this server."""
        all_settings = await self.guild_crud.get_all_settings(interaction.guild_id)
        embed = discord.Embed(title="⚙️ Server Settings", color=discord.Color.blue())

        autoplay = all_settings.get("autoplay", self.bot.config.AUTOPLAY_DEFAULT)
        embed.add_field(name="🔄 Autoplay", value="Enabled" if autoplay else "Disabled", inline=True)

        dj_mode = all_settings.get("dj_mode", False)
        embed.add_field(name="🎧 DJ Mode", value="Enabled" if dj_mode else "Disabled", inline=True)

        await interaction.response.send_message(embed=embed, ephemeral=True)


async def setup(bot: commands.Bot):
    """Load the settings cog."""
    await bot.add_cog(SettingsCog(bot, bot.guild_crud, bot.dj_crud, bot.dj))
