import logging

import discord

from riff.database.crud import DJCRUD, GuildCRUD

logger = logging.getLogger(__name__)


class DJService:
    """Decides whether a member may control playback."""

    def __init__(self, guild_crud: GuildCRUD, dj_crud: DJCRUD):
        self.guild_crud = guild_crud
        self.dj_crud = dj_crud

    async def is_enabled(self, guild_id: int) -> bool:
        return bool(await self.guild_crud.get_setting(guild_id, "dj_mode", False))

    async def set_enabled(self, guild_id: int, enabled: bool) -> None:
        await self.guild_crud.set_setting(guild_id, "dj_mode", enabled)

    async def is_dj(self, member: discord.Member | discord.User) -> bool:
        """
        True when DJ mode is off for the guild, the member holds a DJ role,
        or the member can manage the guild.
        """
        guild = getattr(member, "guild", None)
        if guild is None:
            return True

        try:
            if not await self.is_enabled(guild.id):
                return True
            dj_roles = await self.dj_crud.get_roles(guild.id)
        except Exception as e:
            logger.error(f"DJ lookup failed for guild {guild.id}: {e}")
            return False

        if any(role.id in dj_roles for role in getattr(member, "roles", [])):
            return True
        permissions = getattr(member, "guild_permissions", None)
        return bool(permissions and permissions.manage_guild)
