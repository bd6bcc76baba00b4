"""
CRUD helpers for guild settings and DJ roles
"""
import json
import logging
from typing import Any

from riff.database.connection import DatabaseManager

logger = logging.getLogger(__name__)


class GuildCRUD:
    """Per-guild key/value settings, stored as JSON."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    async def get_setting(self, guild_id: int, key: str, default: Any = None) -> Any:
        row = await self.db.fetch_one(
            "SELECT value FROM guild_settings WHERE guild_id = ? AND key = ?",
            (guild_id, key),
        )
        if not row or row["value"] is None:
            return default
        try:
            return json.loads(row["value"])
        except json.JSONDecodeError:
            logger.warning(f"Invalid JSON for setting {key} in guild {guild_id}")
            return default

    async def set_setting(self, guild_id: int, key: str, value: Any) -> None:
        await self.db.execute(
            """
            INSERT INTO guild_settings (guild_id, key, value, updated_at)
            VALUES (?, ?, ?, CURRENT_TIMESTAMP)
            ON CONFLICT(guild_id, key) DO UPDATE SET value = excluded.value, updated_at = CURRENT_TIMESTAMP
            """,
            (guild_id, key, json.dumps(value)),
        )

    async def get_all_settings(self, guild_id: int) -> dict[str, Any]:
        rows = await self.db.fetch_all(
            "SELECT key, value FROM guild_settings WHERE guild_id = ?",
            (guild_id,),
        )
        settings = {}
        for row in rows:
            try:
                settings[row["key"]] = json.loads(row["value"]) if row["value"] is not None else None
            except json.JSONDecodeError:
                continue
        return settings


class DJCRUD:
    """DJ roles per guild. DJ mode itself is the `dj_mode` guild setting."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    async def get_roles(self, guild_id: int) -> set[int]:
        rows = await self.db.fetch_all(
            "SELECT role_id FROM dj_roles WHERE guild_id = ?",
            (guild_id,),
        )
        return {row["role_id"] for row in rows}

    async def add_role(self, guild_id: int, role_id: int) -> bool:
        """Returns False if the role was already a DJ role."""
        changed = await self.db.execute(
            "INSERT OR IGNORE INTO dj_roles (guild_id, role_id) VALUES (?, ?)",
            (guild_id, role_id),
        )
        return changed > 0

    async def remove_role(self, guild_id: int, role_id: int) -> bool:
        changed = await self.db.execute(
            "DELETE FROM dj_roles WHERE guild_id = ? AND role_id = ?",
            (guild_id, role_id),
        )
        return changed > 0
