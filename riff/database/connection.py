"""
SQLite storage for per-guild settings
"""
import logging
from pathlib import Path

import aiosqlite

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS guild_settings (
    guild_id INTEGER NOT NULL,
    key TEXT NOT NULL,
    value TEXT,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (guild_id, key)
);

CREATE TABLE IF NOT EXISTS dj_roles (
    guild_id INTEGER NOT NULL,
    role_id INTEGER NOT NULL,
    PRIMARY KEY (guild_id, role_id)
);
"""


class DatabaseManager:
    """One shared aiosqlite connection for guild settings and DJ roles."""

    def __init__(self, db: aiosqlite.Connection, db_path: Path):
        self._db = db
        self.db_path = db_path

    @classmethod
    async def create(cls, db_path: Path) -> "DatabaseManager":
        """Open the database, creating the file and tables if needed."""
        path = Path(db_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        db = await aiosqlite.connect(path)
        db.row_factory = aiosqlite.Row
        await db.execute("PRAGMA journal_mode=WAL")
        await db.executescript(SCHEMA)
        await db.commit()
        logger.info(f"Database ready at {path}")
        return cls(db, path)

    async def execute(self, query: str, params: tuple = ()) -> int:
        """Run a write and commit it. Returns the affected row count."""
        cursor = await self._db.execute(query, params)
        await self._db.commit()
        return cursor.rowcount

    async def fetch_one(self, query: str, params: tuple = ()) -> dict | None:
        async with self._db.execute(query, params) as cursor:
            row = await cursor.fetchone()
        return dict(row) if row else None

    async def fetch_all(self, query: str, params: tuple = ()) -> list[dict]:
        async with self._db.execute(query, params) as cursor:
            rows = await cursor.fetchall()
        return [dict(row) for row in rows]

    async def close(self) -> None:
        await self._db.close()
        logger.info("Database connection closed")
