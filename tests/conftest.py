# tests/conftest.py

import pytest
import pytest_asyncio
from unittest.mock import AsyncMock, MagicMock

from riff.database.connection import DatabaseManager
from riff.database.crud import DJCRUD, GuildCRUD
from riff.models import Requester, Track


@pytest.fixture
def alice():
    return Requester(id="1", username="alice")


@pytest.fixture
def bob():
    return Requester(id="2", username="bob")


@pytest.fixture
def make_track():
    """Factory for tracks: make_track("Title", requester, author=...)."""
    def _make(title, requester=None, author="Some Artist", **kwargs):
        return Track(
            title=title,
            author=author,
            uri=f"https://music.youtube.com/watch?v={title}",
            video_id=title,
            duration_ms=kwargs.pop("duration_ms", 180_000),
            requester=requester,
            **kwargs,
        )
    return _make


@pytest_asyncio.fixture
async def db(tmp_path):
    """A throwaway SQLite database."""
    manager = await DatabaseManager.create(tmp_path / "riff-test.db")
    yield manager
    await manager.close()


@pytest.fixture
def guild_crud(db):
    return GuildCRUD(db)


@pytest.fixture
def dj_crud(db):
    return DJCRUD(db)


@pytest.fixture
def mock_interaction():
    """A mock of a slash-command interaction from user 42 in guild 1000."""
    interaction = MagicMock()
    interaction.guild_id = 1000
    interaction.channel_id = 3000
    interaction.user.id = 42
    interaction.user.name = "alice"
    interaction.user.display_name = "Alice"
    interaction.user.display_avatar.url = "http://example.com/avatar.png"
    interaction.response.send_message = AsyncMock()
    interaction.response.edit_message = AsyncMock()
    interaction.response.defer = AsyncMock()
    interaction.followup.send = AsyncMock()
    return interaction
