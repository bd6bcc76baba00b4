"""
Configuration - loaded from the environment (.env supported)
"""
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Config:
    """Bot configuration. Built once by the entry point and handed to components."""
    DISCORD_TOKEN: str | None = None
    DATABASE_PATH: Path = Path("data/riff.db")
    LASTFM_API_KEY: str | None = None
    GENIUS_API_TOKEN: str | None = None
    YTDL_COOKIES_PATH: str | None = None
    YTDL_PO_TOKEN: str | None = None
    AUTOPLAY_DEFAULT: bool = False

    @classmethod
    def from_env(cls) -> "Config":
        """Read configuration from process environment variables."""
        load_dotenv()
        return cls(
            DISCORD_TOKEN=os.getenv("DISCORD_TOKEN"),
            DATABASE_PATH=Path(os.getenv("DATABASE_PATH", "data/riff.db")),
            LASTFM_API_KEY=os.getenv("LASTFM_API_KEY") or None,
            # GENIUS_API is the older variable name
            GENIUS_API_TOKEN=os.getenv("GENIUS_API_TOKEN") or os.getenv("GENIUS_API") or None,
            YTDL_COOKIES_PATH=os.getenv("YTDL_COOKIES_PATH") or None,
            YTDL_PO_TOKEN=os.getenv("YTDL_PO_TOKEN") or None,
            AUTOPLAY_DEFAULT=_env_bool("AUTOPLAY_DEFAULT", False),
        )
