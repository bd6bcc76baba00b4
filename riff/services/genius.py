import asyncio
import logging
import re

import lyricsgenius

logger = logging.getLogger(__name__)

MAX_CHARACTERS_PER_PAGE = 2800
NO_LYRICS_PLACEHOLDER = "No lyrics available."

_HEADER_LINE = re.compile(
    r"^(\d+\s*Contributors.*?Lyrics|.*Contributors.*|Lyrics\s*|.*Lyrics\s*)$",
    re.IGNORECASE | re.MULTILINE,
)
# lyricsgenius leaves page furniture around the lyric text
_EMBED_TRAILER = re.compile(r"\d*Embed\s*$")
_PROMO_LINE = re.compile(r"^You might also like.*$", re.MULTILINE)


def clean_lyrics(lyrics: str) -> str:
    """Drop Genius header lines and page furniture, collapse runs of blank lines."""
    cleaned = _HEADER_LINE.sub("", lyrics)
    cleaned = _PROMO_LINE.sub("", cleaned)
    cleaned = _EMBED_TRAILER.sub("", cleaned.strip())
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
    return cleaned.strip()


def paginate_lyrics(lyrics: str, max_chars: int = MAX_CHARACTERS_PER_PAGE) -> list[str]:
    """Split lyrics on line boundaries into pages of at most `max_chars`."""
    pages: list[str] = []
    current = ""

    for line in lyrics.split("\n"):
        line_with_newline = f"{line}\n"
        # Hard-wrap single lines that could never fit on a page
        while len(line_with_newline) > max_chars:
            if current.strip():
                pages.append(current.strip())
            current = ""
            pages.append(line_with_newline[:max_chars].strip())
            line_with_newline = line_with_newline[max_chars:]

        if len(current) + len(line_with_newline) > max_chars:
            if current.strip():
                pages.append(current.strip())
            current = line_with_newline
        else:
            current += line_with_newline

    if current.strip():
        pages.append(current.strip())

    if not pages:
        pages.append(NO_LYRICS_PLACEHOLDER)
    return pages


class GeniusService:
    """Lyrics lookup through the Genius API client."""

    def __init__(self, access_token: str | None, timeout: float = 10.0, retries: int = 1):
        self.timeout = timeout
        self.client = None
        if access_token:
            self.client = lyricsgenius.Genius(
                access_token,
                timeout=int(timeout),
                retries=retries,
                verbose=False,
                remove_section_headers=False,
            )

    @property
    def enabled(self) -> bool:
        return self.client is not None

    async def fetch_lyrics(self, title: str, artist: str = "") -> str | None:
        """Return raw lyrics for a song, or None if Genius has nothing usable."""
        if not self.client:
            return None

        try:
            # lyricsgenius is blocking (requests)
            song = await asyncio.wait_for(
                asyncio.to_thread(self.client.search_song, title, artist, get_full_info=False),
                timeout=self.timeout * 2,
            )
        except asyncio.TimeoutError:
            logger.error(f"Genius lyrics lookup timed out for '{title}'")
            return None
        except Exception as e:
            logger.error(f"Genius lyrics lookup failed for '{title}': {e}")
            return None

        if not song or not song.lyrics:
            logger.info(f"Genius found no lyrics for '{title}'")
            return None
        return song.lyrics
