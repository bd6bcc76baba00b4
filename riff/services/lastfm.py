import logging
from typing import Any

import aiohttp

from riff.models import RecommendationCandidate

logger = logging.getLogger(__name__)


def parse_similar_tracks(data: Any, limit: int = 10) -> list[RecommendationCandidate]:
    """Pull (artist, name) pairs out of a track.getsimilar response."""
    if not isinstance(data, dict):
        return []
    similar = data.get("similartracks")
    if not isinstance(similar, dict) or not similar.get("track"):
        return []

    tracks = similar["track"]
    # A single match comes back as an object instead of a list
    if not isinstance(tracks, list):
        tracks = [tracks]

    candidates = []
    for t in tracks:
        if not isinstance(t, dict):
            continue
        artist = t.get("artist")
        if isinstance(artist, dict):
            artist = artist.get("name")
        name = t.get("name")
        if not artist or not name:
            continue
        candidates.append(RecommendationCandidate(artist=str(artist), name=str(name)))
    return candidates[:limit]


class LastFmService:
    """Similar-track recommendations from the Last.fm API."""

    API_URL = "https://ws.audioscrobbler.com/2.0/"

    def __init__(self, api_key: str | None, limit: int = 10, timeout: float = 10.0):
        self.api_key = api_key
        self.limit = limit
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        if not self.api_key:
            logger.warning("LASTFM_API_KEY not set. Similar-track recommendations are disabled.")

    async def get_similar_tracks(self, artist: str, title: str) -> list[RecommendationCandidate]:
        """
        Look up tracks similar to `artist - title`.
        Any failure yields an empty list.
        """
        if not self.api_key:
            return []

        params = {
            "method": "track.getsimilar",
            "artist": artist,
            "track": title,
            "api_key": self.api_key,
            "format": "json",
            "limit": str(self.limit),
        }

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.get(self.API_URL, params=params) as resp:
                    if resp.status != 200:
                        text = await resp.text()
                        logger.warning(f"Last.fm API error {resp.status}: {text[:200]}")
                        return []
                    data = await resp.json(content_type=None)
        except Exception as e:
            logger.error(f"Last.fm similar-track lookup failed for '{artist} - {title}': {e}")
            return []

        candidates = parse_similar_tracks(data, self.limit)
        logger.info(f"Last.fm returned {len(candidates)} similar tracks for '{artist} - {title}'")
        return candidates
