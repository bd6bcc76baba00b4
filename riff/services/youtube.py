"""
YouTube Music API Wrapper - track search and stream resolution
"""
import asyncio
import logging
import random
import re
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from functools import partial, wraps
from typing import Any

import yt_dlp
from ytmusicapi import YTMusic

from riff.models import Requester, SearchResult, Track

logger = logging.getLogger(__name__)


class SearchError(Exception):
    """Raised when a track search cannot be completed."""


class SearchSource(str, Enum):
    """Search catalogs. Values match the usual search prefixes."""
    YOUTUBE_MUSIC = "ytmsearch"
    YOUTUBE = "ytsearch"

    @property
    def filter_type(self) -> str:
        return "songs" if self is SearchSource.YOUTUBE_MUSIC else "videos"


def retry_with_backoff(retries=3, backoff_in_seconds=1):
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            x = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    if x == retries:
                        logger.error(f"Failed after {retries} retries: {e}")
                        raise
                    else:
                        sleep = (backoff_in_seconds * 2 ** x + random.uniform(0, 1))
                        logger.warning(f"Retry {x + 1}/{retries} for {func.__name__} after {sleep:.2f}s due to: {e}")
                        await asyncio.sleep(sleep)
                        x += 1
        return wrapper
    return decorator


def parse_duration(duration_str: str | None) -> int | None:
    """Parse duration string like '3:45' to seconds."""
    if not duration_str:
        return None
    try:
        parts = duration_str.split(":")
        if len(parts) == 2:
            return int(parts[0]) * 60 + int(parts[1])
        elif len(parts) == 3:
            return int(parts[0]) * 3600 + int(parts[1]) * 60 + int(parts[2])
    except ValueError:
        pass
    return None


def track_from_result(r: dict[str, Any], requester: Requester | None = None) -> Track | None:
    """Build a Track from a ytmusicapi search/song entry."""
    video_id = r.get("videoId")
    if not video_id:
        return None

    duration = r.get("duration_seconds") or parse_duration(r.get("duration"))

    author = "Unknown"
    if r.get("artists"):
        author = r["artists"][0].get("name") or "Unknown"
    elif r.get("author"):
        author = r["author"]

    thumbnails = r.get("thumbnails") or [{}]
    return Track(
        title=r.get("title") or "Unknown",
        author=author,
        uri=f"https://music.youtube.com/watch?v={video_id}",
        video_id=video_id,
        duration_ms=duration * 1000 if duration else None,
        is_stream=bool(r.get("isLive")),
        artwork_url=thumbnails[-1].get("url"),
        requester=requester,
    )


class YouTubeService:
    """YouTube Music API wrapper."""

    SEARCH_TIMEOUT = 15.0
    STREAM_TIMEOUT = 25.0

    def __init__(self, cookies_path: str | None = None, po_token: str | None = None):
        self.yt = YTMusic()
        self.cookies_path = cookies_path
        self.po_token = po_token

        # Dedicated executor so blocking API calls don't starve the default pool
        self.executor = ThreadPoolExecutor(max_workers=5, thread_name_prefix="YouTubeWorker")

        self._ydl_opts = {
            "format": "bestaudio/best",
            "source_address": "0.0.0.0",
            "quiet": True,
            "no_warnings": True,
            "extract_flat": False,
            "socket_timeout": 10,
            "nocheckcertificate": True,
            "ignoreerrors": True,
            "logtostderr": False,
            "noplaylist": True,
        }
        if cookies_path:
            self._ydl_opts["cookiefile"] = cookies_path
        if po_token:
            self._ydl_opts["extractor_args"] = {"youtube": {"po_token": [po_token]}}

    def parse_url(self, url: str) -> str | None:
        """Return the video id of a YouTube link, or None if the text is not one."""
        if not any(domain in url for domain in ["youtube.com", "youtu.be", "music.youtube.com"]):
            return None

        # watch?v=ID, /v/ID, /embed/ID, youtu.be/ID
        match = re.search(r"(?:v=|\/|embed\/|youtu\.be\/)([0-9A-Za-z_-]{11})", url)
        if match:
            return match.group(1)
        return None

    async def shutdown(self):
        """Shutdown the executor."""
        self.executor.shutdown(wait=False)

    @retry_with_backoff(retries=2)
    async def search(
        self,
        query: str,
        source: SearchSource = SearchSource.YOUTUBE_MUSIC,
        requester: Requester | None = None,
        limit: int = 5,
    ) -> SearchResult:
        """Search a catalog for tracks. Raises SearchError on failure."""
        loop = asyncio.get_running_loop()
        try:
            results = await asyncio.wait_for(
                loop.run_in_executor(
                    self.executor,
                    partial(self.yt.search, query, filter=source.filter_type, limit=limit)
                ),
                timeout=self.SEARCH_TIMEOUT
            )
        except asyncio.TimeoutError as e:
            raise SearchError(f"search timed out for query: {query}") from e
        except Exception as e:
            raise SearchError(f"search failed for query {query!r}: {e}") from e

        tracks = [t for t in (track_from_result(r, requester) for r in results or []) if t]
        logger.debug(f"Search '{query}' ({source.value}) returned {len(tracks)} tracks")
        return SearchResult(tracks=tracks)

    async def get_track(self, video_id: str, requester: Requester | None = None) -> Track | None:
        """Get full track info for a specific video."""
        loop = asyncio.get_running_loop()
        try:
            r = await asyncio.wait_for(
                loop.run_in_executor(
                    self.executor,
                    partial(self.yt.get_song, videoId=video_id)
                ),
                timeout=10.0
            )
        except asyncio.TimeoutError:
            logger.error(f"YouTube track info timed out for: {video_id}")
            return None
        except Exception as e:
            logger.error(f"Error getting track info: {e}")
            return None

        details = r.get("videoDetails") or {}
        if not details:
            return None

        entry = {
            "videoId": details.get("videoId"),
            "title": details.get("title"),
            "author": details.get("author"),
            "duration_seconds": int(details["lengthSeconds"]) if details.get("lengthSeconds") else None,
            "thumbnails": (details.get("thumbnail") or {}).get("thumbnails"),
            "isLive": details.get("isLiveContent", False),
        }
        return track_from_result(entry, requester)

    async def get_stream_url(self, video_id: str) -> str | None:
        """Get the audio stream URL for a video using yt-dlp."""
        loop = asyncio.get_running_loop()
        url = f"https://www.youtube.com/watch?v={video_id}"

        def extract():
            with yt_dlp.YoutubeDL(self._ydl_opts) as ydl:
                info = ydl.extract_info(url, download=False)
                return info.get("url") if info else None

        try:
            return await asyncio.wait_for(
                loop.run_in_executor(self.executor, extract),
                timeout=self.STREAM_TIMEOUT
            )
        except asyncio.TimeoutError:
            logger.error(f"YouTube stream URL extraction timed out for: {video_id}")
            return None
        except Exception as e:
            logger.error(f"Error getting stream URL for {video_id}: {e}")
            return None
