"""
Autoplay - queue follow-up tracks when playback runs dry
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable, Protocol, Sequence

from riff.models import RecommendationCandidate, Requester, SearchResult, Track
from riff.services.youtube import SearchSource

logger = logging.getLogger(__name__)

LYRIC_MARKERS = ("lyrics", "lyric")


class RecommendationProvider(Protocol):
    async def get_similar_tracks(self, artist: str, title: str) -> list[RecommendationCandidate]: ...


class TrackSearcher(Protocol):
    async def search(
        self, query: str, source: SearchSource = ..., requester: Requester | None = ...
    ) -> SearchResult: ...


class AutoplayTarget(Protocol):
    """The subset of a player the pipeline touches."""
    queue: "_Queue"

    @property
    def playing(self) -> bool: ...

    async def play(self) -> None: ...


class _Queue(Protocol):
    @property
    def tracks(self) -> list[Track]: ...

    def add(self, tracks: Track | Sequence[Track]) -> None: ...


@dataclass(frozen=True)
class AutoplayConfig:
    max_candidates: int = 10
    max_primary_tracks: int = 10
    max_fallback_tracks: int = 3
    search_source: SearchSource = SearchSource.YOUTUBE_MUSIC
    # None leaves timeouts to the search service
    search_timeout: float | None = None


def is_lyric_upload(track: Track) -> bool:
    title = track.title.lower()
    return any(marker in title for marker in LYRIC_MARKERS)


def filter_lyric_uploads(tracks: Iterable[Track]) -> list[Track]:
    return [t for t in tracks if not is_lyric_upload(t)]


class AutoplayPipeline:
    """Finds and queues tracks related to the one that just finished."""

    def __init__(
        self,
        searcher: TrackSearcher,
        recommender: RecommendationProvider,
        config: AutoplayConfig | None = None,
    ):
        self.searcher = searcher
        self.recommender = recommender
        self.config = config or AutoplayConfig()

    async def run(self, player: AutoplayTarget, last_track: Track | None, autoplay_enabled: bool) -> None:
        if not autoplay_enabled or last_track is None:
            return

        tracks = await self._similar_tracks(last_track)
        if tracks:
            logger.info(f"Autoplay queued {len(tracks)} similar tracks after '{last_track.title}'")
            await self._enqueue(player, tracks)
            return

        tracks = await self._popular_tracks(last_track)
        if tracks:
            logger.info(f"Autoplay fell back to {len(tracks)} popular tracks by {last_track.author}")
            await self._enqueue(player, tracks)
            return

        logger.info(f"Autoplay found nothing to follow '{last_track.title}'")

    async def _similar_tracks(self, last_track: Track) -> list[Track]:
        try:
            candidates = await self.recommender.get_similar_tracks(last_track.author, last_track.title)
        except Exception as e:
            logger.warning(f"Recommendation lookup failed: {e}")
            return []

        candidates = list(candidates or [])[: self.config.max_candidates]
        if not candidates:
            return []

        # gather() keeps candidate order regardless of completion order
        results = await asyncio.gather(
            *(self._first_result(c.query, last_track.requester) for c in candidates)
        )
        found = filter_lyric_uploads(t for t in results if t is not None)
        return [t.mark_autoplay() for t in found[: self.config.max_primary_tracks]]

    async def _popular_tracks(self, last_track: Track) -> list[Track]:
        query = f"{last_track.author} popular songs"
        try:
            result = await self._search(query, last_track.requester)
        except Exception as e:
            logger.warning(f"Autoplay fallback search failed for '{query}': {e}")
            return []

        found = filter_lyric_uploads(result.tracks)
        return [t.mark_autoplay() for t in found[: self.config.max_fallback_tracks]]

    async def _first_result(self, query: str, requester: Requester | None) -> Track | None:
        try:
            result = await self._search(query, requester)
        except Exception as e:
            logger.debug(f"Autoplay search failed for '{query}': {e}")
            return None
        return result.tracks[0] if result and result.tracks else None

    async def _search(self, query: str, requester: Requester | None) -> SearchResult:
        search = self.searcher.search(query, self.config.search_source, requester)
        if self.config.search_timeout is None:
            return await search
        return await asyncio.wait_for(search, timeout=self.config.search_timeout)

    async def _enqueue(self, player: AutoplayTarget, tracks: list[Track]) -> None:
        player.queue.add(tracks)
        if not player.playing and player.queue.tracks:
            await player.play()
