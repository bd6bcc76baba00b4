"""
Core data types shared by the player, services and cogs
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass
class Requester:
    """The user credited with adding a track. Compared by id only."""
    id: str
    username: str = "unknown"
    avatar_url: str | None = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Requester):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)


def requester_from(value: Any) -> Requester:
    """Normalise a discord user/member, a Requester, or a bare id into a Requester."""
    if isinstance(value, Requester):
        return value
    if hasattr(value, "display_avatar") and hasattr(value, "id"):
        return Requester(
            id=str(value.id),
            username=getattr(value, "name", None) or "unknown",
            avatar_url=value.display_avatar.url,
        )
    text = str(value) if value is not None else ""
    return Requester(id=text or "unknown", username="unknown")


class TrackSource(str, Enum):
    """Where a queued track came from."""
    USER = "user"
    AUTOPLAY = "autoplay"


@dataclass
class Track:
    """A playable track."""
    title: str
    author: str
    uri: str
    video_id: str | None = None
    duration_ms: int | None = None
    is_stream: bool = False
    artwork_url: str | None = None
    requester: Requester | None = None
    source: TrackSource = TrackSource.USER
    stream_url: str | None = field(default=None, repr=False)  # resolved at play time

    @property
    def from_autoplay(self) -> bool:
        return self.source is TrackSource.AUTOPLAY

    def mark_autoplay(self) -> "Track":
        self.source = TrackSource.AUTOPLAY
        return self

    @property
    def duration_label(self) -> str:
        if self.is_stream or self.duration_ms is None:
            return "LIVE" if self.is_stream else "Unknown"
        return format_duration(self.duration_ms)


@dataclass(frozen=True)
class RecommendationCandidate:
    """A similar track suggested by the recommendation provider."""
    artist: str
    name: str

    @property
    def query(self) -> str:
        return f"{self.artist} {self.name}"


@dataclass
class SearchResult:
    """Result of a track search."""
    tracks: list[Track] = field(default_factory=list)


def format_duration(ms: int) -> str:
    """Format milliseconds as m:ss or h:mm:ss."""
    seconds = ms // 1000
    hours, seconds = divmod(seconds, 3600)
    minutes, seconds = divmod(seconds, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"
