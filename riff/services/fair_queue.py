"""
Fair play - round-robin interleave of the queue by requester
"""
import logging
from typing import Protocol, Sequence

from riff.models import Track

logger = logging.getLogger(__name__)


class MutableQueue(Protocol):
    @property
    def tracks(self) -> list[Track]: ...

    def clear(self) -> None: ...

    def add(self, tracks: Track | Sequence[Track]) -> None: ...


def _requester_key(track: Track) -> str:
    return track.requester.id if track.requester else "unknown"


def reorder(tracks: Sequence[Track]) -> list[Track]:
    """
    Interleave tracks so each requester gets one track per round.

    Requesters take turns in the order they first appear, and each
    requester's own tracks keep their relative order.
    """
    groups: dict[str, list[Track]] = {}
    for track in tracks:
        groups.setdefault(_requester_key(track), []).append(track)

    cursors = dict.fromkeys(groups, 0)
    fair: list[Track] = []
    while len(fair) < len(tracks):
        for key, group in groups.items():
            index = cursors[key]
            if index < len(group):
                fair.append(group[index])
                cursors[key] = index + 1
    return fair


def apply_fair_play(queue: MutableQueue) -> list[Track]:
    """Reorder a queue in place and return the new order."""
    fair = reorder(queue.tracks)
    queue.clear()
    queue.add(fair)
    logger.info(f"Fair play applied to {len(fair)} queued tracks")
    return fair
