from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Dict, Iterable, Iterator, List, Optional

from .models import ScoredTrack

logger = logging.getLogger(__name__)


class CandidatePool:
    """
    Working set of scored tracks keyed by track id.

    Keeps the single best entry per track: a strictly higher score replaces
    the current entry in place, an equal score leaves the earliest-seen entry.
    Iteration follows first insertion.
    """

    def __init__(self, candidates: Optional[Iterable[ScoredTrack]] = None):
        self._entries: Dict[str, ScoredTrack] = {}
        self._seen = 0
        self._replaced = 0
        if candidates is not None:
            self.extend(candidates)

    def add(self, candidate: ScoredTrack) -> bool:
        """Add or upgrade an entry. Returns True if the pool changed."""
        self._seen += 1
        key = candidate.track_id
        current = self._entries.get(key)
        if current is None:
            self._entries[key] = candidate
            return True
        if candidate.score > current.score:
            self._entries[key] = candidate
            self._replaced += 1
            return True
        return False

    def extend(self, candidates: Iterable[ScoredTrack]) -> int:
        return sum(1 for c in candidates if self.add(c))

    def merge(self, *candidate_lists: Iterable[ScoredTrack]) -> "CandidatePool":
        for candidates in candidate_lists:
            self.extend(candidates)
        return self

    def get(self, track_id: str) -> Optional[ScoredTrack]:
        return self._entries.get(track_id)

    def values(self) -> List[ScoredTrack]:
        return list(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, track_id: object) -> bool:
        return track_id in self._entries

    def __iter__(self) -> Iterator[ScoredTrack]:
        return iter(self._entries.values())

    def stats(self) -> Dict[str, Any]:
        by_source = Counter(c.source for c in self._entries.values())
        return {
            "size": len(self._entries),
            "seen": self._seen,
            "duplicates": self._seen - len(self._entries),
            "replaced": self._replaced,
            "by_source": dict(by_source),
        }
