"""
Playlist construction under a duration budget.

merge -> filter -> best-fit greedy selection. Ordering of the selected tracks
lives in ordering.py.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .candidate_pool import CandidatePool
from .config import AssemblyConfig
from .filtering import filter_by_min_duration, filter_missing_parent
from .models import ScoredTrack
from .recommender import RecommendationSet

logger = logging.getLogger(__name__)


@dataclass
class PlaylistDraft:
    """
    Ordered selection with its running duration.

    total_duration_ms stays within budget_ms, except for at most one
    overshooting track appended last when final overshoot is allowed.
    """
    budget_ms: int
    tracks: List[ScoredTrack] = field(default_factory=list)
    total_duration_ms: int = 0
    stats: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.tracks

    @property
    def remaining_ms(self) -> int:
        return self.budget_ms - self.total_duration_ms

    def fits(self, candidate: ScoredTrack) -> bool:
        return self.total_duration_ms + candidate.duration_ms <= self.budget_ms

    def append(self, candidate: ScoredTrack) -> None:
        self.tracks.append(candidate)
        self.total_duration_ms += candidate.duration_ms

    def __len__(self) -> int:
        return len(self.tracks)

    @property
    def track_ids(self) -> List[str]:
        return [t.track_id for t in self.tracks]


def merge_candidates(
    seeds: Iterable[ScoredTrack],
    *candidate_lists: Iterable[ScoredTrack],
) -> CandidatePool:
    """Union seeds and candidate lists, in that order, keeping the best entry per track."""
    return CandidatePool(seeds).merge(*candidate_lists)


def select_under_budget(
    candidates: Sequence[ScoredTrack],
    budget_ms: int,
    *,
    allow_final_overshoot: bool = False,
) -> PlaylistDraft:
    """
    Best-fit greedy selection in score order.

    A candidate that would overshoot the budget is skipped and evaluation
    continues with lower-scored ones. Equal scores keep candidate order.

    With allow_final_overshoot, when nothing else fits and some budget is
    left, the shortest remaining candidate is appended once.
    """
    draft = PlaylistDraft(budget_ms=max(0, int(budget_ms)))
    if budget_ms <= 0:
        return draft

    ranked = sorted(candidates, key=lambda c: c.score, reverse=True)
    skipped: List[ScoredTrack] = []
    for candidate in ranked:
        if candidate.duration_ms <= 0:
            continue
        if draft.fits(candidate):
            draft.append(candidate)
        else:
            skipped.append(candidate)

    if allow_final_overshoot and skipped and draft.remaining_ms > 0:
        shortest = min(skipped, key=lambda c: c.duration_ms)
        draft.append(shortest)
        skipped.remove(shortest)
        logger.debug(
            "Final overshoot: added %s (%dms over budget)",
            shortest.track_id, -draft.remaining_ms,
        )

    draft.stats.update({
        "selected": len(draft.tracks),
        "skipped_for_budget": len(skipped),
        "total_duration_ms": draft.total_duration_ms,
        "budget_ms": draft.budget_ms,
    })
    return draft


def assemble_playlist(
    seeds: Sequence[ScoredTrack],
    recommendations: Optional[RecommendationSet],
    *,
    duration_minutes: int,
    min_duration_seconds: int = 0,
    config: Optional[AssemblyConfig] = None,
) -> PlaylistDraft:
    """
    Merge seeds and recommendations, filter, then fill the duration budget.

    Returns an empty draft for a non-positive budget or when nothing
    survives filtering. Order is by score; apply gentle_shuffle afterwards.
    """
    config = config or AssemblyConfig()
    budget_ms = int(duration_minutes) * 60 * 1000
    if budget_ms <= 0:
        logger.warning("Duration budget is %s minutes; nothing to assemble", duration_minutes)
        return PlaylistDraft(budget_ms=0)

    lists = recommendations.as_lists() if recommendations is not None else ()
    pool = merge_candidates(seeds, *lists)
    pool_stats = pool.stats()

    candidates = filter_by_min_duration(pool.values(), min_duration_seconds=min_duration_seconds)
    candidates = filter_missing_parent(candidates)

    if not candidates:
        logger.warning("Candidate pool is empty after filtering (%d merged)", len(pool))
        draft = PlaylistDraft(budget_ms=budget_ms)
        draft.stats["pool"] = pool_stats
        return draft

    draft = select_under_budget(
        candidates,
        budget_ms,
        allow_final_overshoot=config.allow_final_overshoot,
    )
    draft.stats["pool"] = pool_stats
    draft.stats["eligible"] = len(candidates)
    logger.info(
        "Assembled %d tracks from %d candidates (%d merged, %d duplicates)",
        len(draft), len(candidates), pool_stats["size"], pool_stats["duplicates"],
    )
    return draft
