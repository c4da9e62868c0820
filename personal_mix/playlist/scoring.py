"""
Listening-history scoring module.

Turns per-track play statistics into a comparable, non-negative score:

    score = (baseline + w_play * log(1 + plays)) * recency + favourite + w_rating * rating

    recency = 1 + boost * 0.5 ** (days_since_last_play / half_life)

A track with no history gets exactly `baseline`. Never-played tracks get no
recency bonus and no penalty.
"""
from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional, Sequence

from .config import ScoringConfig
from .models import HistoryFact, ScoredTrack, Track, User
from .ports import HistoryStore

logger = logging.getLogger(__name__)

_MAX_RATING = 10.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _days_since(last_played: datetime, now: datetime) -> float:
    # Naive timestamps from the host are UTC.
    if last_played.tzinfo is None:
        last_played = last_played.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    elapsed = (now - last_played).total_seconds() / 86400.0
    return max(0.0, elapsed)


def recency_multiplier(
    last_played: Optional[datetime],
    *,
    now: datetime,
    config: ScoringConfig,
) -> float:
    """Smoothly decaying bonus for recent plays; 1.0 when never played."""
    if last_played is None:
        return 1.0
    days = _days_since(last_played, now)
    return 1.0 + config.recency_boost * 0.5 ** (days / config.recency_half_life_days)


def score_track(
    track: Track,
    fact: Optional[HistoryFact],
    *,
    config: ScoringConfig,
    now: datetime,
) -> float:
    """
    Score a track from the target user's history fact.

    Args:
        track: Track being scored (unused beyond identity; kept for the contract)
        fact: History fact, or None when the user never played the track
        config: Scoring weights
        now: Reference time for recency

    Returns:
        Finite, non-negative score
    """
    baseline = max(0.0, config.baseline)
    if fact is None:
        return baseline

    plays = max(0, int(fact.play_count or 0))
    base = baseline + config.play_weight * math.log1p(plays)
    score = base * recency_multiplier(fact.last_played, now=now, config=config)

    if fact.is_favorite:
        score += config.favourite_bonus
    if fact.rating is not None and math.isfinite(fact.rating):
        score += config.rating_weight * min(max(float(fact.rating), 0.0), _MAX_RATING)

    if not math.isfinite(score):
        logger.debug("Non-finite score for %s; using baseline", track.track_id)
        return baseline
    return max(0.0, score)


class Scorer:
    """Binds scoring weights and a clock; scores tracks for one user."""

    def __init__(
        self,
        config: Optional[ScoringConfig] = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.config = config or ScoringConfig()
        self._now = clock()

    @property
    def now(self) -> datetime:
        return self._now

    def score(self, track: Track, fact: Optional[HistoryFact]) -> float:
        return score_track(track, fact, config=self.config, now=self._now)

    def score_for_user(self, track: Track, user: User, history: HistoryStore) -> float:
        return self.score(track, history.get_history(user.user_id, track.track_id))

    def score_all(
        self,
        tracks: Iterable[Track],
        user: User,
        history: HistoryStore,
    ) -> List[ScoredTrack]:
        """
        Score every track and return them best-first.

        Ties keep the input order (stable sort).
        """
        scored = [
            ScoredTrack(track=t, score=self.score_for_user(t, user, history), source="seed")
            for t in tracks
        ]
        scored.sort(key=lambda s: s.score, reverse=True)
        return scored


def select_seeds(scored: Sequence[ScoredTrack], seed_count: int = 20) -> List[ScoredTrack]:
    """Top-N of an already score-sorted list."""
    if seed_count <= 0:
        return []
    return list(scored[:seed_count])
