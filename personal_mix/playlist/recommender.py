"""
Multi-strategy track recommendation.

Expands a seed set of top-scored tracks into four candidate lists:
- Similarity: catalog-provided similar tracks, attenuated by rank
- Genre: bandit-style sampling over the seed set's genre tags
- Artist: the same sampler keyed on artist identity
- Favourite: the user's favourite-marked tracks, unaffected by exploration

Genre/artist exploration
------------------------
Each key (genre tag or artist id) present in the seeds is an arm. Its value
is the mean score of the seeds carrying it, and n_k is how many seeds carry
it. Arms are ranked by an upper-confidence index

    index_k = value_k / max_value + c * sqrt(ln(N + 1) / n_k)

where N is the seed count and c the exploration coefficient. With c = 0 the
index is the normalized value alone, so only the strongest arms are picked.
Inside a picked arm, tracks are the top-k by score for c = 0, or drawn without
replacement with weights (score + eps) ** (1 / (1 + c)), which flatten
towards uniform as c grows.
"""
from __future__ import annotations

import logging
import math
from collections import Counter, defaultdict
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

import numpy as np

from .config import RecommenderConfig
from .models import ScoredTrack, Track, TrackSource, User
from .ports import HistoryStore, LibraryCatalog
from .scoring import Scorer

logger = logging.getLogger(__name__)

_WEIGHT_EPS = 1e-6

KeyFn = Callable[[Track], Iterable[str]]


def genre_keys(track: Track) -> Iterable[str]:
    return sorted(g for g in track.genres if g)


def artist_keys(track: Track) -> Iterable[str]:
    return (track.artist_id,) if track.artist_id else ()


@dataclass(frozen=True)
class Arm:
    """A genre tag or artist id seen in the seed set."""
    key: str
    value: float
    seed_count: int


@dataclass(frozen=True)
class RecommendationSet:
    """The four candidate lists of one run, in merge order."""
    similarity: List[ScoredTrack] = field(default_factory=list)
    genre: List[ScoredTrack] = field(default_factory=list)
    artist: List[ScoredTrack] = field(default_factory=list)
    favourite: List[ScoredTrack] = field(default_factory=list)

    def as_lists(self) -> Tuple[List[ScoredTrack], ...]:
        return (self.similarity, self.genre, self.artist, self.favourite)

    def stats(self) -> Dict[str, int]:
        return {
            "similarity": len(self.similarity),
            "genre": len(self.genre),
            "artist": len(self.artist),
            "favourite": len(self.favourite),
        }


class Recommender:
    """
    Produces candidate lists from a seed set.

    All inputs are read-only. Genre and artist sampling use their own child
    generators derived from `rng`, so the strategies can run in any order (or
    concurrently) and still be reproducible for a fixed seed.
    """

    def __init__(
        self,
        catalog: LibraryCatalog,
        history: HistoryStore,
        available_tracks: Iterable[Track],
        *,
        exploration_coefficient: float = 0.0,
        config: Optional[RecommenderConfig] = None,
        scorer: Optional[Scorer] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        c = float(exploration_coefficient)
        if not math.isfinite(c) or c < 0:
            raise ValueError(f"exploration_coefficient must be a finite value >= 0, got {exploration_coefficient}")

        self.catalog = catalog
        self.history = history
        self.exploration_coefficient = c
        self.config = config or RecommenderConfig()
        self.scorer = scorer or Scorer()

        self._tracks: Dict[str, Track] = {}
        for track in available_tracks:
            self._tracks.setdefault(track.track_id, track)

        rng = rng if rng is not None else np.random.default_rng()
        genre_seed, artist_seed = rng.integers(0, 2**63 - 1, size=2)
        self._genre_rng = np.random.default_rng(int(genre_seed))
        self._artist_rng = np.random.default_rng(int(artist_seed))

        self._score_cache: Dict[Tuple[str, str], float] = {}

    # ------------------------------------------------------------------
    # Scores
    # ------------------------------------------------------------------

    def prime_scores(self, user: User, scored: Iterable[ScoredTrack]) -> None:
        """Reuse scores already computed for the available tracks."""
        for s in scored:
            self._score_cache[(user.user_id, s.track_id)] = s.score

    def _score(self, track: Track, user: User) -> float:
        key = (user.user_id, track.track_id)
        cached = self._score_cache.get(key)
        if cached is None:
            cached = self.scorer.score_for_user(track, user, self.history)
            self._score_cache[key] = cached
        return cached

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    def recommend_by_similarity(
        self,
        seed_tracks: Sequence[ScoredTrack],
        user: User,
    ) -> List[ScoredTrack]:
        """
        Similar tracks per seed, scored seed.score * decay ** rank.

        Only tracks from the available set are returned.
        """
        decay = self.config.similarity_decay
        results: List[ScoredTrack] = []
        for seed in seed_tracks:
            similar = self.catalog.find_similar(seed.track, limit=self.config.similar_per_seed) or []
            for rank, match in enumerate(similar):
                track = self._tracks.get(match.track_id)
                if track is None or track.track_id == seed.track_id:
                    continue
                results.append(
                    ScoredTrack(track=track, score=seed.score * decay ** rank, source="similarity")
                )

        logger.debug("Similarity strategy: %d candidates from %d seeds", len(results), len(seed_tracks))
        return results

    def recommend_by_genre(
        self,
        seed_tracks: Sequence[ScoredTrack],
        user: User,
        experimental_filter: bool = False,
    ) -> List[ScoredTrack]:
        return self._recommend_by_key(
            seed_tracks,
            user,
            key_fn=genre_keys,
            source="genre",
            experimental_filter=experimental_filter,
            rng=self._genre_rng,
        )

    def recommend_by_artist(
        self,
        seed_tracks: Sequence[ScoredTrack],
        user: User,
        experimental_filter: bool = False,
    ) -> List[ScoredTrack]:
        return self._recommend_by_key(
            seed_tracks,
            user,
            key_fn=artist_keys,
            source="artist",
            experimental_filter=experimental_filter,
            rng=self._artist_rng,
        )

    def recommend_by_favourite(
        self,
        seed_tracks: Sequence[ScoredTrack],
        user: User,
    ) -> List[ScoredTrack]:
        """Favourite-marked available tracks, best first, capped at favourite_limit."""
        favourites: List[ScoredTrack] = []
        for track in self._tracks.values():
            fact = self.history.get_history(user.user_id, track.track_id)
            if fact is None or not fact.is_favorite:
                continue
            favourites.append(
                ScoredTrack(track=track, score=self.scorer.score(track, fact), source="favourite")
            )

        favourites.sort(key=lambda s: s.score, reverse=True)
        limit = self.config.favourite_limit
        if limit >= 0:
            favourites = favourites[:limit]
        logger.debug("Favourite strategy: %d candidates", len(favourites))
        return favourites

    def recommend_all(
        self,
        seed_tracks: Sequence[ScoredTrack],
        user: User,
        experimental_filter: bool = False,
        parallel: Optional[bool] = None,
    ) -> RecommendationSet:
        """Run all four strategies, optionally on a thread pool."""
        if parallel is None:
            parallel = self.config.parallel

        jobs = {
            "similarity": lambda: self.recommend_by_similarity(seed_tracks, user),
            "genre": lambda: self.recommend_by_genre(seed_tracks, user, experimental_filter),
            "artist": lambda: self.recommend_by_artist(seed_tracks, user, experimental_filter),
            "favourite": lambda: self.recommend_by_favourite(seed_tracks, user),
        }

        if parallel:
            with ThreadPoolExecutor(max_workers=len(jobs)) as executor:
                futures = {name: executor.submit(fn) for name, fn in jobs.items()}
                results = {name: future.result() for name, future in futures.items()}
        else:
            results = {name: fn() for name, fn in jobs.items()}

        recommendations = RecommendationSet(**results)
        logger.info(
            "Recommendations: similarity=%d genre=%d artist=%d favourite=%d (exploration=%.2f)",
            len(recommendations.similarity),
            len(recommendations.genre),
            len(recommendations.artist),
            len(recommendations.favourite),
            self.exploration_coefficient,
        )
        return recommendations

    # ------------------------------------------------------------------
    # Bandit sampling
    # ------------------------------------------------------------------

    def rank_arms(
        self,
        seed_tracks: Sequence[ScoredTrack],
        key_fn: KeyFn,
        experimental_filter: bool = False,
    ) -> List[Arm]:
        """
        Choose the arms to sample from, best index first.

        Ties fall back to arm value, then first appearance in the seed set.
        """
        totals: Dict[str, float] = defaultdict(float)
        counts: Counter = Counter()
        first_seen: Dict[str, int] = {}
        for seed in seed_tracks:
            for key in dict.fromkeys(key_fn(seed.track)):
                totals[key] += seed.score
                counts[key] += 1
                first_seen.setdefault(key, len(first_seen))

        arms = [Arm(key=k, value=totals[k] / counts[k], seed_count=counts[k]) for k in counts]
        if experimental_filter:
            arms = [a for a in arms if a.seed_count >= self.config.min_seed_confirmations]
        if not arms:
            return []

        max_value = max(a.value for a in arms)
        c = self.exploration_coefficient
        n_seeds = len(seed_tracks)

        def index(arm: Arm) -> float:
            exploit = arm.value / max_value if max_value > 0 else 0.0
            if c == 0:
                return exploit
            return exploit + c * math.sqrt(math.log(n_seeds + 1) / arm.seed_count)

        ranked = sorted(arms, key=lambda a: (-index(a), -a.value, first_seen[a.key]))
        return ranked[: max(0, self.config.arms_per_strategy)]

    def _sample_arm(
        self,
        arm: Arm,
        pool: List[Track],
        user: User,
        source: TrackSource,
        rng: np.random.Generator,
    ) -> List[ScoredTrack]:
        k = min(self.config.tracks_per_arm, len(pool))
        if k <= 0:
            return []

        scores = np.array([self._score(t, user) for t in pool], dtype=float)
        c = self.exploration_coefficient
        if c == 0:
            picked = np.argsort(-scores, kind="stable")[:k]
        else:
            weights = np.power(scores + _WEIGHT_EPS, 1.0 / (1.0 + c))
            picked = rng.choice(len(pool), size=k, replace=False, p=weights / weights.sum())

        boost = self.config.affinity_weight * arm.value
        return [
            ScoredTrack(track=pool[i], score=float(scores[i]) + boost, source=source)
            for i in picked
        ]

    def _recommend_by_key(
        self,
        seed_tracks: Sequence[ScoredTrack],
        user: User,
        *,
        key_fn: KeyFn,
        source: TrackSource,
        experimental_filter: bool,
        rng: np.random.Generator,
    ) -> List[ScoredTrack]:
        arms = self.rank_arms(seed_tracks, key_fn, experimental_filter)
        if not arms:
            logger.debug("%s strategy: no eligible arms in %d seeds", source.title(), len(seed_tracks))
            return []

        seed_ids: Set[str] = {s.track_id for s in seed_tracks}
        wanted = {a.key for a in arms}
        pools: Mapping[str, List[Track]] = defaultdict(list)
        for track in self._tracks.values():
            if track.track_id in seed_ids:
                continue
            for key in key_fn(track):
                if key in wanted:
                    pools[key].append(track)

        results: List[ScoredTrack] = []
        for arm in arms:
            sampled = self._sample_arm(arm, pools.get(arm.key, []), user, source, rng)
            logger.debug(
                "%s arm %r: value=%.3f seeds=%d sampled=%d",
                source.title(), arm.key, arm.value, arm.seed_count, len(sampled),
            )
            results.extend(sampled)
        return results
