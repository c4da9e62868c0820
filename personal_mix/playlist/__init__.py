"""
Personalized playlist generation.

scoring -> recommender -> constructor (merge/filter/select) -> ordering,
driven per configured playlist by pipeline and batch_builder.
"""
from .candidate_pool import CandidatePool
from .config import (
    AssemblyConfig,
    GenerationSettings,
    PlaylistConfig,
    RecommenderConfig,
    ScoringConfig,
)
from .constructor import PlaylistDraft, assemble_playlist, merge_candidates, select_under_budget
from .errors import CancellationError, CancellationToken, HistoryStoreUnavailable
from .models import HistoryFact, ScoredTrack, Track, User
from .ordering import gentle_shuffle
from .recommender import RecommendationSet, Recommender
from .scoring import Scorer, score_track, select_seeds

from . import filtering
from . import pipeline
from . import batch_builder
from . import reporter

__all__ = [
    "AssemblyConfig",
    "GenerationSettings",
    "PlaylistConfig",
    "RecommenderConfig",
    "ScoringConfig",
    "CandidatePool",
    "PlaylistDraft",
    "assemble_playlist",
    "merge_candidates",
    "select_under_budget",
    "CancellationError",
    "CancellationToken",
    "HistoryStoreUnavailable",
    "HistoryFact",
    "ScoredTrack",
    "Track",
    "User",
    "gentle_shuffle",
    "RecommendationSet",
    "Recommender",
    "Scorer",
    "score_track",
    "select_seeds",
    "filtering",
    "pipeline",
    "batch_builder",
    "reporter",
]
