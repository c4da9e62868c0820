"""
Single-playlist generation pipeline.

    user -> catalog fetch -> filter -> score -> seeds -> recommend
         -> assemble -> gentle shuffle -> persist & replace previous

The cancellation token is checked between phases. Nothing is written to the
host library until every phase has completed.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from personal_mix.logging_utils import format_count, stage_timer, truncate_list
from .config import GenerationSettings, PlaylistConfig
from .constructor import assemble_playlist
from .errors import CancellationToken
from .filtering import filter_catalog_tracks
from .ordering import gentle_shuffle
from .ports import HistoryStore, LibraryCatalog, PlaylistWriter, UserDirectory
from .recommender import Recommender
from .reporter import log_playlist_summary
from .scoring import Scorer, select_seeds

logger = logging.getLogger(__name__)


@dataclass
class PlaylistGenerationResult:
    """Outcome of one configured playlist."""
    name: str
    success: bool = False
    failure_reason: Optional[str] = None
    track_ids: List[str] = field(default_factory=list)
    playlist_id: Optional[str] = None
    stats: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def skipped(cls, name: str, reason: str, **stats: Any) -> "PlaylistGenerationResult":
        return cls(name=name, success=False, failure_reason=reason, stats=dict(stats))


def generate_playlist(
    playlist_config: PlaylistConfig,
    *,
    catalog: LibraryCatalog,
    history: HistoryStore,
    users: UserDirectory,
    writer: PlaylistWriter,
    settings: Optional[GenerationSettings] = None,
    cancel_token: Optional[CancellationToken] = None,
    rng: Optional[np.random.Generator] = None,
    scorer: Optional[Scorer] = None,
    dry_run: bool = False,
) -> PlaylistGenerationResult:
    """
    Generate and persist one playlist.

    Configuration-incomplete and empty-result cases are logged as warnings and
    reported through the result; collaborator errors propagate to the caller.

    Raises:
        CancellationError: if cancel_token is cancelled between phases
    """
    settings = settings or GenerationSettings()
    cancel_token = cancel_token or CancellationToken()
    rng = rng if rng is not None else np.random.default_rng()
    scorer = scorer or Scorer(settings.scoring)
    name = playlist_config.name

    cancel_token.check("user lookup")
    logger.info(
        "Start generating playlist '%s' with exploration %.2f for %s",
        name, playlist_config.exploration_coefficient, playlist_config.user_name,
    )

    user = users.get_user_by_name(playlist_config.user_name)
    if user is None:
        logger.warning("User %s not found. Skipping playlist '%s'.", playlist_config.user_name, name)
        return PlaylistGenerationResult.skipped(name, "user_not_found")

    if not playlist_config.library_ids:
        logger.warning("No libraries selected for playlist '%s'. Skipping.", name)
        return PlaylistGenerationResult.skipped(name, "no_libraries")
    logger.info(
        "Generating playlist '%s' from libraries: %s",
        name, truncate_list(list(playlist_config.library_ids), max_items=5),
    )

    cancel_token.check("catalog fetch")
    with stage_timer(f"Catalog fetch ({name})", logger):
        all_tracks = catalog.list_tracks_in(list(playlist_config.library_ids))
    if not all_tracks:
        logger.warning("No music found for playlist '%s'.", name)
        return PlaylistGenerationResult.skipped(name, "no_tracks")

    tracks = filter_catalog_tracks(all_tracks, min_duration_seconds=playlist_config.exclude_seconds)
    logger.info(
        "Found %s, %s after removing theme media and short tracks",
        format_count(len(all_tracks), "track"), format_count(len(tracks), "track"),
    )
    if not tracks:
        logger.warning("No music found after filtering for playlist '%s'.", name)
        return PlaylistGenerationResult.skipped(name, "all_filtered", catalog=len(all_tracks))

    cancel_token.check("scoring")
    with stage_timer(f"Scoring ({name})", logger):
        scored = scorer.score_all(tracks, user, history)
    seeds = select_seeds(scored, settings.recommender.seed_count)
    if seeds:
        top = seeds[0]
        logger.info("Highest score: %.3f for track: %s", top.score, top.track.title or top.track_id)

    cancel_token.check("recommendation")
    recommender = Recommender(
        catalog,
        history,
        tracks,
        exploration_coefficient=playlist_config.exploration_coefficient,
        config=settings.recommender,
        scorer=scorer,
        rng=rng,
    )
    recommender.prime_scores(user, scored)
    with stage_timer(f"Recommendation ({name})", logger):
        recommendations = recommender.recommend_all(
            seeds, user, experimental_filter=playlist_config.experimental_filter,
        )

    cancel_token.check("assembly")
    draft = assemble_playlist(
        seeds,
        recommendations,
        duration_minutes=playlist_config.duration_minutes,
        min_duration_seconds=playlist_config.exclude_seconds,
        config=settings.assembly,
    )
    if draft.is_empty:
        logger.warning("Assembled playlist '%s' is empty. Skipping.", name)
        return PlaylistGenerationResult.skipped(name, "empty_playlist", **draft.stats)

    ordered = gentle_shuffle(draft.tracks, settings.assembly.shuffle_window, rng)
    log_playlist_summary(name, ordered, budget_ms=draft.budget_ms)

    stats = {
        "catalog": len(all_tracks),
        "eligible": len(tracks),
        "seeds": len(seeds),
        "recommendations": recommendations.stats(),
        "total_duration_ms": draft.total_duration_ms,
        **draft.stats,
    }
    result = PlaylistGenerationResult(
        name=name,
        success=True,
        track_ids=[t.track_id for t in ordered],
        stats=stats,
    )

    cancel_token.check("persistence")
    if dry_run:
        logger.info("Dry run: playlist '%s' not saved", name)
        return result

    # A failed create leaves the previous playlist in place
    replacing = catalog.playlist_exists(name)
    result.playlist_id = writer.create_playlist(name, user, [t.track for t in ordered])
    if replacing:
        logger.info("Playlist %s exists. Overwriting.", name)
        writer.remove_playlist(name, except_id=result.playlist_id)
    logger.info("Generated personal playlist '%s' for %s.", name, user.name)
    return result
