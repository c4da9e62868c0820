"""
Batch playlist creation module.

Runs every configured playlist in turn. One playlist failing, for any reason,
never stops the others; only a history store that cannot be opened, or an
explicit cancellation, ends the run early.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

import numpy as np

from personal_mix.logging_utils import RunSummary
from .config import GenerationSettings, PlaylistConfig
from .errors import CancellationError, CancellationToken
from .pipeline import PlaylistGenerationResult, generate_playlist
from .ports import HistoryStore, LibraryCatalog, PlaylistWriter, UserDirectory

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    results: List[PlaylistGenerationResult] = field(default_factory=list)
    aborted: bool = False
    abort_reason: Optional[str] = None

    @property
    def succeeded(self) -> List[PlaylistGenerationResult]:
        return [r for r in self.results if r.success]

    @property
    def failed(self) -> List[PlaylistGenerationResult]:
        return [r for r in self.results if not r.success]


def run_playlist_batch(
    playlist_configs: Sequence[PlaylistConfig],
    *,
    history_factory: Callable[[], HistoryStore],
    catalog: LibraryCatalog,
    users: UserDirectory,
    writer: PlaylistWriter,
    settings: Optional[GenerationSettings] = None,
    cancel_token: Optional[CancellationToken] = None,
    rng: Optional[np.random.Generator] = None,
    dry_run: bool = False,
) -> BatchResult:
    """
    Generate all configured playlists.

    Args:
        playlist_configs: Playlists to generate, in order
        history_factory: Opens the history store; a failure here aborts the run
        catalog, users, writer: Host library collaborators
        settings: Scoring/recommender/assembly tuning
        cancel_token: Checked before each playlist and between its phases
        rng: Shared randomness source for sampling and shuffling
        dry_run: Generate without persisting

    Returns:
        BatchResult with one entry per playlist that was attempted
    """
    batch = BatchResult()
    cancel_token = cancel_token or CancellationToken()
    rng = rng if rng is not None else np.random.default_rng()

    try:
        cancel_token.check("history initialization")
        history = history_factory()
    except CancellationError as e:
        logger.warning("%s", e)
        batch.aborted, batch.abort_reason = True, "cancelled"
        return batch
    except Exception:
        logger.exception("Error initializing listening history store.")
        batch.aborted, batch.abort_reason = True, "history_unavailable"
        return batch

    if not playlist_configs:
        logger.warning("No playlists configured. Please configure at least one playlist.")
        return batch

    summary = RunSummary("Playlist generation", logger)
    total = len(playlist_configs)
    logger.info("Generating %d playlist(s)", total)

    for position, playlist_config in enumerate(playlist_configs, start=1):
        try:
            logger.info("Processing playlist %d/%d: %s", position, total, playlist_config.name)
            result = generate_playlist(
                playlist_config,
                catalog=catalog,
                history=history,
                users=users,
                writer=writer,
                settings=settings,
                cancel_token=cancel_token,
                rng=rng,
                dry_run=dry_run,
            )
        except CancellationError as e:
            logger.warning("%s; stopping after %d of %d playlist(s)", e, position - 1, total)
            batch.aborted, batch.abort_reason = True, "cancelled"
            summary.increment("cancelled")
            break
        except Exception as e:
            logger.exception(
                "Error generating playlist '%s'. Continuing with next playlist.", playlist_config.name
            )
            batch.results.append(PlaylistGenerationResult.skipped(playlist_config.name, f"error: {e}"))
            summary.increment("errors")
            continue

        batch.results.append(result)
        summary.increment("succeeded" if result.success else "skipped")
        if result.success:
            summary.increment("tracks_written", len(result.track_ids))

    logger.info("Finished generating all playlists")
    summary.add("configured", total)
    summary.log()
    return batch
