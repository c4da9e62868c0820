"""
Playlist reporting helpers.

Human-readable summaries of a finished draft for the run log.
"""
from __future__ import annotations

import logging
from collections import Counter
from typing import Sequence

from .models import ScoredTrack

logger = logging.getLogger(__name__)


def format_duration(duration_ms: int) -> str:
    """
    Convert milliseconds to human-readable duration format.

    Args:
        duration_ms: Duration in milliseconds

    Returns:
        Formatted duration string (e.g., "45.2 minutes")
    """
    total_minutes = duration_ms / 1000 / 60
    return f"{total_minutes:.1f} minutes"


def log_playlist_summary(
    name: str,
    tracks: Sequence[ScoredTrack],
    *,
    budget_ms: int,
    preview: int = 5,
) -> None:
    """Log totals, source mix and the first few tracks of a playlist."""
    total_ms = sum(t.duration_ms for t in tracks)
    sources = Counter(t.source for t in tracks)
    mix = ", ".join(f"{src}={count}" for src, count in sources.most_common())

    logger.info(
        "Playlist '%s': %d tracks, %s of %s (%s)",
        name, len(tracks), format_duration(total_ms), format_duration(budget_ms), mix or "empty",
    )
    for position, item in enumerate(tracks[:preview], start=1):
        logger.debug(
            "  %2d. %s - %s [score=%.3f, %s]",
            position, item.track.artist or "Unknown", item.track.title or item.track_id,
            item.score, item.source,
        )
