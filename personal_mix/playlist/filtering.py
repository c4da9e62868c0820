"""
Track filtering module for playlist generation.

This module removes tracks that must never reach a playlist:
- Theme media (intro/background clips attached to other items)
- Tracks shorter than the configured minimum duration
- Tracks without a parent container (inconsistent catalog entries)

Every minimum-duration check goes through is_valid_duration so that the
catalog filter and the candidate filter apply the same seconds contract.
"""
from __future__ import annotations

import logging
from typing import List, Sequence, TypeVar, Union

from .models import ScoredTrack, Track

logger = logging.getLogger(__name__)

T = TypeVar("T", Track, ScoredTrack)


def _track_of(item: Union[Track, ScoredTrack]) -> Track:
    return item.track if isinstance(item, ScoredTrack) else item


def is_valid_duration(item: Union[Track, ScoredTrack], *, min_seconds: int) -> bool:
    """
    True when the track lasts at least `min_seconds`.

    Missing or non-positive durations are only accepted when no minimum is
    configured.
    """
    duration_ms = _track_of(item).duration_ms or 0
    if min_seconds <= 0:
        return True
    return duration_ms >= int(min_seconds) * 1000


def filter_theme_media(tracks: Sequence[T]) -> List[T]:
    """Drop theme songs and other theme media."""
    filtered = [t for t in tracks if not _track_of(t).is_theme_media]
    if len(filtered) != len(tracks):
        logger.debug("Theme media filter: %d -> %d tracks", len(tracks), len(filtered))
    return filtered


def filter_by_min_duration(tracks: Sequence[T], *, min_duration_seconds: int) -> List[T]:
    """
    Remove tracks shorter than `min_duration_seconds`.

    Args:
        tracks: Tracks or scored tracks
        min_duration_seconds: Minimum duration in seconds (0 to skip filtering)

    Returns:
        Filtered list, input order preserved
    """
    if not min_duration_seconds or min_duration_seconds <= 0:
        return list(tracks)

    filtered = [t for t in tracks if is_valid_duration(t, min_seconds=min_duration_seconds)]
    logger.debug(
        "Duration filter: %d -> %d tracks (min=%ds)",
        len(tracks), len(filtered), min_duration_seconds,
    )
    return filtered


def filter_missing_parent(tracks: Sequence[T]) -> List[T]:
    """Remove tracks that have no parent container reference."""
    filtered = [t for t in tracks if _track_of(t).parent_id]
    removed = len(tracks) - len(filtered)
    if removed:
        logger.warning("Dropped %d track(s) without a parent container", removed)
    return filtered


def filter_catalog_tracks(tracks: Sequence[Track], *, min_duration_seconds: int) -> List[Track]:
    """Filters applied to the raw catalog before scoring."""
    return filter_by_min_duration(
        filter_theme_media(tracks),
        min_duration_seconds=min_duration_seconds,
    )
