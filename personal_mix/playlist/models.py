"""
Playlist data types.

Tracks, users and history facts are owned by the host library and are treated
as read-only here. ScoredTrack is the working unit of a single generation run.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import FrozenSet, Literal, Optional

TrackSource = Literal["seed", "similarity", "genre", "artist", "favourite"]


@dataclass(frozen=True)
class Track:
    """A catalog track as exposed by the host library."""
    track_id: str
    title: str = ""
    artist_id: Optional[str] = None
    artist: str = ""
    parent_id: Optional[str] = None
    duration_ms: int = 0
    genres: FrozenSet[str] = field(default_factory=frozenset)
    is_theme_media: bool = False


@dataclass(frozen=True)
class HistoryFact:
    """Per (user, track) play statistics."""
    play_count: int = 0
    last_played: Optional[datetime] = None
    is_favorite: bool = False
    rating: Optional[float] = None


@dataclass(frozen=True)
class User:
    user_id: str
    name: str


@dataclass(frozen=True)
class ScoredTrack:
    """
    A track with a derived recommendation score.

    Attributes:
        track: The underlying catalog track
        score: Finite, non-negative; higher means a stronger signal
        source: Which stage produced this entry
    """
    track: Track
    score: float
    source: TrackSource = "seed"

    @property
    def track_id(self) -> str:
        return self.track.track_id

    @property
    def duration_ms(self) -> int:
        return self.track.duration_ms or 0
