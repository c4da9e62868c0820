from __future__ import annotations

from typing import Iterable, List, Optional, Protocol, Sequence

from .models import HistoryFact, Track, User


class LibraryCatalog(Protocol):
    """Read access to the host library's music catalog."""

    def list_tracks_in(self, container_ids: Sequence[str]) -> List[Track]:
        """Return every audio track found recursively under the given containers."""

    def find_similar(self, track: Track, limit: int = 10) -> List[Track]:
        """Return tracks similar to `track`, most similar first."""

    def playlist_exists(self, name: str) -> bool:
        """Whether a playlist with this exact name already exists."""


class HistoryStore(Protocol):
    """Read access to per-user play statistics."""

    def get_history(self, user_id: str, track_id: str) -> Optional[HistoryFact]:
        """Return the user's fact for the track, or None if never played."""


class UserDirectory(Protocol):

    def get_user_by_name(self, name: str) -> Optional[User]:
        """Return the user, or None when no such user exists."""


class PlaylistWriter(Protocol):
    """Playlist persistence in the host library."""

    def create_playlist(self, name: str, user: User, tracks: Iterable[Track]) -> str:
        """Create a playlist owned by `user` with tracks in order; return its id."""

    def remove_playlist(self, name: str, *, except_id: Optional[str] = None) -> None:
        """Remove every playlist with this name, other than `except_id`."""
