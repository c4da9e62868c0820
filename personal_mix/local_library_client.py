"""
Local Library Client - host library access over a SQLite export

Implements the catalog, user directory and playlist writer collaborators
against a SQLite database, plus a separate read-only listening history store.
"""
import logging
import sqlite3
import threading
import uuid
from pathlib import Path
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence

from personal_mix.playlist.errors import HistoryStoreUnavailable
from personal_mix.playlist.models import HistoryFact, Track, User

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    user_id TEXT PRIMARY KEY,
    name TEXT NOT NULL UNIQUE
);
CREATE TABLE IF NOT EXISTS tracks (
    track_id TEXT PRIMARY KEY,
    library_id TEXT NOT NULL,
    parent_id TEXT,
    title TEXT,
    artist_id TEXT,
    artist TEXT,
    duration_ms INTEGER,
    is_theme_media INTEGER NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_tracks_library ON tracks(library_id);
CREATE TABLE IF NOT EXISTS track_genres (
    track_id TEXT NOT NULL,
    genre TEXT NOT NULL,
    PRIMARY KEY (track_id, genre)
);
CREATE TABLE IF NOT EXISTS similar_tracks (
    track_id TEXT NOT NULL,
    similar_id TEXT NOT NULL,
    similarity REAL NOT NULL,
    PRIMARY KEY (track_id, similar_id)
);
CREATE TABLE IF NOT EXISTS play_history (
    user_id TEXT NOT NULL,
    track_id TEXT NOT NULL,
    play_count INTEGER NOT NULL DEFAULT 0,
    last_played TEXT,
    is_favorite INTEGER NOT NULL DEFAULT 0,
    rating REAL,
    PRIMARY KEY (user_id, track_id)
);
CREATE TABLE IF NOT EXISTS playlists (
    playlist_id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    user_id TEXT NOT NULL,
    created_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS playlist_items (
    playlist_id TEXT NOT NULL,
    position INTEGER NOT NULL,
    track_id TEXT NOT NULL,
    PRIMARY KEY (playlist_id, position)
);
"""

_TRACK_COLUMNS = "t.track_id, t.title, t.artist_id, t.artist, t.parent_id, t.duration_ms, t.is_theme_media"


def ensure_schema(conn: sqlite3.Connection) -> None:
    """Create the host-library tables if they do not exist."""
    conn.executescript(SCHEMA)


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        logger.debug(f"Unparseable last_played timestamp: {value!r}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class LocalLibraryClient:
    """
    Catalog, user directory and playlist writer backed by SQLite.
    """

    def __init__(self, db_path: str = "data/library.db", *, create: bool = False):
        """
        Args:
            db_path: Path to the library database
            create: Create missing tables (for new or test databases)
        """
        self.db_path = db_path
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        if create:
            ensure_schema(self.conn)
        logger.debug(f"Connected to library database: {db_path}")

    def close(self) -> None:
        self.conn.close()

    def _genres_for(self, track_ids: Sequence[str]) -> dict:
        genres: dict = {tid: set() for tid in track_ids}
        if not track_ids:
            return genres
        cursor = self.conn.cursor()
        # SQLite caps bound parameters; fetch in chunks
        for start in range(0, len(track_ids), 500):
            chunk = list(track_ids[start:start + 500])
            placeholders = ",".join("?" * len(chunk))
            cursor.execute(
                f"SELECT track_id, genre FROM track_genres WHERE track_id IN ({placeholders})",
                chunk,
            )
            for row in cursor.fetchall():
                genres[row['track_id']].add(row['genre'])
        return genres

    def _rows_to_tracks(self, rows: List[sqlite3.Row]) -> List[Track]:
        genres = self._genres_for([row['track_id'] for row in rows])
        return [
            Track(
                track_id=row['track_id'],
                title=row['title'] or '',
                artist_id=row['artist_id'],
                artist=row['artist'] or '',
                parent_id=row['parent_id'],
                duration_ms=row['duration_ms'] or 0,
                genres=frozenset(genres.get(row['track_id'], ())),
                is_theme_media=bool(row['is_theme_media']),
            )
            for row in rows
        ]

    # Catalog

    def list_tracks_in(self, container_ids: Sequence[str]) -> List[Track]:
        """Get all tracks in the given libraries"""
        if not container_ids:
            return []
        placeholders = ",".join("?" * len(container_ids))
        cursor = self.conn.cursor()
        cursor.execute(
            f"""
            SELECT {_TRACK_COLUMNS}
            FROM tracks t
            WHERE t.library_id IN ({placeholders})
            ORDER BY t.artist, t.parent_id, t.title, t.track_id
            """,
            list(container_ids),
        )
        tracks = self._rows_to_tracks(cursor.fetchall())
        logger.info(f"Retrieved {len(tracks)} tracks from {len(container_ids)} libraries")
        return tracks

    def find_similar(self, track: Track, limit: int = 10) -> List[Track]:
        """Get similar tracks, most similar first"""
        cursor = self.conn.cursor()
        cursor.execute(
            f"""
            SELECT {_TRACK_COLUMNS}
            FROM similar_tracks s
            JOIN tracks t ON t.track_id = s.similar_id
            WHERE s.track_id = ?
            ORDER BY s.similarity DESC, t.track_id
            LIMIT ?
            """,
            (track.track_id, int(limit)),
        )
        return self._rows_to_tracks(cursor.fetchall())

    def playlist_exists(self, name: str) -> bool:
        cursor = self.conn.cursor()
        cursor.execute("SELECT 1 FROM playlists WHERE name = ? LIMIT 1", (name,))
        return cursor.fetchone() is not None

    # Users

    def get_user_by_name(self, name: str) -> Optional[User]:
        cursor = self.conn.cursor()
        cursor.execute("SELECT user_id, name FROM users WHERE name = ?", (name,))
        row = cursor.fetchone()
        if not row:
            return None
        return User(user_id=row['user_id'], name=row['name'])

    # Playlists

    def create_playlist(self, name: str, user: User, tracks: Iterable[Track]) -> str:
        """Create a playlist with tracks in the given order"""
        playlist_id = uuid.uuid4().hex
        created_at = datetime.now(timezone.utc).isoformat()
        items = [(playlist_id, position, t.track_id) for position, t in enumerate(tracks)]
        with self.conn:
            self.conn.execute(
                "INSERT INTO playlists (playlist_id, name, user_id, created_at) VALUES (?, ?, ?, ?)",
                (playlist_id, name, user.user_id, created_at),
            )
            self.conn.executemany(
                "INSERT INTO playlist_items (playlist_id, position, track_id) VALUES (?, ?, ?)",
                items,
            )
        logger.info(f"Created playlist '{name}' ({len(items)} tracks) for {user.name}")
        return playlist_id

    def remove_playlist(self, name: str, *, except_id: Optional[str] = None) -> None:
        """Delete playlists named `name`, keeping `except_id` if given"""
        with self.conn:
            ids = [row["playlist_id"] for row in self.conn.execute(
                "SELECT playlist_id FROM playlists WHERE name = ? AND playlist_id IS NOT ?", (name, except_id)
            )]
            for playlist_id in ids:
                self.conn.execute("DELETE FROM playlist_items WHERE playlist_id = ?", (playlist_id,))
                self.conn.execute("DELETE FROM playlists WHERE playlist_id = ?", (playlist_id,))
        logger.debug(f"Removed {len(ids)} playlist(s) named '{name}'")

    def get_playlist_track_ids(self, name: str) -> List[str]:
        """Track ids of the named playlist in order (empty if missing)"""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT i.track_id
            FROM playlists p
            JOIN playlist_items i ON i.playlist_id = p.playlist_id
            WHERE p.name = ?
            ORDER BY i.position
            """,
            (name,),
        )
        return [row['track_id'] for row in cursor.fetchall()]


class LocalHistoryStore:
    """
    Read-only listening history backed by the play_history table.

    Raises HistoryStoreUnavailable on construction when the database or the
    table cannot be opened.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        try:
            # Read-only: a missing file raises instead of being created
            uri = f"{Path(db_path).resolve().as_uri()}?mode=ro"
            self.conn = sqlite3.connect(uri, uri=True, check_same_thread=False)
            self.conn.row_factory = sqlite3.Row
            row = self.conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table' AND name = 'play_history'"
            ).fetchone()
        except sqlite3.Error as e:
            raise HistoryStoreUnavailable(f"Cannot open history database {db_path}: {e}") from e
        if row is None:
            self.conn.close()
            raise HistoryStoreUnavailable(f"No play_history table in {db_path}")
        self._lock = threading.Lock()
        logger.debug(f"Connected to history database: {db_path}")

    def close(self) -> None:
        self.conn.close()

    def get_history(self, user_id: str, track_id: str) -> Optional[HistoryFact]:
        with self._lock:
            row = self.conn.execute(
                """
                SELECT play_count, last_played, is_favorite, rating
                FROM play_history
                WHERE user_id = ? AND track_id = ?
                """,
                (user_id, track_id),
            ).fetchone()
        if not row:
            return None
        return HistoryFact(
            play_count=row['play_count'] or 0,
            last_played=_parse_timestamp(row['last_played']),
            is_favorite=bool(row['is_favorite']),
            rating=row['rating'],
        )
