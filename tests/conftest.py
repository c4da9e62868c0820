"""Test configuration and fixtures."""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import numpy as np
import pytest

# Add repo root to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from personal_mix.playlist.models import HistoryFact, Track, User

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)
GENRES = ["rock", "jazz", "ambient", "folk", "electronic", "soul"]


class FakeLibrary:
    """In-memory catalog, user directory and playlist writer."""

    def __init__(self, tracks_by_library=None, similar=None, users=None):
        self.tracks_by_library = dict(tracks_by_library or {})
        self.similar = dict(similar or {})
        self.users = {u.name: u for u in (users or [])}
        self.saved = {}  # playlist_id -> (name, track_ids)
        self.calls = []
        self._next_id = 0

    @property
    def playlists(self):
        return {name: track_ids for name, track_ids in self.saved.values()}

    def list_tracks_in(self, container_ids):
        self.calls.append(("list_tracks_in", tuple(container_ids)))
        tracks = []
        for container_id in container_ids:
            tracks.extend(self.tracks_by_library.get(container_id, []))
        return tracks

    def find_similar(self, track, limit=10):
        return list(self.similar.get(track.track_id, []))[:limit]

    def playlist_exists(self, name):
        return any(saved_name == name for saved_name, _ in self.saved.values())

    def get_user_by_name(self, name):
        return self.users.get(name)

    def create_playlist(self, name, user, tracks):
        self.calls.append(("create_playlist", name))
        self._next_id += 1
        playlist_id = f"pl-{self._next_id}"
        self.saved[playlist_id] = (name, [t.track_id for t in tracks])
        return playlist_id

    def remove_playlist(self, name, *, except_id=None):
        self.calls.append(("remove_playlist", name))
        for playlist_id in [p for p, (n, _) in self.saved.items() if n == name and p != except_id]:
            del self.saved[playlist_id]


class FakeHistory:
    """Listening history keyed by (user_id, track_id)."""

    def __init__(self, facts=None):
        self.facts = dict(facts or {})

    def get_history(self, user_id, track_id):
        return self.facts.get((user_id, track_id))


def make_track(track_id, *, duration_s=200, artist_id="a0", genres=("rock",), parent_id="album-1",
               is_theme_media=False):
    return Track(
        track_id=track_id,
        title=f"Song {track_id}",
        artist_id=artist_id,
        artist=f"Artist {artist_id}",
        parent_id=parent_id,
        duration_ms=int(duration_s * 1000),
        genres=frozenset(genres),
        is_theme_media=is_theme_media,
    )


def build_library(seed: int = 0, n_tracks: int = 60):
    """Build a synthetic library with a listened-to user and similarity links."""
    rng = np.random.default_rng(seed)
    tracks = []
    for i in range(n_tracks):
        picked = rng.choice(len(GENRES), size=int(rng.integers(1, 3)), replace=False)
        tracks.append(make_track(
            f"t{i}",
            duration_s=int(rng.integers(120, 400)),
            artist_id=f"a{i % 10}",
            genres=[GENRES[g] for g in picked],
            parent_id=f"album-{i // 6}",
        ))

    user = User(user_id="u1", name="alice")
    facts = {}
    for i in range(0, n_tracks, 3):
        facts[(user.user_id, f"t{i}")] = HistoryFact(
            play_count=int(rng.integers(1, 40)),
            last_played=NOW - timedelta(days=float(rng.uniform(0, 120))),
            is_favorite=bool(i % 9 == 0),
        )

    by_id = {t.track_id: t for t in tracks}
    similar = {
        t.track_id: [by_id[f"t{(i + k) % n_tracks}"] for k in (1, 2, 5, 7)]
        for i, t in enumerate(tracks)
    }
    library = FakeLibrary({"music": tracks}, similar, [user])
    return library, FakeHistory(facts), user, tracks


def populate_sqlite_library(db_path, seed: int = 0, n_tracks: int = 40):
    """Write the synthetic library into a SQLite database with the host schema."""
    from personal_mix.local_library_client import LocalLibraryClient

    library, history, user, tracks = build_library(seed=seed, n_tracks=n_tracks)
    client = LocalLibraryClient(str(db_path), create=True)
    with client.conn:
        client.conn.execute("INSERT INTO users (user_id, name) VALUES (?, ?)", (user.user_id, user.name))
        for t in tracks:
            client.conn.execute(
                "INSERT INTO tracks (track_id, library_id, parent_id, title, artist_id, artist, duration_ms,"
                " is_theme_media) VALUES (?, 'music', ?, ?, ?, ?, ?, ?)",
                (t.track_id, t.parent_id, t.title, t.artist_id, t.artist, t.duration_ms, int(t.is_theme_media)),
            )
            client.conn.executemany(
                "INSERT INTO track_genres (track_id, genre) VALUES (?, ?)",
                [(t.track_id, g) for g in sorted(t.genres)],
            )
            for rank, match in enumerate(library.similar[t.track_id]):
                client.conn.execute(
                    "INSERT INTO similar_tracks (track_id, similar_id, similarity) VALUES (?, ?, ?)",
                    (t.track_id, match.track_id, 1.0 - 0.1 * rank),
                )
        for (user_id, track_id), fact in history.facts.items():
            client.conn.execute(
                "INSERT INTO play_history (user_id, track_id, play_count, last_played, is_favorite, rating)"
                " VALUES (?, ?, ?, ?, ?, ?)",
                (user_id, track_id, fact.play_count, fact.last_played.isoformat(), int(fact.is_favorite),
                 fact.rating),
            )
    client.close()
    return tracks, history, user


@pytest.fixture()
def synthetic_library():
    return build_library(seed=123)


@pytest.fixture()
def rng():
    return np.random.default_rng(7)


@pytest.fixture()
def fixed_clock():
    return lambda: NOW
