"""Integration tests for the SQLite-backed library and history store."""
import sqlite3

import numpy as np
import pytest

from conftest import NOW, populate_sqlite_library
from personal_mix.local_library_client import LocalHistoryStore, LocalLibraryClient
from personal_mix.playlist.config import PlaylistConfig
from personal_mix.playlist.errors import HistoryStoreUnavailable
from personal_mix.playlist.pipeline import generate_playlist
from personal_mix.playlist.scoring import Scorer


@pytest.fixture()
def library_db(tmp_path):
    db_path = tmp_path / "library.db"
    tracks, history, user = populate_sqlite_library(db_path, seed=5)
    return db_path, tracks, history, user


@pytest.fixture()
def client(library_db):
    client = LocalLibraryClient(str(library_db[0]))
    yield client
    client.close()


class TestLocalLibraryClient:

    def test_list_tracks_in(self, client, library_db):
        _, tracks, _, _ = library_db
        loaded = client.list_tracks_in(["music"])

        assert {t.track_id for t in loaded} == {t.track_id for t in tracks}
        by_id = {t.track_id: t for t in tracks}
        for track in loaded:
            assert track.genres == by_id[track.track_id].genres
            assert track.duration_ms == by_id[track.track_id].duration_ms

    def test_unknown_library_is_empty(self, client):
        assert client.list_tracks_in(["podcasts"]) == []
        assert client.list_tracks_in([]) == []

    def test_find_similar_most_similar_first(self, client, library_db):
        _, tracks, _, _ = library_db
        similar = client.find_similar(tracks[0], limit=3)
        assert [t.track_id for t in similar] == ["t1", "t2", "t5"]

    def test_get_user_by_name(self, client):
        assert client.get_user_by_name("alice").user_id == "u1"
        assert client.get_user_by_name("nobody") is None

    def test_create_and_remove_playlist(self, client, library_db):
        _, tracks, _, user = library_db
        assert not client.playlist_exists("Mix")

        playlist_id = client.create_playlist("Mix", user, tracks[:3])

        assert playlist_id
        assert client.playlist_exists("Mix")
        assert client.get_playlist_track_ids("Mix") == ["t0", "t1", "t2"]

        client.remove_playlist("Mix")
        assert not client.playlist_exists("Mix")
        assert client.get_playlist_track_ids("Mix") == []

    def test_remove_keeps_excepted_playlist(self, client, library_db):
        _, tracks, _, user = library_db
        client.create_playlist("Mix", user, tracks[:2])
        new_id = client.create_playlist("Mix", user, tracks[5:7])

        client.remove_playlist("Mix", except_id=new_id)

        assert client.get_playlist_track_ids("Mix") == ["t5", "t6"]
        rows = client.conn.execute("SELECT playlist_id FROM playlists WHERE name = ?", ("Mix",)).fetchall()
        assert [r["playlist_id"] for r in rows] == [new_id]


class TestLocalHistoryStore:

    def test_reads_facts(self, library_db):
        db_path, _, history, user = library_db
        store = LocalHistoryStore(str(db_path))
        try:
            (user_id, track_id), expected = next(iter(history.facts.items()))
            fact = store.get_history(user_id, track_id)

            assert fact.play_count == expected.play_count
            assert fact.last_played == expected.last_played
            assert fact.is_favorite == expected.is_favorite
            assert store.get_history(user_id, "t1") is None
        finally:
            store.close()

    def test_missing_table_is_unavailable(self, tmp_path):
        db_path = tmp_path / "library-only.db"
        LocalLibraryClient(str(db_path)).close()
        with pytest.raises(HistoryStoreUnavailable, match="play_history"):
            LocalHistoryStore(str(db_path))

    def test_missing_file_is_not_created(self, tmp_path):
        db_path = tmp_path / "activity.db"
        with pytest.raises(HistoryStoreUnavailable):
            LocalHistoryStore(str(db_path))
        assert not db_path.exists()

    def test_unopenable_path_is_unavailable(self, tmp_path):
        with pytest.raises(HistoryStoreUnavailable):
            LocalHistoryStore(str(tmp_path / "missing-dir" / "activity.db"))

    def test_naive_timestamps_are_utc(self, tmp_path):
        db_path = tmp_path / "activity.db"
        LocalLibraryClient(str(db_path), create=True).close()
        conn = sqlite3.connect(db_path)
        with conn:
            conn.execute(
                "INSERT INTO play_history (user_id, track_id, play_count, last_played, is_favorite)"
                " VALUES ('u1', 't1', 3, '2026-05-01T08:00:00', 0)"
            )
        conn.close()

        store = LocalHistoryStore(str(db_path))
        fact = store.get_history("u1", "t1")
        store.close()

        assert fact.last_played.tzinfo is not None
        assert fact.last_played.hour == 8


class TestEndToEnd:

    def test_generate_into_sqlite(self, client, library_db):
        db_path, _, _, _ = library_db
        history = LocalHistoryStore(str(db_path))
        try:
            result = generate_playlist(
                PlaylistConfig(name="My Personal Mix", user_name="alice", duration_minutes=30,
                               library_ids=("music",)),
                catalog=client,
                history=history,
                users=client,
                writer=client,
                rng=np.random.default_rng(0),
                scorer=Scorer(clock=lambda: NOW),
            )
        finally:
            history.close()

        assert result.success
        assert client.get_playlist_track_ids("My Personal Mix") == result.track_ids
