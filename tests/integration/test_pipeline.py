"""Integration tests for single-playlist generation against in-memory collaborators."""
import numpy as np
import pytest

from conftest import FakeHistory, build_library
from personal_mix.playlist.config import GenerationSettings, PlaylistConfig
from personal_mix.playlist.errors import CancellationError, CancellationToken
from personal_mix.playlist.models import User
from personal_mix.playlist.pipeline import generate_playlist
from personal_mix.playlist.scoring import Scorer


def _config(**overrides):
    values = dict(name="Mix", user_name="alice", duration_minutes=60, library_ids=("music",))
    values.update(overrides)
    return PlaylistConfig(**values)


def _run(library, history, config=None, *, seed=1, fixed_clock=None, **kwargs):
    settings = kwargs.pop("settings", GenerationSettings())
    scorer = Scorer(settings.scoring, clock=fixed_clock) if fixed_clock else None
    return generate_playlist(
        config or _config(),
        catalog=library,
        history=history,
        users=library,
        writer=library,
        settings=settings,
        rng=np.random.default_rng(seed),
        scorer=scorer,
        **kwargs,
    )


class TestGeneratePlaylist:

    def test_generates_and_persists(self, synthetic_library):
        library, history, user, tracks = synthetic_library
        result = _run(library, history)

        assert result.success
        assert library.saved[result.playlist_id][0] == "Mix"
        assert library.playlists["Mix"] == result.track_ids
        assert len(result.track_ids) == len(set(result.track_ids))

    def test_respects_duration_budget(self, synthetic_library):
        library, history, user, tracks = synthetic_library
        by_id = {t.track_id: t for t in tracks}
        result = _run(library, history, _config(duration_minutes=45))

        total = sum(by_id[tid].duration_ms for tid in result.track_ids)
        assert total <= 45 * 60 * 1000
        assert result.stats["total_duration_ms"] == total

    def test_new_user_still_gets_playlist(self, synthetic_library):
        library, history, user, tracks = synthetic_library
        library.users["bob"] = User(user_id="u2", name="bob")

        result = _run(library, history, _config(user_name="bob"))

        assert result.success
        assert result.track_ids

    def test_min_duration_applied(self, synthetic_library):
        library, history, user, tracks = synthetic_library
        by_id = {t.track_id: t for t in tracks}
        result = _run(library, history, _config(exclude_seconds=250))

        assert result.track_ids
        assert all(by_id[tid].duration_ms >= 250_000 for tid in result.track_ids)

    def test_zero_exploration_is_deterministic(self, fixed_clock):
        first_lib, history, _, _ = build_library(seed=4)
        second_lib, _, _, _ = build_library(seed=4)
        config = _config(exploration_coefficient=0.0)

        first = _run(first_lib, history, config, seed=1, fixed_clock=fixed_clock)
        second = _run(second_lib, history, config, seed=1, fixed_clock=fixed_clock)
        assert first.track_ids == second.track_ids

    def test_same_seed_reproduces_exploration(self, fixed_clock):
        first_lib, history, _, _ = build_library(seed=9)
        second_lib, _, _, _ = build_library(seed=9)

        first = _run(first_lib, history, seed=33, fixed_clock=fixed_clock)
        second = _run(second_lib, history, seed=33, fixed_clock=fixed_clock)
        assert first.track_ids == second.track_ids

    def test_overwrites_existing_playlist(self, synthetic_library):
        library, history, user, tracks = synthetic_library
        old_id = library.create_playlist("Mix", user, tracks[:2])

        result = _run(library, history)

        assert library.calls[-2:] == [("create_playlist", "Mix"), ("remove_playlist", "Mix")]
        assert old_id not in library.saved
        assert list(library.saved) == [result.playlist_id]
        assert library.playlists["Mix"] == result.track_ids

    def test_failed_write_keeps_previous_playlist(self, synthetic_library):
        library, history, user, tracks = synthetic_library
        old_id = library.create_playlist("Mix", user, tracks[:2])

        def failing_create(name, owner, items):
            raise RuntimeError("library is read-only")

        library.create_playlist = failing_create
        with pytest.raises(RuntimeError, match="read-only"):
            _run(library, history)

        assert library.saved == {old_id: ("Mix", ["t0", "t1"])}
        assert ("remove_playlist", "Mix") not in library.calls

    def test_dry_run_writes_nothing(self, synthetic_library):
        library, history, user, tracks = synthetic_library
        result = _run(library, history, dry_run=True)

        assert result.success
        assert result.playlist_id is None
        assert "Mix" not in library.playlists


class TestSkips:

    def test_unknown_user(self, synthetic_library):
        library, history, user, tracks = synthetic_library
        result = _run(library, history, _config(user_name="nobody"))

        assert not result.success
        assert result.failure_reason == "user_not_found"
        assert not any(call[0] == "list_tracks_in" for call in library.calls)

    def test_no_libraries(self, synthetic_library):
        library, history, user, tracks = synthetic_library
        result = _run(library, history, _config(library_ids=()))
        assert result.failure_reason == "no_libraries"

    def test_empty_library(self, synthetic_library):
        library, history, user, tracks = synthetic_library
        result = _run(library, history, _config(library_ids=("podcasts",)))
        assert result.failure_reason == "no_tracks"

    def test_everything_filtered(self, synthetic_library):
        library, history, user, tracks = synthetic_library
        result = _run(library, history, _config(exclude_seconds=10_000))

        assert result.failure_reason == "all_filtered"
        assert "Mix" not in library.playlists

    def test_zero_duration(self, synthetic_library):
        library, history, user, tracks = synthetic_library
        result = _run(library, history, _config(duration_minutes=0))

        assert result.failure_reason == "empty_playlist"
        assert "Mix" not in library.playlists


class TestCancellation:

    def test_cancelled_before_start(self, synthetic_library):
        library, history, user, tracks = synthetic_library
        token = CancellationToken()
        token.cancel()

        with pytest.raises(CancellationError):
            _run(library, history, cancel_token=token)
        assert library.calls == []

    def test_cancelled_mid_run_persists_nothing(self, synthetic_library):
        library, history, user, tracks = synthetic_library
        token = CancellationToken()

        class CancellingHistory(FakeHistory):
            def get_history(self, user_id, track_id):
                token.cancel()
                return super().get_history(user_id, track_id)

        with pytest.raises(CancellationError, match="recommendation"):
            _run(library, CancellingHistory(history.facts), cancel_token=token)
        assert "Mix" not in library.playlists
