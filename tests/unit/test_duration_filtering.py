"""Unit tests for catalog and candidate filtering."""
import logging

from conftest import make_track
from personal_mix.playlist.filtering import (
    filter_by_min_duration,
    filter_catalog_tracks,
    filter_missing_parent,
    filter_theme_media,
    is_valid_duration,
)
from personal_mix.playlist.models import ScoredTrack


class TestDurationFiltering:
    """Test the minimum-duration contract."""

    def test_removes_short_tracks(self):
        tracks = [
            make_track("1", duration_s=26),   # too short
            make_track("2", duration_s=46),   # too short
            make_track("3", duration_s=47),   # OK
            make_track("4", duration_s=240),  # OK
        ]

        filtered = filter_by_min_duration(tracks, min_duration_seconds=47)

        assert [t.track_id for t in filtered] == ["3", "4"]

    def test_boundary_is_inclusive(self):
        tracks = [
            make_track("1", duration_s=46.999),  # excluded
            make_track("2", duration_s=47),      # included
        ]

        filtered = filter_by_min_duration(tracks, min_duration_seconds=47)

        assert [t.track_id for t in filtered] == ["2"]

    def test_zero_minimum_disables_filter(self):
        tracks = [make_track("1", duration_s=0), make_track("2", duration_s=5)]
        assert filter_by_min_duration(tracks, min_duration_seconds=0) == tracks

    def test_missing_duration_excluded_when_minimum_set(self):
        tracks = [make_track("1", duration_s=0), make_track("2", duration_s=240)]
        filtered = filter_by_min_duration(tracks, min_duration_seconds=1)
        assert [t.track_id for t in filtered] == ["2"]

    def test_scored_tracks_use_same_contract(self):
        items = [
            ScoredTrack(make_track("1", duration_s=29.5), 9.0),
            ScoredTrack(make_track("2", duration_s=30), 1.0),
        ]
        filtered = filter_by_min_duration(items, min_duration_seconds=30)
        assert [s.track_id for s in filtered] == ["2"]

    def test_is_valid_duration_helper(self):
        assert is_valid_duration(make_track("1", duration_s=47), min_seconds=47) is True
        assert is_valid_duration(make_track("1", duration_s=46), min_seconds=47) is False
        assert is_valid_duration(make_track("1", duration_s=0), min_seconds=0) is True


class TestCatalogFilters:

    def test_theme_media_removed(self):
        tracks = [make_track("1"), make_track("2", is_theme_media=True)]
        assert [t.track_id for t in filter_theme_media(tracks)] == ["1"]

    def test_catalog_filter_combines_theme_and_duration(self):
        tracks = [
            make_track("1", duration_s=300),
            make_track("2", duration_s=300, is_theme_media=True),
            make_track("3", duration_s=20),
        ]
        filtered = filter_catalog_tracks(tracks, min_duration_seconds=30)
        assert [t.track_id for t in filtered] == ["1"]

    def test_missing_parent_dropped_with_warning(self, caplog):
        items = [
            ScoredTrack(make_track("1"), 1.0),
            ScoredTrack(make_track("2", parent_id=None), 1.0),
        ]
        with caplog.at_level(logging.WARNING):
            filtered = filter_missing_parent(items)

        assert [s.track_id for s in filtered] == ["1"]
        assert "without a parent container" in caplog.text

    def test_input_not_modified(self):
        tracks = [make_track("1", duration_s=10), make_track("2")]
        filter_by_min_duration(tracks, min_duration_seconds=60)
        assert len(tracks) == 2
