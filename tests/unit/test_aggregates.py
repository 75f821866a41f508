"""Tests for lap / session aggregate recomputation."""
import pytest

from inclinefit.synthesis.aggregates import (
    BoundingBox,
    bounding_box,
    normalize_bearing,
    recompute_lap,
    recompute_session,
)
from inclinefit.synthesis.timeline import Sample, build_timeline
from inclinefit.synthesis.track import SynthesisParameters, synthesize_track, to_semicircles

START = (100, 200)
END = (300, 400)


def make_track(distances, **params):
    s = [Sample(index=i, timestamp=float(i), distance=d) for i, d in enumerate(distances)]
    return synthesize_track(s, build_timeline(s), SynthesisParameters(10.0, 20.0, **params))


class TestBoundingBox:
    def test_north_east(self):
        assert bounding_box(START, END, 45) == BoundingBox(sw_lat=100, sw_lon=200, ne_lat=300, ne_lon=400)

    def test_due_north(self):
        box = bounding_box(START, END, 0)
        assert (box.sw_lat, box.ne_lat) == (100, 300)
        assert box.ne_lon == 400

    def test_south_east(self):
        box = bounding_box(START, END, 135)
        assert (box.sw_lat, box.ne_lat) == (300, 100)
        assert (box.sw_lon, box.ne_lon) == (200, 400)

    def test_south_west(self):
        box = bounding_box(START, END, 225)
        assert (box.sw_lat, box.ne_lat) == (300, 100)
        assert (box.sw_lon, box.ne_lon) == (400, 200)

    def test_north_west(self):
        box = bounding_box(START, END, 315)
        assert (box.sw_lat, box.ne_lat) == (100, 300)
        assert (box.sw_lon, box.ne_lon) == (400, 200)

    def test_bearing_normalized(self):
        assert normalize_bearing(-90) == 270
        assert normalize_bearing(450) == 90
        assert bounding_box(START, END, 405) == bounding_box(START, END, 45)


class TestRecomputeSession:
    def test_distance_kept_and_ascent_from_altitude_range(self):
        track = make_track([0.0, 50.0, 100.0], start_altitude=10.0)
        agg = recompute_session(track, 100.0, 0.0, 10.0, 20.0)
        assert agg.total_distance == 100.0
        assert agg.total_ascent == 10
        assert agg.total_descent == 0
        assert agg.fractional_ascent == pytest.approx(0.1)
        assert agg.fractional_descent == 0.0
        assert agg.min_altitude == pytest.approx(10.0)
        assert agg.max_altitude == pytest.approx(20.0)

    def test_positions_from_track_ends(self):
        track = make_track([0.0, 100.0])
        agg = recompute_session(track, 100.0, 0.0, 10.0, 20.0)
        assert agg.start_position == track.start.position
        assert agg.end_position == track.end.position

    def test_zero_distance_has_zero_fractions(self):
        track = make_track([0.0, 0.0])
        agg = recompute_session(track, 0.0, 0.0, 10.0, 20.0)
        assert agg.fractional_ascent == 0.0
        assert agg.total_ascent == 0

    def test_empty_track_uses_start_position(self):
        track = make_track([])
        agg = recompute_session(track, None, 90.0, 10.0, 20.0)
        origin = (to_semicircles(10.0), to_semicircles(20.0))
        assert agg.start_position == origin
        assert agg.end_position == origin
        assert agg.total_distance == 0.0
        assert agg.total_ascent == 0


class TestRecomputeLap:
    def test_ascent_from_lap_distance_and_grade(self):
        track = make_track([0.0, 1000.0])
        session = recompute_session(track, 1000.0, 0.0, 10.0, 20.0)
        lap = recompute_lap(1000.0, 0.05, track.points, session)
        assert lap.total_ascent == 50
        assert lap.fractional_ascent == pytest.approx(0.05)
        assert lap.total_descent == 0
        assert lap.fractional_descent == 0.0

    def test_ascent_rounds_half_up(self):
        track = make_track([0.0, 25.0])
        session = recompute_session(track, 25.0, 0.0, 10.0, 20.0)
        assert recompute_lap(25.0, 0.10, track.points, session).total_ascent == 3

    def test_missing_or_zero_distance(self):
        track = make_track([0.0, 10.0])
        session = recompute_session(track, 10.0, 0.0, 10.0, 20.0)
        for distance in (None, 0.0):
            lap = recompute_lap(distance, 0.10, track.points, session)
            assert lap.total_ascent == 0
            assert lap.fractional_ascent == 0.0

    def test_window_positions_and_altitudes(self):
        track = make_track([0.0, 10.0, 20.0, 30.0])
        session = recompute_session(track, 30.0, 0.0, 10.0, 20.0)
        window = track.within(1.0, 2.0)
        lap = recompute_lap(10.0, 0.10, window, session)
        assert lap.start_position == track.points[1].position
        assert lap.end_position == track.points[2].position
        assert lap.min_altitude == pytest.approx(1.0)
        assert lap.max_altitude == pytest.approx(2.0)

    def test_empty_window_falls_back_to_session(self):
        track = make_track([0.0, 100.0])
        session = recompute_session(track, 100.0, 0.0, 10.0, 20.0)
        lap = recompute_lap(100.0, 0.10, (), session)
        assert lap.start_position == session.start_position
        assert lap.end_position == session.end_position
        assert lap.max_altitude == session.max_altitude
