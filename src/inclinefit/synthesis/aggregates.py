"""
Lap / session summary values consistent with a synthetic track.

Distance truth is left alone (the session keeps its reported total); only
position and altitude summaries are recomputed. Treadmill sessions are
modelled as a monotonic climb, so descent is always 0.
"""
from dataclasses import dataclass
from typing import Optional, Tuple

from inclinefit.synthesis.track import Track, TrackPoint, round_half_up, to_semicircles

# Below this total distance fractional ascent/descent are reported as 0
DISTANCE_EPSILON_M = 1e-6


@dataclass(frozen=True)
class BoundingBox:
    """North-east / south-west corners, semicircles."""

    sw_lat: int
    sw_lon: int
    ne_lat: int
    ne_lon: int


@dataclass(frozen=True)
class SessionAggregate:
    start_position: Tuple[int, int]
    end_position: Tuple[int, int]
    total_distance: float
    total_ascent: int
    total_descent: int
    fractional_ascent: float
    fractional_descent: float
    min_altitude: float
    max_altitude: float
    bounding_box: BoundingBox


@dataclass(frozen=True)
class LapAggregate:
    total_ascent: int
    total_descent: int
    fractional_ascent: float
    fractional_descent: float
    start_position: Tuple[int, int]
    end_position: Tuple[int, int]
    min_altitude: float
    max_altitude: float


def _ratio(value: float, distance: float) -> float:
    if distance <= DISTANCE_EPSILON_M:
        return 0.0
    return value / distance


def normalize_bearing(bearing: float) -> float:
    return bearing % 360.0


def bounding_box(
    start: Tuple[int, int],
    end: Tuple[int, int],
    bearing: float,
) -> BoundingBox:
    """
    Corners of a straight track from start to end along bearing.

    Only the two endpoints are known, so the quadrant of the bearing decides
    which endpoint supplies each corner coordinate.
    """
    b = normalize_bearing(bearing)
    (start_lat, start_lon), (end_lat, end_lon) = start, end
    return BoundingBox(
        sw_lat=end_lat if 90 < b < 270 else start_lat,
        sw_lon=end_lon if 180 < b < 360 else start_lon,
        ne_lat=end_lat if (b <= 90 or b >= 270) else start_lat,
        ne_lon=end_lon if 0 <= b <= 180 else start_lon,
    )


def session_total_ascent(track: Track) -> int:
    if not track.points:
        return 0
    return round_half_up(max(0.0, track.max_altitude - track.min_altitude))


def recompute_session(
    track: Track,
    total_distance: Optional[float],
    bearing: float,
    start_lat: float,
    start_lon: float,
) -> SessionAggregate:
    """
    Session summary for a synthetic track.

    Args:
        track: The synthesized track.
        total_distance: Original session total distance (kept verbatim);
            None is treated as 0.
        bearing: Track bearing in degrees.
        start_lat / start_lon: Start position in degrees, used when the
            track has no points.
    """
    distance = max(0.0, total_distance or 0.0)
    origin = (to_semicircles(start_lat), to_semicircles(start_lon))
    start = track.start.position if track.start else origin
    end = track.end.position if track.end else origin

    ascent = session_total_ascent(track)
    descent = 0

    return SessionAggregate(
        start_position=start,
        end_position=end,
        total_distance=distance,
        total_ascent=ascent,
        total_descent=descent,
        fractional_ascent=_ratio(ascent, distance),
        fractional_descent=_ratio(descent, distance),
        min_altitude=track.min_altitude,
        max_altitude=track.max_altitude,
        bounding_box=bounding_box(start, end, bearing),
    )


def recompute_lap(
    lap_distance: Optional[float],
    grade: float,
    window: Tuple[TrackPoint, ...],
    session: SessionAggregate,
) -> LapAggregate:
    """
    Lap summary for a synthetic track.

    Ascent comes from the lap's own distance and the target grade. Positions
    and altitude range come from the track points inside the lap (window);
    an empty window falls back to the session values.
    """
    ascent = 0
    fractional_ascent = 0.0
    if lap_distance is not None and lap_distance > 0:
        ascent = round_half_up(lap_distance * grade)
        fractional_ascent = ascent / lap_distance

    if window:
        start, end = window[0].position, window[-1].position
        altitudes = [p.altitude for p in window]
        min_alt, max_alt = min(altitudes), max(altitudes)
    else:
        start, end = session.start_position, session.end_position
        min_alt, max_alt = session.min_altitude, session.max_altitude

    return LapAggregate(
        total_ascent=ascent,
        total_descent=0,
        fractional_ascent=fractional_ascent,
        fractional_descent=0.0,
        start_position=start,
        end_position=end,
        min_altitude=min_alt,
        max_altitude=max_alt,
    )
