"""
Synthetic straight-line track along a fixed bearing.

Each sample's distance traveled (from the distance timeline) is projected
from the start position on a locally flat earth:

  Δlat = d·cos(bearing) / 111320
  Δlon = d·sin(bearing) / (111320·cos(start_lat))

and altitude climbs at the target grade: alt = start_alt + d·grade, plus an
optional bounded noise term (u − 0.5)·amplitude, u ∈ [0, 1).

Positions are quantized to FIT semicircles (round half up).
"""
import math
import random
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from inclinefit.fit.profile import SEMICIRCLES_PER_DEGREE
from inclinefit.synthesis.timeline import DistanceTimeline, Sample

METERS_PER_DEG_LAT = 111_320.0
DEFAULT_GRADE = 0.10


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def to_semicircles(degrees: float) -> int:
    return round_half_up(degrees * SEMICIRCLES_PER_DEGREE)


def semicircles_to_degrees(semicircles: int) -> float:
    return semicircles / SEMICIRCLES_PER_DEGREE


@dataclass(frozen=True)
class SynthesisParameters:
    """Inputs that shape the synthetic track."""

    start_lat: float                    # degrees
    start_lon: float                    # degrees
    start_altitude: float = 0.0         # meters
    bearing: float = 0.0                # degrees clockwise from north
    grade: float = DEFAULT_GRADE        # rise / run
    virtual: bool = False               # tag as virtual_activity instead of generic
    altitude_noise: float = 0.0         # peak-to-peak meters, 0 = disabled
    noise_seed: Optional[int] = None

    def __post_init__(self):
        # longitude offsets divide by cos(start_lat), so the poles are excluded
        if not -90.0 < self.start_lat < 90.0:
            raise ValueError(f"start_lat {self.start_lat} out of range (-90, 90)")
        if not -180.0 <= self.start_lon <= 180.0:
            raise ValueError(f"start_lon {self.start_lon} out of range [-180, 180]")
        if self.altitude_noise < 0:
            raise ValueError("altitude_noise must be >= 0")


@dataclass(frozen=True)
class TrackPoint:
    timestamp: float
    distance: float                     # timeline distance used for this point
    distance_traveled: float            # meters from the first sample
    latitude: float                     # degrees, before quantization
    longitude: float
    altitude: float
    position_lat: int                   # semicircles
    position_long: int

    @property
    def position(self) -> Tuple[int, int]:
        return (self.position_lat, self.position_long)


@dataclass(frozen=True)
class Track:
    points: Tuple[TrackPoint, ...]
    min_altitude: float
    max_altitude: float

    def __len__(self) -> int:
        return len(self.points)

    @property
    def start(self) -> Optional[TrackPoint]:
        return self.points[0] if self.points else None

    @property
    def end(self) -> Optional[TrackPoint]:
        return self.points[-1] if self.points else None

    def within(self, start_time: float, end_time: float) -> Tuple[TrackPoint, ...]:
        return tuple(p for p in self.points if start_time <= p.timestamp <= end_time)


def project(
    start_lat: float,
    start_lon: float,
    distance_m: float,
    bearing_deg: float,
) -> Tuple[float, float]:
    """Flat-earth offset of distance_m along bearing_deg from the start point."""
    b = math.radians(bearing_deg)
    dlat = (distance_m * math.cos(b)) / METERS_PER_DEG_LAT
    dlon = (distance_m * math.sin(b)) / (METERS_PER_DEG_LAT * math.cos(math.radians(start_lat)))
    return start_lat + dlat, start_lon + dlon


def synthesize_track(
    samples: Sequence[Sample],
    timeline: DistanceTimeline,
    params: SynthesisParameters,
    rng: Optional[random.Random] = None,
) -> Track:
    """
    Produce one TrackPoint per sample, in sample order.

    A sample whose timestamp has no timeline distance reuses the previous
    sample's distance (zero for the first).
    """
    if rng is None:
        rng = random.Random(params.noise_seed)

    points = []
    first_distance: Optional[float] = None
    last_distance = 0.0
    min_alt = math.inf
    max_alt = -math.inf

    for s in samples:
        d = timeline.distance_at(s.timestamp)
        if d is None:
            d = last_distance
        last_distance = d
        if first_distance is None:
            first_distance = d
        traveled = d - first_distance

        lat, lon = project(params.start_lat, params.start_lon, traveled, params.bearing)

        alt = params.start_altitude + traveled * params.grade
        if params.altitude_noise > 0:
            alt += (rng.random() - 0.5) * params.altitude_noise

        min_alt = min(min_alt, alt)
        max_alt = max(max_alt, alt)

        points.append(TrackPoint(
            timestamp=s.timestamp,
            distance=d,
            distance_traveled=traveled,
            latitude=lat,
            longitude=lon,
            altitude=alt,
            position_lat=to_semicircles(lat),
            position_long=to_semicircles(lon),
        ))

    if not points:
        min_alt = max_alt = params.start_altitude

    return Track(points=tuple(points), min_altitude=min_alt, max_altitude=max_alt)
