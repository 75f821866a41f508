"""
Distance timeline: a total timestamp → cumulative-distance function.

Treadmill FIT files often carry distance on only some records (or none, with
just a session total). Track synthesis needs a distance for every record, so
we build one from the known (timestamp, distance) knots:

  - no knots, positive session total → constant pace over the whole session
  - before the first knot            → linear from (t0, 0) to the first knot
  - between two knots                → linear interpolation on the bracket
  - after the last knot              → slope of the final knot pair, or, with a
                                       single knot, proportional share of the
                                       maximum known distance over the session

Known knot values are never rewritten. The function is not clamped to be
non-decreasing unless clamp_monotonic=True (noisy source data can make it dip).
"""
import bisect
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from inclinefit.fit.messages import Message, to_epoch_seconds
from inclinefit.fit.profile import MessageKind


class DuplicatePolicy(str, Enum):
    """How knots sharing one timestamp collapse into a single value."""

    FIRST = "first"
    LAST = "last"
    MEAN = "mean"


@dataclass(frozen=True)
class Sample:
    """Timing/distance view of one RECORD message."""

    index: int                          # position among timestamped records
    timestamp: float                    # seconds
    distance: Optional[float] = None    # cumulative meters


@dataclass(frozen=True)
class Knot:
    timestamp: float
    distance: float


@dataclass(frozen=True)
class DistanceTimeline:
    """
    Distance for every sample timestamp.

    distances maps each sample timestamp to its known or interpolated
    distance; timestamps whose distance could not be derived are absent.
    """

    knots: Tuple[Knot, ...] = ()
    distances: Dict[float, float] = field(default_factory=dict)
    start_time: Optional[float] = None
    end_time: Optional[float] = None
    max_known_distance: float = 0.0

    def distance_at(self, timestamp: float) -> Optional[float]:
        return self.distances.get(timestamp)

    def __call__(self, timestamp: float) -> Optional[float]:
        return self.distance_at(timestamp)

    def __len__(self) -> int:
        return len(self.distances)

    @property
    def is_empty(self) -> bool:
        return not self.distances


def samples_from_messages(messages: Sequence[Message]) -> List[Sample]:
    """RECORD messages with a timestamp, in stream order."""
    samples: List[Sample] = []
    for msg in messages:
        if msg.kind is not MessageKind.RECORD:
            continue
        ts = to_epoch_seconds(msg.timestamp)
        if ts is None:
            continue
        dist = msg.get("distance")
        samples.append(Sample(
            index=len(samples),
            timestamp=ts,
            distance=float(dist) if dist is not None else None,
        ))
    return samples


def collect_knots(
    samples: Sequence[Sample],
    policy: DuplicatePolicy = DuplicatePolicy.FIRST,
) -> List[Knot]:
    """Known (timestamp, distance) pairs sorted by timestamp, duplicates collapsed."""
    grouped: Dict[float, List[float]] = {}
    for s in samples:
        if s.distance is None:
            continue
        grouped.setdefault(s.timestamp, []).append(s.distance)

    policy = DuplicatePolicy(policy)
    knots = []
    for ts in sorted(grouped):
        values = grouped[ts]
        if policy is DuplicatePolicy.LAST:
            d = values[-1]
        elif policy is DuplicatePolicy.MEAN:
            d = sum(values) / len(values)
        else:
            d = values[0]
        knots.append(Knot(timestamp=ts, distance=d))
    return knots


def _interpolate(t: float, before: Knot, after: Knot) -> float:
    span = after.timestamp - before.timestamp
    if span <= 0:
        return before.distance
    ratio = (t - before.timestamp) / span
    return before.distance + ratio * (after.distance - before.distance)


def _before_first(t: float, t0: float, first: Knot) -> float:
    span = first.timestamp - t0
    if span <= 0:
        return 0.0
    return first.distance * (t - t0) / span


def _after_last(
    t: float,
    knots: Sequence[Knot],
    t0: float,
    t_end: float,
    max_known: float,
) -> float:
    last = knots[-1]
    if len(knots) >= 2:
        prev = knots[-2]
        span = last.timestamp - prev.timestamp
        if span <= 0:
            return last.distance
        pace = (last.distance - prev.distance) / span   # meters per second
        return last.distance + pace * (t - last.timestamp)

    # Single knot: proportional share of the maximum known distance
    total_span = t_end - t0
    if total_span <= 0:
        return max_known
    return max_known * (t - t0) / total_span


def build_timeline(
    samples: Sequence[Sample],
    total_distance: Optional[float] = None,
    duplicate_policy: DuplicatePolicy = DuplicatePolicy.FIRST,
    clamp_monotonic: bool = False,
) -> DistanceTimeline:
    """
    Build the distance timeline for a session.

    Args:
        samples: Timestamped record samples in stream order.
        total_distance: Session total distance reported by the file, if any.
        duplicate_policy: How knots with equal timestamps collapse.
        clamp_monotonic: If True, apply a running maximum in timestamp order
            so the result never decreases.

    Returns:
        DistanceTimeline; empty when there are no samples.
    """
    if not samples:
        return DistanceTimeline()

    t0 = samples[0].timestamp
    t_end = samples[-1].timestamp
    knots = collect_knots(samples, duplicate_policy)
    knot_map = {k.timestamp: k.distance for k in knots}

    max_known = max((k.distance for k in knots), default=0.0)
    if total_distance is not None and total_distance > max_known:
        max_known = float(total_distance)

    distances: Dict[float, float] = dict(knot_map)

    if knots:
        knot_times = [k.timestamp for k in knots]
        first, last = knots[0], knots[-1]
        for s in samples:
            t = s.timestamp
            if t in distances:
                continue
            if t < first.timestamp:
                distances[t] = _before_first(t, t0, first)
            elif t > last.timestamp:
                distances[t] = _after_last(t, knots, t0, t_end, max_known)
            else:
                i = bisect.bisect_right(knot_times, t)
                distances[t] = _interpolate(t, knots[i - 1], knots[i])
    elif total_distance is not None and total_distance > 0:
        duration = t_end - t0
        for s in samples:
            if duration > 0:
                distances[s.timestamp] = total_distance * (s.timestamp - t0) / duration
            else:
                distances[s.timestamp] = 0.0

    if clamp_monotonic and distances:
        running = float("-inf")
        for t in sorted(distances):
            running = max(running, distances[t])
            distances[t] = running

    return DistanceTimeline(
        knots=tuple(knots),
        distances=distances,
        start_time=t0,
        end_time=t_end,
        max_known_distance=max_known,
    )
