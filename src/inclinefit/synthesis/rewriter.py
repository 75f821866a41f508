"""
Inject a synthetic outdoor track into an indoor (treadmill) session.

Flow:
  1. Records → Samples → DistanceTimeline (timeline.py)
  2. Timeline → Track (track.py)
  3. Track → session / lap aggregates (aggregates.py)
  4. Every message is routed by kind and rewritten onto a copy:
       file_id, device_info, event, user_profile, hrv → copied verbatim
       sport                → running / sub-sport tag / name "Run"
       session, lap         → retagged + recomputed summaries
       record               → position, enhanced altitude, grade, distance
       workout, workout_step → dropped
       anything else        → copied verbatim

Rewritten records, laps and the session expose altitude and speed only
through their enhanced fields; a legacy speed is promoted when the enhanced
one is missing. Source messages are never mutated.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from inclinefit.fit.messages import Message, first_of, to_epoch_seconds
from inclinefit.fit.profile import (
    LEGACY_TO_ENHANCED,
    SPORT_RUNNING,
    MessageKind,
    SubSportTable,
    FIT_PROFILE_21,
    sub_sport_for,
)
from inclinefit.synthesis.aggregates import (
    LapAggregate,
    SessionAggregate,
    recompute_lap,
    recompute_session,
)
from inclinefit.synthesis.timeline import (
    DistanceTimeline,
    DuplicatePolicy,
    build_timeline,
    samples_from_messages,
)
from inclinefit.synthesis.track import SynthesisParameters, Track, TrackPoint, synthesize_track

logger = logging.getLogger(__name__)

PROFILE_NAME = "Run"
_SPEED_FIELDS = {"speed", "avg_speed", "max_speed"}


@dataclass(frozen=True)
class InjectionResult:
    messages: List[Message]
    samples_processed: int
    timeline: DistanceTimeline
    track: Track
    session: SessionAggregate


@dataclass(frozen=True)
class _Context:
    params: SynthesisParameters
    sub_sport: str
    sub_sport_value: int
    session: SessionAggregate
    track: Track
    points_by_record: Dict[int, TrackPoint]     # id(record message) → its point


def _drop_legacy(msg: Message) -> None:
    for legacy, enhanced in LEGACY_TO_ENHANCED.get(msg.kind, {}).items():
        if legacy in _SPEED_FIELDS and msg.has(legacy) and not msg.has(enhanced):
            msg.set(enhanced, float(msg.get(legacy)), units="m/s")
        msg.remove(legacy)


def _retag(msg: Message, ctx: _Context) -> None:
    sport_name, sport_value = SPORT_RUNNING
    msg.set("sport", sport_name, raw_value=sport_value)
    msg.set("sub_sport", ctx.sub_sport, raw_value=ctx.sub_sport_value)


def _set_position(msg: Message, prefix: str, position) -> None:
    lat, lon = position
    msg.set(f"{prefix}_lat", lat, units="semicircles")
    msg.set(f"{prefix}_long", lon, units="semicircles")


def _rewrite_sport(msg: Message, ctx: _Context) -> Message:
    out = msg.copy()
    _retag(out, ctx)
    out.set("name", PROFILE_NAME)
    return out


def _rewrite_session(msg: Message, ctx: _Context) -> Message:
    agg = ctx.session
    out = msg.copy()
    _retag(out, ctx)
    out.set("sport_profile_name", PROFILE_NAME)
    _drop_legacy(out)

    _set_position(out, "start_position", agg.start_position)
    _set_position(out, "end_position", agg.end_position)
    out.set("total_distance", agg.total_distance, units="m")
    out.set("total_ascent", agg.total_ascent, units="m")
    out.set("total_descent", agg.total_descent, units="m")
    out.set("total_fractional_ascent", agg.fractional_ascent)
    out.set("total_fractional_descent", agg.fractional_descent)
    out.set("enhanced_min_altitude", agg.min_altitude, units="m")
    out.set("enhanced_max_altitude", agg.max_altitude, units="m")
    out.set("avg_grade", ctx.params.grade * 100.0, units="%")

    box = agg.bounding_box
    out.set("swc_lat", box.sw_lat, units="semicircles")
    out.set("swc_long", box.sw_lon, units="semicircles")
    out.set("nec_lat", box.ne_lat, units="semicircles")
    out.set("nec_long", box.ne_lon, units="semicircles")
    return out


def _lap_window(msg: Message, track: Track):
    start = to_epoch_seconds(msg.get("start_time"))
    end = to_epoch_seconds(msg.timestamp)
    if start is None or end is None or end < start:
        return ()
    return track.within(start, end)


def _rewrite_lap(msg: Message, ctx: _Context) -> Message:
    lap_distance = msg.get("total_distance")
    agg: LapAggregate = recompute_lap(
        float(lap_distance) if lap_distance is not None else None,
        ctx.params.grade,
        _lap_window(msg, ctx.track),
        ctx.session,
    )
    out = msg.copy()
    _retag(out, ctx)
    _drop_legacy(out)

    out.set("total_ascent", agg.total_ascent, units="m")
    out.set("total_descent", agg.total_descent, units="m")
    out.set("total_fractional_ascent", agg.fractional_ascent)
    out.set("total_fractional_descent", agg.fractional_descent)
    _set_position(out, "start_position", agg.start_position)
    _set_position(out, "end_position", agg.end_position)
    out.set("enhanced_min_altitude", agg.min_altitude, units="m")
    out.set("enhanced_max_altitude", agg.max_altitude, units="m")
    out.set("avg_grade", ctx.params.grade * 100.0, units="%")
    return out


def _rewrite_record(msg: Message, ctx: _Context) -> Optional[Message]:
    point = ctx.points_by_record.get(id(msg))
    out = msg.copy()
    _drop_legacy(out)
    if point is None:
        # no timestamp → no place on the timeline; keep the record minus legacy fields
        return out

    _set_position(out, "position", point.position)
    out.set("enhanced_altitude", point.altitude, units="m")
    out.set("grade", ctx.params.grade * 100.0, units="%")
    if not out.has("distance"):
        out.set("distance", point.distance, units="m")
    return out


def _copy(msg: Message, ctx: _Context) -> Message:
    return msg


def _drop(msg: Message, ctx: _Context) -> None:
    return None


_REWRITERS: Dict[MessageKind, Callable[[Message, _Context], Optional[Message]]] = {
    MessageKind.SPORT: _rewrite_sport,
    MessageKind.SESSION: _rewrite_session,
    MessageKind.LAP: _rewrite_lap,
    MessageKind.RECORD: _rewrite_record,
    MessageKind.WORKOUT: _drop,
    MessageKind.WORKOUT_STEP: _drop,
}


def _points_by_record(messages: Sequence[Message], track: Track) -> Dict[int, TrackPoint]:
    """
    Pair each timestamped record with its track point by position.

    Records sharing a timestamp each keep their own point (and noise draw).
    """
    timestamped = [
        m for m in messages
        if m.kind is MessageKind.RECORD and m.timestamp is not None
    ]
    return {id(m): p for m, p in zip(timestamped, track.points)}


def _session_total_distance(messages: Sequence[Message], timeline: DistanceTimeline) -> Optional[float]:
    session = first_of(messages, MessageKind.SESSION)
    if session is not None and session.get("total_distance") is not None:
        return float(session.get("total_distance"))
    if timeline.knots:
        return timeline.knots[-1].distance
    return None


def inject_messages(
    messages: Sequence[Message],
    params: SynthesisParameters,
    duplicate_policy: DuplicatePolicy = DuplicatePolicy.FIRST,
    clamp_monotonic: bool = False,
    sub_sports: SubSportTable = FIT_PROFILE_21,
) -> InjectionResult:
    """
    Rewrite a decoded treadmill session with a synthetic outdoor track.

    Args:
        messages: Decoded message stream.
        params: Start position, bearing, grade, noise and virtual-tag choice.
        duplicate_policy: Collapse rule for records sharing a timestamp.
        clamp_monotonic: Force the distance timeline to be non-decreasing.
        sub_sports: Sub-sport capability table of the codec's FIT profile.

    Returns:
        InjectionResult with the rewritten stream ready for encoding.
    """
    if first_of(messages, MessageKind.FILE_ID) is None:
        logger.warning("No FILE_ID message in input; continuing")

    samples = samples_from_messages(messages)
    session_msg = first_of(messages, MessageKind.SESSION)
    reported_total = session_msg.get("total_distance") if session_msg is not None else None

    timeline = build_timeline(
        samples,
        total_distance=float(reported_total) if reported_total is not None else None,
        duplicate_policy=duplicate_policy,
        clamp_monotonic=clamp_monotonic,
    )
    track = synthesize_track(samples, timeline, params)
    session_agg = recompute_session(
        track,
        _session_total_distance(messages, timeline),
        params.bearing,
        params.start_lat,
        params.start_lon,
    )
    sub_sport, sub_sport_value = sub_sport_for(params.virtual, sub_sports)

    ctx = _Context(
        params=params,
        sub_sport=sub_sport,
        sub_sport_value=sub_sport_value,
        session=session_agg,
        track=track,
        points_by_record=_points_by_record(messages, track),
    )

    out: List[Message] = []
    for msg in messages:
        rewritten = _REWRITERS.get(msg.kind, _copy)(msg, ctx)
        if rewritten is not None:
            out.append(rewritten)

    if track.points:
        logger.info("Processed %d record(s)", len(track.points))
    else:
        logger.warning("No timestamped records found; nothing to synthesize")

    return InjectionResult(
        messages=out,
        samples_processed=len(track.points),
        timeline=timeline,
        track=track,
        session=session_agg,
    )
