"""
Schema-presence analysis: which optional FIT fields does a file carry?

Grade Adjusted Pace (and similar continuous algorithms) need enhanced
altitude, enhanced speed and position on every record. This module scans a
decoded message stream and reports, without mutating it:

  - message-type counts and file / sport / profile metadata
  - per-field record coverage (count + percentage)
  - per-lap presence flags, alerts for missing enhanced / fractional fields,
    and "any lap has X" roll-ups
  - session presence flags
  - distinct event types and a developer-field inventory
  - the first few records' raw fields
  - the composite "GAP ready" verdict (100% coverage of all three fields)

All results are frozen dataclasses; PresenceReport.to_dict() gives a
deterministic JSON-ready form.
"""
from collections import Counter
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Sequence, Tuple

from inclinefit.fit.messages import Message, first_of, has_developer_fields, messages_of
from inclinefit.fit.profile import MessageKind

DEFAULT_RECORD_DUMP_COUNT = 5

# Record checklist: report label → fields that must all be present
RECORD_CHECKS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("position", ("position_lat", "position_long")),
    ("distance", ("distance",)),
    ("altitude", ("altitude",)),
    ("enhanced_altitude", ("enhanced_altitude",)),
    ("speed", ("speed",)),
    ("enhanced_speed", ("enhanced_speed",)),
    ("grade", ("grade",)),
    ("vertical_ratio", ("vertical_ratio",)),
)
DEVELOPER_FIELDS = "developer_fields"

# Lap / session checklist: report label → fields that must all be present
SUMMARY_CHECKS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("start_position", ("start_position_lat", "start_position_long")),
    ("end_position", ("end_position_lat", "end_position_long")),
    ("total_distance", ("total_distance",)),
    ("total_ascent", ("total_ascent",)),
    ("total_descent", ("total_descent",)),
    ("avg_speed", ("avg_speed",)),
    ("max_speed", ("max_speed",)),
    ("enhanced_avg_speed", ("enhanced_avg_speed",)),
    ("enhanced_max_speed", ("enhanced_max_speed",)),
    ("min_altitude", ("min_altitude",)),
    ("max_altitude", ("max_altitude",)),
    ("enhanced_min_altitude", ("enhanced_min_altitude",)),
    ("enhanced_max_altitude", ("enhanced_max_altitude",)),
    ("total_fractional_ascent", ("total_fractional_ascent",)),
    ("total_fractional_descent", ("total_fractional_descent",)),
    ("avg_grade", ("avg_grade",)),
    ("avg_vertical_ratio", ("avg_vertical_ratio",)),
)

# Per-lap fields whose absence raises a user alert
LAP_ALERT_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("enhanced_avg_speed", "Enhanced Avg Speed"),
    ("enhanced_max_speed", "Enhanced Max Speed"),
    ("enhanced_min_altitude", "Enhanced Min Altitude"),
    ("enhanced_max_altitude", "Enhanced Max Altitude"),
    ("total_fractional_ascent", "Total Fractional Ascent"),
    ("total_fractional_descent", "Total Fractional Descent"),
)

GAP_REQUIRED = ("enhanced_altitude", "enhanced_speed", "position")


@dataclass(frozen=True)
class FieldCoverage:
    """How many records of a category carry one field."""

    field: str
    present: int
    total: int

    @property
    def absent(self) -> int:
        return self.total - self.present

    @property
    def percent(self) -> float:
        if self.total <= 0:
            return 0.0
        return 100.0 * self.present / self.total

    @property
    def complete(self) -> bool:
        return self.total > 0 and self.present == self.total


@dataclass(frozen=True)
class MessageCount:
    mesg_num: Optional[int]
    name: str
    count: int


@dataclass(frozen=True)
class LapPresence:
    index: int
    total_ascent: Optional[int]
    total_descent: Optional[int]
    avg_grade: Optional[float]
    avg_vertical_ratio: Optional[float]
    fields: Dict[str, bool]
    alerts: Tuple[str, ...] = ()


@dataclass(frozen=True)
class SessionPresence:
    fields: Dict[str, bool]
    total_distance: Optional[float]
    total_ascent: Optional[int]
    total_descent: Optional[int]


@dataclass(frozen=True)
class ActivitySummary:
    timestamp: Optional[str]
    event: Optional[str]
    event_type: Optional[str]


@dataclass(frozen=True)
class DeveloperFieldInventory:
    instance_count: int
    distinct: Dict[Tuple[int, int], int]   # (developer index, field number) → instances


@dataclass(frozen=True)
class RecordDump:
    index: int
    timestamp: Optional[str]
    lines: Tuple[str, ...]


@dataclass(frozen=True)
class PresenceReport:
    total_messages: int
    message_counts: Tuple[MessageCount, ...]
    file_type: Optional[str]
    manufacturer: Optional[str]
    product: Optional[str]
    sport: Optional[str]
    sub_sport: Optional[str]
    profile_name: Optional[str]
    sub_sport_sources: Tuple[str, ...]
    activity: Optional[ActivitySummary]
    record_count: int
    record_coverage: Tuple[FieldCoverage, ...]
    session: Optional[SessionPresence]
    laps: Tuple[LapPresence, ...]
    any_lap: Dict[str, bool]
    lap_ascent_sum: int
    lap_descent_sum: int
    event_types: Tuple[str, ...]
    developer_fields: DeveloperFieldInventory
    record_dumps: Tuple[RecordDump, ...] = ()
    gap_ready: bool = False

    def coverage(self, name: str) -> Optional[FieldCoverage]:
        for c in self.record_coverage:
            if c.field == name:
                return c
        return None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["record_coverage"] = [
            {**asdict(c), "absent": c.absent, "percent": round(c.percent, 3)}
            for c in self.record_coverage
        ]
        data["developer_fields"] = {
            "instance_count": self.developer_fields.instance_count,
            "distinct": [
                {"developer_index": idx, "field_number": num, "count": n}
                for (idx, num), n in sorted(self.developer_fields.distinct.items())
            ],
        }
        return data


# ─── Helpers ──────────────────────────────────────────────────────────────────


def _has_all(msg: Message, names: Sequence[str]) -> bool:
    return all(msg.has(n) for n in names)


def _flags(msg: Message) -> Dict[str, bool]:
    return {label: _has_all(msg, names) for label, names in SUMMARY_CHECKS}


def _text(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _int_or_none(value: Any) -> Optional[int]:
    return None if value is None else int(value)


def _float_or_none(value: Any) -> Optional[float]:
    return None if value is None else float(value)


def record_coverage(records: Sequence[Message]) -> Tuple[FieldCoverage, ...]:
    total = len(records)
    coverage = [
        FieldCoverage(
            field=label,
            present=sum(1 for r in records if _has_all(r, names)),
            total=total,
        )
        for label, names in RECORD_CHECKS
    ]
    coverage.append(FieldCoverage(
        field=DEVELOPER_FIELDS,
        present=sum(1 for r in records if has_developer_fields(r)),
        total=total,
    ))
    return tuple(coverage)


def is_gap_ready(coverage: Sequence[FieldCoverage]) -> bool:
    """True only when every record carries all GAP-required fields."""
    by_name = {c.field: c for c in coverage}
    return all(name in by_name and by_name[name].complete for name in GAP_REQUIRED)


def lap_presence(laps: Sequence[Message]) -> Tuple[LapPresence, ...]:
    result = []
    for i, lap in enumerate(laps):
        index = lap.get("message_index")
        index = int(index) if isinstance(index, int) else i
        flags = _flags(lap)
        alerts = tuple(
            f"Lap {index} is missing {label}!"
            for name, label in LAP_ALERT_FIELDS
            if not flags[name]
        )
        result.append(LapPresence(
            index=index,
            total_ascent=_int_or_none(lap.get("total_ascent")),
            total_descent=_int_or_none(lap.get("total_descent")),
            avg_grade=_float_or_none(lap.get("avg_grade")),
            avg_vertical_ratio=_float_or_none(lap.get("avg_vertical_ratio")),
            fields=flags,
            alerts=alerts,
        ))
    return tuple(result)


def any_lap_flags(laps: Sequence[LapPresence]) -> Dict[str, bool]:
    return {
        label: any(lap.fields[label] for lap in laps)
        for label, _ in SUMMARY_CHECKS
    }


def developer_inventory(messages: Sequence[Message]) -> DeveloperFieldInventory:
    counts: Counter = Counter(
        df.key for m in messages for df in m.developer_fields
    )
    return DeveloperFieldInventory(
        instance_count=sum(counts.values()),
        distinct=dict(sorted(counts.items())),
    )


def _record_dumps(records: Sequence[Message], limit: int) -> Tuple[RecordDump, ...]:
    return tuple(
        RecordDump(index=i, timestamp=_text(r.timestamp), lines=tuple(r.dump()))
        for i, r in enumerate(records[:limit])
    )


# ─── Entry point ──────────────────────────────────────────────────────────────


def analyse_messages(
    messages: Sequence[Message],
    record_dump_count: int = DEFAULT_RECORD_DUMP_COUNT,
) -> PresenceReport:
    """
    Build the completeness report for a decoded message stream.

    Args:
        messages: Decoded FIT messages, in file order.
        record_dump_count: How many leading records to include raw dumps of.

    Returns:
        PresenceReport. The input stream is not modified.
    """
    counts: Counter = Counter()
    names: Dict[Optional[int], str] = {}
    for m in messages:
        counts[m.mesg_num] += 1
        names.setdefault(m.mesg_num, m.name)
    message_counts = tuple(
        MessageCount(mesg_num=num, name=names[num], count=counts[num])
        for num in sorted(counts, key=lambda n: (n is None, n if n is not None else 0))
    )

    file_id = first_of(messages, MessageKind.FILE_ID)
    sport_msg = first_of(messages, MessageKind.SPORT)
    session_msg = first_of(messages, MessageKind.SESSION)
    activity_msg = first_of(messages, MessageKind.ACTIVITY)
    records = messages_of(messages, MessageKind.RECORD)
    laps = messages_of(messages, MessageKind.LAP)
    events = messages_of(messages, MessageKind.EVENT)

    primary = sport_msg if sport_msg is not None else session_msg
    profile_name = sport_msg.get("name") if sport_msg is not None else None
    if not profile_name and session_msg is not None:
        profile_name = session_msg.get("sport_profile_name")

    sub_sport_sources = tuple(sorted({
        m.name for m in messages if m.get_field("sub_sport") is not None
    }))

    activity = None
    if activity_msg is not None:
        activity = ActivitySummary(
            timestamp=_text(activity_msg.timestamp),
            event=_text(activity_msg.get("event")),
            event_type=_text(activity_msg.get("event_type")),
        )

    coverage = record_coverage(records)

    session = None
    if session_msg is not None:
        session = SessionPresence(
            fields=_flags(session_msg),
            total_distance=_float_or_none(session_msg.get("total_distance")),
            total_ascent=_int_or_none(session_msg.get("total_ascent")),
            total_descent=_int_or_none(session_msg.get("total_descent")),
        )

    lap_rows = lap_presence(laps)

    event_types = tuple(sorted({
        f"{e.get('event_type')} ({e.get('event')})"
        for e in events
        if e.get("event_type") is not None and e.get("event") is not None
    }))

    return PresenceReport(
        total_messages=len(messages),
        message_counts=message_counts,
        file_type=_text(file_id.get("type")) if file_id is not None else None,
        manufacturer=_text(file_id.get("manufacturer")) if file_id is not None else None,
        product=_text(file_id.get("product")) if file_id is not None else None,
        sport=_text(primary.get("sport")) if primary is not None else None,
        sub_sport=_text(primary.get("sub_sport")) if primary is not None else None,
        profile_name=_text(profile_name) if profile_name else None,
        sub_sport_sources=sub_sport_sources,
        activity=activity,
        record_count=len(records),
        record_coverage=coverage,
        session=session,
        laps=lap_rows,
        any_lap=any_lap_flags(lap_rows),
        lap_ascent_sum=sum(lap.total_ascent or 0 for lap in lap_rows),
        lap_descent_sum=sum(lap.total_descent or 0 for lap in lap_rows),
        event_types=event_types,
        developer_fields=developer_inventory(messages),
        record_dumps=_record_dumps(records, record_dump_count),
        gap_ready=is_gap_ready(coverage),
    )
