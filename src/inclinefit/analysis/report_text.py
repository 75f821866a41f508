"""
Plain-text rendering of a PresenceReport.

Section layout:
  header + message type counts + file / sport metadata
  ACTIVITY, RECORD, SESSION, LAP sections
  GAP field check table and verdict
  EVENT summary, developer fields, first-N record dumps
"""
from typing import Dict, List, Optional

from inclinefit.analysis.presence import FieldCoverage, PresenceReport

RULE_WIDTH = 60
TABLE_RULE = "  ---------|--------------------|-----------------------"

# coverage field → label in the RECORD section
_RECORD_LABELS = (
    ("position", "GPS (Lat/Lon)"),
    ("distance", "Distance"),
    ("altitude", "Altitude"),
    ("enhanced_altitude", "Enh. Altitude"),
    ("speed", "Speed"),
    ("enhanced_speed", "Enh. Speed"),
    ("grade", "Grade"),
    ("vertical_ratio", "Vertical Ratio"),
    ("developer_fields", "Developer Fields"),
)

# coverage field → label in the GAP table
_GAP_RECORD_LABELS = (
    ("position", "position_lat/long"),
    ("distance", "distance"),
    ("altitude", "altitude (legacy)"),
    ("enhanced_altitude", "enhanced_altitude"),
    ("speed", "speed (legacy)"),
    ("enhanced_speed", "enhanced_speed"),
    ("grade", "grade"),
    ("vertical_ratio", "vertical_ratio"),
)

# presence flag → label in the SESSION / lap summary sections
_SUMMARY_LABELS = (
    ("avg_speed", "Avg Speed"),
    ("max_speed", "Max Speed"),
    ("enhanced_avg_speed", "Enh Avg Speed"),
    ("enhanced_max_speed", "Enh Max Speed"),
    ("min_altitude", "Min Altitude"),
    ("max_altitude", "Max Altitude"),
    ("enhanced_min_altitude", "Enh Min Altitude"),
    ("enhanced_max_altitude", "Enh Max Altitude"),
    ("total_fractional_ascent", "Total Frac Ascent"),
    ("total_fractional_descent", "Total Frac Descent"),
    ("avg_grade", "Avg Grade"),
    ("avg_vertical_ratio", "Avg Vertical Ratio"),
)


def _section(title: str) -> str:
    head = f"── {title} "
    return head + "─" * max(3, RULE_WIDTH - len(head))


def _present(flag: bool) -> str:
    return "Present" if flag else "MISSING"


def _or(value: Optional[object], fallback: str = "?") -> str:
    return fallback if value is None else str(value)


def _coverage_line(label: str, c: FieldCoverage) -> str:
    return f"  with {label:<15}: {c.present} ({c.percent:.1f}%)"


def _summary_rows(prefix: str, flags: Dict[str, bool]) -> List[str]:
    def pair(a: str, b: str, a_label: str, b_label: str) -> str:
        return f"{a_label}: {_present(flags[a])}, {b_label}: {_present(flags[b])}"

    return [
        f"  {prefix:<9}| altitude (legacy)  | " + pair("min_altitude", "max_altitude", "Min", "Max"),
        f"  {prefix:<9}| enhanced_altitude  | "
        + pair("enhanced_min_altitude", "enhanced_max_altitude", "Min", "Max"),
        f"  {prefix:<9}| speed (legacy)     | " + pair("avg_speed", "max_speed", "Avg", "Max"),
        f"  {prefix:<9}| enhanced_speed     | "
        + pair("enhanced_avg_speed", "enhanced_max_speed", "Avg", "Max"),
        f"  {prefix:<9}| frac_ascent/descent| "
        f"{_present(flags['total_fractional_ascent'])} / {_present(flags['total_fractional_descent'])}",
        f"  {prefix:<9}| grade              | Avg: {_present(flags['avg_grade'])}",
        f"  {prefix:<9}| vertical_ratio     | Avg: {_present(flags['avg_vertical_ratio'])}",
    ]


def format_presence_report(report: PresenceReport, source: str = "<input>") -> str:
    """Render the report as the multi-section text printed by `inclinefit analyse`."""
    out: List[str] = [f"Analysing file: {source}"]

    # ── Basic info ────────────────────────────────────────────────────────────
    out.append(f"Total messages        : {report.total_messages}")
    out.append(_section("Message Type Counts"))
    for mc in report.message_counts:
        num = "  ?" if mc.mesg_num is None else f"{mc.mesg_num:3d}"
        out.append(f"  {mc.name:<20} ({num}): {mc.count}")
    out.append(f"File Type             : {_or(report.file_type)}")
    out.append(f"Manufacturer/Product  : {_or(report.manufacturer)} / {_or(report.product)}")
    out.append(f"Primary Sport         : {_or(report.sport)}")
    out.append(f"Primary SubSport      : {_or(report.sub_sport)}")
    out.append(f"Profile Name          : {_or(report.profile_name, '(Not Set)')}")
    sources = ", ".join(report.sub_sport_sources) or "None"
    out.append(f"Messages with SubSport: {sources}")

    # ── Activity ──────────────────────────────────────────────────────────────
    out.append(_section("ACTIVITY Message Analysis"))
    if report.activity is not None:
        out.append(f"  Timestamp : {_or(report.activity.timestamp)}")
        out.append(f"  Event     : {_or(report.activity.event)}")
        out.append(f"  EventType : {_or(report.activity.event_type)}")
    else:
        out.append("  (No ACTIVITY message found)")

    # ── Records ───────────────────────────────────────────────────────────────
    out.append(_section("RECORD Message Analysis"))
    out.append(f"Total Records         : {report.record_count}")
    if report.record_count > 0:
        for name, label in _RECORD_LABELS:
            c = report.coverage(name)
            if c is not None:
                out.append(_coverage_line(label, c))

    # ── Session ───────────────────────────────────────────────────────────────
    out.append(_section("SESSION Message Analysis"))
    session = report.session
    if session is not None:
        f = session.fields
        out.append(f"Start Pos (Lat/Lon) : {_present(f['start_position'])}")
        out.append(f"End Pos (Lat/Lon)   : {_present(f['end_position'])}")
        dist = "n/a" if session.total_distance is None else f"{session.total_distance:.2f} m"
        out.append(f"Total Distance      : {_present(f['total_distance'])} ({dist})")
        out.append(f"Total Ascent        : {_present(f['total_ascent'])} ({_or(session.total_ascent, 'n/a')} m)")
        out.append(f"Total Descent       : {_present(f['total_descent'])} ({_or(session.total_descent, 'n/a')} m)")
        for name, label in _SUMMARY_LABELS:
            out.append(f"{label:<20}: {_present(f[name])}")
    else:
        out.append("  (No SESSION message found)")

    # ── Laps ──────────────────────────────────────────────────────────────────
    out.append(_section("LAP Message Analysis"))
    if report.laps:
        out.append(f"Total Laps          : {len(report.laps)}")
        out.append("--- Per-Lap Details & Checks ---")
        for lap in report.laps:
            grade = "N/A" if lap.avg_grade is None else f"{lap.avg_grade:.2f}%"
            ratio = "N/A" if lap.avg_vertical_ratio is None else f"{lap.avg_vertical_ratio:.2f}"
            out.append(
                f"  Lap {lap.index:2d}: Ascent={_or(lap.total_ascent, 'N/A'):<5} "
                f"Descent={_or(lap.total_descent, 'N/A'):<5} "
                f"AvgGrade={grade:<6} AvgVertRatio={ratio:<6}"
            )
            for alert in lap.alerts:
                out.append(f"    USER_ALERT:: {alert}")
        out.append("--- Summary Presence (Across All Laps) ---")
        out.append(f"Sum of Lap Ascent   : {report.lap_ascent_sum} m")
        out.append(f"Sum of Lap Descent  : {report.lap_descent_sum} m")
        for name, label in _SUMMARY_LABELS:
            out.append(f"{label:<20}: {_present(report.any_lap[name])}")
    else:
        out.append("  (No LAP messages found)")

    # ── GAP readiness table ───────────────────────────────────────────────────
    out.append(_section("GAP Field Check Summary"))
    out.append("  Source   | Field              | Presence / Count (%)")
    out.append(TABLE_RULE)
    if report.record_count > 0:
        for name, label in _GAP_RECORD_LABELS:
            c = report.coverage(name)
            out.append(f"  RECORD   | {label:<19}| {c.present} ({c.percent:.0f}%)")
    else:
        out.append("  RECORD   | (No Records)       | N/A")
    out.append(TABLE_RULE)
    if session is not None:
        out.extend(_summary_rows("SESSION", session.fields))
    else:
        out.append("  SESSION  | (No Session Msg)   | N/A")
    out.append(TABLE_RULE)
    if report.laps:
        out.extend(_summary_rows("LAP (Any)", report.any_lap))
    else:
        out.append("  LAP      | (No Lap Msgs)      | N/A")
    out.append(TABLE_RULE)
    verdict = (
        "YES (Primary enhanced fields present)"
        if report.gap_ready
        else "NO (Missing primary enhanced fields)"
    )
    out.append(f"Likely GAP Ready?     : {verdict}")

    # ── Events ────────────────────────────────────────────────────────────────
    out.append(_section("EVENT Message Summary"))
    if any(mc.name == "event" for mc in report.message_counts):
        types = ", ".join(report.event_types) or "(None found)"
        out.append(f"Distinct Event Types  : {types}")
    else:
        out.append("  (No EVENT messages found)")

    # ── Developer fields ──────────────────────────────────────────────────────
    out.append(_section("Developer Fields Summary"))
    inventory = report.developer_fields
    if inventory.instance_count:
        out.append(f"Found {inventory.instance_count} developer field instances.")
        keys = "; ".join(f"({idx}, {num})" for idx, num in sorted(inventory.distinct))
        out.append(f"Distinct Dev Fields (DevIndex, FieldNum): {keys}")
    else:
        out.append("  (No Developer Fields found)")

    # ── Raw record dumps ──────────────────────────────────────────────────────
    out.append(_section(f"RAW RECORD FIELD DUMPS (First {len(report.record_dumps)})"))
    for dump in report.record_dumps:
        out.append(f"RECORD[{dump.index}] timestamp={_or(dump.timestamp, 'n/a')}")
        out.extend(f"  {line}" for line in dump.lines)
    hidden = report.record_count - len(report.record_dumps)
    if hidden > 0:
        out.append(f"  ... ({hidden} more records not shown)")

    out.append("─" * RULE_WIDTH)
    out.append(f"Analysis complete for: {source}")
    out.append("─" * RULE_WIDTH)
    return "\n".join(out)
