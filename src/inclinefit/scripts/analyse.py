"""
Report which optional FIT fields a file carries.

Usage:
    python -m inclinefit analyse activity.fit
    python -m inclinefit analyse activity.fit --json

Prints the multi-section presence report (record coverage, lap / session
flags, GAP readiness, events, developer fields, first records). --json
prints PresenceReport.to_dict() instead.
"""
import argparse
import json
import logging
import sys
from typing import List, Optional

from inclinefit.analysis.presence import analyse_messages
from inclinefit.analysis.report_text import format_presence_report
from inclinefit.config import get_settings
from inclinefit.fit.codec import FitDecodeError, decode_messages


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="inclinefit analyse",
        description="Check a FIT file for the fields grade-adjusted pace needs",
    )
    parser.add_argument("file", help="FIT file to analyse")
    parser.add_argument(
        "--dump",
        type=int,
        default=settings.record_dump_count,
        help=f"Number of leading records to dump (default: {settings.record_dump_count})",
    )
    parser.add_argument("--json", action="store_true", help="Print the report as JSON")
    return parser


def run(args: argparse.Namespace) -> int:
    try:
        messages = decode_messages(args.file)
    except FitDecodeError as exc:
        print(f"{args.file}: decode failed: {exc}", file=sys.stderr)
        return 1

    if not messages:
        print("No messages decoded.")
        return 0

    report = analyse_messages(messages, record_dump_count=max(0, args.dump))
    if args.json:
        print(json.dumps(report.to_dict(), indent=2, default=str))
    else:
        print(format_presence_report(report, source=args.file))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return run(args)


if __name__ == "__main__":
    logging.basicConfig(
        level=get_settings().log_level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    sys.exit(main())
