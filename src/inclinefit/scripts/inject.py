"""
Inject a synthetic outdoor track into a treadmill FIT file.

Usage:
    python -m inclinefit inject IN.fit OUT.fit LAT LON [ALT] [BEARING] [--virtual]
    python -m inclinefit.scripts.inject IN.fit OUT.fit 42.03 -91.63 --grade 0.05

Every record gets a position on a straight line from (LAT, LON) along
BEARING, climbing at the target grade. Lap and session summaries are
recomputed to match. Defaults for ALT, BEARING, grade, noise and the
distance-timeline options come from inclinefit.config.Settings.

Exit status is 1 when the input cannot be decoded or the output cannot be
built or written. Messages skipped during encoding are logged but do not
change the exit status.
"""
import argparse
import logging
import sys
from typing import List, Optional

from inclinefit.config import get_settings
from inclinefit.fit.codec import FitDecodeError, FitEncodeError, decode_messages, failure_summary, write_messages
from inclinefit.synthesis.rewriter import inject_messages
from inclinefit.synthesis.track import SynthesisParameters

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="inclinefit inject",
        description="Add synthetic GPS and elevation to a treadmill FIT file",
    )
    parser.add_argument("input", help="Source FIT file")
    parser.add_argument("output", help="Destination FIT file")
    parser.add_argument("lat", type=float, help="Start latitude in degrees")
    parser.add_argument("lon", type=float, help="Start longitude in degrees")
    parser.add_argument(
        "altitude",
        type=float,
        nargs="?",
        default=settings.default_altitude,
        help=f"Start altitude in meters (default: {settings.default_altitude})",
    )
    parser.add_argument(
        "bearing",
        type=float,
        nargs="?",
        default=settings.default_bearing,
        help=f"Track bearing, degrees clockwise from north (default: {settings.default_bearing})",
    )
    parser.add_argument(
        "--virtual",
        action="store_true",
        help="Tag the session as virtual_activity instead of generic",
    )
    parser.add_argument(
        "--grade",
        type=float,
        default=settings.target_grade,
        help=f"Target grade as rise/run (default: {settings.target_grade})",
    )
    parser.add_argument(
        "--noise",
        type=float,
        default=settings.altitude_noise,
        help="Peak-to-peak altitude noise in meters (default: off)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=settings.noise_seed,
        help="Seed for the altitude noise generator",
    )
    return parser


def run(args: argparse.Namespace) -> int:
    settings = get_settings()
    try:
        params = SynthesisParameters(
            start_lat=args.lat,
            start_lon=args.lon,
            start_altitude=args.altitude,
            bearing=args.bearing,
            grade=args.grade,
            virtual=args.virtual,
            altitude_noise=args.noise,
            noise_seed=args.seed,
        )
    except ValueError as exc:
        print(f"{args.input}: invalid parameters: {exc}", file=sys.stderr)
        return 1

    try:
        messages = decode_messages(args.input)
    except FitDecodeError as exc:
        print(f"{args.input}: decode failed: {exc}", file=sys.stderr)
        return 1

    result = inject_messages(
        messages,
        params,
        duplicate_policy=settings.duplicate_knot_policy,
        clamp_monotonic=settings.clamp_monotonic_distance,
    )
    print(f"Processed {result.samples_processed} record(s)")

    try:
        encoded = write_messages(result.messages, args.output)
    except FitEncodeError as exc:
        print(f"{args.output}: encode failed: {exc}", file=sys.stderr)
        return 1
    except OSError as exc:
        print(f"{args.output}: write failed: {exc}", file=sys.stderr)
        return 1

    skipped = failure_summary(encoded)
    if skipped:
        logger.warning("Skipped unencodable message(s): %s", skipped)
    print(f"Written {args.output} ({encoded.written} msgs)")
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
