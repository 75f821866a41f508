"""
Main entrypoint.

Usage:
    python -m inclinefit inject IN.fit OUT.fit LAT LON [ALT] [BEARING] [--virtual]
    python -m inclinefit analyse FILE.fit
    uvicorn inclinefit.api.main:app --host 0.0.0.0 --port 8000  # starts API
"""
import logging
import sys

from inclinefit.config import get_settings

logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)

USAGE = (
    "usage: python -m inclinefit inject IN OUT LAT LON [ALT] [BEARING] [--virtual]\n"
    "       python -m inclinefit analyse FILE"
)


def dispatch(argv) -> int:
    if not argv:
        print(USAGE, file=sys.stderr)
        return 1

    command, rest = argv[0], list(argv[1:])
    # --analyse kept for the old single-binary invocation
    if command in ("analyse", "analyze", "--analyse"):
        from inclinefit.scripts.analyse import main as analyse_main
        return analyse_main(rest)
    if command == "inject":
        from inclinefit.scripts.inject import main as inject_main
        return inject_main(rest)

    print(f"Unknown command: {command}\n{USAGE}", file=sys.stderr)
    return 1


def main() -> int:
    return dispatch(sys.argv[1:])


if __name__ == "__main__":
    sys.exit(main())
