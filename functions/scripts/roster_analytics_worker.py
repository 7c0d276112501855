"""
Run the roster analytics worker.

Blocks on the analytics queue and refreshes each user's daily snapshot.
``--once`` drains whatever is queued right now and exits.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from touchline.config import get_settings
from touchline.worker import process_next, run_loop

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Roster analytics worker")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Process queued users without blocking, then exit",
    )
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=2.0,
        help="Seconds to wait on an empty queue",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    if args.once:
        processed = 0
        while process_next(block=False):
            processed += 1
        logger.info("Refreshed analytics for %d queued users", processed)
        return 0

    run_loop(poll_interval_seconds=args.poll_interval)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
