"""
Worker loop that recomputes roster analytics for queued users.

Roster mutations enqueue the owning user id; each dequeued id gets a fresh
snapshot for today's date.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from touchline.analytics import refresh_roster_analytics
from touchline.config import get_settings
from touchline.db import DbClient
from touchline.dependencies import get_db_client, get_queue_client
from touchline.queue import JobQueue

logger = logging.getLogger(__name__)


def process_next(
    *,
    db: Optional[DbClient] = None,
    queue: Optional[JobQueue] = None,
    block: bool = True,
    timeout: Optional[int] = None,
) -> bool:
    """
    Fetch one user id from the queue and refresh their analytics. Returns True if processed.
    """
    db = db or get_db_client()
    queue = queue or get_queue_client()

    user_id = queue.dequeue(block=block, timeout=timeout)
    if not user_id:
        return False

    record = refresh_roster_analytics(
        db, user_id, window_days=get_settings().analytics_window_days
    )
    logger.info(
        "[%s] Roster analytics refreshed for %s (%d players)",
        user_id,
        record.snapshot_date,
        record.total_players,
    )
    return True


def run_loop(poll_interval_seconds: float = 2.0) -> None:
    """
    Blocking loop over the queue. Intended to be run under systemd/supervisor.
    """
    db = get_db_client()
    queue = get_queue_client()
    while True:
        try:
            processed = process_next(
                db=db, queue=queue, block=True, timeout=int(poll_interval_seconds)
            )
        except Exception:
            logger.exception("Failed to refresh roster analytics")
            processed = False
        if not processed:
            time.sleep(poll_interval_seconds)


if __name__ == "__main__":
    logging.basicConfig(level=get_settings().log_level.upper())
    run_loop()
