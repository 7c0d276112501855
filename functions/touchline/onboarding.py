"""
First-run state for the client: what the user has set up so far.
"""

from __future__ import annotations

import logging

from touchline.db import DbClient
from touchline.errors import TouchlineError
from touchline.types import ContentType, ProgressStatus

logger = logging.getLogger(__name__)


def default_state() -> dict:
    return {
        "has_players": False,
        "has_tags": False,
        "has_help_progress": False,
        "completed_tutorials": [],
        "is_first_time_user": True,
    }


def onboarding_state(db: DbClient, user_id: str) -> dict:
    """
    A first-time user has neither players nor any help progress. When storage
    cannot be read the first-time defaults are returned.
    """
    try:
        has_players = bool(db.list_players(user_id))
        has_tags = bool(db.list_tags(user_id))
        progress = db.list_help_progress(user_id)
        completed_ids = {
            p.content_id for p in progress if p.status == ProgressStatus.COMPLETED
        }
        tutorials = sorted(
            c.slug
            for c in db.list_help_content(
                content_type=ContentType.TUTORIAL, published_only=False
            )
            if c.id in completed_ids
        )
    except TouchlineError as exc:
        logger.warning("Onboarding state unavailable for %s: %s", user_id, exc.message)
        return default_state()

    return {
        "has_players": has_players,
        "has_tags": has_tags,
        "has_help_progress": bool(progress),
        "completed_tutorials": tutorials,
        "is_first_time_user": not has_players and not progress,
    }
