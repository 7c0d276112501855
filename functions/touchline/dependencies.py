"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Header

from touchline.changefeed import ChangeFeed, InMemoryChangeFeed, RedisChangeFeed
from touchline.config import get_settings
from touchline.db import DbClient, InMemoryDbClient
from touchline.db_postgres import PostgresDbClient
from touchline.errors import AuthenticationError
from touchline.help_service import HelpService
from touchline.queue import InMemoryJobQueue, JobQueue, RedisJobQueue
from touchline.roster import RosterService

_db_client: DbClient | None = None
_queue_client: JobQueue | None = None
_change_feed: ChangeFeed | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so roster and help state persists across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _db_client = InMemoryDbClient()
    else:
        _db_client = PostgresDbClient(settings.database_url)
    return _db_client


def get_queue_client() -> JobQueue:
    """
    Return a singleton queue client for dispatching analytics refreshes to workers.
    """
    global _queue_client
    if _queue_client:
        return _queue_client

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _queue_client = RedisJobQueue(
            url=settings.redis_url,
            queue_key=settings.redis_queue_key,
        )
    else:
        _queue_client = InMemoryJobQueue()
    return _queue_client


def get_change_feed() -> ChangeFeed:
    global _change_feed
    if _change_feed:
        return _change_feed

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _change_feed = RedisChangeFeed(
            url=settings.redis_url,
            channel_prefix=settings.redis_channel_prefix,
        )
    else:
        _change_feed = InMemoryChangeFeed()
    return _change_feed


def get_help_service() -> HelpService:
    return HelpService(get_db_client(), get_change_feed(), get_settings())


def get_roster_service() -> RosterService:
    return RosterService(
        get_db_client(), get_change_feed(), get_queue_client(), get_settings()
    )


def get_optional_user_id(
    x_user_id: Optional[str] = Header(default=None),
) -> Optional[str]:
    """Caller id forwarded by the authenticating proxy, if any."""
    if x_user_id and x_user_id.strip():
        return x_user_id.strip()
    return None


def get_current_user_id(
    x_user_id: Optional[str] = Header(default=None),
) -> str:
    user_id = get_optional_user_id(x_user_id)
    if not user_id:
        raise AuthenticationError("Authentication required")
    return user_id
