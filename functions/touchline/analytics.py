"""
Aggregations over help analytics events and roster rows.
"""

from __future__ import annotations

import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Optional

from touchline.db import DbClient
from touchline.records import HelpContentRecord, HelpEventRecord, RosterAnalyticsRecord
from touchline.types import HelpEventType

TOP_QUERY_LIMIT = 10
SECONDS_PER_DAY = 86400


@dataclass
class ContentStats:
    content_id: str
    title: str
    views: int = 0
    helpful: int = 0
    not_helpful: int = 0
    completions: int = 0

    @property
    def helpful_ratio(self) -> Optional[float]:
        votes = self.helpful + self.not_helpful
        if not votes:
            return None
        return round(self.helpful / votes, 3)


@dataclass
class HelpAnalyticsSummary:
    content: list[ContentStats] = field(default_factory=list)
    top_queries: list[tuple[str, int]] = field(default_factory=list)
    zero_result_queries: list[tuple[str, int]] = field(default_factory=list)
    total_events: int = 0


def _normalize_query(query: Optional[str]) -> str:
    return " ".join((query or "").lower().split())


def summarize_help_events(
    events: Iterable[HelpEventRecord], contents: Iterable[HelpContentRecord]
) -> HelpAnalyticsSummary:
    stats = {c.id: ContentStats(content_id=c.id, title=c.title) for c in contents}
    queries: Counter[str] = Counter()
    zero_results: Counter[str] = Counter()
    total = 0

    for event in events:
        total += 1
        if event.event_type == HelpEventType.SEARCH:
            query = _normalize_query(event.query)
            if not query:
                continue
            queries[query] += 1
            if not event.metadata.get("resultCount"):
                zero_results[query] += 1
            continue
        item = stats.get(event.content_id) if event.content_id else None
        if item is None:
            continue
        if event.event_type == HelpEventType.VIEW:
            item.views += 1
        elif event.event_type == HelpEventType.HELPFUL:
            item.helpful += 1
        elif event.event_type == HelpEventType.NOT_HELPFUL:
            item.not_helpful += 1
        elif event.event_type == HelpEventType.COMPLETE:
            item.completions += 1

    content = sorted(stats.values(), key=lambda s: (-s.views, s.title.lower()))
    return HelpAnalyticsSummary(
        content=content,
        top_queries=queries.most_common(TOP_QUERY_LIMIT),
        zero_result_queries=zero_results.most_common(TOP_QUERY_LIMIT),
        total_events=total,
    )


def snapshot_date(now: float) -> str:
    return datetime.fromtimestamp(now, tz=timezone.utc).strftime("%Y-%m-%d")


def compute_roster_analytics(
    db: DbClient,
    user_id: str,
    *,
    now: Optional[float] = None,
    window_days: int = 30,
) -> RosterAnalyticsRecord:
    """Build today's roster snapshot for ``user_id`` without saving it."""
    now = now if now is not None else time.time()
    players = db.list_players(user_id)
    tags = {t.id: t.name for t in db.list_tags(user_id)}
    assignments = db.list_tag_assignments(user_id)
    activities = db.list_activities(
        user_id, since=now - window_days * SECONDS_PER_DAY
    )

    tagged = {a.player_id for a in assignments}
    distribution = Counter(tags[a.tag_id] for a in assignments if a.tag_id in tags)
    breakdown = Counter(a.activity_type.value for a in activities)

    return RosterAnalyticsRecord(
        user_id=user_id,
        snapshot_date=snapshot_date(now),
        total_players=len(players),
        goalie_count=sum(1 for p in players if p.is_goalie),
        tagged_players=sum(1 for p in players if p.id in tagged),
        untagged_players=sum(1 for p in players if p.id not in tagged),
        activity_count=len(activities),
        tag_distribution={name: distribution.get(name, 0) for name in sorted(tags.values())},
        activity_breakdown=dict(sorted(breakdown.items())),
        computed_at=now,
    )


def refresh_roster_analytics(
    db: DbClient, user_id: str, *, window_days: int = 30
) -> RosterAnalyticsRecord:
    """Compute and upsert today's snapshot."""
    record = compute_roster_analytics(db, user_id, window_days=window_days)
    return db.upsert_roster_analytics(record)
