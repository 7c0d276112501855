"""
Database abstraction for the help system and roster tables, with an
in-memory implementation for development and tests.

The SQLAlchemy implementation lives in ``touchline.db_postgres``. Both
implementations enforce the same uniqueness, check-range and cascade rules.
"""

from __future__ import annotations

import copy
import time
from typing import Dict, Optional, Protocol

from touchline.errors import ConstraintViolationError
from touchline.records import (
    ContributionRecord,
    HelpCategoryRecord,
    HelpContentRecord,
    HelpEventRecord,
    HelpProgressRecord,
    PlayerActivityRecord,
    PlayerRecord,
    PlayerTagRecord,
    RosterAnalyticsRecord,
    TagAssignmentRecord,
)
from touchline.types import ContributionStatus, HelpEventType

HELP_COUNTERS = ("view_count", "helpful_count", "not_helpful_count")
JERSEY_NUMBER_RANGE = (0, 99)
PROGRESS_RANGE = (0, 100)
RATING_RANGE = (1, 5)


class DbClient(Protocol):
    """Interface for database access."""

    # help_categories
    def create_category(self, record: HelpCategoryRecord) -> HelpCategoryRecord:
        ...

    def get_category(self, category_id: str) -> Optional[HelpCategoryRecord]:
        ...

    def get_category_by_slug(self, slug: str) -> Optional[HelpCategoryRecord]:
        ...

    def list_categories(self) -> list[HelpCategoryRecord]:
        ...

    def delete_category(self, category_id: str) -> bool:
        ...

    # help_content
    def create_help_content(self, record: HelpContentRecord) -> HelpContentRecord:
        ...

    def get_help_content(self, content_id: str) -> Optional[HelpContentRecord]:
        ...

    def get_help_content_by_slug(self, slug: str) -> Optional[HelpContentRecord]:
        ...

    def list_help_content(
        self,
        *,
        category_id: Optional[str] = None,
        content_type: Optional[str] = None,
        difficulty: Optional[str] = None,
        published_only: bool = True,
    ) -> list[HelpContentRecord]:
        ...

    def update_help_content(
        self, content_id: str, **fields
    ) -> Optional[HelpContentRecord]:
        ...

    def increment_help_counter(
        self, content_id: str, counter: str
    ) -> Optional[HelpContentRecord]:
        ...

    def delete_help_content(self, content_id: str) -> bool:
        ...

    # user_help_progress
    def get_help_progress(
        self, user_id: str, content_id: str
    ) -> Optional[HelpProgressRecord]:
        ...

    def upsert_help_progress(self, record: HelpProgressRecord) -> HelpProgressRecord:
        ...

    def list_help_progress(self, user_id: str) -> list[HelpProgressRecord]:
        ...

    # help_analytics
    def record_help_event(self, event: HelpEventRecord) -> None:
        ...

    def list_help_events(
        self,
        *,
        event_type: Optional[HelpEventType] = None,
        since: Optional[float] = None,
    ) -> list[HelpEventRecord]:
        ...

    # help_contributions
    def create_contribution(self, record: ContributionRecord) -> ContributionRecord:
        ...

    def get_contribution(self, contribution_id: str) -> Optional[ContributionRecord]:
        ...

    def update_contribution(
        self, contribution_id: str, **fields
    ) -> Optional[ContributionRecord]:
        ...

    def list_contributions(
        self,
        *,
        user_id: Optional[str] = None,
        status: Optional[ContributionStatus] = None,
    ) -> list[ContributionRecord]:
        ...

    # players
    def create_player(self, record: PlayerRecord) -> PlayerRecord:
        ...

    def get_player(self, user_id: str, player_id: str) -> Optional[PlayerRecord]:
        ...

    def list_players(self, user_id: str) -> list[PlayerRecord]:
        ...

    def update_player(
        self, user_id: str, player_id: str, **fields
    ) -> Optional[PlayerRecord]:
        ...

    def delete_player(self, user_id: str, player_id: str) -> bool:
        ...

    # player_activities
    def create_activity(self, record: PlayerActivityRecord) -> PlayerActivityRecord:
        ...

    def list_activities(
        self,
        user_id: str,
        *,
        player_id: Optional[str] = None,
        since: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> list[PlayerActivityRecord]:
        ...

    # player_tags
    def create_tag(self, record: PlayerTagRecord) -> PlayerTagRecord:
        ...

    def get_tag(self, user_id: str, tag_id: str) -> Optional[PlayerTagRecord]:
        ...

    def list_tags(self, user_id: str) -> list[PlayerTagRecord]:
        ...

    def delete_tag(self, user_id: str, tag_id: str) -> bool:
        ...

    # player_tag_assignments
    def get_tag_assignment(
        self, user_id: str, player_id: str, tag_id: str
    ) -> Optional[TagAssignmentRecord]:
        ...

    def create_tag_assignment(
        self, record: TagAssignmentRecord
    ) -> TagAssignmentRecord:
        ...

    def delete_tag_assignment(self, user_id: str, player_id: str, tag_id: str) -> bool:
        ...

    def list_tag_assignments(
        self,
        user_id: str,
        *,
        player_id: Optional[str] = None,
        tag_id: Optional[str] = None,
    ) -> list[TagAssignmentRecord]:
        ...

    # roster_analytics
    def upsert_roster_analytics(
        self, record: RosterAnalyticsRecord
    ) -> RosterAnalyticsRecord:
        ...

    def list_roster_analytics(
        self, user_id: str, limit: int = 30
    ) -> list[RosterAnalyticsRecord]:
        ...


def check_range(name: str, value: Optional[int], bounds: tuple[int, int]) -> None:
    """Mirror of the CHECK constraints declared on the SQL tables."""
    if value is None:
        return
    low, high = bounds
    if value < low or value > high:
        raise ConstraintViolationError(
            f"{name} must be between {low} and {high}",
            {"field": name, "value": value},
        )


def check_progress(record: HelpProgressRecord) -> None:
    check_range("progress_percent", record.progress_percent, PROGRESS_RANGE)
    check_range("rating", record.rating, RATING_RANGE)


def check_player(record: PlayerRecord) -> None:
    check_range("jersey_number", record.jersey_number, JERSEY_NUMBER_RANGE)


def _copy(record):
    return copy.deepcopy(record) if record is not None else None


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.categories: Dict[str, HelpCategoryRecord] = {}
        self.content: Dict[str, HelpContentRecord] = {}
        self.progress: Dict[tuple[str, str], HelpProgressRecord] = {}
        self.events: list[HelpEventRecord] = []
        self.contributions: Dict[str, ContributionRecord] = {}
        self.players: Dict[str, PlayerRecord] = {}
        self.activities: list[PlayerActivityRecord] = []
        self.tags: Dict[str, PlayerTagRecord] = {}
        self.assignments: Dict[tuple[str, str], TagAssignmentRecord] = {}
        self.roster_analytics: Dict[tuple[str, str], RosterAnalyticsRecord] = {}

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.categories.clear()
        self.content.clear()
        self.progress.clear()
        self.events.clear()
        self.contributions.clear()
        self.players.clear()
        self.activities.clear()
        self.tags.clear()
        self.assignments.clear()
        self.roster_analytics.clear()

    # help_categories

    def create_category(self, record: HelpCategoryRecord) -> HelpCategoryRecord:
        if self.get_category_by_slug(record.slug):
            raise ConstraintViolationError(
                f"Category slug '{record.slug}' already exists", {"field": "slug"}
            )
        self.categories[record.id] = _copy(record)
        return _copy(record)

    def get_category(self, category_id: str) -> Optional[HelpCategoryRecord]:
        return _copy(self.categories.get(category_id))

    def get_category_by_slug(self, slug: str) -> Optional[HelpCategoryRecord]:
        for category in self.categories.values():
            if category.slug == slug:
                return _copy(category)
        return None

    def list_categories(self) -> list[HelpCategoryRecord]:
        items = sorted(
            self.categories.values(), key=lambda c: (c.sort_order, c.name)
        )
        return [_copy(c) for c in items]

    def delete_category(self, category_id: str) -> bool:
        if self.categories.pop(category_id, None) is None:
            return False
        # ON DELETE SET NULL
        for content in self.content.values():
            if content.category_id == category_id:
                content.category_id = None
        return True

    # help_content

    def create_help_content(self, record: HelpContentRecord) -> HelpContentRecord:
        if self.get_help_content_by_slug(record.slug):
            raise ConstraintViolationError(
                f"Help content slug '{record.slug}' already exists", {"field": "slug"}
            )
        if record.category_id and record.category_id not in self.categories:
            raise ConstraintViolationError(
                "Unknown help category", {"field": "category_id"}
            )
        self.content[record.id] = _copy(record)
        return _copy(record)

    def get_help_content(self, content_id: str) -> Optional[HelpContentRecord]:
        return _copy(self.content.get(content_id))

    def get_help_content_by_slug(self, slug: str) -> Optional[HelpContentRecord]:
        for content in self.content.values():
            if content.slug == slug:
                return _copy(content)
        return None

    def list_help_content(
        self,
        *,
        category_id: Optional[str] = None,
        content_type: Optional[str] = None,
        difficulty: Optional[str] = None,
        published_only: bool = True,
    ) -> list[HelpContentRecord]:
        items: list[HelpContentRecord] = []
        for content in self.content.values():
            if published_only and not content.is_published:
                continue
            if category_id and content.category_id != category_id:
                continue
            if content_type and content.content_type != content_type:
                continue
            if difficulty and content.difficulty != difficulty:
                continue
            items.append(_copy(content))
        items.sort(key=lambda c: c.title.lower())
        return items

    def update_help_content(
        self, content_id: str, **fields
    ) -> Optional[HelpContentRecord]:
        content = self.content.get(content_id)
        if not content:
            return None
        slug = fields.get("slug")
        if slug and slug != content.slug and self.get_help_content_by_slug(slug):
            raise ConstraintViolationError(
                f"Help content slug '{slug}' already exists", {"field": "slug"}
            )
        category_id = fields.get("category_id")
        if category_id and category_id not in self.categories:
            raise ConstraintViolationError(
                "Unknown help category", {"field": "category_id"}
            )
        for key, value in fields.items():
            setattr(content, key, copy.deepcopy(value))
        content.updated_at = time.time()
        return _copy(content)

    def increment_help_counter(
        self, content_id: str, counter: str
    ) -> Optional[HelpContentRecord]:
        if counter not in HELP_COUNTERS:
            raise ValueError(f"Unknown help counter: {counter}")
        content = self.content.get(content_id)
        if not content:
            return None
        setattr(content, counter, getattr(content, counter) + 1)
        return _copy(content)

    def delete_help_content(self, content_id: str) -> bool:
        if self.content.pop(content_id, None) is None:
            return False
        for key in [k for k in self.progress if k[1] == content_id]:
            del self.progress[key]
        self.events = [e for e in self.events if e.content_id != content_id]
        for contribution in self.contributions.values():
            if contribution.content_id == content_id:
                contribution.content_id = None
        return True

    # user_help_progress

    def get_help_progress(
        self, user_id: str, content_id: str
    ) -> Optional[HelpProgressRecord]:
        return _copy(self.progress.get((user_id, content_id)))

    def upsert_help_progress(self, record: HelpProgressRecord) -> HelpProgressRecord:
        check_progress(record)
        if record.content_id not in self.content:
            raise ConstraintViolationError(
                "Unknown help content", {"field": "content_id"}
            )
        key = (record.user_id, record.content_id)
        existing = self.progress.get(key)
        stored = _copy(record)
        if existing:
            stored.id = existing.id
            stored.created_at = existing.created_at
        stored.updated_at = time.time()
        self.progress[key] = stored
        return _copy(stored)

    def list_help_progress(self, user_id: str) -> list[HelpProgressRecord]:
        items = [p for (uid, _), p in self.progress.items() if uid == user_id]
        items.sort(key=lambda p: p.updated_at, reverse=True)
        return [_copy(p) for p in items]

    # help_analytics

    def record_help_event(self, event: HelpEventRecord) -> None:
        self.events.append(_copy(event))

    def list_help_events(
        self,
        *,
        event_type: Optional[HelpEventType] = None,
        since: Optional[float] = None,
    ) -> list[HelpEventRecord]:
        items = [
            e
            for e in self.events
            if (event_type is None or e.event_type == event_type)
            and (since is None or e.created_at >= since)
        ]
        return [_copy(e) for e in items]

    # help_contributions

    def create_contribution(self, record: ContributionRecord) -> ContributionRecord:
        if record.content_id and record.content_id not in self.content:
            raise ConstraintViolationError(
                "Unknown help content", {"field": "content_id"}
            )
        self.contributions[record.id] = _copy(record)
        return _copy(record)

    def get_contribution(self, contribution_id: str) -> Optional[ContributionRecord]:
        return _copy(self.contributions.get(contribution_id))

    def update_contribution(
        self, contribution_id: str, **fields
    ) -> Optional[ContributionRecord]:
        contribution = self.contributions.get(contribution_id)
        if not contribution:
            return None
        for key, value in fields.items():
            setattr(contribution, key, value)
        return _copy(contribution)

    def list_contributions(
        self,
        *,
        user_id: Optional[str] = None,
        status: Optional[ContributionStatus] = None,
    ) -> list[ContributionRecord]:
        items = [
            c
            for c in self.contributions.values()
            if (user_id is None or c.user_id == user_id)
            and (status is None or c.status == status)
        ]
        items.sort(key=lambda c: c.created_at, reverse=True)
        return [_copy(c) for c in items]

    # players

    def _check_jersey_free(
        self, user_id: str, jersey_number: Optional[int], player_id: str
    ) -> None:
        if jersey_number is None:
            return
        for player in self.players.values():
            if (
                player.user_id == user_id
                and player.id != player_id
                and player.jersey_number == jersey_number
            ):
                raise ConstraintViolationError(
                    "Jersey number already in use",
                    {"field": "jersey_number", "value": jersey_number},
                )

    def create_player(self, record: PlayerRecord) -> PlayerRecord:
        check_player(record)
        self._check_jersey_free(record.user_id, record.jersey_number, record.id)
        self.players[record.id] = _copy(record)
        return _copy(record)

    def get_player(self, user_id: str, player_id: str) -> Optional[PlayerRecord]:
        player = self.players.get(player_id)
        if not player or player.user_id != user_id:
            return None
        return _copy(player)

    def list_players(self, user_id: str) -> list[PlayerRecord]:
        items = [p for p in self.players.values() if p.user_id == user_id]
        items.sort(key=lambda p: p.created_at)
        return [_copy(p) for p in items]

    def update_player(
        self, user_id: str, player_id: str, **fields
    ) -> Optional[PlayerRecord]:
        player = self.players.get(player_id)
        if not player or player.user_id != user_id:
            return None
        candidate = copy.deepcopy(player)
        for key, value in fields.items():
            setattr(candidate, key, value)
        check_player(candidate)
        self._check_jersey_free(user_id, candidate.jersey_number, player_id)
        candidate.updated_at = time.time()
        self.players[player_id] = candidate
        return _copy(candidate)

    def delete_player(self, user_id: str, player_id: str) -> bool:
        player = self.players.get(player_id)
        if not player or player.user_id != user_id:
            return False
        del self.players[player_id]
        self.activities = [a for a in self.activities if a.player_id != player_id]
        for key in [k for k in self.assignments if k[0] == player_id]:
            del self.assignments[key]
        return True

    # player_activities

    def create_activity(self, record: PlayerActivityRecord) -> PlayerActivityRecord:
        if not self.get_player(record.user_id, record.player_id):
            raise ConstraintViolationError("Unknown player", {"field": "player_id"})
        self.activities.append(_copy(record))
        return _copy(record)

    def list_activities(
        self,
        user_id: str,
        *,
        player_id: Optional[str] = None,
        since: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> list[PlayerActivityRecord]:
        items = [
            a
            for a in self.activities
            if a.user_id == user_id
            and (player_id is None or a.player_id == player_id)
            and (since is None or a.occurred_at >= since)
        ]
        items.sort(key=lambda a: a.occurred_at, reverse=True)
        if limit is not None:
            items = items[:limit]
        return [_copy(a) for a in items]

    # player_tags

    def create_tag(self, record: PlayerTagRecord) -> PlayerTagRecord:
        for tag in self.tags.values():
            if tag.user_id == record.user_id and tag.name == record.name:
                raise ConstraintViolationError(
                    f"Tag '{record.name}' already exists", {"field": "name"}
                )
        self.tags[record.id] = _copy(record)
        return _copy(record)

    def get_tag(self, user_id: str, tag_id: str) -> Optional[PlayerTagRecord]:
        tag = self.tags.get(tag_id)
        if not tag or tag.user_id != user_id:
            return None
        return _copy(tag)

    def list_tags(self, user_id: str) -> list[PlayerTagRecord]:
        items = [t for t in self.tags.values() if t.user_id == user_id]
        items.sort(key=lambda t: t.name.lower())
        return [_copy(t) for t in items]

    def delete_tag(self, user_id: str, tag_id: str) -> bool:
        tag = self.tags.get(tag_id)
        if not tag or tag.user_id != user_id:
            return False
        del self.tags[tag_id]
        for key in [k for k in self.assignments if k[1] == tag_id]:
            del self.assignments[key]
        return True

    # player_tag_assignments

    def get_tag_assignment(
        self, user_id: str, player_id: str, tag_id: str
    ) -> Optional[TagAssignmentRecord]:
        assignment = self.assignments.get((player_id, tag_id))
        if not assignment or assignment.user_id != user_id:
            return None
        return _copy(assignment)

    def create_tag_assignment(
        self, record: TagAssignmentRecord
    ) -> TagAssignmentRecord:
        if record.player_id not in self.players:
            raise ConstraintViolationError("Unknown player", {"field": "player_id"})
        if record.tag_id not in self.tags:
            raise ConstraintViolationError("Unknown tag", {"field": "tag_id"})
        key = (record.player_id, record.tag_id)
        if key in self.assignments:
            raise ConstraintViolationError(
                "Tag already assigned to player", {"field": "tag_id"}
            )
        self.assignments[key] = _copy(record)
        return _copy(record)

    def delete_tag_assignment(self, user_id: str, player_id: str, tag_id: str) -> bool:
        assignment = self.assignments.get((player_id, tag_id))
        if not assignment or assignment.user_id != user_id:
            return False
        del self.assignments[(player_id, tag_id)]
        return True

    def list_tag_assignments(
        self,
        user_id: str,
        *,
        player_id: Optional[str] = None,
        tag_id: Optional[str] = None,
    ) -> list[TagAssignmentRecord]:
        items = [
            a
            for a in self.assignments.values()
            if a.user_id == user_id
            and (player_id is None or a.player_id == player_id)
            and (tag_id is None or a.tag_id == tag_id)
        ]
        items.sort(key=lambda a: a.assigned_at)
        return [_copy(a) for a in items]

    # roster_analytics

    def upsert_roster_analytics(
        self, record: RosterAnalyticsRecord
    ) -> RosterAnalyticsRecord:
        key = (record.user_id, record.snapshot_date)
        stored = _copy(record)
        existing = self.roster_analytics.get(key)
        if existing:
            stored.id = existing.id
        self.roster_analytics[key] = stored
        return _copy(stored)

    def list_roster_analytics(
        self, user_id: str, limit: int = 30
    ) -> list[RosterAnalyticsRecord]:
        items = [r for (uid, _), r in self.roster_analytics.items() if uid == user_id]
        items.sort(key=lambda r: r.snapshot_date, reverse=True)
        return [_copy(r) for r in items[:limit]]
