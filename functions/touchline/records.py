"""
Row records exchanged with the database clients.

Each record mirrors one table. ``as_dict`` returns the snake_case storage
shape; the API layer converts keys to camelCase.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Optional

from touchline.types import (
    ActivityType,
    ChangeType,
    ContentType,
    ContributionStatus,
    ContributionType,
    Difficulty,
    HelpEventType,
    ProgressStatus,
)


def new_id() -> str:
    return uuid.uuid4().hex


def _now() -> float:
    return time.time()


class _Record:
    def as_dict(self) -> dict:
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, Enum):
                data[key] = value.value
        return data


@dataclass
class HelpCategoryRecord(_Record):
    slug: str
    name: str
    description: str = ""
    icon: Optional[str] = None
    sort_order: int = 0
    id: str = field(default_factory=new_id)
    created_at: float = field(default_factory=_now)


@dataclass
class HelpContentRecord(_Record):
    slug: str
    title: str
    body: str
    summary: str = ""
    content_type: ContentType = ContentType.ARTICLE
    category_id: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)
    difficulty: Difficulty = Difficulty.BEGINNER
    estimated_minutes: int = 0
    locale: str = "en"
    is_published: bool = True
    view_count: int = 0
    helpful_count: int = 0
    not_helpful_count: int = 0
    id: str = field(default_factory=new_id)
    created_at: float = field(default_factory=_now)
    updated_at: float = field(default_factory=_now)


@dataclass
class HelpProgressRecord(_Record):
    user_id: str
    content_id: str
    status: ProgressStatus = ProgressStatus.NOT_STARTED
    progress_percent: int = 0
    rating: Optional[int] = None
    bookmarked: bool = False
    last_viewed_at: Optional[float] = None
    completed_at: Optional[float] = None
    id: str = field(default_factory=new_id)
    created_at: float = field(default_factory=_now)
    updated_at: float = field(default_factory=_now)


@dataclass
class HelpEventRecord(_Record):
    event_type: HelpEventType
    user_id: Optional[str] = None
    content_id: Optional[str] = None
    query: Optional[str] = None
    metadata: dict = field(default_factory=dict)
    id: str = field(default_factory=new_id)
    created_at: float = field(default_factory=_now)


@dataclass
class ContributionRecord(_Record):
    user_id: str
    contribution_type: ContributionType
    title: str
    body: str
    content_id: Optional[str] = None
    locale: str = "en"
    status: ContributionStatus = ContributionStatus.PENDING
    reviewer_id: Optional[str] = None
    review_notes: Optional[str] = None
    reviewed_at: Optional[float] = None
    id: str = field(default_factory=new_id)
    created_at: float = field(default_factory=_now)


@dataclass
class PlayerRecord(_Record):
    user_id: str
    name: str
    nickname: Optional[str] = None
    jersey_number: Optional[int] = None
    color: Optional[str] = None
    is_goalie: bool = False
    notes: Optional[str] = None
    id: str = field(default_factory=new_id)
    created_at: float = field(default_factory=_now)
    updated_at: float = field(default_factory=_now)


@dataclass
class PlayerActivityRecord(_Record):
    user_id: str
    player_id: str
    activity_type: ActivityType
    description: str = ""
    metadata: dict = field(default_factory=dict)
    occurred_at: float = field(default_factory=_now)
    id: str = field(default_factory=new_id)
    created_at: float = field(default_factory=_now)


@dataclass
class PlayerTagRecord(_Record):
    user_id: str
    name: str
    color: Optional[str] = None
    description: Optional[str] = None
    id: str = field(default_factory=new_id)
    created_at: float = field(default_factory=_now)


@dataclass
class TagAssignmentRecord(_Record):
    user_id: str
    player_id: str
    tag_id: str
    id: str = field(default_factory=new_id)
    assigned_at: float = field(default_factory=_now)


@dataclass
class RosterAnalyticsRecord(_Record):
    user_id: str
    snapshot_date: str
    total_players: int = 0
    goalie_count: int = 0
    tagged_players: int = 0
    untagged_players: int = 0
    activity_count: int = 0
    tag_distribution: dict = field(default_factory=dict)
    activity_breakdown: dict = field(default_factory=dict)
    id: str = field(default_factory=new_id)
    computed_at: float = field(default_factory=_now)


@dataclass
class ChangeEvent(_Record):
    table: str
    event_type: ChangeType
    record: dict
    user_id: Optional[str] = None
    timestamp: float = field(default_factory=_now)
