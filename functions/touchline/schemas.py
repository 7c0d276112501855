"""
Pydantic schemas for the Touchline API. Wire names are camelCase.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from touchline.types import (
    ActivityType,
    BulkOperation,
    ContentType,
    ContributionType,
    Difficulty,
    ProgressStatus,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# help


class CreateCategoryRequest(CamelModel):
    name: str = Field(..., max_length=120)
    slug: Optional[str] = Field(default=None, max_length=120)
    description: str = ""
    icon: Optional[str] = None
    sort_order: int = 0


class CreateContentRequest(CamelModel):
    title: str = Field(..., max_length=200)
    body: str
    summary: str = ""
    slug: Optional[str] = Field(default=None, max_length=200)
    content_type: ContentType = ContentType.ARTICLE
    category: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    difficulty: Difficulty = Difficulty.BEGINNER
    estimated_minutes: int = Field(default=0, ge=0)
    locale: str = "en"
    is_published: bool = True


class UpdateContentRequest(CamelModel):
    title: Optional[str] = Field(default=None, max_length=200)
    body: Optional[str] = None
    summary: Optional[str] = None
    slug: Optional[str] = Field(default=None, max_length=200)
    content_type: Optional[ContentType] = None
    category: Optional[str] = None
    tags: Optional[list[str]] = None
    keywords: Optional[list[str]] = None
    difficulty: Optional[Difficulty] = None
    estimated_minutes: Optional[int] = Field(default=None, ge=0)
    locale: Optional[str] = None
    is_published: Optional[bool] = None


class SearchResult(CamelModel):
    content: dict
    score: float


class SearchResponse(CamelModel):
    query: str
    results: list[SearchResult]


class ProgressUpdateRequest(CamelModel):
    progress_percent: Optional[int] = None
    status: Optional[ProgressStatus] = None
    bookmarked: Optional[bool] = None


class ProgressSummaryResponse(CamelModel):
    progress: list[dict]
    total_content: int
    completed: int
    in_progress: int
    bookmarked: int
    completion_percent: float


class FeedbackRequest(CamelModel):
    helpful: bool
    rating: Optional[int] = None


class ContributionRequest(CamelModel):
    contribution_type: ContributionType
    title: str = Field(..., max_length=200)
    body: str
    content_id: Optional[str] = None
    locale: str = "en"


class ReviewRequest(CamelModel):
    approve: bool
    notes: Optional[str] = Field(default=None, max_length=1024)


class ReviewResponse(CamelModel):
    contribution: dict
    content: Optional[dict] = None


class ContentStatsResponse(CamelModel):
    content_id: str
    title: str
    views: int
    helpful: int
    not_helpful: int
    completions: int
    helpful_ratio: Optional[float] = None


class QueryCount(CamelModel):
    query: str
    count: int


class HelpAnalyticsResponse(CamelModel):
    content: list[ContentStatsResponse]
    top_queries: list[QueryCount]
    zero_result_queries: list[QueryCount]
    total_events: int


# roster


class CreatePlayerRequest(CamelModel):
    name: str = Field(..., max_length=100)
    nickname: Optional[str] = Field(default=None, max_length=100)
    jersey_number: Optional[int] = None
    color: Optional[str] = Field(default=None, max_length=20)
    is_goalie: bool = False
    notes: Optional[str] = Field(default=None, max_length=2000)


class UpdatePlayerRequest(CamelModel):
    name: Optional[str] = Field(default=None, max_length=100)
    nickname: Optional[str] = Field(default=None, max_length=100)
    jersey_number: Optional[int] = None
    color: Optional[str] = Field(default=None, max_length=20)
    is_goalie: Optional[bool] = None
    notes: Optional[str] = Field(default=None, max_length=2000)


class ActivityRequest(CamelModel):
    activity_type: ActivityType
    description: str = Field(default="", max_length=1024)
    metadata: dict = Field(default_factory=dict)
    occurred_at: Optional[float] = None


class CreateTagRequest(CamelModel):
    name: str = Field(..., max_length=50)
    color: Optional[str] = Field(default=None, max_length=20)
    description: Optional[str] = Field(default=None, max_length=500)


class BulkRequest(CamelModel):
    operation: BulkOperation
    player_ids: list[str]
    tag_id: Optional[str] = None
    color: Optional[str] = None
    is_goalie: Optional[bool] = None


class BulkResponse(CamelModel):
    succeeded: list[str]
    failed: list[dict]


class RefreshResponse(CamelModel):
    status: Literal["queued"]


class OnboardingStateResponse(CamelModel):
    has_players: bool = False
    has_tags: bool = False
    has_help_progress: bool = False
    completed_tutorials: list[str] = Field(default_factory=list)
    is_first_time_user: bool = True
