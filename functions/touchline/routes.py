"""
HTTP routes for the Touchline API.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from touchline.analytics import compute_roster_analytics
from touchline.config import Settings, get_settings
from touchline.db import DbClient
from touchline.dependencies import (
    get_current_user_id,
    get_db_client,
    get_help_service,
    get_optional_user_id,
    get_queue_client,
    get_roster_service,
)
from touchline.help_service import HelpService
from touchline.json_utils import to_wire
from touchline.onboarding import onboarding_state
from touchline.queue import JobQueue
from touchline.roster import BulkOperationResult, RosterService
from touchline.schemas import (
    ActivityRequest,
    BulkRequest,
    BulkResponse,
    ContentStatsResponse,
    ContributionRequest,
    CreateCategoryRequest,
    CreateContentRequest,
    CreatePlayerRequest,
    CreateTagRequest,
    FeedbackRequest,
    HelpAnalyticsResponse,
    OnboardingStateResponse,
    ProgressSummaryResponse,
    ProgressUpdateRequest,
    QueryCount,
    RefreshResponse,
    ReviewRequest,
    ReviewResponse,
    SearchResponse,
    SearchResult,
    UpdateContentRequest,
    UpdatePlayerRequest,
)
from touchline.types import ContentType, ContributionStatus, Difficulty

logger = logging.getLogger(__name__)

router = APIRouter()


def _bulk_response(result: BulkOperationResult) -> BulkResponse:
    return BulkResponse(succeeded=result.succeeded, failed=result.failed)


# help: categories


@router.get("/help/categories")
def list_help_categories(service: HelpService = Depends(get_help_service)):
    return [to_wire(c) for c in service.list_categories()]


@router.post("/help/categories", status_code=201)
def create_help_category(
    payload: CreateCategoryRequest,
    user_id: Optional[str] = Depends(get_optional_user_id),
    service: HelpService = Depends(get_help_service),
):
    return to_wire(service.create_category(user_id, **payload.model_dump()))


@router.delete("/help/categories/{category_id}", status_code=204)
def delete_help_category(
    category_id: str,
    user_id: Optional[str] = Depends(get_optional_user_id),
    service: HelpService = Depends(get_help_service),
):
    service.delete_category(user_id, category_id)


# help: content


@router.get("/help/content")
def list_help_content(
    category: Optional[str] = Query(default=None),
    content_type: Optional[ContentType] = Query(default=None, alias="contentType"),
    difficulty: Optional[Difficulty] = Query(default=None),
    include_unpublished: bool = Query(default=False, alias="includeUnpublished"),
    user_id: Optional[str] = Depends(get_optional_user_id),
    service: HelpService = Depends(get_help_service),
):
    items = service.list_content(
        category=category,
        content_type=content_type,
        difficulty=difficulty,
        include_unpublished=include_unpublished,
        user_id=user_id,
    )
    return [to_wire(c) for c in items]


@router.post("/help/content", status_code=201)
def create_help_content(
    payload: CreateContentRequest,
    user_id: Optional[str] = Depends(get_optional_user_id),
    service: HelpService = Depends(get_help_service),
):
    return to_wire(service.create_content(user_id, **payload.model_dump()))


@router.get("/help/content/slug/{slug}")
def get_help_content_by_slug(
    slug: str,
    user_id: Optional[str] = Depends(get_optional_user_id),
    service: HelpService = Depends(get_help_service),
):
    return to_wire(service.get_content_by_slug(slug, user_id))


@router.get("/help/content/{content_id}")
def get_help_content(
    content_id: str,
    user_id: Optional[str] = Depends(get_optional_user_id),
    service: HelpService = Depends(get_help_service),
):
    return to_wire(service.get_content(content_id, user_id))


@router.patch("/help/content/{content_id}")
def update_help_content(
    content_id: str,
    payload: UpdateContentRequest,
    user_id: Optional[str] = Depends(get_optional_user_id),
    service: HelpService = Depends(get_help_service),
):
    changes = payload.model_dump(exclude_unset=True)
    return to_wire(service.update_content(user_id, content_id, **changes))


@router.delete("/help/content/{content_id}", status_code=204)
def delete_help_content(
    content_id: str,
    user_id: Optional[str] = Depends(get_optional_user_id),
    service: HelpService = Depends(get_help_service),
):
    service.delete_content(user_id, content_id)


@router.get("/help/search", response_model=SearchResponse)
def search_help(
    q: str = Query(default="", max_length=200),
    category: Optional[str] = Query(default=None),
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    user_id: Optional[str] = Depends(get_optional_user_id),
    service: HelpService = Depends(get_help_service),
):
    results = service.search(q, user_id=user_id, category=category, limit=limit)
    return SearchResponse(
        query=q,
        results=[SearchResult(content=to_wire(c), score=score) for c, score in results],
    )


# help: progress and feedback


@router.get("/help/progress", response_model=ProgressSummaryResponse)
def get_help_progress(
    user_id: str = Depends(get_current_user_id),
    service: HelpService = Depends(get_help_service),
):
    summary = service.get_progress_summary(user_id)
    return ProgressSummaryResponse(
        progress=[to_wire(p) for p in summary.progress],
        total_content=summary.total_content,
        completed=summary.completed,
        in_progress=summary.in_progress,
        bookmarked=summary.bookmarked,
        completion_percent=summary.completion_percent,
    )


@router.put("/help/progress/{content_id}")
def update_help_progress(
    content_id: str,
    payload: ProgressUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    service: HelpService = Depends(get_help_service),
):
    progress = service.update_progress(
        user_id,
        content_id,
        progress_percent=payload.progress_percent,
        status=payload.status,
        bookmarked=payload.bookmarked,
    )
    return to_wire(progress)


@router.post("/help/content/{content_id}/complete")
def complete_help_content(
    content_id: str,
    user_id: str = Depends(get_current_user_id),
    service: HelpService = Depends(get_help_service),
):
    return to_wire(service.mark_complete(user_id, content_id))


@router.post("/help/content/{content_id}/feedback")
def submit_help_feedback(
    content_id: str,
    payload: FeedbackRequest,
    user_id: str = Depends(get_current_user_id),
    service: HelpService = Depends(get_help_service),
):
    content = service.submit_feedback(
        user_id, content_id, helpful=payload.helpful, rating=payload.rating
    )
    return to_wire(content)


@router.get("/help/recommendations")
def get_help_recommendations(
    limit: Optional[int] = Query(default=None, ge=1, le=50),
    user_id: str = Depends(get_current_user_id),
    service: HelpService = Depends(get_help_service),
):
    return [to_wire(c) for c in service.recommend(user_id, limit)]


# help: contributions


@router.post("/help/contributions", status_code=201)
def submit_help_contribution(
    payload: ContributionRequest,
    user_id: str = Depends(get_current_user_id),
    service: HelpService = Depends(get_help_service),
):
    return to_wire(service.submit_contribution(user_id, **payload.model_dump()))


@router.get("/help/contributions")
def list_help_contributions(
    status: Optional[ContributionStatus] = Query(default=None),
    user_id: str = Depends(get_current_user_id),
    service: HelpService = Depends(get_help_service),
):
    return [to_wire(c) for c in service.list_contributions(user_id, status)]


@router.post(
    "/help/contributions/{contribution_id}/review", response_model=ReviewResponse
)
def review_help_contribution(
    contribution_id: str,
    payload: ReviewRequest,
    user_id: Optional[str] = Depends(get_optional_user_id),
    service: HelpService = Depends(get_help_service),
):
    outcome = service.review_contribution(
        user_id, contribution_id, approve=payload.approve, notes=payload.notes
    )
    return ReviewResponse(
        contribution=to_wire(outcome.contribution),
        content=to_wire(outcome.content) if outcome.content else None,
    )


@router.get("/help/analytics", response_model=HelpAnalyticsResponse)
def get_help_analytics(
    since: Optional[float] = Query(default=None),
    user_id: Optional[str] = Depends(get_optional_user_id),
    service: HelpService = Depends(get_help_service),
):
    summary = service.analytics_summary(user_id, since)
    return HelpAnalyticsResponse(
        content=[
            ContentStatsResponse(
                content_id=s.content_id,
                title=s.title,
                views=s.views,
                helpful=s.helpful,
                not_helpful=s.not_helpful,
                completions=s.completions,
                helpful_ratio=s.helpful_ratio,
            )
            for s in summary.content
        ],
        top_queries=[QueryCount(query=q, count=n) for q, n in summary.top_queries],
        zero_result_queries=[
            QueryCount(query=q, count=n) for q, n in summary.zero_result_queries
        ],
        total_events=summary.total_events,
    )


# roster: players


@router.get("/roster/players")
def list_players(
    search: Optional[str] = Query(default=None, max_length=100),
    goalies_only: bool = Query(default=False, alias="goaliesOnly"),
    number_range: Optional[str] = Query(default=None, alias="numberRange"),
    tag_id: Optional[str] = Query(default=None, alias="tagId"),
    user_id: str = Depends(get_current_user_id),
    roster: RosterService = Depends(get_roster_service),
):
    players = roster.list_players(
        user_id,
        search=search,
        goalies_only=goalies_only,
        number_range=number_range,
        tag_id=tag_id,
    )
    return [to_wire(p) for p in players]


@router.post("/roster/players", status_code=201)
def add_player(
    payload: CreatePlayerRequest,
    user_id: str = Depends(get_current_user_id),
    roster: RosterService = Depends(get_roster_service),
):
    return to_wire(roster.add_player(user_id, **payload.model_dump()))


@router.get("/roster/players/{player_id}")
def get_player(
    player_id: str,
    user_id: str = Depends(get_current_user_id),
    roster: RosterService = Depends(get_roster_service),
):
    player = to_wire(roster.get_player(user_id, player_id))
    player["tags"] = [to_wire(t) for t in roster.tags_for_player(user_id, player_id)]
    return player


@router.patch("/roster/players/{player_id}")
def update_player(
    player_id: str,
    payload: UpdatePlayerRequest,
    user_id: str = Depends(get_current_user_id),
    roster: RosterService = Depends(get_roster_service),
):
    changes = payload.model_dump(exclude_unset=True)
    return to_wire(roster.update_player(user_id, player_id, **changes))


@router.delete("/roster/players/{player_id}", status_code=204)
def remove_player(
    player_id: str,
    user_id: str = Depends(get_current_user_id),
    roster: RosterService = Depends(get_roster_service),
):
    roster.remove_player(user_id, player_id)


# roster: activities


@router.get("/roster/players/{player_id}/activities")
def list_player_activities(
    player_id: str,
    limit: int = Query(default=50, ge=1, le=500),
    user_id: str = Depends(get_current_user_id),
    roster: RosterService = Depends(get_roster_service),
):
    return [to_wire(a) for a in roster.list_activities(user_id, player_id, limit)]


@router.post("/roster/players/{player_id}/activities", status_code=201)
def record_player_activity(
    player_id: str,
    payload: ActivityRequest,
    user_id: str = Depends(get_current_user_id),
    roster: RosterService = Depends(get_roster_service),
):
    activity = roster.record_activity(user_id, player_id, **payload.model_dump())
    return to_wire(activity)


@router.get("/roster/activities")
def list_roster_activities(
    limit: int = Query(default=50, ge=1, le=500),
    user_id: str = Depends(get_current_user_id),
    roster: RosterService = Depends(get_roster_service),
):
    return [to_wire(a) for a in roster.list_activities(user_id, None, limit)]


# roster: tags


@router.get("/roster/tags")
def list_tags(
    user_id: str = Depends(get_current_user_id),
    roster: RosterService = Depends(get_roster_service),
):
    return [
        {**to_wire(item.tag), "playerCount": item.player_count}
        for item in roster.list_tags(user_id)
    ]


@router.post("/roster/tags", status_code=201)
def create_tag(
    payload: CreateTagRequest,
    user_id: str = Depends(get_current_user_id),
    roster: RosterService = Depends(get_roster_service),
):
    return to_wire(roster.create_tag(user_id, **payload.model_dump()))


@router.delete("/roster/tags/{tag_id}", status_code=204)
def delete_tag(
    tag_id: str,
    user_id: str = Depends(get_current_user_id),
    roster: RosterService = Depends(get_roster_service),
):
    roster.delete_tag(user_id, tag_id)


@router.post("/roster/players/{player_id}/tags/{tag_id}")
def assign_tag(
    player_id: str,
    tag_id: str,
    user_id: str = Depends(get_current_user_id),
    roster: RosterService = Depends(get_roster_service),
):
    return to_wire(roster.assign_tag(user_id, player_id, tag_id))


@router.delete("/roster/players/{player_id}/tags/{tag_id}", status_code=204)
def unassign_tag(
    player_id: str,
    tag_id: str,
    user_id: str = Depends(get_current_user_id),
    roster: RosterService = Depends(get_roster_service),
):
    roster.unassign_tag(user_id, player_id, tag_id)


# roster: bulk, import and export


@router.post("/roster/bulk", response_model=BulkResponse)
def bulk_roster_operation(
    payload: BulkRequest,
    user_id: str = Depends(get_current_user_id),
    roster: RosterService = Depends(get_roster_service),
):
    result = roster.bulk(
        user_id,
        payload.operation,
        payload.player_ids,
        tag_id=payload.tag_id,
        color=payload.color,
        is_goalie=payload.is_goalie,
    )
    return _bulk_response(result)


@router.get("/roster/export")
def export_roster(
    user_id: str = Depends(get_current_user_id),
    roster: RosterService = Depends(get_roster_service),
):
    return roster.export_roster(user_id)


@router.post("/roster/import", response_model=BulkResponse)
def import_roster(
    payload: dict,
    user_id: str = Depends(get_current_user_id),
    roster: RosterService = Depends(get_roster_service),
):
    return _bulk_response(roster.import_roster(user_id, payload))


# roster: analytics


@router.get("/roster/analytics")
def get_roster_analytics(
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    record = compute_roster_analytics(
        db, user_id, window_days=settings.analytics_window_days
    )
    return to_wire(db.upsert_roster_analytics(record))


@router.post(
    "/roster/analytics/refresh", response_model=RefreshResponse, status_code=202
)
def refresh_roster_analytics(
    user_id: str = Depends(get_current_user_id),
    queue: JobQueue = Depends(get_queue_client),
):
    queue.enqueue(user_id)
    return RefreshResponse(status="queued")


@router.get("/roster/analytics/history")
def roster_analytics_history(
    limit: int = Query(default=30, ge=1, le=365),
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
):
    return [to_wire(r) for r in db.list_roster_analytics(user_id, limit)]


# onboarding


@router.get("/onboarding/state", response_model=OnboardingStateResponse)
def get_onboarding_state(
    user_id: str = Depends(get_current_user_id),
    db: DbClient = Depends(get_db_client),
):
    return OnboardingStateResponse(**onboarding_state(db, user_id))
