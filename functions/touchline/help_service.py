"""
Help system service: content fetching, search, per-user progress,
recommendations and community contributions.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Optional

from touchline.analytics import HelpAnalyticsSummary, summarize_help_events
from touchline.changefeed import ChangeFeed
from touchline.config import Settings
from touchline.db import DbClient, PROGRESS_RANGE, RATING_RANGE
from touchline.errors import (
    AuthenticationError,
    ConstraintViolationError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from touchline.json_utils import to_wire
from touchline.records import (
    ChangeEvent,
    ContributionRecord,
    HelpCategoryRecord,
    HelpContentRecord,
    HelpEventRecord,
    HelpProgressRecord,
)
from touchline.search import rank_help_content
from touchline.types import (
    DIFFICULTY_ORDER,
    ChangeType,
    ContentType,
    ContributionStatus,
    ContributionType,
    Difficulty,
    HelpEventType,
    ProgressStatus,
)

logger = logging.getLogger(__name__)

_SLUG_INVALID = re.compile(r"[^a-z0-9]+")

EDITABLE_CONTENT_FIELDS = {
    "slug",
    "title",
    "summary",
    "body",
    "content_type",
    "category",
    "tags",
    "keywords",
    "difficulty",
    "estimated_minutes",
    "locale",
    "is_published",
}


def slugify(value: str) -> str:
    slug = _SLUG_INVALID.sub("-", (value or "").lower()).strip("-")
    if not slug:
        raise ValidationError("A slug needs at least one letter or digit")
    return slug


@dataclass
class ProgressSummary:
    progress: list[HelpProgressRecord] = field(default_factory=list)
    total_content: int = 0
    completed: int = 0
    in_progress: int = 0
    bookmarked: int = 0
    completion_percent: float = 0.0


@dataclass
class ReviewOutcome:
    contribution: ContributionRecord
    content: Optional[HelpContentRecord] = None


class HelpService:
    """Reads and writes help content on behalf of a caller."""

    def __init__(self, db: DbClient, feed: ChangeFeed, settings: Settings):
        self.db = db
        self.feed = feed
        self.settings = settings

    # access helpers

    def is_admin(self, user_id: Optional[str]) -> bool:
        return self.settings.is_admin(user_id)

    def require_admin(self, user_id: Optional[str]) -> None:
        if not user_id:
            raise AuthenticationError("Sign in required")
        if not self.is_admin(user_id):
            raise PermissionDeniedError("Only help editors can do that")

    def _publish(
        self,
        table: str,
        change: ChangeType,
        record: dict,
        user_id: Optional[str] = None,
    ) -> None:
        self.feed.publish(
            ChangeEvent(table=table, event_type=change, record=record, user_id=user_id)
        )

    def _visible_content(
        self, content_id: str, user_id: Optional[str] = None
    ) -> HelpContentRecord:
        content = self.db.get_help_content(content_id)
        if not content or (not content.is_published and not self.is_admin(user_id)):
            raise NotFoundError("Help content not found", {"contentId": content_id})
        return content

    def _resolve_category(self, category: Optional[str]) -> Optional[str]:
        if not category:
            return None
        found = self.db.get_category(category) or self.db.get_category_by_slug(category)
        if not found:
            raise NotFoundError("Help category not found", {"category": category})
        return found.id

    def _unique_slug(self, base: str) -> str:
        slug = slugify(base)
        candidate, suffix = slug, 2
        while self.db.get_help_content_by_slug(candidate):
            candidate = f"{slug}-{suffix}"
            suffix += 1
        return candidate

    # categories

    def list_categories(self) -> list[HelpCategoryRecord]:
        return self.db.list_categories()

    def create_category(
        self,
        user_id: Optional[str],
        *,
        name: str,
        slug: Optional[str] = None,
        description: str = "",
        icon: Optional[str] = None,
        sort_order: int = 0,
    ) -> HelpCategoryRecord:
        self.require_admin(user_id)
        if not (name or "").strip():
            raise ValidationError("Category name is required")
        record = HelpCategoryRecord(
            slug=slugify(slug or name),
            name=name.strip(),
            description=description or "",
            icon=icon,
            sort_order=sort_order,
        )
        if self.db.get_category_by_slug(record.slug):
            raise ConstraintViolationError(
                f"Category slug '{record.slug}' already exists", {"field": "slug"}
            )
        created = self.db.create_category(record)
        self._publish("help_categories", ChangeType.INSERT, to_wire(created))
        return created

    def delete_category(self, user_id: Optional[str], category_id: str) -> None:
        self.require_admin(user_id)
        if not self.db.delete_category(category_id):
            raise NotFoundError("Help category not found", {"category": category_id})
        self._publish("help_categories", ChangeType.DELETE, {"id": category_id})

    # content

    def list_content(
        self,
        *,
        category: Optional[str] = None,
        content_type: Optional[ContentType] = None,
        difficulty: Optional[Difficulty] = None,
        include_unpublished: bool = False,
        user_id: Optional[str] = None,
    ) -> list[HelpContentRecord]:
        if include_unpublished:
            self.require_admin(user_id)
        items = self.db.list_help_content(
            category_id=self._resolve_category(category),
            content_type=content_type,
            difficulty=difficulty,
            published_only=not include_unpublished,
        )
        order = {c.id: c.sort_order for c in self.db.list_categories()}
        items.sort(
            key=lambda c: (
                c.category_id is None,
                order.get(c.category_id, 0),
                c.title.lower(),
            )
        )
        return items

    def get_content(
        self, content_id: str, user_id: Optional[str] = None
    ) -> HelpContentRecord:
        self._visible_content(content_id, user_id)
        content = self.db.increment_help_counter(content_id, "view_count")
        self.db.record_help_event(
            HelpEventRecord(
                event_type=HelpEventType.VIEW, user_id=user_id, content_id=content_id
            )
        )
        if user_id:
            self._touch_progress(user_id, content_id)
        return content

    def get_content_by_slug(
        self, slug: str, user_id: Optional[str] = None
    ) -> HelpContentRecord:
        content = self.db.get_help_content_by_slug(slug)
        if not content:
            raise NotFoundError("Help content not found", {"slug": slug})
        return self.get_content(content.id, user_id)

    def _touch_progress(self, user_id: str, content_id: str) -> None:
        now = time.time()
        progress = self.db.get_help_progress(user_id, content_id) or HelpProgressRecord(
            user_id=user_id, content_id=content_id
        )
        progress.last_viewed_at = now
        if progress.status == ProgressStatus.NOT_STARTED:
            progress.status = ProgressStatus.IN_PROGRESS
        self.db.upsert_help_progress(progress)

    def create_content(
        self,
        user_id: Optional[str],
        *,
        title: str,
        body: str,
        summary: str = "",
        slug: Optional[str] = None,
        content_type: ContentType = ContentType.ARTICLE,
        category: Optional[str] = None,
        tags: Optional[list[str]] = None,
        keywords: Optional[list[str]] = None,
        difficulty: Difficulty = Difficulty.BEGINNER,
        estimated_minutes: int = 0,
        locale: str = "en",
        is_published: bool = True,
    ) -> HelpContentRecord:
        self.require_admin(user_id)
        if not (title or "").strip():
            raise ValidationError("Title is required")
        if not (body or "").strip():
            raise ValidationError("Body is required")
        if estimated_minutes < 0:
            raise ValidationError("Estimated minutes cannot be negative")
        record = HelpContentRecord(
            slug=slugify(slug or title),
            title=title.strip(),
            body=body,
            summary=summary or "",
            content_type=ContentType(content_type),
            category_id=self._resolve_category(category),
            tags=list(tags or []),
            keywords=list(keywords or []),
            difficulty=Difficulty(difficulty),
            estimated_minutes=estimated_minutes,
            locale=locale,
            is_published=is_published,
        )
        if self.db.get_help_content_by_slug(record.slug):
            raise ConstraintViolationError(
                f"Help content slug '{record.slug}' already exists", {"field": "slug"}
            )
        return self._insert_content(record)

    def _insert_content(self, record: HelpContentRecord) -> HelpContentRecord:
        created = self.db.create_help_content(record)
        logger.info("Created help content %s (%s)", created.slug, created.id)
        self._publish("help_content", ChangeType.INSERT, to_wire(created))
        return created

    def update_content(
        self, user_id: Optional[str], content_id: str, **changes
    ) -> HelpContentRecord:
        self.require_admin(user_id)
        unknown = set(changes) - EDITABLE_CONTENT_FIELDS
        if unknown:
            raise ValidationError(
                "Unknown help content fields", {"fields": sorted(unknown)}
            )
        if not self.db.get_help_content(content_id):
            raise NotFoundError("Help content not found", {"contentId": content_id})
        fields = dict(changes)
        if "category" in fields:
            fields["category_id"] = self._resolve_category(fields.pop("category"))
        if "slug" in fields:
            fields["slug"] = slugify(fields["slug"])
            existing = self.db.get_help_content_by_slug(fields["slug"])
            if existing and existing.id != content_id:
                raise ConstraintViolationError(
                    f"Help content slug '{fields['slug']}' already exists",
                    {"field": "slug"},
                )
        if "title" in fields and not (fields["title"] or "").strip():
            raise ValidationError("Title is required")
        if "body" in fields and not (fields["body"] or "").strip():
            raise ValidationError("Body is required")
        if "content_type" in fields:
            fields["content_type"] = ContentType(fields["content_type"])
        if "difficulty" in fields:
            fields["difficulty"] = Difficulty(fields["difficulty"])
        updated = self.db.update_help_content(content_id, **fields)
        self._publish("help_content", ChangeType.UPDATE, to_wire(updated))
        return updated

    def delete_content(self, user_id: Optional[str], content_id: str) -> None:
        self.require_admin(user_id)
        if not self.db.delete_help_content(content_id):
            raise NotFoundError("Help content not found", {"contentId": content_id})
        self._publish("help_content", ChangeType.DELETE, {"id": content_id})

    # search

    def search(
        self,
        query: str,
        *,
        user_id: Optional[str] = None,
        category: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[tuple[HelpContentRecord, float]]:
        limit = limit or self.settings.search_result_limit
        results = rank_help_content(
            query,
            self.db.list_help_content(published_only=True),
            limit=limit,
            category_id=self._resolve_category(category),
        )
        if query.strip():
            self.db.record_help_event(
                HelpEventRecord(
                    event_type=HelpEventType.SEARCH,
                    user_id=user_id,
                    query=query.strip(),
                    metadata={"resultCount": len(results)},
                )
            )
        return results

    # progress

    def update_progress(
        self,
        user_id: str,
        content_id: str,
        *,
        progress_percent: Optional[int] = None,
        status: Optional[ProgressStatus] = None,
        bookmarked: Optional[bool] = None,
    ) -> HelpProgressRecord:
        self._visible_content(content_id, user_id)
        if progress_percent is not None:
            low, high = PROGRESS_RANGE
            if not low <= progress_percent <= high:
                raise ValidationError(
                    f"Progress must be between {low} and {high}",
                    {"field": "progressPercent"},
                )
        if (
            status is not None
            and ProgressStatus(status) != ProgressStatus.COMPLETED
            and progress_percent == PROGRESS_RANGE[1]
        ):
            raise ValidationError(
                "Full progress requires the completed status",
                {"field": "progressPercent"},
            )
        existing = self.db.get_help_progress(user_id, content_id)
        progress = existing or HelpProgressRecord(user_id=user_id, content_id=content_id)
        was_completed = progress.status == ProgressStatus.COMPLETED
        now = time.time()

        if status is not None:
            progress.status = ProgressStatus(status)
        if progress_percent is not None:
            progress.progress_percent = progress_percent
            if status is None and progress_percent > 0 and not was_completed:
                progress.status = ProgressStatus.IN_PROGRESS

        if progress.progress_percent == 100 or progress.status == ProgressStatus.COMPLETED:
            if status is None or status == ProgressStatus.COMPLETED:
                progress.status = ProgressStatus.COMPLETED
                progress.progress_percent = 100
                progress.completed_at = progress.completed_at or now
        if progress.status != ProgressStatus.COMPLETED:
            progress.completed_at = None
            # reopened items stay below 100
            progress.progress_percent = min(progress.progress_percent, 99)

        if bookmarked is not None:
            if bookmarked and not progress.bookmarked:
                self.db.record_help_event(
                    HelpEventRecord(
                        event_type=HelpEventType.BOOKMARK,
                        user_id=user_id,
                        content_id=content_id,
                    )
                )
            progress.bookmarked = bookmarked

        saved = self.db.upsert_help_progress(progress)
        if saved.status == ProgressStatus.COMPLETED and not was_completed:
            self.db.record_help_event(
                HelpEventRecord(
                    event_type=HelpEventType.COMPLETE,
                    user_id=user_id,
                    content_id=content_id,
                )
            )
        self._publish(
            "user_help_progress",
            ChangeType.UPDATE if existing else ChangeType.INSERT,
            to_wire(saved),
            user_id=user_id,
        )
        return saved

    def mark_complete(self, user_id: str, content_id: str) -> HelpProgressRecord:
        return self.update_progress(
            user_id, content_id, status=ProgressStatus.COMPLETED
        )

    def submit_feedback(
        self,
        user_id: str,
        content_id: str,
        *,
        helpful: bool,
        rating: Optional[int] = None,
    ) -> HelpContentRecord:
        self._visible_content(content_id, user_id)
        if rating is not None:
            low, high = RATING_RANGE
            if not low <= rating <= high:
                raise ValidationError(
                    f"Rating must be between {low} and {high}", {"field": "rating"}
                )
        counter = "helpful_count" if helpful else "not_helpful_count"
        content = self.db.increment_help_counter(content_id, counter)
        self.db.record_help_event(
            HelpEventRecord(
                event_type=HelpEventType.HELPFUL if helpful else HelpEventType.NOT_HELPFUL,
                user_id=user_id,
                content_id=content_id,
                metadata={"rating": rating} if rating is not None else {},
            )
        )
        if rating is not None:
            progress = self.db.get_help_progress(
                user_id, content_id
            ) or HelpProgressRecord(user_id=user_id, content_id=content_id)
            progress.rating = rating
            saved = self.db.upsert_help_progress(progress)
            self._publish(
                "user_help_progress", ChangeType.UPDATE, to_wire(saved), user_id=user_id
            )
        self._publish("help_content", ChangeType.UPDATE, to_wire(content))
        return content

    def get_progress_summary(self, user_id: str) -> ProgressSummary:
        published = {c.id for c in self.db.list_help_content(published_only=True)}
        progress = [
            p for p in self.db.list_help_progress(user_id) if p.content_id in published
        ]
        completed = sum(1 for p in progress if p.status == ProgressStatus.COMPLETED)
        total = len(published)
        return ProgressSummary(
            progress=progress,
            total_content=total,
            completed=completed,
            in_progress=sum(
                1 for p in progress if p.status == ProgressStatus.IN_PROGRESS
            ),
            bookmarked=sum(1 for p in progress if p.bookmarked),
            completion_percent=round(100.0 * completed / total, 1) if total else 0.0,
        )

    def recommend(
        self, user_id: str, limit: Optional[int] = None
    ) -> list[HelpContentRecord]:
        """
        Suggest unfinished content, favouring the level just above the
        hardest content the user has completed.
        """
        limit = limit or self.settings.recommendation_limit
        progress = {p.content_id: p for p in self.db.list_help_progress(user_id)}
        published = self.db.list_help_content(published_only=True)

        def is_completed(content: HelpContentRecord) -> bool:
            row = progress.get(content.id)
            return bool(row) and row.status == ProgressStatus.COMPLETED

        completed_levels = [
            DIFFICULTY_ORDER.index(c.difficulty) for c in published if is_completed(c)
        ]
        if completed_levels:
            target = DIFFICULTY_ORDER[
                min(max(completed_levels) + 1, len(DIFFICULTY_ORDER) - 1)
            ]
        else:
            target = Difficulty.BEGINNER

        candidates = [c for c in published if not is_completed(c)]
        candidates.sort(
            key=lambda c: (
                c.difficulty != target,
                -c.helpful_count,
                -c.view_count,
                c.title.lower(),
            )
        )
        return candidates[:limit]

    # contributions

    def submit_contribution(
        self,
        user_id: str,
        *,
        contribution_type: ContributionType,
        title: str,
        body: str,
        content_id: Optional[str] = None,
        locale: str = "en",
    ) -> ContributionRecord:
        contribution_type = ContributionType(contribution_type)
        if not (title or "").strip():
            raise ValidationError("Title is required")
        if not (body or "").strip():
            raise ValidationError("Body is required")
        if contribution_type in (ContributionType.EDIT, ContributionType.TRANSLATION):
            if not content_id:
                raise ValidationError(
                    "Edits and translations must reference existing content",
                    {"field": "contentId"},
                )
        if content_id:
            self._visible_content(content_id, user_id)
        created = self.db.create_contribution(
            ContributionRecord(
                user_id=user_id,
                contribution_type=contribution_type,
                title=title.strip(),
                body=body,
                content_id=content_id,
                locale=locale,
            )
        )
        self._publish(
            "help_contributions", ChangeType.INSERT, to_wire(created), user_id=user_id
        )
        return created

    def list_contributions(
        self, user_id: str, status: Optional[ContributionStatus] = None
    ) -> list[ContributionRecord]:
        owner = None if self.is_admin(user_id) else user_id
        return self.db.list_contributions(user_id=owner, status=status)

    def review_contribution(
        self,
        reviewer_id: Optional[str],
        contribution_id: str,
        *,
        approve: bool,
        notes: Optional[str] = None,
    ) -> ReviewOutcome:
        self.require_admin(reviewer_id)
        contribution = self.db.get_contribution(contribution_id)
        if not contribution:
            raise NotFoundError(
                "Contribution not found", {"contributionId": contribution_id}
            )
        if contribution.status != ContributionStatus.PENDING:
            raise InvalidStateError(
                "Contribution has already been reviewed",
                {"status": contribution.status.value},
            )

        content = None
        if approve:
            content = self._apply_contribution(contribution)

        reviewed = self.db.update_contribution(
            contribution_id,
            status=ContributionStatus.APPROVED if approve else ContributionStatus.REJECTED,
            reviewer_id=reviewer_id,
            review_notes=notes,
            reviewed_at=time.time(),
        )
        logger.info(
            "Contribution %s %s by %s",
            contribution_id,
            reviewed.status.value,
            reviewer_id,
        )
        self._publish(
            "help_contributions",
            ChangeType.UPDATE,
            to_wire(reviewed),
            user_id=reviewed.user_id,
        )
        return ReviewOutcome(contribution=reviewed, content=content)

    def _apply_contribution(
        self, contribution: ContributionRecord
    ) -> Optional[HelpContentRecord]:
        kind = contribution.contribution_type
        if kind == ContributionType.FEEDBACK:
            return None
        if kind == ContributionType.NEW_CONTENT:
            return self._insert_content(
                HelpContentRecord(
                    slug=self._unique_slug(contribution.title),
                    title=contribution.title,
                    body=contribution.body,
                    locale=contribution.locale,
                )
            )

        target = (
            self.db.get_help_content(contribution.content_id)
            if contribution.content_id
            else None
        )
        if not target:
            raise InvalidStateError("The content this contribution targets is gone")
        if kind == ContributionType.EDIT:
            updated = self.db.update_help_content(
                target.id, title=contribution.title, body=contribution.body
            )
            self._publish("help_content", ChangeType.UPDATE, to_wire(updated))
            return updated
        return self._insert_content(
            HelpContentRecord(
                slug=self._unique_slug(f"{target.slug}-{contribution.locale}"),
                title=contribution.title,
                body=contribution.body,
                summary=target.summary,
                content_type=target.content_type,
                category_id=target.category_id,
                tags=list(target.tags),
                keywords=list(target.keywords),
                difficulty=target.difficulty,
                estimated_minutes=target.estimated_minutes,
                locale=contribution.locale,
            )
        )

    # analytics

    def analytics_summary(
        self, user_id: Optional[str], since: Optional[float] = None
    ) -> HelpAnalyticsSummary:
        self.require_admin(user_id)
        contents = self.db.list_help_content(published_only=False)
        return summarize_help_events(self.db.list_help_events(since=since), contents)
