"""
SQLAlchemy-backed implementation of ``DbClient``.

Accepts any SQLAlchemy URL (Postgres in production, SQLite for tests).
Integrity and connectivity failures are re-raised as Touchline errors.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from enum import Enum
from typing import Iterator, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    event,
    select,
)
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from touchline.db import HELP_COUNTERS, check_player, check_progress
from touchline.errors import ConstraintViolationError, StorageUnavailableError
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
from touchline.types import (
    ActivityType,
    ContentType,
    ContributionStatus,
    ContributionType,
    Difficulty,
    HelpEventType,
    ProgressStatus,
)

Base = declarative_base()


class HelpCategoryRow(Base):
    __tablename__ = "help_categories"

    id = Column(String, primary_key=True)
    slug = Column(String(200), nullable=False, unique=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default="")
    icon = Column(String(100), nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(Float, nullable=False)


class HelpContentRow(Base):
    __tablename__ = "help_content"
    __table_args__ = (
        CheckConstraint("view_count >= 0", name="chk_help_view_count"),
        CheckConstraint("helpful_count >= 0", name="chk_help_helpful_count"),
        CheckConstraint("not_helpful_count >= 0", name="chk_help_not_helpful_count"),
        CheckConstraint("estimated_minutes >= 0", name="chk_help_estimated_minutes"),
    )

    id = Column(String, primary_key=True)
    slug = Column(String(200), nullable=False, unique=True)
    title = Column(String(300), nullable=False)
    summary = Column(Text, nullable=False, default="")
    body = Column(Text, nullable=False)
    content_type = Column(String(20), nullable=False, index=True)
    category_id = Column(
        String,
        ForeignKey("help_categories.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    tags = Column(JSON, nullable=False, default=list)
    keywords = Column(JSON, nullable=False, default=list)
    difficulty = Column(String(20), nullable=False)
    estimated_minutes = Column(Integer, nullable=False, default=0)
    locale = Column(String(10), nullable=False, default="en")
    is_published = Column(Boolean, nullable=False, default=True)
    view_count = Column(Integer, nullable=False, default=0)
    helpful_count = Column(Integer, nullable=False, default=0)
    not_helpful_count = Column(Integer, nullable=False, default=0)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class HelpProgressRow(Base):
    __tablename__ = "user_help_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "content_id", name="uq_help_progress_user_content"),
        CheckConstraint(
            "progress_percent >= 0 AND progress_percent <= 100",
            name="chk_help_progress_percent",
        ),
        CheckConstraint(
            "rating IS NULL OR (rating >= 1 AND rating <= 5)",
            name="chk_help_progress_rating",
        ),
    )

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    content_id = Column(
        String, ForeignKey("help_content.id", ondelete="CASCADE"), nullable=False
    )
    status = Column(String(20), nullable=False)
    progress_percent = Column(Integer, nullable=False, default=0)
    rating = Column(Integer, nullable=True)
    bookmarked = Column(Boolean, nullable=False, default=False)
    last_viewed_at = Column(Float, nullable=True)
    completed_at = Column(Float, nullable=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class HelpEventRow(Base):
    __tablename__ = "help_analytics"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=True, index=True)
    content_id = Column(
        String,
        ForeignKey("help_content.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    event_type = Column(String(20), nullable=False, index=True)
    query = Column(Text, nullable=True)
    data = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(Float, nullable=False, index=True)


class ContributionRow(Base):
    __tablename__ = "help_contributions"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    content_id = Column(
        String, ForeignKey("help_content.id", ondelete="SET NULL"), nullable=True
    )
    contribution_type = Column(String(20), nullable=False)
    title = Column(String(300), nullable=False)
    body = Column(Text, nullable=False)
    locale = Column(String(10), nullable=False, default="en")
    status = Column(String(20), nullable=False, index=True)
    reviewer_id = Column(String, nullable=True)
    review_notes = Column(Text, nullable=True)
    reviewed_at = Column(Float, nullable=True)
    created_at = Column(Float, nullable=False)


class PlayerRow(Base):
    __tablename__ = "players"
    __table_args__ = (
        UniqueConstraint("user_id", "jersey_number", name="uq_player_user_jersey"),
        CheckConstraint(
            "jersey_number IS NULL OR (jersey_number >= 0 AND jersey_number <= 99)",
            name="chk_player_jersey_number",
        ),
    )

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    name = Column(String(200), nullable=False)
    nickname = Column(String(100), nullable=True)
    jersey_number = Column(Integer, nullable=True)
    color = Column(String(20), nullable=True)
    is_goalie = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class PlayerActivityRow(Base):
    __tablename__ = "player_activities"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    player_id = Column(
        String,
        ForeignKey("players.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    activity_type = Column(String(20), nullable=False)
    description = Column(Text, nullable=False, default="")
    data = Column("metadata", JSON, nullable=False, default=dict)
    occurred_at = Column(Float, nullable=False, index=True)
    created_at = Column(Float, nullable=False)


class PlayerTagRow(Base):
    __tablename__ = "player_tags"
    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_player_tag_user_name"),
    )

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    name = Column(String(100), nullable=False)
    color = Column(String(20), nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(Float, nullable=False)


class TagAssignmentRow(Base):
    __tablename__ = "player_tag_assignments"
    __table_args__ = (
        UniqueConstraint("player_id", "tag_id", name="uq_tag_assignment_player_tag"),
    )

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    player_id = Column(
        String, ForeignKey("players.id", ondelete="CASCADE"), nullable=False
    )
    tag_id = Column(
        String,
        ForeignKey("player_tags.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    assigned_at = Column(Float, nullable=False)


class RosterAnalyticsRow(Base):
    __tablename__ = "roster_analytics"
    __table_args__ = (
        UniqueConstraint("user_id", "snapshot_date", name="uq_roster_analytics_day"),
    )

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    snapshot_date = Column(String(10), nullable=False)
    total_players = Column(Integer, nullable=False, default=0)
    goalie_count = Column(Integer, nullable=False, default=0)
    tagged_players = Column(Integer, nullable=False, default=0)
    untagged_players = Column(Integer, nullable=False, default=0)
    activity_count = Column(Integer, nullable=False, default=0)
    tag_distribution = Column(JSON, nullable=False, default=dict)
    activity_breakdown = Column(JSON, nullable=False, default=dict)
    computed_at = Column(Float, nullable=False)


def _value(value):
    return value.value if isinstance(value, Enum) else value


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        if database_url.startswith("sqlite"):
            # In-memory SQLite needs a single shared connection.
            self.engine = create_engine(
                database_url,
                future=True,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)
        else:
            self.engine = create_engine(
                database_url,
                future=True,
                pool_pre_ping=True,
                pool_recycle=1800,
            )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self.Session()
        try:
            yield session
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            raise ConstraintViolationError(
                "Database constraint violated", {"reason": str(exc.orig)}
            ) from exc
        except OperationalError as exc:
            session.rollback()
            raise StorageUnavailableError(
                "Database is unavailable", {"reason": str(exc.orig)}
            ) from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # row -> record conversions

    @staticmethod
    def _to_category(row: HelpCategoryRow) -> HelpCategoryRecord:
        return HelpCategoryRecord(
            id=row.id,
            slug=row.slug,
            name=row.name,
            description=row.description,
            icon=row.icon,
            sort_order=row.sort_order,
            created_at=row.created_at,
        )

    @staticmethod
    def _to_content(row: HelpContentRow) -> HelpContentRecord:
        return HelpContentRecord(
            id=row.id,
            slug=row.slug,
            title=row.title,
            summary=row.summary,
            body=row.body,
            content_type=ContentType(row.content_type),
            category_id=row.category_id,
            tags=list(row.tags or []),
            keywords=list(row.keywords or []),
            difficulty=Difficulty(row.difficulty),
            estimated_minutes=row.estimated_minutes,
            locale=row.locale,
            is_published=row.is_published,
            view_count=row.view_count,
            helpful_count=row.helpful_count,
            not_helpful_count=row.not_helpful_count,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _to_progress(row: HelpProgressRow) -> HelpProgressRecord:
        return HelpProgressRecord(
            id=row.id,
            user_id=row.user_id,
            content_id=row.content_id,
            status=ProgressStatus(row.status),
            progress_percent=row.progress_percent,
            rating=row.rating,
            bookmarked=row.bookmarked,
            last_viewed_at=row.last_viewed_at,
            completed_at=row.completed_at,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _to_event(row: HelpEventRow) -> HelpEventRecord:
        return HelpEventRecord(
            id=row.id,
            event_type=HelpEventType(row.event_type),
            user_id=row.user_id,
            content_id=row.content_id,
            query=row.query,
            metadata=dict(row.data or {}),
            created_at=row.created_at,
        )

    @staticmethod
    def _to_contribution(row: ContributionRow) -> ContributionRecord:
        return ContributionRecord(
            id=row.id,
            user_id=row.user_id,
            content_id=row.content_id,
            contribution_type=ContributionType(row.contribution_type),
            title=row.title,
            body=row.body,
            locale=row.locale,
            status=ContributionStatus(row.status),
            reviewer_id=row.reviewer_id,
            review_notes=row.review_notes,
            reviewed_at=row.reviewed_at,
            created_at=row.created_at,
        )

    @staticmethod
    def _to_player(row: PlayerRow) -> PlayerRecord:
        return PlayerRecord(
            id=row.id,
            user_id=row.user_id,
            name=row.name,
            nickname=row.nickname,
            jersey_number=row.jersey_number,
            color=row.color,
            is_goalie=row.is_goalie,
            notes=row.notes,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _to_activity(row: PlayerActivityRow) -> PlayerActivityRecord:
        return PlayerActivityRecord(
            id=row.id,
            user_id=row.user_id,
            player_id=row.player_id,
            activity_type=ActivityType(row.activity_type),
            description=row.description,
            metadata=dict(row.data or {}),
            occurred_at=row.occurred_at,
            created_at=row.created_at,
        )

    @staticmethod
    def _to_tag(row: PlayerTagRow) -> PlayerTagRecord:
        return PlayerTagRecord(
            id=row.id,
            user_id=row.user_id,
            name=row.name,
            color=row.color,
            description=row.description,
            created_at=row.created_at,
        )

    @staticmethod
    def _to_assignment(row: TagAssignmentRow) -> TagAssignmentRecord:
        return TagAssignmentRecord(
            id=row.id,
            user_id=row.user_id,
            player_id=row.player_id,
            tag_id=row.tag_id,
            assigned_at=row.assigned_at,
        )

    @staticmethod
    def _to_roster_analytics(row: RosterAnalyticsRow) -> RosterAnalyticsRecord:
        return RosterAnalyticsRecord(
            id=row.id,
            user_id=row.user_id,
            snapshot_date=row.snapshot_date,
            total_players=row.total_players,
            goalie_count=row.goalie_count,
            tagged_players=row.tagged_players,
            untagged_players=row.untagged_players,
            activity_count=row.activity_count,
            tag_distribution=dict(row.tag_distribution or {}),
            activity_breakdown=dict(row.activity_breakdown or {}),
            computed_at=row.computed_at,
        )

    # help_categories

    def create_category(self, record: HelpCategoryRecord) -> HelpCategoryRecord:
        with self._session() as session:
            row = HelpCategoryRow(**record.as_dict())
            session.add(row)
        return self.get_category(record.id)

    def get_category(self, category_id: str) -> Optional[HelpCategoryRecord]:
        with self._session() as session:
            row = session.get(HelpCategoryRow, category_id)
            return self._to_category(row) if row else None

    def get_category_by_slug(self, slug: str) -> Optional[HelpCategoryRecord]:
        with self._session() as session:
            stmt = select(HelpCategoryRow).where(HelpCategoryRow.slug == slug)
            row = session.execute(stmt).scalar_one_or_none()
            return self._to_category(row) if row else None

    def list_categories(self) -> list[HelpCategoryRecord]:
        with self._session() as session:
            stmt = select(HelpCategoryRow).order_by(
                HelpCategoryRow.sort_order.asc(), HelpCategoryRow.name.asc()
            )
            return [self._to_category(row) for row in session.execute(stmt).scalars()]

    def delete_category(self, category_id: str) -> bool:
        with self._session() as session:
            row = session.get(HelpCategoryRow, category_id)
            if not row:
                return False
            session.delete(row)
            return True

    # help_content

    def create_help_content(self, record: HelpContentRecord) -> HelpContentRecord:
        with self._session() as session:
            session.add(HelpContentRow(**record.as_dict()))
        return self.get_help_content(record.id)

    def get_help_content(self, content_id: str) -> Optional[HelpContentRecord]:
        with self._session() as session:
            row = session.get(HelpContentRow, content_id)
            return self._to_content(row) if row else None

    def get_help_content_by_slug(self, slug: str) -> Optional[HelpContentRecord]:
        with self._session() as session:
            stmt = select(HelpContentRow).where(HelpContentRow.slug == slug)
            row = session.execute(stmt).scalar_one_or_none()
            return self._to_content(row) if row else None

    def list_help_content(
        self,
        *,
        category_id: Optional[str] = None,
        content_type: Optional[str] = None,
        difficulty: Optional[str] = None,
        published_only: bool = True,
    ) -> list[HelpContentRecord]:
        with self._session() as session:
            stmt = select(HelpContentRow)
            if published_only:
                stmt = stmt.where(HelpContentRow.is_published.is_(True))
            if category_id:
                stmt = stmt.where(HelpContentRow.category_id == category_id)
            if content_type:
                stmt = stmt.where(HelpContentRow.content_type == _value(content_type))
            if difficulty:
                stmt = stmt.where(HelpContentRow.difficulty == _value(difficulty))
            rows = session.execute(stmt).scalars().all()
            items = [self._to_content(row) for row in rows]
        items.sort(key=lambda c: c.title.lower())
        return items

    def update_help_content(
        self, content_id: str, **fields
    ) -> Optional[HelpContentRecord]:
        with self._session() as session:
            row = session.get(HelpContentRow, content_id)
            if not row:
                return None
            for key, value in fields.items():
                setattr(row, key, _value(value))
            row.updated_at = time.time()
        return self.get_help_content(content_id)

    def increment_help_counter(
        self, content_id: str, counter: str
    ) -> Optional[HelpContentRecord]:
        if counter not in HELP_COUNTERS:
            raise ValueError(f"Unknown help counter: {counter}")
        column = getattr(HelpContentRow, counter)
        with self._session() as session:
            updated = (
                session.query(HelpContentRow)
                .filter(HelpContentRow.id == content_id)
                .update({column: column + 1}, synchronize_session=False)
            )
        if not updated:
            return None
        return self.get_help_content(content_id)

    def delete_help_content(self, content_id: str) -> bool:
        with self._session() as session:
            row = session.get(HelpContentRow, content_id)
            if not row:
                return False
            session.delete(row)
            return True

    # user_help_progress

    def get_help_progress(
        self, user_id: str, content_id: str
    ) -> Optional[HelpProgressRecord]:
        with self._session() as session:
            row = self._progress_row(session, user_id, content_id)
            return self._to_progress(row) if row else None

    @staticmethod
    def _progress_row(
        session: Session, user_id: str, content_id: str
    ) -> Optional[HelpProgressRow]:
        stmt = select(HelpProgressRow).where(
            HelpProgressRow.user_id == user_id,
            HelpProgressRow.content_id == content_id,
        )
        return session.execute(stmt).scalar_one_or_none()

    def _write_help_progress(self, record: HelpProgressRecord) -> HelpProgressRecord:
        now = time.time()
        with self._session() as session:
            row = self._progress_row(session, record.user_id, record.content_id)
            if row:
                row.status = record.status.value
                row.progress_percent = record.progress_percent
                row.rating = record.rating
                row.bookmarked = record.bookmarked
                row.last_viewed_at = record.last_viewed_at
                row.completed_at = record.completed_at
                row.updated_at = now
            else:
                values = record.as_dict()
                values["updated_at"] = now
                row = HelpProgressRow(**values)
                session.add(row)
            session.flush()
            return self._to_progress(row)

    def upsert_help_progress(self, record: HelpProgressRecord) -> HelpProgressRecord:
        check_progress(record)
        try:
            return self._write_help_progress(record)
        except ConstraintViolationError:
            # Lost the UNIQUE(user_id, content_id) race to a concurrent insert;
            # the row exists now, so the second attempt updates it.
            if not self.get_help_progress(record.user_id, record.content_id):
                raise
            return self._write_help_progress(record)

    def list_help_progress(self, user_id: str) -> list[HelpProgressRecord]:
        with self._session() as session:
            stmt = (
                select(HelpProgressRow)
                .where(HelpProgressRow.user_id == user_id)
                .order_by(HelpProgressRow.updated_at.desc())
            )
            return [self._to_progress(row) for row in session.execute(stmt).scalars()]

    # help_analytics

    def record_help_event(self, event: HelpEventRecord) -> None:
        values = event.as_dict()
        values["data"] = values.pop("metadata")
        with self._session() as session:
            session.add(HelpEventRow(**values))

    def list_help_events(
        self,
        *,
        event_type: Optional[HelpEventType] = None,
        since: Optional[float] = None,
    ) -> list[HelpEventRecord]:
        with self._session() as session:
            stmt = select(HelpEventRow).order_by(HelpEventRow.created_at.asc())
            if event_type is not None:
                stmt = stmt.where(HelpEventRow.event_type == HelpEventType(event_type).value)
            if since is not None:
                stmt = stmt.where(HelpEventRow.created_at >= since)
            return [self._to_event(row) for row in session.execute(stmt).scalars()]

    # help_contributions

    def create_contribution(self, record: ContributionRecord) -> ContributionRecord:
        with self._session() as session:
            session.add(ContributionRow(**record.as_dict()))
        return self.get_contribution(record.id)

    def get_contribution(self, contribution_id: str) -> Optional[ContributionRecord]:
        with self._session() as session:
            row = session.get(ContributionRow, contribution_id)
            return self._to_contribution(row) if row else None

    def update_contribution(
        self, contribution_id: str, **fields
    ) -> Optional[ContributionRecord]:
        with self._session() as session:
            row = session.get(ContributionRow, contribution_id)
            if not row:
                return None
            for key, value in fields.items():
                setattr(row, key, _value(value))
        return self.get_contribution(contribution_id)

    def list_contributions(
        self,
        *,
        user_id: Optional[str] = None,
        status: Optional[ContributionStatus] = None,
    ) -> list[ContributionRecord]:
        with self._session() as session:
            stmt = select(ContributionRow).order_by(ContributionRow.created_at.desc())
            if user_id is not None:
                stmt = stmt.where(ContributionRow.user_id == user_id)
            if status is not None:
                stmt = stmt.where(
                    ContributionRow.status == ContributionStatus(status).value
                )
            return [
                self._to_contribution(row) for row in session.execute(stmt).scalars()
            ]

    # players

    def create_player(self, record: PlayerRecord) -> PlayerRecord:
        check_player(record)
        with self._session() as session:
            session.add(PlayerRow(**record.as_dict()))
        return self.get_player(record.user_id, record.id)

    def get_player(self, user_id: str, player_id: str) -> Optional[PlayerRecord]:
        with self._session() as session:
            row = session.get(PlayerRow, player_id)
            if not row or row.user_id != user_id:
                return None
            return self._to_player(row)

    def list_players(self, user_id: str) -> list[PlayerRecord]:
        with self._session() as session:
            stmt = (
                select(PlayerRow)
                .where(PlayerRow.user_id == user_id)
                .order_by(PlayerRow.created_at.asc())
            )
            return [self._to_player(row) for row in session.execute(stmt).scalars()]

    def update_player(
        self, user_id: str, player_id: str, **fields
    ) -> Optional[PlayerRecord]:
        with self._session() as session:
            row = session.get(PlayerRow, player_id)
            if not row or row.user_id != user_id:
                return None
            for key, value in fields.items():
                setattr(row, key, value)
            check_player(self._to_player(row))
            row.updated_at = time.time()
        return self.get_player(user_id, player_id)

    def delete_player(self, user_id: str, player_id: str) -> bool:
        with self._session() as session:
            row = session.get(PlayerRow, player_id)
            if not row or row.user_id != user_id:
                return False
            session.delete(row)
            return True

    # player_activities

    def create_activity(self, record: PlayerActivityRecord) -> PlayerActivityRecord:
        values = record.as_dict()
        values["data"] = values.pop("metadata")
        with self._session() as session:
            session.add(PlayerActivityRow(**values))
        return record

    def list_activities(
        self,
        user_id: str,
        *,
        player_id: Optional[str] = None,
        since: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> list[PlayerActivityRecord]:
        with self._session() as session:
            stmt = (
                select(PlayerActivityRow)
                .where(PlayerActivityRow.user_id == user_id)
                .order_by(PlayerActivityRow.occurred_at.desc())
            )
            if player_id is not None:
                stmt = stmt.where(PlayerActivityRow.player_id == player_id)
            if since is not None:
                stmt = stmt.where(PlayerActivityRow.occurred_at >= since)
            if limit is not None:
                stmt = stmt.limit(limit)
            return [self._to_activity(row) for row in session.execute(stmt).scalars()]

    # player_tags

    def create_tag(self, record: PlayerTagRecord) -> PlayerTagRecord:
        with self._session() as session:
            session.add(PlayerTagRow(**record.as_dict()))
        return self.get_tag(record.user_id, record.id)

    def get_tag(self, user_id: str, tag_id: str) -> Optional[PlayerTagRecord]:
        with self._session() as session:
            row = session.get(PlayerTagRow, tag_id)
            if not row or row.user_id != user_id:
                return None
            return self._to_tag(row)

    def list_tags(self, user_id: str) -> list[PlayerTagRecord]:
        with self._session() as session:
            stmt = select(PlayerTagRow).where(PlayerTagRow.user_id == user_id)
            items = [self._to_tag(row) for row in session.execute(stmt).scalars()]
        items.sort(key=lambda t: t.name.lower())
        return items

    def delete_tag(self, user_id: str, tag_id: str) -> bool:
        with self._session() as session:
            row = session.get(PlayerTagRow, tag_id)
            if not row or row.user_id != user_id:
                return False
            session.delete(row)
            return True

    # player_tag_assignments

    def get_tag_assignment(
        self, user_id: str, player_id: str, tag_id: str
    ) -> Optional[TagAssignmentRecord]:
        with self._session() as session:
            stmt = select(TagAssignmentRow).where(
                TagAssignmentRow.user_id == user_id,
                TagAssignmentRow.player_id == player_id,
                TagAssignmentRow.tag_id == tag_id,
            )
            row = session.execute(stmt).scalar_one_or_none()
            return self._to_assignment(row) if row else None

    def create_tag_assignment(
        self, record: TagAssignmentRecord
    ) -> TagAssignmentRecord:
        with self._session() as session:
            session.add(TagAssignmentRow(**record.as_dict()))
        return record

    def delete_tag_assignment(self, user_id: str, player_id: str, tag_id: str) -> bool:
        with self._session() as session:
            deleted = (
                session.query(TagAssignmentRow)
                .filter(
                    TagAssignmentRow.user_id == user_id,
                    TagAssignmentRow.player_id == player_id,
                    TagAssignmentRow.tag_id == tag_id,
                )
                .delete(synchronize_session=False)
            )
            return bool(deleted)

    def list_tag_assignments(
        self,
        user_id: str,
        *,
        player_id: Optional[str] = None,
        tag_id: Optional[str] = None,
    ) -> list[TagAssignmentRecord]:
        with self._session() as session:
            stmt = (
                select(TagAssignmentRow)
                .where(TagAssignmentRow.user_id == user_id)
                .order_by(TagAssignmentRow.assigned_at.asc())
            )
            if player_id is not None:
                stmt = stmt.where(TagAssignmentRow.player_id == player_id)
            if tag_id is not None:
                stmt = stmt.where(TagAssignmentRow.tag_id == tag_id)
            return [
                self._to_assignment(row) for row in session.execute(stmt).scalars()
            ]

    # roster_analytics

    def upsert_roster_analytics(
        self, record: RosterAnalyticsRecord
    ) -> RosterAnalyticsRecord:
        with self._session() as session:
            stmt = select(RosterAnalyticsRow).where(
                RosterAnalyticsRow.user_id == record.user_id,
                RosterAnalyticsRow.snapshot_date == record.snapshot_date,
            )
            row = session.execute(stmt).scalar_one_or_none()
            values = record.as_dict()
            if row:
                values.pop("id")
                for key, value in values.items():
                    setattr(row, key, value)
            else:
                row = RosterAnalyticsRow(**values)
                session.add(row)
            session.flush()
            return self._to_roster_analytics(row)

    def list_roster_analytics(
        self, user_id: str, limit: int = 30
    ) -> list[RosterAnalyticsRecord]:
        with self._session() as session:
            stmt = (
                select(RosterAnalyticsRow)
                .where(RosterAnalyticsRow.user_id == user_id)
                .order_by(RosterAnalyticsRow.snapshot_date.desc())
                .limit(limit)
            )
            return [
                self._to_roster_analytics(row)
                for row in session.execute(stmt).scalars()
            ]
