"""
Enumerations shared by the records, services and API schemas.
"""

from __future__ import annotations

from enum import Enum


class ContentType(str, Enum):
    ARTICLE = "article"
    TUTORIAL = "tutorial"
    FAQ = "faq"
    VIDEO = "video"
    TOOLTIP = "tooltip"


class Difficulty(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


DIFFICULTY_ORDER = [Difficulty.BEGINNER, Difficulty.INTERMEDIATE, Difficulty.ADVANCED]


class ProgressStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class HelpEventType(str, Enum):
    VIEW = "view"
    SEARCH = "search"
    HELPFUL = "helpful"
    NOT_HELPFUL = "not_helpful"
    COMPLETE = "complete"
    BOOKMARK = "bookmark"


class ContributionType(str, Enum):
    NEW_CONTENT = "new_content"
    EDIT = "edit"
    TRANSLATION = "translation"
    FEEDBACK = "feedback"


class ContributionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ActivityType(str, Enum):
    ADDED = "added"
    UPDATED = "updated"
    GOAL = "goal"
    ASSIST = "assist"
    ATTENDANCE = "attendance"
    INJURY = "injury"
    NOTE = "note"
    TAG_ADDED = "tag_added"
    TAG_REMOVED = "tag_removed"


class BulkOperation(str, Enum):
    ASSIGN_TAG = "assign_tag"
    REMOVE_TAG = "remove_tag"
    DELETE = "delete"
    SET_COLOR = "set_color"
    SET_GOALIE = "set_goalie"


class ChangeType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
