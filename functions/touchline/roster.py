"""
Roster management: players, activity log, tags and bulk operations.

Every method takes the caller's ``user_id`` first and only ever touches rows
owned by that user.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from pydantic import ValidationError as PayloadError

from touchline.changefeed import ChangeFeed
from touchline.config import Settings
from touchline.db import DbClient, JERSEY_NUMBER_RANGE
from touchline.errors import (
    ConstraintViolationError,
    NotFoundError,
    StorageUnavailableError,
    TouchlineError,
    ValidationError,
)
from touchline.json_utils import to_wire
from touchline.queue import JobQueue
from touchline.records import (
    ChangeEvent,
    PlayerActivityRecord,
    PlayerRecord,
    PlayerTagRecord,
    TagAssignmentRecord,
)
from touchline.schemas import CreatePlayerRequest, CreateTagRequest
from touchline.types import ActivityType, BulkOperation, ChangeType

logger = logging.getLogger(__name__)

EXPORT_VERSION = 1

PLAYER_COLORS = [
    "#E53935",
    "#1E88E5",
    "#43A047",
    "#FDD835",
    "#8E24AA",
    "#FB8C00",
    "#00ACC1",
    "#D81B60",
    "#6D4C41",
    "#3949AB",
    "#7CB342",
    "#546E7A",
]

EDITABLE_PLAYER_FIELDS = {"name", "nickname", "jersey_number", "color", "is_goalie", "notes"}

_NUMBER_RANGE = re.compile(r"^\s*(\d{1,2})\s*(?:-\s*(\d{1,2})\s*)?$")


def parse_number_range(value: str) -> tuple[int, int]:
    """``"7"`` -> (7, 7); ``"1-5"`` -> (1, 5). Reversed bounds are swapped."""
    match = _NUMBER_RANGE.match(value or "")
    if not match:
        raise ValidationError(
            "Number range must look like '7' or '1-5'", {"field": "numberRange"}
        )
    low = int(match.group(1))
    high = int(match.group(2)) if match.group(2) is not None else low
    return (low, high) if low <= high else (high, low)


def next_available_number(taken: Iterable[Optional[int]]) -> Optional[int]:
    used = {n for n in taken if n is not None}
    low, high = JERSEY_NUMBER_RANGE
    for number in range(max(low, 1), high + 1):
        if number not in used:
            return number
    return None


def next_available_color(taken: Iterable[Optional[str]]) -> str:
    used = [c.upper() for c in taken if c]
    for color in PLAYER_COLORS:
        if color.upper() not in used:
            return color
    return PLAYER_COLORS[len(used) % len(PLAYER_COLORS)]


def _sort_key(player: PlayerRecord):
    return (
        player.jersey_number is None,
        player.jersey_number if player.jersey_number is not None else 0,
        player.name.lower(),
    )


@dataclass
class BulkOperationResult:
    succeeded: list[str] = field(default_factory=list)
    failed: list[dict] = field(default_factory=list)

    def record_failure(
        self, item_id: str, error: TouchlineError, key: str = "playerId"
    ) -> None:
        self.failed.append(
            {key: item_id, "error": error.message, "errorCode": error.error_code}
        )


@dataclass
class TagWithCount:
    tag: PlayerTagRecord
    player_count: int = 0


class RosterService:
    def __init__(
        self,
        db: DbClient,
        feed: ChangeFeed,
        queue: JobQueue,
        settings: Settings,
    ):
        self.db = db
        self.feed = feed
        self.queue = queue
        self.settings = settings

    def _changed(
        self, user_id: str, table: str, change: ChangeType, record: dict
    ) -> None:
        self.feed.publish(
            ChangeEvent(table=table, event_type=change, record=record, user_id=user_id)
        )
        try:
            self.queue.enqueue(user_id)
        except StorageUnavailableError as exc:
            logger.warning("Analytics refresh for %s not queued: %s", user_id, exc.message)

    def _player(self, user_id: str, player_id: str) -> PlayerRecord:
        player = self.db.get_player(user_id, player_id)
        if not player:
            raise NotFoundError("Player not found", {"playerId": player_id})
        return player

    def _tag(self, user_id: str, tag_id: str) -> PlayerTagRecord:
        tag = self.db.get_tag(user_id, tag_id)
        if not tag:
            raise NotFoundError("Tag not found", {"tagId": tag_id})
        return tag

    def _log(
        self,
        user_id: str,
        player_id: str,
        activity_type: ActivityType,
        description: str = "",
        metadata: Optional[dict] = None,
    ) -> PlayerActivityRecord:
        activity = self.db.create_activity(
            PlayerActivityRecord(
                user_id=user_id,
                player_id=player_id,
                activity_type=activity_type,
                description=description,
                metadata=metadata or {},
            )
        )
        self.feed.publish(
            ChangeEvent(
                table="player_activities",
                event_type=ChangeType.INSERT,
                record=to_wire(activity),
                user_id=user_id,
            )
        )
        return activity

    # players

    def list_players(
        self,
        user_id: str,
        *,
        search: Optional[str] = None,
        goalies_only: bool = False,
        number_range: Optional[str] = None,
        tag_id: Optional[str] = None,
    ) -> list[PlayerRecord]:
        players = self.db.list_players(user_id)
        if search and search.strip():
            needle = search.strip().lower()
            players = [
                p
                for p in players
                if needle in p.name.lower() or needle in (p.nickname or "").lower()
            ]
        if goalies_only:
            players = [p for p in players if p.is_goalie]
        if number_range:
            low, high = parse_number_range(number_range)
            players = [
                p
                for p in players
                if p.jersey_number is not None and low <= p.jersey_number <= high
            ]
        if tag_id:
            self._tag(user_id, tag_id)
            tagged = {
                a.player_id for a in self.db.list_tag_assignments(user_id, tag_id=tag_id)
            }
            players = [p for p in players if p.id in tagged]
        return sorted(players, key=_sort_key)

    def get_player(self, user_id: str, player_id: str) -> PlayerRecord:
        return self._player(user_id, player_id)

    def _validate_player_fields(
        self,
        user_id: str,
        fields: dict,
        player_id: Optional[str] = None,
    ) -> None:
        if "name" in fields and not (fields["name"] or "").strip():
            raise ValidationError("Player name is required", {"field": "name"})
        number = fields.get("jersey_number")
        if number is not None:
            low, high = JERSEY_NUMBER_RANGE
            if not low <= number <= high:
                raise ValidationError(
                    f"Jersey number must be between {low} and {high}",
                    {"field": "jerseyNumber"},
                )
            for other in self.db.list_players(user_id):
                if other.id != player_id and other.jersey_number == number:
                    raise ConstraintViolationError(
                        "Jersey number already in use",
                        {"field": "jerseyNumber", "value": number},
                    )

    def add_player(
        self,
        user_id: str,
        *,
        name: str,
        nickname: Optional[str] = None,
        jersey_number: Optional[int] = None,
        color: Optional[str] = None,
        is_goalie: bool = False,
        notes: Optional[str] = None,
    ) -> PlayerRecord:
        self._validate_player_fields(
            user_id, {"name": name, "jersey_number": jersey_number}
        )
        roster = self.db.list_players(user_id)
        if len(roster) >= self.settings.max_roster_size:
            raise ValidationError(
                "Roster limit reached",
                {"maxRosterSize": self.settings.max_roster_size},
            )
        if jersey_number is None:
            jersey_number = next_available_number(p.jersey_number for p in roster)
        if not color:
            color = next_available_color(p.color for p in roster)

        player = self.db.create_player(
            PlayerRecord(
                user_id=user_id,
                name=name.strip(),
                nickname=(nickname or "").strip() or None,
                jersey_number=jersey_number,
                color=color,
                is_goalie=is_goalie,
                notes=notes,
            )
        )
        self._log(user_id, player.id, ActivityType.ADDED, f"{player.name} joined the roster")
        self._changed(user_id, "players", ChangeType.INSERT, to_wire(player))
        return player

    def update_player(self, user_id: str, player_id: str, **changes) -> PlayerRecord:
        unknown = set(changes) - EDITABLE_PLAYER_FIELDS
        if unknown:
            raise ValidationError("Unknown player fields", {"fields": sorted(unknown)})
        current = self._player(user_id, player_id)
        self._validate_player_fields(user_id, changes, player_id=player_id)
        if "name" in changes:
            changes["name"] = changes["name"].strip()
        changed = sorted(k for k, v in changes.items() if getattr(current, k) != v)
        if not changed:
            return current
        updated = self.db.update_player(user_id, player_id, **changes)
        self._log(
            user_id,
            player_id,
            ActivityType.UPDATED,
            f"Updated {', '.join(changed)}",
            {"fields": changed},
        )
        self._changed(user_id, "players", ChangeType.UPDATE, to_wire(updated))
        return updated

    def remove_player(self, user_id: str, player_id: str) -> None:
        if not self.db.delete_player(user_id, player_id):
            raise NotFoundError("Player not found", {"playerId": player_id})
        logger.info("Removed player %s for user %s", player_id, user_id)
        self._changed(user_id, "players", ChangeType.DELETE, {"id": player_id})

    # activities

    def record_activity(
        self,
        user_id: str,
        player_id: str,
        *,
        activity_type: ActivityType,
        description: str = "",
        metadata: Optional[dict] = None,
        occurred_at: Optional[float] = None,
    ) -> PlayerActivityRecord:
        self._player(user_id, player_id)
        activity = self.db.create_activity(
            PlayerActivityRecord(
                user_id=user_id,
                player_id=player_id,
                activity_type=ActivityType(activity_type),
                description=description or "",
                metadata=metadata or {},
                occurred_at=occurred_at if occurred_at is not None else time.time(),
            )
        )
        self._changed(
            user_id,
            "player_activities",
            ChangeType.INSERT,
            to_wire(activity),
        )
        return activity

    def list_activities(
        self, user_id: str, player_id: Optional[str] = None, limit: int = 50
    ) -> list[PlayerActivityRecord]:
        if player_id:
            self._player(user_id, player_id)
        return self.db.list_activities(user_id, player_id=player_id, limit=limit)

    # tags

    def create_tag(
        self,
        user_id: str,
        *,
        name: str,
        color: Optional[str] = None,
        description: Optional[str] = None,
    ) -> PlayerTagRecord:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Tag name is required", {"field": "name"})
        if any(t.name == name for t in self.db.list_tags(user_id)):
            raise ConstraintViolationError(
                f"Tag '{name}' already exists", {"field": "name"}
            )
        tag = self.db.create_tag(
            PlayerTagRecord(user_id=user_id, name=name, color=color, description=description)
        )
        self._changed(user_id, "player_tags", ChangeType.INSERT, to_wire(tag))
        return tag

    def list_tags(self, user_id: str) -> list[TagWithCount]:
        counts: dict[str, int] = {}
        for assignment in self.db.list_tag_assignments(user_id):
            counts[assignment.tag_id] = counts.get(assignment.tag_id, 0) + 1
        return [
            TagWithCount(tag=tag, player_count=counts.get(tag.id, 0))
            for tag in self.db.list_tags(user_id)
        ]

    def delete_tag(self, user_id: str, tag_id: str) -> None:
        if not self.db.delete_tag(user_id, tag_id):
            raise NotFoundError("Tag not found", {"tagId": tag_id})
        self._changed(user_id, "player_tags", ChangeType.DELETE, {"id": tag_id})

    def tags_for_player(self, user_id: str, player_id: str) -> list[PlayerTagRecord]:
        tags = {t.id: t for t in self.db.list_tags(user_id)}
        return [
            tags[a.tag_id]
            for a in self.db.list_tag_assignments(user_id, player_id=player_id)
            if a.tag_id in tags
        ]

    def assign_tag(self, user_id: str, player_id: str, tag_id: str) -> TagAssignmentRecord:
        """
        Attach a tag to a player. Assigning a tag the player already has
        returns the existing assignment and logs nothing.
        """
        player = self._player(user_id, player_id)
        tag = self._tag(user_id, tag_id)
        existing = self.db.get_tag_assignment(user_id, player_id, tag_id)
        if existing:
            return existing
        try:
            assignment = self.db.create_tag_assignment(
                TagAssignmentRecord(user_id=user_id, player_id=player_id, tag_id=tag_id)
            )
        except ConstraintViolationError:
            # UNIQUE(player_id, tag_id): a concurrent request got there first.
            existing = self.db.get_tag_assignment(user_id, player_id, tag_id)
            if existing:
                return existing
            raise
        self._log(
            user_id,
            player_id,
            ActivityType.TAG_ADDED,
            f"Tagged {player.name} as {tag.name}",
            {"tagId": tag_id, "tagName": tag.name},
        )
        self._changed(
            user_id,
            "player_tag_assignments",
            ChangeType.INSERT,
            to_wire(assignment),
        )
        return assignment

    def unassign_tag(self, user_id: str, player_id: str, tag_id: str) -> None:
        player = self._player(user_id, player_id)
        tag = self._tag(user_id, tag_id)
        existing = self.db.get_tag_assignment(user_id, player_id, tag_id)
        if not existing or not self.db.delete_tag_assignment(user_id, player_id, tag_id):
            raise NotFoundError(
                "Tag is not assigned to this player",
                {"playerId": player_id, "tagId": tag_id},
            )
        self._log(
            user_id,
            player_id,
            ActivityType.TAG_REMOVED,
            f"Removed tag {tag.name} from {player.name}",
            {"tagId": tag_id, "tagName": tag.name},
        )
        self._changed(
            user_id, "player_tag_assignments", ChangeType.DELETE, {"id": existing.id}
        )

    # bulk operations

    def bulk(
        self,
        user_id: str,
        operation: BulkOperation,
        player_ids: list[str],
        *,
        tag_id: Optional[str] = None,
        color: Optional[str] = None,
        is_goalie: Optional[bool] = None,
    ) -> BulkOperationResult:
        """
        Apply ``operation`` to each player in turn. A failure on one player is
        recorded and the loop moves on to the next.
        """
        operation = BulkOperation(operation)
        if not player_ids:
            raise ValidationError("Select at least one player", {"field": "playerIds"})

        action: Callable[[str], Any]
        if operation in (BulkOperation.ASSIGN_TAG, BulkOperation.REMOVE_TAG):
            if not tag_id:
                raise ValidationError("tagId is required", {"field": "tagId"})
            self._tag(user_id, tag_id)
            if operation == BulkOperation.ASSIGN_TAG:
                action = lambda pid: self.assign_tag(user_id, pid, tag_id)
            else:
                action = lambda pid: self.unassign_tag(user_id, pid, tag_id)
        elif operation == BulkOperation.DELETE:
            action = lambda pid: self.remove_player(user_id, pid)
        elif operation == BulkOperation.SET_COLOR:
            if not color:
                raise ValidationError("color is required", {"field": "color"})
            action = lambda pid: self.update_player(user_id, pid, color=color)
        else:
            if is_goalie is None:
                raise ValidationError("isGoalie is required", {"field": "isGoalie"})
            action = lambda pid: self.update_player(user_id, pid, is_goalie=is_goalie)

        result = BulkOperationResult()
        for player_id in dict.fromkeys(player_ids):
            try:
                action(player_id)
            except TouchlineError as exc:
                logger.warning(
                    "Bulk %s failed for player %s: %s",
                    operation.value,
                    player_id,
                    exc.message,
                )
                result.record_failure(player_id, exc)
            else:
                result.succeeded.append(player_id)
        return result

    # import / export

    def export_roster(self, user_id: str) -> dict:
        tags = self.db.list_tags(user_id)
        tag_names = {t.id: t.name for t in tags}
        by_player: dict[str, list[str]] = {}
        for assignment in self.db.list_tag_assignments(user_id):
            if assignment.tag_id in tag_names:
                by_player.setdefault(assignment.player_id, []).append(
                    tag_names[assignment.tag_id]
                )
        players = []
        for player in sorted(self.db.list_players(user_id), key=_sort_key):
            item = to_wire(player)
            item.pop("userId", None)
            item["tags"] = sorted(by_player.get(player.id, []))
            players.append(item)
        return {
            "version": EXPORT_VERSION,
            "exportedAt": time.time(),
            "players": players,
            "tags": [
                {"name": t.name, "color": t.color, "description": t.description}
                for t in tags
            ],
        }

    def import_roster(self, user_id: str, payload: dict) -> BulkOperationResult:
        """
        Add every player in an exported roster. Entries are keyed in the result
        by their position in ``players``; tags are created by name as needed.
        """
        entries = payload.get("players")
        if not isinstance(entries, list):
            raise ValidationError("Import file must contain a players list")
        tag_items = payload.get("tags") or []
        if not isinstance(tag_items, list):
            raise ValidationError("Import file tags must be a list")
        try:
            tag_requests = [
                CreateTagRequest.model_validate(item) for item in tag_items
            ]
        except PayloadError as exc:
            raise ValidationError(
                "Import file contains an invalid tag", _payload_errors(exc)
            ) from exc

        tags_by_name = {t.name: t for t in self.db.list_tags(user_id)}
        for item in tag_requests:
            name = item.name.strip()
            if name and name not in tags_by_name:
                tags_by_name[name] = self.create_tag(
                    user_id,
                    name=name,
                    color=item.color,
                    description=item.description,
                )

        result = BulkOperationResult()
        for index, entry in enumerate(entries):
            key = str(index)
            try:
                request, tag_names = _parse_import_entry(entry)
                player = self.add_player(user_id, **request.model_dump())
                for name in tag_names:
                    if name not in tags_by_name:
                        tags_by_name[name] = self.create_tag(user_id, name=name)
                    self.assign_tag(user_id, player.id, tags_by_name[name].id)
            except TouchlineError as exc:
                logger.warning("Roster import entry %s skipped: %s", key, exc.message)
                result.record_failure(key, exc, key="entry")
            else:
                result.succeeded.append(key)
        return result


def _payload_errors(exc: PayloadError) -> dict:
    return {
        "errors": [
            {"field": ".".join(str(part) for part in error["loc"]), "message": error["msg"]}
            for error in exc.errors()
        ]
    }


def _parse_import_entry(entry: Any) -> tuple[CreatePlayerRequest, list[str]]:
    if not isinstance(entry, dict):
        raise ValidationError("Player entry must be an object")
    tags = entry.get("tags") or []
    if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
        raise ValidationError("Player tags must be a list of names", {"field": "tags"})
    try:
        request = CreatePlayerRequest.model_validate(entry)
    except PayloadError as exc:
        raise ValidationError("Invalid player entry", _payload_errors(exc)) from exc
    return request, [t.strip() for t in tags if t.strip()]
