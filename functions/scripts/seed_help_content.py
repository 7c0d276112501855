"""
Load help categories and content from a JSON file.

The file holds ``categories`` and ``content`` lists using the same camelCase
fields as the API. Entries whose slug already exists are skipped, so the
script can be re-run after adding new articles.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from pydantic import ValidationError as PayloadError

from touchline.config import get_settings
from touchline.dependencies import get_change_feed, get_db_client
from touchline.errors import TouchlineError
from touchline.help_service import HelpService, slugify
from touchline.schemas import CreateCategoryRequest, CreateContentRequest

logger = logging.getLogger(__name__)

SEED_EDITOR_ID = "seed-script"


def seed(service: HelpService, payload: dict, *, publish: bool = False) -> tuple[int, int]:
    """Returns (created, skipped)."""
    created = skipped = 0
    db = service.db

    for raw in payload.get("categories") or []:
        try:
            item = CreateCategoryRequest.model_validate(raw)
        except PayloadError as exc:
            logger.warning("Skipping invalid category %r: %s", raw, exc)
            skipped += 1
            continue
        if db.get_category_by_slug(slugify(item.slug or item.name)):
            skipped += 1
            continue
        service.create_category(SEED_EDITOR_ID, **item.model_dump())
        created += 1

    for raw in payload.get("content") or []:
        try:
            item = CreateContentRequest.model_validate(raw)
        except PayloadError as exc:
            logger.warning("Skipping invalid content %r: %s", raw, exc)
            skipped += 1
            continue
        if db.get_help_content_by_slug(slugify(item.slug or item.title)):
            skipped += 1
            continue
        fields = item.model_dump()
        if publish:
            fields["is_published"] = True
        try:
            service.create_content(SEED_EDITOR_ID, **fields)
        except TouchlineError as exc:
            logger.warning("Skipping %s: %s", item.title, exc.message)
            skipped += 1
            continue
        created += 1

    return created, skipped


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed help content")
    parser.add_argument(
        "--file",
        type=Path,
        required=True,
        help="JSON file with categories and content",
    )
    parser.add_argument(
        "--publish",
        action="store_true",
        help="Publish every seeded article regardless of isPublished",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    payload = json.loads(args.file.read_text(encoding="utf-8"))
    settings = get_settings().model_copy(update={"admin_user_ids": SEED_EDITOR_ID})
    service = HelpService(get_db_client(), get_change_feed(), settings)
    created, skipped = seed(service, payload, publish=args.publish)
    logger.info("Seeded %d help items, skipped %d", created, skipped)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
