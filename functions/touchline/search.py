"""
Keyword relevance scoring for help content.

A term is worth more the more prominent the field it appears in. Body
matches are capped per term.
"""

from __future__ import annotations

from typing import Iterable, Optional

from touchline.records import HelpContentRecord

TITLE_WEIGHT = 20.0
TAG_WEIGHT = 10.0
SUMMARY_WEIGHT = 5.0
BODY_WEIGHT = 1.0
BODY_MATCH_CAP = 3
TITLE_PHRASE_BONUS = 15.0


def tokenize(query: str) -> list[str]:
    return query.lower().strip().split()


def score_help_content(terms: list[str], content: HelpContentRecord) -> float:
    """Return the relevance of ``content`` for the already tokenized query."""
    if not terms:
        return 0.0
    title = content.title.lower()
    summary = (content.summary or "").lower()
    body = (content.body or "").lower()
    labels = [label.lower() for label in [*content.tags, *content.keywords]]

    match = lambda s: sum(min(BODY_MATCH_CAP, s.count(q)) for q in terms)
    matchu = lambda s: sum(int(q in s) for q in terms)

    score = 0.0
    score += TITLE_WEIGHT * matchu(title)
    score += TAG_WEIGHT * sum(int(any(q in label for label in labels)) for q in terms)
    score += SUMMARY_WEIGHT * matchu(summary)
    score += BODY_WEIGHT * match(body)
    if len(terms) > 1 and " ".join(terms) in title:
        score += TITLE_PHRASE_BONUS
    return score


def rank_help_content(
    query: str,
    candidates: Iterable[HelpContentRecord],
    *,
    limit: int,
    category_id: Optional[str] = None,
) -> list[tuple[HelpContentRecord, float]]:
    """
    Score published candidates against ``query`` and return the best ``limit``
    matches, highest score first. Ties go to the more helpful, then more viewed.
    """
    terms = tokenize(query)
    if not terms:
        return []
    scored: list[tuple[float, HelpContentRecord]] = []
    for content in candidates:
        if not content.is_published:
            continue
        if category_id and content.category_id != category_id:
            continue
        score = score_help_content(terms, content)
        if score > 0:
            scored.append((score, content))
    scored.sort(
        key=lambda item: (item[0], item[1].helpful_count, item[1].view_count),
        reverse=True,
    )
    return [(content, score) for score, content in scored[:limit]]
