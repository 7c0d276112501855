"""
Key-casing helpers for turning snake_case storage rows into camelCase
wire payloads.
"""

from __future__ import annotations

import re

_SNAKE_PART = re.compile(r"_([a-z0-9])")


def snake_to_camel(key: str) -> str:
    """``jersey_number`` -> ``jerseyNumber``; leading underscores are kept."""
    stripped = key.lstrip("_")
    prefix = key[: len(key) - len(stripped)]
    return prefix + _SNAKE_PART.sub(lambda m: m.group(1).upper(), stripped)


def to_wire(record) -> dict:
    """
    Storage record -> camelCase dict. Only the record's own field names are
    converted; nested values such as activity metadata or tag counts keyed by
    tag name are passed through untouched.
    """
    return {snake_to_camel(key): value for key, value in record.as_dict().items()}
