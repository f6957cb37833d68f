"""Hashtag extraction from free text."""

from __future__ import annotations

import re
from typing import Iterable

_HASHTAG_RE = re.compile(r"\B#(\w+)")


def parse_hashtags(title: str | None, description: str | None, tags: Iterable[str] = ()) -> tuple[str, ...]:
    """Merge existing tags with the hashtags found in title and description.

    Args:
        title: Resource title.
        description: Resource description.
        tags: Tags already attached to the resource.

    Returns:
        Lower-cased, de-duplicated tags; existing tags first, then hashtags in
        order of appearance.
    """
    merged: list[str] = []
    seen: set[str] = set()
    found = _HASHTAG_RE.findall((title or "").lower()) + _HASHTAG_RE.findall((description or "").lower())
    for tag in [*tags, *found]:
        value = str(tag).strip()
        if not value or value in seen:
            continue
        seen.add(value)
        merged.append(value)
    return tuple(merged)
