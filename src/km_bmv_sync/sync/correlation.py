"""Correlation tag codec.

BMV has no column for foreign keys, so the Konzertmeister appointment ID is
stored as `KM_ID=<id>` on its own line inside the activity annotation
(`Anmerkung`). The tag is the only link between the two systems; every
activity carrying one is considered synced.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from km_bmv_sync.models.activity import ActivityBase

TAG_NAME = "KM_ID"

# "KM_ID=123", "km_id = 123", ...; first occurrence wins
TAG_PATTERN = re.compile(r"KM_ID\s*=\s*(?P<id>\d+)", re.IGNORECASE)


def format_tag(source_id: int) -> str:
    return f"{TAG_NAME}={source_id}"


def embed_source_id(base_text: str | None, source_id: int) -> str:
    """Append the correlation tag as a new line to `base_text`.

    Examples:
        embed_source_id("Bring music stands", 42) -> "Bring music stands\\nKM_ID=42"
        embed_source_id("  ", 42) -> "KM_ID=42"
    """
    base = (base_text or "").strip()
    tag = format_tag(source_id)
    return f"{base}\n{tag}" if base else tag


def extract_source_id(annotation: str | None) -> int | None:
    """Return the Konzertmeister ID tagged in `annotation`, or None.

    Absent or untagged annotations are the normal case for activities
    created by hand in BMV.
    """
    if not annotation:
        return None
    match = TAG_PATTERN.search(annotation)
    if not match:
        return None
    return int(match.group("id"))


def collect_known_ids(activities: Iterable[ActivityBase]) -> frozenset[int]:
    """Collect all Konzertmeister IDs already present in BMV."""
    known: set[int] = set()
    for activity in activities:
        source_id = extract_source_id(activity.annotation)
        if source_id is not None:
            known.add(source_id)
    return frozenset(known)
