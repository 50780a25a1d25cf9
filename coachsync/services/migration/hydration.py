"""Freshness rules used when hydrating local data from the cloud."""
from datetime import datetime
from typing import Any

from coachsync.schemas.migration import ConflictPolicy
from coachsync.utils.timestamps import parse_timestamp

TIMESTAMP_FIELDS = ("updated_at", "last_modified")


def entity_timestamp(doc: dict[str, Any] | None) -> datetime | None:
    """First parseable modification timestamp of a document, if any."""
    if not doc:
        return None
    for field_name in TIMESTAMP_FIELDS:
        parsed = parse_timestamp(doc.get(field_name))
        if parsed is not None:
            return parsed
    return None


def should_write(
    source: dict[str, Any],
    destination: dict[str, Any] | None,
    policy: ConflictPolicy,
) -> bool:
    """
    Decide whether ``source`` replaces ``destination``.

    Under NEWER_WINS the destination is kept unless it is missing, or both
    timestamps parse and the source is strictly newer.
    """
    if policy == ConflictPolicy.OVERWRITE or destination is None:
        return True
    source_ts = entity_timestamp(source)
    destination_ts = entity_timestamp(destination)
    if source_ts is None or destination_ts is None:
        return False
    return source_ts > destination_ts
