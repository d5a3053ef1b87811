"""Record events, reserved fields, and timestamps."""

from __future__ import annotations

import copy
from datetime import datetime, timezone

# ---------------------------------------------------------------------------
# Record fields
# ---------------------------------------------------------------------------

# Fields assigned by the store.  They are never sent back on update.
RESERVED_FIELDS: frozenset[str] = frozenset(
    {
        "id",
        "created",
        "updated",
        "collectionId",
        "collectionName",
    }
)

# ---------------------------------------------------------------------------
# Live channel actions
# ---------------------------------------------------------------------------

ACTION_CREATE = "create"
ACTION_UPDATE = "update"
ACTION_DELETE = "delete"

RECORD_ACTIONS: frozenset[str] = frozenset({ACTION_CREATE, ACTION_UPDATE, ACTION_DELETE})


def validate_action(action: str) -> bool:
    """Return ``True`` if *action* is one of the live channel actions."""
    return action in RECORD_ACTIONS


def create_record_event(action: str, record: dict) -> dict:
    """Build the wire form of a live channel event.

    The record is deep-copied so subscribers can never mutate the store's
    copy (or each other's).
    """
    if not validate_action(action):
        raise ValueError(f"Unknown record action: '{action}'")
    return {"action": action, "record": copy.deepcopy(record)}


def strip_reserved(record: dict) -> dict:
    """Return a copy of *record* without ``RESERVED_FIELDS``."""
    return {k: v for k, v in record.items() if k not in RESERVED_FIELDS}


def utc_now() -> str:
    """UTC timestamp in the store's format, e.g. ``2024-01-01 10:00:00.123Z``."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%d %H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"
