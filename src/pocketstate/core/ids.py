"""Record ID generation and topic validation."""

from __future__ import annotations

from ulid import ULID

# Topic that subscribes to every record of a collection.
WILDCARD_TOPIC = "*"


def generate_record_id() -> str:
    """Return a new lowercase ULID suitable as a record ``id``."""
    return str(ULID()).lower()


def generate_token() -> str:
    """Return an opaque session token."""
    return f"tok_{ULID()}"


def validate_topic(topic: str) -> bool:
    """A topic is either the wildcard or a non-empty record id."""
    return topic == WILDCARD_TOPIC or (bool(topic) and "/" not in topic)
