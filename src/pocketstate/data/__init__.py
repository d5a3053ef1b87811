"""Reactive record and collection adapters over a document store."""

from __future__ import annotations

from pocketstate.data.collection import CollectionState, apply_event_to_items
from pocketstate.data.record import RecordState

__all__ = [
    "CollectionState",
    "RecordState",
    "apply_event_to_items",
]
