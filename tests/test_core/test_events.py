"""Tests for core events module."""

from __future__ import annotations

import re

import pytest

from pocketstate.core.events import (
    RECORD_ACTIONS,
    RESERVED_FIELDS,
    create_record_event,
    strip_reserved,
    utc_now,
    validate_action,
)


class TestRecordEvents:
    def test_actions(self) -> None:
        assert RECORD_ACTIONS == {"create", "update", "delete"}
        assert validate_action("update")
        assert not validate_action("upsert")

    def test_event_copies_record(self) -> None:
        record = {"id": "a", "tags": ["x"]}
        event = create_record_event("create", record)
        record["tags"].append("y")
        assert event == {"action": "create", "record": {"id": "a", "tags": ["x"]}}

    def test_unknown_action_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unknown record action"):
            create_record_event("truncate", {})


class TestStripReserved:
    def test_strips_all_reserved_fields(self) -> None:
        record = {
            "id": "r1",
            "created": "t0",
            "updated": "t0",
            "collectionId": "c1",
            "collectionName": "people",
            "name": "A",
        }
        assert strip_reserved(record) == {"name": "A"}
        assert "id" in record

    def test_reserved_set(self) -> None:
        assert RESERVED_FIELDS == {"id", "created", "updated", "collectionId", "collectionName"}


def test_utc_now_format() -> None:
    assert re.match(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\.\d{3}Z$", utc_now())
