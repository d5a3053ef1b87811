"""Tests for core ids module."""

from __future__ import annotations

from pocketstate.core.ids import (
    WILDCARD_TOPIC,
    generate_record_id,
    generate_token,
    validate_topic,
)


class TestRecordIds:
    def test_generated_ids_are_lowercase_ulids(self) -> None:
        rid = generate_record_id()
        assert len(rid) == 26
        assert rid == rid.lower()

    def test_generated_ids_are_unique(self) -> None:
        ids = {generate_record_id() for _ in range(200)}
        assert len(ids) == 200

    def test_token_prefix(self) -> None:
        assert generate_token().startswith("tok_")


class TestTopics:
    def test_wildcard(self) -> None:
        assert validate_topic(WILDCARD_TOPIC)

    def test_record_topic(self) -> None:
        assert validate_topic("p1")

    def test_bad_topics(self) -> None:
        assert not validate_topic("")
        assert not validate_topic("posts/p1")
