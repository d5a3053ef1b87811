"""Tests for core config module."""

from __future__ import annotations

import json
import logging

import pytest

from pocketstate.core.config import (
    DEFAULT_PAGE_SIZE,
    default_collection_options,
    default_record_options,
    effective_page_size,
    load_options,
    validate_collection_options,
    validate_record_options,
)
from pocketstate.errors import ConfigError


class TestDefaults:
    def test_record_defaults(self) -> None:
        opts = default_record_options()
        assert opts["listen"] is False
        assert opts["autosave"] is False
        assert opts["id"] is None

    def test_collection_defaults(self) -> None:
        opts = default_collection_options()
        assert opts["listen"] is False
        assert opts["page_size"] is None
        assert effective_page_size(opts) == DEFAULT_PAGE_SIZE == 50


class TestValidateRecordOptions:
    def test_collection_is_required(self) -> None:
        with pytest.raises(ConfigError):
            validate_record_options({"id": "r1"})

    def test_blank_collection_rejected(self) -> None:
        with pytest.raises(ValueError):
            validate_record_options({"collection": "   ", "id": "r1"})

    def test_missing_id_and_filter_only_warns(self, caplog) -> None:
        with caplog.at_level(logging.WARNING):
            opts = validate_record_options({"collection": "posts"})
        assert opts["collection"] == "posts"
        assert "either id or filter" in caplog.text

    def test_id_suppresses_warning(self, caplog) -> None:
        with caplog.at_level(logging.WARNING):
            validate_record_options({"collection": "posts", "id": "p1"})
        assert caplog.text == ""

    def test_fields_string_is_split(self) -> None:
        opts = validate_record_options({"collection": "posts", "id": "p1", "fields": "id, title"})
        assert opts["fields"] == ["id", "title"]

    def test_none_values_keep_defaults(self) -> None:
        opts = validate_record_options({"collection": "posts", "id": "p1", "autosave": None})
        assert opts["autosave"] is False


class TestValidateCollectionOptions:
    def test_valid_page_size(self) -> None:
        opts = validate_collection_options({"collection": "posts", "page_size": 10})
        assert effective_page_size(opts) == 10

    @pytest.mark.parametrize("bad", [0, -3, True, "10", 2.5])
    def test_invalid_page_size(self, bad) -> None:
        with pytest.raises(ConfigError):
            validate_collection_options({"collection": "posts", "page_size": bad})

    def test_fields_must_be_strings(self) -> None:
        with pytest.raises(ConfigError):
            validate_collection_options({"collection": "posts", "fields": ["id", 3]})

    def test_filter_and_sort_are_passed_through(self) -> None:
        opts = validate_collection_options(
            {"collection": "posts", "filter": "a && (b || c)", "sort": "-created"}
        )
        assert opts["filter"] == "a && (b || c)"
        assert opts["sort"] == "-created"


class TestLoadOptions:
    def test_load_returns_object(self) -> None:
        assert load_options('{"collection": "posts", "listen": true}') == {
            "collection": "posts",
            "listen": True,
        }

    def test_load_rejects_non_object(self) -> None:
        with pytest.raises(ConfigError):
            load_options(json.dumps(["posts"]))
