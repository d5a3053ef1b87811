"""Adapter option schemas, defaults and validation."""

from __future__ import annotations

import json
import logging
from typing import TypedDict

from pocketstate.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
DEFAULT_AUTH_COLLECTION = "users"


class StateOptions(TypedDict, total=False):
    collection: str
    listen: bool


class RecordOptions(StateOptions, total=False):
    id: str | None
    filter: str | None
    expand: str | None
    fields: list[str] | None
    autosave: bool


class CollectionOptions(StateOptions, total=False):
    filter: str | None
    sort: str | None
    expand: str | None
    fields: list[str] | None
    page_size: int | None


def default_record_options() -> RecordOptions:
    """Return the defaults applied to every ``RecordState``."""
    return {
        "collection": "",
        "listen": False,
        "id": None,
        "filter": None,
        "expand": None,
        "fields": None,
        "autosave": False,
    }


def default_collection_options() -> CollectionOptions:
    """Return the defaults applied to every ``CollectionState``."""
    return {
        "collection": "",
        "listen": False,
        "filter": None,
        "sort": None,
        "expand": None,
        "fields": None,
        "page_size": None,
    }


def _check_collection(name: object) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ConfigError("A collection name is required")
    return name


def _check_fields(fields: object) -> list[str] | None:
    if fields is None:
        return None
    if isinstance(fields, str):
        return [f.strip() for f in fields.split(",") if f.strip()]
    if not all(isinstance(f, str) for f in fields):  # type: ignore[union-attr]
        raise ConfigError("fields must be a list of field names")
    return list(fields)  # type: ignore[arg-type]


def validate_record_options(options: RecordOptions | dict) -> RecordOptions:
    """Merge *options* over the defaults and validate them.

    Raises ``ConfigError`` for a missing collection.  Supplying neither an
    ``id`` nor a ``filter`` is only a warning: the record then resolves to
    ``None``.
    """
    merged: dict = dict(default_record_options())
    merged.update({k: v for k, v in options.items() if v is not None or k not in merged})
    merged["collection"] = _check_collection(merged.get("collection"))
    merged["fields"] = _check_fields(merged.get("fields"))
    merged["listen"] = bool(merged.get("listen"))
    merged["autosave"] = bool(merged.get("autosave"))

    if not merged.get("id") and not merged.get("filter"):
        logger.warning(
            "RecordState(%s): either id or filter should be provided to fetch a record",
            merged["collection"],
        )
    return merged  # type: ignore[return-value]


def validate_collection_options(options: CollectionOptions | dict) -> CollectionOptions:
    """Merge *options* over the defaults and validate them."""
    merged: dict = dict(default_collection_options())
    merged.update({k: v for k, v in options.items() if v is not None or k not in merged})
    merged["collection"] = _check_collection(merged.get("collection"))
    merged["fields"] = _check_fields(merged.get("fields"))
    merged["listen"] = bool(merged.get("listen"))

    page_size = merged.get("page_size")
    if page_size is not None:
        if isinstance(page_size, bool) or not isinstance(page_size, int) or page_size < 1:
            raise ConfigError(f"page_size must be a positive integer, got {page_size!r}")
    return merged  # type: ignore[return-value]


def effective_page_size(options: CollectionOptions) -> int:
    """The page size actually requested from the store."""
    return options.get("page_size") or DEFAULT_PAGE_SIZE


def load_options(raw: str) -> dict:
    """Parse a JSON options string.

    This is a pure function (no I/O).  The CLI layer reads the file
    and passes the raw string here.
    """
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ConfigError("Options must be a JSON object")
    return data
