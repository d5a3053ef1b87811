"""Shared CLI helpers and output utilities."""

from __future__ import annotations

import json
from pathlib import Path
from typing import NoReturn

import click

from pocketstate.client.memory import MemoryStore
from pocketstate.core.config import load_options
from pocketstate.errors import ConfigError


def json_envelope(ok: bool, *, data: object = None, error: object = None) -> str:
    """Build a structured JSON output envelope."""
    result: dict = {"ok": ok}
    if data is not None:
        result["data"] = data
    if error is not None:
        result["error"] = error
    return json.dumps(result, sort_keys=True, indent=2) + "\n"


def json_error_obj(code: str, message: str) -> dict:
    """Build an error object for the JSON envelope."""
    return {"code": code, "message": message}


def output_error(message: str, code: str, is_json: bool, exit_code: int = 1) -> NoReturn:
    """Print error and exit. JSON errors go to stdout; human errors to stderr."""
    if is_json:
        click.echo(json_envelope(False, error=json_error_obj(code, message)))
    else:
        click.echo(f"Error: {message}", err=True)
    raise SystemExit(exit_code)


def output_result(*, data: object, human_message: str, is_json: bool) -> None:
    """Print success result in the appropriate format."""
    if is_json:
        click.echo(json_envelope(True, data=data))
    else:
        click.echo(human_message)


# ---------------------------------------------------------------------------
# Seed files
# ---------------------------------------------------------------------------


def _equality_filter(expected: dict):  # noqa: ANN202
    def predicate(record: dict) -> bool:
        return all(record.get(k) == v for k, v in expected.items())

    return predicate


def build_seeded_store(seed_path: Path) -> MemoryStore:
    """Create a ``MemoryStore`` from a seed file.

    The seed file is a JSON object mapping collection names to record
    lists.  An optional ``"$filters"`` key maps each filter expression the
    run will use to the field values a matching record must have::

        {
          "posts": [{"id": "p1", "title": "Hello", "published": true}],
          "$filters": {"published = true": {"published": true}}
        }
    """
    seed = load_options(seed_path.read_text())
    filters = seed.pop("$filters", {}) or {}
    if not isinstance(filters, dict):
        raise ConfigError("$filters must map filter expressions to field values")

    store = MemoryStore()
    for name, records in seed.items():
        if not isinstance(records, list):
            raise ConfigError(f"Seed collection '{name}' must be a list of records")
        store.seed(name, records)
    for expression, expected in filters.items():
        store.register_filter(expression, _equality_filter(dict(expected)))
    return store


def read_operations(path: Path) -> list[dict]:
    """Parse a JSONL operations file, skipping blank lines."""
    ops = []
    for lineno, line in enumerate(path.read_text().splitlines(), start=1):
        if not line.strip():
            continue
        try:
            op = json.loads(line)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"{path.name}:{lineno}: {exc}") from exc
        if not isinstance(op, dict) or "op" not in op:
            raise ConfigError(f"{path.name}:{lineno}: each line needs an 'op' key")
        ops.append(op)
    return ops
