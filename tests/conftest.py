"""Shared test fixtures."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable
from pathlib import Path

import pytest
from click.testing import CliRunner

from pocketstate.client.memory import MemoryStore

T0 = "2024-01-01 00:00:00.000Z"


def make_posts() -> list[dict]:
    return [
        {"id": "p1", "title": "First", "published": True, "created": T0, "updated": T0},
        {"id": "p2", "title": "Second", "published": False, "created": T0, "updated": T0},
        {"id": "p3", "title": "Third", "published": True, "created": T0, "updated": T0},
    ]


def seeded_store(latency: float = 0.0) -> MemoryStore:
    """A store with three posts, one person, one user and two named filters."""
    store = MemoryStore(latency=latency)
    store.seed("posts", make_posts())
    store.seed("people", [{"id": "r1", "name": "A", "created": T0, "updated": T0}])
    store.seed("users", [{"id": "u1", "email": "ada@example.com", "password": "s3cret"}])
    store.register_filter("published = true", lambda r: bool(r.get("published")))
    store.register_filter("title = 'nope'", lambda r: r.get("title") == "nope")
    return store


@pytest.fixture()
def store() -> MemoryStore:
    return seeded_store()


@pytest.fixture()
def slow_store() -> MemoryStore:
    """Like ``store``, but every call stays in flight for a moment."""
    return seeded_store(latency=0.01)


def requests_for(store: MemoryStore, method: str) -> list[dict]:
    """Journal entries for one store method."""
    return [r for r in store.requests if r["method"] == method]


async def loading_while_pending(target, call: Awaitable) -> tuple[bool, object]:
    """Start *call*, report ``target.loading`` while it is in flight, then finish it."""
    task = asyncio.ensure_future(call)
    await asyncio.sleep(0)
    pending = target.loading
    return pending, await task


@pytest.fixture()
def cli_runner() -> CliRunner:
    """Return a Click CliRunner for invoking CLI commands."""
    return CliRunner()


@pytest.fixture()
def seed_file(tmp_path: Path) -> Path:
    """A seed file mirroring the ``store`` fixture's posts."""
    path = tmp_path / "seed.json"
    path.write_text(
        json.dumps(
            {
                "posts": make_posts(),
                "$filters": {"published = true": {"published": True}},
            }
        )
    )
    return path


@pytest.fixture()
def invoke(cli_runner: CliRunner):
    """Return a helper that invokes CLI commands.

    Usage::

        result = invoke("show", str(seed_file), "-c", "posts", "--id", "p1")
    """
    from pocketstate.cli.main import cli

    def _invoke(*args: str, **kwargs):
        return cli_runner.invoke(cli, list(args), **kwargs)

    return _invoke
