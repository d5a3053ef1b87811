"""Developer commands: fetch a record, replay mutations against a collection."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import click

from pocketstate.cli.helpers import (
    build_seeded_store,
    output_error,
    output_result,
    read_operations,
)
from pocketstate.cli.main import cli
from pocketstate.client.memory import MemoryStore
from pocketstate.data.collection import CollectionState
from pocketstate.data.record import RecordState
from pocketstate.errors import ConfigError, StoreError

_SEED_ARG = click.argument(
    "seed",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)


def _format_records(records: list[dict]) -> str:
    if not records:
        return "(no records)"
    return "\n".join(json.dumps(r, sort_keys=True) for r in records)


@cli.command()
@_SEED_ARG
@click.option("--collection", "-c", required=True, help="Collection to read from.")
@click.option("--id", "record_id", default=None, help="Record id to fetch.")
@click.option("--filter", "filter_query", default=None, help="Filter expression (first match).")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def show(
    seed: Path,
    collection: str,
    record_id: str | None,
    filter_query: str | None,
    as_json: bool,
) -> None:
    """Fetch one record from a seeded store."""
    try:
        store = build_seeded_store(seed)
        record_state = RecordState(store, collection, id=record_id, filter=filter_query)
    except (ConfigError, json.JSONDecodeError) as exc:
        output_error(str(exc), "INVALID_INPUT", as_json)

    asyncio.run(record_state.refetch())

    if record_state.error is not None:
        output_error(str(record_state.error), "STORE_ERROR", as_json)
    if record_state.data is None:
        output_error("No matching record.", "NOT_FOUND", as_json)

    output_result(
        data=record_state.data,
        human_message=json.dumps(record_state.data, sort_keys=True, indent=2),
        is_json=as_json,
    )


async def _replay(store: MemoryStore, state: CollectionState, ops: list[dict]) -> None:
    detach = state.attach(lambda _value: None)
    await state.state.drain()

    try:
        for op in ops:
            kind = op["op"]
            if kind == "create":
                await state.add(op.get("data") or {})
            elif kind == "update":
                await state.update(op["id"], op.get("data") or {})
            elif kind == "delete":
                await state.remove(op["id"])
            elif kind == "emit":
                store.emit(state.collection_name, op["action"], op.get("record") or {})
            elif kind == "refetch":
                await state.refetch()
            elif kind == "page":
                await state.go_to_page(int(op["page"]))
            else:
                raise ConfigError(f"Unknown operation: '{kind}'")
    finally:
        detach()
        await state.state.drain()


@cli.command()
@_SEED_ARG
@click.argument(
    "operations",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option("--collection", "-c", required=True, help="Collection to replay against.")
@click.option("--listen/--no-listen", default=False, help="Follow the live channel.")
@click.option("--filter", "filter_query", default=None, help="List filter expression.")
@click.option("--sort", default=None, help="List sort, e.g. '-created,title'.")
@click.option("--page-size", type=int, default=None, help="Records per page (default: 50).")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def replay(
    seed: Path,
    operations: Path,
    collection: str,
    listen: bool,
    filter_query: str | None,
    sort: str | None,
    page_size: int | None,
    as_json: bool,
) -> None:
    """Replay a JSONL file of operations and print the resulting page.

    Each line is one of ``{"op": "create", "data": {...}}``,
    ``{"op": "update", "id": ..., "data": {...}}``, ``{"op": "delete", "id": ...}``,
    ``{"op": "emit", "action": ..., "record": {...}}``, ``{"op": "refetch"}`` or
    ``{"op": "page", "page": N}``.
    """
    try:
        store = build_seeded_store(seed)
        ops = read_operations(operations)
        state = CollectionState(
            store,
            collection,
            filter=filter_query,
            sort=sort,
            page_size=page_size,
            listen=listen,
        )
    except (ConfigError, json.JSONDecodeError) as exc:
        output_error(str(exc), "INVALID_INPUT", as_json)

    try:
        asyncio.run(_replay(store, state, ops))
    except StoreError as exc:
        output_error(exc.message, "STORE_ERROR", as_json)
    except (ConfigError, KeyError, ValueError) as exc:
        output_error(str(exc), "INVALID_INPUT", as_json)

    items = state.data or []
    data = {
        "items": items,
        "page": state.page,
        "total_pages": state.total_pages,
        "total_items": state.total_items,
        "requests": len(store.requests),
    }
    output_result(
        data=data,
        human_message=(
            f"{_format_records(items)}\n"
            f"Page {state.page}/{state.total_pages} ({state.total_items} items, "
            f"{len(store.requests)} store calls)"
        ),
        is_json=as_json,
    )
