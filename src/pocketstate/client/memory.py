"""In-process document store.

``MemoryStore`` implements the ``DocumentStore`` protocol entirely in
memory.  It backs the CLI and the test-suite, and is handy for prototyping
adapters before a real backend exists.

Behaviour follows the remote store closely enough for the adapters to
rely on it:

- ids are lowercase ULIDs, ``created``/``updated`` are assigned on write
- ``sort`` is a comma-separated field list, ``-`` prefix for descending
- ``filter`` expressions are opaque; each must be registered up front with
  ``register_filter`` and an unknown one fails with a 400 ``StoreError``
- ``fields`` projects results down to the listed keys; ``expand`` is accepted
  and ignored
- every write fans out a live event to the record's topic and to ``"*"``.
  Delivery is synchronous, before the write call returns.  Listener
  failures are logged but never raised.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import math
from collections.abc import Callable
from typing import Any

from pocketstate.client.base import (
    AuthChangeCallback,
    AuthResult,
    ListResult,
    RecordSubscription,
    SubscriptionCallback,
    UnsubscribeFunc,
)
from pocketstate.core.events import (
    ACTION_CREATE,
    ACTION_DELETE,
    ACTION_UPDATE,
    create_record_event,
    strip_reserved,
    utc_now,
)
from pocketstate.core.ids import WILDCARD_TOPIC, generate_record_id, generate_token, validate_topic
from pocketstate.errors import StoreError

logger = logging.getLogger(__name__)

# Fields never returned from an auth collection.
_HIDDEN_AUTH_FIELDS: frozenset[str] = frozenset({"password"})


class MemoryAuthStore:
    """Session holder with change listeners."""

    def __init__(self) -> None:
        self._token = ""
        self._model: dict[str, Any] | None = None
        self._listeners: list[AuthChangeCallback] = []

    @property
    def token(self) -> str:
        return self._token

    @property
    def model(self) -> dict[str, Any] | None:
        return copy.deepcopy(self._model)

    @property
    def is_valid(self) -> bool:
        return bool(self._token) and self._model is not None

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def save(self, token: str, model: dict[str, Any] | None) -> None:
        self._token = token
        self._model = copy.deepcopy(model)
        self._notify()

    def clear(self) -> None:
        self._token = ""
        self._model = None
        self._notify()

    def on_change(
        self,
        callback: AuthChangeCallback,
        fire_immediately: bool = False,
    ) -> Callable[[], None]:
        self._listeners.append(callback)
        if fire_immediately:
            callback(self._token, self.model)

        def remove() -> None:
            try:
                self._listeners.remove(callback)
            except ValueError:
                pass

        return remove

    def _notify(self) -> None:
        for fn in list(self._listeners):
            try:
                fn(self._token, self.model)
            except Exception:
                logger.exception("auth listener error")


class MemoryStore:
    """A ``DocumentStore`` that keeps every collection in a dict."""

    def __init__(self, *, latency: float = 0.0) -> None:
        self.latency = latency
        self.auth_store = MemoryAuthStore()
        self.requests: list[dict[str, Any]] = []
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._collection_ids: dict[str, str] = {}
        self._filters: dict[str, Callable[[dict[str, Any]], bool]] = {}
        self._topics: dict[tuple[str, str], list[SubscriptionCallback]] = {}
        self._failures: dict[tuple[str, str], list[Exception]] = {}
        self._services: dict[str, MemoryCollection] = {}

    # ------------------------------------------------------------------
    # DocumentStore
    # ------------------------------------------------------------------

    def collection(self, name: str) -> MemoryCollection:
        if name not in self._services:
            self._services[name] = MemoryCollection(self, name)
        return self._services[name]

    # ------------------------------------------------------------------
    # Setup helpers
    # ------------------------------------------------------------------

    def seed(self, collection: str, records: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Insert *records* without journaling or live events.

        Reserved fields already present (``id``, ``created``...) are kept so
        fixtures can be reproduced exactly.
        """
        out = []
        table = self._table(collection)
        for raw in records:
            record = self._stamp(collection, dict(raw), keep_reserved=True)
            table[record["id"]] = record
            out.append(copy.deepcopy(record))
        return out

    def register_filter(self, expression: str, predicate: Callable[[dict[str, Any]], bool]) -> None:
        """Teach the store how to evaluate the opaque filter *expression*."""
        self._filters[expression] = predicate

    def fail_next(self, collection: str, method: str, error: Exception | None = None) -> None:
        """Make the next *method* call on *collection* raise *error*."""
        err = error if error is not None else StoreError(0, f"{method} failed")
        self._failures.setdefault((collection, method), []).append(err)

    def records(self, collection: str) -> list[dict[str, Any]]:
        """Snapshot of every record in insertion order."""
        return [copy.deepcopy(r) for r in self._table(collection).values()]

    def subscriber_count(self, collection: str, topic: str | None = None) -> int:
        return sum(
            len(callbacks)
            for (name, t), callbacks in self._topics.items()
            if name == collection and (topic is None or t == topic)
        )

    def emit(self, collection: str, action: str, record: dict[str, Any]) -> None:
        """Deliver a live event as the transport would, without touching data.

        Used to replay events or simulate duplicate delivery.
        """
        event = RecordSubscription.from_dict(create_record_event(action, record))
        topics = [WILDCARD_TOPIC]
        record_id = record.get("id")
        if record_id:
            topics.append(str(record_id))

        for topic in topics:
            for fn in list(self._topics.get((collection, topic), [])):
                try:
                    fn(RecordSubscription(event.action, copy.deepcopy(event.record)))
                except Exception:
                    logger.exception("subscription callback error on %s/%s", collection, topic)

    # ------------------------------------------------------------------
    # Internals used by MemoryCollection
    # ------------------------------------------------------------------

    def _table(self, collection: str) -> dict[str, dict[str, Any]]:
        if collection not in self._collections:
            self._collections[collection] = {}
            self._collection_ids[collection] = generate_record_id()
        return self._collections[collection]

    def _stamp(
        self,
        collection: str,
        record: dict[str, Any],
        *,
        keep_reserved: bool = False,
    ) -> dict[str, Any]:
        self._table(collection)
        now = utc_now()
        if not keep_reserved:
            record_id = record.get("id")
            record = strip_reserved(record)
            if record_id:
                record["id"] = record_id
        record.setdefault("id", generate_record_id())
        record.setdefault("created", now)
        record.setdefault("updated", record["created"])
        record["collectionId"] = self._collection_ids[collection]
        record["collectionName"] = collection
        return record

    async def _call(self, collection: str, method: str, **details: Any) -> None:
        self.requests.append({"method": method, "collection": collection, **copy.deepcopy(details)})
        await asyncio.sleep(self.latency)
        pending = self._failures.get((collection, method))
        if pending:
            raise pending.pop(0)


class MemoryCollection:
    """``RecordService`` over one ``MemoryStore`` collection."""

    def __init__(self, store: MemoryStore, name: str) -> None:
        self.store = store
        self.name = name

    async def get_one(
        self,
        record_id: str,
        *,
        expand: str | None = None,
        fields: str | None = None,
    ) -> dict[str, Any]:
        await self.store._call(self.name, "get_one", id=record_id, expand=expand, fields=fields)
        record = self.store._table(self.name).get(record_id)
        if record is None:
            raise StoreError(404, "The requested resource wasn't found.")
        return _project(record, fields)

    async def get_list(
        self,
        page: int = 1,
        per_page: int = 30,
        *,
        filter: str | None = None,
        sort: str | None = None,
        expand: str | None = None,
        fields: str | None = None,
    ) -> ListResult:
        await self.store._call(
            self.name,
            "get_list",
            page=page,
            per_page=per_page,
            filter=filter,
            sort=sort,
            expand=expand,
            fields=fields,
        )
        if page < 1 or per_page < 1:
            raise StoreError(400, "page and perPage must be positive integers.")

        items = list(self.store._table(self.name).values())
        if filter:
            predicate = self.store._filters.get(filter)
            if predicate is None:
                raise StoreError(400, "Invalid filter parameters.", {"filter": filter})
            items = [r for r in items if predicate(copy.deepcopy(r))]
        if sort:
            items = _sorted(items, sort)

        total_items = len(items)
        total_pages = math.ceil(total_items / per_page)
        start = (page - 1) * per_page
        window = items[start:start + per_page]
        return ListResult(
            page=page,
            per_page=per_page,
            total_items=total_items,
            total_pages=total_pages,
            items=[_project(r, fields) for r in window],
        )

    async def create(self, data: dict[str, Any]) -> dict[str, Any]:
        await self.store._call(self.name, "create", data=data)
        table = self.store._table(self.name)
        if data.get("id") and data["id"] in table:
            raise StoreError(400, "Failed to create record.", {"id": "Value must be unique."})

        record = self.store._stamp(self.name, copy.deepcopy(data))
        table[record["id"]] = record
        self.store.emit(self.name, ACTION_CREATE, _public(record))
        return _public(record)

    async def update(self, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
        await self.store._call(self.name, "update", id=record_id, data=data)
        table = self.store._table(self.name)
        if record_id not in table:
            raise StoreError(404, "The requested resource wasn't found.")

        record = table[record_id]
        record.update(strip_reserved(copy.deepcopy(data)))
        record["updated"] = utc_now()
        self.store.emit(self.name, ACTION_UPDATE, _public(record))
        return _public(record)

    async def delete(self, record_id: str) -> bool:
        await self.store._call(self.name, "delete", id=record_id)
        table = self.store._table(self.name)
        record = table.pop(record_id, None)
        if record is None:
            raise StoreError(404, "The requested resource wasn't found.")
        self.store.emit(self.name, ACTION_DELETE, _public(record))
        return True

    async def subscribe(self, topic: str, callback: SubscriptionCallback) -> UnsubscribeFunc:
        await self.store._call(self.name, "subscribe", topic=topic)
        if not validate_topic(topic):
            raise StoreError(400, f"Invalid subscription topic: '{topic}'")

        key = (self.name, topic)
        self.store._topics.setdefault(key, []).append(callback)

        async def unsubscribe() -> None:
            callbacks = self.store._topics.get(key, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    async def unsubscribe(self, topic: str | None = None) -> None:
        for key in list(self.store._topics):
            if key[0] == self.name and (topic is None or key[1] == topic):
                del self.store._topics[key]

    async def auth_with_password(self, identity: str, password: str) -> AuthResult:
        await self.store._call(self.name, "auth_with_password", identity=identity)
        for record in self.store._table(self.name).values():
            if identity in (record.get("email"), record.get("username")) and record.get(
                "password"
            ) == password:
                model = _public(record)
                token = generate_token()
                self.store.auth_store.save(token, model)
                return AuthResult(token=token, record=model)
        raise StoreError(400, "Failed to authenticate.")


def _public(record: dict[str, Any]) -> dict[str, Any]:
    return {k: copy.deepcopy(v) for k, v in record.items() if k not in _HIDDEN_AUTH_FIELDS}


def _project(record: dict[str, Any], fields: str | None) -> dict[str, Any]:
    public = _public(record)
    if not fields:
        return public
    names = [f.strip() for f in fields.split(",") if f.strip()]
    return {k: public[k] for k in names if k in public}


def _sorted(items: list[dict[str, Any]], sort: str) -> list[dict[str, Any]]:
    # Stable sort applied from the last key to the first.
    out = list(items)
    for key in reversed([k.strip() for k in sort.split(",") if k.strip()]):
        reverse = key.startswith("-")
        name = key.lstrip("+-")
        out.sort(key=lambda r: (r.get(name) is None, r.get(name)), reverse=reverse)
    return out
