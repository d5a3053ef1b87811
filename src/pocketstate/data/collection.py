"""Paginated collection adapter.

``CollectionState`` keeps one page of a collection in sync.  Without
``listen`` it fetches the page once and patches it locally after each
mutation.  With ``listen`` it follows the collection's wildcard live
channel and lets incoming events patch the page.

The live channel covers the *whole* collection: the store does not apply
``filter`` to it the way it does to the list query.  Events for records
outside the filter are still applied.  Reconciliation never re-sorts or
re-pages; ``refetch()`` restores the exact server view.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from pocketstate.client.base import DocumentStore, RecordSubscription
from pocketstate.core.cell import UNSET
from pocketstate.core.config import effective_page_size, validate_collection_options
from pocketstate.core.events import ACTION_CREATE, ACTION_DELETE, ACTION_UPDATE, validate_action
from pocketstate.core.ids import WILDCARD_TOPIC
from pocketstate.core.state import SyncState, Teardown
from pocketstate.errors import as_error

logger = logging.getLogger(__name__)

Record = dict[str, Any]


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------


def apply_event_to_items(items: list[Record] | None, action: str, record: Record) -> list[Record]:
    """Return a new list with one live event applied to *items*.

    - ``create`` appends *record*
    - ``update`` replaces the item with the same ``id``; unknown ids are ignored
    - ``delete`` drops the item with the same ``id``; unknown ids are ignored

    ``update`` and ``delete`` are idempotent.  ``create`` is not: a
    duplicate delivery appends twice.
    """
    if not validate_action(action):
        raise ValueError(f"Unknown record action: '{action}'")

    current = list(items or [])
    record_id = record.get("id")

    if action == ACTION_CREATE:
        return current + [record]
    if action == ACTION_UPDATE:
        return [record if item.get("id") == record_id else item for item in current]
    return [item for item in current if item.get("id") != record_id]


class CollectionState:
    """Observed state of one page of a collection."""

    def __init__(
        self,
        store: DocumentStore,
        collection: str,
        *,
        filter: str | None = None,
        sort: str | None = None,
        expand: str | None = None,
        fields: list[str] | str | None = None,
        page_size: int | None = None,
        listen: bool = False,
    ) -> None:
        options = validate_collection_options(
            {
                "collection": collection,
                "filter": filter,
                "sort": sort,
                "expand": expand,
                "fields": fields,
                "page_size": page_size,
                "listen": listen,
            }
        )
        self.store = store
        self.collection_name = options["collection"]
        self.filter_query = options.get("filter")
        self.sort_query = options.get("sort")
        self.expand_query = options.get("expand")
        self.fields_query = options.get("fields")
        self.page_size = effective_page_size(options)

        self.page = 1
        self.total_pages = 1
        self.total_items = 0

        self.state: SyncState[list[Record]] = SyncState(
            self,
            listen=options["listen"],
            name=f"CollectionState({self.collection_name})",
        )

    # ------------------------------------------------------------------
    # Observed fields
    # ------------------------------------------------------------------

    @property
    def data(self) -> list[Record] | None | Any:
        return self.state.data

    @data.setter
    def data(self, value: list[Record] | None) -> None:
        self.state.commit(value)

    @property
    def loading(self) -> bool:
        return self.state.loading

    @property
    def error(self) -> Exception | None:
        return self.state.error

    @property
    def listen(self) -> bool:
        return self.state.listen

    def attach(self, observer: Callable[[Any], None]) -> Callable[[], None]:
        return self.state.attach(observer)

    async def start(self) -> None:
        await self.state.start()

    def stop(self) -> None:
        self.state.stop()

    async def refetch(self) -> None:
        await self.state.refetch()

    def get_by_id(self, record_id: str) -> Record | None:
        """Local lookup; never calls the store."""
        for record in self.state.data or []:
            if record.get("id") == record_id:
                return record
        return None

    # ------------------------------------------------------------------
    # SyncStrategy
    # ------------------------------------------------------------------

    def _query_options(self) -> dict[str, str]:
        options: dict[str, str] = {}
        if self.filter_query:
            options["filter"] = self.filter_query
        if self.sort_query:
            options["sort"] = self.sort_query
        if self.expand_query:
            options["expand"] = self.expand_query
        if self.fields_query:
            options["fields"] = ",".join(self.fields_query)
        return options

    async def fetch(self, state: SyncState[list[Record]]) -> None:
        state.loading = True
        state.error = None

        try:
            response = await self.store.collection(self.collection_name).get_list(
                self.page, self.page_size, **self._query_options()
            )
            state.commit(list(response.items))
            self.total_pages = max(1, response.total_pages)
            self.total_items = response.total_items
        except Exception as exc:
            # An empty page is a valid "no results"; totals are kept.
            state.error = as_error(exc)
            state.commit([])
            logger.debug("%s: fetch failed: %s", state.name, exc)
        finally:
            state.loading = False

    async def subscribe(self, state: SyncState[list[Record]]) -> Teardown | None:
        await self.fetch(state)

        def on_event(event: RecordSubscription) -> None:
            state.commit(apply_event_to_items(state.data, event.action, event.record))

        try:
            return await self.store.collection(self.collection_name).subscribe(
                WILDCARD_TOPIC, on_event
            )
        except Exception as exc:
            state.error = as_error(exc)
            return None

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def _patches_locally(self) -> bool:
        # The live channel patches while subscribed; an unloaded page stays UNSET.
        return not self.state.subscribed and self.state.data is not UNSET

    async def add(self, data: Record) -> Record:
        """Create a record; appended locally unless the live channel will."""
        self.state.loading = True
        self.state.error = None

        try:
            record = await self.store.collection(self.collection_name).create(data)
            if self._patches_locally():
                self.state.commit(apply_event_to_items(self.state.data, ACTION_CREATE, record))
            return record
        except Exception as exc:
            self.state.error = as_error(exc)
            raise
        finally:
            self.state.loading = False

    async def update(self, record_id: str, data: Record) -> Record:
        """Update a record; merged locally unless the live channel will."""
        self.state.loading = True
        self.state.error = None

        try:
            record = await self.store.collection(self.collection_name).update(record_id, data)
            if self._patches_locally():
                self.state.commit(
                    [
                        {**item, **record} if item.get("id") == record_id else item
                        for item in self.state.data or []
                    ]
                )
            return record
        except Exception as exc:
            self.state.error = as_error(exc)
            raise
        finally:
            self.state.loading = False

    async def remove(self, record_id: str) -> bool:
        """Delete a record; dropped locally unless the live channel will."""
        self.state.loading = True
        self.state.error = None

        try:
            await self.store.collection(self.collection_name).delete(record_id)
            if self._patches_locally():
                self.state.commit(
                    apply_event_to_items(self.state.data, ACTION_DELETE, {"id": record_id})
                )
            return True
        except Exception as exc:
            self.state.error = as_error(exc)
            raise
        finally:
            self.state.loading = False

    # ------------------------------------------------------------------
    # Pagination
    # ------------------------------------------------------------------

    async def next_page(self) -> None:
        if self.page < self.total_pages:
            self.page += 1
            await self.state.refetch()

    async def prev_page(self) -> None:
        if self.page > 1:
            self.page -= 1
            await self.state.refetch()

    async def go_to_page(self, page: int) -> None:
        if 1 <= page <= self.total_pages:
            self.page = page
            await self.state.refetch()
