"""Single-record adapter.

``RecordState`` keeps one record of a collection in sync.  The record is
located by ``id`` or, failing that, as the first match of ``filter``.
With ``listen=True`` it follows the record's live channel after the first
fetch; with ``autosave=True`` every local edit is persisted in the
background.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from pocketstate.client.base import DocumentStore, RecordSubscription
from pocketstate.core.config import validate_record_options
from pocketstate.core.events import ACTION_DELETE, ACTION_UPDATE, strip_reserved
from pocketstate.core.state import SyncState, Teardown
from pocketstate.errors import as_error

logger = logging.getLogger(__name__)

Record = dict[str, Any]


class RecordState:
    """Observed state of one record."""

    def __init__(
        self,
        store: DocumentStore,
        collection: str,
        *,
        id: str | None = None,
        filter: str | None = None,
        expand: str | None = None,
        fields: list[str] | str | None = None,
        listen: bool = False,
        autosave: bool = False,
    ) -> None:
        options = validate_record_options(
            {
                "collection": collection,
                "id": id,
                "filter": filter,
                "expand": expand,
                "fields": fields,
                "listen": listen,
                "autosave": autosave,
            }
        )
        self.store = store
        self.collection_name = options["collection"]
        self.record_id = options.get("id")
        self.filter_query = options.get("filter")
        self.expand_query = options.get("expand")
        self.fields_query = options.get("fields")
        self.autosave_enabled = options["autosave"]

        self.state: SyncState[Record] = SyncState(
            self,
            listen=options["listen"],
            name=f"RecordState({self.collection_name})",
        )

    # ------------------------------------------------------------------
    # Observed fields
    # ------------------------------------------------------------------

    @property
    def data(self) -> Record | None | Any:
        return self.state.data

    @data.setter
    def data(self, value: Record | None) -> None:
        """Replace the snapshot; schedules a save when autosave is on."""
        self.state.commit(value)
        if self.autosave_enabled and value:
            self._schedule_autosave()

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

    # ------------------------------------------------------------------
    # SyncStrategy
    # ------------------------------------------------------------------

    def _query_options(self) -> dict[str, str]:
        options: dict[str, str] = {}
        if self.expand_query:
            options["expand"] = self.expand_query
        if self.fields_query:
            options["fields"] = ",".join(self.fields_query)
        return options

    async def fetch(self, state: SyncState[Record]) -> None:
        state.loading = True
        state.error = None

        try:
            service = self.store.collection(self.collection_name)
            if self.record_id:
                record = await service.get_one(self.record_id, **self._query_options())
            elif self.filter_query:
                response = await service.get_list(
                    1, 1, filter=self.filter_query, **self._query_options()
                )
                record = response.items[0] if response.items else None
            else:
                record = None
            state.commit(record)
        except Exception as exc:
            # Keep whatever we had: there is no safe stand-in for one record.
            state.error = as_error(exc)
            logger.debug("%s: fetch failed: %s", state.name, exc)
        finally:
            state.loading = False

    async def subscribe(self, state: SyncState[Record]) -> Teardown | None:
        await self.fetch(state)

        current = state.data
        record_id = (current.get("id") if current else None) or self.record_id
        if not record_id:
            # Nothing to follow.
            return None

        def on_event(event: RecordSubscription) -> None:
            if event.action == ACTION_UPDATE:
                state.commit(event.record)
            elif event.action == ACTION_DELETE:
                state.commit(None)

        try:
            unsubscribe = await self.store.collection(self.collection_name).subscribe(
                record_id, on_event
            )
        except Exception as exc:
            state.error = as_error(exc)
            return None
        return unsubscribe

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def save(self) -> Record | None:
        """Persist the current snapshot, minus its reserved fields.

        Returns the record as stored, or ``None`` when there is nothing to
        save.  While a live channel is open the snapshot is left for the
        channel's update event to refresh.
        """
        current = self.state.data
        if not current:
            return None

        self.state.loading = True
        self.state.error = None
        try:
            record = await self.store.collection(self.collection_name).update(
                current["id"], strip_reserved(current)
            )
            if not self.state.subscribed:
                self.state.commit(record)
            return record
        except Exception as exc:
            self.state.error = as_error(exc)
            raise
        finally:
            self.state.loading = False

    def set_field(self, name: str, value: Any) -> Record | None:
        """Return a new snapshot with *name* set to *value* and make it current."""
        return self.patch(**{name: value})

    def patch(self, **fields: Any) -> Record | None:
        """Return a new snapshot with *fields* merged in and make it current.

        With autosave on, a background save is scheduled.  Does nothing and
        returns ``None`` while the snapshot is empty.
        """
        current = self.state.data
        if not current:
            return None
        updated = {**current, **fields}
        self.data = updated
        return updated

    async def update_field(self, name: str, value: Any) -> Record | None:
        """Set one field locally, then persist it.

        Without autosave this awaits ``save()`` and returns its result; with
        autosave the save runs in the background and the local value is
        returned.
        """
        if not self.state.data:
            return None

        updated = self.set_field(name, value)
        if not self.autosave_enabled:
            return await self.save()
        return updated

    def _schedule_autosave(self) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("%s: autosave skipped, no running event loop", self.state.name)
            return
        self.state.spawn(self._autosave())

    async def _autosave(self) -> None:
        try:
            await self.save()
        except Exception as exc:
            logger.error("%s: autosave failed: %s", self.state.name, exc)
