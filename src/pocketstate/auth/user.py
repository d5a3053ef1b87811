"""Current-user adapter: follows the store's global auth session."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from pocketstate.client.base import DocumentStore
from pocketstate.core.cell import UNSET, WritableState
from pocketstate.core.config import DEFAULT_AUTH_COLLECTION
from pocketstate.errors import as_error

logger = logging.getLogger(__name__)


class CurrentUserState:
    """Observed auth identity: ``UNSET`` until first attach, ``None`` when anonymous."""

    def __init__(self, store: DocumentStore, *, collection: str = DEFAULT_AUTH_COLLECTION) -> None:
        self.store = store
        self.collection_name = collection
        self.loading = False
        self.error: Exception | None = None
        self.user_state: WritableState[dict[str, Any] | None | Any] = WritableState(
            UNSET, self._start
        )
        self._remove_listener: Callable[[], None] | None = None

    @property
    def data(self) -> dict[str, Any] | None | Any:
        return self.user_state.value

    @property
    def is_logged_in(self) -> bool:
        return self.store.auth_store.is_valid

    def attach(self, observer: Callable[[Any], None]) -> Callable[[], None]:
        return self.user_state.subscribe(observer)

    def _start(self) -> Callable[[], None]:
        self.loading = True
        self.user_state.value = self.store.auth_store.model
        self.loading = False

        self._remove_listener = self.store.auth_store.on_change(self._on_auth_change)
        return self._stop

    def _stop(self) -> None:
        if self._remove_listener is not None:
            self._remove_listener()
            self._remove_listener = None

    def _on_auth_change(self, token: str, model: dict[str, Any] | None) -> None:
        logger.debug("auth changed: %s", "signed in" if model else "signed out")
        self.user_state.value = model

    async def login(self, identity: str, password: str) -> dict[str, Any]:
        """Authenticate with a password; failures propagate to the caller."""
        self.loading = True
        self.error = None
        try:
            result = await self.store.collection(self.collection_name).auth_with_password(
                identity, password
            )
            return result.record
        except Exception as exc:
            self.error = as_error(exc)
            raise
        finally:
            self.loading = False

    async def logout(self) -> None:
        """Clear the session; the change listener publishes ``None``."""
        self.loading = True
        try:
            self.store.auth_store.clear()
        finally:
            self.loading = False
