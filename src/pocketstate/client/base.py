"""Document store client protocol.

The adapters talk to the backend only through these interfaces, which
follow the PocketBase SDK surface: a store hands out one ``RecordService``
per collection and exposes a global ``AuthStore``.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from pocketstate.core.events import validate_action


@dataclass
class ListResult:
    page: int
    per_page: int
    total_items: int
    total_pages: int
    items: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class RecordSubscription:
    action: str
    record: dict[str, Any]

    def __post_init__(self) -> None:
        if not validate_action(self.action):
            raise ValueError(f"Unknown record action: '{self.action}'")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RecordSubscription:
        return cls(action=data["action"], record=dict(data.get("record") or {}))


@dataclass
class AuthResult:
    token: str
    record: dict[str, Any]


SubscriptionCallback = Callable[[RecordSubscription], None]
UnsubscribeFunc = Callable[[], Awaitable[None]]
AuthChangeCallback = Callable[[str, "dict[str, Any] | None"], None]


@runtime_checkable
class RecordService(Protocol):
    """CRUD, listing and realtime access to one collection."""

    async def get_one(
        self,
        record_id: str,
        *,
        expand: str | None = None,
        fields: str | None = None,
    ) -> dict[str, Any]:
        """Fetch a single record, raising ``StoreError`` (404) when missing."""
        ...

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
        """Fetch one page of records."""
        ...

    async def create(self, data: dict[str, Any]) -> dict[str, Any]:
        ...

    async def update(self, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
        ...

    async def delete(self, record_id: str) -> bool:
        ...

    async def subscribe(self, topic: str, callback: SubscriptionCallback) -> UnsubscribeFunc:
        """Follow *topic* (a record id or ``"*"``); returns the unsubscribe coroutine function."""
        ...

    async def unsubscribe(self, topic: str | None = None) -> None:
        """Drop every callback on *topic*, or on the whole collection when ``None``."""
        ...

    async def auth_with_password(self, identity: str, password: str) -> AuthResult:
        ...


@runtime_checkable
class AuthStore(Protocol):
    """The store's global session."""

    @property
    def token(self) -> str:
        ...

    @property
    def model(self) -> dict[str, Any] | None:
        ...

    @property
    def is_valid(self) -> bool:
        ...

    def save(self, token: str, model: dict[str, Any] | None) -> None:
        ...

    def clear(self) -> None:
        ...

    def on_change(
        self,
        callback: AuthChangeCallback,
        fire_immediately: bool = False,
    ) -> Callable[[], None]:
        """Register *callback*; returns a callable that removes it."""
        ...


@runtime_checkable
class DocumentStore(Protocol):
    auth_store: AuthStore

    def collection(self, name: str) -> RecordService:
        ...
