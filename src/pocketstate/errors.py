"""Error types shared by the adapters, the store client and the CLI."""

from __future__ import annotations

from typing import Any


class PocketStateError(Exception):
    """Base class for all pocketstate errors."""


class ConfigError(PocketStateError, ValueError):
    """Raised when adapter options are invalid at construction time."""


class StoreError(PocketStateError):
    """Raised by a document store when a remote call fails.

    *status* mirrors the HTTP status the backend would have answered with
    (``0`` when the request never reached it).  *data* carries any
    structured error payload.
    """

    def __init__(self, status: int, message: str, data: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.message = message
        self.data = data or {}

    def to_dict(self) -> dict[str, Any]:
        return {"status": self.status, "message": self.message, "data": self.data}


def as_error(exc: BaseException | object) -> Exception:
    """Normalize anything raised or rejected into an ``Exception``."""
    if isinstance(exc, Exception):
        return exc
    return PocketStateError(str(exc))
