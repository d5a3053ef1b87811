"""Observable value cell with attach-count lifecycle.

A ``WritableState`` holds one value and a list of observers.  The first
observer to attach triggers the *start* callback; the callable it returns
(if any) runs when the last observer detaches.  Observers are
fire-and-forget: failures are logged but never interrupt the writer.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Observer = Callable[[T], None]
StopNotifier = Callable[[], None]
StartNotifier = Callable[[], StopNotifier | None]


class _Unset:
    """Sentinel for a snapshot that has not been resolved yet."""

    _instance: _Unset | None = None

    def __new__(cls) -> _Unset:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNSET"


UNSET = _Unset()


class WritableState(Generic[T]):
    """A mutable value observed by zero or more callbacks."""

    def __init__(self, initial: T, start: StartNotifier | None = None) -> None:
        self._value = initial
        self._start = start
        self._stop: StopNotifier | None = None
        self._observers: list[Observer] = []

    @property
    def value(self) -> T:
        return self._value

    @value.setter
    def value(self, new: T) -> None:
        self._value = new
        self._notify()

    def set(self, new: T) -> None:
        self.value = new

    def update(self, fn: Callable[[T], T]) -> None:
        self.value = fn(self._value)

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Attach *observer* and return a callable that detaches it.

        The observer is called right away with the current value.  Detaching
        twice is harmless.
        """
        # Wrap so the same function can be attached more than once.
        def _call(value: T) -> None:
            observer(value)

        # start() runs before the observer joins, so values it writes
        # reach the observer once, through the initial call below.
        if not self._observers and self._start is not None:
            self._stop = self._start()
        self._observers.append(_call)

        _safe_call(_call, self._value)

        def unsubscribe() -> None:
            try:
                self._observers.remove(_call)
            except ValueError:
                return
            if not self._observers and self._stop is not None:
                stop, self._stop = self._stop, None
                stop()

        return unsubscribe

    def _notify(self) -> None:
        for fn in list(self._observers):
            _safe_call(fn, self._value)


def _safe_call(fn: Observer, value: object) -> None:
    try:
        fn(value)
    except Exception:
        logger.exception("observer raised while handling a state change")
