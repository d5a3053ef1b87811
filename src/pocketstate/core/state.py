"""Generic synchronization core shared by every data adapter.

A ``SyncState`` owns the observed snapshot cell, the ``loading`` and
``error`` fields, and at most one live subscription.  What "fetch" and
"subscribe" mean is supplied by a strategy object (see ``SyncStrategy``);
the core only decides *when* to call them:

- first observer attaches -> ``start()`` -> subscribe if ``listen`` else fetch
- last observer detaches  -> ``stop()``  -> tear the subscription down
- ``refetch()``           -> one fetch, subscription untouched
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any, Generic, Protocol, TypeVar

from pocketstate.core.cell import UNSET, WritableState

logger = logging.getLogger(__name__)

T = TypeVar("T")

# A teardown may be synchronous or return an awaitable (e.g. a remote unsubscribe).
Teardown = Callable[[], "Awaitable[None] | None"]


class SyncStrategy(Protocol[T]):
    """How an adapter loads and follows its data."""

    async def fetch(self, state: SyncState[T]) -> None:
        """Load the data once and commit it to *state*."""
        ...

    async def subscribe(self, state: SyncState[T]) -> Teardown | None:
        """Load the data, open a live channel, and return its teardown.

        Returning ``None`` means no channel could be opened.
        """
        ...


class SyncState(Generic[T]):
    """Fetch/subscribe state machine around one observed snapshot."""

    def __init__(
        self,
        strategy: SyncStrategy[T],
        *,
        listen: bool = False,
        init: Callable[[], Awaitable[None]] | None = None,
        name: str = "state",
    ) -> None:
        self.strategy = strategy
        self.listen = listen
        self.name = name
        self.loading = False
        self.error: Exception | None = None
        self.generation = 0

        self.cell: WritableState[T | None | Any] = WritableState(UNSET, self._on_first_attach)
        self._init = init
        self._init_task: asyncio.Future[None] | None = None
        self._unsubscribe: Teardown | None = None
        self._subscribing = False
        self._tasks: set[asyncio.Future[Any]] = set()

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    @property
    def data(self) -> T | None | Any:
        return self.cell.value

    def commit(self, value: T | None) -> None:
        """Assign the snapshot without any adapter side effects."""
        self.cell.value = value

    @property
    def subscribed(self) -> bool:
        """``True`` while a live channel is open."""
        return self._unsubscribe is not None

    def is_current(self, generation: int) -> bool:
        """``False`` once ``stop()`` has run since *generation* was read."""
        return generation == self.generation

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Run the one-time init, then subscribe or fetch.

        Safe to call repeatedly: while a subscription is open (or being
        opened) a further call does nothing.
        """
        await self._ensure_init()

        if self.listen:
            await self._open_subscription()
        else:
            await self.strategy.fetch(self)

    def stop(self) -> None:
        """Tear down the live channel, if any.  Never touches the snapshot.

        An awaitable teardown is scheduled on the running loop, or run to
        completion here when no loop is running.
        """
        self.generation += 1
        teardown = self._unsubscribe
        if teardown is None:
            return

        logger.debug("%s: closing live channel", self.name)
        result = teardown()
        if inspect.isawaitable(result):
            try:
                asyncio.get_running_loop()
            except RuntimeError:
                # No loop to schedule on: finish the teardown before returning.
                asyncio.run(_wait(result))
            else:
                self.spawn(result)
        self._unsubscribe = None

    async def refetch(self) -> None:
        """Fetch once regardless of ``listen``."""
        await self.strategy.fetch(self)

    def attach(self, observer: Callable[[Any], None]) -> Callable[[], None]:
        """Observe the snapshot; returns the detach callable.

        Must be called from inside a running event loop: the first attach
        schedules ``start()`` on it.
        """
        return self.cell.subscribe(observer)

    async def _ensure_init(self) -> None:
        if self._init is None:
            return
        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._init())
        await self._init_task

    async def _open_subscription(self) -> None:
        if self._unsubscribe is not None or self._subscribing:
            return

        self._subscribing = True
        generation = self.generation
        try:
            teardown = await self.strategy.subscribe(self)
        finally:
            self._subscribing = False

        if teardown is None:
            return
        if not self.is_current(generation):
            # stop() ran while the channel was being opened.
            logger.debug("%s: stopped during subscribe, closing channel", self.name)
            result = teardown()
            if inspect.isawaitable(result):
                await result
            return

        logger.debug("%s: live channel open", self.name)
        self._unsubscribe = teardown

    def _on_first_attach(self) -> Callable[[], None]:
        self.spawn(self.start())
        return self.stop

    # ------------------------------------------------------------------
    # Background work
    # ------------------------------------------------------------------

    def spawn(self, aw: Awaitable[Any] | Coroutine[Any, Any, Any]) -> asyncio.Future[Any]:
        """Schedule *aw* on the running loop and keep a reference until done."""
        task = asyncio.ensure_future(aw)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Future[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("%s: background task failed: %s", self.name, exc)

    async def drain(self) -> None:
        """Wait for all background work scheduled so far."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


async def _wait(aw: Awaitable[Any]) -> None:
    await aw
