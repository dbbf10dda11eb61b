"""Async stream view of a live subscription.

Backends call listeners from whatever thread performed the write (or from
the Firestore watch thread). ``SnapshotStream`` hands every delivery over to
the event loop through a queue, so async code can simply iterate::

    async with SnapshotStream.open(store, path) as stream:
        async for snapshot in stream:
            ...
"""

import asyncio
import logging
from typing import AsyncIterator, Generic, Optional, TypeVar

from tableat.db.store import DocumentStore, Snapshot, Subscription

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CLOSED = object()


class SnapshotStream(Generic[T]):
    """Async iterator over deliveries; ``aclose()`` disposes the subscription."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None, maxsize: int = 0):
        self._loop = loop or asyncio.get_running_loop()
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._subscription: Optional[Subscription] = None
        self._closed = False

    @classmethod
    def open(
        cls,
        store: DocumentStore,
        path: str,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> "SnapshotStream[Snapshot]":
        stream: SnapshotStream[Snapshot] = cls()
        stream.bind(store.subscribe(path, stream.push, order_by=order_by, descending=descending))
        return stream

    def bind(self, subscription: Subscription) -> None:
        self._subscription = subscription
        if not subscription.active:
            self._finish()

    @property
    def subscription(self) -> Optional[Subscription]:
        return self._subscription

    def push(self, item: T) -> None:
        """Listener entry point; safe to call from any thread."""
        if self._closed:
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            self._queue.put_nowait(item)
        else:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, item)

    def _finish(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    async def aclose(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
        self._finish()

    def __aiter__(self) -> AsyncIterator[T]:
        return self

    async def __anext__(self) -> T:
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> "SnapshotStream[T]":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
