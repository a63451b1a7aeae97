"""Single-slot producer/consumer handoff with cooperative cancellation."""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Generic, TypeVar

T = TypeVar("T")


class QueueClosedError(RuntimeError):
    """Raised when sending on a queue the producer already closed."""


class HandoffQueue(Generic[T]):
    """Bounded queue that passes one item at a time between two tasks.

    `send` blocks while the previous item is still unconsumed. Both ends also
    watch a shared cancellation event: once it is set, `send` returns False
    without handing off and iteration on the consumer side stops.
    """

    def __init__(self, cancel_event: asyncio.Event, *, maxsize: int = 1) -> None:
        if maxsize < 1:
            raise ValueError("maxsize must be at least 1")
        self._queue: asyncio.Queue[T] = asyncio.Queue(maxsize=maxsize)
        self._cancel_event = cancel_event
        self._closed = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def close(self) -> None:
        """Mark the end of the stream; pending and future receives return once drained."""
        if self._closed.is_set():
            raise QueueClosedError("handoff queue already closed")
        self._closed.set()

    async def send(self, item: T) -> bool:
        """Hand `item` to the consumer. Returns False if cancellation won the race."""

        if self._closed.is_set():
            raise QueueClosedError("cannot send on a closed handoff queue")
        if self._cancel_event.is_set():
            return False

        put = asyncio.ensure_future(self._queue.put(item))
        cancelled = asyncio.ensure_future(self._cancel_event.wait())
        try:
            await asyncio.wait({put, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            await _discard(put, cancelled)

        return put.done() and not put.cancelled()

    async def receive(self) -> tuple[T | None, bool]:
        """Return `(item, True)`, or `(None, False)` when closed and drained or cancelled."""

        while True:
            if self._cancel_event.is_set():
                return None, False
            if not self._queue.empty():
                return self._queue.get_nowait(), True
            if self._closed.is_set():
                return None, False

            get = asyncio.ensure_future(self._queue.get())
            closed = asyncio.ensure_future(self._closed.wait())
            cancelled = asyncio.ensure_future(self._cancel_event.wait())
            try:
                await asyncio.wait({get, closed, cancelled}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                await _discard(get, closed, cancelled)

            if get.done() and not get.cancelled():
                return get.result(), True

    def __aiter__(self) -> AsyncIterator[T]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[T]:
        while True:
            item, ok = await self.receive()
            if not ok:
                return
            yield item


async def _discard(*futures: asyncio.Future) -> None:
    pending = [future for future in futures if not future.done()]
    for future in pending:
        future.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)
