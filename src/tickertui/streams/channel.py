"""Bounded single-consumer channel with an end-of-stream signal."""

import asyncio
from typing import Generic, Optional, TypeVar

T = TypeVar('T')


class ChannelClosed(Exception):
    """Raised when sending on a channel whose producer side has been closed."""


class FeedChannel(Generic[T]):
    """
    Bounded queue between one feed task and the supervisor.

    `send` waits while the channel is full. Once `close` is called the
    consumer still receives everything already queued, then `None`.
    """

    def __init__(self, maxsize: int):
        if maxsize <= 0:
            raise ValueError("maxsize must be > 0")
        self.maxsize = maxsize
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def qsize(self) -> int:
        return self._queue.qsize()

    def close(self) -> None:
        self._closed.set()

    async def send(self, record: T) -> None:
        if self._closed.is_set():
            raise ChannelClosed("channel is closed")
        await self._queue.put(record)

    async def receive(self) -> Optional[T]:
        """Return the next record, or None once closed and drained."""
        if not self._queue.empty():
            return self._queue.get_nowait()
        if self._closed.is_set():
            return None

        getter = asyncio.ensure_future(self._queue.get())
        closer = asyncio.ensure_future(self._closed.wait())
        try:
            await asyncio.wait({getter, closer}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            closer.cancel()
            if not getter.done():
                getter.cancel()

        if getter.done() and not getter.cancelled():
            return getter.result()
        if not self._queue.empty():
            return self._queue.get_nowait()
        return None
