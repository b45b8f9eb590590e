import asyncio
import logging
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 8

_CLOSED = object()


class EventChannel:
    """
    Bounded single-producer/single-consumer event stream.

    The producer awaits ``send`` (blocking while the buffer is full) and must
    ``close`` the channel when done; the consumer iterates with ``async for``
    until the channel is closed and drained.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=capacity)
        self._closed = False
        self._drained = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def drained(self) -> bool:
        """True once the consumer has seen the end of the stream."""
        return self._drained

    async def send(self, event: Any) -> None:
        if self._closed:
            raise RuntimeError("send on closed EventChannel")
        await self._queue.put(event)

    def close(self) -> None:
        """Mark the end of the stream. Never blocks; safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            # The consumer sees the closed flag once the buffer is empty.
            pass

    def __aiter__(self):
        return self

    async def __anext__(self) -> Any:
        if self._drained:
            raise StopAsyncIteration
        if self._closed and self._queue.empty():
            self._drained = True
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            self._drained = True
            logger.debug("Event channel drained")
            raise StopAsyncIteration
        return item
