"""Bounded outbound event channels."""

import asyncio
from collections.abc import AsyncIterator
from typing import Generic, TypeVar

from .config import CHANNEL_MAX_SIZE
from .logging_utils import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class EventChannel(Generic[T]):
    """
    Single-consumer FIFO channel for engine events.

    Publishing never blocks the producer. When the consumer falls behind and
    the channel is full, the oldest pending event is discarded so that the
    newest state is always delivered; order of the retained events is
    preserved.
    """

    def __init__(self, name: str, max_size: int = CHANNEL_MAX_SIZE) -> None:
        if max_size <= 0:
            raise ValueError("Channel size must be positive")
        self.name = name
        self.max_size = max_size
        self._queue: asyncio.Queue[T] = asyncio.Queue(maxsize=max_size)
        self._published = 0
        self._dropped = 0

    def publish(self, event: T) -> None:
        """Append an event, discarding the oldest one if the channel is full."""
        if self._queue.full():
            self._queue.get_nowait()
            self._dropped += 1
            logger.warning(
                f"⚠️ {self.name} channel full, dropped oldest event "
                f"({self._dropped} dropped so far)"
            )
        self._queue.put_nowait(event)
        self._published += 1

    async def get(self) -> T:
        """Wait for and return the next event."""
        return await self._queue.get()

    def get_nowait(self) -> T:
        """
        Return the next event without waiting.

        Raises:
            asyncio.QueueEmpty: If no event is pending
        """
        return self._queue.get_nowait()

    def drain(self) -> list[T]:
        """Remove and return all pending events in order."""
        events = []
        while not self._queue.empty():
            events.append(self._queue.get_nowait())
        return events

    def pending(self) -> int:
        """Number of events waiting to be consumed."""
        return self._queue.qsize()

    @property
    def published_count(self) -> int:
        return self._published

    @property
    def dropped_count(self) -> int:
        return self._dropped

    async def __aiter__(self) -> AsyncIterator[T]:
        while True:
            yield await self._queue.get()
