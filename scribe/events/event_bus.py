"""Async fan-out bus used to publish session snapshots to observers."""

import asyncio
import logging
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

_DEFAULT_QUEUE_SIZE = 64

T = TypeVar("T")


class EventBus(Generic[T]):
    """Fan-out bus backed by one asyncio.Queue per subscriber.

    Publishing never blocks the session: when a subscriber's queue is full
    the oldest pending item is dropped in favour of the new one, since
    observers only care about the latest snapshot.
    """

    def __init__(self, maxsize: int = _DEFAULT_QUEUE_SIZE) -> None:
        self._subscribers: list[asyncio.Queue[T]] = []
        self._maxsize = maxsize

    async def emit(self, item: T) -> None:
        """Push *item* to every subscriber queue."""
        for queue in list(self._subscribers):
            if queue.full():
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass
                logger.warning("Subscriber queue full, dropped oldest update")
            queue.put_nowait(item)

    async def subscribe(self) -> asyncio.Queue[T]:
        """Create and return a new subscriber queue."""
        queue: asyncio.Queue[T] = asyncio.Queue(maxsize=self._maxsize)
        self._subscribers.append(queue)
        logger.debug("New subscriber added (total: %d)", len(self._subscribers))
        return queue

    async def unsubscribe(self, queue: asyncio.Queue[T]) -> None:
        """Remove a subscriber queue.  No-op if the queue is not registered."""
        try:
            self._subscribers.remove(queue)
            logger.debug("Subscriber removed (remaining: %d)", len(self._subscribers))
        except ValueError:
            logger.debug("Attempted to unsubscribe an unknown queue, ignoring")

    @property
    def subscriber_count(self) -> int:
        """Return the current number of active subscribers."""
        return len(self._subscribers)
