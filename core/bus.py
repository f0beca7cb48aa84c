"""Event channel between stream readers and the forwarder"""
import asyncio
import logging
from typing import AsyncIterator, Optional

from .events import Event

logger = logging.getLogger(__name__)


class EventChannel:
    """
    Per-run queue of normalized events.

    Any number of producers publish; a single consumer iterates until the
    producers call finish(). maxsize=0 keeps the queue unbounded, a positive
    maxsize makes publishers wait for the consumer.
    """

    def __init__(self, maxsize: int = 0):
        self.queue: asyncio.Queue[Optional[Event]] = asyncio.Queue(maxsize=maxsize)
        self._finished = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def publish(self, event: Event):
        """Publish event to channel"""
        if self._finished or self._closed:
            logger.debug(f"Dropped {event.event} on closed channel")
            return
        await self._put(event)

    def finish(self):
        """Producer side: no more events, consumer stops after the queued ones"""
        if self._finished or self._closed:
            return
        self._finished = True
        try:
            self.queue.put_nowait(None)
        except asyncio.QueueFull:
            # The consumer notices the end once it empties the queue
            pass

    def close(self):
        """Consumer side: stop listening and discard anything still queued"""
        if self._closed:
            return
        self._closed = True
        self._drain()

    async def _put(self, item: Event):
        await self.queue.put(item)
        if self._closed:
            # Woken by a drain after close; pass the wakeup on to the next waiter
            self._drain()

    def _drain(self):
        # Each get wakes one publisher blocked on a full queue
        while not self.queue.empty():
            self.queue.get_nowait()

    async def __aiter__(self) -> AsyncIterator[Event]:
        while not self._closed:
            if self._finished and self.queue.empty():
                return
            event = await self.queue.get()
            if event is None:
                return
            yield event
