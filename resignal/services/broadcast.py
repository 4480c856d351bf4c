"""Fan-out of pipeline states to any number of independent subscribers.

Each subscriber owns a bounded ``asyncio.Queue``. Publishing hands the state
to every queue with ``put_nowait`` and never awaits; a full queue drops its
oldest state so a slow consumer can never stall the uploader. Closing never
drops a state: the end marker has a slot of its own.
"""

import asyncio
import logging
from collections.abc import AsyncIterator

from resignal.core.models import PipelineState

logger = logging.getLogger(__name__)

_CLOSED = object()


class Subscription:
    """One subscriber's ordered view of states published after it subscribed.

    Iterate with ``async for``; iteration ends when the subscription or its
    broadcaster is closed.
    """

    def __init__(self, broadcaster: "StateBroadcaster", maxsize: int) -> None:
        self._broadcaster = broadcaster
        self._maxsize = maxsize
        # One extra slot is held back for the end marker
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize + 1)
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def pending(self) -> int:
        """Number of states queued but not yet consumed."""
        return self._queue.qsize()

    def _offer(self, state: PipelineState) -> None:
        """Enqueue without blocking, dropping the oldest entry when full."""
        while self._queue.qsize() >= self._maxsize:
            self._queue.get_nowait()
            self.dropped += 1
            logger.debug("Subscriber lagging; %d state(s) dropped", self.dropped)
        self._queue.put_nowait(state)

    def _end(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    def close(self) -> None:
        """Stop receiving states and end iteration after queued ones."""
        self._broadcaster._remove(self)
        self._end()

    async def get(self) -> PipelineState:
        """Wait for the next state.

        Raises:
            StopAsyncIteration: If the subscription has ended.
        """
        item = await self._queue.get()
        if item is _CLOSED:
            # Keep the sentinel so later calls also stop
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return item

    def __aiter__(self) -> AsyncIterator[PipelineState]:
        return self

    async def __anext__(self) -> PipelineState:
        return await self.get()

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()


class StateBroadcaster:
    """Registry of subscriptions fed by a single publisher.

    Args:
        buffer_size: Default per-subscriber queue capacity.
    """

    def __init__(self, buffer_size: int = 64) -> None:
        if buffer_size < 1:
            raise ValueError("buffer_size must be >= 1")
        self._buffer_size = buffer_size
        self._subscriptions: list[Subscription] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, maxsize: int | None = None) -> Subscription:
        """Register a new subscriber. No earlier states are replayed."""
        subscription = Subscription(self, maxsize or self._buffer_size)
        self._subscriptions.append(subscription)
        logger.debug("Subscriber added (%d total)", len(self._subscriptions))
        return subscription

    def publish(self, state: PipelineState) -> None:
        """Deliver ``state`` to every current subscriber without blocking."""
        for subscription in list(self._subscriptions):
            subscription._offer(state)

    def close(self) -> None:
        """End every subscription."""
        subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            subscription._end()

    def _remove(self, subscription: Subscription) -> None:
        try:
            self._subscriptions.remove(subscription)
        except ValueError:
            pass
