"""Bounded in-memory channel delivering agent events to observers."""
from __future__ import annotations

import asyncio
import logging
from typing import List

from agentflow.core.models import AgentEvent

logger = logging.getLogger(__name__)

DEFAULT_EVENT_CAPACITY = 100


class EventChannel:
    """Async event buffer with a fixed capacity.

    Publishing never blocks the emitter. When the buffer is full the oldest
    event is discarded to make room and ``dropped`` is incremented.
    """

    def __init__(self, capacity: int = DEFAULT_EVENT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("event channel capacity must be at least 1")
        self.capacity = capacity
        self.dropped = 0
        self._queue: asyncio.Queue[AgentEvent] = asyncio.Queue(maxsize=capacity)

    def publish(self, event: AgentEvent) -> None:
        """Append an event, evicting the oldest one on overflow."""
        if self._queue.full():
            evicted = self._queue.get_nowait()
            self.dropped += 1
            logger.warning(
                "Event channel full (capacity %d), dropped %s event from %s",
                self.capacity,
                evicted.type,
                evicted.timestamp.isoformat(),
            )
        self._queue.put_nowait(event)

    async def get(self) -> AgentEvent:
        """Wait for the next event."""
        return await self._queue.get()

    def drain(self) -> List[AgentEvent]:
        """Remove and return every buffered event without waiting."""
        events: List[AgentEvent] = []
        while not self._queue.empty():
            events.append(self._queue.get_nowait())
        return events

    def __len__(self) -> int:
        return self._queue.qsize()
