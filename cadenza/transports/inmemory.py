"""In-memory transport for testing."""

from __future__ import annotations

import asyncio
from collections import defaultdict, deque
from typing import AsyncIterator, Deque, Dict, List, Optional, Tuple

from ..contracts import JobMessage
from .base import BaseTransport

RawMessage = Tuple[str, JobMessage]


class InMemoryTransport(BaseTransport[RawMessage]):
    """Simple in-process queue for unit tests.

    The raw message is ``(topic, message)``. Rejected messages are kept in
    ``dead_letters`` so tests can inspect them.
    """

    def __init__(self) -> None:
        self._queues: Dict[str, Deque[RawMessage]] = defaultdict(deque)
        self._lock = asyncio.Lock()
        self.dead_letters: List[RawMessage] = []

    def pending(self, topic: str) -> List[JobMessage]:
        """Messages waiting on ``topic``, oldest first."""
        return [message for _, message in self._queues[topic]]

    async def publish(self, topic: str, message: JobMessage) -> None:
        """Publish message to in-memory queue."""
        async with self._lock:
            self._queues[topic].append((topic, message))

    async def subscribe(
        self, topic: str, lifespan: Optional[float] = None
    ) -> AsyncIterator[Tuple[RawMessage, JobMessage]]:
        """Subscribe to messages from topic.

        Args:
            topic: The topic to subscribe to
            lifespan: Maximum time in seconds to keep connection open. If None, runs indefinitely.
        """
        start_time = asyncio.get_event_loop().time() if lifespan else None

        while True:
            if lifespan and start_time:
                elapsed = asyncio.get_event_loop().time() - start_time
                if elapsed >= lifespan:
                    break

            raw_message = None
            async with self._lock:
                if self._queues[topic]:
                    raw_message = self._queues[topic].popleft()
            if raw_message is not None:
                yield raw_message, raw_message[1]
                continue

            await asyncio.sleep(0.01)

    async def ack(self, raw_message: RawMessage) -> None:
        """No-op acknowledgment for in-memory transport."""
        pass

    async def nack(self, raw_message: RawMessage, requeue: bool = True) -> None:
        """Put the message back at the head of its queue or dead-letter it."""
        async with self._lock:
            if requeue:
                self._queues[raw_message[0]].appendleft(raw_message)
            else:
                self.dead_letters.append(raw_message)
