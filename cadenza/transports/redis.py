"""Redis transport for cross-process job messaging."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Optional, Tuple

try:
    import redis.asyncio as redis
except ImportError:
    redis = None

from pydantic import ValidationError

from ..constants import DEFAULT_DEAD_LETTER_TOPIC
from ..contracts import JobMessage
from .base import BaseTransport

logger = logging.getLogger(__name__)

RawMessage = Tuple[str, str]


class RedisTransport(BaseTransport[RawMessage]):
    """Redis-based transport using one list per topic.

    Producers ``lpush`` and consumers ``brpop``, so a list behaves as a FIFO
    queue. The raw message is ``(queue name, payload)``.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
        dead_letter_topic: str = DEFAULT_DEAD_LETTER_TOPIC,
    ) -> None:
        if redis is None:
            raise ImportError("redis package is required for RedisTransport")

        self.host = host
        self.port = port
        self.db = db
        self.password = password
        self.dead_letter_topic = dead_letter_topic
        self._redis: Optional[Any] = None

    @staticmethod
    def queue_name(topic: str) -> str:
        return f"cadenza:{topic}"

    async def connect(self) -> None:
        """Connect to Redis."""
        self._redis = redis.Redis(
            host=self.host,
            port=self.port,
            db=self.db,
            password=self.password,
            decode_responses=True,
        )
        await self._redis.ping()

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    async def publish(self, topic: str, message: JobMessage) -> None:
        """Publish message to Redis list (acting as queue)."""
        if not self._redis:
            await self.connect()
        await self._redis.lpush(self.queue_name(topic), message.to_json())

    async def subscribe(
        self, topic: str, lifespan: Optional[float] = None
    ) -> AsyncIterator[Tuple[RawMessage, JobMessage]]:
        """Subscribe to messages from Redis queue."""
        if not self._redis:
            await self.connect()

        queue_name = self.queue_name(topic)
        start_time = asyncio.get_event_loop().time() if lifespan else None

        while True:
            if lifespan and start_time:
                elapsed = asyncio.get_event_loop().time() - start_time
                if elapsed >= lifespan:
                    break

            result = await self._redis.brpop(queue_name, timeout=1)

            if result:
                _, payload = result
                try:
                    message = JobMessage.from_json(payload)
                except ValidationError as e:
                    logger.error(f"Failed to parse message on {queue_name}: {e}")
                    await self._redis.lpush(
                        self.queue_name(self.dead_letter_topic), payload
                    )
                    continue
                yield (queue_name, payload), message

            await asyncio.sleep(0.01)

    async def ack(self, raw_message: RawMessage) -> None:
        """No-op acknowledgment for Redis transport (message already consumed)."""
        pass

    async def nack(self, raw_message: RawMessage, requeue: bool = True) -> None:
        """Push the payload back to the consuming end or to the dead-letter list."""
        if not self._redis:
            await self.connect()
        queue_name, payload = raw_message
        if requeue:
            await self._redis.rpush(queue_name, payload)
        else:
            await self._redis.lpush(self.queue_name(self.dead_letter_topic), payload)
