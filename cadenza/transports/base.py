"""Base transport interface for cadenza job messaging."""

from __future__ import annotations

import abc
from typing import AsyncIterator, Generic, Optional, Tuple, TypeVar

from ..contracts import JobMessage

RawMessageT = TypeVar("RawMessageT")


class BaseTransport(Generic[RawMessageT], metaclass=abc.ABCMeta):
    """Abstract base transport for job queues.

    A consumer must settle every received message exactly once: ``ack`` when
    it is done with it, ``nack(requeue=True)`` to hand it back, or
    ``nack(requeue=False)`` to move it to the dead-letter destination.
    """

    async def connect(self) -> None:
        """Open connection to broker (no-op by default)."""
        pass

    async def disconnect(self) -> None:
        """Close connection to broker (no-op by default)."""
        pass

    async def __aenter__(self) -> "BaseTransport[RawMessageT]":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.disconnect()

    @abc.abstractmethod
    async def publish(self, topic: str, message: JobMessage) -> None:
        """Append ``message`` to ``topic``."""
        raise NotImplementedError

    @abc.abstractmethod
    def subscribe(
        self, topic: str, lifespan: Optional[float] = None
    ) -> AsyncIterator[Tuple[RawMessageT, JobMessage]]:
        """Yield raw transport message and JobMessage pairs.

        Args:
            topic: The topic to consume.
            lifespan: Seconds after which the iterator stops. If None, runs indefinitely.
        """
        raise NotImplementedError

    @abc.abstractmethod
    async def ack(self, raw_message: RawMessageT) -> None:
        """Acknowledge successful processing."""
        raise NotImplementedError

    @abc.abstractmethod
    async def nack(self, raw_message: RawMessageT, requeue: bool = True) -> None:
        """Return the message to its topic or dead-letter it."""
        raise NotImplementedError
