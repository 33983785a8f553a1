"""Publish job events to their transport topics."""

from __future__ import annotations

import logging
from typing import Optional

from ..config import JobsConfig
from ..contracts import JobEvent, JobMessage, RunInstancesJobEvent, TerminateThenRunJobEvent
from ..errors import RetryableError
from ..transports.base import BaseTransport

logger = logging.getLogger(__name__)


class JobEventPublisher:
    """Wraps job events in a :class:`JobMessage` and routes them by type."""

    def __init__(
        self, transport: BaseTransport, config: Optional[JobsConfig] = None
    ) -> None:
        self.transport = transport
        self.config = config or JobsConfig()

    def topic_for(self, event: JobEvent) -> str:
        if isinstance(event, TerminateThenRunJobEvent):
            return self.config.terminate_topic
        if isinstance(event, RunInstancesJobEvent):
            return self.config.run_topic
        raise ValueError(f"Unsupported job event: {type(event).__name__}")

    async def publish_or_raise(
        self, event: JobEvent, correlation_id: Optional[str] = None
    ) -> JobMessage:
        """Publish ``event``; transport failures surface as :class:`RetryableError`."""
        message = (
            JobMessage(event=event, correlation_id=correlation_id)
            if correlation_id
            else JobMessage(event=event)
        )
        topic = self.topic_for(event)
        try:
            await self.transport.publish(topic, message)
        except Exception as e:
            raise RetryableError(
                f"Failed to publish {event.type} job event to [{topic}]: {e}",
                detail={"topic": topic, "message_id": message.message_id},
            ) from e
        logger.info(f"Published {event.type} job event {message.message_id} to [{topic}]")
        return message
