"""Consume job events from a transport and act on their results."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Protocol

from ..config import JobsConfig
from ..contracts import JobMessage
from ..transports.base import BaseTransport
from ..utils.retry import schedule_retry
from .result import JobResult

logger = logging.getLogger(__name__)


class JobProcessor(Protocol):
    async def process(self, event: Any) -> JobResult:
        """Handle one job event."""


class JobEventWorker:
    """Listens on one topic and dispatches events by their ``type``."""

    def __init__(
        self,
        transport: BaseTransport,
        topic: str,
        processors: Mapping[str, JobProcessor],
        config: Optional[JobsConfig] = None,
    ) -> None:
        self._transport = transport
        self._topic = topic
        self._processors: Dict[str, JobProcessor] = dict(processors)
        self._config = config or JobsConfig()

    async def start(self, lifespan: Optional[float] = None) -> None:
        """Start listening for job messages on the worker's topic."""
        logger.info(f"Worker listening on [{self._topic}]")
        async for raw_message, message in self._transport.subscribe(
            self._topic, lifespan=lifespan
        ):
            await self.handle(raw_message, message)

    async def handle(self, raw_message: Any, message: JobMessage) -> JobResult:
        result = await self._dispatch(message)

        if result.is_success:
            await self._transport.ack(raw_message)
        elif result.is_retryable and message.attempt < self._config.max_attempts:
            logger.info(
                f"Retrying message {message.message_id} "
                f"(attempt {message.attempt}/{self._config.max_attempts}): {result.reason}"
            )
            await schedule_retry(
                message.attempt,
                base=self._config.backoff_base,
                jitter=self._config.backoff_jitter,
                max_delay=self._config.backoff_max,
            )
            await self._transport.publish(self._topic, message.next_attempt())
            await self._transport.ack(raw_message)
        else:
            logger.error(
                f"Dead-lettering message {message.message_id} after attempt "
                f"{message.attempt}: {result.outcome.value} {result.reason}"
            )
            await self._transport.nack(raw_message, requeue=False)
        return result

    async def _dispatch(self, message: JobMessage) -> JobResult:
        event = message.event
        processor = self._processors.get(event.type)
        if processor is None:
            return JobResult.internal(f"No processor registered for {event.type} job events")
        try:
            return await processor.process(event)
        except Exception as e:
            logger.exception(f"Processor for {event.type} failed on {message.message_id}")
            return JobResult.retryable(f"{type(e).__name__}: {e}")
