"""Cadenza: workflow-instance lifecycle controller."""

from .contracts import JobMessage, RunInstancesJobEvent, TerminateThenRunJobEvent
from .jobs import (
    JobEventPublisher,
    JobEventWorker,
    JobResult,
    TerminateInstancesJobProcessor,
    TerminateThenRunJobProcessor,
)
from .persistence import get_repository
from .transports import get_transport

__version__ = "0.1.0"
__all__ = [
    "JobEventPublisher",
    "JobEventWorker",
    "JobMessage",
    "JobResult",
    "RunInstancesJobEvent",
    "TerminateInstancesJobProcessor",
    "TerminateThenRunJobEvent",
    "TerminateThenRunJobProcessor",
    "get_repository",
    "get_transport",
]
