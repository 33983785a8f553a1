"""Job processors of the lifecycle controller."""

from .publisher import JobEventPublisher
from .result import JobOutcome, JobResult
from .terminate import (
    TerminateInstancesJobProcessor,
    TerminationOutcome,
    TerminationResult,
)
from .terminate_then_run import TerminateThenRunJobProcessor
from .worker import JobEventWorker, JobProcessor

__all__ = [
    "JobEventPublisher",
    "JobEventWorker",
    "JobOutcome",
    "JobProcessor",
    "JobResult",
    "TerminateInstancesJobProcessor",
    "TerminateThenRunJobProcessor",
    "TerminationOutcome",
    "TerminationResult",
]
