"""Outcome of processing one job event."""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Tuple

from pydantic import BaseModel, ConfigDict

from ..models import InstanceRunUuid


class JobOutcome(str, Enum):
    SUCCESS = "SUCCESS"
    RETRYABLE = "RETRYABLE"
    INTERNAL = "INTERNAL"


class JobResult(BaseModel):
    """Classification of a job attempt for the hosting pipeline.

    RETRYABLE asks the pipeline to deliver the job again later, INTERNAL means
    the job can never succeed and should be dead-lettered.
    """

    model_config = ConfigDict(frozen=True)

    outcome: JobOutcome
    reason: str = ""
    pending: Tuple[InstanceRunUuid, ...] = ()

    @classmethod
    def success(cls) -> "JobResult":
        return cls(outcome=JobOutcome.SUCCESS)

    @classmethod
    def retryable(
        cls, reason: str, pending: Iterable[InstanceRunUuid] = ()
    ) -> "JobResult":
        return cls(outcome=JobOutcome.RETRYABLE, reason=reason, pending=tuple(pending))

    @classmethod
    def internal(cls, reason: str) -> "JobResult":
        return cls(outcome=JobOutcome.INTERNAL, reason=reason)

    @property
    def is_success(self) -> bool:
        return self.outcome is JobOutcome.SUCCESS

    @property
    def is_retryable(self) -> bool:
        return self.outcome is JobOutcome.RETRYABLE

    @property
    def is_internal(self) -> bool:
        return self.outcome is JobOutcome.INTERNAL
