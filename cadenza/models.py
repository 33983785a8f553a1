"""Workflow-instance, step and task records used by the controller."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class WorkflowInstanceStatus(str, Enum):
    """Status of one workflow-instance run."""

    CREATED = "CREATED"
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    FAILED_WITH_TERMINAL_ERROR = "FAILED_WITH_TERMINAL_ERROR"
    STOPPED = "STOPPED"
    TIMED_OUT = "TIMED_OUT"

    @property
    def is_terminal(self) -> bool:
        """Whether no further transition can happen from this status."""
        return self in INSTANCE_TERMINAL_STATES


INSTANCE_TERMINAL_STATES: frozenset[WorkflowInstanceStatus] = frozenset(
    {
        WorkflowInstanceStatus.SUCCEEDED,
        WorkflowInstanceStatus.FAILED,
        WorkflowInstanceStatus.FAILED_WITH_TERMINAL_ERROR,
        WorkflowInstanceStatus.STOPPED,
        WorkflowInstanceStatus.TIMED_OUT,
    }
)


class StepStatus(str, Enum):
    """Runtime status of a step, as written by the task runtime."""

    NOT_CREATED = "NOT_CREATED"
    CREATED = "CREATED"
    INITIALIZED = "INITIALIZED"
    PAUSED = "PAUSED"
    WAITING_FOR_SIGNALS = "WAITING_FOR_SIGNALS"
    EVALUATING_PARAMS = "EVALUATING_PARAMS"
    WAITING_FOR_PERMITS = "WAITING_FOR_PERMITS"
    STARTING = "STARTING"
    RUNNING = "RUNNING"
    FINISHING = "FINISHING"
    DISABLED = "DISABLED"
    UNSATISFIED = "UNSATISFIED"
    SKIPPED = "SKIPPED"
    SUCCEEDED = "SUCCEEDED"
    COMPLETED_WITH_ERROR = "COMPLETED_WITH_ERROR"
    USER_FAILED = "USER_FAILED"
    PLATFORM_FAILED = "PLATFORM_FAILED"
    FATALLY_FAILED = "FATALLY_FAILED"
    INTERNALLY_FAILED = "INTERNALLY_FAILED"
    STOPPED = "STOPPED"
    TIMED_OUT = "TIMED_OUT"
    TIMEOUT_FAILED = "TIMEOUT_FAILED"

    @property
    def is_terminal(self) -> bool:
        return (
            self in STEP_COMPLETE_STATES
            or self in STEP_FAILURE_STATES
            or self in (StepStatus.STOPPED, StepStatus.TIMED_OUT)
        )

    @property
    def is_complete(self) -> bool:
        """Terminal and lets the step's successors run."""
        return self in STEP_COMPLETE_STATES

    @property
    def is_failure(self) -> bool:
        return self in STEP_FAILURE_STATES

    @property
    def is_retryable(self) -> bool:
        """Failed, but the task runtime may still retry the step."""
        return self in STEP_RETRYABLE_STATES

    @property
    def ordinal(self) -> int:
        return _STEP_STATUS_ORDER[self]


STEP_COMPLETE_STATES: frozenset[StepStatus] = frozenset(
    {
        StepStatus.DISABLED,
        StepStatus.UNSATISFIED,
        StepStatus.SKIPPED,
        StepStatus.SUCCEEDED,
        StepStatus.COMPLETED_WITH_ERROR,
    }
)

STEP_FAILURE_STATES: frozenset[StepStatus] = frozenset(
    {
        StepStatus.USER_FAILED,
        StepStatus.PLATFORM_FAILED,
        StepStatus.FATALLY_FAILED,
        StepStatus.INTERNALLY_FAILED,
        StepStatus.TIMEOUT_FAILED,
    }
)

STEP_RETRYABLE_STATES: frozenset[StepStatus] = frozenset(
    {
        StepStatus.USER_FAILED,
        StepStatus.PLATFORM_FAILED,
        StepStatus.TIMEOUT_FAILED,
    }
)

_STEP_STATUS_ORDER = {status: index for index, status in enumerate(StepStatus)}


class TaskStatus(str, Enum):
    """Task-runtime status of a task record, also used for progress decisions."""

    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    CANCELED = "CANCELED"
    FAILED = "FAILED"
    FAILED_WITH_TERMINAL_ERROR = "FAILED_WITH_TERMINAL_ERROR"
    COMPLETED = "COMPLETED"
    COMPLETED_WITH_ERRORS = "COMPLETED_WITH_ERRORS"
    TIMED_OUT = "TIMED_OUT"
    SKIPPED = "SKIPPED"

    @property
    def is_terminal(self) -> bool:
        return self not in (TaskStatus.SCHEDULED, TaskStatus.IN_PROGRESS)


class InstanceAction(str, Enum):
    """Termination action. KILL skips the graceful shutdown of STOP."""

    STOP = "STOP"
    KILL = "KILL"


class FailureMode(str, Enum):
    """How a step failure affects its workflow instance."""

    FAIL_AFTER_RUNNING = "FAIL_AFTER_RUNNING"
    FAIL_IMMEDIATELY = "FAIL_IMMEDIATELY"
    IGNORE_FAILURE = "IGNORE_FAILURE"


class User(BaseModel):
    """Identity on whose behalf an action is taken."""

    model_config = ConfigDict(frozen=True)

    name: str

    @classmethod
    def create(cls, name: str) -> "User":
        return cls(name=name)


class InstanceRunUuid(BaseModel):
    """Key of one execution attempt of one workflow-instance slot."""

    model_config = ConfigDict(frozen=True)

    instance_id: int
    run_id: int
    uuid: str


class WorkflowInstance(BaseModel):
    """Persisted workflow-instance run."""

    workflow_id: str
    workflow_instance_id: int
    workflow_run_id: int
    workflow_uuid: str
    execution_id: Optional[str] = None
    status: WorkflowInstanceStatus = WorkflowInstanceStatus.CREATED

    @property
    def run_uuid(self) -> InstanceRunUuid:
        return InstanceRunUuid(
            instance_id=self.workflow_instance_id,
            run_id=self.workflow_run_id,
            uuid=self.workflow_uuid,
        )

    @property
    def identity(self) -> str:
        return f"{self.workflow_id}:{self.workflow_instance_id}:{self.workflow_run_id}"


class TerminationRequest(BaseModel):
    """Request recorded by the action sink to terminate one run."""

    workflow_id: str
    workflow_instance_id: int
    workflow_run_id: int
    workflow_uuid: str
    action: InstanceAction
    user: str
    reason: str
    requested_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class StepTask(BaseModel):
    """Task record written by the task runtime for one step attempt."""

    reference_name: str
    task_type: str
    seq: int = 0
    status: TaskStatus = TaskStatus.SCHEDULED
    output_data: Dict[str, Any] = Field(default_factory=dict)
