"""Repository abstraction for workflow-instance persistence."""

from __future__ import annotations

from typing import Protocol

from ..models import (
    InstanceAction,
    TerminationRequest,
    User,
    WorkflowInstance,
    WorkflowInstanceStatus,
)


class InstanceActionHandler(Protocol):
    """Sink for termination side effects."""

    async def terminate(
        self,
        instance: WorkflowInstance,
        user: User,
        action: InstanceAction,
        reason: str,
    ) -> None:
        """Request termination of ``instance``; repeated calls are no-ops."""


class WorkflowInstanceRepository(InstanceActionHandler, Protocol):
    """Protocol for workflow-instance persistence backends."""

    async def create_instance(self, instance: WorkflowInstance) -> None:
        """Persist a new workflow-instance run."""

    async def get_instance_run(
        self, workflow_id: str, instance_id: int, run_id: int
    ) -> WorkflowInstance | None:
        """Retrieve one workflow-instance run."""

    async def get_instance_status(
        self, workflow_id: str, instance_id: int, run_id: int
    ) -> WorkflowInstanceStatus | None:
        """Return the current status of a run, ``None`` if it does not exist."""

    async def update_instance_status(
        self,
        workflow_id: str,
        instance_id: int,
        run_id: int,
        status: WorkflowInstanceStatus,
    ) -> None:
        """Persist a status transition."""

    async def list_instances(
        self, workflow_id: str | None = None
    ) -> list[WorkflowInstance]:
        """Return persisted runs, optionally of one workflow."""

    async def list_termination_requests(
        self, workflow_id: str | None = None
    ) -> list[TerminationRequest]:
        """Return recorded termination requests."""
