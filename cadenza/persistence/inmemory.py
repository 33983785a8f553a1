"""In-memory implementation of the workflow-instance repository."""

from __future__ import annotations

from typing import Dict, Tuple

from ..errors import NotFoundError
from ..models import (
    InstanceAction,
    TerminationRequest,
    User,
    WorkflowInstance,
    WorkflowInstanceStatus,
)
from .repository import WorkflowInstanceRepository

RunKey = Tuple[str, int, int]


class InMemoryWorkflowInstanceRepository(WorkflowInstanceRepository):
    """Store workflow-instance state in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._instances: Dict[RunKey, WorkflowInstance] = {}
        self._requests: Dict[Tuple[RunKey, str], TerminationRequest] = {}

    # ------------------------------------------------------------------
    async def create_instance(self, instance: WorkflowInstance) -> None:
        key = (
            instance.workflow_id,
            instance.workflow_instance_id,
            instance.workflow_run_id,
        )
        self._instances[key] = instance.model_copy()

    async def get_instance_run(
        self, workflow_id: str, instance_id: int, run_id: int
    ) -> WorkflowInstance | None:
        instance = self._instances.get((workflow_id, instance_id, run_id))
        return instance.model_copy() if instance else None

    async def get_instance_status(
        self, workflow_id: str, instance_id: int, run_id: int
    ) -> WorkflowInstanceStatus | None:
        instance = self._instances.get((workflow_id, instance_id, run_id))
        return instance.status if instance else None

    async def update_instance_status(
        self,
        workflow_id: str,
        instance_id: int,
        run_id: int,
        status: WorkflowInstanceStatus,
    ) -> None:
        instance = self._instances.get((workflow_id, instance_id, run_id))
        if instance is None:
            raise NotFoundError(
                f"Workflow instance [{workflow_id}:{instance_id}:{run_id}] not found"
            )
        instance.status = status

    async def list_instances(
        self, workflow_id: str | None = None
    ) -> list[WorkflowInstance]:
        return [
            instance.model_copy()
            for key, instance in sorted(self._instances.items())
            if workflow_id is None or key[0] == workflow_id
        ]

    async def terminate(
        self,
        instance: WorkflowInstance,
        user: User,
        action: InstanceAction,
        reason: str,
    ) -> None:
        key = (
            (instance.workflow_id, instance.workflow_instance_id, instance.workflow_run_id),
            instance.workflow_uuid,
        )
        # keep the first request for a run
        if key in self._requests:
            return
        self._requests[key] = TerminationRequest(
            workflow_id=instance.workflow_id,
            workflow_instance_id=instance.workflow_instance_id,
            workflow_run_id=instance.workflow_run_id,
            workflow_uuid=instance.workflow_uuid,
            action=action,
            user=user.name,
            reason=reason,
        )

    async def list_termination_requests(
        self, workflow_id: str | None = None
    ) -> list[TerminationRequest]:
        return [
            request
            for request in self._requests.values()
            if workflow_id is None or request.workflow_id == workflow_id
        ]
