"""Issue termination requests for individual workflow-instance runs."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from ..errors import InternalError, NotFoundError
from ..models import InstanceAction, InstanceRunUuid, User, WorkflowInstance
from ..persistence.repository import InstanceActionHandler, WorkflowInstanceRepository

logger = logging.getLogger(__name__)


class TerminationOutcome(str, Enum):
    ISSUED = "ISSUED"
    ALREADY_TERMINAL = "ALREADY_TERMINAL"
    NOT_FOUND = "NOT_FOUND"
    INVALID = "INVALID"


class TerminationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    run: InstanceRunUuid
    outcome: TerminationOutcome
    reason: str = ""


class TerminateInstancesJobProcessor:
    """Terminates one run at a time on behalf of the coordinator.

    The stored record is the source of truth: a run whose uuid differs from
    the one carried by the job event is a different run reusing the same ids
    and is never touched.
    """

    def __init__(
        self,
        repository: WorkflowInstanceRepository,
        action_handler: Optional[InstanceActionHandler] = None,
    ) -> None:
        self.repository = repository
        self.action_handler = action_handler or repository

    async def terminate(
        self,
        workflow_id: str,
        run: InstanceRunUuid,
        user: User,
        action: InstanceAction,
        reason: str,
    ) -> TerminationResult:
        try:
            instance = await self.repository.get_instance_run(
                workflow_id, run.instance_id, run.run_id
            )
        except NotFoundError as e:
            logger.info(f"Skip terminating {run} of [{workflow_id}]: {e.message}")
            return TerminationResult(
                run=run, outcome=TerminationOutcome.NOT_FOUND, reason=e.message
            )
        if instance is None:
            logger.info(f"Skip terminating {run} of [{workflow_id}] as it does not exist")
            return TerminationResult(
                run=run,
                outcome=TerminationOutcome.NOT_FOUND,
                reason=f"{run} not found",
            )

        if instance.workflow_uuid != run.uuid:
            message = (
                f"Instance uuid [{run.uuid}] in job event does not match "
                f"DB row uuid [{instance.workflow_uuid}] for [{instance.identity}]"
            )
            logger.error(message)
            return TerminationResult(
                run=run, outcome=TerminationOutcome.INVALID, reason=message
            )

        if instance.status.is_terminal:
            logger.debug(
                f"Workflow instance [{instance.identity}] is already {instance.status.value}"
            )
            return TerminationResult(
                run=run, outcome=TerminationOutcome.ALREADY_TERMINAL
            )

        self._check_execution(instance)
        await self.action_handler.terminate(instance, user, action, reason)
        logger.info(
            f"Issued {action.value} for workflow instance [{instance.identity}] by [{user.name}]"
        )
        return TerminationResult(run=run, outcome=TerminationOutcome.ISSUED)

    @staticmethod
    def _check_execution(instance: WorkflowInstance) -> None:
        if instance.execution_id is None:
            raise InternalError(
                f"Workflow instance [{instance.identity}] is {instance.status.value} "
                "but has no execution id",
                detail={"identity": instance.identity},
            )
