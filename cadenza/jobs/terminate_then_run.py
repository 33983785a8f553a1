"""Terminate a set of runs, then start the run-after run."""

from __future__ import annotations

import logging
from typing import List

from ..contracts import RunInstancesJobEvent, TerminateThenRunJobEvent
from ..errors import InternalError, NotFoundError, RetryableError
from ..models import InstanceRunUuid
from ..persistence.repository import WorkflowInstanceRepository
from .publisher import JobEventPublisher
from .result import JobResult
from .terminate import TerminateInstancesJobProcessor, TerminationOutcome

logger = logging.getLogger(__name__)


class TerminateThenRunJobProcessor:
    """Processes :class:`TerminateThenRunJobEvent` jobs.

    Every attempt is idempotent: termination is issued again for runs that are
    still active, already terminal runs are left alone, and the run-after run
    is only published once nothing is pending. The hosting pipeline redelivers
    the event while the result is retryable.
    """

    def __init__(
        self,
        publisher: JobEventPublisher,
        repository: WorkflowInstanceRepository,
        terminate_processor: TerminateInstancesJobProcessor,
    ) -> None:
        self.publisher = publisher
        self.repository = repository
        self.terminate_processor = terminate_processor

    async def process(self, event: TerminateThenRunJobEvent) -> JobResult:
        try:
            return await self._process(event)
        except InternalError as e:
            logger.error(f"Cannot process job {event.identity}: {e.message}")
            return JobResult.internal(e.message)
        except RetryableError as e:
            logger.warning(f"Job {event.identity} will be retried: {e.message}")
            return JobResult.retryable(e.message)
        except (AttributeError, TypeError) as e:
            # a collaborator handed back None where a value was required
            logger.exception(f"Something is null while processing job {event.identity}")
            return JobResult.internal(f"Something is null: {type(e).__name__}: {e}")
        except Exception as e:
            logger.exception(f"Failed to process job {event.identity}")
            return JobResult.retryable(
                "Failed to terminate a workflow and will retry to terminate it. "
                f"{type(e).__name__}: {e}"
            )

    async def _process(self, event: TerminateThenRunJobEvent) -> JobResult:
        issued = []
        for run in event.instance_run_uuids:
            result = await self.terminate_processor.terminate(
                event.workflow_id, run, event.user, event.action, event.reason
            )
            if result.outcome is TerminationOutcome.INVALID:
                return JobResult.internal(result.reason)
            if result.outcome is TerminationOutcome.ISSUED:
                issued.append(run)

        pending = await self._pending_runs(event.workflow_id, issued)
        if pending:
            reason = f"{pending} is still terminating and will check it again"
            logger.info(f"Job {event.identity}: {reason}")
            return JobResult.retryable(reason, pending)

        if event.run_after is None:
            logger.info(f"Job {event.identity}: all runs are terminal, nothing to run after")
            return JobResult.success()
        return await self._run_after(event, event.run_after)

    async def _pending_runs(
        self, workflow_id: str, runs: List[InstanceRunUuid]
    ) -> List[InstanceRunUuid]:
        """Runs that were asked to terminate and have not reached a terminal status."""
        pending = []
        for run in runs:
            try:
                status = await self.repository.get_instance_status(
                    workflow_id, run.instance_id, run.run_id
                )
            except NotFoundError:
                continue
            if status is not None and not status.is_terminal:
                pending.append(run)
        return pending

    async def _run_after(
        self, event: TerminateThenRunJobEvent, run_after: InstanceRunUuid
    ) -> JobResult:
        try:
            instance = await self.repository.get_instance_run(
                event.workflow_id, run_after.instance_id, run_after.run_id
            )
        except NotFoundError:
            instance = None
        if instance is not None and instance.workflow_uuid != run_after.uuid:
            return JobResult.internal(
                f"Instance uuid [{run_after.uuid}] in job event does not match "
                f"DB row uuid [{instance.workflow_uuid}] for [{instance.identity}]"
            )
        if instance is None:
            logger.warning(
                f"Run-after run {run_after} of [{event.workflow_id}] is not stored, "
                "publishing it anyway"
            )

        await self.publisher.publish_or_raise(
            RunInstancesJobEvent.of(event.workflow_id, run_after)
        )
        logger.info(f"Job {event.identity}: published run-after run {run_after}")
        return JobResult.success()
