"""Example: stop the running instance of a workflow, then start its replacement."""

import asyncio

from cadenza import (
    JobEventPublisher,
    TerminateInstancesJobProcessor,
    TerminateThenRunJobEvent,
    TerminateThenRunJobProcessor,
    get_repository,
    get_transport,
)
from cadenza.models import InstanceAction, User, WorkflowInstance, WorkflowInstanceStatus


async def main():
    """Terminate-then-run against the configured transport and repository."""
    repository = get_repository()
    async with get_transport() as transport:
        await _terminate_then_run(transport, repository)


async def _terminate_then_run(transport, repository):
    # One run still executing, one queued behind it
    await repository.create_instance(
        WorkflowInstance(
            workflow_id="nightly-etl",
            workflow_instance_id=41,
            workflow_run_id=1,
            workflow_uuid="4f1c0e9a-run-41",
            execution_id="exec-41",
            status=WorkflowInstanceStatus.RUNNING,
        )
    )
    await repository.create_instance(
        WorkflowInstance(
            workflow_id="nightly-etl",
            workflow_instance_id=42,
            workflow_run_id=1,
            workflow_uuid="7b2d9c11-run-42",
        )
    )

    event = (
        TerminateThenRunJobEvent.init(
            "nightly-etl", InstanceAction.STOP, User.create("ops"), "superseded by run 42"
        )
        .add_one_run((await repository.get_instance_run("nightly-etl", 41, 1)).run_uuid)
        .add_run_after(42, 1, "7b2d9c11-run-42")
        .build()
    )

    processor = TerminateThenRunJobProcessor(
        JobEventPublisher(transport),
        repository,
        TerminateInstancesJobProcessor(repository),
    )

    result = await processor.process(event)
    print(f"First attempt: {result.outcome.value} {result.reason}")

    # The engine acknowledges the stop request
    await repository.update_instance_status(
        "nightly-etl", 41, 1, WorkflowInstanceStatus.STOPPED
    )
    result = await processor.process(event)
    print(f"Second attempt: {result.outcome.value}")


if __name__ == "__main__":
    asyncio.run(main())
