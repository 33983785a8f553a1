"""End-to-end terminate-then-run processing over the in-memory stack."""

import pytest

from cadenza.config import JobsConfig
from cadenza.contracts import RunInstancesJobEvent, TerminateThenRunJobEvent
from cadenza.jobs import (
    JobEventPublisher,
    JobEventWorker,
    TerminateInstancesJobProcessor,
    TerminateThenRunJobProcessor,
)
from cadenza.models import (
    InstanceAction,
    InstanceRunUuid,
    User,
    WorkflowInstance,
    WorkflowInstanceStatus,
)
from cadenza.persistence import InMemoryWorkflowInstanceRepository
from cadenza.transports import InMemoryTransport

CONFIG = JobsConfig(max_attempts=3, backoff_base=0, backoff_jitter=0)


class StoppingActionHandler:
    """Stops instances right away, like an engine acknowledging the request."""

    def __init__(self, repository, stop=True):
        self.repository = repository
        self.stop = stop
        self.calls = []

    async def terminate(self, instance, user, action, reason):
        self.calls.append(instance.identity)
        await self.repository.terminate(instance, user, action, reason)
        if self.stop:
            await self.repository.update_instance_status(
                instance.workflow_id,
                instance.workflow_instance_id,
                instance.workflow_run_id,
                WorkflowInstanceStatus.STOPPED,
            )


async def _setup(stop: bool):
    repo = InMemoryWorkflowInstanceRepository()
    for instance_id, status in ((1, "RUNNING"), (2, "PAUSED"), (3, "CREATED")):
        await repo.create_instance(
            WorkflowInstance(
                workflow_id="sample-wf",
                workflow_instance_id=instance_id,
                workflow_run_id=1,
                workflow_uuid=f"uuid{instance_id}",
                execution_id=f"exe{instance_id}",
                status=status,
            )
        )
    transport = InMemoryTransport()
    publisher = JobEventPublisher(transport, CONFIG)
    handler = StoppingActionHandler(repo, stop=stop)
    coordinator = TerminateThenRunJobProcessor(
        publisher, repo, TerminateInstancesJobProcessor(repo, handler)
    )
    worker = JobEventWorker(
        transport, CONFIG.terminate_topic, {"TERMINATE_THEN_RUN": coordinator}, CONFIG
    )
    event = (
        TerminateThenRunJobEvent.init(
            "sample-wf", InstanceAction.STOP, User.create("tester"), "restart"
        )
        .add_one_run(InstanceRunUuid(instance_id=1, run_id=1, uuid="uuid1"))
        .add_one_run(InstanceRunUuid(instance_id=2, run_id=1, uuid="uuid2"))
        .add_run_after(3, 1, "uuid3")
        .build()
    )
    await publisher.publish_or_raise(event)
    return repo, transport, handler, worker


async def _handle_all(worker, transport):
    results = []
    while transport.pending(CONFIG.terminate_topic):
        async for raw, message in transport.subscribe(CONFIG.terminate_topic):
            results.append(await worker.handle(raw, message))
            break
    return results


@pytest.mark.asyncio
async def test_run_after_is_started_once_runs_stop():
    repo, transport, handler, worker = await _setup(stop=True)

    results = await _handle_all(worker, transport)

    assert handler.calls == ["sample-wf:1:1", "sample-wf:2:1"]
    assert [r.is_success for r in results] == [True]
    [run_message] = transport.pending(CONFIG.run_topic)
    assert run_message.event == RunInstancesJobEvent.of(
        "sample-wf", InstanceRunUuid(instance_id=3, run_id=1, uuid="uuid3")
    )
    assert await repo.get_instance_status("sample-wf", 3, 1) is WorkflowInstanceStatus.CREATED


@pytest.mark.asyncio
async def test_job_is_dead_lettered_when_runs_never_stop():
    repo, transport, handler, worker = await _setup(stop=False)

    results = await _handle_all(worker, transport)

    assert [r.is_retryable for r in results] == [True, True, True]
    assert all(len(r.pending) == 2 for r in results)
    # termination is re-issued on every attempt, the sink keeps one request per run
    assert len(handler.calls) == 6
    assert len(await repo.list_termination_requests()) == 2
    assert [m.attempt for _, m in transport.dead_letters] == [3]
    assert transport.pending(CONFIG.run_topic) == []
