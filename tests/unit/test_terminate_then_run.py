"""Tests for the terminate-then-run coordinator."""

from unittest.mock import AsyncMock

import pytest

from cadenza.contracts import RunInstancesJobEvent, TerminateThenRunJobEvent
from cadenza.errors import NotFoundError, RetryableError
from cadenza.jobs import (
    JobOutcome,
    TerminateInstancesJobProcessor,
    TerminateThenRunJobProcessor,
)
from cadenza.models import (
    InstanceAction,
    InstanceRunUuid,
    User,
    WorkflowInstance,
    WorkflowInstanceStatus as Status,
)

WORKFLOW_ID = "sample-minimal-wf"
TESTER = User.create("tester")


def _run(instance_id: int) -> InstanceRunUuid:
    return InstanceRunUuid(instance_id=instance_id, run_id=1, uuid=f"uuid{instance_id}")


def _instance(instance_id, status, uuid=None, execution_id="exe"):
    return WorkflowInstance(
        workflow_id=WORKFLOW_ID,
        workflow_instance_id=instance_id,
        workflow_run_id=1,
        workflow_uuid=uuid or f"uuid{instance_id}",
        execution_id=f"{execution_id}{instance_id}" if execution_id else None,
        status=status,
    )


@pytest.fixture
def job_event1() -> TerminateThenRunJobEvent:
    return (
        TerminateThenRunJobEvent.init(WORKFLOW_ID, InstanceAction.STOP, TESTER, "test-reason")
        .add_one_run(_run(1))
        .add_one_run(_run(2))
        .add_run_after(3, 1, "uuid3")
        .build()
    )


@pytest.fixture
def job_event2() -> TerminateThenRunJobEvent:
    return (
        TerminateThenRunJobEvent.init(WORKFLOW_ID, InstanceAction.KILL, TESTER, "test-reason")
        .add_one_run(_run(1))
        .add_one_run(_run(2))
        .add_one_run(_run(3))
        .build()
    )


class Harness:
    """Coordinator wired to mocked store, action sink and publisher."""

    def __init__(self, instances, statuses=None):
        self.instances = instances
        self.statuses = statuses or {}
        self.repository = AsyncMock()
        self.repository.get_instance_run.side_effect = self._get_instance_run
        self.repository.get_instance_status.side_effect = self._get_instance_status
        self.action_handler = AsyncMock()
        self.publisher = AsyncMock()
        self.processor = TerminateThenRunJobProcessor(
            self.publisher,
            self.repository,
            TerminateInstancesJobProcessor(self.repository, self.action_handler),
        )

    async def _get_instance_run(self, workflow_id, instance_id, run_id):
        value = self.instances.get(instance_id)
        if isinstance(value, Exception):
            raise value
        return value

    async def _get_instance_status(self, workflow_id, instance_id, run_id):
        value = self.statuses.get(instance_id)
        if isinstance(value, Exception):
            raise value
        return value

    def terminated(self):
        return [call.args[0].workflow_instance_id for call in self.action_handler.terminate.await_args_list]


@pytest.mark.asyncio
async def test_run_after_waits_for_pending_runs(job_event1):
    harness = Harness(
        {1: _instance(1, Status.CREATED), 2: _instance(2, Status.CREATED), 3: _instance(3, Status.CREATED)},
        {1: Status.CREATED, 2: Status.STOPPED},
    )

    result = await harness.processor.process(job_event1)

    assert result.outcome is JobOutcome.RETRYABLE
    assert result.reason == (
        "[InstanceRunUuid(instance_id=1, run_id=1, uuid='uuid1')] "
        "is still terminating and will check it again"
    )
    assert result.pending == (_run(1),)
    assert harness.terminated() == [1, 2]
    harness.action_handler.terminate.assert_any_await(
        harness.instances[1], TESTER, InstanceAction.STOP, "test-reason"
    )
    harness.publisher.publish_or_raise.assert_not_awaited()


@pytest.mark.asyncio
async def test_run_after_published_once_runs_are_terminal(job_event1):
    harness = Harness(
        {1: _instance(1, Status.CREATED), 2: _instance(2, Status.CREATED), 3: _instance(3, Status.CREATED)},
        {1: Status.FAILED, 2: Status.STOPPED},
    )

    result = await harness.processor.process(job_event1)

    assert result.is_success
    assert harness.terminated() == [1, 2]
    harness.publisher.publish_or_raise.assert_awaited_once_with(
        RunInstancesJobEvent.of(WORKFLOW_ID, _run(3))
    )


@pytest.mark.asyncio
async def test_without_run_after_retries_until_all_terminal(job_event2):
    harness = Harness(
        {i: _instance(i, Status.CREATED) for i in (1, 2, 3)},
        {1: Status.CREATED, 2: Status.STOPPED, 3: Status.FAILED},
    )

    result = await harness.processor.process(job_event2)

    assert result.is_retryable
    assert result.pending == (_run(1),)
    assert harness.terminated() == [1, 2, 3]
    assert all(
        call.args[2] is InstanceAction.KILL
        for call in harness.action_handler.terminate.await_args_list
    )
    harness.publisher.publish_or_raise.assert_not_awaited()


@pytest.mark.asyncio
async def test_without_run_after_nothing_is_published(job_event2):
    harness = Harness(
        {1: _instance(1, Status.SUCCEEDED), 2: _instance(2, Status.CREATED), 3: _instance(3, Status.CREATED)},
        {2: Status.STOPPED, 3: Status.STOPPED},
    )

    result = await harness.processor.process(job_event2)

    assert result.is_success
    assert harness.terminated() == [2, 3]
    harness.publisher.publish_or_raise.assert_not_awaited()


@pytest.mark.asyncio
async def test_already_terminal_runs_are_not_terminated(job_event1, job_event2):
    harness = Harness(
        {1: _instance(1, Status.SUCCEEDED), 2: _instance(2, Status.FAILED), 3: _instance(3, Status.CREATED)},
    )

    result = await harness.processor.process(job_event1)
    assert result.is_success
    harness.action_handler.terminate.assert_not_awaited()
    harness.publisher.publish_or_raise.assert_awaited_once()

    harness.publisher.reset_mock()
    harness.instances[3] = _instance(3, Status.STOPPED)
    result = await harness.processor.process(job_event2)
    assert result.is_success
    harness.action_handler.terminate.assert_not_awaited()
    harness.publisher.publish_or_raise.assert_not_awaited()


@pytest.mark.asyncio
async def test_uuid_mismatch_is_internal(job_event1):
    harness = Harness({1: _instance(1, Status.CREATED, uuid="uuid2")})

    result = await harness.processor.process(job_event1)

    assert result.is_internal
    assert "in job event does not match DB row uuid [uuid2]" in result.reason
    harness.action_handler.terminate.assert_not_awaited()
    harness.publisher.publish_or_raise.assert_not_awaited()


@pytest.mark.asyncio
async def test_missing_run_is_skipped(job_event1):
    harness = Harness(
        {1: _instance(1, Status.CREATED), 2: NotFoundError("test"), 3: _instance(3, Status.CREATED)},
        {1: Status.STOPPED},
    )

    result = await harness.processor.process(job_event1)

    assert result.is_success
    assert harness.terminated() == [1]
    harness.publisher.publish_or_raise.assert_awaited_once()


@pytest.mark.asyncio
async def test_absent_run_after_is_still_published(job_event1):
    harness = Harness(
        {1: _instance(1, Status.STOPPED), 2: _instance(2, Status.STOPPED)},
    )

    result = await harness.processor.process(job_event1)

    assert result.is_success
    harness.publisher.publish_or_raise.assert_awaited_once_with(
        RunInstancesJobEvent.of(WORKFLOW_ID, _run(3))
    )


@pytest.mark.asyncio
async def test_run_after_uuid_mismatch_is_internal(job_event1):
    harness = Harness(
        {
            1: _instance(1, Status.STOPPED),
            2: _instance(2, Status.STOPPED),
            3: _instance(3, Status.CREATED, uuid="uuid-other"),
        },
    )

    result = await harness.processor.process(job_event1)

    assert result.is_internal
    assert "DB row uuid [uuid-other]" in result.reason
    harness.publisher.publish_or_raise.assert_not_awaited()


@pytest.mark.asyncio
async def test_missing_execution_id_is_internal(job_event1):
    harness = Harness({1: _instance(1, Status.RUNNING, execution_id=None)})

    result = await harness.processor.process(job_event1)

    assert result.is_internal
    assert "has no execution id" in result.reason
    harness.action_handler.terminate.assert_not_awaited()


@pytest.mark.asyncio
async def test_unexpected_error_is_retryable(job_event1):
    harness = Harness({1: _instance(1, Status.CREATED), 2: _instance(2, Status.CREATED)})
    harness.action_handler.terminate.side_effect = RuntimeError("test")

    result = await harness.processor.process(job_event1)

    assert result.is_retryable
    assert result.reason.startswith(
        "Failed to terminate a workflow and will retry to terminate it."
    )
    assert result.pending == ()
    harness.publisher.publish_or_raise.assert_not_awaited()


@pytest.mark.asyncio
async def test_publish_failure_is_retryable(job_event1):
    harness = Harness({1: _instance(1, Status.STOPPED), 2: _instance(2, Status.STOPPED)})
    harness.publisher.publish_or_raise.side_effect = RetryableError("transport down")

    result = await harness.processor.process(job_event1)

    assert result.is_retryable
    assert result.reason == "transport down"


@pytest.mark.asyncio
async def test_null_value_from_collaborator_is_internal(job_event1):
    harness = Harness({1: _instance(1, Status.CREATED), 2: _instance(2, Status.CREATED)})
    harness.action_handler.terminate.side_effect = AttributeError(
        "'NoneType' object has no attribute 'workflow_uuid'"
    )

    result = await harness.processor.process(job_event1)

    assert result.is_internal
    assert result.reason.startswith("Something is null: AttributeError")
    harness.publisher.publish_or_raise.assert_not_awaited()
