"""Transport tests."""

import pytest

from cadenza.contracts import JobMessage, RunInstancesJobEvent
from cadenza.models import InstanceRunUuid
from cadenza.transports.inmemory import InMemoryTransport


def _message() -> JobMessage:
    run = InstanceRunUuid(instance_id=3, run_id=1, uuid="uuid3")
    return JobMessage(
        correlation_id="test-123", event=RunInstancesJobEvent.of("sample-wf", run)
    )


@pytest.mark.asyncio
async def test_inmemory_transport_basic():
    """Test basic InMemoryTransport publish/subscribe."""
    transport = InMemoryTransport()
    await transport.publish("test_topic", _message())

    message_received = False
    async for raw_msg, received_msg in transport.subscribe("test_topic"):
        assert received_msg.correlation_id == "test-123"
        assert received_msg.event.instance_run_uuids[0].uuid == "uuid3"
        await transport.ack(raw_msg)
        message_received = True
        break

    assert message_received
    assert transport.pending("test_topic") == []


@pytest.mark.asyncio
async def test_inmemory_transport_nack():
    transport = InMemoryTransport()
    await transport.publish("test_topic", _message())

    async for raw_msg, _ in transport.subscribe("test_topic"):
        await transport.nack(raw_msg)
        break
    assert len(transport.pending("test_topic")) == 1

    async for raw_msg, _ in transport.subscribe("test_topic"):
        await transport.nack(raw_msg, requeue=False)
        break
    assert transport.pending("test_topic") == []
    assert [m.correlation_id for _, m in transport.dead_letters] == ["test-123"]


@pytest.mark.asyncio
async def test_inmemory_subscribe_honours_lifespan():
    transport = InMemoryTransport()
    received = [m async for _, m in transport.subscribe("empty", lifespan=0.05)]
    assert received == []


def test_redis_transport_queue_names():
    from cadenza.transports.redis import RedisTransport

    transport = RedisTransport(dead_letter_topic="dlq")
    assert transport.host == "localhost"
    assert transport.port == 6379
    assert transport.queue_name("jobs") == "cadenza:jobs"
    assert transport.dead_letter_topic == "dlq"
