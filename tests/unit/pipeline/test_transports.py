import asyncio
import re

import pytest

from projects.pipeline.transports.base import QueueMessage, call_with_timeout, unique_name
from projects.pipeline.transports.memory import InMemoryQueue
from shared.core.exceptions import TransportError, TransportTimeoutError


def test_unique_name_format():
    name = unique_name("trace-job")

    assert re.fullmatch(r"trace-job-\d{13}-[0-9a-f]{9}", name)
    assert unique_name("trace-job") != name


def test_queue_message_from_event_record():
    message = QueueMessage.from_record({
        "messageId": "m-1",
        "body": "{}",
        "messageAttributes": {"traceId": {"stringValue": "abc"}},
    })

    assert message.message_id == "m-1"
    assert message.body == "{}"
    assert message.attributes == {"traceId": {"stringValue": "abc"}}


@pytest.mark.asyncio
async def test_call_with_timeout_returns_result():
    queue = InMemoryQueue()

    message_id = await call_with_timeout(
        queue.enqueue("{}", {}), stage="ingress", operation="enqueue", timeout=1.0
    )

    assert queue.messages[0].message_id == message_id


@pytest.mark.asyncio
async def test_call_with_timeout_raises_timeout_error():
    with pytest.raises(TransportTimeoutError) as exc_info:
        await call_with_timeout(asyncio.sleep(5), stage="compute", operation="start_execution", timeout=0.01)

    assert exc_info.value.timeout_seconds == 0.01
    assert exc_info.value.details["operation"] == "start_execution"


@pytest.mark.asyncio
async def test_call_with_timeout_wraps_other_failures():
    async def fail():
        raise OSError("rede caiu")

    with pytest.raises(TransportError) as exc_info:
        await call_with_timeout(fail(), stage="queue_relay", operation="submit_job", timeout=1.0)

    assert exc_info.value.stage == "queue_relay"
    assert "OSError" in exc_info.value.details["error"]
