"""Tests for the in-process message bus."""

import asyncio

from pageguard.messaging import Ack, MessageBus
from pageguard.messaging.messages import ChatMessage, ChatResponse, ModelReady


class RecordingEndpoint:
    def __init__(self, fail_on=None):
        self.received = []
        self.fail_on = fail_on

    async def handle(self, message):
        if self.fail_on and isinstance(message, self.fail_on):
            raise RuntimeError("boom")
        self.received.append(message)
        return Ack(success=True)


async def test_send_delivers_in_order():
    bus = MessageBus()
    endpoint = RecordingEndpoint()
    bus.register("presentation", endpoint.handle)

    for i in range(5):
        assert bus.send(ChatResponse(response=str(i)), "presentation")
    await bus.drain()

    assert [m.response for m in endpoint.received] == ["0", "1", "2", "3", "4"]
    await bus.close()


async def test_send_to_missing_endpoint_is_dropped():
    bus = MessageBus()
    assert not bus.send(ModelReady(), "nobody")
    assert bus.dropped == 1


async def test_handler_failure_is_acknowledged_not_raised():
    bus = MessageBus()
    endpoint = RecordingEndpoint(fail_on=ChatMessage)
    bus.register("coordinator", endpoint.handle)

    ack = await bus.request(ChatMessage(message="hi"), "coordinator")
    assert ack == Ack(success=False, error="boom")

    # The mailbox keeps working after a failure.
    ack = await bus.request(ModelReady(), "coordinator")
    assert ack.success
    await bus.close()


async def test_send_raw_refuses_unknown_type():
    bus = MessageBus()
    endpoint = RecordingEndpoint()
    bus.register("coordinator", endpoint.handle)

    ack = bus.send_raw({"type": "NOPE"}, "coordinator")
    assert ack == Ack(success=False, error="Unknown message type")

    ack = bus.send_raw({"type": "CHAT_MESSAGE", "message": "hello"}, "coordinator")
    assert ack.success
    await bus.drain()
    assert endpoint.received == [ChatMessage(message="hello")]
    await bus.close()


async def test_register_replaces_endpoint():
    bus = MessageBus()
    first = RecordingEndpoint()
    second = RecordingEndpoint()
    bus.register("coordinator", first.handle)
    bus.register("coordinator", second.handle)

    bus.send(ModelReady(), "coordinator")
    await bus.drain()
    await asyncio.sleep(0)

    assert first.received == []
    assert second.received == [ModelReady()]
    await bus.close()


async def test_unregister_stops_delivery():
    bus = MessageBus()
    endpoint = RecordingEndpoint()
    bus.register("observer:main", endpoint.handle)
    await bus.unregister("observer:main")

    assert not bus.is_registered("observer:main")
    assert not bus.send(ModelReady(), "observer:main")
