"""Tests for inference backends and the inference worker."""

import json

import httpx
import pytest

from pageguard.constants import COORDINATOR
from pageguard.errors import InferenceError
from pageguard.inference import InferenceWorker, OpenAICompatibleBackend
from pageguard.messaging import Ack, MessageBus
from pageguard.messaging.messages import (
    InferenceRequest,
    InferenceResponse,
    LoadModel,
    ModelError,
    ModelReady,
)


def _backend(handler, **kwargs):
    return OpenAICompatibleBackend(
        "http://llm.local/",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


async def test_load_checks_model_listing():
    def handler(request):
        assert request.url.path == "/v1/models"
        return httpx.Response(200, json={"data": [{"id": "qwen"}, {"id": "llama"}]})

    backend = _backend(handler)
    await backend.load("qwen")
    assert backend.model_id == "qwen"
    await backend.close()


async def test_load_rejects_unknown_model():
    backend = _backend(lambda request: httpx.Response(200, json={"data": [{"id": "llama"}]}))
    with pytest.raises(InferenceError):
        await backend.load("qwen")
    await backend.close()


async def test_load_reports_server_errors():
    backend = _backend(lambda request: httpx.Response(503))
    with pytest.raises(InferenceError, match="HTTP 503"):
        await backend.load("qwen")
    await backend.close()


async def test_complete_sends_chat_request():
    seen = {}

    def handler(request):
        if request.url.path == "/v1/models":
            return httpx.Response(200, json={"data": []})
        seen["auth"] = request.headers.get("authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={"choices": [{"message": {"role": "assistant", "content": "  Be careful.  "}}]},
        )

    backend = _backend(handler, api_key="sk-test")
    await backend.load("qwen")
    reply = await backend.complete("Is this safe?")

    assert reply == "Be careful."
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"]["model"] == "qwen"
    assert seen["body"]["temperature"] == 0.7
    assert seen["body"]["max_tokens"] == 512
    assert seen["body"]["messages"] == [{"role": "user", "content": "Is this safe?"}]
    await backend.close()


async def test_complete_requires_loaded_model():
    backend = _backend(lambda request: httpx.Response(500))
    with pytest.raises(InferenceError, match="not loaded"):
        await backend.complete("hi")


async def test_malformed_completion_raises():
    def handler(request):
        if request.url.path == "/v1/models":
            return httpx.Response(200, json={"data": []})
        return httpx.Response(200, json={"choices": []})

    backend = _backend(handler)
    await backend.load("qwen")
    with pytest.raises(InferenceError, match="Malformed"):
        await backend.complete("hi")
    await backend.close()


class DummyBackend:
    def __init__(self, load_error=None, complete_error=None):
        self.load_error = load_error
        self.complete_error = complete_error
        self.loads = 0

    async def load(self, model_id):
        self.loads += 1
        if self.load_error:
            raise self.load_error

    async def complete(self, prompt):
        if self.complete_error:
            raise self.complete_error
        return f"answer to {prompt}"


class Recorder:
    def __init__(self):
        self.received = []

    async def handle(self, message):
        self.received.append(message)
        return Ack(success=True)


def _wire(backend):
    bus = MessageBus()
    coordinator = Recorder()
    bus.register(COORDINATOR, coordinator.handle)
    worker = InferenceWorker(bus, backend)
    worker.register()
    return bus, worker, coordinator


async def test_worker_load_and_infer():
    bus, worker, coordinator = _wire(DummyBackend())

    bus.send(LoadModel(model_id="qwen"), worker.endpoint)
    bus.send(InferenceRequest(prompt="q"), worker.endpoint)
    await bus.drain()

    assert coordinator.received == [ModelReady(), InferenceResponse(response="answer to q")]
    assert worker.ready
    await bus.close()


async def test_worker_reports_load_failure():
    bus, worker, coordinator = _wire(DummyBackend(load_error=InferenceError("no GPU")))

    bus.send(LoadModel(model_id="qwen"), worker.endpoint)
    await bus.drain()

    assert coordinator.received == [ModelError(error="no GPU")]
    assert not worker.ready
    await bus.close()


async def test_worker_not_ready_refuses_inference():
    bus, worker, coordinator = _wire(DummyBackend())

    bus.send(InferenceRequest(prompt="q"), worker.endpoint)
    await bus.drain()

    assert coordinator.received == [ModelError(error="Model not ready")]
    await bus.close()


async def test_reload_of_loaded_model_is_skipped():
    backend = DummyBackend()
    bus, worker, coordinator = _wire(backend)

    bus.send(LoadModel(model_id="qwen"), worker.endpoint)
    bus.send(LoadModel(model_id="qwen"), worker.endpoint)
    await bus.drain()

    assert backend.loads == 1
    assert coordinator.received == [ModelReady(), ModelReady()]
    await bus.close()


async def test_fatal_engine_error_marks_worker_not_ready():
    bus, worker, coordinator = _wire(DummyBackend(complete_error=RuntimeError("Engine was disposed")))

    bus.send(LoadModel(model_id="qwen"), worker.endpoint)
    bus.send(InferenceRequest(prompt="q"), worker.endpoint)
    await bus.drain()

    assert coordinator.received[-1] == ModelError(error="Engine was disposed")
    assert not worker.ready
    await bus.close()


async def test_transient_error_keeps_worker_ready():
    bus, worker, coordinator = _wire(DummyBackend(complete_error=InferenceError("HTTP 502")))

    bus.send(LoadModel(model_id="qwen"), worker.endpoint)
    bus.send(InferenceRequest(prompt="q"), worker.endpoint)
    await bus.drain()

    assert coordinator.received[-1] == ModelError(error="HTTP 502")
    assert worker.ready
    await bus.close()
