"""Inference worker context: hosts a backend behind the message bus."""

from __future__ import annotations

import logging
from typing import Optional

from ..constants import COORDINATOR, INFERENCE
from ..messaging.bus import MessageBus
from ..messaging.messages import (
    Ack,
    InferenceRequest,
    InferenceResponse,
    LoadModel,
    Message,
    ModelError,
    ModelReady,
)
from .backend import InferenceBackend

logger = logging.getLogger(__name__)

# Engine errors after which the loaded model cannot be reused.
FATAL_ERROR_MARKERS = ("corrupted", "disposed")


class InferenceWorker:
    def __init__(
        self,
        bus: MessageBus,
        backend: InferenceBackend,
        endpoint: str = INFERENCE,
        coordinator: str = COORDINATOR,
    ):
        self.bus = bus
        self.backend = backend
        self.endpoint = endpoint
        self.coordinator = coordinator
        self.ready = False
        self.model_id: Optional[str] = None

    def register(self) -> None:
        self.bus.register(self.endpoint, self.handle)

    async def handle(self, message: Message) -> Ack:
        if isinstance(message, LoadModel):
            await self.load_model(message.model_id)
        elif isinstance(message, InferenceRequest):
            await self.run_inference(message.prompt)
        else:
            logger.warning("Inference worker ignoring %s", message.type)
            return Ack(success=False, error="Unknown message type")
        return Ack(success=True)

    async def load_model(self, model_id: str) -> None:
        if self.ready and self.model_id == model_id:
            self.bus.send(ModelReady(), self.coordinator)
            return
        logger.info("Loading model %s", model_id)
        try:
            await self.backend.load(model_id)
        except Exception as exc:
            self.ready = False
            logger.error("Model load failed: %s", exc)
            self.bus.send(ModelError(error=str(exc)), self.coordinator)
            return
        self.ready = True
        self.model_id = model_id
        self.bus.send(ModelReady(), self.coordinator)

    async def run_inference(self, prompt: str) -> None:
        if not self.ready:
            self.bus.send(ModelError(error="Model not ready"), self.coordinator)
            return
        try:
            response = await self.backend.complete(prompt)
        except Exception as exc:
            text = str(exc)
            logger.error("Inference failed: %s", text)
            if any(marker in text.lower() for marker in FATAL_ERROR_MARKERS):
                self.ready = False
                self.model_id = None
            self.bus.send(ModelError(error=text), self.coordinator)
            return
        self.bus.send(InferenceResponse(response=response), self.coordinator)
