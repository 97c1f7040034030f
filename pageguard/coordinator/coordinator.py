"""Coordinator: aggregates alerts and context, brokers inference requests."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional

from ..analyzer.models import PageContextSnapshot
from ..constants import (
    COORDINATOR,
    DEFAULT_MODEL_ID,
    DEFAULT_MODEL_READY_GRACE,
    INFERENCE,
    PRESENTATION,
)
from ..errors import MessageFormatError, UnknownMessageError
from ..messaging.bus import MessageBus
from ..messaging.messages import (
    Ack,
    ChatError,
    ChatMessage,
    ChatResponse,
    InferenceRequest,
    InferenceResponse,
    InitModel,
    LoadModel,
    Message,
    ModelError,
    ModelReady,
    ModelStatus,
    PageContextForChat,
    SecurityAlert,
    SecurityAlertNotification,
    parse_message,
)
from ..storage.alerts import AlertHistory, AlertRecord
from ..utils.clock import now_ms
from .alerts import render_alert
from .prompts import build_security_prompt

logger = logging.getLogger(__name__)

NOT_READY_ERROR = "Model not ready - please wait for initialization"


class ModelState(str, Enum):
    """Inference engine lifecycle as seen by the Coordinator."""

    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class Coordinator:
    """Reacts to messages only; holds the current page context and model state.

    In-memory state is lost on restart; only the alert history is durable.
    """

    def __init__(
        self,
        bus: MessageBus,
        history: Optional[AlertHistory] = None,
        model_id: str = DEFAULT_MODEL_ID,
        ready_grace: float = DEFAULT_MODEL_READY_GRACE,
        clock: Callable[[], int] = now_ms,
        endpoint: str = COORDINATOR,
        presentation: str = PRESENTATION,
        inference: str = INFERENCE,
    ):
        self.bus = bus
        self.history = history
        self.model_id = model_id
        self.ready_grace = ready_grace
        self.clock = clock
        self.endpoint = endpoint
        self.presentation = presentation
        self.inference = inference

        self.model_state = ModelState.UNINITIALIZED
        self.model_error: Optional[str] = None
        self.current_page_context: Optional[PageContextSnapshot] = None
        self.alerts_received = 0
        self._ready = asyncio.Event()
        self._pending: set[asyncio.Task] = set()

        self._handlers: dict[type, Callable[[Message], Awaitable[None]]] = {
            SecurityAlert: self.handle_security_alert,
            PageContextForChat: self.handle_page_context,
            ModelReady: self.handle_model_ready,
            ModelError: self.handle_model_error,
            InferenceResponse: self.handle_inference_response,
            ChatMessage: self.handle_chat_message,
            InitModel: self.handle_init_model,
        }

    def register(self) -> None:
        self.bus.register(self.endpoint, self.handle)

    @property
    def chat_admissible(self) -> bool:
        return self.model_state is ModelState.READY

    # -- dispatch ------------------------------------------------------------

    async def handle(self, message: Message) -> Ack:
        handler = self._handlers.get(type(message))
        if handler is None:
            logger.warning("Coordinator received unhandled message type %s", message.type)
            return Ack(success=False, error="Unknown message type")
        try:
            await handler(message)
        except Exception as exc:
            logger.exception("Coordinator message handling error for %s", message.type)
            return Ack(success=False, error=str(exc))
        return Ack(success=True)

    async def handle_payload(self, payload: dict) -> Ack:
        """Entry point for raw wire payloads."""
        try:
            message = parse_message(payload)
        except (UnknownMessageError, MessageFormatError) as exc:
            logger.warning("Coordinator rejected payload: %s", exc)
            return Ack(success=False, error="Unknown message type")
        return await self.handle(message)

    # -- alerts --------------------------------------------------------------

    async def handle_security_alert(self, message: SecurityAlert) -> Optional[AlertRecord]:
        self.alerts_received += 1
        data = dict(message.data or {})
        logger.info("Security Alert: %s %s", message.alert_type, data)

        rendered = render_alert(message.alert_type, data)
        self._broadcast(
            SecurityAlertNotification(
                alert_type=message.alert_type,
                message=rendered.message,
                severity=rendered.severity.value,
                data=data,
            )
        )
        return await self.store_alert(message.alert_type, data, rendered.message)

    async def store_alert(self, alert_type: str, data: dict, message: str) -> Optional[AlertRecord]:
        if self.history is None:
            return None
        try:
            return await self.history.add(alert_type, message, data, self.clock())
        except Exception as exc:
            logger.error("Failed to store security alert: %s", exc)
            return None

    # -- page context --------------------------------------------------------

    async def handle_page_context(self, message: PageContextForChat) -> None:
        self.current_page_context = message.context
        logger.info("Updated page context for security analysis: %s", message.context.basic.url)
        self._broadcast(PageContextForChat(context=message.context))

    # -- model lifecycle -----------------------------------------------------

    async def handle_init_model(self, message: InitModel) -> None:
        await self.initialize_model()

    async def initialize_model(self) -> None:
        self._broadcast(ModelStatus(status=ModelState.LOADING.value, info="Loading model..."))
        if self.model_state is not ModelState.READY:
            self.model_state = ModelState.LOADING
        if not self.bus.send(LoadModel(model_id=self.model_id), self.inference):
            logger.error("Model initialization failed: inference engine unreachable")
            self.model_state = ModelState.ERROR
            self._broadcast(ModelStatus(status=ModelState.ERROR.value, info="Failed to load model"))

    async def handle_model_ready(self, message: ModelReady) -> None:
        self.model_state = ModelState.READY
        self.model_error = None
        self._ready.set()
        self._broadcast(ModelStatus(status=ModelState.READY.value, info="Ready"))

    async def handle_model_error(self, message: ModelError) -> None:
        self.model_state = ModelState.ERROR
        self.model_error = message.error
        self._ready.clear()
        self._broadcast(ModelStatus(status=ModelState.ERROR.value, info=f"Error: {message.error}"))

    # -- chat ----------------------------------------------------------------

    async def handle_chat_message(self, message: ChatMessage) -> None:
        if not self.chat_admissible:
            logger.info("Model not ready, attempting to reinitialize...")
            await self.initialize_model()
            # Runs detached so lifecycle messages keep draining from this mailbox.
            task = asyncio.create_task(self._forward_when_ready(message.message))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
            return
        self.forward_chat(message.message)

    async def _forward_when_ready(self, user_message: str) -> None:
        try:
            await asyncio.wait_for(self._ready.wait(), timeout=self.ready_grace)
        except asyncio.TimeoutError:
            self._broadcast(ChatError(error=NOT_READY_ERROR))
            return
        self.forward_chat(user_message)

    def forward_chat(self, user_message: str) -> None:
        try:
            prompt = build_security_prompt(user_message, self.current_page_context)
        except Exception as exc:
            logger.error("Chat processing failed: %s", exc)
            self._broadcast(ChatError(error="Failed to process message"))
            return
        if not self.bus.send(InferenceRequest(prompt=prompt), self.inference):
            self._broadcast(ChatError(error=NOT_READY_ERROR))

    async def handle_inference_response(self, message: InferenceResponse) -> None:
        self._broadcast(ChatResponse(response=message.response))

    # -- helpers -------------------------------------------------------------

    def _broadcast(self, message: Message) -> None:
        self.bus.send(message, self.presentation)

    async def drain(self) -> None:
        """Wait for detached chat tasks (grace-period waits) to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def status(self) -> dict:
        return {
            "model_state": self.model_state.value,
            "model_error": self.model_error,
            "alerts_received": self.alerts_received,
            "page_context_url": (
                self.current_page_context.basic.url if self.current_page_context else None
            ),
        }
