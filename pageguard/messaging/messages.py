"""Cross-context message types.

Every message is a frozen dataclass with a fixed ``type`` discriminant. The
wire form is a flat dict: ``{"type": ..., <camelCase payload fields>}``.
``parse_message`` is the only way a dict becomes a message, and it rejects
unknown discriminants with UnknownMessageError.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional, Union

from ..analyzer.models import PageContextSnapshot
from ..errors import MessageFormatError, UnknownMessageError


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


@dataclass(frozen=True)
class Message:
    """Base for all bus messages."""

    type: ClassVar[str] = ""

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"type": self.type}
        for f in dataclasses.fields(self):
            payload[_camel(f.name)] = getattr(self, f.name)
        return payload

    @classmethod
    def from_dict(cls, payload: dict) -> "Message":
        kwargs = {}
        for f in dataclasses.fields(cls):
            key = _camel(f.name)
            if key in payload:
                kwargs[f.name] = payload[key]
        return cls(**kwargs)


@dataclass(frozen=True)
class Ack:
    """Synchronous reply to a delivered message."""

    success: bool
    error: Optional[str] = None


# -- Observer -> Coordinator ---------------------------------------------------


@dataclass(frozen=True)
class SecurityAlert(Message):
    type: ClassVar[str] = "SECURITY_ALERT"

    alert_type: str
    data: dict = field(default_factory=dict)
    timestamp: int = 0


@dataclass(frozen=True)
class PageContextForChat(Message):
    type: ClassVar[str] = "PAGE_CONTEXT_FOR_CHAT"

    context: PageContextSnapshot

    def to_dict(self) -> dict:
        return {"type": self.type, "context": self.context.to_dict()}

    @classmethod
    def from_dict(cls, payload: dict) -> "PageContextForChat":
        context = payload.get("context")
        if not isinstance(context, PageContextSnapshot):
            context = PageContextSnapshot.from_dict(context or {})
        return cls(context=context)


# -- Inference engine -> Coordinator ------------------------------------------


@dataclass(frozen=True)
class ModelReady(Message):
    type: ClassVar[str] = "MODEL_READY"


@dataclass(frozen=True)
class ModelError(Message):
    type: ClassVar[str] = "MODEL_ERROR"

    error: str = ""


@dataclass(frozen=True)
class InferenceResponse(Message):
    type: ClassVar[str] = "INFERENCE_RESPONSE"

    response: str


# -- Presentation -> Coordinator ----------------------------------------------


@dataclass(frozen=True)
class ChatMessage(Message):
    type: ClassVar[str] = "CHAT_MESSAGE"

    message: str


@dataclass(frozen=True)
class InitModel(Message):
    type: ClassVar[str] = "INIT_MODEL"


# -- Coordinator -> Inference engine ------------------------------------------


@dataclass(frozen=True)
class LoadModel(Message):
    type: ClassVar[str] = "LOAD_MODEL"

    model_id: str


@dataclass(frozen=True)
class InferenceRequest(Message):
    type: ClassVar[str] = "INFERENCE"

    prompt: str


# -- Coordinator -> Presentation ----------------------------------------------


@dataclass(frozen=True)
class SecurityAlertNotification(Message):
    type: ClassVar[str] = "SECURITY_ALERT_NOTIFICATION"

    alert_type: str
    message: str
    severity: str
    data: dict = field(default_factory=dict)


@dataclass(frozen=True)
class ModelStatus(Message):
    type: ClassVar[str] = "MODEL_STATUS"

    status: str
    info: str = ""


@dataclass(frozen=True)
class ChatResponse(Message):
    type: ClassVar[str] = "CHAT_RESPONSE"

    response: str


@dataclass(frozen=True)
class ChatError(Message):
    type: ClassVar[str] = "CHAT_ERROR"

    error: str


# -- Presentation <-> Observer ------------------------------------------------


@dataclass(frozen=True)
class AnalyzePage(Message):
    type: ClassVar[str] = "ANALYZE_PAGE"


@dataclass(frozen=True)
class CheckUrl(Message):
    type: ClassVar[str] = "CHECK_URL"


@dataclass(frozen=True)
class GetPageContext(Message):
    type: ClassVar[str] = "GET_PAGE_CONTEXT"


@dataclass(frozen=True)
class PageAnalysisResult(Message):
    type: ClassVar[str] = "PAGE_ANALYSIS_RESULT"

    data: dict = field(default_factory=dict)


@dataclass(frozen=True)
class UrlAnalysisResult(Message):
    type: ClassVar[str] = "URL_ANALYSIS_RESULT"

    analysis: dict = field(default_factory=dict)


AnyMessage = Union[
    SecurityAlert,
    PageContextForChat,
    ModelReady,
    ModelError,
    InferenceResponse,
    ChatMessage,
    InitModel,
    LoadModel,
    InferenceRequest,
    SecurityAlertNotification,
    ModelStatus,
    ChatResponse,
    ChatError,
    AnalyzePage,
    CheckUrl,
    GetPageContext,
    PageAnalysisResult,
    UrlAnalysisResult,
]

MESSAGE_TYPES: dict[str, type[Message]] = {
    cls.type: cls for cls in AnyMessage.__args__  # type: ignore[attr-defined]
}


def parse_message(payload: dict) -> Message:
    """Build the typed message for a wire payload."""
    if not isinstance(payload, dict):
        raise UnknownMessageError(type(payload).__name__)
    message_type = payload.get("type")
    cls = MESSAGE_TYPES.get(message_type)
    if cls is None:
        raise UnknownMessageError(message_type)
    try:
        return cls.from_dict(payload)
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise MessageFormatError(f"Malformed {message_type} payload: {exc}") from exc
