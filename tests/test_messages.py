"""Tests for the message vocabulary."""

import pytest

from pageguard.errors import MessageFormatError, UnknownMessageError
from pageguard.messaging.messages import (
    MESSAGE_TYPES,
    ChatMessage,
    InferenceRequest,
    LoadModel,
    ModelReady,
    SecurityAlert,
    parse_message,
)


def test_wire_form_uses_camel_case():
    message = SecurityAlert(alert_type="insecure_protocol", data={"url": "http://a.test"}, timestamp=5)
    assert message.to_dict() == {
        "type": "SECURITY_ALERT",
        "alertType": "insecure_protocol",
        "data": {"url": "http://a.test"},
        "timestamp": 5,
    }


def test_parse_known_messages():
    assert parse_message({"type": "MODEL_READY"}) == ModelReady()
    assert parse_message({"type": "CHAT_MESSAGE", "message": "hi"}) == ChatMessage(message="hi")
    assert parse_message({"type": "LOAD_MODEL", "modelId": "m"}) == LoadModel(model_id="m")
    assert parse_message({"type": "INFERENCE", "prompt": "p"}) == InferenceRequest(prompt="p")


def test_unknown_type_rejected():
    with pytest.raises(UnknownMessageError) as excinfo:
        parse_message({"type": "DELETE_EVERYTHING"})
    assert "Unknown message type" in str(excinfo.value)


def test_missing_required_field_rejected():
    with pytest.raises(MessageFormatError):
        parse_message({"type": "SECURITY_ALERT"})


def test_discriminants_are_unique():
    assert len(MESSAGE_TYPES) == 18
    assert "PAGE_CONTEXT_FOR_CHAT" in MESSAGE_TYPES


@pytest.mark.parametrize("context", ["x", ["a"], 7])
def test_non_object_page_context_rejected(context):
    with pytest.raises(MessageFormatError):
        parse_message({"type": "PAGE_CONTEXT_FOR_CHAT", "context": context})


@pytest.mark.parametrize("section", ["security", "content", "technical"])
def test_non_object_context_section_rejected(section):
    context = {
        "basic": {
            "url": "https://a.test/",
            "domain": "a.test",
            "protocol": "https:",
            "is_https": True,
            "title": "",
            "timestamp": 0,
        },
        section: ["not", "a", "section"],
    }
    with pytest.raises(MessageFormatError):
        parse_message({"type": "PAGE_CONTEXT_FOR_CHAT", "context": context})


def test_non_object_nested_resources_rejected():
    context = {"basic": {}, "security": {"external_resources": "scripts"}}
    with pytest.raises(MessageFormatError):
        parse_message({"type": "PAGE_CONTEXT_FOR_CHAT", "context": context})
