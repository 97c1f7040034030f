"""Centralized constants for PageGuard.

This module contains enums and constants used across the Observer and the
Coordinator so both ends agree on alert kinds, severities and limits.
"""

from enum import Enum


class AlertType(str, Enum):
    """Alert kinds emitted by the Observer."""

    PASSWORD_OVER_HTTP = "password_over_http"
    INSECURE_FORM_SUBMISSION = "insecure_form_submission"
    SUSPICIOUS_SCRIPT = "suspicious_script_detected"
    SUSPICIOUS_LINK = "suspicious_link_detected"
    INSECURE_PROTOCOL = "insecure_protocol"

    @classmethod
    def from_string(cls, value: str | None) -> "AlertType | None":
        """Return the matching alert type, or None for unrecognized values."""
        for member in cls:
            if member.value == value:
                return member
        return None

    def __str__(self) -> str:
        return self.value


class Severity(str, Enum):
    """Severity attached to user-facing alert notifications."""

    HIGH = "high"
    MEDIUM = "medium"

    def __str__(self) -> str:
        return self.value


# Storage key holding the persisted alert history.
ALERT_HISTORY_KEY = "securityAlerts"
DEFAULT_ALERT_HISTORY_LIMIT = 50

# Observer timing (seconds)
DEFAULT_ANALYSIS_THROTTLE = 1.0
DEFAULT_MUTATION_DEBOUNCE = 0.05

# Coordinator grace period before a chat request fails as "not ready"
DEFAULT_MODEL_READY_GRACE = 1.0
DEFAULT_MODEL_ID = "Qwen2-0.5B-Instruct-q4f16_1-MLC"

# Snapshot limits
TEXT_SAMPLE_LIMIT = 500
HEADING_LIMIT = 10
HEADING_TEXT_LIMIT = 100
LINK_TEXT_LIMIT = 100
META_CONTENT_LIMIT = 100
COOKIE_NAME_LIMIT = 5
PROMPT_TEXT_EXCERPT = 200

# Endpoints on the message bus
COORDINATOR = "coordinator"
PRESENTATION = "presentation"
INFERENCE = "inference"
OBSERVER_PREFIX = "observer"


def observer_endpoint(document_id: str) -> str:
    """Bus endpoint name for the Observer attached to one document."""
    return f"{OBSERVER_PREFIX}:{document_id}"
