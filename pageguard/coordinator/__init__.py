"""Coordinator: alert normalization, persistence and chat brokering."""

from .alerts import RenderedAlert, render_alert
from .coordinator import Coordinator, ModelState
from .prompts import build_page_context_prompt, build_security_prompt

__all__ = [
    "RenderedAlert",
    "render_alert",
    "Coordinator",
    "ModelState",
    "build_page_context_prompt",
    "build_security_prompt",
]
