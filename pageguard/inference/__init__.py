"""Inference engine adapters."""

from .backend import InferenceBackend, OpenAICompatibleBackend
from .worker import InferenceWorker

__all__ = ["InferenceBackend", "OpenAICompatibleBackend", "InferenceWorker"]
