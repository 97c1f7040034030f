"""Durable storage for the Coordinator."""

from .alerts import AlertHistory, AlertRecord
from .kv import KeyValueStore

__all__ = ["AlertHistory", "AlertRecord", "KeyValueStore"]
