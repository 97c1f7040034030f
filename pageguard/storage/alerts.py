"""Persisted, bounded alert history."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any

from ..constants import ALERT_HISTORY_KEY, DEFAULT_ALERT_HISTORY_LIMIT
from .kv import KeyValueStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AlertRecord:
    """One stored alert; ids increase monotonically across restarts."""

    id: int
    type: str
    message: str
    data: dict = field(default_factory=dict)
    timestamp: int = 0
    url: str = "unknown"

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AlertRecord":
        return cls(
            id=int(data["id"]),
            type=str(data.get("type", "")),
            message=str(data.get("message", "")),
            data=dict(data.get("data") or {}),
            timestamp=int(data.get("timestamp") or 0),
            url=str(data.get("url") or "unknown"),
        )


class AlertHistory:
    """Newest-first alert list under a single storage key, capped on every write."""

    def __init__(
        self,
        store: KeyValueStore,
        limit: int = DEFAULT_ALERT_HISTORY_LIMIT,
        key: str = ALERT_HISTORY_KEY,
    ):
        self.store = store
        self.limit = limit
        self.key = key

    async def load(self) -> list[AlertRecord]:
        raw = await self.store.get(self.key, [])
        records = []
        for item in raw or []:
            try:
                records.append(AlertRecord.from_dict(item))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping unreadable alert record: %s", exc)
        return records

    async def add(
        self,
        alert_type: str,
        message: str,
        data: dict,
        timestamp: int,
    ) -> AlertRecord:
        """Prepend a new record and truncate to the cap."""
        records = await self.load()
        last_id = records[0].id if records else 0
        record = AlertRecord(
            id=max(timestamp, last_id + 1),
            type=alert_type,
            message=message,
            data=dict(data),
            timestamp=timestamp,
            url=str(data.get("url") or "unknown"),
        )
        records.insert(0, record)
        del records[self.limit:]
        await self.store.set(self.key, [r.to_dict() for r in records])
        return record
