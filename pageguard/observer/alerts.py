"""Alert emission from the Observer to the Coordinator."""

from __future__ import annotations

import logging
from typing import Callable

from ..constants import COORDINATOR, AlertType
from ..messaging.bus import MessageBus
from ..messaging.messages import SecurityAlert
from ..utils.clock import now_ms

logger = logging.getLogger(__name__)


class AlertEmitter:
    """Turns detected conditions into SECURITY_ALERT messages.

    Fire-and-forget: delivery is never awaited, retried or verified.
    """

    def __init__(
        self,
        bus: MessageBus,
        target: str = COORDINATOR,
        clock: Callable[[], int] = now_ms,
    ):
        self.bus = bus
        self.target = target
        self.clock = clock

    def emit(self, alert_type: AlertType | str, data: dict) -> SecurityAlert:
        timestamp = self.clock()
        payload = dict(data)
        payload.setdefault("timestamp", timestamp)
        message = SecurityAlert(alert_type=str(alert_type), data=payload, timestamp=timestamp)
        self.bus.send(message, self.target)
        logger.warning("[Security Alert] %s: %s", message.alert_type, payload)
        return message
