"""Cross-context messaging: typed messages and the in-process bus."""

from .bus import MessageBus
from .messages import Ack, Message, parse_message

__all__ = ["MessageBus", "Ack", "Message", "parse_message"]
