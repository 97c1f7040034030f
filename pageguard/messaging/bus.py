"""In-process message bus with one mailbox per execution context.

Each registered endpoint gets its own queue drained by a dedicated worker
task, so a context handles exactly one message at a time and never shares
state with another context. Sending is fire-and-forget: the sender gets no
reply and messages addressed to an unregistered endpoint are dropped.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from ..errors import MessageFormatError, UnknownMessageError
from .messages import Ack, Message, parse_message

logger = logging.getLogger(__name__)

Handler = Callable[[Message], Awaitable[Ack]]


class Mailbox:
    """Queue plus worker task for one endpoint."""

    def __init__(self, name: str, handler: Handler, maxsize: int = 1000):
        self.name = name
        self.handler = handler
        self.queue: asyncio.Queue[tuple[Message, Optional[asyncio.Future]]] = asyncio.Queue(maxsize=maxsize)
        self._pending = 0
        self._idle = asyncio.Event()
        self._idle.set()
        self._task: Optional[asyncio.Task] = None

    @property
    def idle(self) -> bool:
        return self._pending == 0

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run(), name=f"mailbox:{self.name}")

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

    def put(self, message: Message, reply: Optional[asyncio.Future] = None) -> bool:
        try:
            self.queue.put_nowait((message, reply))
        except asyncio.QueueFull:
            logger.warning("Mailbox %s full; dropping %s", self.name, message.type)
            if reply is not None and not reply.done():
                reply.set_result(Ack(success=False, error="Mailbox full"))
            return False
        self._pending += 1
        self._idle.clear()
        return True

    async def wait_idle(self) -> None:
        await self._idle.wait()

    async def _run(self) -> None:
        while True:
            message, reply = await self.queue.get()
            try:
                ack = await self.handler(message)
            except Exception as exc:
                logger.exception("Handler for %s failed on %s", self.name, message.type)
                ack = Ack(success=False, error=str(exc))
            finally:
                self._pending -= 1
                if self._pending == 0:
                    self._idle.set()
                self.queue.task_done()
            if reply is not None and not reply.done():
                reply.set_result(ack)


class MessageBus:
    """Routes messages between named contexts."""

    def __init__(self, mailbox_size: int = 1000):
        self.mailbox_size = mailbox_size
        self._mailboxes: dict[str, Mailbox] = {}
        self.dropped = 0

    def register(self, endpoint: str, handler: Handler) -> Mailbox:
        """Attach a context; replaces (restarts) any existing one with that name."""
        old = self._mailboxes.pop(endpoint, None)
        if old is not None:
            asyncio.ensure_future(old.stop())
        mailbox = Mailbox(endpoint, handler, maxsize=self.mailbox_size)
        self._mailboxes[endpoint] = mailbox
        mailbox.start()
        logger.debug("Registered endpoint %s", endpoint)
        return mailbox

    async def unregister(self, endpoint: str) -> None:
        """Tear a context down; queued messages for it are lost."""
        mailbox = self._mailboxes.pop(endpoint, None)
        if mailbox is not None:
            await mailbox.stop()
            logger.debug("Unregistered endpoint %s", endpoint)

    def is_registered(self, endpoint: str) -> bool:
        return endpoint in self._mailboxes

    def send(self, message: Message, to: str) -> bool:
        """Fire-and-forget delivery. Returns False when the message was dropped."""
        mailbox = self._mailboxes.get(to)
        if mailbox is None:
            self.dropped += 1
            logger.debug("No endpoint %s; dropping %s", to, message.type)
            return False
        return mailbox.put(message)

    def send_raw(self, payload: dict, to: str) -> Ack:
        """Parse a wire payload and deliver it; unknown types are refused."""
        try:
            message = parse_message(payload)
        except UnknownMessageError as exc:
            logger.warning("Refusing message for %s: %s", to, exc)
            return Ack(success=False, error="Unknown message type")
        except MessageFormatError as exc:
            logger.warning("Refusing message for %s: %s", to, exc)
            return Ack(success=False, error=str(exc))
        if not self.send(message, to):
            return Ack(success=False, error=f"Endpoint {to} unavailable")
        return Ack(success=True)

    async def request(self, message: Message, to: str) -> Ack:
        """Deliver and wait for the handler's acknowledgement."""
        mailbox = self._mailboxes.get(to)
        if mailbox is None:
            self.dropped += 1
            return Ack(success=False, error=f"Endpoint {to} unavailable")
        reply: asyncio.Future = asyncio.get_running_loop().create_future()
        mailbox.put(message, reply)
        return await reply

    async def drain(self) -> None:
        """Wait until every mailbox is empty, including follow-up messages."""
        while True:
            busy = [mb for mb in self._mailboxes.values() if not mb.idle]
            if not busy:
                return
            await asyncio.gather(*(mb.wait_idle() for mb in busy))

    async def close(self) -> None:
        for endpoint in list(self._mailboxes):
            await self.unregister(endpoint)
