"""Command-line entry point for PageGuard."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from .analyzer import PageContextExtractor, UrlRiskMatcher
from .config import Config, load_config, validate_config
from .constants import PRESENTATION
from .coordinator import Coordinator
from .dom import Document
from .dom.capture import capture_page
from .inference import InferenceWorker, OpenAICompatibleBackend
from .messaging import Ack, Message, MessageBus
from .messaging.messages import (
    ChatError,
    ChatMessage,
    ChatResponse,
    GetPageContext,
    ModelStatus,
    PageContextForChat,
    SecurityAlertNotification,
)
from .observer import PageObserver
from .storage import AlertHistory, KeyValueStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout),
    ],
)
logger = logging.getLogger(__name__)


class ConsolePresentation:
    """Presentation endpoint that prints what the Coordinator broadcasts."""

    def __init__(self, out=None):
        self.out = out or sys.stdout
        self.notifications: list[SecurityAlertNotification] = []
        self.context: Optional[PageContextForChat] = None
        self._chat: Optional[asyncio.Future] = None

    async def handle(self, message: Message) -> Ack:
        if isinstance(message, SecurityAlertNotification):
            self.notifications.append(message)
            print(f"[{message.severity.upper()}] {message.message}", file=self.out)
        elif isinstance(message, PageContextForChat):
            self.context = message
        elif isinstance(message, ModelStatus):
            logger.info("Model status: %s (%s)", message.status, message.info)
        elif isinstance(message, (ChatResponse, ChatError)):
            if self._chat is not None and not self._chat.done():
                self._chat.set_result(message)
        return Ack(success=True)

    def expect_chat(self) -> asyncio.Future:
        self._chat = asyncio.get_running_loop().create_future()
        return self._chat


class PageGuardApp:
    """Wires the bus, Coordinator, inference worker and presentation."""

    def __init__(self, config: Config):
        self.config = config
        self.bus = MessageBus()
        self.store = KeyValueStore(config.db_path)
        self.history = AlertHistory(self.store, limit=config.alert_history_limit)
        self.coordinator = Coordinator(
            self.bus,
            self.history,
            model_id=config.model_id,
            ready_grace=config.model_ready_grace,
        )
        self.presentation = ConsolePresentation()
        self.matcher = UrlRiskMatcher.from_config(config.url_rules)
        self.backend: Optional[OpenAICompatibleBackend] = None
        self.worker: Optional[InferenceWorker] = None
        if config.inference_enabled:
            self.backend = OpenAICompatibleBackend(
                config.inference_base_url,
                api_key=config.inference_api_key,
                timeout=config.inference_timeout,
                temperature=config.inference_temperature,
                max_tokens=config.inference_max_tokens,
            )
            self.worker = InferenceWorker(self.bus, self.backend)

    async def start(self):
        self.config.data_dir.mkdir(parents=True, exist_ok=True)
        await self.store.connect()
        self.coordinator.register()
        self.bus.register(PRESENTATION, self.presentation.handle)
        if self.worker:
            self.worker.register()

    async def stop(self):
        await self.coordinator.drain()
        await self.bus.close()
        if self.backend:
            await self.backend.close()
        await self.store.close()

    def observer_for(self, document: Document) -> PageObserver:
        return PageObserver(
            document,
            self.bus,
            matcher=self.matcher,
            extractor=PageContextExtractor(
                self.matcher,
                payment_selectors=self.config.payment_selectors,
                social_selectors=self.config.social_selectors,
            ),
            throttle_window=self.config.analysis_throttle,
            debounce_delay=self.config.mutation_debounce,
        )

    async def ask(self, question: str, timeout: float) -> Message:
        pending = self.presentation.expect_chat()
        self.bus.send(ChatMessage(message=question), self.coordinator.endpoint)
        return await asyncio.wait_for(pending, timeout=timeout)


async def load_document(target: str, page_url: Optional[str], config: Config) -> Document:
    if target.startswith(("http://", "https://")):
        logger.info("Capturing %s", target)
        return await capture_page(target, timeout=config.capture_timeout)
    path = Path(target)
    html = path.read_text(encoding="utf-8", errors="replace")
    return Document(html, page_url or path.resolve().as_uri())


async def run_scan(args: argparse.Namespace, config: Config) -> int:
    app = PageGuardApp(config)
    await app.start()
    observer = None
    try:
        document = await load_document(args.target, args.url, config)
        observer = app.observer_for(document)
        await observer.start()
        app.bus.send(GetPageContext(), observer.endpoint)
        await app.bus.drain()
        await observer.settle()
        await app.bus.drain()

        context = app.coordinator.current_page_context
        if context is not None:
            print(json.dumps(context.to_dict(), indent=2), file=app.presentation.out)

        if args.ask:
            if app.worker is None:
                logger.error("Security chat requires INFERENCE_BASE_URL")
            else:
                reply = await app.ask(args.ask, timeout=config.inference_timeout + config.model_ready_grace)
                if isinstance(reply, ChatResponse):
                    print(reply.response, file=app.presentation.out)
                else:
                    print(f"Chat error: {reply.error}", file=app.presentation.out)

        print(f"{len(app.presentation.notifications)} alert(s) raised", file=app.presentation.out)
        logger.info("Coordinator status: %s", app.coordinator.status())
    finally:
        if observer is not None:
            await observer.stop()
        await app.stop()
    return 0


async def run_alerts(args: argparse.Namespace, config: Config) -> int:
    store = KeyValueStore(config.db_path)
    config.data_dir.mkdir(parents=True, exist_ok=True)
    await store.connect()
    try:
        records = await AlertHistory(store, limit=config.alert_history_limit).load()
    finally:
        await store.close()
    if args.json:
        print(json.dumps([r.to_dict() for r in records], indent=2))
        return 0
    for record in records:
        print(f"{record.id}  {record.type:<28} {record.message}")
    if not records:
        print("No alerts recorded")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pageguard", description="Page security observer.")
    sub = parser.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", help="Analyze an HTML file or a live URL.")
    scan.add_argument("target", help="Path to an HTML file or an http(s) URL.")
    scan.add_argument("--url", help="Page URL to attribute to a local HTML file.")
    scan.add_argument("--ask", metavar="QUESTION", help="Ask the security assistant about the page.")

    alerts = sub.add_parser("alerts", help="Print the persisted alert history.")
    alerts.add_argument("--json", action="store_true", help="Emit raw records as JSON.")
    return parser


async def run_cli(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = load_config()

    validation_errors = validate_config(config)
    if validation_errors:
        for err in validation_errors:
            logger.error(err)
        return 1

    if args.command == "scan":
        return await run_scan(args, config)
    return await run_alerts(args, config)


def main():
    """Entry point."""
    sys.exit(asyncio.run(run_cli()))


if __name__ == "__main__":
    main()
