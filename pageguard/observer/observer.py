"""Per-document Observer: heuristic scans driven by an explicit event loop."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Callable, Optional

from bs4 import Tag

from ..analyzer.context import PageContextExtractor
from ..analyzer.findings import find_suspicious_elements
from ..analyzer.forms import PASSWORD_SELECTOR, analyze_form_security, analyze_forms
from ..analyzer.models import FindingKind, FormProfile, Risk, SecurityFinding, to_plain
from ..analyzer.url_rules import UrlRiskMatcher
from ..constants import (
    COORDINATOR,
    DEFAULT_ANALYSIS_THROTTLE,
    DEFAULT_MUTATION_DEBOUNCE,
    PRESENTATION,
    AlertType,
    observer_endpoint,
)
from ..dom.document import Document, MutationRecord, input_value
from ..messaging.bus import MessageBus
from ..messaging.messages import (
    Ack,
    AnalyzePage,
    CheckUrl,
    GetPageContext,
    Message,
    PageAnalysisResult,
    PageContextForChat,
    UrlAnalysisResult,
)
from ..utils.clock import now_ms
from .alerts import AlertEmitter
from .guard import ObserverGuard
from .watcher import MutationWatcher

logger = logging.getLogger(__name__)

FORM_WARNING_CLASS = "security-warning"
INLINE_WARNING_CLASS = "inline-security-warning"
MONITORED_ATTR = "data-security-monitored"

FORM_WARNING_HTML = (
    f'<div class="{FORM_WARNING_CLASS}">⚠️ <strong>Security Warning:</strong> '
    "This form sends passwords over an unencrypted connection. "
    "Your data may be intercepted.</div>"
)
INLINE_WARNING_HTML = (
    f'<div class="{INLINE_WARNING_CLASS}">⚠️ Insecure connection - password may be intercepted</div>'
)


@dataclass
class MutationEvent:
    records: list[MutationRecord] = field(default_factory=list)


@dataclass
class DomEvent:
    kind: str  # submit | input | focus
    element: Tag


@dataclass
class RuntimeRequest:
    message: Message


@dataclass
class PageAnalysis:
    """Result of one full-page analysis pass."""

    url: str
    protocol: str
    has_https: bool
    domain: str
    findings: list[SecurityFinding]
    forms: list[FormProfile]
    timestamp: int


class PageObserver:
    """Watches one document and reports risk signals to the Coordinator.

    All observer state (guard, monitored forms, debounce deadline) is touched
    only from this object's own loop task, so no locking is needed.
    """

    def __init__(
        self,
        document: Document,
        bus: MessageBus,
        document_id: str = "main",
        matcher: Optional[UrlRiskMatcher] = None,
        extractor: Optional[PageContextExtractor] = None,
        throttle_window: float = DEFAULT_ANALYSIS_THROTTLE,
        debounce_delay: float = DEFAULT_MUTATION_DEBOUNCE,
        clock: Callable[[], float] = time.monotonic,
        coordinator: str = COORDINATOR,
        presentation: str = PRESENTATION,
    ):
        self.document = document
        self.bus = bus
        self.endpoint = observer_endpoint(document_id)
        self.matcher = matcher or UrlRiskMatcher()
        self.extractor = extractor or PageContextExtractor(self.matcher)
        self.coordinator = coordinator
        self.presentation = presentation

        self.guard = ObserverGuard(throttle_window=throttle_window, clock=clock)
        self.watcher = MutationWatcher(debounce_delay, clock=clock)
        self.emitter = AlertEmitter(bus, target=coordinator)

        self._events: asyncio.Queue = asyncio.Queue()
        self._unprocessed = 0
        self._monitored_forms: set[int] = set()
        self._registered: list[tuple[Tag, str, Callable[[Tag], None]]] = []
        self._disconnect: Optional[Callable[[], None]] = None
        self._task: Optional[asyncio.Task] = None
        self.analysis_runs = 0
        self.rescans = 0

    # -- lifecycle -----------------------------------------------------------

    async def start(self) -> None:
        self.bus.register(self.endpoint, self.handle)
        self._attach()
        self._task = asyncio.create_task(self._run(), name=f"observer:{self.endpoint}")

    async def stop(self) -> None:
        await self.bus.unregister(self.endpoint)
        self._detach()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

    def navigate(self, document: Document) -> None:
        """Swap in a freshly loaded document; all per-document state resets."""
        self._detach()
        while not self._events.empty():
            self._events.get_nowait()
        self._unprocessed = 0
        self.guard.reset()
        self.watcher.reset()
        self._monitored_forms.clear()
        self.document = document
        self._attach()

    def _attach(self) -> None:
        logger.info("Observer attached to %s", self.document.location.href)
        self.analyze_page()
        self.setup_form_monitoring()
        self._disconnect = self.document.observe(self._on_mutations)

    def _detach(self) -> None:
        if self._disconnect:
            self._disconnect()
        self._disconnect = None
        for element, event, callback in self._registered:
            self.document.remove_event_listener(element, event, callback)
        self._registered.clear()

    async def settle(self, poll: float = 0.005) -> None:
        """Wait until queued events and any pending re-scan have been processed."""
        while self._unprocessed or self.watcher.timer.pending:
            await asyncio.sleep(poll)

    # -- inbound -------------------------------------------------------------

    async def handle(self, message: Message) -> Ack:
        """Bus handler: runtime requests are queued for the observer loop."""
        if not isinstance(message, (AnalyzePage, CheckUrl, GetPageContext)):
            logger.warning("Observer ignoring unexpected message %s", message.type)
            return Ack(success=False, error="Unknown message type")
        self._enqueue(RuntimeRequest(message))
        return Ack(success=True)

    def _enqueue(self, event) -> None:
        self._unprocessed += 1
        self._events.put_nowait(event)

    def _on_mutations(self, records: list[MutationRecord]) -> None:
        self._enqueue(MutationEvent(records))

    def _on_dom_event(self, kind: str) -> Callable[[Tag], None]:
        def enqueue(element: Tag) -> None:
            self._enqueue(DomEvent(kind, element))

        return enqueue

    async def _run(self) -> None:
        while True:
            timeout = self.watcher.timer.remaining()
            try:
                if timeout is None:
                    event = await self._events.get()
                else:
                    event = await asyncio.wait_for(self._events.get(), timeout)
            except asyncio.TimeoutError:
                event = None

            if event is not None:
                try:
                    self._dispatch(event)
                except Exception:
                    logger.exception("Observer failed handling %s", type(event).__name__)
                finally:
                    self._unprocessed -= 1

            if self.watcher.due():
                try:
                    self.rescan()
                except Exception:
                    logger.exception("Observer re-scan failed")

    def _dispatch(self, event) -> None:
        if isinstance(event, MutationEvent):
            if self.watcher.offer(event.records):
                logger.debug("New form content; re-scan scheduled")
        elif isinstance(event, DomEvent):
            if event.kind == "submit":
                self.handle_form_submission(event.element)
            elif event.kind == "input":
                self.handle_password_input(event.element)
            elif event.kind == "focus":
                self.handle_password_focus(event.element)
        elif isinstance(event, RuntimeRequest):
            self._handle_request(event.message)

    def _handle_request(self, message: Message) -> None:
        if isinstance(message, AnalyzePage):
            self.perform_page_analysis()
        elif isinstance(message, CheckUrl):
            self.analyze_current_url()
        elif isinstance(message, GetPageContext):
            self.send_page_context()

    def rescan(self) -> None:
        self.rescans += 1
        self.monitor_forms()
        self.setup_password_field_listeners()
        self.analyze_page()

    # -- analysis ------------------------------------------------------------

    def analyze_page(self) -> Optional[PageAnalysis]:
        """Full-page analysis, throttled; returns None when dropped."""
        if not self.guard.throttle.try_acquire():
            logger.debug("Analysis throttled for %s", self.document.location.href)
            return None

        location = self.document.location
        logger.info("Starting security analysis of page: %s", location.href)
        timestamp = now_ms()
        analysis = PageAnalysis(
            url=location.href,
            protocol=location.protocol,
            has_https=location.is_https,
            domain=location.hostname,
            findings=find_suspicious_elements(self.document, self.matcher, timestamp),
            forms=analyze_forms(self.document),
            timestamp=timestamp,
        )
        self.analysis_runs += 1

        for finding in analysis.findings:
            if finding.kind is FindingKind.SUSPICIOUS_LINK:
                if self.guard.dedup.first_time(f"link:{finding.locator}"):
                    self.emitter.emit(
                        AlertType.SUSPICIOUS_LINK,
                        {
                            "url": location.href,
                            "linkHref": finding.locator,
                            "linkText": finding.excerpt,
                            "timestamp": timestamp,
                        },
                    )
            elif finding.kind is FindingKind.SUSPICIOUS_SCRIPT:
                if self.guard.dedup.first_time(f"script:{finding.locator}"):
                    self.emitter.emit(
                        AlertType.SUSPICIOUS_SCRIPT,
                        {
                            "url": location.href,
                            "scriptSrc": finding.locator,
                            "timestamp": timestamp,
                        },
                    )

        if not analysis.has_https:
            self.emitter.emit(
                AlertType.INSECURE_PROTOCOL,
                {"url": location.href, "protocol": location.protocol, "timestamp": timestamp},
            )
        return analysis

    def perform_page_analysis(self) -> dict:
        """On-demand analysis summary for the presentation layer (not throttled)."""
        data = {
            "title": self.document.title,
            "url": self.document.location.href,
            "domain": self.document.location.hostname,
            "forms": [to_plain(asdict(form)) for form in analyze_forms(self.document)],
            "suspicious": [
                to_plain(asdict(f)) for f in find_suspicious_elements(self.document, self.matcher)
            ],
            "meta": {
                meta.get("name"): meta.get("content") or ""
                for meta in self.document.select("meta[name]")
            },
        }
        self.bus.send(PageAnalysisResult(data=data), self.presentation)
        return data

    def analyze_current_url(self) -> dict:
        location = self.document.location
        analysis = {
            "url": location.href,
            "suspicious": self.matcher.is_suspicious(location.href),
            "protocol": location.protocol,
            "domain": location.hostname,
            "path": location.pathname,
        }
        self.bus.send(UrlAnalysisResult(analysis=analysis), self.presentation)
        return analysis

    def send_page_context(self) -> PageContextForChat:
        message = PageContextForChat(context=self.extractor.extract(self.document))
        self.bus.send(message, self.coordinator)
        return message

    # -- form monitoring -----------------------------------------------------

    def setup_form_monitoring(self) -> None:
        self.monitor_forms()
        self.setup_password_field_listeners()

    def monitor_forms(self) -> None:
        page_https = self.document.location.is_https
        for form in self.document.select("form"):
            if id(form) in self._monitored_forms:
                continue
            self._monitored_forms.add(id(form))

            if form.select(PASSWORD_SELECTOR) and not page_https:
                self.show_security_warning(form)

            self._listen(form, "submit")

    def setup_password_field_listeners(self) -> None:
        for field_el in self.document.select(PASSWORD_SELECTOR):
            if field_el.get(MONITORED_ATTR):
                continue
            field_el[MONITORED_ATTR] = "true"
            self._listen(field_el, "input")
            self._listen(field_el, "focus")

    def _listen(self, element: Tag, event: str) -> None:
        callback = self._on_dom_event(event)
        self.document.add_event_listener(element, event, callback)
        self._registered.append((element, event, callback))

    def handle_password_input(self, field_el: Tag) -> None:
        if self.document.location.is_https or not input_value(field_el):
            return
        form = field_el.find_parent("form")
        self.emitter.emit(
            AlertType.PASSWORD_OVER_HTTP,
            {
                "url": self.document.location.href,
                "formAction": self.document.form_action(form) if form is not None else "unknown",
            },
        )

    def handle_password_focus(self, field_el: Tag) -> None:
        if not self.document.location.is_https:
            self.show_inline_warning(field_el)

    def handle_form_submission(self, form: Tag) -> None:
        # Submission-time analysis is authoritative over the scan-time label.
        analysis = analyze_form_security(form, self.document)
        if analysis.risk is Risk.HIGH:
            data = {
                "action": analysis.action,
                "hasPasswordField": analysis.has_password_field,
                "hasEmailField": analysis.has_email_field,
                "pageIsHttps": analysis.page_is_https,
                "actionIsHttps": analysis.action_is_https,
                "risk": analysis.risk.value,
                "reason": analysis.reason,
                "url": self.document.location.href,
            }
            self.emitter.emit(AlertType.INSECURE_FORM_SUBMISSION, data)

    def show_security_warning(self, form: Tag) -> None:
        if form.select_one(f".{FORM_WARNING_CLASS}") is not None:
            return
        first = next((child for child in form.children if isinstance(child, Tag)), None)
        if first is not None:
            self.document.insert_html(FORM_WARNING_HTML, before=first)
        else:
            self.document.insert_html(FORM_WARNING_HTML, parent=form)

    def show_inline_warning(self, field_el: Tag) -> None:
        sibling = field_el.find_next_sibling()
        if sibling is not None and INLINE_WARNING_CLASS in (sibling.get("class") or []):
            return
        self.document.insert_after(field_el, INLINE_WARNING_HTML)
