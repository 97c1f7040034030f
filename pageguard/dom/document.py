"""Live document model watched by the Observer.

Wraps a BeautifulSoup tree with the pieces of browser state the heuristics
read (location, cookies, web storage, script globals) and the two hooks the
Observer needs: structural mutation records and element event listeners.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup, Tag

from ..errors import StorageAccessError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Location:
    """Parsed page location, mirroring window.location fields."""

    href: str
    protocol: str
    hostname: str
    origin: str
    pathname: str

    @classmethod
    def from_url(cls, url: str) -> "Location":
        parsed = urlparse(url or "")
        scheme = (parsed.scheme or "").lower()
        hostname = (parsed.hostname or "").lower()
        netloc = parsed.netloc.rsplit("@", 1)[-1].lower()
        origin = f"{scheme}://{netloc}" if scheme and netloc else "null"
        return cls(
            href=url or "",
            protocol=f"{scheme}:" if scheme else "",
            hostname=hostname,
            origin=origin,
            pathname=parsed.path or "/",
        )

    @property
    def is_https(self) -> bool:
        return self.protocol == "https:"


class StorageArea:
    """Key/value web storage; reading a denied area raises StorageAccessError."""

    def __init__(self, items: Optional[dict[str, str]] = None, denied: bool = False):
        self._items = dict(items or {})
        self.denied = denied

    def __len__(self) -> int:
        if self.denied:
            raise StorageAccessError("Storage access denied")
        return len(self._items)


@dataclass
class MutationRecord:
    """Structural change: nodes appended under a target element."""

    target: Tag
    added_nodes: list = field(default_factory=list)


MutationCallback = Callable[[list[MutationRecord]], None]
EventCallback = Callable[[Tag], None]


class Document:
    """A parsed, mutable HTML document bound to a URL."""

    def __init__(
        self,
        html: str,
        url: str,
        cookie: str = "",
        local_storage: Optional[StorageArea] = None,
        session_storage: Optional[StorageArea] = None,
        script_globals: Iterable[str] = (),
    ):
        self.soup = BeautifulSoup(html or "", "html.parser")
        self.location = Location.from_url(url)
        self.cookie = cookie or ""
        self.local_storage = local_storage or StorageArea()
        self.session_storage = session_storage or StorageArea()
        self.script_globals = frozenset(script_globals)
        self._observers: list[MutationCallback] = []
        self._listeners: dict[int, dict[str, list[EventCallback]]] = {}

    # -- tree access -------------------------------------------------------

    @property
    def title(self) -> str:
        if self.soup.title and self.soup.title.string:
            return self.soup.title.string.strip()
        return ""

    @property
    def body(self) -> Tag:
        return self.soup.body or self.soup

    def select(self, selector: str) -> list[Tag]:
        return self.soup.select(selector)

    def select_one(self, selector: str) -> Optional[Tag]:
        return self.soup.select_one(selector)

    def resolve(self, url: str) -> str:
        """Resolve a possibly relative reference against the page URL."""
        return urljoin(self.location.href, (url or "").strip())

    def src_of(self, element: Tag) -> str:
        return self.resolve(element.get("src") or "")

    def href_of(self, element: Tag) -> str:
        return self.resolve(element.get("href") or "")

    def form_action(self, form: Tag) -> str:
        """Resolved submission target; an empty action submits to the page itself."""
        raw = (form.get("action") or "").strip()
        if not raw:
            return self.location.href
        return self.resolve(raw)

    @staticmethod
    def form_method(form: Tag) -> str:
        method = (form.get("method") or "get").strip().lower()
        return method if method in ("get", "post", "dialog") else "get"

    def text_content(self) -> str:
        return self.body.get_text(" ")

    # -- mutations ---------------------------------------------------------

    def observe(self, callback: MutationCallback) -> Callable[[], None]:
        """Register a subtree mutation callback; returns an unsubscribe function."""
        self._observers.append(callback)

        def disconnect() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return disconnect

    def insert_html(
        self,
        html: str,
        parent: Optional[Tag] = None,
        before: Optional[Tag] = None,
    ) -> list:
        """Parse an HTML fragment and attach it, notifying mutation observers.

        Nodes are appended to ``parent`` (default: body), or inserted right
        before ``before`` when given.
        """
        fragment = BeautifulSoup(html, "html.parser")
        nodes = list(fragment.contents)
        if before is not None:
            target = before.parent
            for node in nodes:
                before.insert_before(node)
        else:
            target = parent if parent is not None else self.body
            for node in nodes:
                target.append(node)
        self._notify([MutationRecord(target=target, added_nodes=nodes)])
        return nodes

    def insert_after(self, reference: Tag, html: str) -> list:
        fragment = BeautifulSoup(html, "html.parser")
        nodes = list(fragment.contents)
        anchor = reference
        for node in nodes:
            anchor.insert_after(node)
            anchor = node
        self._notify([MutationRecord(target=reference.parent, added_nodes=nodes)])
        return nodes

    def _notify(self, records: list[MutationRecord]) -> None:
        for callback in list(self._observers):
            callback(records)

    # -- events ------------------------------------------------------------

    def add_event_listener(self, element: Tag, event: str, callback: EventCallback) -> None:
        self._listeners.setdefault(id(element), {}).setdefault(event, []).append(callback)

    def remove_event_listener(self, element: Tag, event: str, callback: EventCallback) -> None:
        callbacks = self._listeners.get(id(element), {}).get(event, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def dispatch_event(self, element: Tag, event: str) -> int:
        """Invoke listeners for an element event; returns how many ran."""
        callbacks = self._listeners.get(id(element), {}).get(event, [])
        for callback in list(callbacks):
            callback(element)
        return len(callbacks)

    def set_input_value(self, element: Tag, value: str) -> None:
        """Simulate typing into an input (sets value, fires ``input``)."""
        element["value"] = value
        self.dispatch_event(element, "input")

    def focus(self, element: Tag) -> None:
        self.dispatch_event(element, "focus")

    def submit(self, form: Tag) -> None:
        self.dispatch_event(form, "submit")


def input_value(element: Tag) -> str:
    return element.get("value") or ""
