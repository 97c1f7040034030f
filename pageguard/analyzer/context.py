"""Page context snapshot extraction.

Builds a PageContextSnapshot from the current state of a Document. Every
optional sub-section is read independently: a failure degrades that piece to
its placeholder value and records its name in ``snapshot.degraded`` instead
of aborting the whole snapshot.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Iterable, Optional, TypeVar

from bs4 import Tag

from ..constants import (
    COOKIE_NAME_LIMIT,
    HEADING_LIMIT,
    HEADING_TEXT_LIMIT,
    META_CONTENT_LIMIT,
    TEXT_SAMPLE_LIMIT,
)
from ..dom.document import Document
from ..errors import StorageAccessError
from ..utils.clock import now_ms
from .findings import find_suspicious_elements
from .forms import DEFAULT_PAYMENT_SELECTORS, analyze_forms, has_login_form, has_payment_form
from .models import (
    BasicInfo,
    ContentSection,
    CookieSummary,
    ExternalResource,
    ExternalResources,
    Heading,
    ImageStats,
    LinkStats,
    MetaSummary,
    PageContextSnapshot,
    SecuritySection,
    SocialMediaIndicators,
    StorageSummary,
    TechnicalSection,
)
from .url_rules import UrlRiskMatcher

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_SOCIAL_SELECTORS: list[str] = [
    '[class*="facebook"]', '[href*="facebook.com"]',
    '[class*="twitter"]', '[href*="twitter.com"]', '[href*="x.com"]',
    '[class*="instagram"]', '[href*="instagram.com"]',
    '[class*="linkedin"]', '[href*="linkedin.com"]',
    '[class*="social"]',
]
SHARE_SELECTOR = '[class*="share"], [class*="Share"]'

DOWNLOAD_EXTENSION = re.compile(r"\.(exe|msi|dmg|pkg|deb|zip|rar|7z)$", re.IGNORECASE)
WHITESPACE = re.compile(r"\s+")


class PageContextExtractor:
    """Read-only, synchronous snapshot builder; never cached."""

    def __init__(
        self,
        matcher: Optional[UrlRiskMatcher] = None,
        payment_selectors: Optional[Iterable[str]] = None,
        social_selectors: Optional[Iterable[str]] = None,
    ):
        self.matcher = matcher or UrlRiskMatcher()
        self.payment_selectors = list(payment_selectors or DEFAULT_PAYMENT_SELECTORS)
        self.social_selectors = list(social_selectors or DEFAULT_SOCIAL_SELECTORS)

    def extract(self, document: Document) -> PageContextSnapshot:
        degraded: list[str] = []
        timestamp = now_ms()

        def safe(name: str, builder: Callable[[], T], fallback: T) -> T:
            try:
                return builder()
            except Exception as exc:
                logger.warning("Context section %s unavailable: %s", name, exc)
                degraded.append(name)
                return fallback

        location = document.location
        basic = BasicInfo(
            url=location.href,
            domain=location.hostname,
            protocol=location.protocol,
            is_https=location.is_https,
            title=document.title,
            timestamp=timestamp,
        )

        security = SecuritySection(
            has_password_fields=safe(
                "security.password_fields",
                lambda: document.select_one('input[type="password"]') is not None,
                False,
            ),
            has_email_fields=safe(
                "security.email_fields",
                lambda: document.select_one('input[type="email"], input[name*="email"]') is not None,
                False,
            ),
            has_login_form=safe("security.login_form", lambda: has_login_form(document), False),
            has_payment_form=safe(
                "security.payment_form",
                lambda: has_payment_form(document, self.payment_selectors),
                False,
            ),
            findings=tuple(
                safe(
                    "security.findings",
                    lambda: find_suspicious_elements(document, self.matcher, timestamp),
                    [],
                )
            ),
            external_resources=safe(
                "security.external_resources",
                lambda: self.external_resources(document),
                ExternalResources(),
            ),
            forms=tuple(safe("security.forms", lambda: analyze_forms(document), [])),
        )

        content = ContentSection(
            headings=tuple(safe("content.headings", lambda: self.headings(document), [])),
            visible_text=safe("content.visible_text", lambda: self.visible_text(document), ""),
            links=safe("content.links", lambda: self.link_stats(document), LinkStats()),
            images=safe("content.images", lambda: self.image_stats(document), ImageStats()),
            social_media=safe(
                "content.social_media",
                lambda: self.social_media(document),
                SocialMediaIndicators(),
            ),
        )

        storage = storage_summary(document)
        if storage.error:
            degraded.append("technical.storage")

        technical = TechnicalSection(
            frameworks=tuple(safe("technical.frameworks", lambda: detect_frameworks(document), [])),
            cookies=safe("technical.cookies", lambda: cookie_summary(document.cookie), CookieSummary()),
            storage=storage,
            meta=safe("technical.meta", lambda: meta_summary(document), MetaSummary()),
        )

        return PageContextSnapshot(
            basic=basic,
            security=security,
            content=content,
            technical=technical,
            degraded=tuple(degraded),
        )

    # -- security ------------------------------------------------------------

    def external_resources(self, document: Document) -> ExternalResources:
        origin = document.location.origin

        def entry(url: str, alt: Optional[str] = None) -> ExternalResource:
            return ExternalResource(url=url, suspicious=self.matcher.is_suspicious(url), alt=alt)

        scripts = [
            entry(url)
            for url in (document.src_of(el) for el in document.select("script[src]"))
            if not url.startswith(origin)
        ]
        stylesheets = [
            entry(url)
            for url in (document.href_of(el) for el in document.select('link[rel="stylesheet"]'))
            if url and not url.startswith(origin)
        ]
        images = []
        for img in document.select("img[src]"):
            url = document.src_of(img)
            if url.startswith(origin) or url.startswith("data:"):
                continue
            images.append(entry(url, alt=img.get("alt") or ""))
        iframes = [entry(document.src_of(el)) for el in document.select("iframe[src]")]

        return ExternalResources(
            scripts=tuple(scripts),
            stylesheets=tuple(stylesheets),
            images=tuple(images),
            iframes=tuple(iframes),
        )

    # -- content -------------------------------------------------------------

    @staticmethod
    def headings(document: Document) -> list[Heading]:
        found = document.select("h1, h2, h3, h4, h5, h6")
        return [
            Heading(level=h.name.lower(), text=h.get_text().strip()[:HEADING_TEXT_LIMIT])
            for h in found[:HEADING_LIMIT]
        ]

    @staticmethod
    def visible_text(document: Document) -> str:
        text = WHITESPACE.sub(" ", document.text_content()).strip()
        return text[:TEXT_SAMPLE_LIMIT]

    def link_stats(self, document: Document) -> LinkStats:
        origin = document.location.origin
        total = external = suspicious = mailto = tel = downloads = 0

        for link in document.select("a[href]"):
            total += 1
            href = document.href_of(link)
            if href.startswith("mailto:"):
                mailto += 1
            elif href.startswith("tel:"):
                tel += 1
            elif not href.startswith(origin) and not href.startswith("#"):
                external += 1
                if self.matcher.is_suspicious(href):
                    suspicious += 1

            if "download" in href or link.has_attr("download") or DOWNLOAD_EXTENSION.search(href):
                downloads += 1

        return LinkStats(
            total=total,
            external=external,
            suspicious=suspicious,
            mailto=mailto,
            tel=tel,
            download_links=downloads,
        )

    @staticmethod
    def image_stats(document: Document) -> ImageStats:
        origin = document.location.origin
        images = document.select("img")
        without_alt = sum(1 for img in images if not (img.get("alt") or "").strip())
        external = 0
        for img in images:
            if not img.get("src"):
                continue
            url = document.src_of(img)
            if not url.startswith(origin) and not url.startswith("data:"):
                external += 1
        return ImageStats(total=len(images), without_alt=without_alt, external=external)

    def social_media(self, document: Document) -> SocialMediaIndicators:
        present = any(document.select_one(sel) is not None for sel in self.social_selectors)
        return SocialMediaIndicators(
            has_social_elements=present,
            share_buttons=len(document.select(SHARE_SELECTOR)),
        )


# -- technical ---------------------------------------------------------------


def _has_attribute_prefix(document: Document, prefix: str) -> bool:
    for tag in document.soup.find_all(True):
        if any(name.startswith(prefix) for name in tag.attrs):
            return True
    return False


def _has_class_prefix(tag: Tag, prefix: str) -> bool:
    return any(cls.startswith(prefix) for cls in tag.get("class") or [])


def detect_frameworks(document: Document) -> list[str]:
    frameworks: list[str] = []
    found_globals = document.script_globals

    if (
        document.select_one("#root") is not None
        or document.select_one("[data-reactroot]") is not None
        or "React" in found_globals
    ):
        frameworks.append("React")

    if "Vue" in found_globals or _has_attribute_prefix(document, "data-v-"):
        frameworks.append("Vue")

    if (
        "angular" in found_globals
        or document.select_one("[ng-app]") is not None
        or document.select_one("[data-ng-app]") is not None
    ):
        frameworks.append("Angular")

    if "jQuery" in found_globals or "$" in found_globals:
        frameworks.append("jQuery")

    if (
        document.select_one(".container") is not None
        or document.select_one(".row") is not None
        or any(_has_class_prefix(tag, "col-") for tag in document.soup.find_all(class_=True))
    ):
        frameworks.append("Bootstrap (possible)")

    return frameworks


def cookie_summary(cookie: str) -> CookieSummary:
    parts = cookie.split(";") if cookie else []
    names = tuple(part.split("=", 1)[0].strip() for part in parts[:COOKIE_NAME_LIMIT])
    return CookieSummary(
        count=sum(1 for part in parts if part.strip()),
        has_cookies=len(cookie) > 0,
        names=names,
    )


def storage_summary(document: Document) -> StorageSummary:
    try:
        local = len(document.local_storage)
        session = len(document.session_storage)
    except StorageAccessError:
        return StorageSummary(error="Storage access denied")
    return StorageSummary(
        local_storage=local,
        session_storage=session,
        has_storage=local > 0 or session > 0,
    )


def meta_summary(document: Document) -> MetaSummary:
    tags: dict[str, str] = {}
    for meta in document.select("meta[name], meta[property]"):
        key = meta.get("name") or meta.get("property")
        content = meta.get("content")
        if key and content:
            tags[key] = content[:META_CONTENT_LIMIT]

    return MetaSummary(
        title=document.title,
        description=tags.get("description", ""),
        keywords=tags.get("keywords", ""),
        viewport=tags.get("viewport", ""),
        author=tags.get("author", ""),
    )
