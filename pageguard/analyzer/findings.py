"""Resource-level suspicious element discovery."""

from __future__ import annotations

import logging
from typing import Optional

from ..constants import LINK_TEXT_LIMIT
from ..dom.document import Document
from ..utils.clock import now_ms
from .models import FindingKind, SecurityFinding
from .url_rules import UrlRiskMatcher

logger = logging.getLogger(__name__)

# (selector, attribute, kind) scanned in document order per kind.
RESOURCE_SOURCES: list[tuple[str, str, FindingKind]] = [
    ("a[href]", "href", FindingKind.SUSPICIOUS_LINK),
    ("script[src]", "src", FindingKind.SUSPICIOUS_SCRIPT),
    ("iframe[src]", "src", FindingKind.SUSPICIOUS_IFRAME),
    ("img[src]", "src", FindingKind.SUSPICIOUS_IMAGE),
]


def find_suspicious_elements(
    document: Document,
    matcher: UrlRiskMatcher,
    timestamp: Optional[int] = None,
) -> list[SecurityFinding]:
    """Match every linked resource in the document against the URL rules.

    Pure with respect to the document: nothing is emitted or recorded here.
    """
    discovered_at = timestamp if timestamp is not None else now_ms()
    findings: list[SecurityFinding] = []

    for selector, attribute, kind in RESOURCE_SOURCES:
        elements = document.select(selector)
        logger.debug("Found %d %s elements to analyze", len(elements), selector)
        for element in elements:
            locator = document.resolve(element.get(attribute) or "")
            if locator.startswith("data:"):
                continue
            if not matcher.is_suspicious(locator):
                continue
            excerpt = ""
            if kind is FindingKind.SUSPICIOUS_LINK:
                excerpt = element.get_text()[:LINK_TEXT_LIMIT]
            elif kind is FindingKind.SUSPICIOUS_IMAGE:
                excerpt = (element.get("alt") or "")[:LINK_TEXT_LIMIT]
            findings.append(
                SecurityFinding(
                    kind=kind,
                    locator=locator,
                    excerpt=excerpt,
                    discovered_at=discovered_at,
                )
            )

    logger.debug("Total suspicious elements found: %d", len(findings))
    return findings
