"""Ordered regular-expression rules for suspicious URL detection."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, Optional

from .models import UrlClassification

logger = logging.getLogger(__name__)

# (name, pattern, case_insensitive). Order is significant: first match wins.
DEFAULT_URL_RULES: list[tuple[str, str, bool]] = [
    ("url_shortener", r"bit\.ly|tinyurl|t\.co|goo\.gl|short\.link", True),
    ("ip_literal", r"[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}", False),
    ("long_random_domain", r"[a-z0-9]{15,}\.com", True),
    ("malicious_keyword", r"phishing|malware|virus|suspicious|payload|exploit", True),
    ("test_domain", r"example\.com|malicious-cdn\.example\.com", True),
    ("abused_tld", r"[a-z0-9]{10,}\.(tk|ml|ga|cf)", True),
]


@dataclass(frozen=True)
class UrlRule:
    """A single named pattern; matches anywhere in the URL."""

    name: str
    pattern: str
    ignore_case: bool = True
    _regex: re.Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        flags = re.IGNORECASE if self.ignore_case else 0
        object.__setattr__(self, "_regex", re.compile(self.pattern, flags))

    def matches(self, url: str) -> bool:
        return self._regex.search(url) is not None


class UrlRiskMatcher:
    """Classifies URLs with an ordered rule list; pure and side-effect free."""

    def __init__(self, rules: Optional[Iterable[UrlRule]] = None):
        if rules is None:
            rules = [UrlRule(name, pattern, icase) for name, pattern, icase in DEFAULT_URL_RULES]
        self.rules: tuple[UrlRule, ...] = tuple(rules)

    @classmethod
    def from_config(cls, entries: Iterable[tuple[str, str, bool]]) -> "UrlRiskMatcher":
        return cls(UrlRule(name, pattern, icase) for name, pattern, icase in entries)

    def classify(self, url: str) -> UrlClassification:
        url = url or ""
        for rule in self.rules:
            if rule.matches(url):
                logger.debug("URL %s matched rule %s", url, rule.name)
                return UrlClassification(suspicious=True, matched_rule=rule.name)
        return UrlClassification(suspicious=False)

    def is_suspicious(self, url: str) -> bool:
        return self.classify(url).suspicious


_default_matcher = UrlRiskMatcher()


def classify(url: str) -> UrlClassification:
    """Classify with the built-in rule set."""
    return _default_matcher.classify(url)


def is_suspicious_url(url: str) -> bool:
    return _default_matcher.is_suspicious(url)
