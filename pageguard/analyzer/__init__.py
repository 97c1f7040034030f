"""Heuristic analyzers: URL rules, form risk and page context."""

from .context import PageContextExtractor
from .findings import find_suspicious_elements
from .forms import analyze_form, analyze_form_security, analyze_forms
from .models import (
    FindingKind,
    FormProfile,
    FormSecurityAnalysis,
    PageContextSnapshot,
    Risk,
    SecurityFinding,
    UrlClassification,
)
from .url_rules import UrlRiskMatcher, UrlRule, classify, is_suspicious_url

__all__ = [
    "PageContextExtractor",
    "find_suspicious_elements",
    "analyze_form",
    "analyze_form_security",
    "analyze_forms",
    "FindingKind",
    "FormProfile",
    "FormSecurityAnalysis",
    "PageContextSnapshot",
    "Risk",
    "SecurityFinding",
    "UrlClassification",
    "UrlRiskMatcher",
    "UrlRule",
    "classify",
    "is_suspicious_url",
]
