"""Form risk analysis helpers."""

from __future__ import annotations

import logging
from typing import Iterable

from bs4 import Tag

from ..dom.document import Document
from .models import FormProfile, FormSecurityAnalysis, Risk

logger = logging.getLogger(__name__)

PASSWORD_SELECTOR = 'input[type="password"]'
EMAIL_SELECTOR = 'input[type="email"]'
# Submission-time check also treats username/email-named inputs as identity fields.
IDENTITY_SELECTOR = 'input[type="email"], input[name*="email"], input[name*="username"]'
LOGIN_USER_SELECTOR = (
    'input[type="email"], input[name*="user"], input[name*="email"], input[name*="login"]'
)

DEFAULT_PAYMENT_SELECTORS: list[str] = [
    'input[name*="card"]',
    'input[name*="credit"]',
    'input[name*="payment"]',
    'input[name*="billing"]',
    'input[placeholder*="card"]',
    'input[placeholder*="credit"]',
    '[class*="payment"]',
    '[class*="checkout"]',
    '[class*="billing"]',
]

PRE_SUBMISSION_REASON = "Password form over HTTP"
SUBMISSION_REASON = "Password submitted over HTTP"


def _action_is_secure_or_relative(form: Tag, document: Document) -> bool:
    """HTTPS targets pass; root-relative targets inherit the page context."""
    raw = (form.get("action") or "").strip()
    if raw.startswith("/") and not raw.startswith("//"):
        return True
    return document.form_action(form).startswith("https://")


def analyze_form(form: Tag, document: Document) -> FormProfile:
    """Lightweight pre-submission label used during page scans."""
    has_password = form.select_one(PASSWORD_SELECTOR) is not None
    action_ok = _action_is_secure_or_relative(form, document)
    page_https = document.location.is_https

    risk = Risk.LOW
    reason = None
    if has_password and (not page_https or not action_ok):
        risk = Risk.HIGH
        reason = PRE_SUBMISSION_REASON

    return FormProfile(
        action=document.form_action(form),
        method=document.form_method(form),
        has_password_field=has_password,
        has_email_field=form.select_one(EMAIL_SELECTOR) is not None,
        action_is_secure_or_relative=action_ok,
        input_count=len(form.find_all("input")),
        risk=risk,
        reason=reason,
    )


def analyze_forms(document: Document) -> list[FormProfile]:
    return [analyze_form(form, document) for form in document.select("form")]


def analyze_form_security(form: Tag, document: Document) -> FormSecurityAnalysis:
    """Submission-time analysis; authoritative when it disagrees with the scan label.

    The page scheme and the action scheme are checked independently.
    """
    password_fields = form.select(PASSWORD_SELECTOR)
    identity_fields = form.select(IDENTITY_SELECTOR)
    page_https = document.location.is_https
    action_https = _action_is_secure_or_relative(form, document)

    risk = Risk.LOW
    reason = None
    if password_fields and (not page_https or not action_https):
        risk = Risk.HIGH
        reason = SUBMISSION_REASON

    return FormSecurityAnalysis(
        action=document.form_action(form),
        has_password_field=bool(password_fields),
        has_email_field=bool(identity_fields),
        page_is_https=page_https,
        action_is_https=action_https,
        risk=risk,
        reason=reason,
    )


def has_login_form(document: Document) -> bool:
    """True when any form pairs a password field with a username/email field."""
    for form in document.select("form"):
        if form.select(PASSWORD_SELECTOR) and form.select(LOGIN_USER_SELECTOR):
            return True
    return False


def has_payment_form(document: Document, selectors: Iterable[str] = DEFAULT_PAYMENT_SELECTORS) -> bool:
    return any(document.select_one(selector) is not None for selector in selectors)
