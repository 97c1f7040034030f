"""Prompt augmentation for chat requests."""

from __future__ import annotations

from typing import Optional

from ..analyzer.models import PageContextSnapshot
from ..constants import PROMPT_TEXT_EXCERPT

SYSTEM_PREAMBLE = """You are a cybersecurity assistant with access to the current webpage's security context. Provide helpful, accurate information about:
- Threat analysis and risk assessment
- Security best practices
- Vulnerability identification
- Incident response guidance
- URL and domain reputation analysis
- Phishing and malware detection"""

RESPONSE_GUIDANCE = (
    "Keep responses concise and actionable. When analyzing the current page, reference "
    "specific security findings. If analyzing potentially malicious content, clearly state the risks."
)


def build_page_context_prompt(context: PageContextSnapshot) -> str:
    """Render the digest of a snapshot that is prepended to user questions."""
    basic = context.basic
    security = context.security
    lines = ["", "--- CURRENT PAGE SECURITY CONTEXT ---"]
    lines.append(f"Page: {basic.title} ({basic.url})")
    lines.append(f"Protocol: {basic.protocol} (HTTPS: {'true' if basic.is_https else 'false'})")

    if security.findings:
        lines.append(f"⚠️ SUSPICIOUS ELEMENTS DETECTED: {len(security.findings)} found")

    if security.has_login_form:
        suffix = "" if basic.is_https else " (INSECURE - over HTTP!)"
        lines.append(f"🔐 Login form detected{suffix}")

    if security.has_payment_form:
        suffix = "" if basic.is_https else " (CRITICAL RISK - over HTTP!)"
        lines.append(f"💳 Payment form detected{suffix}")

    resources = security.external_resources
    if resources.scripts:
        flagged = sum(1 for s in resources.scripts if s.suspicious)
        lines.append(f"📜 External scripts: {len(resources.scripts)} (suspicious: {flagged})")
    if resources.iframes:
        flagged = sum(1 for f in resources.iframes if f.suspicious)
        lines.append(f"🖼️ iframes: {len(resources.iframes)} (suspicious: {flagged})")

    links = context.content.links
    if links.suspicious > 0:
        lines.append(f"🔗 SUSPICIOUS LINKS: {links.suspicious} of {links.total} total links")
    if links.download_links > 0:
        lines.append(f"📥 Download links: {links.download_links}")

    if context.content.visible_text:
        excerpt = context.content.visible_text[:PROMPT_TEXT_EXCERPT]
        lines.append(f'📄 Page content preview: "{excerpt}..."')

    lines.append("--- END CONTEXT ---")
    return "\n".join(lines) + "\n\n"


def build_security_prompt(user_message: str, context: Optional[PageContextSnapshot] = None) -> str:
    context_info = build_page_context_prompt(context) if context is not None else ""
    return (
        f"{SYSTEM_PREAMBLE}\n\n"
        f"{context_info}\n\n"
        f"{RESPONSE_GUIDANCE}\n\n"
        f"User question: {user_message}\n\n"
        "Response:"
    )
