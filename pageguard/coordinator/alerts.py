"""Alert normalization: alert type -> user-facing message and severity."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..constants import AlertType, Severity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderedAlert:
    message: str
    severity: Severity
    known: bool = True


def render_alert(alert_type: str, data: dict) -> RenderedAlert:
    """Map an alert to its message and severity.

    Unrecognized types still produce a generic medium alert.
    """
    url = data.get("url", "unknown")
    kind = AlertType.from_string(alert_type)

    if kind is AlertType.PASSWORD_OVER_HTTP:
        return RenderedAlert(f"🚨 Security Risk: Password entered on insecure site {url}", Severity.HIGH)
    if kind is AlertType.INSECURE_FORM_SUBMISSION:
        return RenderedAlert(f"⚠️ Insecure form submission detected on {url}", Severity.HIGH)
    if kind is AlertType.SUSPICIOUS_SCRIPT:
        return RenderedAlert(
            f"🚨 Suspicious Script: {data.get('scriptSrc', 'unknown')} on {url}",
            Severity.HIGH,
        )
    if kind is AlertType.SUSPICIOUS_LINK:
        return RenderedAlert(
            f"⚠️ Suspicious Link: {data.get('linkHref', 'unknown')} on {url}",
            Severity.MEDIUM,
        )
    if kind is AlertType.INSECURE_PROTOCOL:
        return RenderedAlert(
            f"🔓 Insecure Protocol: {data.get('protocol', 'unknown')} on {url}",
            Severity.MEDIUM,
        )

    logger.warning("Unknown alert type: %s %s", alert_type, data)
    return RenderedAlert(f"Security alert: {alert_type}", Severity.MEDIUM, known=False)
