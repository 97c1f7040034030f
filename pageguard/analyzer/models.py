"""Analyzer data models."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Optional


class FindingKind(str, Enum):
    """Closed set of resource-level finding kinds."""

    SUSPICIOUS_LINK = "suspicious_link"
    SUSPICIOUS_SCRIPT = "suspicious_script"
    SUSPICIOUS_IFRAME = "suspicious_iframe"
    SUSPICIOUS_IMAGE = "suspicious_image"


class Risk(str, Enum):
    LOW = "low"
    HIGH = "high"


@dataclass(frozen=True)
class UrlClassification:
    """Outcome of matching one URL against the ordered rule set."""

    suspicious: bool
    matched_rule: Optional[str] = None


@dataclass(frozen=True)
class SecurityFinding:
    """A suspicious resource reference found in the document."""

    kind: FindingKind
    locator: str
    excerpt: str = ""
    discovered_at: int = 0


@dataclass(frozen=True)
class FormProfile:
    """Pre-submission risk label for one form."""

    action: str
    method: str
    has_password_field: bool
    has_email_field: bool
    action_is_secure_or_relative: bool
    input_count: int
    risk: Risk = Risk.LOW
    reason: Optional[str] = None


@dataclass(frozen=True)
class FormSecurityAnalysis:
    """Submission-time security analysis for one form."""

    action: str
    has_password_field: bool
    has_email_field: bool
    page_is_https: bool
    action_is_https: bool
    risk: Risk = Risk.LOW
    reason: Optional[str] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["risk"] = self.risk.value
        return data


# -- page context snapshot ---------------------------------------------------


@dataclass(frozen=True)
class BasicInfo:
    url: str
    domain: str
    protocol: str
    is_https: bool
    title: str
    timestamp: int


@dataclass(frozen=True)
class ExternalResource:
    url: str
    suspicious: bool
    alt: Optional[str] = None


@dataclass(frozen=True)
class ExternalResources:
    scripts: tuple[ExternalResource, ...] = ()
    stylesheets: tuple[ExternalResource, ...] = ()
    images: tuple[ExternalResource, ...] = ()
    iframes: tuple[ExternalResource, ...] = ()


@dataclass(frozen=True)
class SecuritySection:
    has_password_fields: bool = False
    has_email_fields: bool = False
    has_login_form: bool = False
    has_payment_form: bool = False
    findings: tuple[SecurityFinding, ...] = ()
    external_resources: ExternalResources = field(default_factory=ExternalResources)
    forms: tuple[FormProfile, ...] = ()


@dataclass(frozen=True)
class Heading:
    level: str
    text: str


@dataclass(frozen=True)
class LinkStats:
    total: int = 0
    external: int = 0
    suspicious: int = 0
    mailto: int = 0
    tel: int = 0
    download_links: int = 0


@dataclass(frozen=True)
class ImageStats:
    total: int = 0
    without_alt: int = 0
    external: int = 0


@dataclass(frozen=True)
class SocialMediaIndicators:
    has_social_elements: bool = False
    share_buttons: int = 0


@dataclass(frozen=True)
class ContentSection:
    headings: tuple[Heading, ...] = ()
    visible_text: str = ""
    links: LinkStats = field(default_factory=LinkStats)
    images: ImageStats = field(default_factory=ImageStats)
    social_media: SocialMediaIndicators = field(default_factory=SocialMediaIndicators)


@dataclass(frozen=True)
class CookieSummary:
    count: int = 0
    has_cookies: bool = False
    names: tuple[str, ...] = ()


@dataclass(frozen=True)
class StorageSummary:
    local_storage: int = 0
    session_storage: int = 0
    has_storage: bool = False
    error: Optional[str] = None


@dataclass(frozen=True)
class MetaSummary:
    title: str = ""
    description: str = ""
    keywords: str = ""
    viewport: str = ""
    author: str = ""


@dataclass(frozen=True)
class TechnicalSection:
    frameworks: tuple[str, ...] = ()
    cookies: CookieSummary = field(default_factory=CookieSummary)
    storage: StorageSummary = field(default_factory=StorageSummary)
    meta: MetaSummary = field(default_factory=MetaSummary)


@dataclass(frozen=True)
class PageContextSnapshot:
    """Security-relevant summary of a document at one point in time."""

    basic: BasicInfo
    security: SecuritySection
    content: ContentSection
    technical: TechnicalSection
    degraded: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return to_plain(asdict(self))

    @classmethod
    def from_dict(cls, data: dict) -> "PageContextSnapshot":
        if not isinstance(data, dict):
            raise TypeError(f"context must be an object, not {type(data).__name__}")
        security = _section(data, "security")
        resources = _section(security, "external_resources")
        content = _section(data, "content")
        technical = _section(data, "technical")
        cookies = _section(technical, "cookies")

        def resources_of(key: str) -> tuple[ExternalResource, ...]:
            return tuple(ExternalResource(**item) for item in resources.get(key) or [])

        return cls(
            basic=BasicInfo(**_section(data, "basic")),
            security=SecuritySection(
                has_password_fields=bool(security.get("has_password_fields")),
                has_email_fields=bool(security.get("has_email_fields")),
                has_login_form=bool(security.get("has_login_form")),
                has_payment_form=bool(security.get("has_payment_form")),
                findings=tuple(
                    SecurityFinding(
                        kind=FindingKind(item["kind"]),
                        locator=item["locator"],
                        excerpt=item.get("excerpt", ""),
                        discovered_at=item.get("discovered_at", 0),
                    )
                    for item in security.get("findings") or []
                ),
                external_resources=ExternalResources(
                    scripts=resources_of("scripts"),
                    stylesheets=resources_of("stylesheets"),
                    images=resources_of("images"),
                    iframes=resources_of("iframes"),
                ),
                forms=tuple(
                    FormProfile(**{**item, "risk": Risk(item.get("risk", "low"))})
                    for item in security.get("forms") or []
                ),
            ),
            content=ContentSection(
                headings=tuple(Heading(**h) for h in content.get("headings") or []),
                visible_text=content.get("visible_text", ""),
                links=LinkStats(**_section(content, "links")),
                images=ImageStats(**_section(content, "images")),
                social_media=SocialMediaIndicators(**_section(content, "social_media")),
            ),
            technical=TechnicalSection(
                frameworks=tuple(technical.get("frameworks") or ()),
                cookies=CookieSummary(
                    **{
                        **cookies,
                        "names": tuple(cookies.get("names") or ()),
                    }
                ),
                storage=StorageSummary(**_section(technical, "storage")),
                meta=MetaSummary(**_section(technical, "meta")),
            ),
            degraded=tuple(data.get("degraded") or ()),
        )


def _section(data: dict, key: str) -> dict:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise TypeError(f"{key} must be an object, not {type(value).__name__}")
    return value


def to_plain(value: Any) -> Any:
    """Convert enums and tuples from asdict() output into JSON-friendly values."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    return value
