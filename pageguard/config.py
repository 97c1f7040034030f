"""Configuration management for PageGuard."""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv

from .analyzer.context import DEFAULT_SOCIAL_SELECTORS
from .analyzer.forms import DEFAULT_PAYMENT_SELECTORS
from .analyzer.url_rules import DEFAULT_URL_RULES
from .constants import (
    DEFAULT_ALERT_HISTORY_LIMIT,
    DEFAULT_ANALYSIS_THROTTLE,
    DEFAULT_MODEL_ID,
    DEFAULT_MODEL_READY_GRACE,
    DEFAULT_MUTATION_DEBOUNCE,
)

logger = logging.getLogger(__name__)


@dataclass
class Config:
    """Application configuration loaded from environment."""

    # Observer timing (seconds)
    analysis_throttle: float = DEFAULT_ANALYSIS_THROTTLE
    mutation_debounce: float = DEFAULT_MUTATION_DEBOUNCE

    # Coordinator
    alert_history_limit: int = DEFAULT_ALERT_HISTORY_LIMIT
    model_ready_grace: float = DEFAULT_MODEL_READY_GRACE

    # Inference engine (optional; chat is unavailable without a base URL)
    model_id: str = DEFAULT_MODEL_ID
    inference_base_url: str = ""
    inference_api_key: str = ""
    inference_timeout: float = 60.0
    inference_temperature: float = 0.7
    inference_max_tokens: int = 512

    # Live page capture
    capture_timeout: int = 30

    # Paths
    data_dir: Path = field(default_factory=lambda: Path("./data"))
    config_dir: Path = field(default_factory=lambda: Path("./config"))

    # Heuristics (override via config/heuristics.yaml)
    url_rules: list[tuple[str, str, bool]] = field(default_factory=lambda: list(DEFAULT_URL_RULES))
    payment_selectors: list[str] = field(default_factory=lambda: list(DEFAULT_PAYMENT_SELECTORS))
    social_selectors: list[str] = field(default_factory=lambda: list(DEFAULT_SOCIAL_SELECTORS))

    def __post_init__(self):
        self.data_dir = Path(self.data_dir)
        self.config_dir = Path(self.config_dir)

    @property
    def db_path(self) -> Path:
        return self.data_dir / "pageguard.db"

    @property
    def inference_enabled(self) -> bool:
        return bool((self.inference_base_url or "").strip())


def _load_heuristics(config_dir: Path) -> dict:
    """Load heuristic overrides from config/heuristics.yaml (optional)."""
    path = Path(config_dir or ".") / "heuristics.yaml"
    if not path.exists():
        return {}

    try:
        data = yaml.safe_load(path.read_text()) or {}
    except Exception as exc:
        logger.warning("Failed to parse heuristics.yaml: %s", exc)
        return {}
    if not isinstance(data, dict):
        return {}

    def _coerce_url_rules(raw):
        items: list[tuple[str, str, bool]] = []
        for entry in raw or []:
            if not isinstance(entry, dict):
                continue
            name = str(entry.get("name") or "").strip()
            pattern = str(entry.get("pattern") or "").strip()
            if not pattern:
                continue
            ignore_case = bool(entry.get("ignore_case", True))
            items.append((name or f"rule_{len(items) + 1}", pattern, ignore_case))
        return items or None

    def _coerce_selectors(raw):
        items = [str(s).strip() for s in raw or [] if str(s).strip()]
        return items or None

    return {
        "url_rules": _coerce_url_rules(data.get("url_rules")),
        "payment_selectors": _coerce_selectors(data.get("payment_selectors")),
        "social_selectors": _coerce_selectors(data.get("social_selectors")),
    }


def load_config() -> Config:
    """Load configuration from environment variables."""
    load_dotenv()

    config_dir = Path(os.getenv("CONFIG_DIR", "./config"))
    heuristics = _load_heuristics(config_dir)

    return Config(
        analysis_throttle=float(os.getenv("ANALYSIS_THROTTLE_SECONDS", str(DEFAULT_ANALYSIS_THROTTLE))),
        mutation_debounce=float(os.getenv("MUTATION_DEBOUNCE_SECONDS", str(DEFAULT_MUTATION_DEBOUNCE))),
        alert_history_limit=int(os.getenv("ALERT_HISTORY_LIMIT", str(DEFAULT_ALERT_HISTORY_LIMIT))),
        model_ready_grace=float(os.getenv("MODEL_READY_GRACE_SECONDS", str(DEFAULT_MODEL_READY_GRACE))),
        model_id=os.getenv("MODEL_ID", DEFAULT_MODEL_ID),
        inference_base_url=os.getenv("INFERENCE_BASE_URL", ""),
        inference_api_key=os.getenv("INFERENCE_API_KEY", ""),
        inference_timeout=float(os.getenv("INFERENCE_TIMEOUT", "60")),
        inference_temperature=float(os.getenv("INFERENCE_TEMPERATURE", "0.7")),
        inference_max_tokens=int(os.getenv("INFERENCE_MAX_TOKENS", "512")),
        capture_timeout=int(os.getenv("CAPTURE_TIMEOUT", "30")),
        data_dir=Path(os.getenv("DATA_DIR", "./data")),
        config_dir=config_dir,
        url_rules=heuristics.get("url_rules") or list(DEFAULT_URL_RULES),
        payment_selectors=heuristics.get("payment_selectors") or list(DEFAULT_PAYMENT_SELECTORS),
        social_selectors=heuristics.get("social_selectors") or list(DEFAULT_SOCIAL_SELECTORS),
    )


def _regex_error(pattern: str) -> Optional[str]:
    try:
        re.compile(pattern)
    except re.error as exc:
        return str(exc)
    return None


def validate_config(config: Config) -> list[str]:
    """Validate configuration and return list of error messages."""
    errors: list[str] = []
    if config.alert_history_limit <= 0:
        errors.append("ALERT_HISTORY_LIMIT must be positive")
    if config.analysis_throttle < 0:
        errors.append("ANALYSIS_THROTTLE_SECONDS must not be negative")
    if config.mutation_debounce < 0:
        errors.append("MUTATION_DEBOUNCE_SECONDS must not be negative")
    if config.model_ready_grace < 0:
        errors.append("MODEL_READY_GRACE_SECONDS must not be negative")
    if config.inference_max_tokens <= 0:
        errors.append("INFERENCE_MAX_TOKENS must be positive")

    for name, pattern, _ in config.url_rules:
        problem = _regex_error(pattern)
        if problem:
            errors.append(f"URL rule {name} has an invalid pattern: {problem}")

    if not config.inference_enabled:
        logger.info("No INFERENCE_BASE_URL configured; security chat will be disabled")

    return errors
