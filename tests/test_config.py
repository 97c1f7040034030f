"""Tests for configuration loading."""

from pageguard.analyzer.url_rules import DEFAULT_URL_RULES
from pageguard.config import Config, _load_heuristics, load_config, validate_config


def test_defaults(monkeypatch, tmp_path):
    monkeypatch.setenv("CONFIG_DIR", str(tmp_path))
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))
    for name in ("ANALYSIS_THROTTLE_SECONDS", "ALERT_HISTORY_LIMIT", "INFERENCE_BASE_URL", "MODEL_ID"):
        monkeypatch.delenv(name, raising=False)

    config = load_config()

    assert config.analysis_throttle == 1.0
    assert config.mutation_debounce == 0.05
    assert config.alert_history_limit == 50
    assert config.url_rules == list(DEFAULT_URL_RULES)
    assert not config.inference_enabled
    assert config.db_path == tmp_path / "data" / "pageguard.db"
    assert validate_config(config) == []


def test_environment_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("CONFIG_DIR", str(tmp_path))
    monkeypatch.setenv("ALERT_HISTORY_LIMIT", "10")
    monkeypatch.setenv("ANALYSIS_THROTTLE_SECONDS", "2.5")
    monkeypatch.setenv("INFERENCE_BASE_URL", "http://localhost:8000")
    monkeypatch.setenv("MODEL_ID", "tiny")

    config = load_config()

    assert config.alert_history_limit == 10
    assert config.analysis_throttle == 2.5
    assert config.inference_enabled
    assert config.model_id == "tiny"


def test_heuristics_file(tmp_path):
    (tmp_path / "heuristics.yaml").write_text(
        """
url_rules:
  - name: corp
    pattern: badcorp\\.net
  - name: upper
    pattern: EVIL
    ignore_case: false
  - name: empty
payment_selectors:
  - input[name*="iban"]
social_selectors: []
"""
    )
    heuristics = _load_heuristics(tmp_path)

    assert heuristics["url_rules"] == [("corp", r"badcorp\.net", True), ("upper", "EVIL", False)]
    assert heuristics["payment_selectors"] == ['input[name*="iban"]']
    assert heuristics["social_selectors"] is None


def test_broken_heuristics_file_is_ignored(tmp_path):
    (tmp_path / "heuristics.yaml").write_text("url_rules: [unclosed")
    assert _load_heuristics(tmp_path) == {}
    assert _load_heuristics(tmp_path / "missing") == {}


def test_validate_config_reports_problems(tmp_path):
    config = Config(
        alert_history_limit=0,
        mutation_debounce=-1,
        url_rules=[("broken", "([a-z", True)],
        data_dir=tmp_path,
    )
    errors = validate_config(config)

    assert "ALERT_HISTORY_LIMIT must be positive" in errors
    assert "MUTATION_DEBOUNCE_SECONDS must not be negative" in errors
    assert any(e.startswith("URL rule broken has an invalid pattern") for e in errors)
