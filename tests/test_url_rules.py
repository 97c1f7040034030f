"""Tests for suspicious URL classification."""

import pytest

from pageguard.analyzer.url_rules import (
    UrlRiskMatcher,
    UrlRule,
    classify,
    is_suspicious_url,
)


@pytest.mark.parametrize(
    "url, rule",
    [
        ("https://bit.ly/abc", "url_shortener"),
        ("https://tinyurl.com/x", "url_shortener"),
        ("http://192.168.1.1/login", "ip_literal"),
        ("https://abcdefghijklmnopq.com/", "long_random_domain"),
        ("https://shop.org/download/malware.exe", "malicious_keyword"),
        ("https://example.com/", "test_domain"),
        ("https://freestuff12.tk/", "abused_tld"),
    ],
)
def test_rule_matches(url, rule):
    result = classify(url)
    assert result.suspicious
    assert result.matched_rule == rule


def test_clean_urls_not_suspicious():
    assert not is_suspicious_url("https://www.wikipedia.org/")
    assert not is_suspicious_url("https://github.com/user/repo")
    assert not is_suspicious_url("")


def test_first_match_wins():
    # Both the shortener and keyword rules match; shortener is listed first.
    result = classify("https://bit.ly/phishing")
    assert result.matched_rule == "url_shortener"


def test_case_insensitive_rules():
    assert classify("HTTPS://EXAMPLE.COM/").matched_rule == "test_domain"
    assert classify("https://PAYLOAD.org/").matched_rule == "malicious_keyword"


def test_short_tld_label_not_flagged():
    assert not is_suspicious_url("https://short.tk/")


def test_custom_rules_from_config():
    matcher = UrlRiskMatcher.from_config([("corp_blocklist", r"badcorp\.net", True)])
    assert matcher.classify("https://BADCORP.net/x").matched_rule == "corp_blocklist"
    # Custom rule set replaces the defaults.
    assert not matcher.is_suspicious("https://bit.ly/abc")


def test_rule_is_case_sensitive_when_requested():
    rule = UrlRule("upper", r"EVIL", ignore_case=False)
    assert rule.matches("https://EVIL.org")
    assert not rule.matches("https://evil.org")
