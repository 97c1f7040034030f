"""Tests for form risk analysis."""

from pageguard.analyzer.forms import (
    PRE_SUBMISSION_REASON,
    SUBMISSION_REASON,
    analyze_form,
    analyze_form_security,
    analyze_forms,
    has_login_form,
    has_payment_form,
)
from pageguard.analyzer.models import Risk
from pageguard.dom import Document


def _form(html: str, url: str):
    doc = Document(html, url)
    return doc.select_one("form"), doc


def test_https_page_with_http_action_is_high_risk():
    form, doc = _form('<form action="http://x.test/login"><input type="password"></form>', "https://site.test/")
    profile = analyze_form(form, doc)
    assert profile.risk is Risk.HIGH
    assert profile.reason == PRE_SUBMISSION_REASON
    assert not profile.action_is_secure_or_relative


def test_relative_action_on_https_page_is_low_risk():
    form, doc = _form('<form action="/login" method="POST"><input type="password"></form>', "https://site.test/")
    profile = analyze_form(form, doc)
    assert profile.risk is Risk.LOW
    assert profile.reason is None
    assert profile.method == "post"
    assert profile.action == "https://site.test/login"


def test_http_page_with_relative_action_is_high_risk():
    form, doc = _form('<form action="/login"><input type="password"></form>', "http://site.test/")
    assert analyze_form(form, doc).risk is Risk.HIGH


def test_form_without_password_is_low_risk():
    form, doc = _form('<form action="http://x.test/"><input type="text" name="q"></form>', "http://site.test/")
    profile = analyze_form(form, doc)
    assert profile.risk is Risk.LOW
    assert profile.input_count == 1


def test_protocol_relative_action_follows_page_scheme():
    html = '<form action="//cdn.other.test/x"><input type="password"></form>'
    form, doc = _form(html, "https://site.test/")
    assert analyze_form(form, doc).action_is_secure_or_relative
    form, doc = _form(html, "http://site.test/")
    assert not analyze_form(form, doc).action_is_secure_or_relative


def test_submission_check_flags_http_page_even_with_https_action():
    form, doc = _form(
        '<form action="https://secure.test/"><input type="password"><input name="username"></form>',
        "http://site.test/",
    )
    analysis = analyze_form_security(form, doc)
    assert analysis.risk is Risk.HIGH
    assert analysis.reason == SUBMISSION_REASON
    assert not analysis.page_is_https
    assert analysis.action_is_https
    # username counts as an identity field at submission time only
    assert analysis.has_email_field
    assert not analyze_form(form, doc).has_email_field


def test_submission_check_to_dict_renders_risk_value():
    form, doc = _form('<form action="/x"><input type="password"></form>', "https://site.test/")
    data = analyze_form_security(form, doc).to_dict()
    assert data["risk"] == "low"
    assert data["action"] == "https://site.test/x"


def test_analyze_forms_covers_every_form():
    doc = Document("<form></form><form><input type='password'></form>", "http://site.test/")
    risks = [p.risk for p in analyze_forms(doc)]
    assert risks == [Risk.LOW, Risk.HIGH]


def test_login_and_payment_detection():
    doc = Document(
        '<form><input name="user"><input type="password"></form>'
        '<form><input name="card_number"></form>',
        "https://shop.test/",
    )
    assert has_login_form(doc)
    assert has_payment_form(doc)

    plain = Document('<form><input type="password"></form>', "https://shop.test/")
    assert not has_login_form(plain)
    assert not has_payment_form(plain)
    assert has_payment_form(plain, ['input[type="password"]'])
