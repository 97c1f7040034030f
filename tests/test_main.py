"""Tests for the command-line entry point."""

from pageguard.config import Config
from pageguard.main import build_parser, run_alerts, run_scan


def _config(tmp_path):
    return Config(data_dir=tmp_path / "data", config_dir=tmp_path, analysis_throttle=0)


async def test_scan_local_file_records_alerts(tmp_path, capsys):
    page = tmp_path / "login.html"
    page.write_text(
        "<title>Login</title><form action='http://x'><input type='password'></form>"
        "<script src='http://malicious-cdn.example.com/x.js'></script>"
    )
    config = _config(tmp_path)

    args = build_parser().parse_args(["scan", str(page), "--url", "http://shop.test/login"])
    assert await run_scan(args, config) == 0
    out = capsys.readouterr().out
    assert "[HIGH] 🚨 Suspicious Script: http://malicious-cdn.example.com/x.js on http://shop.test/login" in out
    assert "[MEDIUM] 🔓 Insecure Protocol: http: on http://shop.test/login" in out
    assert '"url": "http://shop.test/login"' in out
    assert "2 alert(s) raised" in out

    args = build_parser().parse_args(["alerts"])
    assert await run_alerts(args, config) == 0
    out = capsys.readouterr().out
    assert "suspicious_script_detected" in out
    assert "insecure_protocol" in out


async def test_alerts_on_empty_history(tmp_path, capsys):
    args = build_parser().parse_args(["alerts", "--json"])
    assert await run_alerts(args, _config(tmp_path)) == 0
    assert capsys.readouterr().out.strip() == "[]"
