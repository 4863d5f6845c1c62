from __future__ import annotations

import pytest

from config import ConfigError, Settings, parse_minutes_ms, parse_targets


def test_parse_minutes_ms() -> None:
    assert parse_minutes_ms("5") == 300_000
    assert parse_minutes_ms("0.5") == 30_000
    assert parse_minutes_ms(2) == 120_000


@pytest.mark.parametrize("raw", ["", "five", "5 * 60 * 1000", "0", "-1"])
def test_parse_minutes_ms_rejects_bad_values(raw: str) -> None:
    with pytest.raises(ConfigError):
        parse_minutes_ms(raw, "OTP_VALIDITY_MINUTES")


def test_parse_targets() -> None:
    raw = '[{"name": "AppA", "url": "https://testflight.apple.com/join/A"}, {"url": "https://x.example"}]'

    assert parse_targets(raw) == [
        {"name": "AppA", "url": "https://testflight.apple.com/join/A"},
        {"name": "https://x.example", "url": "https://x.example"},
    ]
    assert parse_targets(None) == []
    assert parse_targets("  ") == []


@pytest.mark.parametrize("raw", ["{", '{"url": "x"}', '[{"name": "no url"}]', '["https://x.example"]'])
def test_parse_targets_rejects_malformed(raw: str) -> None:
    with pytest.raises(ConfigError):
        parse_targets(raw)


def test_settings_read_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OTP_VALIDITY_MINUTES", "10")
    monkeypatch.setenv("CHECK_INTERVAL", "45")
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.delenv("HTTP_URL", raising=False)

    cfg = Settings()

    assert cfg.OTP_VALIDITY_MS == 600_000
    assert cfg.CHECK_INTERVAL == 45
    assert cfg.HTTP_URL == "http://localhost:8080"


def test_settings_reject_bad_interval(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CHECK_INTERVAL", "soon")

    with pytest.raises(ConfigError):
        Settings()
