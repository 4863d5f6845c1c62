import json
import os
from dotenv import load_dotenv

# Load .env from project root unless ENV_FILE points elsewhere
ENV_FILE = os.getenv("ENV_FILE", os.path.join(os.path.dirname(__file__), "..", ".env"))
load_dotenv(ENV_FILE, interpolate=False)


class ConfigError(ValueError):
    """Raised when a configuration value cannot be parsed."""


def parse_minutes_ms(raw: str | int | float, key: str = "value") -> int:
    """Parse a minute count (e.g. "5" or "2.5") into whole milliseconds."""
    try:
        minutes = float(raw)
    except (TypeError, ValueError):
        raise ConfigError(f"{key} must be a number of minutes, got {raw!r}")
    if minutes <= 0:
        raise ConfigError(f"{key} must be positive, got {raw!r}")
    return int(minutes * 60 * 1000)


def parse_targets(raw: str | None) -> list[dict]:
    """Parse the TESTFLIGHT_URLS JSON array into a list of {name, url} dicts."""
    if not raw or not raw.strip():
        return []
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(f"TESTFLIGHT_URLS is not valid JSON: {e}")
    if not isinstance(data, list):
        raise ConfigError("TESTFLIGHT_URLS must be a JSON array")
    targets = []
    for entry in data:
        if not isinstance(entry, dict) or not entry.get("url"):
            raise ConfigError(f"Invalid TESTFLIGHT_URLS entry: {entry!r}")
        targets.append({"name": str(entry.get("name") or entry["url"]), "url": str(entry["url"])})
    return targets


def _int(key: str, default: str) -> int:
    raw = os.getenv(key, default)
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {raw!r}")


def _float(key: str, default: str) -> float:
    raw = os.getenv(key, default)
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got {raw!r}")


class Settings:
    def __init__(self):
        self.ENV_FILE: str = ENV_FILE
        self.PUSHOVER_USER_KEY: str = os.getenv("PUSHOVER_USER_KEY", "")
        self.PUSHOVER_APP_TOKEN: str = os.getenv("PUSHOVER_APP_TOKEN", "")
        self.PUSHOVER_PRIORITY: str = os.getenv("PUSHOVER_PRIORITY", "normal")
        self.PUSHOVER_SOUND: str = os.getenv("PUSHOVER_SOUND", "pushover")
        self.OTP_SECRET: str = os.getenv("OTP_SECRET", "")
        self.OTP_VALIDITY_MS: int = parse_minutes_ms(
            os.getenv("OTP_VALIDITY_MINUTES", "5"), "OTP_VALIDITY_MINUTES"
        )
        self.CHECK_INTERVAL: int = _int("CHECK_INTERVAL", "30")
        self.FETCH_TIMEOUT: float = _float("FETCH_TIMEOUT", "10")
        self.USER_AGENT: str = os.getenv("USER_AGENT", "Testflight-Watcher/1.0 (Monitoring Script)")
        self.HOST: str = os.getenv("HOST", "0.0.0.0")
        self.PORT: int = _int("PORT", "3000")
        self.HTTP_URL: str = os.getenv("HTTP_URL", f"http://localhost:{self.PORT}")
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

        if self.CHECK_INTERVAL <= 0:
            raise ConfigError(f"CHECK_INTERVAL must be positive, got {self.CHECK_INTERVAL}")


settings = Settings()
