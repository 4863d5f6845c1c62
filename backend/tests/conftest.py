from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest

from env_store import EnvStore
from notifications import PushoverNotifier
from otp import OtpService
from page_monitor import PageMonitor
from registry import TargetRegistry

FULL_HTML = '<html><body><div class="beta-status"><span>This beta is full.</span></div></body></html>'
CLOSED_HTML = (
    '<html><body><div class="beta-status">'
    "<span>This beta isn't accepting any new testers right now.</span>"
    "</div></body></html>"
)
OPEN_HTML = '<html><body><div class="beta-status"><span>To join the beta, open the link on your device.</span></div></body></html>'

APP_A = {"name": "AppA", "url": "https://testflight.apple.com/join/AAAAAAAA"}
APP_B = {"name": "AppB", "url": "https://testflight.apple.com/join/BBBBBBBB"}

SECRET = "test-secret"
VALIDITY_MS = 5 * 60 * 1000


class FakeClock:
    """Settable replacement for time.time."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeWeb:
    """MockTransport handler serving TestFlight pages and recording Pushover posts."""

    def __init__(self, pages: dict[str, str | int | Exception] | None = None) -> None:
        self.pages: dict[str, str | int | Exception] = dict(pages or {})
        self.pushes: list[dict[str, str]] = []
        self.push_status = 200

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "api.pushover.net":
            form = dict(httpx.QueryParams(request.content.decode()))
            self.pushes.append(form)
            if self.push_status != 200:
                return httpx.Response(self.push_status, json={"status": 0, "errors": ["bad token"]})
            return httpx.Response(200, json={"status": 1, "request": "abc"})

        page = self.pages.get(str(request.url))
        if isinstance(page, Exception):
            raise page
        if isinstance(page, int):
            return httpx.Response(page, text="error")
        if page is None:
            return httpx.Response(404, text="not found")
        return httpx.Response(200, text=page)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def env_file(tmp_path: Path) -> Path:
    path = tmp_path / ".env"
    path.write_text(
        "PUSHOVER_USER_KEY=user\n"
        f"TESTFLIGHT_URLS={json.dumps([APP_A, APP_B])}\n"
        "OTP_SECRET=test-secret\n"
    )
    return path


@pytest.fixture
def registry(env_file: Path) -> TargetRegistry:
    reg = TargetRegistry(EnvStore(env_file))
    reg.load()
    return reg


@pytest.fixture
def otp(clock: FakeClock) -> OtpService:
    return OtpService(SECRET, VALIDITY_MS, clock=clock)


@pytest.fixture
def web() -> FakeWeb:
    return FakeWeb({APP_A["url"]: FULL_HTML, APP_B["url"]: OPEN_HTML})


@pytest.fixture
def http_client(web: FakeWeb) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(web))


@pytest.fixture
def notifier(http_client: httpx.AsyncClient) -> PushoverNotifier:
    return PushoverNotifier("user-key", "app-token", http_client, default_priority="high")


@pytest.fixture
def monitor(
    registry: TargetRegistry,
    otp: OtpService,
    notifier: PushoverNotifier,
    http_client: httpx.AsyncClient,
) -> PageMonitor:
    return PageMonitor(registry, otp, notifier, http_client, public_url="https://watch.example")
