"""
TestFlight page monitor: poll watched join pages and notify when a beta opens.

Each cycle fetches every target concurrently, classifies the beta status, and for
each page that looks open issues a one-time delete token and sends a push
notification carrying the delete link. Failures are reported per target and never
abort the rest of the cycle.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from urllib.parse import urlencode

import httpx

from notifications import PushoverNotifier
from otp import OtpService
from registry import Target, TargetRegistry
from status import Availability, classify_status_text, extract_status_text

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "Testflight-Watcher/1.0 (Monitoring Script)"


class FetchError(Exception):
    """A page could not be fetched (network error, timeout or non-2xx status)."""


async def fetch_page(client: httpx.AsyncClient, url: str, user_agent: str = DEFAULT_USER_AGENT) -> str:
    """Fetch a URL and return its HTML body."""
    try:
        resp = await client.get(
            url,
            headers={"Accept": "text/html", "User-Agent": user_agent},
            follow_redirects=True,
        )
        resp.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise FetchError(f"HTTP {e.response.status_code}") from e
    except httpx.HTTPError as e:
        raise FetchError(str(e) or type(e).__name__) from e
    return resp.text


async def check_reachable(client: httpx.AsyncClient, url: str, user_agent: str = DEFAULT_USER_AGENT) -> bool:
    """True if the join page answers with a success status (404 means the beta does not exist)."""
    try:
        await fetch_page(client, url, user_agent)
    except FetchError as e:
        logger.warning(f"Reachability check failed for {url}: {e}")
        return False
    return True


def build_delete_url(base_url: str, token: str, target_url: str) -> str:
    return f"{base_url.rstrip('/')}/delete?{urlencode({'otp': token, 'url': target_url})}"


@dataclass
class CheckResult:
    target: Target
    availability: Availability
    message: str
    status_text: str = ""
    token: str | None = None
    notified: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class PageMonitor:
    def __init__(
        self,
        registry: TargetRegistry,
        otp: OtpService,
        notifier: PushoverNotifier,
        client: httpx.AsyncClient,
        public_url: str,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self.registry = registry
        self.otp = otp
        self.notifier = notifier
        self.client = client
        self.public_url = public_url
        self.user_agent = user_agent
        self.last_run_at: datetime | None = None
        self.last_results: list[CheckResult] = []

    # ----- Check a single target -----

    async def check_target(self, target: Target) -> CheckResult:
        """Fetch, classify and, if open, notify for one target. Never raises."""
        try:
            html = await fetch_page(self.client, target.url, self.user_agent)
        except FetchError as e:
            logger.warning(f"Fetch failed for {target.name} ({target.url}): {e}")
            return CheckResult(
                target=target,
                availability=Availability.UNKNOWN,
                message=f"{target.name}: could not fetch page: {e}",
                error=str(e),
            )

        status_text = extract_status_text(html)
        availability = classify_status_text(status_text)

        if availability == Availability.FULL:
            return CheckResult(target, availability, f"{target.name}: beta is full.", status_text)
        if availability == Availability.NOT_ACCEPTING:
            return CheckResult(
                target, availability, f"{target.name}: beta is not accepting new testers.", status_text
            )

        token = self.otp.issue(target.url)
        delete_url = build_delete_url(self.public_url, token, target.url)
        notified = await self.notifier.send(
            f"TestFlight beta available for {target.name}!",
            (
                f"The beta for {target.name} is available. Sign up now!\n\n"
                f"{target.url}\n\n"
                f"Open this link to stop watching this beta: {delete_url}"
            ),
            url=target.url,
            url_title=f"Join {target.name}",
        )
        if notified:
            message = f"{target.name}: beta is available! Notification sent."
        else:
            message = f"{target.name}: beta is available! Notification could not be sent."
        return CheckResult(target, availability, message, status_text, token=token, notified=notified)

    # ----- Full cycle -----

    async def run_cycle(self) -> list[CheckResult]:
        """Check every registered target concurrently and report once all have finished."""
        targets = self.registry.targets
        started = time.monotonic()
        if not targets:
            logger.info("No targets configured, nothing to check")
            self.last_results = []
            self.last_run_at = datetime.now(timezone.utc)
            return []

        outcomes = await asyncio.gather(
            *(self.check_target(t) for t in targets), return_exceptions=True
        )

        results: list[CheckResult] = []
        for target, outcome in zip(targets, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.error(f"Check crashed for {target.name}: {outcome!r}")
                outcome = CheckResult(
                    target=target,
                    availability=Availability.UNKNOWN,
                    message=f"{target.name}: check failed: {outcome}",
                    error=repr(outcome),
                )
            results.append(outcome)

        for r in results:
            log = logger.info if r.ok else logger.warning
            log(r.message if not r.status_text else f"{r.message} (Status: {r.status_text[:80]})")

        elapsed = time.monotonic() - started
        open_count = sum(1 for r in results if r.availability == Availability.OPEN)
        error_count = sum(1 for r in results if not r.ok)
        logger.info(
            f"Check complete: {len(results)} target(s), {open_count} open, "
            f"{error_count} error(s) in {elapsed:.1f}s"
        )
        self.last_results = results
        self.last_run_at = datetime.now(timezone.utc)
        return results
