import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import httpx
import uvicorn
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from fastapi import FastAPI, Query, Request
from fastapi.responses import HTMLResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from config import ConfigError, Settings, settings as default_settings
from env_store import EnvStore
from notifications import PushoverNotifier
from otp import OtpService
from page_monitor import PageMonitor
from pages import deleted_page, index_page, invalid_token_page, server_error_page
from registry import RegistryPersistenceError, Target, TargetRegistry

logger = logging.getLogger(__name__)

CHECK_JOB_ID = "testflight_check"
DELETE_RATE_LIMIT = "20/minute"


def build_monitor(cfg: Settings, client: httpx.AsyncClient) -> PageMonitor:
    """Wire the registry, token service and notifier from configuration."""
    if not cfg.OTP_SECRET:
        raise ConfigError("OTP_SECRET must be set")
    registry = TargetRegistry(EnvStore(cfg.ENV_FILE))
    registry.load()
    otp = OtpService(cfg.OTP_SECRET, cfg.OTP_VALIDITY_MS)
    notifier = PushoverNotifier(
        cfg.PUSHOVER_USER_KEY,
        cfg.PUSHOVER_APP_TOKEN,
        client,
        default_priority=cfg.PUSHOVER_PRIORITY,
        default_sound=cfg.PUSHOVER_SOUND,
    )
    if not notifier.configured:
        logger.warning("Pushover is not configured; open betas will only be logged")
    return PageMonitor(
        registry, otp, notifier, client, public_url=cfg.HTTP_URL, user_agent=cfg.USER_AGENT
    )


def create_app(
    cfg: Settings | None = None,
    monitor: PageMonitor | None = None,
    client: httpx.AsyncClient | None = None,
) -> FastAPI:
    cfg = cfg or default_settings
    if monitor is None:
        client = client or httpx.AsyncClient(timeout=cfg.FETCH_TIMEOUT)
        monitor = build_monitor(cfg, client)

    registry = monitor.registry
    otp = monitor.otp
    scheduler = AsyncIOScheduler()

    def _on_targets_changed(targets: tuple[Target, ...]):
        """Drop tokens for targets that left the list and log the reload signal."""
        otp.retain({t.url for t in targets})
        logger.info(f"Watch list changed, {len(targets)} target(s) remain")

    registry.subscribe(_on_targets_changed)

    # ---------------------------------------------------------------------------
    # Scheduler for the periodic page check
    # ---------------------------------------------------------------------------

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Start the check schedule on app startup, stop on shutdown."""
        scheduler.add_job(
            monitor.run_cycle,
            IntervalTrigger(seconds=cfg.CHECK_INTERVAL),
            id=CHECK_JOB_ID,
            next_run_time=datetime.now(timezone.utc),
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        scheduler.start()
        logger.info(
            f"TestFlight monitor started: {len(registry.targets)} target(s), "
            f"checking every {cfg.CHECK_INTERVAL}s"
        )
        yield
        # In-flight fetches are not cancelled; they finish or time out on their own
        scheduler.shutdown(wait=False)
        if client is not None:
            await client.aclose()

    limiter = Limiter(key_func=get_remote_address)
    app = FastAPI(title="Testflight Watcher", version="1.0.0", lifespan=lifespan)
    app.state.limiter = limiter
    app.state.monitor = monitor
    app.state.scheduler = scheduler
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # ---------------------------------------------------------------------------
    # Pages
    # ---------------------------------------------------------------------------

    @app.get("/", response_class=HTMLResponse)
    def index():
        return index_page()

    @app.get("/health")
    def health():
        job = scheduler.get_job(CHECK_JOB_ID) if scheduler.running else None
        return {
            "status": "ok",
            "targets": len(registry.targets),
            "pushover_configured": monitor.notifier.configured,
            "check_interval": cfg.CHECK_INTERVAL,
            "last_run_at": monitor.last_run_at.isoformat() if monitor.last_run_at else None,
            "next_run_at": job.next_run_time.isoformat() if job and job.next_run_time else None,
        }

    # ---------------------------------------------------------------------------
    # One-time delete link
    # ---------------------------------------------------------------------------

    @app.get("/delete", response_class=HTMLResponse)
    @limiter.limit(DELETE_RATE_LIMIT)
    async def delete_target(
        request: Request,
        otp_token: str | None = Query(None, alias="otp"),
        url: str | None = Query(None),
    ):
        """Remove a watched target if the one-time token is valid for it."""
        # verify and remove run without awaiting in between, so no poll cycle can interleave
        if not otp.verify(otp_token, url):
            logger.warning(f"Rejected delete request for {url}")
            return HTMLResponse(invalid_token_page(), status_code=403)

        try:
            removed = registry.remove(url)
        except RegistryPersistenceError as e:
            logger.error(f"Token accepted but target {url} could not be removed: {e}")
            return HTMLResponse(server_error_page(), status_code=500)

        name = removed.name if removed else url
        logger.info(f"Target {name} removed via delete link")
        return HTMLResponse(deleted_page(name, url))

    return app


def main():
    logging.basicConfig(
        level=default_settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(create_app(), host=default_settings.HOST, port=default_settings.PORT)


if __name__ == "__main__":
    main()
