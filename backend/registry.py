"""Watched TestFlight targets, loaded from and persisted to the .env store."""

import json
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from config import parse_targets
from env_store import EnvStore

logger = logging.getLogger(__name__)

TARGETS_KEY = "TESTFLIGHT_URLS"
TESTFLIGHT_BASE_URL = "https://testflight.apple.com/join/"


class RegistryPersistenceError(RuntimeError):
    """The target list could not be written back to the config store."""


class DuplicateTargetError(ValueError):
    pass


class UnreachableTargetError(ValueError):
    pass


@dataclass(frozen=True)
class Target:
    name: str
    url: str

    def to_dict(self) -> dict:
        return {"name": self.name, "url": self.url}


def normalize_testflight_url(value: str) -> str:
    """Accept either a full join URL or a bare invitation code."""
    value = value.strip()
    if value.startswith(("http://", "https://")):
        return value
    return f"{TESTFLIGHT_BASE_URL}{value}"


class TargetRegistry:
    def __init__(self, store: EnvStore):
        self.store = store
        self._targets: list[Target] = []
        self._subscribers: list[Callable[[tuple[Target, ...]], None]] = []

    @property
    def targets(self) -> tuple[Target, ...]:
        return tuple(self._targets)

    def load(self) -> list[Target]:
        """Read the target list from the store, replacing the in-memory list."""
        raw = self.store.read().get(TARGETS_KEY)
        targets: list[Target] = []
        seen: set[str] = set()
        for entry in parse_targets(raw):
            if entry["url"] in seen:
                logger.warning(f"Ignoring duplicate target {entry['url']}")
                continue
            seen.add(entry["url"])
            targets.append(Target(name=entry["name"], url=entry["url"]))
        self._targets = targets
        logger.info(f"Loaded {len(targets)} target(s) from {self.store.path}")
        return list(targets)

    def get(self, url: str) -> Target | None:
        for target in self._targets:
            if target.url == url:
                return target
        return None

    def subscribe(self, callback: Callable[[tuple[Target, ...]], None]) -> None:
        """Register a callback fired after every successful write of the target list."""
        self._subscribers.append(callback)

    def remove(self, url: str) -> Target | None:
        """Remove a target by URL. Unknown URLs are a no-op and return None."""
        target = self.get(url)
        if target is None:
            logger.info(f"Remove requested for unknown target {url}, nothing to do")
            return None
        self._commit([t for t in self._targets if t.url != url])
        logger.info(f"Removed target {target.name} ({url})")
        return target

    async def add(
        self,
        target: Target,
        check: Callable[[str], Awaitable[bool]] | None = None,
    ) -> Target:
        """Add a target after checking it is new and, if ``check`` is given, reachable."""
        if self.get(target.url) is not None:
            raise DuplicateTargetError(f"{target.url} is already being watched")
        if check is not None and not await check(target.url):
            raise UnreachableTargetError(f"{target.url} could not be reached")
        # The check awaited; another task may have added the same URL meanwhile
        if self.get(target.url) is not None:
            raise DuplicateTargetError(f"{target.url} is already being watched")
        self._commit([*self._targets, target])
        logger.info(f"Added target {target.name} ({target.url})")
        return target

    def _commit(self, targets: list[Target]) -> None:
        payload = json.dumps([t.to_dict() for t in targets], ensure_ascii=False)
        try:
            self.store.write({TARGETS_KEY: payload})
        except OSError as e:
            logger.error(f"Failed to persist target list to {self.store.path}: {e}")
            raise RegistryPersistenceError(str(e)) from e
        self._targets = targets
        snapshot = self.targets
        for callback in self._subscribers:
            try:
                callback(snapshot)
            except Exception:
                logger.exception(f"Target list subscriber {callback!r} failed")
