"""Manage the watched TestFlight URLs stored in .env.

Usage:
    python manage_targets.py list
    python manage_targets.py add "My App" abc123XY
    python manage_targets.py remove https://testflight.apple.com/join/abc123XY
    python manage_targets.py check-pushover
"""

import argparse
import asyncio
import logging
import sys

import httpx

from config import ConfigError, settings
from env_store import EnvStore
from notifications import PushoverNotifier
from page_monitor import check_reachable
from registry import (
    DuplicateTargetError,
    RegistryPersistenceError,
    Target,
    TargetRegistry,
    UnreachableTargetError,
    normalize_testflight_url,
)

logger = logging.getLogger(__name__)


def _notifier(client: httpx.AsyncClient) -> PushoverNotifier:
    return PushoverNotifier(
        settings.PUSHOVER_USER_KEY,
        settings.PUSHOVER_APP_TOKEN,
        client,
        default_priority=settings.PUSHOVER_PRIORITY,
        default_sound=settings.PUSHOVER_SOUND,
    )


def cmd_list(registry: TargetRegistry) -> int:
    if not registry.targets:
        print("No TestFlight URLs configured.")
    for i, t in enumerate(registry.targets, 1):
        print(f"{i}. {t.name} - {t.url}")
    return 0


async def cmd_add(registry: TargetRegistry, name: str, url_or_code: str, check: bool, notify: bool) -> int:
    url = normalize_testflight_url(url_or_code)
    async with httpx.AsyncClient(timeout=settings.FETCH_TIMEOUT) as client:

        async def reachable(u: str) -> bool:
            return await check_reachable(client, u, settings.USER_AGENT)

        try:
            target = await registry.add(Target(name=name, url=url), check=reachable if check else None)
        except (DuplicateTargetError, UnreachableTargetError) as e:
            print(f"Not added: {e}", file=sys.stderr)
            return 1
        print(f"Added {target.name} - {target.url}")

        if notify:
            await _notifier(client).send(
                f"Watching {target.name}",
                f"{target.name} was added to the TestFlight watch list.\n\n{target.url}",
            )
    return 0


def cmd_remove(registry: TargetRegistry, url_or_code: str) -> int:
    url = normalize_testflight_url(url_or_code)
    removed = registry.remove(url)
    if removed is None:
        print(f"{url} is not in the watch list.")
    else:
        print(f"Removed {removed.name} - {removed.url}")
    return 0


async def cmd_check_pushover() -> int:
    async with httpx.AsyncClient(timeout=settings.FETCH_TIMEOUT) as client:
        ok = await _notifier(client).validate()
    print("Pushover credentials are valid." if ok else "Pushover credentials are missing or invalid.")
    return 0 if ok else 1


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Manage watched TestFlight URLs")
    parser.add_argument("--env-file", default=settings.ENV_FILE, help="Path to the .env file")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="Show watched URLs")

    add = sub.add_parser("add", help="Watch a new TestFlight URL or invitation code")
    add.add_argument("name")
    add.add_argument("url")
    add.add_argument("--no-check", action="store_true", help="Skip the reachability check")
    add.add_argument("--notify", action="store_true", help="Send a push notification after adding")

    remove = sub.add_parser("remove", help="Stop watching a URL")
    remove.add_argument("url")

    sub.add_parser("check-pushover", help="Validate the Pushover credentials")

    args = parser.parse_args(argv)
    logging.basicConfig(level=settings.LOG_LEVEL.upper(), format="%(levelname)s %(name)s: %(message)s")

    if args.command == "check-pushover":
        return asyncio.run(cmd_check_pushover())

    registry = TargetRegistry(EnvStore(args.env_file))
    try:
        registry.load()
    except ConfigError as e:
        print(f"Could not read the watch list from {args.env_file}: {e}", file=sys.stderr)
        return 2
    try:
        if args.command == "list":
            return cmd_list(registry)
        if args.command == "add":
            return asyncio.run(cmd_add(registry, args.name, args.url, not args.no_check, args.notify))
        return cmd_remove(registry, args.url)
    except RegistryPersistenceError as e:
        print(f"Could not save the watch list: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
