"""
One-time tokens for the unauthenticated delete link.

A token is the first six hex characters of HMAC-SHA256(secret, "{window}-{url}"),
where window = floor(now_ms / validity_ms). The token is only accepted while the
clock is still inside the window it was issued in, and only once: verification
deletes the stored copy.
"""

import hashlib
import hmac
import logging
import time
from typing import Callable

logger = logging.getLogger(__name__)

TOKEN_LENGTH = 6


class OtpService:
    def __init__(self, secret: str, validity_ms: int, clock: Callable[[], float] = time.time):
        if not secret:
            raise ValueError("OTP secret must not be empty")
        if validity_ms <= 0:
            raise ValueError("OTP validity must be positive")
        self._secret = secret.encode()
        self.validity_ms = validity_ms
        self._clock = clock
        self._pending: dict[str, str] = {}

    def current_window(self) -> int:
        return int(self._clock() * 1000) // self.validity_ms

    def _compute(self, target_key: str, window: int) -> str:
        digest = hmac.new(self._secret, f"{window}-{target_key}".encode(), hashlib.sha256)
        return digest.hexdigest()[:TOKEN_LENGTH]

    def issue(self, target_key: str) -> str:
        """Compute the token for the current window and store it, replacing any previous one."""
        token = self._compute(target_key, self.current_window())
        if self._pending.get(target_key) not in (None, token):
            logger.info(f"Replacing outstanding token for {target_key}")
        self._pending[target_key] = token
        return token

    def verify(self, token: str | None, target_key: str | None) -> bool:
        """Check a presented token and consume it on success.

        All failure causes (wrong token, expired window, already used, never issued)
        return False without touching the stored tokens.
        """
        if not token or not target_key:
            return False
        expected = self._compute(target_key, self.current_window())
        stored = self._pending.get(target_key)
        if stored is None:
            return False
        presented = token.encode()
        if not (hmac.compare_digest(presented, expected.encode())
                and hmac.compare_digest(presented, stored.encode())):
            return False
        del self._pending[target_key]
        return True

    def pending(self, target_key: str) -> str | None:
        return self._pending.get(target_key)

    def discard(self, target_key: str) -> None:
        self._pending.pop(target_key, None)

    def retain(self, target_keys: set[str]) -> None:
        """Drop stored tokens for every key not in ``target_keys``."""
        for key in [k for k in self._pending if k not in target_keys]:
            del self._pending[key]
