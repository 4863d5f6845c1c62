"""
Push notifications for open TestFlight betas.
Uses the Pushover messages API; failures are logged and reported as False.
"""

import logging

import httpx

logger = logging.getLogger(__name__)

PUSHOVER_MESSAGES_URL = "https://api.pushover.net/1/messages.json"
PUSHOVER_VALIDATE_URL = "https://api.pushover.net/1/users/validate.json"

PRIORITIES = {
    "lowest": -2,
    "low": -1,
    "normal": 0,
    "high": 1,
    "emergency": 2,
}
DEFAULT_PRIORITY = "normal"

SOUNDS = {
    "pushover", "bike", "bugle", "cashregister", "classical", "cosmic", "falling",
    "gamelan", "incoming", "intermission", "magic", "mechanical", "pianobar", "siren",
    "spacealarm", "tugboat", "alien", "climb", "persistent", "echo", "updown",
    "vibrate", "none",
}
DEFAULT_SOUND = "pushover"

# Emergency messages are re-sent every RETRY seconds until acknowledged or EXPIRE elapses
EMERGENCY_RETRY = 60
EMERGENCY_EXPIRE = 3600


def resolve_priority(value: str | int | None) -> int:
    """Map a priority name or number to a Pushover priority, defaulting to normal."""
    if value is None:
        return PRIORITIES[DEFAULT_PRIORITY]
    if isinstance(value, int):
        return value if value in PRIORITIES.values() else PRIORITIES[DEFAULT_PRIORITY]
    text = str(value).strip().lower()
    if text in PRIORITIES:
        return PRIORITIES[text]
    try:
        number = int(text)
    except ValueError:
        logger.warning(f"Unknown Pushover priority {value!r}, using {DEFAULT_PRIORITY}")
        return PRIORITIES[DEFAULT_PRIORITY]
    if number in PRIORITIES.values():
        return number
    logger.warning(f"Pushover priority {number} out of range, using {DEFAULT_PRIORITY}")
    return PRIORITIES[DEFAULT_PRIORITY]


def resolve_sound(value: str | None) -> str:
    if value and value.strip().lower() in SOUNDS:
        return value.strip().lower()
    if value:
        logger.warning(f"Unknown Pushover sound {value!r}, using {DEFAULT_SOUND}")
    return DEFAULT_SOUND


class PushoverNotifier:
    def __init__(
        self,
        user_key: str,
        app_token: str,
        client: httpx.AsyncClient,
        default_priority: str | int | None = None,
        default_sound: str | None = None,
    ):
        self.user_key = user_key
        self.app_token = app_token
        self.client = client
        self.default_priority = default_priority
        self.default_sound = default_sound

    @property
    def configured(self) -> bool:
        return bool(self.user_key and self.app_token)

    async def send(
        self,
        title: str,
        message: str,
        *,
        priority: str | int | None = None,
        sound: str | None = None,
        url: str | None = None,
        url_title: str | None = None,
    ) -> bool:
        """Send one push message.

        Returns:
            True if Pushover accepted the message.
        """
        if not self.configured:
            logger.warning("Pushover user key or app token not configured, skipping notification")
            return False

        level = resolve_priority(priority if priority is not None else self.default_priority)
        data = {
            "user": self.user_key,
            "token": self.app_token,
            "title": title,
            "message": message,
            "priority": str(level),
            "sound": resolve_sound(sound if sound is not None else self.default_sound),
        }
        if level == PRIORITIES["emergency"]:
            data["retry"] = str(EMERGENCY_RETRY)
            data["expire"] = str(EMERGENCY_EXPIRE)
        if url:
            data["url"] = url
            if url_title:
                data["url_title"] = url_title

        try:
            resp = await self.client.post(PUSHOVER_MESSAGES_URL, data=data)
        except httpx.HTTPError as e:
            logger.error(f"Failed to send Pushover notification: {e}")
            return False

        if resp.status_code != 200:
            logger.error(f"Pushover rejected notification ({resp.status_code}): {_errors(resp)}")
            return False
        if _body(resp).get("status") != 1:
            logger.error(f"Pushover rejected notification: {_errors(resp)}")
            return False

        logger.info(f"Notification sent: {title}")
        return True

    async def validate(self) -> bool:
        """Check the user key and app token against Pushover's validation endpoint."""
        if not self.configured:
            return False
        try:
            resp = await self.client.post(
                PUSHOVER_VALIDATE_URL,
                data={"user": self.user_key, "token": self.app_token},
            )
        except httpx.HTTPError as e:
            logger.error(f"Pushover credential check failed: {e}")
            return False
        if resp.status_code == 200 and _body(resp).get("status") == 1:
            return True
        logger.error(f"Pushover credentials invalid: {_errors(resp)}")
        return False


def _body(resp: httpx.Response) -> dict:
    try:
        data = resp.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _errors(resp: httpx.Response) -> str:
    errors = _body(resp).get("errors")
    if isinstance(errors, list) and errors:
        return "; ".join(str(e) for e in errors)
    return resp.text[:200]
