"""Key/value configuration store backed by the watcher's .env file."""

import logging
from pathlib import Path

from dotenv import dotenv_values, set_key

logger = logging.getLogger(__name__)


def quote_value(value: str) -> str:
    """Single-quote a value so dotenv reads it back verbatim.

    Inside single quotes dotenv only unescapes backslashes and quotes, and a
    " #" is not a comment.
    """
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


class EnvStore:
    def __init__(self, path: str | Path):
        self.path = Path(path)

    def read(self) -> dict[str, str]:
        """Return every key in the file. A missing file reads as empty."""
        if not self.path.exists():
            return {}
        values = dotenv_values(self.path, interpolate=False)
        return {k: v for k, v in values.items() if v is not None}

    def write(self, values: dict[str, str]) -> None:
        """Set each key in the file, leaving keys not named in ``values`` untouched.

        Raises OSError if the file cannot be written.
        """
        self.path.touch(exist_ok=True)
        for key, value in values.items():
            # set_key reports failure through its return value, not an exception
            ok, _, _ = set_key(self.path, key, quote_value(value), quote_mode="never")
            if not ok:
                raise OSError(f"Could not write {key} to {self.path}")
        logger.debug(f"Wrote {', '.join(values)} to {self.path}")
