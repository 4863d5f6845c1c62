"""Classify a TestFlight join page into an availability signal."""

import re
from enum import Enum

from bs4 import BeautifulSoup


class Availability(str, Enum):
    FULL = "full"
    NOT_ACCEPTING = "not_accepting"
    OPEN = "open"
    UNKNOWN = "unknown"


FULL_TEXT = "this beta is full"
NOT_ACCEPTING_TEXT = "this beta isn't accepting any new testers right now"

STATUS_SELECTOR = "div.beta-status span"


def extract_status_text(html: str) -> str:
    """Return the text of the beta status element, or the whole page text if it is missing."""
    soup = BeautifulSoup(html or "", "html.parser")
    nodes = soup.select(STATUS_SELECTOR)
    if nodes:
        return " ".join(n.get_text(" ", strip=True) for n in nodes).strip()
    return soup.get_text(" ", strip=True)


def _normalize(text: str) -> str:
    text = text.replace("’", "'").lower()
    text = re.sub(r"\s+", " ", text).strip()
    return text.rstrip(".").strip()


def classify_status_text(text: str) -> Availability:
    normalized = _normalize(text)
    if normalized == FULL_TEXT:
        return Availability.FULL
    if normalized == NOT_ACCEPTING_TEXT:
        return Availability.NOT_ACCEPTING
    # Fallback for pages where the status sits among other text
    if FULL_TEXT in normalized:
        return Availability.FULL
    if NOT_ACCEPTING_TEXT in normalized:
        return Availability.NOT_ACCEPTING
    # Anything unrecognised may be an open slot; over-notify rather than miss it
    return Availability.OPEN


def classify_page(html: str) -> Availability:
    return classify_status_text(extract_status_text(html))
