"""Classification keys: the value messages are grouped by."""

from __future__ import annotations

from .constants import (
    ELLIPSIS,
    KEY_DISPLAY_KEEP,
    KEY_DISPLAY_WIDTH,
    NO_ADDRESS,
    SUBJECT_KEEP,
    SUBJECT_LIMIT,
)
from .models import Envelope

SEARCH_HEADERS = {"from": "From", "to": "To", "subject": "Subject"}


def truncate(text: str, limit: int, keep: int) -> str:
    """Cut text longer than limit to keep characters plus an ellipsis."""
    if len(text) <= limit:
        return text
    return text[:keep] + ELLIPSIS


def classify(envelope: Envelope | None, field: str) -> str:
    """Return the grouping key of a message for from, to or subject."""
    envelope = envelope or Envelope()
    if field == "subject":
        return truncate(envelope.subject, SUBJECT_LIMIT, SUBJECT_KEEP)
    addresses = envelope.recipients if field == "to" else envelope.senders
    if not addresses:
        return NO_ADDRESS
    return addresses[0]


def matches(key: str, text: str) -> bool:
    """Case-insensitive substring test used to re-check server search hits."""
    return text.lower() in key.lower()


def display_key(key: str) -> str:
    return truncate(key, KEY_DISPLAY_WIDTH, KEY_DISPLAY_KEEP)
