"""Stable identity keys for source participants.

A participant's identity key is what ties it to one Person across import
runs. Handles that look like phone numbers are compared on their last 10
digits so `+1 (555) 123-4567` and `5551234567` collide. Other handles and
names are compared case-insensitively with whitespace collapsed.
"""

import re

from memoirark.importer.models import ParticipantRef

_NON_DIGIT = re.compile(r"\D")
_WHITESPACE = re.compile(r"\s+")
# Digits with the usual dialling punctuation; no letters, no "@"
_PHONE_LIKE = re.compile(r"^\+?[\d\s().\-]+$")
_MIN_PHONE_DIGITS = 3

PHONE_DIGITS = 10


def normalize_phone(value: str | None) -> str:
    """Digits only, trimmed to the trailing national number. Empty if none."""
    if not value:
        return ""
    digits = _NON_DIGIT.sub("", value)
    return digits[-PHONE_DIGITS:]


def normalize_name(value: str) -> str:
    return _WHITESPACE.sub(" ", value).strip().casefold()


def looks_like_phone(handle: str) -> bool:
    """True for `+1 (555) 123-4567` or a short code, false for `john2@example.com`."""
    stripped = handle.strip()
    if not _PHONE_LIKE.match(stripped):
        return False
    return len(_NON_DIGIT.sub("", stripped)) >= _MIN_PHONE_DIGITS


def identity_key(participant: ParticipantRef) -> str | None:
    """The key a participant resolves under, or None if it has no usable identity."""
    if participant.handle is not None:
        if looks_like_phone(participant.handle):
            return f"phone:{normalize_phone(participant.handle)}"
        handle = normalize_name(participant.handle)
        if handle:
            return f"handle:{handle}"
    name = normalize_name(participant.name or "")
    if name:
        return f"name:{name}"
    return None
