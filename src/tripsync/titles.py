from __future__ import annotations

import re

from tripsync.storage.models import PLACEHOLDER_TITLE

_TERMINATOR = r"(?:\s|$|,|\.|!|\?)"

# (priority, pattern); lower priority is tried first. Group 1 captures the destination phrase.
TITLE_PATTERNS: list[tuple[int, re.Pattern[str]]] = [
    (
        10,
        re.compile(
            r"\b(?:trip to|traveling to|travelling to|going to|flying to|visit|visiting)\s+([a-z\s]+?)"
            + _TERMINATOR
        ),
    ),
    (20, re.compile(r"\bto\s+([a-z\s]+?)" + _TERMINATOR)),
    (30, re.compile(r"\b(?:in|at)\s+([a-z\s]+?)" + _TERMINATOR)),
    (40, re.compile(r"\b([a-z\s]+?)\s+(?:trip|travel|vacation|holiday)\b")),
]

_MIN_PHRASE_EXCLUSIVE = 2
_MAX_PHRASE_EXCLUSIVE = 30
_FALLBACK_CHARS = 30


def extract_destination(message: str) -> str | None:
    lowered = message.lower().strip()
    for _, pattern in sorted(TITLE_PATTERNS, key=lambda item: item[0]):
        for match in pattern.finditer(lowered):
            phrase = (match.group(1) or "").strip()
            if _MIN_PHRASE_EXCLUSIVE < len(phrase) < _MAX_PHRASE_EXCLUSIVE:
                return phrase
    return None


def synthesize_title(first_user_message: object) -> str:
    """Derive a short session title from the first user utterance. Never raises."""
    if not isinstance(first_user_message, str) or not first_user_message.strip():
        return PLACEHOLDER_TITLE

    destination = extract_destination(first_user_message)
    if destination is not None:
        return f"Trip to {destination[0].upper()}{destination[1:]}"

    if len(first_user_message) > _FALLBACK_CHARS:
        return f"{first_user_message[:_FALLBACK_CHARS]}..."
    return first_user_message
