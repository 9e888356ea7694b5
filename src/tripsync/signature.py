"""Duplicate detection for chat messages.

A message's signature is its role plus its whitespace-trimmed content. Two
messages with equal signatures are the same turn as far as persistence is
concerned; the one seen later is suppressed. Matching is case-sensitive and
nothing beyond leading/trailing whitespace is normalized.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, TypeVar

Signature = tuple[str, str]

T = TypeVar("T")


def signature(message: Any) -> Signature:
    if isinstance(message, Mapping):
        role = message.get("role", "")
        content = message.get("content", "")
    else:
        role = getattr(message, "role", "")
        content = getattr(message, "content", "")
    return str(role or ""), str(content or "").strip()


def dedupe(messages: Iterable[T], seen: Iterable[Signature] = ()) -> list[T]:
    """Keep the first occurrence of each signature, skipping any already in ``seen``."""
    known = set(seen)
    kept: list[T] = []
    for message in messages:
        key = signature(message)
        if key in known:
            continue
        known.add(key)
        kept.append(message)
    return kept


def collapse_adjacent(messages: Iterable[T]) -> list[T]:
    """Drop a message whose signature equals the one immediately before it."""
    collapsed: list[T] = []
    previous: Signature | None = None
    for message in messages:
        key = signature(message)
        if key == previous:
            continue
        collapsed.append(message)
        previous = key
    return collapsed
