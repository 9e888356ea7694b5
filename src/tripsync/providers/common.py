from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence

from loguru import logger
from tenacity import retry_if_exception_type, stop_after_attempt, wait_exponential

from tripsync.storage.models import ChatMessage

DeltaCallback = Callable[[str], Awaitable[None]]

_MAX_ATTEMPTS = 5


def _on_retry(retry_state) -> None:
    attempt = retry_state.attempt_number
    wait = retry_state.next_action.sleep if retry_state.next_action else 0
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    reason = type(exc).__name__ if exc else "Unknown"
    logger.warning(f"{reason}. Retrying in {wait:.0f}s (attempt {attempt}/{_MAX_ATTEMPTS})...")


def default_retry_kwargs(exception_types: tuple[type[Exception], ...]) -> dict:
    return {
        "retry": retry_if_exception_type(exception_types),
        "wait": wait_exponential(multiplier=10, min=10, max=320),
        "stop": stop_after_attempt(_MAX_ATTEMPTS),
        "before_sleep": _on_retry,
        "reraise": True,
    }


def to_turn_dicts(turns: Sequence[ChatMessage]) -> list[dict]:
    """Provider-neutral turn list; blank turns are skipped since providers reject them."""
    return [
        {"role": "assistant" if t.role == "assistant" else "user", "content": t.content}
        for t in turns
        if t.content.strip()
    ]
