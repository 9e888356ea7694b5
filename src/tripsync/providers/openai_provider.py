from collections.abc import Sequence

import openai
from loguru import logger
from tenacity import retry

from tripsync.errors import CompletionFailure
from tripsync.providers.common import DeltaCallback, default_retry_kwargs, to_turn_dicts
from tripsync.storage.models import ChatMessage

_RETRYABLE = (
    openai.RateLimitError,
    openai.APIConnectionError,
    openai.APITimeoutError,
)


def _to_openai_messages(system_prompt: str, turns: Sequence[ChatMessage]) -> list[dict]:
    out: list[dict] = []
    if system_prompt:
        out.append({"role": "system", "content": system_prompt})
    out.extend(to_turn_dicts(turns))
    return out


class OpenAIProvider:
    """OpenAI chat completions, or any OpenAI-compatible endpoint via ``base_url`` (e.g. Groq)."""

    def __init__(self, api_key: str, base_url: str | None = None):
        self._client = openai.AsyncOpenAI(api_key=api_key, base_url=base_url)

    @retry(**default_retry_kwargs(_RETRYABLE))
    async def stream_chat(
        self,
        model: str,
        max_tokens: int,
        temperature: float,
        system_prompt: str,
        turns: Sequence[ChatMessage],
        *,
        on_delta: DeltaCallback,
    ) -> str:
        oai_messages = _to_openai_messages(system_prompt, turns)
        logger.debug(f"API request: model={model}, max_tokens={max_tokens}, messages={len(oai_messages)}")

        text_content = ""
        finish_reason: str | None = None
        stream = await self._client.chat.completions.create(
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
            messages=oai_messages,
            stream=True,
        )
        try:
            async for chunk in stream:
                choice = chunk.choices[0] if chunk.choices else None
                if choice is None:
                    continue
                if choice.finish_reason:
                    finish_reason = choice.finish_reason
                delta = choice.delta
                if delta is None or not delta.content:
                    continue
                text_content += delta.content
                await on_delta(delta.content)
        except _RETRYABLE as ex:
            # Deltas already reached the caller; a retry would send them twice.
            if text_content:
                raise CompletionFailure(f"Stream interrupted after output started: {type(ex).__name__}") from ex
            raise

        logger.debug(f"API response: finish_reason={finish_reason}, text_len={len(text_content)}")
        return text_content
