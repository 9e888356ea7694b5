from collections.abc import Sequence

import anthropic
from loguru import logger
from tenacity import retry

from tripsync.errors import CompletionFailure
from tripsync.providers.common import DeltaCallback, default_retry_kwargs, to_turn_dicts
from tripsync.storage.models import ChatMessage

_RETRYABLE = (
    anthropic.RateLimitError,
    anthropic.APIConnectionError,
    anthropic.APITimeoutError,
)


class AnthropicProvider:
    def __init__(self, api_key: str, base_url: str | None = None):
        self._client = anthropic.AsyncAnthropic(api_key=api_key, base_url=base_url)

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
        """Stream an assistant turn, handing each text delta to ``on_delta``.

        Returns the full assistant text. Transient errors are retried only
        while nothing has been emitted, since a retry would repeat the deltas.
        """
        messages = to_turn_dicts(turns)
        logger.debug(f"API request: model={model}, max_tokens={max_tokens}, turns={len(messages)}")
        parts: list[str] = []
        try:
            async with self._client.messages.stream(
                model=model,
                max_tokens=max_tokens,
                temperature=temperature,
                system=system_prompt,
                messages=messages,
            ) as stream:
                async for event in stream:
                    if event.type == "content_block_delta" and event.delta.type == "text_delta":
                        parts.append(event.delta.text)
                        await on_delta(event.delta.text)

                response = await stream.get_final_message()
        except _RETRYABLE as ex:
            if parts:
                raise CompletionFailure(f"Stream interrupted after output started: {type(ex).__name__}") from ex
            raise

        usage = response.usage
        logger.debug(
            f"API response: stop_reason={response.stop_reason}, "
            f"input_tokens={usage.input_tokens}, output_tokens={usage.output_tokens}"
        )
        if parts:
            return "".join(parts)
        return "".join(block.text for block in response.content if block.type == "text")
