from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from tripsync.providers.common import DeltaCallback
from tripsync.storage.models import ChatMessage

GROQ_BASE_URL = "https://api.groq.com/openai/v1"


@runtime_checkable
class CompletionProvider(Protocol):
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
        """Stream one assistant turn, passing text deltas to ``on_delta``. Returns the full text."""
        ...


def create_provider(provider_name: str, api_key: str, base_url: str | None = None) -> CompletionProvider:
    """Factory: create a CompletionProvider by name."""
    name = provider_name.strip().lower()
    if name == "anthropic":
        from tripsync.providers.anthropic_provider import AnthropicProvider
        return AnthropicProvider(api_key, base_url)
    if name in ("openai", "groq"):
        if name == "groq" and not base_url:
            base_url = GROQ_BASE_URL
        from tripsync.providers.openai_provider import OpenAIProvider
        return OpenAIProvider(api_key, base_url)
    raise ValueError(f"Unknown provider: {provider_name!r}. Supported: 'anthropic', 'openai', 'groq'")
