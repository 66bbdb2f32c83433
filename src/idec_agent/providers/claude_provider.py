from __future__ import annotations

from collections.abc import Callable
from typing import Any

import anthropic
from loguru import logger
from tenacity import retry

from idec_agent.errors import MissingCredentialError, ProviderError
from idec_agent.models import ProviderCredentials
from idec_agent.provider import ModelInfo
from idec_agent.providers.common import close_clients, default_retry_kwargs, interruption_guard, split_system

_RETRYABLE = (
    anthropic.RateLimitError,
    anthropic.APIConnectionError,
    anthropic.APITimeoutError,
)

_MODELS = [
    ("claude-sonnet-4-20250514", "Claude Sonnet 4"),
    ("claude-3-5-sonnet-20241022", "Claude 3.5 Sonnet"),
    ("claude-3-5-haiku-20241022", "Claude 3.5 Haiku"),
    ("claude-3-opus-20240229", "Claude 3 Opus"),
]


def _default_client(api_key: str) -> anthropic.AsyncAnthropic:
    return anthropic.AsyncAnthropic(api_key=api_key)


class ClaudeProvider:
    _KEY_FIELD = "claude_api_key"

    def __init__(self, client_factory: Callable[[str], Any] = _default_client):
        self._client_factory = client_factory
        self._clients: dict[str, Any] = {}

    @property
    def provider_id(self) -> str:
        return "claude"

    @property
    def requires_key(self) -> bool:
        return True

    def check_credentials(self, credentials: ProviderCredentials) -> None:
        if not credentials.get(self._KEY_FIELD):
            raise MissingCredentialError(self.provider_id, self._KEY_FIELD)

    def _client(self, credentials: ProviderCredentials) -> Any:
        self.check_credentials(credentials)
        api_key = credentials.get(self._KEY_FIELD)
        client = self._clients.get(api_key)
        if client is None:
            client = self._client_factory(api_key)
            self._clients[api_key] = client
        return client

    async def aclose(self) -> None:
        await close_clients(self._clients)

    async def list_models(self, credentials: ProviderCredentials) -> list[ModelInfo]:
        # The Claude catalogue is fixed; the key is still required to use it.
        self.check_credentials(credentials)
        return [ModelInfo(id=model_id, name=name, provider=self.provider_id) for model_id, name in _MODELS]

    def _request_kwargs(self, model: str, messages: list[dict], options: dict[str, Any]) -> dict[str, Any]:
        system, chat = split_system(messages)
        kwargs: dict[str, Any] = dict(
            model=model,
            max_tokens=int(options.get("max_tokens", 4096)),
            temperature=float(options.get("temperature", 0.7)),
            messages=chat,
        )
        if system:
            kwargs["system"] = system
        return kwargs

    @retry(**default_retry_kwargs(_RETRYABLE))
    async def stream_chat(
        self,
        model: str,
        messages: list[dict],
        credentials: ProviderCredentials,
        options: dict[str, Any],
        *,
        on_text: Callable[[str], None],
    ) -> str:
        """Stream a Claude response, handing text deltas to on_text in order.

        Returns the full text.
        """
        client = self._client(credentials)
        kwargs = self._request_kwargs(model, messages, options)
        parts: list[str] = []

        logger.debug(
            f"API request: provider=claude, model={model}, "
            f"max_tokens={kwargs['max_tokens']}, messages={len(kwargs['messages'])}"
        )
        with interruption_guard(self.provider_id, parts):
            async with client.messages.stream(**kwargs) as stream:
                async for event in stream:
                    if event.type == "content_block_delta" and event.delta.type == "text_delta":
                        parts.append(event.delta.text)
                        on_text(event.delta.text)

                response = await stream.get_final_message()

        usage = response.usage
        logger.debug(
            f"API response: stop_reason={response.stop_reason}, "
            f"input_tokens={usage.input_tokens}, output_tokens={usage.output_tokens}"
        )
        return "".join(parts)

    @retry(**default_retry_kwargs(_RETRYABLE))
    async def create_message(
        self,
        model: str,
        messages: list[dict],
        credentials: ProviderCredentials,
        options: dict[str, Any],
    ) -> str:
        client = self._client(credentials)
        kwargs = self._request_kwargs(model, messages, options)
        logger.debug(f"API request: provider=claude, model={model}, messages={len(kwargs['messages'])}")
        response = await client.messages.create(**kwargs)
        texts = [block.text for block in response.content if getattr(block, "type", "text") == "text"]
        if not texts:
            raise ProviderError(self.provider_id, "Response contained no text")
        return "".join(texts)
