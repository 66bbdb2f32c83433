from __future__ import annotations

from collections.abc import Callable
from typing import Any

import openai
from loguru import logger
from tenacity import retry

from idec_agent.errors import MissingCredentialError, ProviderError
from idec_agent.models import ProviderCredentials
from idec_agent.provider import ModelInfo
from idec_agent.providers.common import close_clients, default_retry_kwargs, interruption_guard, to_chat_messages

_RETRYABLE = (
    openai.RateLimitError,
    openai.APIConnectionError,
    openai.APITimeoutError,
)

_GROQ_MODELS = [
    ("llama-3.3-70b-versatile", "Llama 3.3 70B"),
    ("llama-3.1-8b-instant", "Llama 3.1 8B"),
    ("mixtral-8x7b-32768", "Mixtral 8x7B"),
    ("gemma2-9b-it", "Gemma 2 9B"),
]

# Curated list; these are known to stream reliably through the
# OpenAI-compatible endpoint.
_OPENROUTER_MODELS = [
    ("openai/gpt-4o", "GPT-4o"),
    ("openai/gpt-4o-mini", "GPT-4o Mini"),
    ("openai/gpt-4-turbo", "GPT-4 Turbo"),
    ("anthropic/claude-3.5-sonnet", "Claude 3.5 Sonnet"),
    ("anthropic/claude-3-haiku", "Claude 3 Haiku"),
    ("google/gemini-2.5-flash", "Gemini 2.5 Flash"),
    ("google/gemini-2.5-pro", "Gemini 2.5 Pro"),
    ("meta-llama/llama-3.1-70b-instruct", "Llama 3.1 70B"),
    ("meta-llama/llama-3.1-8b-instruct", "Llama 3.1 8B"),
    ("mistralai/mistral-large", "Mistral Large"),
    ("mistralai/mixtral-8x7b-instruct", "Mixtral 8x7B"),
    ("deepseek/deepseek-chat", "DeepSeek Chat"),
    ("qwen/qwen-2.5-72b-instruct", "Qwen 2.5 72B"),
]

_MAX_LISTED_OPENAI_MODELS = 10


def _default_client(api_key: str, base_url: str | None, default_headers: dict[str, str] | None) -> Any:
    return openai.AsyncOpenAI(api_key=api_key, base_url=base_url, default_headers=default_headers)


class OpenAICompatibleProvider:
    """Any backend speaking the OpenAI chat-completions protocol.

    With a catalogue the model list is static; without one it is fetched
    from ``/models`` and filtered to chat models.
    """

    def __init__(
        self,
        provider_id: str,
        *,
        key_field: str,
        base_url: str | None = None,
        default_headers: dict[str, str] | None = None,
        catalogue: list[tuple[str, str]] | None = None,
        client_factory: Callable[..., Any] = _default_client,
    ):
        self._provider_id = provider_id
        self._key_field = key_field
        self._base_url = base_url
        self._default_headers = default_headers
        self._catalogue = catalogue
        self._client_factory = client_factory
        self._clients: dict[str, Any] = {}

    @property
    def provider_id(self) -> str:
        return self._provider_id

    @property
    def requires_key(self) -> bool:
        return True

    def check_credentials(self, credentials: ProviderCredentials) -> None:
        if not credentials.get(self._key_field):
            raise MissingCredentialError(self._provider_id, self._key_field)

    def _client(self, credentials: ProviderCredentials) -> Any:
        self.check_credentials(credentials)
        api_key = credentials.get(self._key_field)
        client = self._clients.get(api_key)
        if client is None:
            client = self._client_factory(api_key, self._base_url, self._default_headers)
            self._clients[api_key] = client
        return client

    async def aclose(self) -> None:
        await close_clients(self._clients)

    async def list_models(self, credentials: ProviderCredentials) -> list[ModelInfo]:
        if self._catalogue is not None:
            self.check_credentials(credentials)
            return [ModelInfo(id=model_id, name=name, provider=self._provider_id) for model_id, name in self._catalogue]

        client = self._client(credentials)
        page = await client.models.list()
        chat_ids = [m.id for m in page.data if "gpt" in m.id][:_MAX_LISTED_OPENAI_MODELS]
        return [ModelInfo(id=model_id, name=model_id, provider=self._provider_id) for model_id in chat_ids]

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
        """Stream a chat completion, handing text deltas to on_text in order.

        Returns the full text.
        """
        client = self._client(credentials)
        oai_messages = to_chat_messages(messages)
        parts: list[str] = []
        finish_reason: str | None = None

        logger.debug(
            f"API request: provider={self._provider_id}, model={model}, messages={len(oai_messages)}"
        )
        with interruption_guard(self._provider_id, parts):
            stream = await client.chat.completions.create(
                model=model,
                max_tokens=int(options.get("max_tokens", 4096)),
                temperature=float(options.get("temperature", 0.7)),
                messages=oai_messages,
                stream=True,
            )
            async for chunk in stream:
                choice = chunk.choices[0] if chunk.choices else None
                if choice is None:
                    continue
                if choice.finish_reason:
                    finish_reason = choice.finish_reason
                delta = choice.delta
                if delta is not None and delta.content:
                    parts.append(delta.content)
                    on_text(delta.content)

        logger.debug(f"API response: finish_reason={finish_reason}, chunks={len(parts)}")
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
        oai_messages = to_chat_messages(messages)
        logger.debug(f"API request: provider={self._provider_id}, model={model}, messages={len(oai_messages)}")
        response = await client.chat.completions.create(
            model=model,
            max_tokens=int(options.get("max_tokens", 4096)),
            temperature=float(options.get("temperature", 0.7)),
            messages=oai_messages,
        )
        if not response.choices:
            raise ProviderError(self._provider_id, "Response contained no choices")
        return response.choices[0].message.content or ""


def create_openai_compatible(provider_id: str) -> OpenAICompatibleProvider:
    if provider_id == "openai":
        return OpenAICompatibleProvider("openai", key_field="openai_api_key")
    if provider_id == "groq":
        return OpenAICompatibleProvider(
            "groq",
            key_field="groq_api_key",
            base_url="https://api.groq.com/openai/v1",
            catalogue=_GROQ_MODELS,
        )
    if provider_id == "openrouter":
        return OpenAICompatibleProvider(
            "openrouter",
            key_field="openrouter_api_key",
            base_url="https://openrouter.ai/api/v1",
            default_headers={"HTTP-Referer": "https://idec.app", "X-Title": "IDEC"},
            catalogue=_OPENROUTER_MODELS,
        )
    raise ValueError(f"Not an OpenAI-compatible provider: {provider_id!r}")
