from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import httpx
from loguru import logger
from tenacity import retry

from idec_agent.errors import MissingCredentialError, ProviderError
from idec_agent.models import ProviderCredentials
from idec_agent.provider import ModelInfo
from idec_agent.providers.common import default_retry_kwargs, interruption_guard, to_chat_messages

_TIMEOUT_SECONDS = 120

# A local server is either up or not; only timeouts are worth retrying.
_RETRYABLE = (httpx.TimeoutException,)


class OllamaProvider:
    """Ollama's native API: ``/api/tags`` and NDJSON ``/api/chat``."""

    _URL_FIELD = "ollama_url"

    def __init__(self, *, transport: httpx.AsyncBaseTransport | None = None, timeout: float = _TIMEOUT_SECONDS):
        self._transport = transport
        self._timeout = timeout

    @property
    def provider_id(self) -> str:
        return "ollama"

    @property
    def requires_key(self) -> bool:
        return False

    def check_credentials(self, credentials: ProviderCredentials) -> None:
        return None

    def _headers(self, credentials: ProviderCredentials) -> dict[str, str]:
        return {}

    def _client(self, credentials: ProviderCredentials) -> httpx.AsyncClient:
        self.check_credentials(credentials)
        base_url = (credentials.get(self._URL_FIELD) or "").rstrip("/")
        return httpx.AsyncClient(
            base_url=base_url,
            headers=self._headers(credentials),
            timeout=self._timeout,
            transport=self._transport,
        )

    async def list_models(self, credentials: ProviderCredentials) -> list[ModelInfo]:
        async with self._client(credentials) as client:
            response = await client.get("/api/tags")
        if response.status_code >= 400:
            raise ProviderError(self.provider_id, f"Model list request failed: HTTP {response.status_code}")
        data = response.json()
        return [
            ModelInfo(id=m["name"], name=m["name"], provider=self.provider_id, size=m.get("size"))
            for m in data.get("models") or []
        ]

    def _body(self, model: str, messages: list[dict], options: dict[str, Any], *, stream: bool) -> dict[str, Any]:
        return {
            "model": model,
            "messages": to_chat_messages(messages),
            "stream": stream,
            "options": {"temperature": float(options.get("temperature", 0.7))},
        }

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
        parts: list[str] = []
        body = self._body(model, messages, options, stream=True)
        logger.debug(f"API request: provider={self.provider_id}, model={model}, messages={len(body['messages'])}")

        with interruption_guard(self.provider_id, parts):
            async with self._client(credentials) as client:
                async with client.stream("POST", "/api/chat", json=body) as response:
                    if response.status_code >= 400:
                        await response.aread()
                        raise ProviderError(self.provider_id, f"Request failed: {response.status_code}")
                    async for line in response.aiter_lines():
                        if not line.strip():
                            continue
                        try:
                            parsed = json.loads(line)
                        except json.JSONDecodeError:
                            logger.debug(f"Skipping malformed stream line: {line[:80]!r}")
                            continue
                        if parsed.get("error"):
                            raise ProviderError(self.provider_id, str(parsed["error"]))
                        text = (parsed.get("message") or {}).get("content") or ""
                        if text:
                            parts.append(text)
                            on_text(text)

        logger.debug(f"API response: provider={self.provider_id}, chunks={len(parts)}")
        return "".join(parts)

    @retry(**default_retry_kwargs(_RETRYABLE))
    async def create_message(
        self,
        model: str,
        messages: list[dict],
        credentials: ProviderCredentials,
        options: dict[str, Any],
    ) -> str:
        body = self._body(model, messages, options, stream=False)
        async with self._client(credentials) as client:
            response = await client.post("/api/chat", json=body)
        if response.status_code >= 400:
            raise ProviderError(self.provider_id, f"Request failed: {response.status_code}")
        try:
            return response.json()["message"]["content"]
        except (ValueError, KeyError, TypeError) as ex:
            raise ProviderError(self.provider_id, f"Malformed response: {ex}") from ex


class OllamaCloudProvider(OllamaProvider):
    _URL_FIELD = "ollama_cloud_url"
    _KEY_FIELD = "ollama_cloud_api_key"

    @property
    def provider_id(self) -> str:
        return "ollama-cloud"

    @property
    def requires_key(self) -> bool:
        return True

    def check_credentials(self, credentials: ProviderCredentials) -> None:
        if not credentials.get(self._KEY_FIELD):
            raise MissingCredentialError(self.provider_id, self._KEY_FIELD)

    def _headers(self, credentials: ProviderCredentials) -> dict[str, str]:
        return {"Authorization": f"Bearer {credentials.get(self._KEY_FIELD)}"}
