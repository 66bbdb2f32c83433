from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from loguru import logger

from idec_agent.errors import ProviderError, UnknownProviderError
from idec_agent.models import ProviderCredentials


@dataclass(frozen=True)
class ModelInfo:
    id: str
    name: str
    provider: str
    size: int | None = None

    def to_wire(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "provider": self.provider, "size": self.size}

    @classmethod
    def from_wire(cls, data: dict[str, Any] | str) -> ModelInfo:
        if isinstance(data, str):
            return cls(id=data, name=data, provider="")
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            provider=data.get("provider", ""),
            size=data.get("size"),
        )


@dataclass(frozen=True)
class ModelListResult:
    success: bool
    models: list[ModelInfo] = field(default_factory=list)
    error: str | None = None

    def to_wire(self) -> dict[str, Any]:
        if self.success:
            return {"success": True, "models": [m.to_wire() for m in self.models]}
        return {"success": False, "error": self.error}

    @classmethod
    def from_wire(cls, data: Any) -> ModelListResult:
        if not isinstance(data, dict):
            return cls(success=False, error="Malformed model list response")
        if not data.get("success"):
            return cls(success=False, error=str(data.get("error") or "Unknown error"))
        try:
            models = [ModelInfo.from_wire(m) for m in data.get("models") or []]
        except (KeyError, TypeError) as ex:
            return cls(success=False, error=f"Malformed model list response: {ex}")
        return cls(success=True, models=models)


@runtime_checkable
class CompletionProvider(Protocol):
    @property
    def provider_id(self) -> str: ...

    @property
    def requires_key(self) -> bool: ...

    def check_credentials(self, credentials: ProviderCredentials) -> None:
        """Raise MissingCredentialError when a required key is absent."""
        ...

    async def list_models(self, credentials: ProviderCredentials) -> list[ModelInfo]: ...

    async def stream_chat(
        self,
        model: str,
        messages: list[dict],
        credentials: ProviderCredentials,
        options: dict[str, Any],
        *,
        on_text: Callable[[str], None],
    ) -> str:
        """Stream a completion, handing each text delta to on_text.

        Returns the full text.
        """
        ...

    async def create_message(
        self,
        model: str,
        messages: list[dict],
        credentials: ProviderCredentials,
        options: dict[str, Any],
    ) -> str:
        """Single-shot completion."""
        ...


PROVIDER_IDS = ("claude", "openai", "groq", "openrouter", "ollama", "ollama-cloud")

DEFAULT_MODELS = {
    "claude": "claude-sonnet-4-20250514",
    "openai": "gpt-4o",
    "groq": "llama-3.3-70b-versatile",
    "openrouter": "openai/gpt-4o",
    "ollama": "llama3.2",
    "ollama-cloud": "llama3.2",
}

# Local ollama has no key; it counts as configured once it lists models.
CREDENTIAL_FIELDS = {
    "claude": "claude_api_key",
    "openai": "openai_api_key",
    "groq": "groq_api_key",
    "openrouter": "openrouter_api_key",
    "ollama-cloud": "ollama_cloud_api_key",
}


def create_provider(provider_id: str) -> CompletionProvider:
    """Factory: create a CompletionProvider by id."""
    name = provider_id.strip().lower()
    if name == "claude":
        from idec_agent.providers.claude_provider import ClaudeProvider
        return ClaudeProvider()
    if name in ("openai", "groq", "openrouter"):
        from idec_agent.providers.openai_provider import create_openai_compatible
        return create_openai_compatible(name)
    if name == "ollama":
        from idec_agent.providers.ollama_provider import OllamaProvider
        return OllamaProvider()
    if name == "ollama-cloud":
        from idec_agent.providers.ollama_provider import OllamaCloudProvider
        return OllamaCloudProvider()
    raise UnknownProviderError(provider_id)


class ProviderAdapter:
    """Normalizes every backend behind list_models/complete.

    Model listing never raises: any failure comes back as
    ``ModelListResult(success=False, error=...)``.
    """

    def __init__(self, factory: Callable[[str], CompletionProvider] = create_provider):
        self._factory = factory
        self._providers: dict[str, CompletionProvider] = {}

    def get(self, provider_id: str) -> CompletionProvider:
        provider = self._providers.get(provider_id)
        if provider is None:
            provider = self._factory(provider_id)
            self._providers[provider_id] = provider
        return provider

    async def list_models(self, provider_id: str, credentials: ProviderCredentials) -> ModelListResult:
        try:
            provider = self.get(provider_id)
            if provider.requires_key:
                provider.check_credentials(credentials)
            models = await provider.list_models(credentials)
        except ProviderError as ex:
            logger.info(f"Model list unavailable for {provider_id}: {ex.reason}")
            return ModelListResult(success=False, error=ex.reason)
        except Exception as ex:
            logger.warning(f"Model list fetch failed for {provider_id}: {type(ex).__name__}: {ex}")
            return ModelListResult(success=False, error=str(ex) or type(ex).__name__)
        return ModelListResult(success=True, models=models)

    async def aclose(self) -> None:
        providers = list(self._providers.values())
        self._providers.clear()
        for provider in providers:
            aclose = getattr(provider, "aclose", None)
            if aclose is not None:
                await aclose()

    async def complete(
        self,
        provider_id: str,
        model: str,
        messages: list[dict],
        credentials: ProviderCredentials,
        options: dict[str, Any],
        *,
        on_text: Callable[[str], None] | None = None,
    ) -> str:
        provider = self.get(provider_id)
        provider.check_credentials(credentials)
        model = model or DEFAULT_MODELS.get(provider_id, "")
        if on_text is None:
            return await provider.create_message(model, messages, credentials, options)
        return await provider.stream_chat(model, messages, credentials, options, on_text=on_text)
