from __future__ import annotations

import time
from dataclasses import dataclass, field, fields, replace
from typing import Any, Literal
from uuid import uuid4

Role = Literal["user", "assistant", "tool-result"]

ROLES: frozenset[str] = frozenset({"user", "assistant", "tool-result"})


def new_request_id() -> str:
    """Generate the identity that tags every event of one completion request."""
    return f"stream_{int(time.time() * 1000)}_{uuid4().hex[:6]}"


@dataclass(frozen=True)
class Attachment:
    """Snapshot of an open file, captured when the message is sent."""

    path: str
    language: str
    content: str

    @property
    def name(self) -> str:
        return self.path.replace("\\", "/").rsplit("/", 1)[-1]


@dataclass(frozen=True)
class Message:
    role: Role
    content: str
    attachments: tuple[Attachment, ...] = ()
    mode: str | None = None
    tool_name: str | None = None

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"Unknown message role: {self.role!r}")

    def to_wire(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


_SECRET_FIELDS = frozenset({
    "claude_api_key",
    "openai_api_key",
    "groq_api_key",
    "openrouter_api_key",
    "ollama_cloud_api_key",
})


@dataclass(frozen=True)
class ProviderCredentials:
    """Flat per-provider option bag, passed by value on every call."""

    claude_api_key: str | None = None
    openai_api_key: str | None = None
    groq_api_key: str | None = None
    openrouter_api_key: str | None = None
    ollama_cloud_api_key: str | None = None
    ollama_url: str = "http://localhost:11434"
    ollama_cloud_url: str = "https://api.ollama.com"

    def get(self, name: str) -> str | None:
        value = getattr(self, name, None)
        return value or None

    def to_wire(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_wire(cls, data: dict[str, Any] | None) -> ProviderCredentials:
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known and v is not None})

    def __repr__(self) -> str:
        parts = []
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name in _SECRET_FIELDS:
                value = "***" if value else None
            parts.append(f"{f.name}={value!r}")
        return f"ProviderCredentials({', '.join(parts)})"


@dataclass(frozen=True)
class RequestOptions:
    temperature: float = 0.7
    max_tokens: int = 4096
    max_tool_iterations: int = 10
    streaming: bool = True

    def to_wire(self, request_id: str) -> dict[str, Any]:
        return {
            "request_id": request_id,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "streaming": self.streaming,
        }


@dataclass(frozen=True)
class Request:
    provider_id: str
    model_id: str
    messages: tuple[Message, ...]
    credentials: ProviderCredentials
    system_prompt: str = ""
    options: RequestOptions = field(default_factory=RequestOptions)
    id: str = field(default_factory=new_request_id)

    def wire_messages(self) -> list[dict[str, str]]:
        out: list[dict[str, str]] = []
        if self.system_prompt:
            out.append({"role": "system", "content": self.system_prompt})
        out.extend(m.to_wire() for m in self.messages)
        return out

    def continued(self, messages: tuple[Message, ...]) -> Request:
        """Build the next turn's request: same target, fresh identity."""
        return replace(self, messages=messages, id=new_request_id())
