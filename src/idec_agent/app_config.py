from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

from idec_agent.models import ProviderCredentials, RequestOptions


@dataclass
class RuntimeEnv:
    credentials: ProviderCredentials


@dataclass
class AppConfig:
    provider_name: str
    model: str
    temperature: float
    max_tokens: int
    max_agent_iterations: int
    stream_timeout_seconds: float
    max_tool_result_chars: int
    max_history_chars: int
    nudge_described_actions: bool
    workspace_path: str | None
    streaming: bool
    log_level: str
    log_consumers: list | None

    def request_options(self) -> RequestOptions:
        return RequestOptions(
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            max_tool_iterations=self.max_agent_iterations,
            streaming=self.streaming,
        )


def load_json_config() -> dict:
    config_path = Path.cwd() / "config.json"
    if config_path.exists():
        with open(config_path) as f:
            return json.load(f)
    return {}


def _to_bool(value: object, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    return bool(value)


def parse_app_config(config: dict) -> AppConfig:
    max_agent_iterations = int(config.get("MaxAgentIterations", 10))
    if max_agent_iterations < 1:
        raise ValueError(f"MaxAgentIterations must be at least 1, got {max_agent_iterations}")
    return AppConfig(
        provider_name=str(config.get("Provider", "claude")).strip().lower(),
        model=str(config.get("Model", "")).strip(),
        temperature=float(config.get("Temperature", 0.7)),
        max_tokens=int(config.get("MaxTokens", 4096)),
        max_agent_iterations=max_agent_iterations,
        stream_timeout_seconds=float(config.get("StreamTimeoutSeconds", 120)),
        max_tool_result_chars=int(config.get("MaxToolResultChars", 40_000)),
        max_history_chars=int(config.get("MaxHistoryChars", 50_000)),
        nudge_described_actions=_to_bool(config.get("NudgeDescribedActions", True), default=True),
        workspace_path=config.get("WorkspacePath"),
        streaming=_to_bool(config.get("Streaming", True), default=True),
        log_level=config.get("LogLevel", "INFO"),
        log_consumers=config.get("LogConsumers"),
    )


def resolve_runtime_env() -> RuntimeEnv:
    defaults = ProviderCredentials()
    return RuntimeEnv(
        credentials=ProviderCredentials(
            claude_api_key=os.environ.get("ANTHROPIC_API_KEY") or None,
            openai_api_key=os.environ.get("OPENAI_API_KEY") or None,
            groq_api_key=os.environ.get("GROQ_API_KEY") or None,
            openrouter_api_key=os.environ.get("OPENROUTER_API_KEY") or None,
            ollama_cloud_api_key=os.environ.get("OLLAMA_CLOUD_API_KEY") or None,
            ollama_url=os.environ.get("OLLAMA_URL") or defaults.ollama_url,
            ollama_cloud_url=os.environ.get("OLLAMA_CLOUD_URL") or defaults.ollama_cloud_url,
        ),
    )
