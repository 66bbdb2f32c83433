from dataclasses import dataclass, field

from idec_agent.models import ProviderCredentials, RequestOptions


@dataclass
class PanelConfig:
    provider_id: str = "claude"
    model_id: str = ""
    credentials: ProviderCredentials = field(default_factory=ProviderCredentials)
    options: RequestOptions = field(default_factory=RequestOptions)
    workspace_path: str | None = None
    stream_timeout_seconds: float = 120.0
    max_tool_result_chars: int = 40_000
    max_history_chars: int = 50_000
    nudge_described_actions: bool = True
