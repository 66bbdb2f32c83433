from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger

from idec_agent.agent_config import PanelConfig
from idec_agent.app_config import AppConfig, RuntimeEnv
from idec_agent.bridge import BoundaryBridge
from idec_agent.host import HostProcess
from idec_agent.logging_config import setup_logging
from idec_agent.panel import AssistantPanel
from idec_agent.provider import ProviderAdapter
from idec_agent.transport import LocalTransport


@dataclass
class AppRuntime:
    host: HostProcess
    bridge: BoundaryBridge
    panel: AssistantPanel
    log_descriptions: list[str]

    async def close(self) -> None:
        await self.panel.cancel()
        await self.host.shutdown()
        self.bridge.close()


def build_panel_config(app: AppConfig, env: RuntimeEnv) -> PanelConfig:
    return PanelConfig(
        provider_id=app.provider_name,
        model_id=app.model,
        credentials=env.credentials,
        options=app.request_options(),
        workspace_path=app.workspace_path,
        stream_timeout_seconds=app.stream_timeout_seconds,
        max_tool_result_chars=app.max_tool_result_chars,
        max_history_chars=app.max_history_chars,
        nudge_described_actions=app.nudge_described_actions,
    )


async def bootstrap_runtime(
    app: AppConfig,
    env: RuntimeEnv,
    *,
    adapter: ProviderAdapter | None = None,
    configure_logging: bool = True,
    on_chunk: Callable[[str], None] | None = None,
    on_turn_started: Callable[[int, int], None] | None = None,
    on_tool_started: Callable[[str, dict], None] | None = None,
    on_tool_completed: Callable[[str, bool], None] | None = None,
) -> AppRuntime:
    log_descriptions = setup_logging(level=app.log_level, consumers=app.log_consumers) if configure_logging else []

    transport = LocalTransport()
    host = HostProcess(transport, adapter=adapter)
    host.register()
    bridge = BoundaryBridge(transport)

    panel = AssistantPanel(
        bridge,
        build_panel_config(app, env),
        on_chunk=on_chunk,
        on_turn_started=on_turn_started,
        on_tool_started=on_tool_started,
        on_tool_completed=on_tool_completed,
    )
    result = await panel.refresh_models()
    if not result.success:
        logger.info(f"Starting without a model list for {app.provider_name}: {result.error}")

    return AppRuntime(host=host, bridge=bridge, panel=panel, log_descriptions=log_descriptions)
