from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import replace

from loguru import logger

from idec_agent import channels
from idec_agent.agent_config import PanelConfig
from idec_agent.agent_loop import AgentLoop, AgentOutcome, AgentStatus
from idec_agent.bridge import BoundaryBridge
from idec_agent.errors import BoundExceededError, TransportError
from idec_agent.modes import CodeContext, ModeController
from idec_agent.models import Attachment, Message, Request
from idec_agent.provider import CREDENTIAL_FIELDS, DEFAULT_MODELS, PROVIDER_IDS, ModelInfo, ModelListResult
from idec_agent.session import Session, SessionState, StreamingSessionManager
from idec_agent.tool_registry import get_all
from idec_agent.workspace import BridgeWorkspace

_PROVIDER_LABELS = {
    "claude": "Claude",
    "openai": "OpenAI",
    "groq": "Groq",
    "openrouter": "OpenRouter",
    "ollama": "Ollama",
    "ollama-cloud": "Ollama Cloud",
}


class AssistantPanel:
    """One conversation: its messages, its provider/model selection and its active session."""

    def __init__(
        self,
        bridge: BoundaryBridge,
        config: PanelConfig,
        *,
        on_chunk: Callable[[str], None] | None = None,
        on_turn_started: Callable[[int, int], None] | None = None,
        on_tool_started: Callable[[str, dict], None] | None = None,
        on_tool_completed: Callable[[str, bool], None] | None = None,
    ):
        self._bridge = bridge
        self._config = config
        self._on_chunk = on_chunk
        self.provider_id = config.provider_id
        self.model_id = config.model_id or DEFAULT_MODELS.get(config.provider_id, "")
        self.input_text = ""
        self.messages: list[Message] = []
        self.models: list[ModelInfo] = []
        self.model_error: str | None = None
        self.ai_available = True
        self._busy = False
        self._send_lock = asyncio.Lock()

        self.session_manager = StreamingSessionManager(
            bridge,
            stream_timeout_seconds=config.stream_timeout_seconds,
            on_chunk=self._handle_chunk,
        )
        self.workspace = BridgeWorkspace(bridge, config.workspace_path)
        self.registry = get_all(self.workspace)
        self.mode_controller = ModeController(agent_tools=list(self.registry), workspace_path=config.workspace_path)
        self.agent_loop = AgentLoop(
            session_manager=self.session_manager,
            registry=self.registry,
            max_tool_result_chars=config.max_tool_result_chars,
            nudge_described_actions=config.nudge_described_actions,
            on_turn_started=on_turn_started,
            on_tool_started=on_tool_started,
            on_tool_completed=on_tool_completed,
        )

    @property
    def is_busy(self) -> bool:
        return self._busy

    @property
    def streaming_text(self) -> str:
        session = self.session_manager.active
        if session is None or session.is_finished:
            return ""
        return session.text

    @property
    def provider_label(self) -> str:
        return _PROVIDER_LABELS.get(self.provider_id, self.provider_id)

    def set_workspace_path(self, path: str | None) -> None:
        self._config.workspace_path = path
        self.workspace.set_root(path)
        self.mode_controller = ModeController(
            self.mode_controller.mode,
            agent_tools=list(self.registry),
            workspace_path=path,
        )

    def _handle_chunk(self, session: Session, text: str) -> None:
        if self._on_chunk is not None:
            self._on_chunk(text)

    # -- provider / model selection ------------------------------------------

    async def refresh_models(self) -> ModelListResult:
        """Fetch the model list for the current provider. Never raises."""
        try:
            raw = await self._bridge.invoke(
                channels.FETCH_MODELS, self.provider_id, self._config.credentials.to_wire()
            )
        except TransportError as ex:
            logger.warning(f"Model list fetch failed for {self.provider_id}: {ex}")
            result = ModelListResult(success=False, error=str(ex))
        else:
            result = ModelListResult.from_wire(raw)

        if not result.success:
            self.models = []
            self.model_error = result.error
            return result

        self.models = list(result.models)
        self.model_error = None
        ids = [m.id for m in self.models]
        if ids and self.model_id not in ids:
            self.model_id = ids[0]
        return result

    async def switch_provider(self, provider_id: str) -> ModelListResult:
        provider_id = provider_id.strip().lower()
        if provider_id not in PROVIDER_IDS:
            raise ValueError(f"Unknown provider: {provider_id!r}. Supported: {', '.join(PROVIDER_IDS)}")
        logger.info(f"Switching provider {self.provider_id} -> {provider_id}")
        self.provider_id = provider_id
        self.model_id = DEFAULT_MODELS.get(provider_id, "")
        return await self.refresh_models()

    def select_model(self, model_id: str) -> None:
        self.model_id = model_id.strip()

    def is_configured(self) -> bool:
        key_field = CREDENTIAL_FIELDS.get(self.provider_id)
        if key_field is None:
            return len(self.models) > 0
        return bool(self._config.credentials.get(key_field))

    def clear(self) -> None:
        self.messages = []

    # -- sending -------------------------------------------------------------

    async def send(
        self,
        text: str | None = None,
        *,
        context: CodeContext | None = None,
        attachments: Sequence[Attachment] = (),
    ) -> Message | None:
        """Send the input (or ``text``) in the current mode; returns the last assistant message."""
        text = self.input_text if text is None else text
        if not text.strip():
            return None
        if not self.ai_available:
            logger.debug("AI capability unavailable for this panel; ignoring send")
            return None

        # Raises before anything is appended when the mode cannot run.
        prompt = self.mode_controller.compose(text.strip(), context, attachments)
        mode = prompt.mode.value

        # Last write wins: a new send cancels the in-flight one instead of queueing behind it.
        if self._busy:
            logger.info("New message while a request is active; cancelling the active request")
            await self.cancel()

        async with self._send_lock:
            self._busy = True
            try:
                history = self._history()
                self.messages.append(Message("user", text.strip(), attachments=tuple(attachments), mode=mode))
                self.input_text = ""

                if not self.is_configured():
                    return self._append_assistant(self._setup_hint(), mode)

                request = Request(
                    provider_id=self.provider_id,
                    model_id=self.model_id,
                    messages=(*history, Message("user", prompt.content, mode=mode)),
                    credentials=self._config.credentials,
                    system_prompt=prompt.system_prompt,
                    options=self._config.options,
                )
                try:
                    if self.mode_controller.uses_agent_loop:
                        outcome = await self.agent_loop.run(request)
                        return self._apply_outcome(outcome, mode)
                    session = await self.session_manager.run(request)
                    return self._apply_session(session, mode)
                except TransportError as ex:
                    logger.error(f"AI capability unavailable: {ex}")
                    self.ai_available = False
                    return self._append_assistant(f"Error: AI is unavailable ({ex.reason})", mode)
            finally:
                self._busy = False

    async def cancel(self) -> None:
        # The in-flight run may predate a mode switch; the loop cancel also stops the active session.
        await self.agent_loop.cancel()

    def _apply_session(self, session: Session, mode: str) -> Message | None:
        if session.state is SessionState.COMPLETED:
            return self._append_assistant(session.text, mode)
        if session.state is SessionState.ERRORED:
            return self._append_assistant(f"Error: {session.error}", mode)
        if session.text:
            return self._append_assistant(session.text, mode)
        return None

    def _apply_outcome(self, outcome: AgentOutcome, mode: str) -> Message | None:
        self.messages.extend(outcome.transcript)
        if outcome.status is AgentStatus.BOUND_EXCEEDED:
            notice = f"{BoundExceededError(outcome.turns)}. Send another message to let it continue."
            return self._append_assistant(notice, mode)
        if outcome.status is AgentStatus.ERRORED:
            return self._append_assistant(f"Error: {outcome.error}", mode)
        for message in reversed(outcome.transcript):
            if message.role == "assistant":
                return message
        return None

    def _append_assistant(self, content: str, mode: str) -> Message:
        message = Message("assistant", content, mode=mode)
        self.messages.append(message)
        return message

    def _setup_hint(self) -> str:
        if self.provider_id == "ollama":
            return (
                "No Ollama models found. Make sure Ollama is running and has at least one model "
                "pulled (for example `ollama pull llama3.2`), then run /models."
            )
        return f"Please configure your {self.provider_label} API key to use this provider."

    def _history(self) -> list[Message]:
        """Most recent messages that fit in the history budget, oldest first."""
        budget = self._config.max_history_chars
        if budget <= 0:
            return list(self.messages)
        kept: list[Message] = []
        used = 0
        for message in reversed(self.messages):
            used += len(message.content)
            if used > budget:
                break
            kept.append(message)
        dropped = len(self.messages) - len(kept)
        if dropped:
            logger.info(f"History trimmed - sending {len(kept)} of {len(self.messages)} messages")
        kept.reverse()
        return [replace(m, attachments=()) for m in kept]
