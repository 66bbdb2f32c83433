from __future__ import annotations

import enum
from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger

from idec_agent.models import Message, Request
from idec_agent.session import SessionState, StreamingSessionManager
from idec_agent.tool_parser import ToolInvocation, describes_pending_action, parse_tool_call, strip_directive
from idec_agent.tool_registry import ToolRegistry

ACTION_NUDGE = (
    "You described a file operation but did not include a tool call. "
    "Use the <tool> and <params> format to actually perform the operation now."
)


class AgentStatus(enum.Enum):
    COMPLETED = "completed"
    BOUND_EXCEEDED = "bound_exceeded"
    CANCELLED = "cancelled"
    ERRORED = "errored"


@dataclass(frozen=True)
class AgentOutcome:
    status: AgentStatus
    final_text: str
    turns: int
    error: str | None = None
    transcript: tuple[Message, ...] = ()


class AgentLoop:
    """Drives request -> tool call -> tool result -> request until the model stops asking."""

    def __init__(
        self,
        *,
        session_manager: StreamingSessionManager,
        registry: ToolRegistry,
        max_tool_result_chars: int = 40_000,
        nudge_described_actions: bool = True,
        on_turn_started: Callable[[int, int], None] | None = None,
        on_tool_started: Callable[[str, dict], None] | None = None,
        on_tool_completed: Callable[[str, bool], None] | None = None,
    ) -> None:
        self._session_manager = session_manager
        self._registry = registry
        self._max_tool_result_chars = max_tool_result_chars
        self._nudge_described_actions = nudge_described_actions
        self._on_turn_started = on_turn_started
        self._on_tool_started = on_tool_started
        self._on_tool_completed = on_tool_completed
        self._cancelled = False

    async def cancel(self) -> None:
        self._cancelled = True
        await self._session_manager.cancel()

    async def run(self, request: Request) -> AgentOutcome:
        self._cancelled = False
        max_turns = request.options.max_tool_iterations
        context: list[Message] = list(request.messages)
        transcript: list[Message] = []
        current = request
        last_text = ""
        nudged = False

        for turn in range(1, max_turns + 1):
            if self._cancelled:
                return AgentOutcome(AgentStatus.CANCELLED, last_text, turn - 1, transcript=tuple(transcript))
            if self._on_turn_started:
                self._on_turn_started(turn, max_turns)
            logger.debug(f"Agent turn {turn}/{max_turns} ({current.id})")

            session = await self._session_manager.run(current)
            if session.state is SessionState.CANCELLED or self._cancelled:
                return AgentOutcome(AgentStatus.CANCELLED, session.text or last_text, turn, transcript=tuple(transcript))
            if session.state is SessionState.ERRORED:
                return AgentOutcome(
                    AgentStatus.ERRORED,
                    session.text or last_text,
                    turn,
                    error=session.error,
                    transcript=tuple(transcript),
                )

            text = session.text
            invocation = parse_tool_call(text)
            if invocation is None:
                transcript.append(Message("assistant", text, mode="agent"))
                # One corrective turn per run, and only while the bound allows another turn.
                if self._nudge_described_actions and not nudged and turn < max_turns and describes_pending_action(text):
                    logger.info("Model described a file operation without a tool call; asking it to call the tool")
                    nudged = True
                    last_text = text
                    context.extend([Message("assistant", text), Message("user", ACTION_NUDGE)])
                    current = current.continued(tuple(context))
                    continue
                return AgentOutcome(AgentStatus.COMPLETED, text, turn, transcript=tuple(transcript))

            last_text = strip_directive(text, invocation)
            if last_text:
                transcript.append(Message("assistant", last_text, mode="agent"))

            result = await self._execute(invocation)
            tool_message = Message("tool-result", result, tool_name=invocation.name)
            transcript.append(tool_message)
            context.extend([Message("assistant", text), tool_message])
            current = current.continued(tuple(context))

        logger.warning(f"Agent stopped after {max_turns} turns without a final answer")
        return AgentOutcome(AgentStatus.BOUND_EXCEEDED, last_text, max_turns, transcript=tuple(transcript))

    async def _execute(self, invocation: ToolInvocation) -> str:
        name = invocation.name
        if self._on_tool_started:
            self._on_tool_started(name, invocation.params)

        tool = self._registry.get(name)
        if tool is None:
            logger.warning(f"Model requested unknown tool: {name}")
            if self._on_tool_completed:
                self._on_tool_completed(name, True)
            return f"Unknown tool: {name}"

        try:
            result = await tool.execute(invocation.params)
            is_error = result.startswith("Error")
        except Exception as ex:
            logger.error(f"Tool {name} raised: {ex}")
            result = f'Error executing tool "{name}": {ex}'
            is_error = True

        if self._on_tool_completed:
            self._on_tool_completed(name, is_error)
        return self._truncate_tool_result(result, name)

    def _truncate_tool_result(self, result: str, tool_name: str) -> str:
        if self._max_tool_result_chars <= 0 or len(result) <= self._max_tool_result_chars:
            return result

        original_length = len(result)
        message = (
            f"\n\n[OUTPUT TRUNCATED: Showing {self._max_tool_result_chars:,} "
            f"of {original_length:,} characters from {tool_name}]"
        )
        logger.warning(f"{tool_name} output truncated from {original_length:,} to {self._max_tool_result_chars:,} chars")
        return result[: self._max_tool_result_chars] + message
