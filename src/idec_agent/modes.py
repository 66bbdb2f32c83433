"""Prompt shaping for the six assistant modes.

Each mode maps to exactly one strategy in ``_STRATEGIES``; the module
refuses to import if a mode is missing one. Strategies are pure: they only
read the user input and the context snapshot they are given.
"""
from __future__ import annotations

import enum
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from idec_agent.errors import ModeUnavailableError
from idec_agent.models import Attachment
from idec_agent.system_prompt import PLAN_SYSTEM_PROMPT, build_agent_system_prompt, plan_instructions
from idec_agent.tool import Tool

_FULL_FILE_LIMIT = 6000
_FILE_CHUNK_SIZE = 4000
_ATTACHMENT_LIMIT = 4000
_ATTACHMENT_PREVIEW = 3000

_EDIT_KEYWORDS = re.compile(
    r"\b(change|modify|update|fix|edit|refactor|replace|convert|transform|make|set|add|remove|delete|rename|move|color|style|theme)\b",
    re.IGNORECASE,
)


class Mode(enum.Enum):
    ASK = "ask"
    AGENT = "agent"
    PLAN = "plan"
    EXPLAIN = "explain"
    REFACTOR = "refactor"
    GENERATE = "generate"

    @classmethod
    def parse(cls, value: str | Mode) -> Mode:
        if isinstance(value, Mode):
            return value
        try:
            return cls(value.strip().lower())
        except ValueError:
            names = ", ".join(m.value for m in cls)
            raise ValueError(f"Unknown mode: {value!r}. Supported: {names}") from None

    @property
    def label(self) -> str:
        return self.value.capitalize()


@dataclass(frozen=True)
class CodeContext:
    """The editor selection or current file, snapshotted at send time."""

    code: str = ""
    language: str = ""
    file_name: str = ""

    @property
    def has_code(self) -> bool:
        return len(self.code) > 0


@dataclass(frozen=True)
class ComposedPrompt:
    mode: Mode
    system_prompt: str
    content: str


@dataclass(frozen=True)
class _Inputs:
    user_input: str
    context: CodeContext
    attachments: tuple[Attachment, ...]
    tools: tuple[Tool, ...]
    workspace_path: str | None


def _chunk_code(code: str, max_chunk_size: int) -> list[str]:
    if len(code) <= max_chunk_size:
        return [code]
    chunks: list[str] = []
    current = ""
    for line in code.split("\n"):
        candidate = f"{current}\n{line}" if current else line
        if len(candidate) > max_chunk_size and current:
            chunks.append(current)
            current = line
        else:
            current = candidate
    if current:
        chunks.append(current)
    return chunks


def _context_block(inputs: _Inputs) -> str:
    block = ""
    ctx = inputs.context
    if ctx.has_code and ctx.file_name:
        if len(ctx.code) > _FULL_FILE_LIMIT:
            chunks = _chunk_code(ctx.code, _FILE_CHUNK_SIZE)
            block += f"## Current File: {ctx.file_name} [Chunk 1/{len(chunks)}]\n```{ctx.language}\n{chunks[0]}\n```\n\n"
        else:
            block += f"## Current File: {ctx.file_name}\n```{ctx.language}\n{ctx.code}\n```\n\n"

    for att in inputs.attachments:
        if len(att.content) > _ATTACHMENT_LIMIT:
            body = f"{att.content[:_ATTACHMENT_PREVIEW]}\n... [truncated]"
        else:
            body = att.content
        block += f"## Attached: {att.name}\n```{att.language}\n{body}\n```\n\n"
    return block


def _ask(inputs: _Inputs) -> ComposedPrompt:
    block = _context_block(inputs)
    prompt = inputs.user_input
    if block and inputs.context.has_code and _EDIT_KEYWORDS.search(prompt):
        content = f"{block}Task: {prompt}\n\nProvide the complete modified code in a code block."
    elif block:
        content = f"{block}Question: {prompt}"
    else:
        content = prompt
    return ComposedPrompt(Mode.ASK, "", content)


def _agent(inputs: _Inputs) -> ComposedPrompt:
    block = _context_block(inputs)
    content = (
        f"{block}Task: {inputs.user_input}\n\n"
        "Use the appropriate tool NOW. Include the <tool> and <params> XML tags in your response."
    )
    return ComposedPrompt(Mode.AGENT, build_agent_system_prompt(inputs.tools, inputs.workspace_path), content)


def _plan(inputs: _Inputs) -> ComposedPrompt:
    content = f"{_context_block(inputs)}{plan_instructions(inputs.user_input)}"
    return ComposedPrompt(Mode.PLAN, PLAN_SYSTEM_PROMPT, content)


def _explain(inputs: _Inputs) -> ComposedPrompt:
    ctx = inputs.context
    content = f"Explain this {ctx.language} code in detail:\n```{ctx.language}\n{ctx.code}\n```"
    if inputs.user_input.strip():
        content += f"\n\nFocus on: {inputs.user_input}"
    return ComposedPrompt(Mode.EXPLAIN, "", content)


def _refactor(inputs: _Inputs) -> ComposedPrompt:
    ctx = inputs.context
    content = (
        f"Refactor this {ctx.language} code to improve quality:\n```{ctx.language}\n{ctx.code}\n```\n\n"
        "Provide the complete refactored code."
    )
    if inputs.user_input.strip():
        content += f"\n\nAdditional instructions: {inputs.user_input}"
    return ComposedPrompt(Mode.REFACTOR, "", content)


def _generate(inputs: _Inputs) -> ComposedPrompt:
    language = inputs.context.language or "code"
    content = f"Generate {language} for: {inputs.user_input}\n\nProvide complete, working code."
    return ComposedPrompt(Mode.GENERATE, "", content)


_STRATEGIES: dict[Mode, Callable[[_Inputs], ComposedPrompt]] = {
    Mode.ASK: _ask,
    Mode.AGENT: _agent,
    Mode.PLAN: _plan,
    Mode.EXPLAIN: _explain,
    Mode.REFACTOR: _refactor,
    Mode.GENERATE: _generate,
}

_MISSING = set(Mode) - set(_STRATEGIES)
if _MISSING:
    raise RuntimeError(f"No prompt strategy for modes: {sorted(m.value for m in _MISSING)}")

_REQUIRES_CODE = frozenset({Mode.EXPLAIN, Mode.REFACTOR})

PLACEHOLDERS = {
    Mode.ASK: "Ask anything about your code...",
    Mode.AGENT: "Describe a task for the agent...",
    Mode.PLAN: "Describe what you want to build...",
    Mode.EXPLAIN: "Select code to explain",
    Mode.REFACTOR: "Select code to refactor",
    Mode.GENERATE: "Describe the code to generate...",
}


class ModeController:
    def __init__(
        self,
        mode: Mode = Mode.ASK,
        *,
        agent_tools: Sequence[Tool] = (),
        workspace_path: str | None = None,
    ):
        self._mode = mode
        self._agent_tools = tuple(agent_tools)
        self._workspace_path = workspace_path

    @property
    def mode(self) -> Mode:
        return self._mode

    @property
    def uses_agent_loop(self) -> bool:
        return self._mode is Mode.AGENT

    @property
    def placeholder(self) -> str:
        return PLACEHOLDERS[self._mode]

    def set_mode(self, mode: Mode | str) -> Mode:
        self._mode = Mode.parse(mode)
        return self._mode

    @staticmethod
    def is_available(mode: Mode, context: CodeContext | None) -> bool:
        if mode in _REQUIRES_CODE:
            return context is not None and context.has_code
        return True

    def available_modes(self, context: CodeContext | None) -> list[Mode]:
        return [m for m in Mode if self.is_available(m, context)]

    def compose(
        self,
        user_input: str,
        context: CodeContext | None = None,
        attachments: Sequence[Attachment] = (),
    ) -> ComposedPrompt:
        context = context or CodeContext()
        if not self.is_available(self._mode, context):
            raise ModeUnavailableError(self._mode.value, "no code selected")
        inputs = _Inputs(
            user_input=user_input,
            context=context,
            attachments=tuple(attachments),
            tools=self._agent_tools,
            workspace_path=self._workspace_path,
        )
        return _STRATEGIES[self._mode](inputs)
