from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

from loguru import logger
from tenacity import retry_if_exception_type, stop_after_attempt, wait_exponential

from idec_agent.errors import StreamInterruptedError

TOOL_RESULT_TEMPLATE = "Tool result:\n{content}\n\nContinue with your analysis."


def _on_retry(retry_state):
    attempt = retry_state.attempt_number
    wait = retry_state.next_action.sleep if retry_state.next_action else 0
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    reason = type(exc).__name__ if exc else "Unknown"
    logger.warning(f"{reason}. Retrying in {wait:.0f}s (attempt {attempt}/3)...")


def default_retry_kwargs(exception_types: tuple[type[Exception], ...]) -> dict:
    return {
        "retry": retry_if_exception_type(exception_types),
        "wait": wait_exponential(multiplier=1, min=1, max=20),
        "stop": stop_after_attempt(3),
        "before_sleep": _on_retry,
        "reraise": True,
    }


def split_system(messages: list[dict]) -> tuple[str, list[dict]]:
    """Separate system text from the chat turns and fold tool results into user turns."""
    system_parts: list[str] = []
    chat: list[dict] = []
    for msg in messages:
        role = msg.get("role", "user")
        content = msg.get("content", "")
        if role == "system":
            system_parts.append(content)
        elif role == "tool-result":
            chat.append({"role": "user", "content": TOOL_RESULT_TEMPLATE.format(content=content)})
        elif role == "assistant":
            chat.append({"role": "assistant", "content": content})
        else:
            chat.append({"role": "user", "content": content})
    return "\n\n".join(system_parts), chat


def to_chat_messages(messages: list[dict]) -> list[dict]:
    """OpenAI-style chat list: system first, tool results as user turns."""
    system, chat = split_system(messages)
    if system:
        return [{"role": "system", "content": system}, *chat]
    return chat


@contextmanager
def interruption_guard(provider_id: str, parts: list[str]) -> Iterator[None]:
    """Turn failures after the first delivered chunk into non-retryable errors.

    Retrying a stream that already produced output would deliver the same
    text twice.
    """
    try:
        yield
    except StreamInterruptedError:
        raise
    except Exception as ex:
        if parts:
            raise StreamInterruptedError(provider_id, f"stream failed after output started: {ex}") from ex
        raise


async def close_clients(clients: dict[str, Any]) -> None:
    """Close and forget cached SDK clients."""
    pending = list(clients.values())
    clients.clear()
    for client in pending:
        close = getattr(client, "close", None)
        if close is not None:
            await close()
