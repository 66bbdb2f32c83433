from __future__ import annotations

from collections.abc import Awaitable, Callable


class CommandRouter:
    def __init__(
        self,
        *,
        on_help: Callable[[], Awaitable[None]],
        on_mode: Callable[[str], Awaitable[None]],
        on_provider: Callable[[str], Awaitable[None]],
        on_model: Callable[[str], Awaitable[None]],
        on_models: Callable[[], Awaitable[None]],
        on_file: Callable[[str], Awaitable[None]],
        on_clear_context: Callable[[], Awaitable[None]],
        on_unknown: Callable[[str], None],
    ) -> None:
        self._on_help = on_help
        self._on_mode = on_mode
        self._on_provider = on_provider
        self._on_model = on_model
        self._on_models = on_models
        self._on_file = on_file
        self._on_clear_context = on_clear_context
        self._on_unknown = on_unknown

    async def try_handle(self, user_message: str) -> bool:
        trimmed = user_message.strip()
        if not trimmed.startswith("/"):
            return False

        command, _, arg = trimmed.partition(" ")
        arg = arg.strip()

        if command == "/help":
            await self._on_help()
            return True
        if command == "/mode":
            await self._on_mode(arg)
            return True
        if command == "/provider":
            await self._on_provider(arg)
            return True
        if command == "/models":
            await self._on_models()
            return True
        if command == "/model":
            await self._on_model(arg)
            return True
        if command == "/file":
            await self._on_file(arg)
            return True
        if command == "/clear-context":
            await self._on_clear_context()
            return True

        self._on_unknown(trimmed)
        return True
