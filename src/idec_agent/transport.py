from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from loguru import logger

from idec_agent.errors import ChannelNotExposedError

Handler = Callable[..., Awaitable[Any]]
Listener = Callable[[Any], None]


class LocalTransport:
    """In-process stand-in for the IPC pipe between the UI and the host.

    Listeners are removed by exact reference only, like the real pipe.
    Push delivery is synchronous and in registration order, so events for a
    given identity reach every listener in the order the host sent them.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, Handler] = {}
        self._listeners: dict[str, list[Listener]] = {}

    def handle(self, channel: str, handler: Handler) -> None:
        if channel in self._handlers:
            raise ValueError(f"Handler already registered for {channel!r}")
        self._handlers[channel] = handler

    def handles(self, channel: str) -> bool:
        return channel in self._handlers

    async def invoke(self, channel: str, *args: Any) -> Any:
        handler = self._handlers.get(channel)
        if handler is None:
            raise ChannelNotExposedError(channel)
        return await handler(*args)

    def on(self, channel: str, listener: Listener) -> None:
        self._listeners.setdefault(channel, []).append(listener)

    def remove_listener(self, channel: str, listener: Listener) -> None:
        listeners = self._listeners.get(channel)
        if not listeners:
            return
        for i, registered in enumerate(listeners):
            if registered is listener:
                del listeners[i]
                return

    def listener_count(self, channel: str) -> int:
        return len(self._listeners.get(channel, []))

    def send(self, channel: str, payload: Any) -> None:
        for listener in list(self._listeners.get(channel, [])):
            try:
                listener(payload)
            except Exception as ex:
                logger.error(f"Listener for {channel} raised: {ex}")
