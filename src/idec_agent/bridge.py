from __future__ import annotations

import itertools
from collections.abc import Callable, Iterable
from typing import Any

from loguru import logger

from idec_agent.channels import EXPOSED_CHANNELS, is_streaming_channel
from idec_agent.errors import ChannelNotExposedError, TransportError
from idec_agent.transport import LocalTransport

Unsubscribe = Callable[[], None]

_SECRET_KEY_MARKERS = ("key", "token", "secret", "credential")


def describe_payload(value: Any) -> str:
    """Summarize a payload's shape for tracing without echoing its contents."""
    if isinstance(value, dict):
        parts = []
        for key, item in value.items():
            if any(marker in str(key).lower() for marker in _SECRET_KEY_MARKERS):
                parts.append(f"{key}=<redacted>")
            elif key == "request_id":
                parts.append(f"request_id={item}")
            else:
                parts.append(f"{key}:{_shape(item)}")
        return "{" + ", ".join(parts) + "}"
    return _shape(value)


def _shape(value: Any) -> str:
    if isinstance(value, str):
        return f"str[{len(value)}]"
    if isinstance(value, (list, tuple)):
        return f"{type(value).__name__}[{len(value)}]"
    if isinstance(value, dict):
        return f"dict[{len(value)}]"
    return type(value).__name__


class BoundaryBridge:
    """The only way the UI side reaches host capabilities.

    Subscriptions are tracked per bridge instance as
    (channel, token) -> (handler, wrapper), so every ``subscribe`` call gets
    its own revocation handle even when the same handler is registered more
    than once.
    """

    def __init__(self, transport: LocalTransport, exposed_channels: Iterable[str] = EXPOSED_CHANNELS):
        self._transport = transport
        self._exposed = frozenset(exposed_channels)
        self._tokens = itertools.count(1)
        self._subscriptions: dict[tuple[str, int], tuple[Callable[[Any], None], Callable[[Any], None]]] = {}

    @property
    def exposed_channels(self) -> frozenset[str]:
        return self._exposed

    async def invoke(self, channel: str, *args: Any) -> Any:
        if channel not in self._exposed or not self._transport.handles(channel):
            logger.warning(f"Rejected invoke on unexposed channel {channel!r}")
            raise ChannelNotExposedError(channel)
        if is_streaming_channel(channel):
            logger.debug(f"[bridge] invoke {channel} with {len(args)} args, last={describe_payload(args[-1]) if args else '-'}")
        try:
            return await self._transport.invoke(channel, *args)
        except TransportError:
            raise
        except Exception as ex:
            raise TransportError(channel, str(ex)) from ex

    def subscribe(self, channel: str, handler: Callable[[Any], None]) -> Unsubscribe:
        token = next(self._tokens)
        streaming = is_streaming_channel(channel)

        def subscription(payload: Any) -> None:
            if streaming:
                logger.debug(f"[bridge] received {channel}: {describe_payload(payload)}")
            handler(payload)

        self._subscriptions[(channel, token)] = (handler, subscription)
        self._transport.on(channel, subscription)
        logger.debug(f"[bridge] subscribed to {channel} (token={token})")

        def unsubscribe() -> None:
            entry = self._subscriptions.pop((channel, token), None)
            if entry is None:
                return
            self._transport.remove_listener(channel, entry[1])
            logger.debug(f"[bridge] unsubscribed from {channel} (token={token})")

        return unsubscribe

    def subscription_count(self, channel: str | None = None) -> int:
        if channel is None:
            return len(self._subscriptions)
        return sum(1 for ch, _ in self._subscriptions if ch == channel)

    def close(self) -> None:
        for (channel, _), (_, wrapper) in list(self._subscriptions.items()):
            self._transport.remove_listener(channel, wrapper)
        self._subscriptions.clear()
