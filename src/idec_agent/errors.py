"""Error taxonomy for the agent core.

Transport errors mean a boundary capability is unavailable and are never
retried. Provider errors are recoverable within the conversation. Tool
execution failures are not exceptions at all: they travel back to the model
as tool-result text.
"""
from __future__ import annotations


class AgentCoreError(Exception):
    """Base exception for all agent core errors."""


class TransportError(AgentCoreError):
    """A boundary call was rejected or failed on the host side."""
    def __init__(self, channel: str, reason: str):
        self.channel = channel
        self.reason = reason
        super().__init__(f"Boundary call '{channel}' failed: {reason}")


class ChannelNotExposedError(TransportError):
    """The channel is not exposed across the boundary."""
    def __init__(self, channel: str):
        super().__init__(channel, "channel is not exposed")


class ProviderError(AgentCoreError):
    """A completion provider failed (auth, rate limit, malformed response)."""
    def __init__(self, provider_id: str, reason: str):
        self.provider_id = provider_id
        self.reason = reason
        super().__init__(f"{provider_id}: {reason}")


class MissingCredentialError(ProviderError):
    """The provider requires a credential that was not configured."""
    def __init__(self, provider_id: str, field_name: str):
        self.field_name = field_name
        super().__init__(provider_id, f"No API key configured ({field_name})")


class UnknownProviderError(ProviderError):
    def __init__(self, provider_id: str):
        super().__init__(provider_id, "Unknown provider")


class StreamInterruptedError(ProviderError):
    """The stream failed after text had already been delivered."""


class ModeUnavailableError(AgentCoreError):
    """The selected mode cannot be invoked with the current code context."""
    def __init__(self, mode: str, reason: str):
        self.mode = mode
        self.reason = reason
        super().__init__(f"Mode '{mode}' is unavailable: {reason}")


class BoundExceededError(AgentCoreError):
    """The agent loop used up its turn budget without a final answer."""
    def __init__(self, max_turns: int):
        self.max_turns = max_turns
        super().__init__(
            f"Agent stopped after {max_turns} turns without a final answer"
        )
