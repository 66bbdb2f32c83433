from __future__ import annotations

import asyncio
import enum
from collections.abc import Callable
from typing import Any

from loguru import logger

from idec_agent import channels
from idec_agent.bridge import BoundaryBridge, Unsubscribe
from idec_agent.errors import TransportError
from idec_agent.models import Request


class SessionState(enum.Enum):
    PENDING = "pending"
    STREAMING = "streaming"
    COMPLETED = "completed"
    ERRORED = "errored"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL


_TERMINAL = frozenset({SessionState.COMPLETED, SessionState.ERRORED, SessionState.CANCELLED})


class Session:
    """One in-flight completion request and its accumulated output."""

    def __init__(self, request: Request):
        self.request = request
        self.state = SessionState.PENDING
        self.error: str | None = None
        self.error_type: str | None = None
        self._chunks: list[str] = []
        self._finished = asyncio.Event()
        self._unsubscribers: list[Unsubscribe] = []

    @property
    def id(self) -> str:
        return self.request.id

    @property
    def text(self) -> str:
        return "".join(self._chunks)

    @property
    def chunk_count(self) -> int:
        return len(self._chunks)

    @property
    def is_finished(self) -> bool:
        return self.state.is_terminal

    def __repr__(self) -> str:
        return f"Session(id={self.id!r}, state={self.state.value}, chars={len(self.text)})"


class StreamingSessionManager:
    """Owns the single active-session slot of one panel.

    Starting a request supersedes whatever is active (last write wins);
    events are routed by request identity and anything that does not match
    the active, non-terminal session is dropped.
    """

    def __init__(
        self,
        bridge: BoundaryBridge,
        *,
        stream_timeout_seconds: float = 120.0,
        on_chunk: Callable[[Session, str], None] | None = None,
    ):
        self._bridge = bridge
        self._stream_timeout_seconds = stream_timeout_seconds
        self._on_chunk = on_chunk
        self._active: Session | None = None

    @property
    def active(self) -> Session | None:
        return self._active

    async def start(self, request: Request) -> Session:
        if self._active is not None and not self._active.is_finished:
            logger.info(f"Superseding active session {self._active.id} with {request.id}")
            await self.cancel()

        session = Session(request)
        self._active = session

        if request.options.streaming:
            # Listen before calling the host so early chunks are not missed.
            session._unsubscribers = [
                self._bridge.subscribe(channels.AI_STREAM_CHUNK, lambda p: self._on_chunk_event(session, p)),
                self._bridge.subscribe(channels.AI_STREAM_DONE, lambda p: self._on_done_event(session, p)),
                self._bridge.subscribe(channels.AI_STREAM_ERROR, lambda p: self._on_error_event(session, p)),
            ]
            session.state = SessionState.STREAMING
            await self._invoke_stream(session)
        else:
            session.state = SessionState.STREAMING
            await self._invoke_single(session)
        return session

    async def run(self, request: Request) -> Session:
        session = await self.start(request)
        return await self.wait(session)

    async def wait(self, session: Session) -> Session:
        if session.is_finished:
            return session
        try:
            await asyncio.wait_for(session._finished.wait(), timeout=self._stream_timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(f"Session {session.id} timed out after {self._stream_timeout_seconds}s")
            await self._abort_host_stream(session)
            self._finish(session, SessionState.ERRORED, error=f"Request timed out after {self._stream_timeout_seconds:g}s")
        return session

    async def cancel(self) -> Session | None:
        session = self._active
        if session is None or session.is_finished:
            return None
        self._finish(session, SessionState.CANCELLED)
        logger.info(f"Session {session.id} cancelled")
        if session.request.options.streaming:
            await self._abort_host_stream(session)
        return session

    async def _invoke_stream(self, session: Session) -> None:
        req = session.request
        try:
            result = await self._bridge.invoke(
                channels.AI_REQUEST_STREAM,
                req.provider_id,
                req.model_id,
                req.wire_messages(),
                req.credentials.to_wire(),
                req.options.to_wire(req.id),
            )
        except TransportError as ex:
            self._finish(session, SessionState.ERRORED, error=str(ex), error_type="transport")
            raise
        if not isinstance(result, dict) or not result.get("success"):
            error = result.get("error") if isinstance(result, dict) else None
            error_type = result.get("error_type") if isinstance(result, dict) else None
            self._finish(session, SessionState.ERRORED, error=error or "Request failed", error_type=error_type)

    async def _invoke_single(self, session: Session) -> None:
        req = session.request
        try:
            result = await self._bridge.invoke(
                channels.AI_REQUEST,
                req.provider_id,
                req.model_id,
                req.wire_messages(),
                req.credentials.to_wire(),
                req.options.to_wire(req.id),
            )
        except TransportError as ex:
            self._finish(session, SessionState.ERRORED, error=str(ex), error_type="transport")
            raise
        if session.is_finished:
            return
        if isinstance(result, dict) and result.get("success"):
            self._apply(session, str(result.get("content") or ""))
            self._finish(session, SessionState.COMPLETED)
        else:
            error = result.get("error") if isinstance(result, dict) else None
            error_type = result.get("error_type") if isinstance(result, dict) else None
            self._finish(session, SessionState.ERRORED, error=error or "Request failed", error_type=error_type)

    async def _abort_host_stream(self, session: Session) -> None:
        try:
            await self._bridge.invoke(channels.AI_STREAM_STOP, session.id)
        except TransportError as ex:
            # Abort is advisory; the UI side already stopped listening.
            logger.warning(f"Host abort for {session.id} failed: {ex}")

    def _accepts(self, session: Session, payload: Any) -> bool:
        if not isinstance(payload, dict) or payload.get("request_id") != session.id:
            return False
        if self._active is not session or session.is_finished:
            logger.debug(f"Dropping stale event for {session.id}")
            return False
        return True

    def _apply(self, session: Session, text: str) -> None:
        if not text:
            return
        session._chunks.append(text)
        if self._on_chunk is not None:
            self._on_chunk(session, text)

    def _on_chunk_event(self, session: Session, payload: Any) -> None:
        if self._accepts(session, payload):
            self._apply(session, str(payload.get("text") or ""))

    def _on_done_event(self, session: Session, payload: Any) -> None:
        if not self._accepts(session, payload):
            return
        if payload.get("aborted"):
            self._finish(session, SessionState.CANCELLED)
        else:
            self._finish(session, SessionState.COMPLETED)

    def _on_error_event(self, session: Session, payload: Any) -> None:
        if self._accepts(session, payload):
            self._finish(session, SessionState.ERRORED, error=str(payload.get("error") or "Unknown error"), error_type="provider")

    def _finish(
        self,
        session: Session,
        state: SessionState,
        *,
        error: str | None = None,
        error_type: str | None = None,
    ) -> None:
        if session.is_finished:
            return
        session.state = state
        session.error = error
        session.error_type = error_type
        for unsubscribe in session._unsubscribers:
            unsubscribe()
        session._unsubscribers = []
        session._finished.set()
        logger.debug(f"Session {session.id} -> {state.value}")
