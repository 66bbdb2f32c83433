from __future__ import annotations

import asyncio
import time
from typing import Any

from loguru import logger

from idec_agent import channels
from idec_agent.errors import MissingCredentialError, ProviderError
from idec_agent.file_service import LocalFileService
from idec_agent.models import ProviderCredentials, new_request_id
from idec_agent.provider import ProviderAdapter
from idec_agent.transport import LocalTransport


def _error_result(ex: ProviderError) -> dict[str, Any]:
    error_type = "missing_credential" if isinstance(ex, MissingCredentialError) else "provider"
    return {"success": False, "error": ex.reason, "error_type": error_type}


class HostProcess:
    """The trusted side of the boundary.

    Owns provider calls and file access, and pushes stream events tagged with
    the request identity the UI chose.
    """

    def __init__(
        self,
        transport: LocalTransport,
        *,
        adapter: ProviderAdapter | None = None,
        files: LocalFileService | None = None,
    ):
        self._transport = transport
        self._adapter = adapter or ProviderAdapter()
        self._files = files or LocalFileService()
        self._active_streams: dict[str, asyncio.Task] = {}

    def register(self) -> None:
        self._transport.handle(channels.FETCH_MODELS, self._fetch_models)
        self._transport.handle(channels.AI_REQUEST_STREAM, self._ai_request_stream)
        self._transport.handle(channels.AI_STREAM_STOP, self._ai_stream_stop)
        self._transport.handle(channels.AI_REQUEST, self._ai_request)
        self._transport.handle(channels.READ_FILE, self._files.read_file)
        self._transport.handle(channels.WRITE_FILE, self._files.write_file)
        self._transport.handle(channels.CREATE_FILE, self._files.create_file)
        self._transport.handle(channels.READ_DIRECTORY, self._files.read_directory)

    @property
    def active_stream_ids(self) -> list[str]:
        return list(self._active_streams)

    def _output_log(self, level: str, message: str) -> None:
        self._transport.send(channels.OUTPUT_LOG, {"channel": "AI Chat", "level": level, "message": message})

    async def _fetch_models(self, provider_id: str, credentials: dict | None = None) -> dict[str, Any]:
        result = await self._adapter.list_models(provider_id, ProviderCredentials.from_wire(credentials))
        return result.to_wire()

    async def _ai_request_stream(
        self,
        provider_id: str,
        model_id: str,
        messages: list[dict],
        credentials: dict | None = None,
        options: dict | None = None,
    ) -> dict[str, Any]:
        options = dict(options or {})
        request_id = options.get("request_id") or new_request_id()
        creds = ProviderCredentials.from_wire(credentials)

        try:
            self._adapter.get(provider_id).check_credentials(creds)
        except ProviderError as ex:
            logger.info(f"Rejected stream {request_id}: {ex}")
            return _error_result(ex)

        if request_id in self._active_streams:
            return {"success": False, "error": f"Stream already active: {request_id}", "error_type": "duplicate"}

        self._output_log("info", f"Starting {provider_id} request with model: {model_id}")
        task = asyncio.create_task(self._pump(request_id, provider_id, model_id, messages, creds, options))
        self._active_streams[request_id] = task
        return {"success": True, "request_id": request_id}

    async def _pump(
        self,
        request_id: str,
        provider_id: str,
        model_id: str,
        messages: list[dict],
        credentials: ProviderCredentials,
        options: dict[str, Any],
    ) -> None:
        started = time.monotonic()
        parts: list[str] = []

        def on_text(text: str) -> None:
            parts.append(text)
            self._transport.send(channels.AI_STREAM_CHUNK, {"request_id": request_id, "text": text})

        try:
            await self._adapter.complete(provider_id, model_id, messages, credentials, options, on_text=on_text)
        except asyncio.CancelledError:
            logger.info(f"Stream aborted by user: {request_id}")
            self._transport.send(
                channels.AI_STREAM_DONE,
                {"request_id": request_id, "full_content": "".join(parts), "aborted": True},
            )
            raise
        except Exception as ex:
            reason = ex.reason if isinstance(ex, ProviderError) else (str(ex) or type(ex).__name__)
            logger.error(f"Stream {request_id} failed ({provider_id}): {reason}")
            self._output_log("error", f"{provider_id} request failed: {reason}")
            self._transport.send(channels.AI_STREAM_ERROR, {"request_id": request_id, "error": reason})
        else:
            full_content = "".join(parts)
            duration_ms = int((time.monotonic() - started) * 1000)
            logger.info(f"Stream {request_id} completed - {len(full_content)} chars in {duration_ms}ms")
            self._transport.send(channels.AI_STREAM_DONE, {"request_id": request_id, "full_content": full_content})
        finally:
            self._active_streams.pop(request_id, None)

    async def _ai_stream_stop(self, request_id: str) -> dict[str, Any]:
        task = self._active_streams.pop(request_id, None)
        if task is None:
            return {"success": False, "error": "No active stream found"}
        logger.info(f"Stop requested for: {request_id}")
        task.cancel()
        return {"success": True}

    async def _ai_request(
        self,
        provider_id: str,
        model_id: str,
        messages: list[dict],
        credentials: dict | None = None,
        options: dict | None = None,
    ) -> dict[str, Any]:
        creds = ProviderCredentials.from_wire(credentials)
        started = time.monotonic()
        try:
            content = await self._adapter.complete(provider_id, model_id, messages, creds, dict(options or {}))
        except ProviderError as ex:
            return _error_result(ex)
        except Exception as ex:
            logger.error(f"[AI Error] Provider: {provider_id}, Error: {ex}")
            return {"success": False, "error": str(ex) or type(ex).__name__, "error_type": "provider"}
        duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(f"[AI Response] Provider: {provider_id}, Duration: {duration_ms}ms")
        return {"success": True, "content": content}

    async def shutdown(self) -> None:
        tasks = list(self._active_streams.values())
        self._active_streams.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        await self._adapter.aclose()
