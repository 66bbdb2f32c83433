import asyncio
import tempfile
import unittest
from pathlib import Path

from idec_agent import channels
from idec_agent.models import ProviderCredentials, RequestOptions
from tests.fakes import CLAUDE_CREDENTIALS, ScriptedProvider, make_stack, provider_failure


class _Recorder:
    def __init__(self, transport) -> None:
        self.events: list[tuple[str, dict]] = []
        for channel in (channels.AI_STREAM_CHUNK, channels.AI_STREAM_DONE, channels.AI_STREAM_ERROR):
            transport.on(channel, lambda payload, ch=channel: self.events.append((ch, payload)))

    def of(self, channel: str) -> list[dict]:
        return [p for ch, p in self.events if ch == channel]


async def _drain(host) -> None:
    for _ in range(50):
        if not host.active_stream_ids:
            return
        await asyncio.sleep(0)


class HostStreamTests(unittest.TestCase):
    def _stream(self, provider: ScriptedProvider, credentials=CLAUDE_CREDENTIALS, request_id: str = "stream_1"):
        transport, host, _ = make_stack(provider)
        recorder = _Recorder(transport)

        async def run():
            result = await transport.invoke(
                channels.AI_REQUEST_STREAM,
                provider.provider_id,
                "model-a",
                [{"role": "user", "content": "hi"}],
                credentials.to_wire(),
                RequestOptions().to_wire(request_id),
            )
            await _drain(host)
            return result

        return asyncio.run(run()), recorder

    def test_chunks_then_done_tagged_with_request_id(self) -> None:
        result, recorder = self._stream(ScriptedProvider("claude", ["a b c"]))

        self.assertEqual({"success": True, "request_id": "stream_1"}, result)
        self.assertEqual(["a ", "b ", "c"], [p["text"] for p in recorder.of(channels.AI_STREAM_CHUNK)])
        self.assertEqual([{"request_id": "stream_1", "full_content": "a b c"}], recorder.of(channels.AI_STREAM_DONE))
        self.assertTrue(all(p["request_id"] == "stream_1" for _, p in recorder.events))

    def test_missing_key_rejected_synchronously(self) -> None:
        result, recorder = self._stream(ScriptedProvider("claude", ["x"]), credentials=ProviderCredentials())

        self.assertFalse(result["success"])
        self.assertEqual("missing_credential", result["error_type"])
        self.assertEqual([], recorder.events)

    def test_provider_failure_is_pushed_as_error_event(self) -> None:
        result, recorder = self._stream(ScriptedProvider("claude", [provider_failure("rate limited")]))

        self.assertTrue(result["success"])
        self.assertEqual([{"request_id": "stream_1", "error": "rate limited"}], recorder.of(channels.AI_STREAM_ERROR))
        self.assertEqual([], recorder.of(channels.AI_STREAM_DONE))

    def test_stop_aborts_pump_and_reports_aborted_done(self) -> None:
        hold = asyncio.Event()
        provider = ScriptedProvider("claude", ["first second"], hold=hold)
        transport, host, _ = make_stack(provider)
        recorder = _Recorder(transport)

        async def run():
            await transport.invoke(
                channels.AI_REQUEST_STREAM, "claude", "m", [], CLAUDE_CREDENTIALS.to_wire(), RequestOptions().to_wire("s1")
            )
            await asyncio.sleep(0)
            await asyncio.sleep(0)
            stopped = await transport.invoke(channels.AI_STREAM_STOP, "s1")
            await asyncio.sleep(0)
            await asyncio.sleep(0)
            missing = await transport.invoke(channels.AI_STREAM_STOP, "s1")
            return stopped, missing

        stopped, missing = asyncio.run(run())

        self.assertEqual({"success": True}, stopped)
        self.assertFalse(missing["success"])
        done = recorder.of(channels.AI_STREAM_DONE)
        self.assertEqual(1, len(done))
        self.assertTrue(done[0]["aborted"])
        self.assertEqual("first ", done[0]["full_content"])
        self.assertEqual([], host.active_stream_ids)

    def test_output_log_reports_request_start(self) -> None:
        transport, host, _ = make_stack(ScriptedProvider("claude", ["ok"]))
        logs: list[dict] = []
        transport.on(channels.OUTPUT_LOG, logs.append)

        async def run():
            await transport.invoke(
                channels.AI_REQUEST_STREAM, "claude", "model-a", [], CLAUDE_CREDENTIALS.to_wire(), RequestOptions().to_wire("s2")
            )
            await _drain(host)

        asyncio.run(run())
        self.assertIn("model-a", logs[0]["message"])


class HostSingleShotTests(unittest.TestCase):
    def test_ai_request_returns_whole_content(self) -> None:
        transport, _, _ = make_stack(ScriptedProvider("claude", ["complete answer"]))
        result = asyncio.run(
            transport.invoke(channels.AI_REQUEST, "claude", "m", [], CLAUDE_CREDENTIALS.to_wire(), {})
        )
        self.assertEqual({"success": True, "content": "complete answer"}, result)

    def test_ai_request_failure_is_normalized(self) -> None:
        transport, _, _ = make_stack(ScriptedProvider("claude", [provider_failure("bad gateway")]))
        result = asyncio.run(
            transport.invoke(channels.AI_REQUEST, "claude", "m", [], CLAUDE_CREDENTIALS.to_wire(), {})
        )
        self.assertEqual({"success": False, "error": "bad gateway", "error_type": "provider"}, result)

    def test_fetch_models_returns_wire_result(self) -> None:
        transport, _, _ = make_stack(ScriptedProvider("claude", models=["m1"]))
        result = asyncio.run(transport.invoke(channels.FETCH_MODELS, "claude", CLAUDE_CREDENTIALS.to_wire()))
        self.assertTrue(result["success"])
        self.assertEqual("m1", result["models"][0]["id"])


class HostFileTests(unittest.TestCase):
    def test_file_round_trip_over_channels(self) -> None:
        transport, _, _ = make_stack()
        with tempfile.TemporaryDirectory() as tmp:
            target = str(Path(tmp) / "sub" / "notes.md")

            async def run():
                written = await transport.invoke(channels.WRITE_FILE, target, "# notes")
                read = await transport.invoke(channels.READ_FILE, target)
                listing = await transport.invoke(channels.READ_DIRECTORY, tmp)
                return written, read, listing

            written, read, listing = asyncio.run(run())

        self.assertTrue(written["success"])
        self.assertEqual("# notes", read["content"])
        self.assertEqual([{"name": "sub", "path": str(Path(tmp) / "sub"), "is_directory": True}], listing["entries"])

    def test_create_file_is_exclusive(self) -> None:
        transport, _, _ = make_stack()
        with tempfile.TemporaryDirectory() as tmp:
            target = str(Path(tmp) / "new.txt")

            async def run():
                created = await transport.invoke(channels.CREATE_FILE, target, "one")
                again = await transport.invoke(channels.CREATE_FILE, target, "two")
                read = await transport.invoke(channels.READ_FILE, target)
                return created, again, read

            created, again, read = asyncio.run(run())

        self.assertEqual({"success": True}, created)
        self.assertFalse(again["success"])
        self.assertIn("File already exists", again["error"])
        self.assertEqual("one", read["content"])

    def test_missing_file_is_reported_not_raised(self) -> None:
        transport, _, _ = make_stack()
        result = asyncio.run(transport.invoke(channels.READ_FILE, "/definitely/not/here.txt"))
        self.assertFalse(result["success"])
        self.assertIn("File not found", result["error"])


if __name__ == "__main__":
    unittest.main()
