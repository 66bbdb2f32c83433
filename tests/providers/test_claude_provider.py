import asyncio
import unittest
from types import SimpleNamespace

from idec_agent.errors import MissingCredentialError, ProviderError, StreamInterruptedError
from idec_agent.models import ProviderCredentials
from idec_agent.providers.claude_provider import ClaudeProvider

_CREDS = ProviderCredentials(claude_api_key="sk-ant-test")


def _delta(text: str) -> SimpleNamespace:
    return SimpleNamespace(type="content_block_delta", delta=SimpleNamespace(type="text_delta", text=text))


class _FakeStreamContext:
    def __init__(self, events: list[object], fail_after: int | None = None):
        self._events = events
        self._fail_after = fail_after
        self._final_message = SimpleNamespace(
            stop_reason="end_turn",
            usage=SimpleNamespace(input_tokens=10, output_tokens=5),
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    def __aiter__(self):
        self._index = 0
        return self

    async def __anext__(self):
        if self._fail_after is not None and self._index == self._fail_after:
            raise ConnectionResetError("connection dropped")
        if self._index >= len(self._events):
            raise StopAsyncIteration
        event = self._events[self._index]
        self._index += 1
        return event

    async def get_final_message(self):
        return self._final_message


class _FakeMessages:
    def __init__(self, stream_ctx: _FakeStreamContext | None = None, response: object = None):
        self._stream_ctx = stream_ctx
        self._response = response
        self.kwargs: dict = {}

    def stream(self, **kwargs):
        self.kwargs = kwargs
        return self._stream_ctx

    async def create(self, **kwargs):
        self.kwargs = kwargs
        return self._response


class _FakeClient:
    def __init__(self, messages: _FakeMessages):
        self.messages = messages
        self.closed = False

    async def close(self) -> None:
        self.closed = True


class ClaudeProviderTests(unittest.TestCase):
    def _make_provider(self, messages: _FakeMessages) -> ClaudeProvider:
        self.keys: list[str] = []
        self.clients: list[_FakeClient] = []

        def factory(api_key: str) -> _FakeClient:
            self.keys.append(api_key)
            self.clients.append(_FakeClient(messages))
            return self.clients[-1]

        return ClaudeProvider(client_factory=factory)

    def test_stream_chat_hands_deltas_to_callback_in_order(self) -> None:
        events = [
            SimpleNamespace(type="message_start"),
            _delta("Hel"),
            _delta("lo"),
            SimpleNamespace(type="content_block_delta", delta=SimpleNamespace(type="input_json_delta")),
            _delta("!"),
        ]
        messages = _FakeMessages(_FakeStreamContext(events))
        provider = self._make_provider(messages)
        seen: list[str] = []

        text = asyncio.run(
            provider.stream_chat(
                "claude-sonnet-4-20250514",
                [{"role": "system", "content": "sys"}, {"role": "user", "content": "hi"}],
                _CREDS,
                {"max_tokens": 100, "temperature": 0.2},
                on_text=seen.append,
            )
        )

        self.assertEqual("Hello!", text)
        self.assertEqual(["Hel", "lo", "!"], seen)
        self.assertEqual("sys", messages.kwargs["system"])
        self.assertEqual([{"role": "user", "content": "hi"}], messages.kwargs["messages"])
        self.assertEqual(100, messages.kwargs["max_tokens"])
        self.assertEqual(["sk-ant-test"], self.keys)

    def test_tool_results_are_sent_as_user_turns(self) -> None:
        messages = _FakeMessages(_FakeStreamContext([_delta("ok")]))
        provider = self._make_provider(messages)

        asyncio.run(
            provider.stream_chat(
                "m",
                [
                    {"role": "user", "content": "list files"},
                    {"role": "assistant", "content": "<tool>list_files</tool><params>{}</params>"},
                    {"role": "tool-result", "content": "a.py"},
                ],
                _CREDS,
                {},
                on_text=lambda _t: None,
            )
        )

        last = messages.kwargs["messages"][-1]
        self.assertEqual("user", last["role"])
        self.assertIn("a.py", last["content"])
        self.assertNotIn("system", messages.kwargs)

    def test_failure_after_first_chunk_is_not_retried(self) -> None:
        messages = _FakeMessages(_FakeStreamContext([_delta("partial")], fail_after=1))
        provider = self._make_provider(messages)
        seen: list[str] = []

        with self.assertRaises(StreamInterruptedError):
            asyncio.run(provider.stream_chat("m", [{"role": "user", "content": "hi"}], _CREDS, {}, on_text=seen.append))

        self.assertEqual(["partial"], seen)
        self.assertEqual(1, len(self.keys))

    def test_missing_key_raises_before_any_client_is_built(self) -> None:
        provider = self._make_provider(_FakeMessages())
        with self.assertRaises(MissingCredentialError):
            asyncio.run(provider.stream_chat("m", [], ProviderCredentials(), {}, on_text=lambda _t: None))
        self.assertEqual([], self.keys)

    def test_list_models_returns_fixed_catalogue_when_key_present(self) -> None:
        provider = self._make_provider(_FakeMessages())
        models = asyncio.run(provider.list_models(_CREDS))
        self.assertIn("claude-sonnet-4-20250514", [m.id for m in models])
        self.assertTrue(all(m.provider == "claude" for m in models))

    def test_list_models_requires_key(self) -> None:
        provider = self._make_provider(_FakeMessages())
        with self.assertRaises(MissingCredentialError):
            asyncio.run(provider.list_models(ProviderCredentials()))

    def test_create_message_joins_text_blocks(self) -> None:
        response = SimpleNamespace(
            content=[SimpleNamespace(type="text", text="Hello "), SimpleNamespace(type="text", text="there")]
        )
        provider = self._make_provider(_FakeMessages(response=response))
        text = asyncio.run(provider.create_message("m", [{"role": "user", "content": "hi"}], _CREDS, {}))
        self.assertEqual("Hello there", text)

    def test_one_client_per_key_and_closed_on_aclose(self) -> None:
        response = SimpleNamespace(content=[SimpleNamespace(type="text", text="ok")])
        provider = self._make_provider(_FakeMessages(response=response))
        other = ProviderCredentials(claude_api_key="sk-ant-other")

        async def run():
            await provider.create_message("m", [{"role": "user", "content": "a"}], _CREDS, {})
            await provider.create_message("m", [{"role": "user", "content": "b"}], _CREDS, {})
            await provider.create_message("m", [{"role": "user", "content": "c"}], other, {})
            await provider.aclose()

        asyncio.run(run())

        self.assertEqual(["sk-ant-test", "sk-ant-other"], self.keys)
        self.assertTrue(all(c.closed for c in self.clients))

    def test_create_message_without_text_is_a_provider_error(self) -> None:
        provider = self._make_provider(_FakeMessages(response=SimpleNamespace(content=[])))
        with self.assertRaises(ProviderError):
            asyncio.run(provider.create_message("m", [{"role": "user", "content": "hi"}], _CREDS, {}))


if __name__ == "__main__":
    unittest.main()
