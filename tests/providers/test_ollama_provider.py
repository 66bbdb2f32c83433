import asyncio
import json
import unittest

import httpx

from idec_agent.errors import MissingCredentialError, ProviderError
from idec_agent.models import ProviderCredentials
from idec_agent.providers.ollama_provider import OllamaCloudProvider, OllamaProvider

_LOCAL = ProviderCredentials(ollama_url="http://ollama.test:11434")


def _ndjson(*objects: object, extra_lines: tuple[str, ...] = ()) -> bytes:
    lines = [json.dumps(o) for o in objects] + list(extra_lines)
    return ("\n".join(lines) + "\n").encode()


class OllamaProviderTests(unittest.TestCase):
    def setUp(self) -> None:
        self.requests: list[httpx.Request] = []

    def _provider(self, handler, cls=OllamaProvider) -> OllamaProvider:
        def recording(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        return cls(transport=httpx.MockTransport(recording))

    def test_list_models_reads_tags(self) -> None:
        provider = self._provider(
            lambda r: httpx.Response(200, json={"models": [{"name": "llama3.2", "size": 2000}, {"name": "qwen2.5"}]})
        )

        models = asyncio.run(provider.list_models(_LOCAL))

        self.assertEqual(["llama3.2", "qwen2.5"], [m.id for m in models])
        self.assertEqual(2000, models[0].size)
        self.assertEqual("http://ollama.test:11434/api/tags", str(self.requests[0].url))

    def test_list_models_http_error_is_provider_error(self) -> None:
        provider = self._provider(lambda r: httpx.Response(500, text="boom"))
        with self.assertRaises(ProviderError):
            asyncio.run(provider.list_models(_LOCAL))

    def test_stream_chat_parses_ndjson_and_skips_malformed_lines(self) -> None:
        body = _ndjson(
            {"message": {"content": "Hel"}},
            {"message": {"content": "lo"}},
            {"done": True},
            extra_lines=("not json",),
        )
        provider = self._provider(lambda r: httpx.Response(200, content=body))
        seen: list[str] = []

        text = asyncio.run(
            provider.stream_chat("llama3.2", [{"role": "user", "content": "hi"}], _LOCAL, {"temperature": 0.3}, on_text=seen.append)
        )

        self.assertEqual("Hello", text)
        self.assertEqual(["Hel", "lo"], seen)
        sent = json.loads(self.requests[0].content)
        self.assertTrue(sent["stream"])
        self.assertEqual(0.3, sent["options"]["temperature"])

    def test_stream_error_field_raises(self) -> None:
        provider = self._provider(lambda r: httpx.Response(200, content=_ndjson({"error": "model not found"})))
        with self.assertRaises(ProviderError) as ctx:
            asyncio.run(provider.stream_chat("missing", [{"role": "user", "content": "hi"}], _LOCAL, {}, on_text=lambda _t: None))
        self.assertIn("model not found", str(ctx.exception))

    def test_create_message_uses_non_streaming_body(self) -> None:
        provider = self._provider(lambda r: httpx.Response(200, json={"message": {"content": "answer"}}))
        text = asyncio.run(provider.create_message("llama3.2", [{"role": "user", "content": "q"}], _LOCAL, {}))
        self.assertEqual("answer", text)
        self.assertFalse(json.loads(self.requests[0].content)["stream"])

    def test_local_provider_needs_no_key(self) -> None:
        provider = OllamaProvider()
        self.assertFalse(provider.requires_key)
        provider.check_credentials(ProviderCredentials())


class OllamaCloudProviderTests(unittest.TestCase):
    def test_requires_key_and_sends_bearer_header(self) -> None:
        seen_headers: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen_headers.append(request.headers.get("Authorization", ""))
            return httpx.Response(200, json={"models": []})

        provider = OllamaCloudProvider(transport=httpx.MockTransport(handler))
        creds = ProviderCredentials(ollama_cloud_api_key="cloud-key", ollama_cloud_url="https://cloud.test")

        asyncio.run(provider.list_models(creds))

        self.assertEqual(["Bearer cloud-key"], seen_headers)
        with self.assertRaises(MissingCredentialError):
            provider.check_credentials(ProviderCredentials())


if __name__ == "__main__":
    unittest.main()
