import asyncio
import unittest

from idec_agent.errors import MissingCredentialError, UnknownProviderError
from idec_agent.models import ProviderCredentials
from idec_agent.provider import DEFAULT_MODELS, ModelListResult, ProviderAdapter, create_provider
from tests.fakes import CLAUDE_CREDENTIALS, ScriptedProvider


class ProviderAdapterTests(unittest.TestCase):
    def test_list_models_success(self) -> None:
        adapter = ProviderAdapter(factory=lambda pid: ScriptedProvider(pid, models=["m1", "m2"]))
        result = asyncio.run(adapter.list_models("claude", CLAUDE_CREDENTIALS))
        self.assertTrue(result.success)
        self.assertEqual(["m1", "m2"], [m.id for m in result.models])

    def test_list_models_missing_key_is_normalized(self) -> None:
        adapter = ProviderAdapter(factory=lambda pid: ScriptedProvider(pid))
        result = asyncio.run(adapter.list_models("claude", ProviderCredentials()))
        self.assertFalse(result.success)
        self.assertIn("claude_api_key", result.error)

    def test_list_models_unexpected_failure_is_normalized(self) -> None:
        adapter = ProviderAdapter(factory=lambda pid: ScriptedProvider(pid, models_error=ConnectionError("refused")))
        result = asyncio.run(adapter.list_models("ollama", ProviderCredentials()))
        self.assertEqual(ModelListResult(success=False, error="refused"), result)

    def test_list_models_unknown_provider_is_normalized(self) -> None:
        adapter = ProviderAdapter()
        result = asyncio.run(adapter.list_models("mystery", ProviderCredentials()))
        self.assertFalse(result.success)
        self.assertEqual("Unknown provider", result.error)

    def test_providers_are_created_once(self) -> None:
        created: list[str] = []

        def factory(pid: str) -> ScriptedProvider:
            created.append(pid)
            return ScriptedProvider(pid)

        adapter = ProviderAdapter(factory=factory)
        self.assertIs(adapter.get("claude"), adapter.get("claude"))
        self.assertEqual(["claude"], created)

    def test_complete_streams_when_callback_given(self) -> None:
        provider = ScriptedProvider("claude", ["one two"])
        adapter = ProviderAdapter(factory=lambda pid: provider)
        seen: list[str] = []
        text = asyncio.run(
            adapter.complete("claude", "", [{"role": "user", "content": "hi"}], CLAUDE_CREDENTIALS, {}, on_text=seen.append)
        )
        self.assertEqual("one two", text)
        self.assertEqual(["one ", "two"], seen)

    def test_complete_checks_credentials_first(self) -> None:
        provider = ScriptedProvider("claude", ["never"])
        adapter = ProviderAdapter(factory=lambda pid: provider)
        with self.assertRaises(MissingCredentialError):
            asyncio.run(adapter.complete("claude", "m", [], ProviderCredentials(), {}))
        self.assertEqual([], provider.calls)

    def test_aclose_closes_created_providers(self) -> None:
        closed: list[str] = []

        class _ClosingProvider(ScriptedProvider):
            async def aclose(self) -> None:
                closed.append(self.provider_id)

        adapter = ProviderAdapter(factory=lambda pid: _ClosingProvider(pid) if pid == "claude" else ScriptedProvider(pid))
        adapter.get("claude")
        adapter.get("ollama")

        asyncio.run(adapter.aclose())

        self.assertEqual(["claude"], closed)


class CreateProviderTests(unittest.TestCase):
    def test_every_known_id_has_a_provider_and_default_model(self) -> None:
        for provider_id, model in DEFAULT_MODELS.items():
            provider = create_provider(provider_id)
            self.assertEqual(provider_id, provider.provider_id)
            self.assertTrue(model)

    def test_unknown_id_raises(self) -> None:
        with self.assertRaises(UnknownProviderError):
            create_provider("mystery")


class ModelListResultWireTests(unittest.TestCase):
    def test_malformed_payloads_become_failures(self) -> None:
        self.assertFalse(ModelListResult.from_wire(None).success)
        self.assertFalse(ModelListResult.from_wire({"success": True, "models": [{"name": "no id"}]}).success)

    def test_bare_string_models_are_accepted(self) -> None:
        result = ModelListResult.from_wire({"success": True, "models": ["llama3.2"]})
        self.assertEqual("llama3.2", result.models[0].id)


if __name__ == "__main__":
    unittest.main()
