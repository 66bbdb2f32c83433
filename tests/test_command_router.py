import asyncio
import unittest

from idec_agent.commands.router import CommandRouter


class CommandRouterTests(unittest.TestCase):
    def setUp(self) -> None:
        self.calls: list[tuple[str, str]] = []

        def record(name: str):
            async def handler(arg: str = "") -> None:
                self.calls.append((name, arg))

            return handler

        self.router = CommandRouter(
            on_help=record("help"),
            on_mode=record("mode"),
            on_provider=record("provider"),
            on_model=record("model"),
            on_models=record("models"),
            on_file=record("file"),
            on_clear_context=record("clear-context"),
            on_unknown=lambda trimmed: self.calls.append(("unknown", trimmed)),
        )

    def _handle(self, text: str) -> bool:
        return asyncio.run(self.router.try_handle(text))

    def test_plain_text_is_not_a_command(self) -> None:
        self.assertFalse(self._handle("explain this"))
        self.assertEqual([], self.calls)

    def test_commands_route_with_arguments(self) -> None:
        self._handle("/mode agent")
        self._handle("  /provider   ollama ")
        self._handle("/model gpt-4o")
        self._handle("/models")
        self._handle("/file src/app.py")
        self._handle("/clear-context")
        self._handle("/help")
        self.assertEqual(
            [
                ("mode", "agent"),
                ("provider", "ollama"),
                ("model", "gpt-4o"),
                ("models", ""),
                ("file", "src/app.py"),
                ("clear-context", ""),
                ("help", ""),
            ],
            self.calls,
        )

    def test_unknown_command_is_consumed(self) -> None:
        self.assertTrue(self._handle("/rewind 3"))
        self.assertEqual([("unknown", "/rewind 3")], self.calls)


if __name__ == "__main__":
    unittest.main()
