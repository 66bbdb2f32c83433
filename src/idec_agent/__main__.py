import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger

from idec_agent.app_config import load_json_config, parse_app_config, resolve_runtime_env
from idec_agent.bootstrap import AppRuntime, bootstrap_runtime
from idec_agent.commands.router import CommandRouter
from idec_agent.errors import ModeUnavailableError, TransportError
from idec_agent.modes import CodeContext, Mode
from idec_agent.panel import AssistantPanel
from idec_agent.spinner import Spinner
from idec_agent.workspace import WorkspaceError

_LINE_PREFIX = "assistant> "
_USER_PROMPT = "you> "

_LANGUAGES = {
    ".py": "python",
    ".js": "javascript",
    ".ts": "typescript",
    ".tsx": "typescriptreact",
    ".json": "json",
    ".md": "markdown",
    ".html": "html",
    ".css": "css",
    ".rs": "rust",
    ".go": "go",
    ".java": "java",
}


class Repl:
    def __init__(self) -> None:
        self._panel: AssistantPanel | None = None
        self._context: CodeContext | None = None
        self._spinner: Spinner | None = None
        self._turn_text = ""
        self._router = CommandRouter(
            on_help=self._on_help,
            on_mode=self._on_mode,
            on_provider=self._on_provider,
            on_model=self._on_model,
            on_models=self._on_models,
            on_file=self._on_file,
            on_clear_context=self._on_clear_context,
            on_unknown=self._on_unknown_command,
        )

    def attach(self, runtime: AppRuntime) -> None:
        self._panel = runtime.panel

    def _stop_spinner(self) -> None:
        if self._spinner is not None:
            self._spinner.stop()
            self._spinner = None

    def print_chunk(self, text: str) -> None:
        self._stop_spinner()
        self._turn_text += text
        sys.stdout.write(text)
        sys.stdout.flush()

    def on_turn_started(self, turn: int, max_turns: int) -> None:
        if turn > 1:
            print()
        self._turn_text = ""
        self._stop_spinner()
        self._spinner = Spinner(prefix=_LINE_PREFIX, label=f" Thinking (turn {turn}/{max_turns})...")
        self._spinner.start()

    def on_tool_started(self, name: str, params: dict) -> None:
        self._stop_spinner()
        target = params.get("path", "")
        print(f"\n{_LINE_PREFIX}[{name}] {target}")

    async def _on_help(self) -> None:
        print(f"{_LINE_PREFIX}Available commands:")
        print(f"{_LINE_PREFIX}- /help")
        print(f"{_LINE_PREFIX}- /mode <{'|'.join(m.value for m in Mode)}>")
        print(f"{_LINE_PREFIX}- /provider <id>")
        print(f"{_LINE_PREFIX}- /model <id>")
        print(f"{_LINE_PREFIX}- /models")
        print(f"{_LINE_PREFIX}- /file <path>  (use a file as the code context)")
        print(f"{_LINE_PREFIX}- /clear-context")

    async def _on_mode(self, arg: str) -> None:
        if not arg:
            available = ", ".join(m.value for m in self._panel.mode_controller.available_modes(self._context))
            print(f"{_LINE_PREFIX}Mode: {self._panel.mode_controller.mode.label} (available: {available})")
            return
        try:
            mode = self._panel.mode_controller.set_mode(arg)
        except ValueError as ex:
            print(f"{_LINE_PREFIX}{ex}")
            return
        print(f"{_LINE_PREFIX}Mode: {mode.label} - {self._panel.mode_controller.placeholder}")

    async def _on_provider(self, arg: str) -> None:
        if not arg:
            print(f"{_LINE_PREFIX}Provider: {self._panel.provider_id} (model: {self._panel.model_id})")
            return
        try:
            result = await self._panel.switch_provider(arg)
        except ValueError as ex:
            print(f"{_LINE_PREFIX}{ex}")
            return
        print(f"{_LINE_PREFIX}Provider: {self._panel.provider_label} (model: {self._panel.model_id})")
        if not result.success:
            print(f"{_LINE_PREFIX}Model list unavailable: {result.error}")

    async def _on_model(self, arg: str) -> None:
        if not arg:
            print(f"{_LINE_PREFIX}Usage: /model <id>")
            return
        self._panel.select_model(arg)
        print(f"{_LINE_PREFIX}Model: {self._panel.model_id}")

    async def _on_models(self) -> None:
        result = await self._panel.refresh_models()
        if not result.success:
            print(f"{_LINE_PREFIX}Model list unavailable: {result.error}")
            return
        if not result.models:
            print(f"{_LINE_PREFIX}No models found.")
            return
        for m in result.models:
            marker = "*" if m.id == self._panel.model_id else " "
            print(f"{_LINE_PREFIX}{marker} {m.id}")

    async def _on_file(self, arg: str) -> None:
        if not arg:
            print(f"{_LINE_PREFIX}Usage: /file <path>")
            return
        try:
            code = await self._panel.workspace.read_file(arg)
        except (WorkspaceError, TransportError) as ex:
            print(f"{_LINE_PREFIX}Could not read {arg}: {ex}")
            return
        language = _LANGUAGES.get(Path(arg).suffix.lower(), "")
        self._context = CodeContext(code=code, language=language, file_name=Path(arg).name)
        print(f"{_LINE_PREFIX}Context: {arg} ({len(code):,} chars)")

    async def _on_clear_context(self) -> None:
        self._context = None
        print(f"{_LINE_PREFIX}Context cleared")

    def _on_unknown_command(self, trimmed: str) -> None:
        print(f"{_LINE_PREFIX}Unknown local command: {trimmed}")

    async def handle(self, user_input: str) -> None:
        if await self._router.try_handle(user_input):
            return
        self._panel.input_text = user_input
        self._turn_text = ""
        sys.stdout.write(_LINE_PREFIX)
        sys.stdout.flush()
        if not self._panel.mode_controller.uses_agent_loop:
            self._spinner = Spinner(prefix=_LINE_PREFIX)
            self._spinner.start()
        try:
            reply = await self._panel.send(context=self._context)
        except ModeUnavailableError as ex:
            print(f"{ex}")
            return
        finally:
            self._stop_spinner()
        # Errors, hints and the bound notice never stream.
        if reply is not None and reply.content != self._turn_text:
            sys.stdout.write(reply.content)
        print("\n")


async def main() -> None:
    load_dotenv()

    app = parse_app_config(load_json_config())
    env = resolve_runtime_env()
    repl = Repl()
    runtime = await bootstrap_runtime(
        app,
        env,
        on_chunk=repl.print_chunk,
        on_turn_started=repl.on_turn_started,
        on_tool_started=repl.on_tool_started,
    )
    repl.attach(runtime)
    panel = runtime.panel

    print("idec-agent (type 'exit' to quit, '/help' for commands)")
    print(f"Provider: {panel.provider_label} (model: {panel.model_id or 'none'})")
    if panel.model_error:
        print(f"Models: unavailable ({panel.model_error})")
    print(f"Mode: {panel.mode_controller.mode.label}")
    print("Tools:")
    for name in panel.registry.names:
        print(f"  - {name}")
    if app.workspace_path:
        print(f"Workspace: {app.workspace_path}")
    if runtime.log_descriptions:
        print(f"Logging: {', '.join(runtime.log_descriptions)}")
    print()

    try:
        while True:
            try:
                user_input = await asyncio.to_thread(input, _USER_PROMPT)
            except (EOFError, KeyboardInterrupt):
                break

            trimmed = user_input.strip()

            if trimmed in ("exit", "quit"):
                break

            if not trimmed:
                continue

            try:
                await repl.handle(trimmed)
            except Exception as ex:
                logger.error(f"Unhandled error: {ex}")
    finally:
        await runtime.close()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
