from typing import Any

from idec_agent.errors import TransportError
from idec_agent.workspace import Workspace, WorkspaceError


class ListFilesTool:
    def __init__(self, workspace: Workspace):
        self._workspace = workspace

    @property
    def name(self) -> str:
        return "list_files"

    @property
    def description(self) -> str:
        return 'List files in a directory (use "." for the project folder)'

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Directory to list, relative to the project folder",
                },
            },
            "required": [],
        }

    @property
    def is_mutating(self) -> bool:
        return False

    async def execute(self, tool_input: dict[str, Any]) -> str:
        path = tool_input.get("path") or "."
        try:
            entries = await self._workspace.list_directory(path)
        except (WorkspaceError, TransportError) as ex:
            return f"Error listing files: {ex}"
        if not entries:
            return f"No files found in {path}"
        lines = [f"{'[dir] ' if e.is_directory else ''}{e.name}" for e in entries]
        return f"Files in {path}:\n" + "\n".join(lines)
