from typing import Any

from loguru import logger

from idec_agent.errors import TransportError
from idec_agent.workspace import Workspace, WorkspaceError


class WriteFileTool:
    def __init__(self, workspace: Workspace):
        self._workspace = workspace

    @property
    def name(self) -> str:
        return "write_file"

    @property
    def description(self) -> str:
        return "Write content to a file, creating it if it doesn't exist. Always pass the full file content."

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Path to the file, relative to the project folder",
                },
                "content": {
                    "type": "string",
                    "description": "The complete content to write to the file",
                },
            },
            "required": ["path", "content"],
        }

    @property
    def is_mutating(self) -> bool:
        return True

    async def execute(self, tool_input: dict[str, Any]) -> str:
        path = tool_input.get("path")
        if not path:
            return "Error: path parameter required"
        content = tool_input.get("content")
        if content is None:
            return "Error: content parameter required"
        if not isinstance(content, str):
            return "Error: content parameter must be a string"
        logger.info(f"write_file: {path} ({len(content)} chars)")
        try:
            await self._workspace.write_file(path, content)
        except (WorkspaceError, TransportError) as ex:
            return f"Error writing file: {ex}"
        return f"Successfully wrote to {path}"
