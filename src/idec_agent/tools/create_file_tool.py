from typing import Any

from loguru import logger

from idec_agent.errors import TransportError
from idec_agent.workspace import Workspace, WorkspaceError


class CreateFileTool:
    def __init__(self, workspace: Workspace):
        self._workspace = workspace

    @property
    def name(self) -> str:
        return "create_file"

    @property
    def description(self) -> str:
        return "Create a new file with content. Fails if the file already exists; use write_file to change existing files."

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Path of the new file, relative to the project folder",
                },
                "content": {
                    "type": "string",
                    "description": "Initial content of the file (empty if omitted)",
                },
            },
            "required": ["path"],
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
            content = ""
        if not isinstance(content, str):
            return "Error: content parameter must be a string"
        logger.info(f"create_file: {path} ({len(content)} chars)")
        try:
            await self._workspace.create_file(path, content)
        except (WorkspaceError, TransportError) as ex:
            return f"Error creating file: {ex}"
        return f"Successfully created {path}"
