import posixpath
from typing import Any

from loguru import logger

from idec_agent.errors import TransportError
from idec_agent.workspace import Workspace, WorkspaceError


class ReadFileTool:
    def __init__(self, workspace: Workspace):
        self._workspace = workspace

    @property
    def name(self) -> str:
        return "read_file"

    @property
    def description(self) -> str:
        return "Read a file's contents"

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Path to the file, relative to the project folder",
                },
            },
            "required": ["path"],
        }

    @property
    def is_mutating(self) -> bool:
        return False

    async def execute(self, tool_input: dict[str, Any]) -> str:
        path = tool_input.get("path")
        if not path:
            return "Error: path parameter required"
        try:
            content = await self._workspace.read_file(path)
        except (WorkspaceError, TransportError) as ex:
            logger.debug(f"read_file failed for {path}: {ex}")
            return f"Error reading file: {ex}"
        ext = posixpath.splitext(path)[1].lstrip(".")
        return f"Contents of {path}:\n```{ext}\n{content}\n```"
