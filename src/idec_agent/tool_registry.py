from __future__ import annotations

from collections.abc import Iterable, Iterator

from loguru import logger

from idec_agent.tool import Tool
from idec_agent.tools.create_file_tool import CreateFileTool
from idec_agent.tools.list_files_tool import ListFilesTool
from idec_agent.tools.read_file_tool import ReadFileTool
from idec_agent.tools.write_file_tool import WriteFileTool
from idec_agent.workspace import Workspace


class ToolRegistry:
    """Closed set of tools the agent may call, looked up by name."""

    def __init__(self, tools: Iterable[Tool] = ()):
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        if tool.name in self._tools:
            logger.warning(f"Replacing registered tool: {tool.name}")
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[Tool]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)


def get_all(workspace: Workspace) -> ToolRegistry:
    return ToolRegistry([
        ListFilesTool(workspace),
        ReadFileTool(workspace),
        WriteFileTool(workspace),
        CreateFileTool(workspace),
    ])
