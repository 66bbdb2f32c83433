from __future__ import annotations

import posixpath
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from idec_agent import channels
from idec_agent.bridge import BoundaryBridge


class WorkspaceError(Exception):
    """A workspace verb failed; the message is safe to show to the model."""


@dataclass(frozen=True)
class DirEntry:
    name: str
    is_directory: bool


@runtime_checkable
class Workspace(Protocol):
    @property
    def root(self) -> str | None: ...

    async def read_file(self, path: str) -> str: ...

    async def write_file(self, path: str, content: str) -> None: ...

    async def create_file(self, path: str, content: str) -> None: ...

    async def list_directory(self, path: str) -> list[DirEntry]: ...


def resolve_path(root: str | None, target: str) -> str:
    """Resolve a tool path against the project folder."""
    target = (target or ".").strip() or "."
    if target.startswith("/") or (len(target) > 1 and target[1] == ":"):
        return target
    if root is None:
        raise WorkspaceError("No project folder open. Please open a folder first.")
    if target == ".":
        return root
    return posixpath.join(root.rstrip("/"), target)


class BridgeWorkspace:
    """File verbs carried over the boundary to the host's file service."""

    def __init__(self, bridge: BoundaryBridge, root: str | None):
        self._bridge = bridge
        self._root = root

    @property
    def root(self) -> str | None:
        return self._root

    def set_root(self, root: str | None) -> None:
        self._root = root

    async def read_file(self, path: str) -> str:
        result = await self._bridge.invoke(channels.READ_FILE, resolve_path(self._root, path))
        if not isinstance(result, dict):
            raise WorkspaceError("No response from file system")
        if not result.get("success") or result.get("content") is None:
            raise WorkspaceError(result.get("error") or "Unknown error")
        return result["content"]

    async def write_file(self, path: str, content: str) -> None:
        result = await self._bridge.invoke(channels.WRITE_FILE, resolve_path(self._root, path), content)
        if not isinstance(result, dict):
            raise WorkspaceError("No response from file system")
        if not result.get("success"):
            raise WorkspaceError(result.get("error") or "Unknown error")

    async def create_file(self, path: str, content: str) -> None:
        """Create a new file; fails if something already exists at ``path``."""
        result = await self._bridge.invoke(channels.CREATE_FILE, resolve_path(self._root, path), content)
        if not isinstance(result, dict):
            raise WorkspaceError("No response from file system")
        if not result.get("success"):
            raise WorkspaceError(result.get("error") or "Unknown error")

    async def list_directory(self, path: str) -> list[DirEntry]:
        result = await self._bridge.invoke(channels.READ_DIRECTORY, resolve_path(self._root, path))
        if not isinstance(result, dict):
            raise WorkspaceError("No response from file system")
        if not result.get("success"):
            raise WorkspaceError(result.get("error") or "Unknown error")
        return [DirEntry(name=e["name"], is_directory=bool(e.get("is_directory"))) for e in result.get("entries", [])]
