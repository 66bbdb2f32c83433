from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

from loguru import logger


class LocalFileService:
    """Host-side file verbs, reported as ``{success, ...}`` dicts.

    Each call runs in a worker thread so the host loop keeps pumping
    stream events while the disk is busy.
    """

    async def read_file(self, file_path: str) -> dict[str, Any]:
        try:
            content = await asyncio.to_thread(Path(file_path).read_text, encoding="utf-8")
        except FileNotFoundError:
            return {"success": False, "error": f"File not found: {file_path}"}
        except (OSError, UnicodeDecodeError) as ex:
            logger.warning(f"read-file failed for {file_path}: {ex}")
            return {"success": False, "error": str(ex)}
        return {"success": True, "content": content}

    async def write_file(self, file_path: str, content: str) -> dict[str, Any]:
        logger.debug(f"write-file called for {file_path}, content length: {len(content)}")
        try:
            await asyncio.to_thread(self._write, Path(file_path), content)
        except OSError as ex:
            logger.warning(f"write-file failed for {file_path}: {ex}")
            return {"success": False, "error": str(ex)}
        return {"success": True}

    async def create_file(self, file_path: str, content: str) -> dict[str, Any]:
        logger.debug(f"create-file called for {file_path}, content length: {len(content)}")
        try:
            await asyncio.to_thread(self._create, Path(file_path), content)
        except FileExistsError:
            return {"success": False, "error": f"File already exists: {file_path}"}
        except OSError as ex:
            logger.warning(f"create-file failed for {file_path}: {ex}")
            return {"success": False, "error": str(ex)}
        return {"success": True}

    async def read_directory(self, dir_path: str) -> dict[str, Any]:
        try:
            entries = await asyncio.to_thread(self._list, Path(dir_path))
        except FileNotFoundError:
            return {"success": False, "error": f"Directory not found: {dir_path}"}
        except OSError as ex:
            logger.warning(f"read-directory failed for {dir_path}: {ex}")
            return {"success": False, "error": str(ex)}
        return {"success": True, "entries": entries}

    @staticmethod
    def _write(path: Path, content: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")

    @staticmethod
    def _create(path: Path, content: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("x", encoding="utf-8") as f:
            f.write(content)

    @staticmethod
    def _list(path: Path) -> list[dict[str, Any]]:
        entries = [
            {"name": child.name, "path": str(child), "is_directory": child.is_dir()}
            for child in path.iterdir()
        ]
        # Directories first, then alphabetical, like the file explorer.
        entries.sort(key=lambda e: (not e["is_directory"], e["name"].lower()))
        return entries
