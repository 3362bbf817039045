"""Small built-in tools registered by the default runtime."""
from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

from agentflow.core.models import CancellationToken, JSONObject, JSONValue
from agentflow.services.tools import Tool


class EchoTool(Tool):
    """Return the ``text`` argument unchanged."""

    name = "echo"
    description = 'Repeat text back. Input: {"text": "..."}'

    async def run(self, arguments: JSONObject, cancel: CancellationToken) -> JSONValue:
        text = arguments.get("text")
        if not isinstance(text, str):
            raise ValueError("'text' must be a string")
        return text


class ReadFileTool(Tool):
    """Read a UTF-8 text file, optionally restricted to a base directory."""

    name = "read_file"
    description = 'Read a UTF-8 text file. Input: {"path": "...", "max_bytes": 65536}'

    def __init__(self, root: Optional[Path] = None, max_bytes: int = 65536) -> None:
        self._root = root.resolve() if root is not None else None
        self._max_bytes = max_bytes

    async def run(self, arguments: JSONObject, cancel: CancellationToken) -> JSONValue:
        raw_path = arguments.get("path")
        if not isinstance(raw_path, str) or not raw_path:
            raise ValueError("'path' must be a non-empty string")
        limit = arguments.get("max_bytes", self._max_bytes)
        if not isinstance(limit, int) or isinstance(limit, bool) or limit <= 0:
            raise ValueError("'max_bytes' must be a positive integer")
        path = self._resolve(raw_path)
        data = await asyncio.to_thread(self._read, path, min(limit, self._max_bytes))
        return data.decode("utf-8", errors="replace")

    def _resolve(self, raw_path: str) -> Path:
        if self._root is None:
            return Path(raw_path)
        path = (self._root / raw_path).resolve()
        if path != self._root and self._root not in path.parents:
            raise PermissionError(f"{raw_path} is outside {self._root}")
        return path

    @staticmethod
    def _read(path: Path, limit: int) -> bytes:
        with path.open("rb") as handle:
            return handle.read(limit)
