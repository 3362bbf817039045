"""Tool abstraction and the registry agents dispatch through."""
from __future__ import annotations

import abc
import asyncio
import logging
import threading
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping

from agentflow.core.errors import ToolExecutionError, ToolNotFoundError
from agentflow.core.models import CancellationToken, JSONObject, JSONValue

logger = logging.getLogger(__name__)


class Tool(abc.ABC):
    """Invocable capability exposed to agents under a unique name."""

    name: str
    description: str = ""

    @abc.abstractmethod
    async def run(self, arguments: JSONObject, cancel: CancellationToken) -> JSONValue:
        """Execute the tool. Raising signals failure."""


class ToolRegistry:
    """Registry of tools keyed by exact name.

    Lookups read an immutable snapshot and never take a lock. Writers build a
    new snapshot under a lock and swap it in.
    """

    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        self._tools: Mapping[str, Tool] = MappingProxyType({})
        self._write_lock = threading.Lock()
        for tool in tools:
            self.register(tool)

    def register(self, tool: Tool, *, replace: bool = False) -> None:
        if not getattr(tool, "name", None):
            raise ValueError("tool must define a non-empty name")
        with self._write_lock:
            if tool.name in self._tools and not replace:
                raise ValueError(f"Tool '{tool.name}' is already registered")
            updated: Dict[str, Tool] = dict(self._tools)
            updated[tool.name] = tool
            self._tools = MappingProxyType(updated)

    def unregister(self, name: str) -> None:
        with self._write_lock:
            if name not in self._tools:
                raise ToolNotFoundError(name)
            updated = dict(self._tools)
            del updated[name]
            self._tools = MappingProxyType(updated)

    def get(self, name: str) -> Tool:
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(name)
        return tool

    def names(self) -> List[str]:
        return sorted(self._tools)

    def describe(self) -> Dict[str, str]:
        """Map each tool name to its description, sorted by name."""
        snapshot = self._tools
        return {name: snapshot[name].description for name in sorted(snapshot)}

    async def dispatch(
        self,
        name: str,
        arguments: JSONObject,
        cancel: CancellationToken,
    ) -> JSONValue:
        """Look up a tool and run it with the parsed arguments."""
        tool = self.get(name)
        try:
            return await tool.run(arguments, cancel)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("Tool %s failed: %s", name, exc)
            raise ToolExecutionError(name, exc) from exc

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
