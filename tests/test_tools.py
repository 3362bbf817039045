"""Tests for the tool registry and the built-in tools."""
from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from agentflow.core.errors import ToolExecutionError, ToolNotFoundError
from agentflow.core.models import CancellationToken
from agentflow.services.builtin_tools import EchoTool, ReadFileTool
from agentflow.services.tools import ToolRegistry


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


def test_register_rejects_duplicates_unless_replacing(recording_tool) -> None:
    registry = ToolRegistry([recording_tool("echo")])

    with pytest.raises(ValueError, match="already registered"):
        registry.register(recording_tool("echo"))

    replacement = recording_tool("echo", description="newer")
    registry.register(replacement, replace=True)
    assert registry.get("echo") is replacement
    assert len(registry) == 1


def test_lookup_and_listing(recording_tool) -> None:
    registry = ToolRegistry([recording_tool("zeta", description="last"), recording_tool("alpha", description="first")])

    assert registry.names() == ["alpha", "zeta"]
    assert registry.describe() == {"alpha": "first", "zeta": "last"}
    assert "alpha" in registry
    assert "Alpha" not in registry
    with pytest.raises(ToolNotFoundError):
        registry.get("missing")


def test_unregister(recording_tool) -> None:
    registry = ToolRegistry([recording_tool("echo")])
    registry.unregister("echo")
    assert "echo" not in registry
    with pytest.raises(ToolNotFoundError):
        registry.unregister("echo")


def test_snapshot_taken_before_registration_is_unchanged(recording_tool) -> None:
    registry = ToolRegistry([recording_tool("a")])
    before = registry.describe()
    registry.register(recording_tool("b"))
    assert list(before) == ["a"]
    assert registry.names() == ["a", "b"]


@pytest.mark.anyio
async def test_dispatch_passes_arguments(recording_tool) -> None:
    tool = recording_tool("echo", result={"ok": True})
    registry = ToolRegistry([tool])

    assert await registry.dispatch("echo", {"text": "x"}, CancellationToken()) == {"ok": True}
    assert tool.calls == [{"text": "x"}]


@pytest.mark.anyio
async def test_dispatch_wraps_tool_failures(recording_tool) -> None:
    cause = KeyError("path")
    registry = ToolRegistry([recording_tool("broken", error=cause)])

    with pytest.raises(ToolExecutionError) as excinfo:
        await registry.dispatch("broken", {}, CancellationToken())
    assert excinfo.value.tool_name == "broken"
    assert excinfo.value.cause is cause
    assert excinfo.value.__cause__ is cause


@pytest.mark.anyio
async def test_dispatch_unknown_tool() -> None:
    with pytest.raises(ToolNotFoundError) as excinfo:
        await ToolRegistry().dispatch("ghost", {}, CancellationToken())
    assert excinfo.value.tool_name == "ghost"


@pytest.mark.anyio
async def test_concurrent_dispatch_with_registration(recording_tool) -> None:
    tool = recording_tool("echo")
    registry = ToolRegistry([tool])

    async def add_more() -> None:
        for index in range(20):
            registry.register(recording_tool(f"extra{index}"))
            await asyncio.sleep(0)

    calls = [registry.dispatch("echo", {"n": n}, CancellationToken()) for n in range(20)]
    results = await asyncio.gather(add_more(), *calls)

    assert results[1:] == ["OK"] * 20
    assert len(tool.calls) == 20
    assert len(registry) == 21


@pytest.mark.anyio
async def test_echo_tool() -> None:
    echo = EchoTool()
    assert await echo.run({"text": "hello"}, CancellationToken()) == "hello"
    with pytest.raises(ValueError):
        await echo.run({"text": 3}, CancellationToken())


@pytest.mark.anyio
async def test_read_file_tool_reads_within_root(tmp_path: Path) -> None:
    (tmp_path / "notes.txt").write_text("hello world", encoding="utf-8")
    tool = ReadFileTool(root=tmp_path)

    assert await tool.run({"path": "notes.txt"}, CancellationToken()) == "hello world"
    assert await tool.run({"path": "notes.txt", "max_bytes": 5}, CancellationToken()) == "hello"


@pytest.mark.anyio
async def test_read_file_tool_caps_at_configured_limit(tmp_path: Path) -> None:
    (tmp_path / "big.txt").write_text("abcdefgh", encoding="utf-8")
    tool = ReadFileTool(root=tmp_path, max_bytes=3)

    assert await tool.run({"path": "big.txt", "max_bytes": 100}, CancellationToken()) == "abc"


@pytest.mark.anyio
async def test_read_file_tool_refuses_escape(tmp_path: Path) -> None:
    root = tmp_path / "sandbox"
    root.mkdir()
    (tmp_path / "secret.txt").write_text("nope", encoding="utf-8")
    tool = ReadFileTool(root=root)

    with pytest.raises(PermissionError):
        await tool.run({"path": "../secret.txt"}, CancellationToken())


@pytest.mark.anyio
@pytest.mark.parametrize(
    "arguments",
    [{}, {"path": ""}, {"path": 7}, {"path": "a.txt", "max_bytes": 0}, {"path": "a.txt", "max_bytes": True}],
)
async def test_read_file_tool_validates_arguments(tmp_path: Path, arguments: dict) -> None:
    with pytest.raises(ValueError):
        await ReadFileTool(root=tmp_path).run(arguments, CancellationToken())


@pytest.mark.anyio
async def test_read_file_failure_is_wrapped_by_registry(tmp_path: Path) -> None:
    registry = ToolRegistry([ReadFileTool(root=tmp_path)])

    with pytest.raises(ToolExecutionError) as excinfo:
        await registry.dispatch("read_file", {"path": "missing.txt"}, CancellationToken())
    assert isinstance(excinfo.value.cause, FileNotFoundError)
