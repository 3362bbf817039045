"""Tests for the HTTP surface."""
from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from agentflow.core.errors import ModelCallError, ToolExecutionError
from agentflow.main import app
from agentflow.orchestration.flow import FlowOrchestrator
from agentflow.runtime import get_agents, get_flow, get_tool_registry
from agentflow.services.tools import ToolRegistry


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _override_flow(flow: FlowOrchestrator) -> None:
    app.dependency_overrides[get_flow] = lambda: flow


def test_health(client) -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_execute_flow(client, scripted_model, static_agent) -> None:
    model = scripted_model([json.dumps({"agents": ["manus"], "reason": "x"}), "merged"])
    _override_flow(FlowOrchestrator(agents={"manus": static_agent("manus", "R1")}, model=model))

    response = client.post("/flows", json={"task": "do it"})

    assert response.status_code == 200
    assert response.json() == {"result": "merged"}


def test_execute_flow_rejects_empty_task(client) -> None:
    assert client.post("/flows", json={"task": ""}).status_code == 422


def test_failing_tool_maps_to_failed_dependency(client, scripted_model, static_agent) -> None:
    error = ToolExecutionError("read_file", OSError("gone"))
    model = scripted_model([json.dumps({"agents": ["manus"]})])
    _override_flow(FlowOrchestrator(agents={"manus": static_agent("manus", error=error)}, model=model))

    response = client.post("/flows", json={"task": "read"})

    assert response.status_code == 424
    assert "read_file" in response.json()["detail"]


def test_unknown_selected_agent_maps_to_bad_gateway(client, scripted_model, static_agent) -> None:
    model = scripted_model([json.dumps({"agents": ["ghost"]})])
    _override_flow(FlowOrchestrator(agents={"manus": static_agent("manus", "x")}, model=model))

    assert client.post("/flows", json={"task": "t"}).status_code == 502


def test_model_failure_maps_to_bad_gateway(client, scripted_model, static_agent) -> None:
    model = scripted_model([ModelCallError("gpt-4", ConnectionError("down"))])
    _override_flow(FlowOrchestrator(agents={"manus": static_agent("manus", "x")}, model=model))

    assert client.post("/flows", json={"task": "t"}).status_code == 502


def test_list_agents_and_act(client, static_agent) -> None:
    manus = static_agent("manus", "answer")
    app.dependency_overrides[get_agents] = lambda: {"manus": manus}

    listing = client.get("/agents").json()
    assert listing == [{"name": "manus", "description": "manus test agent", "state": "idle"}]

    response = client.post("/agents/manus/act", json={"prompt": "hi"})
    assert response.json() == {"agent": "manus", "result": "answer"}
    assert manus.prompts == ["hi"]

    assert client.post("/agents/ghost/act", json={"prompt": "hi"}).status_code == 404


def test_list_tools(client, recording_tool) -> None:
    tools = ToolRegistry([recording_tool("read_file", description="reads"), recording_tool("echo")])
    app.dependency_overrides[get_tool_registry] = lambda: tools

    assert client.get("/tools").json() == [
        {"name": "echo", "description": "test tool"},
        {"name": "read_file", "description": "reads"},
    ]
