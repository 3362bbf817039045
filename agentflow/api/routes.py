"""HTTP API exposing agents, tools and flow execution."""
from __future__ import annotations

from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from agentflow.agents.base import Agent
from agentflow.core.errors import (
    ActionParseError,
    AgentFlowError,
    ModelCallError,
    ToolExecutionError,
    ToolNotFoundError,
    UnknownAgentError,
)
from agentflow.orchestration.flow import FlowOrchestrator
from agentflow.runtime import get_agents, get_flow, get_tool_registry
from agentflow.services.tools import ToolRegistry

router = APIRouter(tags=["agentflow"])


class FlowRequest(BaseModel):
    task: str = Field(..., min_length=1, description="Task to hand to the selected agents")


class FlowResponse(BaseModel):
    result: str


class ActRequest(BaseModel):
    prompt: str = Field(..., min_length=1, description="Prompt for a single act turn")


class ActResponse(BaseModel):
    agent: str
    result: str


class AgentResponse(BaseModel):
    name: str
    description: str
    state: str

    @classmethod
    def from_agent(cls, agent: Agent) -> "AgentResponse":
        return cls(name=agent.name, description=agent.description, state=agent.state.value)


class ToolResponse(BaseModel):
    name: str
    description: str


def _http_error(exc: AgentFlowError) -> HTTPException:
    if isinstance(exc, (ModelCallError, ActionParseError, UnknownAgentError)):
        code = status.HTTP_502_BAD_GATEWAY
    elif isinstance(exc, (ToolNotFoundError, ToolExecutionError)):
        code = status.HTTP_424_FAILED_DEPENDENCY
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=code, detail=str(exc))


@router.post("/flows", response_model=FlowResponse)
async def execute_flow(
    request: FlowRequest,
    flow: FlowOrchestrator = Depends(get_flow),
) -> FlowResponse:
    try:
        result = await flow.execute(request.task)
    except AgentFlowError as exc:
        cause = exc.cause if isinstance(getattr(exc, "cause", None), AgentFlowError) else exc
        raise _http_error(cause) from exc
    return FlowResponse(result=result)


@router.get("/agents", response_model=List[AgentResponse])
async def list_agents(agents: Dict[str, Agent] = Depends(get_agents)) -> List[AgentResponse]:
    return [AgentResponse.from_agent(agent) for agent in agents.values()]


@router.post("/agents/{agent_name}/act", response_model=ActResponse)
async def act(
    agent_name: str,
    request: ActRequest,
    agents: Dict[str, Agent] = Depends(get_agents),
) -> ActResponse:
    agent = agents.get(agent_name)
    if agent is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown agent")
    try:
        result = await agent.act(request.prompt)
    except AgentFlowError as exc:
        raise _http_error(exc) from exc
    return ActResponse(agent=agent_name, result=result)


@router.get("/tools", response_model=List[ToolResponse])
async def list_tools(tools: ToolRegistry = Depends(get_tool_registry)) -> List[ToolResponse]:
    return [
        ToolResponse(name=name, description=description)
        for name, description in tools.describe().items()
    ]
