"""Application runtime composition helpers."""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Dict, Optional, Type

from agentflow.agents.base import Agent, ToolAgent
from agentflow.agents.manus import ManusAgent
from agentflow.agents.react import ReActAgent
from agentflow.config import AgentSettings, config
from agentflow.orchestration.flow import FlowOrchestrator, create_flow
from agentflow.services.builtin_tools import EchoTool, ReadFileTool
from agentflow.services.llm_pool import ChatModel, LLMPool, PooledChatModel
from agentflow.services.tools import ToolRegistry

logger = logging.getLogger(__name__)

_AGENT_CATALOG: Dict[str, Type[ToolAgent]] = {
    "manus": ManusAgent,
    "react": ReActAgent,
}


@lru_cache
def get_tool_registry() -> ToolRegistry:
    return ToolRegistry([EchoTool(), ReadFileTool()])


@lru_cache
def get_llm_pool() -> LLMPool:
    pool = LLMPool()

    if config.openai:
        pool.register_openai(config.openai.model, config.openai)
    if config.azure_openai:
        name = config.azure_openai.deployment_name
        if name in pool:
            # the default model prefers OpenAI, so it keeps the shared name
            logger.warning("Azure deployment %s shadowed by the OpenAI model of the same name", name)
        else:
            pool.register_azure_openai(name, config.azure_openai)

    return pool


@lru_cache
def get_chat_model() -> ChatModel:
    return PooledChatModel(
        get_llm_pool(),
        config.default_model,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
    )


def build_agents(
    model: ChatModel,
    tools: ToolRegistry,
    settings: Optional[AgentSettings] = None,
) -> Dict[str, Agent]:
    """Instantiate one agent per catalog entry, sharing the model and tools."""
    settings = settings or config.agents
    return {
        name: agent_cls(model, tools, name=name, settings=settings)
        for name, agent_cls in _AGENT_CATALOG.items()
    }


@lru_cache
def get_agents() -> Dict[str, Agent]:
    return build_agents(get_chat_model(), get_tool_registry())


@lru_cache
def get_flow() -> FlowOrchestrator:
    return create_flow(get_agents(), get_chat_model())
