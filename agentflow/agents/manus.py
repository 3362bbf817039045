"""General-purpose tool-using agent."""
from __future__ import annotations

from typing import Optional

from agentflow.agents.base import ToolAgent
from agentflow.agents.dispatch import ToolDispatcher
from agentflow.agents.lifecycle import LifecycleHooks
from agentflow.config import AgentSettings
from agentflow.services.llm_pool import ChatModel
from agentflow.services.tools import ToolRegistry

MANUS_SYSTEM_PROMPT = """You are a powerful assistant that is good at solving complex problems with tools.
Analyse the user's request carefully, choose a suitable tool and run it.
If the task needs several steps, go one step at a time and make sure each one succeeds."""


class ManusAgent(ToolAgent):
    """Agent that answers each turn through the tool dispatcher."""

    def __init__(
        self,
        model: ChatModel,
        tools: ToolRegistry,
        *,
        name: str = "manus",
        settings: Optional[AgentSettings] = None,
        hooks: Optional[LifecycleHooks] = None,
    ) -> None:
        settings = settings or AgentSettings()
        super().__init__(
            name,
            ToolDispatcher(
                model,
                tools,
                system_prompt=MANUS_SYSTEM_PROMPT,
                max_rounds=settings.dispatch_max_rounds,
            ),
            description=(
                "General agent. Good at solving complex problems with tools, "
                "tasks that combine several tools, file handling and precise execution."
            ),
            settings=settings,
            hooks=hooks,
        )
