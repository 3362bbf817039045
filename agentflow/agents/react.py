"""Bounded reason-act-observe loop and the agent built on it."""
from __future__ import annotations

import logging
from typing import List, Optional

from agentflow.agents.base import ToolAgent
from agentflow.agents.dispatch import describe_tools, render_observation
from agentflow.agents.lifecycle import LifecycleHooks
from agentflow.config import AgentSettings
from agentflow.core.models import CancellationToken, Message, Role
from agentflow.core.protocol import format_react_step, parse_react
from agentflow.services.llm_pool import ChatModel
from agentflow.services.tools import ToolRegistry

logger = logging.getLogger(__name__)

REACT_LIMIT_MESSAGE = "Step limit reached, task incomplete"

REACT_SYSTEM_PROMPT = """You are an assistant that follows the ReAct (Reasoning and Acting) pattern.
Solve the problem through a think, act, observe cycle: think first, act,
observe the result, then decide the next step.

Available tools:
{tools}

Reply in this format:
Thought: what to do next
Action: tool name
Action Input: {{"arg1": "value1"}}

When the task is done, reply with:
Thought: I have finished the task
Final Answer: the final result"""


class ReActLoop:
    """Think/act/observe cycle limited to ``max_rounds`` model calls."""

    def __init__(
        self,
        model: ChatModel,
        tools: ToolRegistry,
        *,
        max_rounds: int = 5,
    ) -> None:
        if max_rounds < 1:
            raise ValueError("max_rounds must be at least 1")
        self._model = model
        self._tools = tools
        self.max_rounds = max_rounds

    @property
    def tools(self) -> ToolRegistry:
        return self._tools

    async def run_turn(self, prompt: str, cancel: CancellationToken) -> str:
        messages: List[Message] = [
            Message(
                role=Role.SYSTEM,
                content=REACT_SYSTEM_PROMPT.format(tools=describe_tools(self._tools)),
            ),
            Message(role=Role.USER, content=prompt),
        ]

        for _ in range(self.max_rounds):
            reply = await self._model.complete(messages)
            step = parse_react(reply.content)
            if step.final_answer is not None:
                return step.final_answer

            action = step.action
            observation = await self._tools.dispatch(action.tool_name, action.arguments, cancel)
            messages.append(Message(role=Role.ASSISTANT, content=format_react_step(step)))
            messages.append(
                Message(role=Role.SYSTEM, content=f"Observation: {render_observation(observation)}")
            )

        logger.info("ReAct loop exhausted %d rounds without a final answer", self.max_rounds)
        return REACT_LIMIT_MESSAGE


class ReActAgent(ToolAgent):
    """Agent that answers through multi-step reasoning with tool feedback."""

    def __init__(
        self,
        model: ChatModel,
        tools: ToolRegistry,
        *,
        name: str = "react",
        settings: Optional[AgentSettings] = None,
        hooks: Optional[LifecycleHooks] = None,
    ) -> None:
        settings = settings or AgentSettings()
        super().__init__(
            name,
            ReActLoop(model, tools, max_rounds=settings.react_max_rounds),
            description=(
                "ReAct agent. Works in a think, act, observe cycle. Suited to "
                "multi-step reasoning and exploratory tasks that need repeated attempts."
            ),
            settings=settings,
            hooks=hooks,
        )
