"""Model-driven tool dispatch: prompt, parse the action, run the tool, report back."""
from __future__ import annotations

import json
import logging
from typing import List

from agentflow.core.models import CancellationToken, JSONValue, Message, Role
from agentflow.core.protocol import contains_action, parse_action
from agentflow.services.llm_pool import ChatModel
from agentflow.services.tools import ToolRegistry

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are a capable assistant that solves problems by calling tools.\n"
    "Analyse the request carefully, pick the right tool and run it.\n"
    "If the task needs several steps, take them one at a time."
)

DISPATCH_LIMIT_MESSAGE = "Tool round limit reached, task incomplete"

_ACTION_FORMAT = (
    "Reply in exactly this format:\n"
    "Thought: what to do next\n"
    "Action: tool name\n"
    'Action Input: {"arg1": "value1", "arg2": "value2"}'
)


def describe_tools(tools: ToolRegistry) -> str:
    lines = [f"- {name}: {description}" for name, description in tools.describe().items()]
    return "\n".join(lines) if lines else "(no tools available)"


def render_observation(value: JSONValue) -> str:
    """Serialize a tool result for inclusion in a prompt."""
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)


class ToolDispatcher:
    """Runs one act turn through the action protocol.

    The model is asked for an action, the action is dispatched, and the
    observation is fed back. A reply that still contains ``Action:`` starts
    another round; any other reply is the answer for the turn.
    """

    def __init__(
        self,
        model: ChatModel,
        tools: ToolRegistry,
        *,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        max_rounds: int = 5,
    ) -> None:
        if max_rounds < 1:
            raise ValueError("max_rounds must be at least 1")
        self._model = model
        self._tools = tools
        self.system_prompt = system_prompt
        self.max_rounds = max_rounds

    @property
    def tools(self) -> ToolRegistry:
        return self._tools

    def build_prompt(self, prompt: str) -> str:
        return (
            "Available tools:\n"
            f"{describe_tools(self._tools)}\n\n"
            f"{_ACTION_FORMAT}\n\n"
            f"User input: {prompt}"
        )

    async def run_turn(self, prompt: str, cancel: CancellationToken) -> str:
        messages: List[Message] = [
            Message(role=Role.SYSTEM, content=self.system_prompt),
            Message(role=Role.USER, content=self.build_prompt(prompt)),
        ]
        reply = await self._model.complete(messages)

        for round_no in range(1, self.max_rounds + 1):
            action = parse_action(reply.content)
            logger.debug("Round %d dispatching %s", round_no, action.tool_name)
            observation = await self._tools.dispatch(action.tool_name, action.arguments, cancel)

            messages.append(reply)
            messages.append(Message(role=Role.USER, content=_result_prompt(observation)))
            reply = await self._model.complete(messages)
            if not contains_action(reply.content):
                return reply.content

        logger.info("Dispatch stopped after %d rounds", self.max_rounds)
        return DISPATCH_LIMIT_MESSAGE


def _result_prompt(observation: JSONValue) -> str:
    return (
        f"Tool result: {render_observation(observation)}\n\n"
        "Decide the next step from this result. To call another tool, reply with:\n"
        f"{_ACTION_FORMAT}\n\n"
        "If the task is complete, reply with the final result only."
    )
