"""Shared test doubles: scripted chat models, tools, actors and agents."""
from __future__ import annotations

import asyncio
from typing import Iterable, List, Optional, Sequence, Union

import pytest

from agentflow.agents.base import Agent
from agentflow.core.models import AgentState, CancellationToken, JSONObject, JSONValue, Message, Role
from agentflow.services.llm_pool import ChatModel
from agentflow.services.tools import Tool

Reply = Union[str, BaseException]


class ScriptedModel(ChatModel):
    """Chat model replaying canned replies and recording every request."""

    def __init__(self, replies: Iterable[Reply], model_name: str = "scripted") -> None:
        self.model_name = model_name
        self._replies: List[Reply] = list(replies)
        self.calls: List[List[Message]] = []

    async def complete(self, messages: Sequence[Message]) -> Message:
        self.calls.append(list(messages))
        if not self._replies:
            raise AssertionError("ScriptedModel ran out of replies")
        reply = self._replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return Message(role=Role.ASSISTANT, content=reply)


class RecordingTool(Tool):
    def __init__(
        self,
        name: str,
        result: JSONValue = "OK",
        error: Optional[BaseException] = None,
        description: str = "test tool",
    ) -> None:
        self.name = name
        self.description = description
        self._result = result
        self._error = error
        self.calls: List[JSONObject] = []

    async def run(self, arguments: JSONObject, cancel: CancellationToken) -> JSONValue:
        self.calls.append(arguments)
        await asyncio.sleep(0)
        if self._error is not None:
            raise self._error
        return self._result


class ScriptedActor:
    """Actor returning canned answers; exceptions in the script are raised."""

    def __init__(self, replies: Iterable[Reply]) -> None:
        self._replies: List[Reply] = list(replies)
        self.prompts: List[str] = []

    async def run_turn(self, prompt: str, cancel: CancellationToken) -> str:
        self.prompts.append(prompt)
        reply = self._replies.pop(0) if len(self._replies) > 1 else self._replies[0]
        if isinstance(reply, BaseException):
            raise reply
        return reply


class StaticAgent(Agent):
    """Flow participant that answers (or fails) after an optional delay."""

    def __init__(
        self,
        name: str,
        result: str = "",
        error: Optional[BaseException] = None,
        delay: float = 0.0,
    ) -> None:
        self.name = name
        self.description = f"{name} test agent"
        self._result = result
        self._error = error
        self._delay = delay
        self.prompts: List[str] = []

    @property
    def state(self) -> AgentState:
        return AgentState.IDLE

    async def act(self, prompt: str, cancel: Optional[CancellationToken] = None) -> str:
        self.prompts.append(prompt)
        await asyncio.sleep(self._delay)
        if self._error is not None:
            raise self._error
        return self._result


@pytest.fixture
def scripted_model():
    return ScriptedModel


@pytest.fixture
def recording_tool():
    return RecordingTool


@pytest.fixture
def scripted_actor():
    return ScriptedActor


@pytest.fixture
def static_agent():
    return StaticAgent
