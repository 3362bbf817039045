"""Core data models shared across agent and flow components."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Union

JSONValue = Union[None, bool, int, float, str, List["JSONValue"], Dict[str, "JSONValue"]]
JSONObject = Dict[str, JSONValue]


class AgentState(Enum):
    """Lifecycle states for a single agent run."""

    IDLE = "idle"
    INITIALIZING = "initializing"
    RUNNING = "running"
    PAUSED = "paused"
    RESUMING = "resuming"
    FINISHED = "finished"
    ERROR = "error"
    TERMINATED = "terminated"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({AgentState.FINISHED, AgentState.ERROR, AgentState.TERMINATED})


class Role(str, Enum):
    USER = "user"
    SYSTEM = "system"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True, slots=True)
class Message:
    """One chat turn exchanged with the language model."""

    role: Role
    content: str

    def as_dict(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}


class ConversationLog:
    """Append-only message history owned by one agent."""

    def __init__(self) -> None:
        self._messages: List[Message] = []

    def add(self, message: Message) -> None:
        self._messages.append(message)

    def last(self) -> Optional[Message]:
        return self._messages[-1] if self._messages else None

    def clear(self) -> None:
        self._messages.clear()

    def is_stuck(self, duplicate_threshold: int) -> bool:
        """Return True when the newest content repeats among earlier messages.

        Scans backward from the message before the last one and stops as soon
        as ``duplicate_threshold`` earlier copies have been seen.
        """
        if len(self._messages) < 2:
            return False
        last = self._messages[-1].content
        count = 0
        for message in reversed(self._messages[:-1]):
            if message.content == last:
                count += 1
                if count >= duplicate_threshold:
                    return True
        return False

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages))

    def __len__(self) -> int:
        return len(self._messages)


@dataclass(slots=True)
class AgentEvent:
    """Observation emitted by an agent's state machine."""

    type: str
    payload: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True, slots=True)
class ParsedAction:
    """Tool invocation extracted from one unit of model output."""

    tool_name: str
    arguments: JSONObject = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ReActStep:
    """One thought/action/final-answer unit of a ReAct reply."""

    thought: str
    action: Optional[ParsedAction] = None
    final_answer: Optional[str] = None

    @property
    def is_final(self) -> bool:
        return self.final_answer is not None


@dataclass(frozen=True, slots=True)
class AgentResult:
    """Output of one participating agent during a flow run."""

    agent_name: str
    result: str


class CancellationToken:
    """Cooperative cancellation flag shared by a run and its tool calls."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()
