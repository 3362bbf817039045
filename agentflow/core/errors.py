"""Exception hierarchy raised by the orchestration core."""
from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from agentflow.core.models import AgentState


class AgentFlowError(Exception):
    """Base class for every error raised by agentflow."""


class InvalidTransitionError(AgentFlowError):
    """Raised when a lifecycle transition is not in the transition table."""

    def __init__(self, source: AgentState, target: AgentState) -> None:
        if source.is_terminal:
            message = f"cannot transition from terminal state {source.name}"
        else:
            message = f"invalid state transition from {source.name} to {target.name}"
        super().__init__(message)
        self.source = source
        self.target = target


class LifecycleHookError(AgentFlowError):
    """Raised when a lifecycle hook fails and aborts its transition."""

    def __init__(self, hook: str, cause: BaseException) -> None:
        super().__init__(f"lifecycle hook {hook} failed: {cause}")
        self.hook = hook
        self.cause = cause


class ActionParseError(AgentFlowError):
    """Raised when model output does not follow the action protocol.

    The offending text is kept on ``raw`` so callers can log it.
    """

    def __init__(self, message: str, raw: str) -> None:
        super().__init__(f"{message}: {raw!r}")
        self.reason = message
        self.raw = raw


class AgentSelectionError(ActionParseError):
    """Raised when the agent-selection reply cannot be used."""


class ToolNotFoundError(AgentFlowError):
    def __init__(self, tool_name: str) -> None:
        super().__init__(f"tool {tool_name!r} is not registered")
        self.tool_name = tool_name


class ToolExecutionError(AgentFlowError):
    def __init__(self, tool_name: str, cause: BaseException) -> None:
        super().__init__(f"tool {tool_name!r} failed: {cause}")
        self.tool_name = tool_name
        self.cause = cause


class ModelCallError(AgentFlowError):
    def __init__(self, model_name: str, cause: BaseException) -> None:
        super().__init__(f"model {model_name!r} call failed: {cause}")
        self.model_name = model_name
        self.cause = cause


class UnknownAgentError(AgentFlowError):
    def __init__(self, agent_name: str) -> None:
        super().__init__(f"unknown agent {agent_name!r}")
        self.agent_name = agent_name


class AgentExecutionError(AgentFlowError):
    """Raised by a flow when one of its workers failed."""

    def __init__(self, agent_name: str, cause: BaseException) -> None:
        super().__init__(f"agent {agent_name!r} failed: {cause}")
        self.agent_name = agent_name
        self.cause = cause


class FlowCancelledError(AgentFlowError):
    def __init__(self, pending: Optional[int] = None) -> None:
        detail = f" with {pending} workers still running" if pending else ""
        super().__init__(f"flow cancelled{detail}")
        self.pending = pending
