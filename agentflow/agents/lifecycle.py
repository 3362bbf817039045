"""Per-agent lifecycle state machine with hooks and state-change events."""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, FrozenSet, Optional

from agentflow.core.errors import AgentFlowError, InvalidTransitionError, LifecycleHookError
from agentflow.core.events import DEFAULT_EVENT_CAPACITY, EventChannel
from agentflow.core.models import AgentEvent, AgentState

logger = logging.getLogger(__name__)

Hook = Callable[[], Awaitable[None]]
ErrorHook = Callable[[Optional[BaseException]], Awaitable[None]]

STATE_CHANGE_EVENT = "state_change"

TRANSITIONS: Dict[AgentState, FrozenSet[AgentState]] = {
    AgentState.IDLE: frozenset({AgentState.INITIALIZING, AgentState.TERMINATED}),
    AgentState.INITIALIZING: frozenset({AgentState.RUNNING, AgentState.ERROR}),
    AgentState.RUNNING: frozenset({AgentState.PAUSED, AgentState.FINISHED, AgentState.ERROR}),
    AgentState.PAUSED: frozenset({AgentState.RESUMING, AgentState.TERMINATED}),
    AgentState.RESUMING: frozenset({AgentState.RUNNING, AgentState.ERROR}),
    AgentState.FINISHED: frozenset(),
    AgentState.ERROR: frozenset(),
    AgentState.TERMINATED: frozenset(),
}

_HOOK_FOR_TARGET: Dict[AgentState, str] = {
    AgentState.INITIALIZING: "on_init",
    AgentState.RUNNING: "on_start",
    AgentState.PAUSED: "on_pause",
    AgentState.RESUMING: "on_resume",
    AgentState.TERMINATED: "on_stop",
    AgentState.ERROR: "on_error",
    AgentState.FINISHED: "on_complete",
}


def can_transition(source: AgentState, target: AgentState) -> bool:
    return target in TRANSITIONS[source]


@dataclass(slots=True)
class LifecycleHooks:
    """Optional async callbacks keyed by the state being entered.

    ``on_error`` receives the agent's last error; the others take no
    arguments. A hook must not call back into ``set_state``.
    """

    on_init: Optional[Hook] = None
    on_start: Optional[Hook] = None
    on_pause: Optional[Hook] = None
    on_resume: Optional[Hook] = None
    on_stop: Optional[Hook] = None
    on_error: Optional[ErrorHook] = None
    on_complete: Optional[Hook] = None


class AgentLifecycle:
    """State machine owned by exactly one agent.

    ``set_state`` validates the requested transition, runs the hook for the
    target state, then applies the change and publishes a ``state_change``
    event. A failing hook leaves the state untouched.
    """

    def __init__(
        self,
        agent_name: str,
        hooks: Optional[LifecycleHooks] = None,
        *,
        event_capacity: int = DEFAULT_EVENT_CAPACITY,
    ) -> None:
        self.agent_name = agent_name
        self.hooks = hooks or LifecycleHooks()
        self.events = EventChannel(event_capacity)
        self.last_error: Optional[BaseException] = None
        self._state = AgentState.IDLE
        self._lock = asyncio.Lock()
        self._started_at: Optional[float] = None
        self._ended_at: Optional[float] = None

    @property
    def state(self) -> AgentState:
        return self._state

    @property
    def execution_time(self) -> float:
        """Seconds spent between first entering RUNNING and a terminal state."""
        if self._started_at is None:
            return 0.0
        end = self._ended_at if self._ended_at is not None else time.monotonic()
        return end - self._started_at

    async def set_state(self, target: AgentState, *, run_hook: bool = True) -> None:
        """Move to ``target``; with ``run_hook=False`` the hook is skipped."""
        async with self._lock:
            source = self._state
            if not can_transition(source, target):
                raise InvalidTransitionError(source, target)

            if run_hook:
                await self._run_hook(target)

            self._state = target
            now = time.monotonic()
            if target is AgentState.RUNNING and self._started_at is None:
                self._started_at = now
            elif target.is_terminal:
                self._ended_at = now

            self.events.publish(
                AgentEvent(
                    type=STATE_CHANGE_EVENT,
                    payload={
                        "agent": self.agent_name,
                        "old_state": source.value,
                        "new_state": target.value,
                    },
                )
            )
            logger.debug("Agent %s: %s -> %s", self.agent_name, source.name, target.name)

    async def reset(self) -> None:
        """Return a finished agent to IDLE so it can run again."""
        async with self._lock:
            if self._state is not AgentState.IDLE and not self._state.is_terminal:
                raise AgentFlowError(
                    f"agent {self.agent_name} cannot be reset while {self._state.name}"
                )
            self._state = AgentState.IDLE
            self.last_error = None
            self._started_at = None
            self._ended_at = None

    async def _run_hook(self, target: AgentState) -> None:
        hook_name = _HOOK_FOR_TARGET[target]
        hook = getattr(self.hooks, hook_name)
        if hook is None:
            return
        try:
            if target is AgentState.ERROR:
                await hook(self.last_error)
            else:
                await hook()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self.last_error = exc
            raise LifecycleHookError(hook_name, exc) from exc
