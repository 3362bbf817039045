"""Agent interface and the tool-using agent driven by a lifecycle loop."""
from __future__ import annotations

import abc
import asyncio
import logging
from typing import Optional, Protocol

from agentflow.agents.lifecycle import AgentLifecycle, LifecycleHooks
from agentflow.config import AgentSettings
from agentflow.core.errors import LifecycleHookError
from agentflow.core.events import EventChannel
from agentflow.core.models import AgentState, CancellationToken, ConversationLog, Message, Role

logger = logging.getLogger(__name__)

NO_ACTION_MESSAGE = "Thinking complete - no action needed"


class Agent(abc.ABC):
    """Contract the flow orchestrator relies on."""

    name: str
    description: str = ""

    @property
    @abc.abstractmethod
    def state(self) -> AgentState:
        """Current lifecycle state."""

    @abc.abstractmethod
    async def act(self, prompt: str, cancel: Optional[CancellationToken] = None) -> str:
        """Perform one full action round trip for the prompt and return its text."""


class Actor(Protocol):
    """Strategy that turns a prompt into an answer using tools."""

    async def run_turn(self, prompt: str, cancel: CancellationToken) -> str:
        ...


class ToolAgent(Agent):
    """Agent composed of a lifecycle state machine, an actor and a conversation log."""

    def __init__(
        self,
        name: str,
        actor: Actor,
        *,
        description: str = "",
        settings: Optional[AgentSettings] = None,
        hooks: Optional[LifecycleHooks] = None,
    ) -> None:
        self.name = name
        self.description = description
        self.settings = settings or AgentSettings()
        self.actor = actor
        self.lifecycle = AgentLifecycle(
            name, hooks, event_capacity=self.settings.event_capacity
        )
        self.memory = ConversationLog()
        self.current_step = 0
        self._resumed = asyncio.Event()
        self._resumed.set()

    @property
    def state(self) -> AgentState:
        return self.lifecycle.state

    @property
    def last_error(self) -> Optional[BaseException]:
        return self.lifecycle.last_error

    @property
    def events(self) -> EventChannel:
        return self.lifecycle.events

    @property
    def execution_time(self) -> float:
        return self.lifecycle.execution_time

    async def think(self) -> bool:
        """Decide whether the current step warrants an action."""
        return len(self.memory) > 0

    async def act(self, prompt: str, cancel: Optional[CancellationToken] = None) -> str:
        return await self.actor.run_turn(prompt, cancel or CancellationToken())

    async def step(self, cancel: Optional[CancellationToken] = None) -> str:
        """Run one think/act cycle outside of the main loop."""
        if not await self.think():
            return NO_ACTION_MESSAGE
        return await self.act(self._next_prompt(), cancel)

    async def run(
        self,
        task: Optional[str] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> AgentState:
        """Drive the agent from IDLE to a terminal state.

        Failures are recorded on ``last_error`` and end the run in ERROR; the
        final state is returned. A failing ``on_init`` hook is raised because
        IDLE has no transition to ERROR.
        """
        cancel = cancel or CancellationToken()
        await self.lifecycle.set_state(AgentState.INITIALIZING)
        if task:
            self.memory.add(Message(role=Role.USER, content=task))
        try:
            await self.lifecycle.set_state(AgentState.RUNNING)
        except LifecycleHookError as exc:
            return await self._fail(exc, cancel)

        self.current_step = 0
        while self.current_step < self.settings.max_steps:
            if await self._checkpoint(cancel):
                return self.state
            self.current_step += 1

            try:
                should_act = await self.think()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                return await self._fail(exc, cancel)
            if not should_act:
                continue

            try:
                result = await self.act(self._next_prompt(), cancel)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                return await self._fail(exc, cancel)

            self.memory.add(Message(role=Role.ASSISTANT, content=result))
            if self.memory.is_stuck(self.settings.duplicate_threshold):
                logger.info("Agent %s stalled at step %d", self.name, self.current_step)
                break

        return await self._complete(cancel)

    async def pause(self) -> None:
        await self.lifecycle.set_state(AgentState.PAUSED)
        self._resumed.clear()

    async def resume(self) -> None:
        await self.lifecycle.set_state(AgentState.RESUMING)
        try:
            await self.lifecycle.set_state(AgentState.RUNNING)
        except LifecycleHookError:
            await self.lifecycle.set_state(AgentState.ERROR)
            raise
        finally:
            self._resumed.set()

    async def terminate(self) -> None:
        """Stop the agent from outside its run loop."""
        await self._stop(run_hooks=True)

    async def _stop(self, run_hooks: bool) -> None:
        if self.state is AgentState.RESUMING:
            await self._resumed.wait()
        if self.state is AgentState.RUNNING:
            await self.lifecycle.set_state(AgentState.PAUSED, run_hook=run_hooks)
        await self.lifecycle.set_state(AgentState.TERMINATED, run_hook=run_hooks)
        self._resumed.set()

    async def reset(self) -> None:
        await self.lifecycle.reset()
        self.memory.clear()
        self.current_step = 0
        self._resumed.set()

    def _next_prompt(self) -> str:
        last = self.memory.last()
        return last.content if last else ""

    async def _checkpoint(self, cancel: CancellationToken) -> bool:
        """Return True when the run must stop, waiting out any pause first."""
        while True:
            if self.state.is_terminal:
                return True
            if cancel.cancelled:
                try:
                    await self.terminate()
                except LifecycleHookError as exc:
                    logger.error("Agent %s stop hook failed: %s", self.name, exc)
                    await self._stop(run_hooks=False)
                return True
            if self.state is AgentState.RESUMING and self._resumed.is_set():
                # resume() gave up half way and left the agent stuck in RESUMING
                return True
            if self.state not in (AgentState.PAUSED, AgentState.RESUMING):
                return False
            await self._wait_for_resume(cancel)

    async def _wait_for_resume(self, cancel: CancellationToken) -> None:
        waiters = {
            asyncio.ensure_future(self._resumed.wait()),
            asyncio.ensure_future(cancel.wait()),
        }
        try:
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                waiter.cancel()

    async def _complete(self, cancel: CancellationToken) -> AgentState:
        if await self._checkpoint(cancel):
            return self.state
        try:
            await self.lifecycle.set_state(AgentState.FINISHED)
        except LifecycleHookError as exc:
            return await self._fail(exc, cancel)
        return self.state

    async def _fail(self, exc: BaseException, cancel: CancellationToken) -> AgentState:
        logger.error("Agent %s failed at step %d: %s", self.name, self.current_step, exc)
        self.lifecycle.last_error = exc
        if await self._checkpoint(cancel):
            return self.state
        try:
            await self.lifecycle.set_state(AgentState.ERROR)
        except LifecycleHookError as hook_error:
            logger.error("Agent %s on_error hook failed: %s", self.name, hook_error)
            # the run's own failure stays on last_error
            self.lifecycle.last_error = exc
            await self.lifecycle.set_state(AgentState.ERROR, run_hook=False)
        return self.state
