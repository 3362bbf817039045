"""Flow orchestrator: select agents, run them concurrently, merge their answers."""
from __future__ import annotations

import abc
import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Set

from pydantic import BaseModel, Field, ValidationError

from agentflow.agents.base import Agent
from agentflow.core.errors import (
    AgentExecutionError,
    AgentSelectionError,
    FlowCancelledError,
    UnknownAgentError,
)
from agentflow.core.models import AgentResult, CancellationToken, Message, Role
from agentflow.services.llm_pool import ChatModel

logger = logging.getLogger(__name__)

SELECTION_PROMPT = """You are a task analysis expert. Analyse the user's task and choose the agents that should carry it out.
Consider what the task needs and pick the most suitable combination of agents.

Available agents:
{catalog}

Return the participating agents as JSON, for example:
{{"agents": ["manus", "react"], "reason": "the task needs multi-step reasoning and tool use"}}"""

INTEGRATION_PROMPT = """You are a result integration expert. Combine the results produced by several agents into one final answer.
Read each agent's output carefully, keep what is useful, and give one complete, coherent answer."""


class AgentSelection(BaseModel):
    """Agents chosen by the model for a task."""

    agents: List[str] = Field(default_factory=list)
    reason: str = ""


@dataclass(frozen=True, slots=True)
class WorkerOutcome:
    """What one flow worker posts on the shared result queue."""

    agent_name: str
    result: Optional[str] = None
    error: Optional[BaseException] = None


def parse_selection(content: str) -> AgentSelection:
    """Parse the model's selection reply, tolerating markdown code fences."""
    payload = content.strip()
    if "```json" in payload:
        payload = payload.split("```json")[1].split("```")[0].strip()
    elif "```" in payload:
        payload = payload.split("```")[1].split("```")[0].strip()

    try:
        return AgentSelection.model_validate_json(payload)
    except ValidationError as exc:
        raise AgentSelectionError(
            f"invalid agent selection ({exc.error_count()} errors)", raw=content
        ) from exc


class Flow(abc.ABC):
    """One orchestration run over a set of agents."""

    @abc.abstractmethod
    async def execute(self, task: str, cancel: Optional[CancellationToken] = None) -> str:
        """Run the task and return the merged answer."""


class FlowOrchestrator(Flow):
    """Select participating agents, fan the task out to them, merge the results.

    Holds no state between calls. Any failing worker fails the whole call
    once every worker has finished; partial results are discarded.
    """

    def __init__(self, *, agents: Mapping[str, Agent], model: ChatModel) -> None:
        self._agents: Dict[str, Agent] = dict(agents)
        self._model = model

    @property
    def agent_names(self) -> List[str]:
        return list(self._agents)

    def catalog(self) -> str:
        return "\n".join(
            f"- {name}: {agent.description or 'no description'}"
            for name, agent in self._agents.items()
        )

    async def execute(self, task: str, cancel: Optional[CancellationToken] = None) -> str:
        logger.info("Executing flow for task: %s", task)
        selection = await self.select_agents(task)
        results = await self.run_agents(selection.agents, task, cancel)
        return await self.integrate_results(task, results)

    async def select_agents(self, task: str) -> AgentSelection:
        """Ask the model which agents should take part, validating every name."""
        reply = await self._model.complete(
            [
                Message(role=Role.SYSTEM, content=SELECTION_PROMPT.format(catalog=self.catalog())),
                Message(role=Role.USER, content=task),
            ]
        )
        selection = parse_selection(reply.content)

        for agent_name in selection.agents:
            if agent_name not in self._agents:
                raise UnknownAgentError(agent_name)
        if not selection.agents:
            raise AgentSelectionError("no agents selected", raw=reply.content)

        unique = list(dict.fromkeys(selection.agents))
        logger.info("Selected agents %s: %s", ", ".join(unique), selection.reason)
        return AgentSelection(agents=unique, reason=selection.reason)

    async def run_agents(
        self,
        agent_names: List[str],
        task: str,
        cancel: Optional[CancellationToken] = None,
    ) -> List[AgentResult]:
        """Run one worker per agent and return results in completion order.

        Raises:
            AgentExecutionError: for the first worker error to arrive.
            FlowCancelledError: when ``cancel`` fires before all workers finish.
        """
        for agent_name in agent_names:
            if agent_name not in self._agents:
                raise UnknownAgentError(agent_name)
        if cancel is not None and cancel.cancelled:
            raise FlowCancelledError()

        outcomes: asyncio.Queue[WorkerOutcome] = asyncio.Queue()
        workers = [
            asyncio.create_task(
                self._worker(agent_name, task, cancel, outcomes),
                name=f"flow-worker-{agent_name}",
            )
            for agent_name in agent_names
        ]
        try:
            await self._join(workers, cancel)
        finally:
            for worker in workers:
                if not worker.done():
                    worker.cancel()

        results: List[AgentResult] = []
        first_error: Optional[WorkerOutcome] = None
        while not outcomes.empty():
            outcome = outcomes.get_nowait()
            if outcome.error is not None:
                if first_error is None:
                    first_error = outcome
            else:
                results.append(AgentResult(agent_name=outcome.agent_name, result=outcome.result or ""))

        if first_error is not None:
            raise AgentExecutionError(first_error.agent_name, first_error.error) from first_error.error
        return results

    async def integrate_results(self, task: str, results: List[AgentResult]) -> str:
        """Ask the model once to merge every agent result into one answer."""
        results_text = "".join(
            f"Result from {result.agent_name}:\n{result.result}\n\n" for result in results
        )
        reply = await self._model.complete(
            [
                Message(role=Role.SYSTEM, content=INTEGRATION_PROMPT),
                Message(
                    role=Role.USER,
                    content=f"Original task: {task}\n\nAgent results:\n{results_text}",
                ),
            ]
        )
        return reply.content

    async def _worker(
        self,
        agent_name: str,
        task: str,
        cancel: Optional[CancellationToken],
        outcomes: asyncio.Queue[WorkerOutcome],
    ) -> None:
        logger.info("Agent %s started", agent_name)
        try:
            result = await self._agents[agent_name].act(task, cancel)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("Agent %s failed: %s", agent_name, exc)
            outcomes.put_nowait(WorkerOutcome(agent_name=agent_name, error=exc))
        else:
            outcomes.put_nowait(WorkerOutcome(agent_name=agent_name, result=result))

    @staticmethod
    async def _join(workers: List[asyncio.Task], cancel: Optional[CancellationToken]) -> None:
        if cancel is None:
            await asyncio.wait(workers)
            return

        stop = asyncio.ensure_future(cancel.wait())
        pending: Set[asyncio.Future] = set(workers)
        try:
            while pending:
                done, _ = await asyncio.wait(
                    pending | {stop}, return_when=asyncio.FIRST_COMPLETED
                )
                pending -= done
                if stop in done and pending:
                    for worker in pending:
                        worker.cancel()
                    await asyncio.wait(pending)
                    raise FlowCancelledError(len(pending))
        finally:
            stop.cancel()


def create_flow(agents: Mapping[str, Agent], model: ChatModel) -> FlowOrchestrator:
    """Build a flow over a non-empty agent mapping."""
    if not agents:
        raise ValueError("a flow needs at least one agent")
    return FlowOrchestrator(agents=agents, model=model)
