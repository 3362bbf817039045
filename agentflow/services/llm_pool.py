"""LLM client pool for shared model access with concurrency control."""
from __future__ import annotations

import abc
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional, Sequence, Union

from openai import AsyncAzureOpenAI, AsyncOpenAI

from agentflow.config import AzureOpenAIConfig, OpenAIConfig
from agentflow.core.errors import ModelCallError
from agentflow.core.models import Message, Role

logger = logging.getLogger(__name__)

ClientConfig = Union[OpenAIConfig, AzureOpenAIConfig]


class LLMPool:
    """Manages shared LLM clients with concurrency limiting."""

    def __init__(self) -> None:
        self._configs: Dict[str, ClientConfig] = {}
        self._clients: Dict[str, Any] = {}
        self._semaphores: Dict[str, asyncio.Semaphore] = {}

    def register_openai(self, name: str, config: OpenAIConfig) -> None:
        """Register an OpenAI-compatible model endpoint."""
        self._register(name, config)

    def register_azure_openai(self, name: str, config: AzureOpenAIConfig) -> None:
        """Register an Azure OpenAI model configuration."""
        self._register(name, config)

    def register_client(self, name: str, client: Any, max_concurrent: int = 50) -> None:
        """Register an already constructed client object."""
        self._clients[name] = client
        self._semaphores[name] = asyncio.Semaphore(max_concurrent)

    def __contains__(self, name: object) -> bool:
        return name in self._semaphores

    def _register(self, name: str, config: ClientConfig) -> None:
        self._configs[name] = config
        self._clients.pop(name, None)
        self._semaphores[name] = asyncio.Semaphore(config.max_concurrent)

    @asynccontextmanager
    async def acquire(self, model_name: str) -> AsyncIterator[Any]:
        """Acquire access to a model client with concurrency control."""
        if model_name not in self._semaphores:
            raise KeyError(f"Model '{model_name}' not registered in LLM pool")

        async with self._semaphores[model_name]:
            # Lazy initialization on first use
            if model_name not in self._clients:
                self._clients[model_name] = self._create_client(self._configs[model_name])
            yield self._clients[model_name]

    @staticmethod
    def _create_client(config: ClientConfig) -> Any:
        if isinstance(config, AzureOpenAIConfig):
            return AsyncAzureOpenAI(
                api_key=config.api_key,
                api_version=config.api_version,
                azure_endpoint=config.endpoint,
            )
        return AsyncOpenAI(api_key=config.api_key, base_url=config.base_url)


class ChatModel(abc.ABC):
    """Single request/response chat completion."""

    model_name: str

    @abc.abstractmethod
    async def complete(self, messages: Sequence[Message]) -> Message:
        """Send an ordered conversation and return the assistant reply."""


class PooledChatModel(ChatModel):
    """Chat model backed by a client checked out of an :class:`LLMPool`."""

    def __init__(
        self,
        llm_pool: LLMPool,
        model_name: str,
        *,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> None:
        self._llm_pool = llm_pool
        self.model_name = model_name
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def complete(self, messages: Sequence[Message]) -> Message:
        request: Dict[str, Any] = {
            "model": self.model_name,
            "messages": [message.as_dict() for message in messages],
            "temperature": self.temperature,
        }
        if self.max_tokens is not None:
            request["max_tokens"] = self.max_tokens

        try:
            async with self._llm_pool.acquire(self.model_name) as client:
                response = await client.chat.completions.create(**request)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("Completion on %s failed: %s", self.model_name, exc)
            raise ModelCallError(self.model_name, exc) from exc

        if not response.choices:
            raise ModelCallError(self.model_name, ValueError("response contained no choices"))
        content = response.choices[0].message.content or ""
        return Message(role=Role.ASSISTANT, content=content)
