"""Configuration management for agents, flows and model access."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class OpenAIConfig:
    """OpenAI-compatible chat completion endpoint."""

    api_key: str
    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-4"
    max_concurrent: int = 50


@dataclass(frozen=True)
class AzureOpenAIConfig:
    """Azure OpenAI service configuration."""

    api_key: str
    endpoint: str
    api_version: str = "2024-02-15-preview"
    deployment_name: str = "gpt-4"
    max_concurrent: int = 50


@dataclass(frozen=True)
class AgentSettings:
    """Bounds applied to every agent run."""

    max_steps: int = 10
    duplicate_threshold: int = 2
    react_max_rounds: int = 5
    dispatch_max_rounds: int = 5
    event_capacity: int = 100


@dataclass(frozen=True)
class Config:
    """Application configuration loaded from environment variables."""

    openai: Optional[OpenAIConfig] = None
    azure_openai: Optional[AzureOpenAIConfig] = None
    agents: AgentSettings = field(default_factory=AgentSettings)
    temperature: float = 0.7
    max_tokens: Optional[int] = None
    environment: str = "development"

    @property
    def default_model(self) -> str:
        if self.openai:
            return self.openai.model
        if self.azure_openai:
            return self.azure_openai.deployment_name
        return "gpt-4"

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables."""
        openai_key = os.getenv("OPENAI_API_KEY")
        openai_config = None
        if openai_key:
            openai_config = OpenAIConfig(
                api_key=openai_key,
                base_url=os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1"),
                model=os.getenv("OPENAI_MODEL", "gpt-4"),
                max_concurrent=int(os.getenv("OPENAI_MAX_CONCURRENT", "50")),
            )

        azure_key = os.getenv("AZURE_OPENAI_KEY")
        azure_endpoint = os.getenv("AZURE_OPENAI_ENDPOINT")
        azure_config = None
        if azure_key and azure_endpoint:
            azure_config = AzureOpenAIConfig(
                api_key=azure_key,
                endpoint=azure_endpoint,
                api_version=os.getenv("AZURE_OPENAI_API_VERSION", "2024-02-15-preview"),
                deployment_name=os.getenv("AZURE_OPENAI_DEPLOYMENT", "gpt-4"),
                max_concurrent=int(os.getenv("AZURE_OPENAI_MAX_CONCURRENT", "50")),
            )

        agents = AgentSettings(
            max_steps=int(os.getenv("AGENTFLOW_MAX_STEPS", "10")),
            duplicate_threshold=int(os.getenv("AGENTFLOW_DUPLICATE_THRESHOLD", "2")),
            react_max_rounds=int(os.getenv("AGENTFLOW_REACT_MAX_ROUNDS", "5")),
            dispatch_max_rounds=int(os.getenv("AGENTFLOW_DISPATCH_MAX_ROUNDS", "5")),
            event_capacity=int(os.getenv("AGENTFLOW_EVENT_CAPACITY", "100")),
        )

        max_tokens = os.getenv("AGENTFLOW_MAX_TOKENS")
        return cls(
            openai=openai_config,
            azure_openai=azure_config,
            agents=agents,
            temperature=float(os.getenv("AGENTFLOW_TEMPERATURE", "0.7")),
            max_tokens=int(max_tokens) if max_tokens else None,
            environment=os.getenv("ENVIRONMENT", "development"),
        )


# Global config instance
config = Config.from_env()
