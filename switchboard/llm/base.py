from abc import ABC, abstractmethod
from pydantic import BaseModel, Field
from typing import Literal, Optional

from switchboard.budget.models import QuotaMetrics

Level = Literal["low", "medium", "high"]


class CompletionOptions(BaseModel):
    temperature: float = 0.7
    top_p: float = 1.0
    max_tokens: Optional[int] = None  # None leaves it to the provider
    frequency_penalty: float = 0.0
    presence_penalty: float = 0.0
    stop_sequences: Optional[list[str]] = None


class TaskRequirements(BaseModel):
    complexity: Level = "medium"
    type: str = "general"
    expected_response_size: Literal["short", "medium", "long"] = "medium"
    urgency: Level = "medium"


class TokenUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ProviderReply(BaseModel):
    text: str
    provider: str
    model: str
    usage: TokenUsage = Field(default_factory=TokenUsage)
    finish_reason: Optional[str] = None


class CompletionRequest(BaseModel):
    prompt: str
    options: CompletionOptions = Field(default_factory=CompletionOptions)
    requirements: Optional[TaskRequirements] = None


class RequestMetrics(BaseModel):
    latency_ms: float
    tokens: int
    provider: str


class CompletionResult(BaseModel):
    text: str
    provider: str
    model: str
    metrics: RequestMetrics


class SystemMetrics(BaseModel):
    total_tokens: int
    provider: str
    providers: dict[str, QuotaMetrics] = Field(default_factory=dict)


class RotationResult(BaseModel):
    previous_provider: str
    new_provider: str
    metrics: SystemMetrics


class Transport(ABC):
    """Issues a single completion call against one provider."""

    name: str = "base"

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        model: str,
        options: CompletionOptions,
    ) -> ProviderReply:
        pass

    @abstractmethod
    def is_available(self) -> bool:
        pass
