from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from shared.models import JSONValue, ToolCall

ModelProvider = Literal["local", "openrouter"]


@dataclass(frozen=True)
class ModelConfig:
    provider: ModelProvider
    model: str
    temperature: float = 0.4
    top_p: float | None = None
    max_tokens: int | None = None
    base_url: str | None = None
    api_key: str | None = None
    extra_headers: dict[str, str] = field(default_factory=dict)
    timeout_seconds: int = 60


@dataclass(frozen=True)
class LLMUsage:
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass
class LLMResult:
    text: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    finish_reason: str = "stop"
    usage: LLMUsage | None = None
    raw: dict[str, JSONValue] | None = None

    @property
    def wants_tools(self) -> bool:
        return bool(self.tool_calls)


class LLMServiceError(RuntimeError):
    """Model service answered, but not with something usable."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
