from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from llm.types import LLMResult, ModelConfig
from shared.models import ChatMessage, JSONValue


class Brain(ABC):
    """Abstraction over every chat-completion backend."""

    @abstractmethod
    def generate(
        self,
        messages: Sequence[ChatMessage],
        tools: Sequence[dict[str, JSONValue]] | None = None,
        config: ModelConfig | None = None,
    ) -> LLMResult:
        """Produce the next assistant turn.

        ``tools=None`` sends no tool catalog at all, so the model can only
        answer with text.
        """
        raise NotImplementedError
