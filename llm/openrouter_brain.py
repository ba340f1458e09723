from __future__ import annotations

import os
from typing import Final

from llm.local_http_brain import LocalHttpBrain
from llm.types import LLMServiceError, ModelConfig

OPENROUTER_ENDPOINT: Final[str] = "https://openrouter.ai/api/v1/chat/completions"


class OpenRouterBrain(LocalHttpBrain):
    """OpenRouter client; same wire format as the local endpoint, key is mandatory."""

    def __init__(self, api_key: str | None, default_config: ModelConfig) -> None:
        super().__init__(
            default_config=default_config,
            base_url=default_config.base_url or OPENROUTER_ENDPOINT,
            api_key=api_key or default_config.api_key or os.getenv("OPENROUTER_API_KEY"),
        )

    def _build_headers(self, config: ModelConfig) -> dict[str, str]:
        if not self.api_key:
            raise LLMServiceError("OpenRouter API key is not set (env OPENROUTER_API_KEY).")
        return super()._build_headers(config)
