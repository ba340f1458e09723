from __future__ import annotations

import json
import logging
import os
from collections.abc import Sequence
from typing import Final

import requests

from llm.brain_base import Brain
from llm.types import LLMResult, LLMServiceError, LLMUsage, ModelConfig
from shared.models import ChatMessage, JSONValue, ToolCall

DEFAULT_LOCAL_ENDPOINT: Final[str] = "http://localhost:11434/v1/chat/completions"

logger = logging.getLogger("OpsClaw.LLM")


class LocalHttpBrain(Brain):
    """Client for OpenAI-compatible chat endpoints (Ollama, LM Studio, vLLM)."""

    def __init__(
        self,
        default_config: ModelConfig,
        base_url: str | None = None,
        api_key: str | None = None,
    ) -> None:
        self.default_config = default_config
        self.base_url = (
            base_url
            or default_config.base_url
            or os.getenv("LOCAL_LLM_URL")
            or DEFAULT_LOCAL_ENDPOINT
        )
        self.api_key = api_key or default_config.api_key or os.getenv("LOCAL_LLM_API_KEY")

    def _resolve_config(self, override: ModelConfig | None) -> ModelConfig:
        if override:
            return override
        return self.default_config

    def _build_headers(self, config: ModelConfig) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        headers.update(config.extra_headers)
        return headers

    def _build_payload(
        self,
        messages: Sequence[ChatMessage],
        tools: Sequence[dict[str, JSONValue]] | None,
        config: ModelConfig,
    ) -> dict[str, JSONValue]:
        payload: dict[str, JSONValue] = {
            "model": config.model,
            "messages": [message.to_wire() for message in messages],
            "temperature": config.temperature,
        }
        if tools:
            payload["tools"] = list(tools)
        if config.max_tokens is not None:
            payload["max_tokens"] = config.max_tokens
        if config.top_p is not None:
            payload["top_p"] = config.top_p
        return payload

    def generate(
        self,
        messages: Sequence[ChatMessage],
        tools: Sequence[dict[str, JSONValue]] | None = None,
        config: ModelConfig | None = None,
    ) -> LLMResult:
        cfg = self._resolve_config(config)
        headers = self._build_headers(cfg)
        payload = self._build_payload(messages, tools, cfg)

        response = requests.post(
            self.base_url,
            json=payload,
            headers=headers,
            timeout=cfg.timeout_seconds,
        )
        if not response.ok:
            logger.error(
                "llm_http_error",
                extra={"status": response.status_code, "body": response.text[:300]},
            )
            raise LLMServiceError(
                f"AI error ({response.status_code})", status_code=response.status_code
            )
        try:
            data_json = response.json()
        except ValueError as exc:
            raise LLMServiceError("Model returned invalid JSON.") from exc
        if not isinstance(data_json, dict):
            raise LLMServiceError("Model returned a non-object response.")
        return parse_chat_completion(data_json)


def parse_chat_completion(data: dict[str, JSONValue]) -> LLMResult:
    choices_raw = data.get("choices")
    if not isinstance(choices_raw, list) or not choices_raw:
        raise LLMServiceError("No response from AI model.")
    first_choice = choices_raw[0]
    if not isinstance(first_choice, dict):
        raise LLMServiceError("Malformed choices block.")
    message_raw = first_choice.get("message")
    if not isinstance(message_raw, dict):
        raise LLMServiceError("Malformed message block.")
    content_raw = message_raw.get("content")
    content = content_raw if isinstance(content_raw, str) else ""
    finish_reason_raw = first_choice.get("finish_reason")
    finish_reason = finish_reason_raw if isinstance(finish_reason_raw, str) else "stop"

    tool_calls = _parse_tool_calls(message_raw.get("tool_calls"))

    usage: LLMUsage | None = None
    usage_block = data.get("usage")
    if isinstance(usage_block, dict):
        usage = LLMUsage(
            prompt_tokens=int(usage_block.get("prompt_tokens", 0) or 0),
            completion_tokens=int(usage_block.get("completion_tokens", 0) or 0),
            total_tokens=int(usage_block.get("total_tokens", 0) or 0),
        )
        if usage.total_tokens:
            logger.info("llm_usage", extra={"total_tokens": usage.total_tokens})

    return LLMResult(
        text=content,
        tool_calls=tool_calls,
        finish_reason=finish_reason,
        usage=usage,
        raw=data,
    )


def _parse_tool_calls(raw: JSONValue) -> list[ToolCall]:
    if not isinstance(raw, list):
        return []
    calls: list[ToolCall] = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            continue
        function = item.get("function")
        if not isinstance(function, dict):
            continue
        name = function.get("name")
        if not isinstance(name, str) or not name:
            continue
        arguments = function.get("arguments")
        if isinstance(arguments, dict):
            # some local servers hand back already-decoded arguments
            arguments = json.dumps(arguments, ensure_ascii=False)
        call_id = item.get("id")
        calls.append(
            ToolCall(
                id=call_id if isinstance(call_id, str) and call_id else f"call_{index}",
                name=name,
                arguments=arguments if isinstance(arguments, str) else "",
            )
        )
    return calls
