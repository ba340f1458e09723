from __future__ import annotations

from typing import Any

import pytest

from llm.brain_factory import create_brain
from llm.local_http_brain import LocalHttpBrain, parse_chat_completion
from llm.openrouter_brain import OpenRouterBrain
from llm.types import LLMServiceError, ModelConfig
from shared.models import ChatMessage, ToolCall


def _mock_response(payload: Any, status_code: int = 200):
    class Response:
        def __init__(self) -> None:
            self.status_code = status_code
            self.ok = status_code < 400
            self.text = str(payload)

        def json(self) -> Any:
            return payload

    return Response()


def test_openrouter_generate(monkeypatch) -> None:
    calls: dict[str, Any] = {}

    def fake_post(url, json, headers, timeout):  # noqa: ANN001
        calls["url"] = url
        calls["json"] = json
        calls["headers"] = headers
        return _mock_response(
            {
                "choices": [{"message": {"content": "hi"}, "finish_reason": "stop"}],
                "usage": {"prompt_tokens": 1, "completion_tokens": 1, "total_tokens": 2},
            }
        )

    monkeypatch.setattr("llm.local_http_brain.requests.post", fake_post)
    config = ModelConfig(provider="openrouter", model="test-model", temperature=0.1)
    brain = OpenRouterBrain(api_key="test-key", default_config=config)

    result = brain.generate([ChatMessage(role="user", content="ping")])
    assert result.text == "hi"
    assert result.usage is not None and result.usage.total_tokens == 2
    assert calls["url"] == "https://openrouter.ai/api/v1/chat/completions"
    assert calls["headers"]["Authorization"] == "Bearer test-key"
    assert calls["json"]["model"] == "test-model"
    assert "tools" not in calls["json"]


def test_local_http_generate_with_tools(monkeypatch) -> None:
    calls: dict[str, Any] = {}

    def fake_post(url, json, headers, timeout):  # noqa: ANN001
        calls["url"] = url
        calls["json"] = json
        return _mock_response(
            {
                "choices": [
                    {
                        "message": {
                            "content": None,
                            "tool_calls": [
                                {
                                    "id": "call_a",
                                    "type": "function",
                                    "function": {"name": "health", "arguments": "{}"},
                                },
                                {"function": {"name": "logs", "arguments": {"lines": 5}}},
                                {"function": {"arguments": "{}"}},
                            ],
                        },
                        "finish_reason": "tool_calls",
                    }
                ]
            }
        )

    monkeypatch.setattr("llm.local_http_brain.requests.post", fake_post)
    config = ModelConfig(
        provider="local",
        model="local-model",
        base_url="http://localhost:9999/v1/chat/completions",
    )
    brain = LocalHttpBrain(default_config=config)
    tools = [{"type": "function", "function": {"name": "health"}}]
    history = [
        ChatMessage(role="user", content="check"),
        ChatMessage(role="assistant", content="", tool_calls=(ToolCall("t1", "health"),)),
        ChatMessage(role="tool", content="ok", tool_call_id="t1"),
    ]

    result = brain.generate(history, tools=tools)
    assert calls["url"] == "http://localhost:9999/v1/chat/completions"
    assert calls["json"]["tools"] == tools
    assert calls["json"]["messages"][1]["tool_calls"][0]["function"]["name"] == "health"
    assert calls["json"]["messages"][2]["tool_call_id"] == "t1"
    assert result.text == ""
    assert result.wants_tools
    assert [(c.id, c.name, c.arguments) for c in result.tool_calls] == [
        ("call_a", "health", "{}"),
        ("call_1", "logs", '{"lines": 5}'),
    ]


def test_http_error_raises_service_error(monkeypatch) -> None:
    monkeypatch.setattr(
        "llm.local_http_brain.requests.post",
        lambda url, json, headers, timeout: _mock_response({"error": "overloaded"}, 503),  # noqa: ARG005
    )
    brain = LocalHttpBrain(default_config=ModelConfig(provider="local", model="m"))
    with pytest.raises(LLMServiceError) as info:
        brain.generate([ChatMessage(role="user", content="x")])
    assert info.value.status_code == 503


def test_empty_choices_raise() -> None:
    with pytest.raises(LLMServiceError):
        parse_chat_completion({"choices": []})


def test_openrouter_without_key_raises(monkeypatch) -> None:
    monkeypatch.setenv("OPENROUTER_API_KEY", "")
    config = ModelConfig(provider="openrouter", model="test-model")
    brain = OpenRouterBrain(api_key=None, default_config=config)
    with pytest.raises(LLMServiceError):
        brain.generate([ChatMessage(role="user", content="ping")])


def test_create_brain_by_provider() -> None:
    assert isinstance(
        create_brain(ModelConfig(provider="openrouter", model="m"), api_key="k"), OpenRouterBrain
    )
    local = create_brain(ModelConfig(provider="local", model="m", base_url="http://h/v1"))
    assert type(local) is LocalHttpBrain
    assert local.base_url == "http://h/v1"
