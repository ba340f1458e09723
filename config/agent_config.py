from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path

DEFAULT_PATH = Path("config/agent.json")

DEFAULT_MAX_ITERATIONS = 8
DEFAULT_HISTORY_LIMIT = 40
DEFAULT_TOOL_RESULT_LIMIT = 8_000
DEFAULT_TOOL_RESULT_KEEP = 7_900
DEFAULT_CONFIRM_TTL_SECONDS = 300
DEFAULT_MESSAGE_LIMIT = 4_096
DEFAULT_MESSAGE_CHUNK = 4_000
DEFAULT_DEFAULT_TARGET = "promptpay"


@dataclass(frozen=True)
class AgentConfig:
    """Limits of the agentic loop, the confirmation gate and the outbound channel."""

    max_iterations: int = DEFAULT_MAX_ITERATIONS
    history_limit: int = DEFAULT_HISTORY_LIMIT
    tool_result_limit: int = DEFAULT_TOOL_RESULT_LIMIT
    tool_result_keep: int = DEFAULT_TOOL_RESULT_KEEP
    confirm_ttl_seconds: int = DEFAULT_CONFIRM_TTL_SECONDS
    message_limit: int = DEFAULT_MESSAGE_LIMIT
    message_chunk: int = DEFAULT_MESSAGE_CHUNK
    default_target: str = DEFAULT_DEFAULT_TARGET
    owner_ids: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be >= 1.")
        if self.history_limit < 2:
            raise ValueError("history_limit must be >= 2.")
        if not 0 < self.tool_result_keep <= self.tool_result_limit:
            raise ValueError("tool_result_keep must be in (0, tool_result_limit].")
        if not 0 < self.message_chunk <= self.message_limit:
            raise ValueError("message_chunk must be in (0, message_limit].")
        if self.confirm_ttl_seconds <= 0:
            raise ValueError("confirm_ttl_seconds must be > 0.")


_INT_FIELDS = (
    "max_iterations",
    "history_limit",
    "tool_result_limit",
    "tool_result_keep",
    "confirm_ttl_seconds",
    "message_limit",
    "message_chunk",
)


def load_agent_config(path: Path = DEFAULT_PATH) -> AgentConfig:
    if not path.exists():
        return AgentConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:  # noqa: BLE001
        raise RuntimeError(f"Failed to read agent.json: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError("agent.json must contain an object.")
    values: dict[str, object] = {}
    for key in _INT_FIELDS:
        if key not in data:
            continue
        value = data[key]
        if not isinstance(value, int) or isinstance(value, bool):
            raise ValueError(f"agent.{key} must be int.")
        values[key] = value
    default_target = data.get("default_target", DEFAULT_DEFAULT_TARGET)
    if not isinstance(default_target, str) or not default_target.strip():
        raise ValueError("agent.default_target must be a non-empty string.")
    owners_raw = data.get("owner_ids", [])
    if not isinstance(owners_raw, list):
        raise ValueError("agent.owner_ids must be a list.")
    return AgentConfig(
        **values,  # type: ignore[arg-type]
        default_target=default_target.strip(),
        owner_ids=frozenset(str(item) for item in owners_raw),
    )


def resolve_agent_config(path: Path = DEFAULT_PATH) -> AgentConfig:
    config = load_agent_config(path)
    iterations_raw = os.getenv("OPSCLAW_MAX_ITERATIONS")
    owners_raw = os.getenv("OPSCLAW_OWNER_IDS")
    target_raw = os.getenv("OPSCLAW_DEFAULT_TARGET")

    if isinstance(iterations_raw, str) and iterations_raw.strip():
        try:
            config = replace(config, max_iterations=int(iterations_raw.strip()))
        except ValueError as exc:
            raise ValueError("OPSCLAW_MAX_ITERATIONS must be int.") from exc
    if isinstance(owners_raw, str) and owners_raw.strip():
        owners = frozenset(item.strip() for item in owners_raw.split(",") if item.strip())
        config = replace(config, owner_ids=owners)
    if isinstance(target_raw, str) and target_raw.strip():
        config = replace(config, default_target=target_raw.strip())
    return config
