from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Literal

JSONPrimitive = str | bytes | int | float | bool | None
JSONValue = JSONPrimitive | Sequence["JSONValue"] | Mapping[str, "JSONValue"]

ChatRole = Literal["system", "user", "assistant", "tool"]


@dataclass(frozen=True)
class CommandResult:
    success: bool
    output: str

    @classmethod
    def ok(cls, output: str) -> CommandResult:
        return cls(success=True, output=output)

    @classmethod
    def fail(cls, output: str) -> CommandResult:
        return cls(success=False, output=output)


@dataclass(frozen=True)
class ToolCall:
    id: str
    name: str
    arguments: str = "{}"

    def to_wire(self) -> dict[str, JSONValue]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass(frozen=True)
class ChatMessage:
    role: ChatRole
    content: str
    tool_calls: tuple[ToolCall, ...] = ()
    tool_call_id: str | None = None

    def to_wire(self) -> dict[str, JSONValue]:
        payload: dict[str, JSONValue] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            payload["tool_calls"] = [call.to_wire() for call in self.tool_calls]
        if self.tool_call_id is not None:
            payload["tool_call_id"] = self.tool_call_id
        return payload


@dataclass(frozen=True)
class ToolCallRecord:
    timestamp: str
    tool: str
    ok: bool
    error: str | None = None
    meta: dict[str, JSONValue] | None = None
    args: dict[str, JSONValue] | None = None


@dataclass
class MemoryEntry:
    content: str
    namespace: str = "opsclaw"
    agent_id: str = "opsclaw"
    kind: str = "semantic"
    importance: float = 0.5
    metadata: dict[str, JSONValue] = field(default_factory=dict)
    id: str | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class AuditEntry:
    id: str
    sequence_number: int
    timestamp: str
    actor: str
    action: str
    subject: str
    metadata: dict[str, JSONValue]
    previous_hash: str
    hash: str
