from __future__ import annotations

from typing import Protocol, runtime_checkable

from shared.models import JSONValue, MemoryEntry


@runtime_checkable
class AuditSink(Protocol):
    def record(
        self,
        actor: str,
        action: str,
        subject: str,
        metadata: dict[str, JSONValue] | None = None,
    ) -> object: ...


@runtime_checkable
class MemoryBackend(Protocol):
    def store(self, entry: MemoryEntry) -> str: ...

    def recall(self, query: str, namespace: str | None = None, limit: int = 5) -> list[MemoryEntry]: ...
