from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from config.targets import Target
from core.commands import CommandDescriptor
from shared.models import ChatMessage

logger = logging.getLogger("OpsClaw.Session")


@dataclass(frozen=True)
class PendingConfirmation:
    descriptor: CommandDescriptor
    args: str
    session_id: str
    target: Target
    created_at: float

    @property
    def display(self) -> str:
        return f"/{self.descriptor.name} {self.args}".rstrip()


@dataclass
class SessionContext:
    """Conversation state of one operator session.

    ``lock`` serializes turns of the same session; different sessions never
    share a lock.
    """

    session_id: str
    active_target: Target
    history: list[ChatMessage] = field(default_factory=list)
    pending: PendingConfirmation | None = None
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    def append(self, message: ChatMessage) -> None:
        self.history.append(message)


def trim_history(history: Sequence[ChatMessage], limit: int) -> list[ChatMessage]:
    """Keep the newest ``limit`` messages without orphaning tool results."""
    if limit <= 0:
        return []
    kept = list(history[-limit:])
    while kept and kept[0].role == "tool":
        kept.pop(0)
    return kept


class SessionStore:
    def __init__(self, target_factory: Callable[[], Target]) -> None:
        self._target_factory = target_factory
        self._sessions: dict[str, SessionContext] = {}
        self._lock = threading.Lock()

    def get(self, session_id: str) -> SessionContext:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                session = SessionContext(session_id=session_id, active_target=self._target_factory())
                self._sessions[session_id] = session
                logger.info("session_created", extra={"session_id": session_id})
            return session

    def switch_target(self, session_id: str, target: Target) -> None:
        session = self.get(session_id)
        previous = session.active_target.id
        session.active_target = target
        logger.info(
            "target_switched",
            extra={"session_id": session_id, "from": previous, "to": target.id},
        )
