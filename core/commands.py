from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from config.targets import Target
from shared.models import CommandResult, JSONValue
from tools.protocols import AuditSink, MemoryBackend

logger = logging.getLogger("OpsClaw.Commands")

AUDIT_ACTOR = "opsclaw"


@dataclass(frozen=True)
class CommandContext:
    """Everything a command handler is allowed to touch."""

    session_id: str
    target: Target
    username: str = "owner"
    audit: AuditSink | None = None
    memory: MemoryBackend | None = None
    send: Callable[[str], None] | None = None

    def notify(self, text: str) -> None:
        if self.send is None:
            return
        try:
            self.send(text)
        except Exception:  # noqa: BLE001
            logger.warning("notify_failed", exc_info=True, extra={"session_id": self.session_id})

    def record(self, action: str, metadata: dict[str, JSONValue] | None = None) -> None:
        record_audit(self.audit, action, self.session_id, metadata or {})


CommandHandler = Callable[[str, CommandContext], CommandResult]


@dataclass(frozen=True)
class CommandDescriptor:
    name: str
    handler: CommandHandler
    description: str
    usage: str
    aliases: tuple[str, ...] = ()
    dangerous: bool = False
    dangerous_actions: frozenset[str] = field(default_factory=frozenset)
    free_form: bool = False

    def sub_action(self, args: str) -> str:
        parts = args.strip().split()
        return parts[0].lower() if parts else ""

    def execute(self, args: str, ctx: CommandContext) -> CommandResult:
        try:
            result = self.handler(args, ctx)
        except Exception as exc:  # noqa: BLE001
            logger.exception("command_error", extra={"command": self.name})
            return CommandResult.fail(f"Command /{self.name} failed: {exc}")
        if not isinstance(result, CommandResult):
            return CommandResult.fail(f"Command /{self.name} returned no result.")
        return result


def record_audit(
    audit: AuditSink | None,
    action: str,
    subject: str,
    metadata: dict[str, JSONValue],
) -> None:
    if audit is None:
        return
    try:
        audit.record(AUDIT_ACTOR, action, subject, metadata)
    except Exception:  # noqa: BLE001
        logger.warning("audit_record_failed", exc_info=True, extra={"action": action})
