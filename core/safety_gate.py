from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Final, Literal

from core.commands import CommandDescriptor
from core.session import PendingConfirmation, SessionContext

logger = logging.getLogger("OpsClaw.SafetyGate")

GateStatus = Literal["safe", "dangerous"]
ConfirmStatus = Literal["nothing_pending", "expired", "ready"]

DEFAULT_TTL_SECONDS: Final[int] = 300

DESTRUCTIVE_VERBS: Final[frozenset[str]] = frozenset(
    {
        "rm",
        "rmdir",
        "shred",
        "dd",
        "mkfs",
        "chmod",
        "chown",
        "chgrp",
        "kill",
        "pkill",
        "killall",
        "systemctl",
        "service",
        "reboot",
        "shutdown",
        "halt",
        "poweroff",
        "init",
        "ip",
        "ifconfig",
        "iptables",
        "ufw",
        "route",
        "mount",
        "umount",
        "useradd",
        "userdel",
        "usermod",
        "passwd",
        "groupadd",
        "groupdel",
        "sudo",
    }
)


@dataclass(frozen=True)
class GateDecision:
    status: GateStatus
    reason: str

    @property
    def dangerous(self) -> bool:
        return self.status == "dangerous"


@dataclass(frozen=True)
class ConfirmOutcome:
    status: ConfirmStatus
    message: str
    pending: PendingConfirmation | None = None


def leading_verb(command: str) -> str:
    token = command.strip().split(maxsplit=1)[0] if command.strip() else ""
    # /usr/bin/rm and mkfs.ext4 count as rm and mkfs
    return token.rsplit("/", 1)[-1].split(".", 1)[0].lower()


def classify(descriptor: CommandDescriptor, args: str) -> GateDecision:
    if descriptor.dangerous:
        return GateDecision("dangerous", f"/{descriptor.name} is always dangerous")
    action = descriptor.sub_action(args)
    if action and action in descriptor.dangerous_actions:
        return GateDecision("dangerous", f"/{descriptor.name} {action} changes running state")
    if descriptor.free_form:
        verb = leading_verb(args)
        if verb in DESTRUCTIVE_VERBS:
            return GateDecision("dangerous", f"`{verb}` is destructive")
    return GateDecision("safe", "")


class SafetyGate:
    """Holds dangerous commands in a session's pending slot until confirmed.

    Callers hold ``session.lock`` around every method.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def submit(self, session: SessionContext, descriptor: CommandDescriptor, args: str) -> str | None:
        """Return ``None`` when the command may run now, otherwise the reply for the operator."""
        decision = classify(descriptor, args)
        if not decision.dangerous:
            return None

        target = session.active_target
        if session.pending is not None:
            logger.info(
                "confirmation_rejected_busy",
                extra={"session_id": session.session_id, "pending": session.pending.descriptor.name},
            )
            return (
                f"*[{target.name}]* `{session.pending.display}` is still awaiting confirmation.\n"
                "Send `confirm` to run it or `cancel` to drop it before issuing another "
                "dangerous command."
            )

        pending = PendingConfirmation(
            descriptor=descriptor,
            args=args.strip(),
            session_id=session.session_id,
            target=target,
            created_at=self._clock(),
        )
        session.pending = pending
        logger.info(
            "confirmation_requested",
            extra={
                "session_id": session.session_id,
                "command": descriptor.name,
                "reason": decision.reason,
            },
        )
        return (
            f"*[{target.name}] Dangerous command:* `{pending.display}`\n"
            f"{descriptor.description}\n"
            f"Reason: {decision.reason}\n\n"
            f"Send `confirm` within {int(self.ttl_seconds // 60)} minutes to proceed "
            "or `cancel` to abort."
        )

    def confirm(self, session: SessionContext) -> ConfirmOutcome:
        pending = session.pending
        if pending is None:
            return ConfirmOutcome("nothing_pending", "Nothing pending. Use a command first.")
        session.pending = None
        if self._clock() - pending.created_at >= self.ttl_seconds:
            logger.info(
                "confirmation_expired",
                extra={"session_id": session.session_id, "command": pending.descriptor.name},
            )
            return ConfirmOutcome("expired", "Pending command expired. Please re-issue.")
        logger.info(
            "confirmation_accepted",
            extra={"session_id": session.session_id, "command": pending.descriptor.name},
        )
        return ConfirmOutcome("ready", f"Confirmed `{pending.display}`.", pending)

    def cancel(self, session: SessionContext) -> str:
        pending = session.pending
        session.pending = None
        if pending is None:
            return "Nothing to cancel."
        logger.info(
            "confirmation_cancelled",
            extra={"session_id": session.session_id, "command": pending.descriptor.name},
        )
        return f"Cancelled `{pending.display}`."
