from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from typing import Final

import requests

from config.agent_config import AgentConfig
from config.system_prompts import FORCE_CLOSE_PROMPT, build_system_prompt
from config.targets import default_target
from core.commands import CommandContext, CommandDescriptor, record_audit
from core.safety_gate import SafetyGate
from core.session import SessionContext, SessionStore, trim_history
from core.tool_catalog import TOOL_CATALOG, ToolSpec, catalog_schema
from core.tool_router import ToolRouter
from llm.brain_base import Brain
from llm.types import LLMServiceError, ModelConfig
from server.channel import OutboundChannel
from shared.models import ChatMessage, JSONValue
from tools.defaults import build_default_registry
from tools.protocols import AuditSink, MemoryBackend
from tools.tool_logger import ToolCallLogger
from tools.tool_registry import CommandRegistry

logger = logging.getLogger("OpsClaw.Agent")

MODEL_UNAVAILABLE_REPLY: Final[str] = "AI model is unavailable right now. Please try again in a moment."
REASONING_LIMIT_REPLY: Final[str] = (
    "Reached max reasoning iterations. Please try a simpler request."
)
INTERNAL_ERROR_REPLY: Final[str] = "Something went wrong while handling that message."
EMPTY_MESSAGE_REPLY: Final[str] = "Empty message. Send /help for commands."
NO_RESPONSE_REPLY: Final[str] = "No response."
RESERVED_TOKENS: Final[frozenset[str]] = frozenset({"confirm", "cancel", "help"})


@dataclass
class _Turn:
    messages: list[ChatMessage]
    iterations: int = 0
    tools_used: int = 0
    forced: bool = False
    tool_names: list[str] = field(default_factory=list)


class OpsAgent:
    """Routes operator messages to commands, the confirmation gate or the tool loop."""

    def __init__(
        self,
        brain: Brain,
        *,
        registry: CommandRegistry | None = None,
        config: AgentConfig | None = None,
        model_config: ModelConfig | None = None,
        sessions: SessionStore | None = None,
        gate: SafetyGate | None = None,
        audit: AuditSink | None = None,
        memory: MemoryBackend | None = None,
        channel: OutboundChannel | None = None,
        call_logger: ToolCallLogger | None = None,
        catalog: tuple[ToolSpec, ...] = TOOL_CATALOG,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.brain = brain
        self.config = config or AgentConfig()
        self.model_config = model_config
        self.sessions = sessions or SessionStore(
            lambda: default_target(self.config.default_target)
        )
        self.gate = gate or SafetyGate(ttl_seconds=self.config.confirm_ttl_seconds, clock=clock)
        self.audit = audit
        self.memory = memory
        self.channel = channel
        self.call_logger = call_logger or ToolCallLogger()
        self.registry = registry or build_default_registry(
            self.sessions.switch_target, call_logger=self.call_logger
        )
        self.router = ToolRouter(
            self.registry,
            self._context_for,
            call_logger=self.call_logger,
            result_limit=self.config.tool_result_limit,
            result_keep=self.config.tool_result_keep,
        )
        self.tools = catalog_schema(catalog)

    # ------------------------------------------------------------------ dispatch

    def handle_message(self, session_id: str, text: str, username: str = "owner") -> str:
        """Process one operator message to completion and return the reply.

        The reply is also pushed through the outbound channel when one is set.
        Messages of the same session are handled strictly one at a time.
        """
        session = self.sessions.get(session_id)
        with session.lock:
            try:
                reply = self._dispatch(session, text.strip(), username)
            except Exception:  # noqa: BLE001
                logger.exception("message_failed", extra={"session_id": session_id})
                reply = INTERNAL_ERROR_REPLY
            self._deliver(session_id, reply)
        return reply

    def _dispatch(self, session: SessionContext, text: str, username: str) -> str:
        if not text:
            return EMPTY_MESSAGE_REPLY
        token = text.lower()
        if token.startswith("/"):
            head, sep, rest = token[1:].partition(" ")
            token = head.split("@", 1)[0] + sep + rest
        if token in RESERVED_TOKENS:
            if token == "confirm":
                return self._confirm(session, username)
            if token == "cancel":
                return self.gate.cancel(session)
            return self.registry.format_help(session.active_target)

        if text.startswith("/"):
            head, _, args = text[1:].partition(" ")
            name = head.split("@", 1)[0]
            descriptor = self.registry.resolve(name) if name else None
            if descriptor is not None:
                return self._run_command(session, descriptor, args.strip(), username)
            logger.info("unknown_command_to_agent", extra={"command": name})
        return self.converse(session, text)

    def _run_command(
        self,
        session: SessionContext,
        descriptor: CommandDescriptor,
        args: str,
        username: str,
    ) -> str:
        prompt = self.gate.submit(session, descriptor, args)
        if prompt is not None:
            return prompt
        ctx = self._context_for(session, username)
        result = self.registry.run(descriptor, args, ctx)
        ctx.record(
            "command_executed",
            {"command": descriptor.name, "args": args[:200], "success": result.success},
        )
        return result.output

    def _confirm(self, session: SessionContext, username: str) -> str:
        outcome = self.gate.confirm(session)
        if outcome.pending is None:
            return outcome.message
        pending = outcome.pending
        ctx = replace(self._context_for(session, username), target=pending.target)
        logger.info(
            "command_confirmed",
            extra={
                "session_id": session.session_id,
                "command": pending.descriptor.name,
                "target": pending.target.id,
            },
        )
        ctx.record(
            "command_confirmed",
            {
                "command": pending.descriptor.name,
                "args": pending.args[:200],
                "target": pending.target.id,
            },
        )
        return self.registry.run(pending.descriptor, pending.args, ctx).output

    # ------------------------------------------------------------------ loop

    def converse(self, session: SessionContext, text: str) -> str:
        """Run the tool loop for free text. Caller holds ``session.lock``."""
        session.append(ChatMessage(role="user", content=text))
        session.history = trim_history(session.history, self.config.history_limit)
        turn = _Turn(messages=list(session.history))
        try:
            reply = self._explore(session, turn)
        except (requests.RequestException, LLMServiceError) as exc:
            logger.error(
                "model_call_failed",
                extra={"session_id": session.session_id, "error": str(exc)},
            )
            return MODEL_UNAVAILABLE_REPLY
        if reply is None:
            turn.forced = True
            reply = self._force_close(session, turn)

        turn.messages.append(ChatMessage(role="assistant", content=reply))
        session.history = trim_history(turn.messages, self.config.history_limit)
        logger.info(
            "conversation_done",
            extra={
                "session_id": session.session_id,
                "iterations": turn.iterations,
                "tools_used": turn.tools_used,
                "forced": turn.forced,
            },
        )
        metadata: dict[str, JSONValue] = {
            "input": text[:200],
            "tools_used": turn.tools_used,
            "tools": list(turn.tool_names),
            "iterations": turn.iterations,
            "forced_close": turn.forced,
            "target": session.active_target.id,
        }
        record_audit(self.audit, "agentic_conversation", session.session_id, metadata)
        return reply

    def _explore(self, session: SessionContext, turn: _Turn) -> str | None:
        for iteration in range(1, self.config.max_iterations + 1):
            turn.iterations = iteration
            result = self.brain.generate(
                self._with_system(session, turn.messages),
                tools=self.tools,
                config=self.model_config,
            )
            if not result.wants_tools:
                return result.text or NO_RESPONSE_REPLY

            turn.messages.append(
                ChatMessage(
                    role="assistant",
                    content=result.text or "",
                    tool_calls=tuple(result.tool_calls),
                )
            )
            for call in result.tool_calls:
                output = self.router.route(call.name, call.arguments, session)
                turn.messages.append(ChatMessage(role="tool", content=output, tool_call_id=call.id))
                turn.tools_used += 1
                turn.tool_names.append(call.name)
            logger.info(
                "iteration_done",
                extra={
                    "session_id": session.session_id,
                    "iteration": iteration,
                    "max_iterations": self.config.max_iterations,
                    "tool_calls": len(result.tool_calls),
                },
            )
        return None

    def _force_close(self, session: SessionContext, turn: _Turn) -> str:
        logger.warning(
            "iteration_limit_reached",
            extra={"session_id": session.session_id, "max_iterations": self.config.max_iterations},
        )
        closing = [*turn.messages, ChatMessage(role="user", content=FORCE_CLOSE_PROMPT)]
        try:
            result = self.brain.generate(
                self._with_system(session, closing),
                tools=None,
                config=self.model_config,
            )
        except (requests.RequestException, LLMServiceError) as exc:
            logger.error(
                "force_close_failed",
                extra={"session_id": session.session_id, "error": str(exc)},
            )
            return REASONING_LIMIT_REPLY
        return result.text.strip() or REASONING_LIMIT_REPLY

    # ------------------------------------------------------------------ helpers

    def _with_system(self, session: SessionContext, messages: list[ChatMessage]) -> list[ChatMessage]:
        system = ChatMessage(role="system", content=build_system_prompt(session.active_target))
        return [system, *messages]

    def _context_for(self, session: SessionContext, username: str = "owner") -> CommandContext:
        session_id = session.session_id
        return CommandContext(
            session_id=session_id,
            target=session.active_target,
            username=username,
            audit=self.audit,
            memory=self.memory,
            send=(lambda text: self._deliver(session_id, text)) if self.channel else None,
        )

    def _deliver(self, session_id: str, text: str) -> None:
        if self.channel is None or not text:
            return
        try:
            self.channel.send(session_id, text)
        except Exception:  # noqa: BLE001
            logger.warning("channel_send_failed", exc_info=True, extra={"session_id": session_id})
