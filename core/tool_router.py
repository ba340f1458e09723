from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Final, Literal, cast

from config.targets import format_target_list, resolve_target
from core.commands import CommandContext
from core.safety_gate import classify
from core.session import SessionContext
from shared.models import JSONValue, MemoryEntry
from shared.sanitize import preview
from tools.tool_logger import ToolCallLogger
from tools.tool_registry import CommandRegistry

logger = logging.getLogger("OpsClaw.ToolRouter")

RouteKind = Literal["command", "composite", "blocked"]
ToolArgs = Mapping[str, object]
ArgsNormalizer = Callable[[ToolArgs], str]
CompositeHandler = Callable[[ToolArgs, SessionContext, CommandContext], str]
ContextFactory = Callable[[SessionContext], CommandContext]

DEFAULT_RESULT_LIMIT: Final[int] = 8_000
DEFAULT_RESULT_KEEP: Final[int] = 7_900
TRUNCATION_SUFFIX: Final[str] = "\n\n... [truncated, too large]"
ARGS_PREVIEW_CHARS: Final[int] = 100
DEFAULT_NAMESPACE: Final[str] = "opsclaw"


class ToolArgumentError(ValueError):
    pass


@dataclass(frozen=True)
class ToolRoute:
    tool: str
    kind: RouteKind
    command: str | None = None
    normalize: ArgsNormalizer | None = None
    handler: CompositeHandler | None = None
    refusal: str | None = None


def parse_tool_arguments(args_json: str | None) -> dict[str, object]:
    raw = (args_json or "").strip()
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ToolArgumentError(raw[:ARGS_PREVIEW_CHARS]) from exc
    if not isinstance(parsed, dict):
        raise ToolArgumentError(raw[:ARGS_PREVIEW_CHARS])
    return parsed


def truncate_result(
    text: str,
    limit: int = DEFAULT_RESULT_LIMIT,
    keep: int = DEFAULT_RESULT_KEEP,
) -> str:
    if len(text) <= limit:
        return text
    return text[:keep] + TRUNCATION_SUFFIX


def blocked_refusal(display: str) -> str:
    return (
        f"BLOCKED: `{display}` requires manual execution via `{display}` then `confirm` "
        "for safety. Tell the owner to use that flow."
    )


def _str_arg(args: ToolArgs, key: str, default: str = "") -> str:
    value = args.get(key)
    if value is None:
        return default
    text = str(value).strip()
    return text or default


def _int_arg(args: ToolArgs, key: str) -> int | None:
    value = args.get(key)
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(float(str(value)))
    except ValueError:
        return None


def _logs_args(args: ToolArgs) -> str:
    lines = _int_arg(args, "lines") or 30
    return f"{lines} --error" if args.get("error_only") is True else str(lines)


def _file_args(args: ToolArgs) -> str:
    path = _str_arg(args, "path", ".")
    lines = _int_arg(args, "lines")
    return f"{path} --lines {lines}" if lines else path


def _switch_target(args: ToolArgs, session: SessionContext, ctx: CommandContext) -> str:
    name = _str_arg(args, "name")
    if not name:
        return f"Active target: {session.active_target.name}\n\n{format_target_list()}"
    target = resolve_target(name)
    if target is None:
        return f"Unknown project: {name}\n\n{format_target_list()}"
    previous = session.active_target
    session.active_target = target
    ctx.record("target_switch", {"from": previous.id, "to": target.id, "via": "tool"})
    return (
        f"Switched to {target.name} ({target.path} | process: {target.process_name}). "
        "All subsequent tool calls target this project."
    )


def _memory_store(args: ToolArgs, session: SessionContext, ctx: CommandContext) -> str:
    content = _str_arg(args, "content")
    if not content:
        return "Error: content is required for memory_store"
    if ctx.memory is None:
        return "Error: memory is not configured"
    importance_raw = args.get("importance")
    try:
        importance = float(str(importance_raw)) if importance_raw is not None else 0.5
    except ValueError:
        importance = 0.5
    entry_id = ctx.memory.store(
        MemoryEntry(
            content=content,
            namespace=_str_arg(args, "namespace", DEFAULT_NAMESPACE),
            importance=min(max(importance, 0.0), 1.0),
            metadata={"session_id": session.session_id, "target": session.active_target.id},
        )
    )
    return f"Stored to memory (id: {entry_id})"


def _memory_recall(args: ToolArgs, session: SessionContext, ctx: CommandContext) -> str:
    query = _str_arg(args, "query")
    if not query:
        return "Error: query is required for memory_recall"
    if ctx.memory is None:
        return "Error: memory is not configured"
    entries = ctx.memory.recall(query, _str_arg(args, "namespace", DEFAULT_NAMESPACE), 5)
    if not entries:
        return "No memories found matching that query."
    return "\n".join(f"[{entry.namespace}] {entry.content}" for entry in entries)


def default_routes() -> dict[str, ToolRoute]:
    routes = [
        ToolRoute("health", "command", command="health", normalize=lambda args: ""),
        ToolRoute("logs", "command", command="logs", normalize=_logs_args),
        ToolRoute(
            "github",
            "command",
            command="github",
            normalize=lambda args: _str_arg(args, "action", "status"),
        ),
        ToolRoute("file", "command", command="file", normalize=_file_args),
        ToolRoute("env", "command", command="env", normalize=lambda args: _str_arg(args, "section")),
        ToolRoute(
            "pm2",
            "command",
            command="pm2",
            normalize=lambda args: _str_arg(args, "action", "list"),
        ),
        ToolRoute("browse", "command", command="browse", normalize=lambda args: _str_arg(args, "url")),
        ToolRoute("project", "composite", handler=_switch_target),
        ToolRoute("memory_store", "composite", handler=_memory_store),
        ToolRoute("memory_recall", "composite", handler=_memory_recall),
        ToolRoute("shell", "blocked", refusal=blocked_refusal("/shell <cmd>")),
        ToolRoute("deploy", "blocked", refusal=blocked_refusal("/deploy")),
    ]
    return {route.tool: route for route in routes}


class ToolRouter:
    """Maps model tool calls onto commands; always answers with a string."""

    def __init__(
        self,
        registry: CommandRegistry,
        context_factory: ContextFactory,
        routes: Mapping[str, ToolRoute] | None = None,
        call_logger: ToolCallLogger | None = None,
        result_limit: int = DEFAULT_RESULT_LIMIT,
        result_keep: int = DEFAULT_RESULT_KEEP,
    ) -> None:
        self.registry = registry
        self.routes = dict(routes) if routes is not None else default_routes()
        self._context_factory = context_factory
        self._call_logger = call_logger or ToolCallLogger()
        self.result_limit = result_limit
        self.result_keep = result_keep

    def route(self, tool_name: str, args_json: str | None, session: SessionContext) -> str:
        logger.info(
            "tool_call",
            extra={
                "tool": tool_name,
                "args_preview": preview(args_json or "", ARGS_PREVIEW_CHARS),
                "session_id": session.session_id,
            },
        )
        try:
            text, ok = self._dispatch(tool_name, args_json, session)
        except Exception as exc:  # noqa: BLE001
            logger.exception("tool_error", extra={"tool": tool_name})
            text, ok = f"Tool error: {exc}", False
        self._log_call(tool_name, ok, text, args_json)
        return truncate_result(text, self.result_limit, self.result_keep)

    def _dispatch(
        self, tool_name: str, args_json: str | None, session: SessionContext
    ) -> tuple[str, bool]:
        route = self.routes.get(tool_name)
        if route is None:
            return f"Unknown tool: {tool_name}", False
        try:
            args = parse_tool_arguments(args_json)
        except ToolArgumentError as exc:
            return f"Invalid tool arguments: {exc}", False

        if route.kind == "blocked":
            return route.refusal or blocked_refusal(f"/{tool_name}"), False

        ctx = self._context_factory(session)
        if route.kind == "composite":
            if route.handler is None:
                raise RuntimeError(f"Composite route without handler: {tool_name}")
            return route.handler(args, session, ctx), True

        descriptor = self.registry.resolve(route.command or tool_name)
        if descriptor is None:
            return f"Tool error: command /{route.command} is not registered", False
        command_args = route.normalize(args) if route.normalize else ""
        if classify(descriptor, command_args).dangerous:
            display = f"/{descriptor.name} {command_args}".rstrip()
            return blocked_refusal(display), False
        result = descriptor.execute(command_args, ctx)
        return result.output, result.success

    def _log_call(self, tool_name: str, ok: bool, text: str, args_json: str | None) -> None:
        try:
            args: dict[str, JSONValue] = cast(dict[str, JSONValue], parse_tool_arguments(args_json))
        except ToolArgumentError:
            args = {"arguments": args_json or ""}
        try:
            self._call_logger.log(
                tool_name,
                ok=ok,
                error=None if ok else text[:200],
                meta={"result_chars": len(text)},
                args=args,
            )
        except Exception:  # noqa: BLE001
            logger.debug("failed to write tool call log", exc_info=True)
