from __future__ import annotations

import json
from pathlib import Path

from config.targets import TARGETS
from core.commands import CommandContext
from core.session import SessionContext
from core.tool_router import (
    TRUNCATION_SUFFIX,
    ToolRouter,
    parse_tool_arguments,
    truncate_result,
)
from shared.models import CommandResult
from tests.fakes import FakeAudit, FakeMemory, RecordingCommand, make_command
from tools.tool_logger import ToolCallLogger
from tools.tool_registry import CommandRegistry


def _setup(tmp_path: Path, **commands: RecordingCommand):
    audit = FakeAudit()
    memory = FakeMemory()
    logger = ToolCallLogger(tmp_path / "calls.log")
    registry = CommandRegistry(call_logger=logger)
    handlers = {
        "health": RecordingCommand("healthy"),
        "logs": RecordingCommand("logs"),
        "pm2": RecordingCommand("pm2"),
        "file": RecordingCommand("file"),
        **commands,
    }
    for name, handler in handlers.items():
        extra = {}
        if name == "pm2":
            extra["dangerous_actions"] = frozenset({"restart", "reload", "stop", "start"})
        registry.register(make_command(name, handler, **extra))

    def context_for(session: SessionContext) -> CommandContext:
        return CommandContext(
            session_id=session.session_id,
            target=session.active_target,
            audit=audit,
            memory=memory,
        )

    router = ToolRouter(registry, context_for, call_logger=logger)
    session = SessionContext(session_id="chat-9", active_target=TARGETS["promptpay"])
    return router, session, handlers, audit, memory, logger


def test_parse_tool_arguments() -> None:
    assert parse_tool_arguments("") == {}
    assert parse_tool_arguments(None) == {}
    assert parse_tool_arguments('{"a": 1}') == {"a": 1}


def test_truncate_result_boundaries() -> None:
    assert truncate_result("x" * 8000) == "x" * 8000
    truncated = truncate_result("x" * 8001)
    assert truncated == "x" * 7900 + TRUNCATION_SUFFIX


def test_safe_command_route_runs_handler(tmp_path) -> None:
    router, session, handlers, *_ = _setup(tmp_path)
    assert router.route("health", "{}", session) == "healthy"
    assert handlers["health"].calls == [("", "promptpay")]


def test_logs_and_file_arguments_are_normalized(tmp_path) -> None:
    router, session, handlers, *_ = _setup(tmp_path)
    router.route("logs", '{"lines": 50, "error_only": true}', session)
    router.route("file", '{"path": "src/index.ts", "lines": 20}', session)
    router.route("file", "{}", session)
    assert handlers["logs"].calls[0][0] == "50 --error"
    assert [call[0] for call in handlers["file"].calls] == ["src/index.ts --lines 20", "."]


def test_malformed_arguments(tmp_path) -> None:
    router, session, handlers, *_ = _setup(tmp_path)
    raw = "{not json" + "x" * 200
    result = router.route("health", raw, session)
    assert result == f"Invalid tool arguments: {raw[:100]}"
    assert handlers["health"].calls == []
    assert router.route("health", "[1, 2]", session).startswith("Invalid tool arguments:")


def test_unknown_tool(tmp_path) -> None:
    router, session, *_ = _setup(tmp_path)
    assert router.route("format_disk", "{}", session) == "Unknown tool: format_disk"


def test_dangerous_sub_action_is_refused(tmp_path) -> None:
    router, session, handlers, *_ = _setup(tmp_path)
    result = router.route("pm2", '{"action": "restart"}', session)
    assert result.startswith("BLOCKED:")
    assert "`/pm2 restart`" in result
    assert "confirm" in result
    assert handlers["pm2"].calls == []
    assert router.route("pm2", '{"action": "list"}', session) == "pm2: list"


def test_blocked_tools_never_execute(tmp_path) -> None:
    router, session, *_ = _setup(tmp_path)
    shell = router.route("shell", json.dumps({"command": "ls"}), session)
    deploy = router.route("deploy", "{}", session)
    assert shell.startswith("BLOCKED:") and "/shell" in shell
    assert deploy.startswith("BLOCKED:") and "/deploy" in deploy
    assert session.pending is None


def test_handler_exception_becomes_tool_error(tmp_path) -> None:
    def explode(args: str, ctx: CommandContext) -> CommandResult:
        raise TimeoutError("ssh hung")

    router, session, *_ = _setup(tmp_path)
    router.registry.register(make_command("browse", explode))
    result = router.route("browse", '{"url": "example.com"}', session)
    assert "failed" in result and "ssh hung" in result


def test_oversized_result_is_truncated(tmp_path) -> None:
    router, session, *_ = _setup(tmp_path, health=RecordingCommand("y" * 9000))
    result = router.route("health", "{}", session)
    assert len(result) == 7900 + len(TRUNCATION_SUFFIX)
    assert result.endswith(TRUNCATION_SUFFIX)


def test_memory_store_and_recall(tmp_path) -> None:
    router, session, _, _, memory, _ = _setup(tmp_path)
    stored = router.route(
        "memory_store", '{"content": "db password rotates monthly", "importance": 0.9}', session
    )
    assert stored == "Stored to memory (id: mem-1)"
    assert memory.entries[0].namespace == "opsclaw"
    assert memory.entries[0].importance == 0.9
    recalled = router.route("memory_recall", '{"query": "rotates"}', session)
    assert recalled == "[opsclaw] db password rotates monthly"
    assert router.route("memory_recall", '{"query": "nothing"}', session).startswith("No memories")
    assert router.route("memory_store", "{}", session).startswith("Error: content is required")


def test_project_tool_switches_only_this_session(tmp_path) -> None:
    router, session, _, audit, _, _ = _setup(tmp_path)
    other = SessionContext(session_id="chat-10", active_target=TARGETS["promptpay"])
    result = router.route("project", '{"name": "dx"}', session)
    assert result.startswith("Switched to DoctaRx")
    assert session.active_target.id == "doctarx"
    assert other.active_target.id == "promptpay"
    assert audit.actions() == ["target_switch"]
    assert router.route("project", '{"name": "nope"}', session).startswith("Unknown project")


def test_every_call_is_journaled(tmp_path) -> None:
    router, session, _, _, _, logger = _setup(tmp_path)
    router.route("health", "{}", session)
    router.route("shell", '{"command": "id"}', session)
    records = logger.read_recent()
    assert [(record.tool, record.ok) for record in records] == [("health", True), ("shell", False)]


def test_journal_masks_secret_arguments(tmp_path) -> None:
    router, session, _, _, _, logger = _setup(tmp_path)
    router.route("browse", '{"url": "https://status.example.com", "token": "abc123"}', session)
    router.route("health", "not json", session)
    first, second = logger.read_recent()
    assert first.args == {"url": "https://status.example.com", "token": "[secret]"}
    assert second.args == {"arguments": "not json"}
    assert "abc123" not in (tmp_path / "calls.log").read_text(encoding="utf-8")
