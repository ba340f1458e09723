from __future__ import annotations

import pytest

from config.targets import TARGETS
from core.commands import CommandContext
from shared.models import CommandResult
from tests.fakes import RecordingCommand, make_command, make_context
from tools.defaults import build_default_registry
from tools.tool_logger import ToolCallLogger
from tools.tool_registry import CommandRegistry


def test_register_and_resolve_by_alias() -> None:
    registry = CommandRegistry()
    descriptor = make_command("github", aliases=("gh", "git"))
    registry.register(descriptor)
    assert registry.resolve("GH") is descriptor
    assert registry.resolve("/git") is descriptor
    assert registry.resolve("nope") is None
    assert registry.resolve("") is None


def test_duplicate_name_or_alias_is_rejected() -> None:
    registry = CommandRegistry()
    registry.register(make_command("logs", aliases=("log",)))
    with pytest.raises(ValueError):
        registry.register(make_command("log"))
    with pytest.raises(ValueError):
        registry.register(make_command("other", aliases=("LOGS",)))
    assert [d.name for d in registry.commands()] == ["logs"]


def test_run_converts_exceptions_and_journals(tmp_path) -> None:
    logger = ToolCallLogger(tmp_path / "calls.log")
    registry = CommandRegistry(call_logger=logger)
    descriptor = make_command("boom", RecordingCommand(fail=RuntimeError("kaput")))
    registry.register(descriptor)
    result = registry.run(descriptor, "x", make_context())
    assert not result.success
    assert result.output == "Command /boom failed: kaput"
    records = logger.read_recent()
    assert records[-1].tool == "boom"
    assert records[-1].ok is False


def test_handler_returning_nothing_is_a_failure() -> None:
    def silent(args: str, ctx: CommandContext) -> CommandResult:
        return None  # type: ignore[return-value]

    descriptor = make_command("silent", silent)
    result = descriptor.execute("", make_context())
    assert not result.success


def test_context_notify_and_record_swallow_failures() -> None:
    class BrokenAudit:
        def record(self, actor, action, subject, metadata=None):  # noqa: ANN001
            raise OSError("disk full")

    def broken_send(text: str) -> None:
        raise ConnectionError("offline")

    ctx = CommandContext(
        session_id="s", target=TARGETS["promptpay"], audit=BrokenAudit(), send=broken_send
    )
    ctx.notify("hello")
    ctx.record("deploy", {"ok": True})


def test_default_registry_has_every_command() -> None:
    registry = build_default_registry(lambda session_id, target: None)
    names = [d.name for d in registry.commands()]
    assert names == [
        "health",
        "logs",
        "pm2",
        "deploy",
        "shell",
        "file",
        "env",
        "github",
        "project",
        "browse",
    ]
    shell = registry.resolve("shell")
    deploy = registry.resolve("deploy")
    pm2 = registry.resolve("pm2")
    assert shell is not None and shell.dangerous
    assert deploy is not None and deploy.dangerous
    assert pm2 is not None and not pm2.dangerous
    assert "restart" in pm2.dangerous_actions
    assert registry.resolve("release") is deploy
