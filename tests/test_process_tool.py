from __future__ import annotations

import json

from tests.fakes import FakeAudit, make_context
from tools.command_runner import RunOutput
from tools.deploy_tool import handle_deploy
from tools.logs_tool import handle_logs, parse_logs_args
from tools.process_tool import format_process_list, handle_pm2


class FakeRunner:
    def __init__(self, stdout: str = "", returncode: int | None = 0, **extra: object) -> None:
        self.output = RunOutput(stdout=stdout, stderr="", returncode=returncode, **extra)  # type: ignore[arg-type]
        self.calls: list[object] = []

    def __call__(self, command, **kwargs):  # noqa: ANN001
        self.calls.append(command)
        return self.output


JLIST = json.dumps(
    [
        {
            "name": "upromptpay",
            "pm_id": 0,
            "pid": 4242,
            "monit": {"memory": 200 * 1024 * 1024, "cpu": 3},
            "pm2_env": {"status": "online", "pm_uptime": 60_000, "restart_time": 2},
        },
        {
            "name": "worker",
            "pm_id": 1,
            "pid": 4243,
            "monit": {"memory": 0, "cpu": 0},
            "pm2_env": {"status": "stopped", "pm_uptime": 60_000, "restart_time": 0},
        },
    ]
)


def test_format_process_list_highlights_active_process() -> None:
    text = format_process_list(JLIST, "upromptpay", now_ms=31 * 60_000)
    lines = text.splitlines()
    assert lines[0].startswith("-> upromptpay[0] | online | PID:4242 | 200.0MB")
    assert "Up:30m" in lines[0]
    assert "Restarts:2" in lines[0]
    assert lines[1].startswith("   worker[1] | stopped")


def test_format_process_list_falls_back_to_raw() -> None:
    assert format_process_list("not json", "x") == "not json"
    assert format_process_list("[]", "x") == "No processes"


def test_pm2_list_uses_jlist(monkeypatch) -> None:
    runner = FakeRunner(stdout=JLIST)
    monkeypatch.setattr("tools.process_tool.run_command", runner)
    audit = FakeAudit()
    result = handle_pm2("", make_context(audit=audit))
    assert result.success
    assert runner.calls == [["pm2", "jlist"]]
    assert "*[PromptPay] PM2 list:*" in result.output
    assert "-> upromptpay[0]" in result.output
    assert audit.records[0][3] == {"action": "list", "target": "promptpay"}


def test_pm2_restart_targets_active_process(monkeypatch) -> None:
    runner = FakeRunner(stdout="[PM2] restarted")
    monkeypatch.setattr("tools.process_tool.run_command", runner)
    handle_pm2("restart", make_context("doctarx"))
    assert runner.calls == [["pm2", "restart", "doctarx"]]


def test_pm2_unknown_action(monkeypatch) -> None:
    runner = FakeRunner()
    monkeypatch.setattr("tools.process_tool.run_command", runner)
    result = handle_pm2("delete", make_context())
    assert not result.success
    assert result.output.startswith("Unknown action: delete")
    assert runner.calls == []


def test_pm2_missing_binary(monkeypatch) -> None:
    runner = FakeRunner(returncode=None, error="No such file")
    monkeypatch.setattr("tools.process_tool.run_command", runner)
    result = handle_pm2("status", make_context())
    assert not result.success
    assert "pm2 unavailable" in result.output


def test_parse_logs_args() -> None:
    assert parse_logs_args("") == (30, False)
    assert parse_logs_args("50 --error") == (50, True)
    assert parse_logs_args("5000") == (200, False)
    assert parse_logs_args("0") == (1, False)


def test_logs_command_builds_pm2_invocation(monkeypatch) -> None:
    runner = FakeRunner(stdout="")
    monkeypatch.setattr("tools.logs_tool.run_command", runner)
    result = handle_logs("10 --error", make_context())
    assert runner.calls == [
        ["pm2", "logs", "upromptpay", "--nostream", "--lines", "10", "--err"]
    ]
    assert "Last 10 error log lines" in result.output
    assert "No logs found for upromptpay" in result.output


def test_deploy_notifies_runs_script_and_audits(monkeypatch) -> None:
    runner = FakeRunner(stdout="Build ok\nDeploy success\n")
    monkeypatch.setattr("tools.deploy_tool.run_command", runner)
    sent: list[str] = []
    audit = FakeAudit()
    result = handle_deploy("", make_context(audit=audit, send=sent.append))
    assert result.success
    assert "*[PromptPay] Deploy SUCCESS:*" in result.output
    assert runner.calls == [["bash", "/home/ec2-user/PromptPay/scripts/deploy.sh"]]
    assert sent == ["*[PromptPay]* Deploying... this may take 1-2 minutes."]
    assert audit.records[0][1] == "deploy"


def test_deploy_without_success_marker_fails(monkeypatch) -> None:
    monkeypatch.setattr("tools.deploy_tool.run_command", FakeRunner(stdout="npm ERR!"))
    result = handle_deploy("", make_context())
    assert not result.success
    assert "Deploy FAILED" in result.output
