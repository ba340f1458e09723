from __future__ import annotations

import re
from pathlib import Path
from typing import Final

from config.shell_config import DEFAULT_SHELL_CONFIG_PATH, ShellConfig, load_shell_config
from core.commands import CommandContext, CommandDescriptor
from shared.models import CommandResult
from tools.command_runner import clip, run_command

# Blocked even after confirmation.
DISALLOWED_PATTERNS: Final[list[re.Pattern[str]]] = [
    re.compile(r"\brm\s+-rf\s+/(\s|\*|$)"),
    re.compile(r"\brm\s+-rf\s+~/"),
    re.compile(r"\brm\s+-rf\s+\./"),
    re.compile(r"\bmkfs\b"),
    re.compile(r"\bdd\s+if="),
    re.compile(r":\(\)\s*\{\s*:\s*\|\s*:\s*&\s*\}\s*;"),  # fork bomb
    re.compile(r"\bshutdown\b"),
    re.compile(r"\breboot\b"),
    re.compile(r"\binit\s+[06]\b"),
    re.compile(r"\bpasswd\b"),
    re.compile(r"\buser(add|del|mod)\b"),
    re.compile(r"\biptables\s+-[FX]\b"),
    re.compile(r">\s*/dev/(sd|nvme)"),
    re.compile(r"\b(curl|wget)\b.*\|\s*(ba)?sh\b"),
    re.compile(r"\bnpm\s+publish\b"),
    re.compile(r"\bnpx\b.*\bpublish\b"),
    re.compile(r"\bchmod\s+777\s+/"),
    re.compile(r"\bchown\b.*\s+/(\s|$)"),
]


def find_blocked_pattern(command: str) -> re.Pattern[str] | None:
    for pattern in DISALLOWED_PATTERNS:
        if pattern.search(command):
            return pattern
    return None


def handle_shell(
    command: str,
    ctx: CommandContext,
    config: ShellConfig | None = None,
    config_path: Path | None = None,
) -> CommandResult:
    if not command.strip():
        return CommandResult.fail("Usage: /shell <command>")

    blocked = find_blocked_pattern(command)
    if blocked is not None:
        ctx.record("shell_blocked", {"command": command[:200]})
        return CommandResult.fail(
            f"Blocked: dangerous command pattern detected.\nPattern: `{blocked.pattern}`"
        )

    try:
        cfg = config or load_shell_config(config_path or DEFAULT_SHELL_CONFIG_PATH)
    except Exception as exc:  # noqa: BLE001
        return CommandResult.fail(f"Shell config error: {exc}")

    run = run_command(
        command,
        cwd=cfg.cwd or ctx.target.path,
        timeout=cfg.timeout_seconds,
        shell=True,
        max_bytes=cfg.max_buffer_bytes,
    )
    if run.timed_out:
        output = f"Command timed out ({cfg.timeout_seconds}s limit)"
    elif run.error is not None:
        output = f"Shell error: {run.error}"
    else:
        output = run.stdout
        if run.stderr:
            output += ("\n" if output else "") + f"stderr: {run.stderr}"
        if not output:
            output = "(no output)" if run.returncode == 0 else f"Exit code: {run.returncode}"

    ctx.record(
        "shell_exec",
        {"command": command[:200], "exit_code": run.returncode, "output_length": len(output)},
    )
    rendered = f"```\n$ {command}\n{clip(output, cfg.max_output_chars)}\n```"
    return CommandResult(success=run.ok, output=rendered)


def build_shell_command(
    config: ShellConfig | None = None,
    config_path: Path | None = None,
) -> CommandDescriptor:
    def _execute(args: str, ctx: CommandContext) -> CommandResult:
        return handle_shell(args, ctx, config=config, config_path=config_path)

    return CommandDescriptor(
        name="shell",
        aliases=("sh", "exec", "run"),
        description="Execute a shell command on the server",
        usage="/shell <command>",
        dangerous=True,
        free_form=True,
        handler=_execute,
    )
