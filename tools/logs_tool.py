from __future__ import annotations

from typing import Final

from core.commands import CommandContext, CommandDescriptor
from shared.models import CommandResult
from tools.command_runner import code_block, run_command

DEFAULT_LINES: Final[int] = 30
MAX_LINES: Final[int] = 200


def parse_logs_args(args: str) -> tuple[int, bool]:
    parts = args.strip().split()
    error_only = "--error" in parts
    count = DEFAULT_LINES
    for part in parts:
        if part.isdigit():
            count = int(part)
            break
    return max(1, min(count, MAX_LINES)), error_only


def handle_logs(args: str, ctx: CommandContext) -> CommandResult:
    count, error_only = parse_logs_args(args)
    target = ctx.target
    argv = ["pm2", "logs", target.process_name, "--nostream", "--lines", str(count)]
    if error_only:
        argv.append("--err")
    run = run_command(argv, timeout=10)
    if run.timed_out:
        output = "Log read timed out."
    else:
        output = run.stdout.strip() or f"No logs found for {target.process_name}"
    kind = "error " if error_only else ""
    return CommandResult.ok(code_block(f"*[{target.name}] Last {count} {kind}log lines:*", output))


LOGS_COMMAND = CommandDescriptor(
    name="logs",
    aliases=("log",),
    description="Read the last N process manager log lines",
    usage="/logs [N] [--error]",
    handler=handle_logs,
)
