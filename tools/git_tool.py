from __future__ import annotations

from typing import Final

from core.commands import CommandContext, CommandDescriptor
from shared.models import CommandResult
from tools.command_runner import code_block, run_command

GH_MISSING = "gh CLI not available or not authenticated"

ACTIONS: Final[dict[str, list[str]]] = {
    "commits": ["git", "log", "--oneline", "-20"],
    "status": ["git", "status", "--short"],
    "diff": ["git", "diff", "--stat"],
    "branch": ["git", "branch", "-a"],
    "log": ["git", "log", "--oneline", "-10"],
    "issues": ["gh", "issue", "list", "--limit", "10"],
    "prs": ["gh", "pr", "list", "--limit", "10"],
    "actions": ["gh", "run", "list", "--limit", "5"],
}


def handle_github(args: str, ctx: CommandContext) -> CommandResult:
    parts = args.strip().split()
    action = parts[0].lower() if parts else "status"
    argv = ACTIONS.get(action)
    if argv is None:
        return CommandResult.fail(f"Unknown action: {action}\nAvailable: {', '.join(ACTIONS)}")

    target = ctx.target
    run = run_command(argv, cwd=target.path, timeout=15)
    if argv[0] == "gh" and not run.ok:
        output = GH_MISSING
    elif run.timed_out:
        output = f"{argv[0]} timed out"
    else:
        output = run.stdout.strip() or run.stderr.strip() or "No output"
    return CommandResult(
        success=run.ok,
        output=code_block(f"*[{target.name}] GitHub - {action}:*", output),
    )


GITHUB_COMMAND = CommandDescriptor(
    name="github",
    aliases=("gh", "git"),
    description="GitHub & git operations for the active target",
    usage="/github <commits|status|diff|branch|log|issues|prs|actions>",
    handler=handle_github,
)
