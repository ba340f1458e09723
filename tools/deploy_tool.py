from __future__ import annotations

from typing import Final

from core.commands import CommandContext, CommandDescriptor
from shared.models import CommandResult
from tools.command_runner import code_block, run_command

DEPLOY_TIMEOUT_SECONDS: Final[int] = 180


def handle_deploy(args: str, ctx: CommandContext) -> CommandResult:
    target = ctx.target
    if not target.deploy_script:
        return CommandResult.fail(f"No deploy script configured for {target.name}.")

    ctx.notify(f"*[{target.name}]* Deploying... this may take 1-2 minutes.")
    run = run_command(
        ["bash", target.deploy_script],
        cwd=target.path,
        timeout=DEPLOY_TIMEOUT_SECONDS,
        max_bytes=512 * 1024,
    )
    output = (run.stdout + run.stderr).strip() or "No output"
    if run.timed_out:
        output = f"Deploy timed out after {DEPLOY_TIMEOUT_SECONDS}s.\n{output}"
    success = run.ok and "success" in output.lower()
    ctx.record(
        "deploy",
        {"target": target.id, "success": success, "exit_code": run.returncode},
    )
    status = "SUCCESS" if success else "FAILED"
    return CommandResult(
        success=success,
        output=code_block(f"*[{target.name}] Deploy {status}:*", output),
    )


DEPLOY_COMMAND = CommandDescriptor(
    name="deploy",
    aliases=("release",),
    description="Run the deploy script (git pull + build + restart)",
    usage="/deploy",
    dangerous=True,
    handler=handle_deploy,
)
