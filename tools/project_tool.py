from __future__ import annotations

from collections.abc import Callable

from config.targets import Target, format_target_list, resolve_target
from core.commands import CommandContext, CommandDescriptor
from shared.models import CommandResult

TargetSwitcher = Callable[[str, Target], None]


def describe_target(target: Target) -> str:
    return (
        f"Switched to *{target.name}*\n"
        f"Path: `{target.path}`\n"
        f"Process: `{target.process_name}`\n"
        f"Stack: {target.stack}"
    )


def handle_project(args: str, ctx: CommandContext, switch: TargetSwitcher) -> CommandResult:
    name = args.strip()
    if not name:
        return CommandResult.ok(
            f"*Active: {ctx.target.name}*\n\n{format_target_list()}\n\nUse `/project <name>` to switch."
        )
    target = resolve_target(name)
    if target is None:
        return CommandResult.fail(f"Unknown project: {name}\n\n{format_target_list()}")
    switch(ctx.session_id, target)
    ctx.record("target_switch", {"from": ctx.target.id, "to": target.id})
    return CommandResult.ok(describe_target(target))


def build_project_command(switch: TargetSwitcher) -> CommandDescriptor:
    """``switch(session_id, target)`` updates the calling session only."""

    def _execute(args: str, ctx: CommandContext) -> CommandResult:
        return handle_project(args, ctx, switch)

    return CommandDescriptor(
        name="project",
        aliases=("switch", "target"),
        description="Switch the active target or list targets",
        usage="/project [name]",
        handler=_execute,
    )
