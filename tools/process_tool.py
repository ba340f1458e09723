from __future__ import annotations

import json
import time
from typing import Final

from core.commands import CommandContext, CommandDescriptor
from shared.models import CommandResult
from tools.command_runner import code_block, run_command

SAFE_ACTIONS: Final[tuple[str, ...]] = ("list", "status", "monit", "describe")
DANGEROUS_ACTIONS: Final[frozenset[str]] = frozenset({"restart", "reload", "stop", "start"})
ALL_ACTIONS: Final[tuple[str, ...]] = (*SAFE_ACTIONS, "restart", "reload", "stop", "start")
PM2_TIMEOUT_SECONDS: Final[int] = 15


def _pm2_args(action: str, process_name: str) -> list[str]:
    if action in {"list", "status", "monit"}:
        return ["pm2", "jlist"]
    if action == "describe":
        return ["pm2", "describe", process_name]
    return ["pm2", action, process_name]


def format_process_list(raw: str, highlight: str, now_ms: float | None = None) -> str:
    """Render ``pm2 jlist`` JSON as one line per process; raw text on parse failure."""
    try:
        processes = json.loads(raw)
    except json.JSONDecodeError:
        return raw
    if not isinstance(processes, list):
        return raw
    now = now_ms if now_ms is not None else time.time() * 1000
    lines: list[str] = []
    for proc in processes:
        if not isinstance(proc, dict):
            continue
        env = proc.get("pm2_env") or {}
        monit = proc.get("monit") or {}
        name = str(proc.get("name", "?"))
        memory_mb = float(monit.get("memory", 0) or 0) / 1024 / 1024
        uptime_min = int((now - float(env.get("pm_uptime", now) or now)) // 60000)
        marker = "-> " if name == highlight else "   "
        lines.append(
            f"{marker}{name}[{proc.get('pm_id', '?')}] | {env.get('status', '?')} | "
            f"PID:{proc.get('pid', '?')} | {memory_mb:.1f}MB | CPU:{monit.get('cpu', 0)}% | "
            f"Up:{uptime_min}m | Restarts:{env.get('restart_time', 0)}"
        )
    return "\n".join(lines) or "No processes"


def handle_pm2(args: str, ctx: CommandContext) -> CommandResult:
    parts = args.strip().split()
    action = parts[0].lower() if parts else "list"
    target = ctx.target
    if action not in ALL_ACTIONS:
        return CommandResult.fail(f"Unknown action: {action}\nAllowed: {', '.join(ALL_ACTIONS)}")

    run = run_command(_pm2_args(action, target.process_name), timeout=PM2_TIMEOUT_SECONDS)
    if run.timed_out:
        output = f"pm2 {action} timed out ({PM2_TIMEOUT_SECONDS}s)"
    elif run.error is not None:
        output = f"pm2 unavailable: {run.error}"
    else:
        output = run.stdout.strip() or "No output"
        if action in {"list", "status"} and output.startswith("["):
            output = format_process_list(output, target.process_name)

    ctx.record("pm2_action", {"action": action, "target": target.id})
    return CommandResult(
        success=run.ok,
        output=code_block(f"*[{target.name}] PM2 {action}:*", output),
    )


PM2_COMMAND = CommandDescriptor(
    name="pm2",
    description="Process manager: list/status/describe are safe, restart/reload/stop/start need confirm",
    usage="/pm2 <list|status|describe|restart|reload|stop|start>",
    dangerous=False,
    dangerous_actions=DANGEROUS_ACTIONS,
    handler=handle_pm2,
)
