from __future__ import annotations

import os
import platform
import shutil
import time
from collections.abc import Callable

from core.commands import CommandContext, CommandDescriptor
from shared.models import CommandResult

_STARTED_AT = time.monotonic()


def format_uptime(seconds: float) -> str:
    days, rem = divmod(int(seconds), 86_400)
    hours, rem = divmod(rem, 3_600)
    minutes = rem // 60
    parts: list[str] = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    parts.append(f"{minutes}m")
    return " ".join(parts)


def _meminfo() -> dict[str, int]:
    values: dict[str, int] = {}
    try:
        with open("/proc/meminfo", encoding="utf-8") as fh:
            for line in fh:
                key, _, rest = line.partition(":")
                number = rest.strip().split(" ")[0]
                if number.isdigit():
                    values[key] = int(number) * 1024
    except OSError:
        return {}
    return values


def _disk_line(path: str) -> str:
    try:
        usage = shutil.disk_usage(path)
    except OSError:
        return "Unavailable"
    gib = 1024**3
    percent = usage.used / usage.total * 100 if usage.total else 0.0
    return f"{usage.used / gib:.1f}G / {usage.total / gib:.1f}G ({percent:.0f}% used)"


def collect_health(disk_path: str = "/") -> str:
    load = os.getloadavg() if hasattr(os, "getloadavg") else (0.0, 0.0, 0.0)
    mem = _meminfo()
    total = mem.get("MemTotal", 0)
    available = mem.get("MemAvailable", mem.get("MemFree", 0))
    mib = 1024 * 1024
    if total:
        used = total - available
        ram = (
            f"Total RAM:   {total // mib} MB\n"
            f"Free RAM:    {available // mib} MB\n"
            f"Used RAM:    {used // mib} MB ({used / total * 100:.1f}%)"
        )
    else:
        ram = "RAM:         Unavailable"
    return (
        "── Process ──\n"
        f"Uptime:      {format_uptime(time.monotonic() - _STARTED_AT)}\n"
        f"PID:         {os.getpid()}\n"
        f"Python:      {platform.python_version()}\n"
        "\n── System ──\n"
        f"CPUs:        {os.cpu_count() or '?'}\n"
        f"Load (1/5/15): {' / '.join(f'{value:.2f}' for value in load)}\n"
        f"{ram}\n"
        "\n── Disk ──\n"
        f"{_disk_line(disk_path)}"
    )


def build_health_command(collector: Callable[[], str] | None = None) -> CommandDescriptor:
    collect = collector or collect_health

    def _execute(args: str, ctx: CommandContext) -> CommandResult:
        return CommandResult.ok(f"*System Health*\n```\n{collect()}\n```")

    return CommandDescriptor(
        name="health",
        aliases=("ping",),
        description="System health: uptime, memory, CPU, disk",
        usage="/health",
        handler=_execute,
    )
