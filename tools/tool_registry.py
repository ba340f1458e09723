from __future__ import annotations

import logging

from config.targets import Target
from core.commands import CommandContext, CommandDescriptor
from shared.models import CommandResult
from tools.tool_logger import ToolCallLogger


class CommandRegistry:
    """Name/alias table of every operator command."""

    def __init__(
        self,
        logger: logging.Logger | None = None,
        call_logger: ToolCallLogger | None = None,
    ) -> None:
        self._by_key: dict[str, CommandDescriptor] = {}
        self._ordered: list[CommandDescriptor] = []
        self._logger = logger or logging.getLogger("OpsClaw.CommandRegistry")
        self._call_logger = call_logger or ToolCallLogger()

    def register(self, descriptor: CommandDescriptor) -> None:
        keys = [descriptor.name, *descriptor.aliases]
        for key in keys:
            normalized = key.strip().lower()
            if not normalized:
                raise ValueError(f"Empty name/alias for command {descriptor.name}")
            if normalized in self._by_key:
                raise ValueError(f"Command name or alias already registered: {normalized}")
        for key in keys:
            self._by_key[key.strip().lower()] = descriptor
        self._ordered.append(descriptor)
        self._logger.info(
            "command_registered",
            extra={
                "command": descriptor.name,
                "aliases": list(descriptor.aliases),
                "dangerous": descriptor.dangerous,
            },
        )

    def resolve(self, name: str) -> CommandDescriptor | None:
        return self._by_key.get(name.strip().lower().lstrip("/"))

    def commands(self) -> list[CommandDescriptor]:
        return list(self._ordered)

    def run(self, descriptor: CommandDescriptor, args: str, ctx: CommandContext) -> CommandResult:
        self._logger.info("command_call_start", extra={"command": descriptor.name})
        result = descriptor.execute(args, ctx)
        self._logger.info(
            "command_call_end",
            extra={"command": descriptor.name, "ok": result.success},
        )
        self._log_call(descriptor.name, result, args)
        return result

    def format_help(self, target: Target) -> str:
        lines: list[str] = []
        for descriptor in self._ordered:
            aliases = ""
            if descriptor.aliases:
                aliases = " (" + ", ".join(f"/{alias}" for alias in descriptor.aliases) + ")"
            danger = " *DANGEROUS*" if descriptor.dangerous else ""
            if descriptor.dangerous_actions:
                danger = f" *DANGEROUS: {'/'.join(sorted(descriptor.dangerous_actions))}*"
            lines.append(f"`{descriptor.usage}`{aliases}{danger}\n  {descriptor.description}")
        body = "\n\n".join(lines)
        return (
            f"*OpsClaw Commands*\n*Active target:* {target.name}\n\n{body}\n\n"
            "_Dangerous commands require `confirm` (or `cancel`)_\n"
            "_Use /project to switch between targets_\n"
            "_Any non-command text goes to the agent (with tools)_"
        )

    def _log_call(self, name: str, result: CommandResult, args: str) -> None:
        try:
            self._call_logger.log(
                name,
                ok=result.success,
                error=None if result.success else result.output[:200],
                args={"args": args},
            )
        except Exception:  # noqa: BLE001
            self._logger.debug("failed to write command call log", exc_info=True)
