from __future__ import annotations

import os
from collections.abc import Callable, Mapping
from dataclasses import asdict
from typing import Final

from config.agent_config import resolve_agent_config
from config.http_server_config import resolve_http_server_config
from config.model_store import resolve_model_config
from config.shell_config import load_shell_config
from core.commands import CommandContext, CommandDescriptor
from shared.models import CommandResult
from shared.sanitize import mask_secret
from tools.command_runner import clip

ENV_PREFIXES: Final[tuple[str, ...]] = ("OPSCLAW_", "TELEGRAM_", "OPENROUTER_")

ConfigSections = Mapping[str, Mapping[str, object]]
SectionProvider = Callable[[], ConfigSections]


def collect_config_sections() -> dict[str, dict[str, object]]:
    """Snapshot of the running configuration, one section per config file."""
    agent = asdict(resolve_agent_config())
    agent["owner_ids"] = sorted(agent["owner_ids"])
    return {
        "agent": agent,
        "model": asdict(resolve_model_config()),
        "http": asdict(resolve_http_server_config()),
        "shell": asdict(load_shell_config()),
        "process": {
            key: value
            for key, value in sorted(os.environ.items())
            if key.startswith(ENV_PREFIXES)
        },
    }


def flatten_section(values: Mapping[str, object], prefix: str) -> list[tuple[str, str]]:
    entries: list[tuple[str, str]] = []
    for key, value in values.items():
        full_key = f"{prefix}.{key}"
        if isinstance(value, Mapping):
            entries.extend(flatten_section(value, full_key))
        else:
            entries.append((full_key, mask_secret(key, value)))
    return entries


def handle_env(args: str, sections: ConfigSections) -> CommandResult:
    section = args.strip().lower()
    if not section:
        summary = "\n".join(f"{name} ({len(values)} keys)" for name, values in sections.items())
        return CommandResult.ok(
            f"*Config Sections:*\n```\n{summary}\n```\nUse `/env <section>` for details."
        )
    if section not in sections:
        return CommandResult.fail(
            f"Unknown section: {section}\nAvailable: {', '.join(sections)}"
        )
    body = "\n".join(
        f"{key}: {value}" for key, value in flatten_section(sections[section], section)
    )
    return CommandResult.ok(f"*Config - {section}:*\n```\n{clip(body)}\n```")


def build_env_command(provider: SectionProvider | None = None) -> CommandDescriptor:
    load_sections = provider or collect_config_sections

    def _execute(args: str, ctx: CommandContext) -> CommandResult:
        return handle_env(args, load_sections())

    return CommandDescriptor(
        name="env",
        aliases=("config",),
        description="Show configuration with secrets masked",
        usage="/env [section]",
        handler=_execute,
    )
