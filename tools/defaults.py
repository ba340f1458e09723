from __future__ import annotations

import logging
from collections.abc import Callable

from config.shell_config import ShellConfig
from tools.deploy_tool import DEPLOY_COMMAND
from tools.env_tool import SectionProvider, build_env_command
from tools.filesystem_tool import FILE_COMMAND
from tools.git_tool import GITHUB_COMMAND
from tools.health_tool import build_health_command
from tools.logs_tool import LOGS_COMMAND
from tools.process_tool import PM2_COMMAND
from tools.project_tool import TargetSwitcher, build_project_command
from tools.shell_tool import build_shell_command
from tools.tool_logger import ToolCallLogger
from tools.tool_registry import CommandRegistry
from tools.web_tool import WebTool, build_browse_command


def build_default_registry(
    switch_target: TargetSwitcher,
    *,
    shell_config: ShellConfig | None = None,
    web_tool: WebTool | None = None,
    env_provider: SectionProvider | None = None,
    health_collector: Callable[[], str] | None = None,
    call_logger: ToolCallLogger | None = None,
    logger: logging.Logger | None = None,
) -> CommandRegistry:
    registry = CommandRegistry(logger=logger, call_logger=call_logger)
    for descriptor in (
        build_health_command(health_collector),
        LOGS_COMMAND,
        PM2_COMMAND,
        DEPLOY_COMMAND,
        build_shell_command(shell_config),
        FILE_COMMAND,
        build_env_command(env_provider),
        GITHUB_COMMAND,
        build_project_command(switch_target),
        build_browse_command(web_tool),
    ):
        registry.register(descriptor)
    return registry
