from __future__ import annotations

from dataclasses import dataclass
from typing import Final, Literal

from shared.models import JSONValue

ParamType = Literal["string", "number", "boolean"]


@dataclass(frozen=True)
class ToolParam:
    name: str
    type: ParamType
    description: str
    enum: tuple[str, ...] = ()
    required: bool = False

    def to_schema(self) -> dict[str, JSONValue]:
        schema: dict[str, JSONValue] = {"type": self.type, "description": self.description}
        if self.enum:
            schema["enum"] = list(self.enum)
        return schema


@dataclass(frozen=True)
class ToolSpec:
    """One model-callable tool, rendered in the OpenAI function format."""

    name: str
    description: str
    params: tuple[ToolParam, ...] = ()

    def to_openai(self) -> dict[str, JSONValue]:
        parameters: dict[str, JSONValue] = {
            "type": "object",
            "properties": {param.name: param.to_schema() for param in self.params},
        }
        required = [param.name for param in self.params if param.required]
        if required:
            parameters["required"] = required
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": parameters,
            },
        }


TOOL_CATALOG: Final[tuple[ToolSpec, ...]] = (
    ToolSpec(
        name="health",
        description="Get system health metrics: CPU, memory, disk, uptime",
    ),
    ToolSpec(
        name="logs",
        description="Read process manager log lines for the active target",
        params=(
            ToolParam("lines", "number", "Number of lines to read (default 30, max 200)"),
            ToolParam("error_only", "boolean", "Show only error logs"),
        ),
    ),
    ToolSpec(
        name="github",
        description="GitHub operations: commits, status, diff, branch, log, issues, prs, actions",
        params=(
            ToolParam(
                "action",
                "string",
                "GitHub action to perform",
                enum=("commits", "status", "diff", "branch", "log", "issues", "prs", "actions"),
                required=True,
            ),
        ),
    ),
    ToolSpec(
        name="file",
        description=(
            "Read a file or list a directory of the active target "
            "(whitelisted paths only, no .env/.pem/secrets)"
        ),
        params=(
            ToolParam("path", "string", "File or directory path relative to the target root", required=True),
            ToolParam("lines", "number", "Max lines to show (default 100)"),
        ),
    ),
    ToolSpec(
        name="env",
        description="Show configuration with secrets masked. Optionally drill into a section.",
        params=(
            ToolParam("section", "string", "Config section name. Omit to list all sections."),
        ),
    ),
    ToolSpec(
        name="pm2",
        description=(
            "Process management. Safe actions: list, status, monit, describe. "
            "Dangerous actions (restart/reload/stop/start) are blocked here."
        ),
        params=(
            ToolParam(
                "action",
                "string",
                "Process manager action to perform",
                enum=("list", "status", "monit", "describe", "restart", "reload", "stop", "start"),
                required=True,
            ),
        ),
    ),
    ToolSpec(
        name="shell",
        description=(
            "Execute a shell command on the server. BLOCKED here for safety: "
            "tell the owner to use /shell <cmd> then confirm."
        ),
        params=(ToolParam("command", "string", "Shell command to run", required=True),),
    ),
    ToolSpec(
        name="deploy",
        description="Trigger deployment. BLOCKED here: tell the owner to use /deploy then confirm.",
    ),
    ToolSpec(
        name="project",
        description="Switch the active target (promptpay or doctarx)",
        params=(
            ToolParam("name", "string", "Target name or alias: promptpay, pp, doctarx, dx", required=True),
        ),
    ),
    ToolSpec(
        name="browse",
        description="Fetch a URL and return its readable text",
        params=(ToolParam("url", "string", "URL to fetch", required=True),),
    ),
    ToolSpec(
        name="memory_store",
        description=(
            "Store important information to persistent memory (survives restarts). "
            "Use for facts, decisions, events."
        ),
        params=(
            ToolParam("content", "string", "The information to remember", required=True),
            ToolParam("namespace", "string", "Category namespace (default: opsclaw)"),
            ToolParam("importance", "number", "Importance score 0.0-1.0 (default: 0.5)"),
        ),
    ),
    ToolSpec(
        name="memory_recall",
        description="Recall information from persistent memory by keyword search",
        params=(
            ToolParam("query", "string", "Search query for memory recall", required=True),
            ToolParam("namespace", "string", "Filter by namespace (default: opsclaw)"),
        ),
    ),
)


def catalog_schema(catalog: tuple[ToolSpec, ...] = TOOL_CATALOG) -> list[dict[str, JSONValue]]:
    return [spec.to_openai() for spec in catalog]


def tool_names(catalog: tuple[ToolSpec, ...] = TOOL_CATALOG) -> list[str]:
    return [spec.name for spec in catalog]
