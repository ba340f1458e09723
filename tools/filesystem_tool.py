from __future__ import annotations

from pathlib import Path
from typing import Final

from config.targets import Target
from core.commands import CommandContext, CommandDescriptor
from shared.models import CommandResult
from tools.command_runner import clip

MAX_READ_BYTES: Final[int] = 512 * 1024
DEFAULT_MAX_LINES: Final[int] = 100
BLOCKED_NAMES: Final[tuple[str, ...]] = (
    ".env",
    ".pem",
    "credentials",
    "secret",
    "password",
    "token",
    "key.json",
    "id_rsa",
    "id_ed25519",
)


def parse_file_args(args: str) -> tuple[str, int]:
    parts = args.strip().split()
    if not parts:
        return "", DEFAULT_MAX_LINES
    max_lines = DEFAULT_MAX_LINES
    if "--lines" in parts:
        idx = parts.index("--lines")
        try:
            max_lines = max(1, int(parts[idx + 1]))
        except (IndexError, ValueError):
            max_lines = DEFAULT_MAX_LINES
    return parts[0], max_lines


def resolve_target_path(target: Target, raw_path: str) -> tuple[Path, str]:
    """Resolve ``raw_path`` inside the target root.

    Returns the absolute path and its root-relative form. Raises ``PermissionError``
    when the path escapes the root, falls outside the whitelisted directories or
    names a sensitive file.
    """
    root = Path(target.path).resolve()
    candidate = Path(raw_path)
    if not candidate.is_absolute():
        candidate = root / candidate
    resolved = candidate.resolve()
    if resolved != root and root not in resolved.parents:
        raise PermissionError("Access denied: path outside project directory.")

    relative = resolved.relative_to(root).as_posix()
    in_allowed_dir = any(
        relative.startswith(d) or f"{relative}/" == d for d in target.allowed_dirs
    )
    if not in_allowed_dir and relative not in target.root_files:
        raise PermissionError(
            f"Access denied: `{relative}` not in allowed directories.\n"
            f"Allowed: {', '.join(target.allowed_dirs)}"
        )

    basename = resolved.name.lower()
    if any(blocked in basename for blocked in BLOCKED_NAMES):
        raise PermissionError(f"Access denied: `{basename}` is a sensitive file.")
    return resolved, relative


def handle_file(args: str, ctx: CommandContext) -> CommandResult:
    raw_path, max_lines = parse_file_args(args)
    target = ctx.target
    if not raw_path:
        return CommandResult.fail(
            "Usage: /file <path> [--lines N]\nAllowed dirs: " + ", ".join(target.allowed_dirs)
        )

    try:
        resolved, relative = resolve_target_path(target, raw_path)
    except PermissionError as err:
        return CommandResult.fail(str(err))

    try:
        if not resolved.exists():
            return CommandResult.fail(f"File not found: {relative}")
        if resolved.is_dir():
            entries = sorted(p.name for p in resolved.iterdir())
            return CommandResult.ok(f"*Directory: {relative}/*\n```\n" + "\n".join(entries) + "\n```")

        size = resolved.stat().st_size
        if size > MAX_READ_BYTES:
            return CommandResult.fail(f"File too large: {size // 1024}KB (max 512KB)")

        lines = resolved.read_text(encoding="utf-8", errors="replace").split("\n")
        shown = "\n".join(lines[:max_lines])
        footer = ""
        if len(lines) > max_lines:
            footer = f"\n(showing first {max_lines} of {len(lines)} lines)"
        ext = resolved.suffix.lstrip(".")
        header = f"*[{target.name}] {relative}* ({len(lines)} lines, {size / 1024:.1f}KB)"
        return CommandResult.ok(f"{header}\n```{ext}\n{clip(shown)}\n```{footer}")
    except OSError as exc:
        return CommandResult.fail(f"Error: {exc}")


FILE_COMMAND = CommandDescriptor(
    name="file",
    aliases=("cat", "read"),
    description="Read a file of the active target (whitelisted directories only)",
    usage="/file <path> [--lines N]",
    handler=handle_file,
)
