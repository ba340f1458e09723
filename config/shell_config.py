from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

DEFAULT_SHELL_CONFIG_PATH = Path("config/shell_config.json")


@dataclass
class ShellConfig:
    timeout_seconds: int = 30
    max_output_chars: int = 3_500
    max_buffer_bytes: int = 512 * 1024
    cwd: str | None = None


def load_shell_config(path: Path | None = None) -> ShellConfig:
    cfg_path = path or DEFAULT_SHELL_CONFIG_PATH
    if not cfg_path.exists():
        return ShellConfig()
    try:
        data = json.loads(cfg_path.read_text(encoding="utf-8"))
        cwd_raw = data.get("cwd")
        return ShellConfig(
            timeout_seconds=int(data.get("timeout_seconds", ShellConfig().timeout_seconds)),
            max_output_chars=int(data.get("max_output_chars", ShellConfig().max_output_chars)),
            max_buffer_bytes=int(data.get("max_buffer_bytes", ShellConfig().max_buffer_bytes)),
            cwd=str(cwd_raw) if cwd_raw else None,
        )
    except Exception as exc:  # noqa: BLE001
        raise RuntimeError(f"Failed to load shell_config.json: {exc}") from exc


def save_shell_config(config: ShellConfig, path: Path | None = None) -> None:
    cfg_path = path or DEFAULT_SHELL_CONFIG_PATH
    cfg_path.parent.mkdir(parents=True, exist_ok=True)
    data = {
        "timeout_seconds": config.timeout_seconds,
        "max_output_chars": config.max_output_chars,
        "max_buffer_bytes": config.max_buffer_bytes,
        "cwd": config.cwd,
    }
    cfg_path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
