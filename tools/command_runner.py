from __future__ import annotations

import logging
import os
import subprocess
import time
from dataclasses import dataclass

logger = logging.getLogger("OpsClaw.CommandRunner")


@dataclass(frozen=True)
class RunOutput:
    stdout: str
    stderr: str
    returncode: int | None
    timed_out: bool = False
    duration_sec: float = 0.0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return not self.timed_out and self.error is None and self.returncode == 0


def run_command(
    command: str | list[str],
    *,
    cwd: str | None = None,
    timeout: float = 15,
    shell: bool = False,
    max_bytes: int = 256 * 1024,
) -> RunOutput:
    """Run a subprocess with a hard timeout; never raises."""
    env = {**os.environ, "TERM": "dumb"}
    started = time.monotonic()
    try:
        result = subprocess.run(
            command,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
            cwd=cwd if cwd and os.path.isdir(cwd) else None,
            shell=shell,
            env=env,
        )
    except subprocess.TimeoutExpired:
        logger.warning("command_timeout", extra={"command": str(command)[:100], "timeout": timeout})
        return RunOutput(
            stdout="",
            stderr="",
            returncode=None,
            timed_out=True,
            duration_sec=round(time.monotonic() - started, 3),
        )
    except Exception as exc:  # noqa: BLE001
        logger.error("command_spawn_failed", extra={"command": str(command)[:100], "error": str(exc)})
        return RunOutput(stdout="", stderr="", returncode=None, error=str(exc))
    return RunOutput(
        stdout=(result.stdout or "")[:max_bytes],
        stderr=(result.stderr or "")[:max_bytes],
        returncode=result.returncode,
        duration_sec=round(time.monotonic() - started, 3),
    )


def clip(text: str, limit: int = 3_500) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "\n(truncated)"


def code_block(header: str, body: str, limit: int = 3_500) -> str:
    return f"{header}\n```\n{clip(body, limit)}\n```"
