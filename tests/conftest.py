from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def _isolate_tool_call_log(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    log_path = tmp_path / "logs" / "tool_calls.log"
    monkeypatch.setattr("tools.tool_logger.DEFAULT_LOG_PATH", log_path)
    return log_path


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in (
        "OPSCLAW_MAX_ITERATIONS",
        "OPSCLAW_OWNER_IDS",
        "OPSCLAW_DEFAULT_TARGET",
        "OPSCLAW_LLM_PROVIDER",
        "OPSCLAW_LLM_MODEL",
        "OPSCLAW_LLM_BASE_URL",
        "OPSCLAW_LLM_API_KEY",
        "OPSCLAW_HTTP_HOST",
        "OPSCLAW_HTTP_PORT",
        "OPSCLAW_WEBHOOK_SECRET",
        "OPSCLAW_LOG_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)
