from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080
DEFAULT_MAX_REQUEST_BYTES = 256_000
DEFAULT_PATH = Path("config/http_server.json")


@dataclass(frozen=True)
class HttpServerConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    max_request_bytes: int = DEFAULT_MAX_REQUEST_BYTES
    webhook_secret: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "host": self.host,
            "port": self.port,
            "max_request_bytes": self.max_request_bytes,
            "webhook_secret_set": bool(self.webhook_secret),
        }


def load_http_server_config(path: Path = DEFAULT_PATH) -> HttpServerConfig:
    if not path.exists():
        return HttpServerConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:  # noqa: BLE001
        raise RuntimeError(f"Failed to read http_server.json: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError("http_server.json must contain an object.")
    host = data.get("host", DEFAULT_HOST)
    port = data.get("port", DEFAULT_PORT)
    max_request_bytes = data.get("max_request_bytes", DEFAULT_MAX_REQUEST_BYTES)
    webhook_secret = data.get("webhook_secret")
    if not isinstance(host, str) or not host.strip():
        raise ValueError("http_server.host must be a non-empty string.")
    if not isinstance(port, int) or isinstance(port, bool):
        raise ValueError("http_server.port must be int.")
    if not isinstance(max_request_bytes, int) or isinstance(max_request_bytes, bool):
        raise ValueError("http_server.max_request_bytes must be int.")
    if webhook_secret is not None and not isinstance(webhook_secret, str):
        raise ValueError("http_server.webhook_secret must be a string.")
    return HttpServerConfig(
        host=host.strip(),
        port=port,
        max_request_bytes=max_request_bytes,
        webhook_secret=webhook_secret or None,
    )


def resolve_http_server_config(path: Path = DEFAULT_PATH) -> HttpServerConfig:
    config = load_http_server_config(path)
    host_raw = os.getenv("OPSCLAW_HTTP_HOST")
    port_raw = os.getenv("OPSCLAW_HTTP_PORT")
    secret_raw = os.getenv("OPSCLAW_WEBHOOK_SECRET")

    host = config.host
    if isinstance(host_raw, str) and host_raw.strip():
        host = host_raw.strip()

    port = config.port
    if isinstance(port_raw, str) and port_raw.strip():
        try:
            port = int(port_raw.strip())
        except ValueError as exc:
            raise ValueError("OPSCLAW_HTTP_PORT must be int.") from exc

    secret = config.webhook_secret
    if isinstance(secret_raw, str) and secret_raw.strip():
        secret = secret_raw.strip()

    return HttpServerConfig(
        host=host,
        port=port,
        max_request_bytes=config.max_request_bytes,
        webhook_secret=secret,
    )
