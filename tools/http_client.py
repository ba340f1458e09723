from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

import requests

from shared.models import JSONValue

logger = logging.getLogger("OpsClaw.HTTPClient")

TRUNCATION_MARKER = "\n...[response truncated]"


@dataclass
class HttpConfig:
    timeout: int = 15
    max_bytes: int = 500_000
    max_json_bytes: int = 1_000_000


@dataclass(frozen=True)
class HttpResult:
    ok: bool
    data: JSONValue | None
    status_code: int | None
    error: str | None = None
    headers: dict[str, str] | None = None
    truncated: bool = False

    @property
    def content_type(self) -> str:
        for key, value in (self.headers or {}).items():
            if key.lower() == "content-type":
                return value.lower()
        return ""


class HttpClient:
    """Thin ``requests`` wrapper that caps response size and never raises."""

    def __init__(self, config: HttpConfig | None = None) -> None:
        self.config = config or HttpConfig()

    def get_text(self, url: str, **kwargs: Any) -> HttpResult:
        return self._request("GET", url, expect_json=False, **kwargs)

    def post_json(self, url: str, **kwargs: Any) -> HttpResult:
        return self._request("POST", url, expect_json=True, **kwargs)

    def _request(self, method: str, url: str, expect_json: bool, **kwargs: Any) -> HttpResult:
        timeout = kwargs.pop("timeout", self.config.timeout)
        try:
            response = requests.request(
                method=method,
                url=url,
                timeout=timeout,
                stream=True,
                **kwargs,
            )
            status = response.status_code
            response.raise_for_status()
        except requests.Timeout:
            logger.error("HTTP %s timeout for %s", method, url)
            return HttpResult(ok=False, data=None, status_code=None, error="timeout")
        except requests.HTTPError as exc:
            logger.warning("HTTP %s status error for %s: %s", method, url, exc)
            return HttpResult(
                ok=False,
                data=None,
                status_code=exc.response.status_code if exc.response is not None else None,
                error=f"HTTP {exc.response.status_code if exc.response is not None else '?'}",
            )
        except requests.RequestException as exc:
            logger.error("HTTP %s error for %s: %s", method, url, exc)
            return HttpResult(ok=False, data=None, status_code=None, error=str(exc))

        headers = dict(response.headers)
        body, truncated = self._read_limited(response)
        if not expect_json:
            return HttpResult(
                ok=True, data=body, status_code=status, headers=headers, truncated=truncated
            )

        if truncated or len(body.encode("utf-8")) > self.config.max_json_bytes:
            logger.error("HTTP %s JSON body too large for %s", method, url)
            return HttpResult(
                ok=False,
                data=None,
                status_code=status,
                error="payload_too_large",
                headers=headers,
                truncated=truncated,
            )
        try:
            parsed = json.loads(body)
        except json.JSONDecodeError as exc:
            logger.error("HTTP %s JSON decode error for %s: %s", method, url, exc)
            return HttpResult(
                ok=False,
                data=None,
                status_code=status,
                error=f"json_decode_error: {exc}",
                headers=headers,
            )
        return HttpResult(ok=True, data=parsed, status_code=status, headers=headers)

    def _read_limited(self, response: requests.Response) -> tuple[str, bool]:
        total = 0
        collected: list[str] = []
        for chunk in response.iter_content(chunk_size=4096, decode_unicode=True):
            if chunk is None:
                continue
            text = chunk if isinstance(chunk, str) else chunk.decode("utf-8", errors="replace")
            total += len(text.encode("utf-8"))
            if total > self.config.max_bytes:
                collected.append(TRUNCATION_MARKER)
                return "".join(collected), True
            collected.append(text)
        return "".join(collected), False
