from __future__ import annotations

import logging
import threading
from typing import Final, Protocol

from tools.http_client import HttpClient, HttpConfig

logger = logging.getLogger("OpsClaw.Channel")

MESSAGE_LIMIT: Final[int] = 4_096
MESSAGE_CHUNK: Final[int] = 4_000
TELEGRAM_API: Final[str] = "https://api.telegram.org"


class OutboundChannel(Protocol):
    def send(self, session_id: str, text: str) -> None: ...


def split_message(text: str, limit: int = MESSAGE_LIMIT, chunk: int = MESSAGE_CHUNK) -> list[str]:
    """Split ``text`` into consecutive pieces that fit the channel's size cap.

    Text up to ``limit`` characters is sent as-is; longer text is cut into
    ``chunk``-sized pieces that concatenate back to the original.
    """
    if chunk <= 0 or chunk > limit:
        raise ValueError("chunk must be within 1..limit")
    if len(text) <= limit:
        return [text]
    return [text[i : i + chunk] for i in range(0, len(text), chunk)]


class TelegramChannel:
    """Delivers replies through the Telegram Bot API ``sendMessage`` method."""

    def __init__(
        self,
        bot_token: str,
        http_client: HttpClient | None = None,
        api_base: str = TELEGRAM_API,
        limit: int = MESSAGE_LIMIT,
        chunk: int = MESSAGE_CHUNK,
    ) -> None:
        if not bot_token:
            raise ValueError("Telegram bot token is required")
        self._endpoint = f"{api_base}/bot{bot_token}/sendMessage"
        self.http = http_client or HttpClient(HttpConfig(timeout=15))
        self.limit = limit
        self.chunk = chunk

    def send(self, session_id: str, text: str) -> None:
        for piece in split_message(text, self.limit, self.chunk):
            result = self.http.post_json(
                self._endpoint,
                json={"chat_id": session_id, "text": piece, "parse_mode": "Markdown"},
            )
            if result.ok:
                continue
            logger.warning(
                "telegram_markdown_rejected",
                extra={"chat_id": session_id, "status": result.status_code, "error": result.error},
            )
            # Markdown parse errors come back as 400; retry as plain text
            retry = self.http.post_json(
                self._endpoint, json={"chat_id": session_id, "text": piece}
            )
            if not retry.ok:
                logger.error(
                    "telegram_send_failed",
                    extra={"chat_id": session_id, "status": retry.status_code, "error": retry.error},
                )


class MemoryChannel:
    """Collects outbound messages in memory."""

    def __init__(self, limit: int = MESSAGE_LIMIT, chunk: int = MESSAGE_CHUNK) -> None:
        self.limit = limit
        self.chunk = chunk
        self.sent: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def send(self, session_id: str, text: str) -> None:
        with self._lock:
            for piece in split_message(text, self.limit, self.chunk):
                self.sent.append((session_id, piece))

    def messages_for(self, session_id: str) -> list[str]:
        with self._lock:
            return [text for sid, text in self.sent if sid == session_id]
