from __future__ import annotations

import asyncio
import logging
import os
from typing import Final, Protocol

from aiohttp import web

from config.agent_config import resolve_agent_config
from config.http_server_config import (
    DEFAULT_MAX_REQUEST_BYTES,
    HttpServerConfig,
    resolve_http_server_config,
)
from config.logging_config import configure_logging
from config.model_store import resolve_model_config
from core.agent import OpsAgent
from llm.brain_factory import create_brain
from memory.audit_trail import AuditTrail
from memory.memory_store import MemoryStore
from server.channel import OutboundChannel, TelegramChannel
from shared.models import JSONValue

logger = logging.getLogger("OpsClaw.HttpAPI")

TELEGRAM_SECRET_HEADER: Final[str] = "X-Telegram-Bot-Api-Secret-Token"
API_SECRET_HEADER: Final[str] = "X-OpsClaw-Secret"
MAX_TEXT_CHARS: Final[int] = 16_000
ACCESS_DENIED_REPLY: Final[str] = "This is a private agent. Access denied."


class AgentProtocol(Protocol):
    def handle_message(self, session_id: str, text: str, username: str = "owner") -> str: ...


def _json_response(payload: dict[str, JSONValue], *, status: int = 200) -> web.Response:
    return web.json_response(payload, status=status)


def _error_response(
    *,
    status: int,
    message: str,
    error_type: str,
    code: str,
    details: dict[str, JSONValue] | None = None,
) -> web.Response:
    error_payload: dict[str, JSONValue] = {
        "message": message,
        "type": error_type,
        "code": code,
        "details": details or {},
    }
    return _json_response({"error": error_payload}, status=status)


def _session_lock(app: web.Application, session_id: str) -> asyncio.Lock:
    locks: dict[str, asyncio.Lock] = app["session_locks"]
    lock = locks.get(session_id)
    if lock is None:
        lock = asyncio.Lock()
        locks[session_id] = lock
    return lock


async def _run_agent(app: web.Application, session_id: str, text: str, username: str) -> str:
    agent: AgentProtocol = app["agent"]
    async with _session_lock(app, session_id):
        return await asyncio.to_thread(agent.handle_message, session_id, text, username)


async def _deny_stranger(app: web.Application, chat_id: str) -> None:
    channel: OutboundChannel | None = app["channel"]
    if channel is None:
        return
    try:
        await asyncio.to_thread(channel.send, chat_id, ACCESS_DENIED_REPLY)
    except Exception:  # noqa: BLE001
        logger.warning("access_denied_send_failed", exc_info=True, extra={"chat_id": chat_id})


def _secret_ok(request: web.Request, header: str) -> bool:
    config: HttpServerConfig = request.app["server_config"]
    if not config.webhook_secret:
        return True
    return request.headers.get(header) == config.webhook_secret


def extract_telegram_message(update: dict[str, object]) -> tuple[str, str, str] | None:
    """Return ``(chat_id, sender_id, text)`` for a text update, otherwise ``None``."""
    message = update.get("message") or update.get("edited_message")
    if not isinstance(message, dict):
        return None
    text = message.get("text")
    chat = message.get("chat")
    sender = message.get("from")
    if not isinstance(text, str) or not text.strip() or not isinstance(chat, dict):
        return None
    chat_id = chat.get("id")
    if chat_id is None:
        return None
    sender_id = sender.get("id") if isinstance(sender, dict) else None
    return str(chat_id), str(sender_id if sender_id is not None else chat_id), text


async def handle_telegram_webhook(request: web.Request) -> web.Response:
    if not _secret_ok(request, TELEGRAM_SECRET_HEADER):
        logger.warning("webhook_secret_mismatch")
        return _error_response(
            status=401, message="Invalid webhook secret.", error_type="auth_error", code="unauthorized"
        )
    try:
        payload = await request.json()
    except Exception as exc:  # noqa: BLE001
        return _error_response(
            status=400,
            message=f"Invalid JSON: {exc}",
            error_type="invalid_request_error",
            code="invalid_json",
        )
    if not isinstance(payload, dict):
        return _error_response(
            status=400,
            message="JSON body must be an object.",
            error_type="invalid_request_error",
            code="invalid_json",
        )

    extracted = extract_telegram_message(payload)
    if extracted is None:
        return _json_response({"ok": True, "handled": False})
    chat_id, sender_id, text = extracted
    owner_ids: frozenset[str] = request.app["owner_ids"]
    if owner_ids and sender_id not in owner_ids:
        logger.warning("non_owner_message_ignored", extra={"sender_id": sender_id})
        await _deny_stranger(request.app, chat_id)
        return _json_response({"ok": True, "handled": False})

    task = asyncio.create_task(_run_agent(request.app, chat_id, text, "owner"))
    tasks: set[asyncio.Task[str]] = request.app["background_tasks"]
    tasks.add(task)
    task.add_done_callback(tasks.discard)
    return _json_response({"ok": True, "handled": True})


async def handle_agent_message(request: web.Request) -> web.Response:
    if not _secret_ok(request, API_SECRET_HEADER):
        return _error_response(
            status=401, message="Invalid API secret.", error_type="auth_error", code="unauthorized"
        )
    try:
        payload = await request.json()
    except Exception as exc:  # noqa: BLE001
        return _error_response(
            status=400,
            message=f"Invalid JSON: {exc}",
            error_type="invalid_request_error",
            code="invalid_json",
        )
    if not isinstance(payload, dict):
        return _error_response(
            status=400,
            message="JSON body must be an object.",
            error_type="invalid_request_error",
            code="invalid_json",
        )

    session_id = payload.get("session_id")
    text = payload.get("text")
    username = payload.get("username", "owner")
    if not isinstance(session_id, str) or not session_id.strip():
        return _error_response(
            status=400,
            message="session_id must be a non-empty string.",
            error_type="invalid_request_error",
            code="missing_session_id",
        )
    if not isinstance(text, str) or not text.strip():
        return _error_response(
            status=400,
            message="text must be a non-empty string.",
            error_type="invalid_request_error",
            code="missing_text",
        )
    if len(text) > MAX_TEXT_CHARS:
        return _error_response(
            status=413,
            message=f"text exceeds {MAX_TEXT_CHARS} characters.",
            error_type="invalid_request_error",
            code="text_too_long",
        )
    if not isinstance(username, str) or not username.strip():
        username = "owner"

    reply = await _run_agent(request.app, session_id.strip(), text, username.strip())
    return _json_response({"session_id": session_id.strip(), "reply": reply})


async def handle_health(request: web.Request) -> web.Response:
    return _json_response(
        {"status": "ok", "pending_tasks": len(request.app["background_tasks"])}
    )


async def _drain_background_tasks(app: web.Application) -> None:
    tasks: set[asyncio.Task[str]] = app["background_tasks"]
    if tasks:
        await asyncio.gather(*tasks, return_exceptions=True)


def create_app(
    *,
    agent: AgentProtocol,
    config: HttpServerConfig | None = None,
    owner_ids: frozenset[str] = frozenset(),
    channel: OutboundChannel | None = None,
) -> web.Application:
    server_config = config or HttpServerConfig()
    app = web.Application(client_max_size=server_config.max_request_bytes or DEFAULT_MAX_REQUEST_BYTES)
    app["agent"] = agent
    app["server_config"] = server_config
    app["owner_ids"] = frozenset(owner_ids)
    app["channel"] = channel
    app["session_locks"] = {}
    app["background_tasks"] = set()
    app.router.add_post("/telegram/webhook", handle_telegram_webhook)
    app.router.add_post("/v1/agent/message", handle_agent_message)
    app.router.add_get("/health", handle_health)
    app.on_shutdown.append(_drain_background_tasks)
    return app


def build_agent() -> OpsAgent:
    agent_config = resolve_agent_config()
    model_config = resolve_model_config()
    bot_token = os.getenv("TELEGRAM_BOT_TOKEN", "").strip()
    channel: OutboundChannel | None = None
    if bot_token:
        channel = TelegramChannel(
            bot_token, limit=agent_config.message_limit, chunk=agent_config.message_chunk
        )
    if channel is None:
        logger.warning("telegram_channel_disabled", extra={"reason": "TELEGRAM_BOT_TOKEN not set"})
    return OpsAgent(
        create_brain(model_config),
        config=agent_config,
        model_config=model_config,
        audit=AuditTrail(),
        memory=MemoryStore(),
        channel=channel,
    )


def run_server(config: HttpServerConfig) -> None:
    agent_config = resolve_agent_config()
    agent = build_agent()
    app = create_app(
        agent=agent,
        config=config,
        owner_ids=agent_config.owner_ids,
        channel=agent.channel,
    )
    logger.info("server_starting", extra={"host": config.host, "port": config.port})
    web.run_app(app, host=config.host, port=config.port)


def main() -> None:
    configure_logging()
    run_server(resolve_http_server_config())


__all__ = ["create_app", "main", "run_server"]
