from __future__ import annotations

import asyncio
import threading

from aiohttp.test_utils import TestClient, TestServer

from config.http_server_config import HttpServerConfig
from server.channel import MemoryChannel
from server.http_api import ACCESS_DENIED_REPLY, create_app, extract_telegram_message


class DummyAgent:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str, str]] = []
        self._lock = threading.Lock()

    def handle_message(self, session_id: str, text: str, username: str = "owner") -> str:
        with self._lock:
            self.calls.append((session_id, text, username))
        return f"echo: {text}"


def _update(text: str, chat_id: int = 42, sender_id: int = 7) -> dict[str, object]:
    return {
        "update_id": 1,
        "message": {"chat": {"id": chat_id}, "from": {"id": sender_id}, "text": text},
    }


async def _create_client(agent: DummyAgent, **kwargs) -> TestClient:  # noqa: ANN003
    app = create_app(agent=agent, **kwargs)
    client = TestClient(TestServer(app))
    await client.start_server()
    return client


async def _drain(client: TestClient) -> None:
    tasks = list(client.app["background_tasks"])
    if tasks:
        await asyncio.gather(*tasks)


def test_agent_message_endpoint() -> None:
    agent = DummyAgent()

    async def run() -> None:
        client = await _create_client(agent)
        try:
            resp = await client.post(
                "/v1/agent/message",
                json={"session_id": " ops-1 ", "text": "/health", "username": "jonah"},
            )
            assert resp.status == 200
            payload = await resp.json()
            assert payload == {"session_id": "ops-1", "reply": "echo: /health"}
            assert agent.calls == [("ops-1", "/health", "jonah")]
        finally:
            await client.close()

    asyncio.run(run())


def test_agent_message_validation() -> None:
    agent = DummyAgent()

    async def run() -> None:
        client = await _create_client(agent)
        try:
            resp = await client.post("/v1/agent/message", json={"text": "hi"})
            assert resp.status == 400
            assert (await resp.json())["error"]["code"] == "missing_session_id"

            resp = await client.post("/v1/agent/message", json={"session_id": "a", "text": " "})
            assert (await resp.json())["error"]["code"] == "missing_text"

            resp = await client.post(
                "/v1/agent/message", json={"session_id": "a", "text": "x" * 16_001}
            )
            assert resp.status == 413
            assert (await resp.json())["error"]["code"] == "text_too_long"

            resp = await client.post(
                "/v1/agent/message",
                data="{oops",
                headers={"Content-Type": "application/json"},
            )
            assert resp.status == 400
            assert (await resp.json())["error"]["code"] == "invalid_json"
            assert agent.calls == []
        finally:
            await client.close()

    asyncio.run(run())


def test_telegram_webhook_runs_agent_in_background() -> None:
    agent = DummyAgent()

    async def run() -> None:
        client = await _create_client(agent, owner_ids=frozenset({"7"}))
        try:
            resp = await client.post("/telegram/webhook", json=_update("/logs 50"))
            assert resp.status == 200
            assert await resp.json() == {"ok": True, "handled": True}
            await _drain(client)
            assert agent.calls == [("42", "/logs 50", "owner")]
        finally:
            await client.close()

    asyncio.run(run())


def test_telegram_webhook_denies_strangers_and_ignores_non_text() -> None:
    agent = DummyAgent()
    channel = MemoryChannel()

    async def run() -> None:
        client = await _create_client(agent, owner_ids=frozenset({"7"}), channel=channel)
        try:
            resp = await client.post("/telegram/webhook", json=_update("/deploy", sender_id=99))
            assert await resp.json() == {"ok": True, "handled": False}
            resp = await client.post("/telegram/webhook", json={"update_id": 2, "message": {}})
            assert await resp.json() == {"ok": True, "handled": False}
            await _drain(client)
            assert agent.calls == []
            assert channel.sent == [("42", ACCESS_DENIED_REPLY)]
        finally:
            await client.close()

    asyncio.run(run())


def test_access_denied_send_failure_still_acknowledges() -> None:
    class BrokenChannel:
        def send(self, session_id: str, text: str) -> None:
            raise ConnectionError("telegram down")

    agent = DummyAgent()

    async def run() -> None:
        client = await _create_client(
            agent, owner_ids=frozenset({"7"}), channel=BrokenChannel()
        )
        try:
            resp = await client.post("/telegram/webhook", json=_update("hi", sender_id=99))
            assert resp.status == 200
            assert await resp.json() == {"ok": True, "handled": False}
            assert agent.calls == []
        finally:
            await client.close()

    asyncio.run(run())


def test_webhook_secret_is_enforced() -> None:
    agent = DummyAgent()

    async def run() -> None:
        client = await _create_client(agent, config=HttpServerConfig(webhook_secret="s3cret"))
        try:
            resp = await client.post("/telegram/webhook", json=_update("hi"))
            assert resp.status == 401
            resp = await client.post(
                "/telegram/webhook",
                json=_update("hi"),
                headers={"X-Telegram-Bot-Api-Secret-Token": "s3cret"},
            )
            assert resp.status == 200
            resp = await client.post(
                "/v1/agent/message", json={"session_id": "a", "text": "hi"}
            )
            assert resp.status == 401
            await _drain(client)
            assert agent.calls == [("42", "hi", "owner")]
        finally:
            await client.close()

    asyncio.run(run())


def test_health_endpoint() -> None:
    async def run() -> None:
        client = await _create_client(DummyAgent())
        try:
            resp = await client.get("/health")
            assert await resp.json() == {"status": "ok", "pending_tasks": 0}
        finally:
            await client.close()

    asyncio.run(run())


def test_extract_telegram_message() -> None:
    assert extract_telegram_message(_update("hi")) == ("42", "7", "hi")
    edited = {"edited_message": {"chat": {"id": -5}, "text": "fix"}}
    assert extract_telegram_message(edited) == ("-5", "-5", "fix")
    assert extract_telegram_message({"callback_query": {}}) is None
