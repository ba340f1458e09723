from __future__ import annotations

import json
import logging
import re
import sqlite3
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path

from shared.models import MemoryEntry

logger = logging.getLogger("OpsClaw.Memory")

DEFAULT_DB_PATH = "memory/opsclaw_memory.db"
_WORD_RE = re.compile(r"\w+", re.UNICODE)


class MemoryStore:
    """Sqlite-backed long-term memory for the agent."""

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        self.db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self._lock = threading.Lock()
        self._init_tables()

    def _init_tables(self) -> None:
        with self._lock, self.conn:
            self.conn.execute(
                """
                CREATE TABLE IF NOT EXISTS memory (
                    id TEXT PRIMARY KEY,
                    agent_id TEXT,
                    namespace TEXT,
                    kind TEXT,
                    content TEXT,
                    importance REAL,
                    meta TEXT,
                    created_at TEXT
                )
                """
            )
            self.conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_memory_namespace ON memory(namespace)"
            )

    def store(self, entry: MemoryEntry) -> str:
        content = entry.content.strip()
        if not content:
            raise ValueError("Memory content must not be empty")
        if not 0.0 <= entry.importance <= 1.0:
            raise ValueError("importance must be within 0.0-1.0")
        entry_id = entry.id or uuid.uuid4().hex
        created_at = entry.created_at or datetime.now(timezone.utc).isoformat()
        with self._lock, self.conn:
            self.conn.execute(
                "INSERT OR REPLACE INTO memory "
                "(id, agent_id, namespace, kind, content, importance, meta, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    entry_id,
                    entry.agent_id,
                    entry.namespace,
                    entry.kind,
                    content,
                    entry.importance,
                    json.dumps(entry.metadata or {}, ensure_ascii=False),
                    created_at,
                ),
            )
        logger.info(
            "memory_stored",
            extra={"id": entry_id, "namespace": entry.namespace, "chars": len(content)},
        )
        return entry_id

    def recall(self, query: str, namespace: str | None = None, limit: int = 5) -> list[MemoryEntry]:
        """Entries matching any word of ``query``, most important and newest first."""
        words = [word for word in _WORD_RE.findall(query.lower()) if len(word) > 1][:8]
        if not words:
            return []
        clauses = " OR ".join("LOWER(content) LIKE ?" for _ in words)
        params: list[object] = [f"%{word}%" for word in words]
        sql = (
            "SELECT id, agent_id, namespace, kind, content, importance, meta, created_at "
            f"FROM memory WHERE ({clauses})"
        )
        if namespace:
            sql += " AND namespace = ?"
            params.append(namespace)
        sql += " ORDER BY importance DESC, created_at DESC LIMIT ?"
        params.append(limit)
        with self._lock:
            rows = self.conn.execute(sql, params).fetchall()
        return [self._row_to_entry(row) for row in rows]

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    def _row_to_entry(self, row: tuple[object, ...]) -> MemoryEntry:
        id_val, agent_id, namespace, kind, content, importance, meta_json, created_at = row
        meta = json.loads(str(meta_json)) if meta_json else {}
        return MemoryEntry(
            id=str(id_val),
            agent_id=str(agent_id),
            namespace=str(namespace),
            kind=str(kind),
            content=str(content),
            importance=float(importance or 0.0),  # type: ignore[arg-type]
            metadata=meta,
            created_at=str(created_at),
        )
