from __future__ import annotations

import hashlib
import json
import logging
import sqlite3
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Final

from shared.models import AuditEntry, JSONValue

logger = logging.getLogger("OpsClaw.Audit")

DEFAULT_AUDIT_DB: Final[str] = "memory/opsclaw_audit.db"
GENESIS_HASH: Final[str] = "0" * 64


def compute_hash(
    previous_hash: str,
    sequence_number: int,
    timestamp: str,
    actor: str,
    action: str,
    subject: str,
    metadata: dict[str, JSONValue],
) -> str:
    payload = json.dumps(
        {
            "previous_hash": previous_hash,
            "sequence_number": sequence_number,
            "timestamp": timestamp,
            "actor": actor,
            "action": action,
            "subject": subject,
            "metadata": metadata,
        },
        ensure_ascii=False,
        sort_keys=True,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class AuditTrail:
    """Append-only audit log; every row hashes the row before it."""

    def __init__(self, db_path: str = DEFAULT_AUDIT_DB) -> None:
        self.db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self._lock = threading.Lock()
        with self._lock, self.conn:
            self.conn.execute(
                """
                CREATE TABLE IF NOT EXISTS audit_trail (
                    id TEXT PRIMARY KEY,
                    sequence_number INTEGER UNIQUE,
                    timestamp TEXT,
                    actor TEXT,
                    action TEXT,
                    subject TEXT,
                    metadata TEXT,
                    previous_hash TEXT,
                    hash TEXT
                )
                """
            )

    def record(
        self,
        actor: str,
        action: str,
        subject: str,
        metadata: dict[str, JSONValue] | None = None,
    ) -> AuditEntry:
        meta = dict(metadata or {})
        timestamp = datetime.now(timezone.utc).isoformat()
        with self._lock, self.conn:
            row = self.conn.execute(
                "SELECT sequence_number, hash FROM audit_trail "
                "ORDER BY sequence_number DESC LIMIT 1"
            ).fetchone()
            sequence_number = int(row[0]) + 1 if row else 1
            previous_hash = str(row[1]) if row else GENESIS_HASH
            entry = AuditEntry(
                id=uuid.uuid4().hex,
                sequence_number=sequence_number,
                timestamp=timestamp,
                actor=actor,
                action=action,
                subject=subject,
                metadata=meta,
                previous_hash=previous_hash,
                hash=compute_hash(
                    previous_hash, sequence_number, timestamp, actor, action, subject, meta
                ),
            )
            self.conn.execute(
                "INSERT INTO audit_trail "
                "(id, sequence_number, timestamp, actor, action, subject, metadata, previous_hash, hash) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    entry.id,
                    entry.sequence_number,
                    entry.timestamp,
                    entry.actor,
                    entry.action,
                    entry.subject,
                    json.dumps(meta, ensure_ascii=False, sort_keys=True),
                    entry.previous_hash,
                    entry.hash,
                ),
            )
        logger.info(
            "audit_recorded",
            extra={"action": action, "subject": subject, "sequence": sequence_number},
        )
        return entry

    def recent(self, limit: int = 20) -> list[AuditEntry]:
        with self._lock:
            rows = self.conn.execute(
                "SELECT id, sequence_number, timestamp, actor, action, subject, metadata, "
                "previous_hash, hash FROM audit_trail ORDER BY sequence_number DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [self._row_to_entry(row) for row in rows]

    def verify_chain(self) -> tuple[bool, int | None]:
        """Return ``(True, None)`` or ``(False, first_broken_sequence_number)``."""
        with self._lock:
            rows = self.conn.execute(
                "SELECT id, sequence_number, timestamp, actor, action, subject, metadata, "
                "previous_hash, hash FROM audit_trail ORDER BY sequence_number ASC"
            ).fetchall()
        expected_previous = GENESIS_HASH
        for row in rows:
            entry = self._row_to_entry(row)
            recomputed = compute_hash(
                entry.previous_hash,
                entry.sequence_number,
                entry.timestamp,
                entry.actor,
                entry.action,
                entry.subject,
                entry.metadata,
            )
            if entry.previous_hash != expected_previous or recomputed != entry.hash:
                logger.warning("audit_chain_broken", extra={"sequence": entry.sequence_number})
                return False, entry.sequence_number
            expected_previous = entry.hash
        return True, None

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    def _row_to_entry(self, row: tuple[object, ...]) -> AuditEntry:
        id_val, seq, timestamp, actor, action, subject, meta_json, previous_hash, hash_val = row
        return AuditEntry(
            id=str(id_val),
            sequence_number=int(str(seq)),
            timestamp=str(timestamp),
            actor=str(actor),
            action=str(action),
            subject=str(subject),
            metadata=json.loads(str(meta_json)) if meta_json else {},
            previous_hash=str(previous_hash),
            hash=str(hash_val),
        )
