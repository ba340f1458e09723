from __future__ import annotations

import pytest

from memory.memory_store import MemoryStore
from shared.models import MemoryEntry


@pytest.fixture
def store(tmp_path):
    memory = MemoryStore(str(tmp_path / "memory.db"))
    yield memory
    memory.close()


def test_store_and_recall_by_any_word(store: MemoryStore) -> None:
    store.store(MemoryEntry(content="Nginx reload fixes stale certs", importance=0.3))
    store.store(MemoryEntry(content="Postgres backups run at 02:00", importance=0.9))
    store.store(MemoryEntry(content="unrelated note"))
    results = store.recall("nginx backups")
    assert [entry.content for entry in results] == [
        "Postgres backups run at 02:00",
        "Nginx reload fixes stale certs",
    ]


def test_recall_namespace_and_limit(store: MemoryStore) -> None:
    store.store(MemoryEntry(content="deploy notes one", namespace="doctarx"))
    store.store(MemoryEntry(content="deploy notes two"))
    assert [e.namespace for e in store.recall("deploy", namespace="doctarx")] == ["doctarx"]
    assert len(store.recall("deploy", limit=1)) == 1
    assert store.recall("?!") == []


def test_store_validation(store: MemoryStore) -> None:
    with pytest.raises(ValueError):
        store.store(MemoryEntry(content="   "))
    with pytest.raises(ValueError):
        store.store(MemoryEntry(content="x", importance=1.5))


def test_entries_survive_reopen(tmp_path) -> None:
    path = str(tmp_path / "m.db")
    first = MemoryStore(path)
    entry_id = first.store(MemoryEntry(content="pm2 cluster has 4 workers", metadata={"by": "op"}))
    first.close()
    second = MemoryStore(path)
    recent = second.recall("pm2 workers")
    assert recent[0].id == entry_id
    assert recent[0].metadata == {"by": "op"}
    second.close()
