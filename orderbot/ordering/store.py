# orderbot/ordering/store.py
from __future__ import annotations

import json
from contextlib import contextmanager
from datetime import datetime
from threading import Lock, RLock
from typing import Any, Dict, Iterator, List, Optional, Protocol, Tuple

from sqlalchemy.orm import sessionmaker

from ..models import Record


def make_key(*parts: str) -> str:
    return "|".join(str(p) for p in parts)


class KeyedStore(Protocol):
    """Record store keyed by (kind, key). Payloads are JSON-able dicts."""

    def get(self, kind: str, key: str) -> Optional[Dict[str, Any]]: ...

    def put(self, kind: str, key: str, payload: Dict[str, Any]) -> None: ...

    def delete(self, kind: str, key: str) -> None: ...

    def items(self, kind: str) -> List[Tuple[str, Dict[str, Any]]]: ...


class MemoryStore:
    """Process-local store. Payloads are copied through JSON so callers never share state."""

    def __init__(self) -> None:
        self._data: Dict[Tuple[str, str], str] = {}
        self._lock = RLock()

    def get(self, kind: str, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            raw = self._data.get((kind, key))
        return json.loads(raw) if raw is not None else None

    def put(self, kind: str, key: str, payload: Dict[str, Any]) -> None:
        raw = json.dumps(payload, ensure_ascii=False)
        with self._lock:
            self._data[(kind, key)] = raw

    def delete(self, kind: str, key: str) -> None:
        with self._lock:
            self._data.pop((kind, key), None)

    def items(self, kind: str) -> List[Tuple[str, Dict[str, Any]]]:
        with self._lock:
            rows = [(k, raw) for (kd, k), raw in self._data.items() if kd == kind]
        return [(k, json.loads(raw)) for k, raw in rows]


class SqlStore:
    """SQLAlchemy-backed store: one row per (kind, key) in the records table."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._sessions = session_factory

    def get(self, kind: str, key: str) -> Optional[Dict[str, Any]]:
        with self._sessions() as db:
            row = db.get(Record, (kind, key))
            if not row:
                return None
            return json.loads(row.payload or "{}")

    def put(self, kind: str, key: str, payload: Dict[str, Any]) -> None:
        raw = json.dumps(payload, ensure_ascii=False)
        with self._sessions() as db:
            row = db.get(Record, (kind, key))
            if row:
                row.payload = raw
                row.updated_at = datetime.utcnow()
            else:
                db.add(Record(kind=kind, key=key, payload=raw))
            db.commit()

    def delete(self, kind: str, key: str) -> None:
        with self._sessions() as db:
            row = db.get(Record, (kind, key))
            if row:
                db.delete(row)
                db.commit()

    def items(self, kind: str) -> List[Tuple[str, Dict[str, Any]]]:
        with self._sessions() as db:
            rows = db.query(Record).filter(Record.kind == kind).order_by(Record.key).all()
            return [(r.key, json.loads(r.payload or "{}")) for r in rows]


class KeyedLocks:
    """
    One re-entrant lock per key; different keys never block each other.
    A key's lock lives only while someone holds or waits on it.
    """

    def __init__(self) -> None:
        self._guard = Lock()
        self._locks: Dict[str, RLock] = {}
        self._users: Dict[str, int] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = RLock()
            self._users[key] = self._users.get(key, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._users[key] -= 1
                if not self._users[key]:
                    del self._users[key]
                    del self._locks[key]
