"""Counter store backends.

Every backend keeps the whole :class:`AggregateSnapshot` under one fixed key
and exposes the same two calls: ``read`` the whole record, ``write`` the whole
record. There is no compare-and-swap; the last writer wins.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from lockchime.config import REDIS_URL, STATS_BACKEND, STATS_KEY
from lockchime.core.exceptions import StorageError
from lockchime.models import AggregateSnapshot, StatsRecord

logger = logging.getLogger("lockchime.store")


def _parse_snapshot(raw, key: str) -> AggregateSnapshot:
    if raw is None:
        return AggregateSnapshot()
    try:
        return AggregateSnapshot.model_validate_json(raw)
    except ValidationError as exc:
        raise StorageError(f"Stored value under '{key}' is not a valid snapshot") from exc


class CounterStore:
    name = "base"

    def read(self) -> AggregateSnapshot:
        raise NotImplementedError

    def write(self, snapshot: AggregateSnapshot) -> None:
        raise NotImplementedError


class MemoryCounterStore(CounterStore):
    """Process-local store, used for development and tests."""

    name = "memory"

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value: str | None = None

    def read(self) -> AggregateSnapshot:
        with self._lock:
            raw = self._value
        return _parse_snapshot(raw, "memory")

    def write(self, snapshot: AggregateSnapshot) -> None:
        with self._lock:
            self._value = snapshot.to_json()


class RedisCounterStore(CounterStore):
    name = "redis"

    def __init__(self, client, key: str = STATS_KEY) -> None:
        self._client = client
        self._key = key

    @classmethod
    def from_url(cls, url: str, key: str = STATS_KEY) -> "RedisCounterStore":
        import redis

        return cls(redis.from_url(url), key)

    def read(self) -> AggregateSnapshot:
        import redis

        try:
            raw = self._client.get(self._key)
        except redis.RedisError as exc:
            raise StorageError(f"Redis read failed: {exc}") from exc
        return _parse_snapshot(raw, self._key)

    def write(self, snapshot: AggregateSnapshot) -> None:
        import redis

        try:
            self._client.set(self._key, snapshot.to_json())
        except redis.RedisError as exc:
            raise StorageError(f"Redis write failed: {exc}") from exc


class SqlCounterStore(CounterStore):
    """Keeps the snapshot as JSON text in a single ``StatsRecord`` row."""

    name = "sql"

    def __init__(self, engine, key: str = STATS_KEY) -> None:
        self._engine = engine
        self._key = key

    def read(self) -> AggregateSnapshot:
        try:
            with Session(self._engine) as session:
                record = session.get(StatsRecord, self._key)
                raw = record.value if record else None
        except SQLAlchemyError as exc:
            raise StorageError(f"Database read failed: {exc}") from exc
        return _parse_snapshot(raw, self._key)

    def write(self, snapshot: AggregateSnapshot) -> None:
        try:
            with Session(self._engine) as session:
                record = session.get(StatsRecord, self._key)
                if record is None:
                    record = StatsRecord(key=self._key, value=snapshot.to_json())
                else:
                    record.value = snapshot.to_json()
                    record.updated_at = datetime.now(timezone.utc)
                session.add(record)
                session.commit()
        except SQLAlchemyError as exc:
            raise StorageError(f"Database write failed: {exc}") from exc


def _redis_available(url: str) -> bool:
    if not url:
        return False
    import redis

    try:
        redis.from_url(url).ping()
        return True
    except redis.RedisError as exc:
        logger.warning("event=redis_unavailable url=%s error=%s", url, exc)
        return False


def build_counter_store(backend: str = STATS_BACKEND) -> CounterStore:
    """Pick the configured backend; ``auto`` prefers a reachable Redis."""
    if backend == "auto":
        backend = "redis" if _redis_available(REDIS_URL) else "sql"

    if backend == "memory":
        store: CounterStore = MemoryCounterStore()
    elif backend == "redis":
        if not REDIS_URL:
            raise ValueError("REDIS_URL must be set when STATS_BACKEND is 'redis'")
        store = RedisCounterStore.from_url(REDIS_URL)
    elif backend == "sql":
        from lockchime.db import engine, init_db

        init_db()
        store = SqlCounterStore(engine)
    else:
        raise ValueError(f"Unknown STATS_BACKEND '{backend}'")

    logger.info("event=counter_store_ready backend=%s", store.name)
    return store
