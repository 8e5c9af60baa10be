from __future__ import annotations

import logging
import threading
from time import time
from typing import Dict, Tuple

from lockchime.config import REDIS_URL

logger = logging.getLogger("lockchime")


class RateLimiter:
    """Caps stat writes per client within aligned windows.

    Windows start on multiples of ``window_seconds`` so the Redis and in-memory
    counters agree on when a client's allowance resets. Redis keys carry the
    window number and expire with it.
    """

    def __init__(self, limit: int, window_seconds: int = 60) -> None:
        self.limit = max(limit, 1)
        self.window_seconds = window_seconds
        self._windows: Dict[str, Tuple[int, int]] = {}
        self._lock = threading.Lock()
        self._redis_client = self._connect_redis()

    def _connect_redis(self):
        if not REDIS_URL:
            return None
        import redis

        try:
            client = redis.from_url(REDIS_URL)
            client.ping()
            return client
        except redis.RedisError as exc:
            logger.warning("event=rate_limit_redis_unavailable error=%s", exc)
            return None

    def _current_window(self) -> Tuple[int, int]:
        now = time()
        window = int(now // self.window_seconds)
        retry_after = int((window + 1) * self.window_seconds - now)
        return window, max(retry_after, 1)

    def hit(self, client_id: str) -> Tuple[bool, int]:
        """Count one write for ``client_id``; returns (allowed, retry_after_seconds)."""
        window, retry_after = self._current_window()
        if self._redis_client is not None:
            writes = self._count_redis(client_id, window)
        else:
            writes = self._count_memory(client_id, window)
        if writes > self.limit:
            logger.info("event=stat_write_throttled client=%s writes=%s", client_id, writes)
            return False, retry_after
        return True, retry_after

    def _count_redis(self, client_id: str, window: int) -> int:
        import redis

        redis_key = f"stats_rate:{client_id}:{window}"
        try:
            pipe = self._redis_client.pipeline()
            pipe.incr(redis_key)
            pipe.expire(redis_key, self.window_seconds)
            writes, _ = pipe.execute()
            return int(writes)
        except redis.RedisError as exc:
            logger.warning("event=rate_limit_redis_failed error=%s", exc)
            return self._count_memory(client_id, window)

    def _count_memory(self, client_id: str, window: int) -> int:
        with self._lock:
            seen_window, writes = self._windows.get(client_id, (window, 0))
            writes = writes + 1 if seen_window == window else 1
            self._windows[client_id] = (window, writes)
            return writes
