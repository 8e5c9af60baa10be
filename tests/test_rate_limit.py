import lockchime.core.rate_limit as rate_limit_module
from lockchime.core.rate_limit import RateLimiter


class FakePipeline:
    def __init__(self, store):
        self.store = store
        self.ops = []

    def incr(self, key):
        self.ops.append(("incr", key))

    def expire(self, key, seconds):
        self.ops.append(("expire", key, seconds))

    def execute(self):
        results = []
        for op in self.ops:
            if op[0] == "incr":
                self.store.counts[op[1]] = self.store.counts.get(op[1], 0) + 1
                results.append(self.store.counts[op[1]])
            else:
                self.store.expiries[op[1]] = op[2]
                results.append(True)
        return results


class FakeRedis:
    def __init__(self):
        self.counts = {}
        self.expiries = {}

    def pipeline(self):
        return FakePipeline(self)


def _limiter(monkeypatch, limit, now, redis_client=None):
    clock = {"now": now}
    monkeypatch.setattr(rate_limit_module, "time", lambda: clock["now"])
    limiter = RateLimiter(limit, window_seconds=60)
    limiter._redis_client = redis_client
    return limiter, clock


def test_memory_window_blocks_then_resets(monkeypatch):
    limiter, clock = _limiter(monkeypatch, 2, now=1_200.0)

    assert limiter.hit("10.0.0.1") == (True, 60)
    assert limiter.hit("10.0.0.1") == (True, 60)
    clock["now"] = 1_245.5
    assert limiter.hit("10.0.0.1") == (False, 14)
    assert limiter.hit("10.0.0.2")[0] is True

    clock["now"] = 1_260.0
    assert limiter.hit("10.0.0.1") == (True, 60)


def test_retry_after_is_at_least_one_second(monkeypatch):
    limiter, _ = _limiter(monkeypatch, 1, now=1_259.9)
    limiter.hit("client")
    assert limiter.hit("client") == (False, 1)


def test_redis_counts_per_window_key(monkeypatch):
    fake = FakeRedis()
    limiter, clock = _limiter(monkeypatch, 1, now=1_200.0, redis_client=fake)

    assert limiter.hit("client")[0] is True
    assert limiter.hit("client")[0] is False
    assert fake.counts == {"stats_rate:client:20": 2}
    assert fake.expiries["stats_rate:client:20"] == 60

    clock["now"] = 1_260.0
    assert limiter.hit("client")[0] is True
    assert fake.counts["stats_rate:client:21"] == 1
