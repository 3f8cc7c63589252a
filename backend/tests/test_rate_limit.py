import fakeredis
import redis

from instant_quote.utils.rate_limit import (
    MemoryRateLimitStore,
    RateLimiter,
    RedisRateLimitStore,
)


class Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_memory_store_minute_window():
    clock = Clock()
    store = MemoryRateLimitStore(per_minute=5, per_hour=30, clock=clock)
    for _ in range(5):
        assert store.hit("demo:1.2.3.4").allowed
    clock.now = 20
    decision = store.hit("demo:1.2.3.4")
    assert not decision.allowed
    assert decision.retry_after == 40

    # A different client is unaffected
    assert store.hit("demo:5.6.7.8").allowed

    clock.now = 60
    assert store.hit("demo:1.2.3.4").allowed


def test_memory_store_hour_window():
    clock = Clock()
    store = MemoryRateLimitStore(per_minute=100, per_hour=3, clock=clock)
    for i in range(3):
        clock.now = i * 61
        assert store.hit("k").allowed
    clock.now = 200
    decision = store.hit("k")
    assert not decision.allowed
    assert decision.retry_after == 3400


def test_rejected_requests_do_not_consume_quota():
    clock = Clock()
    store = MemoryRateLimitStore(per_minute=1, per_hour=2, clock=clock)
    assert store.hit("k").allowed
    for _ in range(10):
        assert not store.hit("k").allowed
    clock.now = 61
    assert store.hit("k").allowed


def test_memory_store_is_bounded_and_expires_idle_keys():
    clock = Clock()
    store = MemoryRateLimitStore(per_minute=5, per_hour=30, max_keys=3, clock=clock)
    for key in ("a", "b", "c", "d"):
        store.hit(key)
    assert len(store) == 3
    clock.now = 3 * 3600
    store.hit("e")
    assert len(store) == 1


def test_redis_store_counts_across_instances():
    fake = fakeredis.FakeStrictRedis(decode_responses=True)
    first = RedisRateLimitStore(fake, per_minute=5, per_hour=30)
    second = RedisRateLimitStore(fake, per_minute=5, per_hour=30)
    for i in range(5):
        assert (first if i % 2 else second).hit("demo:ip").allowed
    decision = first.hit("demo:ip")
    assert not decision.allowed
    assert 0 < decision.retry_after <= 60
    # The rejected attempt was handed back
    assert fake.get("rl:quote:demo:ip:m") == "5"


def test_redis_counters_expire_with_their_window():
    fake = fakeredis.FakeStrictRedis(decode_responses=True)
    store = RedisRateLimitStore(fake, per_minute=5, per_hour=30)
    assert store.hit("demo:ip").allowed
    assert 0 < fake.ttl("rl:quote:demo:ip:m") <= 60
    assert 60 < fake.ttl("rl:quote:demo:ip:h") <= 3600

    # Later hits keep the window that the first hit opened
    fake.expire("rl:quote:demo:ip:m", 10)
    assert store.hit("demo:ip").allowed
    assert 0 < fake.ttl("rl:quote:demo:ip:m") <= 10


def test_limiter_falls_back_to_memory_when_redis_fails():
    class BrokenStore:
        def hit(self, key):
            raise redis.exceptions.ConnectionError("down")

        def reset(self):
            raise redis.exceptions.ConnectionError("down")

    limiter = RateLimiter(BrokenStore(), MemoryRateLimitStore(per_minute=1, per_hour=10))
    assert limiter.hit("k").allowed
    assert not limiter.hit("k").allowed
    limiter.reset()
    assert limiter.hit("k").allowed
