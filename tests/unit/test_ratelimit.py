from types import SimpleNamespace

from conftest import FakeClock
from ratelimit import STALE_WINDOWS, ConnectionRateLimiter, SourceRateLimiter


def _connection():
    return SimpleNamespace(rate_window_start=0.0, rate_count=0)


def test_connection_limiter_rejects_only_within_window():
    clock = FakeClock()
    limiter = ConnectionRateLimiter(window=1.0, max_count=3, clock=clock)
    conn = _connection()

    results = [limiter.allow(conn) for _ in range(5)]
    assert results == [True, True, True, False, False]

    clock.advance(1.0)
    assert [limiter.allow(conn) for _ in range(4)] == [True, True, True, False]


def test_connection_limiters_are_independent():
    limiter = ConnectionRateLimiter(window=1.0, max_count=1, clock=FakeClock())
    a, b = _connection(), _connection()
    assert limiter.allow(a)
    assert not limiter.allow(a)
    assert limiter.allow(b)


def test_source_limiter_window_resets_count_to_one():
    clock = FakeClock()
    limiter = SourceRateLimiter(window=60, max_count=2, clock=clock)

    assert limiter.hit("1.2.3.4")
    assert limiter.hit("1.2.3.4")
    assert not limiter.hit("1.2.3.4")
    assert limiter.hit("5.6.7.8")

    clock.advance(60)
    assert limiter.hit("1.2.3.4")
    assert limiter.hit("1.2.3.4")
    assert not limiter.hit("1.2.3.4")


def test_source_limiter_collects_stale_buckets():
    clock = FakeClock()
    limiter = SourceRateLimiter(window=1, max_count=5, clock=clock)
    limiter.hit("a")
    limiter.hit("b")
    assert len(limiter) == 2

    clock.advance(STALE_WINDOWS + 1)
    limiter.hit("c")
    assert len(limiter) == 1
