"""Tests for the per-scope circuit breaker."""

from classroom_sync.circuit_breaker import CircuitBreaker
from classroom_sync.errors import RemoteStoreError


class Remote:
    def __init__(self):
        self.calls = 0
        self.error = None

    async def fetch(self, value="ok"):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return value


def test_closed_by_default(clock):
    breaker = CircuitBreaker(clock)
    assert breaker.allow("L1")
    assert not breaker.is_open("L1")


def test_failure_opens_only_its_scope(clock):
    breaker = CircuitBreaker(clock)
    breaker.record_failure("L1")
    assert breaker.is_open("L1")
    assert breaker.allow("L2")


def test_closes_after_general_cooldown(clock):
    breaker = CircuitBreaker(clock)
    breaker.record_failure("L1")
    clock.advance(29_999)
    assert breaker.is_open("L1")
    clock.advance(1)
    assert not breaker.is_open("L1")


async def test_call_skips_while_open_and_resumes_after_cooldown(clock):
    breaker = CircuitBreaker(clock)
    remote = Remote()
    remote.error = RemoteStoreError("boom", status_code=500)

    assert await breaker.call("L1", remote.fetch, fallback="local") == "local"
    assert remote.calls == 1

    remote.error = None
    for _ in range(3):
        assert await breaker.call("L1", remote.fetch, fallback="local") == "local"
    assert remote.calls == 1

    clock.advance(30_000)
    assert await breaker.call("L1", remote.fetch, "fresh", fallback="local") == "fresh"
    assert remote.calls == 2
    assert breaker.allow("L1")


async def test_not_found_uses_longer_cooldown_when_requested(clock):
    breaker = CircuitBreaker(clock)
    remote = Remote()
    remote.error = RemoteStoreError("missing", status_code=404)

    await breaker.call("L1", remote.fetch, not_found_cooldown=True)
    clock.advance(30_000)
    assert breaker.is_open("L1")
    clock.advance(30_000)
    assert not breaker.is_open("L1")


async def test_not_found_without_flag_uses_general_cooldown(clock):
    breaker = CircuitBreaker(clock)
    remote = Remote()
    remote.error = RemoteStoreError("missing", status_code=404)

    await breaker.call("L1", remote.fetch)
    clock.advance(30_000)
    assert not breaker.is_open("L1")


async def test_failure_after_cooldown_reopens(clock):
    breaker = CircuitBreaker(clock)
    remote = Remote()
    remote.error = RemoteStoreError("down")

    await breaker.call("L1", remote.fetch)
    clock.advance(30_000)
    await breaker.call("L1", remote.fetch)
    assert remote.calls == 2
    assert breaker.is_open("L1")
    assert breaker.state("L1").failures == 2
