"""RedisCircuitBreakerStorage: состояние breaker'а хранится в Redis."""
from unittest.mock import patch

import pybreaker
import pytest

from sharehub.services.circuit_breaker import CircuitBreakerListener, RedisCircuitBreakerStorage


class FakeRedis:
    def __init__(self):
        self.data = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, ex=None):
        self.data[key] = str(value)

    def incr(self, key):
        self.data[key] = str(int(self.data.get(key, 0)) + 1)
        return int(self.data[key])

    def expire(self, key, seconds):
        return True

    def delete(self, key):
        self.data.pop(key, None)


@pytest.fixture
def fake_redis():
    fake = FakeRedis()
    with patch("sharehub.services.circuit_breaker.redis.Redis.from_url", return_value=fake):
        yield fake


def test_breaker_opens_and_state_is_shared(fake_redis):
    def boom():
        raise RuntimeError("provider down")

    breaker = pybreaker.CircuitBreaker(
        fail_max=2,
        reset_timeout=60,
        state_storage=RedisCircuitBreakerStorage("cryptopay"),
        listeners=[CircuitBreakerListener("cryptopay")],
    )
    with pytest.raises(RuntimeError):
        breaker.call(boom)
    with pytest.raises((RuntimeError, pybreaker.CircuitBreakerError)):
        breaker.call(boom)

    assert fake_redis.get("cb:cryptopay:state") == pybreaker.STATE_OPEN
    assert RedisCircuitBreakerStorage("cryptopay").opened_at is not None
    with pytest.raises(pybreaker.CircuitBreakerError):
        breaker.call(lambda: "ok")


def test_counters(fake_redis):
    storage = RedisCircuitBreakerStorage("x")
    assert storage.state == pybreaker.STATE_CLOSED
    storage.increment_counter()
    storage.increment_counter()
    assert storage.counter == 2
    storage.reset_counter()
    assert storage.counter == 0
    storage.increment_success_counter()
    assert storage.success_counter == 1
    storage.reset_success_counter()
    assert storage.success_counter == 0
