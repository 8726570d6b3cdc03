"""
Unit tests for RedisResilience: retry policy and circuit breaker transitions.
"""

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError

from statboard.core.redis.resilience import (
    CircuitBreakerOpenError,
    CircuitSettings,
    CircuitState,
    RedisResilience,
    RetryPolicy,
)


@pytest.fixture
def sleep(mocker):
    return mocker.patch("statboard.core.redis.resilience.asyncio.sleep", new=mocker.AsyncMock())


@pytest.fixture
def resilience():
    return RedisResilience()


@pytest.mark.asyncio
class TestRetry:
    """Only connection-level failures are retried."""

    async def test_success_first_try(self, resilience, mocker):
        operation = mocker.AsyncMock(return_value="OK")

        assert await resilience.execute(operation, "ZADD") == "OK"
        operation.assert_awaited_once()

    async def test_retries_connection_errors(self, resilience, mocker, sleep):
        operation = mocker.AsyncMock(side_effect=[RedisConnectionError("a"), RedisConnectionError("b"), 7])

        assert await resilience.execute(operation, "ZREVRANK") == 7
        assert operation.await_count == 3
        assert sleep.await_count == 2

    async def test_gives_up_after_max_attempts(self, resilience, mocker, sleep):
        operation = mocker.AsyncMock(side_effect=RedisConnectionError("down"))

        with pytest.raises(RedisConnectionError):
            await resilience.execute(operation, "ZREM", max_attempts=2)

        assert operation.await_count == 2

    async def test_command_errors_fail_immediately(self, resilience, mocker, sleep):
        operation = mocker.AsyncMock(side_effect=ResponseError("WRONGTYPE"))

        with pytest.raises(ResponseError):
            await resilience.execute(operation, "ZADD")

        operation.assert_awaited_once()
        sleep.assert_not_awaited()


class TestRetryPolicy:
    """Exponential delay between attempts."""

    def test_backoff_grows_and_caps(self):
        policy = RetryPolicy(jitter=False)

        assert policy.delay_for(1) == pytest.approx(0.1)
        assert policy.delay_for(2) == pytest.approx(0.2)
        assert policy.delay_for(10) == pytest.approx(2.0)

    def test_jitter_stays_within_ten_percent(self):
        policy = RetryPolicy()

        for _ in range(50):
            assert 0.179 <= policy.delay_for(2) <= 0.221

    def test_settings_from_config(self, config_overrides):
        config_overrides.set("core.redis.resilience.retry.max_attempts", 5)
        config_overrides.set("core.redis.resilience.retry.jitter", "yes")
        config_overrides.set("core.redis.resilience.circuit.timeout_seconds", 15)

        resilience = RedisResilience()

        assert resilience.retry.max_attempts == 5
        assert resilience.retry.jitter is True
        assert resilience.circuit.settings.timeout_seconds == 15.0


@pytest.mark.asyncio
class TestCircuitBreaker:
    """CLOSED -> OPEN after repeated failures, HALF_OPEN after the cool-down."""

    async def test_opens_after_threshold(self, resilience, mocker, sleep):
        operation = mocker.AsyncMock(side_effect=ResponseError("boom"))

        for _ in range(5):
            with pytest.raises(ResponseError):
                await resilience.execute(operation, "ZADD")

        assert resilience.is_open
        with pytest.raises(CircuitBreakerOpenError):
            await resilience.execute(operation, "ZADD")
        assert operation.await_count == 5

    async def test_success_resets_failure_streak(self, mocker):
        resilience = RedisResilience(circuit=CircuitSettings(failure_threshold=2))
        failing = mocker.AsyncMock(side_effect=ResponseError("boom"))
        working = mocker.AsyncMock(return_value=1)

        with pytest.raises(ResponseError):
            await resilience.execute(failing, "ZADD")
        await resilience.execute(working, "ZADD")
        with pytest.raises(ResponseError):
            await resilience.execute(failing, "ZADD")

        assert resilience.is_closed

    async def test_open_circuit_waits_for_cool_down(self, mocker):
        resilience = RedisResilience(circuit=CircuitSettings(timeout_seconds=60))
        await resilience.force_open()
        operation = mocker.AsyncMock(return_value=1)

        with pytest.raises(CircuitBreakerOpenError):
            await resilience.execute(operation, "ZRANK")

        operation.assert_not_awaited()
        assert 0 < resilience.get_status()["seconds_until_half_open"] <= 60

    async def test_half_open_then_closed(self, resilience, mocker):
        await resilience.force_open()
        resilience.circuit.opened_at -= 3600
        operation = mocker.AsyncMock(return_value=1)

        await resilience.execute(operation, "ZRANK")
        assert resilience.state == CircuitState.HALF_OPEN

        await resilience.execute(operation, "ZRANK")
        assert resilience.state == CircuitState.CLOSED

    async def test_half_open_failure_reopens(self, resilience, mocker):
        await resilience.force_open()
        resilience.circuit.opened_at -= 3600
        operation = mocker.AsyncMock(side_effect=ResponseError("still bad"))

        with pytest.raises(ResponseError):
            await resilience.execute(operation, "ZRANK")

        assert resilience.state == CircuitState.OPEN

    async def test_reset_closes(self, resilience):
        await resilience.force_open()

        await resilience.reset()

        assert resilience.is_closed
        status = resilience.get_status()
        assert status["circuit_state"] == "CLOSED"
        assert status["seconds_until_half_open"] is None
