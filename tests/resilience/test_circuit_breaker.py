"""Tests for circuit breaker pattern implementation."""

import asyncio
import time
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerOpen,
    CircuitMetrics,
    CircuitState,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _fresh_cb(name: str, fallback=None, **config_kw) -> CircuitBreaker:
    cfg = CircuitBreakerConfig(**config_kw)
    return CircuitBreaker(name, cfg, fallback=fallback)


async def _fail_n_times(cb: CircuitBreaker, n: int, exc: Exception = None):
    """Drive *n* failures through the circuit breaker."""
    exc = exc or RuntimeError("boom")
    for _ in range(n):
        with pytest.raises(type(exc)):
            await cb.call(AsyncMock(side_effect=exc))


async def _succeed_n_times(cb: CircuitBreaker, n: int, retval=None):
    """Drive *n* successes through the circuit breaker."""
    for _ in range(n):
        result = await cb.call(AsyncMock(return_value=retval))
        assert result == retval


def _run(coro):
    """Run an async coroutine synchronously."""
    return asyncio.run(coro)


def _expire_cooldown(cb: CircuitBreaker):
    """Pretend the circuit opened long enough ago for the reset timeout to pass."""
    cb._opened_at = time.time() - cb.config.reset_timeout_seconds - 1


# ---------------------------------------------------------------------------
# CircuitState enum
# ---------------------------------------------------------------------------


class TestCircuitState:
    def test_values(self):
        assert CircuitState.CLOSED.value == "closed"
        assert CircuitState.OPEN.value == "open"
        assert CircuitState.HALF_OPEN.value == "half_open"

    def test_is_str_enum(self):
        assert isinstance(CircuitState.CLOSED, str)


# ---------------------------------------------------------------------------
# CircuitBreakerOpen exception
# ---------------------------------------------------------------------------


class TestCircuitBreakerOpen:
    def test_attributes(self):
        until = datetime.now(UTC)
        exc = CircuitBreakerOpen("svc", until)
        assert exc.name == "svc"
        assert exc.until is until
        assert "svc" in str(exc)


# ---------------------------------------------------------------------------
# Config / metrics defaults
# ---------------------------------------------------------------------------


class TestCircuitBreakerConfig:
    def test_defaults(self):
        cfg = CircuitBreakerConfig()
        assert cfg.error_threshold_percentage == 50.0
        assert cfg.volume_threshold == 5
        assert cfg.rolling_window_seconds == 10.0
        assert cfg.reset_timeout_seconds == 30.0
        assert cfg.exclude_exceptions == ()
        assert cfg.include_exceptions == (Exception,)


class TestCircuitMetrics:
    def test_defaults(self):
        m = CircuitMetrics()
        assert m.total_calls == 0
        assert m.rejected_calls == 0
        assert m.fallback_calls == 0
        assert m.last_failure_time is None


# ---------------------------------------------------------------------------
# call: happy path
# ---------------------------------------------------------------------------


class TestCallHappyPath:
    def test_initial_state_is_closed(self):
        assert _fresh_cb("init").state == CircuitState.CLOSED

    def test_async_func_passes_through(self):
        cb = _fresh_cb("call_async")
        assert _run(cb.call(AsyncMock(return_value=42))) == 42
        assert cb.metrics.successful_calls == 1
        assert cb.metrics.total_calls == 1

    def test_sync_func_passes_through(self):
        cb = _fresh_cb("call_sync")
        assert _run(cb.call(lambda: "ok")) == "ok"

    def test_args_kwargs_forwarded(self):
        cb = _fresh_cb("call_fwd")

        async def adder(a, b, extra=0):
            return a + b + extra

        assert _run(cb.call(adder, 1, 2, extra=10)) == 13

    def test_exception_propagates(self):
        cb = _fresh_cb("call_exc")
        with pytest.raises(ValueError, match="special"):
            _run(cb.call(AsyncMock(side_effect=ValueError("special"))))
        assert cb.metrics.failed_calls == 1


# ---------------------------------------------------------------------------
# CLOSED -> OPEN: error percentage over the rolling window
# ---------------------------------------------------------------------------


class TestClosedToOpen:
    def test_opens_at_volume_and_threshold(self):
        cb = _fresh_cb("c2o")
        _run(_fail_n_times(cb, 5))
        assert cb.state == CircuitState.OPEN
        assert cb.metrics.state_changes == 1

    def test_stays_closed_below_volume(self):
        cb = _fresh_cb("c2o_volume")
        _run(_fail_n_times(cb, 4))
        assert cb.state == CircuitState.CLOSED

    def test_stays_closed_below_error_percentage(self):
        cb = _fresh_cb("c2o_pct")
        _run(_succeed_n_times(cb, 4))
        _run(_fail_n_times(cb, 3))
        # 3 of 7 = 43%
        assert cb.state == CircuitState.CLOSED

    def test_opens_at_exactly_fifty_percent(self):
        cb = _fresh_cb("c2o_fifty")
        _run(_succeed_n_times(cb, 3))
        _run(_fail_n_times(cb, 3))
        assert cb.state == CircuitState.OPEN

    def test_old_calls_fall_out_of_window(self):
        cb = _fresh_cb("c2o_window", rolling_window_seconds=10)
        _run(_fail_n_times(cb, 4))
        # Age the recorded failures past the window
        cb._window = type(cb._window)((ts - 60, ok) for ts, ok in cb._window)
        _run(_fail_n_times(cb, 1))
        assert cb.window_counts() == (1, 1)
        assert cb.state == CircuitState.CLOSED

    def test_rejects_without_calling_when_open(self):
        cb = _fresh_cb("c2o_reject")
        _run(_fail_n_times(cb, 5))
        func = AsyncMock(return_value=1)
        with pytest.raises(CircuitBreakerOpen) as exc_info:
            _run(cb.call(func))
        assert exc_info.value.name == "c2o_reject"
        func.assert_not_called()
        assert cb.metrics.rejected_calls == 1


# ---------------------------------------------------------------------------
# OPEN -> HALF_OPEN -> CLOSED / OPEN
# ---------------------------------------------------------------------------


class TestHalfOpen:
    def test_transitions_after_reset_timeout(self):
        cb = _fresh_cb("o2ho")
        _run(_fail_n_times(cb, 5))
        _expire_cooldown(cb)
        assert cb.state == CircuitState.HALF_OPEN

    def test_trial_success_closes_and_clears_window(self):
        cb = _fresh_cb("ho2c")
        _run(_fail_n_times(cb, 5))
        _expire_cooldown(cb)
        assert _run(cb.call(AsyncMock(return_value="recovered"))) == "recovered"
        assert cb.state == CircuitState.CLOSED
        assert cb.window_counts() == (0, 0)

    def test_trial_failure_reopens(self):
        cb = _fresh_cb("ho2o")
        _run(_fail_n_times(cb, 5))
        _expire_cooldown(cb)
        with pytest.raises(RuntimeError):
            _run(cb.call(AsyncMock(side_effect=RuntimeError("still broken"))))
        assert cb.state == CircuitState.OPEN

    def test_only_one_trial_in_flight(self):
        cb = _fresh_cb("ho_single")
        _run(_fail_n_times(cb, 5))
        _expire_cooldown(cb)

        async def scenario():
            gate = asyncio.Event()

            async def slow_trial():
                await gate.wait()
                return "trial"

            trial = asyncio.create_task(cb.call(slow_trial))
            await asyncio.sleep(0)
            with pytest.raises(CircuitBreakerOpen):
                await cb.call(AsyncMock(return_value="second"))
            gate.set()
            return await trial

        assert _run(scenario()) == "trial"
        assert cb.state == CircuitState.CLOSED
        assert cb.metrics.rejected_calls == 1

    def test_cancelled_trial_frees_the_slot(self):
        cb = _fresh_cb("ho_cancel")
        _run(_fail_n_times(cb, 5))
        _expire_cooldown(cb)

        async def scenario():
            async def hang():
                await asyncio.Event().wait()

            trial = asyncio.create_task(cb.call(hang))
            await asyncio.sleep(0)
            trial.cancel()
            with pytest.raises(asyncio.CancelledError):
                await trial
            return await cb.call(AsyncMock(return_value="next trial"))

        assert _run(scenario()) == "next trial"
        assert cb.state == CircuitState.CLOSED

    def test_uncounted_trial_failure_frees_the_slot(self):
        cb = _fresh_cb("ho_uncounted", exclude_exceptions=(KeyError,))
        _run(_fail_n_times(cb, 5))
        _expire_cooldown(cb)
        with pytest.raises(KeyError):
            _run(cb.call(AsyncMock(side_effect=KeyError("ignored"))))
        assert cb.state == CircuitState.HALF_OPEN
        assert _run(cb.call(AsyncMock(return_value="ok"))) == "ok"


# ---------------------------------------------------------------------------
# _should_count_failure
# ---------------------------------------------------------------------------


class TestShouldCountFailure:
    def test_excluded_exception_does_not_count(self):
        cb = _fresh_cb("scf_excl", exclude_exceptions=(KeyError,))
        assert cb._should_count_failure(KeyError("x")) is False

    def test_non_included_exception_does_not_count(self):
        cb = _fresh_cb("scf_noincl", include_exceptions=(ValueError,))
        assert cb._should_count_failure(TypeError("x")) is False

    def test_excluded_exception_not_counted_during_call(self):
        cb = _fresh_cb("scf_call", volume_threshold=1, exclude_exceptions=(KeyError,))
        with pytest.raises(KeyError):
            _run(cb.call(AsyncMock(side_effect=KeyError("ignored"))))
        assert cb.state == CircuitState.CLOSED
        assert cb.metrics.failed_calls == 0


# ---------------------------------------------------------------------------
# call_with_fallback
# ---------------------------------------------------------------------------


class TestCallWithFallback:
    def test_success_skips_fallback(self):
        fallback = MagicMock(return_value="static")
        cb = _fresh_cb("fb_ok", fallback=fallback)
        assert _run(cb.call_with_fallback(AsyncMock(return_value="live"))) == "live"
        fallback.assert_not_called()

    def test_failure_serves_fallback_with_same_args(self):
        fallback = MagicMock(return_value="static")
        cb = _fresh_cb("fb_fail", fallback=fallback)
        result = _run(cb.call_with_fallback(AsyncMock(side_effect=RuntimeError("down")), "mk"))
        assert result == "static"
        fallback.assert_called_once_with("mk")
        assert cb.metrics.fallback_calls == 1

    def test_open_circuit_serves_fallback_without_calling(self):
        cb = _fresh_cb("fb_open", fallback=lambda: "static")
        _run(_fail_n_times(cb, 5))
        func = AsyncMock(return_value="live")
        assert _run(cb.call_with_fallback(func)) == "static"
        func.assert_not_called()

    def test_async_fallback_is_awaited(self):
        cb = _fresh_cb("fb_async", fallback=AsyncMock(return_value="static"))
        assert _run(cb.call_with_fallback(AsyncMock(side_effect=RuntimeError()))) == "static"

    def test_per_call_fallback_overrides_registered(self):
        cb = _fresh_cb("fb_override", fallback=lambda: "registered")
        result = _run(cb.call_with_fallback(AsyncMock(side_effect=RuntimeError()), fallback=lambda: "local"))
        assert result == "local"

    def test_missing_fallback_raises(self):
        cb = _fresh_cb("fb_missing")
        with pytest.raises(ValueError, match="no fallback"):
            _run(cb.call_with_fallback(AsyncMock(return_value=1)))


# ---------------------------------------------------------------------------
# reset / to_dict
# ---------------------------------------------------------------------------


class TestResetAndSerialization:
    def test_reset_closes_open_circuit(self):
        cb = _fresh_cb("reset")
        _run(_fail_n_times(cb, 5))
        cb.reset()
        assert cb.state == CircuitState.CLOSED
        assert cb.window_counts() == (0, 0)

    def test_to_dict_shape(self):
        cb = _fresh_cb("dict")
        _run(_succeed_n_times(cb, 1))
        _run(_fail_n_times(cb, 1))
        d = cb.to_dict()
        assert d["name"] == "dict"
        assert d["state"] == "closed"
        assert d["window"] == {"calls": 2, "failures": 1, "error_percentage": 50.0}
        assert d["metrics"]["total_calls"] == 2
        assert d["config"]["volume_threshold"] == 5
        assert d["opened_at"] is None

    def test_to_dict_open_has_timestamp(self):
        cb = _fresh_cb("dict_open")
        _run(_fail_n_times(cb, 5))
        assert cb.to_dict()["opened_at"] is not None
