"""Tests for retry_on_conflict (mfg_kernel/services/retry_service.py)."""

import pytest

from mfg_kernel.exceptions import ConcurrencyConflictError, ValidationError
from mfg_kernel.services.retry_service import (
    MAX_ATTEMPTS_CEILING,
    backoff_delay,
    retry_on_conflict,
)


class Flaky:
    def __init__(self, failures, error=None):
        self.failures = failures
        self.calls = 0
        self.error = error or ConcurrencyConflictError("test.op", "database is locked")

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "done"


class TestRetryOnConflict:

    def test_succeeds_after_conflicts(self):
        fn = Flaky(failures=2)
        delays = []
        assert retry_on_conflict(
            fn, operation="test.op", max_attempts=3, base_delay=0.1, sleep=delays.append,
        ) == "done"
        assert fn.calls == 3
        assert delays == [0.1, 0.2]

    def test_exhausted_raises_last_conflict(self):
        fn = Flaky(failures=5)
        with pytest.raises(ConcurrencyConflictError):
            retry_on_conflict(fn, operation="test.op", max_attempts=2, sleep=lambda _: None)
        assert fn.calls == 2

    def test_non_retryable_propagates_immediately(self):
        fn = Flaky(failures=1, error=ValidationError("quantity", "bad"))
        with pytest.raises(ValidationError):
            retry_on_conflict(fn, operation="test.op", sleep=lambda _: None)
        assert fn.calls == 1

    def test_attempts_are_capped(self):
        fn = Flaky(failures=100)
        with pytest.raises(ConcurrencyConflictError):
            retry_on_conflict(fn, operation="test.op", max_attempts=50, sleep=lambda _: None)
        assert fn.calls == MAX_ATTEMPTS_CEILING

    def test_logs_scheduled_retries(self, captured_logs):
        retry_on_conflict(Flaky(failures=1), operation="test.op", sleep=lambda _: None)
        messages = [r["message"] for r in captured_logs()]
        assert "retry_scheduled" in messages


class TestBackoff:

    @pytest.mark.parametrize(
        "attempt, expected", [(1, 0.05), (2, 0.1), (3, 0.2), (10, 2.0)],
    )
    def test_exponential_with_ceiling(self, attempt, expected):
        assert backoff_delay(attempt, 0.05) == pytest.approx(expected)


class TestRetryCommand:

    def test_uses_active_config(self):
        from mfg_config import set_active_config
        from mfg_config.schema import EngineConfig, RetryConfig
        from mfg_modules import retry_command

        set_active_config(EngineConfig(retry=RetryConfig(max_attempts=4, base_delay_seconds=0)))
        fn = Flaky(failures=3)
        assert retry_command(fn, operation="test.op") == "done"
        assert fn.calls == 4
