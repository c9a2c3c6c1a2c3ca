"""
Tests for retry logic.
"""

import pytest
from sqlalchemy.exc import OperationalError

from clubadmin.retry import (
    RetryError,
    backoff_delays,
    exponential_backoff,
    is_transient_error,
    retry_call,
)


def flaky(failures, error=None):
    """Callable that raises `error` for the first `failures` calls."""
    calls = []

    def func():
        calls.append(1)
        if len(calls) <= failures:
            raise error or ConnectionError("database is locked")
        return "ok"

    return func, calls


class TestBackoffDelays:
    """Test the delay schedule."""

    def test_doubles_each_retry(self):
        assert list(backoff_delays(3, 0.01)) == [0.01, 0.02, 0.04]

    def test_capped(self):
        assert list(backoff_delays(4, 1.0, max_delay=2.0, exponential_base=3.0)) == [1.0, 2.0, 2.0, 2.0]

    def test_no_retries(self):
        assert list(backoff_delays(0, 1.0)) == []


class TestRetryCall:
    """Test retry_call."""

    def test_retries_until_success(self):
        func, calls = flaky(2)

        assert retry_call(func, max_retries=3, base_delay=0) == "ok"
        assert len(calls) == 3

    def test_exhausted(self):
        func, calls = flaky(10)

        with pytest.raises(RetryError) as exc:
            retry_call(func, max_retries=2, base_delay=0)

        assert len(calls) == 3  # Initial + 2 retries
        assert isinstance(exc.value.__cause__, ConnectionError)
        assert "Failed after 3 attempts" in str(exc.value)

    def test_unlisted_exception_propagates(self):
        func, calls = flaky(1, ValueError("bad total"))

        with pytest.raises(ValueError):
            retry_call(func, max_retries=3, base_delay=0, exceptions=(ConnectionError,))

        assert len(calls) == 1

    def test_retry_if_rejects(self):
        """Caught exceptions rejected by retry_if are re-raised unchanged."""
        func, calls = flaky(1, OperationalError("INSERT", {}, Exception("no such table: members")))

        with pytest.raises(OperationalError):
            retry_call(
                func,
                max_retries=3,
                base_delay=0,
                exceptions=(OperationalError,),
                retry_if=is_transient_error,
            )

        assert len(calls) == 1

    def test_on_retry_receives_attempt_and_delay(self):
        seen = []
        func, _ = flaky(2)

        retry_call(
            func,
            max_retries=3,
            base_delay=0.001,
            on_retry=lambda attempt, e, delay: seen.append((attempt, delay)),
        )

        assert seen == [(1, 0.001), (2, 0.002)]


class TestExponentialBackoffDecorator:
    """Test the decorator form."""

    def test_passes_arguments(self):
        calls = []

        @exponential_backoff(max_retries=1, base_delay=0)
        def write_total(member_id, total=0):
            calls.append((member_id, total))
            if len(calls) == 1:
                raise ConnectionError("server closed the connection")
            return total

        assert write_total("m1", total=80) == 80
        assert calls == [("m1", 80), ("m1", 80)]

    def test_preserves_name(self):
        @exponential_backoff(max_retries=1)
        def write_total():
            pass

        assert write_total.__name__ == "write_total"


class TestTransientErrorDetection:
    """Test transient error detection utilities."""

    def test_detects_locked_database(self):
        assert is_transient_error(Exception("(sqlite3.OperationalError) database is locked"))

    def test_detects_connection_errors(self):
        assert is_transient_error(Exception("server closed the connection unexpectedly"))
        assert is_transient_error(Exception("could not connect to server"))

    def test_detects_timeouts_and_deadlocks(self):
        assert is_transient_error(TimeoutError("query timed out"))
        assert is_transient_error(Exception("Deadlock found when trying to get lock; try restarting transaction"))

    def test_non_transient_errors(self):
        errors = [
            Exception("no such table: members"),
            ValueError("Invalid data"),
            Exception("UNIQUE constraint failed: members.id"),
        ]
        for error in errors:
            assert not is_transient_error(error)
