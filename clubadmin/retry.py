"""
Retry with exponential backoff for transient database failures.

The store wraps each unit of work (statements plus commit) in retry_call,
so a locked SQLite file or a dropped server connection is retried before
being reported as StoreFailure.
"""

import functools
import time
from typing import Callable, Iterator, Optional, Tuple, Type


class RetryError(Exception):
    """Raised when all retry attempts are exhausted."""
    pass


# Lower-cased fragments of driver messages worth another attempt.
TRANSIENT_DB_MESSAGES = (
    "database is locked",
    "database is busy",
    "timeout",
    "timed out",
    "connection",
    "server closed",
    "could not connect",
    "deadlock",
    "try restarting transaction",
)


def backoff_delays(
    max_retries: int,
    base_delay: float,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
) -> Iterator[float]:
    """Yield the sleep before each retry, capped at max_delay."""
    delay = base_delay
    for _ in range(max_retries):
        yield min(delay, max_delay)
        delay *= exponential_base


def retry_call(
    func: Callable,
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    on_retry: Optional[Callable] = None,
    retry_if: Optional[Callable[[Exception], bool]] = None,
):
    """
    Call func() until it succeeds or the retries run out.

    Args:
        func: Zero-argument callable
        max_retries: Retries after the first attempt (0 = single attempt)
        base_delay: Delay before the first retry, in seconds
        max_delay: Upper bound for any single delay
        exponential_base: Delay multiplier between retries
        exceptions: Exception types that may be retried; others propagate
        on_retry: Optional callback(attempt, exception, delay) run before sleeping
        retry_if: Optional predicate; caught exceptions it rejects propagate unchanged

    Raises:
        RetryError: every attempt failed, chained to the last exception
    """
    delays = backoff_delays(max_retries, base_delay, max_delay, exponential_base)
    attempt = 0
    while True:
        attempt += 1
        try:
            return func()
        except exceptions as e:
            if retry_if is not None and not retry_if(e):
                raise
            delay = next(delays, None)
            if delay is None:
                raise RetryError(f"Failed after {attempt} attempts: {e}") from e
            if on_retry:
                on_retry(attempt, e, delay)
            time.sleep(delay)


def exponential_backoff(**options):
    """
    Decorator form of retry_call; takes the same keyword options.

    Example:
        @exponential_backoff(max_retries=3, base_delay=0.1, exceptions=(OperationalError,))
        def write_total(session, member_id, total):
            ...
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            return retry_call(lambda: func(*args, **kwargs), **options)
        return wrapper
    return decorator


def is_transient_error(exception: Exception) -> bool:
    """True if the error message looks like a locked/busy database or a lost connection."""
    message = str(exception).lower()
    return any(fragment in message for fragment in TRANSIENT_DB_MESSAGES)
