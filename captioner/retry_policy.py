"""Shared retry logic for the network-facing components."""

import logging
import time
from typing import Callable, Optional, Tuple, Type, TypeVar

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from .exceptions import ConfigurationError, TransientServiceError

logger = logging.getLogger(__name__)

T = TypeVar("T")

class RetryPolicy:
    """
    Exponential backoff with jitter and a fixed attempt cap.

    Only exceptions in `retry_on` are retried. Anything else propagates on the
    first occurrence without consuming budget. When the budget is exhausted the
    last exception is re-raised unchanged, so callers can decide whether to
    escalate (abort) or degrade (split a batch).
    """

    def __init__(
        self,
        max_attempts: int = 5,
        initial_delay: float = 1.0,
        max_delay: float = 30.0,
        jitter: float = 1.0,
        retry_on: Tuple[Type[BaseException], ...] = (TransientServiceError,),
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            max_attempts: Total attempts including the first one.
            initial_delay: Base delay in seconds; doubles after each failure.
            max_delay: Upper bound for the exponential part of the delay.
            jitter: Maximum random seconds added to every delay.
            retry_on: Exception classes considered transient.
            sleep: Sleep function, replaceable for tests.

        Raises:
            ConfigurationError: If any of the numeric settings is out of range.
        """
        if max_attempts < 1:
            raise ConfigurationError(f"max_attempts must be >= 1, got {max_attempts}")
        if initial_delay < 0 or max_delay < 0 or jitter < 0:
            raise ConfigurationError("Retry delays and jitter must be non-negative.")
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.jitter = jitter
        self.retry_on = tuple(retry_on)
        self.sleep = sleep

    @classmethod
    def from_config(cls, config: dict) -> "RetryPolicy":
        return cls(
            max_attempts=int(config.get('max_attempts', 5)),
            initial_delay=float(config.get('retry_initial_delay', 1.0)),
            max_delay=float(config.get('retry_max_delay', 30.0)),
            jitter=float(config.get('retry_jitter', 1.0)),
        )

    def with_retry_on(self, *exception_types: Type[BaseException]) -> "RetryPolicy":
        """Returns a copy that also retries the given exception classes."""
        extra = tuple(t for t in exception_types if t not in self.retry_on)
        return RetryPolicy(
            max_attempts=self.max_attempts,
            initial_delay=self.initial_delay,
            max_delay=self.max_delay,
            jitter=self.jitter,
            retry_on=self.retry_on + extra,
            sleep=self.sleep,
        )

    def call(self, func: Callable[..., T], *args, description: Optional[str] = None, **kwargs) -> T:
        """
        Calls `func(*args, **kwargs)` under this policy.

        Args:
            func: The operation to attempt.
            description: Short label used in retry log lines.

        Returns:
            Whatever `func` returns on its first successful attempt.

        Raises:
            The last retryable exception once attempts are exhausted, or any
            non-retryable exception immediately.
        """
        label = description or getattr(func, "__name__", "operation")
        retryer = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.initial_delay, max=self.max_delay) + wait_random(0, self.jitter),
            retry=retry_if_exception_type(self.retry_on),
            before_sleep=self._log_before_sleep(label),
            sleep=self.sleep,
            reraise=True,
        )
        return retryer(func, *args, **kwargs)

    def _log_before_sleep(self, label: str) -> Callable[[RetryCallState], None]:
        def log_retry(retry_state: RetryCallState) -> None:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
            logger.warning(
                f"{label} failed (attempt {retry_state.attempt_number}/{self.max_attempts}): {exc}. "
                f"Retrying in {delay:.2f}s..."
            )
        return log_retry
