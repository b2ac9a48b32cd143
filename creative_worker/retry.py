# creative_worker/retry.py
"""
Fixed-interval retry policy shared by collaborator calls that can race with
the stores' eventual consistency (object reads right after upload, result
writes during a store hiccup).
"""
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_fixed,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

RetryPredicate = Callable[[BaseException], bool]


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int
    interval_seconds: float
    retryable: RetryPredicate
    sleep: Callable[[float], Any] = field(default=time.sleep, compare=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.interval_seconds < 0:
            raise ValueError("interval_seconds must be >= 0")

    def retrying(self) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_fixed(self.interval_seconds),
            retry=retry_if_exception(self.retryable),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=self.sleep,
            reraise=True,
        )

    def call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """
        Run fn until it returns, raises a non-retryable error, or the attempt
        budget runs out. The last exception is re-raised unchanged.
        """
        return self.retrying()(fn, *args, **kwargs)
