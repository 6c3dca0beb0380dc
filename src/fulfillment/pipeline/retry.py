"""Retry policy shared by every outbound call to an external service.

Only ``TransientCollaboratorError`` is retried. Delays grow exponentially up
to ``max_delay``; a provider-supplied ``retry_after`` takes precedence.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeVar

import structlog

from fulfillment.errors import RateLimitedError, TransientCollaboratorError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    multiplier: float = 2.0
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False, compare=False)

    def delay_for(self, attempt: int, error: Exception | None = None) -> float:
        """Seconds to wait after failed attempt number ``attempt`` (1-based)."""
        if isinstance(error, RateLimitedError) and error.retry_after is not None:
            return max(0.0, float(error.retry_after)) + 1.0
        return min(self.base_delay * self.multiplier ** (attempt - 1), self.max_delay)

    def call(self, fn: Callable[[], T], description: str = "external call") -> T:
        attempt = 1
        while True:
            try:
                return fn()
            except TransientCollaboratorError as exc:
                if attempt >= self.max_attempts:
                    logger.warning(
                        "Giving up after transient failures",
                        call=description,
                        attempts=attempt,
                        error=str(exc),
                    )
                    raise
                delay = self.delay_for(attempt, exc)
                logger.info(
                    "Transient failure, retrying",
                    call=description,
                    attempt=attempt,
                    delay=delay,
                    error=str(exc),
                )
                self.sleep(delay)
                attempt += 1
