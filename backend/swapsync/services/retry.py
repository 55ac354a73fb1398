"""Conflict Retry — bounded re-execution of read-validate-write attempts.

Invariants:
    - Only StaleVersionError triggers a retry; business-rule errors propagate at once
    - At most max_retries + 1 attempts; exhaustion raises TransientConflictError
    - Each attempt re-reads from the store (the attempt callable owns the read)
    - Backoff is exponential with ±25% jitter, capped at max_delay_ms

Design Decisions:
    - Retry the whole attempt, not just the write: a loser of a race must
      re-validate against fresh state and fail with the business error it
      would have seen had it arrived second
    - sleep injected: tests run with zero delay, no monkeypatching asyncio
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable, TypeVar

from swapsync.core.errors import StaleVersionError, TransientConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff parameters for contended writes."""
    max_retries: int = 3
    base_delay_ms: int = 20
    max_delay_ms: int = 500
    sleep: Callable[[float], Awaitable[None]] = field(
        default=asyncio.sleep, repr=False, compare=False,
    )

    def delay_ms(self, attempt: int) -> int:
        """Exponential backoff with ±25% jitter for the given 0-based attempt."""
        delay = min(self.base_delay_ms * (2 ** attempt), self.max_delay_ms)
        jitter = delay * 0.25 * (2 * random.random() - 1)
        return max(0, int(delay + jitter))


async def run_with_retry(
    operation: str,
    attempt_fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
) -> T:
    """Run attempt_fn until it succeeds, raises a non-retryable error, or retries run out."""
    last_conflict: StaleVersionError | None = None
    for attempt in range(policy.max_retries + 1):
        try:
            return await attempt_fn()
        except StaleVersionError as e:
            last_conflict = e
            if attempt == policy.max_retries:
                break
            delay = policy.delay_ms(attempt)
            logger.info(
                f"Write conflict in {operation}, retrying in {delay}ms",
                extra={
                    "operation": operation,
                    "attempt": attempt + 1,
                    "error_code": e.code,
                },
            )
            await policy.sleep(delay / 1000)

    logger.warning(
        f"Giving up on {operation} after {policy.max_retries + 1} attempts",
        extra={"operation": operation, "error_code": "TRANSIENT_CONFLICT"},
    )
    raise TransientConflictError(
        operation,
        policy.max_retries + 1,
        retry_after_ms=policy.max_delay_ms,
    ) from last_conflict
