from __future__ import annotations

import logging
import random
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

from ..exceptions import ExecutionCancelled

if TYPE_CHECKING:
    from ..cancellation import CancellationToken
    from ..clock import BaseClock

logger = logging.getLogger(__name__)


def compute_backoff(attempt: int, base: float = 1.5, jitter: float = 0.5) -> float:
    """Compute exponential backoff with jitter."""
    delay = base ** attempt
    return delay + random.uniform(0, jitter)


def parse_retry_config(
    config: dict[str, Any], default_retries: int = 0
) -> tuple[int, Optional[float]]:
    """Read ``retries`` and ``retryDelayMs`` from a step config.

    Invalid values fall back to no retries / computed backoff.
    """
    retries = config.get("retries", default_retries)
    if isinstance(retries, bool) or not isinstance(retries, int) or retries < 0:
        retries = default_retries
    delay_ms = config.get("retryDelayMs")
    if isinstance(delay_ms, bool) or not isinstance(delay_ms, (int, float)) or delay_ms < 0:
        delay_ms = None
    return retries, delay_ms


async def call_with_retries(
    operation: Callable[[], Awaitable[Any]],
    *,
    retries: int,
    clock: "BaseClock",
    token: "CancellationToken | None" = None,
    delay_ms: Optional[float] = None,
    label: str = "operation",
) -> Any:
    """Run ``operation`` up to ``retries + 1`` times.

    Waits between attempts go through ``clock`` so they honour cancellation
    and virtual time. The last error is re-raised.
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except ExecutionCancelled:
            raise
        except Exception as e:
            if attempt >= retries:
                raise
            attempt += 1
            delay = delay_ms / 1000 if delay_ms is not None else compute_backoff(attempt)
            logger.warning(
                f"{label} failed (attempt {attempt}/{retries + 1}): {e}; retrying in {delay:.2f}s"
            )
            await clock.sleep(delay, token)
