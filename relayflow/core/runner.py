"""Step runner: timeout + retry with exponential backoff around one step.

Delay before retry N (0-based) is ``base_delay_ms * 2**N``: with a base of
100 ms, two failures followed by a success take at least 100 + 200 ms.
"""

import asyncio
import logging
import math
from typing import Any, Awaitable, Callable, Optional

from relayflow.exceptions import StepTimeoutError

logger = logging.getLogger(__name__)

StepFn = Callable[[], Awaitable[Any]]


def resolve_execution_number(value: Any, fallback: int) -> int:
    """Read a retry/timeout number from node config.

    None, "" and anything that is not a finite number fall back; the result is
    clamped at 0.
    """
    if value is None or value == "" or isinstance(value, bool):
        return fallback
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    if not math.isfinite(number):
        return fallback
    return max(0, int(number))


async def run_with_timeout(fn: StepFn, timeout_ms: Optional[float]) -> Any:
    """Await fn(); when timeout_ms > 0, fail with StepTimeoutError past it.

    The losing step is cancelled by asyncio.wait_for.
    """
    if not timeout_ms or timeout_ms <= 0:
        return await fn()
    try:
        return await asyncio.wait_for(fn(), timeout=timeout_ms / 1000)
    except asyncio.TimeoutError:
        raise StepTimeoutError("Step timeout", timeout_ms=timeout_ms)


async def run_with_retry(
    fn: StepFn,
    retries: int = 0,
    base_delay_ms: float = 0,
    timeout_ms: Optional[float] = None,
) -> Any:
    """Run fn with up to ``retries`` extra attempts.

    Args:
        fn:            Zero-arg async callable; called once per attempt.
        retries:       Extra attempts after the first (total = retries + 1).
        base_delay_ms: Backoff base; attempt N waits base * 2**N before retrying.
        timeout_ms:    Per-attempt timeout; 0/None disables it.

    Raises:
        The last attempt's exception once attempts are exhausted.
    """
    attempts = max(0, int(retries)) + 1
    base = max(0.0, float(base_delay_ms or 0))

    for attempt in range(attempts):
        try:
            return await run_with_timeout(fn, timeout_ms)
        except Exception as exc:
            if attempt + 1 >= attempts:
                raise
            delay_ms = base * (2 ** attempt)
            logger.info(
                f"[StepRunner] Attempt {attempt + 1}/{attempts} failed ({exc}); "
                f"retrying in {delay_ms:.0f}ms"
            )
            if delay_ms > 0:
                await asyncio.sleep(delay_ms / 1000)
