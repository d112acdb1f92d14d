"""
Family Organizer — Retry Wrapper.

Wraps any store call in automatic retry with exponential back-off. The
hosted store may be paused and take several seconds to resume, so transient
failures are retried while data errors (constraint, permission, missing
table/column, single-row not found) return at once.

Never raises for operation failures: callers check `result.error`.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, Sequence

from src.data.models import StoreError, StoreResult

if TYPE_CHECKING:
    from src.ports.remote_store import RemoteStore

logger = logging.getLogger(__name__)

# Postgres/PostgREST error codes that are permanent and never retried
PERMANENT_CODES = frozenset({
    "42501",     # insufficient_privilege (row-level security)
    "23505",     # unique_violation
    "23503",     # foreign_key_violation
    "42P01",     # undefined_table
    "42703",     # undefined_column
    "PGRST116",  # row not found on single-row fetch
})

# Code reported when every attempt raised instead of returning
NETWORK_ERROR = "NETWORK"

BACKOFF_SECONDS: tuple[float, ...] = (0.8, 1.6, 3.2)
WARMUP_SECONDS: tuple[float, ...] = (1.5, 3.0, 6.0, 12.0, 20.0)

_Operation = Callable[[], Awaitable[StoreResult]]
_Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """Retry knobs handed to controllers and services."""

    max_attempts: int = 4
    delays: tuple[float, ...] = BACKOFF_SECONDS
    timeout: float | None = None

    @classmethod
    def from_settings(cls) -> RetryPolicy:
        from src.config import settings

        return cls(
            max_attempts=settings.RETRY_MAX_ATTEMPTS,
            delays=tuple(ms / 1000 for ms in settings.RETRY_DELAYS_MS),
            timeout=settings.REQUEST_TIMEOUT_SECONDS or None,
        )

    async def run(self, operation: _Operation, sleep: _Sleep = asyncio.sleep) -> StoreResult:
        return await with_retry(
            operation,
            self.max_attempts,
            delays=self.delays,
            timeout=self.timeout,
            sleep=sleep,
        )


def is_permanent(error: StoreError | None) -> bool:
    """True if retrying cannot help."""
    return error is not None and error.code in PERMANENT_CODES


def _delay_for(attempt: int, delays: Sequence[float]) -> float:
    """Back-off for the given 0-based attempt; holds at the last step."""
    if not delays:
        return 0.0
    return delays[attempt] if attempt < len(delays) else delays[-1]


async def with_retry(
    operation: _Operation,
    max_attempts: int = 4,
    *,
    delays: Sequence[float] = BACKOFF_SECONDS,
    timeout: float | None = None,
    sleep: _Sleep = asyncio.sleep,
) -> StoreResult:
    """Run `operation` until it succeeds, fails permanently, or runs out of tries.

    Args:
        operation: Zero-argument callable returning an awaitable StoreResult.
        max_attempts: Total tries, including the first.
        delays: Sleep (seconds) after each failed attempt: 0.8 → 1.6 → 3.2,
            then held at the last value.
        timeout: Optional per-attempt ceiling; a timeout counts as transient.
        sleep: Injected for tests.

    Returns:
        The last StoreResult obtained (success or terminal error).
    """
    last: StoreResult | None = None
    attempts = max(1, max_attempts)

    for attempt in range(attempts):
        try:
            if timeout is not None:
                last = await asyncio.wait_for(operation(), timeout)
            else:
                last = await operation()

            if last.error is None:
                return last

            if is_permanent(last.error):
                logger.info(
                    "Permanent store error %s, not retrying: %s",
                    last.error.code, last.error.message,
                )
                return last

            logger.warning(
                "Store call failed (attempt %d/%d, code %s): %s",
                attempt + 1, attempts, last.error.code, last.error.message,
            )
        except asyncio.TimeoutError:
            last = StoreResult(error=StoreError(code=NETWORK_ERROR, message=f"timed out after {timeout}s"))
            logger.warning("Store call timed out (attempt %d/%d)", attempt + 1, attempts)
        except Exception as exc:
            last = StoreResult(error=StoreError(code=NETWORK_ERROR, message=str(exc)))
            logger.warning("Store call raised (attempt %d/%d): %s", attempt + 1, attempts, exc)

        if attempt < attempts - 1:
            await sleep(_delay_for(attempt, delays))

    logger.error("Store call gave up after %d attempts", attempts)
    return last


async def warm_up(
    store: RemoteStore,
    collection: str,
    delays: Sequence[float] = WARMUP_SECONDS,
    sleep: _Sleep = asyncio.sleep,
) -> bool:
    """Ping the store until it answers, so a paused backend starts resuming early.

    Meant to run as a background task at startup. Returns True once a tiny
    select succeeds, False when the schedule is exhausted.
    """
    for i in range(len(delays) + 1):
        try:
            result = await store.select(collection, limit=1)
            if result.error is None:
                logger.info("Store warm-up succeeded after %d attempt(s)", i + 1)
                return True
        except Exception as exc:
            logger.debug("Warm-up attempt %d raised: %s", i + 1, exc)

        if i < len(delays):
            await sleep(delays[i])

    logger.warning("Store still unreachable after warm-up schedule")
    return False
