"""Bounded polling with backoff for reachability waits."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class WaitOutcome(str, Enum):
    """Terminal state of a wait."""

    SUCCESS = "Success"
    TIMED_OUT = "TimedOut"
    CANCELLED = "Cancelled"


@dataclass
class WaitResult:
    """Per-operation polling state. Built fresh by every wait_until() call."""

    outcome: WaitOutcome = WaitOutcome.TIMED_OUT
    attempts: int = 0
    elapsed: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.outcome is WaitOutcome.SUCCESS


@dataclass(frozen=True)
class RetryPolicy:
    """Polling configuration: ceiling, interval and optional backoff.

    The policy itself holds no per-wait state, so one instance can be
    shared by concurrent waits. ``clock`` and ``sleep`` are injectable so
    tests can drive time deterministically.

    Args:
        timeout: seconds after which a failing check ends in TIMED_OUT.
        interval: seconds to pause after the first failed check.
        backoff: multiplier applied to the pause after each failure (1.0 = fixed).
        max_interval: upper bound for the pause when backing off.
    """

    timeout: float = 120
    interval: float = 10
    backoff: float = 1.0
    max_interval: float | None = None
    clock: Callable[[], float] = time.monotonic
    sleep: Callable[[float], Awaitable] = asyncio.sleep

    def __post_init__(self):
        if self.timeout < 0:
            raise ValueError(f"timeout must be >= 0, got {self.timeout}")
        if self.interval <= 0:
            raise ValueError(f"interval must be > 0, got {self.interval}")
        if self.backoff < 1:
            raise ValueError(f"backoff must be >= 1, got {self.backoff}")

    def intervals(self):
        """Yield successive pause lengths."""
        delay = self.interval
        while True:
            yield delay
            delay *= self.backoff
            if self.max_interval is not None:
                delay = min(delay, self.max_interval)

    async def wait_until(self, check: Callable[[], Awaitable[bool]], cancel_event: asyncio.Event | None = None) -> WaitResult:
        """Call ``check`` until it returns True, the ceiling passes, or ``cancel_event`` is set.

        Exceptions raised by ``check`` propagate unchanged.
        """
        result = WaitResult()
        delays = self.intervals()
        start = self.clock()
        while True:
            if cancel_event is not None and cancel_event.is_set():
                result.outcome = WaitOutcome.CANCELLED
                break
            result.attempts += 1
            if await check():
                result.outcome = WaitOutcome.SUCCESS
                break
            if cancel_event is not None and cancel_event.is_set():
                result.outcome = WaitOutcome.CANCELLED
                break
            if self.clock() - start > self.timeout:
                result.outcome = WaitOutcome.TIMED_OUT
                break
            delay = next(delays)
            logger.debug(f"Attempt {result.attempts} failed, retrying in {delay:g}s")
            if not await self._pause(delay, cancel_event):
                result.outcome = WaitOutcome.CANCELLED
                break
        result.elapsed = self.clock() - start
        return result

    async def _pause(self, delay, cancel_event):
        """Sleep for ``delay`` unless cancelled first. Returns False on cancellation."""
        if cancel_event is None:
            await self.sleep(delay)
            return True

        sleeper = asyncio.ensure_future(self.sleep(delay))
        canceller = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait({sleeper, canceller}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            sleeper.cancel()
            canceller.cancel()
        return not cancel_event.is_set()
