"""
Adaptive inter-request pacing.

One AdaptiveRateLimiter is created per crawl and shared by every worker:

    limiter = AdaptiveRateLimiter()
    await limiter.wait_for_slot()          # before each navigation
    limiter.record_outcome(True, 850.0)    # after each attempt

The delay doubles on a rate-limit signal, grows gently while the recent
success rate is below target, and decays back toward the minimum once the
success rate recovers. Slow average latency nudges it up as well.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from collections import deque
from dataclasses import dataclass, field


logger = logging.getLogger(__name__)

# Success rate is measured over this many most recent outcomes
SUCCESS_RATE_SAMPLE = 20
METRICS_LOG_EVERY = 50


@dataclass
class RequestOutcome:
    success: bool
    latency_ms: float = 0.0
    rate_limited: bool = False
    timestamp: float = field(default_factory=time.time)


class AdaptiveRateLimiter:
    def __init__(
        self,
        min_delay_ms: float = 1000,
        max_delay_ms: float = 10000,
        target_success_rate: float = 0.95,
        window_size: int = 100,
        adaptation_rate: float = 0.1,
        slow_latency_ms: float = 5000,
        rng=random,
        clock=time.monotonic,
        sleep=asyncio.sleep,
    ):
        self.min_delay_ms = min_delay_ms
        self.max_delay_ms = max_delay_ms
        self.target_success_rate = target_success_rate
        self.window_size = window_size
        self.adaptation_rate = adaptation_rate
        self.slow_latency_ms = slow_latency_ms
        self._rng = rng
        self._clock = clock
        self._sleep = sleep
        self._slot_lock = asyncio.Lock()
        self.reset()

    def reset(self) -> None:
        self.current_delay_ms = float(self.min_delay_ms)
        self.history: deque[RequestOutcome] = deque(maxlen=self.window_size)
        self.last_dispatch: float | None = None
        self.total_requests = 0
        self.successful_requests = 0
        self.rate_limit_hits = 0
        self.average_latency_ms = 0.0
        self.success_rate = 1.0

    # -- outcome tracking ---------------------------------------------------

    def record_outcome(self, success: bool, latency_ms: float = 0.0, rate_limited: bool = False) -> None:
        """Record one attempt and adapt the delay. No awaits: safe on a shared loop."""
        self.total_requests += 1
        if success:
            self.successful_requests += 1
        if rate_limited:
            self.rate_limit_hits += 1

        self.history.append(RequestOutcome(success, latency_ms, rate_limited))

        recent = list(self.history)[-SUCCESS_RATE_SAMPLE:]
        self.success_rate = sum(1 for o in recent if o.success) / len(recent)

        latencies = [o.latency_ms for o in self.history if o.latency_ms]
        if latencies:
            self.average_latency_ms = sum(latencies) / len(latencies)

        self._adapt(rate_limited)

        if self.total_requests % METRICS_LOG_EVERY == 0:
            logger.info("Rate limiter metrics: %s", self.metrics())

    def _adapt(self, rate_limited: bool) -> None:
        if rate_limited:
            self.current_delay_ms = min(self.current_delay_ms * 2, self.max_delay_ms)
            logger.warning("Rate limit hit, increasing delay to %.0fms", self.current_delay_ms)
        elif self.success_rate < self.target_success_rate:
            self.current_delay_ms = min(self.current_delay_ms * (1 + self.adaptation_rate), self.max_delay_ms)
            logger.info(
                "Success rate low (%.1f%%), increasing delay to %.0fms",
                self.success_rate * 100, self.current_delay_ms,
            )
        elif self.current_delay_ms > self.min_delay_ms:
            self.current_delay_ms = max(self.current_delay_ms * (1 - self.adaptation_rate / 2), self.min_delay_ms)
            logger.debug("Success rate good, decreasing delay to %.0fms", self.current_delay_ms)

        if self.average_latency_ms > self.slow_latency_ms:
            self.current_delay_ms = min(self.current_delay_ms * 1.1, self.max_delay_ms)

    # -- pacing ---------------------------------------------------------------

    async def wait_for_slot(self) -> float:
        """
        Wait until the current delay has elapsed since the last dispatch.

        Callers are serialized so a burst of ready workers is spread one per
        interval. Returns the delay actually slept, in ms.
        """
        async with self._slot_lock:
            now = self._clock()
            elapsed_ms = (now - self.last_dispatch) * 1000 if self.last_dispatch is not None else float('inf')
            remaining = self.current_delay_ms - elapsed_ms

            applied = 0.0
            if remaining > 0:
                jitter = (self._rng.random() - 0.5) * 0.2 * remaining
                applied = max(0.0, remaining + jitter)
                logger.debug("Waiting %.0fms before next request", applied)
                await self._sleep(applied / 1000)

            self.last_dispatch = self._clock()
            return applied

    def metrics(self) -> dict:
        return {
            'total_requests': self.total_requests,
            'successful_requests': self.successful_requests,
            'rate_limit_hits': self.rate_limit_hits,
            'average_latency_ms': round(self.average_latency_ms, 1),
            'success_rate': round(self.success_rate, 3),
            'current_delay_ms': round(self.current_delay_ms),
            'requests_in_window': len(self.history),
        }
