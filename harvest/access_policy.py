"""
Retry policy for classified extraction failures.

Responsibilities:
- Per-category retry budget and backoff schedule
- Global retry cap from the run options
- Backoff timing with jitter

This module is purely decisional: no I/O, no sleeping, no fetching.
"""

from __future__ import annotations

import random
from dataclasses import dataclass

from .access_classifier import ErrorCategory


# ---------------------------------------------------------------------------
# Per-category schedules
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int
    initial_delay_ms: int = 0
    max_delay_ms: int = 0
    backoff_multiplier: float = 1.0


RETRY_POLICIES: dict[ErrorCategory, RetryPolicy] = {
    ErrorCategory.RATE_LIMIT: RetryPolicy(5, 5000, 60000, 2),
    ErrorCategory.TIMEOUT: RetryPolicy(3, 2000, 10000, 1.5),
    ErrorCategory.NETWORK: RetryPolicy(3, 1000, 5000, 1.5),
    ErrorCategory.CAPTCHA: RetryPolicy(0),
    ErrorCategory.NOT_FOUND: RetryPolicy(0),
    ErrorCategory.CONSENT: RetryPolicy(1, 1000, 1000, 1),
    ErrorCategory.TEMPORARY: RetryPolicy(2, 3000, 10000, 2),
}

# Jitter is uniform in [0, JITTER_FRACTION * delay)
JITTER_FRACTION = 0.3


@dataclass
class RetryDecision:
    retry: bool
    category: ErrorCategory
    delay_ms: int = 0
    attempt: int = 0
    max_retries: int = 0
    reason: str = ""


# ---------------------------------------------------------------------------
# Backoff timing
# ---------------------------------------------------------------------------

def compute_retry_delay(attempt: int, policy: RetryPolicy, rng=random) -> int:
    """Exponential backoff capped at the policy maximum, plus jitter."""
    base = policy.initial_delay_ms * (policy.backoff_multiplier ** attempt)
    delay = min(base, policy.max_delay_ms)
    jitter = rng.random() * JITTER_FRACTION * delay
    return int(delay + jitter)


# ---------------------------------------------------------------------------
# Core decision function
# ---------------------------------------------------------------------------

def decide_retry(
    category: ErrorCategory | str,
    attempt: int,
    max_retries: int | None = None,
    rng=random,
) -> RetryDecision:
    """
    Decide whether a failed attempt should be retried.

    Args:
        category: Classified failure category
        attempt: Retries already performed for this identifier (0-based)
        max_retries: Global cap applied on top of the category budget

    Returns:
        RetryDecision with the delay to wait before re-enqueueing.
    """
    category = ErrorCategory(category)
    policy = RETRY_POLICIES[category]
    budget = policy.max_retries
    if max_retries is not None:
        budget = min(budget, max(0, max_retries))

    if budget == 0:
        return RetryDecision(
            retry=False, category=category, attempt=attempt, max_retries=budget,
            reason=f"{category.value} is not retryable",
        )
    if attempt >= budget:
        return RetryDecision(
            retry=False, category=category, attempt=attempt, max_retries=budget,
            reason=f"retry budget exhausted ({attempt}/{budget})",
        )

    delay = compute_retry_delay(attempt, policy, rng=rng)
    return RetryDecision(
        retry=True, category=category, delay_ms=delay, attempt=attempt, max_retries=budget,
        reason=f"retry {attempt + 1}/{budget} after {delay}ms",
    )
