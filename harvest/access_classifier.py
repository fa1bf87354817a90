"""
Failure classification for channel extraction attempts.

Maps an exception (plus the navigation status, when one was seen) to an
ErrorCategory that the retry policy keys on. Side-effect free.
"""

from __future__ import annotations

import asyncio
from enum import Enum

from .errors import ChannelAccessError


class ErrorCategory(str, Enum):
    RATE_LIMIT = "rate_limit"
    NOT_FOUND = "not_found"
    TEMPORARY = "temporary"
    CAPTCHA = "captcha"
    CONSENT = "consent"
    TIMEOUT = "timeout"
    NETWORK = "network"


CAPTCHA_MARKERS = ["captcha", "recaptcha", "unusual traffic"]
CONSENT_MARKERS = ["consent"]
TIMEOUT_MARKERS = ["timeout", "timed out"]
NETWORK_MARKERS = ["network", "connection", "net::", "econnreset", "econnrefused", "dns"]
RATE_LIMIT_MARKERS = ["too many requests", "rate limit"]


def _marker_hit(text: str, markers: list[str]) -> bool:
    return any(m in text for m in markers)


def _status_of(error: BaseException | None, status: int | None) -> int | None:
    if status is not None:
        return status
    value = getattr(error, "status", None)
    return value if isinstance(value, int) else None


def classify_error(error: BaseException | str | None, status: int | None = None) -> ErrorCategory:
    """
    Classify a failed attempt.

    Precedence: status 429, 404, >= 500; then typed errors; then message
    markers (captcha, consent, timeout, network, rate limit); else temporary.
    """
    exc = error if isinstance(error, BaseException) else None
    status = _status_of(exc, status)

    if status == 429:
        return ErrorCategory.RATE_LIMIT
    if status == 404:
        return ErrorCategory.NOT_FOUND
    if status is not None and status >= 500:
        return ErrorCategory.TEMPORARY

    if isinstance(exc, ChannelAccessError) and type(exc) is not ChannelAccessError:
        return ErrorCategory(exc.category)
    if isinstance(exc, asyncio.TimeoutError):
        return ErrorCategory.TIMEOUT

    message = str(error or "")
    if exc is not None:
        message = f"{type(exc).__name__} {message}"
    message = message.lower()

    if _marker_hit(message, CAPTCHA_MARKERS):
        return ErrorCategory.CAPTCHA
    if _marker_hit(message, CONSENT_MARKERS):
        return ErrorCategory.CONSENT
    if _marker_hit(message, TIMEOUT_MARKERS):
        return ErrorCategory.TIMEOUT
    if _marker_hit(message, NETWORK_MARKERS):
        return ErrorCategory.NETWORK
    if _marker_hit(message, RATE_LIMIT_MARKERS):
        return ErrorCategory.RATE_LIMIT
    return ErrorCategory.TEMPORARY
