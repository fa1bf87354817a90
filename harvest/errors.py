"""
Error taxonomy for channel harvesting.

Per-attempt failures derive from ChannelAccessError and carry the category
the retry policy keys on. ConfigurationError is the only run-fatal error.
"""

from __future__ import annotations


class HarvestError(Exception):
    """Base class for all harvest errors."""


class ConfigurationError(HarvestError):
    """Unusable run configuration (no input source, missing proxy, ...)."""


class UnhandledMultiplierError(HarvestError, ValueError):
    """A compact count carried a suffix letter the decoder does not know."""

    def __init__(self, text: str, letter: str):
        self.text = text
        self.letter = letter
        super().__init__(f"Unhandled multiplier {letter!r} in count text {text!r}")


class ChannelAccessError(HarvestError):
    """A single extraction attempt failed."""

    category: str = "temporary"

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class CaptchaDetectedError(ChannelAccessError):
    category = "captcha"

    def __init__(self, message: str = "Got captcha, session must be rotated", status: int | None = None):
        super().__init__(message, status)


class NotFoundError(ChannelAccessError):
    category = "not_found"


class RateLimitError(ChannelAccessError):
    category = "rate_limit"


class NavigationTimeoutError(ChannelAccessError):
    category = "timeout"


class NetworkError(ChannelAccessError):
    category = "network"


class ConsentRequiredError(ChannelAccessError):
    category = "consent"


class TemporaryError(ChannelAccessError):
    category = "temporary"


def error_for_status(status: int, url: str) -> ChannelAccessError:
    """Map a failing navigation status to the matching typed error."""
    message = f"Invalid response status from YouTube: {status} for {url}"
    if status == 404:
        return NotFoundError(message, status)
    if status == 429:
        return RateLimitError(message, status)
    return TemporaryError(message, status)
