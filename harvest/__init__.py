"""
Channel profile extraction core.

Primary interface:
    from harvest import extract_channel, ScrapeConfig, ChannelIdentifier

    record = await extract_channel(page, ChannelIdentifier(url), ScrapeConfig())

    # Returns ChannelRecord with:
    # - channel_url, channel_name, verified_category
    # - subscriber_count, video_count, total_view_count
    # - joined_date, location, description, avatar_url
    # - emails, phones, one *_urls list per platform
    # - data_source, scraped_at, processing_ms

The Playwright adapter lives in harvest.browser and is imported on its own so
the pure parts (decoders, probes, categorizer, retry policy) load without a
browser runtime.
"""

from .config import ChannelIdentifier, ChannelRecord, ScrapeConfig
from .decoders import extract_contact_info, parse_compact_count
from .errors import (
    CaptchaDetectedError,
    ChannelAccessError,
    ConfigurationError,
    HarvestError,
    UnhandledMultiplierError,
)
from .extractor import extract_channel
from .social import categorize_urls


__all__ = [
    'extract_channel',
    'categorize_urls',
    'parse_compact_count',
    'extract_contact_info',
    'ScrapeConfig',
    'ChannelIdentifier',
    'ChannelRecord',
    'HarvestError',
    'ConfigurationError',
    'ChannelAccessError',
    'CaptchaDetectedError',
    'UnhandledMultiplierError',
]
