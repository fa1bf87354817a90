"""
Input normalization: direct URLs, bulk-import rows and search results merged
into one deduplicated, ordered list of ChannelIdentifiers.

    canonicalize_channel_url("youtube.com/@Foo/about?x=1")
    # 'https://www.youtube.com/@Foo'

Source order is direct, bulk import, search; the first occurrence of a
canonical URL wins and later duplicates are dropped.
"""

from __future__ import annotations

import logging
import re
from urllib.parse import urlparse

from harvest.bulk_import import BulkRecord
from harvest.config import YOUTUBE_BASE, ChannelIdentifier
from harvest.errors import ConfigurationError


logger = logging.getLogger(__name__)

YOUTUBE_HOSTS = ("youtube.com", "www.youtube.com", "m.youtube.com")

_HANDLE_RE = re.compile(r"^@[\w.-]+$")
# Accepted channel path shapes; anything after them (tab, trailing slash) is dropped
_CHANNEL_PATH_RE = re.compile(
    r"^/(@[\w.-]+|channel/[\w-]+|c/[\w.-]+|user/[\w.-]+)(?:/.*)?$"
)


def canonicalize_channel_url(raw) -> str | None:
    """Canonical https://www.youtube.com/<shape> form, or None when not a channel."""
    if not isinstance(raw, str):
        return None
    value = raw.strip()
    if not value:
        return None

    if _HANDLE_RE.match(value):
        return f"{YOUTUBE_BASE}/{value}"

    if "://" not in value:
        value = "https://" + value.lstrip("/")

    try:
        parsed = urlparse(value)
    except ValueError:
        return None
    if parsed.scheme.lower() not in ("http", "https"):
        return None
    if (parsed.hostname or "").lower() not in YOUTUBE_HOSTS:
        return None

    match = _CHANNEL_PATH_RE.match(parsed.path or "")
    if not match:
        return None
    return f"{YOUTUBE_BASE}/{match.group(1)}"


def _raw_url(item):
    if isinstance(item, dict):
        return item.get("url")
    if isinstance(item, (BulkRecord, ChannelIdentifier)):
        return item.url
    return item


def normalize_inputs(
    direct_urls: list | None = None,
    bulk_records: list[BulkRecord] | None = None,
    keyword_results: list[ChannelIdentifier] | None = None,
    max_channels: int = 1000,
) -> list[ChannelIdentifier]:
    """
    Merge and deduplicate the three input sources.

    Raises:
        ConfigurationError: every source is empty
    """
    direct_urls = direct_urls or []
    bulk_records = bulk_records or []
    keyword_results = keyword_results or []
    if not (direct_urls or bulk_records or keyword_results):
        raise ConfigurationError("No input: provide start URLs, a bulk import file, or keywords")

    candidates = []
    for index, item in enumerate(direct_urls):
        candidates.append((_raw_url(item), "direct", str(index), None))
    for record in bulk_records:
        origin = f"{record.source}:{record.sheet}" if record.sheet else record.source
        candidates.append((record.url, "bulk_import", origin, record.row))
    for result in keyword_results:
        candidates.append((result.url, "search", result.origin, result.row))

    identifiers = []
    seen = set()
    invalid = 0
    for raw, source, origin, row in candidates:
        url = canonicalize_channel_url(raw)
        if url is None:
            invalid += 1
            logger.warning("Invalid channel reference from %s (%s): %r", source, origin, raw)
            continue
        if url in seen:
            continue
        seen.add(url)
        identifiers.append(ChannelIdentifier(url=url, source=source, origin=origin, row=row))

    if len(identifiers) > max_channels:
        logger.warning(
            "Channel list limited to %d (found %d unique channels)", max_channels, len(identifiers)
        )
        identifiers = identifiers[:max_channels]

    logger.info(
        "Normalized %d inputs into %d channels (%d invalid)",
        len(candidates), len(identifiers), invalid,
    )
    return identifiers
