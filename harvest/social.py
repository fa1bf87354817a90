"""
Social link categorization.

Sorts the outbound links found on a channel's about surface into a fixed
taxonomy of platform buckets:

    from harvest.social import categorize_urls

    buckets = categorize_urls(["https://instagram.com/x", "https://example.com"])
    buckets["instagram"]  # ['https://instagram.com/x']
    buckets["website"]    # ['https://example.com']

Every platform key is always present. A non-YouTube link lands in at most one
bucket, decided by the first platform in PLATFORM_ORDER whose pattern matches.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from urllib.parse import urlparse

from .decoders import clean_url, extract_query_parameter


@dataclass(frozen=True)
class PlatformPattern:
    domains: tuple[str, ...]
    required_paths: tuple[str, ...] = field(default_factory=tuple)  # any one path segment
    strip_query: bool = False


PLATFORM_PATTERNS: dict[str, PlatformPattern] = {
    'youtube': PlatformPattern(('youtube.com', 'youtu.be')),
    'instagram': PlatformPattern(('instagram.com',)),
    'twitter': PlatformPattern(('twitter.com', 'x.com')),
    'facebook': PlatformPattern(('facebook.com', 'fb.com')),
    'linkedin': PlatformPattern(('linkedin.com',)),
    'pinterest': PlatformPattern(('pinterest.com',)),
    'reddit': PlatformPattern(('reddit.com',)),
    'tumblr': PlatformPattern(('tumblr.com',)),
    'tiktok': PlatformPattern(('tiktok.com',), strip_query=True),
    'twitch': PlatformPattern(('twitch.tv',)),
    'onlyfans': PlatformPattern(('onlyfans.com',)),
    'spotify': PlatformPattern(('spotify.com',), required_paths=('user', 'artist')),
    'soundcloud': PlatformPattern(('soundcloud.com',)),
    'discord': PlatformPattern(('discord.gg', 'discord.com/invite')),
    'patreon': PlatformPattern(('patreon.com',)),
    'github': PlatformPattern(('github.com',)),
}

PLATFORM_ORDER = list(PLATFORM_PATTERNS) + ['website']

# Outbound-link redirector; the real destination is in its `q` parameter
_REDIRECT_PATH = '/redirect'


def _host_and_path(url: str) -> tuple[str, str]:
    try:
        parsed = urlparse(url)
    except ValueError:
        return '', ''
    host = (parsed.hostname or '').lower()
    return host, parsed.path or ''


def _domain_matches(host: str, path: str, domain: str) -> bool:
    """Suffix match on a label boundary; entries with a path also match its prefix."""
    if '/' in domain:
        domain, _, prefix = domain.partition('/')
        if not path.lstrip('/').startswith(prefix):
            return False
    return host == domain or host.endswith('.' + domain)


def matches_platform(url: str, platform: str) -> bool:
    pattern = PLATFORM_PATTERNS[platform]
    host, path = _host_and_path(url)
    if not host:
        return False
    if not any(_domain_matches(host, path, d) for d in pattern.domains):
        return False
    if pattern.required_paths:
        segments = [s.lower() for s in path.split('/') if s]
        return any(req in segments for req in pattern.required_paths)
    return True


def is_youtube_url(url: str) -> bool:
    return matches_platform(url, 'youtube')


def is_redirector(url: str) -> bool:
    host, path = _host_and_path(url)
    return _domain_matches(host, path, 'youtube.com') and path.startswith(_REDIRECT_PATH)


def collect_candidates(urls: list[str]) -> list[str]:
    """Merge direct links and redirect-resolved destinations, first seen wins."""
    urls = [u.strip() for u in urls or [] if isinstance(u, str) and u.strip()]
    redirected = extract_query_parameter(urls, 'q')
    direct = [u for u in urls if not is_redirector(u)]

    seen = set()
    candidates = []
    for url in redirected + direct:
        if url not in seen:
            seen.add(url)
            candidates.append(url)
    return candidates


def classify_url(url: str) -> str | None:
    """Bucket name for a single URL, or None when it is not an http(s) link."""
    if is_youtube_url(url):
        return 'youtube'
    for platform in PLATFORM_PATTERNS:
        if platform == 'youtube':
            continue
        if matches_platform(url, platform):
            return platform
    if url.lower().startswith(('http://', 'https://')):
        return 'website'
    return None


def categorize_urls(urls: list[str]) -> dict[str, list[str]]:
    """
    Categorize discovered links by platform.

    Args:
        urls: Raw hrefs, possibly including youtube.com/redirect?q=... links

    Returns:
        Dict with one (possibly empty) deduplicated list per platform in
        PLATFORM_ORDER.
    """
    buckets: dict[str, list[str]] = {name: [] for name in PLATFORM_ORDER}
    seen: dict[str, set[str]] = {name: set() for name in PLATFORM_ORDER}

    for url in collect_candidates(urls):
        platform = classify_url(url)
        if platform is None:
            continue
        pattern = PLATFORM_PATTERNS.get(platform)
        value = clean_url(url) if pattern and pattern.strip_query else url
        if value not in seen[platform]:
            seen[platform].add(value)
            buckets[platform].append(value)

    return buckets


def buckets_to_record_fields(buckets: dict[str, list[str]]) -> dict[str, list[str]]:
    """Rename buckets to ChannelRecord field names (`instagram` -> `instagram_urls`)."""
    return {f"{name}_urls": list(buckets.get(name, [])) for name in PLATFORM_ORDER}
