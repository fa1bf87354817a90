"""
Keyword search: keyword -> channel identifiers, driven through the browser.

Reads `channelRenderer` entries from the results page's ytInitialData and
falls back to channel anchors in the DOM when the tree is missing.
"""

from __future__ import annotations

import logging
from urllib.parse import quote_plus

from .config import YOUTUBE_BASE, ChannelIdentifier, ScrapeConfig
from .extractor import read_initial_data
from .probes import first_present


logger = logging.getLogger(__name__)

# Search results filtered to channels
CHANNEL_FILTER = 'EgIQAg%3D%3D'
SEARCH_ANCHOR_SELECTOR = 'ytd-channel-renderer a#main-link'

CHANNEL_PATH_PROBES = [
    'navigationEndpoint.browseEndpoint.canonicalBaseUrl',
    'navigationEndpoint.commandMetadata.webCommandMetadata.url',
]


def search_url(keyword: str) -> str:
    return f"{YOUTUBE_BASE}/results?search_query={quote_plus(keyword)}&sp={CHANNEL_FILTER}"


def iter_channel_renderers(tree):
    """Every channelRenderer dict in the tree, depth first, in document order."""
    stack = [tree]
    while stack:
        node = stack.pop()
        if isinstance(node, dict):
            renderer = node.get('channelRenderer')
            if isinstance(renderer, dict):
                yield renderer
            stack.extend(reversed([v for k, v in node.items() if k != 'channelRenderer']))
        elif isinstance(node, list):
            stack.extend(reversed(node))


def channel_urls_from_results(tree) -> list[str]:
    urls = []
    for renderer in iter_channel_renderers(tree):
        path = first_present(renderer, CHANNEL_PATH_PROBES)
        if isinstance(path, str) and path.startswith('/'):
            urls.append(YOUTUBE_BASE + path)
        elif isinstance(renderer.get('channelId'), str):
            urls.append(f"{YOUTUBE_BASE}/channel/{renderer['channelId']}")
    return urls


async def search_channels(session, keyword: str, limit: int, config: ScrapeConfig | None = None) -> list[ChannelIdentifier]:
    """Up to `limit` channels for one keyword, in result order."""
    config = config or ScrapeConfig()
    page = await session.new_page()
    try:
        await page.goto(search_url(keyword), config.navigation_timeout_ms)
        urls = channel_urls_from_results(await read_initial_data(page))
        if not urls:
            hrefs = await page.query_selector_all(SEARCH_ANCHOR_SELECTOR, 'href', config.element_wait_ms)
            urls = [h if h.startswith('http') else YOUTUBE_BASE + h for h in hrefs if h]
    finally:
        await page.close()

    seen = set()
    identifiers = []
    for url in urls:
        if url in seen:
            continue
        seen.add(url)
        identifiers.append(ChannelIdentifier(url=url, source='search', origin=keyword))
        if len(identifiers) >= limit:
            break
    logger.info("Search %r: %d channels", keyword, len(identifiers))
    return identifiers


async def search_keywords(session, keywords: list[str], limit: int, config: ScrapeConfig | None = None) -> list[ChannelIdentifier]:
    """Run every keyword; a failing keyword is logged and skipped."""
    results = []
    for keyword in keywords:
        try:
            results.extend(await search_channels(session, keyword, limit, config))
        except Exception as e:
            logger.error("Search failed for %r: %s", keyword, e)
    return results
