"""
Channel page extraction with layered fallback.

Each field is resolved from the most reliable source that has it:

1. Structured data: the page's embedded `ytInitialData` tree, read through
   the path probes in harvest.probes.
2. DOM: short-timeout selector and XPath queries for fields layer 1 missed.
3. Raw markup: BeautifulSoup anchors plus a domain-anchored regex over the
   rendered HTML, only for social links and only when layers 1 and 2 found none.

Usage:
    from harvest.extractor import extract_channel

    record = await extract_channel(page, identifier, ScrapeConfig())
    print(record.channel_name, record.subscriber_count, record.data_source)
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from collections import Counter
from datetime import datetime, timezone

from bs4 import BeautifulSoup

from .config import (
    CSS_SELECTORS,
    XPATH_SELECTORS,
    ChannelIdentifier,
    ChannelRecord,
    ScrapeConfig,
)
from .decoders import extract_contact_info, parse_compact_count
from .guards import prepare_page, save_snapshot, snapshot_key
from .probes import probe, probe_field, probe_links, text_of
from .social import PLATFORM_PATTERNS, buckets_to_record_fields, categorize_urls, classify_url, is_redirector


logger = logging.getLogger(__name__)

UNKNOWN_NAME = 'Unknown Channel'

# Layers from most to least reliable; ties in data_source go to the earlier one
LAYERS = ('structured_data', 'dom', 'raw_markup')

INITIAL_DATA_SCRIPT = "() => window.ytInitialData || {}"

VERIFICATION_SCRIPT = """() => {
    const result = {tooltip: null, aria: false};
    for (const badge of document.querySelectorAll('ytd-badge-supported-renderer')) {
        const tooltip = badge.querySelector('tp-yt-paper-tooltip div');
        if (tooltip && tooltip.textContent && tooltip.textContent.trim()) {
            result.tooltip = tooltip.textContent.trim();
            break;
        }
    }
    result.aria = document.querySelectorAll('[aria-label*="Verified"]').length > 0;
    return result;
}"""

# DOM fallbacks per field: (kind, selector key, attribute)
DOM_PROBES: dict[str, list[tuple[str, str, str | None]]] = {
    'channel_name': [
        ('css', 'channel_name', None),
        ('css', 'channel_name_text', None),
        ('css', 'page_header_title', None),
    ],
    'subscriber_count': [
        ('css', 'subscriber_count', None),
        ('css', 'owner_sub_count', None),
    ],
    'video_count': [
        ('xpath', 'video_count', None),
    ],
    'total_view_count': [
        ('xpath', 'about_view_count', None),
        ('xpath', 'total_view_count', None),
    ],
    'joined_date': [
        ('xpath', 'about_joined_date', None),
        ('xpath', 'joined_date', None),
    ],
    'location': [
        ('xpath', 'about_location', None),
        ('xpath', 'location', None),
    ],
    'description': [
        ('css', 'about_description', None),
        ('css', 'description', None),
    ],
    'avatar_url': [
        ('css', 'avatar_image', 'src'),
        ('css', 'header_avatar_image', 'src'),
    ],
}

DOM_LINK_SELECTORS = ('about_links', 'links')

COUNT_FIELDS = ('subscriber_count', 'video_count', 'total_view_count')
TEXT_FIELDS = ('joined_date', 'location', 'description', 'avatar_url')

_JOINED_PREFIX = re.compile(r'^\s*joined\s+', re.IGNORECASE)

_SOCIAL_DOMAINS = sorted(
    {d.split('/')[0] for name, p in PLATFORM_PATTERNS.items() if name != 'youtube' for d in p.domains},
    key=len,
    reverse=True,
)
MARKUP_URL_RE = re.compile(
    r'https?://(?:[A-Za-z0-9-]+\.)*(?:' + '|'.join(re.escape(d) for d in _SOCIAL_DOMAINS) + r')'
    r'(?![\w-])(?:/[^\s"\'<>\\)]*)?',
    re.IGNORECASE,
)


# ---------------------------------------------------------------------------
# Layer 1: structured data
# ---------------------------------------------------------------------------

async def read_initial_data(page) -> dict:
    """The page's ytInitialData tree, or {} when it cannot be read."""
    try:
        data = await page.evaluate(INITIAL_DATA_SCRIPT)
    except Exception as e:
        logger.debug("Failed to read structured data: %s", e)
        return {}
    return data if isinstance(data, dict) else {}


def extract_structured_fields(tree: dict) -> dict:
    """Raw field values from the structured data tree (None when missing)."""
    fields = {}
    for name in ('channel_name',) + COUNT_FIELDS + TEXT_FIELDS:
        try:
            raw = probe_field(tree, name)
            fields[name] = raw if name == 'channel_name' else text_of(raw)
        except Exception as e:
            logger.debug("Structured probe for %s failed: %s", name, e)
            fields[name] = None
    try:
        fields['links'] = probe_links(tree)
    except Exception as e:
        logger.debug("Structured link probe failed: %s", e)
        fields['links'] = []
    return fields


def normalize_channel_name(value) -> str:
    """Unwrap nested name shapes; 'Unknown Channel' when no usable text."""
    if isinstance(value, str):
        return value.strip() or UNKNOWN_NAME
    if isinstance(value, dict):
        for candidate in (
            probe(value, 'dynamicTextViewModel.text.content'),
            value.get('content'),
            value.get('simpleText'),
            text_of(value.get('runs')),
            value.get('text'),
        ):
            if isinstance(candidate, str) and candidate.strip():
                return candidate.strip()
    return UNKNOWN_NAME


# ---------------------------------------------------------------------------
# Layer 2: DOM
# ---------------------------------------------------------------------------

async def _dom_read(page, kind: str, key: str, attribute: str | None, timeout_ms: int) -> str | None:
    try:
        if kind == 'css':
            value = await page.query_selector(CSS_SELECTORS[key], attribute, timeout_ms)
        else:
            value = await page.query_xpath(XPATH_SELECTORS[key], attribute, timeout_ms)
    except Exception as e:
        logger.debug("DOM read %s failed: %s", key, e)
        return None
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


async def _dom_field(page, name: str, timeout_ms: int) -> str | None:
    for kind, key, attribute in DOM_PROBES[name]:
        value = await _dom_read(page, kind, key, attribute, timeout_ms)
        if value:
            return value
    return None


async def extract_dom_fields(page, names: list[str], config: ScrapeConfig) -> dict:
    """Query the DOM for the given fields concurrently."""
    values = await asyncio.gather(*(_dom_field(page, n, config.element_wait_ms) for n in names))
    return dict(zip(names, values))


async def extract_dom_links(page, config: ScrapeConfig) -> list[str]:
    links = []
    for key in DOM_LINK_SELECTORS:
        try:
            hrefs = await page.query_selector_all(CSS_SELECTORS[key], 'href', config.element_wait_ms)
        except Exception as e:
            logger.debug("DOM link read %s failed: %s", key, e)
            continue
        links.extend(h for h in hrefs or [] if isinstance(h, str) and h.startswith('http'))
    return links


# ---------------------------------------------------------------------------
# Layer 3: raw markup
# ---------------------------------------------------------------------------

def extract_markup_links(html: str) -> list[str]:
    """Social profile URLs from rendered markup (anchors and inline text)."""
    if not html:
        return []
    found = []
    soup = BeautifulSoup(html, 'lxml')
    for anchor in soup.find_all('a', href=True):
        href = anchor['href'].strip()
        if href.startswith(('http://', 'https://')):
            found.append(href)

    unescaped = html.replace('\\u0026', '&').replace('\\/', '/')
    found.extend(m.group(0).rstrip('.,;') for m in MARKUP_URL_RE.finditer(unescaped))

    links = []
    for url in found:
        if classify_url(url) not in (None, 'website', 'youtube') or is_redirector(url):
            links.append(url)
    return links


async def _markup_links(page) -> list[str]:
    try:
        html = await page.content()
    except Exception as e:
        logger.debug("Failed to read page markup: %s", e)
        return []
    return extract_markup_links(html)


# ---------------------------------------------------------------------------
# Verification and provenance
# ---------------------------------------------------------------------------

def verification_category(tooltip: str | None, aria_verified: bool = False) -> str:
    if tooltip and tooltip.strip():
        if 'official artist channel' in tooltip.lower():
            return 'official_artist_channel'
        return 'verified'
    if aria_verified:
        return 'verified'
    return 'unknown'


async def read_verification(page) -> str:
    try:
        signal = await page.evaluate(VERIFICATION_SCRIPT)
    except Exception as e:
        logger.debug("Verification check failed: %s", e)
        return 'unknown'
    if not isinstance(signal, dict):
        return 'unknown'
    return verification_category(signal.get('tooltip'), bool(signal.get('aria')))


def majority_source(sources: dict[str, str]) -> str:
    """Layer that supplied most resolved fields; ties go to the more reliable layer."""
    counts = Counter(sources.values())
    return max(LAYERS, key=lambda layer: (counts.get(layer, 0), -LAYERS.index(layer)))


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def _clean_text(name: str, value: str | None) -> str:
    if not value:
        return ''
    if name == 'joined_date':
        value = _JOINED_PREFIX.sub('', value)
    return value.strip()


async def _extract(page, identifier: ChannelIdentifier, config: ScrapeConfig, started: float) -> ChannelRecord:
    await prepare_page(page, config)

    tree = await read_initial_data(page)
    structured = extract_structured_fields(tree)

    values: dict = {}
    sources: dict[str, str] = {}

    name_value = structured.get('channel_name')
    if name_value is not None and normalize_channel_name(name_value) != UNKNOWN_NAME:
        values['channel_name'] = normalize_channel_name(name_value)
        sources['channel_name'] = 'structured_data'

    for name in COUNT_FIELDS + TEXT_FIELDS:
        if structured.get(name):
            values[name] = structured[name]
            sources[name] = 'structured_data'

    missing = [n for n in DOM_PROBES if n not in values]
    if missing:
        for name, value in (await extract_dom_fields(page, missing, config)).items():
            if value:
                values[name] = value
                sources[name] = 'dom'

    links = structured.get('links') or []
    if links:
        sources['links'] = 'structured_data'
    else:
        links = await extract_dom_links(page, config)
        if links:
            sources['links'] = 'dom'
        else:
            links = await _markup_links(page)
            if links:
                sources['links'] = 'raw_markup'

    verified = await read_verification(page)

    description = _clean_text('description', values.get('description'))
    contact = extract_contact_info(description)
    social = buckets_to_record_fields(categorize_urls(links))

    # UnhandledMultiplierError from the count decoder propagates
    counts = {name: parse_compact_count(values.get(name)) for name in COUNT_FIELDS}

    return ChannelRecord(
        channel_url=identifier.url,
        channel_name=values.get('channel_name') or UNKNOWN_NAME,
        subscriber_count=counts['subscriber_count'],
        video_count=counts['video_count'],
        total_view_count=counts['total_view_count'],
        joined_date=_clean_text('joined_date', values.get('joined_date')),
        location=_clean_text('location', values.get('location')),
        description=description,
        avatar_url=_clean_text('avatar_url', values.get('avatar_url')),
        emails=contact.emails,
        phones=contact.phones,
        verified_category=verified,
        data_source=majority_source(sources),
        input_source=identifier.source,
        input_origin=None if identifier.origin is None else str(identifier.origin),
        scraped_at=datetime.now(timezone.utc).isoformat(),
        processing_ms=int((time.monotonic() - started) * 1000),
        **social,
    )


async def extract_channel(
    page,
    identifier: ChannelIdentifier,
    config: ScrapeConfig | None = None,
    snapshot_store=None,
) -> ChannelRecord:
    """
    Extract one channel record from a loaded about page.

    Raises:
        CaptchaDetectedError: challenge page detected; caller rotates session
        ConsentRequiredError: consent interstitial could not be cleared
        UnhandledMultiplierError: unknown count suffix

    Any error also triggers a diagnostic snapshot before propagating.
    """
    config = config or ScrapeConfig()
    started = time.monotonic()
    try:
        record = await _extract(page, identifier, config, started)
    except Exception:
        await save_snapshot(page, snapshot_key(identifier.url), snapshot_store)
        raise
    logger.info(
        "Extracted %s: subscribers=%d videos=%d source=%s (%dms)",
        record.channel_name, record.subscriber_count, record.video_count,
        record.data_source, record.processing_ms,
    )
    return record
