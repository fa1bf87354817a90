"""
Configuration, selectors and result types for the harvest module.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal


YOUTUBE_BASE = "https://www.youtube.com"

# User agents for rotation
USER_AGENTS = [
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.4 Safari/605.1.15",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:125.0) Gecko/20100101 Firefox/125.0",
]

BROWSER_ARGS = [
    '--no-sandbox',
    '--disable-setuid-sandbox',
    '--disable-dev-shm-usage',
    '--disable-accelerated-2d-canvas',
    '--no-first-run',
    '--no-zygote',
    '--disable-gpu',
    '--disable-blink-features=AutomationControlled',
    '--window-size=1920,1080',
]

# Requests to abort during page load (media, trackers, player telemetry)
BLOCKED_RESOURCE_PATTERNS = (
    '.mp4', '.webm', '.avi', '.mov', '.flv',
    '.webp', '.gif', '.svg', '.ico', '.bmp',
    '.woff', '.woff2', '.ttf', '.eot',
    'google-analytics.com',
    'googletagmanager.com',
    'doubleclick.net',
    'googlesyndication.com',
    'googleadservices.com',
    '/videoplayback',
    '/adview',
    '/stats/ads',
    '/stats/watchtime',
    '/stats/qoe',
    '/youtubei/v1/log_event',
    '/api/stats',
    '/ptracking',
    '/get_midroll_info',
)

# Timeouts (ms)
ELEMENT_WAIT_MS = 3000
CAPTCHA_CHECK_MS = 5000
CONTENT_WAIT_MS = 5000
NAVIGATION_TIMEOUT_MS = 30000


# CSS selectors for the DOM fallback layer
CSS_SELECTORS = {
    'channel_name': 'yt-formatted-string.ytd-channel-name',
    'channel_name_text': '#text.ytd-channel-name',
    'page_header_title': 'yt-page-header-renderer h1 span',
    'subscriber_count': '#subscriber-count',
    'owner_sub_count': '#owner-sub-count',
    'avatar_image': 'yt-img-shadow#avatar img',
    'header_avatar_image': 'yt-page-header-renderer yt-avatar-shape img',
    'about_section': 'ytd-channel-about-metadata-renderer',
    'about_panel': 'ytd-about-channel-renderer',
    'description': '#description-container yt-formatted-string',
    'about_description': 'ytd-about-channel-renderer #description-container',
    'about_links': 'ytd-about-channel-renderer #link-list-container a',
    'links': '#links-container a',
    'upsell_dialog': '.yt-upsell-dialog-renderer',
    'upsell_dismiss': '.yt-upsell-dialog-renderer [role="button"]:has-text("No thanks")',
    'consent_button': 'form[action*="consent"] button',
    'consent_dialog': 'ytd-consent-bump-v2-lightbox',
    'consent_reject': 'ytd-consent-bump-v2-lightbox button[aria-label*="Reject"]',
    'captcha_checkbox': 'div.recaptcha-checkbox-border',
    'content_root': '#content',
}

# XPath expressions for the structural fallback layer
XPATH_SELECTORS = {
    'joined_date': '//div[@id="right-column"]//yt-formatted-string[contains(., "Joined")]',
    'about_joined_date': '//ytd-about-channel-renderer//td[contains(., "Joined")]',
    'total_view_count': '//div[@id="right-column"]//yt-formatted-string[contains(., "view")]',
    'about_view_count': '//ytd-about-channel-renderer//td[contains(., "view")]',
    'video_count': '//ytd-about-channel-renderer//td[contains(., "video")]',
    'location': '//div[@id="details-container"]//td[starts-with(normalize-space(.), "Location")]/following-sibling::td[1]',
    'about_location': '//ytd-about-channel-renderer//tr[.//yt-icon[@icon="privacy_public"]]/td[last()]',
}

CONSENT_MARKERS = ('consent.youtube.com', 'consent.google.com', '/consent')


@dataclass
class ScrapeConfig:
    """Configuration for browser and extraction behaviour."""

    # Browser settings
    headless: bool = True
    stealth: bool = False  # apply playwright-stealth to every page
    block_resources: bool = True
    user_agent: str | None = None  # if None, rotates from USER_AGENTS
    rotate_user_agent: bool = True
    proxy_urls: list[str] = field(default_factory=list)

    # Timeouts
    navigation_timeout_ms: int = NAVIGATION_TIMEOUT_MS
    element_wait_ms: int = ELEMENT_WAIT_MS
    captcha_check_ms: int = CAPTCHA_CHECK_MS
    content_wait_ms: int = CONTENT_WAIT_MS
    settle_ms: int = 1000  # extra wait once key content is present

    # Extraction
    use_about_tab: bool = True  # navigate to <channel>/about, else the channel root

    # Diagnostics
    snapshot_dir: Path | None = None


@dataclass
class ChannelIdentifier:
    """Canonical channel reference plus where it came from."""
    url: str
    source: Literal['direct', 'search', 'bulk_import'] = 'direct'
    origin: str | None = None  # keyword, file name, or list index
    row: int | None = None
    retry_count: int = 0


@dataclass
class ChannelRecord:
    """One output item per successfully processed channel."""

    # Identity
    channel_url: str
    channel_name: str = 'Unknown Channel'

    # Counts
    subscriber_count: int = 0
    video_count: int = 0
    total_view_count: int = 0

    # About details
    joined_date: str = ''
    location: str = ''
    description: str = ''
    avatar_url: str = ''

    # Contact information
    emails: list[str] = field(default_factory=list)
    phones: list[str] = field(default_factory=list)

    # Social links, one list per platform
    youtube_urls: list[str] = field(default_factory=list)
    instagram_urls: list[str] = field(default_factory=list)
    twitter_urls: list[str] = field(default_factory=list)
    facebook_urls: list[str] = field(default_factory=list)
    linkedin_urls: list[str] = field(default_factory=list)
    pinterest_urls: list[str] = field(default_factory=list)
    reddit_urls: list[str] = field(default_factory=list)
    tumblr_urls: list[str] = field(default_factory=list)
    tiktok_urls: list[str] = field(default_factory=list)
    twitch_urls: list[str] = field(default_factory=list)
    onlyfans_urls: list[str] = field(default_factory=list)
    spotify_urls: list[str] = field(default_factory=list)
    soundcloud_urls: list[str] = field(default_factory=list)
    discord_urls: list[str] = field(default_factory=list)
    patreon_urls: list[str] = field(default_factory=list)
    github_urls: list[str] = field(default_factory=list)
    website_urls: list[str] = field(default_factory=list)

    # Verification and provenance
    verified_category: Literal['unverified', 'verified', 'official_artist_channel', 'unknown'] = 'unknown'
    data_source: Literal['structured_data', 'dom', 'raw_markup'] = 'structured_data'
    input_source: str | None = None
    input_origin: str | None = None

    # Temporal
    scraped_at: str = ''  # ISO 8601 UTC
    processing_ms: int = 0


@dataclass
class ExtractionAttempt:
    """Telemetry for one try at one identifier."""
    attempt_number: int
    started_at: str
    duration_ms: int = 0
    error: str | None = None
    category: str | None = None
    retry_delay_ms: int | None = None


@dataclass
class FailedRequest:
    """Terminal failure entry for the failed-requests log."""
    url: str
    error: str
    category: str
    attempts: int
    timestamp: str
    input_source: str | None = None
    input_origin: str | None = None
