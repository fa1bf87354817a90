"""
Playwright adapter for the ChannelPage capability the extractor consumes.

    async with BrowserSession(ScrapeConfig(headless=True)) as session:
        page = await session.new_page()
        status = await page.goto("https://www.youtube.com/@handle/about", 30000)
        ...
        await page.close()

BrowserSession owns one Chromium instance and one context at a time.
rotate_session() throws the context away and opens a new one with the next
proxy URL and user agent, which is how a CAPTCHA'd identity is retired.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import random
from urllib.parse import urlparse

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright
from playwright_stealth import Stealth

from .config import BLOCKED_RESOURCE_PATTERNS, BROWSER_ARGS, USER_AGENTS, ScrapeConfig
from .errors import NavigationTimeoutError, NetworkError


logger = logging.getLogger(__name__)

_READ_ELEMENT_JS = """(el, attr) => {
    if (!el) return null;
    if (!attr || attr === 'innerText') return (el.innerText || el.textContent || '').trim();
    if (attr === 'textContent') return (el.textContent || '').trim();
    return el[attr] || el.getAttribute(attr) || null;
}"""


def _proxy_settings(proxy_url: str) -> dict:
    """Playwright proxy dict from a URL with optional credentials."""
    parsed = urlparse(proxy_url)
    server = f"{parsed.scheme or 'http'}://{parsed.hostname}"
    if parsed.port:
        server += f":{parsed.port}"
    settings = {'server': server}
    if parsed.username:
        settings['username'] = parsed.username
        settings['password'] = parsed.password or ''
    return settings


def should_block(url: str) -> bool:
    lowered = url.lower()
    return any(pattern in lowered for pattern in BLOCKED_RESOURCE_PATTERNS)


class PlaywrightFrame:
    def __init__(self, frame):
        self._frame = frame

    @property
    def name(self) -> str:
        return self._frame.name or ''

    async def has_selector(self, selector: str, timeout_ms: int) -> bool:
        try:
            await self._frame.wait_for_selector(selector, timeout=timeout_ms)
            return True
        except (PlaywrightTimeoutError, PlaywrightError):
            return False


class PlaywrightChannelPage:
    """ChannelPage over a Playwright page."""

    def __init__(self, page):
        self._page = page

    @property
    def url(self) -> str:
        return self._page.url

    async def goto(self, url: str, timeout_ms: int) -> int | None:
        try:
            response = await self._page.goto(url, wait_until='domcontentloaded', timeout=timeout_ms)
        except PlaywrightTimeoutError as e:
            raise NavigationTimeoutError(f"Navigation timeout for {url}: {e}") from e
        except PlaywrightError as e:
            if 'net::' in str(e):
                raise NetworkError(f"Network error for {url}: {e}") from e
            raise
        return response.status if response is not None else None

    async def evaluate(self, script: str):
        return await self._page.evaluate(script)

    async def _read(self, handle, attribute: str | None) -> str | None:
        if handle is None:
            return None
        return await handle.evaluate(_READ_ELEMENT_JS, attribute)

    async def query_selector(self, selector: str, attribute: str | None = None, timeout_ms: int = 3000) -> str | None:
        try:
            handle = await self._page.wait_for_selector(selector, timeout=timeout_ms, state='attached')
        except (PlaywrightTimeoutError, PlaywrightError):
            return None
        return await self._read(handle, attribute)

    async def query_selector_all(self, selector: str, attribute: str | None = None, timeout_ms: int = 3000) -> list[str]:
        try:
            await self._page.wait_for_selector(selector, timeout=timeout_ms, state='attached')
        except (PlaywrightTimeoutError, PlaywrightError):
            return []
        values = []
        for handle in await self._page.query_selector_all(selector):
            value = await self._read(handle, attribute)
            if value:
                values.append(value)
        return values

    async def query_xpath(self, path: str, attribute: str | None = None, timeout_ms: int = 3000) -> str | None:
        return await self.query_selector(f"xpath={path}", attribute, timeout_ms)

    async def content(self) -> str:
        return await self._page.content()

    def frames(self) -> list[PlaywrightFrame]:
        return [PlaywrightFrame(f) for f in self._page.frames]

    async def click(self, selector: str, timeout_ms: int = 3000) -> bool:
        try:
            await self._page.click(selector, timeout=timeout_ms)
            return True
        except (PlaywrightTimeoutError, PlaywrightError) as e:
            logger.debug("Click on %s failed: %s", selector, e)
            return False

    async def wait_for_navigation(self, timeout_ms: int) -> None:
        try:
            await self._page.wait_for_load_state('domcontentloaded', timeout=timeout_ms)
        except PlaywrightTimeoutError:
            logger.debug("No navigation within %dms", timeout_ms)

    async def screenshot(self) -> bytes:
        return await self._page.screenshot(full_page=True, type='png')

    async def close(self) -> None:
        try:
            await self._page.close()
        except PlaywrightError as e:
            logger.debug("Page close failed: %s", e)


class BrowserSession:
    """Chromium instance plus the current context (identity)."""

    def __init__(self, config: ScrapeConfig | None = None):
        self.config = config or ScrapeConfig()
        self._proxies = itertools.cycle(self.config.proxy_urls) if self.config.proxy_urls else None
        self._playwright = None
        self._browser = None
        self._context = None
        self._rotate_lock = asyncio.Lock()
        self.rotations = 0

    async def __aenter__(self) -> BrowserSession:
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self.config.headless,
            args=BROWSER_ARGS,
        )
        await self._open_context()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _next_user_agent(self) -> str:
        if self.config.user_agent and not self.config.rotate_user_agent:
            return self.config.user_agent
        if self.config.user_agent and self.rotations == 0:
            return self.config.user_agent
        return random.choice(USER_AGENTS)

    async def _open_context(self) -> None:
        context_args = {
            'user_agent': self._next_user_agent(),
            'viewport': {'width': 1920, 'height': 1080},
            'locale': 'en-US',
        }
        if self._proxies is not None:
            proxy_url = next(self._proxies)
            context_args['proxy'] = _proxy_settings(proxy_url)
            logger.info("Using proxy %s", context_args['proxy']['server'])

        self._context = await self._browser.new_context(**context_args)
        if self.config.block_resources:
            await self._context.route('**/*', self._route_filter)

    async def _route_filter(self, route) -> None:
        if should_block(route.request.url):
            await route.abort()
        else:
            await route.continue_()

    async def new_page(self) -> PlaywrightChannelPage:
        page = await self._context.new_page()
        if self.config.stealth:
            await Stealth().apply_stealth_async(page)
        return PlaywrightChannelPage(page)

    async def rotate_session(self) -> None:
        """Retire the current identity: new context, next proxy, new user agent."""
        async with self._rotate_lock:
            old = self._context
            self.rotations += 1
            await self._open_context()
            logger.warning("Session rotated (%d so far)", self.rotations)
            if old is not None:
                try:
                    await old.close()
                except PlaywrightError as e:
                    logger.debug("Closing retired context failed: %s", e)

    async def close(self) -> None:
        if self._context is not None:
            await self._context.close()
            self._context = None
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
