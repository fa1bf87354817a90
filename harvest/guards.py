"""
Page hygiene run before any field is read: CAPTCHA detection, consent
interstitials, upsell dialogs, content readiness, and error snapshots.
"""

from __future__ import annotations

import asyncio
import logging
import re
import uuid

from .config import CONSENT_MARKERS, CSS_SELECTORS, ScrapeConfig
from .errors import CaptchaDetectedError, ConsentRequiredError


logger = logging.getLogger(__name__)

CAPTCHA_FRAME_PREFIX = 'a-'


async def check_for_captcha(page, config: ScrapeConfig) -> bool:
    """True when a challenge sub-frame shows the reCAPTCHA checkbox."""
    for frame in page.frames():
        if not (frame.name or '').startswith(CAPTCHA_FRAME_PREFIX):
            continue
        try:
            if await frame.has_selector(CSS_SELECTORS['captcha_checkbox'], config.captcha_check_ms):
                return True
        except Exception as e:
            logger.debug("Captcha frame probe failed: %s", e)
    return False


def _on_consent_url(url: str | None) -> bool:
    url = (url or '').lower()
    return 'consent' in url or any(marker in url for marker in CONSENT_MARKERS)


async def handle_consent(page, config: ScrapeConfig) -> bool:
    """
    Click through a consent interstitial if one is showing.

    Returns True when an interstitial was found and cleared, False when none
    was present. Raises ConsentRequiredError when it could not be cleared.
    """
    if _on_consent_url(page.url):
        logger.debug("Handling consent page at %s", page.url)
        clicked = await page.click(CSS_SELECTORS['consent_button'], config.element_wait_ms)
        if clicked:
            await page.wait_for_navigation(config.navigation_timeout_ms)
        if not clicked or _on_consent_url(page.url):
            raise ConsentRequiredError(f"Consent interstitial not cleared at {page.url}")
        return True

    dialog = await page.query_selector(CSS_SELECTORS['consent_dialog'], None, config.element_wait_ms // 3)
    if dialog is None:
        return False
    logger.debug("Dismissing consent dialog")
    if not await page.click(CSS_SELECTORS['consent_reject'], config.element_wait_ms):
        raise ConsentRequiredError("Consent dialog present but could not be dismissed")
    return True


async def dismiss_upsell_dialog(page, config: ScrapeConfig) -> bool:
    if await page.query_selector(CSS_SELECTORS['upsell_dialog'], None, 500) is None:
        return False
    clicked = await page.click(CSS_SELECTORS['upsell_dismiss'], config.element_wait_ms)
    if clicked:
        logger.debug("Dismissed upsell dialog")
    return clicked


async def wait_for_content(page, config: ScrapeConfig) -> bool:
    """Race the key selectors; a miss is logged, never raised."""
    selectors = [
        CSS_SELECTORS['channel_name'],
        CSS_SELECTORS['about_section'],
        CSS_SELECTORS['about_panel'],
        CSS_SELECTORS['content_root'],
    ]
    tasks = [
        asyncio.ensure_future(page.query_selector(s, None, config.content_wait_ms))
        for s in selectors
    ]
    found = False
    try:
        for next_done in asyncio.as_completed(tasks):
            try:
                if await next_done is not None:
                    found = True
                    break
            except Exception as e:
                logger.debug("Content probe failed: %s", e)
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    if not found:
        logger.warning("Timeout waiting for content to load")
    elif config.settle_ms:
        await asyncio.sleep(config.settle_ms / 1000)
    return found


async def prepare_page(page, config: ScrapeConfig) -> None:
    """CAPTCHA check, consent, upsell, then wait for content."""
    if await check_for_captcha(page, config):
        raise CaptchaDetectedError()
    await handle_consent(page, config)
    await dismiss_upsell_dialog(page, config)
    await wait_for_content(page, config)


def snapshot_key(identifier: str) -> str:
    """ERROR-<sanitized identifier>-<uuid>, safe as a file name."""
    sanitized = re.sub(r'[^A-Za-z0-9_-]+', '_', identifier or 'unknown').strip('_')[:80]
    return f"ERROR-{sanitized or 'unknown'}-{uuid.uuid4().hex}"


async def save_snapshot(page, key: str, store) -> bool:
    """Write a full-page PNG through the snapshot store. Never raises."""
    if store is None:
        return False
    try:
        png = await page.screenshot()
        store.save(key, png)
        logger.info("Saved error snapshot %s", key)
        return True
    except Exception as e:
        logger.warning("Failed to save error snapshot %s: %s", key, e)
        return False
