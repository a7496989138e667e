#!/usr/bin/env python3
"""
Playwright helpers shared by the vdo.ninja runners
Browser launch flags, navigation, best-effort UI nudges and screenshots
"""
import logging
import re
from dataclasses import dataclass
from typing import Optional

from playwright.async_api import Error as PlaywrightError

from media_probe import install_peer_collector
from vdo_errors import NavigationError

logger = logging.getLogger(__name__)

AUTOPLAY_ARGS = ["--autoplay-policy=no-user-gesture-required"]

FAKE_MEDIA_ARGS = AUTOPLAY_ARGS + [
    "--use-fake-ui-for-media-stream",
    "--use-fake-device-for-media-stream",
    "--allow-http-screen-capture",
]

FIREFOX_FAKE_MEDIA_PREFS = {
    "media.autoplay.default": 0,
    "media.navigator.permission.disabled": True,
    "media.navigator.streams.fake": True,
}

PUBLISHER_PERMISSIONS = ["camera", "microphone"]

SHARE_CAMERA_PATTERN = re.compile(r"share your camera", re.IGNORECASE)

DEFAULT_VIEWPORT = {"width": 1280, "height": 720}
NAVIGATION_TIMEOUT_MS = 60000


@dataclass(frozen=True)
class NavigationResult:
    ok: bool
    error: str = ""


@dataclass(frozen=True)
class ClickResult:
    """Outcome of a click that is allowed to fail"""
    attempted: bool
    succeeded: bool
    error: Optional[str] = None

    def to_dict(self):
        return {'attempted': self.attempted, 'succeeded': self.succeeded, 'error': self.error}


async def launch_chromium(playwright, headless=True, fake_media=True):
    args = FAKE_MEDIA_ARGS if fake_media else AUTOPLAY_ARGS
    logger.info(f"Launching Chromium (headless={headless})")
    return await playwright.chromium.launch(headless=headless, args=list(args))


async def launch_firefox(playwright, headless=True):
    logger.info(f"Launching Firefox (headless={headless})")
    return await playwright.firefox.launch(headless=headless, firefox_user_prefs=dict(FIREFOX_FAKE_MEDIA_PREFS))


async def open_page(browser, publisher=False, collect_peers=True):
    """
    New isolated context with a single page

    Publisher contexts are granted camera and microphone. The peer
    collector is registered on the page before anything navigates.
    """
    if publisher:
        context = await browser.new_context(permissions=list(PUBLISHER_PERMISSIONS))
    else:
        context = await browser.new_context()
    page = await context.new_page()
    if collect_peers:
        await install_peer_collector(page)
    return context, page


async def navigate(page, url, timeout_ms=NAVIGATION_TIMEOUT_MS) -> NavigationResult:
    try:
        await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
    except PlaywrightError as e:
        logger.warning(f"Navigation to {url} failed: {e}")
        return NavigationResult(ok=False, error=str(e))
    logger.info(f"Navigated to {url}")
    return NavigationResult(ok=True)


async def reload(page, timeout_ms=NAVIGATION_TIMEOUT_MS) -> NavigationResult:
    try:
        await page.reload(wait_until="domcontentloaded", timeout=timeout_ms)
    except PlaywrightError as e:
        logger.warning(f"Reload of {page.url} failed: {e}")
        return NavigationResult(ok=False, error=str(e))
    logger.info(f"Reloaded {page.url}")
    return NavigationResult(ok=True)


async def nudge_page(page):
    """Click the middle of the viewport to satisfy autoplay/user-gesture gates"""
    viewport = page.viewport_size or DEFAULT_VIEWPORT
    await page.mouse.click(viewport["width"] // 2, viewport["height"] // 2)


async def _is_visible(locator) -> bool:
    try:
        return await locator.is_visible()
    except PlaywrightError:
        return False


async def click_share_camera(page, timeout_ms=3000) -> ClickResult:
    """
    Click vdo.ninja's "share your camera" button if it is showing

    Autostart usually makes the button unnecessary, so a missing or
    unclickable button is reported rather than raised.
    """
    by_role = page.get_by_role("button", name=SHARE_CAMERA_PATTERN)
    by_text = page.get_by_text(SHARE_CAMERA_PATTERN).first

    if await _is_visible(by_role):
        target = by_role
    elif await _is_visible(by_text):
        target = by_text
    else:
        logger.debug("No 'share your camera' button visible; assuming autostart")
        return ClickResult(attempted=False, succeeded=False)

    try:
        await target.click(timeout=timeout_ms)
    except PlaywrightError as e:
        logger.warning(f"Could not click 'share your camera': {e}")
        return ClickResult(attempted=True, succeeded=False, error=str(e))
    logger.info("Clicked 'share your camera'")
    return ClickResult(attempted=True, succeeded=True)


async def take_screenshot(page, path) -> Optional[str]:
    """Full-page screenshot; returns the error text instead of raising"""
    try:
        await page.screenshot(path=str(path), full_page=True)
    except PlaywrightError as e:
        logger.warning(f"Screenshot to {path} failed: {e}")
        return str(e)
    logger.info(f"Saved screenshot {path}")
    return None


async def start_publisher(page, push_url, startup_wait_ms=12000, settle_ms=7000) -> ClickResult:
    """
    Open the push URL and get the camera publishing

    Raises NavigationError when the publisher page cannot be loaded.
    """
    result = await navigate(page, push_url)
    if not result.ok:
        raise NavigationError(push_url, result.error)
    await page.wait_for_timeout(startup_wait_ms)

    click = await click_share_camera(page)
    await nudge_page(page)
    await page.wait_for_timeout(settle_ms)
    return click


async def open_viewer(page, view_url):
    result = await navigate(page, view_url)
    if not result.ok:
        raise NavigationError(view_url, result.error)
    await nudge_page(page)
