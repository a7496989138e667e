#!/usr/bin/env python3
"""
Open a single vdo.ninja view link, wait, nudge the page and report what the
viewer sees: video elements, tracks and inbound peer-connection bytes.
"""
import argparse
import asyncio
import logging
import os
import sys

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from browser_session import launch_chromium, navigate, nudge_page, open_page, take_screenshot
from liveness import PollSettings, has_metadata, has_tracks, inbound_bytes, is_ready
from media_probe import collect_snapshot
from vdo_config import env_flag
from vdo_errors import NavigationError, VdoCheckError
from vdo_report import configure_logging, host_metrics, now_iso, printerr, printwarn, write_report

logger = logging.getLogger(__name__)

DEFAULT_VIEW_URL = "https://vdo.ninja/?view=CoatdevdavER"


async def run(args):
    settings = PollSettings.from_env()
    async with async_playwright() as p:
        browser = await launch_chromium(p, headless=not args.headed, fake_media=False)
        try:
            context, page = await open_page(browser)
            result = await navigate(page, args.url)
            if not result.ok:
                raise NavigationError(args.url, result.error)

            await page.wait_for_timeout(args.settle_ms)
            await nudge_page(page)
            await page.wait_for_timeout(args.after_click_ms)

            snapshot = await collect_snapshot(page)
            report = {
                'startedAt': now_iso(),
                'inputUrl': args.url,
                'snapshot': snapshot.to_dict(),
                'hasTracks': has_tracks(snapshot),
                'hasMetadata': has_metadata(snapshot),
                'inboundBytes': inbound_bytes(snapshot),
                'ready': is_ready(snapshot, settings),
                'host': host_metrics(),
            }
            if args.screenshot:
                error = await take_screenshot(page, args.screenshot)
                report['screenshotPath'] = args.screenshot if error is None else ""
                if error:
                    report['screenshotError'] = error
            await context.close()
        finally:
            await browser.close()

    write_report(report, args.output)
    if snapshot.contains_waiting_text:
        printwarn("Page still shows 'Waiting for the stream'")
    if args.strict and not report['ready']:
        printerr("Viewer is not receiving live media")
        return 1
    return 0


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument('url', nargs='?', default=DEFAULT_VIEW_URL, help='vdo.ninja view URL to open')
    parser.add_argument('--settle-ms', type=int, default=25000, help='Wait after navigation before clicking the page')
    parser.add_argument('--after-click-ms', type=int, default=12000, help='Wait after the click before sampling')
    parser.add_argument('--screenshot', type=str, default='playwright-vdo-view-check.png', help='Screenshot path; empty to skip')
    parser.add_argument('--output', type=str, default='playwright-vdo-view-check.json', help='JSON report path')
    parser.add_argument('--strict', action='store_true', help='Exit non-zero unless the viewer is receiving live media')
    parser.add_argument('--headed', action='store_true', default=os.environ.get("HEADLESS") == "0", help='Show the browser window')
    parser.add_argument('--debug', action='store_true', default=env_flag("VDO_DEBUG"), help='Verbose logging')
    args = parser.parse_args()

    configure_logging(args.debug)
    try:
        return asyncio.run(run(args))
    except (VdoCheckError, PlaywrightError) as e:
        logger.error(f"View check failed: {e}")
        printerr(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
