#!/usr/bin/env python3
"""
Run a list of vdo.ninja view URLs one after another and record, per URL,
whether media looks active: two samples SAMPLE_GAP_MS apart plus a
screenshot. A navigation failure is recorded and the next URL is tried.
"""
import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from urllib.parse import urlsplit

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from browser_session import launch_chromium, navigate, nudge_page, open_page, take_screenshot
from liveness import evaluate_verdict, sample_pair
from vdo_config import env_flag, sanitize_for_file
from vdo_errors import VdoCheckError
from vdo_report import configure_logging, host_metrics, now_iso, printc, printerr, printout, printwarn, write_report

logger = logging.getLogger(__name__)

DEFAULT_TARGETS = [
    "https://vdo.ninja/?view=Alsosuitbc&pasword=somepassword",
    "https://vdo.ninja/?view=Alsosuitbc&password=somepassword",
    "https://vdo.ninja/?view=CoatdevdavER",
]


async def run_single_url(browser, url, index, per_url_wait_ms, sample_gap_ms, output_dir):
    context, page = await open_page(browser)

    result = {
        'inputUrl': url,
        'gotoOk': False,
        'gotoError': "",
        'sample1': None,
        'sample2': None,
        'playbackAdvanced': False,
        'hasInboundBytes': False,
        'hasVideoMetadata': False,
        'hasAudioTrack': False,
        'hasVideoTrack': False,
        'verdictMediaActive': False,
        'screenshotPath': "",
    }

    navigation = await navigate(page, url)
    result['gotoOk'] = navigation.ok
    result['gotoError'] = navigation.error

    half_wait = max(2000, per_url_wait_ms // 2)
    try:
        await page.wait_for_timeout(half_wait)
        await nudge_page(page)
        await page.wait_for_timeout(half_wait)

        sample1, sample2 = await sample_pair(page, sample_gap_ms)
        verdict = evaluate_verdict(sample1, sample2)
        result['sample1'] = sample1.to_dict()
        result['sample2'] = sample2.to_dict()
        result['playbackAdvanced'] = verdict.playback_advanced
        result['hasInboundBytes'] = verdict.has_inbound_bytes
        result['hasVideoMetadata'] = verdict.has_metadata
        result['hasAudioTrack'] = verdict.has_audio_track
        result['hasVideoTrack'] = verdict.has_video_track
        result['verdictMediaActive'] = verdict.media_active
    except PlaywrightError as e:
        logger.warning(f"Sampling {url} failed: {e}")
        result['sampleError'] = str(e)

    query = urlsplit(url).query
    search = f"?{query}" if query else ""
    shot_path = Path(output_dir) / f"{sanitize_for_file(search, index)}.png"
    error = await take_screenshot(page, shot_path)
    if error is None:
        result['screenshotPath'] = str(shot_path)
    else:
        result['screenshotError'] = error

    await context.close()
    return result


async def run(args):
    targets = args.urls or DEFAULT_TARGETS
    Path(args.output_dir).mkdir(parents=True, exist_ok=True)

    started_at = now_iso()
    results = []
    async with async_playwright() as p:
        browser = await launch_chromium(p, headless=not args.headed, fake_media=False)
        try:
            for i, url in enumerate(targets, start=1):
                printout(f"[{i}/{len(targets)}] {url}")
                single = await run_single_url(
                    browser, url, i, args.per_url_wait_ms, args.sample_gap_ms, args.output_dir
                )
                if single['verdictMediaActive']:
                    printc("    media active", "0F0")
                else:
                    printwarn("    no active media")
                results.append(single)
        finally:
            await browser.close()

    summary = {
        'startedAt': started_at,
        'finishedAt': now_iso(),
        'total': len(results),
        'mediaActiveCount': sum(1 for r in results if r['verdictMediaActive']),
        'anyMediaActive': any(r['verdictMediaActive'] for r in results),
    }
    write_report({'summary': summary, 'results': results, 'host': host_metrics()}, args.output)
    return 0 if summary['anyMediaActive'] else 1


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument('urls', nargs='*', help='View URLs to check; defaults to a built-in list')
    parser.add_argument('--per-url-wait-ms', type=int, default=int(os.environ.get("PER_URL_WAIT_MS") or 18000), help='Total wait per URL before sampling, split around a page click')
    parser.add_argument('--sample-gap-ms', type=int, default=int(os.environ.get("SAMPLE_GAP_MS") or 7000), help='Gap between the two samples')
    parser.add_argument('--output-dir', type=str, default=os.path.join("test-results", "playwright-vdo-matrix"), help='Directory for screenshots')
    parser.add_argument('--output', type=str, default='playwright-vdo-matrix-check.json', help='JSON report path')
    parser.add_argument('--headed', action='store_true', default=os.environ.get("HEADLESS") == "0", help='Show the browser window')
    parser.add_argument('--debug', action='store_true', default=env_flag("VDO_DEBUG"), help='Verbose logging')
    args = parser.parse_args()

    configure_logging(args.debug)
    try:
        return asyncio.run(run(args))
    except (VdoCheckError, PlaywrightError) as e:
        logger.error(f"Matrix check failed: {e}")
        printerr(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
