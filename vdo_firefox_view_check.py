#!/usr/bin/env python3
"""
Cross-browser check: publish from Chromium with a fake camera and view the
stream in Firefox. Fails unless the Firefox viewer becomes live within the
poll ceiling and playback advances between two samples.
"""
import argparse
import asyncio
import logging
import os
import sys

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from browser_session import launch_chromium, launch_firefox, open_page, open_viewer, start_publisher
from liveness import PollSettings, evaluate_verdict, wait_for_liveness
from media_probe import collect_snapshot
from vdo_config import build_scenario_config, env_flag
from vdo_errors import VdoCheckError, VerdictFailed
from vdo_report import configure_logging, host_metrics, printc, printerr, printout, write_report

logger = logging.getLogger(__name__)


async def run(args):
    scenario = build_scenario_config()
    settings = PollSettings.from_env(timeout_ms=args.timeout_ms, intervals_ms=(args.interval_ms,))
    printout(f"Push URL (Chromium): {scenario.push_url}")
    printout(f"View URL (Firefox):  {scenario.view_url}")

    async with async_playwright() as p:
        publisher_browser = await launch_chromium(p, headless=not args.headed)
        viewer_browser = await launch_firefox(p, headless=not args.headed)
        try:
            publisher_context, publisher = await open_page(publisher_browser, publisher=True)
            viewer_context, viewer = await open_page(viewer_browser)

            await start_publisher(publisher, scenario.push_url)
            await open_viewer(viewer, scenario.view_url)

            (viewer_sample1,) = await wait_for_liveness(viewer, settings, label="Firefox viewer")
            await viewer.wait_for_timeout(settings.sample_gap_ms)
            viewer_sample2 = await collect_snapshot(viewer)
            verdict = evaluate_verdict(viewer_sample1, viewer_sample2)

            result = {
                'scenario': scenario.to_dict(),
                'viewerSample1': viewer_sample1.to_dict(),
                'viewerSample2': viewer_sample2.to_dict(),
                'hasTracks': verdict.has_tracks,
                'hasMetadata': verdict.has_metadata,
                'inboundBytes': verdict.inbound_bytes,
                'playbackAdvanced': verdict.playback_advanced,
                'host': host_metrics(),
            }
            write_report(result, args.output)

            await viewer_context.close()
            await publisher_context.close()
        finally:
            await viewer_browser.close()
            await publisher_browser.close()

    failures = verdict.failures(settings)
    if failures:
        raise VerdictFailed("Firefox viewer", verdict, failures)
    printc("Firefox viewer is playing the Chromium publisher's stream", "0F0")
    return 0


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument('--timeout-ms', type=int, default=90000, help='Poll ceiling for the Firefox viewer')
    parser.add_argument('--interval-ms', type=int, default=2000, help='Fixed poll interval')
    parser.add_argument('--output', type=str, default='playwright-vdo-firefox-view-check.json', help='JSON report path')
    parser.add_argument('--headed', action='store_true', default=os.environ.get("HEADLESS") == "0", help='Show the browser windows')
    parser.add_argument('--debug', action='store_true', default=env_flag("VDO_DEBUG"), help='Verbose logging')
    args = parser.parse_args()

    configure_logging(args.debug)
    try:
        return asyncio.run(run(args))
    except (VdoCheckError, PlaywrightError) as e:
        logger.error(f"Firefox view check failed: {e}")
        printerr(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
