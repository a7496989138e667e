#!/usr/bin/env python3
"""
Publish a fake camera to vdo.ninja from a headless browser, probe the view
link once from a second tab, then keep the publisher alive so the stream can
be watched by hand.
"""
import argparse
import asyncio
import logging
import os
import sys

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from browser_session import PUBLISHER_PERMISSIONS, launch_chromium, navigate, start_publisher
from liveness import evaluate_verdict, has_tracks, has_inbound_bytes, outbound_bytes, sample_pair
from media_probe import collect_snapshot, install_peer_collector
from vdo_config import ensure_query, env_flag
from vdo_errors import NavigationError, VdoCheckError
from vdo_report import configure_logging, host_metrics, now_iso, printc, printerr, printout, write_report

logger = logging.getLogger(__name__)

DEFAULT_PUSH_URL = "https://vdo.ninja/?push=Alsosuitbc&password=somepassword"
DEFAULT_VIEW_URL = "https://vdo.ninja/?view=Alsosuitbc&password=somepassword"


def prepare_urls(push_url, view_url):
    """Force autostart/webcam on the publisher and cleanoutput on the viewer unless already set"""
    push_url = ensure_query(ensure_query(push_url, "autostart", "1"), "webcam", "1")
    view_url = ensure_query(view_url, "cleanoutput", "1")
    return push_url, view_url


async def run(args):
    push_url, view_url = prepare_urls(args.push_url, args.view_url)
    printout(f"Publishing: {push_url}")
    printout(f"Viewing:    {view_url}")

    async with async_playwright() as p:
        browser = await launch_chromium(p, headless=not args.headed)
        try:
            context = await browser.new_context(permissions=list(PUBLISHER_PERMISSIONS))
            await install_peer_collector(context)

            publish_page = await context.new_page()
            click = await start_publisher(publish_page, push_url, args.startup_wait_ms, 5000)
            await publish_page.wait_for_timeout(4000)
            publisher_snapshot = await collect_snapshot(publish_page)

            viewer_page = await context.new_page()
            result = await navigate(viewer_page, view_url)
            if not result.ok:
                raise NavigationError(view_url, result.error)
            await viewer_page.wait_for_timeout(args.view_probe_wait_ms)
            viewer_sample1, viewer_sample2 = await sample_pair(viewer_page, args.sample_gap_ms)
            verdict = evaluate_verdict(viewer_sample1, viewer_sample2)

            report = {
                'startedAt': now_iso(),
                'pushUrl': push_url,
                'viewUrl': view_url,
                'shareCameraClick': click.to_dict(),
                'publisherSnapshot': publisher_snapshot.to_dict(),
                'publisherOutboundBytes': outbound_bytes(publisher_snapshot),
                'viewerSample1': viewer_sample1.to_dict(),
                'viewerSample2': viewer_sample2.to_dict(),
                'playbackAdvanced': verdict.playback_advanced,
                'hasInboundBytes': has_inbound_bytes(viewer_sample2),
                'hasTracks': has_tracks(viewer_sample2),
                'likelyConnected': verdict.media_active,
                'keepAliveMs': args.duration_ms,
                'host': host_metrics(),
            }
            write_report(report, args.output)

            await viewer_page.close()
            if verdict.media_active:
                printc("Viewer received media; keeping the publisher alive", "0F0")
            else:
                printc("Viewer did not see media yet; keeping the publisher alive anyway", "FF0")
            await publish_page.wait_for_timeout(args.duration_ms)

            await context.close()
        finally:
            await browser.close()
    return 0


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument('push_url', nargs='?', default=DEFAULT_PUSH_URL, help='vdo.ninja push URL')
    parser.add_argument('view_url', nargs='?', default=DEFAULT_VIEW_URL, help='vdo.ninja view URL')
    parser.add_argument('--duration-ms', type=int, default=int(os.environ.get("PUBLISH_DURATION_MS") or 15 * 60 * 1000), help='How long to keep publishing after the probe')
    parser.add_argument('--startup-wait-ms', type=int, default=int(os.environ.get("PUBLISH_STARTUP_WAIT_MS") or 20000), help='Wait after opening the push URL')
    parser.add_argument('--view-probe-wait-ms', type=int, default=int(os.environ.get("VIEW_PROBE_WAIT_MS") or 25000), help='Wait after opening the view URL before sampling')
    parser.add_argument('--sample-gap-ms', type=int, default=7000, help='Gap between the two viewer samples')
    parser.add_argument('--output', type=str, default='playwright-vdo-publish-session.json', help='JSON report path')
    parser.add_argument('--headed', action='store_true', default=os.environ.get("HEADLESS") == "0", help='Show the browser window')
    parser.add_argument('--debug', action='store_true', default=env_flag("VDO_DEBUG"), help='Verbose logging')
    args = parser.parse_args()

    configure_logging(args.debug)
    try:
        return asyncio.run(run(args))
    except (VdoCheckError, PlaywrightError) as e:
        logger.error(f"Publish session failed: {e}")
        printerr(str(e))
        return 1
    except KeyboardInterrupt:
        printc("Publish session stopped", "FF0")
        return 0


if __name__ == "__main__":
    sys.exit(main())
