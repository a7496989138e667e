#!/usr/bin/env python3
"""
End-to-end vdo.ninja check: one publisher with a fake camera, one or more
viewers, poll until every viewer is live, verify playback advances and
optionally reload the viewers and verify again.

URLs come from the VDO_* environment variables (see vdo_config.py).
"""
import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from browser_session import launch_chromium, nudge_page, open_page, open_viewer, reload, start_publisher, take_screenshot
from liveness import (
    PollSettings,
    ScenarioState,
    evaluate_verdict,
    outbound_bytes,
    wait_for_liveness,
)
from media_probe import collect_snapshot
from vdo_config import build_scenario_config, env_flag
from vdo_errors import LivenessTimeout, NavigationError, VdoCheckError, VerdictFailed
from vdo_report import configure_logging, host_metrics, now_iso, printc, printerr, printout, write_report

logger = logging.getLogger(__name__)


class LivenessScenario:
    """
    Drives a publisher page and its viewer pages through

        idle -> navigated -> ui-interacted -> polling -> live | timed-out

    with an optional reloaded -> polling round afterwards.
    """

    def __init__(self, config, settings, publisher, viewers, label="viewer"):
        self.config = config
        self.settings = settings
        self.publisher = publisher
        self.viewers = list(viewers)
        self.label = label
        self.state = ScenarioState.IDLE
        self.transitions = [ScenarioState.IDLE.value]
        self.share_camera_click = None
        self.rounds = []

    def _transition(self, state):
        logger.info(f"{self.label}: {self.state.value} -> {state.value}")
        self.state = state
        self.transitions.append(state.value)

    def viewer_name(self, i):
        if len(self.viewers) == 1:
            return self.label
        return f"{self.label}{chr(ord('A') + i)}"

    async def start(self, startup_wait_ms=12000, settle_ms=7000):
        self.share_camera_click = await start_publisher(
            self.publisher, self.config.push_url, startup_wait_ms, settle_ms
        )
        for viewer in self.viewers:
            await open_viewer(viewer, self.config.view_url)
        self._transition(ScenarioState.NAVIGATED)
        if self.share_camera_click.attempted:
            self._transition(ScenarioState.UI_INTERACTED)

    async def poll(self):
        self._transition(ScenarioState.POLLING)
        try:
            snapshots = await wait_for_liveness(self.viewers, self.settings, label=self.label)
        except LivenessTimeout:
            self._transition(ScenarioState.TIMED_OUT)
            raise
        self._transition(ScenarioState.LIVE)
        return snapshots

    async def verify(self, name="initial"):
        """
        Sample every viewer twice sample_gap_ms apart and check the verdict

        Raises VerdictFailed naming the first viewer whose verdict fails.
        """
        befores = [await collect_snapshot(viewer) for viewer in self.viewers]
        await self.viewers[0].wait_for_timeout(self.settings.sample_gap_ms)
        afters = [await collect_snapshot(viewer) for viewer in self.viewers]

        round_report = {'name': name, 'viewers': {}}
        self.rounds.append(round_report)
        failed = None
        for i, (before, after) in enumerate(zip(befores, afters)):
            verdict = evaluate_verdict(before, after)
            round_report['viewers'][self.viewer_name(i)] = {
                'before': before.to_dict(),
                'after': after.to_dict(),
                'verdict': verdict.to_dict(),
            }
            failures = verdict.failures(self.settings)
            if failures and failed is None:
                failed = VerdictFailed(self.viewer_name(i), verdict, failures)
        if failed is not None:
            raise failed
        return round_report

    async def reload_viewers(self):
        for viewer in self.viewers:
            result = await reload(viewer)
            if not result.ok:
                raise NavigationError(viewer.url, result.error)
            await nudge_page(viewer)
        self._transition(ScenarioState.RELOADED)

    async def publisher_snapshot(self):
        return await collect_snapshot(self.publisher)

    def report(self):
        payload = dict(self.config.to_dict())
        payload.update({
            'state': self.state.value,
            'transitions': list(self.transitions),
            'shareCameraClick': self.share_camera_click.to_dict() if self.share_camera_click else None,
            'rounds': list(self.rounds),
            'generatedAt': now_iso(),
        })
        return payload


async def run(args):
    config = build_scenario_config()
    settings = PollSettings.from_env(require_audio=args.require_audio or None, timeout_ms=args.timeout_ms)
    printout(f"Push URL: {config.push_url}")
    printout(f"View URL: {config.view_url}")

    output = Path(args.output)
    async with async_playwright() as p:
        browser = await launch_chromium(p, headless=not args.headed)
        contexts = []
        try:
            publisher_context, publisher = await open_page(browser, publisher=True)
            contexts.append(publisher_context)
            viewers = []
            for _ in range(args.viewers):
                viewer_context, viewer = await open_page(browser)
                contexts.append(viewer_context)
                viewers.append(viewer)

            scenario = LivenessScenario(config, settings, publisher, viewers)
            exit_code = 0
            try:
                await scenario.start(args.startup_wait_ms, args.settle_ms)
                await scenario.poll()
                await scenario.verify("initial")
                if args.reload:
                    await scenario.reload_viewers()
                    await scenario.poll()
                    await scenario.verify("after-reload")
                publisher_after = await scenario.publisher_snapshot()
                if not publisher_after.peer_stats:
                    raise VerdictFailed("publisher", None, ["publisher has no peer connections"])
            except (LivenessTimeout, VerdictFailed) as e:
                logger.error(str(e))
                printerr(str(e))
                exit_code = 1
                publisher_after = await scenario.publisher_snapshot()

            payload = scenario.report()
            payload['publisherAfter'] = publisher_after.to_dict()
            payload['outboundAtPublisher'] = outbound_bytes(publisher_after)
            if scenario.rounds:
                last = scenario.rounds[-1]['viewers']
                payload['inboundAtViewers'] = {
                    name: data['verdict']['inboundBytes'] for name, data in last.items()
                }
            payload['host'] = host_metrics()

            if args.screenshots:
                await take_screenshot(publisher, output.parent / "publisher.png")
                for i, viewer in enumerate(viewers):
                    await take_screenshot(viewer, output.parent / f"{scenario.viewer_name(i)}.png")
        finally:
            for context in contexts:
                await context.close()
            await browser.close()

    write_report(payload, output)
    if exit_code == 0:
        printc("All viewers are live", "0F0")
    return exit_code


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument('--viewers', type=int, default=1, help='Number of isolated viewer contexts')
    parser.add_argument('--reload', action='store_true', help='Reload the viewers once they are live and check again')
    parser.add_argument('--require-audio', action='store_true', help='Also require inbound audio bytes above the audio floor')
    parser.add_argument('--timeout-ms', type=int, default=None, help='Poll ceiling; overrides VDO_POLL_TIMEOUT_MS')
    parser.add_argument('--startup-wait-ms', type=int, default=12000, help='Wait after opening the push URL')
    parser.add_argument('--settle-ms', type=int, default=7000, help='Wait after the publisher UI nudge')
    parser.add_argument('--output', type=str, default=os.path.join("test-results", "vdo-scenario", "report.json"), help='JSON report path')
    parser.add_argument('--screenshots', action='store_true', help='Save publisher and viewer screenshots next to the report')
    parser.add_argument('--headed', action='store_true', default=os.environ.get("HEADLESS") == "0", help='Show the browser window')
    parser.add_argument('--debug', action='store_true', default=env_flag("VDO_DEBUG"), help='Verbose logging')
    args = parser.parse_args()

    if args.viewers < 1:
        parser.error("--viewers must be at least 1")

    configure_logging(args.debug)
    try:
        return asyncio.run(run(args))
    except (VdoCheckError, PlaywrightError) as e:
        logger.error(f"Scenario failed: {e}")
        printerr(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
