#!/usr/bin/env python3
"""
Test the LivenessScenario state machine with replayed snapshots
"""
import os
import sys
from unittest.mock import AsyncMock, patch

import pytest

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from browser_session import ClickResult, NavigationResult
from conftest import make_sample
from liveness import PollSettings, ScenarioState
from vdo_config import build_scenario_config
from vdo_errors import LivenessTimeout, NavigationError, VerdictFailed
from vdo_scenario_check import LivenessScenario

LIVE = [
    make_sample(current_time=1.0, inbound_video=9000, inbound_audio=900),
    make_sample(current_time=1.2, inbound_video=12000, inbound_audio=1200),
    make_sample(current_time=8.0, inbound_video=60000, inbound_audio=6000),
]

FROZEN = [
    make_sample(current_time=1.0, inbound_video=9000),
    make_sample(current_time=1.0, inbound_video=9000),
    make_sample(current_time=1.0, inbound_video=9000),
]


@pytest.fixture
def config():
    return build_scenario_config({'VDO_STREAM_ID': 'TestStream123'})


@pytest.fixture
def patched_publisher():
    with patch('vdo_scenario_check.start_publisher', new=AsyncMock(return_value=ClickResult(True, True))) as start, \
         patch('vdo_scenario_check.open_viewer', new=AsyncMock()) as viewer:
        yield start, viewer


class TestLivenessScenario:

    @pytest.mark.asyncio
    async def test_happy_path_transitions(self, config, fake_page, patched_publisher):
        """idle -> navigated -> ui-interacted -> polling -> live"""
        publisher = fake_page([make_sample()])
        viewer = fake_page(LIVE)
        scenario = LivenessScenario(config, PollSettings(), publisher, [viewer])

        await scenario.start(startup_wait_ms=0, settle_ms=0)
        await scenario.poll()
        round_report = await scenario.verify("initial")

        assert scenario.transitions == ["idle", "navigated", "ui-interacted", "polling-for-liveness", "live"]
        assert scenario.state is ScenarioState.LIVE
        assert round_report['viewers']['viewer']['verdict']['playbackAdvanced']
        assert viewer.waits == [7000]

        start, open_viewer = patched_publisher
        start.assert_awaited_once_with(publisher, config.push_url, 0, 0)
        open_viewer.assert_awaited_once_with(viewer, config.view_url)

    @pytest.mark.asyncio
    async def test_no_ui_interaction_when_autostarted(self, config, fake_page):
        with patch('vdo_scenario_check.start_publisher', new=AsyncMock(return_value=ClickResult(False, False))), \
             patch('vdo_scenario_check.open_viewer', new=AsyncMock()):
            scenario = LivenessScenario(config, PollSettings(), fake_page([make_sample()]), [fake_page(LIVE)])
            await scenario.start()
        assert scenario.transitions == ["idle", "navigated"]

    @pytest.mark.asyncio
    async def test_timeout_moves_to_timed_out(self, config, fake_page, patched_publisher):
        scenario = LivenessScenario(config, PollSettings(), fake_page([make_sample()]), [fake_page(FROZEN)])
        await scenario.start()
        with patch('vdo_scenario_check.wait_for_liveness',
                   new=AsyncMock(side_effect=LivenessTimeout("viewer", 70000))):
            with pytest.raises(LivenessTimeout):
                await scenario.poll()
        assert scenario.state is ScenarioState.TIMED_OUT
        assert scenario.report()['state'] == "timed-out"

    @pytest.mark.asyncio
    async def test_frozen_playback_fails_verdict(self, config, fake_page, patched_publisher):
        scenario = LivenessScenario(config, PollSettings(), fake_page([make_sample()]), [fake_page(FROZEN)])
        await scenario.start()
        await scenario.poll()
        with pytest.raises(VerdictFailed) as exc_info:
            await scenario.verify()
        assert exc_info.value.label == "viewer"
        assert "playback did not advance" in exc_info.value.failures
        assert len(scenario.rounds) == 1

    @pytest.mark.asyncio
    async def test_multiple_viewers_named_and_checked(self, config, fake_page, patched_publisher):
        viewers = [fake_page(LIVE), fake_page(FROZEN)]
        scenario = LivenessScenario(config, PollSettings(), fake_page([make_sample()]), viewers)
        await scenario.start()
        await scenario.poll()
        with pytest.raises(VerdictFailed) as exc_info:
            await scenario.verify()
        assert exc_info.value.label == "viewerB"
        assert set(scenario.rounds[0]['viewers']) == {"viewerA", "viewerB"}

    @pytest.mark.asyncio
    async def test_reload_then_live_again(self, config, fake_page, patched_publisher):
        viewer = fake_page(LIVE + LIVE)
        scenario = LivenessScenario(config, PollSettings(), fake_page([make_sample()]), [viewer])
        await scenario.start()
        await scenario.poll()
        await scenario.verify("initial")

        with patch('vdo_scenario_check.reload', new=AsyncMock(return_value=NavigationResult(ok=True))), \
             patch('vdo_scenario_check.nudge_page', new=AsyncMock()) as nudge:
            await scenario.reload_viewers()
            nudge.assert_awaited_once_with(viewer)
        await scenario.poll()
        await scenario.verify("after-reload")

        assert scenario.transitions[-3:] == ["reloaded", "polling-for-liveness", "live"]
        assert [r['name'] for r in scenario.report()['rounds']] == ["initial", "after-reload"]

    @pytest.mark.asyncio
    async def test_reload_failure_raises(self, config, fake_page, patched_publisher):
        scenario = LivenessScenario(config, PollSettings(), fake_page([make_sample()]), [fake_page(LIVE)])
        failed = NavigationResult(ok=False, error="Timeout 60000ms exceeded")
        with patch('vdo_scenario_check.reload', new=AsyncMock(return_value=failed)):
            with pytest.raises(NavigationError):
                await scenario.reload_viewers()
        assert scenario.state is ScenarioState.IDLE

    def test_report_carries_urls(self, config, fake_page):
        scenario = LivenessScenario(config, PollSettings(), fake_page([make_sample()]), [fake_page(LIVE)])
        report = scenario.report()
        assert report['pushUrl'] == config.push_url
        assert report['viewUrl'] == config.view_url
        assert report['shareCameraClick'] is None
        assert report['transitions'] == ["idle"]
