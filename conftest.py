"""
Shared pytest fixtures: a fake Playwright page that replays snapshot dicts
and a clock that only moves when the page waits.
"""
import pytest


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def advance_ms(self, ms):
        self.now += ms / 1000.0


class FakePage:
    """Replays evaluate() results in order; the last one repeats"""

    def __init__(self, samples, clock=None, url="https://vdo.ninja/?view=TestStream123"):
        self.samples = list(samples)
        self.clock = clock or FakeClock()
        self.url = url
        self.evaluate_calls = 0
        self.waits = []

    async def evaluate(self, script):
        index = min(self.evaluate_calls, len(self.samples) - 1)
        self.evaluate_calls += 1
        return self.samples[index]

    async def wait_for_timeout(self, ms):
        self.waits.append(ms)
        self.clock.advance_ms(ms)


def make_sample(current_time=0.0, width=640, height=480, audio_tracks=1, video_tracks=1,
                inbound_video=0, inbound_audio=0, timestamp=0, videos=None, pc_stats=None):
    """Dict in the shape SNAPSHOT_SCRIPT returns"""
    if videos is None:
        videos = [{
            'index': 0,
            'readyState': 4,
            'paused': False,
            'currentTime': current_time,
            'videoWidth': width,
            'videoHeight': height,
            'audioTracks': audio_tracks,
            'videoTracks': video_tracks,
        }]
    if pc_stats is None:
        pc_stats = [{
            'state': 'connected',
            'inboundVideoBytes': inbound_video,
            'inboundAudioBytes': inbound_audio,
            'outboundVideoBytes': 0,
            'outboundAudioBytes': 0,
            'framesDecoded': 0,
        }]
    return {
        'url': 'https://vdo.ninja/?view=TestStream123',
        'title': 'VDO.Ninja',
        'textSample': '',
        'containsWaitingText': False,
        'videos': videos,
        'pcStats': pc_stats,
        'timestamp': timestamp,
    }


def pytest_configure(config):
    config.addinivalue_line("markers", "e2e: drives the live vdo.ninja site with real browsers")


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fake_page(fake_clock):
    def factory(samples, url="https://vdo.ninja/?view=TestStream123"):
        return FakePage(samples, fake_clock, url)
    return factory
