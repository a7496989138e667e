#!/usr/bin/env python3
"""
Liveness verdicts for vdo.ninja viewers

The predicates here are pure functions of MediaSnapshot values. The poller
re-samples already loaded pages until they look live or the ceiling expires;
it never retries navigation.
"""
import logging
import math
import os
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from media_probe import MediaSnapshot, collect_snapshot
from vdo_config import env_flag
from vdo_errors import LivenessTimeout

logger = logging.getLogger(__name__)

PLAYBACK_ADVANCE_THRESHOLD = 0.4  # seconds; exclusive


class ScenarioState(Enum):
    IDLE = "idle"
    NAVIGATED = "navigated"
    UI_INTERACTED = "ui-interacted"
    POLLING = "polling-for-liveness"
    LIVE = "live"
    TIMED_OUT = "timed-out"
    RELOADED = "reloaded"


def has_tracks(snapshot: MediaSnapshot) -> bool:
    return any(v.video_tracks > 0 or v.audio_tracks > 0 for v in snapshot.videos)


def has_audio_track(snapshot: MediaSnapshot) -> bool:
    return any(v.audio_tracks > 0 for v in snapshot.videos)


def has_video_track(snapshot: MediaSnapshot) -> bool:
    return any(v.video_tracks > 0 for v in snapshot.videos)


def has_metadata(snapshot: MediaSnapshot) -> bool:
    return any(v.frame_width > 0 and v.frame_height > 0 for v in snapshot.videos)


def inbound_bytes(snapshot: MediaSnapshot) -> int:
    return sum((s.inbound_video_bytes or 0) + (s.inbound_audio_bytes or 0) for s in snapshot.peer_stats)


def inbound_audio_bytes(snapshot: MediaSnapshot) -> int:
    return sum(s.inbound_audio_bytes or 0 for s in snapshot.peer_stats)


def outbound_bytes(snapshot: MediaSnapshot) -> int:
    return sum((s.outbound_video_bytes or 0) + (s.outbound_audio_bytes or 0) for s in snapshot.peer_stats)


def has_inbound_bytes(snapshot: MediaSnapshot) -> bool:
    return any(
        (s.inbound_video_bytes or 0) > 0 or (s.inbound_audio_bytes or 0) > 0 or (s.frames_decoded or 0) > 0
        for s in snapshot.peer_stats
    )


def playback_advanced(before: MediaSnapshot, after: MediaSnapshot,
                      threshold: float = PLAYBACK_ADVANCE_THRESHOLD) -> bool:
    """
    True if any video present in both snapshots moved forward by more than threshold

    Videos are matched by positional index, so the comparison is only
    meaningful while the page keeps the same set and order of <video> elements.
    """
    previous = {v.index: v for v in before.videos}
    for video in after.videos:
        earlier = previous.get(video.index)
        if earlier is not None and video.current_time > earlier.current_time + threshold:
            return True
    return False


def media_active(before: MediaSnapshot, after: MediaSnapshot) -> bool:
    if playback_advanced(before, after):
        return True
    return inbound_bytes(after) > 0 and (has_video_track(after) or has_audio_track(after))


@dataclass(frozen=True)
class PollSettings:
    """Poll ceiling, intervals and readiness floors"""
    timeout_ms: int = 70000
    intervals_ms: Tuple[int, ...] = (1000, 2000, 3000)
    min_inbound_bytes: int = 5000
    min_inbound_audio_bytes: int = 500
    require_audio: bool = False
    require_metadata: bool = True
    sample_gap_ms: int = 7000

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "PollSettings":
        if environ is None:
            environ = os.environ
        values: Dict[str, Any] = {}
        if environ.get("VDO_POLL_TIMEOUT_MS"):
            values['timeout_ms'] = int(environ["VDO_POLL_TIMEOUT_MS"])
        if environ.get("VDO_POLL_INTERVALS_MS"):
            values['intervals_ms'] = tuple(
                int(part) for part in environ["VDO_POLL_INTERVALS_MS"].split(",") if part.strip()
            )
        if environ.get("VDO_MIN_INBOUND_BYTES"):
            values['min_inbound_bytes'] = int(environ["VDO_MIN_INBOUND_BYTES"])
        if environ.get("VDO_MIN_INBOUND_AUDIO_BYTES"):
            values['min_inbound_audio_bytes'] = int(environ["VDO_MIN_INBOUND_AUDIO_BYTES"])
        if environ.get("VDO_SAMPLE_GAP_MS"):
            values['sample_gap_ms'] = int(environ["VDO_SAMPLE_GAP_MS"])
        if environ.get("VDO_REQUIRE_AUDIO"):
            values['require_audio'] = env_flag("VDO_REQUIRE_AUDIO", environ)
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def interval_for(self, attempt: int) -> int:
        if not self.intervals_ms:
            return 1000
        return self.intervals_ms[min(attempt, len(self.intervals_ms) - 1)]


def is_ready(snapshot: MediaSnapshot, settings: PollSettings) -> bool:
    if not has_tracks(snapshot):
        return False
    if settings.require_metadata and not has_metadata(snapshot):
        return False
    if inbound_bytes(snapshot) <= settings.min_inbound_bytes:
        return False
    if settings.require_audio and inbound_audio_bytes(snapshot) <= settings.min_inbound_audio_bytes:
        return False
    return True


@dataclass(frozen=True)
class Verdict:
    has_tracks: bool
    has_metadata: bool
    has_audio_track: bool
    has_video_track: bool
    has_inbound_bytes: bool
    inbound_bytes: int
    inbound_audio_bytes: int
    playback_advanced: bool
    media_active: bool

    def failures(self, settings: PollSettings) -> List[str]:
        """Names of the checks a live viewer must pass but this verdict does not"""
        failed = []
        if not self.has_tracks:
            failed.append("no media tracks")
        if settings.require_metadata and not self.has_metadata:
            failed.append("no video metadata")
        if self.inbound_bytes <= settings.min_inbound_bytes:
            failed.append(f"inbound bytes {self.inbound_bytes} <= {settings.min_inbound_bytes}")
        if settings.require_audio and self.inbound_audio_bytes <= settings.min_inbound_audio_bytes:
            failed.append(f"inbound audio bytes {self.inbound_audio_bytes} <= {settings.min_inbound_audio_bytes}")
        if not self.playback_advanced:
            failed.append("playback did not advance")
        return failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            'hasTracks': self.has_tracks,
            'hasMetadata': self.has_metadata,
            'hasAudioTrack': self.has_audio_track,
            'hasVideoTrack': self.has_video_track,
            'hasInboundBytes': self.has_inbound_bytes,
            'inboundBytes': self.inbound_bytes,
            'inboundAudioBytes': self.inbound_audio_bytes,
            'playbackAdvanced': self.playback_advanced,
            'mediaActive': self.media_active,
        }


def evaluate_verdict(before: MediaSnapshot, after: MediaSnapshot) -> Verdict:
    return Verdict(
        has_tracks=has_tracks(after),
        has_metadata=has_metadata(after),
        has_audio_track=has_audio_track(after),
        has_video_track=has_video_track(after),
        has_inbound_bytes=has_inbound_bytes(after),
        inbound_bytes=inbound_bytes(after),
        inbound_audio_bytes=inbound_audio_bytes(after),
        playback_advanced=playback_advanced(before, after),
        media_active=media_active(before, after),
    )


async def wait_for_liveness(pages, settings: Optional[PollSettings] = None,
                            label: str = "viewer", clock=time.monotonic) -> List[MediaSnapshot]:
    """
    Poll one page, or several, until every one of them is ready

    Args:
        pages: A Playwright page or a sequence of pages
        settings: PollSettings; defaults apply when omitted
        label: Name used in log lines and the timeout error
        clock: Monotonic clock in seconds

    Returns:
        The snapshots of the round in which every page was ready

    Raises:
        LivenessTimeout: the condition did not hold within settings.timeout_ms
    """
    if settings is None:
        settings = PollSettings()
    if not isinstance(pages, Sequence):
        pages = [pages]

    started = clock()
    attempt = 0
    while True:
        snapshots = [await collect_snapshot(page) for page in pages]
        if all(is_ready(snapshot, settings) for snapshot in snapshots):
            elapsed = int((clock() - started) * 1000)
            logger.info(f"{label} live after {elapsed}ms ({attempt + 1} sample(s))")
            return snapshots

        logger.debug(
            f"{label} not ready yet: "
            + "; ".join(
                f"tracks={has_tracks(s)} metadata={has_metadata(s)} inbound={inbound_bytes(s)}"
                for s in snapshots
            )
        )

        elapsed_ms = (clock() - started) * 1000
        if elapsed_ms >= settings.timeout_ms:
            logger.warning(f"{label} did not become live within {settings.timeout_ms}ms")
            raise LivenessTimeout(label, settings.timeout_ms, snapshots)

        # The last sleep is cut short so one more sample lands on the ceiling
        interval = min(settings.interval_for(attempt), math.ceil(settings.timeout_ms - elapsed_ms))
        attempt += 1
        await pages[0].wait_for_timeout(interval)


async def sample_pair(page, gap_ms: int) -> Tuple[MediaSnapshot, MediaSnapshot]:
    """Two snapshots of the same page separated by gap_ms"""
    first = await collect_snapshot(page)
    await page.wait_for_timeout(gap_ms)
    second = await collect_snapshot(page)
    return first, second
