#!/usr/bin/env python3
"""
Media liveness probe
Samples a page's <video> elements and the stats of every RTCPeerConnection
the page has created, returning an immutable MediaSnapshot
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

# Installed before navigation; every RTCPeerConnection the page constructs is
# pushed onto window.__pcList in construction order.
PEER_COLLECTOR_SCRIPT = """
(() => {
  window.__pcList = [];
  const NativePC = window.RTCPeerConnection;
  if (!NativePC) {
    return;
  }
  window.RTCPeerConnection = function (...args) {
    const pc = new NativePC(...args);
    window.__pcList.push(pc);
    return pc;
  };
  window.RTCPeerConnection.prototype = NativePC.prototype;
})();
"""

SNAPSHOT_SCRIPT = """
async () => {
  const bodyText = document.body ? document.body.innerText || "" : "";
  const videos = Array.from(document.querySelectorAll("video")).map((v, index) => {
    const stream = v.srcObject;
    const audioTracks = stream && stream.getAudioTracks ? stream.getAudioTracks().length : 0;
    const videoTracks = stream && stream.getVideoTracks ? stream.getVideoTracks().length : 0;
    return {
      index,
      readyState: v.readyState,
      paused: v.paused,
      currentTime: v.currentTime,
      videoWidth: v.videoWidth,
      videoHeight: v.videoHeight,
      audioTracks,
      videoTracks,
    };
  });

  const pcStats = [];
  if (Array.isArray(window.__pcList)) {
    for (const pc of window.__pcList) {
      try {
        const stats = await pc.getStats();
        let inboundVideoBytes = 0;
        let inboundAudioBytes = 0;
        let outboundVideoBytes = 0;
        let outboundAudioBytes = 0;
        let framesDecoded = 0;
        stats.forEach((s) => {
          if (s.type === "inbound-rtp" && !s.isRemote) {
            if (s.kind === "video") {
              inboundVideoBytes += s.bytesReceived || 0;
              framesDecoded += s.framesDecoded || 0;
            }
            if (s.kind === "audio") inboundAudioBytes += s.bytesReceived || 0;
          }
          if (s.type === "outbound-rtp" && !s.isRemote) {
            if (s.kind === "video") outboundVideoBytes += s.bytesSent || 0;
            if (s.kind === "audio") outboundAudioBytes += s.bytesSent || 0;
          }
        });
        pcStats.push({
          state: pc.connectionState,
          inboundVideoBytes,
          inboundAudioBytes,
          outboundVideoBytes,
          outboundAudioBytes,
          framesDecoded,
        });
      } catch (error) {
        pcStats.push({ error: String(error) });
      }
    }
  }

  return {
    url: location.href,
    title: document.title || "",
    textSample: bodyText.slice(0, 400),
    containsWaitingText: /Waiting for the stream/i.test(bodyText),
    videos,
    pcStats,
    timestamp: Date.now(),
  };
}
"""


def _int(value) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _optional_int(value) -> Optional[int]:
    if value is None:
        return None
    return _int(value)


@dataclass(frozen=True)
class VideoObservation:
    """One <video> element; index is its position in document order"""
    index: int
    current_time: float = 0.0
    frame_width: int = 0
    frame_height: int = 0
    audio_tracks: int = 0
    video_tracks: int = 0
    ready_state: Optional[int] = None
    paused: Optional[bool] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], position: int = 0) -> "VideoObservation":
        return cls(
            index=_int(data.get('index', position)),
            current_time=float(data.get('currentTime') or 0.0),
            frame_width=_int(data.get('videoWidth')),
            frame_height=_int(data.get('videoHeight')),
            audio_tracks=_int(data.get('audioTracks')),
            video_tracks=_int(data.get('videoTracks')),
            ready_state=_optional_int(data.get('readyState')),
            paused=data.get('paused'),
        )

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'index': self.index,
            'currentTime': self.current_time,
            'videoWidth': self.frame_width,
            'videoHeight': self.frame_height,
            'audioTracks': self.audio_tracks,
            'videoTracks': self.video_tracks,
        }
        if self.ready_state is not None:
            result['readyState'] = self.ready_state
        if self.paused is not None:
            result['paused'] = self.paused
        return result


@dataclass(frozen=True)
class PeerStat:
    """Byte counters of one peer connection, or the error its getStats() raised"""
    connection_state: Optional[str] = None
    inbound_video_bytes: Optional[int] = None
    inbound_audio_bytes: Optional[int] = None
    outbound_video_bytes: Optional[int] = None
    outbound_audio_bytes: Optional[int] = None
    frames_decoded: Optional[int] = None
    error: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PeerStat":
        if data.get('error') is not None:
            return cls(error=str(data['error']))
        return cls(
            connection_state=data.get('state'),
            inbound_video_bytes=_optional_int(data.get('inboundVideoBytes')),
            inbound_audio_bytes=_optional_int(data.get('inboundAudioBytes')),
            outbound_video_bytes=_optional_int(data.get('outboundVideoBytes')),
            outbound_audio_bytes=_optional_int(data.get('outboundAudioBytes')),
            frames_decoded=_optional_int(data.get('framesDecoded')),
        )

    def to_dict(self) -> Dict[str, Any]:
        if self.error is not None:
            return {'error': self.error}
        result = {'state': self.connection_state}
        for key, value in (
            ('inboundVideoBytes', self.inbound_video_bytes),
            ('inboundAudioBytes', self.inbound_audio_bytes),
            ('outboundVideoBytes', self.outbound_video_bytes),
            ('outboundAudioBytes', self.outbound_audio_bytes),
            ('framesDecoded', self.frames_decoded),
        ):
            if value is not None:
                result[key] = value
        return result


@dataclass(frozen=True)
class MediaSnapshot:
    """Point-in-time capture of a page's video elements and peer stats"""
    timestamp: int
    url: str
    videos: Tuple[VideoObservation, ...] = field(default_factory=tuple)
    peer_stats: Tuple[PeerStat, ...] = field(default_factory=tuple)
    title: str = ""
    text_sample: str = ""
    contains_waiting_text: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MediaSnapshot":
        raw_videos = data.get('videos')
        if raw_videos is None:
            raw_videos = data.get('videoElements') or []
        return cls(
            timestamp=_int(data.get('timestamp')),
            url=data.get('url') or "",
            videos=tuple(VideoObservation.from_dict(v, i) for i, v in enumerate(raw_videos)),
            peer_stats=tuple(PeerStat.from_dict(s) for s in data.get('pcStats') or []),
            title=data.get('title') or "",
            text_sample=data.get('textSample') or "",
            contains_waiting_text=bool(data.get('containsWaitingText')),
        )

    @property
    def errors(self) -> Tuple[str, ...]:
        return tuple(s.error for s in self.peer_stats if s.error is not None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'url': self.url,
            'title': self.title,
            'textSample': self.text_sample,
            'containsWaitingText': self.contains_waiting_text,
            'videos': [v.to_dict() for v in self.videos],
            'pcStats': [s.to_dict() for s in self.peer_stats],
            'timestamp': self.timestamp,
        }


async def install_peer_collector(target):
    """
    Register the RTCPeerConnection collector on a Page or BrowserContext

    Must run before navigation; connections created earlier are not tracked.
    """
    await target.add_init_script(script=PEER_COLLECTOR_SCRIPT)


async def collect_snapshot(page) -> MediaSnapshot:
    """Evaluate SNAPSHOT_SCRIPT in the page; does not wait for tracks to appear"""
    raw = await page.evaluate(SNAPSHOT_SCRIPT)
    snapshot = MediaSnapshot.from_dict(raw or {})
    for error in snapshot.errors:
        logger.debug(f"getStats() failed on {snapshot.url}: {error}")
    logger.debug(
        f"Snapshot {snapshot.url}: {len(snapshot.videos)} video(s), "
        f"{len(snapshot.peer_stats)} peer connection(s)"
    )
    return snapshot
