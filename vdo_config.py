#!/usr/bin/env python3
"""
Scenario configuration for vdo.ninja liveness checks
Builds the publish (push) and view URLs from VDO_* environment variables
"""
import hashlib
import logging
import os
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import parse_qsl, quote, quote_plus, urlencode, urlsplit, urlunsplit

logger = logging.getLogger(__name__)

DEFAULT_HOSTNAME = "https://vdo.ninja/"
DEFAULT_STREAM_ID = "Alsosuitbc"
DEFAULT_PASSWORD = "somepassword"
DEFAULT_CLEANOUTPUT = "1"
DEFAULT_SALT = "vdo.ninja"

PASSWORD_DISABLED_TOKENS = ("false", "0", "off", "no")


def env_flag(name: str, environ: Optional[Mapping[str, str]] = None) -> bool:
    if environ is None:
        environ = os.environ
    value = environ.get(name)
    if value is None:
        return False
    return value.strip().lower() not in ("0", "false", "no", "off", "")


def get_env_or_default(environ: Mapping[str, str], name: str, fallback: str) -> str:
    if name not in environ:
        return fallback
    value = environ[name]
    return fallback if value is None else value


def get_optional_env(environ: Mapping[str, str], name: str) -> str:
    return environ.get(name) or ""


def encode_stream_id(stream_id: str) -> str:
    """Percent-encode a stream id the way encodeURIComponent does"""
    return quote(stream_id, safe="!~*'()")


def encode_params(params: List[Tuple[str, str]]) -> str:
    return urlencode(params, quote_via=quote_plus, safe="*")


def set_param(params: List[Tuple[str, str]], key: str, value: str):
    """Replace an existing key in place or append it, like URLSearchParams.set"""
    for i, (existing, _) in enumerate(params):
        if existing == key:
            params[i] = (key, value)
            return
    params.append((key, value))


def ensure_query(url: str, key: str, value: str) -> str:
    """Add key=value to url unless the query already has that key"""
    parts = urlsplit(url)
    query = parse_qsl(parts.query, keep_blank_values=True)
    if any(existing == key for existing, _ in query):
        return url
    query.append((key, value))
    return urlunsplit((parts.scheme, parts.netloc, parts.path or "/", encode_params(query), parts.fragment))


def is_password_disabled_token(password: Optional[str]) -> bool:
    if not password:
        return False
    normalized = password.strip().lower()
    return normalized in PASSWORD_DISABLED_TOKENS


def sanitize_identifier(value: str, max_length: int = 64) -> str:
    # Each run of non-word characters collapses to a single underscore
    return re.sub(r"[^A-Za-z0-9_]+", "_", value.strip())[:max_length]


def hash_stream_id(stream_id: str, password: Optional[str], salt: str = DEFAULT_SALT) -> str:
    """
    Stream id as it appears on the handshake server

    vdo.ninja appends the first 6 hex characters of sha256(password + salt)
    to the sanitized stream id when a password is in use.
    """
    sanitized = sanitize_identifier(stream_id, 64)
    normalized = (password or "").strip()
    if not normalized or is_password_disabled_token(normalized):
        return sanitized
    digest = hashlib.sha256((normalized + salt).encode("utf-8")).hexdigest()
    return sanitized + digest[:6]


def sanitize_for_file(value: str, index: int) -> str:
    cleaned = re.sub(r"[^a-zA-Z0-9_-]+", "_", value)[:80]
    return f"{index:02d}_{cleaned or 'url'}"


def salt_for_hostname(hostname: str) -> str:
    parsed = urlsplit(hostname)
    if parsed.hostname:
        return ".".join(parsed.hostname.split(".")[-2:])
    return DEFAULT_SALT


def _join_hostname(hostname: str, action: str, stream_id: str, params: List[Tuple[str, str]]) -> str:
    base = hostname.rstrip("/") + "/"
    url = f"{base}?{action}={encode_stream_id(stream_id)}"
    if params:
        url += "&" + encode_params(params)
    return url


@dataclass(frozen=True)
class ScenarioConfig:
    """Publish/view URLs plus the inputs they were built from"""
    stream_id: str
    no_password: bool
    password: str
    room_id: str
    bitrate: str
    include_room_in_view: bool
    include_scene_in_view: bool
    cleanoutput: str
    hostname: str
    push_url: str
    view_url: str

    @property
    def hashed_stream_id(self) -> str:
        return hash_stream_id(self.stream_id, self.password, salt_for_hostname(self.hostname))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'streamId': self.stream_id,
            'hashedStreamId': self.hashed_stream_id,
            'noPassword': self.no_password,
            'password': self.password,
            'roomId': self.room_id,
            'bitrate': self.bitrate,
            'includeRoomInView': self.include_room_in_view,
            'includeSceneInView': self.include_scene_in_view,
            'cleanoutput': self.cleanoutput,
            'pushUrl': self.push_url,
            'viewUrl': self.view_url,
        }


def build_scenario_config(environ: Optional[Mapping[str, str]] = None) -> ScenarioConfig:
    """
    Build the scenario URLs from environment-style inputs

    Args:
        environ: Mapping of VDO_* variables; defaults to os.environ

    Returns:
        ScenarioConfig with push_url and view_url filled in
    """
    if environ is None:
        environ = os.environ

    stream_id = get_env_or_default(environ, "VDO_STREAM_ID", DEFAULT_STREAM_ID)
    no_password = get_optional_env(environ, "VDO_NO_PASSWORD") == "1"
    if no_password:
        password = ""
    elif "VDO_PASSWORD" in environ:
        password = environ["VDO_PASSWORD"] or ""
    else:
        password = DEFAULT_PASSWORD
    room_id = get_optional_env(environ, "VDO_ROOM_ID")
    bitrate = get_optional_env(environ, "VDO_BITRATE")
    include_room_in_view = bool(room_id) and get_optional_env(environ, "VDO_VIEW_INCLUDE_ROOM") != "0"
    include_scene_in_view = bool(room_id) and get_optional_env(environ, "VDO_VIEW_INCLUDE_SCENE") != "0"
    cleanoutput = get_env_or_default(environ, "VDO_CLEANOUTPUT", DEFAULT_CLEANOUTPUT)
    hostname = get_env_or_default(environ, "VDO_HOSTNAME", DEFAULT_HOSTNAME) or DEFAULT_HOSTNAME

    view_params: List[Tuple[str, str]] = []
    if cleanoutput:
        set_param(view_params, "cleanoutput", cleanoutput)
    if password:
        set_param(view_params, "password", password)

    push_params = list(view_params)
    set_param(push_params, "autostart", "1")
    set_param(push_params, "webcam", "1")
    if room_id:
        set_param(push_params, "room", room_id)
        if include_room_in_view:
            set_param(view_params, "room", room_id)
            if include_scene_in_view:
                set_param(view_params, "scene", "1")
    if bitrate:
        set_param(push_params, "bitrate", bitrate)

    push_url = environ.get("VDO_PUSH_URL") or _join_hostname(hostname, "push", stream_id, push_params)
    view_url = environ.get("VDO_VIEW_URL") or _join_hostname(hostname, "view", stream_id, view_params)

    logger.debug(f"Scenario push URL: {push_url}")
    logger.debug(f"Scenario view URL: {view_url}")

    return ScenarioConfig(
        stream_id=stream_id,
        no_password=no_password,
        password=password,
        room_id=room_id,
        bitrate=bitrate,
        include_room_in_view=include_room_in_view,
        include_scene_in_view=include_scene_in_view,
        cleanoutput=cleanoutput,
        hostname=hostname,
        push_url=push_url,
        view_url=view_url,
    )
