#!/usr/bin/env python3
"""
Console output, logging setup and JSON reports for the vdo.ninja checks
"""
import json
import logging
import re
import sys
from datetime import datetime, timezone
from pathlib import Path

import psutil

logger = logging.getLogger(__name__)


def hex_to_ansi(hex_color):
    hex_color = hex_color.lstrip('#')

    if len(hex_color) == 6:
        r = int(hex_color[0:2], 16)
        g = int(hex_color[2:4], 16)
        b = int(hex_color[4:6], 16)
    elif len(hex_color) == 3:
        r = int(hex_color[0:1] + hex_color[0:1], 16)
        g = int(hex_color[1:2] + hex_color[1:2], 16)
        b = int(hex_color[2:3] + hex_color[2:3], 16)
    else:
        return hex_color

    ansi_color = 16 + (36 * int(r / 255 * 5)) + (6 * int(g / 255 * 5)) + int(b / 255 * 5)

    return f"\033[38;5;{ansi_color}m"


def printc(message, color_code=None):
    # Only color a terminal
    if color_code is not None and sys.stdout.isatty():
        print(f"{hex_to_ansi(color_code)}{message}\033[0m")
    else:
        print(re.sub(r'\033\[[0-9;]*m', '', message))


def printout(message):
    printc("=> " + message, "6F6")


def printwarn(message):
    printc(message, "FF0")


def printerr(message):
    printc(message, "F00")


def configure_logging(debug=False):
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # asyncio is chatty at DEBUG
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def now_iso():
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def host_metrics():
    """CPU and memory load of the machine running the browsers"""
    memory = psutil.virtual_memory()
    browser_rss = 0
    for proc in psutil.process_iter(['name', 'memory_info']):
        name = (proc.info.get('name') or '').lower()
        mem = proc.info.get('memory_info')
        if mem and any(b in name for b in ('chrome', 'chromium', 'firefox', 'headless_shell')):
            browser_rss += mem.rss
    return {
        'cpuCount': psutil.cpu_count(),
        'cpuPercent': psutil.cpu_percent(interval=None),
        'memoryPercent': memory.percent,
        'browserRssBytes': browser_rss,
    }


def write_report(payload, path, echo=True):
    """Write payload as indented JSON with a trailing newline, optionally echo to stdout"""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    text = json.dumps(payload, indent=2)
    path.write_text(f"{text}\n", encoding="utf-8")
    logger.info(f"Wrote report {path}")
    if echo:
        print(text)
    return path
