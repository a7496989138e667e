#!/usr/bin/env python3
"""
Test report writing, console output and host metrics
"""
import json
import os
import sys
import unittest

import psutil

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from vdo_report import hex_to_ansi, host_metrics, now_iso, printc, printerr, write_report


class TestConsoleOutput:

    def test_hex_to_ansi(self):
        assert hex_to_ansi("F00") == "\033[38;5;196m"
        assert hex_to_ansi("#00FF00") == "\033[38;5;46m"
        assert hex_to_ansi("nope") == "nope"

    def test_printc_plain_when_not_a_terminal(self, capsys):
        printc("\033[1mhello\033[0m", "0F0")
        assert capsys.readouterr().out == "hello\n"

    def test_printc_without_color(self, capsys):
        printc("plain")
        assert capsys.readouterr().out == "plain\n"

    def test_printerr(self, capsys):
        printerr("Timed out waiting for viewer media after 70000ms")
        assert capsys.readouterr().out == "Timed out waiting for viewer media after 70000ms\n"


class TestReports:

    def test_write_report_creates_parents(self, tmp_path, capsys):
        path = tmp_path / "nested" / "report.json"
        result = write_report({'anyMediaActive': True, 'results': []}, path)
        assert result == path
        text = path.read_text(encoding="utf-8")
        assert text.endswith("\n")
        assert json.loads(text) == {'anyMediaActive': True, 'results': []}
        assert '"anyMediaActive": true' in capsys.readouterr().out

    def test_write_report_quiet(self, tmp_path, capsys):
        write_report({'a': 1}, tmp_path / "r.json", echo=False)
        assert capsys.readouterr().out == ""

    def test_now_iso_is_utc(self):
        stamp = now_iso()
        assert stamp.endswith("Z")
        assert "T" in stamp


class TestHostMetrics(unittest.TestCase):
    """psutil-backed load figures included in every report"""

    def test_keys(self):
        metrics = host_metrics()
        self.assertEqual(
            set(metrics), {'cpuCount', 'cpuPercent', 'memoryPercent', 'browserRssBytes'}
        )
        self.assertEqual(metrics['cpuCount'], psutil.cpu_count())
        self.assertGreaterEqual(metrics['browserRssBytes'], 0)

    def test_json_serializable(self):
        json.dumps(host_metrics())


if __name__ == '__main__':
    unittest.main()
