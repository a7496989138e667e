#!/usr/bin/env python3
"""
Exceptions raised by the vdo.ninja liveness checks
"""


class VdoCheckError(Exception):
    """Base class for failures that end a scenario"""


class NavigationError(VdoCheckError):
    def __init__(self, url, reason):
        self.url = url
        self.reason = reason
        super().__init__(f"Navigation to {url} failed: {reason}")


class LivenessTimeout(VdoCheckError):
    """The page never reached the readiness condition before the poll ceiling"""

    def __init__(self, label, timeout_ms, last_snapshots=None):
        self.label = label
        self.timeout_ms = timeout_ms
        self.last_snapshots = list(last_snapshots or [])
        super().__init__(f"Timed out waiting for {label} media after {timeout_ms}ms")


class VerdictFailed(VdoCheckError):
    """Polling succeeded but the two-sample verdict did not hold"""

    def __init__(self, label, verdict, failures):
        self.label = label
        self.verdict = verdict
        self.failures = list(failures)
        super().__init__(f"{label} playback validation failed: {', '.join(self.failures)}")
