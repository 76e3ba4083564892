"""
Shared fakes for the measurement engine tests.

No test launches a browser or Lighthouse: the launcher, the browser handle
and the measurement backend are replaced by in-memory fakes that record
what was asked of them, and every component gets a recording sleep.
"""

import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from core.config import BrowserConfig, MeasurementConfig
from core.exceptions import ProcessStartFailure
from core.lifecycle import ProcessLifecycleManager
from infra.lighthouse import AUDIT_IDS, MeasurementBackend
from models.metrics import MeasurementTarget


def make_lhr(fcp=1000.0, lcp=2000.0, tbt=100.0, cls=0.01, si=1500.0) -> dict:
    """Minimal Lighthouse result carrying the five tracked audits."""
    values = {"fcp": fcp, "lcp": lcp, "tbt": tbt, "cls": cls, "si": si}
    return {
        "audits": {
            audit_id: {"id": audit_id, "numericValue": values[name]}
            for name, audit_id in AUDIT_IDS.items()
        }
    }


class RecordingSleep:
    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


class FakeHandle:
    def __init__(self, host, port, events, fail_kill=False):
        self.host = host
        self.port = port
        self.events = events
        self.fail_kill = fail_kill

    def kill(self, timeout=5.0):
        self.events.append("kill")
        if self.fail_kill:
            raise OSError("process did not exit")


class FakeLauncher:
    """
    Records launch/kill/cleanup calls in a shared event list.

    fail_launches holds the (0-based) launch numbers that raise
    ProcessStartFailure.
    """

    def __init__(self, events=None, fail_launches=(), fail_kill=False, fail_terminate=False):
        self.events = events if events is not None else []
        self.fail_launches = set(fail_launches)
        self.fail_kill = fail_kill
        self.fail_terminate = fail_terminate
        self.launches = 0

    def launch(self, flags, port, host="127.0.0.1"):
        index = self.launches
        self.launches += 1
        self.events.append("launch")
        if index in self.fail_launches:
            raise ProcessStartFailure(f"launch #{index} failed")
        return FakeHandle(host, port, self.events, fail_kill=self.fail_kill)

    def terminate_by_role(self):
        self.events.append("terminate_by_role")
        if self.fail_terminate:
            raise PermissionError("not allowed")
        return 0


class ScriptedBackend(MeasurementBackend):
    """
    Returns (or raises) the scripted outcomes in order, then `default`.

    Every call is recorded as (url, options).
    """

    def __init__(self, outcomes=(), default=None):
        self.outcomes = list(outcomes)
        self.default = default
        self.calls = []

    def run(self, url, options):
        self.calls.append((url, options))
        outcome = self.outcomes.pop(0) if self.outcomes else self.default
        if outcome is None:
            outcome = make_lhr()
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def events():
    return []


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def launcher(events):
    return FakeLauncher(events)


@pytest.fixture
def browser_config():
    return BrowserConfig()


@pytest.fixture
def lifecycle(launcher, browser_config, sleep):
    return ProcessLifecycleManager(launcher, browser_config, sleep=sleep, health_checker=lambda host, port: True)


@pytest.fixture
def target():
    return MeasurementTarget(name="Main", url="https://example.com/")


@pytest.fixture
def measurement_config():
    return MeasurementConfig(
        count=2,
        max_retries=2,
        inter_measurement_delay_s=0.25,
        retry_backoff_s=0.5,
        regime_transition_delay_s=0.75,
    )
