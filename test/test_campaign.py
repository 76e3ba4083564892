"""
Tests for CampaignDriver: target ordering, restarts between targets,
best-effort continuation and teardown.
"""

from dataclasses import replace

import pytest

from conftest import FakeLauncher, ScriptedBackend, make_lhr
from core.campaign import CampaignDriver, generate_campaign_id, sentinel_batch
from core.config import CampaignConfig
from core.exceptions import MeasurementFailure
from models.metrics import CacheRegime, MeasurementTarget

TARGETS = (
    MeasurementTarget(name="Main", url="https://example.com/"),
    MeasurementTarget(name="Shop", url="https://example.com/shop"),
)


@pytest.fixture
def config(measurement_config):
    return CampaignConfig(name="demo", targets=TARGETS, measurement=measurement_config)


def test_measures_every_target_in_order(config, launcher, events, sleep):
    seen = []
    driver = CampaignDriver(config, launcher=launcher, backend=ScriptedBackend(), sleep=sleep)

    result = driver.run(on_result=seen.append, campaign_id="demo_1")

    assert result.campaign_id == "demo_1"
    assert [site.target.name for site in result.sites] == ["Main", "Shop"]
    assert seen == result.sites
    assert result.failed_sites == []
    assert result.finished_at is not None
    assert result.elapsed_s >= 0
    # start, regime restart, target restart, regime restart
    assert launcher.launches == 4
    assert events[-1] == "kill"
    assert not driver.lifecycle.is_running()


def test_target_restart_can_be_disabled(config, launcher, sleep):
    config = replace(config, restart_between_targets=False)
    driver = CampaignDriver(config, launcher=launcher, backend=ScriptedBackend(), sleep=sleep)

    driver.run()

    assert launcher.launches == 3


def test_target_transition_delay(config, launcher, sleep):
    config = replace(config, target_transition_delay_s=1.5)
    driver = CampaignDriver(config, launcher=launcher, backend=ScriptedBackend(), sleep=sleep)

    driver.run()

    assert sleep.calls.count(1.5) == 1


def test_start_failure_records_error_and_continues(config, events, sleep):
    launcher = FakeLauncher(events, fail_launches={0})
    driver = CampaignDriver(config, launcher=launcher, backend=ScriptedBackend(), sleep=sleep)

    result = driver.run()

    first, second = result.sites
    assert first.failed
    assert "Browser start failed" in first.error
    assert first.cold.count == first.warm.count == 2
    assert first.cold.average.is_sentinel
    assert not second.failed
    assert second.cold.failed_attempts == 0


def test_failed_regime_restart_keeps_cold_batch(config, events, sleep):
    launcher = FakeLauncher(events, fail_launches={1})
    driver = CampaignDriver(config, launcher=launcher, backend=ScriptedBackend(), sleep=sleep)

    result = driver.run()

    first, second = result.sites
    assert first.failed
    assert first.cold.failed_attempts == 0
    assert first.warm.failed_attempts == 2
    # the browser is started again for the next target
    assert not second.failed
    assert len(result.failed_sites) == 1


def test_failed_recovery_restart_keeps_measured_samples(config, events, sleep):
    config = replace(config, measurement=replace(config.measurement, count=3))
    launcher = FakeLauncher(events, fail_launches={1})
    backend = ScriptedBackend([make_lhr(fcp=900), MeasurementFailure("crash")])
    driver = CampaignDriver(config, launcher=launcher, backend=backend, sleep=sleep)

    result = driver.run()

    first, second = result.sites
    assert not first.failed
    assert first.cold.samples[0].fcp == 900
    assert first.cold.failed_attempts == 2
    assert first.warm.failed_attempts == 0
    assert not second.failed
    assert result.failed_sites == []


def test_browser_stopped_when_campaign_is_interrupted(config, launcher, events, sleep):
    def interrupt(site):
        raise KeyboardInterrupt

    driver = CampaignDriver(config, launcher=launcher, backend=ScriptedBackend(), sleep=sleep)

    with pytest.raises(KeyboardInterrupt):
        driver.run(on_result=interrupt)

    assert events[-1] == "kill"
    assert not driver.lifecycle.is_running()


def test_generate_campaign_id():
    campaign_id = generate_campaign_id("demo")

    assert campaign_id.startswith("demo_")
    assert campaign_id != generate_campaign_id("demo")


def test_sentinel_batch():
    batch = sentinel_batch(CacheRegime.WARM, 3)

    assert batch.regime is CacheRegime.WARM
    assert batch.count == 3
    assert batch.failed_attempts == 3
    assert batch.average.is_sentinel
