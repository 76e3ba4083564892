"""
Campaign driver: measures every target of a recipe and collects SiteResults.

The driver wires one ProcessLifecycleManager, one MeasurementExecutor and
one CacheRegimeCoordinator together, so a campaign owns exactly one
browser process. A target that cannot be measured is recorded with an
error and zero-filled batches; the campaign moves on to the next target.
"""

import logging
import time
import uuid
from datetime import datetime
from typing import Callable, List, Optional

from core.config import CampaignConfig
from core.coordinator import CacheRegimeCoordinator
from core.exceptions import ProcessStartFailure, TargetAborted
from core.executor import MeasurementExecutor
from core.lifecycle import ProcessLifecycleManager
from core.aggregator import average_samples
from infra.launcher import ChromeLauncher
from infra.lighthouse import LighthouseCLIBackend, MeasurementBackend
from models.metrics import (
    CacheRegime,
    CampaignResult,
    MeasurementBatch,
    MeasurementTarget,
    MetricSample,
    SiteResult,
)

logger = logging.getLogger("pageload.campaign")


def generate_campaign_id(name: str) -> str:
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return f"{name}_{timestamp}_{uuid.uuid4().hex[:6]}"


def sentinel_batch(regime: CacheRegime, count: int) -> MeasurementBatch:
    """A batch of `count` zero samples, used for targets that were aborted."""
    samples = tuple(MetricSample.sentinel() for _ in range(count))
    return MeasurementBatch(regime=regime, samples=samples, average=average_samples(samples))


class CampaignDriver:
    """
    Runs a complete measurement campaign.

    Args:
        config: Validated campaign configuration
        launcher: Browser launcher (defaults to ChromeLauncher from config)
        backend: Measurement backend (defaults to the Lighthouse CLI)
        sleep: Sleep function shared by every component (injectable for tests)
    """

    def __init__(
        self,
        config: CampaignConfig,
        launcher=None,
        backend: Optional[MeasurementBackend] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self._sleep = sleep

        if launcher is None:
            launcher = ChromeLauncher(
                chrome_path=config.browser.chrome_path,
                user_data_dir=config.browser.user_data_dir,
                connection_poll_interval=config.browser.connection_poll_interval_s,
                max_connection_retries=config.browser.max_connection_retries,
                sleep=sleep,
            )
        if backend is None:
            backend = LighthouseCLIBackend(config.measurement.lighthouse_bin)

        self.lifecycle = ProcessLifecycleManager(launcher, config.browser, sleep=sleep)
        self.executor = MeasurementExecutor(self.lifecycle, backend, config.measurement, sleep=sleep)
        self.coordinator = CacheRegimeCoordinator(self.lifecycle, self.executor, config.measurement, sleep=sleep)

    def _prepare_browser(self, index: int) -> None:
        if not self.lifecycle.is_running():
            self.lifecycle.start()
        elif index > 0 and self.config.restart_between_targets:
            logger.info("Restarting browser before next target")
            self.lifecycle.restart()
            self._sleep(self.config.target_transition_delay_s)

    def run_target(self, index: int, target: MeasurementTarget) -> SiteResult:
        """Measure one target; failures are recorded on the result, not raised."""
        count = self.config.measurement.count
        try:
            self._prepare_browser(index)
            cold, warm = self.coordinator.run_batches(target)
            return SiteResult(target=target, cold=cold, warm=warm)
        except TargetAborted as e:
            logger.error("Target %s aborted: %s", target.name, e)
            return SiteResult(
                target=target,
                cold=e.cold or sentinel_batch(CacheRegime.COLD, count),
                warm=e.warm or sentinel_batch(CacheRegime.WARM, count),
                error=str(e),
            )
        except ProcessStartFailure as e:
            logger.error("Target %s skipped, browser did not start: %s", target.name, e)
            return SiteResult(
                target=target,
                cold=sentinel_batch(CacheRegime.COLD, count),
                warm=sentinel_batch(CacheRegime.WARM, count),
                error=f"Browser start failed: {e}",
            )

    def run(
        self,
        on_result: Optional[Callable[[SiteResult], None]] = None,
        campaign_id: Optional[str] = None,
    ) -> CampaignResult:
        """
        Measure every target in order and stop the browser at the end.

        Args:
            on_result: Called with each SiteResult as soon as it is complete
            campaign_id: Identifier for the run (generated if omitted)

        Returns:
            CampaignResult with one SiteResult per target, in target order
        """
        result = CampaignResult(
            campaign_id=campaign_id or generate_campaign_id(self.config.name),
            name=self.config.name,
            started_at=datetime.now(),
        )
        targets: List[MeasurementTarget] = list(self.config.targets)
        logger.info("Campaign %s: %d target(s), %d run(s) per regime",
                    result.campaign_id, len(targets), self.config.measurement.count)

        try:
            for index, target in enumerate(targets):
                logger.info("[%d/%d] %s", index + 1, len(targets), target)
                site = self.run_target(index, target)
                result.sites.append(site)
                if on_result:
                    on_result(site)
        finally:
            self.lifecycle.stop()
            result.finished_at = datetime.now()

        return result
