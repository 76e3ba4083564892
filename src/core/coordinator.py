"""
Cache regime coordinator: cold batch, regime-transition restart, warm batch.

An attempt whose retries are exhausted becomes a sentinel sample so every
batch always holds exactly `count` samples. A restart failing inside a
batch only ends that batch; a failed regime-transition restart aborts the
target with TargetAborted, carrying the completed cold batch.
"""

import logging
import time
from typing import Callable, List, Tuple

from core.aggregator import average_samples
from core.config import MeasurementConfig, RestartGranularity
from core.exceptions import MeasurementFailure, ProcessStartFailure, TargetAborted
from core.executor import MeasurementExecutor
from core.lifecycle import ProcessLifecycleManager
from models.metrics import CacheRegime, MeasurementBatch, MeasurementTarget, MetricSample

logger = logging.getLogger("pageload.coordinator")


class CacheRegimeCoordinator:
    """Sequences the cold and warm batches of one target."""

    def __init__(
        self,
        lifecycle: ProcessLifecycleManager,
        executor: MeasurementExecutor,
        config: MeasurementConfig,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.lifecycle = lifecycle
        self.executor = executor
        self.config = config
        self._sleep = sleep

    def run_batch(self, target: MeasurementTarget, regime: CacheRegime) -> MeasurementBatch:
        """
        Run `count` sequential attempts under one regime.

        With PER_ATTEMPT granularity the browser is restarted before every
        attempt after the first; the first attempt always runs on the
        process the caller just (re)started.

        If a restart inside the batch fails (a recovery restart in the
        executor or a PER_ATTEMPT restart), that slot and every remaining
        one become sentinels and the batch ends with the browser stopped.
        """
        samples: List[MetricSample] = []
        count = self.config.count
        logger.info("%s: %s batch (%d runs)", target.name, regime.label, count)

        for index in range(count):
            try:
                if index > 0:
                    self._sleep(self.config.inter_measurement_delay_s)
                    if self.config.restart_granularity is RestartGranularity.PER_ATTEMPT:
                        self.lifecycle.restart()
                sample = self.executor.measure(target, regime.cache_enabled)
            except MeasurementFailure as e:
                logger.warning("%s: run %d/%d failed, recording zero sample: %s", target.name, index + 1, count, e)
                sample = MetricSample.sentinel()
            except ProcessStartFailure as e:
                remaining = count - index
                logger.error("%s: browser restart failed during %s batch, recording %d zero sample(s): %s",
                             target.name, regime.label, remaining, e)
                samples.extend(MetricSample.sentinel() for _ in range(remaining))
                break
            samples.append(sample)

        return MeasurementBatch(regime=regime, samples=tuple(samples), average=average_samples(samples))

    def run_batches(self, target: MeasurementTarget) -> Tuple[MeasurementBatch, MeasurementBatch]:
        """
        Measure a target under both regimes.

        Returns:
            (cold batch, warm batch)

        Raises:
            TargetAborted: If the regime-transition restart fails; carries
                the cold batch
            NotRunning: If the browser was not running (caller ordering bug)
        """
        cold = self.run_batch(target, CacheRegime.COLD)

        logger.info("%s: restarting browser for regime transition", target.name)
        try:
            self.lifecycle.restart()
        except ProcessStartFailure as e:
            raise TargetAborted(f"{target.name}: browser restart failed: {e}", cold=cold) from e
        self._sleep(self.config.regime_transition_delay_s)

        warm = self.run_batch(target, CacheRegime.WARM)
        return cold, warm
