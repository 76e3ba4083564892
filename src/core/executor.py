"""
Measurement executor: one page-load measurement with bounded retries.

Every failed attempt (backend error, timeout, malformed result) is followed
by a full browser restart and a backoff delay before the next attempt.
Once retries are exhausted the failure is raised to the caller; sentinel
substitution is not done here.
"""

import logging
import time
from typing import Any, Callable, Dict

from core.config import MeasurementConfig
from core.exceptions import MeasurementFailure, NotRunning
from core.lifecycle import ProcessLifecycleManager
from infra.lighthouse import STORAGE_TYPES_TO_CLEAR, MeasurementBackend, extract_sample
from models.metrics import MeasurementTarget, MetricSample

logger = logging.getLogger("pageload.executor")


class MeasurementExecutor:
    """Runs single measurements against the browser owned by a lifecycle manager."""

    def __init__(
        self,
        lifecycle: ProcessLifecycleManager,
        backend: MeasurementBackend,
        config: MeasurementConfig,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.lifecycle = lifecycle
        self.backend = backend
        self.config = config
        self._sleep = sleep

    def build_options(self, cache_enabled: bool) -> Dict[str, Any]:
        """
        Build backend options for one attempt.

        Cache disabled: every persistent storage category is cleared before
        navigation. Cache enabled: storage reset is disabled and nothing is
        cleared.
        """
        host, port = self.lifecycle.endpoint()
        settings = self.config.settings_dict()
        timeout_ms = int(self.config.timeout_s * 1000)
        settings.update(
            {
                "maxWaitForFcp": timeout_ms,
                "maxWaitForLoad": timeout_ms,
                "disableStorageReset": cache_enabled,
                "clearStorageTypes": [] if cache_enabled else list(STORAGE_TYPES_TO_CLEAR),
            }
        )
        return {
            "hostname": host,
            "port": port,
            "timeout_s": self.config.hard_timeout_s,
            "settings": settings,
        }

    def _attempt(self, target: MeasurementTarget, cache_enabled: bool) -> MetricSample:
        if not self.lifecycle.is_running():
            raise NotRunning(f"Browser is not running (state: {self.lifecycle.state.value})")

        options = self.build_options(cache_enabled)
        try:
            result = self.backend.run(target.url, options)
        except MeasurementFailure:
            raise
        except Exception as e:
            raise MeasurementFailure(f"Backend error: {e}") from e
        return extract_sample(result)

    def measure(self, target: MeasurementTarget, cache_enabled: bool) -> MetricSample:
        """
        Measure a target, retrying up to max_retries times.

        Raises:
            NotRunning: If the browser is not running when an attempt begins
            MeasurementFailure: Once max_retries + 1 attempts have failed
            ProcessStartFailure: If a recovery restart fails
        """
        max_retries = self.config.max_retries
        attempt = 0
        while True:
            try:
                sample = self._attempt(target, cache_enabled)
                logger.info("Measured %s (cache %s)", target.name, "on" if cache_enabled else "off")
                return sample
            except MeasurementFailure as e:
                if attempt >= max_retries:
                    raise MeasurementFailure(
                        f"{target.name}: giving up after {attempt + 1} attempt(s): {e}",
                        attempts=attempt + 1,
                    ) from e
                attempt += 1
                logger.warning("Measurement of %s failed: %s; retry %d/%d", target.name, e, attempt, max_retries)

            self.lifecycle.restart()
            self._sleep(self.config.retry_backoff_s)
