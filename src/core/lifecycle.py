"""
Lifecycle management for the measured browser process.

This module is the single owner of the browser process used by a campaign.
Every start, stop and restart goes through ProcessLifecycleManager, which
keeps the transitions serialized:

    STOPPED -> STARTING -> RUNNING -> STOPPING -> STOPPED

Other components receive the manager by reference and never touch the
process handle directly.
"""

import logging
import time
from enum import Enum
from typing import Callable, Optional

from core.config import BrowserConfig
from core.exceptions import InvalidTransition, ProcessStartFailure, ProcessStopFailure
from infra.health import check_devtools_health

logger = logging.getLogger("pageload.lifecycle")


class ProcessState(Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


class ProcessLifecycleManager:
    """
    Owns the single browser process of a campaign.

    Args:
        launcher: Object providing launch(flags, port, host) -> handle and
            terminate_by_role(); the handle exposes host, port and kill(timeout)
        config: Browser configuration (flags, port, settle delays)
        sleep: Sleep function (injectable for tests)
        health_checker: Callable (host, port) -> bool used by health_check()
    """

    def __init__(
        self,
        launcher,
        config: BrowserConfig,
        sleep: Callable[[float], None] = time.sleep,
        health_checker: Callable[[str, int], bool] = check_devtools_health,
    ):
        self.launcher = launcher
        self.config = config
        self._sleep = sleep
        self._health_checker = health_checker
        self._handle = None
        self._state = ProcessState.STOPPED

    @property
    def state(self) -> ProcessState:
        return self._state

    def start(self) -> None:
        """
        Clean up stray browsers, launch a new one and wait for it to settle.

        Raises:
            InvalidTransition: If the manager is not STOPPED
            ProcessStartFailure: If the launch fails (not retried here)
        """
        if self._state is not ProcessState.STOPPED:
            raise InvalidTransition(f"start() requested while {self._state.value}")

        self._state = ProcessState.STARTING
        logger.info("Starting browser on port %d", self.config.port)
        try:
            self.launcher.terminate_by_role()
            self._sleep(self.config.start_settle_s)
            handle = self.launcher.launch(self.config.flags, self.config.port, self.config.host)
        except ProcessStartFailure:
            self._state = ProcessState.STOPPED
            raise
        except Exception as e:
            self._state = ProcessState.STOPPED
            raise ProcessStartFailure(f"Browser launch failed: {e}") from e

        self._handle = handle
        self._sleep(self.config.post_launch_s)
        self._state = ProcessState.RUNNING
        logger.info("Browser running (endpoint %s:%d)", handle.host, handle.port)

    def stop(self) -> None:
        """
        Stop the browser. Idempotent; always ends in STOPPED.

        A failed graceful stop is logged and followed by forced same-role
        termination; it is never raised.
        """
        handle = self._handle
        if handle is None:
            self._state = ProcessState.STOPPED
            return

        self._state = ProcessState.STOPPING
        logger.info("Stopping browser")
        try:
            handle.kill(timeout=self.config.stop_timeout_s)
        except Exception as e:
            failure = ProcessStopFailure(f"Graceful stop failed: {e}")
            logger.warning("%s; forcing termination", failure)
            try:
                self.launcher.terminate_by_role()
            except Exception as cleanup_error:
                logger.warning("Forced termination failed: %s", cleanup_error)
        finally:
            self._handle = None
            self._state = ProcessState.STOPPED

    def restart(self) -> None:
        """Stop, wait for the restart settle delay, then start."""
        logger.info("Restarting browser")
        self.stop()
        self._sleep(self.config.restart_settle_s)
        self.start()

    def health_check(self) -> bool:
        """Check the DevTools endpoint. Never raises."""
        if not self.is_running():
            return False
        try:
            return bool(self._health_checker(self._handle.host, self._handle.port))
        except Exception as e:
            logger.debug("Health check raised: %s", e)
            return False

    def is_running(self) -> bool:
        return self._state is ProcessState.RUNNING and self._handle is not None

    def endpoint(self) -> Optional[tuple]:
        """(host, port) of the running browser, or None."""
        if not self.is_running():
            return None
        return (self._handle.host, self._handle.port)

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
