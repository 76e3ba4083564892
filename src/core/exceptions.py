"""Project-specific exception types for the measurement engine."""

from typing import Optional


class PageLoadBenchError(Exception):
    """Base class for every error raised by this project."""
    pass


class ConfigError(PageLoadBenchError, ValueError):
    """Campaign recipe failed validation."""
    pass


class ProcessStartFailure(PageLoadBenchError):
    """The browser process could not be launched. Not retried by the lifecycle layer."""
    pass


class ProcessStopFailure(PageLoadBenchError):
    """Graceful termination failed. Recovered by forced cleanup, never propagated."""
    pass


class InvalidTransition(PageLoadBenchError):
    """A lifecycle operation was requested from a state that does not allow it."""
    pass


class NotRunning(PageLoadBenchError):
    """A measurement was requested while no browser process is running."""
    pass


class MeasurementFailure(PageLoadBenchError):
    """A measurement attempt failed (backend error, malformed result or timeout)."""

    def __init__(self, message: str, attempts: int = 1):
        super().__init__(message)
        self.attempts = attempts


class MeasurementTimeout(MeasurementFailure):
    pass


class MalformedResult(MeasurementFailure):
    pass


class TargetAborted(PageLoadBenchError):
    """
    A mandatory restart failed while measuring a target.

    Carries the batches completed before the failure so the campaign can
    keep them.
    """

    def __init__(self, message: str, cold=None, warm=None):
        super().__init__(message)
        self.cold = cold
        self.warm = warm

    @property
    def reason(self) -> Optional[str]:
        return str(self.__cause__) if self.__cause__ else None
