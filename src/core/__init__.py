"""
Core measurement engine for the page-load benchmarking tool.

Contains:
- config: Immutable campaign configuration
- exceptions: Error taxonomy
- aggregator: Batch averaging and statistics
- lifecycle: Browser process ownership (start/stop/restart)
- executor: Single measurement with bounded retries
- coordinator: Cold/warm batch sequencing
- campaign: Campaign driver

Only the modules without infrastructure dependencies are re-exported here;
import lifecycle, executor, coordinator and campaign from their modules.
"""

from .exceptions import (
    PageLoadBenchError,
    ConfigError,
    ProcessStartFailure,
    ProcessStopFailure,
    InvalidTransition,
    NotRunning,
    MeasurementFailure,
    MeasurementTimeout,
    MalformedResult,
    TargetAborted,
)
from .config import CampaignConfig, BrowserConfig, MeasurementConfig, RestartGranularity
from .aggregator import average_samples, describe_samples, compare_regimes
