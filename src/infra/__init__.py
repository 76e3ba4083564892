"""
Infrastructure and I/O for the page-load benchmarking tool.

Contains:
- launcher: Chrome process launch and stray-process cleanup
- lighthouse: Measurement backend (Lighthouse CLI)
- health: DevTools endpoint health checks
- logs: Logging setup
"""

from .launcher import BrowserHandle, ChromeLauncher, find_chrome_binary
from .lighthouse import (
    LighthouseCLIBackend,
    MeasurementBackend,
    STORAGE_TYPES_TO_CLEAR,
    extract_sample,
)
from .health import check_devtools_health, check_port_open, wait_for_devtools
from .logs import setup_logging
