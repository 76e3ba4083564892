#!/usr/bin/env python3
"""
Measurement backend for the page-load benchmarking tool.

Provides an abstract MeasurementBackend and a concrete implementation that
drives the Lighthouse CLI against an already-running browser (--port), plus
the extraction of the five tracked metrics from a Lighthouse result.
"""

import json
import logging
import os
import subprocess
import tempfile
from abc import ABC, abstractmethod
from typing import Any, Dict, List

from core.exceptions import MalformedResult, MeasurementFailure, MeasurementTimeout
from models.metrics import MetricSample

logger = logging.getLogger("pageload.lighthouse")

# Lighthouse audit id for each tracked metric
AUDIT_IDS = {
    "fcp": "first-contentful-paint",
    "lcp": "largest-contentful-paint",
    "tbt": "total-blocking-time",
    "cls": "cumulative-layout-shift",
    "si": "speed-index",
}

# Browser storage wiped before a cold (cache-disabled) attempt
STORAGE_TYPES_TO_CLEAR = (
    "appcache",
    "cookies",
    "fileSystems",
    "indexedDB",
    "localStorage",
    "shader_cache",
    "websql",
    "service_workers",
    "cache_storage",
)


class MeasurementBackend(ABC):
    """
    Abstract page-load measurement backend.

    Options passed to run() always contain:
        hostname, port: DevTools endpoint of the running browser
        timeout_s: hard bound on the whole invocation
        settings: backend settings (storage flags, emulation, throttling)
    """

    @abstractmethod
    def run(self, url: str, options: Dict[str, Any]) -> Dict[str, Any]:
        """
        Measure one page load.

        Returns:
            Raw result dictionary (Lighthouse result shape)

        Raises:
            MeasurementFailure: On any backend error or timeout
        """
        pass


class LighthouseCLIBackend(MeasurementBackend):
    """Runs the `lighthouse` command line tool and parses its JSON output."""

    def __init__(self, lighthouse_bin: str = "lighthouse"):
        self.lighthouse_bin = lighthouse_bin

    def build_command(self, url: str, options: Dict[str, Any], config_path: str) -> List[str]:
        return [
            self.lighthouse_bin,
            url,
            f"--port={options['port']}",
            f"--hostname={options.get('hostname', '127.0.0.1')}",
            f"--config-path={config_path}",
            "--output=json",
            "--output-path=stdout",
            "--quiet",
        ]

    def write_config(self, options: Dict[str, Any]) -> str:
        """Write a Lighthouse config file carrying the settings; returns its path."""
        config = {"extends": "lighthouse:default", "settings": options.get("settings", {})}
        fd, path = tempfile.mkstemp(prefix="pageload-lh-", suffix=".json")
        with os.fdopen(fd, "w") as f:
            json.dump(config, f)
        return path

    def run(self, url: str, options: Dict[str, Any]) -> Dict[str, Any]:
        config_path = self.write_config(options)
        cmd = self.build_command(url, options, config_path)
        timeout = options.get("timeout_s")
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
        except subprocess.TimeoutExpired as e:
            raise MeasurementTimeout(f"Lighthouse did not finish within {timeout}s") from e
        except OSError as e:
            raise MeasurementFailure(f"Could not run {self.lighthouse_bin}: {e}") from e
        finally:
            os.unlink(config_path)

        if result.returncode != 0:
            stderr_tail = (result.stderr or "").strip().splitlines()[-3:]
            raise MeasurementFailure(
                f"Lighthouse exited with code {result.returncode}: {' | '.join(stderr_tail)}"
            )

        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise MalformedResult(f"Lighthouse output is not valid JSON: {e}") from e


def extract_sample(result: Dict[str, Any]) -> MetricSample:
    """
    Extract the five tracked metrics from a Lighthouse result.

    Accepts either the bare result or a wrapper with an "lhr" key.

    Raises:
        MalformedResult: If audits or any metric value are missing or invalid
    """
    if not isinstance(result, dict):
        raise MalformedResult("Result is not a mapping")
    lhr = result.get("lhr", result)
    audits = lhr.get("audits") if isinstance(lhr, dict) else None
    if not isinstance(audits, dict):
        raise MalformedResult("Result has no audits")

    values = {}
    for name, audit_id in AUDIT_IDS.items():
        audit = audits.get(audit_id)
        value = audit.get("numericValue") if isinstance(audit, dict) else None
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value != value or value < 0:
            raise MalformedResult(f"Audit '{audit_id}' has no valid numericValue")
        values[name] = float(value)

    if values["si"] == 0:
        logger.warning("Speed Index is 0; speed-index audit: %s", audits.get(AUDIT_IDS["si"]))

    return MetricSample(**values)
