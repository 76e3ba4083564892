#!/usr/bin/env python3
"""
Campaign configuration for the page-load benchmarking tool.

A campaign recipe is a YAML file with four sections (campaign, browser,
measurement, targets). It is parsed once into frozen dataclasses which are
handed to each component at construction; nothing reads configuration from
module globals at run time.

Example recipe:

    campaign:
      name: shop-frontpage
    measurement:
      count: 3
      restart_granularity: perAttempt
    targets:
      - name: Main
        url: https://example.com/
"""

import copy
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple
from urllib.parse import urlparse

import yaml

from core.exceptions import ConfigError
from models.metrics import MeasurementTarget


DEFAULT_CHROME_FLAGS = (
    "--headless",
    "--disable-gpu",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-extensions",
    "--disable-default-apps",
    "--no-first-run",
    "--disable-background-timer-throttling",
)

# Desktop emulation with simulated throttling, restricted to the five tracked audits
DEFAULT_LIGHTHOUSE_SETTINGS: Dict[str, Any] = {
    "onlyCategories": ["performance"],
    "networkQuietThresholdMs": 1000,
    "cpuQuietThresholdMs": 1000,
    "formFactor": "desktop",
    "throttlingMethod": "simulate",
    "throttling": {
        "rttMs": 40,
        "throughputKbps": 10240,
        "cpuSlowdownMultiplier": 1,
        "requestLatencyMs": 0,
        "downloadThroughputKbps": 0,
        "uploadThroughputKbps": 0,
    },
    "screenEmulation": {
        "mobile": False,
        "width": 1350,
        "height": 940,
        "deviceScaleFactor": 1,
        "disabled": False,
    },
    "emulatedUserAgent": False,
    "onlyAudits": [
        "first-contentful-paint",
        "largest-contentful-paint",
        "total-blocking-time",
        "cumulative-layout-shift",
        "speed-index",
    ],
}


def freeze_settings(value: Any) -> Any:
    """Read-only deep copy: mappings become MappingProxyType, lists become tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({key: freeze_settings(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze_settings(item) for item in value)
    return value


def thaw_settings(value: Any) -> Any:
    """Plain, mutable deep copy of frozen settings (dicts and lists)."""
    if isinstance(value, Mapping):
        return {key: thaw_settings(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return [thaw_settings(item) for item in value]
    return value


class RestartGranularity(Enum):
    """How often the browser is restarted inside one target's measurements."""

    PER_REGIME = "perRegime"    # only between the cold and warm batch
    PER_ATTEMPT = "perAttempt"  # additionally before every attempt after a batch's first


@dataclass(frozen=True)
class BrowserConfig:
    """Browser process settings (all durations in seconds)."""

    port: int = 9222
    host: str = "127.0.0.1"
    chrome_path: Optional[str] = None
    flags: Tuple[str, ...] = DEFAULT_CHROME_FLAGS
    user_data_dir: Optional[str] = None
    start_settle_s: float = 2.0
    post_launch_s: float = 2.0
    restart_settle_s: float = 5.0
    stop_timeout_s: float = 5.0
    connection_poll_interval_s: float = 0.5
    max_connection_retries: int = 50

    @property
    def endpoint(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class MeasurementConfig:
    """Measurement settings (all durations in seconds)."""

    count: int = 2
    max_retries: int = 2
    timeout_s: float = 30.0
    hard_timeout_s: float = 120.0
    inter_measurement_delay_s: float = 2.0
    retry_backoff_s: float = 1.0
    regime_transition_delay_s: float = 1.0
    restart_granularity: RestartGranularity = RestartGranularity.PER_REGIME
    lighthouse_bin: str = "lighthouse"
    settings: Mapping[str, Any] = field(default_factory=lambda: freeze_settings(DEFAULT_LIGHTHOUSE_SETTINGS))

    def __post_init__(self):
        object.__setattr__(self, "settings", freeze_settings(self.settings))

    def settings_dict(self) -> Dict[str, Any]:
        """Mutable copy of the backend settings."""
        return thaw_settings(self.settings)


@dataclass(frozen=True)
class CampaignConfig:
    """Complete, validated campaign recipe."""

    name: str = "pageload"
    targets: Tuple[MeasurementTarget, ...] = ()
    browser: BrowserConfig = field(default_factory=BrowserConfig)
    measurement: MeasurementConfig = field(default_factory=MeasurementConfig)
    output_dir: str = "results"
    restart_between_targets: bool = True
    target_transition_delay_s: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        """Plain-data view used for run.json and the config hash."""
        return {
            "campaign": {
                "name": self.name,
                "output_dir": self.output_dir,
                "restart_between_targets": self.restart_between_targets,
                "target_transition_delay_s": self.target_transition_delay_s,
            },
            "browser": {
                "port": self.browser.port,
                "host": self.browser.host,
                "chrome_path": self.browser.chrome_path,
                "flags": list(self.browser.flags),
                "user_data_dir": self.browser.user_data_dir,
                "start_settle_s": self.browser.start_settle_s,
                "post_launch_s": self.browser.post_launch_s,
                "restart_settle_s": self.browser.restart_settle_s,
                "stop_timeout_s": self.browser.stop_timeout_s,
                "connection_poll_interval_s": self.browser.connection_poll_interval_s,
                "max_connection_retries": self.browser.max_connection_retries,
            },
            "measurement": {
                "count": self.measurement.count,
                "max_retries": self.measurement.max_retries,
                "timeout_s": self.measurement.timeout_s,
                "hard_timeout_s": self.measurement.hard_timeout_s,
                "inter_measurement_delay_s": self.measurement.inter_measurement_delay_s,
                "retry_backoff_s": self.measurement.retry_backoff_s,
                "regime_transition_delay_s": self.measurement.regime_transition_delay_s,
                "restart_granularity": self.measurement.restart_granularity.value,
                "lighthouse_bin": self.measurement.lighthouse_bin,
                "settings": self.measurement.settings_dict(),
            },
            "targets": [target.to_dict() for target in self.targets],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], env: Optional[Dict[str, str]] = None) -> "CampaignConfig":
        """
        Build and validate a configuration from parsed recipe data.

        Args:
            data: Parsed YAML content
            env: Environment used for binary overrides (defaults to os.environ)

        Returns:
            Validated CampaignConfig

        Raises:
            ConfigError: If the recipe is malformed or fails validation
        """
        if not isinstance(data, dict):
            raise ConfigError("Recipe must be a mapping")
        env = os.environ if env is None else env

        campaign_data = _section(data, "campaign")
        browser_data = _section(data, "browser")
        measurement_data = _section(data, "measurement")

        try:
            browser = BrowserConfig(
                port=int(browser_data.get("port", 9222)),
                host=str(browser_data.get("host", "127.0.0.1")),
                chrome_path=env.get("CHROME_PATH") or browser_data.get("chrome_path"),
                flags=_parse_flags(browser_data.get("flags", DEFAULT_CHROME_FLAGS)),
                user_data_dir=browser_data.get("user_data_dir"),
                start_settle_s=float(browser_data.get("start_settle_s", 2.0)),
                post_launch_s=float(browser_data.get("post_launch_s", 2.0)),
                restart_settle_s=float(browser_data.get("restart_settle_s", 5.0)),
                stop_timeout_s=float(browser_data.get("stop_timeout_s", 5.0)),
                connection_poll_interval_s=float(browser_data.get("connection_poll_interval_s", 0.5)),
                max_connection_retries=int(browser_data.get("max_connection_retries", 50)),
            )

            settings = copy.deepcopy(DEFAULT_LIGHTHOUSE_SETTINGS)
            settings.update(measurement_data.get("settings") or {})

            measurement = MeasurementConfig(
                count=int(measurement_data.get("count", 2)),
                max_retries=int(measurement_data.get("max_retries", 2)),
                timeout_s=float(measurement_data.get("timeout_s", 30.0)),
                hard_timeout_s=float(measurement_data.get("hard_timeout_s", 120.0)),
                inter_measurement_delay_s=float(measurement_data.get("inter_measurement_delay_s", 2.0)),
                retry_backoff_s=float(measurement_data.get("retry_backoff_s", 1.0)),
                regime_transition_delay_s=float(measurement_data.get("regime_transition_delay_s", 1.0)),
                restart_granularity=parse_granularity(
                    measurement_data.get("restart_granularity", RestartGranularity.PER_REGIME.value)
                ),
                lighthouse_bin=env.get("LIGHTHOUSE_BIN") or measurement_data.get("lighthouse_bin", "lighthouse"),
                settings=settings,
            )

            targets = tuple(
                MeasurementTarget(name=str(t.get("name", "")).strip(), url=str(t.get("url", "")).strip())
                for t in (data.get("targets") or [])
                if isinstance(t, dict)
            )

            config = cls(
                name=str(campaign_data.get("name", "pageload")),
                targets=targets,
                browser=browser,
                measurement=measurement,
                output_dir=str(campaign_data.get("output_dir", "results")),
                restart_between_targets=bool(campaign_data.get("restart_between_targets", True)),
                target_transition_delay_s=float(campaign_data.get("target_transition_delay_s", 1.0)),
            )
        except ConfigError:
            raise
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid recipe value: {e}") from e

        validate_config(config)
        return config

    @classmethod
    def from_yaml(cls, path: Path, env: Optional[Dict[str, str]] = None) -> "CampaignConfig":
        """Load a recipe file. Raises ConfigError if it cannot be read or parsed."""
        path = Path(path)
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f)
        except FileNotFoundError as e:
            raise ConfigError(f"Recipe file not found: {path}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
        return cls.from_dict(data or {}, env=env)


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"Section '{name}' must be a mapping")
    return section


def _parse_flags(value: Any) -> Tuple[str, ...]:
    if not isinstance(value, (list, tuple)) or not all(isinstance(flag, str) for flag in value):
        raise ConfigError(f"browser.flags must be a list of strings, got {value!r}")
    return tuple(value)


def parse_granularity(value: Any) -> RestartGranularity:
    if isinstance(value, RestartGranularity):
        return value
    for granularity in RestartGranularity:
        if str(value).lower() == granularity.value.lower():
            return granularity
    choices = ", ".join(g.value for g in RestartGranularity)
    raise ConfigError(f"Unknown restart granularity '{value}' (expected one of: {choices})")


def is_valid_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def validate_config(config: CampaignConfig) -> None:
    """
    Validate a campaign configuration.

    Raises:
        ConfigError: On the first problem found
    """
    if not config.targets:
        raise ConfigError("No measurement targets configured")

    for target in config.targets:
        if not target.name or not is_valid_url(target.url):
            raise ConfigError(f"Invalid target: name={target.name!r} url={target.url!r}")

    measurement = config.measurement
    if measurement.count < 1:
        raise ConfigError("measurement.count must be at least 1")
    if measurement.max_retries < 0:
        raise ConfigError("measurement.max_retries must be non-negative")
    if measurement.timeout_s <= 0 or measurement.hard_timeout_s <= 0:
        raise ConfigError("measurement timeouts must be positive")

    if not (0 < config.browser.port < 65536):
        raise ConfigError(f"browser.port out of range: {config.browser.port}")
    if config.browser.max_connection_retries < 1:
        raise ConfigError("browser.max_connection_retries must be at least 1")

    delays = {
        "browser.start_settle_s": config.browser.start_settle_s,
        "browser.post_launch_s": config.browser.post_launch_s,
        "browser.restart_settle_s": config.browser.restart_settle_s,
        "browser.stop_timeout_s": config.browser.stop_timeout_s,
        "browser.connection_poll_interval_s": config.browser.connection_poll_interval_s,
        "measurement.inter_measurement_delay_s": measurement.inter_measurement_delay_s,
        "measurement.retry_backoff_s": measurement.retry_backoff_s,
        "measurement.regime_transition_delay_s": measurement.regime_transition_delay_s,
        "campaign.target_transition_delay_s": config.target_transition_delay_s,
    }
    for name, value in delays.items():
        if value < 0:
            raise ConfigError(f"{name} must be non-negative")
