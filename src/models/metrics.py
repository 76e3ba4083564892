#!/usr/bin/env python3
"""
Metric models for the page-load benchmarking tool.

This module defines the value objects that flow through a measurement
campaign: a single MetricSample, the MeasurementTarget it was taken
against, the MeasurementBatch gathered per cache regime, and the SiteResult
handed to the reporting layer.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

# Tracked metrics, in report order
METRIC_FIELDS = ("fcp", "lcp", "tbt", "cls", "si")

# Metrics measured in milliseconds (everything except layout shift)
TIME_METRICS = ("fcp", "lcp", "tbt", "si")

METRIC_LABELS = {
    "fcp": "First Contentful Paint",
    "lcp": "Largest Contentful Paint",
    "tbt": "Total Blocking Time",
    "cls": "Cumulative Layout Shift",
    "si": "Speed Index",
}


@dataclass(frozen=True)
class MetricSample:
    """
    One page-load measurement.

    Time fields are milliseconds; cls is a dimensionless layout-shift score.
    An all-zero sample is the sentinel recorded for an attempt whose retries
    were exhausted.
    """

    fcp: float = 0.0
    lcp: float = 0.0
    tbt: float = 0.0
    cls: float = 0.0
    si: float = 0.0

    def __post_init__(self):
        for name in METRIC_FIELDS:
            value = getattr(self, name)
            if value < 0:
                raise ValueError(f"{name} must be non-negative, got {value}")

    @classmethod
    def sentinel(cls) -> "MetricSample":
        """Return the all-zero placeholder sample."""
        return cls()

    @property
    def is_sentinel(self) -> bool:
        return all(getattr(self, name) == 0 for name in METRIC_FIELDS)

    def to_dict(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in METRIC_FIELDS}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MetricSample":
        return cls(**{name: data.get(name, 0) for name in METRIC_FIELDS})


@dataclass(frozen=True)
class MeasurementTarget:
    """A named URL to measure."""

    name: str
    url: str

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "url": self.url}

    def __str__(self) -> str:
        return f"{self.name} ({self.url})"


class CacheRegime(Enum):
    """Storage regime a batch is measured under."""

    COLD = "cold"  # persistent storage cleared before every attempt
    WARM = "warm"  # persistent storage preserved across attempts

    @property
    def cache_enabled(self) -> bool:
        return self is CacheRegime.WARM

    @property
    def label(self) -> str:
        return "cache enabled" if self.cache_enabled else "cache disabled"


@dataclass(frozen=True)
class MeasurementBatch:
    """
    Fixed-size, ordered samples for one (target, regime) pair.

    Samples keep attempt order; the average is computed over all of them,
    sentinels included.
    """

    regime: CacheRegime
    samples: Tuple[MetricSample, ...]
    average: MetricSample

    @property
    def count(self) -> int:
        return len(self.samples)

    @property
    def failed_attempts(self) -> int:
        return sum(1 for sample in self.samples if sample.is_sentinel)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "regime": self.regime.value,
            "cache_enabled": self.regime.cache_enabled,
            "average": self.average.to_dict(),
            "runs": [sample.to_dict() for sample in self.samples],
            "failed_attempts": self.failed_attempts,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MeasurementBatch":
        return cls(
            regime=CacheRegime(data["regime"]),
            samples=tuple(MetricSample.from_dict(run) for run in data.get("runs", [])),
            average=MetricSample.from_dict(data.get("average", {})),
        )


@dataclass(frozen=True)
class SiteResult:
    """A target with its cold and warm batches, as handed to the reporter."""

    target: MeasurementTarget
    cold: MeasurementBatch
    warm: MeasurementBatch
    error: Optional[str] = None  # set when the target was aborted

    @property
    def failed(self) -> bool:
        return self.error is not None

    def batch(self, regime: CacheRegime) -> MeasurementBatch:
        return self.warm if regime is CacheRegime.WARM else self.cold

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target": self.target.to_dict(),
            "cold": self.cold.to_dict(),
            "warm": self.warm.to_dict(),
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SiteResult":
        return cls(
            target=MeasurementTarget(**data["target"]),
            cold=MeasurementBatch.from_dict(data["cold"]),
            warm=MeasurementBatch.from_dict(data["warm"]),
            error=data.get("error"),
        )


@dataclass
class CampaignResult:
    """All site results of one campaign run plus timing information."""

    campaign_id: str
    name: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    sites: List[SiteResult] = field(default_factory=list)

    @property
    def elapsed_s(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    @property
    def failed_sites(self) -> List[SiteResult]:
        return [site for site in self.sites if site.failed]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "campaign_id": self.campaign_id,
            "name": self.name,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "elapsed_s": self.elapsed_s,
            "sites": [site.to_dict() for site in self.sites],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CampaignResult":
        finished = data.get("finished_at")
        return cls(
            campaign_id=data["campaign_id"],
            name=data.get("name", data["campaign_id"]),
            started_at=datetime.fromisoformat(data["started_at"]),
            finished_at=datetime.fromisoformat(finished) if finished else None,
            sites=[SiteResult.from_dict(site) for site in data.get("sites", [])],
        )
