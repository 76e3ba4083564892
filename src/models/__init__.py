"""
Data models for the page-load benchmarking tool.

Contains:
- metrics: samples, targets, batches and site/campaign results
"""

from .metrics import (
    METRIC_FIELDS,
    TIME_METRICS,
    METRIC_LABELS,
    MetricSample,
    MeasurementTarget,
    CacheRegime,
    MeasurementBatch,
    SiteResult,
    CampaignResult,
)
