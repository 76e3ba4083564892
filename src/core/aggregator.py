"""
Aggregator module for reducing measurement batches into summary metrics.

Rounding policy, applied to every batch of every result:
- time metrics (fcp, lcp, tbt, si) are rounded to the nearest integer
  millisecond, halves rounded up
- cls is rounded to 3 decimal places, halves rounded up

Sentinel (all-zero) samples are part of the batch and are averaged in like
any other sample.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Sequence

import numpy as np

from models.metrics import METRIC_FIELDS, TIME_METRICS, MetricSample

CLS_DECIMALS = 3


def round_half_up(value: float, decimals: int = 0) -> float:
    """Round a float the way a human would (0.5 goes up), using its shortest repr."""
    quantum = Decimal(1).scaleb(-decimals)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def round_metric(name: str, value: float):
    """Apply the rounding policy to one metric value."""
    if name in TIME_METRICS:
        return int(round_half_up(value))
    return round_half_up(value, CLS_DECIMALS)


def average_samples(samples: Sequence[MetricSample]) -> MetricSample:
    """
    Average a batch of samples per metric.

    Args:
        samples: Batch samples, sentinels included

    Returns:
        Rounded mean sample, or the sentinel sample for an empty batch
    """
    if not samples:
        return MetricSample.sentinel()

    count = len(samples)
    averaged = {}
    for name in METRIC_FIELDS:
        total = sum(getattr(sample, name) for sample in samples)
        averaged[name] = round_metric(name, total / count)
    return MetricSample(**averaged)


def describe_samples(samples: Sequence[MetricSample]) -> Dict[str, Any]:
    """
    Descriptive statistics per metric for a batch.

    Args:
        samples: Batch samples, sentinels included

    Returns:
        {"count", "failed_attempts", "metrics": {name: {mean, min, max, std, p50}}}
    """
    result: Dict[str, Any] = {
        "count": len(samples),
        "failed_attempts": sum(1 for sample in samples if sample.is_sentinel),
        "metrics": {},
    }

    for name in METRIC_FIELDS:
        if not samples:
            result["metrics"][name] = {"mean": 0.0, "min": 0.0, "max": 0.0, "std": 0.0, "p50": 0.0}
            continue
        values = np.array([getattr(sample, name) for sample in samples], dtype=float)
        decimals = CLS_DECIMALS if name == "cls" else 1
        result["metrics"][name] = {
            "mean": round(float(values.mean()), decimals),
            "min": round(float(values.min()), decimals),
            "max": round(float(values.max()), decimals),
            "std": round(float(values.std(ddof=1)), decimals) if len(values) > 1 else 0.0,
            "p50": round(float(np.percentile(values, 50)), decimals),
        }

    return result


def compare_regimes(cold: MetricSample, warm: MetricSample) -> Dict[str, Dict[str, Any]]:
    """
    Compare cold and warm averages per metric.

    improvement_pct is positive when the warm value is lower (better) than
    the cold one, and None when the cold value is zero.
    """
    comparison = {}
    for name in METRIC_FIELDS:
        cold_value = getattr(cold, name)
        warm_value = getattr(warm, name)
        delta = warm_value - cold_value
        improvement = None
        if cold_value:
            improvement = round((cold_value - warm_value) / cold_value * 100, 1)
        comparison[name] = {
            "cold": cold_value,
            "warm": warm_value,
            "delta": round_metric(name, delta),
            "improvement_pct": improvement,
        }
    return comparison


def find_regressions(comparison: Dict[str, Dict[str, Any]], threshold_pct: float = 5.0) -> List[str]:
    """Metrics where the warm regime is worse than cold by more than threshold_pct."""
    return [
        name
        for name, values in comparison.items()
        if values["improvement_pct"] is not None and values["improvement_pct"] < -threshold_pct
    ]
