"""
Artifact management module for the page-load benchmarking tool.

This module handles the creation, writing, and reading of campaign artifacts,
all stored under <output_dir>/<campaign_id>/:
- run.json: metadata about the campaign run (git commit, config hash, config)
- results.json: every SiteResult with per-run samples and averages
- samples.csv: per-run detail rows followed by per-site average rows
"""

import csv
import hashlib
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import git

from models.metrics import CacheRegime, CampaignResult, MetricSample

CSV_HEADER = ["site", "url", "regime", "run", "fcp_ms", "lcp_ms", "tbt_ms", "tbt_s", "cls", "si_ms"]


def get_git_commit() -> Optional[str]:
    """Get the current git commit hash, or None outside a repository."""
    try:
        repo = git.Repo(search_parent_directories=True)
        return repo.head.commit.hexsha
    except (git.InvalidGitRepositoryError, git.NoSuchPathError, ValueError):
        return None


def calculate_config_hash(config_data: Dict[str, Any]) -> str:
    """Calculate SHA256 hash of the campaign configuration."""
    config_str = json.dumps(config_data, sort_keys=True)
    return hashlib.sha256(config_str.encode()).hexdigest()


def ensure_results_dir(campaign_id: str, output_dir: str = "results") -> Path:
    """Ensure the results directory exists for a campaign."""
    results_dir = Path(output_dir) / campaign_id
    results_dir.mkdir(parents=True, exist_ok=True)
    return results_dir


def write_run_json(
    campaign: CampaignResult,
    config_data: Dict[str, Any],
    output_dir: str = "results",
) -> Path:
    """
    Write run.json artifact with campaign metadata.

    Args:
        campaign: Finished (or interrupted) campaign result
        config_data: Plain-data view of the campaign configuration
        output_dir: Root directory for campaign artifacts

    Returns:
        Path to the written run.json file
    """
    results_dir = ensure_results_dir(campaign.campaign_id, output_dir)

    run_data = {
        "campaign_id": campaign.campaign_id,
        "name": campaign.name,
        "started_at": campaign.started_at.isoformat(),
        "finished_at": campaign.finished_at.isoformat() if campaign.finished_at else None,
        "elapsed_s": campaign.elapsed_s,
        "git_commit": get_git_commit(),
        "config_hash": calculate_config_hash(config_data),
        "config": config_data,
        "targets": len(campaign.sites),
        "failed_targets": [site.target.name for site in campaign.failed_sites],
    }

    run_file = results_dir / "run.json"
    with open(run_file, "w") as f:
        json.dump(run_data, f, indent=2)

    return run_file


def write_results_json(campaign: CampaignResult, output_dir: str = "results") -> Path:
    """Write results.json with every site result."""
    results_dir = ensure_results_dir(campaign.campaign_id, output_dir)
    results_file = results_dir / "results.json"
    with open(results_file, "w") as f:
        json.dump(campaign.to_dict(), f, indent=2)
    return results_file


def _csv_row(site_name: str, url: str, regime: CacheRegime, run: Any, sample: MetricSample) -> List[Any]:
    return [
        site_name,
        url,
        regime.value,
        run,
        sample.fcp,
        sample.lcp,
        sample.tbt,
        round(sample.tbt / 1000, 3),
        f"{sample.cls:.3f}",
        sample.si,
    ]


def write_samples_csv(campaign: CampaignResult, output_dir: str = "results") -> Path:
    """
    Write samples.csv: every run of every site, then one average row per
    site and regime (run column "avg").
    """
    results_dir = ensure_results_dir(campaign.campaign_id, output_dir)
    csv_file = results_dir / "samples.csv"

    with open(csv_file, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(CSV_HEADER)
        for site in campaign.sites:
            for regime in (CacheRegime.COLD, CacheRegime.WARM):
                for index, sample in enumerate(site.batch(regime).samples, 1):
                    writer.writerow(_csv_row(site.target.name, site.target.url, regime, index, sample))
        for site in campaign.sites:
            for regime in (CacheRegime.COLD, CacheRegime.WARM):
                writer.writerow(
                    _csv_row(site.target.name, site.target.url, regime, "avg", site.batch(regime).average)
                )

    return csv_file


def write_campaign_artifacts(
    campaign: CampaignResult,
    config_data: Dict[str, Any],
    output_dir: str = "results",
) -> Dict[str, Path]:
    """Write run.json, results.json and samples.csv for a campaign."""
    return {
        "run": write_run_json(campaign, config_data, output_dir),
        "results": write_results_json(campaign, output_dir),
        "samples": write_samples_csv(campaign, output_dir),
    }


def read_run_json(campaign_id: str, output_dir: str = "results") -> Optional[Dict[str, Any]]:
    """
    Read run.json artifact for a campaign.

    Returns:
        Dictionary with run data, or None if not found
    """
    run_file = Path(output_dir) / campaign_id / "run.json"
    if not run_file.exists():
        return None

    with open(run_file) as f:
        return json.load(f)


def read_results_json(campaign_id: str, output_dir: str = "results") -> Optional[CampaignResult]:
    """
    Read results.json back into a CampaignResult.

    Returns:
        CampaignResult, or None if not found
    """
    results_file = Path(output_dir) / campaign_id / "results.json"
    if not results_file.exists():
        return None

    with open(results_file) as f:
        return CampaignResult.from_dict(json.load(f))


def list_campaigns(output_dir: str = "results") -> List[str]:
    """Campaign ids with a results.json under output_dir, newest first."""
    root = Path(output_dir)
    if not root.exists():
        return []
    found = [p.parent for p in root.glob("*/results.json")]
    found.sort(key=lambda p: p.stat().st_mtime, reverse=True)
    return [p.name for p in found]
