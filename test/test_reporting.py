"""
Tests for campaign artifacts, console/Markdown reports and plots.
"""

import csv
import json
from datetime import datetime, timedelta
from unittest.mock import patch

import git
import pytest

from core.aggregator import average_samples
from models.metrics import CacheRegime, CampaignResult, MeasurementBatch, MeasurementTarget, MetricSample, SiteResult
from reporting.artifacts import (
    CSV_HEADER,
    get_git_commit,
    list_campaigns,
    read_results_json,
    read_run_json,
    write_campaign_artifacts,
)
from reporting.plotting import generate_plots, slugify
from reporting.reporter import (
    format_console_report,
    format_metrics_line,
    generate_campaign_report,
    generate_findings,
    generate_markdown_report,
    write_report_files,
)


def make_batch(regime, samples):
    return MeasurementBatch(regime=regime, samples=tuple(samples), average=average_samples(samples))


def make_site(name, cold, warm, error=None):
    return SiteResult(
        target=MeasurementTarget(name=name, url=f"https://example.com/{name.lower()}"),
        cold=make_batch(CacheRegime.COLD, cold),
        warm=make_batch(CacheRegime.WARM, warm),
        error=error,
    )


@pytest.fixture
def campaign():
    fast = MetricSample(fcp=600, lcp=900, tbt=20, cls=0.001, si=800)
    slow = MetricSample(fcp=1200, lcp=2400, tbt=350, cls=0.12, si=2100)
    started = datetime(2026, 3, 1, 12, 0, 0)
    return CampaignResult(
        campaign_id="demo_20260301_120000_abc123",
        name="demo",
        started_at=started,
        finished_at=started + timedelta(seconds=95),
        sites=[
            make_site("Main", [slow, slow], [fast, fast]),
            make_site("Blog", [slow, MetricSample.sentinel()], [MetricSample.sentinel()] * 2,
                      error="Blog: browser restart failed: launch failed"),
        ],
    )


def test_format_metrics_line():
    sample = MetricSample(fcp=812, lcp=1650, tbt=1234, cls=0.0042, si=1201)

    assert format_metrics_line(sample) == "FCP: 812ms, LCP: 1650ms, TBT: 1.234s, CLS: 0.004, SI: 1201ms"


def test_console_report(campaign):
    report = format_console_report(campaign.sites)

    assert "1. Main" in report
    assert "URL: https://example.com/main" in report
    assert "cache disabled:" in report
    assert "cache enabled (2 failed run(s)):" in report
    assert "! Blog: browser restart failed" in report


def test_findings(campaign):
    findings = generate_findings(campaign.sites)
    by_title = {f["title"]: f["type"] for f in findings}

    assert by_title["Main: strong cache benefit"] == "success"
    assert by_title["Blog: target aborted"] == "error"


def test_findings_flag_slower_warm_regime():
    cold = MetricSample(fcp=600, lcp=900, tbt=20, cls=0.001, si=800)
    warm = MetricSample(fcp=600, lcp=1200, tbt=20, cls=0.001, si=800)

    findings = generate_findings([make_site("Main", [cold], [warm])])

    assert [f["title"] for f in findings] == ["Main: cache did not help"]
    assert "LCP" in findings[0]["description"]


def test_markdown_report(campaign):
    markdown = generate_markdown_report(campaign, {"git_commit": "0123456789abcdef"})

    assert markdown.startswith("# Page Load Report: demo")
    assert "**Commit:** `0123456789ab`" in markdown
    assert "## Main" in markdown
    assert "> Aborted: Blog: browser restart failed" in markdown
    assert "| Largest Contentful Paint | 2400 ms | 900 ms | -1500 ms | +62.5% |" in markdown
    assert "| cache disabled | 2 (failed) |" in markdown


def test_write_campaign_artifacts(campaign, tmp_path):
    files = write_campaign_artifacts(campaign, {"campaign": {"name": "demo"}}, str(tmp_path))

    run_data = read_run_json(campaign.campaign_id, str(tmp_path))
    assert run_data["name"] == "demo"
    assert run_data["elapsed_s"] == 95.0
    assert run_data["failed_targets"] == ["Blog"]
    assert len(run_data["config_hash"]) == 64

    results = json.loads(files["results"].read_text())
    assert results["sites"][1]["warm"]["failed_attempts"] == 2

    with open(files["samples"], newline="") as f:
        rows = list(csv.reader(f))
    assert rows[0] == CSV_HEADER
    # 2 sites x 2 regimes x 2 runs, then one average row per site and regime
    assert len(rows) == 1 + 8 + 4
    assert rows[1][:4] == ["Main", "https://example.com/main", "cold", "1"]
    assert rows[1][7] == "0.35"
    assert [row[3] for row in rows[9:]] == ["avg"] * 4


def test_results_json_round_trip(campaign, tmp_path):
    write_campaign_artifacts(campaign, {}, str(tmp_path))

    loaded = read_results_json(campaign.campaign_id, str(tmp_path))

    assert loaded.sites == campaign.sites
    assert loaded.started_at == campaign.started_at
    assert loaded.elapsed_s == campaign.elapsed_s


def test_missing_artifacts_read_as_none(tmp_path):
    assert read_run_json("nope", str(tmp_path)) is None
    assert read_results_json("nope", str(tmp_path)) is None


def test_list_campaigns(campaign, tmp_path):
    assert list_campaigns(str(tmp_path / "empty")) == []

    write_campaign_artifacts(campaign, {}, str(tmp_path))

    assert list_campaigns(str(tmp_path)) == [campaign.campaign_id]


def test_git_commit_outside_repository():
    with patch("reporting.artifacts.git.Repo", side_effect=git.InvalidGitRepositoryError("/tmp")):
        assert get_git_commit() is None


def test_write_report_files_without_plots(campaign, tmp_path):
    files = write_report_files(campaign, str(tmp_path), plots=False)

    assert files["markdown"].read_text().startswith("# Page Load Report")
    report = json.loads(files["json"].read_text())
    assert report["sites"][0]["cold"]["count"] == 2
    assert report["sites"][0]["comparison"]["lcp"]["improvement_pct"] == 62.5
    assert files["plots"] == {}


def test_generate_campaign_report_from_saved_results(campaign, tmp_path):
    write_campaign_artifacts(campaign, {}, str(tmp_path))

    files = generate_campaign_report(campaign.campaign_id, str(tmp_path), plots=False)

    assert files["markdown"].exists()


def test_generate_campaign_report_without_results(tmp_path):
    with pytest.raises(FileNotFoundError):
        generate_campaign_report("missing", str(tmp_path))


def test_generate_plots(campaign, tmp_path):
    plots = generate_plots(campaign, tmp_path)

    assert set(plots) == {"overview_lcp", "01_main_regimes", "01_main_runs", "02_blog_regimes", "02_blog_runs"}
    assert all(path.exists() and path.stat().st_size > 0 for path in plots.values())


def test_slugify():
    assert slugify("Shop / Checkout (EU)") == "shop_checkout_eu"
    assert slugify("***") == "site"
