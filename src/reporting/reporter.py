"""
Report generator module for creating campaign reports.

This module generates human-readable reports (console text, Markdown and
JSON) from campaign results, including per-regime statistics, cold/warm
comparison and findings.
"""

import json
from datetime import datetime
from typing import Any, Dict, List, Optional

from core.aggregator import compare_regimes, describe_samples, find_regressions
from models.metrics import METRIC_LABELS, CacheRegime, CampaignResult, MetricSample, SiteResult
from reporting.artifacts import ensure_results_dir, read_results_json, read_run_json
from reporting.plotting import generate_plots


def format_metrics_line(sample: MetricSample) -> str:
    """One-line summary of a sample; TBT shown in seconds."""
    return (
        f"FCP: {sample.fcp:.0f}ms, LCP: {sample.lcp:.0f}ms, TBT: {sample.tbt / 1000:.3f}s, "
        f"CLS: {sample.cls:.3f}, SI: {sample.si:.0f}ms"
    )


def format_console_report(sites: List[SiteResult]) -> str:
    """
    Format the end-of-campaign console summary.

    Args:
        sites: Site results in campaign order

    Returns:
        Multi-line summary string
    """
    lines = ["", "===== Page load summary ====="]
    for index, site in enumerate(sites, 1):
        lines.append("")
        lines.append(f"{index}. {site.target.name}")
        lines.append(f"   URL: {site.target.url}")
        if site.failed:
            lines.append(f"   ! {site.error}")
        for regime in (CacheRegime.COLD, CacheRegime.WARM):
            batch = site.batch(regime)
            failed = f" ({batch.failed_attempts} failed run(s))" if batch.failed_attempts else ""
            lines.append(f"   {regime.label}{failed}:")
            lines.append(f"      {format_metrics_line(batch.average)}")
    return "\n".join(lines)


def generate_findings(sites: List[SiteResult], regression_threshold_pct: float = 5.0) -> List[Dict[str, str]]:
    """
    Generate findings from campaign results.

    Args:
        sites: Site results
        regression_threshold_pct: Warm-slower-than-cold tolerance

    Returns:
        List of finding dictionaries with type, title and description
    """
    findings = []

    for site in sites:
        name = site.target.name
        if site.failed:
            findings.append(
                {
                    "type": "error",
                    "title": f"{name}: target aborted",
                    "description": site.error,
                }
            )
            continue

        failed_runs = site.cold.failed_attempts + site.warm.failed_attempts
        if failed_runs:
            findings.append(
                {
                    "type": "warning",
                    "title": f"{name}: failed runs",
                    "description": f"{failed_runs} run(s) were recorded as zero samples and pull the averages down",
                }
            )

        comparison = compare_regimes(site.cold.average, site.warm.average)
        regressions = find_regressions(comparison, regression_threshold_pct)
        if regressions:
            metrics = ", ".join(name.upper() for name in regressions)
            findings.append(
                {
                    "type": "warning",
                    "title": f"{name}: cache did not help",
                    "description": f"Warm regime slower than cold by more than {regression_threshold_pct:.0f}% for {metrics}",
                }
            )

        lcp = comparison["lcp"]
        if lcp["improvement_pct"] is not None and lcp["improvement_pct"] >= 20:
            findings.append(
                {
                    "type": "success",
                    "title": f"{name}: strong cache benefit",
                    "description": f"LCP improves by {lcp['improvement_pct']:.1f}% with cache enabled",
                }
            )

    return findings


def _markdown_metrics_table(site: SiteResult) -> List[str]:
    comparison = compare_regimes(site.cold.average, site.warm.average)
    lines = [
        "| Metric | Cache disabled | Cache enabled | Delta | Improvement |",
        "|--------|---------------:|--------------:|------:|------------:|",
    ]
    for name, values in comparison.items():
        unit = "" if name == "cls" else " ms"
        fmt = "{:.3f}" if name == "cls" else "{:.0f}"
        improvement = values["improvement_pct"]
        improvement_str = f"{improvement:+.1f}%" if improvement is not None else "n/a"
        lines.append(
            f"| {METRIC_LABELS[name]} | {fmt.format(values['cold'])}{unit} | "
            f"{fmt.format(values['warm'])}{unit} | {fmt.format(values['delta'])}{unit} | {improvement_str} |"
        )
    return lines


def _markdown_runs_table(site: SiteResult) -> List[str]:
    lines = [
        "| Regime | Run | FCP (ms) | LCP (ms) | TBT (s) | CLS | SI (ms) |",
        "|--------|----:|---------:|---------:|--------:|----:|--------:|",
    ]
    for regime in (CacheRegime.COLD, CacheRegime.WARM):
        for index, sample in enumerate(site.batch(regime).samples, 1):
            marker = " (failed)" if sample.is_sentinel else ""
            lines.append(
                f"| {regime.label} | {index}{marker} | {sample.fcp:.0f} | {sample.lcp:.0f} | "
                f"{sample.tbt / 1000:.3f} | {sample.cls:.3f} | {sample.si:.0f} |"
            )
    return lines


def generate_markdown_report(campaign: CampaignResult, run_data: Optional[Dict[str, Any]] = None) -> str:
    """
    Generate the Markdown report for a campaign.

    Args:
        campaign: Campaign result
        run_data: Optional run.json metadata

    Returns:
        Markdown report as string
    """
    run_data = run_data or {}
    findings = generate_findings(campaign.sites)

    lines = [
        f"# Page Load Report: {campaign.name}",
        "",
        f"**Campaign ID:** `{campaign.campaign_id}`  ",
        f"**Started:** {campaign.started_at.strftime('%Y-%m-%d %H:%M:%S')}  ",
        f"**Duration:** {campaign.elapsed_s:.0f}s  ",
        f"**Targets:** {len(campaign.sites)} ({len(campaign.failed_sites)} aborted)",
    ]
    if run_data.get("git_commit"):
        lines.append(f"**Commit:** `{run_data['git_commit'][:12]}`")
    lines.extend(["", "---", ""])

    if findings:
        lines.extend(["## Findings", ""])
        icons = {"error": "[ERROR]", "warning": "[WARN]", "success": "[OK]"}
        for finding in findings:
            lines.append(f"- {icons.get(finding['type'], '-')} **{finding['title']}**: {finding['description']}")
        lines.append("")

    for site in campaign.sites:
        lines.extend([f"## {site.target.name}", "", f"URL: <{site.target.url}>", ""])
        if site.failed:
            lines.extend([f"> Aborted: {site.error}", ""])
        lines.extend(["### Averages", ""])
        lines.extend(_markdown_metrics_table(site))
        lines.extend(["", "### Runs", ""])
        lines.extend(_markdown_runs_table(site))
        lines.append("")

    return "\n".join(lines)


def write_report_files(
    campaign: CampaignResult,
    output_dir: str = "results",
    plots: bool = True,
) -> Dict[str, Any]:
    """
    Write Markdown and JSON report files (and plots) next to the campaign artifacts.

    Returns:
        Dictionary with paths to generated files
    """
    reports_dir = ensure_results_dir(campaign.campaign_id, output_dir)
    run_data = read_run_json(campaign.campaign_id, output_dir) or {}

    md_file = reports_dir / "report.md"
    with open(md_file, "w") as f:
        f.write(generate_markdown_report(campaign, run_data))

    json_report = {
        "campaign_id": campaign.campaign_id,
        "generated_at": datetime.now().isoformat(),
        "sites": [
            {
                "target": site.target.to_dict(),
                "error": site.error,
                "cold": describe_samples(site.cold.samples),
                "warm": describe_samples(site.warm.samples),
                "comparison": compare_regimes(site.cold.average, site.warm.average),
            }
            for site in campaign.sites
        ],
        "findings": generate_findings(campaign.sites),
    }
    json_file = reports_dir / "report.json"
    with open(json_file, "w") as f:
        json.dump(json_report, f, indent=2)

    plot_files = generate_plots(campaign, reports_dir) if plots else {}

    return {"markdown": md_file, "json": json_file, "plots": plot_files}


def generate_campaign_report(campaign_id: str, output_dir: str = "results", plots: bool = True) -> Dict[str, Any]:
    """
    Regenerate the reports of a saved campaign from its results.json.

    Raises:
        FileNotFoundError: If the campaign has no results.json
    """
    campaign = read_results_json(campaign_id, output_dir)
    if campaign is None:
        raise FileNotFoundError(f"No results.json for campaign {campaign_id} in {output_dir}")
    return write_report_files(campaign, output_dir, plots=plots)
