"""
Plotting module for generating campaign visualizations.

This module creates PNG plots for campaign reports:
- Cold vs warm averages per site (time metrics)
- Per-run series for each site, so outliers and zero samples stand out
- LCP overview across all sites
"""

import re
from pathlib import Path
from typing import Dict, List

import matplotlib.pyplot as plt
import numpy as np

from models.metrics import TIME_METRICS, CacheRegime, CampaignResult, SiteResult

# Configure matplotlib for non-interactive backend
plt.switch_backend("Agg")

REGIME_COLORS = {CacheRegime.COLD: "#e67e22", CacheRegime.WARM: "#27ae60"}


def setup_plot_style():
    """Set up consistent plot styling."""
    plt.style.use("default")
    plt.rcParams.update(
        {
            "font.size": 10,
            "axes.titlesize": 12,
            "axes.labelsize": 10,
            "xtick.labelsize": 9,
            "ytick.labelsize": 9,
            "legend.fontsize": 9,
            "figure.titlesize": 14,
            "figure.dpi": 100,
            "savefig.dpi": 150,
            "savefig.bbox": "tight",
        }
    )


def slugify(name: str) -> str:
    slug = re.sub(r"[^A-Za-z0-9]+", "_", name).strip("_").lower()
    return slug or "site"


def plot_regime_comparison(site: SiteResult, output_path: Path) -> None:
    """
    Grouped bar chart of cold vs warm averages for the time metrics.

    Args:
        site: Site result to plot
        output_path: Path to save the plot
    """
    setup_plot_style()

    labels = [name.upper() for name in TIME_METRICS]
    x = np.arange(len(TIME_METRICS))
    width = 0.38

    fig, ax = plt.subplots(figsize=(8, 5))
    for offset, regime in ((-width / 2, CacheRegime.COLD), (width / 2, CacheRegime.WARM)):
        average = site.batch(regime).average
        values = [getattr(average, name) for name in TIME_METRICS]
        bars = ax.bar(x + offset, values, width, label=regime.label, color=REGIME_COLORS[regime])
        for bar, value in zip(bars, values):
            ax.text(
                bar.get_x() + bar.get_width() / 2.0,
                bar.get_height(),
                f"{value:.0f}",
                ha="center",
                va="bottom",
                fontsize=8,
            )

    ax.set_title(f"{site.target.name}: cache disabled vs enabled (CLS {site.cold.average.cls:.3f} / {site.warm.average.cls:.3f})")
    ax.set_ylabel("Milliseconds")
    ax.set_xticks(x)
    ax.set_xticklabels(labels)
    ax.legend()
    ax.grid(True, axis="y", alpha=0.3)
    ax.set_ylim(bottom=0)

    plt.savefig(output_path)
    plt.close(fig)


def plot_run_series(site: SiteResult, output_path: Path, metric: str = "lcp") -> None:
    """Line plot of one metric per run for both regimes of a site."""
    setup_plot_style()

    fig, ax = plt.subplots(figsize=(8, 4))
    for regime in (CacheRegime.COLD, CacheRegime.WARM):
        samples = site.batch(regime).samples
        runs = list(range(1, len(samples) + 1))
        values = [getattr(sample, metric) for sample in samples]
        ax.plot(runs, values, marker="o", label=regime.label, color=REGIME_COLORS[regime])

    ax.set_title(f"{site.target.name}: {metric.upper()} per run")
    ax.set_xlabel("Run")
    ax.set_ylabel("Score" if metric == "cls" else "Milliseconds")
    ax.legend()
    ax.grid(True, alpha=0.3)

    plt.savefig(output_path)
    plt.close(fig)


def plot_campaign_overview(sites: List[SiteResult], output_path: Path, metric: str = "lcp") -> None:
    """Horizontal bars of one metric's cold and warm average for every site."""
    setup_plot_style()

    names = [site.target.name for site in sites]
    y = np.arange(len(sites))
    height = 0.38

    fig, ax = plt.subplots(figsize=(9, max(3, 0.6 * len(sites) + 1)))
    for offset, regime in ((-height / 2, CacheRegime.COLD), (height / 2, CacheRegime.WARM)):
        values = [getattr(site.batch(regime).average, metric) for site in sites]
        ax.barh(y + offset, values, height, label=regime.label, color=REGIME_COLORS[regime])

    ax.set_yticks(y)
    ax.set_yticklabels(names)
    ax.invert_yaxis()
    ax.set_xlabel("Milliseconds")
    ax.set_title(f"{metric.upper()} average per site")
    ax.legend()
    ax.grid(True, axis="x", alpha=0.3)

    plt.savefig(output_path)
    plt.close(fig)


def generate_plots(campaign: CampaignResult, reports_dir: Path) -> Dict[str, Path]:
    """
    Generate all plots for a campaign.

    Args:
        campaign: Campaign result
        reports_dir: Directory receiving a plots/ subdirectory

    Returns:
        Dictionary mapping plot names to file paths
    """
    plots_dir = Path(reports_dir) / "plots"
    plots_dir.mkdir(parents=True, exist_ok=True)

    plot_files = {}
    if not campaign.sites:
        return plot_files

    plot_files["overview_lcp"] = plots_dir / "overview_lcp.png"
    plot_campaign_overview(campaign.sites, plot_files["overview_lcp"])

    for index, site in enumerate(campaign.sites, 1):
        slug = f"{index:02d}_{slugify(site.target.name)}"
        plot_files[f"{slug}_regimes"] = plots_dir / f"{slug}_regimes.png"
        plot_regime_comparison(site, plot_files[f"{slug}_regimes"])

        plot_files[f"{slug}_runs"] = plots_dir / f"{slug}_runs.png"
        plot_run_series(site, plot_files[f"{slug}_runs"])

    return plot_files
