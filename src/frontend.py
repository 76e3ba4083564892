"""
Frontend module for the page-load benchmarking tool.

This module handles command-line argument parsing and campaign recipe
loading, then hands control to the campaign driver and the reporters.

Commands:
    run RECIPE        Measure every target of a recipe and write reports
    validate RECIPE   Check a recipe without launching a browser
    smoke URL         Start the browser, run one measurement, stop
    report ID         Regenerate reports from a saved results.json
    list              List saved campaigns
"""

import argparse
import logging
import signal
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from core.campaign import CampaignDriver
from core.config import CampaignConfig, parse_granularity, validate_config
from core.exceptions import ConfigError, PageLoadBenchError
from core.executor import MeasurementExecutor
from core.lifecycle import ProcessLifecycleManager
from infra.launcher import ChromeLauncher
from infra.lighthouse import LighthouseCLIBackend
from infra.logs import setup_logging
from models.metrics import MeasurementTarget, SiteResult
from reporting.artifacts import list_campaigns, write_campaign_artifacts
from reporting.reporter import (
    format_console_report,
    format_metrics_line,
    generate_campaign_report,
    write_report_files,
)

logger = logging.getLogger("pageload.frontend")

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


def _raise_on_sigterm(signum, frame):
    # unwinds through the campaign's finally so the browser gets stopped
    raise SystemExit(128 + signum)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pageload-bench",
        description="Measure page-load performance with cache disabled and enabled",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-file", type=Path, help="Also write logs to this file")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run a measurement campaign")
    run_parser.add_argument("recipe", type=Path, help="Campaign recipe (YAML)")
    run_parser.add_argument("--output-dir", help="Override campaign.output_dir")
    run_parser.add_argument("--count", type=int, help="Override measurement.count")
    run_parser.add_argument("--max-retries", type=int, help="Override measurement.max_retries")
    run_parser.add_argument(
        "--restart-granularity",
        choices=["perRegime", "perAttempt"],
        help="Override measurement.restart_granularity",
    )
    run_parser.add_argument("--no-plots", action="store_true", help="Skip PNG plots")

    validate_parser = subparsers.add_parser("validate", help="Validate a campaign recipe")
    validate_parser.add_argument("recipe", type=Path)

    smoke_parser = subparsers.add_parser("smoke", help="Single measurement smoke test")
    smoke_parser.add_argument("url")
    smoke_parser.add_argument("--recipe", type=Path, help="Take browser/measurement settings from a recipe")
    smoke_parser.add_argument("--cache", action="store_true", help="Measure with cache enabled")

    report_parser = subparsers.add_parser("report", help="Regenerate reports of a saved campaign")
    report_parser.add_argument("campaign_id")
    report_parser.add_argument("--output-dir", default="results")
    report_parser.add_argument("--no-plots", action="store_true")

    list_parser = subparsers.add_parser("list", help="List saved campaigns")
    list_parser.add_argument("--output-dir", default="results")

    return parser


def apply_overrides(config: CampaignConfig, args: argparse.Namespace) -> CampaignConfig:
    """Return a new config with CLI overrides applied and re-validated."""
    measurement = config.measurement
    if args.count is not None:
        measurement = replace(measurement, count=args.count)
    if args.max_retries is not None:
        measurement = replace(measurement, max_retries=args.max_retries)
    if args.restart_granularity:
        measurement = replace(measurement, restart_granularity=parse_granularity(args.restart_granularity))

    config = replace(config, measurement=measurement)
    if args.output_dir:
        config = replace(config, output_dir=args.output_dir)

    validate_config(config)
    return config


def print_site_progress(site: SiteResult) -> None:
    status = "x" if site.failed else "ok"
    print(f"  [{status}] {site.target.name}")
    print(f"      cold: {format_metrics_line(site.cold.average)}")
    print(f"      warm: {format_metrics_line(site.warm.average)}")


def cmd_run(args: argparse.Namespace) -> int:
    config = apply_overrides(CampaignConfig.from_yaml(args.recipe), args)
    print(f"Campaign '{config.name}': {len(config.targets)} target(s), "
          f"{config.measurement.count} run(s) per regime, "
          f"restart {config.measurement.restart_granularity.value}")

    driver = CampaignDriver(config)
    campaign = driver.run(on_result=print_site_progress)

    artifacts = write_campaign_artifacts(campaign, config.to_dict(), config.output_dir)
    reports = write_report_files(campaign, config.output_dir, plots=not args.no_plots)

    print(format_console_report(campaign.sites))
    print()
    print(f"Finished in {campaign.elapsed_s:.0f}s")
    print(f"Results: {artifacts['results'].parent}")
    print(f"Report:  {reports['markdown']}")
    if campaign.failed_sites:
        print(f"{len(campaign.failed_sites)} target(s) aborted, see report")
    return EXIT_OK


def cmd_validate(args: argparse.Namespace) -> int:
    config = CampaignConfig.from_yaml(args.recipe)
    print(f"Recipe OK: '{config.name}' with {len(config.targets)} target(s)")
    for target in config.targets:
        print(f"  - {target}")
    return EXIT_OK


def cmd_smoke(args: argparse.Namespace) -> int:
    base = CampaignConfig.from_yaml(args.recipe) if args.recipe else CampaignConfig()
    target = MeasurementTarget(name="smoke", url=args.url)
    config = replace(base, targets=(target,))
    validate_config(config)

    launcher = ChromeLauncher(
        chrome_path=config.browser.chrome_path,
        user_data_dir=config.browser.user_data_dir,
        connection_poll_interval=config.browser.connection_poll_interval_s,
        max_connection_retries=config.browser.max_connection_retries,
    )
    lifecycle = ProcessLifecycleManager(launcher, config.browser)
    executor = MeasurementExecutor(
        lifecycle, LighthouseCLIBackend(config.measurement.lighthouse_bin), config.measurement
    )

    with lifecycle:
        print(f"Browser endpoint: {config.browser.endpoint} (healthy: {lifecycle.health_check()})")
        sample = executor.measure(target, cache_enabled=args.cache)
    print(f"{args.url}: {format_metrics_line(sample)}")
    return EXIT_OK


def cmd_report(args: argparse.Namespace) -> int:
    files = generate_campaign_report(args.campaign_id, args.output_dir, plots=not args.no_plots)
    print(f"Report: {files['markdown']}")
    for name, path in files["plots"].items():
        print(f"  plot {name}: {path}")
    return EXIT_OK


def cmd_list(args: argparse.Namespace) -> int:
    campaigns = list_campaigns(args.output_dir)
    if not campaigns:
        print(f"No campaigns in {args.output_dir}")
    for campaign_id in campaigns:
        print(campaign_id)
    return EXIT_OK


COMMANDS = {
    "run": cmd_run,
    "validate": cmd_validate,
    "smoke": cmd_smoke,
    "report": cmd_report,
    "list": cmd_list,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO, args.log_file)
    signal.signal(signal.SIGTERM, _raise_on_sigterm)

    try:
        return COMMANDS[args.command](args)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_ERROR
    except KeyboardInterrupt:
        print("\nInterrupted, browser stopped", file=sys.stderr)
        return EXIT_INTERRUPTED
    except (PageLoadBenchError, FileNotFoundError) as e:
        logger.error("%s", e)
        return EXIT_ERROR
    except Exception:
        logger.exception("Unexpected failure")
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
