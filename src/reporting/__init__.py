"""
Reporting and output generation for the page-load benchmarking tool.

Contains:
- reporter: Console and Markdown reports
- plotting: Chart generation
- artifacts: JSON/CSV artifact handling
"""

from .reporter import format_console_report, generate_campaign_report, write_report_files
from .artifacts import (
    write_campaign_artifacts,
    write_run_json,
    read_run_json,
    read_results_json,
    ensure_results_dir,
    list_campaigns,
)
