"""
Page-load benchmarking tool

Measures FCP, LCP, TBT, CLS and Speed Index of a list of pages with the
browser cache disabled and enabled, using Lighthouse against a locally
managed headless Chrome.

Package structure:
- frontend: Command line interface
- core/: Measurement engine (lifecycle, executor, coordinator, aggregator, campaign)
- models/: Data models (samples, batches, site results)
- infra/: Infrastructure (Chrome launcher, Lighthouse backend, health, logs)
- reporting/: Report generation (reporter, plotting, artifacts)
"""

__version__ = "1.0.0"
