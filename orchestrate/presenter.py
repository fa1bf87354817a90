"""
Presentation helpers for run output.

Keeps the CLI focused on wiring while this module formats the run banner,
the final summary, and the summary JSON written next to the dataset.
"""

from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path

SUMMARY_FILENAME = "run_summary.json"


def describe_inputs(options) -> str:
    parts = []
    if options.start_urls:
        parts.append(f"{len(options.start_urls)} start URLs")
    if options.bulk_file:
        parts.append(f"bulk file {options.bulk_file}")
    if options.csv_content:
        parts.append("inline CSV")
    if options.keywords:
        parts.append(f"{len(options.keywords)} keywords x {options.limit}")
    return ", ".join(parts) or "no inputs"


def format_banner(options) -> list[str]:
    return [
        f"Inputs: {describe_inputs(options)}",
        f"Concurrency: {options.min_concurrency}-{options.max_concurrency}, "
        f"retries: {options.max_retries}, timeout: {options.request_timeout_secs}s",
        f"Caps: {options.max_channels} channels, {options.max_requests_per_crawl} requests",
        f"Proxies: {len(options.proxy_urls) or 'none'}, "
        f"headless: {options.headless}, stealth: {options.stealth}",
        f"Output: {options.output_dir}",
    ]


def format_summary(summary) -> list[str]:
    lines = [
        "=" * 60,
        f"Completed: {summary.succeeded}/{summary.total} channels "
        f"({summary.success_rate:.1%} of processed)",
        f"Failed: {summary.failed}, skipped: {summary.skipped}, retries: {summary.retries}",
        f"Duration: {summary.duration_secs:.1f}s",
    ]
    if summary.capped:
        lines.append("Stopped early: request cap reached")
    if summary.failures_by_category:
        by_category = ", ".join(
            f"{category}={count}"
            for category, count in sorted(summary.failures_by_category.items(), key=lambda kv: -kv[1])
        )
        lines.append(f"Failures by category: {by_category}")
    return lines


def write_summary_json(summary, output_dir: Path) -> Path:
    """Write the run summary as JSON; returns its path."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    data = asdict(summary)
    data["success_rate"] = round(summary.success_rate, 3)
    data["finished_at"] = datetime.now(timezone.utc).isoformat()
    path = output_dir / SUMMARY_FILENAME
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
    return path
