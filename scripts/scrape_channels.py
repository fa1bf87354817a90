#!/usr/bin/env python3
"""
YouTube channel profile harvester.

Takes channel URLs, bulk CSV/Excel lists and search keywords, visits each
channel's about page in headless Chromium and writes one JSON record per
channel:

    python scripts/scrape_channels.py --url @MrBeast --url https://www.youtube.com/c/Foo
    python scripts/scrape_channels.py --bulk-file channels.xlsx --max-concurrency 3 --progress
    python scripts/scrape_channels.py --keyword "woodworking" --limit 20 --run-config run.yaml

Output lands in <output-dir>/channels.jsonl, failures in failed_requests.jsonl.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add parent dir to path for harvest/orchestrate packages
sys.path.insert(0, str(Path(__file__).parent.parent))

from harvest.bulk_import import generate_csv_template
from harvest.errors import ConfigurationError
from orchestrate.config import OPTION_NAMES, apply_run_config, load_run_config, sanitize_options
from orchestrate.logging_setup import setup_logging
from orchestrate.presenter import format_banner, format_summary, write_summary_json
from orchestrate.runner import run_from_options


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Harvest YouTube channel profiles")
    parser.add_argument("--url", dest="start_urls", action="append",
                        help="Channel URL or @handle (repeatable)")
    parser.add_argument("--keyword", dest="keywords", action="append",
                        help="Search keyword (repeatable)")
    parser.add_argument("--bulk-file", help="CSV or Excel file listing channels")
    parser.add_argument("--limit", type=int, help="Channels per keyword (1-1000, default 5)")
    parser.add_argument("--max-channels", type=int, help="Max channels per run (default 1000)")
    parser.add_argument("--max-requests-per-crawl", type=int, help="Max page requests (default 100)")
    parser.add_argument("--max-retries", type=int, help="Global retry cap (0-10, default 3)")
    parser.add_argument("--request-timeout-secs", type=int, help="Per-attempt timeout (10-300, default 30)")
    parser.add_argument("--min-concurrency", type=int, help="Min concurrent pages (default 1)")
    parser.add_argument("--max-concurrency", type=int, help="Max concurrent pages (default 1)")
    parser.add_argument("--proxy", dest="proxy_urls", action="append",
                        help="Proxy URL, rotated on CAPTCHA (repeatable)")
    parser.add_argument("--proxy-required", action="store_const", const=True,
                        help="Refuse to run without a proxy")
    parser.add_argument("--stealth", action="store_const", const=True,
                        help="Use playwright-stealth for anti-bot evasion")
    parser.add_argument("--no-headless", dest="headless", action="store_const", const=False,
                        help="Run browser visibly")
    parser.add_argument("--no-partial-results", dest="save_partial_results", action="store_const", const=False,
                        help="Write records only once the crawl completes")
    parser.add_argument("--resume-from", help="Skip channels before this URL")
    parser.add_argument("--output-dir", help="Directory for channels.jsonl and friends")
    parser.add_argument("--run-config", help="Path to JSON/YAML run config")
    parser.add_argument("--progress", action="store_true", help="Show progress bar")
    parser.add_argument("--log-dir", help="Also write a dated log file here")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.add_argument("--template", action="store_true",
                        help="Print a CSV bulk-import template and exit")
    # Run-config only
    parser.set_defaults(csv_content=None)
    return parser


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.template:
        print(generate_csv_template(), end="")
        return 0

    log_file = setup_logging(
        logging.DEBUG if args.verbose else logging.INFO,
        Path(args.log_dir) if args.log_dir else None,
    )

    flag_aliases = {"url": "start_urls", "keyword": "keywords", "proxy": "proxy_urls",
                    "no_headless": "headless", "no_partial_results": "save_partial_results"}
    provided_flags = set()
    for a in argv:
        if a.startswith("--"):
            name = a[2:].split("=", 1)[0].replace("-", "_")
            provided_flags.add(flag_aliases.get(name, name))

    try:
        if args.run_config:
            args = apply_run_config(args, load_run_config(args.run_config), provided_flags)

        raw = {k: v for k, v in vars(args).items() if k in OPTION_NAMES and v is not None}
        options = sanitize_options(raw)

        print("Harvesting YouTube channels")
        for line in format_banner(options):
            print(f"  {line}")
        if log_file:
            print(f"  Log: {log_file}")

        summary = asyncio.run(run_from_options(options, show_progress=args.progress))
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2
    except FileNotFoundError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 130

    print()
    for line in format_summary(summary):
        print(line)
    summary_path = write_summary_json(summary, Path(options.output_dir))
    print(f"Summary written to: {summary_path}")
    return 0 if summary.failed == 0 or summary.succeeded else 1


if __name__ == "__main__":
    sys.exit(main())
