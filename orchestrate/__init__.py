"""
Orchestration modules for the channel harvest pipeline.

Run options, input normalization, the crawl loop and run presentation, kept
apart from scripts/scrape_channels.py so they can be driven from tests.
"""

from .config import (
    RunOptions,
    clamp_option,
    sanitize_options,
    validate_options,
    load_run_config,
    apply_run_config,
    PROJECT_ROOT,
    DEFAULT_OUTPUT_DIR,
)
from .inputs import canonicalize_channel_url, normalize_inputs
from .presenter import format_banner, format_summary, write_summary_json

__all__ = [
    "RunOptions",
    "clamp_option",
    "sanitize_options",
    "validate_options",
    "load_run_config",
    "apply_run_config",
    "PROJECT_ROOT",
    "DEFAULT_OUTPUT_DIR",
    "canonicalize_channel_url",
    "normalize_inputs",
    "format_banner",
    "format_summary",
    "write_summary_json",
]
