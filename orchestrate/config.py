"""
Run option loading, overlaying and sanitizing.

Options come from three layers: RunOptions defaults < run config file (JSON
or YAML) < CLI flags the user actually typed. sanitize_options() then clamps
every numeric option into its documented range; bad values are warned about
and corrected, never fatal. Only a missing input source or a required proxy
that was not supplied is a ConfigurationError.
"""

import argparse
import json
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml

from harvest.config import ScrapeConfig
from harvest.errors import ConfigurationError


logger = logging.getLogger(__name__)

# Project paths
PROJECT_ROOT = Path(__file__).parent.parent
DEFAULT_OUTPUT_DIR = PROJECT_ROOT / "output"

MAX_KEYWORDS = 100
MAX_START_URLS = 10000

# name: (min, max, default)
NUMERIC_RANGES = {
    "limit": (1, 1000, 5),
    "max_retries": (0, 10, 3),
    "request_timeout_secs": (10, 300, 30),
    "min_concurrency": (1, 100, 1),
    "max_concurrency": (1, 100, 1),
    "max_requests_per_crawl": (1, 100000, 100),
    "max_channels": (1, 10000, 1000),
}

BOOLEAN_OPTIONS = ("save_partial_results", "proxy_required", "headless", "stealth")


@dataclass
class RunOptions:
    """Everything one crawl run needs to know."""

    # Input sources
    keywords: list[str] = field(default_factory=list)
    start_urls: list = field(default_factory=list)  # strings or {"url": ...} mappings
    bulk_file: str | None = None
    csv_content: str | None = None

    # Limits
    limit: int = 5  # channels per keyword
    max_channels: int = 1000
    max_requests_per_crawl: int = 100

    # Retry and timing
    max_retries: int = 3
    request_timeout_secs: int = 30
    min_concurrency: int = 1
    max_concurrency: int = 1

    # Network identity
    proxy_urls: list[str] = field(default_factory=list)
    proxy_required: bool = False

    # Browser
    headless: bool = True
    stealth: bool = False

    # Output
    output_dir: str = str(DEFAULT_OUTPUT_DIR)
    save_partial_results: bool = True
    resume_from: str | None = None


OPTION_NAMES = {f.name for f in fields(RunOptions)}

# Run-config keys accepted under their original camelCase names
ALIASES = {
    "startUrls": "start_urls",
    "csvContent": "csv_content",
    "maxRequestRetries": "max_retries",
    "requestHandlerTimeoutSecs": "request_timeout_secs",
    "minConcurrency": "min_concurrency",
    "maxConcurrency": "max_concurrency",
    "maxRequestsPerCrawl": "max_requests_per_crawl",
    "maxChannelsPerRun": "max_channels",
    "proxyUrls": "proxy_urls",
    "savePartialResults": "save_partial_results",
    "resumeFrom": "resume_from",
}


def load_run_config(path: str) -> dict:
    """Load a run configuration from JSON or YAML."""
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Run config not found: {path}")

    # Empty files (e.g. /dev/null) mean no overrides
    content = p.read_text(encoding="utf-8").strip()
    if not content:
        return {}

    if p.suffix.lower() in (".yaml", ".yml"):
        result = yaml.safe_load(content)
    else:
        result = json.loads(content)
    if result and not isinstance(result, dict):
        raise ConfigurationError(f"Run config must be a mapping: {path}")
    return {ALIASES.get(k, k): v for k, v in (result or {}).items()}


def apply_run_config(
    args: argparse.Namespace,
    cfg: dict,
    provided_flags: set[str],
) -> argparse.Namespace:
    """Apply run config to args, respecting CLI overrides."""
    if not cfg:
        return args

    applied_keys = getattr(args, "_run_config_keys", set())
    for key, value in cfg.items():
        arg_key = ALIASES.get(key, key)
        if arg_key not in args.__dict__:
            logger.warning("Ignoring unknown run config key: %s", key)
            continue
        if arg_key in provided_flags:
            continue
        setattr(args, arg_key, value)
        applied_keys.add(arg_key)

    setattr(args, "_run_config_keys", applied_keys)
    return args


def clamp_option(name: str, value):
    """Clamp one numeric option into range; non-numbers fall back to the default."""
    low, high, default = NUMERIC_RANGES[name]
    if value is None:
        return default
    try:
        number = int(float(value))
    except (TypeError, ValueError):
        logger.warning("%s must be a number (got %r), using default %s", name, value, default)
        return default
    if number < low or number > high:
        clamped = max(low, min(high, number))
        logger.warning("%s clamped to range [%d, %d]: %s -> %s", name, low, high, value, clamped)
        return clamped
    return number


def _as_bool(name: str, value, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        coerced = value.strip().lower() in ("1", "true", "yes", "on")
    else:
        coerced = bool(value)
    logger.warning("%s converted to boolean: %r -> %s", name, value, coerced)
    return coerced


def _string_list(name: str, value) -> list:
    if value is None:
        return []
    if isinstance(value, (str, dict)):
        return [value]
    if not isinstance(value, (list, tuple)):
        logger.warning("%s must be a list, ignoring %r", name, value)
        return []
    return list(value)


def sanitize_options(raw: dict) -> RunOptions:
    """Build clamped RunOptions from a plain dict of option values."""
    raw = {ALIASES.get(k, k): v for k, v in (raw or {}).items()}
    unknown = set(raw) - OPTION_NAMES
    for key in sorted(unknown):
        logger.warning("Ignoring unknown option: %s", key)

    defaults = RunOptions()
    values = {k: v for k, v in raw.items() if k in OPTION_NAMES}

    for name in NUMERIC_RANGES:
        values[name] = clamp_option(name, values.get(name))

    if values["min_concurrency"] > values["max_concurrency"]:
        logger.warning("min_concurrency cannot be greater than max_concurrency, swapping values")
        values["min_concurrency"], values["max_concurrency"] = values["max_concurrency"], values["min_concurrency"]

    for name in BOOLEAN_OPTIONS:
        values[name] = _as_bool(name, values.get(name), getattr(defaults, name))

    keywords = [k.strip() for k in _string_list("keywords", values.get("keywords")) if isinstance(k, str) and k.strip()]
    if len(keywords) > MAX_KEYWORDS:
        logger.warning("Keywords limited to %d (provided %d)", MAX_KEYWORDS, len(keywords))
        keywords = keywords[:MAX_KEYWORDS]
    values["keywords"] = keywords

    start_urls = _string_list("start_urls", values.get("start_urls"))
    if len(start_urls) > MAX_START_URLS:
        logger.warning("Start URLs limited to %d (provided %d)", MAX_START_URLS, len(start_urls))
        start_urls = start_urls[:MAX_START_URLS]
    values["start_urls"] = start_urls

    values["proxy_urls"] = [p.strip() for p in _string_list("proxy_urls", values.get("proxy_urls")) if isinstance(p, str) and p.strip()]

    if values.get("csv_content") is not None and not isinstance(values["csv_content"], str):
        logger.warning("csv_content must be a string, ignoring it")
        values["csv_content"] = None

    if values.get("output_dir") is None:
        values.pop("output_dir", None)

    return RunOptions(**values)


def validate_options(options: RunOptions) -> None:
    """Raise ConfigurationError for problems that make the run pointless."""
    if not (options.keywords or options.start_urls or options.bulk_file or options.csv_content):
        raise ConfigurationError(
            "At least one input source required (keywords, start_urls, bulk_file, or csv_content)"
        )
    if options.proxy_required and not options.proxy_urls:
        raise ConfigurationError("A proxy is required for this run but no proxy URLs were given")


def scrape_config_from_options(options: RunOptions) -> ScrapeConfig:
    output_dir = Path(options.output_dir)
    return ScrapeConfig(
        headless=options.headless,
        stealth=options.stealth,
        proxy_urls=list(options.proxy_urls),
        snapshot_dir=output_dir / "snapshots",
    )
