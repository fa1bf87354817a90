"""
Bounded-concurrency crawl loop.

ChannelCrawler pulls identifiers off an asyncio.Queue with `max_concurrency`
workers. Each attempt waits on the shared AdaptiveRateLimiter and, pacing
delay included, runs under a wall-clock timeout. It ends in one of three ways:

- success: record appended to the sink
- retryable failure: identifier re-enqueued once its backoff has elapsed
- terminal failure: entry appended to the failed-requests log

run_from_options() wires the whole pipeline for the CLI: browser session,
bulk import, keyword search, input normalization, crawl.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from tqdm import tqdm

from harvest.access_classifier import ErrorCategory, classify_error
from harvest.access_policy import decide_retry
from harvest.browser import BrowserSession
from harvest.bulk_import import load_bulk_file, parse_csv
from harvest.config import ChannelIdentifier, ExtractionAttempt, FailedRequest, ScrapeConfig
from harvest.errors import NavigationTimeoutError, error_for_status
from harvest.extractor import extract_channel
from harvest.rate_limiter import AdaptiveRateLimiter
from harvest.search import search_keywords
from harvest.sinks import BufferedSink, FailedRequestLog, JsonlDatasetSink, SnapshotStore

from .config import RunOptions, scrape_config_from_options, validate_options
from .inputs import canonicalize_channel_url, normalize_inputs


logger = logging.getLogger(__name__)

PROGRESS_LOG_EVERY = 10


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def about_url(channel_url: str) -> str:
    return channel_url.rstrip('/') + '/about'


@dataclass
class CrawlSummary:
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    retries: int = 0
    duration_secs: float = 0.0
    capped: bool = False
    failures_by_category: dict[str, int] = field(default_factory=dict)

    @property
    def processed(self) -> int:
        return self.succeeded + self.failed

    @property
    def success_rate(self) -> float:
        return self.succeeded / self.processed if self.processed else 0.0


def apply_resume_marker(identifiers: list[ChannelIdentifier], resume_from: str | None) -> tuple[list[ChannelIdentifier], int]:
    """Drop identifiers before `resume_from`. Returns (remaining, skipped)."""
    if not resume_from:
        return identifiers, 0
    marker = canonicalize_channel_url(resume_from) or resume_from.strip()
    for index, identifier in enumerate(identifiers):
        if identifier.url == marker:
            if index:
                logger.info("Resuming from %s, skipping %d channels", marker, index)
            return identifiers[index:], index
    logger.warning("Resume marker %s not in channel list, processing everything", marker)
    return identifiers, 0


class ChannelCrawler:
    def __init__(
        self,
        config: RunOptions,
        browser,
        sink,
        failed_log,
        rate_limiter: AdaptiveRateLimiter | None = None,
        snapshot_store=None,
        scrape_config: ScrapeConfig | None = None,
        show_progress: bool = False,
    ):
        self.options = config
        self.browser = browser
        self.sink = sink if config.save_partial_results else BufferedSink(sink)
        self.failed_log = failed_log
        self.rate_limiter = rate_limiter or AdaptiveRateLimiter()
        self.snapshot_store = snapshot_store
        self.scrape_config = scrape_config or scrape_config_from_options(config)
        self.show_progress = show_progress

        self.attempts: dict[str, list[ExtractionAttempt]] = {}
        self._queue: asyncio.Queue | None = None
        self._retry_tasks: set[asyncio.Task] = set()
        self._outstanding = 0
        self._dispatched = 0
        self._workers = 0
        self._summary = CrawlSummary()
        self._failures: Counter = Counter()
        self._progress = None

    # -- bookkeeping ----------------------------------------------------------

    def _finish_one(self, outcome: str) -> None:
        if outcome == 'succeeded':
            self._summary.succeeded += 1
        elif outcome == 'failed':
            self._summary.failed += 1
        else:
            self._summary.skipped += 1
        if self._progress is not None:
            self._progress.update(1)

        done = self._summary.processed
        if outcome != 'skipped' and done % PROGRESS_LOG_EVERY == 0:
            logger.info(
                "Progress: %d/%d processed (%d ok, %d failed)",
                done, self._summary.total, self._summary.succeeded, self._summary.failed,
            )

        self._outstanding -= 1
        if self._outstanding == 0:
            for _ in range(self._workers):
                self._queue.put_nowait(None)

    def _cap_reached(self) -> bool:
        return self._dispatched >= self.options.max_requests_per_crawl

    def _on_cap(self) -> None:
        if not self._summary.capped:
            self._summary.capped = True
            logger.warning(
                "Reached max_requests_per_crawl=%d, draining", self.options.max_requests_per_crawl
            )
            # the task body may never have run, so the skip is counted here
            for task in list(self._retry_tasks):
                if task.cancel():
                    self._finish_one('skipped')

    def _target_url(self, identifier: ChannelIdentifier) -> str:
        if self.scrape_config.use_about_tab:
            return about_url(identifier.url)
        return identifier.url

    # -- attempts ---------------------------------------------------------------

    async def _attempt(self, identifier: ChannelIdentifier, clock: dict):
        await self.rate_limiter.wait_for_slot()
        clock['started'] = time.monotonic()
        page = await self.browser.new_page()
        try:
            status = await page.goto(self._target_url(identifier), self.scrape_config.navigation_timeout_ms)
            if status is not None and status >= 400:
                raise error_for_status(status, identifier.url)
            return await extract_channel(page, identifier, self.scrape_config, self.snapshot_store)
        finally:
            await page.close()

    async def _requeue_later(self, identifier: ChannelIdentifier, delay_ms: int) -> None:
        await asyncio.sleep(delay_ms / 1000)
        self._queue.put_nowait(identifier)

    def _schedule_retry(self, identifier: ChannelIdentifier, delay_ms: int) -> None:
        task = asyncio.ensure_future(self._requeue_later(identifier, delay_ms))
        self._retry_tasks.add(task)
        task.add_done_callback(self._retry_tasks.discard)

    async def _process(self, identifier: ChannelIdentifier) -> None:
        attempt = ExtractionAttempt(attempt_number=identifier.retry_count + 1, started_at=_now_iso())
        self.attempts.setdefault(identifier.url, []).append(attempt)
        # Latency is measured from the end of the pacing delay
        clock = {}

        try:
            record = await asyncio.wait_for(
                self._attempt(identifier, clock), timeout=self.options.request_timeout_secs,
            )
        except asyncio.TimeoutError:
            error = NavigationTimeoutError(
                f"Request handler timed out after {self.options.request_timeout_secs}s"
            )
        except Exception as e:
            error = e
        else:
            attempt.duration_ms = int((time.monotonic() - clock['started']) * 1000)
            self.rate_limiter.record_outcome(True, attempt.duration_ms)
            await self.sink.append(record)
            self._finish_one('succeeded')
            return

        attempt.duration_ms = int((time.monotonic() - clock.get('started', time.monotonic())) * 1000)
        await self._handle_failure(identifier, attempt, error)

    async def _handle_failure(self, identifier: ChannelIdentifier, attempt: ExtractionAttempt, error: Exception) -> None:
        category = classify_error(error)
        attempt.error = str(error) or type(error).__name__
        attempt.category = category.value
        self.rate_limiter.record_outcome(
            False, attempt.duration_ms, rate_limited=category == ErrorCategory.RATE_LIMIT,
        )

        if category == ErrorCategory.CAPTCHA:
            try:
                await self.browser.rotate_session()
            except Exception as e:
                logger.error("Session rotation failed: %s", e)

        decision = decide_retry(category, identifier.retry_count, self.options.max_retries)
        reason = decision.reason
        if decision.retry and self._cap_reached():
            reason = f"max_requests_per_crawl={self.options.max_requests_per_crawl} reached"
        elif decision.retry:
            attempt.retry_delay_ms = decision.delay_ms
            identifier.retry_count += 1
            self._summary.retries += 1
            logger.warning(
                "Attempt %d for %s failed (%s): %s; %s",
                attempt.attempt_number, identifier.url, category.value, attempt.error, decision.reason,
            )
            self._schedule_retry(identifier, decision.delay_ms)
            return

        self._failures[category.value] += 1
        entry = FailedRequest(
            url=identifier.url,
            error=attempt.error,
            category=category.value,
            attempts=attempt.attempt_number,
            timestamp=_now_iso(),
            input_source=identifier.source,
            input_origin=None if identifier.origin is None else str(identifier.origin),
        )
        await self.failed_log.append(entry)
        logger.error(
            "Giving up on %s after %d attempt(s) [%s]: %s (%s)",
            identifier.url, attempt.attempt_number, category.value, attempt.error, reason,
        )
        self._finish_one('failed')

    # -- loop -------------------------------------------------------------------

    async def _worker(self) -> None:
        while True:
            identifier = await self._queue.get()
            if identifier is None:
                return
            if self._cap_reached():
                self._on_cap()
                self._finish_one('skipped')
                continue
            self._dispatched += 1
            await self._process(identifier)

    async def run(self, identifiers: list[ChannelIdentifier]) -> CrawlSummary:
        started = time.monotonic()
        identifiers, resumed = apply_resume_marker(list(identifiers), self.options.resume_from)
        self._summary = CrawlSummary(total=len(identifiers))

        if identifiers:
            self._queue = asyncio.Queue()
            self._workers = max(1, self.options.max_concurrency)
            self._outstanding = len(identifiers)
            for identifier in identifiers:
                self._queue.put_nowait(identifier)

            logger.info(
                "Crawling %d channels with %d workers (%d skipped by resume marker)",
                len(identifiers), self._workers, resumed,
            )
            self._progress = tqdm(
                total=len(identifiers), desc="Channels", unit="ch", disable=not self.show_progress,
            )
            try:
                await asyncio.gather(*(self._worker() for _ in range(self._workers)))
            finally:
                self._progress.close()
                self._progress = None
                for task in list(self._retry_tasks):
                    task.cancel()

        if isinstance(self.sink, BufferedSink):
            await self.sink.flush()

        self._summary.duration_secs = round(time.monotonic() - started, 2)
        self._summary.failures_by_category = dict(self._failures)
        logger.info("Rate limiter final metrics: %s", self.rate_limiter.metrics())
        return self._summary


async def collect_identifiers(options: RunOptions, session, scrape_config: ScrapeConfig | None = None) -> list[ChannelIdentifier]:
    """Bulk import plus keyword search, normalized and deduplicated."""
    bulk_records = []
    if options.bulk_file:
        bulk_records.extend(load_bulk_file(Path(options.bulk_file)))
    if options.csv_content:
        bulk_records.extend(parse_csv(options.csv_content))

    keyword_results = []
    if options.keywords:
        keyword_results = await search_keywords(session, options.keywords, options.limit, scrape_config)

    return normalize_inputs(
        direct_urls=options.start_urls,
        bulk_records=bulk_records,
        keyword_results=keyword_results,
        max_channels=options.max_channels,
    )


async def run_from_options(options: RunOptions, show_progress: bool = False) -> CrawlSummary:
    """Full run: validate, open the browser, gather inputs, crawl."""
    validate_options(options)
    scrape_config = scrape_config_from_options(options)
    output_dir = Path(options.output_dir)

    sink = JsonlDatasetSink(output_dir)
    failed_log = FailedRequestLog(output_dir)
    snapshots = SnapshotStore(scrape_config.snapshot_dir)

    async with BrowserSession(scrape_config) as session:
        identifiers = await collect_identifiers(options, session, scrape_config)
        crawler = ChannelCrawler(
            options, session, sink, failed_log,
            rate_limiter=AdaptiveRateLimiter(),
            snapshot_store=snapshots,
            scrape_config=scrape_config,
            show_progress=show_progress,
        )
        return await crawler.run(identifiers)
