"""
Crawl loop tests against a scripted browser.

Each test routes about-page URLs to FakeChannelPages and checks what lands
in the dataset sink, the failed-requests log and the summary.
"""

import asyncio
import logging

import pytest

from harvest.access_classifier import ErrorCategory
from harvest.access_policy import RETRY_POLICIES, RetryPolicy
from harvest.config import CSS_SELECTORS, ChannelIdentifier, ScrapeConfig
from harvest.rate_limiter import AdaptiveRateLimiter
from orchestrate.config import RunOptions
from orchestrate.runner import ChannelCrawler, about_url, apply_resume_marker

from fakes import (
    FakeBrowser,
    FakeChannelPage,
    FakeFrame,
    MemorySink,
    MemorySnapshotStore,
    channel_initial_data,
)


A = "https://www.youtube.com/@a"
B = "https://www.youtube.com/@b"
C = "https://www.youtube.com/@c"


def _ok_page(name="Channel"):
    return FakeChannelPage(initial_data=channel_initial_data(name=name))


def _crawl(routes, urls, **option_overrides):
    """Run one crawl; returns (summary, browser, sink, failed_log, snapshots)."""
    options = RunOptions(start_urls=list(urls), **option_overrides)
    browser = FakeBrowser({about_url(url): page for url, page in routes.items()})
    sink, failed_log, snapshots = MemorySink(), MemorySink(), MemorySnapshotStore()
    crawler = ChannelCrawler(
        options, browser, sink, failed_log,
        rate_limiter=AdaptiveRateLimiter(min_delay_ms=0, max_delay_ms=0),
        snapshot_store=snapshots,
        scrape_config=ScrapeConfig(settle_ms=0),
    )
    identifiers = [ChannelIdentifier(url, origin=str(i)) for i, url in enumerate(urls)]
    summary = asyncio.run(crawler.run(identifiers))
    return summary, browser, sink, failed_log, snapshots


# ---------------------------------------------------------------------------
# Success path
# ---------------------------------------------------------------------------

def test_all_channels_succeed():
    summary, browser, sink, failed_log, _ = _crawl(
        {A: _ok_page("A"), B: _ok_page("B")}, [A, B], max_concurrency=2,
    )
    assert summary.total == 2
    assert summary.succeeded == 2
    assert summary.failed == 0
    assert summary.success_rate == 1.0
    assert sorted(r.channel_name for r in sink.items) == ["A", "B"]
    assert failed_log.items == []
    assert sorted(browser.requests) == [A + "/about", B + "/about"]
    assert browser.closed_pages == 2


def test_records_buffered_until_end_without_partial_results():
    summary, _, sink, _, _ = _crawl({A: _ok_page()}, [A], save_partial_results=False)
    assert summary.succeeded == 1
    assert len(sink.items) == 1


# ---------------------------------------------------------------------------
# Terminal failures
# ---------------------------------------------------------------------------

def test_captcha_rotates_session_and_never_retries():
    captcha = FakeChannelPage(
        initial_data=channel_initial_data(),
        frames=[FakeFrame("a-1", {CSS_SELECTORS["captcha_checkbox"]})],
    )
    summary, browser, sink, failed_log, snapshots = _crawl({A: captcha}, [A])

    assert sink.items == []
    assert summary.failed == 1
    assert summary.retries == 0
    assert summary.failures_by_category == {"captcha": 1}
    assert browser.rotations == 1
    assert len(browser.requests) == 1
    assert len(snapshots.saved) == 1

    (entry,) = failed_log.items
    assert entry.url == A
    assert entry.category == "captcha"
    assert entry.attempts == 1
    assert entry.input_source == "direct"
    assert entry.input_origin == "0"


def test_not_found_is_terminal():
    summary, browser, _, failed_log, _ = _crawl({A: FakeChannelPage(status=404)}, [A])
    assert summary.failed == 1
    assert failed_log.items[0].category == "not_found"
    assert len(browser.requests) == 1


def test_timeout_with_retries_disabled():
    slow = FakeChannelPage(goto_delay=1.0)
    summary, _, _, failed_log, _ = _crawl({A: slow}, [A], request_timeout_secs=0.05, max_retries=0)
    assert summary.failed == 1
    assert failed_log.items[0].category == "timeout"


# ---------------------------------------------------------------------------
# Retries
# ---------------------------------------------------------------------------

def test_server_error_then_success(monkeypatch):
    monkeypatch.setitem(RETRY_POLICIES, ErrorCategory.TEMPORARY, RetryPolicy(2, 0, 0, 1))
    pages = [FakeChannelPage(status=503), _ok_page("Recovered")]
    summary, browser, sink, failed_log, _ = _crawl({A: pages}, [A])

    assert summary.succeeded == 1
    assert summary.retries == 1
    assert failed_log.items == []
    assert sink.items[0].channel_name == "Recovered"
    assert browser.requests == [A + "/about", A + "/about"]


def test_retry_budget_exhausted(monkeypatch):
    monkeypatch.setitem(RETRY_POLICIES, ErrorCategory.TEMPORARY, RetryPolicy(2, 0, 0, 1))
    summary, browser, _, failed_log, _ = _crawl({A: FakeChannelPage(status=500)}, [A], max_retries=3)

    assert summary.failed == 1
    assert summary.retries == 2
    assert len(browser.requests) == 3
    assert failed_log.items[0].attempts == 3


# ---------------------------------------------------------------------------
# Request cap and resume
# ---------------------------------------------------------------------------

def test_request_cap_skips_remaining():
    summary, browser, sink, _, _ = _crawl(
        {A: _ok_page(), B: _ok_page(), C: _ok_page()}, [A, B, C], max_requests_per_crawl=1,
    )
    assert summary.capped is True
    assert summary.succeeded == 1
    assert summary.skipped == 2
    assert len(browser.requests) == 1
    assert len(sink.items) == 1


def test_request_cap_counts_retries(monkeypatch):
    monkeypatch.setitem(RETRY_POLICIES, ErrorCategory.TEMPORARY, RetryPolicy(2, 0, 0, 1))
    summary, browser, _, failed_log, _ = _crawl(
        {A: FakeChannelPage(status=503)}, [A], max_requests_per_crawl=2,
    )
    assert len(browser.requests) == 2
    assert summary.processed + summary.skipped == 1


def test_request_cap_cancels_pending_retries_and_finishes():
    routes = {url: FakeChannelPage(status=500) for url in (A, B, C)}
    options = RunOptions(start_urls=[A, B, C], max_requests_per_crawl=2, max_concurrency=1)
    browser = FakeBrowser({about_url(url): page for url, page in routes.items()})
    sink, failed_log = MemorySink(), MemorySink()
    crawler = ChannelCrawler(
        options, browser, sink, failed_log,
        rate_limiter=AdaptiveRateLimiter(min_delay_ms=0, max_delay_ms=0),
        scrape_config=ScrapeConfig(settle_ms=0),
    )
    identifiers = [ChannelIdentifier(url) for url in (A, B, C)]

    async def run():
        return await asyncio.wait_for(crawler.run(identifiers), timeout=5)

    summary = asyncio.run(run())

    assert summary.capped is True
    assert len(browser.requests) == 2
    assert summary.retries == 1
    assert summary.failed == 1
    assert summary.skipped == 2
    assert [entry.url for entry in failed_log.items] == [B]


def test_cap_blocked_retry_logs_cap_as_reason(caplog):
    with caplog.at_level(logging.ERROR, logger="orchestrate.runner"):
        _crawl({A: FakeChannelPage(status=503)}, [A], max_requests_per_crawl=1)

    (message,) = [r.getMessage() for r in caplog.records if r.getMessage().startswith("Giving up")]
    assert "max_requests_per_crawl=1 reached" in message


def test_pacing_delay_counts_against_attempt_timeout():
    options = RunOptions(start_urls=[A, B], max_retries=0, max_concurrency=1, request_timeout_secs=0.2)
    browser = FakeBrowser({about_url(A): _ok_page("A"), about_url(B): _ok_page("B")})
    sink, failed_log = MemorySink(), MemorySink()
    crawler = ChannelCrawler(
        options, browser, sink, failed_log,
        rate_limiter=AdaptiveRateLimiter(min_delay_ms=5000, max_delay_ms=5000),
        scrape_config=ScrapeConfig(settle_ms=0),
    )
    summary = asyncio.run(crawler.run([ChannelIdentifier(A), ChannelIdentifier(B)]))

    assert summary.succeeded == 1
    assert summary.failed == 1
    assert failed_log.items[0].url == B
    assert failed_log.items[0].category == "timeout"
    assert browser.requests == [A + "/about"]


def test_channel_root_navigation_without_about_tab():
    options = RunOptions(start_urls=[A])
    browser = FakeBrowser({A: _ok_page("Root")})
    sink, failed_log = MemorySink(), MemorySink()
    crawler = ChannelCrawler(
        options, browser, sink, failed_log,
        rate_limiter=AdaptiveRateLimiter(min_delay_ms=0, max_delay_ms=0),
        scrape_config=ScrapeConfig(settle_ms=0, use_about_tab=False),
    )
    summary = asyncio.run(crawler.run([ChannelIdentifier(A)]))

    assert summary.succeeded == 1
    assert browser.requests == [A]
    assert sink.items[0].channel_name == "Root"


def test_resume_marker_skips_earlier_channels():
    summary, browser, _, _, _ = _crawl(
        {A: _ok_page(), B: _ok_page(), C: _ok_page()}, [A, B, C], resume_from="@b",
    )
    assert summary.total == 2
    assert summary.succeeded == 2
    assert sorted(browser.requests) == [B + "/about", C + "/about"]


def test_apply_resume_marker_unknown_processes_everything():
    identifiers = [ChannelIdentifier(A), ChannelIdentifier(B)]
    remaining, skipped = apply_resume_marker(identifiers, "@nobody")
    assert remaining == identifiers
    assert skipped == 0


@pytest.mark.parametrize("marker", [None, ""])
def test_apply_resume_marker_empty(marker):
    identifiers = [ChannelIdentifier(A)]
    assert apply_resume_marker(identifiers, marker) == (identifiers, 0)


def test_empty_identifier_list():
    summary, browser, _, _, _ = _crawl({}, [])
    assert summary.total == 0
    assert browser.requests == []
