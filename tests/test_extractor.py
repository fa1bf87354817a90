"""
Tests for harvest/extractor.py against scripted pages.

Covers the three extraction layers, provenance, name unwrapping,
verification mapping and the error snapshot.
"""

import asyncio

import pytest

from harvest.config import CSS_SELECTORS, XPATH_SELECTORS, ChannelIdentifier, ScrapeConfig
from harvest.errors import CaptchaDetectedError, UnhandledMultiplierError
from harvest.extractor import (
    VERIFICATION_SCRIPT,
    extract_channel,
    extract_markup_links,
    majority_source,
    normalize_channel_name,
    verification_category,
)

from fakes import FakeChannelPage, FakeFrame, MemorySnapshotStore, channel_initial_data


CONFIG = ScrapeConfig(settle_ms=0)
CHANNEL_URL = "https://www.youtube.com/@test"


def _extract(page, identifier=None, store=None):
    identifier = identifier or ChannelIdentifier(CHANNEL_URL, source="direct", origin="0")
    return asyncio.run(extract_channel(page, identifier, CONFIG, store))


# ---------------------------------------------------------------------------
# Layer 1: structured data
# ---------------------------------------------------------------------------

class TestStructuredData:

    def test_full_record(self):
        record = _extract(FakeChannelPage(initial_data=channel_initial_data()))

        assert record.channel_url == CHANNEL_URL
        assert record.channel_name == "Test Channel"
        assert record.subscriber_count == 10500000
        assert record.video_count == 1234
        assert record.total_view_count == 1234567
        assert record.joined_date == "Jan 1, 2010"
        assert record.location == "United States"
        assert record.emails == ["biz@example.com"]
        assert record.instagram_urls == ["https://instagram.com/testchannel"]
        assert record.website_urls == ["https://example.com"]
        assert record.data_source == "structured_data"
        assert record.input_source == "direct"
        assert record.input_origin == "0"
        assert record.scraped_at

    def test_joined_prefix_stripped(self):
        tree = channel_initial_data()
        about = (
            tree["contents"]["twoColumnBrowseResultsRenderer"]["tabs"][1]["tabRenderer"]["content"]
            ["sectionListRenderer"]["contents"][0]["itemSectionRenderer"]["contents"][0]
            ["channelAboutFullMetadataRenderer"]
        )
        about["joinedDateText"] = {"simpleText": "Joined Mar 3, 2015"}
        record = _extract(FakeChannelPage(initial_data=tree))
        assert record.joined_date == "Mar 3, 2015"

    def test_hidden_subscriber_count_is_zero(self):
        record = _extract(FakeChannelPage(initial_data=channel_initial_data(subscribers="")))
        assert record.subscriber_count == 0

    def test_unknown_multiplier_propagates(self):
        store = MemorySnapshotStore()
        page = FakeChannelPage(initial_data=channel_initial_data(subscribers="3Z subscribers"))
        with pytest.raises(UnhandledMultiplierError):
            _extract(page, store=store)
        assert len(store.saved) == 1


# ---------------------------------------------------------------------------
# Layers 2 and 3: DOM and raw markup
# ---------------------------------------------------------------------------

class TestFallbackLayers:

    def test_dom_fills_missing_fields(self):
        page = FakeChannelPage(
            initial_data={},
            selectors={
                CSS_SELECTORS["channel_name"]: "Dom Channel",
                CSS_SELECTORS["subscriber_count"]: "850K subscribers",
                CSS_SELECTORS["avatar_image"]: "https://yt3.ggpht.com/avatar.jpg",
            },
            xpaths={
                XPATH_SELECTORS["video_count"]: "120 videos",
                XPATH_SELECTORS["about_joined_date"]: "Joined Feb 2, 2020",
            },
            selector_lists={CSS_SELECTORS["about_links"]: ["https://twitter.com/dom", "/relative"]},
        )
        record = _extract(page)

        assert record.channel_name == "Dom Channel"
        assert record.subscriber_count == 850000
        assert record.video_count == 120
        assert record.joined_date == "Feb 2, 2020"
        assert record.avatar_url == "https://yt3.ggpht.com/avatar.jpg"
        assert record.twitter_urls == ["https://twitter.com/dom"]
        assert record.data_source == "dom"

    def test_structured_wins_over_dom(self):
        page = FakeChannelPage(
            initial_data=channel_initial_data(),
            selectors={CSS_SELECTORS["channel_name"]: "Dom Channel"},
        )
        assert _extract(page).channel_name == "Test Channel"

    def test_raw_markup_links_when_nothing_else(self):
        html = (
            '<html><body>'
            '<a href="https://www.tiktok.com/@creator?lang=en">TikTok</a>'
            '<a href="https://example.com/blog">Blog</a>'
            '<script>var ytcfg = {"link": "https:\\/\\/discord.gg\\/abc"};</script>'
            '</body></html>'
        )
        record = _extract(FakeChannelPage(initial_data={}, html=html))

        assert record.tiktok_urls == ["https://www.tiktok.com/@creator"]
        assert record.discord_urls == ["https://discord.gg/abc"]
        assert record.website_urls == []
        assert record.channel_name == "Unknown Channel"
        assert record.data_source == "raw_markup"

    def test_markup_links_keep_redirectors(self):
        html = '<a href="https://www.youtube.com/redirect?q=https%3A%2F%2Fshop.example.com">Shop</a>'
        assert extract_markup_links(html) == [
            "https://www.youtube.com/redirect?q=https%3A%2F%2Fshop.example.com"
        ]

    def test_markup_ignores_search_links(self):
        html = '<a href="https://www.youtube.com/results?search_query=x">Search</a>'
        assert extract_markup_links(html) == []


# ---------------------------------------------------------------------------
# Names, verification, provenance
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("value,expected", [
    ("  Plain Name ", "Plain Name"),
    ({"dynamicTextViewModel": {"text": {"content": "View Model"}}}, "View Model"),
    ({"content": "Content"}, "Content"),
    ({"simpleText": "Simple"}, "Simple"),
    ({"runs": [{"text": "Run "}, {"text": "Name"}]}, "Run Name"),
    ({"text": "Text"}, "Text"),
    ({}, "Unknown Channel"),
    ("", "Unknown Channel"),
    (None, "Unknown Channel"),
])
def test_normalize_channel_name(value, expected):
    assert normalize_channel_name(value) == expected


@pytest.mark.parametrize("tooltip,aria,expected", [
    ("Official Artist Channel", False, "official_artist_channel"),
    ("Verified", False, "verified"),
    (None, True, "verified"),
    (None, False, "unknown"),
    ("   ", False, "unknown"),
])
def test_verification_category(tooltip, aria, expected):
    assert verification_category(tooltip, aria) == expected


def test_verification_read_from_page():
    page = FakeChannelPage(
        initial_data=channel_initial_data(),
        evaluations={VERIFICATION_SCRIPT: {"tooltip": "Official Artist Channel", "aria": True}},
    )
    assert _extract(page).verified_category == "official_artist_channel"


def test_majority_source_ties_go_to_more_reliable_layer():
    assert majority_source({}) == "structured_data"
    assert majority_source({"a": "dom", "b": "structured_data"}) == "structured_data"
    assert majority_source({"a": "dom", "b": "raw_markup"}) == "dom"
    assert majority_source({"a": "dom", "b": "dom", "c": "structured_data"}) == "dom"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

def test_captcha_saves_snapshot_and_raises():
    store = MemorySnapshotStore()
    page = FakeChannelPage(
        initial_data=channel_initial_data(),
        frames=[FakeFrame("a-1", {CSS_SELECTORS["captcha_checkbox"]})],
    )
    with pytest.raises(CaptchaDetectedError):
        _extract(page, store=store)
    (key,) = store.saved
    assert key.startswith("ERROR-https_www_youtube_com_test-")


def test_broken_snapshot_store_does_not_mask_error():
    page = FakeChannelPage(frames=[FakeFrame("a-1", {CSS_SELECTORS["captcha_checkbox"]})])
    with pytest.raises(CaptchaDetectedError):
        _extract(page, store=MemorySnapshotStore(fail=True))
