import pytest

from harvest.decoders import (
    clean_url,
    extract_contact_info,
    extract_query_parameter,
    parse_compact_count,
)
from harvest.errors import UnhandledMultiplierError


# ---------------------------------------------------------------------------
# Compact counts
# ---------------------------------------------------------------------------

class TestParseCompactCount:

    @pytest.mark.parametrize("text,expected", [
        ("1.2M", 1200000),
        ("850K", 850000),
        ("10.5M subscribers", 10500000),
        ("1,234 views", 1234),
        ("1,234,567 views", 1234567),
        ("2B", 2000000000),
        ("42", 42),
        ("3.4k subscribers", 3400),
    ])
    def test_known_shapes(self, text, expected):
        assert parse_compact_count(text) == expected

    @pytest.mark.parametrize("text", ["", "—", "No subscribers", None])
    def test_hidden_or_empty_is_zero(self, text):
        assert parse_compact_count(text) == 0

    def test_unknown_multiplier_raises(self):
        with pytest.raises(UnhandledMultiplierError) as exc_info:
            parse_compact_count("3Z")
        assert exc_info.value.letter == "Z"
        assert isinstance(exc_info.value, ValueError)

    def test_word_after_number_is_not_a_multiplier(self):
        # "videos" starts with a letter but is a whole word
        assert parse_compact_count("120 videos") == 120

    @pytest.mark.parametrize("text, expected", [
        ("1.2\u00a0M subscribers", 1_200_000),
        ("850\u202fK", 850_000),
    ])
    def test_suffix_after_non_breaking_space(self, text, expected):
        assert parse_compact_count(text) == expected


# ---------------------------------------------------------------------------
# URL helpers
# ---------------------------------------------------------------------------

def test_clean_url_strips_query_and_fragment():
    assert clean_url("https://www.tiktok.com/@me?lang=en#top") == "https://www.tiktok.com/@me"


def test_clean_url_never_raises_on_junk():
    assert clean_url("not a url?x=1") == "not a url"


def test_extract_query_parameter_decodes_values():
    urls = [
        "https://www.youtube.com/redirect?event=channel&q=https%3A%2F%2Fexample.com%2Fshop",
        "https://www.youtube.com/redirect?event=channel",
        "https://example.org/?q=",
    ]
    assert extract_query_parameter(urls) == ["https://example.com/shop"]


# ---------------------------------------------------------------------------
# Contact info
# ---------------------------------------------------------------------------

def test_contact_info_emails_and_phones():
    info = extract_contact_info(
        "Business: team@example.com. Call +1 555-123-4567 or mail team@example.com."
    )
    assert info.emails == ["team@example.com"]
    assert info.phones == ["+1 555-123-4567"]


def test_contact_info_ignores_short_digit_runs():
    info = extract_contact_info("Uploads every 2-3 days since 2015")
    assert info.phones == []


def test_contact_info_empty_description():
    info = extract_contact_info(None)
    assert info.emails == [] and info.phones == []
