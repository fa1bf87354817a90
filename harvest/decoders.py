"""
Pure decoders: compact counts, URL cleaning, contact info from free text.
"""

import re
from dataclasses import dataclass, field
from urllib.parse import parse_qs, unquote, urlparse

from .errors import UnhandledMultiplierError


NUMBER_MULTIPLIERS = {
    'K': 10 ** 3,
    'M': 10 ** 6,
    'B': 10 ** 9,
    'T': 10 ** 12,
    'Q': 10 ** 15,
}

_NON_NUMERIC = re.compile(r'[^0-9,.]')
# A lone suffix letter right after the numeral ("1.2M", "850 K"), not the
# first letter of a word such as "views"
_MULTIPLIER = re.compile(r'(?<=[0-9\s\u202f])([A-Za-z])(?![A-Za-z])')

EMAIL_RE = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
PHONE_RE = re.compile(
    r"(?<![\w/=.-])"
    r"(?:\+\d{1,3}[\s.-]?)?"
    r"(?:\(\d{2,4}\)[\s.-]?|\d{2,4}[\s.-])"
    r"\d{3,4}[\s.-]?\d{3,4}"
    r"(?![\w/-])(?!\.\d)"
)


@dataclass
class ContactInfo:
    emails: list[str] = field(default_factory=list)
    phones: list[str] = field(default_factory=list)


def parse_compact_count(text) -> int:
    """
    Convert a formatted count ("1.2M subscribers", "850K", "1,234 views")
    to an integer.

    Hidden stats have no digits at all and decode to 0. A trailing suffix
    letter outside K/M/B/T/Q raises UnhandledMultiplierError.
    """
    if not text or not isinstance(text, str):
        return 0

    cleaned = _NON_NUMERIC.sub('', text)
    if not cleaned:
        return 0

    try:
        number = float(cleaned.replace(',', ''))
    except ValueError:
        return 0

    match = _MULTIPLIER.search(text)
    if match:
        letter = match.group(1).upper()
        multiplier = NUMBER_MULTIPLIERS.get(letter)
        if multiplier is None:
            raise UnhandledMultiplierError(text, match.group(1))
        return round(number * multiplier)

    return round(number)


def clean_url(url: str) -> str:
    """Strip query string and fragment. Never raises."""
    try:
        parsed = urlparse(url)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError(url)
        return f"{parsed.scheme}://{parsed.netloc}{parsed.path}"
    except (ValueError, TypeError, AttributeError):
        return str(url).split('?')[0].split('#')[0]


def extract_query_parameter(urls: list[str], name: str = 'q') -> list[str]:
    """Decoded values of a query parameter across a list of URLs."""
    values = []
    for url in urls or []:
        try:
            found = parse_qs(urlparse(url).query).get(name)
        except (ValueError, TypeError, AttributeError):
            continue
        if found and found[0]:
            values.append(unquote(found[0]))
    return values


def _dedupe(items: list[str]) -> list[str]:
    seen = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


def extract_contact_info(text: str | None) -> ContactInfo:
    """Emails and phone numbers mentioned in a channel description."""
    if not text or not isinstance(text, str):
        return ContactInfo()

    emails = _dedupe([m.rstrip('.') for m in EMAIL_RE.findall(text)])

    phones = []
    for match in PHONE_RE.findall(text):
        digits = re.sub(r'\D', '', match)
        if 7 <= len(digits) <= 15:
            phones.append(match.strip())

    return ContactInfo(emails=emails, phones=_dedupe(phones))
