"""
Path probes over the page's embedded client data tree (ytInitialData).

A probe is a dotted path into a nested dict/list value:

    header.c4TabbedHeaderRenderer.subscriberCountText.simpleText
    contents.twoColumnBrowseResultsRenderer.tabs[?tabRenderer.title=About]
    metadataRows[*].metadataParts[1].text.content

Supported steps:
- `key`           dict lookup
- `[n]`           list index
- `[*]`           every element; the first one that resolves the rest wins
- `[?a.b=value]`  first element whose nested `a.b` equals `value`
- `[?a.b~value]`  first element whose nested `a.b` contains `value` (any case)

Probes never raise: a missing step resolves to None. Site-format churn is
handled by adding paths to FIELD_PROBES, not by touching control flow.
"""

from __future__ import annotations

import re
from typing import Any


_STEP_RE = re.compile(r'([^.\[\]]+)|\[(\*|-?\d+|\?[^\]]+)\]')

_ABOUT_TAB = 'contents.twoColumnBrowseResultsRenderer.tabs[?tabRenderer.title=About]'
_ABOUT_FULL = (
    _ABOUT_TAB
    + '.tabRenderer.content.sectionListRenderer.contents[0]'
    + '.itemSectionRenderer.contents[0].channelAboutFullMetadataRenderer'
)
_ABOUT_VIEW_MODEL = (
    'onResponseReceivedEndpoints[*].showEngagementPanelEndpoint.engagementPanel'
    '.engagementPanelSectionListRenderer.content.sectionListRenderer.contents[*]'
    '.itemSectionRenderer.contents[*].aboutChannelRenderer.metadata.aboutChannelViewModel'
)
_C4_HEADER = 'header.c4TabbedHeaderRenderer'
_PAGE_HEADER = 'header.pageHeaderRenderer.content.pageHeaderViewModel'
_CHANNEL_METADATA = 'metadata.channelMetadataRenderer'


# Ordered paths per field; first present value wins
FIELD_PROBES: dict[str, list[str]] = {
    'channel_name': [
        f'{_C4_HEADER}.title',
        f'{_PAGE_HEADER}.title.dynamicTextViewModel.text.content',
        f'{_CHANNEL_METADATA}.title',
        'header.pageHeaderRenderer.pageTitle',
    ],
    'subscriber_count': [
        f'{_C4_HEADER}.subscriberCountText.simpleText',
        f'{_C4_HEADER}.subscriberCountText.runs[0].text',
        f'{_ABOUT_VIEW_MODEL}.subscriberCountText',
        f'{_PAGE_HEADER}.metadata.contentMetadataViewModel.metadataRows[*].metadataParts[?text.content~subscriber].text.content',
    ],
    'video_count': [
        f'{_C4_HEADER}.videosCountText.runs',
        f'{_C4_HEADER}.videosCountText.simpleText',
        f'{_ABOUT_VIEW_MODEL}.videoCountText',
        f'{_PAGE_HEADER}.metadata.contentMetadataViewModel.metadataRows[*].metadataParts[?text.content~video].text.content',
    ],
    'description': [
        f'{_ABOUT_FULL}.description.simpleText',
        f'{_ABOUT_VIEW_MODEL}.description',
        f'{_CHANNEL_METADATA}.description',
    ],
    'location': [
        f'{_ABOUT_FULL}.country.simpleText',
        f'{_ABOUT_VIEW_MODEL}.country',
        f'{_CHANNEL_METADATA}.country',
    ],
    'joined_date': [
        f'{_ABOUT_FULL}.joinedDateText.runs[1].text',
        f'{_ABOUT_FULL}.joinedDateText',
        f'{_ABOUT_VIEW_MODEL}.joinedDateText.content',
    ],
    'total_view_count': [
        f'{_ABOUT_FULL}.viewCountText.simpleText',
        f'{_ABOUT_VIEW_MODEL}.viewCountText',
        f'{_C4_HEADER}.viewCountText.simpleText',
    ],
    'avatar_url': [
        f'{_C4_HEADER}.avatar.thumbnails[-1].url',
        f'{_PAGE_HEADER}.image.decoratedAvatarViewModel.avatar.avatarViewModel.image.sources[-1].url',
        f'{_CHANNEL_METADATA}.avatar.thumbnails[0].url',
    ],
}

# Link lists: each path yields a list of link objects, URL read via LINK_URL_PROBES
LINK_LIST_PROBES = [
    f'{_ABOUT_FULL}.primaryLinks',
    f'{_ABOUT_FULL}.otherLinks',
    f'{_ABOUT_VIEW_MODEL}.links',
    f'{_C4_HEADER}.headerLinks.channelHeaderLinksRenderer.primaryLinks',
    f'{_C4_HEADER}.headerLinks.channelHeaderLinksRenderer.secondaryLinks',
]

LINK_URL_PROBES = [
    'navigationEndpoint.urlEndpoint.url',
    'channelExternalLinkViewModel.link.commandRuns[0].onTap.innertubeCommand.urlEndpoint.url',
    'channelExternalLinkViewModel.link.content',
]


def parse_path(path: str) -> list[tuple[str, str]]:
    """Split a probe path into (kind, value) steps."""
    steps = []
    for key, bracket in _STEP_RE.findall(path):
        if key:
            steps.append(('key', key))
        elif bracket == '*':
            steps.append(('all', ''))
        elif bracket.startswith('?'):
            steps.append(('filter', bracket[1:]))
        else:
            steps.append(('index', bracket))
    return steps


def _matches_filter(item: Any, expression: str) -> bool:
    """`a.b=value` for equality, `a.b~value` for case-insensitive containment."""
    if '~' in expression:
        sub_path, _, expected = expression.partition('~')
        actual = probe(item, sub_path)
        return isinstance(actual, str) and expected.lower() in actual.lower()
    sub_path, _, expected = expression.partition('=')
    actual = probe(item, sub_path)
    return actual is not None and str(actual) == expected


def _walk(value: Any, steps: list[tuple[str, str]]) -> Any:
    for position, (kind, arg) in enumerate(steps):
        if value is None:
            return None
        if kind == 'key':
            value = value.get(arg) if isinstance(value, dict) else None
        elif kind == 'index':
            if not isinstance(value, list):
                return None
            idx = int(arg)
            value = value[idx] if -len(value) <= idx < len(value) else None
        elif kind == 'all':
            if not isinstance(value, list):
                return None
            rest = steps[position + 1:]
            for item in value:
                found = _walk(item, rest)
                if _is_present(found):
                    return found
            return None
        elif kind == 'filter':
            if not isinstance(value, list):
                return None
            value = next((item for item in value if _matches_filter(item, arg)), None)
    return value


def _is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (str, list, dict)) and not value:
        return False
    return True


def probe(tree: Any, path: str) -> Any:
    """Resolve a single path; None when any step is missing."""
    return _walk(tree, parse_path(path))


def first_present(tree: Any, paths: list[str]) -> Any:
    """Resolve paths in order and return the first present value."""
    for path in paths:
        value = probe(tree, path)
        if _is_present(value):
            return value
    return None


def text_of(value: Any) -> str | None:
    """
    Flatten the site's text shapes to plain text.

    Handles plain strings, {content}, {simpleText}, {runs: [{text}]} and
    {dynamicTextViewModel: {text: {content}}}, and run lists directly.
    """
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, list):
        joined = ''.join(text_of(part) or '' for part in value if isinstance(part, dict))
        return joined.strip() or None
    if isinstance(value, dict):
        nested = probe(value, 'dynamicTextViewModel.text.content')
        if isinstance(nested, str) and nested.strip():
            return nested.strip()
        for key in ('content', 'simpleText', 'text'):
            inner = value.get(key)
            if isinstance(inner, str) and inner.strip():
                return inner.strip()
            if isinstance(inner, dict):
                resolved = text_of(inner)
                if resolved:
                    return resolved
        if isinstance(value.get('runs'), list):
            return text_of(value['runs'])
    return None


def probe_field(tree: Any, field_name: str) -> Any:
    """Raw value for a named field from FIELD_PROBES."""
    return first_present(tree, FIELD_PROBES.get(field_name, []))


def probe_links(tree: Any) -> list[str]:
    """Outbound link URLs from every known link-list location."""
    urls = []
    for path in LINK_LIST_PROBES:
        items = probe(tree, path)
        if not isinstance(items, list):
            continue
        for item in items:
            url = first_present(item, LINK_URL_PROBES)
            if isinstance(url, str) and url.strip():
                url = url.strip()
                if not url.startswith(('http://', 'https://', '/')):
                    url = 'https://' + url
                urls.append(url)
    return urls
